"""Identifier formats and time helpers."""

import random
import re
from datetime import datetime

import pytest

from drinkquick.services.numbering_service import (
    generate_local_id,
    generate_order_number,
    generate_receipt_number,
)
from drinkquick.time_utils import parse_iso_datetime, resolve_timezone, to_utc_z


NOW = datetime(2024, 3, 1, 12, 0, 0)


def test_order_number():
    number = generate_order_number("ORD", now=NOW, rng=random.Random(7))
    assert re.fullmatch(r"ORD-20240301-\d{4}", number)
    assert 1000 <= int(number.rsplit("-", 1)[1]) <= 9999


def test_receipt_number_uses_epoch_millis():
    number = generate_receipt_number("REC", now=NOW, rng=random.Random(7))
    prefix, millis, suffix = number.split("-")
    assert prefix == "REC"
    assert millis == "1709294400000"
    assert 0 <= int(suffix) <= 999


def test_local_id():
    local_id = generate_local_id(now=NOW, rng=random.Random(7))
    assert re.fullmatch(r"local_1709294400000_[0-9a-z]{9}", local_id)


def test_custom_prefix():
    assert generate_order_number("BAR", now=NOW).startswith("BAR-20240301-")


class TestTimeUtils:
    def test_parse_offsets_to_utc(self):
        assert parse_iso_datetime("2024-03-01T13:00:00+01:00") == NOW
        assert parse_iso_datetime("2024-03-01T12:00:00Z") == NOW
        assert parse_iso_datetime("") is None

    def test_round_trip_keeps_microseconds(self):
        value = datetime(2024, 3, 1, 12, 0, 0, 123456)
        assert parse_iso_datetime(to_utc_z(value)) == value

    def test_unknown_timezone(self):
        with pytest.raises(ValueError):
            resolve_timezone("Nowhere/Special")
        assert resolve_timezone(None).zone == "UTC"
