# Overview: Human-readable identifiers for orders, receipts and offline records.

"""
Numbering Service

- Order numbers:   ORD-YYYYMMDD-NNNN  (NNNN random in [1000, 9999])
- Receipt numbers: REC-<epoch ms>-<0..999>
- Local ids:       local_<epoch ms>_<9 base36 chars>

Numbers are random, not sequential, so collisions are possible; the
persistence layer enforces uniqueness and the order assembler retries once
with fresh numbers.
"""

from __future__ import annotations

import random
import string
from datetime import datetime

from ..time_utils import utcnow


_BASE36 = string.digits + string.ascii_lowercase


def _epoch_ms(now: datetime) -> int:
    # now is UTC-naive
    return int((now - datetime(1970, 1, 1)).total_seconds() * 1000)


def generate_order_number(prefix: str = "ORD", now: datetime | None = None, rng=random) -> str:
    now = now or utcnow()
    return f"{prefix}-{now:%Y%m%d}-{rng.randint(1000, 9999)}"


def generate_receipt_number(prefix: str = "REC", now: datetime | None = None, rng=random) -> str:
    now = now or utcnow()
    return f"{prefix}-{_epoch_ms(now)}-{rng.randint(0, 999)}"


def generate_local_id(now: datetime | None = None, rng=random) -> str:
    now = now or utcnow()
    suffix = "".join(rng.choice(_BASE36) for _ in range(9))
    return f"local_{_epoch_ms(now)}_{suffix}"
