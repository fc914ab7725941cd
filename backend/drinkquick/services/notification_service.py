# Overview: Background email tasks (Celery) and the helpers that queue them.

"""
Notification side channel.

Emails never take part in the order transaction: the order is committed
first, then a Celery task is queued. Queueing errors and delivery errors are
logged and swallowed so they can never fail a sale.
"""

from __future__ import annotations

import logging

from celery import shared_task
from flask import current_app
from sqlalchemy import update

from ..enums import MailTemplate
from ..extensions import db
from ..models import Order, User
from .mail_service import MailerError, get_mailer


logger = logging.getLogger(__name__)


def order_email_context(order: Order) -> dict:
    return {
        "order": order,
        "currency": current_app.config.get("CURRENCY", "Frs"),
        "subject_args": {"order_number": order.order_number},
    }


def send_order_email(order: Order) -> None:
    """
    Send the confirmation for a committed order and flag it as emailed.

    Raises MailerError on delivery failure. email_sent is written with a
    plain UPDATE so updated_at (the sync authority) is left untouched.
    """
    get_mailer().send(order.customer_email, MailTemplate.ORDER_CONFIRMATION, order_email_context(order))
    db.session.execute(
        update(Order)
        .where(Order.id == order.id)
        .values(email_sent=True, updated_at=Order.updated_at)
        .execution_options(synchronize_session=False)
    )
    db.session.commit()


@shared_task(ignore_result=True)
def send_order_confirmation(order_id: int) -> bool:
    order = db.session.get(Order, order_id)
    if not order or not order.customer_email:
        return False
    try:
        send_order_email(order)
    except MailerError:
        logger.warning("Order confirmation for order %s was not delivered", order_id, exc_info=True)
        return False
    return True


@shared_task(ignore_result=True)
def send_welcome_email(user_id: int) -> bool:
    user = db.session.get(User, user_id)
    if not user:
        return False
    try:
        get_mailer().send(user.email, MailTemplate.WELCOME, {"user": user})
    except MailerError:
        logger.warning("Welcome email for user %s was not delivered", user_id, exc_info=True)
        return False
    return True


def queue_order_confirmation(order_id: int) -> None:
    """Fire-and-forget; a broker outage is logged, never raised."""
    try:
        send_order_confirmation.delay(order_id)
    except Exception:
        logger.exception("Failed to queue order confirmation for order %s", order_id)


def queue_welcome_email(user_id: int) -> None:
    try:
        send_welcome_email.delay(user_id)
    except Exception:
        logger.exception("Failed to queue welcome email for user %s", user_id)
