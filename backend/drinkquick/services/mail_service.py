# Overview: Outbound email through SendGrid; renders Jinja templates under templates/email.

"""
Mailer

send(to, template, context) either delivers through SendGrid or, with
MAIL_SUPPRESS_SEND enabled, only records the rendered message in
mailer.outbox. Delivery problems are raised as MailerError; callers on the
order path catch and log them.
"""

from __future__ import annotations

import logging

import sendgrid
from flask import current_app, render_template
from python_http_client.exceptions import HTTPError
from sendgrid.helpers.mail import Mail

from ..enums import MailTemplate


logger = logging.getLogger(__name__)

SUBJECTS = {
    MailTemplate.WELCOME: "Welcome to DrinkQuick!",
    MailTemplate.ORDER_CONFIRMATION: "Your order {order_number}",
}


class MailerError(Exception):
    """Raised when a message cannot be handed to the mail provider."""


class Mailer:
    def __init__(self, app=None):
        self.outbox: list[dict] = []
        if app is not None:
            self.init_app(app)

    def init_app(self, app) -> None:
        app.extensions["mailer"] = self

    def render(self, template: MailTemplate, context: dict) -> tuple[str, str]:
        template = MailTemplate(template)
        subject = SUBJECTS[template].format(**context.get("subject_args", {}))
        html = render_template(f"email/{template.value}.html", **context)
        return subject, html

    def send(self, to: str, template: MailTemplate, context: dict) -> None:
        if not to:
            raise MailerError("Recipient address is required")

        subject, html = self.render(template, context)
        config = current_app.config

        if config.get("MAIL_SUPPRESS_SEND"):
            self.outbox.append({"to": to, "subject": subject, "html": html, "template": str(template)})
            logger.info("Mail suppressed: %s -> %s", subject, to)
            return

        api_key = config.get("SENDGRID_API_KEY")
        if not api_key:
            raise MailerError("SENDGRID_API_KEY is not configured")

        message = Mail(
            from_email=config["MAIL_FROM"],
            to_emails=to,
            subject=subject,
            html_content=html,
        )
        try:
            response = sendgrid.SendGridAPIClient(api_key=api_key).send(message)
        except HTTPError as exc:
            raise MailerError(f"Mail provider rejected message: {exc}") from exc
        except OSError as exc:
            raise MailerError(f"Mail provider unreachable: {exc}") from exc

        if response.status_code >= 400:
            raise MailerError(f"Mail provider returned {response.status_code}")


def get_mailer() -> Mailer:
    return current_app.extensions["mailer"]
