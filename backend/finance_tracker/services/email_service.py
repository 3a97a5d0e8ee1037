"""
services/email_service.py — Outbound e-mail over SMTP.

Only the password-reset message is sent today. SMTP settings come from
current_app.config (SMTP_HOST, SMTP_PORT, SMTP_USER, SMTP_PASSWORD,
EMAIL_FROM). Port 465 uses implicit TLS; any other port upgrades with
STARTTLS when the server offers it.

When SMTP_HOST is empty (development, tests) nothing is sent and a warning is
logged. Callers treat EmailDeliveryError as non-fatal.
"""

from __future__ import annotations

import smtplib
from email.message import EmailMessage

from flask import current_app


class EmailDeliveryError(Exception):
    """The message could not be handed to the SMTP server."""


_RESET_SUBJECT = "Reset your Finance Tracker password"

_RESET_TEXT = (
    "Click the link below to reset your password. This link expires in 1 hour.\n\n"
    "{url}\n\n"
    "If you did not request a password reset, you can safely ignore this email."
)

_RESET_HTML = (
    "<p>Click the link below to reset your password. This link expires in 1 hour.</p>"
    '<p><a href="{url}">{url}</a></p>'
    "<p>If you did not request a password reset, you can safely ignore this email.</p>"
)


def _build_message(to: str, subject: str, text: str, html: str) -> EmailMessage:
    message = EmailMessage()
    message["From"] = current_app.config["EMAIL_FROM"]
    message["To"] = to
    message["Subject"] = subject
    message.set_content(text)
    message.add_alternative(html, subtype="html")
    return message


def _send(message: EmailMessage) -> None:
    config = current_app.config
    host = config.get("SMTP_HOST")
    if not host:
        current_app.logger.warning("SMTP_HOST is not configured; e-mail not sent.")
        return

    port = int(config.get("SMTP_PORT", 587))
    smtp_cls = smtplib.SMTP_SSL if port == 465 else smtplib.SMTP

    try:
        with smtp_cls(host, port, timeout=10) as smtp:
            if smtp_cls is smtplib.SMTP:
                smtp.ehlo()
                if smtp.has_extn("starttls"):
                    smtp.starttls()
                    smtp.ehlo()
            if config.get("SMTP_USER"):
                smtp.login(config["SMTP_USER"], config.get("SMTP_PASSWORD", ""))
            smtp.send_message(message)
    except (smtplib.SMTPException, OSError) as exc:
        raise EmailDeliveryError(str(exc)) from exc


def send_password_reset_email(to: str, reset_url: str) -> None:
    message = _build_message(
        to,
        _RESET_SUBJECT,
        _RESET_TEXT.format(url=reset_url),
        _RESET_HTML.format(url=reset_url),
    )
    _send(message)
