from __future__ import annotations

import logging
import smtplib
import socket
from email.utils import make_msgid

from django.conf import settings
from django.core.mail import EmailMultiAlternatives

logger = logging.getLogger(__name__)


class EmailDeliveryError(Exception):
    """Delivery failed and retrying will not help."""


class TransientEmailError(EmailDeliveryError):
    """Delivery failed for a reason that may clear up on retry."""


def classify_error(exc: Exception) -> EmailDeliveryError:
    """
    Map a low-level sending failure to a transient or permanent error.

    Connection problems, SMTP 4xx replies and HTTP 429/5xx responses are
    transient. SMTP 5xx replies and everything else are permanent.
    """
    if isinstance(exc, EmailDeliveryError):
        return exc
    if isinstance(exc, (smtplib.SMTPServerDisconnected, smtplib.SMTPConnectError, ConnectionError, socket.timeout)):
        return TransientEmailError(f"Connection error: {exc}")
    if isinstance(exc, smtplib.SMTPRecipientsRefused):
        codes = [code for code, _ in exc.recipients.values()]
        if codes and all(400 <= code < 500 for code in codes):
            return TransientEmailError(f"Recipient temporarily refused: {exc}")
        return EmailDeliveryError(f"Recipient refused: {exc}")
    if isinstance(exc, smtplib.SMTPResponseException):
        if 400 <= exc.smtp_code < 500:
            return TransientEmailError(f"SMTP {exc.smtp_code}: {exc.smtp_error!r}")
        return EmailDeliveryError(f"SMTP {exc.smtp_code}: {exc.smtp_error!r}")
    status_code = getattr(exc, "status_code", None)
    if status_code is not None:
        if status_code == 429 or status_code >= 500:
            return TransientEmailError(f"Provider returned {status_code}: {exc}")
        return EmailDeliveryError(f"Provider returned {status_code}: {exc}")
    if isinstance(exc, OSError):
        return TransientEmailError(f"Network error: {exc}")
    return EmailDeliveryError(str(exc))


class DjangoEmailProvider:
    """Sends through the configured Django email backend."""

    name = "django"

    def __init__(self, connection=None):
        self.connection = connection

    def send(self, message) -> str:
        """Send an ``EmailMessage`` row and return the provider message id."""
        from_address = message.from_email or settings.DEFAULT_FROM_EMAIL
        if message.from_name:
            from_address = f"{message.from_name} <{from_address}>"
        to_address = f"{message.to_name} <{message.to_email}>" if message.to_name else message.to_email
        message_id = make_msgid(domain=from_address.rsplit("@", 1)[-1].strip(">") or None)
        email = EmailMultiAlternatives(
            subject=message.subject,
            body=message.body,
            from_email=from_address,
            to=[to_address],
            reply_to=[message.reply_to] if message.reply_to else None,
            headers={"Message-ID": message_id},
            connection=self.connection,
        )
        if message.html_body:
            email.attach_alternative(message.html_body, "text/html")
        try:
            sent = email.send(fail_silently=False)
        except Exception as exc:
            raise classify_error(exc) from exc
        if not sent:
            raise TransientEmailError("Email backend accepted no messages.")
        logger.debug("Email %s handed to backend as %s", message.pk, message_id)
        return message_id


def get_provider():
    return DjangoEmailProvider()
