from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from django.conf import settings
from django.db import IntegrityError, transaction
from django.db.models import Q
from django.utils import timezone

from shared.event_bus import EMAIL_FAILED, event_bus

from ..models import EmailEvent, EmailMessage, EmailTemplate
from .providers import EmailDeliveryError, TransientEmailError, get_provider
from .templates import render_email_template

logger = logging.getLogger(__name__)


def _setting(key, default):
    return getattr(settings, "ATLAS_ERP", {}).get(key, default)


@dataclass
class QueuedEmail:
    message: EmailMessage
    is_duplicate: bool = False


def _record(message: EmailMessage, event_type: str, detail: str = "") -> EmailEvent:
    return EmailEvent.objects.create(message=message, event_type=event_type, detail=detail)


class EmailService:
    @staticmethod
    def queue_email(
        *,
        company,
        to_email: str,
        template_name: str = "",
        subject: str = "",
        body: str = "",
        payload: Optional[dict] = None,
        to_name: str = "",
        from_email: str = "",
        from_name: str = "",
        reply_to: str = "",
        idempotency_key: str = "",
        related_entity_type: str = "",
        related_entity_id="",
        triggered_by=None,
        scheduled_at=None,
    ) -> QueuedEmail:
        """
        Queue an email for delivery.

        With an ``idempotency_key`` the same request queued twice returns the
        first message flagged as a duplicate instead of creating another.
        """
        if not template_name and not subject:
            raise ValueError("An email needs a template or a subject.")
        if idempotency_key:
            existing = EmailMessage.objects.filter(company=company, idempotency_key=idempotency_key).first()
            if existing:
                return QueuedEmail(existing, is_duplicate=True)
        try:
            with transaction.atomic():
                message = EmailMessage.objects.create(
                    company=company,
                    company_group=company.company_group,
                    to_email=to_email,
                    to_name=to_name,
                    from_email=from_email or settings.DEFAULT_FROM_EMAIL,
                    from_name=from_name or _setting("EMAIL_FROM_NAME", ""),
                    reply_to=reply_to,
                    subject=subject,
                    body=body,
                    template_name=template_name,
                    payload=payload or {},
                    max_retries=_setting("EMAIL_MAX_RETRIES", 3),
                    idempotency_key=idempotency_key,
                    related_entity_type=related_entity_type,
                    related_entity_id=str(related_entity_id or ""),
                    triggered_by=triggered_by if getattr(triggered_by, "is_authenticated", False) else None,
                    scheduled_at=scheduled_at,
                )
                _record(message, EmailEvent.EventType.QUEUED)
        except IntegrityError:
            # lost a race with a concurrent request using the same key
            existing = EmailMessage.objects.get(company=company, idempotency_key=idempotency_key)
            return QueuedEmail(existing, is_duplicate=True)
        logger.info("Email %s queued for %s (%s)", message.pk, to_email, template_name or "ad hoc")
        return QueuedEmail(message)

    @staticmethod
    def _fail(message: EmailMessage, error: str) -> dict:
        message.status = EmailMessage.Status.FAILED
        message.last_error = error
        message.save(update_fields=["status", "last_error", "updated_at"])
        _record(message, EmailEvent.EventType.FAILED, error)
        logger.warning("Email %s to %s failed: %s", message.pk, message.to_email, error)
        event_bus.publish(EMAIL_FAILED, instance=message, message=message, company=message.company)
        return {"success": False, "error": error, "should_retry": False}

    @staticmethod
    def _prepare(message: EmailMessage) -> Optional[str]:
        """Render the message from its template; returns an error message on failure."""
        if not message.template_name:
            return None
        template = EmailTemplate.objects.filter(company=message.company, name=message.template_name).first()
        if template is None:
            return f"Template {message.template_name} not found"
        if not template.is_active:
            return f"Template {message.template_name} is not active"
        payload = {
            "app_url": _setting("APP_URL", ""),
            "current_year": timezone.now().year,
            "company_name": message.company.name,
            **(message.payload or {}),
        }
        message.template = template
        message.subject, message.body, message.html_body = render_email_template(template, payload)
        message.save(update_fields=["template", "subject", "body", "html_body", "updated_at"])
        return None

    @staticmethod
    def send_queued_email(message_id, provider=None) -> dict:
        """
        Deliver one queued message.

        Returns ``{"success": bool, "error": str, "should_retry": bool}``.
        Transient provider errors put the message back in the queue until
        ``max_retries`` is used up.
        """
        with transaction.atomic():
            message = EmailMessage.objects.select_for_update().filter(pk=message_id).first()
            if message is None:
                return {"success": False, "error": "Email not found", "should_retry": False}
            if message.status not in EmailMessage.SENDABLE_STATUSES:
                return {"success": False, "error": "Email already processed", "should_retry": False}
            message.status = EmailMessage.Status.SENDING
            message.save(update_fields=["status", "updated_at"])
            _record(message, EmailEvent.EventType.SENDING)

        error = EmailService._prepare(message)
        if error:
            return EmailService._fail(message, error)

        provider = provider or get_provider()
        try:
            provider_message_id = provider.send(message)
        except TransientEmailError as exc:
            message.retry_count += 1
            message.last_error = str(exc)
            if message.retry_count >= message.max_retries:
                message.save(update_fields=["retry_count", "last_error", "updated_at"])
                return EmailService._fail(message, f"Giving up after {message.retry_count} attempt(s): {exc}")
            backoff = _setting("EMAIL_RETRY_BACKOFF_SECONDS", 60) * 2 ** (message.retry_count - 1)
            message.status = EmailMessage.Status.QUEUED
            message.scheduled_at = timezone.now() + timedelta(seconds=backoff)
            message.save(update_fields=["status", "retry_count", "last_error", "scheduled_at", "updated_at"])
            _record(message, EmailEvent.EventType.RETRY, str(exc))
            logger.info("Email %s will be retried in %ss: %s", message.pk, backoff, exc)
            return {"success": False, "error": str(exc), "should_retry": True}
        except EmailDeliveryError as exc:
            return EmailService._fail(message, str(exc))

        message.status = EmailMessage.Status.SENT
        message.provider_message_id = provider_message_id or ""
        message.sent_at = timezone.now()
        message.last_error = ""
        message.save(update_fields=["status", "provider_message_id", "sent_at", "last_error", "updated_at"])
        _record(message, EmailEvent.EventType.SENT, message.provider_message_id)
        return {
            "success": True,
            "error": "",
            "should_retry": False,
            "provider_message_id": message.provider_message_id,
        }

    @staticmethod
    def process_queue(limit: Optional[int] = None, provider=None) -> dict:
        """Send queued messages that are due, oldest first."""
        limit = limit or _setting("EMAIL_QUEUE_BATCH_SIZE", 50)
        now = timezone.now()
        due = (
            EmailMessage.objects.filter(status=EmailMessage.Status.QUEUED)
            .filter(Q(scheduled_at__isnull=True) | Q(scheduled_at__lte=now))
            .order_by("created_at")
            .values_list("pk", flat=True)[:limit]
        )
        provider = provider or get_provider()
        summary = {"processed": 0, "sent": 0, "retrying": 0, "failed": 0}
        for message_id in list(due):
            result = EmailService.send_queued_email(message_id, provider=provider)
            summary["processed"] += 1
            if result["success"]:
                summary["sent"] += 1
            elif result["should_retry"]:
                summary["retrying"] += 1
            else:
                summary["failed"] += 1
        return summary

    @staticmethod
    def retry(message: EmailMessage, *, reset_attempts: bool = True) -> EmailMessage:
        """Put a failed or bounced message back in the queue."""
        if message.status not in (EmailMessage.Status.FAILED, EmailMessage.Status.BOUNCED):
            raise ValueError(f"Email {message.pk} is {message.status} and cannot be retried.")
        message.status = EmailMessage.Status.QUEUED
        message.scheduled_at = None
        if reset_attempts:
            message.retry_count = 0
        message.save(update_fields=["status", "scheduled_at", "retry_count", "updated_at"])
        _record(message, EmailEvent.EventType.RETRY, "Manual retry")
        return message

    @staticmethod
    def get_status(message_id) -> Optional[dict]:
        message = EmailMessage.objects.filter(pk=message_id).first()
        if message is None:
            return None
        return {
            "id": message.pk,
            "status": message.status,
            "to_email": message.to_email,
            "subject": message.subject,
            "retry_count": message.retry_count,
            "last_error": message.last_error,
            "provider_message_id": message.provider_message_id,
            "sent_at": message.sent_at.isoformat() if message.sent_at else None,
            "events": [
                {"event_type": event.event_type, "detail": event.detail, "created_at": event.created_at.isoformat()}
                for event in message.events.all()
            ],
        }
