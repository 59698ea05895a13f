import logging

from celery import shared_task

from .services import EmailService

logger = logging.getLogger(__name__)


@shared_task(name="apps.mailing.tasks.process_email_queue")
def process_email_queue(limit=None):
    """Send queued emails that are due."""
    try:
        summary = EmailService.process_queue(limit=limit)
        if summary["processed"]:
            logger.info(
                "Email queue: %s sent, %s retrying, %s failed",
                summary["sent"],
                summary["retrying"],
                summary["failed"],
            )
        return {"status": "ok", **summary}
    except Exception as exc:
        logger.exception("Email queue processing failed: %s", exc)
        return {"status": "error", "error": str(exc)}
