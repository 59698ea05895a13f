import logging

from celery import shared_task

from .services import FreightService

logger = logging.getLogger(__name__)


@shared_task(name="apps.logistics.tasks.expire_freight_quotes")
def expire_freight_quotes():
    """Mark open freight quotes past their validity date as expired."""
    try:
        return {"status": "ok", "expired": FreightService.expire_quotes()}
    except Exception as exc:
        logger.exception("Freight quote expiry failed: %s", exc)
        return {"status": "error", "error": str(exc)}
