import logging

from celery import shared_task

from .services import ContractService

logger = logging.getLogger(__name__)


@shared_task(name="apps.legal.tasks.process_contract_expirations")
def process_contract_expirations():
    """Expire or auto-renew contracts past their end date."""
    try:
        result = ContractService.process_expirations()
        logger.info(
            "Legal: %s contract(s) renewed, %s expired", len(result["renewed"]), len(result["expired"])
        )
        return {
            "status": "ok",
            "renewed": [{"contract": old, "successor": new} for old, new in result["renewed"]],
            "expired": result["expired"],
        }
    except Exception as exc:
        logger.exception("Contract expiration job failed: %s", exc)
        return {"status": "error", "error": str(exc)}


@shared_task(name="apps.legal.tasks.send_key_date_reminders")
def send_key_date_reminders():
    try:
        sent = ContractService.due_key_date_reminders()
        logger.info("Legal: %s key date reminder(s) sent", len(sent))
        return {"status": "ok", "reminders": [key_date.pk for key_date in sent]}
    except Exception as exc:
        logger.exception("Key date reminder job failed: %s", exc)
        return {"status": "error", "error": str(exc)}
