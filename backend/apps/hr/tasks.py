import logging
from collections import defaultdict
from datetime import timedelta
from decimal import Decimal

from celery import shared_task
from django.utils import timezone

from .models import EmployeePayment

logger = logging.getLogger(__name__)


@shared_task(name="apps.hr.tasks.send_payroll_reminders")
def send_payroll_reminders():
    """Summarise pending employee payments due within the next five days."""
    try:
        today = timezone.localdate()
        window_end = today + timedelta(days=5)

        pending = EmployeePayment.objects.filter(
            status=EmployeePayment.Status.PENDING,
            payment_date__lte=window_end,
        ).select_related("company")
        totals = defaultdict(lambda: {"count": 0, "amount": Decimal("0.00"), "overdue": 0})
        for payment in pending:
            entry = totals[payment.company.code]
            entry["count"] += 1
            entry["amount"] += payment.amount
            if payment.payment_date < today:
                entry["overdue"] += 1
        count = sum(entry["count"] for entry in totals.values())
        message = f"{count} employee payment(s) pending on or before {window_end:%d %b %Y}."

        logger.info("HR: Payroll reminder summary - %s", message)

        return {
            "status": "ok",
            "message": message,
            "companies": [
                {
                    "company": code,
                    "pending": entry["count"],
                    "overdue": entry["overdue"],
                    "amount": str(entry["amount"]),
                }
                for code, entry in sorted(totals.items())
            ],
        }
    except Exception as exc:
        logger.exception("Payroll reminder job failed: %s", exc)
        return {"status": "error", "error": str(exc)}
