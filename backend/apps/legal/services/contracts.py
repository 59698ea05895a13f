from __future__ import annotations

import calendar
import logging
from datetime import date, timedelta
from typing import List, Optional

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from apps.audit.utils import log_audit_event
from apps.notifications.models import NotificationSeverity
from apps.notifications.services import notify, notify_company_admins
from shared.event_bus import CONTRACT_STATUS_CHANGED, event_bus

from ..models import Contract, ContractKeyDate

logger = logging.getLogger(__name__)


def shift_months(value: Optional[date], months: int) -> Optional[date]:
    """Move a date by whole months, clamping the day to the target month's length."""
    if value is None:
        return None
    index = value.year * 12 + (value.month - 1) + months
    year, month = index // 12, index % 12 + 1
    return date(year, month, min(value.day, calendar.monthrange(year, month)[1]))


def default_renewal_term() -> int:
    return int(getattr(settings, "ATLAS_ERP", {}).get("CONTRACT_RENEWAL_TERM_MONTHS", 12))


class ContractService:
    @staticmethod
    def _change_status(contract: Contract, allowed, new_status, *, user=None, extra_fields=(), description=""):
        contract._ensure_can_transition(allowed)
        previous = contract.status
        contract.status = new_status
        contract.save(update_fields=["status", *extra_fields, "updated_at"])
        log_audit_event(
            user=user,
            company=contract.company,
            action="STATUS_CHANGE",
            entity_type="Contract",
            entity_id=contract.pk,
            description=description or f"Contract {contract.contract_number}: {previous} -> {new_status}",
            before={"status": previous},
            after={"status": new_status},
        )
        event_bus.publish(
            CONTRACT_STATUS_CHANGED,
            instance=contract,
            previous_status=previous,
            company=contract.company,
        )
        return contract

    @staticmethod
    def submit_for_review(contract: Contract, *, user=None) -> Contract:
        return ContractService._change_status(
            contract, {Contract.Status.DRAFT}, Contract.Status.PENDING_REVIEW, user=user
        )

    @staticmethod
    def request_signature(contract: Contract, *, user=None) -> Contract:
        return ContractService._change_status(
            contract, {Contract.Status.PENDING_REVIEW}, Contract.Status.PENDING_SIGNATURE, user=user
        )

    @staticmethod
    def sign(contract: Contract, *, user=None) -> Contract:
        contract._ensure_can_transition({Contract.Status.PENDING_SIGNATURE})
        contract.signed_at = timezone.now()
        if contract.start_date is None:
            contract.start_date = timezone.localdate()
        return ContractService._change_status(
            contract,
            {Contract.Status.PENDING_SIGNATURE},
            Contract.Status.ACTIVE,
            user=user,
            extra_fields=("signed_at", "start_date"),
        )

    @staticmethod
    def terminate(contract: Contract, *, reason: str = "", user=None) -> Contract:
        contract._ensure_can_transition({Contract.Status.ACTIVE})
        contract.terminated_at = timezone.now()
        contract.termination_reason = reason
        return ContractService._change_status(
            contract,
            {Contract.Status.ACTIVE},
            Contract.Status.TERMINATED,
            user=user,
            extra_fields=("terminated_at", "termination_reason"),
            description=f"Contract {contract.contract_number} terminated: {reason}".strip(),
        )

    @staticmethod
    @transaction.atomic
    def renew(contract: Contract, *, term_months: Optional[int] = None, user=None) -> Contract:
        """
        Close ``contract`` as renewed and return its active successor.

        The successor copies the terms and key dates with every date moved
        forward by the renewal term.
        """
        contract._ensure_can_transition({Contract.Status.ACTIVE, Contract.Status.EXPIRED})
        term = term_months or contract.renewal_term_months or default_renewal_term()
        if term <= 0:
            raise ValueError(f"Contract {contract.contract_number} needs a positive renewal term.")

        successor = Contract.objects.create(
            **contract.scope_kwargs(),
            title=contract.title,
            contract_type=contract.contract_type,
            status=Contract.Status.ACTIVE,
            party_name=contract.party_name,
            party_type=contract.party_type,
            vendor=contract.vendor,
            customer=contract.customer,
            start_date=shift_months(contract.start_date, term),
            end_date=shift_months(contract.end_date, term),
            renewal_date=shift_months(contract.renewal_date, term),
            auto_renewal=contract.auto_renewal,
            renewal_term_months=contract.renewal_term_months,
            value=contract.value,
            currency=contract.currency,
            description=contract.description,
            terms=contract.terms,
            signed_at=contract.signed_at,
            renewed_from=contract,
            owner=contract.owner,
            created_by=user if getattr(user, "is_authenticated", False) else None,
        )
        for key_date in contract.key_dates.all():
            ContractKeyDate.objects.create(
                contract=successor,
                date_type=key_date.date_type,
                date=shift_months(key_date.date, term),
                description=key_date.description,
                reminder_days=key_date.reminder_days,
            )
        ContractService._change_status(
            contract,
            {Contract.Status.ACTIVE, Contract.Status.EXPIRED},
            Contract.Status.RENEWED,
            user=user,
            description=f"Contract {contract.contract_number} renewed as {successor.contract_number}",
        )
        logger.info(
            "Contract %s renewed for %s month(s) as %s", contract.contract_number, term, successor.contract_number
        )
        return successor

    @staticmethod
    def process_expirations(as_of: Optional[date] = None) -> dict:
        """Renew or expire active contracts whose end date has passed."""
        as_of = as_of or timezone.localdate()
        result = {"renewed": [], "expired": []}
        due = Contract.objects.filter(status=Contract.Status.ACTIVE, end_date__lt=as_of).order_by("end_date")
        for contract in due:
            if contract.auto_renewal:
                successor = ContractService.renew(contract)
                result["renewed"].append((contract.contract_number, successor.contract_number))
            else:
                ContractService._change_status(contract, {Contract.Status.ACTIVE}, Contract.Status.EXPIRED)
                result["expired"].append(contract.contract_number)
        return result

    @staticmethod
    def due_key_date_reminders(as_of: Optional[date] = None) -> List[ContractKeyDate]:
        """
        Send reminders for key dates inside their reminder window.

        A key date is due when ``date - reminder_days <= as_of <= date`` and
        no reminder went out yet. The contract owner is notified, or the
        company admins when the contract has no owner.
        """
        as_of = as_of or timezone.localdate()
        candidates = ContractKeyDate.objects.filter(
            reminder_sent=False,
            date__gte=as_of,
            contract__status__in=[
                Contract.Status.ACTIVE,
                Contract.Status.PENDING_REVIEW,
                Contract.Status.PENDING_SIGNATURE,
            ],
        ).select_related("contract", "contract__company", "contract__owner")
        sent = []
        for key_date in candidates:
            if key_date.date - timedelta(days=key_date.reminder_days) > as_of:
                continue
            contract = key_date.contract
            days_left = (key_date.date - as_of).days
            payload = dict(
                company=contract.company,
                title=f"{key_date.get_date_type_display()} for {contract.contract_number} in {days_left} day(s)",
                body=key_date.description or contract.title,
                severity=NotificationSeverity.WARNING if days_left <= 7 else NotificationSeverity.INFO,
                group_key=f"contract-key-date:{key_date.pk}",
                entity_type="Contract",
                entity_id=contract.pk,
            )
            if contract.owner_id:
                notify(user=contract.owner, **payload)
            else:
                notify_company_admins(**payload)
            key_date.reminder_sent = True
            key_date.reminder_sent_at = timezone.now()
            key_date.save(update_fields=["reminder_sent", "reminder_sent_at"])
            sent.append(key_date)
        return sent
