from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Iterable, List, Optional

from django.db import transaction
from django.utils import timezone

from apps.audit.utils import log_audit_event
from apps.mailing.models import EmailTemplate
from apps.mailing.services import EmailService

from ..models import COST_FIELDS, FreightCarrier, FreightQuote, FreightRfq

logger = logging.getLogger(__name__)

RFQ_TEMPLATE_NAME = "freight_rfq"


@dataclass
class QuoteComparison:
    cheapest: Optional[FreightQuote] = None
    fastest: Optional[FreightQuote] = None
    best_value: Optional[FreightQuote] = None


def quote_score(quote: FreightQuote) -> Decimal:
    """Higher is better: cheap and quick quotes score well."""
    return Decimal("1000") / Decimal(quote.total_cost) + Decimal("100") / Decimal(quote.transit_days)


def compare_quotes(quotes: Iterable[FreightQuote]) -> QuoteComparison:
    """
    Pick the cheapest, fastest and best value quotes.

    Quotes without a positive total or transit time cannot be compared and
    are ignored. Ties go to the earliest quote in ``quotes``.
    """
    usable = [quote for quote in quotes if (quote.total_cost or 0) > 0 and (quote.transit_days or 0) > 0]
    if not usable:
        return QuoteComparison()
    return QuoteComparison(
        cheapest=min(usable, key=lambda quote: quote.total_cost),
        fastest=min(usable, key=lambda quote: quote.transit_days),
        best_value=max(usable, key=quote_score),
    )


def rfq_email_payload(rfq: FreightRfq, carrier: FreightCarrier) -> dict:
    return {
        "carrier_name": carrier.contact_name or carrier.name,
        "rfq_number": rfq.rfq_number,
        "title": rfq.title,
        "route": f"{rfq.origin or 'TBD'} → {rfq.destination or 'TBD'}",
        "cargo_type": rfq.get_cargo_type_display(),
        "cargo_description": rfq.cargo_description,
        "weight_kg": str(rfq.weight_kg) if rfq.weight_kg is not None else "TBD",
        "volume_cbm": str(rfq.volume_cbm) if rfq.volume_cbm is not None else "TBD",
        "ready_date": rfq.ready_date.isoformat() if rfq.ready_date else "TBD",
        "required_delivery_date": rfq.required_delivery_date.isoformat() if rfq.required_delivery_date else "TBD",
    }


def default_rfq_body(payload: dict) -> str:
    lines = [
        f"Dear {payload['carrier_name']},",
        "",
        f"We would like a quote for the following shipment ({payload['rfq_number']}):",
        f"  {payload['title']}",
        f"  Route: {payload['route']}",
        f"  Cargo: {payload['cargo_type']}",
        f"  Weight: {payload['weight_kg']} kg",
        f"  Volume: {payload['volume_cbm']} cbm",
        f"  Ready: {payload['ready_date']}",
        f"  Deliver by: {payload['required_delivery_date']}",
    ]
    if payload["cargo_description"]:
        lines.append(f"  Details: {payload['cargo_description']}")
    lines += [
        "",
        "Please include freight cost, surcharges, customs and insurance charges, transit time and quote validity.",
    ]
    return "\n".join(lines)


class FreightService:
    @staticmethod
    def _log_status(rfq: FreightRfq, previous: str, *, user=None, description: str = ""):
        log_audit_event(
            user=user,
            company=rfq.company,
            action="STATUS_CHANGE",
            entity_type="FreightRfq",
            entity_id=rfq.pk,
            description=description or f"Freight RFQ {rfq.rfq_number}: {previous} -> {rfq.status}",
            before={"status": previous},
            after={"status": rfq.status},
        )

    @staticmethod
    def _queue_rfq_email(rfq: FreightRfq, carrier: FreightCarrier, *, user=None):
        if not carrier.email:
            logger.warning("Carrier %s has no email address; RFQ %s not sent to it", carrier.code, rfq.rfq_number)
            return None
        payload = rfq_email_payload(rfq, carrier)
        options = dict(
            company=rfq.company,
            to_email=carrier.email,
            to_name=carrier.contact_name or carrier.name,
            payload=payload,
            idempotency_key=f"freight-rfq:{rfq.pk}:{carrier.pk}",
            related_entity_type="FreightRfq",
            related_entity_id=rfq.pk,
            triggered_by=user,
        )
        has_template = EmailTemplate.objects.filter(
            company=rfq.company, name=RFQ_TEMPLATE_NAME, is_active=True
        ).exists()
        if has_template:
            return EmailService.queue_email(template_name=RFQ_TEMPLATE_NAME, **options).message
        return EmailService.queue_email(
            subject=f"Request for Quote: {rfq.rfq_number} - {rfq.title}",
            body=default_rfq_body(payload),
            **options,
        ).message

    @staticmethod
    @transaction.atomic
    def send_rfq(rfq: FreightRfq, carriers: Iterable[FreightCarrier], *, user=None) -> List[FreightQuote]:
        """
        Send a draft RFQ to carriers.

        Creates a pending quote per carrier, queues the RFQ email to each
        carrier that has an address and leaves the RFQ awaiting quotes.
        """
        rfq._ensure_can_transition((FreightRfq.Status.DRAFT,))
        carriers = list(carriers)
        if not carriers:
            raise ValueError(f"Freight RFQ {rfq.rfq_number} needs at least one carrier.")
        for carrier in carriers:
            if carrier.company_id != rfq.company_id:
                raise ValueError(f"Carrier {carrier.code} belongs to another company.")
            if not carrier.is_active:
                raise ValueError(f"Carrier {carrier.code} is inactive.")

        previous = rfq.status
        rfq.status = FreightRfq.Status.SENT
        rfq.sent_at = timezone.now()
        rfq.save(update_fields=["status", "sent_at", "updated_at"])

        quotes = []
        for carrier in carriers:
            quote, _ = FreightQuote.objects.get_or_create(rfq=rfq, carrier=carrier)
            quotes.append(quote)
            FreightService._queue_rfq_email(rfq, carrier, user=user)

        rfq.status = FreightRfq.Status.AWAITING_QUOTES
        rfq.save(update_fields=["status", "updated_at"])
        FreightService._log_status(rfq, previous, user=user)
        logger.info("Freight RFQ %s sent to %s carrier(s)", rfq.rfq_number, len(quotes))
        return quotes

    @staticmethod
    @transaction.atomic
    def record_quote(
        quote: FreightQuote,
        *,
        transit_days: Optional[int] = None,
        valid_until: Optional[date] = None,
        currency: str = "",
        notes: str = "",
        user=None,
        **costs,
    ) -> FreightQuote:
        """Store a carrier's answer; cost keyword arguments are the quote's cost components."""
        unknown = set(costs) - set(COST_FIELDS)
        if unknown:
            raise ValueError(f"Unknown cost field(s): {', '.join(sorted(unknown))}.")
        rfq = quote.rfq
        rfq._ensure_can_transition(
            (FreightRfq.Status.SENT, FreightRfq.Status.AWAITING_QUOTES, FreightRfq.Status.QUOTES_RECEIVED)
        )
        if quote.status not in FreightQuote.OPEN_STATUSES:
            raise ValueError(f"Quote from {quote.carrier.name} is {quote.status}.")
        for field, value in costs.items():
            if value is not None and Decimal(str(value)) < 0:
                raise ValueError(f"{field} cannot be negative.")
            setattr(quote, field, Decimal(str(value or 0)))
        if transit_days is not None:
            quote.transit_days = transit_days
        if valid_until is not None:
            quote.valid_until = valid_until
        if currency:
            quote.currency = currency
        if notes:
            quote.notes = notes
        quote.status = FreightQuote.Status.RECEIVED
        quote.received_at = timezone.now()
        quote.save()

        if rfq.status != FreightRfq.Status.QUOTES_RECEIVED:
            previous = rfq.status
            rfq.status = FreightRfq.Status.QUOTES_RECEIVED
            rfq.save(update_fields=["status", "updated_at"])
            FreightService._log_status(rfq, previous, user=user)
        return quote

    @staticmethod
    def compare(rfq: FreightRfq) -> QuoteComparison:
        quotes = rfq.quotes.filter(
            status__in=(FreightQuote.Status.RECEIVED, FreightQuote.Status.UNDER_REVIEW)
        ).order_by("id")
        return compare_quotes(quotes)

    @staticmethod
    @transaction.atomic
    def award(quote: FreightQuote, *, user=None) -> FreightRfq:
        rfq = quote.rfq
        rfq._ensure_can_transition((FreightRfq.Status.AWAITING_QUOTES, FreightRfq.Status.QUOTES_RECEIVED))
        if quote.status not in (FreightQuote.Status.RECEIVED, FreightQuote.Status.UNDER_REVIEW):
            raise ValueError(f"Quote from {quote.carrier.name} is {quote.status} and cannot be awarded.")
        if quote.valid_until and quote.valid_until < timezone.localdate():
            raise ValueError(f"Quote from {quote.carrier.name} expired on {quote.valid_until}.")

        quote.status = FreightQuote.Status.ACCEPTED
        quote.save(update_fields=["status", "updated_at"])
        rfq.quotes.exclude(pk=quote.pk).exclude(status=FreightQuote.Status.EXPIRED).update(
            status=FreightQuote.Status.REJECTED, updated_at=timezone.now()
        )
        previous = rfq.status
        rfq.status = FreightRfq.Status.AWARDED
        rfq.awarded_quote = quote
        rfq.save(update_fields=["status", "awarded_quote", "updated_at"])
        FreightService._log_status(
            rfq,
            previous,
            user=user,
            description=f"Freight RFQ {rfq.rfq_number} awarded to {quote.carrier.name} ({quote.total_cost})",
        )
        return rfq

    @staticmethod
    @transaction.atomic
    def cancel(rfq: FreightRfq, *, reason: str = "", user=None) -> FreightRfq:
        if rfq.status == FreightRfq.Status.AWARDED:
            raise ValueError(f"Freight RFQ {rfq.rfq_number} has been awarded and cannot be cancelled.")
        if rfq.status == FreightRfq.Status.CANCELLED:
            raise ValueError(f"Freight RFQ {rfq.rfq_number} is already cancelled.")
        previous = rfq.status
        rfq.status = FreightRfq.Status.CANCELLED
        rfq.cancellation_reason = reason
        rfq.save(update_fields=["status", "cancellation_reason", "updated_at"])
        rfq.quotes.filter(status__in=FreightQuote.OPEN_STATUSES).update(
            status=FreightQuote.Status.REJECTED, updated_at=timezone.now()
        )
        FreightService._log_status(rfq, previous, user=user)
        return rfq

    @staticmethod
    def expire_quotes(as_of: Optional[date] = None) -> int:
        as_of = as_of or timezone.localdate()
        expired = FreightQuote.objects.filter(
            status__in=FreightQuote.OPEN_STATUSES, valid_until__lt=as_of
        ).update(status=FreightQuote.Status.EXPIRED, updated_at=timezone.now())
        if expired:
            logger.info("Expired %s freight quote(s) valid before %s", expired, as_of)
        return expired
