from __future__ import annotations

import logging
from datetime import timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, List

from django.db import transaction
from django.utils import timezone

from apps.audit.utils import log_audit_event

from ..models import PurchaseOrder, Vendor, VendorQuote, VendorRfq
from .purchase_orders import PurchaseOrderService

logger = logging.getLogger(__name__)

TWOPLACES = Decimal("0.01")


def compute_quote_total(unit_price, quantity, shipping_cost=0, handling_cost=0) -> Decimal:
    """unit price x quantity + shipping + handling, rounded to cents."""
    total = (
        Decimal(str(unit_price or 0)) * Decimal(str(quantity or 0))
        + Decimal(str(shipping_cost or 0))
        + Decimal(str(handling_cost or 0))
    )
    return total.quantize(TWOPLACES, rounding=ROUND_HALF_UP)


class VendorQuoteService:
    CLOSED_RFQ_STATUSES = {VendorRfq.Status.AWARDED, VendorRfq.Status.CANCELLED}

    @staticmethod
    def _ensure_open(rfq: VendorRfq):
        if rfq.status in VendorQuoteService.CLOSED_RFQ_STATUSES:
            raise ValueError(f"RFQ {rfq.rfq_number} is {rfq.status} and no longer accepts changes.")

    @staticmethod
    @transaction.atomic
    def send_rfq(rfq: VendorRfq, vendors: Iterable[Vendor]) -> List[VendorQuote]:
        """Invite vendors; each invited vendor gets a pending quote placeholder."""
        if rfq.status != VendorRfq.Status.DRAFT:
            raise ValueError(f"RFQ {rfq.rfq_number} cannot be sent from {rfq.status}.")
        vendors = [vendor for vendor in vendors if vendor.status == Vendor.Status.ACTIVE]
        if not vendors:
            raise ValueError("At least one active vendor is required to send an RFQ.")
        quotes = []
        for vendor in vendors:
            rfq.vendors.add(vendor)
            quote, _ = VendorQuote.objects.get_or_create(
                rfq=rfq,
                vendor=vendor,
                defaults={
                    "company": rfq.company,
                    "company_group": rfq.company_group,
                    "quantity": rfq.quantity,
                    "currency": vendor.currency,
                },
            )
            quotes.append(quote)
        rfq.status = VendorRfq.Status.SENT
        rfq.sent_at = timezone.now()
        rfq.save(update_fields=["status", "sent_at", "updated_at"])
        return quotes

    @staticmethod
    @transaction.atomic
    def record_quote(
        rfq: VendorRfq,
        *,
        vendor: Vendor,
        unit_price,
        quantity=None,
        shipping_cost=0,
        handling_cost=0,
        lead_time_days: int = 0,
        valid_until=None,
        notes: str = "",
    ) -> VendorQuote:
        VendorQuoteService._ensure_open(rfq)
        quantity = Decimal(str(quantity if quantity is not None else rfq.quantity))
        quote = VendorQuote.objects.filter(rfq=rfq, vendor=vendor).first()
        if quote is None:
            quote = VendorQuote(rfq=rfq, vendor=vendor, **rfq.scope_kwargs())
        quote.unit_price = Decimal(str(unit_price))
        quote.quantity = quantity
        quote.shipping_cost = Decimal(str(shipping_cost or 0))
        quote.handling_cost = Decimal(str(handling_cost or 0))
        quote.total_price = compute_quote_total(unit_price, quantity, shipping_cost, handling_cost)
        quote.lead_time_days = lead_time_days
        quote.valid_until = valid_until
        quote.notes = notes
        quote.currency = vendor.currency
        quote.status = VendorQuote.Status.RECEIVED
        quote.save()

        rfq.status = VendorRfq.Status.QUOTES_RECEIVED
        rfq.save(update_fields=["status", "updated_at"])
        VendorQuoteService.rank_quotes(rfq)
        quote.refresh_from_db()
        return quote

    @staticmethod
    def rank_quotes(rfq: VendorRfq) -> List[VendorQuote]:
        """Rank received quotes by total price, then lead time, then age."""
        quotes = list(
            rfq.quotes.filter(status__in=[VendorQuote.Status.RECEIVED, VendorQuote.Status.ACCEPTED])
        )
        quotes.sort(key=lambda q: (q.total_price, q.lead_time_days, q.created_at, q.pk))
        for position, quote in enumerate(quotes, start=1):
            if quote.rank != position:
                quote.rank = position
                quote.save(update_fields=["rank", "updated_at"])
        return quotes

    @staticmethod
    @transaction.atomic
    def accept_quote(quote: VendorQuote, *, user=None) -> VendorQuote:
        rfq = quote.rfq
        VendorQuoteService._ensure_open(rfq)
        if quote.status != VendorQuote.Status.RECEIVED:
            raise ValueError(f"Quote {quote.quote_number} cannot be accepted while {quote.status}.")
        if quote.valid_until and quote.valid_until < timezone.localdate():
            raise ValueError(f"Quote {quote.quote_number} expired on {quote.valid_until:%Y-%m-%d}.")

        rfq.quotes.exclude(pk=quote.pk).update(status=VendorQuote.Status.REJECTED, updated_at=timezone.now())
        quote.status = VendorQuote.Status.ACCEPTED
        quote.save(update_fields=["status", "updated_at"])
        rfq.status = VendorRfq.Status.AWARDED
        rfq.awarded_quote = quote
        rfq.save(update_fields=["status", "awarded_quote", "updated_at"])
        log_audit_event(
            user=user,
            company=rfq.company,
            action="APPROVE",
            entity_type="VendorQuote",
            entity_id=quote.pk,
            description=f"Quote {quote.quote_number} accepted for {rfq.rfq_number}",
            after={"total_price": str(quote.total_price), "vendor": quote.vendor_id},
        )
        return quote

    @staticmethod
    @transaction.atomic
    def create_po_from_quote(quote: VendorQuote, *, user=None) -> PurchaseOrder:
        if quote.status != VendorQuote.Status.ACCEPTED:
            raise ValueError(f"Quote {quote.quote_number} must be accepted before creating a purchase order.")
        if quote.purchase_order_id:
            raise ValueError(f"Quote {quote.quote_number} already produced {quote.purchase_order.po_number}.")
        rfq = quote.rfq
        order = PurchaseOrderService.create_purchase_order(
            company=rfq.company,
            vendor=quote.vendor,
            user=user,
            items=[
                {
                    "product": rfq.product,
                    "raw_material": rfq.raw_material,
                    "description": rfq.title,
                    "quantity": quote.quantity,
                    "unit_price": quote.unit_price,
                }
            ],
            expected_date=timezone.localdate() + timedelta(days=quote.lead_time_days or 0),
            currency=quote.currency,
            shipping_amount=quote.shipping_cost + quote.handling_cost,
            notes=f"Created from quote {quote.quote_number} ({rfq.rfq_number})",
        )
        quote.purchase_order = order
        quote.save(update_fields=["purchase_order", "updated_at"])
        return order

    @staticmethod
    def cancel_rfq(rfq: VendorRfq, *, reason: str = "") -> VendorRfq:
        if rfq.status == VendorRfq.Status.AWARDED:
            raise ValueError(f"RFQ {rfq.rfq_number} has been awarded and cannot be cancelled.")
        if rfq.status == VendorRfq.Status.CANCELLED:
            return rfq
        rfq.status = VendorRfq.Status.CANCELLED
        if reason:
            rfq.description = f"{rfq.description}\nCancelled: {reason}".strip()
        rfq.save(update_fields=["status", "description", "updated_at"])
        rfq.quotes.filter(status__in=[VendorQuote.Status.PENDING, VendorQuote.Status.RECEIVED]).update(
            status=VendorQuote.Status.REJECTED
        )
        logger.info("RFQ %s cancelled", rfq.rfq_number)
        return rfq
