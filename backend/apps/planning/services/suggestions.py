from __future__ import annotations

import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional

from django.db import transaction
from django.utils import timezone

from apps.audit.utils import log_audit_event
from apps.procurement.models import PurchaseOrder
from apps.procurement.services import PurchaseOrderService
from shared.event_bus import SUGGESTED_PO_CONVERTED, event_bus

from ..models import MaterialRequirement, ProductionPlan, SuggestedPurchaseOrder, SuggestedPurchaseOrderItem
from .calculations import ShortageLine, calculate_priority_with_lead_time

logger = logging.getLogger(__name__)

TWOPLACES = Decimal("0.01")
ZERO = Decimal("0")


@dataclass
class SuggestionRun:
    suggestions: List[SuggestedPurchaseOrder] = field(default_factory=list)
    skipped: List[MaterialRequirement] = field(default_factory=list)

    def as_dict(self):
        return {
            "suggestions": [s.suggestion_number for s in self.suggestions],
            "skipped": [
                {"requirement": req.pk, "raw_material": req.raw_material.sku, "reason": "no_preferred_vendor"}
                for req in self.skipped
            ],
        }


def _user_or_none(user):
    return user if getattr(user, "is_authenticated", False) else None


class SuggestedPurchaseOrderService:
    @staticmethod
    @transaction.atomic
    def generate_for_plan(plan: ProductionPlan, *, now: Optional[date] = None) -> SuggestionRun:
        """
        Turn the plan's pending shortages into one suggested PO per preferred vendor.

        Requirements without a preferred vendor are left pending and reported
        back as skipped.
        """
        now = now or timezone.localdate()
        pending = (
            plan.requirements.filter(status=MaterialRequirement.Status.PENDING, shortage_quantity__gt=0)
            .select_related("raw_material", "preferred_vendor")
            .order_by("id")
        )
        run = SuggestionRun()
        groups = OrderedDict()
        for requirement in pending:
            if requirement.preferred_vendor is None:
                run.skipped.append(requirement)
                continue
            groups.setdefault(requirement.preferred_vendor, []).append(requirement)

        for vendor, requirements in groups.items():
            lines = [
                ShortageLine(
                    required=req.required_quantity,
                    shortage=req.shortage_quantity,
                    lead_time_days=req.lead_time_days,
                    days_until_required=req.days_until_required,
                    is_urgent=req.is_urgent,
                )
                for req in requirements
            ]
            required_dates = [req.required_by_date for req in requirements if req.required_by_date]
            order_dates = [max(req.latest_order_date, now) for req in requirements if req.latest_order_date]
            suggestion = SuggestedPurchaseOrder.objects.create(
                **plan.scope_kwargs(),
                vendor=vendor,
                production_plan=plan,
                currency=vendor.currency,
                priority_score=calculate_priority_with_lead_time(lines),
                is_urgent=any(req.is_urgent for req in requirements),
                required_by_date=min(required_dates) if required_dates else None,
                suggested_order_date=min(order_dates) if order_dates else now,
                reason=(
                    f"Material shortages for production plan {plan.plan_number}: "
                    + ", ".join(f"{req.raw_material.sku} short {req.shortage_quantity:.2f}" for req in requirements)
                ),
            )
            total = ZERO
            for req in requirements:
                line_total = (req.suggested_order_quantity * req.estimated_unit_cost).quantize(
                    TWOPLACES, rounding=ROUND_HALF_UP
                )
                SuggestedPurchaseOrderItem.objects.create(
                    suggestion=suggestion,
                    raw_material=req.raw_material,
                    requirement=req,
                    quantity=req.suggested_order_quantity,
                    unit=req.unit,
                    unit_price=req.estimated_unit_cost,
                    total_amount=line_total,
                )
                total += line_total
            suggestion.total_amount = total
            suggestion.save(update_fields=["total_amount", "updated_at"])
            MaterialRequirement.objects.filter(pk__in=[req.pk for req in requirements]).update(
                status=MaterialRequirement.Status.PO_GENERATED, updated_at=timezone.now()
            )
            run.suggestions.append(suggestion)

        if run.skipped:
            logger.warning(
                "Plan %s: %s shortage(s) have no preferred vendor: %s",
                plan.plan_number,
                len(run.skipped),
                ", ".join(req.raw_material.sku for req in run.skipped),
            )
        logger.info("Plan %s: %s suggested PO(s) generated", plan.plan_number, len(run.suggestions))
        return run

    @staticmethod
    def _ensure_open(suggestion: SuggestedPurchaseOrder):
        if suggestion.status not in SuggestedPurchaseOrder.OPEN_STATUSES:
            raise ValueError(f"Suggestion {suggestion.suggestion_number} is already {suggestion.status}.")

    @staticmethod
    def approve(suggestion: SuggestedPurchaseOrder, *, user=None) -> SuggestedPurchaseOrder:
        if suggestion.status != SuggestedPurchaseOrder.Status.PENDING:
            raise ValueError(f"Suggestion {suggestion.suggestion_number} cannot be approved from {suggestion.status}.")
        suggestion.status = SuggestedPurchaseOrder.Status.APPROVED
        suggestion.approved_by = _user_or_none(user)
        suggestion.approved_at = timezone.now()
        suggestion.save(update_fields=["status", "approved_by", "approved_at", "updated_at"])
        return suggestion

    @staticmethod
    @transaction.atomic
    def convert(suggestion: SuggestedPurchaseOrder, *, user=None) -> PurchaseOrder:
        """Create a draft purchase order from a pending or approved suggestion."""
        SuggestedPurchaseOrderService._ensure_open(suggestion)
        items = list(suggestion.items.select_related("raw_material"))
        if not items:
            raise ValueError(f"Suggestion {suggestion.suggestion_number} has no items.")

        order = PurchaseOrderService.create_purchase_order(
            company=suggestion.company,
            vendor=suggestion.vendor,
            user=_user_or_none(user),
            items=[
                {"raw_material": item.raw_material, "quantity": item.quantity, "unit_price": item.unit_price}
                for item in items
            ],
            expected_date=suggestion.required_by_date,
            currency=suggestion.currency,
            notes=f"Converted from suggestion {suggestion.suggestion_number}",
        )

        suggestion.status = SuggestedPurchaseOrder.Status.CONVERTED
        suggestion.converted_po = order
        if suggestion.approved_at is None:
            suggestion.approved_by = _user_or_none(user)
            suggestion.approved_at = timezone.now()
        suggestion.save(update_fields=["status", "converted_po", "approved_by", "approved_at", "updated_at"])
        MaterialRequirement.objects.filter(
            pk__in=[item.requirement_id for item in items if item.requirement_id]
        ).update(status=MaterialRequirement.Status.ORDERED, updated_at=timezone.now())

        log_audit_event(
            user=user,
            company=suggestion.company,
            action="CONVERT",
            entity_type="SuggestedPurchaseOrder",
            entity_id=suggestion.pk,
            description=f"Suggestion {suggestion.suggestion_number} converted to {order.po_number}",
            after={"purchase_order": order.po_number, "total_amount": str(order.total_amount)},
        )
        event_bus.publish(SUGGESTED_PO_CONVERTED, instance=suggestion, purchase_order=order, company=suggestion.company)
        return order

    @staticmethod
    @transaction.atomic
    def reject(suggestion: SuggestedPurchaseOrder, *, user=None, reason: str = "") -> SuggestedPurchaseOrder:
        SuggestedPurchaseOrderService._ensure_open(suggestion)
        suggestion.status = SuggestedPurchaseOrder.Status.REJECTED
        suggestion.rejected_by = _user_or_none(user)
        suggestion.rejected_at = timezone.now()
        suggestion.rejection_reason = reason
        suggestion.save(update_fields=["status", "rejected_by", "rejected_at", "rejection_reason", "updated_at"])
        # released shortages are picked up again on the next MRP run
        MaterialRequirement.objects.filter(
            suggestion_items__suggestion=suggestion, status=MaterialRequirement.Status.PO_GENERATED
        ).update(status=MaterialRequirement.Status.PENDING, updated_at=timezone.now())
        log_audit_event(
            user=user,
            company=suggestion.company,
            action="REJECT",
            entity_type="SuggestedPurchaseOrder",
            entity_id=suggestion.pk,
            description=f"Suggestion {suggestion.suggestion_number} rejected: {reason}".strip(),
        )
        return suggestion
