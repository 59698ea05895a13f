from __future__ import annotations

import logging
from collections import OrderedDict
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional

from django.db import transaction
from django.utils import timezone

from apps.inventory.services.stock import current_material_inventory, current_product_inventory
from apps.procurement.services import on_order_quantity
from apps.production.services import BomService, active_bom_for

from ..models import DemandForecast, MaterialRequirement, ProductionPlan
from .calculations import (
    ShortageLine,
    analyze_lead_time,
    calculate_priority_with_lead_time,
    calculate_shortage,
    effective_lead_time,
    suggested_order_quantity,
)

logger = logging.getLogger(__name__)

TWOPLACES = Decimal("0.01")
ZERO = Decimal("0")


class ProductionPlanService:
    @staticmethod
    @transaction.atomic
    def create_from_forecast(
        forecast: DemandForecast,
        *,
        safety_stock=ZERO,
        reorder_point=None,
        user=None,
    ) -> ProductionPlan:
        """
        Plan production for a forecast period.

        Planned quantity covers the forecast plus safety stock, less what is
        already on hand, and never goes below zero.
        """
        if forecast.status not in (DemandForecast.Status.DRAFT, DemandForecast.Status.ACTIVE):
            raise ValueError(f"Forecast {forecast.forecast_number} is {forecast.status} and cannot be planned.")
        product = forecast.product
        bom = active_bom_for(product)
        if bom is None:
            raise ValueError(f"Product {product.sku} has no active bill of materials.")

        safety_stock = Decimal(str(safety_stock or 0))
        on_hand = current_product_inventory(product)
        planned = forecast.forecasted_quantity - on_hand + safety_stock
        plan = ProductionPlan.objects.create(
            **forecast.scope_kwargs(),
            forecast=forecast,
            product=product,
            bom=bom,
            planned_quantity=max(planned, ZERO),
            planned_start_date=forecast.forecast_period_start,
            planned_end_date=forecast.forecast_period_end,
            current_inventory=on_hand,
            safety_stock=safety_stock,
            reorder_point=Decimal(str(reorder_point)) if reorder_point is not None else safety_stock,
            created_by=user if getattr(user, "is_authenticated", False) else None,
        )
        logger.info(
            "Production plan %s: %s x %s (forecast %s, on hand %s, safety %s)",
            plan.plan_number,
            plan.planned_quantity,
            product.sku,
            forecast.forecasted_quantity,
            on_hand,
            safety_stock,
        )
        return plan


class MaterialRequirementsService:
    @staticmethod
    @transaction.atomic
    def calculate_for_plan(plan: ProductionPlan, *, now: Optional[date] = None) -> List[MaterialRequirement]:
        """
        Explode the plan's BOM into raw material requirements.

        Pending requirements from an earlier run are replaced. Materials that
        already moved past pending for this plan are left alone.
        """
        if plan.status in (ProductionPlan.Status.COMPLETED, ProductionPlan.Status.CANCELLED):
            raise ValueError(f"Production plan {plan.plan_number} is {plan.status}.")
        now = now or timezone.localdate()
        plan.requirements.filter(status=MaterialRequirement.Status.PENDING).delete()
        settled = set(plan.requirements.values_list("raw_material_id", flat=True))

        needed = OrderedDict()
        for line in BomService.calculate_requirements(plan.bom, plan.planned_quantity):
            material = line.raw_material
            if material is None:
                logger.debug("Skipping non-material component %s on BOM %s", line.component.name, plan.bom_id)
                continue
            if material.pk in settled:
                continue
            entry = needed.setdefault(material.pk, {"material": material, "required": ZERO, "unit_cost": ZERO})
            entry["required"] += line.required_quantity
            if not entry["unit_cost"]:
                entry["unit_cost"] = line.component.unit_cost or ZERO

        requirements = []
        for entry in needed.values():
            material = entry["material"]
            required = entry["required"]
            vendor = material.preferred_vendor
            on_hand = current_material_inventory(material)
            on_order = on_order_quantity(raw_material=material)
            shortage = calculate_shortage(required, on_hand, on_order)
            order_qty = suggested_order_quantity(shortage, material.min_order_quantity)
            unit_cost = material.unit_cost or entry["unit_cost"]
            lead_time = effective_lead_time(material, vendor)
            timing = analyze_lead_time(plan.planned_start_date, lead_time, now)
            is_urgent = timing.is_urgent and shortage > ZERO
            priority = 0
            if shortage > ZERO:
                priority = calculate_priority_with_lead_time(
                    [
                        ShortageLine(
                            required=required,
                            shortage=shortage,
                            lead_time_days=lead_time,
                            days_until_required=timing.days_until_required,
                            is_urgent=is_urgent,
                        )
                    ]
                )
            requirements.append(
                MaterialRequirement.objects.create(
                    **plan.scope_kwargs(),
                    production_plan=plan,
                    raw_material=material,
                    unit=material.unit,
                    required_quantity=required,
                    current_inventory=on_hand,
                    on_order_quantity=on_order,
                    shortage_quantity=shortage,
                    suggested_order_quantity=order_qty,
                    preferred_vendor=vendor,
                    estimated_unit_cost=unit_cost,
                    estimated_total_cost=(order_qty * unit_cost).quantize(TWOPLACES, rounding=ROUND_HALF_UP),
                    lead_time_days=lead_time,
                    required_by_date=timing.required_by,
                    latest_order_date=timing.latest_order_date,
                    estimated_delivery_date=timing.estimated_delivery_date,
                    days_until_required=timing.days_until_required,
                    is_urgent=is_urgent,
                    priority_score=priority,
                )
            )
        short = sum(1 for req in requirements if req.shortage_quantity > ZERO)
        logger.info(
            "MRP for plan %s: %s requirement(s), %s short, %s urgent",
            plan.plan_number,
            len(requirements),
            short,
            sum(1 for req in requirements if req.is_urgent),
        )
        return requirements
