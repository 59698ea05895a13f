from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional

from django.db import transaction
from django.db.models import Sum

from ..models import BillOfMaterials, BillOfMaterialsStatus, BomComponent, ComponentType

logger = logging.getLogger(__name__)


@dataclass
class ComponentRequirement:
    component: BomComponent
    required_quantity: Decimal

    @property
    def raw_material(self):
        return self.component.raw_material

    @property
    def product(self):
        return self.component.product


def active_bom_for(product) -> Optional[BillOfMaterials]:
    return (
        BillOfMaterials.objects.filter(product=product, status=BillOfMaterialsStatus.ACTIVE)
        .order_by("-effective_date", "-created_at")
        .first()
    )


class BomService:
    @staticmethod
    def recalculate_costs(bom: BillOfMaterials) -> BillOfMaterials:
        """Roll component costs up into the material, labour and total cost fields."""
        components = bom.components.all()
        labor = components.filter(component_type=ComponentType.LABOR).aggregate(value=Sum("total_cost"))["value"]
        material = components.exclude(component_type=ComponentType.LABOR).aggregate(value=Sum("total_cost"))["value"]
        bom.total_labor_cost = labor or Decimal("0")
        bom.total_material_cost = material or Decimal("0")
        bom.total_cost = bom.total_material_cost + bom.total_labor_cost
        bom.save(update_fields=["total_material_cost", "total_labor_cost", "total_cost", "updated_at"])
        return bom

    @staticmethod
    def cost_per_unit(bom: BillOfMaterials) -> Decimal:
        if not bom.batch_size or bom.batch_size <= 0:
            raise ValueError(f"BOM {bom.name} has no positive batch size.")
        return (bom.total_cost or Decimal("0")) / bom.batch_size

    @staticmethod
    @transaction.atomic
    def activate(bom: BillOfMaterials) -> BillOfMaterials:
        """Make ``bom`` the single active version for its product."""
        if bom.status == BillOfMaterialsStatus.OBSOLETE:
            raise ValueError(f"BOM {bom.name} v{bom.version} is obsolete and cannot be re-activated.")
        superseded = (
            BillOfMaterials.objects
            .filter(product=bom.product, status=BillOfMaterialsStatus.ACTIVE)
            .exclude(pk=bom.pk)
            .update(status=BillOfMaterialsStatus.OBSOLETE)
        )
        bom.status = BillOfMaterialsStatus.ACTIVE
        bom.save(update_fields=["status", "updated_at"])
        if superseded:
            logger.info("BOM %s activated; %s previous version(s) marked obsolete", bom.pk, superseded)
        return bom

    @staticmethod
    def mark_obsolete(bom: BillOfMaterials) -> BillOfMaterials:
        bom.status = BillOfMaterialsStatus.OBSOLETE
        bom.save(update_fields=["status", "updated_at"])
        return bom

    @staticmethod
    def calculate_requirements(bom: BillOfMaterials, production_quantity) -> List[ComponentRequirement]:
        """Scale every non-labour component from batch size to ``production_quantity``, wastage included."""
        if not bom.batch_size or bom.batch_size <= 0:
            raise ValueError(f"BOM {bom.name} has no positive batch size.")
        production_quantity = Decimal(str(production_quantity))
        requirements = []
        for component in bom.components.exclude(component_type=ComponentType.LABOR).select_related(
            "raw_material", "product"
        ):
            wastage = Decimal("1") + (component.wastage_percent or Decimal("0")) / Decimal("100")
            required = component.quantity / bom.batch_size * production_quantity * wastage
            requirements.append(ComponentRequirement(component=component, required_quantity=required))
        return requirements
