from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP

from django.db import models
from django.utils import timezone

from shared.models import CompanyAwareModel

TWOPLACES = Decimal("0.01")


class BillOfMaterialsStatus(models.TextChoices):
    DRAFT = "draft", "Draft"
    ACTIVE = "active", "Active"
    OBSOLETE = "obsolete", "Obsolete"


class ComponentType(models.TextChoices):
    PRODUCT = "product", "Product"
    RAW_MATERIAL = "raw_material", "Raw Material"
    PACKAGING = "packaging", "Packaging"
    LABOR = "labor", "Labor"


class BillOfMaterials(CompanyAwareModel):
    product = models.ForeignKey("inventory.Product", on_delete=models.PROTECT, related_name="boms")
    name = models.CharField(max_length=255)
    version = models.CharField(max_length=16, default="1.0")
    status = models.CharField(max_length=16, choices=BillOfMaterialsStatus.choices, default=BillOfMaterialsStatus.DRAFT)
    batch_size = models.DecimalField(max_digits=15, decimal_places=3, default=Decimal("1"))
    unit = models.CharField(max_length=20, default="EA")
    total_material_cost = models.DecimalField(max_digits=20, decimal_places=2, default=Decimal("0"))
    total_labor_cost = models.DecimalField(max_digits=20, decimal_places=2, default=Decimal("0"))
    total_cost = models.DecimalField(max_digits=20, decimal_places=2, default=Decimal("0"))
    effective_date = models.DateField(default=timezone.localdate)
    notes = models.TextField(blank=True)

    class Meta:
        verbose_name = "bill of materials"
        verbose_name_plural = "bills of materials"
        ordering = ("product", "-created_at")
        unique_together = ("product", "version")

    def __str__(self) -> str:
        return f"{self.name} v{self.version} · {self.product.name}"


class BomComponent(models.Model):
    bom = models.ForeignKey(BillOfMaterials, on_delete=models.CASCADE, related_name="components")
    component_type = models.CharField(max_length=20, choices=ComponentType.choices, default=ComponentType.RAW_MATERIAL)
    product = models.ForeignKey(
        "inventory.Product", on_delete=models.PROTECT, null=True, blank=True, related_name="bom_usages"
    )
    raw_material = models.ForeignKey(
        "inventory.RawMaterial", on_delete=models.PROTECT, null=True, blank=True, related_name="bom_usages"
    )
    name = models.CharField(max_length=255)
    quantity = models.DecimalField(max_digits=15, decimal_places=4)
    unit = models.CharField(max_length=20, default="EA")
    unit_cost = models.DecimalField(max_digits=20, decimal_places=4, default=Decimal("0"))
    wastage_percent = models.DecimalField(max_digits=5, decimal_places=2, default=Decimal("0"))
    total_cost = models.DecimalField(max_digits=20, decimal_places=2, default=Decimal("0"))
    sort_order = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ("bom", "sort_order", "id")

    def __str__(self) -> str:
        return f"{self.name} ({self.quantity} {self.unit})"

    def compute_total_cost(self) -> Decimal:
        wastage = Decimal("1") + (self.wastage_percent or Decimal("0")) / Decimal("100")
        total = (self.quantity or Decimal("0")) * (self.unit_cost or Decimal("0")) * wastage
        return total.quantize(TWOPLACES, rounding=ROUND_HALF_UP)

    def save(self, *args, **kwargs):
        if not self.name:
            item = self.raw_material or self.product
            self.name = item.name if item else self.get_component_type_display()
        self.total_cost = self.compute_total_cost()
        super().save(*args, **kwargs)
