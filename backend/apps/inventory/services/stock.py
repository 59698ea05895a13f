from __future__ import annotations

from decimal import Decimal

from django.db import transaction
from django.db.models import Sum

from ..models import Product, RawMaterial, RawMaterialStock, StockLevel


def current_product_inventory(product: Product) -> Decimal:
    value = StockLevel.objects.filter(product=product).aggregate(value=Sum("quantity"))["value"]
    return value or Decimal("0")


def current_material_inventory(material: RawMaterial) -> Decimal:
    value = RawMaterialStock.objects.filter(raw_material=material).aggregate(value=Sum("quantity"))["value"]
    return value or Decimal("0")


@transaction.atomic
def adjust_stock(item, warehouse, delta) -> Decimal:
    """Apply a signed quantity change to a product or raw material in a warehouse."""
    delta = Decimal(str(delta))
    if isinstance(item, Product):
        row, _ = StockLevel.objects.select_for_update().get_or_create(
            product=item,
            warehouse=warehouse,
            defaults={"company": item.company, "company_group": item.company_group},
        )
    elif isinstance(item, RawMaterial):
        row, _ = RawMaterialStock.objects.select_for_update().get_or_create(
            raw_material=item,
            warehouse=warehouse,
            defaults={"company": item.company, "company_group": item.company_group},
        )
    else:
        raise ValueError(f"Cannot hold stock for {type(item).__name__}.")

    new_quantity = row.quantity + delta
    if new_quantity < 0:
        raise ValueError(f"Insufficient stock for {item.sku} in {warehouse.code}: {row.quantity} on hand.")
    row.quantity = new_quantity
    row.save(update_fields=["quantity", "updated_at"])
    return new_quantity
