from __future__ import annotations

import logging
from decimal import Decimal
from typing import Dict, Iterable, Optional

from django.db import transaction

from apps.audit.utils import log_audit_event
from shared.event_bus import PURCHASE_ORDER_CREATED, PURCHASE_ORDER_RECEIVED, event_bus

from ..models import PurchaseOrder, PurchaseOrderItem, Vendor

logger = logging.getLogger(__name__)


def on_order_quantity(*, product=None, raw_material=None) -> Decimal:
    """Quantity ordered but not yet received on sent, confirmed or partial POs."""
    if product is None and raw_material is None:
        raise ValueError("Either product or raw_material is required.")
    items = PurchaseOrderItem.objects.filter(purchase_order__status__in=PurchaseOrder.ON_ORDER_STATUSES)
    if product is not None:
        items = items.filter(product=product)
    else:
        items = items.filter(raw_material=raw_material)
    outstanding = Decimal("0")
    for item in items:
        outstanding += max((item.quantity or Decimal("0")) - (item.received_quantity or Decimal("0")), Decimal("0"))
    return outstanding


class PurchaseOrderService:
    @staticmethod
    @transaction.atomic
    def create_purchase_order(
        *,
        company,
        vendor: Vendor,
        items: Iterable[Dict],
        user=None,
        expected_date=None,
        currency: Optional[str] = None,
        tax_amount: Decimal = Decimal("0"),
        shipping_amount: Decimal = Decimal("0"),
        notes: str = "",
    ) -> PurchaseOrder:
        """
        Create a draft purchase order.

        Each item dict accepts ``product`` or ``raw_material``, ``quantity``,
        ``unit_price`` and an optional ``description``.
        """
        items = list(items)
        if not items:
            raise ValueError("A purchase order needs at least one item.")
        if vendor.status == Vendor.Status.BLOCKED:
            raise ValueError(f"Vendor {vendor.code} is blocked.")

        order = PurchaseOrder.objects.create(
            company=company,
            company_group=company.company_group,
            vendor=vendor,
            expected_date=expected_date,
            currency=currency or vendor.currency or company.currency_code,
            tax_amount=tax_amount,
            shipping_amount=shipping_amount,
            notes=notes,
            created_by=user,
        )
        for item in items:
            quantity = Decimal(str(item["quantity"]))
            if quantity <= 0:
                raise ValueError("Item quantity must be positive.")
            PurchaseOrderItem.objects.create(
                purchase_order=order,
                product=item.get("product"),
                raw_material=item.get("raw_material"),
                description=item.get("description", ""),
                quantity=quantity,
                unit_price=Decimal(str(item.get("unit_price") or 0)),
            )
        order.refresh_totals()
        logger.info("Purchase order %s created for vendor %s", order.po_number, vendor.code)
        event_bus.publish(PURCHASE_ORDER_CREATED, instance=order, company=company)
        return order

    @staticmethod
    @transaction.atomic
    def receive_items(order: PurchaseOrder, quantities: Dict[int, Decimal], *, warehouse, user=None) -> PurchaseOrder:
        """Receive quantities per item id into ``warehouse`` and update stock."""
        from apps.inventory.services.stock import adjust_stock

        if order.status not in PurchaseOrder.ON_ORDER_STATUSES:
            raise ValueError(f"Purchase order {order.po_number} cannot be received while {order.status}.")
        if not quantities:
            raise ValueError("No quantities to receive.")

        items = {item.id: item for item in order.items.select_for_update()}
        for item_id, qty in quantities.items():
            item = items.get(int(item_id))
            if item is None:
                raise ValueError(f"Item {item_id} does not belong to purchase order {order.po_number}.")
            qty = Decimal(str(qty))
            if qty <= 0:
                raise ValueError("Received quantity must be positive.")
            if qty > item.remaining_quantity:
                raise ValueError(
                    f"Cannot receive {qty} of {item.description}; only {item.remaining_quantity} outstanding."
                )
            item.received_quantity = item.received_quantity + qty
            item.save(update_fields=["received_quantity"])
            stock_item = item.product or item.raw_material
            if stock_item is not None:
                adjust_stock(stock_item, warehouse, qty)

        before_status = order.status
        order.update_receipt_status()
        log_audit_event(
            user=user,
            company=order.company,
            action="UPDATE",
            entity_type="PurchaseOrder",
            entity_id=order.pk,
            description=f"Received items on {order.po_number}",
            before={"status": before_status},
            after={"status": order.status},
        )
        event_bus.publish(PURCHASE_ORDER_RECEIVED, instance=order, company=order.company)
        return order
