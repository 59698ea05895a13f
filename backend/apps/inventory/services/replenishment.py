from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional

from django.conf import settings
from django.db import transaction
from django.db.models import F

from apps.audit.utils import log_audit_event
from apps.notifications.models import NotificationSeverity
from apps.notifications.services import notify_company_admins
from apps.procurement.models import PurchaseOrder, Vendor
from apps.procurement.services import PurchaseOrderService
from shared.event_bus import LOW_STOCK_DETECTED, event_bus

from ..models import StockLevel

logger = logging.getLogger(__name__)


@dataclass
class LowStockResult:
    stock_level: StockLevel
    triggered: bool
    reason: str
    purchase_order: Optional[PurchaseOrder] = None
    order_quantity: Decimal = Decimal("0")

    def as_dict(self):
        return {
            "stock_level_id": self.stock_level.id,
            "product_id": self.stock_level.product_id,
            "sku": self.stock_level.product.sku,
            "quantity": float(self.stock_level.quantity),
            "reorder_level": float(self.stock_level.reorder_level) if self.stock_level.reorder_level is not None else None,
            "triggered": self.triggered,
            "reason": self.reason,
            "purchase_order_id": self.purchase_order.id if self.purchase_order else None,
            "po_number": self.purchase_order.po_number if self.purchase_order else None,
            "order_quantity": float(self.order_quantity),
        }


class LowStockService:
    """Raises draft purchase orders when stock falls to its reorder level."""

    @staticmethod
    def order_quantity(stock_level: StockLevel) -> Decimal:
        if stock_level.reorder_quantity and stock_level.reorder_quantity > 0:
            return stock_level.reorder_quantity
        return max(stock_level.reorder_level - stock_level.quantity, Decimal("1"))

    @staticmethod
    def _open_order_for(product) -> Optional[PurchaseOrder]:
        return (
            PurchaseOrder.objects.filter(
                company=product.company,
                status__in=PurchaseOrder.OPEN_STATUSES,
                items__product=product,
            )
            .order_by("-created_at")
            .first()
        )

    @staticmethod
    def _alert_admins(stock_level: StockLevel, problem: str):
        product = stock_level.product
        severity = NotificationSeverity.CRITICAL if stock_level.quantity == 0 else NotificationSeverity.WARNING
        notify_company_admins(
            company=stock_level.company,
            title=f"Low stock: {product.name}",
            body=(
                f"{product.sku} is at {stock_level.quantity} in {stock_level.warehouse.code} "
                f"(reorder level {stock_level.reorder_level}) and {problem}."
            ),
            severity=severity,
            group_key=f"low-stock:{stock_level.pk}",
            entity_type="StockLevel",
            entity_id=stock_level.pk,
        )

    @classmethod
    @transaction.atomic
    def check_and_trigger(cls, stock_level: StockLevel, *, user=None) -> LowStockResult:
        if stock_level.reorder_level is None:
            return LowStockResult(stock_level, False, "no_reorder_level")
        if stock_level.quantity > stock_level.reorder_level:
            return LowStockResult(stock_level, False, "above_reorder_level")

        product = stock_level.product
        existing = cls._open_order_for(product)
        if existing:
            return LowStockResult(stock_level, False, "open_po_exists", purchase_order=existing)

        vendor = product.preferred_vendor
        if vendor is None:
            cls._alert_admins(stock_level, "has no preferred vendor")
            logger.warning("Low stock on %s but no preferred vendor is set", product.sku)
            return LowStockResult(stock_level, False, "no_vendor")
        if vendor.status != Vendor.Status.ACTIVE:
            cls._alert_admins(stock_level, f"its preferred vendor {vendor.code} is {vendor.status}")
            logger.warning("Low stock on %s but vendor %s is %s", product.sku, vendor.code, vendor.status)
            return LowStockResult(stock_level, False, f"vendor_{vendor.status}")

        quantity = cls.order_quantity(stock_level)
        order = PurchaseOrderService.create_purchase_order(
            company=stock_level.company,
            vendor=vendor,
            user=user,
            items=[{"product": product, "quantity": quantity, "unit_price": product.purchase_price}],
            notes=f"Auto-generated: {product.sku} at {stock_level.quantity}, reorder level {stock_level.reorder_level}",
        )
        log_audit_event(
            user=user,
            company=stock_level.company,
            action="AUTO_PO",
            entity_type="PurchaseOrder",
            entity_id=order.pk,
            description=f"Low stock purchase order {order.po_number} for {product.sku}",
            after={"quantity": str(quantity), "vendor": vendor.pk, "stock_level": stock_level.pk},
        )
        event_bus.publish(LOW_STOCK_DETECTED, stock_level=stock_level, purchase_order=order)
        logger.info("Auto purchase order %s raised for %s", order.po_number, product.sku)
        return LowStockResult(stock_level, True, "created", purchase_order=order, order_quantity=quantity)

    @classmethod
    def scan(cls, company=None) -> List[LowStockResult]:
        qs = StockLevel.objects.select_related("product", "product__preferred_vendor", "warehouse").filter(
            reorder_level__isnull=False,
            quantity__lte=F("reorder_level"),
            product__is_active=True,
        )
        if company is not None:
            qs = qs.filter(company=company)
        results = []
        for stock_level in qs:
            try:
                results.append(cls.check_and_trigger(stock_level))
            except ValueError as exc:
                logger.exception("Low stock check failed for %s: %s", stock_level.product.sku, exc)
                results.append(LowStockResult(stock_level, False, "failed"))
        return results


def low_stock_auto_po_enabled() -> bool:
    return bool(getattr(settings, "ATLAS_ERP", {}).get("LOW_STOCK_AUTO_PO", True))
