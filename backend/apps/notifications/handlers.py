from __future__ import annotations

from shared.event_bus import EMAIL_FAILED, LOW_STOCK_DETECTED, event_bus

from .models import NotificationSeverity
from .services import notify_company_admins


def on_low_stock(sender, *, stock_level, purchase_order=None, **kwargs):
    product = stock_level.product
    if purchase_order is None:
        return None
    return notify_company_admins(
        company=stock_level.company,
        title=f"Auto purchase order {purchase_order.po_number} created",
        body=(
            f"{product.name} ({product.sku}) fell to {stock_level.quantity} "
            f"against a reorder level of {stock_level.reorder_level}."
        ),
        severity=NotificationSeverity.INFO,
        group_key=f"auto-po:{purchase_order.pk}",
        entity_type="PurchaseOrder",
        entity_id=purchase_order.pk,
    )


def on_email_failed(sender, *, message, **kwargs):
    return notify_company_admins(
        company=message.company,
        title=f"Email to {message.to_email} failed",
        body=message.last_error,
        severity=NotificationSeverity.WARNING,
        group_key=f"email-failed:{message.template_name or 'adhoc'}",
        entity_type="EmailMessage",
        entity_id=message.pk,
    )


def register_handlers():
    event_bus.subscribe(LOW_STOCK_DETECTED, on_low_stock, dispatch_uid="notifications.low_stock")
    event_bus.subscribe(EMAIL_FAILED, on_email_failed, dispatch_uid="notifications.email_failed")
