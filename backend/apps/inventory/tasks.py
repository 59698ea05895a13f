import logging

from celery import shared_task

from .services.replenishment import LowStockService, low_stock_auto_po_enabled

logger = logging.getLogger(__name__)


@shared_task(name="apps.inventory.tasks.scan_low_stock")
def scan_low_stock():
    """Raise draft purchase orders for stock rows at or below their reorder level."""
    if not low_stock_auto_po_enabled():
        return {"status": "skipped", "reason": "disabled"}
    try:
        results = LowStockService.scan()
        created = [result.as_dict() for result in results if result.triggered]
        logger.info("Inventory: low stock scan checked %s row(s), raised %s PO(s)", len(results), len(created))
        return {"status": "ok", "checked": len(results), "created": created}
    except Exception as exc:
        logger.exception("Low stock scan failed: %s", exc)
        return {"status": "error", "error": str(exc)}
