from .purchase_orders import PurchaseOrderService, on_order_quantity
from .vendor_quotes import VendorQuoteService, compute_quote_total

__all__ = [
    "PurchaseOrderService",
    "VendorQuoteService",
    "compute_quote_total",
    "on_order_quantity",
]
