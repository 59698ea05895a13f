from .customer import Customer
from .sales_order import SalesOrder
from .sales_order_line import SalesOrderLine

__all__ = ["Customer", "SalesOrder", "SalesOrderLine"]
