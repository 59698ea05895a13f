from .history import add_months, month_start, monthly_sales_history

__all__ = ["add_months", "month_start", "monthly_sales_history"]
