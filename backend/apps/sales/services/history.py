from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import List, Optional, Tuple

from django.db.models import Sum
from django.db.models.functions import TruncMonth
from django.utils import timezone

from ..models import SalesOrder, SalesOrderLine


def month_start(value: date) -> date:
    return value.replace(day=1)


def add_months(value: date, months: int) -> date:
    """Shift a first-of-month date by ``months`` (negative allowed)."""
    index = value.year * 12 + (value.month - 1) + months
    return date(index // 12, index % 12 + 1, 1)


def monthly_sales_history(product, months: int = 12, as_of: Optional[date] = None) -> List[Tuple[date, Decimal]]:
    """
    Quantities sold per month for the last ``months`` full months before ``as_of``.

    Only confirmed, shipped and delivered orders count. Months without sales
    are returned with a zero quantity, oldest month first.
    """
    if months <= 0:
        return []
    as_of = as_of or timezone.localdate()
    end = month_start(as_of)
    start = add_months(end, -months)
    rows = (
        SalesOrderLine.objects.filter(
            product=product,
            order__status__in=SalesOrder.DEMAND_STATUSES,
            order__order_date__gte=start,
            order__order_date__lt=end,
        )
        .annotate(month=TruncMonth("order__order_date"))
        .values("month")
        .annotate(quantity=Sum("quantity"))
    )
    totals = {}
    for row in rows:
        bucket = row["month"]
        if hasattr(bucket, "date"):
            bucket = bucket.date()
        totals[month_start(bucket)] = row["quantity"] or Decimal("0")
    return [(add_months(start, offset), totals.get(add_months(start, offset), Decimal("0"))) for offset in range(months)]
