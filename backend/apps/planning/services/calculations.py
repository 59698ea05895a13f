"""
Pure planning arithmetic: shortages, order quantities, lead-time analysis and
priority scores. Nothing here touches the database.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional, Sequence, Union

ZERO = Decimal("0")
NEAR_URGENT_BUFFER_DAYS = 7

DateLike = Union[date, datetime]


def _decimal(value) -> Decimal:
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def _round_half_up(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def calculate_shortage(required, current_inventory, on_order=0) -> Decimal:
    """max(0, required - on hand - on order)."""
    shortage = _decimal(required) - _decimal(current_inventory) - _decimal(on_order)
    return shortage if shortage > ZERO else ZERO


def suggested_order_quantity(shortage, min_order_quantity=0) -> Decimal:
    shortage = _decimal(shortage)
    if shortage <= ZERO:
        return ZERO
    return max(shortage, _decimal(min_order_quantity))


def effective_lead_time(material=None, vendor=None) -> int:
    """Material lead time wins, then the vendor default, else 0."""
    material_days = getattr(material, "lead_time_days", None) or 0
    if material_days > 0:
        return int(material_days)
    vendor_days = getattr(vendor, "default_lead_time_days", None) or 0
    if vendor_days > 0:
        return int(vendor_days)
    return 0


@dataclass(frozen=True)
class ShortageLine:
    required: Decimal
    shortage: Decimal
    lead_time_days: int = 0
    days_until_required: Optional[int] = None
    is_urgent: bool = False

    @property
    def shortage_ratio(self) -> Decimal:
        required = _decimal(self.required)
        if required <= ZERO:
            return ZERO
        return _decimal(self.shortage) / required


def _average_ratio(lines: Sequence[ShortageLine]) -> Decimal:
    ratios = [line.shortage_ratio for line in lines if _decimal(line.required) > ZERO]
    if not ratios:
        return ZERO
    return sum(ratios, ZERO) / Decimal(len(ratios))


def calculate_priority_score(lines: Iterable[ShortageLine]) -> int:
    """Average shortage ratio as a 0-100 score, ignoring lines with nothing required."""
    ratio = _average_ratio(list(lines))
    return min(100, _round_half_up(ratio * 100))


def calculate_priority_with_lead_time(lines: Iterable[ShortageLine]) -> int:
    """
    Shortage ratio weighted to 70 points, plus urgency.

    Any urgent line adds 30. Otherwise, when the tightest line has less than a
    week of slack between its lead time and its required date, 15 is added.
    """
    lines = list(lines)
    score = _round_half_up(_average_ratio(lines) * 70)
    if any(line.is_urgent for line in lines):
        score += 30
    else:
        buffers = [
            line.days_until_required - line.lead_time_days
            for line in lines
            if line.days_until_required is not None
        ]
        if buffers and min(buffers) < NEAR_URGENT_BUFFER_DAYS:
            score += 15
    return min(100, score)


@dataclass(frozen=True)
class LeadTimeAnalysis:
    required_by: date
    lead_time_days: int
    days_until_required: int
    latest_order_date: date
    estimated_delivery_date: date
    is_urgent: bool
    days_late: int
    suggested_order_date: date


def _as_date(value: DateLike) -> date:
    return value.date() if isinstance(value, datetime) else value


def days_until(required_by: date, now: DateLike) -> int:
    """Whole days from ``now`` to ``required_by``, partial days rounded up."""
    if isinstance(now, datetime):
        start = datetime.combine(required_by, datetime.min.time(), tzinfo=now.tzinfo)
        return math.ceil((start - now).total_seconds() / 86400)
    return (required_by - now).days


def analyze_lead_time(required_by: date, lead_time_days: int, now: DateLike) -> LeadTimeAnalysis:
    lead_time_days = int(lead_time_days or 0)
    today = _as_date(now)
    remaining = days_until(required_by, now)
    latest_order_date = required_by - timedelta(days=lead_time_days)
    is_urgent = lead_time_days > remaining
    return LeadTimeAnalysis(
        required_by=required_by,
        lead_time_days=lead_time_days,
        days_until_required=remaining,
        latest_order_date=latest_order_date,
        estimated_delivery_date=today + timedelta(days=lead_time_days),
        is_urgent=is_urgent,
        days_late=abs(lead_time_days - remaining) if is_urgent else 0,
        suggested_order_date=max(latest_order_date, today),
    )
