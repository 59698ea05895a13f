from __future__ import annotations

import logging
import statistics
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional, Sequence

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from apps.sales.services import add_months, month_start, monthly_sales_history

from ..models import DemandForecast

logger = logging.getLogger(__name__)

MIN_TREND_POINTS = 3
THREEPLACES = Decimal("0.001")
TWOPLACES = Decimal("0.01")


def _planning_setting(key: str, default):
    return getattr(settings, "ATLAS_ERP", {}).get(key, default)


def months_in_period(start: date, end: date) -> int:
    """Number of calendar months touched by ``start``..``end`` inclusive."""
    return (end.year - start.year) * 12 + (end.month - start.month) + 1


def linear_regression(values: Sequence[float]):
    """Least-squares (slope, intercept) over x = 0..n-1."""
    n = len(values)
    if n == 0:
        return 0.0, 0.0
    if n == 1:
        return 0.0, float(values[0])
    mean_x = (n - 1) / 2
    mean_y = sum(values) / n
    denominator = sum((x - mean_x) ** 2 for x in range(n))
    slope = sum((x - mean_x) * (y - mean_y) for x, y in enumerate(values)) / denominator
    return slope, mean_y - slope * mean_x


@dataclass
class ForecastResult:
    quantity: Decimal
    confidence: Decimal
    method: str
    data_points: int
    trend: str
    analysis: str


def project_demand(history: Sequence[float], period_months: int, *, trend_threshold: float = 0.05) -> ForecastResult:
    """Project ``period_months`` of demand from a monthly history, oldest month first."""
    values = [float(value) for value in history]
    data_points = sum(1 for value in values if value > 0)
    if data_points == 0:
        return ForecastResult(
            quantity=Decimal("0"),
            confidence=Decimal("10"),
            method=DemandForecast.Method.HISTORICAL_AVG,
            data_points=0,
            trend=DemandForecast.Trend.STABLE,
            analysis="No sales history available; forecast defaults to zero.",
        )

    mean = sum(values) / len(values)
    slope, intercept = linear_regression(values)
    relative_slope = slope / mean if mean else 0.0
    if relative_slope > trend_threshold:
        trend = DemandForecast.Trend.UP
    elif relative_slope < -trend_threshold:
        trend = DemandForecast.Trend.DOWN
    else:
        trend = DemandForecast.Trend.STABLE

    if data_points < MIN_TREND_POINTS:
        method = DemandForecast.Method.HISTORICAL_AVG
        projected = mean * period_months
    else:
        method = DemandForecast.Method.TREND
        n = len(values)
        projected = sum(max(intercept + slope * (n + offset), 0.0) for offset in range(period_months))

    spread = statistics.pstdev(values) / mean if mean else 0.0
    confidence = max(10.0, min(95.0, 40.0 + 5.0 * data_points) - spread * 30.0)

    analysis = (
        f"{data_points} month(s) with sales out of {len(values)}; "
        f"average {mean:.2f}/month, slope {slope:+.2f}/month ({trend}); "
        f"method {method} over {period_months} month(s)."
    )
    return ForecastResult(
        quantity=Decimal(str(projected)).quantize(THREEPLACES, rounding=ROUND_HALF_UP),
        confidence=Decimal(str(confidence)).quantize(TWOPLACES, rounding=ROUND_HALF_UP),
        method=method,
        data_points=data_points,
        trend=trend,
        analysis=analysis,
    )


class DemandForecastService:
    @staticmethod
    def generate(
        product,
        period_start: date,
        period_end: date,
        *,
        lookback_months: Optional[int] = None,
        user=None,
    ) -> DemandForecast:
        """Build a draft forecast for ``product`` from its monthly sales history."""
        if period_end < period_start:
            raise ValueError("Forecast period end must not be before its start.")
        lookback_months = lookback_months or int(_planning_setting("FORECAST_LOOKBACK_MONTHS", 12))
        history = monthly_sales_history(product, months=lookback_months, as_of=period_start)
        result = project_demand(
            [quantity for _, quantity in history],
            months_in_period(period_start, period_end),
            trend_threshold=float(_planning_setting("FORECAST_TREND_THRESHOLD", 0.05)),
        )
        forecast = DemandForecast.objects.create(
            **product.scope_kwargs(),
            product=product,
            forecast_period_start=period_start,
            forecast_period_end=period_end,
            forecasted_quantity=result.quantity,
            unit=product.unit,
            confidence_level=result.confidence,
            forecast_method=result.method,
            data_points_used=result.data_points,
            analysis=result.analysis,
            trend_direction=result.trend,
            created_by=user if getattr(user, "is_authenticated", False) else None,
        )
        logger.info(
            "Forecast %s for %s: %s (%s, confidence %s)",
            forecast.forecast_number,
            product.sku,
            result.quantity,
            result.method,
            result.confidence,
        )
        return forecast

    @staticmethod
    def generate_next_period(product, *, months: int = 1, as_of: Optional[date] = None, user=None) -> DemandForecast:
        """Forecast the ``months`` calendar months following ``as_of``'s month."""
        as_of = as_of or timezone.localdate()
        start = add_months(month_start(as_of), 1)
        end = add_months(start, months) - timedelta(days=1)
        return DemandForecastService.generate(product, start, end, user=user)

    @staticmethod
    @transaction.atomic
    def activate(forecast: DemandForecast) -> DemandForecast:
        """Activate ``forecast``; active forecasts of the same product with overlapping periods are superseded."""
        if forecast.status not in (DemandForecast.Status.DRAFT, DemandForecast.Status.ACTIVE):
            raise ValueError(f"Forecast {forecast.forecast_number} cannot be activated from {forecast.status}.")
        DemandForecast.objects.filter(
            product=forecast.product,
            status=DemandForecast.Status.ACTIVE,
            forecast_period_start__lte=forecast.forecast_period_end,
            forecast_period_end__gte=forecast.forecast_period_start,
        ).exclude(pk=forecast.pk).update(status=DemandForecast.Status.SUPERSEDED, updated_at=timezone.now())
        forecast.status = DemandForecast.Status.ACTIVE
        forecast.save(update_fields=["status", "updated_at"])
        return forecast

    @staticmethod
    def expire_past(as_of: Optional[date] = None) -> List[int]:
        as_of = as_of or timezone.localdate()
        expired = list(
            DemandForecast.objects.filter(
                status=DemandForecast.Status.ACTIVE, forecast_period_end__lt=as_of
            ).values_list("pk", flat=True)
        )
        if expired:
            DemandForecast.objects.filter(pk__in=expired).update(
                status=DemandForecast.Status.EXPIRED, updated_at=timezone.now()
            )
        return expired
