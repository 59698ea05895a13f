from datetime import date
from decimal import Decimal

from django.test import SimpleTestCase, TestCase

from apps.inventory.models import Product
from apps.planning.models import DemandForecast
from apps.planning.services import DemandForecastService, project_demand
from apps.planning.services.forecasting import months_in_period
from apps.planning.tasks import expire_forecasts
from apps.sales.models import Customer, SalesOrder, SalesOrderLine
from shared.testing import create_company_context


class ProjectDemandTests(SimpleTestCase):
    def test_linear_trend_projection(self):
        result = project_demand([10, 12, 14, 16, 18, 20], 2)
        self.assertEqual(result.method, DemandForecast.Method.TREND)
        self.assertEqual(result.quantity, Decimal("46.000"))
        self.assertEqual(result.trend, DemandForecast.Trend.UP)
        self.assertEqual(result.data_points, 6)
        self.assertEqual(result.confidence, Decimal("63.17"))

    def test_flat_history_is_stable(self):
        result = project_demand([5, 5, 5], 3)
        self.assertEqual(result.quantity, Decimal("15.000"))
        self.assertEqual(result.trend, DemandForecast.Trend.STABLE)
        self.assertEqual(result.confidence, Decimal("55.00"))

    def test_falling_trend_does_not_go_negative(self):
        result = project_demand([30, 20, 10], 2)
        self.assertEqual(result.trend, DemandForecast.Trend.DOWN)
        self.assertEqual(result.quantity, Decimal("0.000"))

    def test_sparse_history_uses_average(self):
        result = project_demand([0, 0, 4, 0, 8, 0], 3)
        self.assertEqual(result.method, DemandForecast.Method.HISTORICAL_AVG)
        self.assertEqual(result.quantity, Decimal("6.000"))
        self.assertEqual(result.data_points, 2)

    def test_confidence_has_a_floor(self):
        result = project_demand([0] * 11 + [60], 1)
        self.assertEqual(result.confidence, Decimal("10.00"))
        self.assertEqual(result.quantity, Decimal("5.000"))

    def test_no_history(self):
        result = project_demand([0, 0, 0], 1)
        self.assertEqual(result.quantity, Decimal("0"))
        self.assertEqual(result.confidence, Decimal("10"))
        self.assertEqual(result.method, DemandForecast.Method.HISTORICAL_AVG)

    def test_months_in_period(self):
        self.assertEqual(months_in_period(date(2025, 1, 1), date(2025, 3, 31)), 3)
        self.assertEqual(months_in_period(date(2025, 12, 15), date(2026, 1, 14)), 2)


class DemandForecastServiceTests(TestCase):
    def setUp(self):
        self.group, self.company, self.user = create_company_context(code="FC", username="forecaster")
        self.product = Product.objects.create(company=self.company, sku="FG-7", name="Body Lotion", unit="BTL")
        customer = Customer.objects.create(company=self.company, code="C1", name="Pharmacy")
        for month, quantity in ((3, "10"), (4, "12"), (5, "14"), (6, "16")):
            order = SalesOrder.objects.create(
                company=self.company,
                customer=customer,
                order_date=date(2025, month, 10),
                status=SalesOrder.Status.CONFIRMED,
            )
            SalesOrderLine.objects.create(
                order=order, product=self.product, quantity=Decimal(quantity), unit_price=Decimal("5")
            )

    def test_generate_from_sales_history(self):
        forecast = DemandForecastService.generate(
            self.product, date(2025, 7, 1), date(2025, 7, 31), lookback_months=4
        )
        self.assertTrue(forecast.forecast_number.startswith("FC-"))
        self.assertEqual(forecast.status, DemandForecast.Status.DRAFT)
        self.assertEqual(forecast.forecast_method, DemandForecast.Method.TREND)
        self.assertEqual(forecast.forecasted_quantity, Decimal("18.000"))
        self.assertEqual(forecast.trend_direction, DemandForecast.Trend.UP)
        self.assertEqual(forecast.data_points_used, 4)
        self.assertEqual(forecast.unit, "BTL")

    def test_invalid_period(self):
        with self.assertRaises(ValueError):
            DemandForecastService.generate(self.product, date(2025, 7, 31), date(2025, 7, 1))

    def test_activation_supersedes_overlapping_forecasts(self):
        first = DemandForecastService.generate(self.product, date(2025, 7, 1), date(2025, 7, 31))
        DemandForecastService.activate(first)
        separate = DemandForecastService.generate(self.product, date(2025, 9, 1), date(2025, 9, 30))
        DemandForecastService.activate(separate)
        second = DemandForecastService.generate(self.product, date(2025, 7, 15), date(2025, 8, 15))
        DemandForecastService.activate(second)

        first.refresh_from_db()
        separate.refresh_from_db()
        self.assertEqual(first.status, DemandForecast.Status.SUPERSEDED)
        self.assertEqual(separate.status, DemandForecast.Status.ACTIVE)
        self.assertEqual(second.status, DemandForecast.Status.ACTIVE)
        with self.assertRaises(ValueError):
            DemandForecastService.activate(first)

    def test_expire_task(self):
        past = DemandForecastService.generate(self.product, date(2020, 1, 1), date(2020, 1, 31))
        DemandForecastService.activate(past)
        result = expire_forecasts.apply().get()
        self.assertEqual(result, {"status": "ok", "expired": 1})
        past.refresh_from_db()
        self.assertEqual(past.status, DemandForecast.Status.EXPIRED)
