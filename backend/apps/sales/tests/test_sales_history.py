from datetime import date
from decimal import Decimal

from django.test import TestCase
from rest_framework import status
from rest_framework.test import APITestCase

from apps.inventory.models import Product
from apps.sales.models import Customer, SalesOrder, SalesOrderLine
from apps.sales.services import add_months, monthly_sales_history
from shared.testing import create_company_context


def _order(company, customer, product, order_date, quantity, status=SalesOrder.Status.CONFIRMED):
    order = SalesOrder.objects.create(company=company, customer=customer, order_date=order_date, status=status)
    SalesOrderLine.objects.create(order=order, product=product, quantity=Decimal(quantity), unit_price=Decimal("10"))
    order.refresh_total()
    return order


class MonthlySalesHistoryTests(TestCase):
    def setUp(self):
        self.group, self.company, self.user = create_company_context(code="SAL", username="seller")
        self.customer = Customer.objects.create(company=self.company, code="C1", name="Retailer")
        self.product = Product.objects.create(company=self.company, sku="FG-1", name="Lamp")

    def test_add_months_crosses_years(self):
        self.assertEqual(add_months(date(2025, 1, 1), -1), date(2024, 12, 1))
        self.assertEqual(add_months(date(2025, 11, 1), 3), date(2026, 2, 1))

    def test_history_is_zero_filled_and_excludes_current_month(self):
        _order(self.company, self.customer, self.product, date(2025, 3, 4), "5")
        _order(self.company, self.customer, self.product, date(2025, 3, 20), "7")
        _order(self.company, self.customer, self.product, date(2025, 5, 2), "4", status=SalesOrder.Status.DELIVERED)
        _order(self.company, self.customer, self.product, date(2025, 6, 3), "99")

        history = monthly_sales_history(self.product, months=4, as_of=date(2025, 6, 15))

        self.assertEqual(
            history,
            [
                (date(2025, 2, 1), Decimal("0")),
                (date(2025, 3, 1), Decimal("12")),
                (date(2025, 4, 1), Decimal("0")),
                (date(2025, 5, 1), Decimal("4")),
            ],
        )

    def test_draft_and_cancelled_orders_are_ignored(self):
        _order(self.company, self.customer, self.product, date(2025, 5, 2), "3", status=SalesOrder.Status.DRAFT)
        _order(self.company, self.customer, self.product, date(2025, 5, 9), "8", status=SalesOrder.Status.CANCELLED)
        history = monthly_sales_history(self.product, months=1, as_of=date(2025, 6, 1))
        self.assertEqual(history, [(date(2025, 5, 1), Decimal("0"))])

    def test_order_lifecycle(self):
        order = SalesOrder.objects.create(company=self.company, customer=self.customer)
        with self.assertRaises(ValueError):
            order.confirm()
        SalesOrderLine.objects.create(order=order, product=self.product, quantity=Decimal("2"), unit_price=Decimal("3.25"))
        self.assertEqual(order.refresh_total(), Decimal("6.50"))
        order.confirm()
        order.ship()
        order.deliver()
        self.assertEqual(order.status, SalesOrder.Status.DELIVERED)
        with self.assertRaises(ValueError):
            order.cancel()
        self.assertTrue(order.order_number.startswith("SO-"))


class SalesOrderAPITests(APITestCase):
    def setUp(self):
        self.group, self.company, self.user = create_company_context(code="SOAPI", username="so-api")
        self.client.force_authenticate(user=self.user)
        self.headers = {"HTTP_X_COMPANY_ID": str(self.company.id)}
        self.customer = Customer.objects.create(company=self.company, code="C9", name="Shop")
        self.product = Product.objects.create(company=self.company, sku="P-1", name="Chair")

    def test_create_and_confirm(self):
        payload = {
            "customer": self.customer.id,
            "order_date": "2025-05-10",
            "lines": [{"product": self.product.id, "quantity": "3", "unit_price": "20.00"}],
        }
        response = self.client.post("/api/sales/orders/", payload, format="json", **self.headers)
        self.assertEqual(response.status_code, status.HTTP_201_CREATED, response.data)
        self.assertEqual(response.data["total_amount"], "60.00")

        response = self.client.post(f"/api/sales/orders/{response.data['id']}/confirm/", **self.headers)
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        response = self.client.get(
            f"/api/sales/orders/history/?product={self.product.id}&months=2&as_of=2025-06-01", **self.headers
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data[1], {"month": "2025-05-01", "quantity": "3.000"})
