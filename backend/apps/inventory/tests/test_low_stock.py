from __future__ import annotations

from decimal import Decimal
from unittest import mock

from django.test import TestCase
from rest_framework import status
from rest_framework.test import APITestCase

from apps.audit.models import AuditLog
from apps.inventory.models import Product, RawMaterial, StockLevel, Warehouse
from apps.inventory.services.replenishment import LowStockService
from apps.inventory.services.stock import adjust_stock, current_material_inventory, current_product_inventory
from apps.inventory.tasks import scan_low_stock
from apps.notifications.models import Notification, NotificationSeverity
from apps.procurement.models import PurchaseOrder, Vendor
from apps.procurement.services import PurchaseOrderService
from shared.testing import create_company_context


class LowStockAutoPurchaseOrderTests(TestCase):
    def setUp(self):
        self.group, self.company, self.user = create_company_context(code="INV", username="stockist", admin=True)
        self.vendor = Vendor.objects.create(company=self.company, code="V1", name="Acme Supplies", currency="USD")
        self.warehouse = Warehouse.objects.create(company=self.company, code="MAIN", name="Main")
        self.product = Product.objects.create(
            company=self.company,
            sku="WID-1",
            name="Widget",
            cost_price=Decimal("4.50"),
            unit_price=Decimal("9.00"),
            preferred_vendor=self.vendor,
        )
        self.stock = StockLevel.objects.create(
            company=self.company,
            product=self.product,
            warehouse=self.warehouse,
            quantity=Decimal("5"),
            reorder_level=Decimal("10"),
            reorder_quantity=Decimal("0"),
        )

    def test_no_reorder_level_is_ignored(self):
        self.stock.reorder_level = None
        self.stock.save()
        result = LowStockService.check_and_trigger(self.stock)
        self.assertFalse(result.triggered)
        self.assertEqual(result.reason, "no_reorder_level")

    def test_above_reorder_level_is_ignored(self):
        self.stock.quantity = Decimal("11")
        self.stock.save()
        result = LowStockService.check_and_trigger(self.stock)
        self.assertFalse(result.triggered)
        self.assertEqual(result.reason, "above_reorder_level")

    def test_creates_draft_po_with_shortfall_quantity(self):
        result = LowStockService.check_and_trigger(self.stock, user=self.user)

        self.assertTrue(result.triggered)
        order = result.purchase_order
        self.assertEqual(order.status, PurchaseOrder.Status.DRAFT)
        self.assertEqual(order.vendor, self.vendor)
        item = order.items.get()
        self.assertEqual(item.quantity, Decimal("5"))
        self.assertEqual(item.unit_price, Decimal("4.50"))
        self.assertEqual(order.total_amount, Decimal("22.50"))
        self.assertTrue(AuditLog.objects.filter(action="AUTO_PO", entity_id=str(order.pk)).exists())
        self.assertTrue(Notification.objects.filter(entity_type="PurchaseOrder", entity_id=str(order.pk)).exists())

    def test_reorder_quantity_wins_when_set(self):
        self.stock.reorder_quantity = Decimal("50")
        self.stock.save()
        result = LowStockService.check_and_trigger(self.stock)
        self.assertEqual(result.purchase_order.items.get().quantity, Decimal("50"))

    def test_minimum_order_of_one_when_at_reorder_level(self):
        self.stock.quantity = Decimal("10")
        self.stock.save()
        result = LowStockService.check_and_trigger(self.stock)
        self.assertEqual(result.order_quantity, Decimal("1"))

    def test_unit_price_falls_back_to_selling_price(self):
        self.product.cost_price = Decimal("0")
        self.product.save()
        result = LowStockService.check_and_trigger(self.stock)
        self.assertEqual(result.purchase_order.items.get().unit_price, Decimal("9.00"))

    def test_open_po_prevents_duplicate(self):
        first = LowStockService.check_and_trigger(self.stock)
        second = LowStockService.check_and_trigger(self.stock)
        self.assertFalse(second.triggered)
        self.assertEqual(second.reason, "open_po_exists")
        self.assertEqual(second.purchase_order, first.purchase_order)
        self.assertEqual(PurchaseOrder.objects.count(), 1)

    def test_missing_vendor_raises_alert(self):
        self.product.preferred_vendor = None
        self.product.save()
        self.stock.quantity = Decimal("0")
        self.stock.save()

        result = LowStockService.check_and_trigger(self.stock)

        self.assertEqual(result.reason, "no_vendor")
        self.assertFalse(PurchaseOrder.objects.exists())
        alert = Notification.objects.get(entity_type="StockLevel")
        self.assertEqual(alert.severity, NotificationSeverity.CRITICAL)
        self.assertEqual(alert.user, self.user)

    def test_missing_vendor_with_stock_left_is_warning(self):
        self.product.preferred_vendor = None
        self.product.save()
        LowStockService.check_and_trigger(self.stock)
        self.assertEqual(Notification.objects.get().severity, NotificationSeverity.WARNING)

    def test_scan_task_reports_created_orders(self):
        result = scan_low_stock.apply().get()
        self.assertEqual(result["status"], "ok")
        self.assertEqual(len(result["created"]), 1)
        self.assertEqual(result["created"][0]["sku"], "WID-1")

    def test_blocked_vendor_raises_alert_instead_of_order(self):
        self.vendor.status = Vendor.Status.BLOCKED
        self.vendor.save()

        result = LowStockService.check_and_trigger(self.stock)

        self.assertFalse(result.triggered)
        self.assertEqual(result.reason, "vendor_blocked")
        self.assertFalse(PurchaseOrder.objects.exists())
        alert = Notification.objects.get(entity_type="StockLevel")
        self.assertIn("V1 is blocked", alert.body)

    def test_scan_continues_past_blocked_vendor(self):
        blocked = Vendor.objects.create(
            company=self.company, code="VB", name="Blocked Co", status=Vendor.Status.BLOCKED
        )
        gadget = Product.objects.create(company=self.company, sku="GAD-1", name="Gadget", preferred_vendor=blocked)
        StockLevel.objects.create(
            company=self.company,
            product=gadget,
            warehouse=self.warehouse,
            quantity=Decimal("0"),
            reorder_level=Decimal("3"),
        )

        result = scan_low_stock.apply().get()

        self.assertEqual(result["status"], "ok")
        self.assertEqual(result["checked"], 2)
        self.assertEqual([row["sku"] for row in result["created"]], ["WID-1"])
        self.assertEqual(PurchaseOrder.objects.filter(vendor=self.vendor).count(), 1)
        self.assertFalse(PurchaseOrder.objects.filter(vendor=blocked).exists())

    def test_scan_records_failed_rows(self):
        with mock.patch.object(
            PurchaseOrderService, "create_purchase_order", side_effect=ValueError("Vendor V1 is blocked.")
        ):
            results = LowStockService.scan(company=self.company)

        self.assertEqual([result.reason for result in results], ["failed"])
        self.assertFalse(PurchaseOrder.objects.exists())


class StockServiceTests(TestCase):
    def setUp(self):
        self.group, self.company, self.user = create_company_context(code="STK", username="clerk")
        self.main = Warehouse.objects.create(company=self.company, code="MAIN", name="Main")
        self.overflow = Warehouse.objects.create(company=self.company, code="OVF", name="Overflow")
        self.material = RawMaterial.objects.create(company=self.company, sku="RM-1", name="Resin")
        self.product = Product.objects.create(company=self.company, sku="P-1", name="Bottle")

    def test_inventory_is_summed_across_warehouses(self):
        adjust_stock(self.material, self.main, Decimal("40"))
        adjust_stock(self.material, self.overflow, Decimal("2.5"))
        self.assertEqual(current_material_inventory(self.material), Decimal("42.5"))
        self.assertEqual(current_product_inventory(self.product), Decimal("0"))

    def test_stock_cannot_go_negative(self):
        adjust_stock(self.product, self.main, Decimal("3"))
        with self.assertRaises(ValueError):
            adjust_stock(self.product, self.main, Decimal("-4"))
        self.assertEqual(current_product_inventory(self.product), Decimal("3"))


class StockLevelAPITests(APITestCase):
    def setUp(self):
        self.group, self.company, self.user = create_company_context(code="API", username="api-user")
        self.client.force_authenticate(user=self.user)
        self.headers = {"HTTP_X_COMPANY_ID": str(self.company.id)}
        vendor = Vendor.objects.create(company=self.company, code="V1", name="Vendor")
        warehouse = Warehouse.objects.create(company=self.company, code="MAIN", name="Main")
        product = Product.objects.create(company=self.company, sku="P-9", name="Gadget", preferred_vendor=vendor)
        self.low = StockLevel.objects.create(
            company=self.company, product=product, warehouse=warehouse, quantity=Decimal("1"), reorder_level=Decimal("5")
        )

    def test_low_stock_filter_and_reorder_check(self):
        response = self.client.get("/api/inventory/stock-levels/?low_stock=1", **self.headers)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)

        response = self.client.post(f"/api/inventory/stock-levels/{self.low.id}/check-reorder/", **self.headers)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data["triggered"])
        self.assertEqual(response.data["order_quantity"], 4.0)
