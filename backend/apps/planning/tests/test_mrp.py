from datetime import date
from decimal import Decimal

from django.test import TestCase
from rest_framework import status
from rest_framework.test import APITestCase

from apps.audit.models import AuditLog
from apps.inventory.models import Product, RawMaterial, Warehouse
from apps.inventory.services.stock import adjust_stock
from apps.planning.models import (
    DemandForecast,
    MaterialRequirement,
    ProductionPlan,
    SuggestedPurchaseOrder,
)
from apps.planning.services import (
    MaterialRequirementsService,
    ProductionPlanService,
    SuggestedPurchaseOrderService,
)
from apps.planning.tasks import run_mrp
from apps.procurement.models import PurchaseOrder, Vendor
from apps.procurement.services import PurchaseOrderService
from apps.production.models import BillOfMaterials, BomComponent, ComponentType
from apps.production.services import BomService
from shared.testing import create_company_context

TODAY = date(2026, 1, 8)
START = date(2026, 1, 25)


class PlanningFixtureMixin:
    """A serum product whose BOM needs oil, bottles and caps."""

    def build_fixture(self):
        self.vendor = Vendor.objects.create(
            company=self.company, code="V1", name="Botanical Supply", default_lead_time_days=14, currency="EUR"
        )
        self.warehouse = Warehouse.objects.create(company=self.company, code="MAIN", name="Main")
        self.product = Product.objects.create(company=self.company, sku="FG-SERUM", name="Serum")
        self.oil = RawMaterial.objects.create(
            company=self.company,
            sku="RM-OIL",
            name="Argan Oil",
            unit="L",
            unit_cost=Decimal("3.50"),
            min_order_quantity=Decimal("25"),
            lead_time_days=21,
            preferred_vendor=self.vendor,
        )
        self.bottle = RawMaterial.objects.create(
            company=self.company,
            sku="PK-BTL",
            name="Bottle",
            unit_cost=Decimal("0.40"),
            preferred_vendor=self.vendor,
        )
        self.cap = RawMaterial.objects.create(company=self.company, sku="PK-CAP", name="Cap", unit_cost=Decimal("0.05"))

        self.bom = BillOfMaterials.objects.create(
            company=self.company, product=self.product, name="Serum", batch_size=Decimal("10")
        )
        for material, quantity, component_type in (
            (self.oil, "2", ComponentType.RAW_MATERIAL),
            (self.bottle, "10", ComponentType.PACKAGING),
            (self.cap, "10", ComponentType.PACKAGING),
        ):
            BomComponent.objects.create(
                bom=self.bom,
                component_type=component_type,
                raw_material=material,
                quantity=Decimal(quantity),
                unit_cost=material.unit_cost,
            )
        BomComponent.objects.create(
            bom=self.bom, component_type=ComponentType.LABOR, name="Filling", quantity=Decimal("1"), unit_cost=Decimal("15")
        )
        BomService.activate(self.bom)

        adjust_stock(self.product, self.warehouse, Decimal("30"))
        adjust_stock(self.oil, self.warehouse, Decimal("4"))
        adjust_stock(self.bottle, self.warehouse, Decimal("50"))

        self.forecast = DemandForecast.objects.create(
            company=self.company,
            product=self.product,
            forecast_period_start=START,
            forecast_period_end=date(2026, 2, 24),
            forecasted_quantity=Decimal("120"),
            status=DemandForecast.Status.ACTIVE,
        )


class ProductionPlanTests(PlanningFixtureMixin, TestCase):
    def setUp(self):
        self.group, self.company, self.user = create_company_context(code="PLN", username="planner", admin=True)
        self.build_fixture()

    def test_plan_quantity_from_forecast(self):
        plan = ProductionPlanService.create_from_forecast(self.forecast, safety_stock=10, user=self.user)
        self.assertTrue(plan.plan_number.startswith("PP-"))
        self.assertEqual(plan.planned_quantity, Decimal("100"))
        self.assertEqual(plan.current_inventory, Decimal("30"))
        self.assertEqual(plan.bom, self.bom)
        self.assertEqual(plan.planned_start_date, START)

    def test_plan_quantity_not_negative(self):
        adjust_stock(self.product, self.warehouse, Decimal("500"))
        plan = ProductionPlanService.create_from_forecast(self.forecast)
        self.assertEqual(plan.planned_quantity, Decimal("0"))

    def test_plan_requires_active_bom(self):
        BomService.mark_obsolete(self.bom)
        with self.assertRaises(ValueError):
            ProductionPlanService.create_from_forecast(self.forecast)

    def test_plan_transitions(self):
        plan = ProductionPlanService.create_from_forecast(self.forecast)
        with self.assertRaises(ValueError):
            plan.start()
        plan.approve(self.user)
        self.assertEqual(plan.approved_by, self.user)
        plan.start()
        with self.assertRaises(ValueError):
            plan.cancel()
        plan.complete()
        self.assertEqual(plan.status, ProductionPlan.Status.COMPLETED)


class MaterialRequirementTests(PlanningFixtureMixin, TestCase):
    def setUp(self):
        self.group, self.company, self.user = create_company_context(code="MRP", username="mrp", admin=True)
        self.build_fixture()
        self.plan = ProductionPlanService.create_from_forecast(self.forecast, safety_stock=10)

    def _requirements(self):
        MaterialRequirementsService.calculate_for_plan(self.plan, now=TODAY)
        return {req.raw_material.sku: req for req in self.plan.requirements.select_related("raw_material")}

    def test_shortage_and_lead_time_fields(self):
        reqs = self._requirements()
        self.assertEqual(set(reqs), {"RM-OIL", "PK-BTL", "PK-CAP"})

        oil = reqs["RM-OIL"]
        self.assertEqual(oil.required_quantity, Decimal("20"))
        self.assertEqual(oil.current_inventory, Decimal("4"))
        self.assertEqual(oil.shortage_quantity, Decimal("16"))
        self.assertEqual(oil.suggested_order_quantity, Decimal("25"))
        self.assertEqual(oil.estimated_total_cost, Decimal("87.50"))
        self.assertEqual(oil.lead_time_days, 21)
        self.assertEqual(oil.days_until_required, 17)
        self.assertEqual(oil.latest_order_date, date(2026, 1, 4))
        self.assertEqual(oil.estimated_delivery_date, date(2026, 1, 29))
        self.assertTrue(oil.is_urgent)
        self.assertEqual(oil.priority_score, 86)

        bottle = reqs["PK-BTL"]
        self.assertEqual(bottle.shortage_quantity, Decimal("50"))
        self.assertEqual(bottle.suggested_order_quantity, Decimal("50"))
        self.assertEqual(bottle.lead_time_days, 14)
        self.assertFalse(bottle.is_urgent)
        self.assertEqual(bottle.priority_score, 50)

        self.assertIsNone(reqs["PK-CAP"].preferred_vendor)

    def test_open_purchase_orders_reduce_shortage(self):
        order = PurchaseOrderService.create_purchase_order(
            company=self.company,
            vendor=self.vendor,
            items=[{"raw_material": self.bottle, "quantity": Decimal("20"), "unit_price": Decimal("0.40")}],
        )
        order.mark_sent()
        bottle = self._requirements()["PK-BTL"]
        self.assertEqual(bottle.on_order_quantity, Decimal("20"))
        self.assertEqual(bottle.shortage_quantity, Decimal("30"))

    def test_no_shortage_scores_zero(self):
        adjust_stock(self.bottle, self.warehouse, Decimal("100"))
        bottle = self._requirements()["PK-BTL"]
        self.assertEqual(bottle.shortage_quantity, Decimal("0"))
        self.assertEqual(bottle.suggested_order_quantity, Decimal("0"))
        self.assertEqual(bottle.priority_score, 0)
        self.assertFalse(bottle.is_urgent)

    def test_recalculation_replaces_pending_rows(self):
        self._requirements()
        self._requirements()
        self.assertEqual(self.plan.requirements.count(), 3)

    def test_suggestions_grouped_by_vendor(self):
        self._requirements()
        run = SuggestedPurchaseOrderService.generate_for_plan(self.plan, now=TODAY)

        self.assertEqual(len(run.suggestions), 1)
        self.assertEqual([req.raw_material.sku for req in run.skipped], ["PK-CAP"])
        suggestion = run.suggestions[0]
        self.assertTrue(suggestion.suggestion_number.startswith("SPO-"))
        self.assertEqual(suggestion.vendor, self.vendor)
        self.assertEqual(suggestion.currency, "EUR")
        self.assertEqual(suggestion.status, SuggestedPurchaseOrder.Status.PENDING)
        self.assertEqual(suggestion.total_amount, Decimal("107.50"))
        self.assertEqual(suggestion.priority_score, 76)
        self.assertTrue(suggestion.is_urgent)
        self.assertEqual(suggestion.required_by_date, START)
        self.assertEqual(suggestion.suggested_order_date, TODAY)
        self.assertEqual(suggestion.items.count(), 2)

        statuses = dict(self.plan.requirements.values_list("raw_material__sku", "status"))
        self.assertEqual(statuses["RM-OIL"], MaterialRequirement.Status.PO_GENERATED)
        self.assertEqual(statuses["PK-CAP"], MaterialRequirement.Status.PENDING)

        # settled materials are not recomputed
        MaterialRequirementsService.calculate_for_plan(self.plan, now=TODAY)
        self.assertEqual(self.plan.requirements.filter(raw_material=self.oil).count(), 1)

    def test_convert_suggestion_to_purchase_order(self):
        self._requirements()
        suggestion = SuggestedPurchaseOrderService.generate_for_plan(self.plan, now=TODAY).suggestions[0]
        SuggestedPurchaseOrderService.approve(suggestion, user=self.user)

        order = SuggestedPurchaseOrderService.convert(suggestion, user=self.user)

        self.assertEqual(order.status, PurchaseOrder.Status.DRAFT)
        self.assertEqual(order.vendor, self.vendor)
        self.assertEqual(order.expected_date, START)
        self.assertEqual(order.currency, "EUR")
        self.assertEqual(order.subtotal, Decimal("107.50"))
        self.assertEqual(order.total_amount, Decimal("107.50"))
        self.assertEqual(order.items.count(), 2)

        suggestion.refresh_from_db()
        self.assertEqual(suggestion.status, SuggestedPurchaseOrder.Status.CONVERTED)
        self.assertEqual(suggestion.converted_po, order)
        self.assertEqual(suggestion.approved_by, self.user)
        self.assertEqual(
            self.plan.requirements.filter(status=MaterialRequirement.Status.ORDERED).count(), 2
        )
        self.assertTrue(AuditLog.objects.filter(action="CONVERT", entity_id=str(suggestion.pk)).exists())

        with self.assertRaises(ValueError):
            SuggestedPurchaseOrderService.convert(suggestion)
        with self.assertRaises(ValueError):
            SuggestedPurchaseOrderService.reject(suggestion, reason="late")

    def test_reject_releases_requirements(self):
        self._requirements()
        suggestion = SuggestedPurchaseOrderService.generate_for_plan(self.plan, now=TODAY).suggestions[0]
        SuggestedPurchaseOrderService.reject(suggestion, user=self.user, reason="Price too high")

        suggestion.refresh_from_db()
        self.assertEqual(suggestion.status, SuggestedPurchaseOrder.Status.REJECTED)
        self.assertEqual(suggestion.rejection_reason, "Price too high")
        self.assertIsNotNone(suggestion.rejected_at)
        self.assertEqual(self.plan.requirements.filter(status=MaterialRequirement.Status.PENDING).count(), 3)
        with self.assertRaises(ValueError):
            SuggestedPurchaseOrderService.approve(suggestion)

    def test_run_mrp_task_processes_approved_plans(self):
        draft_plan = ProductionPlanService.create_from_forecast(self.forecast)
        self.plan.approve(self.user)

        result = run_mrp.apply().get()

        self.assertEqual(result["status"], "ok")
        self.assertEqual([entry["plan"] for entry in result["plans"]], [self.plan.plan_number])
        self.assertEqual(result["plans"][0]["requirements"], 3)
        self.assertEqual(len(result["plans"][0]["suggestions"]), 1)
        self.assertFalse(draft_plan.requirements.exists())


class PlanningAPITests(PlanningFixtureMixin, APITestCase):
    def setUp(self):
        self.group, self.company, self.user = create_company_context(code="PAPI", username="plan-api")
        self.client.force_authenticate(user=self.user)
        self.headers = {"HTTP_X_COMPANY_ID": str(self.company.id)}
        self.build_fixture()

    def test_forecast_to_purchase_order(self):
        response = self.client.post(
            "/api/planning/plans/from-forecast/",
            {"forecast": self.forecast.id, "safety_stock": "10"},
            format="json",
            **self.headers,
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED, response.data)
        plan_id = response.data["id"]
        self.assertEqual(Decimal(response.data["planned_quantity"]), Decimal("100"))

        response = self.client.post(f"/api/planning/plans/{plan_id}/calculate-requirements/", **self.headers)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 3)

        response = self.client.post(f"/api/planning/plans/{plan_id}/generate-suggestions/", **self.headers)
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(len(response.data["suggestions"]), 1)
        self.assertEqual(response.data["skipped"][0]["raw_material"], "PK-CAP")
        suggestion_id = response.data["suggestions"][0]["id"]

        response = self.client.post(f"/api/planning/suggested-pos/{suggestion_id}/convert/", **self.headers)
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data["status"], PurchaseOrder.Status.DRAFT)

        response = self.client.post(f"/api/planning/suggested-pos/{suggestion_id}/convert/", **self.headers)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_plan_without_active_bom_is_rejected(self):
        BomService.mark_obsolete(self.bom)
        response = self.client.post(
            "/api/planning/plans/from-forecast/", {"forecast": self.forecast.id}, format="json", **self.headers
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
