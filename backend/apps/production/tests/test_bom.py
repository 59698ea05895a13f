from __future__ import annotations

from decimal import Decimal

from django.test import TestCase
from rest_framework import status
from rest_framework.test import APITestCase

from apps.inventory.models import Product, RawMaterial
from apps.production.models import BillOfMaterials, BillOfMaterialsStatus, BomComponent, ComponentType
from apps.production.services import BomService, active_bom_for
from shared.testing import create_company_context


class BomServiceTests(TestCase):
    def setUp(self):
        self.group, self.company, self.user = create_company_context(code="MFG", username="planner")
        self.product = Product.objects.create(company=self.company, sku="FG-100", name="Serum 30ml")
        self.oil = RawMaterial.objects.create(company=self.company, sku="RM-OIL", name="Argan Oil", unit="L")
        self.bottle = RawMaterial.objects.create(company=self.company, sku="PK-BTL", name="Glass Bottle")
        self.bom = BillOfMaterials.objects.create(
            company=self.company, product=self.product, name="Serum", batch_size=Decimal("10")
        )
        BomComponent.objects.create(
            bom=self.bom,
            component_type=ComponentType.RAW_MATERIAL,
            raw_material=self.oil,
            quantity=Decimal("2"),
            unit_cost=Decimal("12.50"),
            wastage_percent=Decimal("10"),
        )
        BomComponent.objects.create(
            bom=self.bom,
            component_type=ComponentType.PACKAGING,
            raw_material=self.bottle,
            quantity=Decimal("10"),
            unit_cost=Decimal("0.333"),
        )
        BomComponent.objects.create(
            bom=self.bom,
            component_type=ComponentType.LABOR,
            name="Filling line",
            quantity=Decimal("1.5"),
            unit="HR",
            unit_cost=Decimal("20"),
        )

    def test_component_cost_includes_wastage(self):
        oil_line = self.bom.components.get(raw_material=self.oil)
        self.assertEqual(oil_line.total_cost, Decimal("27.50"))
        self.assertEqual(oil_line.name, "Argan Oil")
        self.assertEqual(self.bom.components.get(raw_material=self.bottle).total_cost, Decimal("3.33"))

    def test_recalculate_splits_labor_and_material(self):
        BomService.recalculate_costs(self.bom)
        self.bom.refresh_from_db()
        self.assertEqual(self.bom.total_material_cost, Decimal("30.83"))
        self.assertEqual(self.bom.total_labor_cost, Decimal("30.00"))
        self.assertEqual(self.bom.total_cost, Decimal("60.83"))
        self.assertEqual(BomService.cost_per_unit(self.bom), Decimal("6.083"))

    def test_cost_per_unit_requires_positive_batch(self):
        self.bom.batch_size = Decimal("0")
        with self.assertRaises(ValueError):
            BomService.cost_per_unit(self.bom)

    def test_requirements_scale_and_skip_labor(self):
        requirements = BomService.calculate_requirements(self.bom, 25)
        by_material = {req.raw_material.sku: req.required_quantity for req in requirements}
        self.assertEqual(len(requirements), 2)
        self.assertEqual(by_material["RM-OIL"], Decimal("5.5"))
        self.assertEqual(by_material["PK-BTL"], Decimal("25"))

    def test_single_active_version(self):
        BomService.activate(self.bom)
        second = BillOfMaterials.objects.create(
            company=self.company, product=self.product, name="Serum", version="2.0", batch_size=Decimal("5")
        )
        BomService.activate(second)
        self.bom.refresh_from_db()
        self.assertEqual(self.bom.status, BillOfMaterialsStatus.OBSOLETE)
        self.assertEqual(active_bom_for(self.product), second)
        with self.assertRaises(ValueError):
            BomService.activate(self.bom)

    def test_no_active_bom(self):
        self.assertIsNone(active_bom_for(self.product))


class BomAPITests(APITestCase):
    def setUp(self):
        self.group, self.company, self.user = create_company_context(code="BOMAPI", username="bom-api")
        self.client.force_authenticate(user=self.user)
        self.headers = {"HTTP_X_COMPANY_ID": str(self.company.id)}
        self.product = Product.objects.create(company=self.company, sku="FG-1", name="Candle")
        self.wax = RawMaterial.objects.create(company=self.company, sku="RM-WAX", name="Soy Wax")

    def test_create_activate_and_requirements(self):
        payload = {
            "product": self.product.id,
            "name": "Candle",
            "batch_size": "4",
            "components": [
                {"component_type": "raw_material", "raw_material": self.wax.id, "quantity": "2", "unit_cost": "3"},
                {"component_type": "labor", "name": "Pouring", "quantity": "1", "unit_cost": "8"},
            ],
        }
        response = self.client.post("/api/production/boms/", payload, format="json", **self.headers)
        self.assertEqual(response.status_code, status.HTTP_201_CREATED, response.data)
        self.assertEqual(response.data["total_cost"], "14.00")
        self.assertEqual(response.data["cost_per_unit"], "3.5000")
        bom_id = response.data["id"]

        response = self.client.post(f"/api/production/boms/{bom_id}/activate/", **self.headers)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["status"], BillOfMaterialsStatus.ACTIVE)

        response = self.client.post(
            f"/api/production/boms/{bom_id}/requirements/", {"quantity": "10"}, format="json", **self.headers
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]["required_quantity"], "5.0000")
