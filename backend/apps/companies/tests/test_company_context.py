from django.test import RequestFactory, TestCase

from apps.companies.models import Company
from apps.inventory.models import Warehouse
from shared.middleware.company_context import resolve_company
from shared.testing import create_company_context


class CompanyContextTests(TestCase):
    def setUp(self):
        self.factory = RequestFactory()
        self.group, self.company, self.user = create_company_context(code="CTX", username="ctx-user")
        self.other_group, self.other_company, self.other_user = create_company_context(
            code="OTH", username="other-user"
        )

    def test_default_company_used_without_header(self):
        request = self.factory.get("/api/")
        self.assertEqual(resolve_company(request, user=self.user), self.company)

    def test_header_selects_accessible_company(self):
        second = Company.objects.create(company_group=self.group, code="CTX2", name="Second")
        self.user.grant_company_access(second)
        request = self.factory.get("/api/", HTTP_X_COMPANY_ID=str(second.id))
        self.assertEqual(resolve_company(request, user=self.user), second)

    def test_header_for_foreign_company_is_ignored(self):
        request = self.factory.get("/api/", HTTP_X_COMPANY_ID=str(self.other_company.id))
        self.assertIsNone(resolve_company(request, user=self.user))

    def test_revoked_default_company_falls_back(self):
        self.user.default_company = self.other_company
        self.user.save(update_fields=["default_company"])
        self.assertFalse(self.user.has_company_access(self.other_company))
        request = self.factory.get("/api/")
        self.assertEqual(resolve_company(request, user=self.user), self.company)

    def test_company_required_on_business_records(self):
        with self.assertRaisesMessage(ValueError, "Company must be specified"):
            Warehouse.objects.create(code="WH1", name="Main")
