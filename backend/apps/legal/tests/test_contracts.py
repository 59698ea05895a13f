from datetime import date
from decimal import Decimal

from django.test import SimpleTestCase, TestCase
from rest_framework.test import APITestCase

from apps.audit.models import AuditLog
from apps.legal.models import Contract, ContractKeyDate, Dispute
from apps.legal.services import ContractService, shift_months
from apps.legal.tasks import process_contract_expirations
from apps.notifications.models import Notification
from shared.event_bus import CONTRACT_STATUS_CHANGED, event_bus
from shared.testing import create_company_context


class ShiftMonthsTests(SimpleTestCase):
    def test_day_is_clamped_to_month_end(self):
        self.assertEqual(shift_months(date(2025, 1, 31), 1), date(2025, 2, 28))
        self.assertEqual(shift_months(date(2024, 2, 29), 12), date(2025, 2, 28))
        self.assertEqual(shift_months(date(2025, 11, 15), 3), date(2026, 2, 15))
        self.assertIsNone(shift_months(None, 12))


class ContractLifecycleTests(TestCase):
    def setUp(self):
        self.group, self.company, self.user = create_company_context(code="LGL", username="counsel")
        self.contract = Contract.objects.create(
            company=self.company,
            title="Packaging supply",
            contract_type=Contract.ContractType.VENDOR,
            party_name="Bottle Works",
            start_date=date(2025, 1, 1),
            end_date=date(2025, 12, 31),
            value=Decimal("12000.00"),
            owner=self.user,
        )
        self.events = []
        event_bus.subscribe(CONTRACT_STATUS_CHANGED, self._capture, dispatch_uid="legal-test")
        self.addCleanup(event_bus.unsubscribe, CONTRACT_STATUS_CHANGED, self._capture, "legal-test")

    def _capture(self, sender, *, instance, previous_status, **kwargs):
        self.events.append((instance.contract_number, previous_status, instance.status))

    def test_number_and_signing_flow(self):
        self.assertTrue(self.contract.contract_number.startswith("CTR-"))
        ContractService.submit_for_review(self.contract, user=self.user)
        ContractService.request_signature(self.contract, user=self.user)
        ContractService.sign(self.contract, user=self.user)
        self.contract.refresh_from_db()
        self.assertEqual(self.contract.status, Contract.Status.ACTIVE)
        self.assertIsNotNone(self.contract.signed_at)
        self.assertEqual(len(self.events), 3)
        self.assertEqual(self.events[-1][1:], (Contract.Status.PENDING_SIGNATURE, Contract.Status.ACTIVE))
        self.assertEqual(
            AuditLog.objects.filter(entity_type="Contract", entity_id=str(self.contract.pk)).count(), 3
        )

    def test_cannot_sign_a_draft(self):
        with self.assertRaises(ValueError):
            ContractService.sign(self.contract)
        self.contract.refresh_from_db()
        self.assertIsNone(self.contract.signed_at)

    def test_terminate_requires_active(self):
        with self.assertRaises(ValueError):
            ContractService.terminate(self.contract, reason="Breach")
        self.contract.status = Contract.Status.ACTIVE
        self.contract.save()
        ContractService.terminate(self.contract, reason="Breach")
        self.assertEqual(self.contract.status, Contract.Status.TERMINATED)
        self.assertEqual(self.contract.termination_reason, "Breach")

    def test_renew_creates_active_successor(self):
        self.contract.status = Contract.Status.ACTIVE
        self.contract.renewal_term_months = 6
        self.contract.save()
        ContractKeyDate.objects.create(
            contract=self.contract, date_type=ContractKeyDate.DateType.PAYMENT, date=date(2025, 6, 30)
        )

        successor = ContractService.renew(self.contract)

        self.contract.refresh_from_db()
        self.assertEqual(self.contract.status, Contract.Status.RENEWED)
        self.assertEqual(successor.status, Contract.Status.ACTIVE)
        self.assertEqual(successor.renewed_from, self.contract)
        self.assertEqual(successor.start_date, date(2025, 7, 1))
        self.assertEqual(successor.end_date, date(2026, 6, 30))
        self.assertEqual(list(successor.key_dates.values_list("date", flat=True)), [date(2025, 12, 30)])
        self.assertNotEqual(successor.contract_number, self.contract.contract_number)

    def test_draft_cannot_be_renewed(self):
        with self.assertRaises(ValueError):
            ContractService.renew(self.contract)


class ContractSchedulingTests(TestCase):
    def setUp(self):
        self.group, self.company, self.user = create_company_context(code="LGS", username="legal-ops")

    def _contract(self, title, end_date, **kwargs):
        return Contract.objects.create(
            company=self.company,
            title=title,
            party_name="Counterparty",
            status=Contract.Status.ACTIVE,
            start_date=date(2019, 1, 1),
            end_date=end_date,
            owner=self.user,
            **kwargs,
        )

    def test_process_expirations(self):
        auto = self._contract("Lease", date(2025, 12, 31), auto_renewal=True)
        manual = self._contract("Support", date(2025, 12, 31))
        current = self._contract("Service", date(2026, 2, 1))

        result = ContractService.process_expirations(date(2026, 1, 5))

        auto.refresh_from_db()
        manual.refresh_from_db()
        current.refresh_from_db()
        self.assertEqual(auto.status, Contract.Status.RENEWED)
        self.assertEqual(manual.status, Contract.Status.EXPIRED)
        self.assertEqual(current.status, Contract.Status.ACTIVE)
        self.assertEqual(result["expired"], [manual.contract_number])
        successor = auto.renewals.get()
        self.assertEqual(successor.end_date, date(2026, 12, 31))
        self.assertEqual(result["renewed"], [(auto.contract_number, successor.contract_number)])

    def test_key_date_reminders_inside_window_only(self):
        contract = self._contract("Distribution", date(2026, 12, 31))
        due = ContractKeyDate.objects.create(
            contract=contract, date_type=ContractKeyDate.DateType.RENEWAL_NOTICE, date=date(2026, 1, 20)
        )
        ContractKeyDate.objects.create(contract=contract, date=date(2026, 3, 1), reminder_days=30)
        ContractKeyDate.objects.create(contract=contract, date=date(2026, 1, 1))

        sent = ContractService.due_key_date_reminders(date(2026, 1, 5))

        self.assertEqual(sent, [due])
        due.refresh_from_db()
        self.assertTrue(due.reminder_sent)
        notification = Notification.objects.get(user=self.user)
        self.assertIn("in 15 day(s)", notification.title)
        self.assertEqual(ContractService.due_key_date_reminders(date(2026, 1, 6)), [])

    def test_expiration_task(self):
        self._contract("Old", date(2020, 1, 31))
        result = process_contract_expirations.apply().get()
        self.assertEqual(result["status"], "ok")
        self.assertEqual(len(result["expired"]), 1)


class DisputeTests(TestCase):
    def setUp(self):
        self.group, self.company, self.user = create_company_context(code="DSP", username="disputes")
        self.dispute = Dispute.objects.create(
            company=self.company,
            title="Late delivery penalty",
            dispute_type=Dispute.DisputeType.VENDOR,
            estimated_value=Decimal("5000.00"),
        )

    def test_resolution_flow(self):
        self.assertTrue(self.dispute.dispute_number.startswith("DSP-"))
        self.dispute.investigate()
        self.dispute.negotiate()
        self.dispute.resolve("Credit note issued", actual_value=Decimal("3200.00"), resolved_date=date(2026, 1, 9))
        self.assertEqual(self.dispute.status, Dispute.Status.RESOLVED)
        self.assertEqual(self.dispute.actual_value, Decimal("3200.00"))
        self.dispute.close()
        self.assertEqual(self.dispute.status, Dispute.Status.CLOSED)
        self.dispute.reopen()
        self.assertEqual(self.dispute.status, Dispute.Status.OPEN)
        self.assertIsNone(self.dispute.resolved_date)

    def test_close_requires_resolution(self):
        with self.assertRaises(ValueError):
            self.dispute.close()
        with self.assertRaises(ValueError):
            self.dispute.resolve("")
        with self.assertRaises(ValueError):
            self.dispute.reopen()


class ContractAPITests(APITestCase):
    def setUp(self):
        self.group, self.company, self.user = create_company_context(code="LAPI", username="legal-api")
        self.client.force_authenticate(user=self.user)
        self.headers = {"HTTP_X_COMPANY_ID": str(self.company.id)}

    def test_create_and_transition(self):
        payload = {
            "title": "Office lease",
            "contract_type": "lease",
            "party_name": "Landlord LLC",
            "start_date": "2026-01-01",
            "end_date": "2026-12-31",
            "key_dates": [{"date_type": "payment", "date": "2026-03-31", "reminder_days": 10}],
        }
        response = self.client.post("/api/legal/contracts/", payload, format="json", **self.headers)
        self.assertEqual(response.status_code, 201, response.data)
        contract_id = response.data["id"]
        self.assertEqual(len(response.data["key_dates"]), 1)

        response = self.client.post(f"/api/legal/contracts/{contract_id}/sign/", **self.headers)
        self.assertEqual(response.status_code, 400)

        response = self.client.post(f"/api/legal/contracts/{contract_id}/submit-for-review/", **self.headers)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["status"], "pending_review")

    def test_end_before_start_is_rejected(self):
        payload = {"title": "Bad", "party_name": "X", "start_date": "2026-02-01", "end_date": "2026-01-01"}
        response = self.client.post("/api/legal/contracts/", payload, format="json", **self.headers)
        self.assertEqual(response.status_code, 400)
