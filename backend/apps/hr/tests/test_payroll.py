from datetime import date, timedelta
from decimal import Decimal

from django.test import SimpleTestCase, TestCase
from django.utils import timezone
from rest_framework.test import APITestCase

from apps.audit.models import AuditLog
from apps.hr.models import Department, Employee, EmployeePayment, EmployeeStatus, SalaryFrequency
from apps.hr.services import CompensationService, PayrollService, annual_salary, period_pay
from apps.hr.tasks import send_payroll_reminders
from shared.testing import create_company_context


class AnnualSalaryTests(SimpleTestCase):
    def test_frequencies(self):
        self.assertEqual(annual_salary(Decimal("25"), SalaryFrequency.HOURLY), Decimal("52000.00"))
        self.assertEqual(annual_salary(Decimal("1000"), SalaryFrequency.WEEKLY), Decimal("52000.00"))
        self.assertEqual(annual_salary(Decimal("2000"), SalaryFrequency.BIWEEKLY), Decimal("52000.00"))
        self.assertEqual(annual_salary(Decimal("5000"), SalaryFrequency.MONTHLY), Decimal("60000.00"))
        self.assertEqual(annual_salary(Decimal("80000"), SalaryFrequency.ANNUAL), Decimal("80000.00"))

    def test_unknown_frequency(self):
        with self.assertRaises(ValueError):
            annual_salary(Decimal("10"), "daily")


class PayrollTests(TestCase):
    def setUp(self):
        self.group, self.company, self.user = create_company_context(code="HRP", username="payroll")
        self.department = Department.objects.create(company=self.company, code="OPS", name="Operations")
        self.monthly = self._employee("Ada", salary=Decimal("5000"), salary_frequency=SalaryFrequency.MONTHLY)
        self.hourly = self._employee("Ben", salary=Decimal("25"), salary_frequency=SalaryFrequency.HOURLY)

    def _employee(self, first_name, **kwargs):
        kwargs.setdefault("hire_date", date(2024, 1, 1))
        return Employee.objects.create(
            company=self.company,
            first_name=first_name,
            last_name="Tester",
            department=self.department,
            **kwargs,
        )

    def test_period_pay(self):
        self.assertTrue(self.monthly.employee_number.startswith("EMP-"))
        self.assertEqual(period_pay(self.monthly, date(2026, 1, 1), date(2026, 1, 31)), Decimal("5000.00"))
        self.assertEqual(period_pay(self.monthly, date(2026, 1, 1), date(2026, 1, 15)), Decimal("2465.75"))
        self.assertEqual(period_pay(self.hourly, date(2026, 2, 1), date(2026, 2, 28)), Decimal("4333.33"))

    def test_change_compensation_records_history(self):
        record = CompensationService.change_compensation(
            self.monthly,
            salary=Decimal("66000"),
            frequency=SalaryFrequency.ANNUAL,
            effective_date=date(2026, 1, 1),
            reason="Annual review",
            user=self.user,
        )
        self.monthly.refresh_from_db()
        self.assertEqual(record.change_percent, Decimal("10.00"))
        self.assertEqual(record.previous_salary, Decimal("5000.00"))
        self.assertEqual(self.monthly.salary, Decimal("66000.00"))
        self.assertEqual(self.monthly.salary_frequency, SalaryFrequency.ANNUAL)

    def test_first_salary_has_no_change_percent(self):
        newcomer = self._employee("Cal")
        record = CompensationService.change_compensation(
            newcomer, salary=Decimal("4000"), frequency=SalaryFrequency.MONTHLY
        )
        self.assertIsNone(record.change_percent)

    def test_generate_salary_payments_is_repeatable(self):
        self._employee("Dee", salary=Decimal("4000"), status=EmployeeStatus.TERMINATED)
        self._employee("Eve")
        self._employee("Fay", salary=Decimal("4000"), hire_date=date(2026, 3, 1))

        payments = PayrollService.generate_salary_payments(self.company, date(2026, 1, 1), date(2026, 1, 31))

        amounts = {payment.employee_id: payment.amount for payment in payments}
        self.assertEqual(amounts, {self.monthly.pk: Decimal("5000.00"), self.hourly.pk: Decimal("4333.33")})
        self.assertTrue(all(payment.status == EmployeePayment.Status.PENDING for payment in payments))
        self.assertTrue(all(payment.payment_date == date(2026, 1, 31) for payment in payments))

        self.assertEqual(
            PayrollService.generate_salary_payments(self.company, date(2026, 1, 1), date(2026, 1, 31)), []
        )
        PayrollService.cancel_payment(payments[0], reason="Wrong bank")
        rerun = PayrollService.generate_salary_payments(self.company, date(2026, 1, 1), date(2026, 1, 31))
        self.assertEqual([payment.employee_id for payment in rerun], [payments[0].employee_id])

    def test_process_and_cancel_rules(self):
        payment = EmployeePayment.objects.create(
            company=self.company,
            employee=self.monthly,
            payment_type=EmployeePayment.PaymentType.BONUS,
            amount=Decimal("750.00"),
        )
        self.assertTrue(payment.payment_number.startswith("PAY-"))
        PayrollService.process_payment(payment, reference="TRX-1")
        self.assertEqual(payment.status, EmployeePayment.Status.PROCESSED)
        self.assertIsNotNone(payment.processed_at)
        with self.assertRaises(ValueError):
            PayrollService.cancel_payment(payment)
        with self.assertRaises(ValueError):
            PayrollService.process_payment(payment)
        entry = AuditLog.objects.get(entity_type="EmployeePayment", entity_id=str(payment.pk))
        self.assertEqual(entry.action, "PAYMENT")
        self.assertIn(entry.action, dict(AuditLog.ACTION_CHOICES))

    def test_terminate_cancels_later_pending_payments(self):
        early = EmployeePayment.objects.create(
            company=self.company, employee=self.monthly, amount=Decimal("100"), payment_date=date(2026, 1, 10)
        )
        late = EmployeePayment.objects.create(
            company=self.company, employee=self.monthly, amount=Decimal("5000"), payment_date=date(2026, 1, 31)
        )

        cancelled = PayrollService.terminate(self.monthly, date(2026, 1, 20), reason="Resigned")

        self.assertEqual(cancelled, 1)
        early.refresh_from_db()
        late.refresh_from_db()
        self.monthly.refresh_from_db()
        self.assertEqual(early.status, EmployeePayment.Status.PENDING)
        self.assertEqual(late.status, EmployeePayment.Status.CANCELLED)
        self.assertEqual(self.monthly.status, EmployeeStatus.TERMINATED)
        self.assertEqual(self.monthly.termination_date, date(2026, 1, 20))
        actions = set(AuditLog.objects.filter(company=self.company).values_list("action", flat=True))
        self.assertEqual(actions, {"PAYMENT", "STATUS_CHANGE"})
        with self.assertRaises(ValueError):
            PayrollService.terminate(self.monthly)

    def test_payroll_reminder_task(self):
        today = timezone.localdate()
        EmployeePayment.objects.create(
            company=self.company, employee=self.monthly, amount=Decimal("100"), payment_date=today + timedelta(days=2)
        )
        EmployeePayment.objects.create(
            company=self.company, employee=self.hourly, amount=Decimal("50"), payment_date=today - timedelta(days=1)
        )
        EmployeePayment.objects.create(
            company=self.company, employee=self.hourly, amount=Decimal("75"), payment_date=today + timedelta(days=30)
        )

        result = send_payroll_reminders.apply().get()

        self.assertEqual(result["status"], "ok")
        self.assertEqual(
            result["companies"], [{"company": "HRP", "pending": 2, "overdue": 1, "amount": "150.00"}]
        )


class EmployeeAPITests(APITestCase):
    def setUp(self):
        self.group, self.company, self.user = create_company_context(code="HRAPI", username="hr-api")
        self.client.force_authenticate(user=self.user)
        self.headers = {"HTTP_X_COMPANY_ID": str(self.company.id)}

    def test_create_employee_and_run_payroll(self):
        payload = {
            "first_name": "Gus",
            "last_name": "Miller",
            "email": "gus@example.com",
            "salary": "3000.00",
            "salary_frequency": "monthly",
            "hire_date": "2025-06-01",
        }
        response = self.client.post("/api/hr/employees/", payload, format="json", **self.headers)
        self.assertEqual(response.status_code, 201, response.data)
        self.assertEqual(response.data["annual_salary"], "36000.00")
        employee_id = response.data["id"]

        response = self.client.post(
            f"/api/hr/employees/{employee_id}/compensation/",
            {"salary": "3300.00", "frequency": "monthly", "reason": "Promotion"},
            format="json",
            **self.headers,
        )
        self.assertEqual(response.status_code, 201, response.data)
        self.assertEqual(response.data["change_percent"], "10.00")

        response = self.client.post(
            "/api/hr/payments/generate-salaries/",
            {"period_start": "2026-01-01", "period_end": "2026-01-31"},
            format="json",
            **self.headers,
        )
        self.assertEqual(response.status_code, 201, response.data)
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]["amount"], "3300.00")
