from __future__ import annotations

import calendar
import logging
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional

from django.db import transaction
from django.utils import timezone

from apps.audit.utils import log_audit_event, snapshot

from ..models import (
    CompensationHistory,
    Employee,
    EmployeePayment,
    EmployeeStatus,
    SalaryFrequency,
)

logger = logging.getLogger(__name__)

COMPENSATION_FIELDS = ("salary", "salary_frequency")

ANNUAL_MULTIPLIERS = {
    SalaryFrequency.HOURLY: Decimal("2080"),
    SalaryFrequency.WEEKLY: Decimal("52"),
    SalaryFrequency.BIWEEKLY: Decimal("26"),
    SalaryFrequency.MONTHLY: Decimal("12"),
    SalaryFrequency.ANNUAL: Decimal("1"),
}


def _quantize(value) -> Decimal:
    value = value or Decimal("0.00")
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def annual_salary(salary, frequency: str) -> Decimal:
    """Annualise a salary quoted at ``frequency`` (hourly assumes 2080 hours)."""
    try:
        multiplier = ANNUAL_MULTIPLIERS[frequency]
    except KeyError:
        raise ValueError(f"Unknown salary frequency: {frequency}")
    return _quantize(Decimal(str(salary or 0)) * multiplier)


def is_calendar_month(period_start: date, period_end: date) -> bool:
    return (
        period_start.day == 1
        and period_start.year == period_end.year
        and period_start.month == period_end.month
        and period_end.day == calendar.monthrange(period_end.year, period_end.month)[1]
    )


def period_pay(employee: Employee, period_start: date, period_end: date) -> Decimal:
    """
    Gross salary due to ``employee`` for the period.

    A full calendar month is a twelfth of the annual salary; any other
    period is prorated by days over 365.
    """
    if period_end < period_start:
        raise ValueError("Pay period end cannot be before its start.")
    annual = annual_salary(employee.salary, employee.salary_frequency)
    if is_calendar_month(period_start, period_end):
        return _quantize(annual / 12)
    days = (period_end - period_start).days + 1
    return _quantize(annual * days / 365)


def _user_or_none(user):
    return user if getattr(user, "is_authenticated", False) else None


class CompensationService:
    @staticmethod
    @transaction.atomic
    def change_compensation(
        employee: Employee,
        *,
        salary,
        frequency: str,
        effective_date: Optional[date] = None,
        reason: str = "",
        user=None,
    ) -> CompensationHistory:
        salary = _quantize(salary)
        if salary < 0:
            raise ValueError(f"Salary for {employee.employee_number} cannot be negative.")
        previous_annual = annual_salary(employee.salary, employee.salary_frequency) if employee.salary else None
        new_annual = annual_salary(salary, frequency)
        change_percent = None
        if previous_annual:
            change_percent = _quantize((new_annual - previous_annual) / previous_annual * 100)

        record = CompensationHistory.objects.create(
            employee=employee,
            effective_date=effective_date or timezone.localdate(),
            salary=salary,
            salary_frequency=frequency,
            previous_salary=employee.salary,
            previous_frequency=employee.salary_frequency if employee.salary else "",
            change_percent=change_percent,
            reason=reason,
            created_by=_user_or_none(user),
        )
        before = snapshot(employee, COMPENSATION_FIELDS)
        employee.salary = salary
        employee.salary_frequency = frequency
        employee.save(update_fields=["salary", "salary_frequency", "updated_at"])
        log_audit_event(
            user=user,
            company=employee.company,
            action="UPDATE",
            entity_type="Employee",
            entity_id=employee.pk,
            description=f"Compensation changed for {employee.employee_number}: {reason}".strip(),
            before=before,
            after=snapshot(employee, COMPENSATION_FIELDS),
        )
        return record


class PayrollService:
    @staticmethod
    @transaction.atomic
    def generate_salary_payments(
        company,
        period_start: date,
        period_end: date,
        *,
        payment_date: Optional[date] = None,
        method: str = EmployeePayment.PaymentMethod.DIRECT_DEPOSIT,
        user=None,
    ) -> List[EmployeePayment]:
        """
        Create one pending salary payment per active, salaried employee.

        Employees that already have a non-cancelled salary payment for the
        same period are skipped, so the run can be repeated safely.
        """
        if period_end < period_start:
            raise ValueError("Pay period end cannot be before its start.")
        payment_date = payment_date or period_end
        already_paid = set(
            EmployeePayment.objects.filter(
                company=company,
                payment_type=EmployeePayment.PaymentType.SALARY,
                pay_period_start=period_start,
                pay_period_end=period_end,
            )
            .exclude(status=EmployeePayment.Status.CANCELLED)
            .values_list("employee_id", flat=True)
        )
        employees = Employee.objects.filter(
            company=company,
            status=EmployeeStatus.ACTIVE,
            salary__gt=0,
        ).exclude(pk__in=already_paid)

        payments = []
        for employee in employees:
            if not employee.is_active_on(period_end):
                continue
            amount = period_pay(employee, period_start, period_end)
            payments.append(
                EmployeePayment.objects.create(
                    company=company,
                    company_group=company.company_group,
                    employee=employee,
                    payment_type=EmployeePayment.PaymentType.SALARY,
                    amount=amount,
                    currency=employee.currency,
                    pay_period_start=period_start,
                    pay_period_end=period_end,
                    payment_date=payment_date,
                    payment_method=method,
                    created_by=_user_or_none(user),
                )
            )
        logger.info(
            "Payroll for %s %s..%s: %s payment(s) created, %s skipped as already paid",
            company.code,
            period_start,
            period_end,
            len(payments),
            len(already_paid),
        )
        return payments

    @staticmethod
    def process_payment(payment: EmployeePayment, *, reference: str = "", user=None) -> EmployeePayment:
        payment._ensure_can_transition({EmployeePayment.Status.PENDING})
        payment.status = EmployeePayment.Status.PROCESSED
        payment.processed_at = timezone.now()
        if reference:
            payment.reference = reference
        payment.save(update_fields=["status", "processed_at", "reference", "updated_at"])
        log_audit_event(
            user=user,
            company=payment.company,
            action="PAYMENT",
            entity_type="EmployeePayment",
            entity_id=payment.pk,
            description=f"Payment {payment.payment_number} processed for {payment.employee.employee_number}",
            after={"amount": str(payment.amount), "reference": payment.reference},
        )
        return payment

    @staticmethod
    def cancel_payment(payment: EmployeePayment, *, reason: str = "", user=None) -> EmployeePayment:
        payment._ensure_can_transition({EmployeePayment.Status.PENDING})
        payment.status = EmployeePayment.Status.CANCELLED
        if reason:
            payment.notes = f"{payment.notes}\nCancelled: {reason}".strip()
        payment.save(update_fields=["status", "notes", "updated_at"])
        log_audit_event(
            user=user,
            company=payment.company,
            action="PAYMENT",
            entity_type="EmployeePayment",
            entity_id=payment.pk,
            description=f"Payment {payment.payment_number} cancelled: {reason}".strip(),
        )
        return payment

    @staticmethod
    @transaction.atomic
    def terminate(employee: Employee, termination_date: Optional[date] = None, *, reason: str = "", user=None) -> int:
        """Terminate ``employee`` and cancel pending payments dated after the termination date."""
        if employee.status == EmployeeStatus.TERMINATED:
            raise ValueError(f"Employee {employee.employee_number} is already terminated.")
        termination_date = termination_date or timezone.localdate()
        employee.status = EmployeeStatus.TERMINATED
        employee.termination_date = termination_date
        employee.save(update_fields=["status", "termination_date", "updated_at"])

        cancelled = 0
        for payment in employee.payments.filter(
            status=EmployeePayment.Status.PENDING, payment_date__gt=termination_date
        ):
            PayrollService.cancel_payment(payment, reason="Employee terminated", user=user)
            cancelled += 1
        log_audit_event(
            user=user,
            company=employee.company,
            action="STATUS_CHANGE",
            entity_type="Employee",
            entity_id=employee.pk,
            description=f"Employee {employee.employee_number} terminated on {termination_date}: {reason}".strip(),
            after={"termination_date": termination_date.isoformat(), "cancelled_payments": cancelled},
        )
        return cancelled
