from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from django.db import models
from django.utils import timezone

from core.doc_numbers import assign_doc_number
from shared.models import CompanyAwareModel

User = settings.AUTH_USER_MODEL


class Department(CompanyAwareModel):
    code = models.CharField(max_length=40)
    name = models.CharField(max_length=120)
    description = models.TextField(blank=True)
    manager = models.ForeignKey(
        "Employee",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="managed_departments",
    )

    class Meta:
        unique_together = ("company", "code")
        ordering = ["name"]
        indexes = [
            models.Index(fields=["company", "code"]),
        ]

    def __str__(self) -> str:
        return f"{self.name} ({self.code})"


class EmploymentType(models.TextChoices):
    FULL_TIME = "full_time", "Full-time"
    PART_TIME = "part_time", "Part-time"
    CONTRACTOR = "contractor", "Contractor"
    INTERN = "intern", "Intern"


class EmployeeStatus(models.TextChoices):
    ACTIVE = "active", "Active"
    INACTIVE = "inactive", "Inactive"
    ON_LEAVE = "on_leave", "On Leave"
    TERMINATED = "terminated", "Terminated"


class SalaryFrequency(models.TextChoices):
    HOURLY = "hourly", "Hourly"
    WEEKLY = "weekly", "Weekly"
    BIWEEKLY = "biweekly", "Bi-weekly"
    MONTHLY = "monthly", "Monthly"
    ANNUAL = "annual", "Annual"


class Employee(CompanyAwareModel):
    employee_number = models.CharField(max_length=32, unique=True, blank=True)
    first_name = models.CharField(max_length=100)
    last_name = models.CharField(max_length=100)
    email = models.EmailField(blank=True)
    phone = models.CharField(max_length=30, blank=True)
    hire_date = models.DateField(null=True, blank=True)
    termination_date = models.DateField(null=True, blank=True)
    department = models.ForeignKey(
        Department,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="employees",
    )
    manager = models.ForeignKey(
        "self",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="direct_reports",
    )
    job_title = models.CharField(max_length=150, blank=True)
    employment_type = models.CharField(
        max_length=20,
        choices=EmploymentType.choices,
        default=EmploymentType.FULL_TIME,
    )
    status = models.CharField(
        max_length=20,
        choices=EmployeeStatus.choices,
        default=EmployeeStatus.ACTIVE,
    )
    salary = models.DecimalField(max_digits=20, decimal_places=2, null=True, blank=True)
    salary_frequency = models.CharField(
        max_length=20,
        choices=SalaryFrequency.choices,
        default=SalaryFrequency.MONTHLY,
    )
    currency = models.CharField(max_length=3, default="USD")
    notes = models.TextField(blank=True)

    class Meta:
        ordering = ["last_name", "first_name"]
        indexes = [
            models.Index(fields=["company", "status"]),
            models.Index(fields=["company", "department"]),
        ]

    def __str__(self) -> str:
        return f"{self.employee_number} - {self.full_name}"

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def save(self, *args, **kwargs):
        assign_doc_number(self, "employee_number", "EMP")
        super().save(*args, **kwargs)

    def is_active_on(self, target_date) -> bool:
        if self.status == EmployeeStatus.TERMINATED and (
            self.termination_date is None or self.termination_date < target_date
        ):
            return False
        if self.hire_date and self.hire_date > target_date:
            return False
        return True


class CompensationHistory(models.Model):
    employee = models.ForeignKey(Employee, on_delete=models.CASCADE, related_name="compensation_history")
    effective_date = models.DateField()
    salary = models.DecimalField(max_digits=20, decimal_places=2)
    salary_frequency = models.CharField(max_length=20, choices=SalaryFrequency.choices)
    previous_salary = models.DecimalField(max_digits=20, decimal_places=2, null=True, blank=True)
    previous_frequency = models.CharField(max_length=20, choices=SalaryFrequency.choices, blank=True)
    change_percent = models.DecimalField(max_digits=9, decimal_places=2, null=True, blank=True)
    reason = models.CharField(max_length=255, blank=True)
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name="+")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-effective_date", "-id"]
        verbose_name_plural = "Compensation history"

    def __str__(self) -> str:
        return f"{self.employee.employee_number}: {self.salary} {self.salary_frequency} from {self.effective_date}"


class EmployeePayment(CompanyAwareModel):
    class PaymentType(models.TextChoices):
        SALARY = "salary", "Salary"
        BONUS = "bonus", "Bonus"
        COMMISSION = "commission", "Commission"
        REIMBURSEMENT = "reimbursement", "Reimbursement"
        OTHER = "other", "Other"

    class PaymentMethod(models.TextChoices):
        CHECK = "check", "Check"
        DIRECT_DEPOSIT = "direct_deposit", "Direct Deposit"
        WIRE = "wire", "Wire"
        OTHER = "other", "Other"

    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        PROCESSED = "processed", "Processed"
        CANCELLED = "cancelled", "Cancelled"

    payment_number = models.CharField(max_length=32, unique=True, blank=True)
    employee = models.ForeignKey(Employee, on_delete=models.PROTECT, related_name="payments")
    payment_type = models.CharField(max_length=20, choices=PaymentType.choices, default=PaymentType.SALARY)
    amount = models.DecimalField(max_digits=20, decimal_places=2)
    currency = models.CharField(max_length=3, default="USD")
    pay_period_start = models.DateField(null=True, blank=True)
    pay_period_end = models.DateField(null=True, blank=True)
    payment_date = models.DateField(default=timezone.localdate)
    payment_method = models.CharField(
        max_length=20, choices=PaymentMethod.choices, default=PaymentMethod.DIRECT_DEPOSIT
    )
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING)
    processed_at = models.DateTimeField(null=True, blank=True)
    reference = models.CharField(max_length=100, blank=True)
    notes = models.TextField(blank=True)

    class Meta:
        ordering = ["-payment_date", "-created_at"]
        indexes = [
            models.Index(fields=["company", "status"]),
            models.Index(fields=["employee", "pay_period_start", "pay_period_end"]),
        ]

    def __str__(self) -> str:
        return f"{self.payment_number} - {self.employee.full_name} {self.amount}"

    def save(self, *args, **kwargs):
        assign_doc_number(self, "payment_number", "PAY")
        if self.amount is not None and self.amount < Decimal("0"):
            raise ValueError("Payment amount cannot be negative.")
        super().save(*args, **kwargs)

    def _ensure_can_transition(self, allowed_statuses):
        if self.status not in allowed_statuses:
            raise ValueError(f"Payment {self.payment_number} cannot transition from {self.status}.")
