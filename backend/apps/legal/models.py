from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from django.db import models
from django.utils import timezone

from core.doc_numbers import assign_doc_number
from shared.models import CompanyAwareModel

User = settings.AUTH_USER_MODEL


class Contract(CompanyAwareModel):
    class ContractType(models.TextChoices):
        CUSTOMER = "customer", "Customer"
        VENDOR = "vendor", "Vendor"
        EMPLOYMENT = "employment", "Employment"
        NDA = "nda", "Non-disclosure"
        PARTNERSHIP = "partnership", "Partnership"
        LEASE = "lease", "Lease"
        SERVICE = "service", "Service"
        OTHER = "other", "Other"

    class Status(models.TextChoices):
        DRAFT = "draft", "Draft"
        PENDING_REVIEW = "pending_review", "Pending Review"
        PENDING_SIGNATURE = "pending_signature", "Pending Signature"
        ACTIVE = "active", "Active"
        EXPIRED = "expired", "Expired"
        TERMINATED = "terminated", "Terminated"
        RENEWED = "renewed", "Renewed"

    contract_number = models.CharField(max_length=32, unique=True, blank=True)
    title = models.CharField(max_length=255)
    contract_type = models.CharField(max_length=20, choices=ContractType.choices, default=ContractType.OTHER)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.DRAFT)
    party_name = models.CharField(max_length=255)
    party_type = models.CharField(max_length=50, blank=True)
    vendor = models.ForeignKey(
        "procurement.Vendor", on_delete=models.SET_NULL, null=True, blank=True, related_name="contracts"
    )
    customer = models.ForeignKey(
        "sales.Customer", on_delete=models.SET_NULL, null=True, blank=True, related_name="contracts"
    )
    start_date = models.DateField(null=True, blank=True)
    end_date = models.DateField(null=True, blank=True)
    renewal_date = models.DateField(null=True, blank=True)
    auto_renewal = models.BooleanField(default=False)
    renewal_term_months = models.PositiveIntegerField(null=True, blank=True)
    value = models.DecimalField(max_digits=20, decimal_places=2, default=Decimal("0"))
    currency = models.CharField(max_length=3, default="USD")
    description = models.TextField(blank=True)
    terms = models.TextField(blank=True)
    signed_at = models.DateTimeField(null=True, blank=True)
    terminated_at = models.DateTimeField(null=True, blank=True)
    termination_reason = models.TextField(blank=True)
    renewed_from = models.ForeignKey(
        "self", on_delete=models.SET_NULL, null=True, blank=True, related_name="renewals"
    )
    owner = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name="owned_contracts")

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["company", "status"]),
            models.Index(fields=["company", "end_date"]),
        ]

    def __str__(self) -> str:
        return f"{self.contract_number} - {self.title}"

    def save(self, *args, **kwargs):
        assign_doc_number(self, "contract_number", "CTR")
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError(f"Contract {self.contract_number} ends before it starts.")
        super().save(*args, **kwargs)

    def _ensure_can_transition(self, allowed_statuses):
        if self.status not in allowed_statuses:
            raise ValueError(f"Contract {self.contract_number} cannot transition from {self.status}.")


class ContractKeyDate(models.Model):
    class DateType(models.TextChoices):
        RENEWAL_NOTICE = "renewal_notice", "Renewal Notice"
        PAYMENT = "payment", "Payment"
        DELIVERABLE = "deliverable", "Deliverable"
        REVIEW = "review", "Review"
        EXPIRY = "expiry", "Expiry"
        OTHER = "other", "Other"

    contract = models.ForeignKey(Contract, on_delete=models.CASCADE, related_name="key_dates")
    date_type = models.CharField(max_length=20, choices=DateType.choices, default=DateType.OTHER)
    date = models.DateField()
    description = models.CharField(max_length=255, blank=True)
    reminder_days = models.PositiveIntegerField(default=30)
    reminder_sent = models.BooleanField(default=False)
    reminder_sent_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["date", "id"]

    def __str__(self) -> str:
        return f"{self.contract.contract_number}: {self.get_date_type_display()} on {self.date}"


class Dispute(CompanyAwareModel):
    class DisputeType(models.TextChoices):
        CUSTOMER = "customer", "Customer"
        VENDOR = "vendor", "Vendor"
        EMPLOYEE = "employee", "Employee"
        LEGAL = "legal", "Legal"
        REGULATORY = "regulatory", "Regulatory"
        OTHER = "other", "Other"

    class Status(models.TextChoices):
        OPEN = "open", "Open"
        INVESTIGATING = "investigating", "Investigating"
        NEGOTIATING = "negotiating", "Negotiating"
        RESOLVED = "resolved", "Resolved"
        ESCALATED = "escalated", "Escalated"
        CLOSED = "closed", "Closed"

    class Priority(models.TextChoices):
        LOW = "low", "Low"
        MEDIUM = "medium", "Medium"
        HIGH = "high", "High"
        CRITICAL = "critical", "Critical"

    UNRESOLVED_STATUSES = (Status.OPEN, Status.INVESTIGATING, Status.NEGOTIATING, Status.ESCALATED)

    dispute_number = models.CharField(max_length=32, unique=True, blank=True)
    title = models.CharField(max_length=255)
    dispute_type = models.CharField(max_length=20, choices=DisputeType.choices, default=DisputeType.OTHER)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.OPEN)
    priority = models.CharField(max_length=10, choices=Priority.choices, default=Priority.MEDIUM)
    party_name = models.CharField(max_length=255, blank=True)
    contract = models.ForeignKey(Contract, on_delete=models.SET_NULL, null=True, blank=True, related_name="disputes")
    description = models.TextField(blank=True)
    estimated_value = models.DecimalField(max_digits=20, decimal_places=2, null=True, blank=True)
    actual_value = models.DecimalField(max_digits=20, decimal_places=2, null=True, blank=True)
    filed_date = models.DateField(default=timezone.localdate)
    resolved_date = models.DateField(null=True, blank=True)
    resolution = models.TextField(blank=True)
    assigned_to = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name="+")

    class Meta:
        ordering = ["-filed_date", "-created_at"]
        indexes = [
            models.Index(fields=["company", "status"]),
        ]

    def __str__(self) -> str:
        return f"{self.dispute_number} - {self.title}"

    def save(self, *args, **kwargs):
        assign_doc_number(self, "dispute_number", "DSP")
        super().save(*args, **kwargs)

    def _ensure_can_transition(self, allowed_statuses):
        if self.status not in allowed_statuses:
            raise ValueError(f"Dispute {self.dispute_number} cannot transition from {self.status}.")

    def _set_status(self, status):
        self.status = status
        self.save(update_fields=["status", "updated_at"])

    def investigate(self):
        self._ensure_can_transition({self.Status.OPEN, self.Status.ESCALATED})
        self._set_status(self.Status.INVESTIGATING)

    def negotiate(self):
        self._ensure_can_transition({self.Status.OPEN, self.Status.INVESTIGATING, self.Status.ESCALATED})
        self._set_status(self.Status.NEGOTIATING)

    def escalate(self):
        self._ensure_can_transition({self.Status.OPEN, self.Status.INVESTIGATING, self.Status.NEGOTIATING})
        self._set_status(self.Status.ESCALATED)

    def resolve(self, resolution: str, actual_value=None, resolved_date=None):
        self._ensure_can_transition(set(self.UNRESOLVED_STATUSES))
        if not resolution:
            raise ValueError(f"Dispute {self.dispute_number} needs a resolution summary.")
        self.status = self.Status.RESOLVED
        self.resolution = resolution
        self.actual_value = actual_value
        self.resolved_date = resolved_date or timezone.localdate()
        self.save(update_fields=["status", "resolution", "actual_value", "resolved_date", "updated_at"])

    def close(self):
        self._ensure_can_transition({self.Status.RESOLVED})
        self._set_status(self.Status.CLOSED)

    def reopen(self):
        self._ensure_can_transition({self.Status.RESOLVED, self.Status.CLOSED})
        self.status = self.Status.OPEN
        self.resolved_date = None
        self.save(update_fields=["status", "resolved_date", "updated_at"])
