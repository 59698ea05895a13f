from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from django.db import models
from django.utils import timezone

from core.doc_numbers import assign_doc_number
from shared.models import CompanyAwareModel

User = settings.AUTH_USER_MODEL


class DemandForecast(CompanyAwareModel):
    class Method(models.TextChoices):
        HISTORICAL_AVG = "historical_avg", "Historical Average"
        TREND = "trend", "Linear Trend"
        MANUAL = "manual", "Manual"

    class Trend(models.TextChoices):
        UP = "up", "Up"
        DOWN = "down", "Down"
        STABLE = "stable", "Stable"

    class Status(models.TextChoices):
        DRAFT = "draft", "Draft"
        ACTIVE = "active", "Active"
        SUPERSEDED = "superseded", "Superseded"
        EXPIRED = "expired", "Expired"

    forecast_number = models.CharField(max_length=32, unique=True, blank=True)
    product = models.ForeignKey("inventory.Product", on_delete=models.CASCADE, related_name="forecasts")
    forecast_period_start = models.DateField()
    forecast_period_end = models.DateField()
    forecasted_quantity = models.DecimalField(max_digits=15, decimal_places=3, default=Decimal("0"))
    unit = models.CharField(max_length=20, default="EA")
    confidence_level = models.DecimalField(max_digits=5, decimal_places=2, default=Decimal("0"))
    forecast_method = models.CharField(max_length=20, choices=Method.choices, default=Method.MANUAL)
    data_points_used = models.PositiveIntegerField(default=0)
    analysis = models.TextField(blank=True)
    trend_direction = models.CharField(max_length=10, choices=Trend.choices, default=Trend.STABLE)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.DRAFT)

    class Meta:
        ordering = ["-forecast_period_start", "-created_at"]
        indexes = [models.Index(fields=["company", "product", "status"])]

    def __str__(self) -> str:
        return f"{self.forecast_number} {self.product.name} {self.forecast_period_start:%Y-%m-%d}"

    def save(self, *args, **kwargs):
        if self.forecast_period_end and self.forecast_period_start and self.forecast_period_end < self.forecast_period_start:
            raise ValueError("Forecast period end must not be before its start.")
        assign_doc_number(self, "forecast_number", "FC")
        super().save(*args, **kwargs)


class ProductionPlan(CompanyAwareModel):
    class Status(models.TextChoices):
        DRAFT = "draft", "Draft"
        APPROVED = "approved", "Approved"
        IN_PROGRESS = "in_progress", "In Progress"
        COMPLETED = "completed", "Completed"
        CANCELLED = "cancelled", "Cancelled"

    plan_number = models.CharField(max_length=32, unique=True, blank=True)
    forecast = models.ForeignKey(
        DemandForecast, on_delete=models.SET_NULL, null=True, blank=True, related_name="production_plans"
    )
    product = models.ForeignKey("inventory.Product", on_delete=models.PROTECT, related_name="production_plans")
    bom = models.ForeignKey("production.BillOfMaterials", on_delete=models.PROTECT, related_name="production_plans")
    planned_quantity = models.DecimalField(max_digits=15, decimal_places=3, default=Decimal("0"))
    planned_start_date = models.DateField()
    planned_end_date = models.DateField(null=True, blank=True)
    current_inventory = models.DecimalField(max_digits=15, decimal_places=3, default=Decimal("0"))
    safety_stock = models.DecimalField(max_digits=15, decimal_places=3, default=Decimal("0"))
    reorder_point = models.DecimalField(max_digits=15, decimal_places=3, default=Decimal("0"))
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.DRAFT)
    approved_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name="+")
    approved_at = models.DateTimeField(null=True, blank=True)
    notes = models.TextField(blank=True)

    class Meta:
        ordering = ["-planned_start_date", "-created_at"]

    def __str__(self) -> str:
        return f"{self.plan_number} ({self.get_status_display()})"

    def save(self, *args, **kwargs):
        assign_doc_number(self, "plan_number", "PP")
        super().save(*args, **kwargs)

    def _ensure_can_transition(self, allowed_statuses):
        if self.status not in allowed_statuses:
            raise ValueError(f"Production plan {self.plan_number} cannot transition from {self.status}.")

    def approve(self, user=None):
        self._ensure_can_transition({self.Status.DRAFT})
        self.status = self.Status.APPROVED
        self.approved_by = user if getattr(user, "is_authenticated", False) else None
        self.approved_at = timezone.now()
        self.save(update_fields=["status", "approved_by", "approved_at", "updated_at"])

    def start(self):
        self._ensure_can_transition({self.Status.APPROVED})
        self.status = self.Status.IN_PROGRESS
        self.save(update_fields=["status", "updated_at"])

    def complete(self):
        self._ensure_can_transition({self.Status.IN_PROGRESS})
        self.status = self.Status.COMPLETED
        self.save(update_fields=["status", "updated_at"])

    def cancel(self):
        self._ensure_can_transition({self.Status.DRAFT, self.Status.APPROVED})
        self.status = self.Status.CANCELLED
        self.save(update_fields=["status", "updated_at"])


class MaterialRequirement(CompanyAwareModel):
    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        PO_GENERATED = "po_generated", "PO Generated"
        ORDERED = "ordered", "Ordered"
        RECEIVED = "received", "Received"

    production_plan = models.ForeignKey(ProductionPlan, on_delete=models.CASCADE, related_name="requirements")
    raw_material = models.ForeignKey("inventory.RawMaterial", on_delete=models.PROTECT, related_name="requirements")
    required_quantity = models.DecimalField(max_digits=15, decimal_places=4, default=Decimal("0"))
    unit = models.CharField(max_length=20, default="EA")
    current_inventory = models.DecimalField(max_digits=15, decimal_places=4, default=Decimal("0"))
    on_order_quantity = models.DecimalField(max_digits=15, decimal_places=4, default=Decimal("0"))
    shortage_quantity = models.DecimalField(max_digits=15, decimal_places=4, default=Decimal("0"))
    suggested_order_quantity = models.DecimalField(max_digits=15, decimal_places=4, default=Decimal("0"))
    preferred_vendor = models.ForeignKey(
        "procurement.Vendor", on_delete=models.SET_NULL, null=True, blank=True, related_name="+"
    )
    estimated_unit_cost = models.DecimalField(max_digits=20, decimal_places=4, default=Decimal("0"))
    estimated_total_cost = models.DecimalField(max_digits=20, decimal_places=2, default=Decimal("0"))
    lead_time_days = models.PositiveIntegerField(default=0)
    required_by_date = models.DateField(null=True, blank=True)
    latest_order_date = models.DateField(null=True, blank=True)
    estimated_delivery_date = models.DateField(null=True, blank=True)
    days_until_required = models.IntegerField(null=True, blank=True)
    is_urgent = models.BooleanField(default=False)
    priority_score = models.PositiveSmallIntegerField(default=0)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING)

    class Meta:
        ordering = ["-priority_score", "required_by_date", "id"]

    def __str__(self) -> str:
        return f"{self.raw_material.name}: short {self.shortage_quantity}"


class SuggestedPurchaseOrder(CompanyAwareModel):
    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        APPROVED = "approved", "Approved"
        REJECTED = "rejected", "Rejected"
        CONVERTED = "converted", "Converted"

    OPEN_STATUSES = (Status.PENDING, Status.APPROVED)

    suggestion_number = models.CharField(max_length=32, unique=True, blank=True)
    vendor = models.ForeignKey("procurement.Vendor", on_delete=models.PROTECT, related_name="suggested_orders")
    production_plan = models.ForeignKey(
        ProductionPlan, on_delete=models.SET_NULL, null=True, blank=True, related_name="suggested_orders"
    )
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING)
    total_amount = models.DecimalField(max_digits=20, decimal_places=2, default=Decimal("0"))
    currency = models.CharField(max_length=3, default="USD")
    priority_score = models.PositiveSmallIntegerField(default=0)
    is_urgent = models.BooleanField(default=False)
    required_by_date = models.DateField(null=True, blank=True)
    suggested_order_date = models.DateField(null=True, blank=True)
    reason = models.TextField(blank=True)
    converted_po = models.ForeignKey(
        "procurement.PurchaseOrder", on_delete=models.SET_NULL, null=True, blank=True, related_name="+"
    )
    approved_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name="+")
    approved_at = models.DateTimeField(null=True, blank=True)
    rejected_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name="+")
    rejected_at = models.DateTimeField(null=True, blank=True)
    rejection_reason = models.TextField(blank=True)

    class Meta:
        ordering = ["-priority_score", "suggested_order_date", "-created_at"]

    def __str__(self) -> str:
        return f"{self.suggestion_number} ({self.vendor.name})"

    def save(self, *args, **kwargs):
        assign_doc_number(self, "suggestion_number", "SPO")
        super().save(*args, **kwargs)


class SuggestedPurchaseOrderItem(models.Model):
    suggestion = models.ForeignKey(SuggestedPurchaseOrder, on_delete=models.CASCADE, related_name="items")
    raw_material = models.ForeignKey("inventory.RawMaterial", on_delete=models.PROTECT, related_name="+")
    requirement = models.ForeignKey(
        MaterialRequirement, on_delete=models.SET_NULL, null=True, blank=True, related_name="suggestion_items"
    )
    quantity = models.DecimalField(max_digits=15, decimal_places=4)
    unit = models.CharField(max_length=20, default="EA")
    unit_price = models.DecimalField(max_digits=20, decimal_places=4, default=Decimal("0"))
    total_amount = models.DecimalField(max_digits=20, decimal_places=2, default=Decimal("0"))

    class Meta:
        ordering = ["suggestion", "id"]

    def __str__(self) -> str:
        return f"{self.raw_material.name} x {self.quantity}"
