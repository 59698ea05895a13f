from __future__ import annotations

from decimal import Decimal

from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models

from core.doc_numbers import assign_doc_number
from shared.models import CompanyAwareModel

COST_FIELDS = ("freight_cost", "fuel_surcharge", "customs_fees", "insurance_cost", "other_charges")


class FreightCarrier(CompanyAwareModel):
    class CarrierType(models.TextChoices):
        OCEAN = "ocean", "Ocean"
        AIR = "air", "Air"
        GROUND = "ground", "Ground"
        RAIL = "rail", "Rail"
        MULTIMODAL = "multimodal", "Multimodal"

    name = models.CharField(max_length=255)
    code = models.CharField(max_length=50)
    carrier_type = models.CharField(max_length=20, choices=CarrierType.choices, default=CarrierType.GROUND)
    contact_name = models.CharField(max_length=255, blank=True)
    email = models.EmailField(blank=True)
    phone = models.CharField(max_length=50, blank=True)
    country = models.CharField(max_length=100, blank=True)
    rating = models.DecimalField(
        max_digits=3,
        decimal_places=2,
        default=Decimal("0"),
        validators=[MinValueValidator(Decimal("0")), MaxValueValidator(Decimal("5"))],
    )
    is_preferred = models.BooleanField(default=False)
    is_active = models.BooleanField(default=True)
    notes = models.TextField(blank=True)

    class Meta:
        unique_together = ("company", "code")
        ordering = ["-is_preferred", "name"]

    def __str__(self) -> str:
        return f"{self.code} - {self.name}"


class FreightRfq(CompanyAwareModel):
    class CargoType(models.TextChoices):
        GENERAL = "general", "General cargo"
        HAZARDOUS = "hazardous", "Hazardous"
        REFRIGERATED = "refrigerated", "Refrigerated"
        OVERSIZED = "oversized", "Oversized"
        FRAGILE = "fragile", "Fragile"
        LIQUID = "liquid", "Liquid"
        BULK = "bulk", "Bulk"

    class Status(models.TextChoices):
        DRAFT = "draft", "Draft"
        SENT = "sent", "Sent"
        AWAITING_QUOTES = "awaiting_quotes", "Awaiting Quotes"
        QUOTES_RECEIVED = "quotes_received", "Quotes Received"
        AWARDED = "awarded", "Awarded"
        CANCELLED = "cancelled", "Cancelled"

    rfq_number = models.CharField(max_length=32, unique=True, blank=True)
    title = models.CharField(max_length=255)
    origin = models.CharField(max_length=255, blank=True)
    destination = models.CharField(max_length=255, blank=True)
    cargo_type = models.CharField(max_length=20, choices=CargoType.choices, default=CargoType.GENERAL)
    cargo_description = models.TextField(blank=True)
    weight_kg = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    volume_cbm = models.DecimalField(max_digits=12, decimal_places=3, null=True, blank=True)
    ready_date = models.DateField(null=True, blank=True)
    required_delivery_date = models.DateField(null=True, blank=True)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.DRAFT)
    awarded_quote = models.ForeignKey(
        "logistics.FreightQuote", on_delete=models.SET_NULL, null=True, blank=True, related_name="+"
    )
    purchase_order = models.ForeignKey(
        "procurement.PurchaseOrder", on_delete=models.SET_NULL, null=True, blank=True, related_name="freight_rfqs"
    )
    sent_at = models.DateTimeField(null=True, blank=True)
    cancellation_reason = models.TextField(blank=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [models.Index(fields=["company", "status"])]

    def __str__(self) -> str:
        return f"{self.rfq_number} - {self.title}"

    def save(self, *args, **kwargs):
        assign_doc_number(self, "rfq_number", "FRFQ")
        super().save(*args, **kwargs)

    def _ensure_can_transition(self, allowed_statuses):
        if self.status not in allowed_statuses:
            raise ValueError(f"Freight RFQ {self.rfq_number} is {self.get_status_display().lower()}.")


class FreightQuote(models.Model):
    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        RECEIVED = "received", "Received"
        UNDER_REVIEW = "under_review", "Under Review"
        ACCEPTED = "accepted", "Accepted"
        REJECTED = "rejected", "Rejected"
        EXPIRED = "expired", "Expired"

    OPEN_STATUSES = (Status.PENDING, Status.RECEIVED, Status.UNDER_REVIEW)

    rfq = models.ForeignKey(FreightRfq, on_delete=models.CASCADE, related_name="quotes")
    carrier = models.ForeignKey(FreightCarrier, on_delete=models.PROTECT, related_name="quotes")
    freight_cost = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0"))
    fuel_surcharge = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0"))
    customs_fees = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0"))
    insurance_cost = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0"))
    other_charges = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0"))
    total_cost = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0"))
    currency = models.CharField(max_length=3, default="USD")
    transit_days = models.PositiveIntegerField(null=True, blank=True)
    valid_until = models.DateField(null=True, blank=True)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING)
    notes = models.TextField(blank=True)
    received_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        unique_together = ("rfq", "carrier")
        ordering = ["total_cost", "id"]

    def __str__(self) -> str:
        return f"{self.rfq.rfq_number} / {self.carrier.name}: {self.total_cost} {self.currency}"

    def calculate_total(self) -> Decimal:
        return sum((Decimal(getattr(self, field) or 0) for field in COST_FIELDS), Decimal("0"))

    def save(self, *args, **kwargs):
        self.total_cost = self.calculate_total()
        update_fields = kwargs.get("update_fields")
        if update_fields is not None and "total_cost" not in update_fields:
            kwargs["update_fields"] = [*update_fields, "total_cost"]
        super().save(*args, **kwargs)
