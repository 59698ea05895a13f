from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP

from django.conf import settings
from django.db import models
from django.utils import timezone

from core.doc_numbers import assign_doc_number
from shared.models import CompanyAwareModel

User = settings.AUTH_USER_MODEL
TWOPLACES = Decimal("0.01")


class Vendor(CompanyAwareModel):
    class Status(models.TextChoices):
        ACTIVE = "active", "Active"
        INACTIVE = "inactive", "Inactive"
        BLOCKED = "blocked", "Blocked"

    code = models.CharField(max_length=20)
    name = models.CharField(max_length=255)
    email = models.EmailField(blank=True)
    phone = models.CharField(max_length=32, blank=True)
    contact_name = models.CharField(max_length=255, blank=True)
    address = models.TextField(blank=True)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.ACTIVE)
    default_lead_time_days = models.PositiveIntegerField(default=0)
    currency = models.CharField(max_length=3, default="USD")
    payment_terms = models.IntegerField(default=30, help_text="Payment terms in days")
    notes = models.TextField(blank=True)

    class Meta:
        unique_together = ("company", "code")
        ordering = ["company", "code"]

    def __str__(self) -> str:
        return f"{self.code} - {self.name}"


class PurchaseOrder(CompanyAwareModel):
    class Status(models.TextChoices):
        DRAFT = "draft", "Draft"
        SENT = "sent", "Sent"
        CONFIRMED = "confirmed", "Confirmed"
        PARTIAL = "partial", "Partially Received"
        RECEIVED = "received", "Received"
        CANCELLED = "cancelled", "Cancelled"

    OPEN_STATUSES = (Status.DRAFT, Status.SENT, Status.CONFIRMED, Status.PARTIAL)
    ON_ORDER_STATUSES = (Status.SENT, Status.CONFIRMED, Status.PARTIAL)

    po_number = models.CharField(max_length=32, unique=True, blank=True)
    vendor = models.ForeignKey(Vendor, on_delete=models.PROTECT, related_name="purchase_orders")
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.DRAFT)
    order_date = models.DateField(default=timezone.localdate)
    expected_date = models.DateField(null=True, blank=True)
    currency = models.CharField(max_length=3, default="USD")
    subtotal = models.DecimalField(max_digits=20, decimal_places=2, default=Decimal("0"))
    tax_amount = models.DecimalField(max_digits=20, decimal_places=2, default=Decimal("0"))
    shipping_amount = models.DecimalField(max_digits=20, decimal_places=2, default=Decimal("0"))
    total_amount = models.DecimalField(max_digits=20, decimal_places=2, default=Decimal("0"))
    notes = models.TextField(blank=True)
    approved_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name="+")
    approved_at = models.DateTimeField(null=True, blank=True)
    sent_at = models.DateTimeField(null=True, blank=True)
    received_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-order_date", "-created_at"]
        indexes = [
            models.Index(fields=["company", "status"]),
        ]

    def __str__(self) -> str:
        return f"{self.po_number} ({self.get_status_display()})"

    def save(self, *args, **kwargs):
        assign_doc_number(self, "po_number", "PO")
        super().save(*args, **kwargs)

    def refresh_totals(self, commit: bool = True) -> Decimal:
        subtotal = self.items.aggregate(value=models.Sum("total_amount"))["value"] or Decimal("0")
        self.subtotal = subtotal
        self.total_amount = subtotal + (self.tax_amount or Decimal("0")) + (self.shipping_amount or Decimal("0"))
        if commit:
            self.save(update_fields=["subtotal", "total_amount", "updated_at"])
        return self.total_amount

    def _ensure_can_transition(self, allowed_statuses):
        if self.status not in allowed_statuses:
            raise ValueError(f"Purchase order {self.po_number} cannot transition from {self.status}.")

    def mark_sent(self):
        self._ensure_can_transition({self.Status.DRAFT})
        if not self.items.exists():
            raise ValueError(f"Purchase order {self.po_number} has no items.")
        self.status = self.Status.SENT
        self.sent_at = timezone.now()
        self.save(update_fields=["status", "sent_at", "updated_at"])

    def mark_confirmed(self):
        self._ensure_can_transition({self.Status.SENT})
        self.status = self.Status.CONFIRMED
        self.save(update_fields=["status", "updated_at"])

    def cancel(self, reason: str = ""):
        self._ensure_can_transition({self.Status.DRAFT, self.Status.SENT, self.Status.CONFIRMED})
        self.status = self.Status.CANCELLED
        if reason:
            self.notes = f"{self.notes}\nCancelled: {reason}".strip()
        self.save(update_fields=["status", "notes", "updated_at"])

    def update_receipt_status(self):
        items = list(self.items.all())
        if not items:
            return
        if all(item.remaining_quantity <= Decimal("0") for item in items):
            self.status = self.Status.RECEIVED
            self.received_at = timezone.now()
        elif any(item.received_quantity > Decimal("0") for item in items):
            self.status = self.Status.PARTIAL
        self.save(update_fields=["status", "received_at", "updated_at"])


class PurchaseOrderItem(models.Model):
    purchase_order = models.ForeignKey(PurchaseOrder, on_delete=models.CASCADE, related_name="items")
    product = models.ForeignKey(
        "inventory.Product",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="purchase_order_items",
    )
    raw_material = models.ForeignKey(
        "inventory.RawMaterial",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="purchase_order_items",
    )
    description = models.CharField(max_length=255, blank=True)
    quantity = models.DecimalField(max_digits=15, decimal_places=3)
    received_quantity = models.DecimalField(max_digits=15, decimal_places=3, default=Decimal("0"))
    unit_price = models.DecimalField(max_digits=20, decimal_places=4, default=Decimal("0"))
    total_amount = models.DecimalField(max_digits=20, decimal_places=2, default=Decimal("0"))

    class Meta:
        ordering = ["purchase_order", "id"]

    def __str__(self) -> str:
        return f"{self.purchase_order.po_number}: {self.description or self.item_label}"

    @property
    def item_label(self) -> str:
        item = self.product or self.raw_material
        return str(item) if item else ""

    @property
    def remaining_quantity(self) -> Decimal:
        return max((self.quantity or Decimal("0")) - (self.received_quantity or Decimal("0")), Decimal("0"))

    def save(self, *args, **kwargs):
        if not self.product_id and not self.raw_material_id and not self.description:
            raise ValueError("Purchase order item requires a product, raw material or description.")
        if not self.description:
            self.description = (self.product or self.raw_material).name
        self.total_amount = ((self.quantity or Decimal("0")) * (self.unit_price or Decimal("0"))).quantize(
            TWOPLACES, rounding=ROUND_HALF_UP
        )
        super().save(*args, **kwargs)


class VendorRfq(CompanyAwareModel):
    class Status(models.TextChoices):
        DRAFT = "draft", "Draft"
        SENT = "sent", "Sent"
        QUOTES_RECEIVED = "quotes_received", "Quotes Received"
        AWARDED = "awarded", "Awarded"
        CANCELLED = "cancelled", "Cancelled"

    rfq_number = models.CharField(max_length=32, unique=True, blank=True)
    title = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    product = models.ForeignKey("inventory.Product", on_delete=models.PROTECT, null=True, blank=True, related_name="+")
    raw_material = models.ForeignKey(
        "inventory.RawMaterial", on_delete=models.PROTECT, null=True, blank=True, related_name="+"
    )
    quantity = models.DecimalField(max_digits=15, decimal_places=3)
    unit = models.CharField(max_length=20, default="EA")
    required_by = models.DateField(null=True, blank=True)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.DRAFT)
    vendors = models.ManyToManyField(Vendor, blank=True, related_name="rfqs")
    awarded_quote = models.ForeignKey(
        "VendorQuote", on_delete=models.SET_NULL, null=True, blank=True, related_name="+"
    )
    sent_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"{self.rfq_number} - {self.title}"

    def save(self, *args, **kwargs):
        assign_doc_number(self, "rfq_number", "RFQ", date_format="YYMM")
        super().save(*args, **kwargs)


class VendorQuote(CompanyAwareModel):
    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        RECEIVED = "received", "Received"
        ACCEPTED = "accepted", "Accepted"
        REJECTED = "rejected", "Rejected"
        EXPIRED = "expired", "Expired"

    quote_number = models.CharField(max_length=32, unique=True, blank=True)
    rfq = models.ForeignKey(VendorRfq, on_delete=models.CASCADE, related_name="quotes")
    vendor = models.ForeignKey(Vendor, on_delete=models.PROTECT, related_name="quotes")
    unit_price = models.DecimalField(max_digits=20, decimal_places=4, default=Decimal("0"))
    quantity = models.DecimalField(max_digits=15, decimal_places=3, default=Decimal("0"))
    shipping_cost = models.DecimalField(max_digits=20, decimal_places=2, default=Decimal("0"))
    handling_cost = models.DecimalField(max_digits=20, decimal_places=2, default=Decimal("0"))
    total_price = models.DecimalField(max_digits=20, decimal_places=2, default=Decimal("0"))
    currency = models.CharField(max_length=3, default="USD")
    lead_time_days = models.PositiveIntegerField(default=0)
    valid_until = models.DateField(null=True, blank=True)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING)
    rank = models.PositiveIntegerField(null=True, blank=True)
    notes = models.TextField(blank=True)
    purchase_order = models.ForeignKey(
        PurchaseOrder, on_delete=models.SET_NULL, null=True, blank=True, related_name="source_quotes"
    )

    class Meta:
        ordering = ["rfq", "rank", "total_price"]

    def __str__(self) -> str:
        return f"{self.quote_number} ({self.vendor.name})"

    def save(self, *args, **kwargs):
        assign_doc_number(self, "quote_number", "VQ")
        super().save(*args, **kwargs)
