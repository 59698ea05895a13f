from decimal import Decimal

from django.db import models
from django.utils import timezone

from core.doc_numbers import assign_doc_number
from shared.models import CompanyAwareModel

from .customer import Customer


class SalesOrder(CompanyAwareModel):
    class Status(models.TextChoices):
        DRAFT = "draft", "Draft"
        CONFIRMED = "confirmed", "Confirmed"
        SHIPPED = "shipped", "Shipped"
        DELIVERED = "delivered", "Delivered"
        CANCELLED = "cancelled", "Cancelled"

    # Orders that count as realised demand
    DEMAND_STATUSES = (Status.CONFIRMED, Status.SHIPPED, Status.DELIVERED)

    order_number = models.CharField(max_length=50, unique=True, blank=True)
    customer = models.ForeignKey(Customer, on_delete=models.PROTECT, related_name='orders')
    order_date = models.DateField(default=timezone.localdate)
    delivery_date = models.DateField(null=True, blank=True)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.DRAFT)
    currency = models.CharField(max_length=3, default="USD")
    total_amount = models.DecimalField(max_digits=20, decimal_places=2, default=Decimal("0"))
    notes = models.TextField(blank=True)

    class Meta:
        ordering = ['-order_date', '-created_at']
        indexes = [
            models.Index(fields=['company', 'order_date']),
            models.Index(fields=['company', 'customer', 'status']),
        ]

    def __str__(self):
        return f"{self.order_number} ({self.customer.name})"

    def save(self, *args, **kwargs):
        assign_doc_number(self, "order_number", "SO")
        super().save(*args, **kwargs)

    def refresh_total(self):
        total = self.lines.aggregate(value=models.Sum('line_total'))['value'] or Decimal("0")
        self.total_amount = total
        self.save(update_fields=['total_amount', 'updated_at'])
        return total

    def _ensure_can_transition(self, allowed_statuses):
        if self.status not in allowed_statuses:
            raise ValueError(f"Sales order {self.order_number} cannot transition from {self.status}.")

    def confirm(self):
        self._ensure_can_transition({self.Status.DRAFT})
        if not self.lines.exists():
            raise ValueError(f"Sales order {self.order_number} has no lines.")
        self.status = self.Status.CONFIRMED
        self.save(update_fields=['status', 'updated_at'])

    def ship(self):
        self._ensure_can_transition({self.Status.CONFIRMED})
        self.status = self.Status.SHIPPED
        self.save(update_fields=['status', 'updated_at'])

    def deliver(self):
        self._ensure_can_transition({self.Status.SHIPPED})
        self.status = self.Status.DELIVERED
        self.save(update_fields=['status', 'updated_at'])

    def cancel(self):
        self._ensure_can_transition({self.Status.DRAFT, self.Status.CONFIRMED})
        self.status = self.Status.CANCELLED
        self.save(update_fields=['status', 'updated_at'])
