from __future__ import annotations

from django.conf import settings
from django.db import models
from django.db.models import Q

from shared.models import CompanyAwareModel

User = settings.AUTH_USER_MODEL


class EmailTemplate(CompanyAwareModel):
    class TemplateType(models.TextChoices):
        QUOTE = "QUOTE", "Quote"
        PO = "PO", "Purchase Order"
        SHIPMENT = "SHIPMENT", "Shipment"
        ALERT = "ALERT", "Alert"
        RFQ = "RFQ", "Request for Quote"
        INVOICE = "INVOICE", "Invoice"
        PAYMENT_REMINDER = "PAYMENT_REMINDER", "Payment Reminder"
        WELCOME = "WELCOME", "Welcome"
        GENERAL = "GENERAL", "General"

    name = models.CharField(max_length=100)
    template_type = models.CharField(max_length=20, choices=TemplateType.choices, default=TemplateType.GENERAL)
    description = models.CharField(max_length=255, blank=True)
    subject_template = models.CharField(max_length=500)
    body_template = models.TextField()
    html_template = models.TextField(blank=True)
    is_active = models.BooleanField(default=True)

    class Meta:
        unique_together = ("company", "name")
        ordering = ["name"]

    def __str__(self) -> str:
        return self.name


class EmailMessage(CompanyAwareModel):
    class Status(models.TextChoices):
        QUEUED = "queued", "Queued"
        SENDING = "sending", "Sending"
        SENT = "sent", "Sent"
        DELIVERED = "delivered", "Delivered"
        FAILED = "failed", "Failed"
        BOUNCED = "bounced", "Bounced"

    SENDABLE_STATUSES = (Status.QUEUED, Status.SENDING)

    to_email = models.EmailField()
    to_name = models.CharField(max_length=255, blank=True)
    from_email = models.EmailField(blank=True)
    from_name = models.CharField(max_length=255, blank=True)
    reply_to = models.EmailField(blank=True)
    subject = models.CharField(max_length=500, blank=True)
    body = models.TextField(blank=True)
    html_body = models.TextField(blank=True)
    template = models.ForeignKey(
        EmailTemplate, on_delete=models.SET_NULL, null=True, blank=True, related_name="messages"
    )
    template_name = models.CharField(max_length=100, blank=True)
    payload = models.JSONField(default=dict, blank=True)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.QUEUED)
    retry_count = models.PositiveIntegerField(default=0)
    max_retries = models.PositiveIntegerField(default=3)
    last_error = models.TextField(blank=True)
    provider_message_id = models.CharField(max_length=255, blank=True)
    idempotency_key = models.CharField(max_length=255, blank=True)
    related_entity_type = models.CharField(max_length=100, blank=True)
    related_entity_id = models.CharField(max_length=100, blank=True)
    triggered_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name="+")
    scheduled_at = models.DateTimeField(null=True, blank=True)
    sent_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["company", "idempotency_key"],
                condition=~Q(idempotency_key=""),
                name="mailing_unique_idempotency_key",
            ),
        ]
        indexes = [
            models.Index(fields=["status", "scheduled_at"]),
            models.Index(fields=["related_entity_type", "related_entity_id"]),
        ]

    def __str__(self) -> str:
        return f"{self.to_email}: {self.subject or self.template_name} ({self.status})"


class EmailEvent(models.Model):
    class EventType(models.TextChoices):
        QUEUED = "queued", "Queued"
        SENDING = "sending", "Sending"
        SENT = "sent", "Sent"
        DELIVERED = "delivered", "Delivered"
        FAILED = "failed", "Failed"
        BOUNCED = "bounced", "Bounced"
        RETRY = "retry", "Retry"

    message = models.ForeignKey(EmailMessage, on_delete=models.CASCADE, related_name="events")
    event_type = models.CharField(max_length=20, choices=EventType.choices)
    detail = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["created_at", "id"]

    def __str__(self) -> str:
        return f"{self.message_id}:{self.event_type}"


class EmailCategory(models.TextChoices):
    RECEIPT = "receipt", "Receipt"
    PURCHASE_ORDER = "purchase_order", "Purchase Order"
    INVOICE = "invoice", "Invoice"
    SHIPPING_CONFIRMATION = "shipping_confirmation", "Shipping"
    FREIGHT_QUOTE = "freight_quote", "Freight Quote"
    DELIVERY_NOTIFICATION = "delivery_notification", "Delivery"
    ORDER_CONFIRMATION = "order_confirmation", "Order Confirmation"
    PAYMENT_CONFIRMATION = "payment_confirmation", "Payment"
    GENERAL = "general", "General"


class EmailPriority(models.TextChoices):
    HIGH = "high", "High"
    MEDIUM = "medium", "Medium"
    LOW = "low", "Low"


class InboundEmail(CompanyAwareModel):
    class Status(models.TextChoices):
        NEW = "new", "New"
        PROCESSED = "processed", "Processed"
        REPLIED = "replied", "Replied"
        IGNORED = "ignored", "Ignored"

    from_email = models.EmailField()
    from_name = models.CharField(max_length=255, blank=True)
    subject = models.CharField(max_length=500, blank=True)
    body = models.TextField(blank=True)
    received_at = models.DateTimeField()
    category = models.CharField(max_length=30, choices=EmailCategory.choices, default=EmailCategory.GENERAL)
    category_confidence = models.PositiveSmallIntegerField(default=0)
    keywords = models.JSONField(default=list, blank=True)
    priority = models.CharField(max_length=10, choices=EmailPriority.choices, default=EmailPriority.LOW)
    suggested_action = models.CharField(max_length=255, blank=True)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.NEW)

    class Meta:
        ordering = ["-received_at"]
        indexes = [
            models.Index(fields=["company", "status"]),
            models.Index(fields=["company", "category"]),
        ]

    def __str__(self) -> str:
        return f"{self.from_email}: {self.subject}"


class AutoReplyRule(CompanyAwareModel):
    class Tone(models.TextChoices):
        PROFESSIONAL = "professional", "Professional"
        FRIENDLY = "friendly", "Friendly"
        FORMAL = "formal", "Formal"
        BRIEF = "brief", "Brief"

    name = models.CharField(max_length=255)
    category = models.CharField(max_length=30, choices=EmailCategory.choices, blank=True)
    is_enabled = models.BooleanField(default=True)
    priority = models.IntegerField(default=0, help_text="Higher priority rules are evaluated first")
    sender_pattern = models.CharField(max_length=255, blank=True)
    subject_pattern = models.CharField(max_length=255, blank=True)
    body_keywords = models.JSONField(default=list, blank=True)
    min_confidence = models.PositiveSmallIntegerField(default=0)
    reply_template = models.TextField()
    reply_subject_prefix = models.CharField(max_length=50, default="Re:")
    tone = models.CharField(max_length=20, choices=Tone.choices, default=Tone.PROFESSIONAL)
    include_original = models.BooleanField(default=False)
    delay_minutes = models.PositiveIntegerField(default=0)
    auto_send = models.BooleanField(default=False)
    create_task = models.BooleanField(default=False)
    notify_owner = models.BooleanField(default=False)
    owner = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name="+")
    times_triggered = models.PositiveIntegerField(default=0)
    last_triggered_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-priority", "id"]

    def __str__(self) -> str:
        return self.name


class PendingReply(CompanyAwareModel):
    class Status(models.TextChoices):
        PENDING = "pending", "Pending Approval"
        APPROVED = "approved", "Approved"
        REJECTED = "rejected", "Rejected"

    inbound_email = models.ForeignKey(InboundEmail, on_delete=models.CASCADE, related_name="pending_replies")
    rule = models.ForeignKey(AutoReplyRule, on_delete=models.SET_NULL, null=True, blank=True, related_name="+")
    to_email = models.EmailField()
    to_name = models.CharField(max_length=255, blank=True)
    subject = models.CharField(max_length=500)
    body = models.TextField()
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING)
    email_message = models.ForeignKey(
        EmailMessage, on_delete=models.SET_NULL, null=True, blank=True, related_name="+"
    )
    reviewed_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name="+")
    reviewed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]
        verbose_name_plural = "Pending replies"

    def __str__(self) -> str:
        return f"{self.to_email}: {self.subject} ({self.status})"
