from __future__ import annotations

from django.conf import settings
from django.db import models
from django.utils import timezone

from shared.models import CompanyAwareModel

User = settings.AUTH_USER_MODEL


class CrmTag(CompanyAwareModel):
    name = models.CharField(max_length=50)
    color = models.CharField(max_length=20, default="gray")

    class Meta:
        unique_together = ("company", "name")
        ordering = ["name"]

    def __str__(self) -> str:
        return self.name


class CrmContact(CompanyAwareModel):
    class ContactType(models.TextChoices):
        LEAD = "lead", "Lead"
        PROSPECT = "prospect", "Prospect"
        CUSTOMER = "customer", "Customer"
        PARTNER = "partner", "Partner"
        INVESTOR = "investor", "Investor"
        DONOR = "donor", "Donor"
        VENDOR = "vendor", "Vendor"
        OTHER = "other", "Other"

    class Source(models.TextChoices):
        IPHONE_BUMP = "iphone_bump", "iPhone Bump"
        WHATSAPP = "whatsapp", "WhatsApp"
        LINKEDIN_SCAN = "linkedin_scan", "LinkedIn Scan"
        BUSINESS_CARD = "business_card", "Business Card"
        WEBSITE = "website", "Website"
        REFERRAL = "referral", "Referral"
        EVENT = "event", "Event"
        COLD_OUTREACH = "cold_outreach", "Cold Outreach"
        IMPORT = "import", "Import"
        MANUAL = "manual", "Manual"

    class Status(models.TextChoices):
        ACTIVE = "active", "Active"
        INACTIVE = "inactive", "Inactive"
        ARCHIVED = "archived", "Archived"

    class PipelineStage(models.TextChoices):
        NEW = "new", "New"
        CONTACTED = "contacted", "Contacted"
        QUALIFIED = "qualified", "Qualified"
        PROPOSAL = "proposal", "Proposal"
        NEGOTIATION = "negotiation", "Negotiation"
        WON = "won", "Won"
        LOST = "lost", "Lost"

    first_name = models.CharField(max_length=100)
    last_name = models.CharField(max_length=100, blank=True)
    full_name = models.CharField(max_length=255, blank=True)
    email = models.EmailField(blank=True)
    phone = models.CharField(max_length=50, blank=True)
    whatsapp = models.CharField(max_length=50, blank=True)
    linkedin_url = models.URLField(max_length=500, blank=True)
    organization = models.CharField(max_length=255, blank=True)
    job_title = models.CharField(max_length=255, blank=True)
    address = models.TextField(blank=True)
    city = models.CharField(max_length=100, blank=True)
    state = models.CharField(max_length=100, blank=True)
    postal_code = models.CharField(max_length=20, blank=True)
    country = models.CharField(max_length=100, blank=True)
    contact_type = models.CharField(max_length=20, choices=ContactType.choices, default=ContactType.LEAD)
    source = models.CharField(max_length=20, choices=Source.choices, default=Source.MANUAL)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.ACTIVE)
    pipeline_stage = models.CharField(max_length=20, choices=PipelineStage.choices, default=PipelineStage.NEW)
    lead_score = models.PositiveSmallIntegerField(default=0)
    notes = models.TextField(blank=True)
    tags = models.ManyToManyField(CrmTag, blank=True, related_name="contacts")
    owner = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name="crm_contacts")
    last_contacted_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["full_name", "id"]
        indexes = [
            models.Index(fields=["company", "email"]),
            models.Index(fields=["company", "pipeline_stage"]),
        ]

    def __str__(self) -> str:
        return self.full_name or self.first_name

    def save(self, *args, **kwargs):
        if not self.full_name:
            self.full_name = f"{self.first_name} {self.last_name}".strip()
        if self.email:
            self.email = self.email.strip().lower()
        super().save(*args, **kwargs)


class CrmInteraction(models.Model):
    class InteractionType(models.TextChoices):
        EMAIL = "email", "Email"
        CALL = "call", "Call"
        MEETING = "meeting", "Meeting"
        NOTE = "note", "Note"
        WHATSAPP = "whatsapp", "WhatsApp"
        LINKEDIN = "linkedin", "LinkedIn"

    contact = models.ForeignKey(CrmContact, on_delete=models.CASCADE, related_name="interactions")
    interaction_type = models.CharField(max_length=20, choices=InteractionType.choices)
    subject = models.CharField(max_length=255, blank=True)
    content = models.TextField(blank=True)
    occurred_at = models.DateTimeField(default=timezone.now)
    performed_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name="+")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-occurred_at", "-id"]

    def __str__(self) -> str:
        return f"{self.contact} {self.interaction_type}: {self.subject}"


class ContactCapture(CompanyAwareModel):
    class Method(models.TextChoices):
        IPHONE_BUMP = "iphone_bump", "iPhone Bump"
        LINKEDIN_SCAN = "linkedin_scan", "LinkedIn Scan"
        BUSINESS_CARD = "business_card", "Business Card"
        MANUAL = "manual", "Manual"

    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        PARSED = "parsed", "Parsed"
        CONTACT_CREATED = "contact_created", "Contact Created"
        MERGED = "merged", "Merged"
        FAILED = "failed", "Failed"

    method = models.CharField(max_length=20, choices=Method.choices)
    raw_data = models.TextField()
    parsed_data = models.JSONField(default=dict, blank=True)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING)
    contact = models.ForeignKey(
        CrmContact, on_delete=models.SET_NULL, null=True, blank=True, related_name="captures"
    )
    error_message = models.TextField(blank=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"{self.get_method_display()} capture ({self.status})"
