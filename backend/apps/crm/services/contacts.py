from __future__ import annotations

import json
import logging
from typing import Dict

from django.db import transaction
from django.utils import timezone

from apps.audit.utils import log_audit_event

from ..models import ContactCapture, CrmContact, CrmInteraction
from .parsers import parse_linkedin_profile, parse_vcard

logger = logging.getLogger(__name__)

QUALIFIED_STAGES = (
    CrmContact.PipelineStage.QUALIFIED,
    CrmContact.PipelineStage.PROPOSAL,
    CrmContact.PipelineStage.NEGOTIATION,
    CrmContact.PipelineStage.WON,
)

CAPTURE_SOURCES = {
    ContactCapture.Method.IPHONE_BUMP: CrmContact.Source.IPHONE_BUMP,
    ContactCapture.Method.LINKEDIN_SCAN: CrmContact.Source.LINKEDIN_SCAN,
    ContactCapture.Method.BUSINESS_CARD: CrmContact.Source.BUSINESS_CARD,
    ContactCapture.Method.MANUAL: CrmContact.Source.MANUAL,
}

MERGEABLE_FIELDS = (
    "first_name",
    "last_name",
    "full_name",
    "email",
    "phone",
    "whatsapp",
    "linkedin_url",
    "organization",
    "job_title",
    "address",
    "city",
    "state",
    "postal_code",
    "country",
    "notes",
)


def calculate_lead_score(contact: CrmContact, interaction_count=None) -> int:
    score = 0
    for field in ("email", "phone", "organization", "job_title"):
        if getattr(contact, field):
            score += 10
    if interaction_count is None:
        interaction_count = contact.interactions.count() if contact.pk else 0
    score += min(interaction_count * 5, 40)
    if contact.pipeline_stage in QUALIFIED_STAGES:
        score += 20
    return min(score, 100)


class ContactService:
    @staticmethod
    def refresh_lead_score(contact: CrmContact) -> int:
        score = calculate_lead_score(contact)
        if score != contact.lead_score:
            contact.lead_score = score
            contact.save(update_fields=["lead_score", "updated_at"])
        return score

    @staticmethod
    @transaction.atomic
    def record_interaction(
        contact: CrmContact,
        *,
        interaction_type: str,
        subject: str = "",
        content: str = "",
        occurred_at=None,
        user=None,
    ) -> CrmInteraction:
        if interaction_type not in CrmInteraction.InteractionType.values:
            raise ValueError(f"Unknown interaction type '{interaction_type}'.")
        occurred_at = occurred_at or timezone.now()
        interaction = CrmInteraction.objects.create(
            contact=contact,
            interaction_type=interaction_type,
            subject=subject,
            content=content,
            occurred_at=occurred_at,
            performed_by=user if getattr(user, "is_authenticated", False) else None,
        )
        if contact.last_contacted_at is None or occurred_at > contact.last_contacted_at:
            contact.last_contacted_at = occurred_at
            contact.save(update_fields=["last_contacted_at", "updated_at"])
        ContactService.refresh_lead_score(contact)
        return interaction

    @staticmethod
    @transaction.atomic
    def update_pipeline_stage(contact: CrmContact, stage: str, *, user=None) -> CrmContact:
        if stage not in CrmContact.PipelineStage.values:
            raise ValueError(f"Unknown pipeline stage '{stage}'.")
        previous = contact.pipeline_stage
        if previous == stage:
            return contact
        contact.pipeline_stage = stage
        contact.save(update_fields=["pipeline_stage", "updated_at"])
        CrmInteraction.objects.create(
            contact=contact,
            interaction_type=CrmInteraction.InteractionType.NOTE,
            subject="Pipeline stage changed",
            content=f"Stage changed from {previous} to {stage}",
            performed_by=user if getattr(user, "is_authenticated", False) else None,
        )
        log_audit_event(
            user=user,
            company=contact.company,
            action="STATUS_CHANGE",
            entity_type="CrmContact",
            entity_id=contact.pk,
            description=f"{contact.full_name}: {previous} -> {stage}",
            before={"pipeline_stage": previous},
            after={"pipeline_stage": stage},
        )
        ContactService.refresh_lead_score(contact)
        return contact


class ContactCaptureService:
    @staticmethod
    def _load_json(raw_data: str) -> dict:
        data = json.loads(raw_data)
        if not isinstance(data, dict):
            raise ValueError("expected a JSON object")
        return data

    @staticmethod
    def parse(capture: ContactCapture) -> Dict[str, str]:
        if capture.method == ContactCapture.Method.LINKEDIN_SCAN:
            return parse_linkedin_profile(ContactCaptureService._load_json(capture.raw_data))
        if capture.method == ContactCapture.Method.MANUAL:
            data = ContactCaptureService._load_json(capture.raw_data)
            return {field: str(data[field]).strip() for field in MERGEABLE_FIELDS if data.get(field)}
        return parse_vcard(capture.raw_data)

    @staticmethod
    def find_existing(capture: ContactCapture, parsed: Dict[str, str]):
        contacts = CrmContact.objects.for_company(capture.company)
        existing = None
        if parsed.get("email"):
            existing = contacts.filter(email__iexact=parsed["email"]).first()
        if existing is None and capture.method == ContactCapture.Method.LINKEDIN_SCAN and parsed.get("linkedin_url"):
            existing = contacts.filter(linkedin_url=parsed["linkedin_url"]).first()
        return existing

    @staticmethod
    @transaction.atomic
    def process(capture: ContactCapture, *, user=None) -> ContactCapture:
        """
        Turn a capture into a CRM contact.

        A matching contact (same email, or same LinkedIn profile for LinkedIn
        scans) only has its blank fields filled in; otherwise a new contact
        is created.
        """
        if capture.status not in (ContactCapture.Status.PENDING, ContactCapture.Status.FAILED):
            raise ValueError(f"Capture {capture.pk} was already processed ({capture.status}).")
        try:
            parsed = ContactCaptureService.parse(capture)
        except (TypeError, ValueError) as exc:
            parsed = {}
            error = f"Could not read capture data: {exc}"
        else:
            error = "" if parsed else "No contact details found"
        capture.parsed_data = parsed
        if error:
            capture.status = ContactCapture.Status.FAILED
            capture.error_message = error
            capture.save(update_fields=["parsed_data", "status", "error_message", "updated_at"])
            logger.info("Contact capture %s failed: %s", capture.pk, error)
            return capture

        contact = ContactCaptureService.find_existing(capture, parsed)
        if contact is not None:
            changed = [field for field, value in parsed.items() if not getattr(contact, field)]
            for field in changed:
                setattr(contact, field, parsed[field])
            if changed:
                contact.save(update_fields=[*changed, "updated_at"])
            capture.status = ContactCapture.Status.MERGED
        else:
            fields = dict(parsed)
            fields.setdefault("first_name", "Unknown")
            contact = CrmContact.objects.create(
                **capture.scope_kwargs(),
                source=CAPTURE_SOURCES[capture.method],
                created_by=user if getattr(user, "is_authenticated", False) else None,
                **fields,
            )
            capture.status = ContactCapture.Status.CONTACT_CREATED
        ContactService.refresh_lead_score(contact)

        capture.contact = contact
        capture.error_message = ""
        capture.save(update_fields=["parsed_data", "status", "contact", "error_message", "updated_at"])
        logger.info("Contact capture %s %s contact %s", capture.pk, capture.status, contact.pk)
        return capture

    @staticmethod
    def capture(*, company, method: str, raw_data, user=None) -> ContactCapture:
        if not isinstance(raw_data, str):
            raw_data = json.dumps(raw_data)
        capture = ContactCapture.objects.create(
            company=company,
            company_group=company.company_group,
            method=method,
            raw_data=raw_data,
            created_by=user if getattr(user, "is_authenticated", False) else None,
        )
        return ContactCaptureService.process(capture, user=user)
