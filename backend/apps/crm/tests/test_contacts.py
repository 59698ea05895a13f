import json
from datetime import datetime, timedelta, timezone as dt_timezone

from django.test import SimpleTestCase, TestCase
from rest_framework.test import APITestCase

from apps.crm.models import ContactCapture, CrmContact, CrmInteraction
from apps.crm.services import (
    ContactCaptureService,
    ContactService,
    calculate_lead_score,
    parse_linkedin_profile,
    parse_vcard,
)
from shared.testing import create_company_context

VCARD = "\r\n".join(
    [
        "BEGIN:VCARD",
        "VERSION:3.0",
        "N:Okafor;Ada;;;",
        "FN:Ada Okafor",
        "EMAIL;TYPE=INTERNET:Ada@Example.com",
        "TEL;TYPE=WORK:+1 555 0100",
        "TEL;TYPE=CELL:+44 (0) 7700-900123",
        "ORG:Northwind Traders;Sales",
        "TITLE:Head of Purchasing",
        "ADR;TYPE=WORK:;;12 Dock Road;Bristol;Avon;BS1 4RW;United Kingdom",
        "URL:https://www.linkedin.com/in/ada-okafor",
        "NOTE:Met at the trade fair,",
        "  booth 14",
        "END:VCARD",
    ]
)


class ParseVCardTests(SimpleTestCase):
    def test_full_card(self):
        parsed = parse_vcard(VCARD)
        self.assertEqual(parsed["first_name"], "Ada")
        self.assertEqual(parsed["last_name"], "Okafor")
        self.assertEqual(parsed["full_name"], "Ada Okafor")
        self.assertEqual(parsed["email"], "ada@example.com")
        self.assertEqual(parsed["phone"], "+44 (0) 7700-900123")
        self.assertEqual(parsed["whatsapp"], "+4407700900123")
        self.assertEqual(parsed["organization"], "Northwind Traders")
        self.assertEqual(parsed["job_title"], "Head of Purchasing")
        self.assertEqual(parsed["address"], "12 Dock Road")
        self.assertEqual(parsed["city"], "Bristol")
        self.assertEqual(parsed["postal_code"], "BS1 4RW")
        self.assertEqual(parsed["country"], "United Kingdom")
        self.assertEqual(parsed["linkedin_url"], "https://www.linkedin.com/in/ada-okafor")
        self.assertEqual(parsed["notes"], "Met at the trade fair, booth 14")

    def test_name_built_from_parts(self):
        parsed = parse_vcard("BEGIN:VCARD\nN:Lee;Sam\nTEL:020 7946 0000\nEND:VCARD")
        self.assertEqual(parsed["full_name"], "Sam Lee")
        self.assertEqual(parsed["phone"], "020 7946 0000")
        self.assertNotIn("whatsapp", parsed)

    def test_first_name_from_formatted_name(self):
        parsed = parse_vcard("FN:Maria Lopez\nURL:https://example.com")
        self.assertEqual(parsed["first_name"], "Maria")
        self.assertNotIn("linkedin_url", parsed)

    def test_nothing_recognisable(self):
        self.assertEqual(parse_vcard("BEGIN:VCARD\nVERSION:3.0\nEND:VCARD"), {})
        self.assertEqual(parse_vcard(""), {})


class ParseLinkedInTests(SimpleTestCase):
    def test_name_is_split(self):
        parsed = parse_linkedin_profile(
            {"name": "Grace van Dijk", "headline": "COO", "company": "Acme", "profileUrl": "https://linkedin.com/in/g"}
        )
        self.assertEqual(parsed["first_name"], "Grace")
        self.assertEqual(parsed["last_name"], "van Dijk")
        self.assertEqual(parsed["job_title"], "COO")
        self.assertEqual(parsed["organization"], "Acme")

    def test_empty_payload(self):
        self.assertEqual(parse_linkedin_profile({}), {})
        self.assertEqual(parse_linkedin_profile({"headline": "CTO"}), {})


class LeadScoreTests(TestCase):
    def setUp(self):
        self.group, self.company, self.user = create_company_context(code="CRM", username="crm-user")

    def test_profile_fields_interactions_and_stage(self):
        contact = CrmContact.objects.create(
            company=self.company, first_name="Ada", email="ada@example.com", organization="Northwind"
        )
        self.assertEqual(calculate_lead_score(contact), 20)

        for _ in range(10):
            ContactService.record_interaction(contact, interaction_type="call")
        contact.refresh_from_db()
        self.assertEqual(contact.lead_score, 60)

        ContactService.update_pipeline_stage(contact, CrmContact.PipelineStage.PROPOSAL, user=self.user)
        contact.refresh_from_db()
        self.assertEqual(contact.lead_score, 80)

    def test_score_is_capped(self):
        contact = CrmContact(
            first_name="A", email="a@x.com", phone="1", organization="O", job_title="T", pipeline_stage="won"
        )
        self.assertEqual(calculate_lead_score(contact, interaction_count=20), 100)

    def test_lost_does_not_count_as_qualified(self):
        contact = CrmContact(first_name="A", pipeline_stage=CrmContact.PipelineStage.LOST)
        self.assertEqual(calculate_lead_score(contact, interaction_count=0), 0)


class ContactServiceTests(TestCase):
    def setUp(self):
        self.group, self.company, self.user = create_company_context(code="CRS", username="crm-svc")
        self.contact = CrmContact.objects.create(company=self.company, first_name="Sam", last_name="Lee")

    def test_full_name_defaults(self):
        self.assertEqual(self.contact.full_name, "Sam Lee")

    def test_stage_change_logs_note(self):
        ContactService.update_pipeline_stage(self.contact, "contacted", user=self.user)
        note = self.contact.interactions.get()
        self.assertEqual(note.interaction_type, CrmInteraction.InteractionType.NOTE)
        self.assertEqual(note.content, "Stage changed from new to contacted")

        ContactService.update_pipeline_stage(self.contact, "contacted", user=self.user)
        self.assertEqual(self.contact.interactions.count(), 1)
        with self.assertRaises(ValueError):
            ContactService.update_pipeline_stage(self.contact, "closed")

    def test_last_contacted_only_moves_forward(self):
        recent = datetime(2026, 5, 1, 12, 0, tzinfo=dt_timezone.utc)
        ContactService.record_interaction(self.contact, interaction_type="meeting", occurred_at=recent)
        ContactService.record_interaction(
            self.contact, interaction_type="email", occurred_at=recent - timedelta(days=3)
        )
        self.contact.refresh_from_db()
        self.assertEqual(self.contact.last_contacted_at, recent)

    def test_unknown_interaction_type(self):
        with self.assertRaises(ValueError):
            ContactService.record_interaction(self.contact, interaction_type="fax")


class ContactCaptureTests(TestCase):
    def setUp(self):
        self.group, self.company, self.user = create_company_context(code="CAP", username="capturer")

    def test_vcard_creates_contact(self):
        capture = ContactCaptureService.capture(
            company=self.company, method="iphone_bump", raw_data=VCARD, user=self.user
        )
        self.assertEqual(capture.status, ContactCapture.Status.CONTACT_CREATED)
        contact = capture.contact
        self.assertEqual(contact.source, CrmContact.Source.IPHONE_BUMP)
        self.assertEqual(contact.email, "ada@example.com")
        self.assertEqual(contact.lead_score, 40)
        self.assertEqual(capture.parsed_data["city"], "Bristol")

    def test_vcard_merges_into_existing_contact(self):
        existing = CrmContact.objects.create(
            company=self.company, first_name="Ada", email="ada@example.com", job_title="Buyer"
        )
        capture = ContactCaptureService.capture(company=self.company, method="iphone_bump", raw_data=VCARD)
        self.assertEqual(capture.status, ContactCapture.Status.MERGED)
        existing.refresh_from_db()
        self.assertEqual(existing.job_title, "Buyer")
        self.assertEqual(existing.organization, "Northwind Traders")
        self.assertEqual(CrmContact.objects.filter(company=self.company).count(), 1)

    def test_other_company_contact_is_not_merged(self):
        _, other_company, _ = create_company_context(code="OTH", username="other-capturer")
        CrmContact.objects.create(company=other_company, first_name="Ada", email="ada@example.com")
        capture = ContactCaptureService.capture(company=self.company, method="iphone_bump", raw_data=VCARD)
        self.assertEqual(capture.status, ContactCapture.Status.CONTACT_CREATED)

    def test_linkedin_matches_on_profile_url(self):
        existing = CrmContact.objects.create(
            company=self.company, first_name="Grace", linkedin_url="https://linkedin.com/in/grace"
        )
        capture = ContactCaptureService.capture(
            company=self.company,
            method="linkedin_scan",
            raw_data={"name": "Grace Hopper", "profileUrl": "https://linkedin.com/in/grace", "headline": "Admiral"},
        )
        self.assertEqual(capture.status, ContactCapture.Status.MERGED)
        self.assertEqual(capture.contact, existing)
        existing.refresh_from_db()
        self.assertEqual(existing.job_title, "Admiral")

    def test_linkedin_creates_with_source(self):
        capture = ContactCaptureService.capture(
            company=self.company,
            method="linkedin_scan",
            raw_data={"name": "Alan Turing", "profileUrl": "https://linkedin.com/in/alan"},
        )
        self.assertEqual(capture.contact.source, CrmContact.Source.LINKEDIN_SCAN)
        self.assertEqual(capture.contact.last_name, "Turing")

    def test_empty_capture_fails(self):
        capture = ContactCaptureService.capture(company=self.company, method="business_card", raw_data="nothing here")
        self.assertEqual(capture.status, ContactCapture.Status.FAILED)
        self.assertEqual(capture.error_message, "No contact details found")
        self.assertIsNone(capture.contact)

    def test_malformed_linkedin_payload_fails(self):
        capture = ContactCaptureService.capture(company=self.company, method="linkedin_scan", raw_data="{not json")
        self.assertEqual(capture.status, ContactCapture.Status.FAILED)
        self.assertTrue(capture.error_message.startswith("Could not read capture data"))

    def test_processed_capture_cannot_be_reprocessed(self):
        capture = ContactCaptureService.capture(company=self.company, method="iphone_bump", raw_data=VCARD)
        with self.assertRaises(ValueError):
            ContactCaptureService.process(capture)


class CrmAPITests(APITestCase):
    def setUp(self):
        self.group, self.company, self.user = create_company_context(code="CAPI", username="crm-api")
        self.client.force_authenticate(user=self.user)
        self.headers = {"HTTP_X_COMPANY_ID": str(self.company.id)}

    def test_contact_lifecycle(self):
        response = self.client.post(
            "/api/crm/contacts/",
            {"first_name": "Ada", "last_name": "Okafor", "email": "ada@example.com", "phone": "+1 555"},
            format="json",
            **self.headers,
        )
        self.assertEqual(response.status_code, 201, response.data)
        self.assertEqual(response.data["lead_score"], 20)
        contact_id = response.data["id"]

        response = self.client.get(f"/api/crm/contacts/{contact_id}/", **self.headers)
        self.assertEqual(response.data["lead_score"], 20)
        self.assertEqual(response.data["full_name"], "Ada Okafor")

        response = self.client.post(
            f"/api/crm/contacts/{contact_id}/stage/", {"stage": "qualified"}, format="json", **self.headers
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["pipeline_stage"], "qualified")
        self.assertEqual(response.data["lead_score"], 45)

        response = self.client.post(
            f"/api/crm/contacts/{contact_id}/interactions/",
            {"interaction_type": "call", "subject": "Intro"},
            format="json",
            **self.headers,
        )
        self.assertEqual(response.status_code, 201)
        response = self.client.get(f"/api/crm/contacts/{contact_id}/interactions/", **self.headers)
        self.assertEqual(len(response.data), 2)

        response = self.client.get("/api/crm/contacts/?q=okafor", **self.headers)
        self.assertEqual(len(response.data), 1)

    def test_capture_endpoint(self):
        payload = {
            "method": "linkedin_scan",
            "raw_data": {"name": "Ada Okafor", "profileUrl": "https://linkedin.com/in/ada"},
        }
        response = self.client.post("/api/crm/captures/", payload, format="json", **self.headers)
        self.assertEqual(response.status_code, 201, response.data)
        self.assertEqual(response.data["status"], "contact_created")
        self.assertEqual(json.loads(response.data["raw_data"])["name"], "Ada Okafor")
