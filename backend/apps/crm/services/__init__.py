from .contacts import ContactCaptureService, ContactService, calculate_lead_score
from .parsers import parse_linkedin_profile, parse_vcard

__all__ = [
    "ContactCaptureService",
    "ContactService",
    "calculate_lead_score",
    "parse_linkedin_profile",
    "parse_vcard",
]
