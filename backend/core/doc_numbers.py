from __future__ import annotations

import string

from django.utils import timezone
from django.utils.crypto import get_random_string

SUFFIX_CHARS = string.ascii_uppercase + string.digits


def _date_value(fmt: str = "YYYYMMDD", now=None) -> str:
    now = now or timezone.now()
    if fmt.upper() == "YYMM":
        return f"{now:%y%m}"
    return f"{now:%Y%m%d}"


def generate_doc_number(prefix: str, *, date_format: str = "YYYYMMDD", width: int = 4, now=None) -> str:
    """
    Build a document number for business records.

    The format is: {prefix}-{date}-{RANDOM}
    Example: PO-20250114-7QX2, RFQ-2501-K3ZD
    """
    suffix = get_random_string(width, allowed_chars=SUFFIX_CHARS)
    return f"{prefix}-{_date_value(date_format, now)}-{suffix}"


def assign_doc_number(instance, field: str, prefix: str, **kwargs) -> str:
    """Populate ``field`` on an unsaved instance, retrying on collisions."""
    value = getattr(instance, field, "")
    if value:
        return value
    model = type(instance)
    for _ in range(5):
        candidate = generate_doc_number(prefix, **kwargs)
        if not model.objects.filter(**{field: candidate}).exists():
            break
    setattr(instance, field, candidate)
    return candidate
