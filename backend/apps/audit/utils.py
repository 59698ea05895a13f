from __future__ import annotations

from decimal import Decimal
from datetime import date, datetime
from typing import Any, Dict, Iterable, Optional

from apps.companies.models import Company, CompanyGroup
from .models import AuditLog


def snapshot(instance, fields: Iterable[str]) -> Dict[str, Any]:
    """JSON-safe dict of selected model fields for before/after values."""
    data: Dict[str, Any] = {}
    for field in fields:
        value = getattr(instance, field, None)
        if isinstance(value, Decimal):
            value = str(value)
        elif isinstance(value, (date, datetime)):
            value = value.isoformat()
        elif hasattr(value, "pk"):
            value = value.pk
        data[field] = value
    return data


def log_audit_event(
    *,
    user=None,
    company: Optional[Company],
    company_group: Optional[CompanyGroup] = None,
    action: str,
    entity_type: str,
    entity_id: str,
    description: str = "",
    before: Optional[Dict[str, Any]] = None,
    after: Optional[Dict[str, Any]] = None,
    ip_address: Optional[str] = None,
    correlation_id: str = "",
) -> AuditLog:
    """Persist an audit log entry while handling optional context gracefully."""
    if user is not None and not getattr(user, "is_authenticated", False):
        user = None
    return AuditLog.objects.create(
        user=user,
        company=company,
        company_group=company_group or getattr(company, "company_group", None),
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id),
        description=description,
        before_value=before,
        after_value=after,
        ip_address=ip_address,
        correlation_id=correlation_id,
    )
