from __future__ import annotations

import logging

from django.db.models import F

from ..models import Notification, NotificationSeverity, NotificationStatus

logger = logging.getLogger(__name__)


def notify(
    *,
    company,
    title: str,
    body: str = "",
    severity: str = NotificationSeverity.INFO,
    user=None,
    group_key: str = "",
    entity_type: str = "",
    entity_id="",
) -> Notification:
    """
    Create an in-app notification.

    When ``group_key`` matches an unread notification for the same recipient,
    that notification is refreshed instead of creating a duplicate.
    """
    if group_key:
        existing = Notification.objects.filter(
            company=company,
            user=user,
            group_key=group_key,
            status=NotificationStatus.UNREAD,
        ).first()
        if existing:
            Notification.objects.filter(pk=existing.pk).update(
                occurrences=F("occurrences") + 1,
                title=title,
                body=body,
                severity=severity,
            )
            existing.refresh_from_db()
            return existing

    notification = Notification.objects.create(
        company=company,
        company_group=company.company_group,
        user=user,
        title=title,
        body=body,
        severity=severity,
        group_key=group_key,
        entity_type=entity_type,
        entity_id=str(entity_id or ""),
    )
    logger.debug("Notification %s created for company %s", notification.pk, company.pk)
    return notification


def notify_company_admins(*, company, **kwargs) -> list[Notification]:
    """Notify each active company administrator, or the whole company when it has none."""
    from apps.users.models import UserCompanyRole

    admin_roles = UserCompanyRole.objects.filter(
        company=company,
        role=UserCompanyRole.Role.ADMIN,
        is_active=True,
    ).select_related("user")
    recipients = [role.user for role in admin_roles]
    if not recipients:
        return [notify(company=company, **kwargs)]
    return [notify(company=company, user=user, **kwargs) for user in recipients]
