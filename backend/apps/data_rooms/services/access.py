from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from django.db import transaction
from django.db.models import F, Q
from django.utils import timezone

from apps.audit.utils import log_audit_event
from shared.event_bus import DATA_ROOM_ACCESS_DENIED, event_bus

from ..models import (
    DataRoom,
    DataRoomAccessAttempt,
    DataRoomDocument,
    DataRoomEmailBlock,
    DataRoomEmailPermission,
    DataRoomFolder,
    DataRoomInvitation,
    DataRoomLink,
    DataRoomPermissionAuditLog,
)

logger = logging.getLogger(__name__)

AccessType = DataRoomAccessAttempt.AccessType

PERMISSION_FLAGS = {
    AccessType.VIEW: "can_view",
    AccessType.DOWNLOAD: "can_download",
    AccessType.UPLOAD: "can_upload",
    AccessType.DELETE: "can_manage",
    AccessType.SHARE: "can_manage",
}

ROLE_ACCESS = {
    DataRoomInvitation.Role.VIEWER: {AccessType.VIEW, AccessType.DOWNLOAD},
    DataRoomInvitation.Role.EDITOR: {AccessType.VIEW, AccessType.DOWNLOAD, AccessType.UPLOAD},
    DataRoomInvitation.Role.ADMIN: set(AccessType.values),
}

PERMISSION_FIELDS = (
    "can_view",
    "can_download",
    "can_upload",
    "can_manage",
    "allowed_folder_ids",
    "allowed_document_ids",
    "denied_folder_ids",
    "denied_document_ids",
    "valid_from",
    "valid_until",
    "allowed_ips",
    "denied_ips",
    "max_downloads",
)


@dataclass
class AccessDecision:
    allowed: bool
    reason: str = ""
    source: str = ""


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def _json_value(value):
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def _ids(values):
    return {int(value) for value in values or []}


def _folder_id(folder: Optional[DataRoomFolder], document: Optional[DataRoomDocument]):
    if folder is not None:
        return folder.pk
    if document is not None:
        return document.folder_id
    return None


def _user_or_none(user):
    return user if getattr(user, "is_authenticated", False) else None


class DataRoomAccessService:
    @staticmethod
    def active_block(room: DataRoom, email: str, now=None) -> Optional[DataRoomEmailBlock]:
        now = now or timezone.now()
        return (
            DataRoomEmailBlock.objects.filter(room=room, email=normalize_email(email), is_active=True)
            .filter(Q(auto_unblock_at__isnull=True) | Q(auto_unblock_at__gt=now))
            .first()
        )

    @staticmethod
    def _check_permission(permission, room, access_type, folder, document, ip_address, now) -> AccessDecision:
        def deny(reason):
            return AccessDecision(False, reason, "permission")

        if permission.valid_from and now < permission.valid_from:
            return deny("Permission not yet valid")
        if permission.valid_until and now > permission.valid_until:
            return deny("Permission expired")
        if ip_address and ip_address in (permission.denied_ips or []):
            return deny("IP address is denied")
        if permission.allowed_ips and ip_address not in permission.allowed_ips:
            return deny("IP address is not allowed")
        if not getattr(permission, PERMISSION_FLAGS[access_type]):
            return deny(f"Permission does not allow {access_type}")

        folder_id = _folder_id(folder, document)
        if folder_id is not None and folder_id in _ids(permission.denied_folder_ids):
            return deny("Folder access denied")
        if document is not None and document.pk in _ids(permission.denied_document_ids):
            return deny("Document access denied")

        allowed_folders = _ids(permission.allowed_folder_ids)
        allowed_documents = _ids(permission.allowed_document_ids)
        if document is not None and (allowed_folders or allowed_documents):
            if document.pk not in allowed_documents and document.folder_id not in allowed_folders:
                return deny("Document is not shared with this email")
        elif folder is not None and allowed_folders and folder.pk not in allowed_folders:
            return deny("Folder is not shared with this email")

        if access_type == AccessType.DOWNLOAD:
            if not room.allow_download:
                return deny("Downloads are disabled for this data room")
            if permission.max_downloads is not None and permission.download_count >= permission.max_downloads:
                return deny("Download limit reached")
        return AccessDecision(True, "", "permission")

    @staticmethod
    def _check_invitation(invitation, room, access_type, folder, document) -> AccessDecision:
        def deny(reason):
            return AccessDecision(False, reason, "invitation")

        if access_type not in ROLE_ACCESS.get(invitation.role, set()):
            return deny(f"Role {invitation.role} does not allow {access_type}")
        folder_id = _folder_id(folder, document)
        if folder_id is not None and folder_id in _ids(invitation.restricted_folder_ids):
            return deny("Folder access denied")
        if document is not None and document.pk in _ids(invitation.restricted_document_ids):
            return deny("Document access denied")
        allowed_folders = _ids(invitation.allowed_folder_ids)
        if allowed_folders and folder_id is not None and folder_id not in allowed_folders:
            return deny("Folder is not shared with this email")
        if access_type == AccessType.DOWNLOAD and not room.allow_download:
            return deny("Downloads are disabled for this data room")
        return AccessDecision(True, "", "invitation")

    @staticmethod
    def evaluate(
        room: DataRoom,
        email: str,
        access_type: str,
        *,
        folder: Optional[DataRoomFolder] = None,
        document: Optional[DataRoomDocument] = None,
        ip_address: Optional[str] = None,
        now=None,
    ) -> tuple:
        """Decide access without side effects; returns ``(decision, permission)``."""
        now = now or timezone.now()
        email = normalize_email(email)
        if access_type not in PERMISSION_FLAGS:
            raise ValueError(f"Unknown access type: {access_type}")

        if not room.is_available(now):
            return AccessDecision(False, "Data room is not available", "room"), None
        if normalize_email(room.owner.email) == email and email:
            return AccessDecision(True, "", "owner"), None
        if DataRoomAccessService.active_block(room, email, now):
            return AccessDecision(False, "Email is blocked", "block"), None

        permission = DataRoomEmailPermission.objects.filter(room=room, email=email, is_active=True).first()
        if permission is not None:
            decision = DataRoomAccessService._check_permission(
                permission, room, access_type, folder, document, ip_address, now
            )
            return decision, permission

        invitation = DataRoomInvitation.objects.filter(
            room=room, email=email, status=DataRoomInvitation.Status.ACCEPTED
        ).first()
        if invitation is not None:
            return DataRoomAccessService._check_invitation(invitation, room, access_type, folder, document), None

        if room.is_public and access_type == AccessType.VIEW:
            return AccessDecision(True, "", "public"), None
        return AccessDecision(False, "No access", "none"), None

    @staticmethod
    @transaction.atomic
    def check_access(
        room: DataRoom,
        email: str,
        access_type: str,
        *,
        folder: Optional[DataRoomFolder] = None,
        document: Optional[DataRoomDocument] = None,
        ip_address: Optional[str] = None,
        now=None,
    ) -> AccessDecision:
        """
        Decide whether ``email`` may perform ``access_type`` in ``room``.

        Rules are evaluated in order: room availability, owner, blocks,
        explicit email permission, accepted invitation, public view. Every
        call is recorded as an access attempt. A successful download bumps
        the permission and document counters.
        """
        decision, permission = DataRoomAccessService.evaluate(
            room, email, access_type, folder=folder, document=document, ip_address=ip_address, now=now
        )
        DataRoomAccessAttempt.objects.create(
            room=room,
            email=normalize_email(email),
            access_type=access_type,
            folder=folder,
            document=document,
            ip_address=ip_address,
            success=decision.allowed,
            denial_reason=decision.reason,
            source=decision.source,
        )
        if decision.allowed and access_type == AccessType.DOWNLOAD:
            if permission is not None:
                DataRoomEmailPermission.objects.filter(pk=permission.pk).update(download_count=F("download_count") + 1)
            if document is not None:
                DataRoomDocument.objects.filter(pk=document.pk).update(download_count=F("download_count") + 1)
        elif decision.allowed and access_type == AccessType.VIEW and document is not None:
            DataRoomDocument.objects.filter(pk=document.pk).update(view_count=F("view_count") + 1)
        elif not decision.allowed:
            logger.info("Data room %s: %s denied %s (%s)", room.pk, email, access_type, decision.reason)
            event_bus.publish(
                DATA_ROOM_ACCESS_DENIED,
                instance=room,
                email=normalize_email(email),
                decision=decision,
                company=room.company,
            )
        return decision

    @staticmethod
    def _audit(room, email, action, performed_by=None, **details):
        entry = DataRoomPermissionAuditLog.objects.create(
            room=room,
            email=normalize_email(email),
            action=action,
            performed_by=_user_or_none(performed_by),
            change_details=details,
        )
        log_audit_event(
            user=performed_by,
            company=room.company,
            action="PERMISSION",
            entity_type="DataRoom",
            entity_id=room.pk,
            description=f"Data room {room.name}: {action} for {entry.email}",
            after=entry.change_details,
        )
        return entry

    @staticmethod
    @transaction.atomic
    def grant_permission(room: DataRoom, email: str, *, performed_by=None, **flags) -> DataRoomEmailPermission:
        unknown = set(flags) - set(PERMISSION_FIELDS)
        if unknown:
            raise ValueError(f"Unknown permission fields: {', '.join(sorted(unknown))}")
        email = normalize_email(email)
        if not email:
            raise ValueError("An email address is required.")
        permission, created = DataRoomEmailPermission.objects.update_or_create(
            room=room,
            email=email,
            defaults={**flags, "is_active": True, "granted_by": _user_or_none(performed_by)},
        )
        DataRoomAccessService._audit(
            room,
            email,
            DataRoomPermissionAuditLog.Action.GRANTED,
            performed_by,
            created=created,
            **{key: _json_value(value) for key, value in flags.items()},
        )
        return permission

    @staticmethod
    @transaction.atomic
    def update_permission(permission: DataRoomEmailPermission, *, performed_by=None, **changes) -> DataRoomEmailPermission:
        unknown = set(changes) - set(PERMISSION_FIELDS)
        if unknown:
            raise ValueError(f"Unknown permission fields: {', '.join(sorted(unknown))}")
        details = {}
        for field, value in changes.items():
            previous = getattr(permission, field)
            if previous != value:
                details[field] = {"from": _json_value(previous), "to": _json_value(value)}
                setattr(permission, field, value)
        if details:
            permission.save()
            DataRoomAccessService._audit(
                permission.room,
                permission.email,
                DataRoomPermissionAuditLog.Action.MODIFIED,
                performed_by,
                **details,
            )
        return permission

    @staticmethod
    @transaction.atomic
    def revoke_permission(permission: DataRoomEmailPermission, *, performed_by=None, reason: str = ""):
        if not permission.is_active:
            raise ValueError(f"Permission for {permission.email} is already revoked.")
        permission.is_active = False
        permission.save(update_fields=["is_active", "updated_at"])
        DataRoomAccessService._audit(
            permission.room,
            permission.email,
            DataRoomPermissionAuditLog.Action.REVOKED,
            performed_by,
            reason=reason,
        )
        return permission

    @staticmethod
    @transaction.atomic
    def block_email(
        room: DataRoom, email: str, *, reason: str = "", blocked_by=None, auto_unblock_at=None
    ) -> DataRoomEmailBlock:
        """Block ``email`` from the room; a null ``auto_unblock_at`` makes the block permanent."""
        email = normalize_email(email)
        block = DataRoomEmailBlock.objects.filter(room=room, email=email, is_active=True).first()
        if block is None:
            block = DataRoomEmailBlock(room=room, email=email)
        block.reason = reason
        block.blocked_by = _user_or_none(blocked_by)
        block.auto_unblock_at = auto_unblock_at
        block.save()
        DataRoomAccessService._audit(
            room,
            email,
            DataRoomPermissionAuditLog.Action.BLOCKED,
            blocked_by,
            reason=reason,
            auto_unblock_at=_json_value(auto_unblock_at),
        )
        return block

    @staticmethod
    @transaction.atomic
    def unblock_email(room: DataRoom, email: str, *, performed_by=None, reason: str = "") -> int:
        email = normalize_email(email)
        count = DataRoomEmailBlock.objects.filter(room=room, email=email, is_active=True).update(
            is_active=False, unblocked_at=timezone.now()
        )
        if not count:
            raise ValueError(f"{email} is not blocked in {room.name}.")
        DataRoomAccessService._audit(
            room, email, DataRoomPermissionAuditLog.Action.UNBLOCKED, performed_by, reason=reason
        )
        return count

    @staticmethod
    @transaction.atomic
    def auto_unblock_expired(now=None) -> list:
        now = now or timezone.now()
        expired = list(
            DataRoomEmailBlock.objects.select_related("room").filter(
                is_active=True, auto_unblock_at__isnull=False, auto_unblock_at__lte=now
            )
        )
        for block in expired:
            block.is_active = False
            block.unblocked_at = now
            block.save(update_fields=["is_active", "unblocked_at"])
            DataRoomAccessService._audit(
                block.room,
                block.email,
                DataRoomPermissionAuditLog.Action.UNBLOCKED,
                reason="Automatic unblock",
                blocked_until=block.auto_unblock_at.isoformat(),
            )
        return expired


class DataRoomSharingService:
    @staticmethod
    @transaction.atomic
    def resolve_link(link_code: str, now=None) -> DataRoomLink:
        """Return the link for ``link_code`` and count the view."""
        now = now or timezone.now()
        link = DataRoomLink.objects.select_for_update().select_related("room").filter(link_code=link_code).first()
        if link is None:
            raise ValueError("Link not found.")
        if not link.is_active:
            raise ValueError("Link is no longer active.")
        if link.expires_at and link.expires_at <= now:
            raise ValueError("Link has expired.")
        if link.max_views is not None and link.view_count >= link.max_views:
            raise ValueError("Link view limit reached.")
        if not link.room.is_available(now):
            raise ValueError("Data room is not available.")
        link.view_count += 1
        link.save(update_fields=["view_count"])
        return link

    @staticmethod
    def invite(room: DataRoom, email: str, *, role=DataRoomInvitation.Role.VIEWER, invited_by=None, **kwargs):
        email = normalize_email(email)
        if DataRoomInvitation.objects.filter(
            room=room, email=email, status=DataRoomInvitation.Status.PENDING
        ).exists():
            raise ValueError(f"{email} already has a pending invitation to {room.name}.")
        return DataRoomInvitation.objects.create(
            room=room, email=email, role=role, invited_by=_user_or_none(invited_by), **kwargs
        )

    @staticmethod
    def accept_invitation(invite_code: str, email: str, now=None) -> DataRoomInvitation:
        now = now or timezone.now()
        invitation = DataRoomInvitation.objects.filter(invite_code=invite_code).first()
        if invitation is None:
            raise ValueError("Invitation not found.")
        if invitation.status != DataRoomInvitation.Status.PENDING:
            raise ValueError(f"Invitation is already {invitation.status}.")
        if invitation.expires_at and invitation.expires_at <= now:
            invitation.status = DataRoomInvitation.Status.EXPIRED
            invitation.save(update_fields=["status"])
            raise ValueError("Invitation has expired.")
        if normalize_email(email) != invitation.email:
            raise ValueError("Invitation was sent to a different email address.")
        invitation.status = DataRoomInvitation.Status.ACCEPTED
        invitation.accepted_at = now
        invitation.save(update_fields=["status", "accepted_at"])
        return invitation
