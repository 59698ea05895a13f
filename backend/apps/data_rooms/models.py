from __future__ import annotations

from django.conf import settings
from django.db import models
from django.utils import timezone
from django.utils.crypto import get_random_string
from django.utils.text import slugify

from shared.models import CompanyAwareModel

User = settings.AUTH_USER_MODEL


def generate_access_code() -> str:
    return get_random_string(32)


class DataRoom(CompanyAwareModel):
    class Status(models.TextChoices):
        ACTIVE = "active", "Active"
        ARCHIVED = "archived", "Archived"
        DRAFT = "draft", "Draft"

    name = models.CharField(max_length=255)
    slug = models.SlugField(max_length=120, blank=True)
    description = models.TextField(blank=True)
    is_public = models.BooleanField(default=False)
    invitation_only = models.BooleanField(default=True)
    requires_nda = models.BooleanField(default=False)
    allow_download = models.BooleanField(default=True)
    expires_at = models.DateTimeField(null=True, blank=True)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.DRAFT)
    owner = models.ForeignKey(User, on_delete=models.PROTECT, related_name="owned_data_rooms")

    class Meta:
        unique_together = ("company", "slug")
        ordering = ["name"]

    def __str__(self) -> str:
        return self.name

    def save(self, *args, **kwargs):
        if not self.slug:
            self.slug = slugify(self.name)[:120]
        super().save(*args, **kwargs)

    def is_available(self, now=None) -> bool:
        now = now or timezone.now()
        if self.status != self.Status.ACTIVE:
            return False
        return self.expires_at is None or self.expires_at > now


class DataRoomFolder(models.Model):
    room = models.ForeignKey(DataRoom, on_delete=models.CASCADE, related_name="folders")
    parent = models.ForeignKey("self", on_delete=models.CASCADE, null=True, blank=True, related_name="children")
    name = models.CharField(max_length=255)
    sort_order = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["sort_order", "name"]

    def __str__(self) -> str:
        return f"{self.room.name}/{self.name}"


class DataRoomDocument(models.Model):
    room = models.ForeignKey(DataRoom, on_delete=models.CASCADE, related_name="documents")
    folder = models.ForeignKey(
        DataRoomFolder, on_delete=models.SET_NULL, null=True, blank=True, related_name="documents"
    )
    name = models.CharField(max_length=255)
    file_type = models.CharField(max_length=50, blank=True)
    file_size = models.PositiveBigIntegerField(default=0)
    storage_key = models.CharField(max_length=500, blank=True, help_text="Key of the file in external storage")
    download_count = models.PositiveIntegerField(default=0)
    view_count = models.PositiveIntegerField(default=0)
    uploaded_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name="+")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["folder_id", "name"]

    def __str__(self) -> str:
        return self.name


class DataRoomLink(models.Model):
    room = models.ForeignKey(DataRoom, on_delete=models.CASCADE, related_name="links")
    link_code = models.CharField(max_length=64, unique=True, default=generate_access_code)
    name = models.CharField(max_length=255, blank=True)
    expires_at = models.DateTimeField(null=True, blank=True)
    max_views = models.PositiveIntegerField(null=True, blank=True)
    view_count = models.PositiveIntegerField(default=0)
    allowed_folder_ids = models.JSONField(default=list, blank=True)
    allowed_document_ids = models.JSONField(default=list, blank=True)
    allow_download = models.BooleanField(default=True)
    is_active = models.BooleanField(default=True)
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name="+")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return self.name or self.link_code


class DataRoomInvitation(models.Model):
    class Role(models.TextChoices):
        VIEWER = "viewer", "Viewer"
        EDITOR = "editor", "Editor"
        ADMIN = "admin", "Admin"

    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        ACCEPTED = "accepted", "Accepted"
        DECLINED = "declined", "Declined"
        EXPIRED = "expired", "Expired"

    room = models.ForeignKey(DataRoom, on_delete=models.CASCADE, related_name="invitations")
    email = models.EmailField()
    role = models.CharField(max_length=10, choices=Role.choices, default=Role.VIEWER)
    invite_code = models.CharField(max_length=64, unique=True, default=generate_access_code)
    allowed_folder_ids = models.JSONField(default=list, blank=True)
    restricted_folder_ids = models.JSONField(default=list, blank=True)
    restricted_document_ids = models.JSONField(default=list, blank=True)
    status = models.CharField(max_length=10, choices=Status.choices, default=Status.PENDING)
    expires_at = models.DateTimeField(null=True, blank=True)
    accepted_at = models.DateTimeField(null=True, blank=True)
    invited_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name="+")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"{self.email} -> {self.room.name} ({self.role})"

    def save(self, *args, **kwargs):
        self.email = (self.email or "").strip().lower()
        super().save(*args, **kwargs)


class DataRoomEmailPermission(models.Model):
    room = models.ForeignKey(DataRoom, on_delete=models.CASCADE, related_name="email_permissions")
    email = models.EmailField()
    can_view = models.BooleanField(default=True)
    can_download = models.BooleanField(default=False)
    can_upload = models.BooleanField(default=False)
    can_manage = models.BooleanField(default=False)
    allowed_folder_ids = models.JSONField(default=list, blank=True)
    allowed_document_ids = models.JSONField(default=list, blank=True)
    denied_folder_ids = models.JSONField(default=list, blank=True)
    denied_document_ids = models.JSONField(default=list, blank=True)
    valid_from = models.DateTimeField(null=True, blank=True)
    valid_until = models.DateTimeField(null=True, blank=True)
    allowed_ips = models.JSONField(default=list, blank=True)
    denied_ips = models.JSONField(default=list, blank=True)
    max_downloads = models.PositiveIntegerField(null=True, blank=True)
    download_count = models.PositiveIntegerField(default=0)
    is_active = models.BooleanField(default=True)
    granted_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name="+")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        unique_together = ("room", "email")
        ordering = ["email"]

    def __str__(self) -> str:
        return f"{self.email} on {self.room.name}"

    def save(self, *args, **kwargs):
        self.email = (self.email or "").strip().lower()
        super().save(*args, **kwargs)


class DataRoomEmailBlock(models.Model):
    room = models.ForeignKey(DataRoom, on_delete=models.CASCADE, related_name="email_blocks")
    email = models.EmailField()
    reason = models.TextField(blank=True)
    blocked_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name="+")
    is_active = models.BooleanField(default=True)
    auto_unblock_at = models.DateTimeField(null=True, blank=True, help_text="Empty for a permanent block")
    unblocked_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["room", "email", "is_active"]),
        ]

    def __str__(self) -> str:
        return f"{self.email} blocked on {self.room.name}"

    def save(self, *args, **kwargs):
        self.email = (self.email or "").strip().lower()
        super().save(*args, **kwargs)


class DataRoomAccessAttempt(models.Model):
    class AccessType(models.TextChoices):
        VIEW = "view", "View"
        DOWNLOAD = "download", "Download"
        UPLOAD = "upload", "Upload"
        DELETE = "delete", "Delete"
        SHARE = "share", "Share"

    room = models.ForeignKey(DataRoom, on_delete=models.CASCADE, related_name="access_attempts")
    email = models.EmailField()
    access_type = models.CharField(max_length=10, choices=AccessType.choices)
    folder = models.ForeignKey(DataRoomFolder, on_delete=models.SET_NULL, null=True, blank=True, related_name="+")
    document = models.ForeignKey(
        DataRoomDocument, on_delete=models.SET_NULL, null=True, blank=True, related_name="+"
    )
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    success = models.BooleanField(default=False)
    denial_reason = models.CharField(max_length=255, blank=True)
    source = models.CharField(max_length=20, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["room", "email"]),
            models.Index(fields=["room", "success"]),
        ]

    def __str__(self) -> str:
        outcome = "ok" if self.success else self.denial_reason
        return f"{self.email} {self.access_type} {self.room.name}: {outcome}"


class DataRoomPermissionAuditLog(models.Model):
    class Action(models.TextChoices):
        GRANTED = "granted", "Granted"
        MODIFIED = "modified", "Modified"
        REVOKED = "revoked", "Revoked"
        BLOCKED = "blocked", "Blocked"
        UNBLOCKED = "unblocked", "Unblocked"

    room = models.ForeignKey(DataRoom, on_delete=models.CASCADE, related_name="permission_audit_logs")
    email = models.EmailField()
    action = models.CharField(max_length=20, choices=Action.choices)
    performed_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name="+")
    change_details = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at", "-id"]

    def __str__(self) -> str:
        return f"{self.action} {self.email} on {self.room.name}"
