from django.contrib import admin

from .models import (
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


class DataRoomFolderInline(admin.TabularInline):
    model = DataRoomFolder
    extra = 0


@admin.register(DataRoom)
class DataRoomAdmin(admin.ModelAdmin):
    list_display = ("name", "slug", "status", "is_public", "allow_download", "expires_at", "owner", "company")
    list_filter = ("status", "is_public", "company")
    search_fields = ("name", "slug")
    prepopulated_fields = {"slug": ("name",)}
    inlines = [DataRoomFolderInline]


@admin.register(DataRoomDocument)
class DataRoomDocumentAdmin(admin.ModelAdmin):
    list_display = ("name", "room", "folder", "file_type", "file_size", "download_count")
    list_filter = ("room",)
    search_fields = ("name", "storage_key")


@admin.register(DataRoomLink)
class DataRoomLinkAdmin(admin.ModelAdmin):
    list_display = ("name", "room", "link_code", "expires_at", "view_count", "max_views", "is_active")
    list_filter = ("is_active", "room")


@admin.register(DataRoomInvitation)
class DataRoomInvitationAdmin(admin.ModelAdmin):
    list_display = ("email", "room", "role", "status", "expires_at", "accepted_at")
    list_filter = ("status", "role", "room")
    search_fields = ("email",)


@admin.register(DataRoomEmailPermission)
class DataRoomEmailPermissionAdmin(admin.ModelAdmin):
    list_display = ("email", "room", "can_view", "can_download", "can_upload", "can_manage", "is_active")
    list_filter = ("is_active", "room")
    search_fields = ("email",)


@admin.register(DataRoomEmailBlock)
class DataRoomEmailBlockAdmin(admin.ModelAdmin):
    list_display = ("email", "room", "is_active", "auto_unblock_at", "blocked_by", "created_at")
    list_filter = ("is_active", "room")
    search_fields = ("email", "reason")


@admin.register(DataRoomAccessAttempt)
class DataRoomAccessAttemptAdmin(admin.ModelAdmin):
    list_display = ("email", "room", "access_type", "success", "denial_reason", "ip_address", "created_at")
    list_filter = ("success", "access_type", "room")
    search_fields = ("email",)
    readonly_fields = [field.name for field in DataRoomAccessAttempt._meta.fields]


@admin.register(DataRoomPermissionAuditLog)
class DataRoomPermissionAuditLogAdmin(admin.ModelAdmin):
    list_display = ("email", "room", "action", "performed_by", "created_at")
    list_filter = ("action", "room")
    search_fields = ("email",)
    readonly_fields = [field.name for field in DataRoomPermissionAuditLog._meta.fields]
