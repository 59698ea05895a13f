from rest_framework import serializers

from shared.serializers import COMPANY_MANAGED_FIELDS

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
from .services.access import PERMISSION_FIELDS


class DataRoomSerializer(serializers.ModelSerializer):
    class Meta:
        model = DataRoom
        fields = "__all__"
        read_only_fields = COMPANY_MANAGED_FIELDS + ["owner"]


class DataRoomFolderSerializer(serializers.ModelSerializer):
    class Meta:
        model = DataRoomFolder
        fields = ["id", "parent", "name", "sort_order", "created_at"]


class DataRoomDocumentSerializer(serializers.ModelSerializer):
    class Meta:
        model = DataRoomDocument
        fields = [
            "id",
            "folder",
            "name",
            "file_type",
            "file_size",
            "storage_key",
            "download_count",
            "view_count",
            "created_at",
        ]
        read_only_fields = ["download_count", "view_count"]


class DataRoomLinkSerializer(serializers.ModelSerializer):
    class Meta:
        model = DataRoomLink
        exclude = ["room", "created_by"]
        read_only_fields = ["link_code", "view_count"]


class DataRoomInvitationSerializer(serializers.ModelSerializer):
    class Meta:
        model = DataRoomInvitation
        exclude = ["room", "invited_by"]
        read_only_fields = ["invite_code", "status", "accepted_at"]


class DataRoomEmailPermissionSerializer(serializers.ModelSerializer):
    class Meta:
        model = DataRoomEmailPermission
        fields = ["id", "email", *PERMISSION_FIELDS, "download_count", "is_active", "updated_at"]
        read_only_fields = ["download_count", "is_active", "updated_at"]


class DataRoomEmailBlockSerializer(serializers.ModelSerializer):
    class Meta:
        model = DataRoomEmailBlock
        fields = ["id", "email", "reason", "auto_unblock_at", "is_active", "unblocked_at", "created_at"]
        read_only_fields = ["is_active", "unblocked_at"]


class DataRoomAccessAttemptSerializer(serializers.ModelSerializer):
    class Meta:
        model = DataRoomAccessAttempt
        fields = "__all__"


class DataRoomPermissionAuditLogSerializer(serializers.ModelSerializer):
    class Meta:
        model = DataRoomPermissionAuditLog
        fields = "__all__"


class CheckAccessSerializer(serializers.Serializer):
    email = serializers.EmailField()
    access_type = serializers.ChoiceField(choices=DataRoomAccessAttempt.AccessType.choices)
    folder = serializers.IntegerField(required=False, allow_null=True)
    document = serializers.IntegerField(required=False, allow_null=True)


class AcceptInvitationSerializer(serializers.Serializer):
    invite_code = serializers.CharField()
    email = serializers.EmailField()
