from __future__ import annotations

from rest_framework import serializers

from .models import Notification


class NotificationSerializer(serializers.ModelSerializer):
    class Meta:
        model = Notification
        fields = [
            "id",
            "user",
            "title",
            "body",
            "severity",
            "status",
            "group_key",
            "entity_type",
            "entity_id",
            "occurrences",
            "created_at",
        ]
        read_only_fields = ["created_at", "user", "occurrences"]


class NotificationStatusSerializer(serializers.ModelSerializer):
    class Meta:
        model = Notification
        fields = ["status"]
