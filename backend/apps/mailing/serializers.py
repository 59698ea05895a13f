from __future__ import annotations

import re

from rest_framework import serializers

from shared.serializers import COMPANY_MANAGED_FIELDS

from .models import AutoReplyRule, EmailEvent, EmailMessage, EmailTemplate, InboundEmail, PendingReply
from .services import category_display


class EmailTemplateSerializer(serializers.ModelSerializer):
    class Meta:
        model = EmailTemplate
        fields = "__all__"
        read_only_fields = COMPANY_MANAGED_FIELDS


class EmailEventSerializer(serializers.ModelSerializer):
    class Meta:
        model = EmailEvent
        fields = ["id", "event_type", "detail", "created_at"]


class EmailMessageSerializer(serializers.ModelSerializer):
    events = EmailEventSerializer(many=True, read_only=True)

    class Meta:
        model = EmailMessage
        fields = "__all__"
        read_only_fields = COMPANY_MANAGED_FIELDS + [
            "status",
            "retry_count",
            "max_retries",
            "last_error",
            "provider_message_id",
            "sent_at",
            "template",
            "triggered_by",
            "html_body",
        ]


class QueueEmailSerializer(serializers.Serializer):
    to_email = serializers.EmailField()
    to_name = serializers.CharField(required=False, allow_blank=True, default="")
    template_name = serializers.CharField(required=False, allow_blank=True, default="")
    subject = serializers.CharField(required=False, allow_blank=True, default="")
    body = serializers.CharField(required=False, allow_blank=True, default="")
    payload = serializers.DictField(required=False, default=dict)
    reply_to = serializers.EmailField(required=False, allow_blank=True, default="")
    idempotency_key = serializers.CharField(required=False, allow_blank=True, default="")
    related_entity_type = serializers.CharField(required=False, allow_blank=True, default="")
    related_entity_id = serializers.CharField(required=False, allow_blank=True, default="")
    scheduled_at = serializers.DateTimeField(required=False, allow_null=True, default=None)

    def validate(self, attrs):
        if not attrs["template_name"] and not attrs["subject"]:
            raise serializers.ValidationError("Provide a template_name or a subject.")
        return attrs


class InboundEmailSerializer(serializers.ModelSerializer):
    category_display = serializers.SerializerMethodField()

    class Meta:
        model = InboundEmail
        fields = "__all__"
        read_only_fields = COMPANY_MANAGED_FIELDS + [
            "category",
            "category_confidence",
            "keywords",
            "priority",
            "suggested_action",
            "status",
        ]
        extra_kwargs = {"received_at": {"required": False}}

    def get_category_display(self, obj):
        return category_display(obj.category)


class CategorizeSerializer(serializers.Serializer):
    subject = serializers.CharField(allow_blank=True)
    from_email = serializers.CharField(allow_blank=True)


class AutoReplyRuleSerializer(serializers.ModelSerializer):
    class Meta:
        model = AutoReplyRule
        fields = "__all__"
        read_only_fields = COMPANY_MANAGED_FIELDS + ["times_triggered", "last_triggered_at"]

    def validate(self, attrs):
        for field in ("sender_pattern", "subject_pattern"):
            pattern = attrs.get(field)
            if pattern:
                try:
                    re.compile(pattern)
                except re.error as exc:
                    raise serializers.ValidationError({field: f"Invalid pattern: {exc}"})
        confidence = attrs.get("min_confidence")
        if confidence is not None and confidence > 100:
            raise serializers.ValidationError({"min_confidence": "Confidence is a percentage (0-100)."})
        return attrs


class PendingReplySerializer(serializers.ModelSerializer):
    class Meta:
        model = PendingReply
        fields = "__all__"
        read_only_fields = COMPANY_MANAGED_FIELDS + [
            "inbound_email",
            "rule",
            "to_email",
            "to_name",
            "status",
            "email_message",
            "reviewed_by",
            "reviewed_at",
        ]


class ApproveReplySerializer(serializers.Serializer):
    subject = serializers.CharField(required=False, allow_blank=True, default="")
    body = serializers.CharField(required=False, allow_blank=True, default="")
