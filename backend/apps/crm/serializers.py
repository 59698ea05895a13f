from __future__ import annotations

from rest_framework import serializers

from shared.serializers import COMPANY_MANAGED_FIELDS, CompanyScopedRelatedField

from .models import ContactCapture, CrmContact, CrmInteraction, CrmTag


class CrmTagSerializer(serializers.ModelSerializer):
    class Meta:
        model = CrmTag
        fields = "__all__"
        read_only_fields = COMPANY_MANAGED_FIELDS


class CrmInteractionSerializer(serializers.ModelSerializer):
    class Meta:
        model = CrmInteraction
        fields = ["id", "interaction_type", "subject", "content", "occurred_at", "performed_by", "created_at"]
        read_only_fields = ["performed_by", "created_at"]


class CrmContactSerializer(serializers.ModelSerializer):
    tags = CompanyScopedRelatedField(queryset=CrmTag.objects.all(), many=True, required=False)

    class Meta:
        model = CrmContact
        fields = "__all__"
        read_only_fields = COMPANY_MANAGED_FIELDS + ["lead_score", "last_contacted_at", "pipeline_stage"]
        extra_kwargs = {"full_name": {"required": False}}


class PipelineStageSerializer(serializers.Serializer):
    stage = serializers.ChoiceField(choices=CrmContact.PipelineStage.choices)


class ContactCaptureSerializer(serializers.ModelSerializer):
    raw_data = serializers.JSONField()

    class Meta:
        model = ContactCapture
        fields = "__all__"
        read_only_fields = COMPANY_MANAGED_FIELDS + ["parsed_data", "status", "contact", "error_message"]
