from __future__ import annotations

from rest_framework import serializers

from apps.procurement.models import Vendor
from apps.sales.models import Customer
from shared.serializers import COMPANY_MANAGED_FIELDS, CompanyScopedRelatedField

from .models import Contract, ContractKeyDate, Dispute


class ContractKeyDateSerializer(serializers.ModelSerializer):
    class Meta:
        model = ContractKeyDate
        fields = ["id", "date_type", "date", "description", "reminder_days", "reminder_sent", "reminder_sent_at"]
        read_only_fields = ["reminder_sent", "reminder_sent_at"]


class ContractSerializer(serializers.ModelSerializer):
    vendor = CompanyScopedRelatedField(queryset=Vendor.objects.all(), required=False, allow_null=True)
    customer = CompanyScopedRelatedField(queryset=Customer.objects.all(), required=False, allow_null=True)
    key_dates = ContractKeyDateSerializer(many=True, required=False)

    class Meta:
        model = Contract
        fields = "__all__"
        read_only_fields = COMPANY_MANAGED_FIELDS + [
            "contract_number",
            "status",
            "signed_at",
            "terminated_at",
            "termination_reason",
            "renewed_from",
        ]

    def validate(self, attrs):
        start = attrs.get("start_date", getattr(self.instance, "start_date", None))
        end = attrs.get("end_date", getattr(self.instance, "end_date", None))
        if start and end and end < start:
            raise serializers.ValidationError({"end_date": "End date cannot be before the start date."})
        return attrs

    def create(self, validated_data):
        key_dates = validated_data.pop("key_dates", [])
        contract = Contract.objects.create(**validated_data)
        for key_date in key_dates:
            ContractKeyDate.objects.create(contract=contract, **key_date)
        return contract

    def update(self, instance, validated_data):
        key_dates = validated_data.pop("key_dates", None)
        instance = super().update(instance, validated_data)
        if key_dates is not None:
            instance.key_dates.all().delete()
            for key_date in key_dates:
                ContractKeyDate.objects.create(contract=instance, **key_date)
        return instance


class DisputeSerializer(serializers.ModelSerializer):
    contract = CompanyScopedRelatedField(queryset=Contract.objects.all(), required=False, allow_null=True)

    class Meta:
        model = Dispute
        fields = "__all__"
        read_only_fields = COMPANY_MANAGED_FIELDS + ["dispute_number", "status", "resolved_date"]


class ResolveDisputeSerializer(serializers.Serializer):
    resolution = serializers.CharField()
    actual_value = serializers.DecimalField(max_digits=20, decimal_places=2, required=False, allow_null=True)
    resolved_date = serializers.DateField(required=False, allow_null=True)
