from __future__ import annotations

from rest_framework import serializers

from apps.procurement.models import PurchaseOrder
from shared.serializers import COMPANY_MANAGED_FIELDS, CompanyScopedRelatedField

from .models import FreightCarrier, FreightQuote, FreightRfq


class FreightCarrierSerializer(serializers.ModelSerializer):
    class Meta:
        model = FreightCarrier
        fields = "__all__"
        read_only_fields = COMPANY_MANAGED_FIELDS


class FreightQuoteSerializer(serializers.ModelSerializer):
    carrier_name = serializers.CharField(source="carrier.name", read_only=True)

    class Meta:
        model = FreightQuote
        fields = "__all__"
        read_only_fields = ["rfq", "carrier", "total_cost", "status", "received_at", "created_at", "updated_at"]


class FreightRfqSerializer(serializers.ModelSerializer):
    purchase_order = CompanyScopedRelatedField(
        queryset=PurchaseOrder.objects.all(), required=False, allow_null=True
    )
    quotes = FreightQuoteSerializer(many=True, read_only=True)

    class Meta:
        model = FreightRfq
        fields = "__all__"
        read_only_fields = COMPANY_MANAGED_FIELDS + [
            "rfq_number",
            "status",
            "awarded_quote",
            "sent_at",
            "cancellation_reason",
        ]

    def validate(self, attrs):
        ready = attrs.get("ready_date", getattr(self.instance, "ready_date", None))
        required = attrs.get("required_delivery_date", getattr(self.instance, "required_delivery_date", None))
        if ready and required and required < ready:
            raise serializers.ValidationError(
                {"required_delivery_date": "Delivery date cannot be before the ready date."}
            )
        return attrs


class SendRfqSerializer(serializers.Serializer):
    carriers = CompanyScopedRelatedField(queryset=FreightCarrier.objects.all(), many=True)


class RecordQuoteSerializer(serializers.Serializer):
    freight_cost = serializers.DecimalField(max_digits=14, decimal_places=2, min_value=0)
    fuel_surcharge = serializers.DecimalField(max_digits=14, decimal_places=2, min_value=0, required=False)
    customs_fees = serializers.DecimalField(max_digits=14, decimal_places=2, min_value=0, required=False)
    insurance_cost = serializers.DecimalField(max_digits=14, decimal_places=2, min_value=0, required=False)
    other_charges = serializers.DecimalField(max_digits=14, decimal_places=2, min_value=0, required=False)
    transit_days = serializers.IntegerField(min_value=1, required=False)
    valid_until = serializers.DateField(required=False)
    currency = serializers.CharField(max_length=3, required=False, allow_blank=True)
    notes = serializers.CharField(required=False, allow_blank=True)
