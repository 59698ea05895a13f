from rest_framework import serializers

from apps.inventory.models import Product
from apps.production.models import BillOfMaterials
from shared.serializers import COMPANY_MANAGED_FIELDS, CompanyScopedRelatedField

from .models import (
    DemandForecast,
    MaterialRequirement,
    ProductionPlan,
    SuggestedPurchaseOrder,
    SuggestedPurchaseOrderItem,
)


class DemandForecastSerializer(serializers.ModelSerializer):
    product = CompanyScopedRelatedField(queryset=Product.objects.all())
    product_name = serializers.CharField(source="product.name", read_only=True)

    class Meta:
        model = DemandForecast
        fields = "__all__"
        read_only_fields = COMPANY_MANAGED_FIELDS + [
            "forecast_number",
            "confidence_level",
            "forecast_method",
            "data_points_used",
            "analysis",
            "trend_direction",
            "status",
        ]

    def validate(self, attrs):
        start = attrs.get("forecast_period_start", getattr(self.instance, "forecast_period_start", None))
        end = attrs.get("forecast_period_end", getattr(self.instance, "forecast_period_end", None))
        if start and end and end < start:
            raise serializers.ValidationError("Forecast period end must not be before its start.")
        return attrs

    def create(self, validated_data):
        validated_data["forecast_method"] = DemandForecast.Method.MANUAL
        validated_data.setdefault("confidence_level", 100)
        return super().create(validated_data)


class GenerateForecastSerializer(serializers.Serializer):
    product = CompanyScopedRelatedField(queryset=Product.objects.all())
    period_start = serializers.DateField()
    period_end = serializers.DateField()
    lookback_months = serializers.IntegerField(required=False, min_value=1, max_value=60)

    def validate(self, attrs):
        if attrs["period_end"] < attrs["period_start"]:
            raise serializers.ValidationError("Forecast period end must not be before its start.")
        return attrs


class ProductionPlanSerializer(serializers.ModelSerializer):
    product = CompanyScopedRelatedField(queryset=Product.objects.all())
    bom = CompanyScopedRelatedField(queryset=BillOfMaterials.objects.all())
    forecast = CompanyScopedRelatedField(queryset=DemandForecast.objects.all(), required=False, allow_null=True)

    class Meta:
        model = ProductionPlan
        fields = "__all__"
        read_only_fields = COMPANY_MANAGED_FIELDS + [
            "plan_number",
            "status",
            "current_inventory",
            "approved_by",
            "approved_at",
        ]


class PlanFromForecastSerializer(serializers.Serializer):
    forecast = serializers.IntegerField()
    safety_stock = serializers.DecimalField(max_digits=15, decimal_places=3, required=False, default=0, min_value=0)
    reorder_point = serializers.DecimalField(max_digits=15, decimal_places=3, required=False, allow_null=True)


class MaterialRequirementSerializer(serializers.ModelSerializer):
    raw_material_sku = serializers.CharField(source="raw_material.sku", read_only=True)
    raw_material_name = serializers.CharField(source="raw_material.name", read_only=True)

    class Meta:
        model = MaterialRequirement
        fields = "__all__"
        read_only_fields = [field.name for field in MaterialRequirement._meta.fields]


class SuggestedPurchaseOrderItemSerializer(serializers.ModelSerializer):
    raw_material_sku = serializers.CharField(source="raw_material.sku", read_only=True)

    class Meta:
        model = SuggestedPurchaseOrderItem
        fields = ["id", "raw_material", "raw_material_sku", "requirement", "quantity", "unit", "unit_price", "total_amount"]


class SuggestedPurchaseOrderSerializer(serializers.ModelSerializer):
    items = SuggestedPurchaseOrderItemSerializer(many=True, read_only=True)
    vendor_name = serializers.CharField(source="vendor.name", read_only=True)
    converted_po_number = serializers.CharField(source="converted_po.po_number", read_only=True, default=None)

    class Meta:
        model = SuggestedPurchaseOrder
        fields = "__all__"
