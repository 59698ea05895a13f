from __future__ import annotations

from decimal import Decimal

from django.db import transaction
from rest_framework import serializers

from apps.inventory.models import Product, RawMaterial
from shared.serializers import COMPANY_MANAGED_FIELDS, CompanyScopedRelatedField

from .models import BillOfMaterials, BomComponent
from .services import BomService

FOURPLACES = Decimal("0.0001")


class BomComponentSerializer(serializers.ModelSerializer):
    product = CompanyScopedRelatedField(queryset=Product.objects.all(), required=False, allow_null=True)
    raw_material = CompanyScopedRelatedField(queryset=RawMaterial.objects.all(), required=False, allow_null=True)
    name = serializers.CharField(required=False, allow_blank=True)

    class Meta:
        model = BomComponent
        fields = [
            "id",
            "component_type",
            "product",
            "raw_material",
            "name",
            "quantity",
            "unit",
            "unit_cost",
            "wastage_percent",
            "total_cost",
            "sort_order",
        ]
        read_only_fields = ["total_cost"]

    def validate(self, attrs):
        if attrs.get("quantity") is not None and attrs["quantity"] <= 0:
            raise serializers.ValidationError({"quantity": "Quantity must be positive."})
        return attrs


class BillOfMaterialsSerializer(serializers.ModelSerializer):
    product = CompanyScopedRelatedField(queryset=Product.objects.all())
    components = BomComponentSerializer(many=True, required=False)
    cost_per_unit = serializers.SerializerMethodField()

    class Meta:
        model = BillOfMaterials
        fields = "__all__"
        read_only_fields = COMPANY_MANAGED_FIELDS + [
            "status",
            "total_material_cost",
            "total_labor_cost",
            "total_cost",
        ]

    def get_cost_per_unit(self, obj):
        try:
            return str(BomService.cost_per_unit(obj).quantize(FOURPLACES))
        except ValueError:
            return None

    def validate_batch_size(self, value):
        if value <= 0:
            raise serializers.ValidationError("Batch size must be positive.")
        return value

    @transaction.atomic
    def create(self, validated_data):
        components = validated_data.pop("components", [])
        bom = BillOfMaterials.objects.create(**validated_data)
        for component in components:
            BomComponent.objects.create(bom=bom, **component)
        return BomService.recalculate_costs(bom)

    @transaction.atomic
    def update(self, instance, validated_data):
        components = validated_data.pop("components", None)
        instance = super().update(instance, validated_data)
        if components is not None:
            instance.components.all().delete()
            for component in components:
                BomComponent.objects.create(bom=instance, **component)
        return BomService.recalculate_costs(instance)


class RequirementsRequestSerializer(serializers.Serializer):
    quantity = serializers.DecimalField(max_digits=15, decimal_places=3, min_value=0)
