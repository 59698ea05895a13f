from rest_framework import serializers

from shared.serializers import COMPANY_MANAGED_FIELDS, CompanyScopedRelatedField

from .models import Product, RawMaterial, RawMaterialStock, StockLevel, Warehouse


class WarehouseSerializer(serializers.ModelSerializer):
    class Meta:
        model = Warehouse
        fields = "__all__"
        read_only_fields = COMPANY_MANAGED_FIELDS


class ProductSerializer(serializers.ModelSerializer):
    class Meta:
        model = Product
        fields = "__all__"
        read_only_fields = COMPANY_MANAGED_FIELDS


class StockLevelSerializer(serializers.ModelSerializer):
    product = CompanyScopedRelatedField(queryset=Product.objects.all())
    warehouse = CompanyScopedRelatedField(queryset=Warehouse.objects.all())
    available_quantity = serializers.DecimalField(max_digits=15, decimal_places=3, read_only=True)
    is_below_reorder_level = serializers.BooleanField(read_only=True)

    class Meta:
        model = StockLevel
        fields = "__all__"
        read_only_fields = COMPANY_MANAGED_FIELDS


class RawMaterialSerializer(serializers.ModelSerializer):
    class Meta:
        model = RawMaterial
        fields = "__all__"
        read_only_fields = COMPANY_MANAGED_FIELDS


class RawMaterialStockSerializer(serializers.ModelSerializer):
    raw_material = CompanyScopedRelatedField(queryset=RawMaterial.objects.all())
    warehouse = CompanyScopedRelatedField(queryset=Warehouse.objects.all())

    class Meta:
        model = RawMaterialStock
        fields = "__all__"
        read_only_fields = COMPANY_MANAGED_FIELDS
