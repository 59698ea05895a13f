from __future__ import annotations

from rest_framework import serializers

from apps.inventory.models import Product, RawMaterial
from shared.serializers import COMPANY_MANAGED_FIELDS, CompanyScopedRelatedField

from .models import PurchaseOrder, PurchaseOrderItem, Vendor, VendorQuote, VendorRfq
from .services import PurchaseOrderService


class VendorSerializer(serializers.ModelSerializer):
    class Meta:
        model = Vendor
        fields = "__all__"
        read_only_fields = COMPANY_MANAGED_FIELDS


class PurchaseOrderItemSerializer(serializers.ModelSerializer):
    product = CompanyScopedRelatedField(queryset=Product.objects.all(), required=False, allow_null=True)
    raw_material = CompanyScopedRelatedField(queryset=RawMaterial.objects.all(), required=False, allow_null=True)
    remaining_quantity = serializers.DecimalField(max_digits=15, decimal_places=3, read_only=True)

    class Meta:
        model = PurchaseOrderItem
        fields = [
            "id",
            "product",
            "raw_material",
            "description",
            "quantity",
            "received_quantity",
            "remaining_quantity",
            "unit_price",
            "total_amount",
        ]
        read_only_fields = ["received_quantity", "total_amount"]


class PurchaseOrderSerializer(serializers.ModelSerializer):
    vendor = CompanyScopedRelatedField(queryset=Vendor.objects.all())
    items = PurchaseOrderItemSerializer(many=True)
    vendor_name = serializers.CharField(source="vendor.name", read_only=True)

    class Meta:
        model = PurchaseOrder
        fields = [
            "id",
            "po_number",
            "vendor",
            "vendor_name",
            "status",
            "order_date",
            "expected_date",
            "currency",
            "subtotal",
            "tax_amount",
            "shipping_amount",
            "total_amount",
            "notes",
            "approved_by",
            "approved_at",
            "sent_at",
            "received_at",
            "items",
            "created_at",
            "updated_at",
        ]
        read_only_fields = [
            "po_number",
            "status",
            "subtotal",
            "total_amount",
            "approved_by",
            "approved_at",
            "sent_at",
            "received_at",
            "created_at",
            "updated_at",
        ]

    def create(self, validated_data):
        items = validated_data.pop("items")
        try:
            return PurchaseOrderService.create_purchase_order(
                company=validated_data.pop("company"),
                vendor=validated_data.pop("vendor"),
                user=validated_data.pop("created_by", None),
                items=items,
                expected_date=validated_data.get("expected_date"),
                currency=validated_data.get("currency"),
                tax_amount=validated_data.get("tax_amount") or 0,
                shipping_amount=validated_data.get("shipping_amount") or 0,
                notes=validated_data.get("notes", ""),
            )
        except ValueError as exc:
            raise serializers.ValidationError({"detail": str(exc)}) from exc

    def update(self, instance, validated_data):
        validated_data.pop("items", None)
        if instance.status != PurchaseOrder.Status.DRAFT:
            raise serializers.ValidationError({"detail": "Only draft purchase orders can be edited."})
        instance = super().update(instance, validated_data)
        instance.refresh_totals()
        return instance


class ReceiveItemsSerializer(serializers.Serializer):
    warehouse = serializers.IntegerField()
    quantities = serializers.DictField(child=serializers.DecimalField(max_digits=15, decimal_places=3))


class VendorQuoteSerializer(serializers.ModelSerializer):
    vendor_name = serializers.CharField(source="vendor.name", read_only=True)

    class Meta:
        model = VendorQuote
        fields = "__all__"
        read_only_fields = COMPANY_MANAGED_FIELDS + [
            "quote_number",
            "total_price",
            "status",
            "rank",
            "purchase_order",
        ]


class VendorRfqSerializer(serializers.ModelSerializer):
    quotes = VendorQuoteSerializer(many=True, read_only=True)

    class Meta:
        model = VendorRfq
        fields = "__all__"
        read_only_fields = COMPANY_MANAGED_FIELDS + ["rfq_number", "status", "awarded_quote", "sent_at", "vendors"]


class RecordQuoteSerializer(serializers.Serializer):
    vendor = serializers.IntegerField()
    unit_price = serializers.DecimalField(max_digits=20, decimal_places=4)
    quantity = serializers.DecimalField(max_digits=15, decimal_places=3, required=False)
    shipping_cost = serializers.DecimalField(max_digits=20, decimal_places=2, required=False, default=0)
    handling_cost = serializers.DecimalField(max_digits=20, decimal_places=2, required=False, default=0)
    lead_time_days = serializers.IntegerField(required=False, default=0, min_value=0)
    valid_until = serializers.DateField(required=False, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True, default="")
