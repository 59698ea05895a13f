from django.db import transaction
from rest_framework import serializers

from apps.inventory.models import Product
from shared.serializers import COMPANY_MANAGED_FIELDS, CompanyScopedRelatedField

from .models import Customer, SalesOrder, SalesOrderLine


class CustomerSerializer(serializers.ModelSerializer):
    class Meta:
        model = Customer
        fields = "__all__"
        read_only_fields = COMPANY_MANAGED_FIELDS

    def validate(self, data):
        company = self.context.get("company")
        name = data.get("name")
        if name and company:
            qs = Customer.objects.filter(company=company, name__iexact=name)
            if self.instance:
                qs = qs.exclude(pk=self.instance.pk)
            if qs.exists():
                raise serializers.ValidationError("A customer with this name already exists.")
        return data


class SalesOrderLineSerializer(serializers.ModelSerializer):
    product = CompanyScopedRelatedField(queryset=Product.objects.all())

    class Meta:
        model = SalesOrderLine
        fields = ["id", "product", "description", "quantity", "unit_price", "line_total"]
        read_only_fields = ["line_total"]


class SalesOrderSerializer(serializers.ModelSerializer):
    customer = CompanyScopedRelatedField(queryset=Customer.objects.all())
    lines = SalesOrderLineSerializer(many=True)

    class Meta:
        model = SalesOrder
        fields = "__all__"
        read_only_fields = COMPANY_MANAGED_FIELDS + ["order_number", "status", "total_amount"]

    @transaction.atomic
    def create(self, validated_data):
        lines = validated_data.pop("lines")
        order = SalesOrder.objects.create(**validated_data)
        for line in lines:
            SalesOrderLine.objects.create(order=order, **line)
        order.refresh_total()
        return order

    @transaction.atomic
    def update(self, instance, validated_data):
        if instance.status != SalesOrder.Status.DRAFT:
            raise serializers.ValidationError({"detail": "Only draft sales orders can be edited."})
        lines = validated_data.pop("lines", None)
        instance = super().update(instance, validated_data)
        if lines is not None:
            instance.lines.all().delete()
            for line in lines:
                SalesOrderLine.objects.create(order=instance, **line)
        instance.refresh_total()
        return instance
