from django.db.models import F
from rest_framework import viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from shared.views import CompanyScopedQuerysetMixin

from .models import Product, RawMaterial, RawMaterialStock, StockLevel, Warehouse
from .serializers import (
    ProductSerializer,
    RawMaterialSerializer,
    RawMaterialStockSerializer,
    StockLevelSerializer,
    WarehouseSerializer,
)
from .services.replenishment import LowStockService


class WarehouseViewSet(CompanyScopedQuerysetMixin, viewsets.ModelViewSet):
    serializer_class = WarehouseSerializer

    def get_queryset(self):
        return self.scope_queryset(Warehouse.objects.all())


class ProductViewSet(CompanyScopedQuerysetMixin, viewsets.ModelViewSet):
    serializer_class = ProductSerializer

    def get_queryset(self):
        qs = self.scope_queryset(Product.objects.select_related("preferred_vendor"))
        search = self.request.query_params.get("search")
        if search:
            qs = qs.filter(name__icontains=search) | qs.filter(sku__icontains=search)
        return qs


class StockLevelViewSet(CompanyScopedQuerysetMixin, viewsets.ModelViewSet):
    serializer_class = StockLevelSerializer

    def get_queryset(self):
        qs = self.scope_queryset(StockLevel.objects.select_related("product", "warehouse"))
        if self.request.query_params.get("low_stock") in {"1", "true"}:
            qs = qs.filter(reorder_level__isnull=False, quantity__lte=F("reorder_level"))
        return qs

    @action(detail=True, methods=["post"], url_path="check-reorder")
    def check_reorder(self, request, pk=None):
        result = LowStockService.check_and_trigger(self.get_object(), user=request.user)
        return Response(result.as_dict())


class RawMaterialViewSet(CompanyScopedQuerysetMixin, viewsets.ModelViewSet):
    serializer_class = RawMaterialSerializer

    def get_queryset(self):
        return self.scope_queryset(RawMaterial.objects.select_related("preferred_vendor"))


class RawMaterialStockViewSet(CompanyScopedQuerysetMixin, viewsets.ModelViewSet):
    serializer_class = RawMaterialStockSerializer

    def get_queryset(self):
        return self.scope_queryset(RawMaterialStock.objects.select_related("raw_material", "warehouse"))
