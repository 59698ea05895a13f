from django.contrib import admin

from .models import Product, RawMaterial, RawMaterialStock, StockLevel, Warehouse


@admin.register(Warehouse)
class WarehouseAdmin(admin.ModelAdmin):
    list_display = ["code", "name", "is_active", "company"]
    list_filter = ["is_active", "company"]
    search_fields = ["code", "name"]


class StockLevelInline(admin.TabularInline):
    model = StockLevel
    extra = 0
    fields = ["warehouse", "quantity", "reserved_quantity", "reorder_level", "reorder_quantity"]


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ["sku", "name", "unit", "cost_price", "unit_price", "preferred_vendor", "is_active", "company"]
    list_filter = ["is_active", "company"]
    search_fields = ["sku", "name"]
    inlines = [StockLevelInline]


@admin.register(StockLevel)
class StockLevelAdmin(admin.ModelAdmin):
    list_display = ["product", "warehouse", "quantity", "reserved_quantity", "reorder_level", "reorder_quantity"]
    list_filter = ["warehouse", "company"]
    search_fields = ["product__sku", "product__name"]


class RawMaterialStockInline(admin.TabularInline):
    model = RawMaterialStock
    extra = 0
    fields = ["warehouse", "quantity"]


@admin.register(RawMaterial)
class RawMaterialAdmin(admin.ModelAdmin):
    list_display = ["sku", "name", "unit", "unit_cost", "min_order_quantity", "lead_time_days", "preferred_vendor", "status"]
    list_filter = ["status", "company"]
    search_fields = ["sku", "name", "category"]
    inlines = [RawMaterialStockInline]
