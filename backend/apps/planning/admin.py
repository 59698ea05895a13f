from django.contrib import admin

from .models import (
    DemandForecast,
    MaterialRequirement,
    ProductionPlan,
    SuggestedPurchaseOrder,
    SuggestedPurchaseOrderItem,
)


@admin.register(DemandForecast)
class DemandForecastAdmin(admin.ModelAdmin):
    list_display = [
        "forecast_number",
        "product",
        "forecast_period_start",
        "forecast_period_end",
        "forecasted_quantity",
        "confidence_level",
        "forecast_method",
        "trend_direction",
        "status",
    ]
    list_filter = ["status", "forecast_method", "trend_direction", "company"]
    search_fields = ["forecast_number", "product__sku", "product__name"]


class MaterialRequirementInline(admin.TabularInline):
    model = MaterialRequirement
    extra = 0
    fields = [
        "raw_material",
        "required_quantity",
        "current_inventory",
        "on_order_quantity",
        "shortage_quantity",
        "suggested_order_quantity",
        "is_urgent",
        "priority_score",
        "status",
    ]
    readonly_fields = fields


@admin.register(ProductionPlan)
class ProductionPlanAdmin(admin.ModelAdmin):
    list_display = ["plan_number", "product", "planned_quantity", "planned_start_date", "status", "company"]
    list_filter = ["status", "company"]
    search_fields = ["plan_number", "product__sku"]
    inlines = [MaterialRequirementInline]


class SuggestedPurchaseOrderItemInline(admin.TabularInline):
    model = SuggestedPurchaseOrderItem
    extra = 0


@admin.register(SuggestedPurchaseOrder)
class SuggestedPurchaseOrderAdmin(admin.ModelAdmin):
    list_display = [
        "suggestion_number",
        "vendor",
        "status",
        "priority_score",
        "is_urgent",
        "required_by_date",
        "suggested_order_date",
        "total_amount",
    ]
    list_filter = ["status", "is_urgent", "company"]
    search_fields = ["suggestion_number", "vendor__name"]
    inlines = [SuggestedPurchaseOrderItemInline]
