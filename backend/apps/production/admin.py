from django.contrib import admin

from .models import BillOfMaterials, BomComponent


class BomComponentInline(admin.TabularInline):
    model = BomComponent
    extra = 0
    fields = ("sort_order", "component_type", "raw_material", "product", "name", "quantity", "unit", "unit_cost", "wastage_percent", "total_cost")
    readonly_fields = ("total_cost",)


@admin.register(BillOfMaterials)
class BillOfMaterialsAdmin(admin.ModelAdmin):
    list_display = ("name", "product", "version", "status", "batch_size", "total_cost", "company")
    list_filter = ("status", "company")
    search_fields = ("name", "product__name", "product__sku")
    readonly_fields = ("total_material_cost", "total_labor_cost", "total_cost")
    inlines = [BomComponentInline]
