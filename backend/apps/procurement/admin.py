from django.contrib import admin

from .models import PurchaseOrder, PurchaseOrderItem, Vendor, VendorQuote, VendorRfq


@admin.register(Vendor)
class VendorAdmin(admin.ModelAdmin):
    list_display = ("code", "name", "email", "status", "default_lead_time_days", "company")
    list_filter = ("status", "company")
    search_fields = ("code", "name", "email", "contact_name")


class PurchaseOrderItemInline(admin.TabularInline):
    model = PurchaseOrderItem
    extra = 0
    readonly_fields = ("total_amount",)


@admin.register(PurchaseOrder)
class PurchaseOrderAdmin(admin.ModelAdmin):
    list_display = ("po_number", "vendor", "status", "order_date", "expected_date", "total_amount", "company")
    list_filter = ("status", "company")
    search_fields = ("po_number", "vendor__name", "notes")
    readonly_fields = ("po_number", "subtotal", "total_amount", "approved_at", "sent_at", "received_at")
    inlines = [PurchaseOrderItemInline]


class VendorQuoteInline(admin.TabularInline):
    model = VendorQuote
    extra = 0
    fields = ("vendor", "unit_price", "quantity", "total_price", "lead_time_days", "status", "rank")
    readonly_fields = ("total_price", "rank")


@admin.register(VendorRfq)
class VendorRfqAdmin(admin.ModelAdmin):
    list_display = ("rfq_number", "title", "quantity", "required_by", "status", "company")
    list_filter = ("status", "company")
    search_fields = ("rfq_number", "title")
    inlines = [VendorQuoteInline]
