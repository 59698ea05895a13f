from django.contrib import admin

from .models import FreightCarrier, FreightQuote, FreightRfq


@admin.register(FreightCarrier)
class FreightCarrierAdmin(admin.ModelAdmin):
    list_display = ("code", "name", "carrier_type", "rating", "is_preferred", "is_active", "company")
    list_filter = ("carrier_type", "is_preferred", "is_active", "company")
    search_fields = ("code", "name", "email")


class FreightQuoteInline(admin.TabularInline):
    model = FreightQuote
    extra = 0
    readonly_fields = ("total_cost", "received_at")


@admin.register(FreightRfq)
class FreightRfqAdmin(admin.ModelAdmin):
    list_display = ("rfq_number", "title", "origin", "destination", "cargo_type", "status", "company")
    list_filter = ("status", "cargo_type", "company")
    search_fields = ("rfq_number", "title", "origin", "destination")
    readonly_fields = ("rfq_number", "sent_at", "awarded_quote")
    inlines = [FreightQuoteInline]
