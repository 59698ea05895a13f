from django.contrib import admin

from .models import Contract, ContractKeyDate, Dispute


class ContractKeyDateInline(admin.TabularInline):
    model = ContractKeyDate
    extra = 0
    readonly_fields = ("reminder_sent_at",)


@admin.register(Contract)
class ContractAdmin(admin.ModelAdmin):
    list_display = ("contract_number", "title", "contract_type", "party_name", "status", "end_date", "company")
    list_filter = ("status", "contract_type", "auto_renewal", "company")
    search_fields = ("contract_number", "title", "party_name")
    readonly_fields = ("contract_number", "signed_at", "terminated_at", "renewed_from")
    inlines = [ContractKeyDateInline]


@admin.register(Dispute)
class DisputeAdmin(admin.ModelAdmin):
    list_display = ("dispute_number", "title", "dispute_type", "priority", "status", "filed_date", "company")
    list_filter = ("status", "priority", "dispute_type", "company")
    search_fields = ("dispute_number", "title", "party_name")
    readonly_fields = ("dispute_number", "resolved_date")
