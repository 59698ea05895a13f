from django.contrib import admin

from .models import ContactCapture, CrmContact, CrmInteraction, CrmTag


@admin.register(CrmTag)
class CrmTagAdmin(admin.ModelAdmin):
    list_display = ("name", "color", "company")
    search_fields = ("name",)


class CrmInteractionInline(admin.TabularInline):
    model = CrmInteraction
    extra = 0


@admin.register(CrmContact)
class CrmContactAdmin(admin.ModelAdmin):
    list_display = ("full_name", "email", "organization", "contact_type", "pipeline_stage", "lead_score", "company")
    list_filter = ("contact_type", "pipeline_stage", "source", "status", "company")
    search_fields = ("full_name", "email", "organization", "phone")
    readonly_fields = ("lead_score", "last_contacted_at")
    filter_horizontal = ("tags",)
    inlines = [CrmInteractionInline]


@admin.register(ContactCapture)
class ContactCaptureAdmin(admin.ModelAdmin):
    list_display = ("id", "method", "status", "contact", "created_at", "company")
    list_filter = ("method", "status", "company")
    readonly_fields = ("parsed_data", "error_message")
