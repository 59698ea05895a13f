from django.contrib import admin

from .models import AuditLog


@admin.register(AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
    list_display = ("timestamp", "user", "company", "action", "entity_type", "entity_id")
    list_filter = ("action", "company", "entity_type")
    search_fields = ("entity_type", "entity_id", "description", "user__username", "user__email")
    readonly_fields = [field.name for field in AuditLog._meta.fields]
    date_hierarchy = "timestamp"

    def has_add_permission(self, request):
        return False
