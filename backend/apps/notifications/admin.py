from django.contrib import admin

from .models import Notification


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ("title", "user", "severity", "status", "occurrences", "company", "created_at")
    list_filter = ("severity", "status", "company")
    search_fields = ("title", "body", "user__username", "user__email", "group_key")
    date_hierarchy = "created_at"
