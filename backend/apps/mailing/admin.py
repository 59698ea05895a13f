from django.contrib import admin

from .models import AutoReplyRule, EmailEvent, EmailMessage, EmailTemplate, InboundEmail, PendingReply


@admin.register(EmailTemplate)
class EmailTemplateAdmin(admin.ModelAdmin):
    list_display = ("name", "template_type", "is_active", "company")
    list_filter = ("template_type", "is_active", "company")
    search_fields = ("name", "subject_template")


class EmailEventInline(admin.TabularInline):
    model = EmailEvent
    extra = 0
    readonly_fields = ("event_type", "detail", "created_at")
    can_delete = False


@admin.register(EmailMessage)
class EmailMessageAdmin(admin.ModelAdmin):
    list_display = ("to_email", "subject", "template_name", "status", "retry_count", "sent_at", "company")
    list_filter = ("status", "company")
    search_fields = ("to_email", "subject", "idempotency_key", "provider_message_id")
    readonly_fields = ("provider_message_id", "sent_at", "retry_count", "last_error")
    inlines = [EmailEventInline]


@admin.register(InboundEmail)
class InboundEmailAdmin(admin.ModelAdmin):
    list_display = ("from_email", "subject", "category", "category_confidence", "priority", "status", "received_at")
    list_filter = ("category", "priority", "status", "company")
    search_fields = ("from_email", "subject")


@admin.register(AutoReplyRule)
class AutoReplyRuleAdmin(admin.ModelAdmin):
    list_display = ("name", "category", "priority", "is_enabled", "auto_send", "times_triggered", "company")
    list_filter = ("is_enabled", "auto_send", "category", "company")
    search_fields = ("name",)


@admin.register(PendingReply)
class PendingReplyAdmin(admin.ModelAdmin):
    list_display = ("to_email", "subject", "status", "reviewed_by", "reviewed_at", "company")
    list_filter = ("status", "company")
    search_fields = ("to_email", "subject")
