from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as DjangoUserAdmin

from .models import User, UserCompanyRole


class UserCompanyRoleInline(admin.TabularInline):
    model = UserCompanyRole
    extra = 0


@admin.register(User)
class UserAdmin(DjangoUserAdmin):
    fieldsets = (
        (None, {"fields": ("username", "password")}),
        ("Personal info", {"fields": ("first_name", "last_name", "email", "phone")}),
        (
            "Permissions",
            {
                "fields": (
                    "is_active",
                    "is_staff",
                    "is_superuser",
                    "groups",
                    "user_permissions",
                )
            },
        ),
        ("Companies", {"fields": ("default_company",)}),
        ("Important dates", {"fields": ("last_login", "date_joined")}),
    )
    list_display = ("username", "email", "first_name", "last_name", "is_staff", "default_company")
    list_filter = ("is_staff", "is_superuser", "is_active", "groups", "default_company")
    search_fields = ("username", "first_name", "last_name", "email")
    ordering = ("username",)
    inlines = [UserCompanyRoleInline]
