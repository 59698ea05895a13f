from django.contrib import admin

from .models import Company, CompanyGroup


class CompanyInline(admin.TabularInline):
    model = Company
    extra = 0
    fields = ('code', 'name', 'currency_code', 'is_active')


@admin.register(CompanyGroup)
class CompanyGroupAdmin(admin.ModelAdmin):
    list_display = ('code', 'name', 'base_currency', 'is_active', 'companies_count', 'created_at')
    list_filter = ('is_active', 'base_currency')
    search_fields = ('code', 'name')
    readonly_fields = ('code', 'created_at', 'updated_at')
    inlines = [CompanyInline]

    @admin.display(description='Companies')
    def companies_count(self, obj):
        return obj.companies.count()


@admin.register(Company)
class CompanyAdmin(admin.ModelAdmin):
    list_display = ('code', 'name', 'company_group', 'currency_code', 'is_active')
    list_filter = ('is_active', 'currency_code', 'company_group')
    search_fields = ('code', 'name', 'legal_name', 'tax_id')
