from django.contrib import admin

from .models import Customer, SalesOrder, SalesOrderLine


class SalesOrderLineInline(admin.TabularInline):
    model = SalesOrderLine
    extra = 1
    fields = ['product', 'description', 'quantity', 'unit_price', 'line_total']
    readonly_fields = ['line_total']


@admin.register(SalesOrder)
class SalesOrderAdmin(admin.ModelAdmin):
    list_display = ['order_number', 'customer', 'order_date', 'status', 'total_amount', 'company']
    list_filter = ['status', 'company', 'order_date']
    search_fields = ['order_number', 'customer__name']
    date_hierarchy = 'order_date'
    readonly_fields = ['order_number', 'total_amount']
    inlines = [SalesOrderLineInline]


@admin.register(Customer)
class CustomerAdmin(admin.ModelAdmin):
    list_display = ['code', 'name', 'email', 'is_active', 'company']
    list_filter = ['is_active', 'company']
    search_fields = ['code', 'name', 'email']
