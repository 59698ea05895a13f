from django.contrib import admin

from .models import CompensationHistory, Department, Employee, EmployeePayment


@admin.register(Department)
class DepartmentAdmin(admin.ModelAdmin):
    list_display = ("code", "name", "manager", "company")
    search_fields = ("code", "name")
    list_filter = ("company",)


class CompensationHistoryInline(admin.TabularInline):
    model = CompensationHistory
    extra = 0
    readonly_fields = ("effective_date", "salary", "salary_frequency", "change_percent", "reason", "created_by")
    can_delete = False


@admin.register(Employee)
class EmployeeAdmin(admin.ModelAdmin):
    list_display = ("employee_number", "first_name", "last_name", "department", "job_title", "status", "company")
    list_filter = ("status", "employment_type", "department", "company")
    search_fields = ("employee_number", "first_name", "last_name", "email")
    readonly_fields = ("employee_number",)
    inlines = [CompensationHistoryInline]


@admin.register(EmployeePayment)
class EmployeePaymentAdmin(admin.ModelAdmin):
    list_display = ("payment_number", "employee", "payment_type", "amount", "payment_date", "status", "company")
    list_filter = ("status", "payment_type", "payment_method", "company")
    search_fields = ("payment_number", "employee__first_name", "employee__last_name", "reference")
    readonly_fields = ("payment_number", "processed_at")
