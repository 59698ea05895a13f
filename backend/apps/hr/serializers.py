from rest_framework import serializers

from shared.serializers import COMPANY_MANAGED_FIELDS, CompanyScopedRelatedField

from .models import CompensationHistory, Department, Employee, EmployeePayment, SalaryFrequency
from .services import annual_salary


class DepartmentSerializer(serializers.ModelSerializer):
    manager = CompanyScopedRelatedField(queryset=Employee.objects.all(), required=False, allow_null=True)
    employee_count = serializers.IntegerField(source="employees.count", read_only=True)

    class Meta:
        model = Department
        fields = "__all__"
        read_only_fields = COMPANY_MANAGED_FIELDS


class EmployeeSerializer(serializers.ModelSerializer):
    department = CompanyScopedRelatedField(queryset=Department.objects.all(), required=False, allow_null=True)
    manager = CompanyScopedRelatedField(queryset=Employee.objects.all(), required=False, allow_null=True)
    full_name = serializers.CharField(read_only=True)
    annual_salary = serializers.SerializerMethodField()

    class Meta:
        model = Employee
        fields = "__all__"
        read_only_fields = COMPANY_MANAGED_FIELDS + ["employee_number", "status", "termination_date"]

    def get_annual_salary(self, obj):
        if obj.salary is None:
            return None
        return str(annual_salary(obj.salary, obj.salary_frequency))


class CompensationHistorySerializer(serializers.ModelSerializer):
    class Meta:
        model = CompensationHistory
        fields = "__all__"
        read_only_fields = [f.name for f in CompensationHistory._meta.fields]


class CompensationChangeSerializer(serializers.Serializer):
    salary = serializers.DecimalField(max_digits=20, decimal_places=2, min_value=0)
    frequency = serializers.ChoiceField(choices=SalaryFrequency.choices)
    effective_date = serializers.DateField(required=False)
    reason = serializers.CharField(required=False, allow_blank=True, default="")


class TerminateEmployeeSerializer(serializers.Serializer):
    termination_date = serializers.DateField(required=False)
    reason = serializers.CharField(required=False, allow_blank=True, default="")


class EmployeePaymentSerializer(serializers.ModelSerializer):
    employee = CompanyScopedRelatedField(queryset=Employee.objects.all())
    employee_name = serializers.CharField(source="employee.full_name", read_only=True)

    class Meta:
        model = EmployeePayment
        fields = "__all__"
        read_only_fields = COMPANY_MANAGED_FIELDS + ["payment_number", "status", "processed_at"]


class GenerateSalaryPaymentsSerializer(serializers.Serializer):
    period_start = serializers.DateField()
    period_end = serializers.DateField()
    payment_date = serializers.DateField(required=False)
    method = serializers.ChoiceField(
        choices=EmployeePayment.PaymentMethod.choices, default=EmployeePayment.PaymentMethod.DIRECT_DEPOSIT
    )

    def validate(self, attrs):
        if attrs["period_end"] < attrs["period_start"]:
            raise serializers.ValidationError({"period_end": "Period end cannot be before its start."})
        return attrs
