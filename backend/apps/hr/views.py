from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from shared.views import CompanyScopedQuerysetMixin, bad_request

from .models import Department, Employee, EmployeePayment
from .serializers import (
    CompensationChangeSerializer,
    CompensationHistorySerializer,
    DepartmentSerializer,
    EmployeePaymentSerializer,
    EmployeeSerializer,
    GenerateSalaryPaymentsSerializer,
    TerminateEmployeeSerializer,
)
from .services import CompensationService, PayrollService


class DepartmentViewSet(CompanyScopedQuerysetMixin, viewsets.ModelViewSet):
    serializer_class = DepartmentSerializer

    def get_queryset(self):
        return self.scope_queryset(Department.objects.select_related("manager"))


class EmployeeViewSet(CompanyScopedQuerysetMixin, viewsets.ModelViewSet):
    serializer_class = EmployeeSerializer

    def get_queryset(self):
        qs = self.scope_queryset(Employee.objects.select_related("department", "manager"))
        params = self.request.query_params
        if params.get("status"):
            qs = qs.filter(status=params["status"])
        if params.get("department"):
            qs = qs.filter(department_id=params["department"])
        return qs

    @action(detail=True, methods=["post"])
    def compensation(self, request, pk=None):
        employee = self.get_object()
        serializer = CompensationChangeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        try:
            record = CompensationService.change_compensation(
                employee,
                salary=data["salary"],
                frequency=data["frequency"],
                effective_date=data.get("effective_date"),
                reason=data["reason"],
                user=request.user,
            )
        except ValueError as exc:
            return bad_request(exc)
        return Response(CompensationHistorySerializer(record).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=["get"], url_path="compensation-history")
    def compensation_history(self, request, pk=None):
        employee = self.get_object()
        return Response(CompensationHistorySerializer(employee.compensation_history.all(), many=True).data)

    @action(detail=True, methods=["post"])
    def terminate(self, request, pk=None):
        employee = self.get_object()
        serializer = TerminateEmployeeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            cancelled = PayrollService.terminate(
                employee,
                serializer.validated_data.get("termination_date"),
                reason=serializer.validated_data["reason"],
                user=request.user,
            )
        except ValueError as exc:
            return bad_request(exc)
        employee.refresh_from_db()
        return Response({**self.get_serializer(employee).data, "cancelled_payments": cancelled})


class EmployeePaymentViewSet(CompanyScopedQuerysetMixin, viewsets.ModelViewSet):
    serializer_class = EmployeePaymentSerializer

    def get_queryset(self):
        qs = self.scope_queryset(EmployeePayment.objects.select_related("employee"))
        params = self.request.query_params
        if params.get("status"):
            qs = qs.filter(status=params["status"])
        if params.get("employee"):
            qs = qs.filter(employee_id=params["employee"])
        return qs

    @action(detail=False, methods=["post"], url_path="generate-salaries")
    def generate_salaries(self, request):
        serializer = GenerateSalaryPaymentsSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        try:
            payments = PayrollService.generate_salary_payments(
                self.get_company(),
                data["period_start"],
                data["period_end"],
                payment_date=data.get("payment_date"),
                method=data["method"],
                user=request.user,
            )
        except ValueError as exc:
            return bad_request(exc)
        return Response(self.get_serializer(payments, many=True).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=["post"])
    def process(self, request, pk=None):
        payment = self.get_object()
        try:
            PayrollService.process_payment(payment, reference=request.data.get("reference", ""), user=request.user)
        except ValueError as exc:
            return bad_request(exc)
        return Response(self.get_serializer(payment).data)

    @action(detail=True, methods=["post"])
    def cancel(self, request, pk=None):
        payment = self.get_object()
        try:
            PayrollService.cancel_payment(payment, reason=request.data.get("reason", ""), user=request.user)
        except ValueError as exc:
            return bad_request(exc)
        return Response(self.get_serializer(payment).data)
