from django.utils.dateparse import parse_date
from rest_framework import viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from apps.inventory.models import Product
from shared.views import CompanyScopedQuerysetMixin, bad_request

from .models import Customer, SalesOrder
from .serializers import CustomerSerializer, SalesOrderSerializer
from .services import monthly_sales_history


class CustomerViewSet(CompanyScopedQuerysetMixin, viewsets.ModelViewSet):
    serializer_class = CustomerSerializer

    def get_queryset(self):
        return self.scope_queryset(Customer.objects.all())


class SalesOrderViewSet(CompanyScopedQuerysetMixin, viewsets.ModelViewSet):
    serializer_class = SalesOrderSerializer

    def get_queryset(self):
        qs = self.scope_queryset(SalesOrder.objects.select_related("customer").prefetch_related("lines"))
        status_filter = self.request.query_params.get("status")
        if status_filter:
            qs = qs.filter(status=status_filter)
        return qs

    def _transition(self, method_name):
        order = self.get_object()
        try:
            getattr(order, method_name)()
        except ValueError as exc:
            return bad_request(exc)
        return Response(self.get_serializer(order).data)

    @action(detail=True, methods=["post"])
    def confirm(self, request, pk=None):
        return self._transition("confirm")

    @action(detail=True, methods=["post"])
    def ship(self, request, pk=None):
        return self._transition("ship")

    @action(detail=True, methods=["post"])
    def deliver(self, request, pk=None):
        return self._transition("deliver")

    @action(detail=True, methods=["post"])
    def cancel(self, request, pk=None):
        return self._transition("cancel")

    @action(detail=False, methods=["get"], url_path="history")
    def history(self, request):
        product = Product.objects.filter(company=self.get_company(), pk=request.query_params.get("product")).first()
        if product is None:
            return Response({"detail": "Product not found."}, status=404)
        months = int(request.query_params.get("months") or 12)
        as_of = parse_date(request.query_params.get("as_of") or "") or None
        rows = monthly_sales_history(product, months=months, as_of=as_of)
        return Response([{"month": month.isoformat(), "quantity": str(quantity)} for month, quantity in rows])
