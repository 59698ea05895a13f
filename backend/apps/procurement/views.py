from __future__ import annotations

from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from apps.inventory.models import Warehouse
from shared.views import CompanyScopedQuerysetMixin, bad_request

from .models import PurchaseOrder, Vendor, VendorQuote, VendorRfq
from .serializers import (
    PurchaseOrderSerializer,
    ReceiveItemsSerializer,
    RecordQuoteSerializer,
    VendorQuoteSerializer,
    VendorRfqSerializer,
    VendorSerializer,
)
from .services import PurchaseOrderService, VendorQuoteService


class VendorViewSet(CompanyScopedQuerysetMixin, viewsets.ModelViewSet):
    serializer_class = VendorSerializer

    def get_queryset(self):
        qs = self.scope_queryset(Vendor.objects.all())
        status_filter = self.request.query_params.get("status")
        if status_filter:
            qs = qs.filter(status=status_filter)
        return qs

    @action(detail=True, methods=["post"])
    def block(self, request, pk=None):
        vendor = self.get_object()
        vendor.status = Vendor.Status.BLOCKED
        vendor.notes = f"{vendor.notes}\nBlocked: {request.data.get('reason', '')}".strip()
        vendor.save(update_fields=["status", "notes", "updated_at"])
        return Response({"status": vendor.status})


class PurchaseOrderViewSet(CompanyScopedQuerysetMixin, viewsets.ModelViewSet):
    serializer_class = PurchaseOrderSerializer

    def get_queryset(self):
        qs = self.scope_queryset(
            PurchaseOrder.objects.select_related("vendor").prefetch_related("items").order_by("-created_at")
        )
        status_filter = self.request.query_params.get("status")
        if status_filter:
            qs = qs.filter(status=status_filter)
        return qs

    def _transition(self, func, *args, **kwargs):
        order = self.get_object()
        try:
            func(order, *args, **kwargs)
        except ValueError as exc:
            return bad_request(exc)
        order.refresh_from_db()
        return Response(self.get_serializer(order).data)

    @action(detail=True, methods=["post"])
    def send(self, request, pk=None):
        return self._transition(PurchaseOrder.mark_sent)

    @action(detail=True, methods=["post"])
    def confirm(self, request, pk=None):
        return self._transition(PurchaseOrder.mark_confirmed)

    @action(detail=True, methods=["post"])
    def cancel(self, request, pk=None):
        return self._transition(PurchaseOrder.cancel, request.data.get("reason", ""))

    @action(detail=True, methods=["post"])
    def receive(self, request, pk=None):
        serializer = ReceiveItemsSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        warehouse = Warehouse.objects.filter(
            pk=serializer.validated_data["warehouse"], company=self.get_company()
        ).first()
        if warehouse is None:
            return Response({"detail": "Warehouse not found."}, status=status.HTTP_404_NOT_FOUND)
        return self._transition(
            lambda order: PurchaseOrderService.receive_items(
                order,
                serializer.validated_data["quantities"],
                warehouse=warehouse,
                user=request.user,
            )
        )


class VendorRfqViewSet(CompanyScopedQuerysetMixin, viewsets.ModelViewSet):
    serializer_class = VendorRfqSerializer

    def get_queryset(self):
        return self.scope_queryset(VendorRfq.objects.prefetch_related("quotes__vendor"))

    @action(detail=True, methods=["post"])
    def send(self, request, pk=None):
        rfq = self.get_object()
        vendors = Vendor.objects.filter(company=rfq.company, pk__in=request.data.get("vendors", []))
        try:
            VendorQuoteService.send_rfq(rfq, vendors)
        except ValueError as exc:
            return bad_request(exc)
        rfq.refresh_from_db()
        return Response(self.get_serializer(rfq).data)

    @action(detail=True, methods=["post"], url_path="record-quote")
    def record_quote(self, request, pk=None):
        rfq = self.get_object()
        serializer = RecordQuoteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        vendor = Vendor.objects.filter(company=rfq.company, pk=data.pop("vendor")).first()
        if vendor is None:
            return Response({"detail": "Vendor not found."}, status=status.HTTP_404_NOT_FOUND)
        try:
            quote = VendorQuoteService.record_quote(rfq, vendor=vendor, **data)
        except ValueError as exc:
            return bad_request(exc)
        return Response(VendorQuoteSerializer(quote).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=["get"])
    def comparison(self, request, pk=None):
        rfq = self.get_object()
        quotes = VendorQuoteService.rank_quotes(rfq)
        return Response(VendorQuoteSerializer(quotes, many=True).data)

    @action(detail=True, methods=["post"])
    def cancel(self, request, pk=None):
        rfq = self.get_object()
        try:
            VendorQuoteService.cancel_rfq(rfq, reason=request.data.get("reason", ""))
        except ValueError as exc:
            return bad_request(exc)
        return Response(self.get_serializer(rfq).data)


class VendorQuoteViewSet(CompanyScopedQuerysetMixin, viewsets.ReadOnlyModelViewSet):
    serializer_class = VendorQuoteSerializer

    def get_queryset(self):
        return self.scope_queryset(VendorQuote.objects.select_related("vendor", "rfq"))

    @action(detail=True, methods=["post"])
    def accept(self, request, pk=None):
        quote = self.get_object()
        try:
            VendorQuoteService.accept_quote(quote, user=request.user)
        except ValueError as exc:
            return bad_request(exc)
        return Response(self.get_serializer(quote).data)

    @action(detail=True, methods=["post"], url_path="create-po")
    def create_po(self, request, pk=None):
        quote = self.get_object()
        try:
            order = VendorQuoteService.create_po_from_quote(quote, user=request.user)
        except ValueError as exc:
            return bad_request(exc)
        return Response(PurchaseOrderSerializer(order).data, status=status.HTTP_201_CREATED)
