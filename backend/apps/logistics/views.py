from __future__ import annotations

from decimal import Decimal

from rest_framework import viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from shared.views import CompanyScopedQuerysetMixin, bad_request

from .models import FreightCarrier, FreightQuote, FreightRfq
from .serializers import (
    FreightCarrierSerializer,
    FreightQuoteSerializer,
    FreightRfqSerializer,
    RecordQuoteSerializer,
    SendRfqSerializer,
)
from .services import FreightService, quote_score


class FreightCarrierViewSet(CompanyScopedQuerysetMixin, viewsets.ModelViewSet):
    serializer_class = FreightCarrierSerializer

    def get_queryset(self):
        qs = self.scope_queryset(FreightCarrier.objects.all())
        params = self.request.query_params
        if params.get("carrier_type"):
            qs = qs.filter(carrier_type=params["carrier_type"])
        if params.get("is_active") is not None:
            qs = qs.filter(is_active=params["is_active"].lower() in ("1", "true", "yes"))
        return qs


class FreightRfqViewSet(CompanyScopedQuerysetMixin, viewsets.ModelViewSet):
    serializer_class = FreightRfqSerializer

    def get_queryset(self):
        qs = self.scope_queryset(FreightRfq.objects.prefetch_related("quotes__carrier"))
        rfq_status = self.request.query_params.get("status")
        if rfq_status:
            qs = qs.filter(status=rfq_status)
        return qs

    @action(detail=True, methods=["post"])
    def send(self, request, pk=None):
        rfq = self.get_object()
        serializer = SendRfqSerializer(data=request.data, context=self.get_serializer_context())
        serializer.is_valid(raise_exception=True)
        try:
            FreightService.send_rfq(rfq, serializer.validated_data["carriers"], user=request.user)
        except ValueError as exc:
            return bad_request(exc)
        rfq.refresh_from_db()
        return Response(self.get_serializer(rfq).data)

    @action(detail=True, methods=["get"])
    def compare(self, request, pk=None):
        comparison = FreightService.compare(self.get_object())

        def describe(quote):
            if quote is None:
                return None
            data = FreightQuoteSerializer(quote).data
            data["score"] = str(quote_score(quote).quantize(Decimal("0.0001")))
            return data

        return Response(
            {
                "cheapest": describe(comparison.cheapest),
                "fastest": describe(comparison.fastest),
                "best_value": describe(comparison.best_value),
            }
        )

    @action(detail=True, methods=["post"])
    def cancel(self, request, pk=None):
        rfq = self.get_object()
        try:
            FreightService.cancel(rfq, reason=request.data.get("reason", ""), user=request.user)
        except ValueError as exc:
            return bad_request(exc)
        rfq.refresh_from_db()
        return Response(self.get_serializer(rfq).data)


class FreightQuoteViewSet(CompanyScopedQuerysetMixin, viewsets.ReadOnlyModelViewSet):
    serializer_class = FreightQuoteSerializer

    def get_queryset(self):
        company = self.get_company()
        if company is None:
            return FreightQuote.objects.none()
        qs = FreightQuote.objects.filter(rfq__company=company).select_related("carrier", "rfq")
        params = self.request.query_params
        if params.get("rfq"):
            qs = qs.filter(rfq_id=params["rfq"])
        if params.get("status"):
            qs = qs.filter(status=params["status"])
        return qs

    @action(detail=True, methods=["post"])
    def record(self, request, pk=None):
        quote = self.get_object()
        serializer = RecordQuoteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            FreightService.record_quote(quote, user=request.user, **serializer.validated_data)
        except ValueError as exc:
            return bad_request(exc)
        quote.refresh_from_db()
        return Response(self.get_serializer(quote).data)

    @action(detail=True, methods=["post"])
    def award(self, request, pk=None):
        quote = self.get_object()
        try:
            FreightService.award(quote, user=request.user)
        except ValueError as exc:
            return bad_request(exc)
        quote.refresh_from_db()
        return Response(self.get_serializer(quote).data)
