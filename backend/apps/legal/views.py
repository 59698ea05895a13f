from __future__ import annotations

from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from shared.views import CompanyScopedQuerysetMixin, bad_request

from .models import Contract, Dispute
from .serializers import ContractSerializer, DisputeSerializer, ResolveDisputeSerializer
from .services import ContractService


class ContractViewSet(CompanyScopedQuerysetMixin, viewsets.ModelViewSet):
    serializer_class = ContractSerializer

    def get_queryset(self):
        qs = self.scope_queryset(Contract.objects.prefetch_related("key_dates"))
        params = self.request.query_params
        if params.get("status"):
            qs = qs.filter(status=params["status"])
        if params.get("contract_type"):
            qs = qs.filter(contract_type=params["contract_type"])
        return qs

    def _transition(self, func, **kwargs):
        contract = self.get_object()
        try:
            func(contract, user=self.request.user, **kwargs)
        except ValueError as exc:
            return bad_request(exc)
        contract.refresh_from_db()
        return Response(self.get_serializer(contract).data)

    @action(detail=True, methods=["post"], url_path="submit-for-review")
    def submit_for_review(self, request, pk=None):
        return self._transition(ContractService.submit_for_review)

    @action(detail=True, methods=["post"], url_path="request-signature")
    def request_signature(self, request, pk=None):
        return self._transition(ContractService.request_signature)

    @action(detail=True, methods=["post"])
    def sign(self, request, pk=None):
        return self._transition(ContractService.sign)

    @action(detail=True, methods=["post"])
    def terminate(self, request, pk=None):
        return self._transition(ContractService.terminate, reason=request.data.get("reason", ""))

    @action(detail=True, methods=["post"])
    def renew(self, request, pk=None):
        contract = self.get_object()
        term = request.data.get("term_months")
        try:
            successor = ContractService.renew(contract, term_months=int(term) if term else None, user=request.user)
        except ValueError as exc:
            return bad_request(exc)
        return Response(self.get_serializer(successor).data, status=status.HTTP_201_CREATED)


class DisputeViewSet(CompanyScopedQuerysetMixin, viewsets.ModelViewSet):
    serializer_class = DisputeSerializer

    def get_queryset(self):
        qs = self.scope_queryset(Dispute.objects.select_related("contract"))
        params = self.request.query_params
        if params.get("status"):
            qs = qs.filter(status=params["status"])
        if params.get("priority"):
            qs = qs.filter(priority=params["priority"])
        return qs

    def _transition(self, func, *args, **kwargs):
        dispute = self.get_object()
        try:
            func(dispute, *args, **kwargs)
        except ValueError as exc:
            return bad_request(exc)
        dispute.refresh_from_db()
        return Response(self.get_serializer(dispute).data)

    @action(detail=True, methods=["post"])
    def investigate(self, request, pk=None):
        return self._transition(Dispute.investigate)

    @action(detail=True, methods=["post"])
    def negotiate(self, request, pk=None):
        return self._transition(Dispute.negotiate)

    @action(detail=True, methods=["post"])
    def escalate(self, request, pk=None):
        return self._transition(Dispute.escalate)

    @action(detail=True, methods=["post"])
    def resolve(self, request, pk=None):
        serializer = ResolveDisputeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        return self._transition(Dispute.resolve, **serializer.validated_data)

    @action(detail=True, methods=["post"])
    def close(self, request, pk=None):
        return self._transition(Dispute.close)

    @action(detail=True, methods=["post"])
    def reopen(self, request, pk=None):
        return self._transition(Dispute.reopen)
