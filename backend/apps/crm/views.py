from __future__ import annotations

from django.db.models import Q
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from shared.views import CompanyScopedQuerysetMixin, bad_request

from .models import ContactCapture, CrmContact, CrmTag
from .serializers import (
    ContactCaptureSerializer,
    CrmContactSerializer,
    CrmInteractionSerializer,
    CrmTagSerializer,
    PipelineStageSerializer,
)
from .services import ContactCaptureService, ContactService


class CrmTagViewSet(CompanyScopedQuerysetMixin, viewsets.ModelViewSet):
    serializer_class = CrmTagSerializer

    def get_queryset(self):
        return self.scope_queryset(CrmTag.objects.all())


class CrmContactViewSet(CompanyScopedQuerysetMixin, viewsets.ModelViewSet):
    serializer_class = CrmContactSerializer

    def get_queryset(self):
        qs = self.scope_queryset(CrmContact.objects.prefetch_related("tags"))
        params = self.request.query_params
        for field in ("contact_type", "status", "pipeline_stage", "source"):
            if params.get(field):
                qs = qs.filter(**{field: params[field]})
        if params.get("tag"):
            qs = qs.filter(tags__name=params["tag"])
        search = params.get("q")
        if search:
            qs = qs.filter(
                Q(full_name__icontains=search) | Q(email__icontains=search) | Q(organization__icontains=search)
            )
        return qs.distinct()

    def perform_create(self, serializer):
        super().perform_create(serializer)
        ContactService.refresh_lead_score(serializer.instance)

    def perform_update(self, serializer):
        contact = serializer.save()
        ContactService.refresh_lead_score(contact)

    @action(detail=True, methods=["post"])
    def stage(self, request, pk=None):
        contact = self.get_object()
        serializer = PipelineStageSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        ContactService.update_pipeline_stage(contact, serializer.validated_data["stage"], user=request.user)
        contact.refresh_from_db()
        return Response(self.get_serializer(contact).data)

    @action(detail=True, methods=["get", "post"])
    def interactions(self, request, pk=None):
        contact = self.get_object()
        if request.method == "GET":
            return Response(CrmInteractionSerializer(contact.interactions.all(), many=True).data)
        serializer = CrmInteractionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            interaction = ContactService.record_interaction(contact, user=request.user, **serializer.validated_data)
        except ValueError as exc:
            return bad_request(exc)
        return Response(CrmInteractionSerializer(interaction).data, status=status.HTTP_201_CREATED)


class ContactCaptureViewSet(CompanyScopedQuerysetMixin, viewsets.ModelViewSet):
    serializer_class = ContactCaptureSerializer
    http_method_names = ["get", "post", "head", "options"]

    def get_queryset(self):
        qs = self.scope_queryset(ContactCapture.objects.select_related("contact"))
        capture_status = self.request.query_params.get("status")
        if capture_status:
            qs = qs.filter(status=capture_status)
        return qs

    def perform_create(self, serializer):
        data = serializer.validated_data
        serializer.instance = ContactCaptureService.capture(
            company=self.get_company(), method=data["method"], raw_data=data["raw_data"], user=self.request.user
        )

    @action(detail=True, methods=["post"])
    def reprocess(self, request, pk=None):
        capture = self.get_object()
        try:
            ContactCaptureService.process(capture, user=request.user)
        except ValueError as exc:
            return bad_request(exc)
        return Response(self.get_serializer(capture).data)
