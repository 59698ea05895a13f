from __future__ import annotations

from django.utils import timezone
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from shared.views import CompanyScopedQuerysetMixin, bad_request

from .models import AutoReplyRule, EmailMessage, EmailTemplate, InboundEmail, PendingReply
from .serializers import (
    ApproveReplySerializer,
    AutoReplyRuleSerializer,
    CategorizeSerializer,
    EmailMessageSerializer,
    EmailTemplateSerializer,
    InboundEmailSerializer,
    PendingReplySerializer,
    QueueEmailSerializer,
)
from .services import EmailService, InboundEmailService, category_display, quick_categorize


class EmailTemplateViewSet(CompanyScopedQuerysetMixin, viewsets.ModelViewSet):
    serializer_class = EmailTemplateSerializer

    def get_queryset(self):
        qs = self.scope_queryset(EmailTemplate.objects.all())
        template_type = self.request.query_params.get("template_type")
        if template_type:
            qs = qs.filter(template_type=template_type)
        return qs


class EmailMessageViewSet(CompanyScopedQuerysetMixin, viewsets.ReadOnlyModelViewSet):
    serializer_class = EmailMessageSerializer

    def get_queryset(self):
        qs = self.scope_queryset(EmailMessage.objects.prefetch_related("events"))
        params = self.request.query_params
        if params.get("status"):
            qs = qs.filter(status=params["status"])
        if params.get("related_entity_type"):
            qs = qs.filter(related_entity_type=params["related_entity_type"])
        if params.get("related_entity_id"):
            qs = qs.filter(related_entity_id=params["related_entity_id"])
        return qs

    @action(detail=False, methods=["post"])
    def send(self, request):
        serializer = QueueEmailSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            result = EmailService.queue_email(
                company=self.get_company(), triggered_by=request.user, **serializer.validated_data
            )
        except ValueError as exc:
            return bad_request(exc)
        data = self.get_serializer(result.message).data
        data["is_duplicate"] = result.is_duplicate
        return Response(data, status=status.HTTP_200_OK if result.is_duplicate else status.HTTP_201_CREATED)

    @action(detail=True, methods=["post"])
    def retry(self, request, pk=None):
        message = self.get_object()
        try:
            EmailService.retry(message)
        except ValueError as exc:
            return bad_request(exc)
        message.refresh_from_db()
        return Response(self.get_serializer(message).data)

    @action(detail=True, methods=["get"], url_path="status")
    def delivery_status(self, request, pk=None):
        message = self.get_object()
        return Response(EmailService.get_status(message.pk))


class InboundEmailViewSet(CompanyScopedQuerysetMixin, viewsets.ModelViewSet):
    serializer_class = InboundEmailSerializer
    http_method_names = ["get", "post", "head", "options"]

    def get_queryset(self):
        qs = self.scope_queryset(InboundEmail.objects.all())
        params = self.request.query_params
        for field in ("status", "category", "priority"):
            if params.get(field):
                qs = qs.filter(**{field: params[field]})
        return qs

    def perform_create(self, serializer):
        data = serializer.validated_data
        inbound = InboundEmailService.receive(
            company=self.get_company(),
            from_email=data["from_email"],
            from_name=data.get("from_name", ""),
            subject=data.get("subject", ""),
            body=data.get("body", ""),
            received_at=data.get("received_at") or timezone.now(),
        )
        serializer.instance = inbound

    @action(detail=True, methods=["post"])
    def process(self, request, pk=None):
        inbound = self.get_object()
        try:
            outcome = InboundEmailService.process(inbound)
        except ValueError as exc:
            return bad_request(exc)
        inbound.refresh_from_db()
        data = {"inbound": self.get_serializer(inbound).data, "result": None}
        if isinstance(outcome, PendingReply):
            data["result"] = {"type": "pending_reply", "id": outcome.pk}
        elif isinstance(outcome, EmailMessage):
            data["result"] = {"type": "email", "id": outcome.pk}
        return Response(data)

    @action(detail=True, methods=["post"])
    def ignore(self, request, pk=None):
        inbound = self.get_object()
        inbound.status = InboundEmail.Status.IGNORED
        inbound.save(update_fields=["status", "updated_at"])
        return Response(self.get_serializer(inbound).data)

    @action(detail=False, methods=["post"])
    def categorize(self, request):
        serializer = CategorizeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = quick_categorize(serializer.validated_data["subject"], serializer.validated_data["from_email"])
        return Response(
            {
                "category": result.category,
                "confidence": result.confidence,
                "keywords": result.keywords,
                "priority": result.priority,
                "suggested_action": result.suggested_action,
                "display": category_display(result.category),
            }
        )


class AutoReplyRuleViewSet(CompanyScopedQuerysetMixin, viewsets.ModelViewSet):
    serializer_class = AutoReplyRuleSerializer

    def get_queryset(self):
        return self.scope_queryset(AutoReplyRule.objects.all())


class PendingReplyViewSet(CompanyScopedQuerysetMixin, viewsets.ReadOnlyModelViewSet):
    serializer_class = PendingReplySerializer

    def get_queryset(self):
        qs = self.scope_queryset(PendingReply.objects.select_related("inbound_email"))
        reply_status = self.request.query_params.get("status")
        if reply_status:
            qs = qs.filter(status=reply_status)
        return qs

    @action(detail=True, methods=["post"])
    def approve(self, request, pk=None):
        reply = self.get_object()
        serializer = ApproveReplySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            InboundEmailService.approve_pending_reply(reply, user=request.user, **serializer.validated_data)
        except ValueError as exc:
            return bad_request(exc)
        reply.refresh_from_db()
        return Response(self.get_serializer(reply).data)

    @action(detail=True, methods=["post"])
    def reject(self, request, pk=None):
        reply = self.get_object()
        try:
            InboundEmailService.reject_pending_reply(reply, user=request.user)
        except ValueError as exc:
            return bad_request(exc)
        return Response(self.get_serializer(reply).data)
