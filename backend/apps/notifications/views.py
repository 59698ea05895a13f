from django.db.models import Q
from rest_framework import generics
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from shared.middleware.company_context import resolve_company

from .models import Notification, NotificationStatus
from .serializers import NotificationSerializer, NotificationStatusSerializer


def _visible_notifications(request):
    company = getattr(request, "company", None) or resolve_company(request, user=request.user)
    if company is None:
        return Notification.objects.none()
    return Notification.objects.filter(company=company).filter(Q(user=request.user) | Q(user__isnull=True))


class NotificationListView(generics.ListAPIView):
    permission_classes = [IsAuthenticated]
    serializer_class = NotificationSerializer

    def get_queryset(self):
        return _visible_notifications(self.request).exclude(status=NotificationStatus.CLEARED).order_by("-created_at")[:50]


class NotificationCenterView(generics.ListAPIView):
    permission_classes = [IsAuthenticated]
    serializer_class = NotificationSerializer

    def get_queryset(self):
        qs = _visible_notifications(self.request)
        status_filter = self.request.query_params.get("status")
        if status_filter:
            qs = qs.filter(status=status_filter)
        severity = self.request.query_params.get("severity")
        if severity:
            qs = qs.filter(severity=severity)
        return qs.order_by("-created_at")


class NotificationMarkView(generics.UpdateAPIView):
    permission_classes = [IsAuthenticated]
    serializer_class = NotificationStatusSerializer

    def get_queryset(self):
        return _visible_notifications(self.request)


class NotificationClearAllView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request):
        updated = _visible_notifications(request).filter(user=request.user).update(status=NotificationStatus.CLEARED)
        return Response({"status": "ok", "cleared": updated})
