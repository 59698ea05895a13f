from __future__ import annotations

import datetime
import platform
from typing import Dict

from django.db import DatabaseError, connections
from rest_framework import status
from rest_framework.exceptions import ValidationError
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from shared.middleware.company_context import resolve_company

START_TIME = datetime.datetime.now(datetime.timezone.utc)


class HealthCheckView(APIView):
    permission_classes = [AllowAny]

    def get(self, request):
        db_payload = self._database_status()
        now = datetime.datetime.now(datetime.timezone.utc)
        payload = {
            "status": "ok" if db_payload["ok"] else "degraded",
            "uptime_seconds": int((now - START_TIME).total_seconds()),
            "timestamp": now.isoformat(),
            "application": {
                "python": platform.python_version(),
                "platform": platform.platform(),
            },
            "database": db_payload,
        }
        http_status = status.HTTP_200_OK if db_payload["ok"] else status.HTTP_503_SERVICE_UNAVAILABLE
        return Response(payload, status=http_status)

    def _database_status(self) -> Dict:
        payload = {"ok": True, "details": {}}
        for alias in connections:
            try:
                with connections[alias].cursor() as cursor:
                    cursor.execute("SELECT 1")
                    cursor.fetchone()
                payload["details"][alias] = "connected"
            except DatabaseError as exc:
                payload["ok"] = False
                payload["details"][alias] = f"error: {exc}"
        return payload


class CompanyScopedQuerysetMixin:
    """Restricts a viewset to the active company and stamps it on created rows."""

    permission_classes = [IsAuthenticated]

    def get_company(self):
        company = getattr(self.request, "company", None)
        if company is None:
            company = resolve_company(self.request, user=self.request.user)
            self.request.company = company
        return company

    def get_serializer_context(self):
        context = super().get_serializer_context()
        context.update({"request": self.request, "company": self.get_company()})
        return context

    def scope_queryset(self, qs):
        return qs.for_company(self.get_company())

    def perform_create(self, serializer):
        company = self.get_company()
        if company is None:
            raise ValidationError({"company": "Active company context is required."})
        serializer.save(company=company, company_group=company.company_group, created_by=self.request.user)


def bad_request(exc: Exception) -> Response:
    return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)
