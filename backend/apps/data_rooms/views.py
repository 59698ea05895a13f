from __future__ import annotations

from dataclasses import asdict

from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import ValidationError
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from shared.views import CompanyScopedQuerysetMixin, bad_request

from .models import DataRoom, DataRoomDocument, DataRoomEmailPermission, DataRoomFolder
from .serializers import (
    AcceptInvitationSerializer,
    CheckAccessSerializer,
    DataRoomAccessAttemptSerializer,
    DataRoomDocumentSerializer,
    DataRoomEmailBlockSerializer,
    DataRoomEmailPermissionSerializer,
    DataRoomFolderSerializer,
    DataRoomInvitationSerializer,
    DataRoomLinkSerializer,
    DataRoomPermissionAuditLogSerializer,
    DataRoomSerializer,
)
from .services import DataRoomAccessService, DataRoomSharingService


def client_ip(request):
    forwarded = request.META.get("HTTP_X_FORWARDED_FOR")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.META.get("REMOTE_ADDR")


class DataRoomViewSet(CompanyScopedQuerysetMixin, viewsets.ModelViewSet):
    serializer_class = DataRoomSerializer

    def get_queryset(self):
        qs = self.scope_queryset(DataRoom.objects.select_related("owner"))
        status_filter = self.request.query_params.get("status")
        if status_filter:
            qs = qs.filter(status=status_filter)
        return qs

    def perform_create(self, serializer):
        company = self.get_company()
        if company is None:
            raise ValidationError({"company": "Active company context is required."})
        serializer.save(
            company=company,
            company_group=company.company_group,
            created_by=self.request.user,
            owner=self.request.user,
        )

    def _list_or_create(self, request, queryset, serializer_class, **save_kwargs):
        if request.method == "GET":
            return Response(serializer_class(queryset, many=True).data)
        serializer = serializer_class(data=request.data)
        serializer.is_valid(raise_exception=True)
        serializer.save(**save_kwargs)
        return Response(serializer.data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=["get", "post"])
    def folders(self, request, pk=None):
        room = self.get_object()
        parent = request.data.get("parent") if request.method == "POST" else None
        if parent and not room.folders.filter(pk=parent).exists():
            return bad_request(ValueError("Parent folder belongs to a different data room."))
        return self._list_or_create(request, room.folders.all(), DataRoomFolderSerializer, room=room)

    @action(detail=True, methods=["get", "post"])
    def documents(self, request, pk=None):
        room = self.get_object()
        folder = request.data.get("folder") if request.method == "POST" else None
        if folder and not room.folders.filter(pk=folder).exists():
            return bad_request(ValueError("Folder belongs to a different data room."))
        return self._list_or_create(
            request, room.documents.all(), DataRoomDocumentSerializer, room=room, uploaded_by=request.user
        )

    @action(detail=True, methods=["get", "post"])
    def links(self, request, pk=None):
        room = self.get_object()
        return self._list_or_create(
            request, room.links.all(), DataRoomLinkSerializer, room=room, created_by=request.user
        )

    @action(detail=True, methods=["get", "post"])
    def invitations(self, request, pk=None):
        room = self.get_object()
        if request.method == "GET":
            return Response(DataRoomInvitationSerializer(room.invitations.all(), many=True).data)
        serializer = DataRoomInvitationSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        try:
            invitation = DataRoomSharingService.invite(room, data.pop("email"), invited_by=request.user, **data)
        except ValueError as exc:
            return bad_request(exc)
        return Response(DataRoomInvitationSerializer(invitation).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=["get", "post"], url_path="permissions")
    def email_permissions(self, request, pk=None):
        room = self.get_object()
        if request.method == "GET":
            return Response(DataRoomEmailPermissionSerializer(room.email_permissions.all(), many=True).data)
        serializer = DataRoomEmailPermissionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        try:
            permission = DataRoomAccessService.grant_permission(
                room, data.pop("email"), performed_by=request.user, **data
            )
        except ValueError as exc:
            return bad_request(exc)
        return Response(DataRoomEmailPermissionSerializer(permission).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=["get", "post"])
    def blocks(self, request, pk=None):
        room = self.get_object()
        if request.method == "GET":
            return Response(DataRoomEmailBlockSerializer(room.email_blocks.all(), many=True).data)
        serializer = DataRoomEmailBlockSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        block = DataRoomAccessService.block_email(
            room,
            serializer.validated_data["email"],
            reason=serializer.validated_data.get("reason", ""),
            blocked_by=request.user,
            auto_unblock_at=serializer.validated_data.get("auto_unblock_at"),
        )
        return Response(DataRoomEmailBlockSerializer(block).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=["post"])
    def unblock(self, request, pk=None):
        room = self.get_object()
        try:
            DataRoomAccessService.unblock_email(
                room, request.data.get("email", ""), performed_by=request.user, reason=request.data.get("reason", "")
            )
        except ValueError as exc:
            return bad_request(exc)
        return Response({"status": "unblocked"})

    @action(detail=True, methods=["post"], url_path="check-access")
    def check_access(self, request, pk=None):
        room = self.get_object()
        serializer = CheckAccessSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        folder = DataRoomFolder.objects.filter(room=room, pk=data.get("folder")).first() if data.get("folder") else None
        document = (
            DataRoomDocument.objects.filter(room=room, pk=data.get("document")).first() if data.get("document") else None
        )
        decision = DataRoomAccessService.check_access(
            room,
            data["email"],
            data["access_type"],
            folder=folder,
            document=document,
            ip_address=client_ip(request),
        )
        return Response(asdict(decision))

    @action(detail=True, methods=["get"], url_path="access-log")
    def access_log(self, request, pk=None):
        room = self.get_object()
        attempts = room.access_attempts.all()
        if request.query_params.get("email"):
            attempts = attempts.filter(email=request.query_params["email"].strip().lower())
        return Response(DataRoomAccessAttemptSerializer(attempts[:200], many=True).data)

    @action(detail=True, methods=["get"], url_path="audit-log")
    def audit_log(self, request, pk=None):
        room = self.get_object()
        return Response(DataRoomPermissionAuditLogSerializer(room.permission_audit_logs.all(), many=True).data)


class DataRoomEmailPermissionViewSet(
    CompanyScopedQuerysetMixin,
    mixins.RetrieveModelMixin,
    mixins.UpdateModelMixin,
    viewsets.GenericViewSet,
):
    serializer_class = DataRoomEmailPermissionSerializer

    def get_queryset(self):
        company = self.get_company()
        if company is None:
            return DataRoomEmailPermission.objects.none()
        return DataRoomEmailPermission.objects.filter(room__company=company).select_related("room")

    def update(self, request, *args, **kwargs):
        permission = self.get_object()
        serializer = self.get_serializer(permission, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        changes = {key: value for key, value in serializer.validated_data.items() if key != "email"}
        try:
            DataRoomAccessService.update_permission(permission, performed_by=request.user, **changes)
        except ValueError as exc:
            return bad_request(exc)
        return Response(self.get_serializer(permission).data)

    @action(detail=True, methods=["post"])
    def revoke(self, request, pk=None):
        permission = self.get_object()
        try:
            DataRoomAccessService.revoke_permission(
                permission, performed_by=request.user, reason=request.data.get("reason", "")
            )
        except ValueError as exc:
            return bad_request(exc)
        return Response(self.get_serializer(permission).data)


class ResolveLinkView(APIView):
    permission_classes = [AllowAny]

    def get(self, request, link_code):
        try:
            link = DataRoomSharingService.resolve_link(link_code)
        except ValueError as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_404_NOT_FOUND)
        room = link.room
        documents = room.documents.all()
        if link.allowed_folder_ids or link.allowed_document_ids:
            documents = [
                doc
                for doc in documents
                if doc.pk in link.allowed_document_ids or doc.folder_id in link.allowed_folder_ids
            ]
        return Response(
            {
                "room": {"name": room.name, "description": room.description, "requires_nda": room.requires_nda},
                "allow_download": link.allow_download and room.allow_download,
                "documents": DataRoomDocumentSerializer(documents, many=True).data,
            }
        )


class AcceptInvitationView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request):
        serializer = AcceptInvitationSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            invitation = DataRoomSharingService.accept_invitation(
                serializer.validated_data["invite_code"], serializer.validated_data["email"]
            )
        except ValueError as exc:
            return bad_request(exc)
        return Response(DataRoomInvitationSerializer(invitation).data)
