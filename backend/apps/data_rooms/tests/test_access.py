from datetime import timedelta

from django.test import TestCase
from django.utils import timezone
from rest_framework.test import APITestCase

from apps.audit.models import AuditLog
from apps.data_rooms.models import (
    DataRoom,
    DataRoomAccessAttempt,
    DataRoomDocument,
    DataRoomEmailBlock,
    DataRoomFolder,
    DataRoomInvitation,
    DataRoomLink,
    DataRoomPermissionAuditLog,
)
from apps.data_rooms.services import DataRoomAccessService, DataRoomSharingService
from apps.data_rooms.tasks import auto_unblock_expired
from shared.testing import create_company_context

GUEST = "investor@fund.example.com"


class DataRoomFixtureMixin:
    def setUp(self):
        self.group, self.company, self.owner = create_company_context(code="DRM", username="room-owner")
        self.room = DataRoom.objects.create(
            company=self.company,
            name="Series A",
            owner=self.owner,
            status=DataRoom.Status.ACTIVE,
        )
        self.legal = DataRoomFolder.objects.create(room=self.room, name="Legal")
        self.finance = DataRoomFolder.objects.create(room=self.room, name="Finance")
        self.nda = DataRoomDocument.objects.create(room=self.room, folder=self.legal, name="nda.pdf")
        self.model = DataRoomDocument.objects.create(room=self.room, folder=self.finance, name="model.xlsx")

    def check(self, access_type="view", email=GUEST, **kwargs):
        return DataRoomAccessService.check_access(self.room, email, access_type, **kwargs)


class AccessRuleOrderTests(DataRoomFixtureMixin, TestCase):
    def test_unavailable_room(self):
        self.room.status = DataRoom.Status.DRAFT
        self.room.save()
        decision = self.check(email=self.owner.email)
        self.assertFalse(decision.allowed)
        self.assertEqual(decision.reason, "Data room is not available")

        self.room.status = DataRoom.Status.ACTIVE
        self.room.expires_at = timezone.now() - timedelta(minutes=1)
        self.room.save()
        self.assertEqual(self.check().reason, "Data room is not available")

    def test_owner_has_full_access(self):
        decision = self.check("delete", email=self.owner.email.upper())
        self.assertTrue(decision.allowed)
        self.assertEqual(decision.source, "owner")

    def test_every_check_is_logged(self):
        self.check()
        self.check(email=self.owner.email)
        attempts = DataRoomAccessAttempt.objects.filter(room=self.room)
        self.assertEqual(attempts.count(), 2)
        denied = attempts.get(success=False)
        self.assertEqual(denied.email, GUEST)
        self.assertEqual(denied.denial_reason, "No access")

    def test_block_beats_permission(self):
        DataRoomAccessService.grant_permission(self.room, GUEST, can_download=True)
        DataRoomAccessService.block_email(self.room, GUEST, reason="Leaked files", blocked_by=self.owner)
        decision = self.check()
        self.assertEqual((decision.allowed, decision.reason), (False, "Email is blocked"))

    def test_lapsed_temporary_block_is_ignored(self):
        DataRoomAccessService.grant_permission(self.room, GUEST)
        DataRoomEmailBlock.objects.create(
            room=self.room, email=GUEST, auto_unblock_at=timezone.now() - timedelta(hours=1)
        )
        self.assertTrue(self.check().allowed)

    def test_public_room_allows_view_only(self):
        self.assertEqual(self.check().reason, "No access")
        self.room.is_public = True
        self.room.save()
        self.assertEqual(self.check().source, "public")
        self.assertEqual(self.check("download").reason, "No access")


class EmailPermissionTests(DataRoomFixtureMixin, TestCase):
    def test_validity_window(self):
        now = timezone.now()
        permission = DataRoomAccessService.grant_permission(self.room, GUEST, valid_from=now + timedelta(days=1))
        self.assertEqual(self.check().reason, "Permission not yet valid")
        DataRoomAccessService.update_permission(
            permission, valid_from=now - timedelta(days=2), valid_until=now - timedelta(days=1)
        )
        self.assertEqual(self.check().reason, "Permission expired")

    def test_ip_lists(self):
        permission = DataRoomAccessService.grant_permission(self.room, GUEST, denied_ips=["10.0.0.9"])
        self.assertEqual(self.check(ip_address="10.0.0.9").reason, "IP address is denied")
        self.assertTrue(self.check(ip_address="10.0.0.1").allowed)
        DataRoomAccessService.update_permission(permission, allowed_ips=["192.168.1.5"])
        self.assertEqual(self.check(ip_address="10.0.0.1").reason, "IP address is not allowed")
        self.assertTrue(self.check(ip_address="192.168.1.5").allowed)

    def test_action_flags(self):
        DataRoomAccessService.grant_permission(self.room, GUEST)
        self.assertEqual(self.check("download").reason, "Permission does not allow download")
        self.assertEqual(self.check("share").reason, "Permission does not allow share")

    def test_denied_lists_override_allowed_lists(self):
        DataRoomAccessService.grant_permission(
            self.room, GUEST, allowed_document_ids=[self.nda.pk], denied_document_ids=[self.nda.pk]
        )
        self.assertEqual(self.check(document=self.nda).reason, "Document access denied")

    def test_allowed_folders_restrict(self):
        DataRoomAccessService.grant_permission(self.room, GUEST, allowed_folder_ids=[self.legal.pk])
        self.assertTrue(self.check(document=self.nda).allowed)
        self.assertTrue(self.check(folder=self.legal).allowed)
        self.assertEqual(self.check(document=self.model).reason, "Document is not shared with this email")
        self.assertEqual(self.check(folder=self.finance).reason, "Folder is not shared with this email")

    def test_denied_folder_covers_its_documents(self):
        DataRoomAccessService.grant_permission(self.room, GUEST, denied_folder_ids=[self.finance.pk])
        self.assertEqual(self.check(document=self.model).reason, "Folder access denied")

    def test_download_limit_and_counters(self):
        permission = DataRoomAccessService.grant_permission(self.room, GUEST, can_download=True, max_downloads=1)
        self.assertTrue(self.check("download", document=self.nda).allowed)
        permission.refresh_from_db()
        self.nda.refresh_from_db()
        self.assertEqual(permission.download_count, 1)
        self.assertEqual(self.nda.download_count, 1)
        self.assertEqual(self.check("download", document=self.nda).reason, "Download limit reached")

    def test_room_download_switch(self):
        DataRoomAccessService.grant_permission(self.room, GUEST, can_download=True)
        self.room.allow_download = False
        self.room.save()
        self.assertEqual(self.check("download").reason, "Downloads are disabled for this data room")

    def test_permission_takes_priority_over_invitation(self):
        DataRoomInvitation.objects.create(
            room=self.room, email=GUEST, role=DataRoomInvitation.Role.ADMIN, status=DataRoomInvitation.Status.ACCEPTED
        )
        DataRoomAccessService.grant_permission(self.room, GUEST)
        decision = self.check("upload")
        self.assertFalse(decision.allowed)
        self.assertEqual(decision.source, "permission")

    def test_revoked_permission_falls_through(self):
        permission = DataRoomAccessService.grant_permission(self.room, GUEST)
        DataRoomAccessService.revoke_permission(permission, performed_by=self.owner, reason="Deal closed")
        self.assertEqual(self.check().reason, "No access")
        with self.assertRaises(ValueError):
            DataRoomAccessService.revoke_permission(permission)


class InvitationAccessTests(DataRoomFixtureMixin, TestCase):
    def invite(self, role, **kwargs):
        return DataRoomInvitation.objects.create(
            room=self.room, email=GUEST, role=role, status=DataRoomInvitation.Status.ACCEPTED, **kwargs
        )

    def test_viewer_role(self):
        self.invite(DataRoomInvitation.Role.VIEWER)
        self.assertTrue(self.check("download").allowed)
        self.assertEqual(self.check("upload").reason, "Role viewer does not allow upload")

    def test_editor_and_admin_roles(self):
        invitation = self.invite(DataRoomInvitation.Role.EDITOR)
        self.assertTrue(self.check("upload").allowed)
        self.assertFalse(self.check("delete").allowed)
        invitation.role = DataRoomInvitation.Role.ADMIN
        invitation.save()
        self.assertTrue(self.check("delete").allowed)

    def test_restrictions(self):
        self.invite(
            DataRoomInvitation.Role.VIEWER,
            restricted_folder_ids=[self.finance.pk],
            restricted_document_ids=[self.nda.pk],
        )
        self.assertEqual(self.check(document=self.model).reason, "Folder access denied")
        self.assertEqual(self.check(document=self.nda).reason, "Document access denied")

    def test_pending_invitation_grants_nothing(self):
        DataRoomInvitation.objects.create(room=self.room, email=GUEST)
        self.assertEqual(self.check().reason, "No access")


class PermissionAuditTests(DataRoomFixtureMixin, TestCase):
    def test_changes_are_audited(self):
        permission = DataRoomAccessService.grant_permission(
            self.room, "Investor@Fund.example.com", performed_by=self.owner, can_download=True
        )
        self.assertEqual(permission.email, GUEST)
        DataRoomAccessService.update_permission(permission, performed_by=self.owner, max_downloads=3, can_view=True)
        DataRoomAccessService.revoke_permission(permission, performed_by=self.owner)
        DataRoomAccessService.block_email(self.room, GUEST, reason="Abuse", blocked_by=self.owner)
        DataRoomAccessService.unblock_email(self.room, GUEST, performed_by=self.owner)

        actions = list(
            DataRoomPermissionAuditLog.objects.filter(room=self.room).order_by("id").values_list("action", flat=True)
        )
        self.assertEqual(actions, ["granted", "modified", "revoked", "blocked", "unblocked"])
        modified = DataRoomPermissionAuditLog.objects.get(action="modified")
        self.assertEqual(modified.change_details, {"max_downloads": {"from": None, "to": 3}})
        company_log = AuditLog.objects.filter(company=self.company, entity_type="DataRoom", entity_id=str(self.room.pk))
        self.assertEqual(company_log.count(), 5)
        self.assertEqual(set(company_log.values_list("action", flat=True)), {"PERMISSION"})
        with self.assertRaises(ValueError):
            DataRoomAccessService.unblock_email(self.room, GUEST)

    def test_auto_unblock_task(self):
        DataRoomAccessService.block_email(
            self.room, GUEST, reason="Cooling off", auto_unblock_at=timezone.now() - timedelta(minutes=5)
        )
        DataRoomAccessService.block_email(self.room, "spam@example.com", reason="Permanent")

        result = auto_unblock_expired.apply().get()

        self.assertEqual(result, {"status": "ok", "unblocked": [{"room": self.room.pk, "email": GUEST}]})
        self.assertFalse(DataRoomEmailBlock.objects.get(email=GUEST).is_active)
        self.assertTrue(DataRoomEmailBlock.objects.get(email="spam@example.com").is_active)
        self.assertTrue(
            DataRoomPermissionAuditLog.objects.filter(email=GUEST, action="unblocked", performed_by=None).exists()
        )


class SharingTests(DataRoomFixtureMixin, TestCase):
    def test_resolve_link_counts_views(self):
        link = DataRoomLink.objects.create(room=self.room, max_views=2)
        DataRoomSharingService.resolve_link(link.link_code)
        DataRoomSharingService.resolve_link(link.link_code)
        link.refresh_from_db()
        self.assertEqual(link.view_count, 2)
        with self.assertRaisesMessage(ValueError, "view limit"):
            DataRoomSharingService.resolve_link(link.link_code)

    def test_unusable_links(self):
        expired = DataRoomLink.objects.create(room=self.room, expires_at=timezone.now() - timedelta(hours=1))
        inactive = DataRoomLink.objects.create(room=self.room, is_active=False)
        with self.assertRaisesMessage(ValueError, "expired"):
            DataRoomSharingService.resolve_link(expired.link_code)
        with self.assertRaisesMessage(ValueError, "no longer active"):
            DataRoomSharingService.resolve_link(inactive.link_code)
        with self.assertRaisesMessage(ValueError, "not found"):
            DataRoomSharingService.resolve_link("missing")

    def test_accept_invitation(self):
        invitation = DataRoomSharingService.invite(self.room, GUEST, invited_by=self.owner)
        with self.assertRaises(ValueError):
            DataRoomSharingService.invite(self.room, GUEST)
        with self.assertRaisesMessage(ValueError, "different email"):
            DataRoomSharingService.accept_invitation(invitation.invite_code, "someone@else.com")
        accepted = DataRoomSharingService.accept_invitation(invitation.invite_code, GUEST.upper())
        self.assertEqual(accepted.status, DataRoomInvitation.Status.ACCEPTED)
        self.assertIsNotNone(accepted.accepted_at)
        with self.assertRaisesMessage(ValueError, "already accepted"):
            DataRoomSharingService.accept_invitation(invitation.invite_code, GUEST)

    def test_expired_invitation(self):
        invitation = DataRoomSharingService.invite(
            self.room, GUEST, expires_at=timezone.now() - timedelta(days=1)
        )
        with self.assertRaisesMessage(ValueError, "expired"):
            DataRoomSharingService.accept_invitation(invitation.invite_code, GUEST)
        invitation.refresh_from_db()
        self.assertEqual(invitation.status, DataRoomInvitation.Status.EXPIRED)


class DataRoomAPITests(DataRoomFixtureMixin, APITestCase):
    def setUp(self):
        super().setUp()
        self.client.force_authenticate(user=self.owner)
        self.headers = {"HTTP_X_COMPANY_ID": str(self.company.id)}

    def test_grant_and_check_access(self):
        url = f"/api/data-rooms/rooms/{self.room.pk}/"
        response = self.client.post(
            f"{url}permissions/", {"email": GUEST, "can_download": True}, format="json", **self.headers
        )
        self.assertEqual(response.status_code, 201, response.data)

        response = self.client.post(
            f"{url}check-access/",
            {"email": GUEST, "access_type": "download", "document": self.nda.pk},
            format="json",
            **self.headers,
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data, {"allowed": True, "reason": "", "source": "permission"})

        response = self.client.get(f"{url}audit-log/", **self.headers)
        self.assertEqual([row["action"] for row in response.data], ["granted"])

    def test_create_room_sets_owner(self):
        response = self.client.post(
            "/api/data-rooms/rooms/", {"name": "Board Pack", "status": "active"}, format="json", **self.headers
        )
        self.assertEqual(response.status_code, 201, response.data)
        self.assertEqual(response.data["owner"], self.owner.pk)
        self.assertEqual(response.data["slug"], "board-pack")
