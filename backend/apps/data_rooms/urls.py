from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .views import AcceptInvitationView, DataRoomEmailPermissionViewSet, DataRoomViewSet, ResolveLinkView

router = DefaultRouter()
router.register(r"rooms", DataRoomViewSet, basename="data-room")
router.register(r"permissions", DataRoomEmailPermissionViewSet, basename="data-room-permission")

urlpatterns = [
    path("links/<str:link_code>/", ResolveLinkView.as_view(), name="data-room-link"),
    path("invitations/accept/", AcceptInvitationView.as_view(), name="data-room-invitation-accept"),
    path("", include(router.urls)),
]
