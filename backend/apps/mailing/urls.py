from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .views import (
    AutoReplyRuleViewSet,
    EmailMessageViewSet,
    EmailTemplateViewSet,
    InboundEmailViewSet,
    PendingReplyViewSet,
)

router = DefaultRouter()
router.register(r"templates", EmailTemplateViewSet, basename="mailing-template")
router.register(r"messages", EmailMessageViewSet, basename="mailing-message")
router.register(r"inbound", InboundEmailViewSet, basename="mailing-inbound")
router.register(r"auto-reply-rules", AutoReplyRuleViewSet, basename="mailing-auto-reply-rule")
router.register(r"pending-replies", PendingReplyViewSet, basename="mailing-pending-reply")

urlpatterns = [
    path("", include(router.urls)),
]
