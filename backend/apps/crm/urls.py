from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .views import ContactCaptureViewSet, CrmContactViewSet, CrmTagViewSet

router = DefaultRouter()
router.register(r"tags", CrmTagViewSet, basename="crm-tag")
router.register(r"contacts", CrmContactViewSet, basename="crm-contact")
router.register(r"captures", ContactCaptureViewSet, basename="crm-capture")

urlpatterns = [
    path("", include(router.urls)),
]
