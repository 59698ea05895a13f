from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .views import ContractViewSet, DisputeViewSet

router = DefaultRouter()
router.register(r"contracts", ContractViewSet, basename="legal-contract")
router.register(r"disputes", DisputeViewSet, basename="legal-dispute")

urlpatterns = [
    path("", include(router.urls)),
]
