from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .views import BillOfMaterialsViewSet

router = DefaultRouter()
router.register(r"boms", BillOfMaterialsViewSet, basename="production-boms")

urlpatterns = [
    path("", include(router.urls)),
]
