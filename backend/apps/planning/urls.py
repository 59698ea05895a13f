from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .views import (
    DemandForecastViewSet,
    MaterialRequirementViewSet,
    ProductionPlanViewSet,
    SuggestedPurchaseOrderViewSet,
)

router = DefaultRouter()
router.register(r"forecasts", DemandForecastViewSet, basename="planning-forecast")
router.register(r"plans", ProductionPlanViewSet, basename="planning-plan")
router.register(r"requirements", MaterialRequirementViewSet, basename="planning-requirement")
router.register(r"suggested-pos", SuggestedPurchaseOrderViewSet, basename="planning-suggested-po")

urlpatterns = [
    path("", include(router.urls)),
]
