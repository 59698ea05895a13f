from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .views import FreightCarrierViewSet, FreightQuoteViewSet, FreightRfqViewSet

router = DefaultRouter()
router.register(r"carriers", FreightCarrierViewSet, basename="logistics-carrier")
router.register(r"rfqs", FreightRfqViewSet, basename="logistics-rfq")
router.register(r"quotes", FreightQuoteViewSet, basename="logistics-quote")

urlpatterns = [
    path("", include(router.urls)),
]
