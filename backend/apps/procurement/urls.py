from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .views import PurchaseOrderViewSet, VendorQuoteViewSet, VendorRfqViewSet, VendorViewSet

router = DefaultRouter()
router.register(r"vendors", VendorViewSet, basename="procurement-vendor")
router.register(r"purchase-orders", PurchaseOrderViewSet, basename="procurement-purchase-order")
router.register(r"rfqs", VendorRfqViewSet, basename="procurement-rfq")
router.register(r"quotes", VendorQuoteViewSet, basename="procurement-quote")

urlpatterns = [
    path("", include(router.urls)),
]
