from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .views import CustomerViewSet, SalesOrderViewSet

router = DefaultRouter()
router.register(r'customers', CustomerViewSet, basename='sales-customer')
router.register(r'orders', SalesOrderViewSet, basename='sales-order')

urlpatterns = [
    path('', include(router.urls)),
]
