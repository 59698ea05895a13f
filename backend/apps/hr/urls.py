from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .views import DepartmentViewSet, EmployeePaymentViewSet, EmployeeViewSet

router = DefaultRouter()
router.register(r'departments', DepartmentViewSet, basename='hr-department')
router.register(r'employees', EmployeeViewSet, basename='hr-employee')
router.register(r'payments', EmployeePaymentViewSet, basename='hr-payment')

urlpatterns = [
    path('', include(router.urls)),
]
