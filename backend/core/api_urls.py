from django.urls import include, path
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

urlpatterns = [
    path('auth/token/', TokenObtainPairView.as_view(), name='token-obtain-pair'),
    path('auth/token/refresh/', TokenRefreshView.as_view(), name='token-refresh'),
    path('notifications/', include('apps.notifications.urls')),
    path('inventory/', include('apps.inventory.urls')),
    path('procurement/', include('apps.procurement.urls')),
    path('production/', include('apps.production.urls')),
    path('sales/', include('apps.sales.urls')),
    path('planning/', include('apps.planning.urls')),
    path('legal/', include('apps.legal.urls')),
    path('hr/', include('apps.hr.urls')),
    path('data-rooms/', include('apps.data_rooms.urls')),
    path('mailing/', include('apps.mailing.urls')),
    path('crm/', include('apps.crm.urls')),
    path('logistics/', include('apps.logistics.urls')),
]
