from django.urls import path

from .views import (
    NotificationCenterView,
    NotificationClearAllView,
    NotificationListView,
    NotificationMarkView,
)


urlpatterns = [
    path("", NotificationListView.as_view(), name="notification-list"),
    path("center/", NotificationCenterView.as_view(), name="notification-center"),
    path("<int:pk>/mark/", NotificationMarkView.as_view(), name="notification-mark"),
    path("clear-all/", NotificationClearAllView.as_view(), name="notification-clear-all"),
]
