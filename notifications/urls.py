from django.urls import path

from .views import NotificationListView, NotificationMarkAllReadView, NotificationReadView


urlpatterns = [
    path("", NotificationListView.as_view(), name="notifications-list"),
    path("<uuid:pk>/read/", NotificationReadView.as_view(), name="notifications-read-one"),
    path("mark-all-read/", NotificationMarkAllReadView.as_view(), name="notifications-read-all"),
]
