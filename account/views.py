from rest_framework import permissions
from rest_framework.generics import ListCreateAPIView, RetrieveAPIView
from django.contrib.auth import get_user_model

from .serializers import UserSerializer

User = get_user_model()


class IsAdminRole(permissions.BasePermission):
    message = "Only admins can manage users."

    def has_permission(self, request, view):
        user = request.user
        return bool(user and user.is_authenticated and (user.role == User.Role.ADMIN or user.is_superuser))


class UserListCreateView(ListCreateAPIView):
    queryset = User.objects.all().order_by("created_at")
    permission_classes = [permissions.IsAuthenticated, IsAdminRole]
    serializer_class = UserSerializer


class CurrentUserView(RetrieveAPIView):
    permission_classes = [permissions.IsAuthenticated]
    serializer_class = UserSerializer

    def get_object(self):
        return self.request.user
