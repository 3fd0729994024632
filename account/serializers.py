from rest_framework.serializers import ModelSerializer
from django.contrib.auth import get_user_model
from rest_framework import serializers

from .models import ALERT_SCOPES

User = get_user_model()


class UserSerializer(ModelSerializer):
    hasAlertAccess = serializers.BooleanField(source="has_alert_access", read_only=True)

    class Meta:
        model = User
        fields = ['id', 'first_name', 'last_name', 'email', 'role', 'permissions', 'is_active',
                  'hasAlertAccess', 'created_at', 'updated_at', 'password']
        extra_kwargs = {
            'password': {'write_only': True},}
        read_only_fields = ('id', 'created_at', 'updated_at')

    def validate_permissions(self, value):
        if not isinstance(value, list) or not all(isinstance(scope, str) for scope in value):
            raise serializers.ValidationError("permissions must be a list of scope strings.")
        unknown = sorted(set(value) - set(ALERT_SCOPES))
        if unknown:
            raise serializers.ValidationError(f"Unknown scopes: {', '.join(unknown)}")
        return value

    def create(self, validated_data):
        password = validated_data.pop('password', None)
        return User.objects.create_user(password=password, **validated_data)
