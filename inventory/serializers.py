import uuid

from rest_framework import serializers

from .models import Inventory, InventoryMovement, Location
from .sku import SKU_MAX_LENGTH


class InventorySerializer(serializers.ModelSerializer):
    productId = serializers.UUIDField(source="product_id", read_only=True)
    variantId = serializers.UUIDField(source="variant_id", read_only=True, allow_null=True)
    isLowStock = serializers.BooleanField(source="is_low_stock", read_only=True)
    isActive = serializers.BooleanField(source="is_active", read_only=True)
    lastRestockedAt = serializers.DateTimeField(source="last_restocked_at", read_only=True)
    lastCountedAt = serializers.DateTimeField(source="last_counted_at", read_only=True)
    createdAt = serializers.DateTimeField(source="created_at", read_only=True)
    updatedAt = serializers.DateTimeField(source="updated_at", read_only=True)

    class Meta:
        model = Inventory
        fields = [
            "id", "productId", "variantId", "sku", "stock", "location", "threshold",
            "isLowStock", "isActive", "metadata", "lastRestockedAt", "lastCountedAt",
            "createdAt", "updatedAt",
        ]
        read_only_fields = fields


class CreateInventorySerializer(serializers.Serializer):
    productId = serializers.UUIDField()
    variantId = serializers.UUIDField(required=False, allow_null=True)
    sku = serializers.CharField(required=False, allow_blank=True, max_length=SKU_MAX_LENGTH)
    stock = serializers.IntegerField(min_value=0)
    location = serializers.CharField(max_length=100)
    threshold = serializers.IntegerField(required=False, min_value=0)
    metadata = serializers.DictField(required=False)

    def to_service_kwargs(self):
        data = self.validated_data
        return {
            "product_id": data["productId"],
            "variant_id": data.get("variantId"),
            "sku": data.get("sku") or None,
            "stock": data["stock"],
            "location": data["location"],
            "threshold": data.get("threshold"),
            "metadata": data.get("metadata"),
        }


class UpdateInventorySerializer(serializers.Serializer):
    stock = serializers.IntegerField(required=False, min_value=0)
    threshold = serializers.IntegerField(required=False, min_value=0)
    isActive = serializers.BooleanField(required=False)
    metadata = serializers.DictField(required=False)

    def validate(self, attrs):
        if not attrs:
            raise serializers.ValidationError("At least one of stock, threshold, isActive, metadata is required.")
        return attrs

    def to_service_kwargs(self):
        data = self.validated_data
        return {
            "stock": data.get("stock"),
            "threshold": data.get("threshold"),
            "is_active": data.get("isActive"),
            "metadata": data.get("metadata"),
        }


class BulkSyncSerializer(serializers.Serializer):
    # items are validated one by one by the service so one bad item fails alone
    items = serializers.ListField(child=serializers.JSONField(allow_null=True), allow_empty=True)
    createMissing = serializers.BooleanField(required=False, default=True)
    updateExisting = serializers.BooleanField(required=False, default=True)


class AdjustStockSerializer(serializers.Serializer):
    type = serializers.ChoiceField(
        choices=[c for c in InventoryMovement.Type.choices if c[0] != InventoryMovement.Type.INITIAL]
    )
    quantity = serializers.IntegerField()
    reason = serializers.CharField(required=False, allow_blank=True, max_length=255)
    metadata = serializers.DictField(required=False)


class CountStockSerializer(serializers.Serializer):
    countedStock = serializers.IntegerField(min_value=0)


class MovementSerializer(serializers.ModelSerializer):
    inventoryId = serializers.UUIDField(source="inventory_id", read_only=True)
    previousStock = serializers.IntegerField(source="previous_stock", read_only=True)
    newStock = serializers.IntegerField(source="new_stock", read_only=True)
    createdAt = serializers.DateTimeField(source="created_at", read_only=True)

    class Meta:
        model = InventoryMovement
        fields = ["id", "inventoryId", "type", "quantity", "previousStock", "newStock", "reason", "metadata", "createdAt"]
        read_only_fields = fields


class LocationSerializer(serializers.ModelSerializer):
    isActive = serializers.BooleanField(source="is_active", required=False)
    createdAt = serializers.DateTimeField(source="created_at", read_only=True)

    class Meta:
        model = Location
        fields = ["id", "name", "type", "contact", "isActive", "createdAt"]
        read_only_fields = ["id", "createdAt"]


class CommaSeparatedField(serializers.CharField):
    def to_internal_value(self, data):
        value = super().to_internal_value(data)
        return [part.strip() for part in value.split(",") if part.strip()]


class LowStockQuerySerializer(serializers.Serializer):
    criticalOnly = serializers.BooleanField(required=False, default=False)
    location = serializers.CharField(required=False, max_length=100)
    daysWithoutRestock = serializers.IntegerField(required=False)


class RestockQuerySerializer(serializers.Serializer):
    productIds = CommaSeparatedField(required=False)
    locations = CommaSeparatedField(required=False)
    criticalOnly = serializers.BooleanField(required=False, default=False)

    def validate_productIds(self, value):
        try:
            return [uuid.UUID(v) for v in value]
        except ValueError:
            raise serializers.ValidationError("productIds must be comma-separated UUIDs.")


class LowStockNotifySerializer(serializers.Serializer):
    criticalOnly = serializers.BooleanField(required=False, default=False)
    location = serializers.CharField(required=False, max_length=100)
    inApp = serializers.BooleanField(required=False, default=True)
    email = serializers.BooleanField(required=False, default=False)
    webhook = serializers.BooleanField(required=False, default=False)
    emailRecipients = serializers.ListField(child=serializers.EmailField(), required=False, default=list)
    webhookUrl = serializers.URLField(required=False, allow_blank=True, default="")
