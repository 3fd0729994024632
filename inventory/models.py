import uuid
from django.db import models


class Location(models.Model):
    class Type(models.TextChoices):
        WAREHOUSE = "WAREHOUSE", "Warehouse"
        STORE = "STORE", "Store"
        SUPPLIER = "SUPPLIER", "Supplier"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=100, unique=True)  # referenced by Inventory.location
    type = models.CharField(max_length=20, choices=Type.choices, default=Type.WAREHOUSE)
    contact = models.JSONField(blank=True, null=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["name"]

    def __str__(self):
        return self.name


class Inventory(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    product_id = models.UUIDField()
    variant_id = models.UUIDField(null=True, blank=True)
    sku = models.CharField(max_length=20)
    stock = models.PositiveIntegerField(default=0)
    location = models.CharField(max_length=100)
    threshold = models.PositiveIntegerField(default=5)
    is_low_stock = models.BooleanField(default=False)
    is_active = models.BooleanField(default=True)
    metadata = models.JSONField(default=dict, blank=True)
    last_restocked_at = models.DateTimeField(null=True, blank=True)
    last_counted_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "inventory"
        verbose_name_plural = "Inventory"
        constraints = [
            models.UniqueConstraint(fields=["sku", "location"], name="inventory_sku_location_uniq"),
        ]
        indexes = [
            models.Index(fields=["product_id"], name="inventory_product_idx"),
            models.Index(fields=["variant_id"], name="inventory_variant_idx"),
            models.Index(fields=["sku"], name="inventory_sku_idx"),
            models.Index(fields=["is_active", "is_low_stock"], name="inventory_active_low_idx"),
        ]

    def save(self, *args, **kwargs):
        self.is_low_stock = self.stock <= self.threshold
        update_fields = kwargs.get("update_fields")
        if update_fields is not None and {"stock", "threshold"} & set(update_fields):
            kwargs["update_fields"] = set(update_fields) | {"is_low_stock", "updated_at"}
        super().save(*args, **kwargs)

    def __str__(self):
        return f"{self.sku} @ {self.location}: {self.stock}"


class InventoryMovement(models.Model):
    class Type(models.TextChoices):
        INITIAL = "INITIAL", "Initial"
        STOCK_IN = "STOCK_IN", "Stock In"
        STOCK_OUT = "STOCK_OUT", "Stock Out"
        ADJUSTMENT = "ADJUSTMENT", "Adjustment"
        RETURN = "RETURN", "Return"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    inventory = models.ForeignKey(Inventory, related_name="movements", on_delete=models.CASCADE)
    type = models.CharField(max_length=20, choices=Type.choices)
    quantity = models.PositiveIntegerField()  # units moved, direction comes from type/new_stock
    previous_stock = models.PositiveIntegerField()
    new_stock = models.PositiveIntegerField()
    reason = models.CharField(max_length=255, blank=True)  # "Initial stock", "Manual update"
    metadata = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["inventory", "created_at"], name="inventory_movement_inv_idx"),
        ]

    def __str__(self):
        return f"{self.type} {self.quantity} ({self.previous_stock} -> {self.new_stock})"
