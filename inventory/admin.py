from django.contrib import admin

from .models import Inventory, InventoryMovement, Location


@admin.register(Location)
class LocationAdmin(admin.ModelAdmin):
    list_display = ("name", "type", "is_active", "created_at")
    search_fields = ("name",)
    list_filter = ("type", "is_active")


class InventoryMovementInline(admin.TabularInline):
    model = InventoryMovement
    extra = 0
    readonly_fields = ("type", "quantity", "previous_stock", "new_stock", "reason", "created_at")
    can_delete = False


@admin.register(Inventory)
class InventoryAdmin(admin.ModelAdmin):
    list_display = ("sku", "location", "stock", "threshold", "is_low_stock", "is_active", "updated_at")
    search_fields = ("sku", "location", "product_id")
    list_filter = ("is_low_stock", "is_active", "location")
    # derived by Inventory.save
    readonly_fields = ("is_low_stock", "last_restocked_at", "created_at", "updated_at")
    inlines = [InventoryMovementInline]
