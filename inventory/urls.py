from django.urls import path

from .views import (
    AdjustStockView,
    BulkSyncView,
    CountStockView,
    InventoryBySkuView,
    InventoryCreateView,
    LocationListCreateView,
    LowStockAlertView,
    LowStockNotifyView,
    MovementHistoryView,
    RestockView,
)

urlpatterns = [
    path("inventory/", InventoryCreateView.as_view(), name="inventory-create"),
    # literal route first, <str:sku> would swallow it
    path("inventory/bulk-sync/", BulkSyncView.as_view(), name="inventory-bulk-sync"),
    path("inventory/<uuid:pk>/adjust/", AdjustStockView.as_view(), name="inventory-adjust"),
    path("inventory/<uuid:pk>/count/", CountStockView.as_view(), name="inventory-count"),
    path("inventory/<uuid:pk>/movements/", MovementHistoryView.as_view(), name="inventory-movements"),
    path("inventory/<str:sku>/", InventoryBySkuView.as_view(), name="inventory-by-sku"),
    path("locations/", LocationListCreateView.as_view(), name="location-list-create"),
    path("alerts/low-stock/", LowStockAlertView.as_view(), name="alerts-low-stock"),
    path("alerts/restock/", RestockView.as_view(), name="alerts-restock"),
    path("alerts/low-stock/notify/", LowStockNotifyView.as_view(), name="alerts-low-stock-notify"),
]
