import logging

from django.db import transaction
from rest_framework import permissions, status
from rest_framework.generics import ListCreateAPIView
from rest_framework.response import Response
from rest_framework.views import APIView

from notifications.services import AlertNotificationOptions

from .alerts import AlertService
from .exceptions import InvalidArgumentError, NotFoundError
from .models import Location
from .permissions import HasAlertAccess
from .serializers import (
    AdjustStockSerializer,
    BulkSyncSerializer,
    CountStockSerializer,
    CreateInventorySerializer,
    InventorySerializer,
    LocationSerializer,
    LowStockNotifySerializer,
    LowStockQuerySerializer,
    MovementSerializer,
    RestockQuerySerializer,
    UpdateInventorySerializer,
)
from .services import InventoryService

logger = logging.getLogger(__name__)


class InventoryCreateView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request):
        serializer = CreateInventorySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        inventory = InventoryService().create_inventory(**serializer.to_service_kwargs())
        return Response(InventorySerializer(inventory).data, status=status.HTTP_201_CREATED)


class InventoryBySkuView(APIView):
    def get_permissions(self):
        if self.request.method == "GET":
            return [permissions.AllowAny()]
        return [permissions.IsAuthenticated()]

    def get(self, request, sku):
        items = InventoryService().get_inventory_by_sku(sku, request.query_params.get("location") or None)
        return Response(InventorySerializer(items, many=True).data)

    def put(self, request, sku):
        location = request.query_params.get("location") or None
        serializer = UpdateInventorySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        service = InventoryService()
        records = service.get_inventory_by_sku(sku, location)
        if not records:
            where = f" at location {location}" if location else ""
            raise NotFoundError(f"No inventory found for SKU {sku}{where}")

        with transaction.atomic():
            updated = [service.update_inventory(r.id, **serializer.to_service_kwargs()) for r in records]

        return Response(
            {
                "updated": len(updated),
                "items": [
                    {
                        "id": str(item.id),
                        "sku": item.sku,
                        "location": item.location,
                        "stock": item.stock,
                        "isLowStock": item.is_low_stock,
                    }
                    for item in updated
                ],
            }
        )


class BulkSyncView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request):
        serializer = BulkSyncSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        result = InventoryService().bulk_sync(
            data["items"],
            create_missing=data["createMissing"],
            update_existing=data["updateExisting"],
        )
        return Response(result.as_dict(), status=status.HTTP_200_OK)


class AdjustStockView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request, pk):
        serializer = AdjustStockSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        inventory = InventoryService().adjust_stock(
            pk,
            data["quantity"],
            data["type"],
            reason=data.get("reason") or None,
            metadata=data.get("metadata"),
        )
        return Response(InventorySerializer(inventory).data)


class CountStockView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request, pk):
        serializer = CountStockSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        inventory = InventoryService().count_stock(pk, serializer.validated_data["countedStock"])
        return Response(InventorySerializer(inventory).data)


class MovementHistoryView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request, pk):
        raw_limit = request.query_params.get("limit", "50")
        try:
            limit = int(raw_limit)
        except ValueError:
            raise InvalidArgumentError(f"limit must be an integer, got {raw_limit!r}") from None
        movements = InventoryService().get_movement_history(pk, limit=limit)
        return Response(MovementSerializer(movements, many=True).data)


class RestockView(APIView):
    permission_classes = [permissions.IsAuthenticated, HasAlertAccess]

    def get(self, request):
        serializer = RestockQuerySerializer(data=request.query_params)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        items = AlertService().get_items_needing_restock(
            product_ids=data.get("productIds"),
            locations=data.get("locations"),
            critical_only=data["criticalOnly"],
        )
        return Response([item.to_representation() for item in items])


class LocationListCreateView(ListCreateAPIView):
    permission_classes = [permissions.IsAuthenticated]
    queryset = Location.objects.all()
    serializer_class = LocationSerializer


class LowStockAlertView(APIView):
    permission_classes = [permissions.IsAuthenticated, HasAlertAccess]

    def get(self, request):
        serializer = LowStockQuerySerializer(data=request.query_params)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        report = AlertService().low_stock_report(
            critical_only=data["criticalOnly"],
            location=data.get("location"),
            days_without_restock=data.get("daysWithoutRestock"),
        )
        return Response(report.to_representation())


class LowStockNotifyView(APIView):
    permission_classes = [permissions.IsAuthenticated, HasAlertAccess]

    def post(self, request):
        serializer = LowStockNotifySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        service = AlertService()
        report = service.low_stock_report(critical_only=data["criticalOnly"], location=data.get("location"))
        items = report.breaches.all_items()
        options = AlertNotificationOptions(
            notify_in_app=data["inApp"],
            notify_email=data["email"],
            notify_webhook=data["webhook"],
            email_recipients=tuple(data["emailRecipients"]),
            webhook_url=data["webhookUrl"],
        )
        sent = service.send_low_stock_notifications(items, options)
        logger.info("Low stock notify requested by user=%s items=%s sent=%s", request.user.pk, len(items), sent)
        return Response(
            {
                "sent": sent,
                "itemCount": len(items),
                "locations": list(report.location_breakdown.keys()),
            }
        )
