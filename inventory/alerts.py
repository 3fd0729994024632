import logging
import math
import uuid
from collections import OrderedDict
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional

from django.db.models import F, Q
from django.utils import timezone
from django.utils.dateparse import parse_datetime

from notifications.services import AlertNotificationOptions, LowStockNotifier

from .conf import InventoryConfig, get_config
from .exceptions import InvalidArgumentError
from .models import Inventory

logger = logging.getLogger(__name__)

OUT_OF_STOCK = "out_of_stock"
CRITICAL_LOW_STOCK = "critical_low_stock"
LOW_STOCK = "low_stock"
HEALTHY = "healthy"


def classify(stock: int, threshold: int, critical_ratio: float = 0.5) -> str:
    """Stock status, checked in priority order so each row lands in one bucket."""
    if stock == 0:
        return OUT_OF_STOCK
    if stock <= threshold * critical_ratio:
        return CRITICAL_LOW_STOCK
    if stock <= threshold:
        return LOW_STOCK
    return HEALTHY


def depletion_ratio(stock: int, threshold: int) -> float:
    # threshold 0: an empty row is fully depleted, anything else sorts last
    if threshold == 0:
        return 0.0 if stock == 0 else math.inf
    return stock / threshold


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass(frozen=True)
class AlertItem:
    id: uuid.UUID
    product_id: uuid.UUID
    variant_id: Optional[uuid.UUID]
    sku: str
    stock: int
    threshold: int
    location: str
    metadata: Dict[str, Any] = field(default_factory=dict)
    last_restocked_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_inventory(cls, record: Inventory) -> "AlertItem":
        return cls(
            id=record.id,
            product_id=record.product_id,
            variant_id=record.variant_id,
            sku=record.sku,
            stock=record.stock,
            threshold=record.threshold,
            location=record.location,
            metadata=dict(record.metadata or {}),
            last_restocked_at=record.last_restocked_at,
            created_at=record.created_at,
            updated_at=record.updated_at,
        )

    def to_representation(self) -> Dict[str, Any]:
        return {
            "id": str(self.id),
            "productId": str(self.product_id),
            "variantId": str(self.variant_id) if self.variant_id else None,
            "sku": self.sku,
            "stock": self.stock,
            "threshold": self.threshold,
            "location": self.location,
            "metadata": self.metadata,
            "lastRestockedAt": _iso(self.last_restocked_at),
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }

    @classmethod
    def from_representation(cls, data: Dict[str, Any]) -> "AlertItem":
        def when(key):
            return parse_datetime(data[key]) if data.get(key) else None

        return cls(
            id=uuid.UUID(data["id"]),
            product_id=uuid.UUID(data["productId"]),
            variant_id=uuid.UUID(data["variantId"]) if data.get("variantId") else None,
            sku=data["sku"],
            stock=data["stock"],
            threshold=data["threshold"],
            location=data["location"],
            metadata=dict(data.get("metadata") or {}),
            last_restocked_at=when("lastRestockedAt"),
            created_at=when("createdAt"),
            updated_at=when("updatedAt"),
        )


@dataclass
class ThresholdBreaches:
    low_stock: List[AlertItem] = field(default_factory=list)
    critical_low_stock: List[AlertItem] = field(default_factory=list)
    out_of_stock: List[AlertItem] = field(default_factory=list)

    def all_items(self) -> List[AlertItem]:
        return [*self.low_stock, *self.critical_low_stock, *self.out_of_stock]

    def for_location(self, location: str) -> "ThresholdBreaches":
        return replace(
            self,
            low_stock=[i for i in self.low_stock if i.location == location],
            critical_low_stock=[i for i in self.critical_low_stock if i.location == location],
            out_of_stock=[i for i in self.out_of_stock if i.location == location],
        )


@dataclass
class LocationBreakdown:
    low_stock_count: int = 0
    critical_count: int = 0
    out_of_stock_count: int = 0

    def as_dict(self, location: str) -> Dict[str, Any]:
        return {
            "location": location,
            "lowStockCount": self.low_stock_count,
            "criticalCount": self.critical_count,
            "outOfStockCount": self.out_of_stock_count,
        }


@dataclass
class LowStockReport:
    breaches: ThresholdBreaches
    location_breakdown: Dict[str, LocationBreakdown]
    not_restocked: Optional[List[AlertItem]] = None

    def to_representation(self) -> Dict[str, Any]:
        data = {
            "lowStock": [i.to_representation() for i in self.breaches.low_stock],
            "criticalLowStock": [i.to_representation() for i in self.breaches.critical_low_stock],
            "outOfStock": [i.to_representation() for i in self.breaches.out_of_stock],
        }
        if self.not_restocked is not None:
            data["notRestockedItems"] = [i.to_representation() for i in self.not_restocked]
        data["summary"] = {
            "totalLowStock": len(self.breaches.low_stock),
            "totalCriticalLowStock": len(self.breaches.critical_low_stock),
            "totalOutOfStock": len(self.breaches.out_of_stock),
            "locationBreakdown": [b.as_dict(loc) for loc, b in self.location_breakdown.items()],
        }
        return data


def group_items_by_location(items: Iterable[AlertItem]) -> Dict[str, List[AlertItem]]:
    grouped: Dict[str, List[AlertItem]] = OrderedDict()
    for item in items:
        grouped.setdefault(item.location, []).append(item)
    return grouped


class AlertService:
    """
    Read-only evaluation of stock health.

    Nothing is cached between calls; every operation re-reads active rows and
    classifies them with :func:`classify`, so the narrow getters always agree
    with :meth:`check_threshold_breaches`.
    """

    def __init__(self, config: Optional[InventoryConfig] = None, notifier: Optional[LowStockNotifier] = None):
        self.config = config or get_config()
        self.notifier = notifier

    def classify(self, record) -> str:
        return classify(record.stock, record.threshold, self.config.critical_ratio)

    @staticmethod
    def _active():
        return Inventory.objects.filter(is_active=True).order_by("created_at", "id")

    def _bucket(self, queryset, status: str) -> List[AlertItem]:
        return [AlertItem.from_inventory(r) for r in queryset if self.classify(r) == status]

    def check_threshold_breaches(self) -> ThresholdBreaches:
        breaches = ThresholdBreaches()
        buckets = {
            LOW_STOCK: breaches.low_stock,
            CRITICAL_LOW_STOCK: breaches.critical_low_stock,
            OUT_OF_STOCK: breaches.out_of_stock,
        }
        for record in self._active().filter(stock__lte=F("threshold")):
            status = self.classify(record)
            if status in buckets:
                buckets[status].append(AlertItem.from_inventory(record))

        if breaches.all_items():
            logger.warning(
                "Threshold breaches low=%s critical=%s out_of_stock=%s",
                len(breaches.low_stock), len(breaches.critical_low_stock), len(breaches.out_of_stock),
            )
        return breaches

    def get_low_stock_items(self) -> List[AlertItem]:
        return self._bucket(self._active().filter(stock__gt=0, stock__lte=F("threshold")), LOW_STOCK)

    def get_critical_low_stock_items(self) -> List[AlertItem]:
        return self._bucket(self._active().filter(stock__gt=0, stock__lte=F("threshold")), CRITICAL_LOW_STOCK)

    def get_out_of_stock_items(self) -> List[AlertItem]:
        return self._bucket(self._active().filter(stock=0), OUT_OF_STOCK)

    def get_items_not_restocked_in_days(self, days: int) -> List[AlertItem]:
        if isinstance(days, bool) or not isinstance(days, int) or days < 0:
            raise InvalidArgumentError(f"days must be a non-negative integer, got {days!r}")
        cutoff = timezone.now() - timedelta(days=days)
        qs = self._active().filter(Q(last_restocked_at__isnull=True) | Q(last_restocked_at__lt=cutoff))
        return [AlertItem.from_inventory(r) for r in qs]

    def get_items_needing_restock(self, product_ids=None, locations=None, critical_only: bool = False) -> List[AlertItem]:
        qs = self._active().filter(stock__lte=F("threshold"))
        if product_ids:
            qs = qs.filter(product_id__in=product_ids)
        if locations:
            qs = qs.filter(location__in=locations)

        if critical_only:
            rows = [r for r in qs if r.stock <= r.threshold * self.config.critical_ratio]
        else:
            rows = list(qs)
        # list.sort is stable, ties keep the created_at/id read order
        rows.sort(key=lambda r: depletion_ratio(r.stock, r.threshold))
        return [AlertItem.from_inventory(r) for r in rows]

    @staticmethod
    def group_by_location(breaches: ThresholdBreaches) -> Dict[str, LocationBreakdown]:
        grouped: Dict[str, LocationBreakdown] = OrderedDict()
        for item in breaches.low_stock:
            grouped.setdefault(item.location, LocationBreakdown()).low_stock_count += 1
        for item in breaches.critical_low_stock:
            grouped.setdefault(item.location, LocationBreakdown()).critical_count += 1
        for item in breaches.out_of_stock:
            grouped.setdefault(item.location, LocationBreakdown()).out_of_stock_count += 1
        return grouped

    def low_stock_report(
        self,
        *,
        critical_only: bool = False,
        location: Optional[str] = None,
        days_without_restock: Optional[int] = None,
    ) -> LowStockReport:
        not_restocked = None
        # 0 is treated as not requested
        if days_without_restock:
            not_restocked = self.get_items_not_restocked_in_days(days_without_restock)

        if critical_only:
            breaches = ThresholdBreaches(
                critical_low_stock=self.get_critical_low_stock_items(),
                out_of_stock=self.get_out_of_stock_items(),
            )
        else:
            breaches = self.check_threshold_breaches()

        if location:
            breaches = breaches.for_location(location)
            if not_restocked is not None:
                not_restocked = [i for i in not_restocked if i.location == location]

        return LowStockReport(
            breaches=breaches,
            location_breakdown=self.group_by_location(breaches),
            not_restocked=not_restocked,
        )

    def send_low_stock_notifications(
        self, items: List[AlertItem], options: Optional[AlertNotificationOptions] = None
    ) -> bool:
        if not items:
            logger.info("No low stock items to notify about")
            return True

        grouped = group_items_by_location(items)
        notifier = self.notifier or LowStockNotifier(self.config)
        try:
            sent = notifier.dispatch(grouped, options or AlertNotificationOptions())
        except Exception:
            logger.exception("Low stock notification dispatch failed items=%s", len(items))
            return False

        logger.info("Low stock notification dispatched items=%s locations=%s sent=%s", len(items), len(grouped), sent)
        return sent
