import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from django.db import DatabaseError, IntegrityError, transaction
from django.db.models import F
from django.utils import timezone

from .conf import InventoryConfig, get_config
from .exceptions import ConflictError, InvalidArgumentError, InventoryError, NotFoundError
from .models import Inventory, InventoryMovement, Location
from .sku import SKU_MAX_LENGTH, generate_sku

logger = logging.getLogger(__name__)

LOCATION_MAX_LENGTH = 100
# fixed segments under /inventory/ that a SKU lookup could never reach
RESERVED_SKUS = frozenset({"bulk-sync"})


def _require_count(name: str, value) -> int:
    # bool is an int subclass, but True is not a stock level
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidArgumentError(f"{name} must be an integer, got {value!r}")
    if value < 0:
        raise InvalidArgumentError(f"{name} must be non-negative, got {value}")
    return value


def _coerce_uuid(name: str, value) -> uuid.UUID:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError, AttributeError):
        raise InvalidArgumentError(f"{name} must be a UUID, got {value!r}") from None


def _require_location(location) -> str:
    if not isinstance(location, str) or not location:
        raise InvalidArgumentError("location is required")
    if len(location) > LOCATION_MAX_LENGTH:
        raise InvalidArgumentError(f"location must be at most {LOCATION_MAX_LENGTH} characters")
    return location


def _require_sku(sku) -> str:
    if not isinstance(sku, str) or not sku:
        raise InvalidArgumentError("sku must be a non-empty string")
    if len(sku) > SKU_MAX_LENGTH:
        raise InvalidArgumentError(f"sku must be at most {SKU_MAX_LENGTH} characters")
    if sku in RESERVED_SKUS or "/" in sku:
        raise InvalidArgumentError(f"sku {sku!r} is reserved or not addressable by URL")
    return sku


def _require_metadata(metadata) -> Dict[str, Any]:
    if metadata is None:
        return {}
    if not isinstance(metadata, dict):
        raise InvalidArgumentError("metadata must be an object")
    return metadata


@dataclass
class BulkSyncItem:
    product_id: Any = None
    stock: Any = None
    location: Any = None
    variant_id: Any = None
    sku: Optional[str] = None
    threshold: Any = None
    metadata: Any = None

    @classmethod
    def from_payload(cls, data: Dict[str, Any]) -> "BulkSyncItem":
        """Accepts both the camelCase wire keys and snake_case keys."""
        def pick(camel, snake):
            return data.get(camel, data.get(snake))

        return cls(
            product_id=pick("productId", "product_id"),
            stock=data.get("stock"),
            location=data.get("location"),
            variant_id=pick("variantId", "variant_id"),
            sku=data.get("sku") or None,
            threshold=data.get("threshold"),
            metadata=data.get("metadata"),
        )


@dataclass
class BulkSyncError:
    index: int
    sku: str
    location: str
    error: str


@dataclass
class BulkSyncResult:
    created: int = 0
    updated: int = 0
    skipped: int = 0
    failed: int = 0
    errors: List[BulkSyncError] = field(default_factory=list)

    def record_failure(self, index: int, sku, location, message: str) -> None:
        self.failed += 1
        self.errors.append(
            BulkSyncError(
                index=index,
                sku=sku if isinstance(sku, str) and sku else "unknown",
                location=location if isinstance(location, str) and location else "unknown",
                error=message,
            )
        )

    def as_dict(self) -> Dict[str, Any]:
        return {
            "created": self.created,
            "updated": self.updated,
            "skipped": self.skipped,
            "failed": self.failed,
            "errors": [
                {"index": e.index, "sku": e.sku, "location": e.location, "error": e.error}
                for e in self.errors
            ],
        }


class InventoryService:
    """
    Source of truth for stock levels.

    Every write validates its input before touching the row, runs inside a
    transaction and goes through ``Inventory.save`` so ``is_low_stock`` always
    matches the stored stock/threshold pair. Concurrent writers are serialized
    by row locks and the (sku, location) unique constraint, not by this class.
    """

    def __init__(self, config: Optional[InventoryConfig] = None):
        self.config = config or get_config()

    def generate_sku(self, product_id, variant_id=None) -> str:
        return generate_sku(product_id, variant_id)

    # ---- reads -----------------------------------------------------------

    def get_inventory_by_id(self, inventory_id) -> Inventory:
        inventory = Inventory.objects.filter(pk=self._pk(inventory_id)).first()
        if not inventory:
            raise NotFoundError(f"Inventory with ID {inventory_id} not found")
        return inventory

    def get_inventory_by_sku(self, sku: str, location: Optional[str] = None) -> List[Inventory]:
        qs = Inventory.objects.filter(sku=sku)
        if location:
            qs = qs.filter(location=location)
        return list(qs.order_by("location", "created_at"))

    def get_inventory_by_product(self, product_id) -> List[Inventory]:
        product_id = _coerce_uuid("product_id", product_id)
        return list(Inventory.objects.filter(product_id=product_id).order_by("sku", "location"))

    def filter_inventory(
        self,
        *,
        product_ids=None,
        variant_ids=None,
        skus=None,
        locations=None,
        is_low_stock: Optional[bool] = None,
        is_active: Optional[bool] = None,
    ) -> List[Inventory]:
        qs = Inventory.objects.all()
        if product_ids:
            qs = qs.filter(product_id__in=[_coerce_uuid("product_id", p) for p in product_ids])
        if variant_ids:
            qs = qs.filter(variant_id__in=[_coerce_uuid("variant_id", v) for v in variant_ids])
        if skus:
            qs = qs.filter(sku__in=skus)
        if locations:
            qs = qs.filter(location__in=locations)
        if is_low_stock is not None:
            qs = qs.filter(is_low_stock=is_low_stock)
        if is_active is not None:
            qs = qs.filter(is_active=is_active)
        return list(qs.order_by("created_at", "id"))

    def get_movement_history(self, inventory_id, limit: int = 50) -> List[InventoryMovement]:
        inventory = self.get_inventory_by_id(inventory_id)
        if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
            raise InvalidArgumentError("limit must be a positive integer")
        return list(inventory.movements.order_by("-created_at")[:limit])

    # ---- writes ----------------------------------------------------------

    def create_inventory(
        self,
        *,
        product_id,
        stock,
        location,
        variant_id=None,
        sku: Optional[str] = None,
        threshold=None,
        metadata=None,
    ) -> Inventory:
        product_id = _coerce_uuid("product_id", product_id)
        if variant_id is not None:
            variant_id = _coerce_uuid("variant_id", variant_id)
        stock = _require_count("stock", stock)
        threshold = self.config.default_threshold if threshold is None else _require_count("threshold", threshold)
        location = _require_location(location)
        metadata = _require_metadata(metadata)
        sku = _require_sku(sku) if sku else self.generate_sku(product_id, variant_id)

        if self.config.validate_locations and not Location.objects.filter(name=location).exists():
            raise NotFoundError(f"Location not found: {location}")

        conflict = f"Inventory already exists for SKU {sku} at location {location}"
        if Inventory.objects.filter(sku=sku, location=location).exists():
            raise ConflictError(conflict)

        try:
            with transaction.atomic():
                inventory = Inventory(
                    product_id=product_id,
                    variant_id=variant_id,
                    sku=sku,
                    stock=stock,
                    location=location,
                    threshold=threshold,
                    metadata=metadata,
                    is_active=True,
                )
                inventory.save()
                if stock > 0:
                    InventoryMovement.objects.create(
                        inventory=inventory,
                        type=InventoryMovement.Type.INITIAL,
                        quantity=stock,
                        previous_stock=0,
                        new_stock=stock,
                        reason="Initial stock",
                    )
        except IntegrityError as exc:
            # lost a race against a concurrent create of the same pair
            raise ConflictError(conflict) from exc

        logger.info("Inventory created id=%s sku=%s location=%s stock=%s", inventory.id, sku, location, stock)
        self._warn_if_low(inventory)
        return inventory

    def update_inventory(
        self,
        inventory_id,
        *,
        stock=None,
        threshold=None,
        is_active: Optional[bool] = None,
        metadata=None,
    ) -> Inventory:
        with transaction.atomic():
            inventory = self._lock(inventory_id)
            return self._apply_update(
                inventory,
                stock=stock,
                threshold=threshold,
                is_active=is_active,
                metadata=metadata,
                reason="Manual update",
            )

    def bulk_update_inventory(self, inventory_ids, *, threshold=None, is_active=None, metadata=None) -> int:
        ids = [self._pk(inventory_id) for inventory_id in inventory_ids]
        updated = 0
        with transaction.atomic():
            for inventory in Inventory.objects.select_for_update().filter(pk__in=ids):
                self._apply_update(inventory, threshold=threshold, is_active=is_active, metadata=metadata)
                updated += 1
        logger.info("Bulk inventory update completed count=%s requested=%s", updated, len(ids))
        return updated

    def adjust_stock(self, inventory_id, quantity, movement_type, reason: Optional[str] = None, metadata=None) -> Inventory:
        if isinstance(quantity, bool) or not isinstance(quantity, int):
            raise InvalidArgumentError(f"quantity must be an integer, got {quantity!r}")
        if movement_type not in InventoryMovement.Type.values or movement_type == InventoryMovement.Type.INITIAL:
            raise InvalidArgumentError(f"Unsupported movement type: {movement_type}")
        if movement_type != InventoryMovement.Type.ADJUSTMENT and quantity < 0:
            raise InvalidArgumentError(f"quantity must be non-negative for {movement_type}")
        metadata = _require_metadata(metadata)

        with transaction.atomic():
            inventory = self._lock(inventory_id)
            previous = inventory.stock
            if movement_type == InventoryMovement.Type.STOCK_OUT:
                if previous < quantity:
                    raise InvalidArgumentError(
                        f"Insufficient stock for SKU {inventory.sku}. Current stock: {previous}, Requested: {quantity}"
                    )
                new_stock = previous - quantity
            else:
                new_stock = previous + quantity
            if new_stock < 0:
                raise InvalidArgumentError(
                    f"Adjustment would make stock negative for SKU {inventory.sku}: {previous} + ({quantity})"
                )

            if new_stock != previous:
                self._change_stock(inventory, new_stock, movement_type, reason or movement_type, metadata)
                inventory.save()

        logger.info(
            "Stock adjusted id=%s type=%s %s -> %s", inventory.id, movement_type, previous, inventory.stock
        )
        self._warn_if_low(inventory)
        return inventory

    def count_stock(self, inventory_id, counted_stock) -> Inventory:
        counted_stock = _require_count("counted_stock", counted_stock)
        with transaction.atomic():
            inventory = self._lock(inventory_id)
            if counted_stock != inventory.stock:
                self._change_stock(inventory, counted_stock, InventoryMovement.Type.ADJUSTMENT, "Physical count")
            inventory.last_counted_at = timezone.now()
            inventory.save()
        self._warn_if_low(inventory)
        return inventory

    def recompute_low_stock_flags(self) -> int:
        # queryset.update() skips Inventory.save, so rows written that way can drift
        became_low = Inventory.objects.filter(is_low_stock=False, stock__lte=F("threshold")).update(is_low_stock=True)
        became_ok = Inventory.objects.filter(is_low_stock=True, stock__gt=F("threshold")).update(is_low_stock=False)
        fixed = became_low + became_ok
        if fixed:
            logger.warning("Repaired stale low-stock flags count=%s", fixed)
        return fixed

    # ---- bulk sync -------------------------------------------------------

    def bulk_sync(self, items: Iterable, *, create_missing: bool = True, update_existing: bool = True) -> BulkSyncResult:
        """
        Create-or-update every item independently.

        Items run in input order, each inside its own savepoint; one bad item
        is recorded in ``errors`` under its index and the rest still apply, so
        partial application is a normal outcome.
        """
        result = BulkSyncResult()
        for index, raw in enumerate(items):
            result = self._sync_item(result, index, raw, create_missing, update_existing)

        logger.info(
            "Bulk inventory sync finished created=%s updated=%s skipped=%s failed=%s",
            result.created, result.updated, result.skipped, result.failed,
        )
        return result

    def _sync_item(self, result: BulkSyncResult, index: int, raw, create_missing: bool, update_existing: bool) -> BulkSyncResult:
        if isinstance(raw, BulkSyncItem):
            item = raw
        elif isinstance(raw, dict):
            item = BulkSyncItem.from_payload(raw)
        else:
            result.record_failure(index, None, None, "Item is undefined")
            return result

        sku = item.sku
        try:
            with transaction.atomic():
                if item.stock is None:
                    raise InvalidArgumentError("stock is required")
                stock = _require_count("stock", item.stock)
                threshold = None if item.threshold is None else _require_count("threshold", item.threshold)
                location = _require_location(item.location)
                if sku:
                    sku = _require_sku(sku)
                else:
                    variant_id = None if item.variant_id is None else _coerce_uuid("variant_id", item.variant_id)
                    sku = self.generate_sku(_coerce_uuid("product_id", item.product_id), variant_id)

                existing = Inventory.objects.select_for_update().filter(sku=sku, location=location).first()
                if existing is not None:
                    if update_existing:
                        self._apply_update(
                            existing,
                            stock=stock,
                            threshold=threshold,
                            metadata=item.metadata,
                            reason="Bulk sync",
                        )
                        result.updated += 1
                    else:
                        result.skipped += 1
                elif create_missing:
                    self.create_inventory(
                        product_id=item.product_id,
                        variant_id=item.variant_id,
                        sku=sku,
                        stock=stock,
                        location=location,
                        threshold=threshold,
                        metadata=item.metadata,
                    )
                    result.created += 1
                else:
                    result.skipped += 1
        except InventoryError as exc:
            result.record_failure(index, sku, item.location, str(exc))
        except DatabaseError as exc:
            logger.exception("Bulk sync item %s failed sku=%s location=%s", index, sku, item.location)
            result.record_failure(index, sku, item.location, str(exc))
        return result

    # ---- helpers ---------------------------------------------------------

    @staticmethod
    def _pk(inventory_id) -> uuid.UUID:
        try:
            return _coerce_uuid("id", inventory_id)
        except InvalidArgumentError:
            raise NotFoundError(f"Inventory with ID {inventory_id} not found") from None

    def _lock(self, inventory_id) -> Inventory:
        inventory = Inventory.objects.select_for_update().filter(pk=self._pk(inventory_id)).first()
        if not inventory:
            raise NotFoundError(f"Inventory with ID {inventory_id} not found")
        return inventory

    def _apply_update(
        self,
        inventory: Inventory,
        *,
        stock=None,
        threshold=None,
        is_active=None,
        metadata=None,
        reason: str = "Manual update",
    ) -> Inventory:
        # validate everything before mutating so a rejected update leaves the row untouched
        if stock is not None:
            stock = _require_count("stock", stock)
        if threshold is not None:
            threshold = _require_count("threshold", threshold)
        if is_active is not None and not isinstance(is_active, bool):
            raise InvalidArgumentError("isActive must be a boolean")
        metadata = _require_metadata(metadata)

        if threshold is not None:
            inventory.threshold = threshold
        if is_active is not None:
            inventory.is_active = is_active
        if metadata:
            inventory.metadata = {**(inventory.metadata or {}), **metadata}
        if stock is not None and stock != inventory.stock:
            self._change_stock(inventory, stock, InventoryMovement.Type.ADJUSTMENT, reason)

        inventory.save()
        logger.info("Inventory updated id=%s sku=%s location=%s", inventory.id, inventory.sku, inventory.location)
        self._warn_if_low(inventory)
        return inventory

    @staticmethod
    def _change_stock(inventory: Inventory, new_stock: int, movement_type: str, reason: str, metadata=None) -> None:
        previous = inventory.stock
        inventory.stock = new_stock
        if new_stock > previous:
            inventory.last_restocked_at = timezone.now()
        InventoryMovement.objects.create(
            inventory=inventory,
            type=movement_type,
            quantity=abs(new_stock - previous),
            previous_stock=previous,
            new_stock=new_stock,
            reason=reason,
            metadata=metadata or {},
        )

    @staticmethod
    def _warn_if_low(inventory: Inventory) -> None:
        if inventory.is_low_stock and inventory.is_active:
            logger.warning(
                "Low stock warning id=%s sku=%s location=%s stock=%s threshold=%s",
                inventory.id, inventory.sku, inventory.location, inventory.stock, inventory.threshold,
            )
