import hashlib
import uuid
from datetime import timedelta
from io import StringIO
from unittest.mock import Mock, patch

from django.core.management import call_command
from django.test import TestCase, override_settings
from django.utils import timezone
from rest_framework.test import APIClient

from account.models import User
from notifications.models import Notification
from notifications.services import AlertNotificationOptions

from .alerts import (
    CRITICAL_LOW_STOCK,
    HEALTHY,
    LOW_STOCK,
    OUT_OF_STOCK,
    AlertItem,
    AlertService,
    classify,
)
from .conf import InventoryConfig, get_config
from .exceptions import ConflictError, InvalidArgumentError, NotFoundError
from .models import Inventory, InventoryMovement, Location
from .services import BulkSyncItem, InventoryService
from .sku import extract_product_hash, extract_variant_hash, generate_sku, has_variant, validate_sku


def make_inventory(stock, threshold=5, location="Main WH", **extra):
    product_id = extra.pop("product_id", uuid.uuid4())
    return Inventory.objects.create(
        product_id=product_id,
        sku=extra.pop("sku", generate_sku(uuid.uuid4())),
        stock=stock,
        threshold=threshold,
        location=location,
        **extra,
    )


class SkuCodecTests(TestCase):
    def test_generated_sku_without_variant(self):
        product_id = uuid.uuid4()
        sku = generate_sku(product_id)

        self.assertTrue(validate_sku(sku))
        self.assertFalse(has_variant(sku))
        self.assertEqual(extract_product_hash(sku), hashlib.md5(str(product_id).encode()).hexdigest()[:6].upper())
        self.assertIsNone(extract_variant_hash(sku))

    def test_generated_sku_with_variant(self):
        product_id, variant_id = uuid.uuid4(), uuid.uuid4()
        sku = generate_sku(product_id, variant_id)

        self.assertTrue(validate_sku(sku))
        self.assertTrue(has_variant(sku))
        self.assertEqual(len(sku), 13)
        self.assertEqual(extract_variant_hash(sku), hashlib.md5(str(variant_id).encode()).hexdigest()[:4].upper())

    def test_generation_is_deterministic(self):
        product_id = uuid.uuid4()
        self.assertEqual(generate_sku(product_id), generate_sku(str(product_id)))

    def test_rejects_malformed_skus(self):
        for sku in ["p1a2b3c", "P1A2B3", "X1A2B3C", "P1A2B3C-V12", "P1A2B3C\n", "", None]:
            self.assertFalse(validate_sku(sku), sku)
            self.assertIsNone(extract_product_hash(sku))


class InventoryConfigTests(TestCase):
    def test_rejects_ratio_outside_unit_interval(self):
        from django.core.exceptions import ImproperlyConfigured

        with self.assertRaises(ImproperlyConfigured):
            InventoryConfig(critical_ratio=1.5)

    @override_settings(INVENTORY={"DEFAULT_THRESHOLD": 12, "VALIDATE_LOCATIONS": False})
    def test_config_follows_settings(self):
        config = get_config()
        self.assertEqual(config.default_threshold, 12)
        self.assertFalse(config.validate_locations)
        self.assertEqual(config.critical_ratio, 0.5)


class InventoryServiceTests(TestCase):
    def setUp(self):
        Location.objects.create(name="Main WH", type=Location.Type.WAREHOUSE)
        Location.objects.create(name="Store 1", type=Location.Type.STORE)
        self.service = InventoryService(InventoryConfig())
        self.product_id = uuid.uuid4()

    def create(self, **kwargs):
        params = {"product_id": self.product_id, "stock": 10, "location": "Main WH"}
        params.update(kwargs)
        return self.service.create_inventory(**params)

    def test_create_derives_sku_flag_and_initial_movement(self):
        inventory = self.create(stock=3)

        self.assertEqual(inventory.sku, generate_sku(self.product_id))
        self.assertEqual(inventory.threshold, 5)
        self.assertTrue(inventory.is_low_stock)
        movement = inventory.movements.get()
        self.assertEqual(movement.type, InventoryMovement.Type.INITIAL)
        self.assertEqual((movement.quantity, movement.previous_stock, movement.new_stock), (3, 0, 3))

    def test_create_with_zero_stock_writes_no_movement(self):
        inventory = self.create(stock=0)
        self.assertEqual(inventory.movements.count(), 0)
        self.assertTrue(inventory.is_low_stock)

    def test_create_accepts_custom_sku(self):
        inventory = self.create(sku="CUSTOM-1")
        self.assertEqual(inventory.sku, "CUSTOM-1")

    def test_rejects_skus_that_collide_with_routes(self):
        for sku in ["bulk-sync", "A/B"]:
            with self.assertRaises(InvalidArgumentError, msg=sku):
                self.create(sku=sku)
        self.assertEqual(Inventory.objects.count(), 0)

        result = self.service.bulk_sync([{"productId": str(self.product_id), "sku": "bulk-sync", "stock": 1, "location": "Main WH"}])
        self.assertEqual(result.failed, 1)

    def test_duplicate_sku_location_is_conflict(self):
        self.create()
        with self.assertRaises(ConflictError):
            self.create(stock=99)

        self.assertEqual(Inventory.objects.count(), 1)
        self.assertEqual(Inventory.objects.get().stock, 10)

    def test_same_sku_at_other_location_is_allowed(self):
        self.create()
        self.create(location="Store 1")
        self.assertEqual(len(self.service.get_inventory_by_sku(generate_sku(self.product_id))), 2)
        self.assertEqual(len(self.service.get_inventory_by_sku(generate_sku(self.product_id), "Store 1")), 1)

    def test_unknown_location_is_not_found(self):
        with self.assertRaises(NotFoundError):
            self.create(location="Nowhere")

    def test_unknown_location_allowed_when_validation_disabled(self):
        service = InventoryService(InventoryConfig(validate_locations=False))
        inventory = service.create_inventory(product_id=self.product_id, stock=1, location="Nowhere")
        self.assertEqual(inventory.location, "Nowhere")

    def test_create_rejects_invalid_input(self):
        bad = [
            {"stock": -1},
            {"stock": True},
            {"stock": "7"},
            {"threshold": -5},
            {"sku": "S" * 21},
            {"location": ""},
            {"location": "L" * 101},
            {"product_id": "not-a-uuid"},
        ]
        for kwargs in bad:
            with self.assertRaises(InvalidArgumentError, msg=kwargs):
                self.create(**kwargs)
        self.assertEqual(Inventory.objects.count(), 0)

    def test_sku_lookup_of_unknown_sku_is_empty(self):
        self.assertEqual(self.service.get_inventory_by_sku("PFFFFFF"), [])

    def test_update_stock_increase_records_restock(self):
        inventory = self.create(stock=3)
        self.assertIsNone(inventory.last_restocked_at)

        updated = self.service.update_inventory(inventory.id, stock=12)

        self.assertEqual(updated.stock, 12)
        self.assertFalse(updated.is_low_stock)
        self.assertIsNotNone(updated.last_restocked_at)
        movement = updated.movements.filter(type=InventoryMovement.Type.ADJUSTMENT).get()
        self.assertEqual((movement.previous_stock, movement.new_stock, movement.quantity), (3, 12, 9))

    def test_update_threshold_recomputes_flag(self):
        inventory = self.create(stock=8)
        self.assertFalse(inventory.is_low_stock)

        updated = self.service.update_inventory(inventory.id, threshold=8)
        self.assertTrue(updated.is_low_stock)
        self.assertIsNone(updated.last_restocked_at)

    def test_update_merges_metadata(self):
        inventory = self.create(metadata={"bin": "A1", "supplier": "acme"})
        updated = self.service.update_inventory(inventory.id, metadata={"bin": "B2"})
        self.assertEqual(updated.metadata, {"bin": "B2", "supplier": "acme"})

    def test_update_unknown_id_is_not_found(self):
        with self.assertRaises(NotFoundError):
            self.service.update_inventory(uuid.uuid4(), stock=1)
        with self.assertRaises(NotFoundError):
            self.service.update_inventory("garbage", stock=1)

    def test_rejected_update_leaves_row_untouched(self):
        inventory = self.create(stock=10, threshold=5)
        with self.assertRaises(InvalidArgumentError):
            self.service.update_inventory(inventory.id, stock=4, threshold=-1)

        inventory.refresh_from_db()
        self.assertEqual((inventory.stock, inventory.threshold), (10, 5))

    def test_bulk_update_applies_non_stock_fields(self):
        first = self.create()
        second = self.create(location="Store 1")

        count = self.service.bulk_update_inventory([first.id, second.id], threshold=20, is_active=False)

        self.assertEqual(count, 2)
        for inventory in Inventory.objects.all():
            self.assertEqual(inventory.threshold, 20)
            self.assertFalse(inventory.is_active)
            self.assertTrue(inventory.is_low_stock)

    def test_stock_out_with_insufficient_stock_fails(self):
        inventory = self.create(stock=4)
        with self.assertRaises(InvalidArgumentError):
            self.service.adjust_stock(inventory.id, 5, InventoryMovement.Type.STOCK_OUT)
        inventory.refresh_from_db()
        self.assertEqual(inventory.stock, 4)

    def test_adjust_stock_movement_types(self):
        inventory = self.create(stock=10)

        inventory = self.service.adjust_stock(inventory.id, 6, InventoryMovement.Type.STOCK_OUT, reason="Order 17")
        self.assertEqual(inventory.stock, 4)
        self.assertTrue(inventory.is_low_stock)
        self.assertIsNone(inventory.last_restocked_at)

        inventory = self.service.adjust_stock(inventory.id, 2, InventoryMovement.Type.RETURN)
        self.assertEqual(inventory.stock, 6)
        self.assertIsNotNone(inventory.last_restocked_at)

        inventory = self.service.adjust_stock(inventory.id, -3, InventoryMovement.Type.ADJUSTMENT)
        self.assertEqual(inventory.stock, 3)

        self.assertEqual(inventory.movements.filter(reason="Order 17").count(), 1)
        self.assertEqual(inventory.movements.count(), 4)

    def test_adjustment_below_zero_is_rejected(self):
        inventory = self.create(stock=2)
        with self.assertRaises(InvalidArgumentError):
            self.service.adjust_stock(inventory.id, -3, InventoryMovement.Type.ADJUSTMENT)
        with self.assertRaises(InvalidArgumentError):
            self.service.adjust_stock(inventory.id, -1, InventoryMovement.Type.STOCK_IN)
        with self.assertRaises(InvalidArgumentError):
            self.service.adjust_stock(inventory.id, 1, InventoryMovement.Type.INITIAL)

    def test_count_stock_sets_counted_value(self):
        inventory = self.create(stock=10)
        counted = self.service.count_stock(inventory.id, 7)

        self.assertEqual(counted.stock, 7)
        self.assertIsNotNone(counted.last_counted_at)
        self.assertEqual(counted.movements.filter(reason="Physical count").count(), 1)

    def test_movement_history_is_newest_first_and_limited(self):
        inventory = self.create(stock=10)
        self.service.adjust_stock(inventory.id, 1, InventoryMovement.Type.STOCK_IN)
        self.service.adjust_stock(inventory.id, 1, InventoryMovement.Type.STOCK_IN)

        history = self.service.get_movement_history(inventory.id, limit=2)

        self.assertEqual(len(history), 2)
        self.assertGreaterEqual(history[0].created_at, history[1].created_at)
        with self.assertRaises(InvalidArgumentError):
            self.service.get_movement_history(inventory.id, limit=0)

    def test_recompute_repairs_flags_skipped_by_queryset_update(self):
        inventory = self.create(stock=10)
        Inventory.objects.filter(pk=inventory.pk).update(stock=1)

        self.assertEqual(self.service.recompute_low_stock_flags(), 1)
        inventory.refresh_from_db()
        self.assertTrue(inventory.is_low_stock)
        self.assertEqual(self.service.recompute_low_stock_flags(), 0)

    def test_filter_inventory(self):
        low = self.create(stock=1)
        self.create(stock=50, location="Store 1")

        self.assertEqual([i.id for i in self.service.filter_inventory(is_low_stock=True)], [low.id])
        self.assertEqual(len(self.service.filter_inventory(product_ids=[self.product_id])), 2)
        self.assertEqual(len(self.service.filter_inventory(locations=["Store 1"])), 1)

    def test_bulk_sync_isolates_failed_item(self):
        items = [
            {"productId": str(uuid.uuid4()), "stock": 5, "location": "Main WH"},
            {"productId": str(uuid.uuid4()), "stock": -1, "location": "Main WH"},
            {"productId": str(uuid.uuid4()), "stock": 7, "location": "Store 1"},
        ]

        result = self.service.bulk_sync(items)

        self.assertEqual((result.created, result.updated, result.failed), (2, 0, 1))
        self.assertEqual(len(result.errors), 1)
        self.assertEqual(result.errors[0].index, 1)
        self.assertEqual(result.errors[0].location, "Main WH")
        self.assertEqual(Inventory.objects.count(), 2)

    def test_bulk_sync_updates_existing_and_reports_missing_items(self):
        existing = self.create(stock=2)
        items = [
            BulkSyncItem(product_id=self.product_id, stock=30, location="Main WH"),
            None,
            {"productId": str(uuid.uuid4()), "stock": 1, "location": "Nowhere"},
        ]

        result = self.service.bulk_sync(items)

        self.assertEqual((result.created, result.updated, result.failed), (0, 1, 2))
        self.assertEqual([e.index for e in result.errors], [1, 2])
        self.assertEqual(result.errors[0].error, "Item is undefined")
        self.assertEqual(result.errors[0].sku, "unknown")
        existing.refresh_from_db()
        self.assertEqual(existing.stock, 30)
        self.assertIsNotNone(existing.last_restocked_at)

    def test_bulk_sync_respects_create_and_update_switches(self):
        existing = self.create(stock=2)
        items = [
            {"sku": existing.sku, "stock": 40, "location": "Main WH", "productId": str(self.product_id)},
            {"productId": str(uuid.uuid4()), "stock": 3, "location": "Main WH"},
        ]

        result = self.service.bulk_sync(items, create_missing=False, update_existing=False)

        self.assertEqual((result.created, result.updated, result.skipped, result.failed), (0, 0, 2, 0))
        existing.refresh_from_db()
        self.assertEqual(existing.stock, 2)
        self.assertEqual(Inventory.objects.count(), 1)

    def test_bulk_sync_result_wire_shape(self):
        result = self.service.bulk_sync([{"stock": 1, "location": "Main WH"}])
        self.assertEqual(
            result.as_dict(),
            {
                "created": 0,
                "updated": 0,
                "skipped": 0,
                "failed": 1,
                "errors": [
                    {"index": 0, "sku": "unknown", "location": "Main WH", "error": "product_id must be a UUID, got None"}
                ],
            },
        )


class AlertServiceTests(TestCase):
    def setUp(self):
        self.service = AlertService(InventoryConfig())

    def test_classification_scenarios(self):
        self.assertEqual(classify(3, 5), LOW_STOCK)
        self.assertEqual(classify(5, 5), LOW_STOCK)
        self.assertEqual(classify(2, 5), CRITICAL_LOW_STOCK)
        self.assertEqual(classify(0, 5), OUT_OF_STOCK)
        self.assertEqual(classify(6, 5), HEALTHY)
        self.assertEqual(classify(0, 0), OUT_OF_STOCK)
        self.assertEqual(classify(1, 0), HEALTHY)
        self.assertEqual(classify(3, 5, critical_ratio=0.6), CRITICAL_LOW_STOCK)

    def test_breaches_partition_active_rows(self):
        low = make_inventory(3)
        critical = make_inventory(2)
        out = make_inventory(0)
        make_inventory(9)
        make_inventory(0, is_active=False)

        breaches = self.service.check_threshold_breaches()

        self.assertEqual([i.id for i in breaches.low_stock], [low.id])
        self.assertEqual([i.id for i in breaches.critical_low_stock], [critical.id])
        self.assertEqual([i.id for i in breaches.out_of_stock], [out.id])
        ids = [i.id for i in breaches.all_items()]
        self.assertEqual(len(ids), len(set(ids)))

    def test_narrow_getters_match_buckets(self):
        for stock, threshold in [(3, 5), (2, 5), (0, 5), (1, 10), (5, 10), (10, 10), (11, 10), (0, 0)]:
            make_inventory(stock, threshold)

        breaches = self.service.check_threshold_breaches()

        def ids(items):
            return [i.id for i in items]

        self.assertEqual(ids(self.service.get_low_stock_items()), ids(breaches.low_stock))
        self.assertEqual(ids(self.service.get_critical_low_stock_items()), ids(breaches.critical_low_stock))
        self.assertEqual(ids(self.service.get_out_of_stock_items()), ids(breaches.out_of_stock))

    def test_items_not_restocked_in_days(self):
        now = timezone.now()
        stale = make_inventory(10, last_restocked_at=now - timedelta(days=10))
        make_inventory(10, last_restocked_at=now - timedelta(days=1))
        never = make_inventory(10)

        ids = {i.id for i in self.service.get_items_not_restocked_in_days(5)}

        self.assertEqual(ids, {stale.id, never.id})
        with self.assertRaises(InvalidArgumentError):
            self.service.get_items_not_restocked_in_days(-1)

    def test_items_needing_restock_sorted_by_ratio_and_stable(self):
        base = timezone.now() - timedelta(hours=1)
        half_first = make_inventory(4, 8)
        tenth = make_inventory(1, 10)
        half_second = make_inventory(3, 6)
        empty_zero_threshold = make_inventory(0, 0)
        make_inventory(20, 10)
        for offset, row in enumerate([half_first, tenth, half_second, empty_zero_threshold]):
            Inventory.objects.filter(pk=row.pk).update(created_at=base + timedelta(seconds=offset))

        items = self.service.get_items_needing_restock()

        self.assertEqual(
            [i.id for i in items],
            [empty_zero_threshold.id, tenth.id, half_first.id, half_second.id],
        )

    def test_items_needing_restock_filters(self):
        product_id = uuid.uuid4()
        critical = make_inventory(1, 10, product_id=product_id)
        make_inventory(4, 5, product_id=product_id)
        make_inventory(1, 10, location="Store 1")

        critical_only = self.service.get_items_needing_restock(product_ids=[product_id], critical_only=True)
        self.assertEqual([i.id for i in critical_only], [critical.id])
        self.assertEqual(len(self.service.get_items_needing_restock(locations=["Store 1"])), 1)

    def test_group_by_location_counts_each_item_once(self):
        make_inventory(3, location="A")
        make_inventory(2, location="A")
        make_inventory(0, location="B")
        make_inventory(0, location="A")

        grouped = self.service.group_by_location(self.service.check_threshold_breaches())

        self.assertEqual(list(grouped), ["A", "B"])
        a = grouped["A"]
        self.assertEqual((a.low_stock_count, a.critical_count, a.out_of_stock_count), (1, 1, 1))
        b = grouped["B"]
        self.assertEqual((b.low_stock_count, b.critical_count, b.out_of_stock_count), (0, 0, 1))

    def test_alert_item_round_trip(self):
        record = make_inventory(
            2,
            variant_id=uuid.uuid4(),
            metadata={"bin": "A1"},
            last_restocked_at=timezone.now() - timedelta(days=2),
        )
        item = AlertItem.from_inventory(record)

        self.assertEqual(AlertItem.from_representation(item.to_representation()), item)
        self.assertEqual(item.to_representation()["productId"], str(record.product_id))

    def test_report_critical_only_and_location(self):
        make_inventory(3, location="A")
        make_inventory(2, location="A")
        make_inventory(0, location="B")

        report = self.service.low_stock_report(critical_only=True).to_representation()
        self.assertEqual(report["lowStock"], [])
        self.assertEqual(report["summary"]["totalCriticalLowStock"], 1)
        self.assertEqual(report["summary"]["totalOutOfStock"], 1)
        self.assertNotIn("notRestockedItems", report)

        report = self.service.low_stock_report(location="B", days_without_restock=1).to_representation()
        self.assertEqual(report["summary"]["locationBreakdown"], [
            {"location": "B", "lowStockCount": 0, "criticalCount": 0, "outOfStockCount": 1},
        ])
        self.assertEqual(len(report["notRestockedItems"]), 1)

    def test_zero_days_without_restock_is_not_a_filter(self):
        make_inventory(0)

        report = self.service.low_stock_report(days_without_restock=0).to_representation()

        self.assertNotIn("notRestockedItems", report)
        self.assertEqual(report["summary"]["totalOutOfStock"], 1)

    def test_send_notifications_with_no_items_skips_dispatch(self):
        notifier = Mock()
        service = AlertService(InventoryConfig(), notifier=notifier)

        self.assertTrue(service.send_low_stock_notifications([]))
        notifier.dispatch.assert_not_called()

    def test_send_notifications_groups_by_location(self):
        make_inventory(1, location="A")
        make_inventory(0, location="B")
        make_inventory(2, location="A")
        notifier = Mock()
        notifier.dispatch.return_value = True
        service = AlertService(InventoryConfig(), notifier=notifier)

        sent = service.send_low_stock_notifications(service.check_threshold_breaches().all_items())

        self.assertTrue(sent)
        grouped, options = notifier.dispatch.call_args.args
        self.assertEqual({k: len(v) for k, v in grouped.items()}, {"A": 2, "B": 1})
        self.assertIsInstance(options, AlertNotificationOptions)

    def test_send_notifications_reports_failure(self):
        make_inventory(0)
        notifier = Mock()
        notifier.dispatch.side_effect = RuntimeError("smtp down")
        service = AlertService(InventoryConfig(), notifier=notifier)

        self.assertFalse(service.send_low_stock_notifications(service.get_out_of_stock_items()))


class InventoryApiTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.staff = User.objects.create_user(email="staff@stock.test", password="Pass123!")
        self.manager = User.objects.create_user(
            email="manager@stock.test",
            password="Pass123!",
            role=User.Role.INVENTORY_MANAGER,
            permissions=["alerts:read"],
        )
        Location.objects.create(name="Main WH")
        Location.objects.create(name="Store 1", type=Location.Type.STORE)
        self.product_id = uuid.uuid4()

    def create_payload(self, **extra):
        payload = {"productId": str(self.product_id), "stock": 3, "location": "Main WH"}
        payload.update(extra)
        return payload

    def test_create_requires_authentication(self):
        resp = self.client.post("/inventory/", self.create_payload(), format="json")
        self.assertEqual(resp.status_code, 401, resp.data)

    def test_create_and_public_lookup(self):
        self.client.force_authenticate(self.staff)
        resp = self.client.post("/inventory/", self.create_payload(), format="json")
        self.assertEqual(resp.status_code, 201, resp.data)
        self.assertTrue(resp.data["isLowStock"])
        self.assertEqual(resp.data["productId"], str(self.product_id))
        sku = resp.data["sku"]

        anonymous = APIClient()
        lookup = anonymous.get(f"/inventory/{sku}/")
        self.assertEqual(lookup.status_code, 200, lookup.data)
        self.assertEqual(len(lookup.data), 1)
        self.assertEqual(lookup.data[0]["stock"], 3)

        self.assertEqual(anonymous.get("/inventory/PFFFFFF/").data, [])

    def test_custom_sku_named_like_a_route_is_reachable(self):
        make_inventory(4, sku="restock", product_id=self.product_id)
        self.client.force_authenticate(self.staff)

        rejected = self.client.post("/inventory/", self.create_payload(sku="bulk-sync"), format="json")
        self.assertEqual(rejected.status_code, 400, rejected.data)
        self.assertEqual(rejected.data["code"], "INVALID_ARGUMENT")

        lookup = APIClient().get("/inventory/restock/")
        self.assertEqual(lookup.status_code, 200, lookup.data)
        self.assertEqual([item["sku"] for item in lookup.data], ["restock"])

        updated = self.client.put("/inventory/restock/", {"stock": 9}, format="json")
        self.assertEqual(updated.status_code, 200, updated.data)
        self.assertEqual(updated.data["items"][0]["stock"], 9)

    def test_create_error_codes(self):
        self.client.force_authenticate(self.staff)
        self.client.post("/inventory/", self.create_payload(), format="json")

        conflict = self.client.post("/inventory/", self.create_payload(), format="json")
        self.assertEqual(conflict.status_code, 409, conflict.data)
        self.assertEqual(conflict.data["code"], "CONFLICT")

        missing = self.client.post("/inventory/", self.create_payload(location="Nowhere"), format="json")
        self.assertEqual(missing.status_code, 404, missing.data)
        self.assertEqual(missing.data["code"], "NOT_FOUND")

        invalid = self.client.post("/inventory/", self.create_payload(stock=-1), format="json")
        self.assertEqual(invalid.status_code, 400, invalid.data)
        self.assertEqual(invalid.data["code"], "INVALID_ARGUMENT")
        self.assertIn("stock", invalid.data["errors"])

    def test_update_by_sku(self):
        first = make_inventory(3, product_id=self.product_id, sku="PAAAAAA")
        make_inventory(3, product_id=self.product_id, sku="PAAAAAA", location="Store 1")
        self.client.force_authenticate(self.staff)

        resp = self.client.put("/inventory/PAAAAAA/?location=Main%20WH", {"stock": 20}, format="json")

        self.assertEqual(resp.status_code, 200, resp.data)
        self.assertEqual(resp.data["updated"], 1)
        self.assertEqual(resp.data["items"][0], {
            "id": str(first.id), "sku": "PAAAAAA", "location": "Main WH", "stock": 20, "isLowStock": False,
        })

        both = self.client.put("/inventory/PAAAAAA/", {"threshold": 50}, format="json")
        self.assertEqual(both.data["updated"], 2)
        self.assertTrue(all(item["isLowStock"] for item in both.data["items"]))

        missing = self.client.put("/inventory/PBBBBBB/", {"stock": 1}, format="json")
        self.assertEqual(missing.status_code, 404, missing.data)

    def test_bulk_sync_endpoint(self):
        self.client.force_authenticate(self.staff)
        payload = {
            "items": [
                {"productId": str(uuid.uuid4()), "stock": 5, "location": "Main WH"},
                {"productId": str(uuid.uuid4()), "stock": -1, "location": "Main WH"},
                None,
            ]
        }

        resp = self.client.post("/inventory/bulk-sync/", payload, format="json")

        self.assertEqual(resp.status_code, 200, resp.data)
        self.assertEqual(resp.data["created"], 1)
        self.assertEqual(resp.data["failed"], 2)
        self.assertEqual([e["index"] for e in resp.data["errors"]], [1, 2])

    def test_adjust_count_and_movements(self):
        inventory = make_inventory(10, product_id=self.product_id)
        self.client.force_authenticate(self.staff)

        out = self.client.post(
            f"/inventory/{inventory.id}/adjust/", {"type": "STOCK_OUT", "quantity": 8}, format="json"
        )
        self.assertEqual(out.status_code, 200, out.data)
        self.assertEqual(out.data["stock"], 2)
        self.assertTrue(out.data["isLowStock"])

        too_many = self.client.post(
            f"/inventory/{inventory.id}/adjust/", {"type": "STOCK_OUT", "quantity": 8}, format="json"
        )
        self.assertEqual(too_many.status_code, 400, too_many.data)

        counted = self.client.post(f"/inventory/{inventory.id}/count/", {"countedStock": 9}, format="json")
        self.assertEqual(counted.status_code, 200, counted.data)
        self.assertIsNotNone(counted.data["lastCountedAt"])

        history = self.client.get(f"/inventory/{inventory.id}/movements/?limit=5")
        self.assertEqual(history.status_code, 200, history.data)
        self.assertEqual(len(history.data), 2)

        unknown = self.client.get(f"/inventory/{uuid.uuid4()}/movements/")
        self.assertEqual(unknown.status_code, 404, unknown.data)

    def test_locations_endpoint(self):
        self.client.force_authenticate(self.staff)
        created = self.client.post("/locations/", {"name": "Supplier X", "type": "SUPPLIER"}, format="json")
        self.assertEqual(created.status_code, 201, created.data)
        listing = self.client.get("/locations/")
        self.assertEqual([loc["name"] for loc in listing.data], ["Main WH", "Store 1", "Supplier X"])

    def test_alerts_require_alert_access(self):
        self.assertEqual(self.client.get("/alerts/low-stock/").status_code, 401)

        self.client.force_authenticate(self.staff)
        resp = self.client.get("/alerts/low-stock/")
        self.assertEqual(resp.status_code, 403, resp.data)
        self.assertEqual(
            resp.data,
            {"message": "Insufficient permissions to access alerts", "code": "INSUFFICIENT_PERMISSIONS"},
        )

    def test_low_stock_alert_report(self):
        make_inventory(3, location="Main WH")
        make_inventory(2, location="Main WH")
        make_inventory(0, location="Store 1")
        make_inventory(40, location="Store 1")
        self.client.force_authenticate(self.manager)

        resp = self.client.get("/alerts/low-stock/")
        self.assertEqual(resp.status_code, 200, resp.data)
        self.assertEqual(len(resp.data["lowStock"]), 1)
        self.assertEqual(resp.data["summary"]["totalCriticalLowStock"], 1)
        self.assertEqual(resp.data["summary"]["totalOutOfStock"], 1)
        self.assertNotIn("notRestockedItems", resp.data)

        critical = self.client.get("/alerts/low-stock/?criticalOnly=true&location=Store%201&daysWithoutRestock=7")
        self.assertEqual(critical.status_code, 200, critical.data)
        self.assertEqual(critical.data["lowStock"], [])
        self.assertEqual(critical.data["criticalLowStock"], [])
        self.assertEqual(len(critical.data["outOfStock"]), 1)
        self.assertEqual(len(critical.data["notRestockedItems"]), 2)

        negative = self.client.get("/alerts/low-stock/?daysWithoutRestock=-1")
        self.assertEqual(negative.status_code, 400, negative.data)

    def test_restock_endpoint_orders_by_ratio(self):
        half = make_inventory(5, 10)
        tenth = make_inventory(1, 10)
        self.client.force_authenticate(self.manager)

        resp = self.client.get("/alerts/restock/")

        self.assertEqual(resp.status_code, 200, resp.data)
        self.assertEqual([i["id"] for i in resp.data], [str(tenth.id), str(half.id)])

        bad = self.client.get("/alerts/restock/?productIds=nope")
        self.assertEqual(bad.status_code, 400, bad.data)

    @patch("notifications.services.requests.post")
    def test_notify_endpoint_dispatches_channels(self, mock_post):
        mock_post.return_value.raise_for_status.return_value = None
        make_inventory(0, location="Store 1")
        self.client.force_authenticate(self.manager)

        resp = self.client.post(
            "/alerts/low-stock/notify/",
            {"webhook": True, "webhookUrl": "https://hooks.example.com/stock"},
            format="json",
        )

        self.assertEqual(resp.status_code, 200, resp.data)
        self.assertEqual(resp.data, {"sent": True, "itemCount": 1, "locations": ["Store 1"]})
        self.assertEqual(mock_post.call_args.args[0], "https://hooks.example.com/stock")
        self.assertEqual(Notification.objects.filter(user=self.manager).count(), 1)
        self.assertEqual(Notification.objects.filter(user=self.staff).count(), 0)


class CheckLowStockCommandTests(TestCase):
    def test_prints_breakdown(self):
        make_inventory(3, location="Main WH")
        make_inventory(0, location="Store 1")
        out = StringIO()

        call_command("check_low_stock", stdout=out)

        output = out.getvalue()
        self.assertIn("Main WH: low=1 critical=0 out_of_stock=0", output)
        self.assertIn("Store 1: low=0 critical=0 out_of_stock=1", output)

    @patch("notifications.services.send_mail")
    def test_notify_sends_email(self, mock_send_mail):
        make_inventory(1)

        call_command("check_low_stock", "--notify", "--email", "ops@stock.test", stdout=StringIO())

        args, kwargs = mock_send_mail.call_args
        self.assertEqual(args[0], "Low Stock Alert")
        self.assertEqual(args[3], ["ops@stock.test"])
