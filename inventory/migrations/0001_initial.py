from django.db import migrations, models
import django.db.models.deletion
import uuid


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Location",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("name", models.CharField(max_length=100, unique=True)),
                ("type", models.CharField(choices=[("WAREHOUSE", "Warehouse"), ("STORE", "Store"), ("SUPPLIER", "Supplier")], default="WAREHOUSE", max_length=20)),
                ("contact", models.JSONField(blank=True, null=True)),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
            ],
            options={"ordering": ["name"]},
        ),
        migrations.CreateModel(
            name="Inventory",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("product_id", models.UUIDField()),
                ("variant_id", models.UUIDField(blank=True, null=True)),
                ("sku", models.CharField(max_length=20)),
                ("stock", models.PositiveIntegerField(default=0)),
                ("location", models.CharField(max_length=100)),
                ("threshold", models.PositiveIntegerField(default=5)),
                ("is_low_stock", models.BooleanField(default=False)),
                ("is_active", models.BooleanField(default=True)),
                ("metadata", models.JSONField(blank=True, default=dict)),
                ("last_restocked_at", models.DateTimeField(blank=True, null=True)),
                ("last_counted_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "db_table": "inventory",
                "verbose_name_plural": "Inventory",
            },
        ),
        migrations.CreateModel(
            name="InventoryMovement",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("type", models.CharField(choices=[("INITIAL", "Initial"), ("STOCK_IN", "Stock In"), ("STOCK_OUT", "Stock Out"), ("ADJUSTMENT", "Adjustment"), ("RETURN", "Return")], max_length=20)),
                ("quantity", models.PositiveIntegerField()),
                ("previous_stock", models.PositiveIntegerField()),
                ("new_stock", models.PositiveIntegerField()),
                ("reason", models.CharField(blank=True, max_length=255)),
                ("metadata", models.JSONField(blank=True, default=dict)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("inventory", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="movements", to="inventory.inventory")),
            ],
            options={"ordering": ["-created_at"]},
        ),
        migrations.AddConstraint(
            model_name="inventory",
            constraint=models.UniqueConstraint(fields=("sku", "location"), name="inventory_sku_location_uniq"),
        ),
        migrations.AddIndex(
            model_name="inventory",
            index=models.Index(fields=["product_id"], name="inventory_product_idx"),
        ),
        migrations.AddIndex(
            model_name="inventory",
            index=models.Index(fields=["variant_id"], name="inventory_variant_idx"),
        ),
        migrations.AddIndex(
            model_name="inventory",
            index=models.Index(fields=["sku"], name="inventory_sku_idx"),
        ),
        migrations.AddIndex(
            model_name="inventory",
            index=models.Index(fields=["is_active", "is_low_stock"], name="inventory_active_low_idx"),
        ),
        migrations.AddIndex(
            model_name="inventorymovement",
            index=models.Index(fields=["inventory", "created_at"], name="inventory_movement_inv_idx"),
        ),
    ]
