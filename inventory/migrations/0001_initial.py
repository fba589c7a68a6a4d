import uuid

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("core", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Location",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("name", models.CharField(max_length=255)),
                ("code", models.CharField(max_length=32)),
                (
                    "location_type",
                    models.CharField(
                        choices=[("warehouse", "Warehouse"), ("vehicle", "Vehicle"), ("site", "Site"), ("other", "Other")],
                        default="warehouse",
                        max_length=16,
                    ),
                ),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("company", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="locations", to="core.company")),
            ],
            options={
                "unique_together": {("company", "code")},
                "indexes": [models.Index(fields=["company", "is_active"], name="location_company_active_idx")],
            },
        ),
        migrations.CreateModel(
            name="Bin",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("code", models.CharField(max_length=32)),
                ("is_active", models.BooleanField(default=True)),
                ("company", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, to="core.company")),
                ("location", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="bins", to="inventory.location")),
            ],
            options={
                "unique_together": {("location", "code")},
            },
        ),
        migrations.CreateModel(
            name="Part",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("sku", models.CharField(max_length=64)),
                ("gtin", models.CharField(blank=True, max_length=14, null=True)),
                ("name", models.CharField(max_length=255)),
                ("unit_of_measure", models.CharField(blank=True, default="", max_length=16)),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("company", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="parts", to="core.company")),
            ],
            options={
                "unique_together": {("company", "sku")},
                "indexes": [
                    models.Index(fields=["company", "gtin"], name="part_company_gtin_idx"),
                    models.Index(fields=["company", "is_active"], name="part_company_active_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Product",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("name", models.CharField(max_length=255)),
                ("sku", models.CharField(blank=True, default="", max_length=64)),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("company", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="products", to="core.company")),
                (
                    "part",
                    models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="products", to="inventory.part"),
                ),
            ],
            options={
                "indexes": [models.Index(fields=["company", "is_active"], name="product_company_active_idx")],
            },
        ),
        migrations.CreateModel(
            name="ContainerBlueprint",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("name", models.CharField(max_length=255)),
                ("serial_number_prefix", models.CharField(blank=True, default="", max_length=32)),
                ("description", models.TextField(blank=True, default="")),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("company", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="blueprints", to="core.company")),
            ],
            options={
                "unique_together": {("company", "name")},
            },
        ),
        migrations.CreateModel(
            name="BlueprintItem",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("minimum_quantity", models.PositiveIntegerField(blank=True, null=True)),
                ("maximum_quantity", models.PositiveIntegerField(blank=True, null=True)),
                ("default_quantity", models.PositiveIntegerField(blank=True, null=True)),
                ("usage_notes", models.TextField(blank=True, default="")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "blueprint",
                    models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="items", to="inventory.containerblueprint"),
                ),
                (
                    "product",
                    models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="blueprint_items", to="inventory.product"),
                ),
            ],
            options={
                "unique_together": {("blueprint", "product")},
            },
        ),
        migrations.CreateModel(
            name="ContainerLoadout",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("serial_suffix", models.CharField(max_length=16)),
                ("is_active", models.BooleanField(default=True)),
                ("notes", models.TextField(blank=True, default="")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "blueprint",
                    models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="loadouts", to="inventory.containerblueprint"),
                ),
                ("company", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="loadouts", to="core.company")),
                (
                    "created_by",
                    models.ForeignKey(
                        blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL
                    ),
                ),
                ("location", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="loadouts", to="inventory.location")),
            ],
            options={
                "indexes": [
                    models.Index(fields=["company", "blueprint", "location", "is_active"], name="loadout_lookup_idx"),
                    models.Index(fields=["company", "created_at"], name="loadout_company_created_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Lot",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("lot_number", models.CharField(max_length=64)),
                ("expiration_date", models.DateField(blank=True, null=True)),
                ("received_date", models.DateField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("company", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="lots", to="core.company")),
                (
                    "location",
                    models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to="inventory.location"),
                ),
                ("part", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="lots", to="inventory.part")),
            ],
            options={
                "constraints": [
                    models.UniqueConstraint(fields=("company", "part", "lot_number"), name="uniq_lot_company_part_number"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Serial",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("serial_number", models.CharField(max_length=128)),
                (
                    "status",
                    models.CharField(
                        choices=[("in_stock", "In stock"), ("reserved", "Reserved"), ("shipped", "Shipped"), ("consumed", "Consumed")],
                        default="in_stock",
                        max_length=16,
                    ),
                ),
                ("received_date", models.DateField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("company", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="serials", to="core.company")),
                (
                    "location",
                    models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to="inventory.location"),
                ),
                (
                    "lot",
                    models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="serials", to="inventory.lot"),
                ),
                ("part", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="serials", to="inventory.part")),
            ],
            options={
                "constraints": [
                    models.UniqueConstraint(fields=("company", "part", "serial_number"), name="uniq_serial_company_part_number"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Inventory",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("quantity_on_hand", models.IntegerField(default=0)),
                ("quantity_available", models.IntegerField(default=0)),
                ("quantity_reserved", models.IntegerField(default=0)),
                ("quantity_on_order", models.IntegerField(default=0)),
                ("received_date", models.DateField(blank=True, null=True)),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "bin",
                    models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="inventory_rows", to="inventory.bin"),
                ),
                ("company", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="inventory_rows", to="core.company")),
                ("location", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="inventory_rows", to="inventory.location")),
                (
                    "lot",
                    models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="inventory_rows", to="inventory.lot"),
                ),
                ("part", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="inventory_rows", to="inventory.part")),
                (
                    "serial",
                    models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="inventory_rows", to="inventory.serial"),
                ),
            ],
            options={
                "verbose_name_plural": "inventory",
                "indexes": [
                    models.Index(fields=["company", "location", "part"], name="inventory_location_part_idx"),
                    models.Index(fields=["company", "part", "lot"], name="inventory_part_lot_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(("quantity_available__gte", 0)), name="inventory_available_non_negative"),
                    models.CheckConstraint(condition=models.Q(("quantity_reserved__gte", 0)), name="inventory_reserved_non_negative"),
                ],
            },
        ),
        migrations.CreateModel(
            name="TransferOrder",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("order_number", models.CharField(max_length=32)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("Pending", "Pending"),
                            ("Approved", "Approved"),
                            ("Shipped", "Shipped"),
                            ("Received", "Received"),
                            ("Completed", "Completed"),
                        ],
                        default="Pending",
                        max_length=16,
                    ),
                ),
                (
                    "priority",
                    models.CharField(
                        choices=[("Low", "Low"), ("Medium", "Medium"), ("High", "High"), ("Urgent", "Urgent")],
                        default="Medium",
                        max_length=16,
                    ),
                ),
                ("transfer_reason", models.CharField(blank=True, default="", max_length=255)),
                ("notes", models.TextField(blank=True, default="")),
                ("requested_date", models.DateField(blank=True, null=True)),
                ("expected_arrival_date", models.DateField(blank=True, null=True)),
                ("carrier", models.CharField(blank=True, default="", max_length=128)),
                ("tracking_number", models.CharField(blank=True, default="", max_length=128)),
                ("freight_cost", models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ("temperature_control_required", models.BooleanField(default=False)),
                ("approved_date", models.DateTimeField(blank=True, null=True)),
                ("ship_date", models.DateTimeField(blank=True, null=True)),
                ("received_date", models.DateTimeField(blank=True, null=True)),
                ("completed_date", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "approved_by",
                    models.ForeignKey(
                        blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="+", to=settings.AUTH_USER_MODEL
                    ),
                ),
                (
                    "blueprint",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="transfer_orders",
                        to="inventory.containerblueprint",
                    ),
                ),
                ("company", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="transfer_orders", to="core.company")),
                (
                    "created_by",
                    models.ForeignKey(
                        blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL
                    ),
                ),
                (
                    "from_location",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT, related_name="outgoing_transfer_orders", to="inventory.location"
                    ),
                ),
                (
                    "loadout",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="transfer_orders",
                        to="inventory.containerloadout",
                    ),
                ),
                (
                    "received_by",
                    models.ForeignKey(
                        blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="+", to=settings.AUTH_USER_MODEL
                    ),
                ),
                (
                    "shipped_by",
                    models.ForeignKey(
                        blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="+", to=settings.AUTH_USER_MODEL
                    ),
                ),
                (
                    "to_location",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT, related_name="incoming_transfer_orders", to="inventory.location"
                    ),
                ),
            ],
            options={
                "unique_together": {("company", "order_number")},
                "indexes": [
                    models.Index(fields=["company", "status", "created_at"], name="transfer_company_status_idx"),
                    models.Index(fields=["from_location", "to_location"], name="transfer_locations_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("from_location", models.F("to_location")), _negated=True),
                        name="transfer_locations_differ",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="TransferOrderItem",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("quantity", models.PositiveIntegerField()),
                ("unit_of_measure", models.CharField(default="EA", max_length=16)),
                ("serial_number", models.CharField(blank=True, default="", max_length=128)),
                ("expiration_date", models.DateField(blank=True, null=True)),
                ("notes", models.TextField(blank=True, default="")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "blueprint_item",
                    models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to="inventory.blueprintitem"),
                ),
                (
                    "inventory",
                    models.ForeignKey(
                        blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="transfer_order_items", to="inventory.inventory"
                    ),
                ),
                (
                    "loadout",
                    models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to="inventory.containerloadout"),
                ),
                (
                    "lot",
                    models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="+", to="inventory.lot"),
                ),
                ("order", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="items", to="inventory.transferorder")),
                ("part", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="+", to="inventory.part")),
            ],
            options={
                "indexes": [models.Index(fields=["order", "part"], name="transfer_item_order_part_idx")],
            },
        ),
        migrations.CreateModel(
            name="LoadoutLot",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("quantity_used", models.PositiveIntegerField()),
                ("notes", models.TextField(blank=True, default="")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "inventory",
                    models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="+", to="inventory.inventory"),
                ),
                ("loadout", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="lots", to="inventory.containerloadout")),
                (
                    "lot",
                    models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="+", to="inventory.lot"),
                ),
                (
                    "product",
                    models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="+", to="inventory.product"),
                ),
                (
                    "transfer_order_item",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="loadout_usages",
                        to="inventory.transferorderitem",
                    ),
                ),
            ],
        ),
        migrations.CreateModel(
            name="InventoryMovement",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                (
                    "movement_type",
                    models.CharField(
                        choices=[
                            ("reserve", "Reserve"),
                            ("release", "Release"),
                            ("ship", "Ship"),
                            ("receive", "Transfer receive"),
                            ("receipt", "Goods receipt"),
                        ],
                        max_length=16,
                    ),
                ),
                ("quantity", models.IntegerField()),
                ("reference", models.CharField(blank=True, default="", max_length=64)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("company", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, to="core.company")),
                (
                    "created_by",
                    models.ForeignKey(
                        blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL
                    ),
                ),
                (
                    "from_location",
                    models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to="inventory.location"),
                ),
                ("inventory", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="movements", to="inventory.inventory")),
                (
                    "lot",
                    models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to="inventory.lot"),
                ),
                ("part", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="+", to="inventory.part")),
                (
                    "to_location",
                    models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to="inventory.location"),
                ),
                (
                    "transfer_order",
                    models.ForeignKey(
                        blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="movements", to="inventory.transferorder"
                    ),
                ),
            ],
            options={
                "indexes": [
                    models.Index(fields=["company", "created_at"], name="movement_company_created_idx"),
                    models.Index(fields=["inventory", "created_at"], name="movement_inventory_created_idx"),
                ],
            },
        ),
    ]
