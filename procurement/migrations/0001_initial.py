import uuid

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("core", "0001_initial"),
        ("inventory", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Supplier",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("name", models.CharField(max_length=255)),
                ("code", models.CharField(max_length=64)),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("company", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="suppliers", to="core.company")),
            ],
            options={
                "unique_together": {("company", "code")},
                "indexes": [models.Index(fields=["company", "is_active"], name="supplier_company_active_idx")],
            },
        ),
        migrations.CreateModel(
            name="PurchaseOrder",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("po_number", models.CharField(max_length=32)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("draft", "Draft"),
                            ("approved", "Approved"),
                            ("sent_to_supplier", "Sent to supplier"),
                            ("partial", "Partially received"),
                            ("received", "Received"),
                            ("cancelled", "Cancelled"),
                        ],
                        default="draft",
                        max_length=20,
                    ),
                ),
                ("order_date", models.DateField(blank=True, null=True)),
                ("expected_date", models.DateField(blank=True, null=True)),
                ("approved_at", models.DateTimeField(blank=True, null=True)),
                ("received_at", models.DateTimeField(blank=True, null=True)),
                ("notes", models.TextField(blank=True, default="")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("company", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="purchase_orders", to="core.company")),
                (
                    "created_by",
                    models.ForeignKey(
                        blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL
                    ),
                ),
                (
                    "ship_to_location",
                    models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="+", to="inventory.location"),
                ),
                (
                    "supplier",
                    models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="purchase_orders", to="procurement.supplier"),
                ),
            ],
            options={
                "unique_together": {("company", "po_number")},
                "indexes": [
                    models.Index(fields=["company", "status", "created_at"], name="po_company_status_idx"),
                    models.Index(fields=["supplier", "status"], name="po_supplier_status_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="PurchaseOrderLine",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("line_number", models.PositiveIntegerField(default=1)),
                ("quantity_ordered", models.PositiveIntegerField()),
                ("quantity_received", models.PositiveIntegerField(default=0)),
                ("unit_cost", models.DecimalField(decimal_places=2, default=0, max_digits=12)),
                ("line_total", models.DecimalField(decimal_places=2, default=0, max_digits=12)),
                ("expected_date", models.DateField(blank=True, null=True)),
                ("notes", models.TextField(blank=True, default="")),
                ("part", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="+", to="inventory.part")),
                (
                    "purchase_order",
                    models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="lines", to="procurement.purchaseorder"),
                ),
            ],
            options={
                "ordering": ["line_number"],
                "indexes": [models.Index(fields=["purchase_order", "part"], name="po_line_po_part_idx")],
            },
        ),
        migrations.CreateModel(
            name="Receiving",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("po_number", models.CharField(blank=True, default="", max_length=32)),
                ("reference_number", models.CharField(blank=True, default="", max_length=64)),
                (
                    "status",
                    models.CharField(choices=[("pending", "Pending"), ("completed", "Completed")], default="pending", max_length=16),
                ),
                ("notes", models.TextField(blank=True, default="")),
                ("received_at", models.DateTimeField(blank=True, null=True)),
                ("completed_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("company", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="receivings", to="core.company")),
                ("location", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="receivings", to="inventory.location")),
                (
                    "purchase_order",
                    models.ForeignKey(
                        blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="receivings", to="procurement.purchaseorder"
                    ),
                ),
                (
                    "received_by",
                    models.ForeignKey(
                        blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL
                    ),
                ),
                (
                    "supplier",
                    models.ForeignKey(
                        blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="receivings", to="procurement.supplier"
                    ),
                ),
            ],
            options={
                "indexes": [models.Index(fields=["company", "status", "created_at"], name="receiving_company_status_idx")],
            },
        ),
        migrations.CreateModel(
            name="ReceivingItem",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("lot_number", models.CharField(blank=True, default="", max_length=64)),
                ("serial_number", models.CharField(blank=True, default="", max_length=128)),
                ("quantity_received", models.PositiveIntegerField()),
                ("expiration_date", models.DateField(blank=True, null=True)),
                ("gtin", models.CharField(blank=True, default="", max_length=14)),
                ("scanned_data", models.TextField(blank=True, default="")),
                ("notes", models.TextField(blank=True, default="")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "location",
                    models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="+", to="inventory.location"),
                ),
                (
                    "lot",
                    models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to="inventory.lot"),
                ),
                ("part", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="+", to="inventory.part")),
                (
                    "purchase_order_line",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="receiving_items",
                        to="procurement.purchaseorderline",
                    ),
                ),
                ("receiving", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="items", to="procurement.receiving")),
                (
                    "serial",
                    models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to="inventory.serial"),
                ),
                (
                    "supplier",
                    models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to="procurement.supplier"),
                ),
            ],
            options={
                "indexes": [models.Index(fields=["receiving", "created_at"], name="receiving_item_created_idx")],
            },
        ),
    ]
