import uuid

from django.conf import settings
from django.db import models
from django.db.models import Q

from core.models import Company


class Location(models.Model):
    class LocationType(models.TextChoices):
        WAREHOUSE = "warehouse", "Warehouse"
        VEHICLE = "vehicle", "Vehicle"
        SITE = "site", "Site"
        OTHER = "other", "Other"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    company = models.ForeignKey(Company, on_delete=models.PROTECT, related_name="locations")
    name = models.CharField(max_length=255)
    code = models.CharField(max_length=32)
    location_type = models.CharField(max_length=16, choices=LocationType, default=LocationType.WAREHOUSE)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        unique_together = ("company", "code")
        indexes = [models.Index(fields=["company", "is_active"], name="location_company_active_idx")]

    def __str__(self):
        return self.name


class Bin(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    company = models.ForeignKey(Company, on_delete=models.PROTECT)
    location = models.ForeignKey(Location, on_delete=models.CASCADE, related_name="bins")
    code = models.CharField(max_length=32)
    is_active = models.BooleanField(default=True)

    class Meta:
        unique_together = ("location", "code")


class Part(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    company = models.ForeignKey(Company, on_delete=models.PROTECT, related_name="parts")
    sku = models.CharField(max_length=64)
    gtin = models.CharField(max_length=14, null=True, blank=True)
    name = models.CharField(max_length=255)
    unit_of_measure = models.CharField(max_length=16, blank=True, default="")
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        unique_together = ("company", "sku")
        indexes = [
            models.Index(fields=["company", "gtin"], name="part_company_gtin_idx"),
            models.Index(fields=["company", "is_active"], name="part_company_active_idx"),
        ]

    def __str__(self):
        return self.sku


class Product(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    company = models.ForeignKey(Company, on_delete=models.PROTECT, related_name="products")
    part = models.ForeignKey(Part, on_delete=models.PROTECT, null=True, blank=True, related_name="products")
    name = models.CharField(max_length=255)
    sku = models.CharField(max_length=64, blank=True, default="")
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [models.Index(fields=["company", "is_active"], name="product_company_active_idx")]

    def __str__(self):
        return self.name


class ContainerBlueprint(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    company = models.ForeignKey(Company, on_delete=models.PROTECT, related_name="blueprints")
    name = models.CharField(max_length=255)
    serial_number_prefix = models.CharField(max_length=32, blank=True, default="")
    description = models.TextField(blank=True, default="")
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        unique_together = ("company", "name")

    def __str__(self):
        return self.name


class BlueprintItem(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    blueprint = models.ForeignKey(ContainerBlueprint, on_delete=models.CASCADE, related_name="items")
    product = models.ForeignKey(Product, on_delete=models.PROTECT, related_name="blueprint_items")
    minimum_quantity = models.PositiveIntegerField(null=True, blank=True)
    maximum_quantity = models.PositiveIntegerField(null=True, blank=True)
    default_quantity = models.PositiveIntegerField(null=True, blank=True)
    usage_notes = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        unique_together = ("blueprint", "product")

    @property
    def required_quantity(self):
        if self.default_quantity is not None:
            return self.default_quantity
        if self.minimum_quantity is not None:
            return self.minimum_quantity
        return 1


class ContainerLoadout(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    company = models.ForeignKey(Company, on_delete=models.PROTECT, related_name="loadouts")
    blueprint = models.ForeignKey(ContainerBlueprint, on_delete=models.PROTECT, related_name="loadouts")
    location = models.ForeignKey(Location, on_delete=models.PROTECT, related_name="loadouts")
    serial_suffix = models.CharField(max_length=16)
    is_active = models.BooleanField(default=True)
    notes = models.TextField(blank=True, default="")
    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="+")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=["company", "blueprint", "location", "is_active"], name="loadout_lookup_idx"),
            models.Index(fields=["company", "created_at"], name="loadout_company_created_idx"),
        ]

    @property
    def full_serial(self):
        return f"{self.blueprint.serial_number_prefix}{self.serial_suffix}"


class Lot(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    company = models.ForeignKey(Company, on_delete=models.PROTECT, related_name="lots")
    part = models.ForeignKey(Part, on_delete=models.PROTECT, related_name="lots")
    lot_number = models.CharField(max_length=64)
    expiration_date = models.DateField(null=True, blank=True)
    received_date = models.DateField(null=True, blank=True)
    supplier = models.ForeignKey("procurement.Supplier", on_delete=models.SET_NULL, null=True, blank=True, related_name="lots")
    location = models.ForeignKey(Location, on_delete=models.SET_NULL, null=True, blank=True, related_name="+")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["company", "part", "lot_number"], name="uniq_lot_company_part_number"),
        ]

    def __str__(self):
        return self.lot_number


class Serial(models.Model):
    class Status(models.TextChoices):
        IN_STOCK = "in_stock", "In stock"
        RESERVED = "reserved", "Reserved"
        SHIPPED = "shipped", "Shipped"
        CONSUMED = "consumed", "Consumed"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    company = models.ForeignKey(Company, on_delete=models.PROTECT, related_name="serials")
    part = models.ForeignKey(Part, on_delete=models.PROTECT, related_name="serials")
    lot = models.ForeignKey(Lot, on_delete=models.SET_NULL, null=True, blank=True, related_name="serials")
    location = models.ForeignKey(Location, on_delete=models.SET_NULL, null=True, blank=True, related_name="+")
    serial_number = models.CharField(max_length=128)
    status = models.CharField(max_length=16, choices=Status, default=Status.IN_STOCK)
    received_date = models.DateField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["company", "part", "serial_number"], name="uniq_serial_company_part_number"),
        ]


class Inventory(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    company = models.ForeignKey(Company, on_delete=models.PROTECT, related_name="inventory_rows")
    part = models.ForeignKey(Part, on_delete=models.PROTECT, related_name="inventory_rows")
    lot = models.ForeignKey(Lot, on_delete=models.PROTECT, null=True, blank=True, related_name="inventory_rows")
    serial = models.ForeignKey(Serial, on_delete=models.PROTECT, null=True, blank=True, related_name="inventory_rows")
    location = models.ForeignKey(Location, on_delete=models.PROTECT, related_name="inventory_rows")
    bin = models.ForeignKey(Bin, on_delete=models.SET_NULL, null=True, blank=True, related_name="inventory_rows")
    supplier = models.ForeignKey("procurement.Supplier", on_delete=models.SET_NULL, null=True, blank=True, related_name="+")
    quantity_on_hand = models.IntegerField(default=0)
    quantity_available = models.IntegerField(default=0)
    quantity_reserved = models.IntegerField(default=0)
    quantity_on_order = models.IntegerField(default=0)
    received_date = models.DateField(null=True, blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name_plural = "inventory"
        indexes = [
            models.Index(fields=["company", "location", "part"], name="inventory_location_part_idx"),
            models.Index(fields=["company", "part", "lot"], name="inventory_part_lot_idx"),
        ]
        constraints = [
            models.CheckConstraint(condition=Q(quantity_available__gte=0), name="inventory_available_non_negative"),
            models.CheckConstraint(condition=Q(quantity_reserved__gte=0), name="inventory_reserved_non_negative"),
        ]


class InventoryMovement(models.Model):
    class MovementType(models.TextChoices):
        RESERVE = "reserve", "Reserve"
        RELEASE = "release", "Release"
        SHIP = "ship", "Ship"
        RECEIVE = "receive", "Transfer receive"
        RECEIPT = "receipt", "Goods receipt"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    company = models.ForeignKey(Company, on_delete=models.PROTECT)
    inventory = models.ForeignKey(Inventory, on_delete=models.PROTECT, related_name="movements")
    part = models.ForeignKey(Part, on_delete=models.PROTECT, related_name="+")
    lot = models.ForeignKey(Lot, on_delete=models.SET_NULL, null=True, blank=True, related_name="+")
    movement_type = models.CharField(max_length=16, choices=MovementType)
    quantity = models.IntegerField()
    from_location = models.ForeignKey(Location, on_delete=models.SET_NULL, null=True, blank=True, related_name="+")
    to_location = models.ForeignKey(Location, on_delete=models.SET_NULL, null=True, blank=True, related_name="+")
    transfer_order = models.ForeignKey("TransferOrder", on_delete=models.SET_NULL, null=True, blank=True, related_name="movements")
    receiving_item = models.ForeignKey("procurement.ReceivingItem", on_delete=models.SET_NULL, null=True, blank=True, related_name="movements")
    reference = models.CharField(max_length=64, blank=True, default="")
    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="+")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=["company", "created_at"], name="movement_company_created_idx"),
            models.Index(fields=["inventory", "created_at"], name="movement_inventory_created_idx"),
        ]


class TransferOrder(models.Model):
    class Status(models.TextChoices):
        PENDING = "Pending", "Pending"
        APPROVED = "Approved", "Approved"
        SHIPPED = "Shipped", "Shipped"
        RECEIVED = "Received", "Received"
        COMPLETED = "Completed", "Completed"

    class Priority(models.TextChoices):
        LOW = "Low", "Low"
        MEDIUM = "Medium", "Medium"
        HIGH = "High", "High"
        URGENT = "Urgent", "Urgent"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    company = models.ForeignKey(Company, on_delete=models.PROTECT, related_name="transfer_orders")
    order_number = models.CharField(max_length=32)
    from_location = models.ForeignKey(Location, on_delete=models.PROTECT, related_name="outgoing_transfer_orders")
    to_location = models.ForeignKey(Location, on_delete=models.PROTECT, related_name="incoming_transfer_orders")
    status = models.CharField(max_length=16, choices=Status, default=Status.PENDING)
    priority = models.CharField(max_length=16, choices=Priority, default=Priority.MEDIUM)
    transfer_reason = models.CharField(max_length=255, blank=True, default="")
    notes = models.TextField(blank=True, default="")
    blueprint = models.ForeignKey(ContainerBlueprint, on_delete=models.PROTECT, null=True, blank=True, related_name="transfer_orders")
    loadout = models.ForeignKey(ContainerLoadout, on_delete=models.PROTECT, null=True, blank=True, related_name="transfer_orders")
    requested_date = models.DateField(null=True, blank=True)
    expected_arrival_date = models.DateField(null=True, blank=True)
    carrier = models.CharField(max_length=128, blank=True, default="")
    tracking_number = models.CharField(max_length=128, blank=True, default="")
    freight_cost = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    temperature_control_required = models.BooleanField(default=False)
    approved_date = models.DateTimeField(null=True, blank=True)
    approved_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, null=True, blank=True, related_name="+")
    ship_date = models.DateTimeField(null=True, blank=True)
    shipped_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, null=True, blank=True, related_name="+")
    received_date = models.DateTimeField(null=True, blank=True)
    received_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, null=True, blank=True, related_name="+")
    completed_date = models.DateTimeField(null=True, blank=True)
    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="+")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        unique_together = ("company", "order_number")
        indexes = [
            models.Index(fields=["company", "status", "created_at"], name="transfer_company_status_idx"),
            models.Index(fields=["from_location", "to_location"], name="transfer_locations_idx"),
        ]
        constraints = [
            models.CheckConstraint(condition=~Q(from_location=models.F("to_location")), name="transfer_locations_differ"),
        ]

    def __str__(self):
        return self.order_number


class TransferOrderItem(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    order = models.ForeignKey(TransferOrder, on_delete=models.CASCADE, related_name="items")
    loadout = models.ForeignKey(ContainerLoadout, on_delete=models.SET_NULL, null=True, blank=True, related_name="+")
    inventory = models.ForeignKey(Inventory, on_delete=models.PROTECT, null=True, blank=True, related_name="transfer_order_items")
    blueprint_item = models.ForeignKey(BlueprintItem, on_delete=models.SET_NULL, null=True, blank=True, related_name="+")
    part = models.ForeignKey(Part, on_delete=models.PROTECT, related_name="+")
    lot = models.ForeignKey(Lot, on_delete=models.PROTECT, null=True, blank=True, related_name="+")
    quantity = models.PositiveIntegerField()
    unit_of_measure = models.CharField(max_length=16, default="EA")
    serial_number = models.CharField(max_length=128, blank=True, default="")
    expiration_date = models.DateField(null=True, blank=True)
    notes = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=["order", "part"], name="transfer_item_order_part_idx"),
        ]


class LoadoutLot(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    loadout = models.ForeignKey(ContainerLoadout, on_delete=models.CASCADE, related_name="lots")
    product = models.ForeignKey(Product, on_delete=models.PROTECT, null=True, blank=True, related_name="+")
    lot = models.ForeignKey(Lot, on_delete=models.PROTECT, null=True, blank=True, related_name="+")
    inventory = models.ForeignKey(Inventory, on_delete=models.PROTECT, null=True, blank=True, related_name="+")
    transfer_order_item = models.ForeignKey(TransferOrderItem, on_delete=models.SET_NULL, null=True, blank=True, related_name="loadout_usages")
    quantity_used = models.PositiveIntegerField()
    notes = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)
