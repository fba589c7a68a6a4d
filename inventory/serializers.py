from rest_framework import serializers

from inventory.allocation import order_fulfillment
from inventory.models import (
    BlueprintItem,
    ContainerBlueprint,
    ContainerLoadout,
    Inventory,
    LoadoutLot,
    Location,
    Part,
    TransferOrder,
    TransferOrderItem,
)


class LocationSerializer(serializers.ModelSerializer):
    class Meta:
        model = Location
        fields = ["id", "company", "name", "code", "location_type", "is_active", "created_at", "updated_at"]
        read_only_fields = fields


class PartSerializer(serializers.ModelSerializer):
    class Meta:
        model = Part
        fields = ["id", "company", "sku", "gtin", "name", "unit_of_measure", "is_active", "created_at", "updated_at"]
        read_only_fields = fields


class InventorySerializer(serializers.ModelSerializer):
    part_sku = serializers.CharField(source="part.sku", read_only=True)
    lot_number = serializers.CharField(source="lot.lot_number", read_only=True, default=None)
    expiration_date = serializers.DateField(source="lot.expiration_date", read_only=True, default=None)
    serial_number = serializers.CharField(source="serial.serial_number", read_only=True, default=None)

    class Meta:
        model = Inventory
        fields = [
            "id",
            "company",
            "part",
            "part_sku",
            "lot",
            "lot_number",
            "expiration_date",
            "serial",
            "serial_number",
            "location",
            "bin",
            "supplier",
            "quantity_on_hand",
            "quantity_available",
            "quantity_reserved",
            "quantity_on_order",
            "received_date",
            "is_active",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class BlueprintItemSerializer(serializers.ModelSerializer):
    product_name = serializers.CharField(source="product.name", read_only=True)
    part = serializers.UUIDField(source="product.part_id", read_only=True)
    required_quantity = serializers.IntegerField(read_only=True)

    class Meta:
        model = BlueprintItem
        fields = [
            "id",
            "blueprint",
            "product",
            "product_name",
            "part",
            "minimum_quantity",
            "maximum_quantity",
            "default_quantity",
            "required_quantity",
            "usage_notes",
            "created_at",
        ]
        read_only_fields = fields


class ContainerBlueprintSerializer(serializers.ModelSerializer):
    items = BlueprintItemSerializer(many=True, read_only=True)

    class Meta:
        model = ContainerBlueprint
        fields = ["id", "company", "name", "serial_number_prefix", "description", "is_active", "created_at", "updated_at", "items"]
        read_only_fields = fields


class LoadoutLotSerializer(serializers.ModelSerializer):
    class Meta:
        model = LoadoutLot
        fields = ["id", "product", "lot", "inventory", "transfer_order_item", "quantity_used", "notes", "created_at"]
        read_only_fields = fields


class ContainerLoadoutSerializer(serializers.ModelSerializer):
    full_serial = serializers.CharField(read_only=True)
    lots = LoadoutLotSerializer(many=True, read_only=True)

    class Meta:
        model = ContainerLoadout
        fields = ["id", "company", "blueprint", "location", "serial_suffix", "full_serial", "is_active", "notes", "created_by", "created_at", "lots"]
        read_only_fields = fields


class TransferOrderItemSerializer(serializers.ModelSerializer):
    part_sku = serializers.CharField(source="part.sku", read_only=True)
    lot_number = serializers.CharField(source="lot.lot_number", read_only=True, default=None)

    class Meta:
        model = TransferOrderItem
        fields = [
            "id",
            "order",
            "loadout",
            "inventory",
            "blueprint_item",
            "part",
            "part_sku",
            "lot",
            "lot_number",
            "quantity",
            "unit_of_measure",
            "serial_number",
            "expiration_date",
            "notes",
            "created_at",
        ]
        read_only_fields = fields


class TransferOrderSerializer(serializers.ModelSerializer):
    items = TransferOrderItemSerializer(many=True, read_only=True)
    fulfillment = serializers.SerializerMethodField()

    class Meta:
        model = TransferOrder
        fields = [
            "id",
            "company",
            "order_number",
            "from_location",
            "to_location",
            "status",
            "priority",
            "transfer_reason",
            "notes",
            "blueprint",
            "loadout",
            "requested_date",
            "expected_arrival_date",
            "carrier",
            "tracking_number",
            "freight_cost",
            "temperature_control_required",
            "approved_date",
            "approved_by",
            "ship_date",
            "shipped_by",
            "received_date",
            "received_by",
            "completed_date",
            "created_by",
            "created_at",
            "updated_at",
            "items",
            "fulfillment",
        ]
        read_only_fields = fields

    def get_fulfillment(self, obj):
        if not self.context.get("include_fulfillment"):
            return None
        return order_fulfillment(obj)


class TransferOrderItemInputSerializer(serializers.Serializer):
    part_id = serializers.UUIDField(required=False, allow_null=True)
    inventory_id = serializers.UUIDField(required=False, allow_null=True)
    lot_id = serializers.UUIDField(required=False, allow_null=True)
    quantity = serializers.IntegerField(min_value=1)
    unit_of_measure = serializers.CharField(max_length=16, required=False, allow_blank=True)
    serial_number = serializers.CharField(max_length=128, required=False, allow_blank=True, default="")
    expiration_date = serializers.DateField(required=False, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True, default="")

    def validate(self, attrs):
        if not attrs.get("part_id") and not attrs.get("inventory_id"):
            raise serializers.ValidationError("A part or inventory record is required.")
        return attrs


class TransferOrderCreateSerializer(serializers.Serializer):
    from_location_id = serializers.UUIDField()
    to_location_id = serializers.UUIDField()
    blueprint_id = serializers.UUIDField(required=False, allow_null=True)
    priority = serializers.ChoiceField(choices=TransferOrder.Priority.choices, required=False)
    transfer_reason = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")
    notes = serializers.CharField(required=False, allow_blank=True, default="")
    requested_date = serializers.DateField(required=False, allow_null=True)
    expected_arrival_date = serializers.DateField(required=False, allow_null=True)
    items = TransferOrderItemInputSerializer(many=True, required=False, default=list)

    def validate(self, attrs):
        if attrs["from_location_id"] == attrs["to_location_id"]:
            raise serializers.ValidationError({"to_location_id": "Source and destination locations must differ."})
        return attrs


class TransferOrderUpdateSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=TransferOrder.Status.choices, required=False)
    priority = serializers.ChoiceField(choices=TransferOrder.Priority.choices, required=False)
    transfer_reason = serializers.CharField(max_length=255, required=False, allow_blank=True)
    notes = serializers.CharField(required=False, allow_blank=True)
    requested_date = serializers.DateField(required=False, allow_null=True)
    expected_arrival_date = serializers.DateField(required=False, allow_null=True)
    carrier = serializers.CharField(max_length=128, required=False, allow_blank=True)
    tracking_number = serializers.CharField(max_length=128, required=False, allow_blank=True)
    freight_cost = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, allow_null=True)
    temperature_control_required = serializers.BooleanField(required=False)


class TransitionSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=TransferOrder.Status.choices)


class AutoAssignSerializer(serializers.Serializer):
    blueprint_item_id = serializers.UUIDField(required=False, allow_null=True)


class ManualAssignSerializer(serializers.Serializer):
    blueprint_item_id = serializers.UUIDField()
    inventory_id = serializers.UUIDField()
    quantity = serializers.IntegerField(min_value=1)
    notes = serializers.CharField(required=False, allow_blank=True)


class AssignLoadoutSerializer(serializers.Serializer):
    loadout_id = serializers.UUIDField()


class ScanSerializer(serializers.Serializer):
    raw = serializers.CharField(trim_whitespace=False, allow_blank=True)
