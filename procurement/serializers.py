from rest_framework import serializers

from procurement.models import PurchaseOrder, PurchaseOrderLine, Receiving, ReceivingItem, Supplier


class SupplierSerializer(serializers.ModelSerializer):
    class Meta:
        model = Supplier
        fields = ["id", "company", "name", "code", "is_active", "created_at", "updated_at"]
        read_only_fields = fields


class PurchaseOrderLineSerializer(serializers.ModelSerializer):
    part_sku = serializers.CharField(source="part.sku", read_only=True)
    quantity_outstanding = serializers.SerializerMethodField()

    class Meta:
        model = PurchaseOrderLine
        fields = [
            "id",
            "purchase_order",
            "line_number",
            "part",
            "part_sku",
            "quantity_ordered",
            "quantity_received",
            "quantity_outstanding",
            "unit_cost",
            "line_total",
            "expected_date",
            "notes",
        ]
        read_only_fields = fields

    def get_quantity_outstanding(self, obj):
        return max(obj.quantity_ordered - obj.quantity_received, 0)


class PurchaseOrderSerializer(serializers.ModelSerializer):
    lines = PurchaseOrderLineSerializer(many=True, read_only=True)
    supplier_name = serializers.CharField(source="supplier.name", read_only=True)

    class Meta:
        model = PurchaseOrder
        fields = [
            "id",
            "company",
            "supplier",
            "supplier_name",
            "po_number",
            "status",
            "order_date",
            "expected_date",
            "ship_to_location",
            "approved_at",
            "received_at",
            "notes",
            "created_by",
            "created_at",
            "updated_at",
            "lines",
        ]
        read_only_fields = fields


class PurchaseOrderLineInputSerializer(serializers.Serializer):
    part_id = serializers.UUIDField()
    quantity_ordered = serializers.IntegerField(min_value=1)
    unit_cost = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, default=0)
    expected_date = serializers.DateField(required=False, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class PurchaseOrderCreateSerializer(serializers.Serializer):
    supplier_id = serializers.UUIDField()
    status = serializers.ChoiceField(
        choices=[PurchaseOrder.Status.DRAFT, PurchaseOrder.Status.APPROVED, PurchaseOrder.Status.SENT_TO_SUPPLIER],
        required=False,
    )
    ship_to_location_id = serializers.UUIDField(required=False, allow_null=True)
    order_date = serializers.DateField(required=False, allow_null=True)
    expected_date = serializers.DateField(required=False, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True, default="")
    lines = PurchaseOrderLineInputSerializer(many=True, allow_empty=False)


class PurchaseOrderLineUpdateSerializer(serializers.Serializer):
    quantity_ordered = serializers.IntegerField(min_value=1, required=False)
    quantity_received = serializers.IntegerField(min_value=0, required=False)
    unit_cost = serializers.DecimalField(max_digits=12, decimal_places=2, required=False)
    expected_date = serializers.DateField(required=False, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True)


class ReceivingItemSerializer(serializers.ModelSerializer):
    part_sku = serializers.CharField(source="part.sku", read_only=True)

    class Meta:
        model = ReceivingItem
        fields = [
            "id",
            "receiving",
            "part",
            "part_sku",
            "supplier",
            "purchase_order_line",
            "lot",
            "serial",
            "location",
            "lot_number",
            "serial_number",
            "quantity_received",
            "expiration_date",
            "gtin",
            "scanned_data",
            "notes",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class ReceivingSerializer(serializers.ModelSerializer):
    items = ReceivingItemSerializer(many=True, read_only=True)

    class Meta:
        model = Receiving
        fields = [
            "id",
            "company",
            "supplier",
            "purchase_order",
            "po_number",
            "reference_number",
            "location",
            "status",
            "notes",
            "received_by",
            "received_at",
            "completed_at",
            "created_at",
            "updated_at",
            "items",
        ]
        read_only_fields = fields


class ReceivingCreateSerializer(serializers.Serializer):
    location_id = serializers.UUIDField()
    purchase_order_id = serializers.UUIDField(required=False, allow_null=True)
    supplier_id = serializers.UUIDField(required=False, allow_null=True)
    reference_number = serializers.CharField(max_length=64, required=False, allow_blank=True, default="")
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class ReceivingItemInputSerializer(serializers.Serializer):
    part_id = serializers.UUIDField()
    quantity_received = serializers.IntegerField(min_value=1)
    purchase_order_line_id = serializers.UUIDField(required=False, allow_null=True)
    lot_number = serializers.CharField(max_length=64, required=False, allow_blank=True, default="")
    serial_number = serializers.CharField(max_length=128, required=False, allow_blank=True, default="")
    expiration_date = serializers.DateField(required=False, allow_null=True)
    location_id = serializers.UUIDField(required=False, allow_null=True)
    gtin = serializers.CharField(max_length=14, required=False, allow_blank=True, default="")
    scanned_data = serializers.CharField(required=False, allow_blank=True, default="")
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class ReceivingItemUpdateSerializer(serializers.Serializer):
    quantity_received = serializers.IntegerField(min_value=1, required=False)
    lot_number = serializers.CharField(max_length=64, required=False, allow_blank=True)
    serial_number = serializers.CharField(max_length=128, required=False, allow_blank=True)
    expiration_date = serializers.DateField(required=False, allow_null=True)
    location_id = serializers.UUIDField(required=False, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True)
