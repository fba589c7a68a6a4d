import logging
from dataclasses import dataclass

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
from django.db import transaction
from django.utils import timezone

from common.exceptions import DomainConflict, DomainNotFound, DomainValidationError, ReferentialError
from core.sequences import allocate_number, peek_number
from inventory import ledger
from inventory.allocation import (
    ASSIGNABLE_STATUSES,
    assigned_quantities,
    auto_assign,
    ensure_assignable,
    lock_order,
    release_order_item,
    reserve_for_order,
)
from inventory.loadouts import blueprint_requirements, resolve_or_create_loadout
from inventory.models import (
    ContainerLoadout,
    Inventory,
    InventoryMovement,
    Location,
    Lot,
    Part,
    TransferOrder,
    TransferOrderItem,
)

logger = logging.getLogger(__name__)

TRANSFER_ORDER_SEQUENCE = "transfer_order"

PATCHABLE_FIELDS = (
    "priority",
    "transfer_reason",
    "notes",
    "requested_date",
    "expected_arrival_date",
    "carrier",
    "tracking_number",
    "freight_cost",
    "temperature_control_required",
)

Status = TransferOrder.Status

NEXT_STATUS = {
    Status.PENDING: Status.APPROVED,
    Status.APPROVED: Status.SHIPPED,
    Status.SHIPPED: Status.RECEIVED,
    Status.RECEIVED: Status.COMPLETED,
}

# (timestamp field, actor field) stamped when an order enters each status.
STATUS_STAMPS = {
    Status.PENDING: (None, None),
    Status.APPROVED: ("approved_date", "approved_by"),
    Status.SHIPPED: ("ship_date", "shipped_by"),
    Status.RECEIVED: ("received_date", "received_by"),
    Status.COMPLETED: ("completed_date", None),
}
if set(STATUS_STAMPS) != set(Status):
    raise ImproperlyConfigured("Every transfer order status needs a stamp rule.")


@dataclass(frozen=True)
class TransitionIntent:
    """Request to move a transfer order into ``target``."""

    target: Status
    actor: object = None

    def __post_init__(self):
        try:
            object.__setattr__(self, "target", Status(self.target))
        except ValueError:
            raise DomainValidationError(f"Unknown transfer order status: {self.target}.") from None


def transitions_enforced():
    return getattr(settings, "TRANSFER_ORDER_ENFORCE_TRANSITIONS", True)


def _order_number_format(value):
    prefix = getattr(settings, "TRANSFER_ORDER_NUMBER_PREFIX", "TO")
    return f"{prefix}-{value:04d}"


def next_order_number(company_id):
    """Reserve the company's next transfer order number; call inside the inserting transaction."""
    existing = TransferOrder.objects.filter(company_id=company_id).values_list("order_number", flat=True)
    return _order_number_format(allocate_number(company_id, TRANSFER_ORDER_SEQUENCE, existing_numbers=existing))


def preview_order_number(company_id):
    existing = TransferOrder.objects.filter(company_id=company_id).values_list("order_number", flat=True)
    return _order_number_format(peek_number(company_id, TRANSFER_ORDER_SEQUENCE, existing_numbers=existing))


def create_transfer_order(
    company_id,
    *,
    from_location_id,
    to_location_id,
    actor=None,
    blueprint_id=None,
    priority=None,
    transfer_reason="",
    notes="",
    requested_date=None,
    expected_arrival_date=None,
    items=(),
):
    """Insert a pending order, optionally filling it from a blueprint.

    Returns ``(order, shortages)``. Loadout resolution and auto-assignment
    share the order's transaction, so a failure leaves nothing behind.
    """
    if not from_location_id or not to_location_id:
        raise DomainValidationError("Source and destination locations are required.")
    if str(from_location_id) == str(to_location_id):
        raise DomainValidationError("Source and destination locations must differ.")

    owned = Location.objects.filter(company_id=company_id, pk__in=[from_location_id, to_location_id]).count()
    if owned != 2:
        raise ReferentialError("Source and destination locations must belong to this company.")

    shortages = []
    with transaction.atomic():
        order = TransferOrder.objects.create(
            company_id=company_id,
            order_number=next_order_number(company_id),
            from_location_id=from_location_id,
            to_location_id=to_location_id,
            status=Status.PENDING,
            priority=priority or TransferOrder.Priority.MEDIUM,
            transfer_reason=transfer_reason or "",
            notes=notes or "",
            requested_date=requested_date,
            expected_arrival_date=expected_arrival_date,
            created_by=actor,
        )

        if blueprint_id:
            loadout_id = resolve_or_create_loadout(company_id, blueprint_id, from_location_id, actor)
            order.blueprint_id = blueprint_id
            order.loadout_id = loadout_id
            order.save(update_fields=["blueprint", "loadout", "updated_at"])
            shortages = auto_assign(company_id, order, blueprint_id, loadout_id, already_assigned={}, actor=actor)

        for line in items:
            add_transfer_order_item(company_id, order.pk, actor=actor, **line)

    logger.info(
        "transfer_order_created shortages=%s",
        len(shortages),
        extra={"company_id": str(company_id), "order_number": order.order_number},
    )
    return order, shortages


def add_transfer_order_item(
    company_id,
    order_id,
    *,
    quantity,
    part_id=None,
    inventory_id=None,
    lot_id=None,
    unit_of_measure=None,
    serial_number="",
    expiration_date=None,
    notes="",
    actor=None,
):
    """Add a line to an order.

    With ``inventory_id`` the stock is reserved through the shared
    assignment path; without it the line is informational only.
    """
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise DomainValidationError("Quantity must be a positive integer.")

    with transaction.atomic():
        order = lock_order(company_id, order_id)
        ensure_assignable(order)

        if inventory_id:
            inventory = (
                Inventory.objects.select_for_update(of=("self",))
                .select_related("lot", "serial", "part")
                .filter(pk=inventory_id, company_id=company_id)
                .first()
            )
            if inventory is None:
                raise DomainNotFound("Inventory record not found.")
            if part_id and str(part_id) != str(inventory.part_id):
                raise DomainConflict("Inventory record does not hold the requested part.")

            blueprint_item = None
            if order.blueprint_id:
                requirements = blueprint_requirements(company_id, order.blueprint_id)
                requirement = next((req for req in requirements if req.part and req.part.pk == inventory.part_id), None)
                if requirement is not None:
                    remaining = requirement.required_quantity - assigned_quantities(order).get(inventory.part_id, 0)
                    if remaining <= 0:
                        raise DomainConflict("Blueprint requirement is already fully assigned for this part.")
                    quantity = min(quantity, remaining)
                    blueprint_item = requirement.blueprint_item

            return reserve_for_order(order, inventory, quantity, blueprint_item=blueprint_item, note=notes, actor=actor)

        if not part_id:
            raise DomainValidationError("A part or inventory record is required.")
        part = Part.objects.filter(company_id=company_id, pk=part_id).first()
        if part is None:
            raise ReferentialError("Part does not belong to this company.")
        if lot_id and not Lot.objects.filter(company_id=company_id, part=part, pk=lot_id).exists():
            raise ReferentialError("Lot does not belong to this part.")

        return TransferOrderItem.objects.create(
            order=order,
            loadout_id=order.loadout_id,
            part=part,
            lot_id=lot_id,
            quantity=quantity,
            unit_of_measure=unit_of_measure or part.unit_of_measure or getattr(settings, "INVENTORY_DEFAULT_UNIT_OF_MEASURE", "EA"),
            serial_number=serial_number or "",
            expiration_date=expiration_date,
            notes=notes or "",
        )


def delete_transfer_order_item(company_id, order_id, item_id, actor=None):
    with transaction.atomic():
        order = lock_order(company_id, order_id)
        ensure_assignable(order)
        item = order.items.filter(pk=item_id).first()
        if item is None:
            raise DomainNotFound("Transfer order item not found.")
        released = release_order_item(item, actor=actor)
        item.delete()

    logger.info(
        "transfer_order_item_deleted item=%s released=%s",
        item_id,
        released,
        extra={"company_id": str(company_id), "order_number": order.order_number},
    )
    return released


def auto_assign_order(company_id, order_id, *, target_item_id=None, actor=None):
    """Re-run blueprint allocation for an existing order, counting what it already holds."""
    with transaction.atomic():
        order = lock_order(company_id, order_id)
        ensure_assignable(order)
        if not order.blueprint_id:
            raise DomainValidationError("Transfer order has no blueprint to assign from.")
        if not order.loadout_id:
            order.loadout_id = resolve_or_create_loadout(company_id, order.blueprint_id, order.from_location_id, actor)
            order.save(update_fields=["loadout", "updated_at"])
        return auto_assign(
            company_id,
            order,
            order.blueprint_id,
            order.loadout_id,
            target_item_id=target_item_id,
            actor=actor,
        )


def assign_loadout(company_id, order_id, loadout_id):
    with transaction.atomic():
        order = lock_order(company_id, order_id)
        if order.status == Status.COMPLETED:
            raise DomainConflict("Completed transfer orders cannot be modified.")
        loadout = ContainerLoadout.objects.filter(company_id=company_id, pk=loadout_id).first()
        if loadout is None:
            raise DomainNotFound("Loadout not found.")
        if order.blueprint_id and loadout.blueprint_id != order.blueprint_id:
            raise DomainConflict("Loadout blueprint does not match the transfer order blueprint.")

        order.loadout = loadout
        order.blueprint_id = loadout.blueprint_id
        order.save(update_fields=["loadout", "blueprint", "updated_at"])
    return order


def update_transfer_order(company_id, order_id, patch, actor=None):
    """Apply an allow-listed field patch; a ``status`` key becomes a transition."""
    unknown = set(patch) - set(PATCHABLE_FIELDS) - {"status"}
    if unknown:
        raise DomainValidationError(f"Fields cannot be updated: {', '.join(sorted(unknown))}.")

    with transaction.atomic():
        order = lock_order(company_id, order_id)
        if transitions_enforced() and order.status == Status.COMPLETED:
            raise DomainConflict("Completed transfer orders cannot be modified.")

        changed = [field for field in PATCHABLE_FIELDS if field in patch]
        for field in changed:
            setattr(order, field, patch[field])
        if changed:
            order.save(update_fields=[*changed, "updated_at"])

        if "status" in patch and patch["status"] != order.status:
            order = _apply_transition(order, TransitionIntent(patch["status"], actor))
    return order


def transition(company_id, order_id, intent):
    with transaction.atomic():
        order = lock_order(company_id, order_id)
        return _apply_transition(order, intent)


def _apply_transition(order, intent):
    target = intent.target
    previous = order.status

    if transitions_enforced():
        expected = NEXT_STATUS.get(previous)
        if target != expected:
            raise DomainConflict(f"Cannot move transfer order from {previous} to {target}.")

    already_shipped = order.ship_date is not None
    already_received = order.received_date is not None

    order.status = target
    fields = ["status", "updated_at"]
    date_field, actor_field = STATUS_STAMPS[target]
    if date_field:
        setattr(order, date_field, timezone.now())
        fields.append(date_field)
    if actor_field:
        setattr(order, actor_field, intent.actor)
        fields.append(actor_field)
    order.save(update_fields=fields)

    if target == Status.SHIPPED and not already_shipped:
        _ship_items(order, intent.actor)
    elif target == Status.RECEIVED and already_shipped and not already_received:
        _receive_items(order, intent.actor)

    logger.info(
        "transfer_order_transition from=%s to=%s",
        previous,
        target,
        extra={"company_id": str(order.company_id), "order_number": order.order_number},
    )
    return order


def _ship_items(order, actor):
    for item in order.items.filter(inventory__isnull=False).order_by("created_at"):
        row = Inventory.objects.select_for_update().get(pk=item.inventory_id)
        shipped = ledger.consume_reserved(row, item.quantity)
        if shipped:
            ledger.record_movement(
                row,
                InventoryMovement.MovementType.SHIP,
                shipped,
                from_location_id=row.location_id,
                to_location_id=order.to_location_id,
                transfer_order=order,
                reference=order.order_number,
                created_by=actor,
            )


def _receive_items(order, actor):
    for item in order.items.filter(inventory__isnull=False).select_related("inventory").order_by("created_at"):
        source = item.inventory
        row, _ = ledger.credit(
            lookup={
                "company_id": order.company_id,
                "part_id": item.part_id,
                "lot_id": item.lot_id,
                "serial_id": source.serial_id,
                "location_id": order.to_location_id,
            },
            quantity=item.quantity,
            defaults={"supplier_id": source.supplier_id, "received_date": timezone.localdate()},
        )
        ledger.record_movement(
            row,
            InventoryMovement.MovementType.RECEIVE,
            item.quantity,
            from_location_id=order.from_location_id,
            to_location_id=order.to_location_id,
            transfer_order=order,
            reference=order.order_number,
            created_by=actor,
        )


def delete_transfer_order(company_id, order_id, actor=None):
    """Administrative hard delete. Unshipped reservations go back to available."""
    with transaction.atomic():
        order = TransferOrder.objects.select_for_update().filter(company_id=company_id, pk=order_id).first()
        if order is None:
            raise DomainNotFound("Transfer order not found.")

        order_number = order.order_number
        if order.status in ASSIGNABLE_STATUSES:
            for item in order.items.all():
                release_order_item(item, actor=actor)
        order.items.all().delete()
        order.delete()

    logger.info("transfer_order_deleted", extra={"company_id": str(company_id), "order_number": order_number})
    return order_number
