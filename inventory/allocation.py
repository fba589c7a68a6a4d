import logging
from dataclasses import asdict, dataclass

from django.conf import settings
from django.db import transaction
from django.db.models import F, Sum

from common.exceptions import (
    DomainConflict,
    DomainNotFound,
    DomainValidationError,
    LocationMismatch,
    ReferentialError,
)
from inventory import ledger
from inventory.loadouts import blueprint_requirements
from inventory.models import (
    BlueprintItem,
    Inventory,
    InventoryMovement,
    LoadoutLot,
    TransferOrder,
    TransferOrderItem,
)

logger = logging.getLogger(__name__)

AUTO_ASSIGN_NOTE = "Auto-assigned from blueprint"
MANUAL_ASSIGN_NOTE = "Manually assigned from transfer order details"

# Reservations only make sense before stock leaves the source location.
ASSIGNABLE_STATUSES = {TransferOrder.Status.PENDING, TransferOrder.Status.APPROVED}


@dataclass(frozen=True)
class Shortage:
    blueprint_item_id: str
    product_name: str
    part_id: str
    required_quantity: int
    assigned_quantity: int

    @property
    def short_quantity(self):
        return max(self.required_quantity - self.assigned_quantity, 0)

    def as_dict(self):
        return {**asdict(self), "short_quantity": self.short_quantity}


def lock_order(company_id, order_id):
    order = TransferOrder.objects.select_for_update().filter(company_id=company_id, pk=order_id).first()
    if order is None:
        raise DomainNotFound("Transfer order not found.")
    return order


def ensure_assignable(order):
    if order.status not in ASSIGNABLE_STATUSES:
        raise DomainConflict(f"Inventory cannot be assigned to a transfer order in status {order.status}.")


def assigned_quantities(order):
    rows = TransferOrderItem.objects.filter(order_id=order.pk).values("part_id").annotate(total=Sum("quantity"))
    return {row["part_id"]: row["total"] or 0 for row in rows}


def _unit_of_measure(blueprint_item, inventory):
    if blueprint_item is not None:
        part = blueprint_item.product.part
        if part is not None and part.unit_of_measure:
            return part.unit_of_measure
    if inventory.part.unit_of_measure:
        return inventory.part.unit_of_measure
    return getattr(settings, "INVENTORY_DEFAULT_UNIT_OF_MEASURE", "EA")


def reserve_for_order(order, inventory, quantity, *, blueprint_item=None, loadout_id=None, note="", actor=None):
    """Reserve stock from ``inventory`` and record it as a line on ``order``.

    ``inventory`` must already be locked by the caller. The quantity is
    clamped to what the row has available; the new order item is returned.
    """
    if inventory.company_id != order.company_id:
        raise DomainNotFound("Inventory record not found.")

    qty = min(int(quantity), inventory.quantity_available)
    if qty <= 0:
        raise DomainValidationError("Quantity must be greater than zero and within available stock.")

    if order.from_location_id and inventory.location_id != order.from_location_id:
        raise LocationMismatch()

    part_id = None
    if blueprint_item is not None:
        part_id = blueprint_item.product.part_id
    part_id = part_id or inventory.part_id
    if not part_id:
        raise ReferentialError("Unable to determine part for inventory assignment.")

    loadout_id = loadout_id or order.loadout_id
    lot = inventory.lot
    note = note or f"Manual assignment for transfer order {order.order_number}"

    with transaction.atomic():
        ledger.reserve(inventory, qty)
        ledger.record_movement(
            inventory,
            InventoryMovement.MovementType.RESERVE,
            qty,
            from_location_id=inventory.location_id,
            transfer_order=order,
            reference=order.order_number,
            created_by=actor,
        )
        item = TransferOrderItem.objects.create(
            order=order,
            loadout_id=loadout_id,
            inventory=inventory,
            blueprint_item=blueprint_item,
            part_id=part_id,
            lot=lot,
            quantity=qty,
            unit_of_measure=_unit_of_measure(blueprint_item, inventory),
            serial_number=inventory.serial.serial_number if inventory.serial_id else "",
            expiration_date=lot.expiration_date if lot else None,
            notes=note,
        )
        if loadout_id:
            LoadoutLot.objects.create(
                loadout_id=loadout_id,
                product=blueprint_item.product if blueprint_item is not None else None,
                lot=lot,
                inventory=inventory,
                transfer_order_item=item,
                quantity_used=qty,
                notes=note,
            )

    logger.info(
        "inventory_assigned inventory=%s quantity=%s",
        inventory.pk,
        qty,
        extra={"company_id": str(order.company_id), "order_number": order.order_number, "part_id": str(part_id)},
    )
    return item


def assign_inventory_to_order(order, inventory, quantity, **kwargs):
    """Shared write path for automatic and manual assignment; returns the applied quantity."""
    return reserve_for_order(order, inventory, quantity, **kwargs).quantity


def fefo_candidates(company_id, location_id, part_id):
    return (
        Inventory.objects.select_for_update(of=("self",))
        .select_related("lot", "serial", "part")
        .filter(
            company_id=company_id,
            location_id=location_id,
            part_id=part_id,
            quantity_available__gt=0,
            is_active=True,
        )
        .order_by(F("lot__expiration_date").asc(nulls_last=True), "created_at", "id")
    )


def auto_assign(company_id, order, blueprint_id, loadout_id=None, *, target_item_id=None, already_assigned=None, actor=None):
    """Fill the blueprint's requirements from stock at the order's source location.

    Lots are consumed earliest expiration first; rows without a lot or an
    expiration date go last. Unmet requirements come back as ``Shortage``
    records rather than errors.
    """
    requirements = blueprint_requirements(company_id, blueprint_id)
    if target_item_id is not None:
        requirements = [req for req in requirements if str(req.blueprint_item.pk) == str(target_item_id)]
        if not requirements:
            raise DomainNotFound("Blueprint item not found.")

    assigned = dict(already_assigned) if already_assigned is not None else assigned_quantities(order)
    shortages = []

    with transaction.atomic():
        for requirement in requirements:
            if requirement.part is None or requirement.required_quantity <= 0:
                continue

            part_id = requirement.part.pk
            remaining = max(requirement.required_quantity - assigned.get(part_id, 0), 0)
            if remaining == 0:
                continue

            for row in fefo_candidates(company_id, order.from_location_id, part_id):
                if remaining <= 0:
                    break
                take = min(remaining, row.quantity_available)
                if take <= 0:
                    continue
                applied = assign_inventory_to_order(
                    order,
                    row,
                    take,
                    blueprint_item=requirement.blueprint_item,
                    loadout_id=loadout_id,
                    note=AUTO_ASSIGN_NOTE,
                    actor=actor,
                )
                remaining -= applied
                assigned[part_id] = assigned.get(part_id, 0) + applied

            if remaining > 0:
                shortage = Shortage(
                    blueprint_item_id=str(requirement.blueprint_item.pk),
                    product_name=requirement.product.name,
                    part_id=str(part_id),
                    required_quantity=requirement.required_quantity,
                    assigned_quantity=requirement.required_quantity - remaining,
                )
                shortages.append(shortage)
                logger.warning(
                    "Insufficient inventory for blueprint item %s. Short %s units.",
                    requirement.product.name,
                    remaining,
                    extra={
                        "company_id": str(company_id),
                        "order_number": order.order_number,
                        "part_id": str(part_id),
                        "shortage": shortage.as_dict(),
                    },
                )

    return shortages


def manual_assign(company_id, order_id, blueprint_item_id, inventory_id, requested_quantity, *, note=None, actor=None):
    if isinstance(requested_quantity, bool) or not isinstance(requested_quantity, int) or requested_quantity <= 0:
        raise DomainValidationError("Quantity must be a positive integer.")

    with transaction.atomic():
        order = lock_order(company_id, order_id)
        ensure_assignable(order)

        blueprint_item = None
        if order.blueprint_id:
            blueprint_item = (
                BlueprintItem.objects.select_related("product__part")
                .filter(pk=blueprint_item_id, blueprint_id=order.blueprint_id, blueprint__company_id=company_id)
                .first()
            )
        if blueprint_item is None:
            raise DomainNotFound("Blueprint item not found for this transfer order.")

        part = blueprint_item.product.part
        if part is None:
            raise ReferentialError("Blueprint item is not linked to a part.")

        assigned_so_far = assigned_quantities(order).get(part.pk, 0)
        remaining_needed = max(blueprint_item.required_quantity - assigned_so_far, 0)
        if remaining_needed <= 0:
            raise DomainConflict("Blueprint requirement already satisfied for this item.")

        inventory = (
            Inventory.objects.select_for_update(of=("self",))
            .select_related("lot", "serial", "part")
            .filter(pk=inventory_id, company_id=company_id)
            .first()
        )
        if inventory is None:
            raise DomainNotFound("Inventory record not found.")
        if inventory.part_id != part.pk:
            raise DomainConflict("Inventory record does not hold the part required by this blueprint item.")
        if inventory.quantity_available <= 0:
            raise DomainConflict("Selected inventory has no available quantity.")

        qty = min(requested_quantity, remaining_needed, inventory.quantity_available)
        if qty <= 0:
            raise DomainValidationError("Quantity must be greater than zero.")

        return assign_inventory_to_order(
            order,
            inventory,
            qty,
            blueprint_item=blueprint_item,
            note=note or MANUAL_ASSIGN_NOTE,
            actor=actor,
        )


def release_order_item(item, actor=None):
    """Return an item's reserved stock to available and drop its loadout usage."""
    LoadoutLot.objects.filter(transfer_order_item=item).delete()
    if item.inventory_id is None:
        return 0

    row = Inventory.objects.select_for_update().get(pk=item.inventory_id)
    released = ledger.release(row, item.quantity)
    if released:
        ledger.record_movement(
            row,
            InventoryMovement.MovementType.RELEASE,
            released,
            to_location_id=row.location_id,
            transfer_order_id=item.order_id,
            reference=item.order.order_number,
            created_by=actor,
        )
    return released


def order_fulfillment(order):
    """Required versus assigned quantity for each blueprint item on the order."""
    if not order.blueprint_id:
        return []

    assigned = assigned_quantities(order)
    rows = []
    for requirement in blueprint_requirements(order.company_id, order.blueprint_id):
        part_id = requirement.part.pk if requirement.part is not None else None
        assigned_quantity = min(assigned.get(part_id, 0), requirement.required_quantity) if part_id else 0
        rows.append(
            {
                "blueprint_item_id": str(requirement.blueprint_item.pk),
                "product_name": requirement.product.name,
                "part_id": str(part_id) if part_id else None,
                "required_quantity": requirement.required_quantity,
                "assigned_quantity": assigned_quantity,
                "short_quantity": requirement.required_quantity - assigned_quantity,
            }
        )
    return rows
