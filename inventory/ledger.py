"""Row-level ledger operations shared by allocation, transfers and receiving.

Every function here expects to run inside ``transaction.atomic`` and, where it
mutates an ``Inventory`` row, expects the caller to hold that row's lock.
Quantities are written with ``F()`` expressions and mirrored onto the
in-memory instance so callers can keep reading it.
"""

import logging

from django.db import IntegrityError, transaction
from django.db.models import F
from django.utils import timezone

from inventory.models import Inventory, InventoryMovement, Lot, Serial

logger = logging.getLogger(__name__)


def get_or_create_lot(
    *,
    company_id,
    part_id,
    lot_number,
    expiration_date=None,
    received_date=None,
    supplier_id=None,
    location_id=None,
):
    lookup = {"company_id": company_id, "part_id": part_id, "lot_number": lot_number}
    lot = Lot.objects.select_for_update().filter(**lookup).first()
    if lot is None:
        try:
            with transaction.atomic():
                lot = Lot.objects.create(
                    **lookup,
                    expiration_date=expiration_date,
                    received_date=received_date or timezone.localdate(),
                    supplier_id=supplier_id,
                    location_id=location_id,
                )
            return lot, True
        except IntegrityError:
            lot = Lot.objects.select_for_update().get(**lookup)

    if expiration_date:
        if lot.expiration_date is None:
            lot.expiration_date = expiration_date
            lot.save(update_fields=["expiration_date"])
        elif lot.expiration_date != expiration_date:
            logger.warning(
                "lot_expiration_mismatch lot=%s stored=%s incoming=%s",
                lot.lot_number,
                lot.expiration_date,
                expiration_date,
                extra={"company_id": str(company_id), "part_id": str(part_id)},
            )
    return lot, False


def get_or_create_serial(*, company_id, part_id, serial_number, lot_id=None, location_id=None, received_date=None):
    lookup = {"company_id": company_id, "part_id": part_id, "serial_number": serial_number}
    serial = Serial.objects.select_for_update().filter(**lookup).first()
    if serial is not None:
        return serial, False
    try:
        with transaction.atomic():
            serial = Serial.objects.create(
                **lookup,
                lot_id=lot_id,
                location_id=location_id,
                status=Serial.Status.IN_STOCK,
                received_date=received_date or timezone.localdate(),
            )
        return serial, True
    except IntegrityError:
        return Serial.objects.select_for_update().get(**lookup), False


def reserve(row, quantity):
    Inventory.objects.filter(pk=row.pk).update(
        quantity_available=F("quantity_available") - quantity,
        quantity_reserved=F("quantity_reserved") + quantity,
        updated_at=timezone.now(),
    )
    row.quantity_available -= quantity
    row.quantity_reserved += quantity


def release(row, quantity):
    released = min(quantity, row.quantity_reserved)
    if released <= 0:
        return 0
    Inventory.objects.filter(pk=row.pk).update(
        quantity_available=F("quantity_available") + released,
        quantity_reserved=F("quantity_reserved") - released,
        updated_at=timezone.now(),
    )
    row.quantity_available += released
    row.quantity_reserved -= released
    return released


def consume_reserved(row, quantity):
    """Take reserved stock off the shelf: on-hand and reserved drop together."""
    shipped = min(quantity, row.quantity_reserved)
    if shipped <= 0:
        return 0
    Inventory.objects.filter(pk=row.pk).update(
        quantity_on_hand=F("quantity_on_hand") - shipped,
        quantity_reserved=F("quantity_reserved") - shipped,
        updated_at=timezone.now(),
    )
    row.quantity_on_hand -= shipped
    row.quantity_reserved -= shipped
    return shipped


def credit(*, lookup, quantity, defaults=None):
    """Add received stock to the row matching ``lookup`` or open a new one.

    Returns ``(row, created)``.
    """
    row = Inventory.objects.select_for_update().filter(**lookup).order_by("created_at").first()
    if row is None:
        row = Inventory.objects.create(
            **{**(defaults or {}), **lookup},
            quantity_on_hand=quantity,
            quantity_available=quantity,
            quantity_reserved=0,
            quantity_on_order=0,
        )
        return row, True

    Inventory.objects.filter(pk=row.pk).update(
        quantity_on_hand=F("quantity_on_hand") + quantity,
        quantity_available=F("quantity_available") + quantity,
        updated_at=timezone.now(),
    )
    row.quantity_on_hand += quantity
    row.quantity_available += quantity
    return row, False


def record_movement(row, movement_type, quantity, **fields):
    return InventoryMovement.objects.create(
        company_id=row.company_id,
        inventory=row,
        part_id=row.part_id,
        lot_id=row.lot_id,
        movement_type=movement_type,
        quantity=quantity,
        **fields,
    )
