import logging

from django.db import transaction
from django.db.models import F, Q
from django.utils import timezone

from common.exceptions import DomainConflict, DomainNotFound, DomainValidationError, ReferentialError
from inventory import ledger
from inventory.models import InventoryMovement, Location, Lot, Part
from procurement.models import PurchaseOrder, PurchaseOrderLine, Receiving, ReceivingItem, Supplier
from procurement.services import recompute_purchase_order_status

logger = logging.getLogger(__name__)

ITEM_PATCHABLE_FIELDS = ("quantity_received", "lot_number", "serial_number", "expiration_date", "location_id", "notes")


def _lock_receiving(company_id, receiving_id):
    receiving = Receiving.objects.select_for_update().filter(company_id=company_id, pk=receiving_id).first()
    if receiving is None:
        raise DomainNotFound("Receiving record not found.")
    return receiving


def _ensure_open(receiving):
    if receiving.status == Receiving.Status.COMPLETED:
        raise DomainConflict("Receiving record already completed.")


def _check_location(company_id, location_id):
    if location_id and not Location.objects.filter(company_id=company_id, pk=location_id).exists():
        raise ReferentialError("Location does not belong to this company.")


@transaction.atomic
def create_receiving(company_id, *, location_id, actor=None, purchase_order_id=None, supplier_id=None, reference_number="", notes=""):
    _check_location(company_id, location_id)

    po_number = ""
    if purchase_order_id:
        purchase_order = PurchaseOrder.objects.filter(company_id=company_id, pk=purchase_order_id).first()
        if purchase_order is None:
            raise ReferentialError("Purchase order does not belong to this company.")
        if purchase_order.status == PurchaseOrder.Status.CANCELLED:
            raise DomainConflict("Cannot receive against a cancelled purchase order.")
        po_number = purchase_order.po_number
        supplier_id = supplier_id or purchase_order.supplier_id

    if supplier_id and not Supplier.objects.filter(company_id=company_id, pk=supplier_id).exists():
        raise ReferentialError("Supplier does not belong to this company.")

    return Receiving.objects.create(
        company_id=company_id,
        location_id=location_id,
        purchase_order_id=purchase_order_id,
        po_number=po_number,
        supplier_id=supplier_id,
        reference_number=reference_number or "",
        notes=notes or "",
        received_by=actor,
        received_at=timezone.now(),
        status=Receiving.Status.PENDING,
    )


def _effective_lot_number(lot_number, serial_number):
    if lot_number:
        return lot_number
    if serial_number:
        return f"SER-{serial_number[:16]}"
    return ""


@transaction.atomic
def add_receiving_item(
    company_id,
    receiving_id,
    *,
    part_id,
    quantity_received,
    purchase_order_line_id=None,
    lot_number="",
    serial_number="",
    expiration_date=None,
    location_id=None,
    gtin="",
    scanned_data="",
    notes="",
):
    if isinstance(quantity_received, bool) or not isinstance(quantity_received, int) or quantity_received <= 0:
        raise DomainValidationError("Received quantity must be a positive integer.")

    receiving = _lock_receiving(company_id, receiving_id)
    _ensure_open(receiving)

    part = Part.objects.filter(company_id=company_id, pk=part_id).first()
    if part is None:
        raise ReferentialError("Part does not belong to this company.")
    _check_location(company_id, location_id)

    if purchase_order_line_id:
        line = PurchaseOrderLine.objects.filter(pk=purchase_order_line_id, purchase_order__company_id=company_id).first()
        if line is None or (receiving.purchase_order_id and line.purchase_order_id != receiving.purchase_order_id):
            raise DomainValidationError("Purchase order line does not belong to this receiving record.")
        if line.part_id != part.pk:
            raise DomainValidationError("Purchase order line is for a different part.")

    lot = None
    effective_lot_number = _effective_lot_number(lot_number, serial_number)
    if effective_lot_number:
        lot, _ = ledger.get_or_create_lot(
            company_id=company_id,
            part_id=part.pk,
            lot_number=effective_lot_number,
            expiration_date=expiration_date,
            supplier_id=receiving.supplier_id,
            location_id=location_id or receiving.location_id,
        )

    serial = None
    if serial_number:
        serial, _ = ledger.get_or_create_serial(
            company_id=company_id,
            part_id=part.pk,
            serial_number=serial_number,
            lot_id=lot.pk if lot else None,
            location_id=location_id or receiving.location_id,
        )

    return ReceivingItem.objects.create(
        receiving=receiving,
        part=part,
        supplier_id=receiving.supplier_id,
        purchase_order_line_id=purchase_order_line_id,
        lot=lot,
        serial=serial,
        location_id=location_id,
        lot_number=effective_lot_number,
        serial_number=serial_number or "",
        quantity_received=quantity_received,
        expiration_date=expiration_date,
        gtin=gtin or part.gtin or "",
        scanned_data=scanned_data or "",
        notes=notes or "",
    )


@transaction.atomic
def update_receiving_item(company_id, receiving_id, item_id, patch):
    receiving = _lock_receiving(company_id, receiving_id)
    _ensure_open(receiving)
    item = receiving.items.select_for_update().filter(pk=item_id).first()
    if item is None:
        raise DomainNotFound("Receiving item not found.")

    unknown = set(patch) - set(ITEM_PATCHABLE_FIELDS)
    if unknown:
        raise DomainValidationError(f"Fields cannot be updated: {', '.join(sorted(unknown))}.")
    if "quantity_received" in patch:
        quantity = patch["quantity_received"]
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
            raise DomainValidationError("Received quantity must be a positive integer.")
    _check_location(company_id, patch.get("location_id"))

    changed = [field for field in ITEM_PATCHABLE_FIELDS if field in patch]
    for field in changed:
        setattr(item, field, patch[field])

    if "lot_number" in changed and item.lot_id and item.lot.lot_number != item.lot_number:
        item.lot = None
        changed.append("lot")
    if "expiration_date" in changed and item.lot_id and item.expiration_date:
        Lot.objects.filter(pk=item.lot_id).update(expiration_date=item.expiration_date)

    if changed:
        item.save(update_fields=[*changed, "updated_at"])
    return item


@transaction.atomic
def remove_receiving_item(company_id, receiving_id, item_id):
    receiving = _lock_receiving(company_id, receiving_id)
    _ensure_open(receiving)
    deleted, _ = receiving.items.filter(pk=item_id).delete()
    if not deleted:
        raise DomainNotFound("Receiving item not found.")


def _linked_purchase_order(receiving):
    if receiving.purchase_order_id:
        return PurchaseOrder.objects.select_for_update().filter(pk=receiving.purchase_order_id).first()
    if receiving.po_number:
        return (
            PurchaseOrder.objects.select_for_update()
            .filter(company_id=receiving.company_id, po_number=receiving.po_number)
            .first()
        )
    return None


def complete_receiving(company_id, receiving_id, actor=None):
    """Post every item of a pending session into the inventory ledger.

    The session row stays locked for the whole pass and is marked completed
    at the end, so a repeated call fails with a conflict instead of posting
    twice.
    """
    with transaction.atomic():
        receiving = _lock_receiving(company_id, receiving_id)
        _ensure_open(receiving)

        items = list(receiving.items.select_related("part", "lot", "serial").order_by("created_at", "id"))
        if not items:
            raise DomainConflict("Cannot complete receiving with no items.")

        today = timezone.localdate()
        stamp = timezone.now().strftime("%Y%m%d%H%M%S")
        lots_this_pass = {}

        for item in items:
            location_id = item.location_id or receiving.location_id
            update_fields = []

            lot = item.lot
            if lot is None:
                lot_number = item.lot_number or f"LOT-{stamp}-{item.part.sku}"
                lot = lots_this_pass.get((item.part_id, lot_number))
                if lot is None:
                    lot, _ = ledger.get_or_create_lot(
                        company_id=company_id,
                        part_id=item.part_id,
                        lot_number=lot_number,
                        expiration_date=item.expiration_date,
                        received_date=today,
                        supplier_id=item.supplier_id or receiving.supplier_id,
                        location_id=location_id,
                    )
                item.lot = lot
                item.lot_number = lot.lot_number
                update_fields += ["lot", "lot_number"]
            lots_this_pass[(item.part_id, lot.lot_number)] = lot

            if item.serial_number and item.serial_id is None:
                item.serial, _ = ledger.get_or_create_serial(
                    company_id=company_id,
                    part_id=item.part_id,
                    serial_number=item.serial_number,
                    lot_id=lot.pk,
                    location_id=location_id,
                    received_date=today,
                )
                update_fields.append("serial")

            row, _ = ledger.credit(
                lookup={"company_id": company_id, "part_id": item.part_id, "lot_id": lot.pk},
                quantity=item.quantity_received,
                defaults={
                    "location_id": location_id,
                    "serial_id": item.serial_id,
                    "supplier_id": item.supplier_id or receiving.supplier_id,
                    "received_date": today,
                },
            )
            ledger.record_movement(
                row,
                InventoryMovement.MovementType.RECEIPT,
                item.quantity_received,
                to_location_id=row.location_id,
                receiving_item=item,
                reference=receiving.po_number or receiving.reference_number,
                created_by=actor,
            )

            if item.purchase_order_line_id:
                PurchaseOrderLine.objects.filter(pk=item.purchase_order_line_id).update(
                    quantity_received=F("quantity_received") + item.quantity_received
                )

            if update_fields:
                item.save(update_fields=[*update_fields, "updated_at"])

        receiving.status = Receiving.Status.COMPLETED
        receiving.completed_at = timezone.now()
        fields = ["status", "completed_at", "updated_at"]
        if actor is not None:
            receiving.received_by = actor
            fields.append("received_by")
        receiving.save(update_fields=fields)

        purchase_order = _linked_purchase_order(receiving)
        if purchase_order is not None:
            recompute_purchase_order_status(purchase_order)

    logger.info(
        "receiving_completed items=%s",
        len(items),
        extra={"company_id": str(company_id), "receiving_id": str(receiving.pk)},
    )
    return receiving


def match_scanned_data(company_id, decoded):
    """Suggest parts, suppliers and lots that fit a decoded scan."""
    part_filter = Q()
    if decoded.gtin:
        part_filter |= Q(gtin=decoded.gtin)
    if decoded.sku:
        part_filter |= Q(sku__iexact=decoded.sku)
    parts = list(Part.objects.filter(part_filter, company_id=company_id)[:10]) if part_filter else []

    suppliers = []
    if decoded.manufacturer:
        suppliers = list(
            Supplier.objects.filter(
                Q(code__iexact=decoded.manufacturer) | Q(name__icontains=decoded.manufacturer),
                company_id=company_id,
            )[:10]
        )

    lots = []
    if decoded.lot:
        lot_qs = Lot.objects.filter(company_id=company_id, lot_number=decoded.lot)
        if parts:
            lot_qs = lot_qs.filter(part__in=parts)
        lots = list(lot_qs.select_related("part")[:10])

    return {
        "parts": [{"id": str(part.pk), "sku": part.sku, "name": part.name, "gtin": part.gtin} for part in parts],
        "suppliers": [{"id": str(s.pk), "code": s.code, "name": s.name} for s in suppliers],
        "lots": [
            {
                "id": str(lot.pk),
                "lot_number": lot.lot_number,
                "part_id": str(lot.part_id),
                "expiration_date": lot.expiration_date.isoformat() if lot.expiration_date else None,
            }
            for lot in lots
        ],
        "suggested_part_id": str(parts[0].pk) if len(parts) == 1 else None,
    }
