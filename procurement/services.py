import logging
from decimal import Decimal, ROUND_HALF_UP

from django.db import transaction
from django.utils import timezone

from common.exceptions import DomainConflict, DomainNotFound, DomainValidationError, ReferentialError
from core.sequences import allocate_number, peek_number
from inventory.models import Location, Part
from procurement.models import PurchaseOrder, PurchaseOrderLine, Supplier

logger = logging.getLogger(__name__)

MONEY_QUANT = Decimal("0.01")
PURCHASE_ORDER_SEQUENCE = "purchase_order"

# Statuses the receiving rollup may overwrite.
ROLLUP_STATUSES = {
    PurchaseOrder.Status.DRAFT,
    PurchaseOrder.Status.APPROVED,
    PurchaseOrder.Status.SENT_TO_SUPPLIER,
    PurchaseOrder.Status.PARTIAL,
    PurchaseOrder.Status.RECEIVED,
}


def _to_money(value):
    return Decimal(value).quantize(MONEY_QUANT, rounding=ROUND_HALF_UP)


def _po_number_format(value, today=None):
    today = today or timezone.localdate()
    return f"PO{today:%y%m}-{value:04d}"


def next_po_number(company_id, today=None):
    existing = PurchaseOrder.objects.filter(company_id=company_id).values_list("po_number", flat=True)
    value = allocate_number(company_id, PURCHASE_ORDER_SEQUENCE, existing_numbers=existing)
    return _po_number_format(value, today)


def preview_po_number(company_id, today=None):
    existing = PurchaseOrder.objects.filter(company_id=company_id).values_list("po_number", flat=True)
    return _po_number_format(peek_number(company_id, PURCHASE_ORDER_SEQUENCE, existing_numbers=existing), today)


@transaction.atomic
def create_purchase_order(company_id, *, supplier_id, lines, actor=None, status=None, ship_to_location_id=None, order_date=None, expected_date=None, notes=""):
    if not lines:
        raise DomainValidationError("A purchase order needs at least one line.")
    if not Supplier.objects.filter(company_id=company_id, pk=supplier_id).exists():
        raise ReferentialError("Supplier does not belong to this company.")
    if ship_to_location_id and not Location.objects.filter(company_id=company_id, pk=ship_to_location_id).exists():
        raise ReferentialError("Ship-to location does not belong to this company.")

    part_ids = {str(line["part_id"]) for line in lines}
    owned = {str(pk) for pk in Part.objects.filter(company_id=company_id, pk__in=part_ids).values_list("id", flat=True)}
    if owned != part_ids:
        raise ReferentialError("Every line part must belong to this company.")

    po = PurchaseOrder.objects.create(
        company_id=company_id,
        supplier_id=supplier_id,
        po_number=next_po_number(company_id),
        status=status or PurchaseOrder.Status.DRAFT,
        order_date=order_date or timezone.localdate(),
        expected_date=expected_date,
        ship_to_location_id=ship_to_location_id,
        notes=notes or "",
        created_by=actor,
    )
    if po.status == PurchaseOrder.Status.APPROVED:
        po.approved_at = timezone.now()
        po.save(update_fields=["approved_at", "updated_at"])

    for line_number, line in enumerate(lines, start=1):
        quantity = int(line["quantity_ordered"])
        if quantity <= 0:
            raise DomainValidationError("Ordered quantity must be a positive integer.")
        unit_cost = Decimal(line.get("unit_cost") or 0)
        PurchaseOrderLine.objects.create(
            purchase_order=po,
            line_number=line_number,
            part_id=line["part_id"],
            quantity_ordered=quantity,
            unit_cost=unit_cost,
            line_total=_to_money(unit_cost * quantity),
            expected_date=line.get("expected_date"),
            notes=line.get("notes") or "",
        )

    logger.info("purchase_order_created lines=%s", len(lines), extra={"company_id": str(company_id), "order_number": po.po_number})
    return po


def recompute_purchase_order_status(purchase_order):
    """Derive the header status from its lines; safe to call any number of times.

    ``received`` once every line is covered, ``partial`` once anything has
    arrived, otherwise the stored status is kept.
    """
    if purchase_order.status not in ROLLUP_STATUSES:
        return purchase_order

    lines = list(purchase_order.lines.values_list("quantity_ordered", "quantity_received"))
    if not lines:
        return purchase_order

    all_received = all(received >= ordered for ordered, received in lines)
    any_received = any(received > 0 for _, received in lines)

    if all_received:
        new_status = PurchaseOrder.Status.RECEIVED
    elif any_received:
        new_status = PurchaseOrder.Status.PARTIAL
    else:
        return purchase_order

    if new_status == purchase_order.status:
        return purchase_order

    fields = ["status", "updated_at"]
    purchase_order.status = new_status
    if new_status == PurchaseOrder.Status.RECEIVED:
        purchase_order.received_at = timezone.now()
        fields.append("received_at")
    purchase_order.save(update_fields=fields)
    logger.info(
        "purchase_order_status_rolled_up status=%s",
        new_status,
        extra={"company_id": str(purchase_order.company_id), "order_number": purchase_order.po_number},
    )
    return purchase_order


LINE_PATCHABLE_FIELDS = ("quantity_ordered", "quantity_received", "unit_cost", "expected_date", "notes")


@transaction.atomic
def update_purchase_order_line(company_id, purchase_order_id, line_id, patch):
    purchase_order = PurchaseOrder.objects.select_for_update().filter(company_id=company_id, pk=purchase_order_id).first()
    if purchase_order is None:
        raise DomainNotFound("Purchase order not found.")
    if purchase_order.status == PurchaseOrder.Status.CANCELLED:
        raise DomainConflict("Cancelled purchase orders cannot be modified.")

    line = purchase_order.lines.select_for_update().filter(pk=line_id).first()
    if line is None:
        raise DomainNotFound("Purchase order line not found.")

    changed = [field for field in LINE_PATCHABLE_FIELDS if field in patch]
    for field in changed:
        setattr(line, field, patch[field])
    if {"quantity_ordered", "unit_cost"} & set(changed):
        line.line_total = _to_money(Decimal(line.unit_cost) * line.quantity_ordered)
        changed.append("line_total")
    if changed:
        line.save(update_fields=changed)

    recompute_purchase_order_status(purchase_order)
    return line
