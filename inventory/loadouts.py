import logging
from dataclasses import dataclass

from django.db import transaction

from common.exceptions import DomainNotFound, ReferentialError
from core.models import Company
from inventory.models import BlueprintItem, ContainerBlueprint, ContainerLoadout, Location, Part, Product

logger = logging.getLogger(__name__)

AUTO_CREATED_LOADOUT_NOTE = "Auto-created for transfer order"


@dataclass(frozen=True)
class BlueprintRequirement:
    blueprint_item: BlueprintItem
    product: Product
    part: Part | None
    required_quantity: int

    @property
    def unit_of_measure(self):
        if self.part is not None and self.part.unit_of_measure:
            return self.part.unit_of_measure
        return None


def blueprint_requirements(company_id, blueprint_id):
    if not ContainerBlueprint.objects.filter(company_id=company_id, pk=blueprint_id).exists():
        raise DomainNotFound("Blueprint not found.")

    items = (
        BlueprintItem.objects.filter(blueprint_id=blueprint_id, blueprint__company_id=company_id)
        .select_related("product__part")
        .order_by("created_at", "id")
    )
    return [
        BlueprintRequirement(
            blueprint_item=item,
            product=item.product,
            part=item.product.part,
            required_quantity=item.required_quantity,
        )
        for item in items
    ]


def _next_serial_suffix(last_suffix):
    try:
        return f"{int(last_suffix) + 1:03d}"
    except (TypeError, ValueError):
        return "001"


def resolve_or_create_loadout(company_id, blueprint_id, location_id, actor=None):
    """Return the active loadout for a blueprint at a location, creating one if needed.

    The company row is locked for the rest of the caller's transaction so
    concurrent resolvers for the same tenant cannot both decide to create.
    """
    with transaction.atomic():
        Company.objects.select_for_update().filter(pk=company_id).first()

        if not ContainerBlueprint.objects.filter(company_id=company_id, pk=blueprint_id).exists():
            raise ReferentialError("Blueprint does not belong to this company.")
        if not Location.objects.filter(company_id=company_id, pk=location_id).exists():
            raise ReferentialError("Location does not belong to this company.")

        existing_id = (
            ContainerLoadout.objects.filter(
                company_id=company_id,
                blueprint_id=blueprint_id,
                location_id=location_id,
                is_active=True,
            )
            .order_by("-created_at")
            .values_list("id", flat=True)
            .first()
        )
        if existing_id:
            return existing_id

        last_suffix = (
            ContainerLoadout.objects.filter(company_id=company_id)
            .order_by("-created_at")
            .values_list("serial_suffix", flat=True)
            .first()
        )
        loadout = ContainerLoadout.objects.create(
            company_id=company_id,
            blueprint_id=blueprint_id,
            location_id=location_id,
            serial_suffix=_next_serial_suffix(last_suffix),
            is_active=True,
            notes=AUTO_CREATED_LOADOUT_NOTE,
            created_by=actor,
        )

    logger.info(
        "loadout_created suffix=%s blueprint=%s location=%s",
        loadout.serial_suffix,
        blueprint_id,
        location_id,
        extra={"company_id": str(company_id)},
    )
    return loadout.id


@transaction.atomic
def remove_blueprint_item(company_id, blueprint_id, item_id):
    item = (
        BlueprintItem.objects.select_for_update()
        .filter(pk=item_id, blueprint_id=blueprint_id, blueprint__company_id=company_id)
        .first()
    )
    if item is None:
        raise DomainNotFound("Blueprint item not found.")
    item.delete()
