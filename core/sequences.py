import logging
import re

from django.db import IntegrityError, transaction

from core.models import DocumentSequence

logger = logging.getLogger(__name__)

_TRAILING_DIGITS = re.compile(r"(\d+)$")


def highest_suffix(numbers):
    highest = 0
    for number in numbers:
        match = _TRAILING_DIGITS.search(str(number or ""))
        if match:
            highest = max(highest, int(match.group(1)))
    return highest


def allocate_number(company_id, key, *, existing_numbers=()):
    """Return the next value of the company's ``key`` counter.

    The counter row is locked until the caller's transaction ends, so two
    concurrent callers are serialised and a committed value is never handed
    out twice. The first allocation seeds the counter from the highest
    numeric suffix in ``existing_numbers``.
    """
    sequence = DocumentSequence.objects.select_for_update().filter(company_id=company_id, key=key).first()
    if sequence is None:
        seed = highest_suffix(existing_numbers)
        try:
            with transaction.atomic():
                sequence = DocumentSequence.objects.create(company_id=company_id, key=key, last_value=seed)
        except IntegrityError:
            sequence = DocumentSequence.objects.select_for_update().get(company_id=company_id, key=key)
        else:
            logger.info("sequence_seeded key=%s seed=%s", key, seed, extra={"company_id": str(company_id)})

    sequence.last_value += 1
    sequence.save(update_fields=["last_value", "updated_at"])
    return sequence.last_value


def peek_number(company_id, key, *, existing_numbers=()):
    """Preview the next value without reserving it."""
    last_value = (
        DocumentSequence.objects.filter(company_id=company_id, key=key).values_list("last_value", flat=True).first()
    )
    if last_value is None:
        last_value = highest_suffix(existing_numbers)
    return last_value + 1
