"""
Participant extraction from Bokun price-category breakdowns.
"""

import logging
from typing import Iterable, NamedTuple, Optional

logger = logging.getLogger(__name__)

ADULT = "ADULT"
CHILD = "CHILD"
INFANT = "INFANT"


class ParticipantCounts(NamedTuple):
    adults: int
    children: int
    infants: int
    total: int


def _ticket_category(entry: dict) -> Optional[str]:
    category = entry.get("pricingCategory")
    if not isinstance(category, dict):
        category = {}
    value = category.get("ticketCategory") or entry.get("ticketCategory")
    return value.upper() if isinstance(value, str) else None


def _quantity(entry: dict) -> int:
    # A category line without a quantity stands for one ticket
    quantity = entry.get("quantity")
    if quantity is None:
        return 1
    try:
        return max(int(quantity), 0)
    except (TypeError, ValueError):
        logger.warning(f"Invalid participant quantity {quantity!r}, counting 1")
        return 1


def extract_participants(
    categories: Optional[Iterable[dict]],
    fallback_total: Optional[int] = None
) -> ParticipantCounts:
    """
    Sum quantities into adult/child/infant buckets.

    Unknown or missing ticket categories count as adults so occupancy is
    never undercounted. When the breakdown yields nobody, the total falls
    back to the upstream total participants field, then to 1. In that case
    the buckets keep what the breakdown said (usually all zero) and only the
    total carries the fallback, so adults + children + infants can be less
    than total. Consumers sizing occupancy read total.
    """
    adults = children = infants = 0

    for entry in categories or []:
        if not isinstance(entry, dict):
            continue
        category = _ticket_category(entry)
        quantity = _quantity(entry)

        if category == ADULT:
            adults += quantity
        elif category == CHILD:
            children += quantity
        elif category == INFANT:
            infants += quantity
        else:
            logger.warning(f"Unknown ticket category: {category}, treating as adult")
            adults += quantity

    total = adults + children + infants
    if not total:
        try:
            total = int(fallback_total) if fallback_total else 0
        except (TypeError, ValueError):
            total = 0
        total = total or 1

    return ParticipantCounts(adults, children, infants, total)
