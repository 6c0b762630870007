"""Design fee schedule lookups.

The schedule is a list of construction-cost tiers sorted ascending by
``construction_cost``. Each tier gives the prime consultant rate and the
fraction of that rate allotted to the fraction-bearing disciplines.
"""

from __future__ import annotations

import bisect
import logging
from collections.abc import Iterable, Sequence

from feecore.reference.models import FeeScaleRow

logger = logging.getLogger(__name__)

# Discipline token used for the structure-level aggregate fee.
TOTAL_DISCIPLINE = "total"

_FRACTION_FIELDS = {
    "mechanical": "fraction_of_prime_rate_mechanical",
    "plumbing": "fraction_of_prime_rate_plumbing",
    "electrical": "fraction_of_prime_rate_electrical",
    "structural": "fraction_of_prime_rate_structural",
}


def sort_scale(rows: Iterable[FeeScaleRow]) -> list[FeeScaleRow]:
    """Return the schedule ordered by tier floor, lowest first."""
    return sorted(rows, key=lambda r: r.construction_cost)


def lookup_scale(table: Sequence[FeeScaleRow], cost: float) -> FeeScaleRow | None:
    """Select the tier with the greatest floor not exceeding ``cost``.

    ``table`` must be sorted ascending. A cost below the lowest floor falls
    into the lowest tier. Returns None only for an empty table.
    """
    if not table:
        return None
    floors = [row.construction_cost for row in table]
    idx = bisect.bisect_right(floors, cost) - 1
    return table[max(idx, 0)]


def is_aggregate_discipline(discipline: str | int | float) -> bool:
    """True for ``"total"`` and numeric keys, which skip the fraction step."""
    if isinstance(discipline, (int, float)):
        return True
    token = discipline.strip()
    if token.lower() == TOTAL_DISCIPLINE:
        return True
    try:
        float(token)
    except ValueError:
        return False
    return True


def discipline_fraction(row: FeeScaleRow, discipline: str) -> float:
    """Percent of the prime rate allotted to ``discipline``.

    Disciplines without a dedicated column (Civil, Fire Protection, ...)
    take the full prime rate.
    """
    field_name = _FRACTION_FIELDS.get(discipline.strip().lower())
    if field_name is None:
        return 100.0
    return getattr(row, field_name)


def prime_rate(table: Sequence[FeeScaleRow], cost: float) -> float:
    """Prime consultant rate (percent) for ``cost``; 0 when no schedule is loaded."""
    row = lookup_scale(table, cost)
    if row is None:
        logger.debug("Fee schedule empty; prime rate defaults to 0")
        return 0.0
    return row.prime_consultant_fee
