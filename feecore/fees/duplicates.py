"""Duplicate-structure discount curve."""

from __future__ import annotations

from collections.abc import Sequence

from feecore.config import settings
from feecore.hierarchy.models import Structure
from feecore.reference.models import DuplicateRateRow

DEFAULT_RATE = 1.0


def rate_for_ordinal(table: Sequence[DuplicateRateRow], ordinal: int) -> float:
    for row in table:
        if row.ordinal == ordinal:
            return row.rate
    return DEFAULT_RATE


def duplicate_ordinal(duplicate_number: int, max_ordinal: int | None = None) -> int:
    """Ordinal of the n-th duplicate. Ordinal 1 is the original itself."""
    cap = max_ordinal if max_ordinal is not None else settings.max_duplicate_ordinal
    return min(duplicate_number + 1, cap)


def duplicate_rate(table: Sequence[DuplicateRateRow], structure: Structure) -> float:
    """Fee multiplier for ``structure``.

    Originals use ordinal 1. A duplicate uses the ordinal after its
    duplicate number, capped at ordinal 10. Missing ordinals
    default to 1.0.
    """
    if structure.parent_id is None:
        return rate_for_ordinal(table, 1)
    return rate_for_ordinal(table, duplicate_ordinal(structure.duplicate_number))
