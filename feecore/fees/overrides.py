"""Manual fee overrides.

Overrides are space-scoped: each record is keyed by (structure, discipline,
space) and may carry a design value, a construction-support value, or both.
There is no override for the discipline-aggregate row.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Iterator

from feecore.hierarchy.models import ManualFeeOverride, Phase

logger = logging.getLogger(__name__)

OverrideKey = tuple[str, str, str]


def parse_input_value(text: str | float | int | None) -> float | None:
    """Parse a user-entered fee. Anything that is not a finite number is None."""
    if text is None:
        return None
    if isinstance(text, (int, float)):
        value = float(text)
    else:
        stripped = str(text).strip().replace(",", "")
        if not stripped:
            return None
        try:
            value = float(stripped)
        except ValueError:
            return None
    if not math.isfinite(value):
        return None
    return value


def format_input_value(value: float | None) -> str:
    if value is None:
        return ""
    if float(value).is_integer():
        return str(int(value))
    return str(value)


class OverrideBook:
    """Holds every manual override of a proposal."""

    def __init__(self, overrides: Iterable[ManualFeeOverride] = ()) -> None:
        self._records: dict[OverrideKey, ManualFeeOverride] = {}
        for o in overrides:
            if not o.is_empty():
                self._records[o.key] = o

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[ManualFeeOverride]:
        return iter(list(self._records.values()))

    def get(self, structure_id: str, discipline: str, space_id: str) -> ManualFeeOverride | None:
        return self._records.get((structure_id, discipline, space_id))

    def set(
        self,
        structure_id: str,
        discipline: str,
        space_id: str,
        kind: Phase | str,
        value: float | None,
    ) -> ManualFeeOverride | None:
        """Set or clear one field. Returns the record, or None once it is empty."""
        kind = Phase(kind)
        key = (structure_id, discipline, space_id)
        record = self._records.get(key)
        if record is None:
            if value is None:
                return None
            record = ManualFeeOverride(structure_id, discipline, space_id)
            self._records[key] = record

        if kind == Phase.DESIGN:
            record.design_fee = value
        else:
            record.construction_support_fee = value

        if record.is_empty():
            del self._records[key]
            logger.debug("Override cleared: %s", key)
            return None
        logger.debug("Override set: %s %s=%s", key, kind.value, value)
        return record

    def reset(self, structure_id: str, discipline: str, space_id: str) -> bool:
        """Drop the record so both fields revert to calculated values."""
        return self._records.pop((structure_id, discipline, space_id), None) is not None

    def effective(
        self,
        structure_id: str,
        discipline: str,
        space_id: str,
        kind: Phase | str,
        calculated: float,
    ) -> float:
        record = self.get(structure_id, discipline, space_id)
        if record is None:
            return calculated
        value = record.value_for(Phase(kind))
        return calculated if value is None else value

    def has_value(self, structure_id: str, discipline: str, space_ids: Iterable[str], kind: Phase) -> bool:
        for space_id in space_ids:
            record = self.get(structure_id, discipline, space_id)
            if record is not None and record.value_for(kind) is not None:
                return True
        return False

    # -- cascades ----------------------------------------------------------

    def _drop(self, predicate) -> int:
        doomed = [k for k, o in self._records.items() if predicate(o)]
        for k in doomed:
            del self._records[k]
        return len(doomed)

    def remove_structure(self, structure_id: str) -> int:
        return self._drop(lambda o: o.structure_id == structure_id)

    def remove_space(self, space_id: str) -> int:
        return self._drop(lambda o: o.space_id == space_id)

    def remove_fee(self, space_id: str, discipline: str) -> int:
        return self._drop(lambda o: o.space_id == space_id and o.discipline == discipline)
