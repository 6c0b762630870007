"""In-memory proposal aggregate: the Structure → Level → Space → Fee tree.

``Proposal`` owns every structure of one proposal, keyed by id, with a
secondary ``parent_id → [child ids]`` index so a structure's duplicates are
found without scanning. All mutations go through its command methods;
structural edits on an original are mirrored onto its duplicates by name
(see ``feecore.hierarchy.sync``).

Commands given a stale or unknown id do nothing and return None/False.
"""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Iterable
from typing import Any

from feecore.config import settings
from feecore.exceptions import InvalidDirectionError, SnapshotError, StructureNotFoundError
from feecore.fees import engine
from feecore.fees.engine import RateTables
from feecore.fees.overrides import OverrideBook
from feecore.hierarchy import sync
from feecore.hierarchy.models import (
    DuplicateDirection,
    Fee,
    FeeItem,
    FeeItemType,
    Level,
    LevelDirection,
    ManualFeeOverride,
    Phase,
    Space,
    Structure,
    TrackedService,
    new_id,
)
from feecore.reference.models import StandardService

logger = logging.getLogger(__name__)

DEFAULT_DISCIPLINES = ["Civil", "Structural", "Mechanical", "Plumbing", "Electrical"]

DEFAULT_COST_PER_SQFT = {
    "Mechanical": 46.95,
    "Plumbing": 31.3,
    "Electrical": 37.56,
}

_SPACE_FIELDS = (
    "name",
    "floor_area",
    "building_type_id",
    "split_fees",
    "description",
    "building_type",
    "space_type",
    "project_construction_type_id",
)


def default_fees(floor_area: float) -> list[Fee]:
    """One active fee per default discipline, priced from the default unit costs."""
    return [
        Fee(
            id=new_id(),
            discipline=d,
            total_fee=DEFAULT_COST_PER_SQFT.get(d, 0.0) * floor_area,
            is_active=True,
            cost_per_sqft=DEFAULT_COST_PER_SQFT.get(d, 0.0),
        )
        for d in DEFAULT_DISCIPLINES
    ]


def _price_fees(space: Space) -> None:
    for fee in space.fees:
        fee.total_fee = fee.cost_per_sqft * space.floor_area


def _coerce(enum_cls, value):
    try:
        return enum_cls(value)
    except ValueError:
        raise InvalidDirectionError(value, tuple(m.value for m in enum_cls)) from None


class Proposal:
    """The single owned document a user session edits."""

    def __init__(
        self,
        tables: RateTables | None = None,
        standard_services: Iterable[StandardService] = (),
        resolver=None,
    ) -> None:
        self.tables = tables or RateTables()
        self.standard_services = list(standard_services)
        self.resolver = resolver
        self.fee_items: list[FeeItem] = []
        self.overrides = OverrideBook()
        self._structures: dict[str, Structure] = {}
        self._children: dict[str, list[str]] = {}

    # ---------------------------------------------------------------------------
    # Lookups
    # ---------------------------------------------------------------------------

    @property
    def structures(self) -> list[Structure]:
        """All structures in creation order."""
        return list(self._structures.values())

    def get_structure(self, structure_id: str, strict: bool = False) -> Structure | None:
        structure = self._structures.get(structure_id)
        if structure is None and strict:
            raise StructureNotFoundError(structure_id)
        return structure

    def duplicates_of(self, structure_id: str) -> list[Structure]:
        return [self._structures[c] for c in self._children.get(structure_id, [])]

    def duplicate_number(self, structure_id: str) -> int:
        structure = self._structures.get(structure_id)
        return structure.duplicate_number if structure else 0

    def find_level(self, structure_id: str, level_id: str) -> Level | None:
        structure = self._structures.get(structure_id)
        if structure is None:
            return None
        for level in structure.levels:
            if level.id == level_id:
                return level
        return None

    def find_space(self, structure_id: str, space_id: str) -> tuple[Level, Space] | None:
        structure = self._structures.get(structure_id)
        if structure is None:
            return None
        for level, space in structure.iter_spaces():
            if space.id == space_id:
                return level, space
        return None

    def find_fee(self, fee_id: str) -> tuple[Structure, Space, Fee] | None:
        for structure in self._structures.values():
            for _, space in structure.iter_spaces():
                for fee in space.fees:
                    if fee.id == fee_id:
                        return structure, space, fee
        return None

    def _editable(self, structure_id: str, action: str) -> Structure | None:
        """The structure if the user may edit it directly; duplicates only take mirrored edits."""
        structure = self._structures.get(structure_id)
        if structure is None:
            logger.debug("%s: structure %s not found", action, structure_id)
            return None
        if structure.is_duplicate:
            logger.info("%s ignored: %s is a duplicate of %s", action, structure_id, structure.parent_id)
            return None
        return structure

    # ---------------------------------------------------------------------------
    # Structures
    # ---------------------------------------------------------------------------

    def add_structure(
        self,
        description: str = "",
        construction_type: str = "",
        floor_area: float = 0.0,
        **attrs: Any,
    ) -> Structure:
        """Create an original with a single ``Level 0``."""
        structure = Structure(
            id=new_id(),
            description=description,
            construction_type=construction_type,
            floor_area=floor_area,
            design_fee_rate=attrs.pop("design_fee_rate", settings.default_design_fee_rate),
            levels=[Level(id=new_id(), name=sync.level_name(0))],
            tracked_services=self._default_tracked_services(),
            **attrs,
        )
        self._structures[structure.id] = structure
        logger.debug("Structure added: %s %r", structure.id, description)
        return structure

    def _default_tracked_services(self) -> list[TrackedService]:
        return [
            TrackedService(
                service_id=s.id,
                service_name=s.service_name,
                discipline=s.discipline,
                phase=s.phase,
                is_included=True,
            )
            for s in self.standard_services
            if s.default_setting
        ]

    def duplicate_structure(self, structure_id: str) -> Structure | None:
        """Create a duplicate of the original behind ``structure_id``.

        Duplicating a duplicate duplicates its original, so every duplicate
        hangs directly off one original.
        """
        source = self._structures.get(structure_id)
        if source is None:
            return None
        original = self._structures[source.parent_id] if source.is_duplicate else source
        siblings = self._children.setdefault(original.id, [])
        dup = sync.clone_structure(
            original,
            description=sync.duplicate_description(original.description, len(siblings) + 1),
            parent_id=original.id,
        )
        self._structures[dup.id] = dup
        siblings.append(dup.id)
        sync.renumber_duplicates(original, self.duplicates_of(original.id))
        logger.debug("Structure %s duplicated as #%d (%s)", original.id, dup.duplicate_number, dup.id)
        return dup

    def copy_structure(self, structure_id: str) -> Structure | None:
        """Independent copy: fresh ids, no parent, description ``"{desc} (Copy)"``."""
        source = self._structures.get(structure_id)
        if source is None:
            return None
        copied = sync.clone_structure(source, description=f"{source.description} (Copy)", parent_id=None)
        self._structures[copied.id] = copied
        return copied

    def delete_structure(self, structure_id: str) -> list[str]:
        """Delete a structure; an original takes its duplicates with it.

        Returns the ids removed.
        """
        structure = self._structures.get(structure_id)
        if structure is None:
            return []

        if structure.is_duplicate:
            doomed = [structure_id]
            siblings = self._children.get(structure.parent_id, [])
            if structure_id in siblings:
                siblings.remove(structure_id)
            parent = self._structures.get(structure.parent_id)
            if parent is not None:
                sync.renumber_duplicates(parent, self.duplicates_of(parent.id))
        else:
            doomed = [structure_id, *self._children.pop(structure_id, [])]

        for sid in doomed:
            del self._structures[sid]
            self.overrides.remove_structure(sid)
        self.fee_items = [i for i in self.fee_items if i.structure_id not in doomed]
        logger.debug("Structures deleted: %s", doomed)
        return doomed

    def rename_structure(self, structure_id: str, description: str) -> bool:
        structure = self._editable(structure_id, "rename")
        if structure is None:
            return False
        structure.description = description
        sync.renumber_duplicates(structure, self.duplicates_of(structure_id))
        return True

    def set_design_fee_rate(self, structure_id: str, rate: float) -> bool:
        structure = self._editable(structure_id, "set_design_fee_rate")
        if structure is None:
            return False
        structure.design_fee_rate = min(max(float(rate), 0.0), 100.0)
        sync.renumber_duplicates(structure, self.duplicates_of(structure_id))
        return True

    def set_construction_support(self, structure_id: str, enabled: bool) -> bool:
        structure = self._editable(structure_id, "set_construction_support")
        if structure is None:
            return False
        structure.construction_support_enabled = bool(enabled)
        sync.renumber_duplicates(structure, self.duplicates_of(structure_id))
        return True

    def toggle_tracked_service(self, structure_id: str, service_id: str) -> bool | None:
        """Flip a tracked service's inclusion. Returns the new state."""
        structure = self._structures.get(structure_id)
        if structure is None:
            return None
        for tracked in structure.tracked_services:
            if tracked.service_id == service_id:
                tracked.is_included = not tracked.is_included
                return tracked.is_included
        return None

    # ---------------------------------------------------------------------------
    # Levels
    # ---------------------------------------------------------------------------

    def add_level(
        self,
        structure_id: str,
        direction: LevelDirection | str = LevelDirection.UP,
        count: int = 1,
    ) -> list[Level]:
        """Add ``count`` levels above the highest or below the lowest."""
        direction = _coerce(LevelDirection, direction)
        structure = self._editable(structure_id, "add_level")
        if structure is None or count < 1:
            return []

        numbers = [n for n in (sync.level_number(lv.name) for lv in structure.levels) if n is not None]
        if direction == LevelDirection.UP:
            start = max(numbers, default=-1) + 1
            new_numbers = [start + i for i in range(count)]
        else:
            start = min(numbers, default=0) - 1
            new_numbers = [start - i for i in range(count)]

        added = [Level(id=new_id(), name=sync.level_name(n)) for n in new_numbers]
        structure.levels.extend(added)
        sync.sort_levels(structure)

        for dup in self.duplicates_of(structure_id):
            for level in added:
                sync.mirror_level(dup, level)
        logger.debug("Added %s to %s", [lv.name for lv in added], structure_id)
        return added

    def duplicate_level(
        self,
        structure_id: str,
        level_id: str,
        direction: DuplicateDirection | str = DuplicateDirection.SAME,
    ) -> Level | None:
        """Copy a level with its spaces to the adjacent level number.

        ``same`` moves away from ground (n+1 above, n-1 below), ``up`` is
        n+1 and ``down`` is n-1. If that name is taken the search keeps
        stepping the same way until a free number is found.
        """
        direction = _coerce(DuplicateDirection, direction)
        structure = self._editable(structure_id, "duplicate_level")
        level = self.find_level(structure_id, level_id) if structure else None
        if level is None:
            return None
        n = sync.level_number(level.name)
        if n is None:
            logger.debug("duplicate_level: %r has no level number", level.name)
            return None

        if direction == DuplicateDirection.UP:
            step = 1
        elif direction == DuplicateDirection.DOWN:
            step = -1
        else:
            step = 1 if n >= 0 else -1
        taken = {lv.name for lv in structure.levels}
        target = n + step
        while sync.level_name(target) in taken:
            target += step

        new_level = sync.clone_level(level, name=sync.level_name(target))
        structure.levels.append(new_level)
        sync.sort_levels(structure)

        for dup in self.duplicates_of(structure_id):
            sync.mirror_level(dup, new_level)
        return new_level

    def delete_level(self, structure_id: str, level_id: str) -> bool:
        structure = self._editable(structure_id, "delete_level")
        level = self.find_level(structure_id, level_id) if structure else None
        if level is None:
            return False
        structure.levels.remove(level)
        self._cascade_spaces(structure_id, [s.id for s in level.spaces])

        for dup in self.duplicates_of(structure_id):
            self._cascade_spaces(dup.id, sync.mirror_delete_level(dup, level.name))
        return True

    # ---------------------------------------------------------------------------
    # Spaces
    # ---------------------------------------------------------------------------

    def add_space(
        self,
        structure_id: str,
        level_id: str,
        name: str,
        floor_area: float = 0.0,
        fees: Iterable[Fee] | None = None,
        **attrs: Any,
    ) -> Space | None:
        """Add a space; without explicit fees it gets the default disciplines."""
        structure = self._editable(structure_id, "add_space")
        level = self.find_level(structure_id, level_id) if structure else None
        if level is None:
            return None

        if fees is None:
            space_fees = default_fees(floor_area)
        else:
            space_fees = [dataclasses.replace(f, id=new_id()) for f in fees]
        space = Space(id=new_id(), name=name, floor_area=floor_area, fees=space_fees, **attrs)
        _price_fees(space)
        level.spaces.append(space)

        for dup in self.duplicates_of(structure_id):
            sync.mirror_space(dup, level.name, space)
        self._resolve_linked_items(structure_id, level_id, space)
        return space

    def update_space(self, structure_id: str, space_id: str, fees: Iterable[Fee] | None = None, **changes: Any) -> Space | None:
        """Edit a space in place, keeping its id and, per discipline, its fee ids."""
        structure = self._editable(structure_id, "update_space")
        found = self.find_space(structure_id, space_id) if structure else None
        if found is None:
            return None
        level, space = found
        old_name = space.name

        unknown = set(changes) - set(_SPACE_FIELDS)
        if unknown:
            raise TypeError(f"update_space got unexpected fields: {sorted(unknown)}")
        for key, value in changes.items():
            setattr(space, key, value)

        if fees is not None:
            old_ids = {f.discipline: f.id for f in space.fees}
            new_fees = [dataclasses.replace(f, id=old_ids.get(f.discipline) or new_id()) for f in fees]
            kept = {f.discipline for f in new_fees}
            for discipline in old_ids.keys() - kept:
                self.overrides.remove_fee(space.id, discipline)
            space.fees = new_fees
        _price_fees(space)

        for dup in self.duplicates_of(structure_id):
            sync.mirror_space_update(dup, level.name, old_name, space)
        self._resolve_linked_items(structure_id, level.id, space)
        return space

    def delete_space(self, structure_id: str, space_id: str) -> bool:
        structure = self._editable(structure_id, "delete_space")
        found = self.find_space(structure_id, space_id) if structure else None
        if found is None:
            return False
        level, space = found
        level.spaces.remove(space)
        self._cascade_spaces(structure_id, [space.id])

        for dup in self.duplicates_of(structure_id):
            removed = sync.mirror_delete_space(dup, level.name, space.name)
            if removed:
                self._cascade_spaces(dup.id, [removed])
        return True

    def _cascade_spaces(self, structure_id: str, space_ids: list[str]) -> None:
        for space_id in space_ids:
            self.overrides.remove_space(space_id)
        doomed = set(space_ids)
        self.fee_items = [i for i in self.fee_items if i.space_id not in doomed]

    def _resolve_linked_items(self, structure_id: str, level_id: str, space: Space) -> None:
        if self.resolver is None:
            return
        items = self.resolver.resolve(structure_id, level_id, space)
        self.fee_items.extend(items)

    # ---------------------------------------------------------------------------
    # Fee toggles
    # ---------------------------------------------------------------------------

    def toggle_fee(self, structure_id: str, discipline: str, active: bool) -> int:
        """Set ``is_active`` on the discipline's fee in every space of the structure."""
        structure = self._structures.get(structure_id)
        if structure is None:
            return 0
        changed = 0
        for _, space in structure.iter_spaces():
            fee = space.fee_for(discipline)
            if fee is not None:
                fee.is_active = active
                changed += 1
        return changed

    def toggle_space_fee(self, fee_id: str, active: bool) -> bool:
        found = self.find_fee(fee_id)
        if found is None:
            return False
        found[2].is_active = active
        return True

    # ---------------------------------------------------------------------------
    # Line items
    # ---------------------------------------------------------------------------

    def add_fee_item(self, item: FeeItem, section_phase: Phase | str | None = None) -> FeeItem | None:
        """Attach a line item to a phase table. Items from the other phase are skipped."""
        if section_phase is not None and Phase(section_phase) != item.phase:
            logger.debug("Fee item %r (%s) not allowed in %s table", item.name, item.phase.value, section_phase)
            return None
        self.fee_items.append(item)
        return item

    def remove_fee_item(self, item_id: str) -> bool:
        before = len(self.fee_items)
        self.fee_items = [i for i in self.fee_items if i.id != item_id]
        return len(self.fee_items) != before

    def phase_items(self, phase: Phase | str) -> list[FeeItem]:
        phase = Phase(phase)
        return [i for i in self.fee_items if i.phase == phase]

    # ---------------------------------------------------------------------------
    # Overrides
    # ---------------------------------------------------------------------------

    def set_override(
        self,
        structure_id: str,
        discipline: str,
        space_id: str,
        kind: Phase | str,
        value: float | None,
    ) -> ManualFeeOverride | None:
        if self.find_space(structure_id, space_id) is None:
            logger.debug("set_override: space %s not in %s", space_id, structure_id)
            return None
        return self.overrides.set(structure_id, discipline, space_id, kind, value)

    def reset_override(self, structure_id: str, discipline: str, space_id: str) -> bool:
        return self.overrides.reset(structure_id, discipline, space_id)

    def effective_fee(self, structure_id: str, discipline: str, space_id: str, kind: Phase | str) -> float:
        """The override for this space/discipline/phase, else the calculated fee."""
        structure = self._structures.get(structure_id)
        found = self.find_space(structure_id, space_id)
        if structure is None or found is None:
            return 0.0
        return engine.space_fee(structure, found[1], discipline, self.tables, Phase(kind), self.overrides)

    # ---------------------------------------------------------------------------
    # Totals
    # ---------------------------------------------------------------------------

    def total_design_fee(self, structure_id: str) -> float:
        structure = self.get_structure(structure_id, strict=True)
        return engine.total_design_fee(structure, self.tables, self.fee_items, self.overrides)

    def total_construction_support_fee(self, structure_id: str) -> float:
        structure = self.get_structure(structure_id, strict=True)
        return engine.total_construction_support_fee(structure, self.tables, self.overrides)

    def discipline_totals(self, structure_id: str) -> list[engine.DisciplineTotal]:
        structure = self.get_structure(structure_id, strict=True)
        return engine.discipline_totals(structure, self.tables, self.overrides)

    def summary(self) -> engine.ProjectSummary:
        return engine.project_summary(self.structures, self.tables, self.fee_items, self.overrides)

    # ---------------------------------------------------------------------------
    # Snapshot
    # ---------------------------------------------------------------------------

    def snapshot(self) -> dict[str, Any]:
        """Serializable copy of the tree, line items and overrides."""
        return {
            "structures": [dataclasses.asdict(s) for s in self._structures.values()],
            "fee_items": [dataclasses.asdict(i) for i in self.fee_items],
            "overrides": [dataclasses.asdict(o) for o in self.overrides],
        }

    @classmethod
    def from_snapshot(cls, data: dict[str, Any], tables: RateTables | None = None, **kwargs: Any) -> Proposal:
        proposal = cls(tables=tables, **kwargs)
        try:
            for raw in data.get("structures", []):
                structure = _structure_from_dict(raw)
                proposal._structures[structure.id] = structure
            for structure in proposal.structures:
                if structure.parent_id is None:
                    continue
                if structure.parent_id not in proposal._structures:
                    raise SnapshotError(f"duplicate {structure.id} references missing parent {structure.parent_id}")
                proposal._children.setdefault(structure.parent_id, []).append(structure.id)
            for parent_id in proposal._children:
                sync.renumber_duplicates(proposal._structures[parent_id], proposal.duplicates_of(parent_id))
            proposal.fee_items = [_fee_item_from_dict(i) for i in data.get("fee_items", [])]
            proposal.overrides = OverrideBook(ManualFeeOverride(**o) for o in data.get("overrides", []))
        except (KeyError, TypeError, ValueError) as exc:
            raise SnapshotError(str(exc)) from exc
        return proposal


# ---------------------------------------------------------------------------
# Dict → dataclass
# ---------------------------------------------------------------------------

def _space_from_dict(raw: dict[str, Any]) -> Space:
    fees = [Fee(**f) for f in raw.get("fees", [])]
    return Space(**{**raw, "fees": fees})


def _level_from_dict(raw: dict[str, Any]) -> Level:
    return Level(**{**raw, "spaces": [_space_from_dict(s) for s in raw.get("spaces", [])]})


def _structure_from_dict(raw: dict[str, Any]) -> Structure:
    tracked = [
        TrackedService(**{**t, "phase": Phase(t.get("phase", Phase.DESIGN))})
        for t in raw.get("tracked_services", [])
    ]
    structure = Structure(
        **{
            **raw,
            "levels": [_level_from_dict(lv) for lv in raw.get("levels", [])],
            "tracked_services": tracked,
        }
    )
    sync.sort_levels(structure)
    return structure


def _fee_item_from_dict(raw: dict[str, Any]) -> FeeItem:
    return FeeItem(
        **{
            **raw,
            "phase": Phase(raw.get("phase", Phase.DESIGN)),
            "type": FeeItemType(raw.get("type", FeeItemType.MULTI)),
        }
    )
