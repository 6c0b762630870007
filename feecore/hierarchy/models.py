"""Data models for the structure hierarchy and fee line items."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import Enum


def new_id() -> str:
    """Fresh unique identifier for any hierarchy entity."""
    return str(uuid.uuid4())


# ── Enums ────────────────────────────────────────────────────────────


class Phase(str, Enum):
    """Fee-bearing stage of a proposal."""

    DESIGN = "design"
    CONSTRUCTION = "construction"


class FeeItemType(str, Enum):
    """How a line item is grouped in the fee tables."""

    RESCHECK = "rescheck"
    NESTED = "nested"  # rolls up under parent_discipline
    MULTI = "multi"  # stands alone
    DISCIPLINE = "discipline"  # is itself a discipline header
    ADDITIONAL_SERVICE = "additional_service"


class LevelDirection(str, Enum):
    UP = "up"
    DOWN = "down"


class DuplicateDirection(str, Enum):
    SAME = "same"
    UP = "up"
    DOWN = "down"


# ── Hierarchy ────────────────────────────────────────────────────────


@dataclass
class Fee:
    """Construction-cost figure for one discipline of a space."""
    id: str
    discipline: str
    total_fee: float = 0.0  # construction cost basis
    is_active: bool = True
    cost_per_sqft: float = 0.0


@dataclass
class Space:
    """A space on a level, carrying one Fee per discipline."""
    id: str
    name: str
    floor_area: float = 0.0
    building_type_id: str = ""
    split_fees: bool = False
    fees: list[Fee] = field(default_factory=list)
    description: str = ""
    building_type: str = ""
    space_type: str = ""
    project_construction_type_id: int | None = None

    def fee_for(self, discipline: str) -> Fee | None:
        for fee in self.fees:
            if fee.discipline == discipline:
                return fee
        return None


@dataclass
class Level:
    """A level of a structure, named ``Level {n}``."""
    id: str
    name: str
    floor_area: float = 0.0
    description: str = ""
    spaces: list[Space] = field(default_factory=list)


@dataclass
class TrackedService:
    """A standard engineering service included (or not) on a structure."""
    service_id: str
    service_name: str
    discipline: str
    phase: Phase = Phase.DESIGN
    is_included: bool = True


@dataclass
class Structure:
    """A building. ``parent_id`` set means it is a duplicate of that original."""
    id: str
    description: str = ""
    construction_type: str = ""
    floor_area: float = 0.0
    parent_id: str | None = None
    design_fee_rate: float = 80.0
    construction_support_enabled: bool = True
    levels: list[Level] = field(default_factory=list)
    space_type: str = ""
    discipline: str = ""
    hvac_system: str = ""
    tracked_services: list[TrackedService] = field(default_factory=list)
    duplicate_number: int = 0  # 1-based among siblings; 0 for originals

    @property
    def is_duplicate(self) -> bool:
        return self.parent_id is not None

    def iter_spaces(self):
        """Yield (level, space) pairs in level order."""
        for level in self.levels:
            for space in level.spaces:
                yield level, space


# ── Fee line items and overrides ─────────────────────────────────────


@dataclass
class FeeItem:
    """An additional or linked service line item."""
    id: str
    name: str
    phase: Phase = Phase.DESIGN
    type: FeeItemType = FeeItemType.MULTI
    description: str = ""
    default_min_value: float = 0.0
    discipline: str | None = None
    parent_discipline: str | None = None
    structure_id: str | None = None
    level_id: str | None = None
    space_id: str | None = None


@dataclass
class ManualFeeOverride:
    """User-entered fee values for one (structure, discipline, space)."""
    structure_id: str
    discipline: str
    space_id: str
    design_fee: float | None = None
    construction_support_fee: float | None = None

    @property
    def key(self) -> tuple[str, str, str]:
        return (self.structure_id, self.discipline, self.space_id)

    def is_empty(self) -> bool:
        return self.design_fee is None and self.construction_support_fee is None

    def value_for(self, kind: Phase) -> float | None:
        if kind == Phase.DESIGN:
            return self.design_fee
        return self.construction_support_fee
