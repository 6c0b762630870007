"""Fee computation engine.

Pure functions: take a structure and the reference tables, return figures.
No mutation of the hierarchy.

Rates are percents throughout: a 10% prime rate with a 50% mechanical
fraction and a 0.9 duplicate multiplier gives a 4.5% rate, and the fee is
``cost × rate / 100``.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable
from dataclasses import dataclass, field

from feecore.fees.duplicates import duplicate_rate
from feecore.fees.overrides import OverrideBook
from feecore.fees.schedule import (
    TOTAL_DISCIPLINE,
    discipline_fraction,
    is_aggregate_discipline,
    lookup_scale,
    sort_scale,
)
from feecore.hierarchy.models import FeeItem, Phase, Space, Structure
from feecore.reference.models import DuplicateRateRow, FeeScaleRow

logger = logging.getLogger(__name__)


@dataclass
class RateTables:
    """The two reference tables every fee depends on."""
    fee_scale: list[FeeScaleRow] = field(default_factory=list)
    duplicate_rates: list[DuplicateRateRow] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.fee_scale = sort_scale(self.fee_scale)


@dataclass
class DisciplineTotal:
    """One row of a structure's discipline table."""
    discipline: str
    construction_cost: float
    rate: float
    design_fee: float
    construction_support_fee: float
    space_ids: list[str] = field(default_factory=list)
    overridden: bool = False


@dataclass
class StructureSummary:
    structure_id: str
    description: str
    construction_cost: float
    design_fee: float
    construction_support_fee: float


@dataclass
class ProjectSummary:
    structures: list[StructureSummary] = field(default_factory=list)
    design_items_total: float = 0.0
    construction_items_total: float = 0.0
    total_design_fee: float = 0.0
    total_construction_support_fee: float = 0.0

    @property
    def grand_total(self) -> float:
        return self.total_design_fee + self.total_construction_support_fee


# ---------------------------------------------------------------------------
# Rates
# ---------------------------------------------------------------------------

def discipline_fee(
    cost: float,
    discipline: str,
    structure: Structure,
    tables: RateTables,
) -> tuple[float, float]:
    """Design fee and rate (percent) for ``cost`` of one discipline.

    ``"total"`` or a numeric discipline key uses the prime rate unscaled.
    An empty schedule yields a zero rate.
    """
    if cost is None or not math.isfinite(cost):
        cost = 0.0
    row = lookup_scale(tables.fee_scale, cost)
    if row is None:
        return 0.0, 0.0

    if is_aggregate_discipline(discipline):
        fraction = 100.0
    else:
        fraction = discipline_fraction(row, discipline)

    multiplier = duplicate_rate(tables.duplicate_rates, structure)
    rate = row.prime_consultant_fee * (fraction / 100.0) * multiplier
    return cost * rate / 100.0, rate


def construction_support_fee(design_fee: float, structure: Structure) -> float:
    """Construction-phase share of a design fee; zero when support is off."""
    if not structure.construction_support_enabled:
        return 0.0
    return design_fee * (100.0 - structure.design_fee_rate) / 100.0


def space_fee(
    structure: Structure,
    space: Space,
    discipline: str,
    tables: RateTables,
    kind: Phase = Phase.DESIGN,
    overrides: OverrideBook | None = None,
) -> float:
    """Effective per-space fee: the override when present, else calculated.

    Inactive or missing fees calculate to 0.
    """
    fee = space.fee_for(discipline)
    calculated = 0.0
    if fee is not None and fee.is_active:
        calculated, _ = discipline_fee(fee.total_fee, discipline, structure, tables)
        if kind == Phase.CONSTRUCTION:
            calculated = construction_support_fee(calculated, structure)
    if overrides is None:
        return calculated
    return overrides.effective(structure.id, discipline, space.id, kind, calculated)


def space_design_fee(
    structure: Structure,
    space: Space,
    discipline: str,
    tables: RateTables,
    overrides: OverrideBook | None = None,
) -> float:
    return space_fee(structure, space, discipline, tables, Phase.DESIGN, overrides)


# ---------------------------------------------------------------------------
# Structure figures
# ---------------------------------------------------------------------------

def structure_floor_area(structure: Structure) -> float:
    return sum(space.floor_area for _, space in structure.iter_spaces())


def level_floor_area(structure: Structure, level_id: str) -> float:
    for level in structure.levels:
        if level.id == level_id:
            return sum(space.floor_area for space in level.spaces)
    return 0.0


def structure_construction_cost(structure: Structure) -> float:
    """Sum of every active fee's cost basis."""
    return sum(
        fee.total_fee
        for _, space in structure.iter_spaces()
        for fee in space.fees
        if fee.is_active
    )


def construction_costs(structure: Structure) -> dict[str, float]:
    """Active construction cost by discipline, plus a ``"Total"`` entry."""
    costs: dict[str, float] = {}
    for _, space in structure.iter_spaces():
        for fee in space.fees:
            if fee.is_active:
                costs[fee.discipline] = costs.get(fee.discipline, 0.0) + fee.total_fee
    costs["Total"] = sum(costs.values())
    return costs


def aggregate_design_fee(structure: Structure, tables: RateTables) -> tuple[float, float]:
    """Structure-level fee at the prime rate on the total construction cost."""
    return discipline_fee(structure_construction_cost(structure), TOTAL_DISCIPLINE, structure, tables)


def discipline_totals(
    structure: Structure,
    tables: RateTables,
    overrides: OverrideBook | None = None,
) -> list[DisciplineTotal]:
    """Group active fees by discipline and price each group once.

    The schedule is non-linear in cost, so the fee is computed on the summed
    cost of the group rather than summed over per-space fees. When any space
    in a group carries an override for a phase, that phase's value becomes
    the sum of the effective per-space values instead.
    """
    groups: dict[str, list[tuple[Space, float]]] = {}
    for _, space in structure.iter_spaces():
        for fee in space.fees:
            if fee.is_active:
                groups.setdefault(fee.discipline, []).append((space, fee.total_fee))

    rows = []
    for discipline, members in groups.items():
        cost = sum(c for _, c in members)
        design, rate = discipline_fee(cost, discipline, structure, tables)
        support = construction_support_fee(design, structure)
        space_ids = [s.id for s, _ in members]
        overridden = False

        if overrides is not None:
            if overrides.has_value(structure.id, discipline, space_ids, Phase.DESIGN):
                design = sum(
                    space_fee(structure, s, discipline, tables, Phase.DESIGN, overrides)
                    for s, _ in members
                )
                overridden = True
            if overrides.has_value(structure.id, discipline, space_ids, Phase.CONSTRUCTION):
                support = sum(
                    space_fee(structure, s, discipline, tables, Phase.CONSTRUCTION, overrides)
                    for s, _ in members
                )
                overridden = True
            if not structure.construction_support_enabled:
                support = 0.0

        rows.append(DisciplineTotal(discipline, cost, rate, design, support, space_ids, overridden))
    return rows


def phase_items_total(items: Iterable[FeeItem], phase: Phase) -> float:
    return sum(item.default_min_value for item in items if item.phase == phase)


def total_design_fee(
    structure: Structure,
    tables: RateTables,
    fee_items: Iterable[FeeItem] = (),
    overrides: OverrideBook | None = None,
) -> float:
    """Sum of every active fee's design fee plus all design-phase line items.

    Line items are proposal-global, so they count toward every structure.
    """
    total = 0.0
    for _, space in structure.iter_spaces():
        for fee in space.fees:
            if not fee.is_active:
                continue
            total += space_fee(structure, space, fee.discipline, tables, Phase.DESIGN, overrides)
    return total + phase_items_total(fee_items, Phase.DESIGN)


def total_construction_support_fee(
    structure: Structure,
    tables: RateTables,
    overrides: OverrideBook | None = None,
) -> float:
    if not structure.construction_support_enabled:
        return 0.0
    return sum(row.construction_support_fee for row in discipline_totals(structure, tables, overrides))


def project_summary(
    structures: Iterable[Structure],
    tables: RateTables,
    fee_items: Iterable[FeeItem] = (),
    overrides: OverrideBook | None = None,
) -> ProjectSummary:
    """Per-structure and proposal-wide design / construction totals.

    Design-phase line items are added once to the proposal total rather
    than once per structure.
    """
    items = list(fee_items)
    summary = ProjectSummary(
        design_items_total=phase_items_total(items, Phase.DESIGN),
        construction_items_total=phase_items_total(items, Phase.CONSTRUCTION),
    )
    for structure in structures:
        design = total_design_fee(structure, tables, (), overrides)
        support = total_construction_support_fee(structure, tables, overrides)
        summary.structures.append(
            StructureSummary(
                structure_id=structure.id,
                description=structure.description,
                construction_cost=structure_construction_cost(structure),
                design_fee=design,
                construction_support_fee=support,
            )
        )
        summary.total_design_fee += design
        summary.total_construction_support_fee += support

    summary.total_design_fee += summary.design_items_total
    summary.total_construction_support_fee += summary.construction_items_total
    return summary
