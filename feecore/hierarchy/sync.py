"""Duplicate-structure synchronization.

A duplicate mirrors its original's levels and spaces but owns independent
ids for them, so every mirrored edit locates its target by *name*: levels
by level name, spaces by space name within that level. Numbering of
duplicates and the derived ``"(Duplicate n)"`` descriptions are
recomputed from the parent's child list in creation order.
"""

from __future__ import annotations

import copy
import logging
import re

from feecore.hierarchy.models import Level, Space, Structure, new_id

logger = logging.getLogger(__name__)

_DUPLICATE_SUFFIX = re.compile(r" \(Duplicate \d+\)$")
_LEVEL_NAME = re.compile(r"^Level (-?\d+)$")


# ---------------------------------------------------------------------------
# Names
# ---------------------------------------------------------------------------

def base_description(description: str) -> str:
    return _DUPLICATE_SUFFIX.sub("", description)


def duplicate_description(base: str, number: int) -> str:
    return f"{base_description(base)} (Duplicate {number})"


def level_name(number: int) -> str:
    return f"Level {number}"


def level_number(name: str) -> int | None:
    """Numeric suffix of ``Level {n}``, or None for a free-form name."""
    m = _LEVEL_NAME.match(name.strip())
    return int(m.group(1)) if m else None


def sort_levels(structure: Structure) -> None:
    """Order levels by number, highest first. Free-form names sink to the bottom."""
    structure.levels.sort(
        key=lambda lv: (level_number(lv.name) is not None, level_number(lv.name) or 0),
        reverse=True,
    )


def find_level_by_name(structure: Structure, name: str) -> Level | None:
    for level in structure.levels:
        if level.name == name:
            return level
    return None


def find_space_by_name(level: Level, name: str) -> Space | None:
    for space in level.spaces:
        if space.name == name:
            return space
    return None


# ---------------------------------------------------------------------------
# Cloning (fresh ids at every depth)
# ---------------------------------------------------------------------------

def clone_space(space: Space) -> Space:
    twin = copy.deepcopy(space)
    twin.id = new_id()
    for fee in twin.fees:
        fee.id = new_id()
    return twin


def clone_level(level: Level, name: str | None = None) -> Level:
    twin = copy.deepcopy(level)
    twin.id = new_id()
    if name is not None:
        twin.name = name
    twin.spaces = [clone_space(s) for s in level.spaces]
    return twin


def clone_structure(structure: Structure, *, description: str, parent_id: str | None) -> Structure:
    twin = copy.deepcopy(structure)
    twin.id = new_id()
    twin.description = description
    twin.parent_id = parent_id
    twin.duplicate_number = 0
    twin.levels = [clone_level(lv) for lv in structure.levels]
    return twin


# ---------------------------------------------------------------------------
# Numbering and settings
# ---------------------------------------------------------------------------

def renumber_duplicates(original: Structure, duplicates: list[Structure]) -> None:
    """Assign 1..n in creation order and regenerate descriptions and settings."""
    base = base_description(original.description)
    for n, dup in enumerate(duplicates, start=1):
        dup.duplicate_number = n
        dup.description = duplicate_description(base, n)
        dup.design_fee_rate = original.design_fee_rate
        dup.construction_support_enabled = original.construction_support_enabled


# ---------------------------------------------------------------------------
# Structural mirroring
# ---------------------------------------------------------------------------

def mirror_level(duplicate: Structure, level: Level) -> Level | None:
    """Copy the original's new ``level`` (with its spaces) onto a duplicate."""
    if find_level_by_name(duplicate, level.name) is not None:
        logger.debug("Duplicate %s already has %s; skipped", duplicate.id, level.name)
        return None
    twin = clone_level(level)
    duplicate.levels.append(twin)
    sort_levels(duplicate)
    return twin


def mirror_delete_level(duplicate: Structure, name: str) -> list[str]:
    """Remove the level called ``name``. Returns the ids of spaces removed with it."""
    level = find_level_by_name(duplicate, name)
    if level is None:
        return []
    duplicate.levels.remove(level)
    return [s.id for s in level.spaces]


def mirror_space(duplicate: Structure, level_name: str, space: Space) -> Space | None:
    level = find_level_by_name(duplicate, level_name)
    if level is None:
        logger.debug("Duplicate %s has no %s; space %r not mirrored", duplicate.id, level_name, space.name)
        return None
    twin = clone_space(space)
    level.spaces.append(twin)
    return twin


def mirror_space_update(duplicate: Structure, level_name: str, old_name: str, space: Space) -> Space | None:
    """Carry an edited space's attributes and fees onto its namesake.

    The duplicate keeps its own space id and, per discipline, its own fee ids.
    """
    level = find_level_by_name(duplicate, level_name)
    target = find_space_by_name(level, old_name) if level is not None else None
    if target is None:
        return None
    old_fee_ids = {fee.discipline: fee.id for fee in target.fees}
    twin = copy.deepcopy(space)
    twin.id = target.id
    for fee in twin.fees:
        fee.id = old_fee_ids.get(fee.discipline) or new_id()
    level.spaces[level.spaces.index(target)] = twin
    return twin


def mirror_delete_space(duplicate: Structure, level_name: str, space_name: str) -> str | None:
    """Remove the namesake space. Returns its id."""
    level = find_level_by_name(duplicate, level_name)
    space = find_space_by_name(level, space_name) if level is not None else None
    if space is None:
        return None
    level.spaces.remove(space)
    return space.id
