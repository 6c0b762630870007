"""Built-in reference tables.

A stock design fee schedule and duplicate discount curve used when the
reference API has none to give (offline work, a fresh database). Seeding
only fills tables that came back empty; loaded rows are never replaced.
"""

from __future__ import annotations

import logging

from feecore.fees.engine import RateTables
from feecore.fees.schedule import sort_scale
from feecore.reference.models import DuplicateRateRow, FeeScaleRow

logger = logging.getLogger(__name__)

# ======================================================================
# Design fee schedule
# ======================================================================

# (tier floor, prime %, mechanical %, plumbing %, electrical %, structural %)
_FEE_SCALE = [
    (0,           10.00, 50.0, 40.0, 45.0, 30.0),
    (250_000,      9.25, 48.0, 38.0, 43.0, 28.0),
    (500_000,      8.75, 47.0, 36.0, 42.0, 27.0),
    (1_000_000,    8.00, 45.0, 35.0, 40.0, 25.0),
    (2_500_000,    7.25, 43.0, 33.0, 38.0, 24.0),
    (5_000_000,    6.75, 42.0, 32.0, 37.0, 23.0),
    (10_000_000,   6.25, 40.0, 30.0, 35.0, 22.0),
    (25_000_000,   5.75, 38.0, 28.0, 33.0, 20.0),
    (50_000_000,   5.25, 36.0, 27.0, 32.0, 19.0),
]

# ======================================================================
# Duplicate structures
# ======================================================================

# Ordinal 1 is the original.
_DUPLICATE_RATES = [
    (1, 1.00),
    (2, 0.90),
    (3, 0.80),
    (4, 0.75),
    (5, 0.70),
    (6, 0.65),
    (7, 0.60),
    (8, 0.55),
    (9, 0.50),
    (10, 0.50),
]


def default_fee_scale() -> list[FeeScaleRow]:
    return sort_scale(
        FeeScaleRow(
            construction_cost=floor,
            prime_consultant_fee=prime,
            fraction_of_prime_rate_mechanical=mech,
            fraction_of_prime_rate_plumbing=plumb,
            fraction_of_prime_rate_electrical=elec,
            fraction_of_prime_rate_structural=struct,
        )
        for floor, prime, mech, plumb, elec, struct in _FEE_SCALE
    )


def default_duplicate_rates() -> list[DuplicateRateRow]:
    return [DuplicateRateRow(ordinal=o, rate=r) for o, r in _DUPLICATE_RATES]


def default_tables() -> RateTables:
    return RateTables(fee_scale=default_fee_scale(), duplicate_rates=default_duplicate_rates())


def seed_if_empty(tables: RateTables) -> RateTables:
    """Fill whichever of the two tables is empty with the built-in rows."""
    if not tables.fee_scale:
        tables.fee_scale = default_fee_scale()
        logger.info("Fee schedule empty; seeded %d built-in tiers", len(tables.fee_scale))
    if not tables.duplicate_rates:
        tables.duplicate_rates = default_duplicate_rates()
        logger.info("Duplicate rates empty; seeded %d built-in ordinals", len(tables.duplicate_rates))
    return tables
