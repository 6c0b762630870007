"""Load the rate tables from the reference API or from a YAML file.

The YAML form mirrors the API payloads and is used for offline work and
fixtures::

    fee_scale:
      - {construction_cost: 0, prime_consultant_fee: 10, fraction_of_prime_rate_mechanical: 50}
    duplicate_rates:
      - {ordinal: 1, rate: 1.0}
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml
from pydantic import ValidationError

from feecore.exceptions import ReferenceDataError
from feecore.fees.engine import RateTables
from feecore.reference.client import ReferenceClient
from feecore.reference.models import DuplicateRateRow, FeeScaleRow

logger = logging.getLogger(__name__)


def load_tables(client: ReferenceClient) -> RateTables:
    """Fetch both tables; either may come back empty if the API is down."""
    tables = RateTables(
        fee_scale=client.fetch_fee_scale(),
        duplicate_rates=client.fetch_duplicate_rates(),
    )
    logger.info(
        "Loaded rate tables: %d fee tiers, %d duplicate ordinals",
        len(tables.fee_scale),
        len(tables.duplicate_rates),
    )
    return tables


def load_tables_file(path: str | Path) -> RateTables:
    """Read rate tables from YAML. Unlike the API path, bad input raises."""
    path = Path(path)
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as exc:
        raise ReferenceDataError(str(path), str(exc)) from exc
    try:
        return RateTables(
            fee_scale=[FeeScaleRow.model_validate(r) for r in raw.get("fee_scale", [])],
            duplicate_rates=[DuplicateRateRow.model_validate(r) for r in raw.get("duplicate_rates", [])],
        )
    except (AttributeError, ValidationError) as exc:
        raise ReferenceDataError(str(path), str(exc)) from exc
