"""Shared test fixtures for feecore."""

from __future__ import annotations

import pytest

from feecore.fees.engine import RateTables
from feecore.hierarchy.store import Proposal
from feecore.reference.models import DuplicateRateRow, FeeScaleRow
from feecore.resilience.circuit_breaker import _breakers


@pytest.fixture(autouse=True)
def set_test_env(monkeypatch):
    """Set test environment variables."""
    monkeypatch.setenv("TESTING", "1")
    monkeypatch.setenv("FEECORE_REFERENCE_API_URL", "http://reference.test/api")
    monkeypatch.setenv("FEECORE_REFERENCE_API_TOKEN", "test_fake")


@pytest.fixture(autouse=True)
def reset_breakers():
    """Breakers are process-wide; start every test with none."""
    _breakers.clear()
    yield
    _breakers.clear()


@pytest.fixture
def fee_scale() -> list[FeeScaleRow]:
    return [
        FeeScaleRow(
            construction_cost=0,
            prime_consultant_fee=10.0,
            fraction_of_prime_rate_mechanical=50.0,
            fraction_of_prime_rate_plumbing=40.0,
            fraction_of_prime_rate_electrical=45.0,
            fraction_of_prime_rate_structural=30.0,
        ),
        FeeScaleRow(
            construction_cost=1_000_000,
            prime_consultant_fee=8.0,
            fraction_of_prime_rate_mechanical=45.0,
            fraction_of_prime_rate_plumbing=35.0,
            fraction_of_prime_rate_electrical=40.0,
            fraction_of_prime_rate_structural=25.0,
        ),
    ]


@pytest.fixture
def duplicate_rates() -> list[DuplicateRateRow]:
    return [
        DuplicateRateRow(ordinal=1, rate=1.0),
        DuplicateRateRow(ordinal=2, rate=0.9),
        DuplicateRateRow(ordinal=3, rate=0.8),
    ]


@pytest.fixture
def tables(fee_scale, duplicate_rates) -> RateTables:
    return RateTables(fee_scale=fee_scale, duplicate_rates=duplicate_rates)


@pytest.fixture
def proposal(tables) -> Proposal:
    """An empty proposal priced with the two-tier test schedule."""
    return Proposal(tables=tables)
