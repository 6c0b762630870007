"""Tests for fee schedule lookups and the duplicate rate table."""

import pytest

from feecore.fees.duplicates import duplicate_ordinal, duplicate_rate, rate_for_ordinal
from feecore.fees.schedule import (
    discipline_fraction,
    is_aggregate_discipline,
    lookup_scale,
    prime_rate,
    sort_scale,
)
from feecore.hierarchy.models import Structure
from feecore.reference.models import DuplicateRateRow, FeeScaleRow


def _row(cost, prime, mech=0.0):
    return FeeScaleRow(
        construction_cost=cost,
        prime_consultant_fee=prime,
        fraction_of_prime_rate_mechanical=mech,
    )


class TestLookupScale:
    def test_zero_cost_returns_lowest_tier(self, fee_scale):
        assert lookup_scale(fee_scale, 0) is fee_scale[0]

    def test_cost_inside_first_tier(self, fee_scale):
        assert lookup_scale(fee_scale, 999_999.99) is fee_scale[0]

    def test_cost_equal_to_floor_selects_that_tier(self, fee_scale):
        assert lookup_scale(fee_scale, 1_000_000) is fee_scale[1]

    def test_cost_above_last_floor(self, fee_scale):
        assert lookup_scale(fee_scale, 50_000_000) is fee_scale[1]

    def test_cost_below_lowest_floor(self):
        table = [_row(100, 9.0), _row(500, 7.0)]
        assert lookup_scale(table, 10).prime_consultant_fee == 9.0

    def test_empty_table(self):
        assert lookup_scale([], 500_000) is None

    def test_single_row(self):
        table = [_row(0, 6.5)]
        assert lookup_scale(table, 1e9).prime_consultant_fee == 6.5

    def test_many_tiers(self):
        table = [_row(c, p) for c, p in [(0, 12), (250_000, 10), (500_000, 9), (2_000_000, 7)]]
        assert lookup_scale(table, 300_000).prime_consultant_fee == 10
        assert lookup_scale(table, 500_000).prime_consultant_fee == 9
        assert lookup_scale(table, 1_999_999).prime_consultant_fee == 9

    def test_sort_scale_orders_by_floor(self):
        table = sort_scale([_row(1_000_000, 8), _row(0, 10), _row(500_000, 9)])
        assert [r.construction_cost for r in table] == [0, 500_000, 1_000_000]


class TestDisciplineFraction:
    @pytest.mark.parametrize("discipline,expected", [
        ("Mechanical", 50.0),
        ("mechanical", 50.0),
        ("PLUMBING", 40.0),
        ("Electrical", 45.0),
        ("Structural", 30.0),
    ])
    def test_dedicated_columns(self, fee_scale, discipline, expected):
        assert discipline_fraction(fee_scale[0], discipline) == expected

    def test_other_disciplines_take_full_prime_rate(self, fee_scale):
        assert discipline_fraction(fee_scale[0], "Civil") == 100.0
        assert discipline_fraction(fee_scale[0], "Fire Protection") == 100.0


class TestAggregateDiscipline:
    def test_total_token(self):
        assert is_aggregate_discipline("total")
        assert is_aggregate_discipline("Total")

    def test_numeric_keys(self):
        assert is_aggregate_discipline("3")
        assert is_aggregate_discipline(7)

    def test_named_discipline(self):
        assert not is_aggregate_discipline("Mechanical")


class TestPrimeRate:
    def test_rate_from_tier(self, fee_scale):
        assert prime_rate(fee_scale, 2_000_000) == 8.0

    def test_empty_schedule_is_zero(self):
        assert prime_rate([], 2_000_000) == 0.0


class TestDuplicateRate:
    def test_original_uses_ordinal_one(self, duplicate_rates):
        assert duplicate_rate(duplicate_rates, Structure(id="s1")) == 1.0

    def test_original_defaults_when_ordinal_one_missing(self):
        table = [DuplicateRateRow(ordinal=2, rate=0.9)]
        assert duplicate_rate(table, Structure(id="s1")) == 1.0

    def test_first_duplicate_uses_ordinal_two(self, duplicate_rates):
        dup = Structure(id="d1", parent_id="s1", duplicate_number=1)
        assert duplicate_rate(duplicate_rates, dup) == pytest.approx(0.9)

    def test_second_duplicate_uses_ordinal_three(self, duplicate_rates):
        dup = Structure(id="d2", parent_id="s1", duplicate_number=2)
        assert duplicate_rate(duplicate_rates, dup) == pytest.approx(0.8)

    def test_missing_ordinal_defaults_to_one(self, duplicate_rates):
        dup = Structure(id="d5", parent_id="s1", duplicate_number=5)
        assert duplicate_rate(duplicate_rates, dup) == 1.0

    def test_ordinal_capped_at_ten(self):
        assert duplicate_ordinal(9) == 10
        assert duplicate_ordinal(25) == 10
        table = [DuplicateRateRow(ordinal=10, rate=0.5)]
        dup = Structure(id="d", parent_id="s1", duplicate_number=40)
        assert duplicate_rate(table, dup) == 0.5

    def test_rate_for_ordinal_empty_table(self):
        assert rate_for_ordinal([], 1) == 1.0
