"""Tests for the split calculator."""

import random
from decimal import Decimal

import pytest

from groupledger.ledger.splits import (
    apply_remainder_fix,
    equal_split,
    exclude_members,
    normalize_splits,
    percentage_split,
    share_split,
    unequal_split,
)
from groupledger.models.ledger import ExpenseSplit, SplitType
from groupledger.money import EPSILON


def _amounts(splits):
    return [s.owed_amount for s in splits]


def _total(splits):
    return sum(_amounts(splits), Decimal("0"))


class TestEqualSplit:
    """Equal split puts the remainder on the last member."""

    def test_hundred_over_three(self):
        splits = equal_split(100, ["a", "b", "c"])
        assert _amounts(splits) == [Decimal("33.33"), Decimal("33.33"), Decimal("33.34")]
        assert _total(splits) == Decimal("100.00")

    def test_single_member_gets_everything(self):
        splits = equal_split("57.21", ["a"])
        assert _amounts(splits) == [Decimal("57.21")]

    def test_no_members(self):
        assert equal_split(100, []) == []

    def test_preserves_member_order(self):
        splits = equal_split(10, ["z", "y", "x"])
        assert [s.user_id for s in splits] == ["z", "y", "x"]

    def test_sum_is_exact_for_random_amounts(self):
        """Any amount over any member count sums exactly to the cent."""
        rng = random.Random(1234)
        for _ in range(500):
            amount = Decimal(rng.randint(1, 10_000_000)) / 100
            members = [f"m{i}" for i in range(rng.randint(1, 12))]
            splits = equal_split(amount, members)
            assert len(splits) == len(members)
            assert _total(splits) == amount


class TestUnequalSplit:

    def test_pass_through_with_rounding(self):
        splits = unequal_split(100, {"a": "10.005", "b": 89.99})
        assert _amounts(splits) == [Decimal("10.01"), Decimal("89.99")]

    def test_no_normalization(self):
        """A mismatched total is left for the validator."""
        splits = unequal_split(100, {"a": 40, "b": 50})
        assert _total(splits) == Decimal("90.00")


class TestPercentageSplit:

    def test_percentage_scenario(self):
        splits = percentage_split("333.33", {"A": 40, "B": 35, "C": 25})
        assert _amounts(splits) == [Decimal("133.33"), Decimal("116.67"), Decimal("83.33")]
        assert abs(_total(splits) - Decimal("333.33")) <= EPSILON

        fixed = apply_remainder_fix("333.33", splits)
        assert _total(fixed) == Decimal("333.33")

    def test_drift_is_not_self_corrected(self):
        splits = percentage_split(10, {"a": "33.33", "b": "33.33", "c": "33.34"})
        assert _total(splits) == Decimal("9.99")

    def test_normalize_applies_remainder_fix(self):
        splits = normalize_splits(
            SplitType.PERCENTAGE,
            10,
            percentages={"a": "33.33", "b": "33.33", "c": "33.34"},
        )
        assert _amounts(splits) == [Decimal("3.33"), Decimal("3.33"), Decimal("3.34")]

    def test_normalize_can_skip_fix(self):
        splits = normalize_splits(
            SplitType.PERCENTAGE,
            10,
            percentages={"a": "33.33", "b": "33.33", "c": "33.34"},
            fix_remainder=False,
        )
        assert _total(splits) == Decimal("9.99")

    def test_bad_percentages_are_not_papered_over(self):
        """Percentages totalling 90 are far beyond rounding drift."""
        splits = normalize_splits(
            SplitType.PERCENTAGE,
            100,
            percentages={"a": 50, "b": 40},
        )
        assert _total(splits) == Decimal("90.00")


class TestShareSplit:

    def test_share_ratio(self):
        splits = share_split(100, {"a": 1, "b": 2})
        assert _amounts(splits) == [Decimal("33.33"), Decimal("66.67")]

    def test_zero_total_shares(self):
        assert share_split(100, {"a": 0, "b": 0}) == []

    def test_normalized_shares_sum_exactly(self):
        rng = random.Random(99)
        for _ in range(300):
            amount = Decimal(rng.randint(1, 1_000_000)) / 100
            shares = {f"m{i}": rng.randint(1, 7) for i in range(rng.randint(1, 8))}
            splits = normalize_splits(SplitType.SHARES, amount, shares=shares)
            assert _total(splits) == amount


class TestRemainderFix:

    def test_residual_goes_to_last_by_default(self):
        splits = [
            ExpenseSplit(user_id="a", owed_amount="3.33"),
            ExpenseSplit(user_id="b", owed_amount="3.33"),
            ExpenseSplit(user_id="c", owed_amount="3.33"),
        ]
        fixed = apply_remainder_fix(10, splits)
        assert _amounts(fixed) == [Decimal("3.33"), Decimal("3.33"), Decimal("3.34")]

    def test_residual_to_named_member(self):
        splits = [
            ExpenseSplit(user_id="a", owed_amount="3.33"),
            ExpenseSplit(user_id="b", owed_amount="3.33"),
            ExpenseSplit(user_id="c", owed_amount="3.33"),
        ]
        fixed = apply_remainder_fix(10, splits, member_id="a")
        assert _amounts(fixed) == [Decimal("3.34"), Decimal("3.33"), Decimal("3.33")]

    def test_input_untouched(self):
        splits = [ExpenseSplit(user_id="a", owed_amount="9.99")]
        apply_remainder_fix(10, splits)
        assert splits[0].owed_amount == Decimal("9.99")

    def test_negative_residual(self):
        splits = [
            ExpenseSplit(user_id="a", owed_amount="5.01"),
            ExpenseSplit(user_id="b", owed_amount="5.00"),
        ]
        fixed = apply_remainder_fix(10, splits)
        assert _amounts(fixed) == [Decimal("5.01"), Decimal("4.99")]

    def test_unknown_member(self):
        splits = [ExpenseSplit(user_id="a", owed_amount="9.99")]
        with pytest.raises(ValueError):
            apply_remainder_fix(10, splits, member_id="zed")

    def test_empty(self):
        assert apply_remainder_fix(10, []) == []


class TestNormalizeSplits:

    def test_excluded_members_do_not_share(self):
        splits = normalize_splits(
            SplitType.EQUAL,
            90,
            member_ids=["a", "b", "c"],
            excluded_ids=["c"],
        )
        assert [(s.user_id, s.owed_amount) for s in splits] == [
            ("a", Decimal("45.00")),
            ("b", Decimal("45.00")),
        ]

    def test_excluded_from_shares(self):
        splits = normalize_splits(
            SplitType.SHARES,
            100,
            shares={"a": 1, "b": 1, "c": 2},
            excluded_ids=["c"],
        )
        assert _amounts(splits) == [Decimal("50.00"), Decimal("50.00")]

    def test_accepts_string_split_type(self):
        splits = normalize_splits("equal", 10, member_ids=["a", "b"])
        assert _total(splits) == Decimal("10.00")

    @pytest.mark.parametrize("split_type", list(SplitType))
    def test_missing_configuration_raises(self, split_type):
        with pytest.raises(ValueError):
            normalize_splits(split_type, 100)

    def test_exclude_members_helper(self):
        splits = equal_split(30, ["a", "b", "c"])
        assert [s.user_id for s in exclude_members(splits, ["b"])] == ["a", "c"]
