"""Exhaustive split and rounding tests for the split calculator."""

from decimal import ROUND_DOWN, Decimal

import pytest

from splitledger.exceptions import SplitValidationError
from splitledger.models import (
    CustomSplit,
    EqualSplit,
    ItemizedSplit,
    LineItem,
    PercentageSplit,
)
from splitledger.splitter import compute_splits, from_cents, to_cents


def amounts(shares) -> list[Decimal]:
    return [share.amount for share in shares]


def even_custom(total: Decimal, participants: list[int]) -> CustomSplit:
    """Custom amounts that divide total evenly, remainder on the last user."""
    each = (total / len(participants)).quantize(Decimal("0.01"), rounding=ROUND_DOWN)
    values = {u: each for u in participants}
    values[participants[-1]] += total - each * len(participants)
    return CustomSplit(amounts=values)


def even_percentages(participants: list[int]) -> PercentageSplit:
    """Percentages that add up to exactly 100."""
    each = (Decimal(100) / len(participants)).quantize(
        Decimal("0.0001"), rounding=ROUND_DOWN
    )
    values = {u: each for u in participants}
    values[participants[-1]] += Decimal(100) - each * len(participants)
    return PercentageSplit(percentages=values)


def overlapping_items(participants: list[int]) -> tuple[ItemizedSplit, Decimal]:
    """One item per participant, each shared with the next participant."""
    items = []
    for i, user_id in enumerate(participants):
        neighbour = participants[(i + 1) % len(participants)]
        items.append(
            LineItem(
                name=f"item {i}",
                price=Decimal(i + 1) + Decimal("0.33"),
                assignees=[user_id, neighbour],
            )
        )
    policy = ItemizedSplit(items=items, tax=Decimal("1.07"), tip=Decimal("2.50"))
    total = sum((item.price for item in items), Decimal("0")) + Decimal("3.57")
    return policy, total


class TestMoneyConversion:
    """Tests for cent conversion helpers."""

    def test_to_cents_whole_and_fractional(self):
        assert to_cents(Decimal("12.34")) == 1234
        assert to_cents(Decimal("100")) == 10000

    def test_to_cents_rounds_half_up(self):
        assert to_cents(Decimal("0.005")) == 1
        assert to_cents(Decimal("0.0049")) == 0

    def test_from_cents(self):
        assert from_cents(1001) == Decimal("10.01")
        assert str(from_cents(500)) == "5.00"


class TestEqualSplit:
    """Tests for equal splits and remainder handling."""

    def test_ten_dollars_three_ways_sums_exactly(self):
        """10.00 / 3 is not exact, but the shares must still add up."""
        shares = compute_splits(Decimal("10.00"), [1, 2, 3], EqualSplit())

        assert sum(amounts(shares)) == Decimal("10.00")
        assert amounts(shares) == [Decimal("3.34"), Decimal("3.33"), Decimal("3.33")]

    def test_remainder_goes_to_first_participants(self):
        shares = compute_splits(Decimal("0.05"), [7, 8, 9], EqualSplit())

        assert amounts(shares) == [Decimal("0.02"), Decimal("0.02"), Decimal("0.01")]

    def test_is_deterministic(self):
        first = compute_splits(Decimal("100.00"), [3, 1, 2], EqualSplit())
        second = compute_splits(Decimal("100.00"), [3, 1, 2], EqualSplit())

        assert first == second
        assert [s.user_id for s in first] == [3, 1, 2]

    def test_single_participant_owes_everything(self):
        shares = compute_splits(Decimal("42.42"), [5], EqualSplit())

        assert amounts(shares) == [Decimal("42.42")]

    def test_fewer_cents_than_participants(self):
        shares = compute_splits(Decimal("0.01"), [1, 2, 3], EqualSplit())

        assert amounts(shares) == [Decimal("0.01"), Decimal("0"), Decimal("0")]


class TestCustomSplit:
    """Tests for explicit per-participant amounts."""

    def test_exact_amounts_are_kept(self):
        policy = CustomSplit(amounts={1: Decimal("60"), 2: Decimal("40")})

        shares = compute_splits(Decimal("100"), [1, 2], policy)

        assert amounts(shares) == [Decimal("60.00"), Decimal("40.00")]

    def test_rejects_amounts_that_do_not_add_up(self):
        """60 + 30 is 90, not 100."""
        policy = CustomSplit(amounts={1: Decimal("60"), 2: Decimal("30")})

        with pytest.raises(SplitValidationError) as exc_info:
            compute_splits(Decimal("100"), [1, 2], policy)

        assert exc_info.value.expected == Decimal("100")
        assert exc_info.value.actual == Decimal("90")
        assert "difference -10" in str(exc_info.value)

    def test_residual_within_epsilon_goes_to_last(self):
        policy = CustomSplit(
            amounts={1: Decimal("33.33"), 2: Decimal("33.33"), 3: Decimal("33.33")}
        )

        shares = compute_splits(Decimal("100.00"), [1, 2, 3], policy)

        assert amounts(shares) == [Decimal("33.33"), Decimal("33.33"), Decimal("33.34")]

    def test_missing_participant_owes_nothing(self):
        policy = CustomSplit(amounts={1: Decimal("25.00")})

        shares = compute_splits(Decimal("25.00"), [1, 2], policy)

        assert amounts(shares) == [Decimal("25.00"), Decimal("0")]

    def test_rejects_amounts_for_outsiders(self):
        policy = CustomSplit(amounts={1: Decimal("50"), 9: Decimal("50")})

        with pytest.raises(SplitValidationError, match="outside the split"):
            compute_splits(Decimal("100"), [1, 2], policy)

    def test_rejects_negative_amounts(self):
        policy = CustomSplit(amounts={1: Decimal("110"), 2: Decimal("-10")})

        with pytest.raises(SplitValidationError, match="negative"):
            compute_splits(Decimal("100"), [1, 2], policy)

    def test_sub_cent_amounts_are_apportioned(self):
        policy = CustomSplit(
            amounts={1: Decimal("3.335"), 2: Decimal("3.335"), 3: Decimal("3.33")}
        )

        shares = compute_splits(Decimal("10.00"), [1, 2, 3], policy)

        assert amounts(shares) == [Decimal("3.34"), Decimal("3.33"), Decimal("3.33")]


class TestPercentageSplit:
    """Tests for percentage splits."""

    def test_sixty_forty(self):
        policy = PercentageSplit(percentages={1: Decimal("60"), 2: Decimal("40")})

        shares = compute_splits(Decimal("50.00"), [1, 2], policy)

        assert amounts(shares) == [Decimal("30.00"), Decimal("20.00")]

    def test_half_cent_rounding_is_reconciled(self):
        policy = PercentageSplit(percentages={1: Decimal("50"), 2: Decimal("50")})

        shares = compute_splits(Decimal("10.01"), [1, 2], policy)

        assert sum(amounts(shares)) == Decimal("10.01")
        assert amounts(shares) == [Decimal("5.01"), Decimal("5.00")]

    def test_rejects_percentages_not_adding_to_100(self):
        policy = PercentageSplit(percentages={1: Decimal("60"), 2: Decimal("30")})

        with pytest.raises(SplitValidationError) as exc_info:
            compute_splits(Decimal("100"), [1, 2], policy)

        assert exc_info.value.expected == Decimal("100")
        assert exc_info.value.actual == Decimal("90")

    def test_zero_percent_participant_owes_nothing(self):
        policy = PercentageSplit(
            percentages={1: Decimal("33.3333"), 2: Decimal("66.6667"), 3: Decimal("0")}
        )

        shares = compute_splits(Decimal("10.00"), [1, 2, 3], policy)

        assert sum(amounts(shares)) == Decimal("10.00")
        assert shares[2].amount == Decimal("0")

    def test_twenty_half_cent_shares_are_spread(self):
        """5% of 0.50 is 2.5 cents each; ten people pay 3 cents, ten pay 2."""
        participants = list(range(1, 21))
        policy = PercentageSplit(percentages={u: Decimal("5") for u in participants})

        shares = compute_splits(Decimal("0.50"), participants, policy)

        assert amounts(shares) == [Decimal("0.03")] * 10 + [Decimal("0.02")] * 10

    def test_no_participant_absorbs_everyone_elses_rounding(self):
        participants = list(range(1, 21))
        policy = PercentageSplit(percentages={u: Decimal("5") for u in participants})

        shares = compute_splits(Decimal("2.50"), participants, policy)

        assert sum(amounts(shares)) == Decimal("2.50")
        assert amounts(shares) == [Decimal("0.13")] * 10 + [Decimal("0.12")] * 10

    def test_leftover_cent_goes_to_largest_fraction(self):
        policy = PercentageSplit(percentages={1: Decimal("30"), 2: Decimal("70")})

        shares = compute_splits(Decimal("0.05"), [1, 2], policy)

        # 1.5 and 3.5 cents tie, so the first participant gets the cent
        assert amounts(shares) == [Decimal("0.02"), Decimal("0.03")]

    def test_larger_fraction_wins_over_order(self):
        policy = PercentageSplit(percentages={1: Decimal("10"), 2: Decimal("90")})

        shares = compute_splits(Decimal("0.07"), [1, 2], policy)

        assert amounts(shares) == [Decimal("0.01"), Decimal("0.06")]


class TestItemizedSplit:
    """Tests for itemized splits with proportional tax and tip."""

    def test_tax_and_tip_follow_item_subtotals(self):
        """Pizza shared by both, soda for one; tax and tip are 6 in total."""
        policy = ItemizedSplit(
            items=[
                LineItem(name="pizza", price=Decimal("20"), assignees=[1, 2]),
                LineItem(name="soda", price=Decimal("10"), assignees=[1]),
            ],
            tax=Decimal("3"),
            tip=Decimal("3"),
        )

        shares = compute_splits(Decimal("36"), [1, 2], policy)

        assert amounts(shares) == [Decimal("24.00"), Decimal("12.00")]

    def test_participant_without_items_pays_no_tax_or_tip(self):
        policy = ItemizedSplit(
            items=[
                LineItem(name="burger", price=Decimal("12"), assignees=[1]),
                LineItem(name="salad", price=Decimal("8"), assignees=[2]),
            ],
            tax=Decimal("2"),
        )

        shares = compute_splits(Decimal("22"), [1, 2, 3], policy)

        assert amounts(shares) == [Decimal("13.20"), Decimal("8.80"), Decimal("0")]

    def test_three_way_item_is_reconciled(self):
        policy = ItemizedSplit(
            items=[LineItem(name="cake", price=Decimal("10"), assignees=[1, 2, 3])]
        )

        shares = compute_splits(Decimal("10"), [1, 2, 3], policy)

        assert sum(amounts(shares)) == Decimal("10.00")

    def test_duplicate_assignees_count_once(self):
        policy = ItemizedSplit(
            items=[LineItem(name="wine", price=Decimal("30"), assignees=[1, 1, 2])]
        )

        shares = compute_splits(Decimal("30"), [1, 2], policy)

        assert amounts(shares) == [Decimal("15.00"), Decimal("15.00")]

    def test_rejects_total_that_does_not_match_items(self):
        policy = ItemizedSplit(
            items=[LineItem(name="pizza", price=Decimal("20"), assignees=[1, 2])],
            tax=Decimal("2"),
        )

        with pytest.raises(SplitValidationError, match="expected 25"):
            compute_splits(Decimal("25"), [1, 2], policy)

    def test_rejects_unassigned_item(self):
        policy = ItemizedSplit(
            items=[LineItem(name="pizza", price=Decimal("20"), assignees=[])]
        )

        with pytest.raises(SplitValidationError, match="not assigned"):
            compute_splits(Decimal("20"), [1, 2], policy)

    def test_rejects_assignee_outside_split(self):
        policy = ItemizedSplit(
            items=[LineItem(name="pizza", price=Decimal("20"), assignees=[1, 5])]
        )

        with pytest.raises(SplitValidationError, match="outside the split"):
            compute_splits(Decimal("20"), [1, 2], policy)

    def test_rejects_empty_item_list(self):
        with pytest.raises(SplitValidationError, match="at least one item"):
            compute_splits(Decimal("20"), [1, 2], ItemizedSplit())

    def test_twenty_sub_cent_items(self):
        """Twenty 2.5 cent items, one per person, still add up to 0.50."""
        participants = list(range(1, 21))
        policy = ItemizedSplit(
            items=[
                LineItem(name=f"mint {u}", price=Decimal("0.025"), assignees=[u])
                for u in participants
            ]
        )

        shares = compute_splits(Decimal("0.50"), participants, policy)

        assert amounts(shares) == [Decimal("0.03")] * 10 + [Decimal("0.02")] * 10

    def test_zero_subtotal_leaves_tax_undistributed(self):
        """Free items give no weights for tax, so nothing covers the total."""
        policy = ItemizedSplit(
            items=[LineItem(name="water", price=Decimal("0"), assignees=[1, 2])],
            tax=Decimal("1"),
        )

        with pytest.raises(SplitValidationError) as exc_info:
            compute_splits(Decimal("1"), [1, 2], policy)

        assert exc_info.value.actual == Decimal("0")


class TestInputValidation:
    """Tests for rejected inputs common to all policies."""

    def test_rejects_empty_participants(self):
        with pytest.raises(SplitValidationError, match="participant"):
            compute_splits(Decimal("10"), [], EqualSplit())

    @pytest.mark.parametrize("total", [Decimal("0"), Decimal("-5")])
    def test_rejects_non_positive_total(self, total):
        with pytest.raises(SplitValidationError, match="positive"):
            compute_splits(total, [1, 2], EqualSplit())

    def test_rejects_fractional_cents(self):
        with pytest.raises(SplitValidationError, match="whole cents"):
            compute_splits(Decimal("10.005"), [1, 2], EqualSplit())

    def test_rejects_duplicate_participants(self):
        with pytest.raises(SplitValidationError, match="unique"):
            compute_splits(Decimal("10"), [1, 1], EqualSplit())


class TestReconciliation:
    """Every policy must produce shares adding up to the total exactly."""

    @pytest.mark.parametrize("count", range(1, 21))
    @pytest.mark.parametrize(
        "total", [Decimal("0.07"), Decimal("100.01"), Decimal("1234.56")]
    )
    def test_equal(self, count, total):
        participants = list(range(1, count + 1))

        shares = compute_splits(total, participants, EqualSplit())

        assert sum(amounts(shares)) == total
        assert len(shares) == count

    @pytest.mark.parametrize("count", range(1, 21))
    def test_custom(self, count):
        participants = list(range(1, count + 1))
        total = Decimal("987.65")

        shares = compute_splits(total, participants, even_custom(total, participants))

        assert sum(amounts(shares)) == total

    @pytest.mark.parametrize("count", range(1, 21))
    def test_percentage(self, count):
        participants = list(range(1, count + 1))
        total = Decimal("333.33")

        shares = compute_splits(total, participants, even_percentages(participants))

        assert sum(amounts(shares)) == total
        assert all(amount >= 0 for amount in amounts(shares))

    @pytest.mark.parametrize("count", range(1, 21))
    def test_itemized(self, count):
        participants = list(range(1, count + 1))
        policy, total = overlapping_items(participants)

        shares = compute_splits(total, participants, policy)

        assert sum(amounts(shares)) == total
        assert all(amount >= 0 for amount in amounts(shares))
