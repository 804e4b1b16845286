"""Core split logic for turning an expense total into per-participant shares."""

import logging
from collections.abc import Sequence
from decimal import ROUND_FLOOR, ROUND_HALF_UP, Decimal

from .exceptions import SplitValidationError
from .models import (
    CustomSplit,
    EqualSplit,
    ItemizedSplit,
    PercentageSplit,
    ShareAmount,
    SplitPolicy,
)

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
RECONCILIATION_EPSILON = Decimal("0.01")
HUNDRED = Decimal("100")


def to_cents(amount: Decimal) -> int:
    """
    Convert Decimal dollars to integer cents.
    Uses ROUND_HALF_UP for consistency.

    Args:
        amount: Dollar amount as Decimal

    Returns:
        Amount in cents (integer)
    """
    cents = Decimal(amount) * 100
    return int(cents.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_cents(cents: int) -> Decimal:
    """Convert integer cents back to a Decimal dollar amount."""
    return (Decimal(cents) / 100).quantize(CENT)


def compute_splits(
    total: Decimal,
    participants: Sequence[int],
    policy: SplitPolicy,
    epsilon: Decimal = RECONCILIATION_EPSILON,
) -> list[ShareAmount]:
    """
    Compute each participant's share of an expense.

    The returned amounts always sum exactly to ``total``. Exact shares are
    floored to cents and the cents lost that way go one at a time to the
    participants with the largest fractional parts, ties broken by
    participant order. If the policy's sum differs from ``total`` by at most
    ``epsilon``, that difference is folded into the last participant that
    can absorb it; anything larger is rejected.

    Args:
        total: Expense total, in whole cents
        participants: Participant ids, in a stable order
        policy: How to divide the total
        epsilon: Allowed difference between the policy's sum and the total

    Returns:
        One share per participant, in participant order

    Raises:
        SplitValidationError: If the inputs or the policy don't reconcile
    """
    total = Decimal(total)
    _validate_inputs(total, participants)
    total_cents = to_cents(total)

    if isinstance(policy, EqualSplit):
        cents = _equal_cents(total_cents, len(participants))
    elif isinstance(policy, CustomSplit):
        cents = _custom_cents(total, participants, policy, epsilon)
    elif isinstance(policy, PercentageSplit):
        cents = _percentage_cents(total, participants, policy, epsilon)
    elif isinstance(policy, ItemizedSplit):
        cents = _itemized_cents(total, participants, policy, epsilon)
    else:
        raise SplitValidationError(f"Unsupported split policy: {policy!r}")

    residual = total_cents - sum(cents)
    if residual != 0:
        _absorb_residual(cents, residual)
        logger.debug(f"Applied rounding adjustment of {residual} cents")

    # Final verification
    assert sum(cents) == total_cents, "Adjustment failed"

    return [
        ShareAmount(user_id=user_id, amount=from_cents(amount))
        for user_id, amount in zip(participants, cents, strict=True)
    ]


def _validate_inputs(total: Decimal, participants: Sequence[int]):
    if not participants:
        raise SplitValidationError("At least one participant is required")
    if len(set(participants)) != len(participants):
        raise SplitValidationError("Participants must be unique")
    if total <= 0:
        raise SplitValidationError(f"Expense total must be positive, got {total}")
    if total != total.quantize(CENT):
        raise SplitValidationError(f"Expense total must be whole cents, got {total}")


def _check_known(keys, participants: Sequence[int], label: str):
    unknown = set(keys) - set(participants)
    if unknown:
        raise SplitValidationError(
            f"{label} given for users outside the split: "
            f"{', '.join(str(u) for u in sorted(unknown))}"
        )


def _equal_cents(total_cents: int, count: int) -> list[int]:
    base, remainder = divmod(total_cents, count)
    return [base + (1 if i < remainder else 0) for i in range(count)]


def _custom_cents(
    total: Decimal,
    participants: Sequence[int],
    policy: CustomSplit,
    epsilon: Decimal,
) -> list[int]:
    _check_known(policy.amounts, participants, "Amounts")
    if any(amount < 0 for amount in policy.amounts.values()):
        raise SplitValidationError("Custom amounts cannot be negative")

    actual = sum(policy.amounts.values(), Decimal("0"))
    if abs(actual - total) > epsilon:
        raise SplitValidationError(
            "Custom amounts must add up to the expense total",
            expected=total,
            actual=actual,
        )

    return _apportion_cents(
        [policy.amounts.get(u, Decimal("0")) for u in participants]
    )


def _percentage_cents(
    total: Decimal,
    participants: Sequence[int],
    policy: PercentageSplit,
    epsilon: Decimal,
) -> list[int]:
    _check_known(policy.percentages, participants, "Percentages")
    if any(pct < 0 for pct in policy.percentages.values()):
        raise SplitValidationError("Percentages cannot be negative")

    actual = sum(policy.percentages.values(), Decimal("0"))
    if abs(actual - HUNDRED) > epsilon:
        raise SplitValidationError(
            "Percentages must add up to 100", expected=HUNDRED, actual=actual
        )

    return _apportion_cents(
        [total * policy.percentages.get(u, Decimal("0")) / HUNDRED for u in participants]
    )


def _itemized_cents(
    total: Decimal,
    participants: Sequence[int],
    policy: ItemizedSplit,
    epsilon: Decimal,
) -> list[int]:
    if not policy.items:
        raise SplitValidationError("Itemized split needs at least one item")
    if policy.tax < 0 or policy.tip < 0:
        raise SplitValidationError("Tax and tip cannot be negative")

    item_subtotals = {u: Decimal("0") for u in participants}
    for item in policy.items:
        if item.price < 0:
            raise SplitValidationError(f"Item '{item.name}' has a negative price")
        assignees = list(dict.fromkeys(item.assignees))
        if not assignees:
            raise SplitValidationError(f"Item '{item.name}' is not assigned to anyone")
        _check_known(assignees, participants, f"Item '{item.name}'")

        per_person = item.price / len(assignees)
        for user_id in assignees:
            item_subtotals[user_id] += per_person

    total_item_subtotal = sum((item.price for item in policy.items), Decimal("0"))
    extra = policy.tax + policy.tip

    # Tax and tip follow each participant's share of the item subtotal.
    # With nothing itemized there is nothing to weight them by.
    shares = {}
    for user_id, subtotal in item_subtotals.items():
        share = subtotal
        if total_item_subtotal > 0:
            share += extra * subtotal / total_item_subtotal
        shares[user_id] = share

    actual = sum(shares.values(), Decimal("0"))
    if abs(actual - total) > epsilon:
        raise SplitValidationError(
            "Items, tax and tip must add up to the expense total",
            expected=total,
            actual=actual.quantize(CENT, rounding=ROUND_HALF_UP),
        )

    return _apportion_cents([shares[u] for u in participants])


def _apportion_cents(shares: list[Decimal]) -> list[int]:
    """
    Round exact shares to cents without losing any of their sum.

    Every share is floored, then the cents needed to reach the rounded sum
    are handed out to the largest fractional parts first.
    """
    exact = [share * 100 for share in shares]
    cents = [int(c.to_integral_value(rounding=ROUND_FLOOR)) for c in exact]
    leftover = to_cents(sum(shares, Decimal("0"))) - sum(cents)

    by_fraction = sorted(range(len(cents)), key=lambda i: (cents[i] - exact[i], i))
    for index in by_fraction[:leftover]:
        cents[index] += 1
    return cents


def _absorb_residual(cents: list[int], residual: int):
    """
    Fold a rounding residual into one share, in place.

    Prefers the last non-zero share so that participants who owe nothing keep
    owing nothing; falls back to the last share that stays non-negative.
    """
    candidates = [i for i in reversed(range(len(cents))) if cents[i] > 0]
    candidates += [i for i in reversed(range(len(cents))) if cents[i] == 0]
    for index in candidates:
        if cents[index] + residual >= 0:
            cents[index] += residual
            return

    raise SplitValidationError(
        f"Cannot absorb rounding residual of {from_cents(residual)}"
    )
