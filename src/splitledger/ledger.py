"""Balance aggregation over persisted expenses and splits."""

import logging

from .db import Database
from .groups import require_member
from .models import Balance, SuggestedTransfer
from .splitter import from_cents, to_cents

logger = logging.getLogger(__name__)


def _balance(user_id: int, group_id: int | None, paid: int, owed: int) -> Balance:
    return Balance(
        user_id=user_id,
        group_id=group_id,
        total_paid=from_cents(paid),
        total_owed=from_cents(owed),
        net=from_cents(paid - owed),
    )


class LedgerAggregator:
    """Read-only view of who paid what and who owes what.

    Settlements are a separate record of claimed payments and are not
    subtracted here.
    """

    def __init__(self, database: Database):
        """Initialize the aggregator."""
        self.db = database

    def balance(self, user_id: int, group_id: int | None = None) -> Balance:
        """
        Get a user's balance in one group, or across all of their groups.

        Args:
            user_id: The user to compute the balance for
            group_id: Restrict to this group; None for every group

        Returns:
            Totals paid and owed, and the net (positive = owed money)
        """
        if group_id is not None:
            require_member(self.db, group_id, user_id)

        paid, owed = self.db.get_user_totals(user_id, group_id)
        logger.debug(f"Balance for user {user_id} (group {group_id}): {paid - owed}")
        return _balance(user_id, group_id, paid, owed)

    def group_balances(self, group_id: int, acting_user: int) -> list[Balance]:
        """
        Get the balance of every member of a group.

        Members without activity are listed with zero balances. The nets of
        a group always add up to zero.
        """
        require_member(self.db, group_id, acting_user)

        return [
            _balance(user_id, group_id, paid, owed)
            for user_id, paid, owed in self.db.get_group_totals(group_id)
        ]


def suggest_transfers(balances: list[Balance]) -> list[SuggestedTransfer]:
    """
    Suggest payments that would settle a group up.

    Greedily matches the largest debtor with the largest creditor until
    every balance is cleared. Works in whole cents.

    Args:
        balances: Member balances, as returned by group_balances

    Returns:
        Transfers from debtors to creditors
    """
    debtors = sorted(
        ([b.user_id, -to_cents(b.net)] for b in balances if b.net < 0),
        key=lambda x: (-x[1], x[0]),
    )
    creditors = sorted(
        ([b.user_id, to_cents(b.net)] for b in balances if b.net > 0),
        key=lambda x: (-x[1], x[0]),
    )

    transfers = []
    i = j = 0
    while i < len(debtors) and j < len(creditors):
        debtor, creditor = debtors[i], creditors[j]
        amount = min(debtor[1], creditor[1])
        transfers.append(
            SuggestedTransfer(
                from_user=debtor[0], to_user=creditor[0], amount=from_cents(amount)
            )
        )

        debtor[1] -= amount
        creditor[1] -= amount
        if debtor[1] == 0:
            i += 1
        if creditor[1] == 0:
            j += 1

    return transfers
