"""Settlement lifecycle: a debtor claims a payment, the creditor confirms it.

States are ``pending`` (initial) and ``confirmed`` (terminal). There is no
decline or cancel transition. Settlements never change ledger balances.
"""

import logging
from datetime import datetime
from decimal import Decimal

from .db import Database
from .exceptions import (
    AuthorizationError,
    InvalidSettlementTransitionError,
    SettlementNotFoundError,
    ValidationError,
)
from .groups import require_member
from .models import Settlement
from .splitter import CENT

logger = logging.getLogger(__name__)


class SettlementService:
    """Record and confirm claimed real-world payments between members."""

    def __init__(self, database: Database):
        """Initialize the settlement service."""
        self.db = database

    def create_settlement(
        self,
        acting_user: int,
        from_user: int,
        to_user: int,
        group_id: int,
        amount: Decimal,
    ) -> Settlement:
        """
        Record that ``from_user`` paid ``to_user``.

        Only the payer can make this claim. The amount is not checked against
        outstanding balances.

        Returns:
            The new settlement, pending confirmation by ``to_user``
        """
        if acting_user != from_user:
            raise AuthorizationError(
                f"User {acting_user} cannot record a payment made by user {from_user}"
            )
        require_member(self.db, group_id, from_user)

        amount = Decimal(amount)
        if amount <= 0 or amount != amount.quantize(CENT):
            raise ValidationError(f"Settlement amount must be positive cents, got {amount}")
        if from_user == to_user:
            raise ValidationError("Cannot settle with yourself")
        if not self.db.is_member(group_id, to_user):
            raise ValidationError(f"User {to_user} is not a member of group {group_id}")

        settlement = Settlement(
            group_id=group_id, from_user=from_user, to_user=to_user, amount=amount
        )
        with self.db.transaction():
            settlement.id = self.db.insert_settlement(settlement)

        logger.info(
            f"Settlement {settlement.id}: user {from_user} paid user {to_user} "
            f"${amount} (pending)"
        )
        return settlement

    def confirm_settlement(self, settlement_id: int, acting_user: int) -> Settlement:
        """
        Confirm a pending settlement. Only the recipient can confirm.

        Raises:
            SettlementNotFoundError: If the id does not resolve
            AuthorizationError: If acting_user is not the recipient
            InvalidSettlementTransitionError: If it is no longer pending
        """
        settlement = self.require_confirmable(settlement_id, acting_user)

        confirmed_at = datetime.now()
        with self.db.transaction():
            updated = self.db.confirm_pending_settlement(settlement_id, confirmed_at)

        # Lost a race with another confirmation
        if not updated:
            raise InvalidSettlementTransitionError(settlement_id, "confirmed")

        settlement.status = "confirmed"
        settlement.confirmed_at = confirmed_at
        logger.info(f"Settlement {settlement_id} confirmed by user {acting_user}")
        return settlement

    def require_confirmable(self, settlement_id: int, acting_user: int) -> Settlement:
        """Get a pending settlement that ``acting_user`` is allowed to confirm."""
        settlement = self.get_settlement(settlement_id)
        if acting_user != settlement.to_user:
            raise AuthorizationError(
                f"Only user {settlement.to_user} can confirm settlement {settlement_id}"
            )
        if settlement.status != "pending":
            raise InvalidSettlementTransitionError(settlement_id, settlement.status)
        return settlement

    def get_settlement(self, settlement_id: int) -> Settlement:
        """Get a settlement or raise SettlementNotFoundError."""
        settlement = self.db.get_settlement(settlement_id)
        if settlement is None:
            raise SettlementNotFoundError(settlement_id)
        return settlement

    def list_pending_settlements(self, user_id: int) -> list[Settlement]:
        """Get pending settlements the user sent or has to confirm."""
        return self.db.list_pending_settlements(user_id)

    def list_group_settlements(self, group_id: int, acting_user: int) -> list[Settlement]:
        """Get the settlement history of a group."""
        require_member(self.db, group_id, acting_user)
        return self.db.list_group_settlements(group_id)
