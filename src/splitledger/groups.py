"""Group membership glue shared by the ledger services."""

import logging
from collections.abc import Sequence

from .db import Database
from .exceptions import AuthorizationError, GroupNotFoundError, ValidationError
from .models import Group

logger = logging.getLogger(__name__)


def require_group(db: Database, group_id: int) -> Group:
    """Get a group or raise GroupNotFoundError."""
    group = db.get_group(group_id)
    if group is None:
        raise GroupNotFoundError(group_id)
    return group


def require_member(db: Database, group_id: int, user_id: int) -> Group:
    """
    Ensure a user belongs to a group.

    Raises:
        GroupNotFoundError: If the group does not exist
        AuthorizationError: If the user is not a member
    """
    group = require_group(db, group_id)
    if not db.is_member(group_id, user_id):
        raise AuthorizationError(f"User {user_id} is not a member of group {group_id}")
    return group


class GroupService:
    """Create groups and manage their membership."""

    def __init__(self, database: Database):
        """Initialize the group service."""
        self.db = database

    def create_group(
        self,
        created_by: int,
        name: str,
        description: str | None = None,
        member_ids: Sequence[int] = (),
    ) -> Group:
        """
        Create a group together with its initial members.

        The creator is always a member. The group and its memberships are
        written in one transaction.
        """
        if not name.strip():
            raise ValidationError("Group name is required")

        group = Group(name=name.strip(), description=description, created_by=created_by)
        with self.db.transaction():
            group.id = self.db.insert_group(group)
            for user_id in dict.fromkeys([created_by, *member_ids]):
                self.db.insert_member(group.id, user_id)

        logger.info(f"Created group {group.id} '{group.name}'")
        return group

    def add_member(self, group_id: int, acting_user: int, user_id: int):
        """Add a user to a group. Only existing members may add others."""
        require_member(self.db, group_id, acting_user)
        with self.db.transaction():
            self.db.insert_member(group_id, user_id)

        logger.info(f"User {acting_user} added user {user_id} to group {group_id}")

    def list_members(self, group_id: int, acting_user: int) -> list[int]:
        """Get a group's member ids."""
        require_member(self.db, group_id, acting_user)
        return self.db.get_member_ids(group_id)
