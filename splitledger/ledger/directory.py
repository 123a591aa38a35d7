"""
User Directory

Maintains the group members who can pay for or owe on an expense.
The primary account holder is always resolvable but never stored.
"""

from typing import Optional
from uuid import uuid4

import structlog

from splitledger.config import LedgerSettings, get_settings
from splitledger.ledger.clock import Clock, SystemClock
from splitledger.ledger.exceptions import UnknownUserError
from splitledger.models.ledger import SplitUser, SplitUserInput
from splitledger.services.storage import UserStorageInterface


logger = structlog.get_logger(__name__)


class UserDirectory:
    """
    Group membership backed by a user repository.

    Usage:
        directory = UserDirectory(InMemoryUserStorage())
        alice = await directory.add_user("Alice")
    """

    def __init__(
        self,
        storage: UserStorageInterface,
        clock: Optional[Clock] = None,
        settings: Optional[LedgerSettings] = None,
    ):
        self._storage = storage
        self._clock = clock or SystemClock()
        self._settings = settings or get_settings().ledger
        now = self._clock.now()
        self._primary = SplitUser(
            id=self._settings.primary_user_id,
            name=self._settings.primary_user_name,
            created_at=now,
            updated_at=now,
        )

    @property
    def primary_user(self) -> SplitUser:
        """The person operating the app."""
        return self._primary

    def is_primary(self, user_id: str) -> bool:
        return user_id == self._primary.id

    async def add_user(self, name: str) -> SplitUser:
        """
        Add a group member.

        Raises:
            pydantic.ValidationError: If the name is blank or too long
        """
        data = SplitUserInput(name=name)
        now = self._clock.now()
        user = SplitUser(
            id=str(uuid4()),
            name=data.name,
            created_at=now,
            updated_at=now,
        )
        await self._storage.save_user(user)
        logger.info("user_added", user_id=user.id)
        return user

    async def delete_user(self, user_id: str) -> bool:
        """
        Remove a group member.

        Historical expenses keep their references; they simply stop
        resolving. Returns whether a stored record was removed.
        """
        if self.is_primary(user_id):
            logger.warning("primary_user_delete_ignored", user_id=user_id)
            return False
        existed = await self._storage.delete_user(user_id)
        if not existed:
            logger.info("user_already_absent", user_id=user_id)
        return existed

    async def list_users(self) -> list[SplitUser]:
        """Stored members ordered by name; the primary holder is not included."""
        users = await self._storage.list_users()
        return sorted(users, key=lambda u: (u.name.casefold(), u.id))

    async def all_members(self) -> list[SplitUser]:
        """The primary holder followed by every stored member."""
        return [self._primary] + await self.list_users()

    async def user_map(self) -> dict[str, SplitUser]:
        """Every resolvable user keyed by id."""
        return {u.id: u for u in await self.all_members()}

    async def resolve(self, user_id: str) -> Optional[SplitUser]:
        if self.is_primary(user_id):
            return self._primary
        return await self._storage.get_user(user_id)

    async def require(self, user_id: str) -> SplitUser:
        """Resolve a user or raise UnknownUserError."""
        user = await self.resolve(user_id)
        if user is None:
            raise UnknownUserError(user_id)
        return user
