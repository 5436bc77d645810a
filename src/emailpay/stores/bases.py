"""
Document store contract for transaction records.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from ..schemas.transactions import Transaction, TransactionStatus


class TransactionStore(ABC):
    """
    Async CRUD over ``Transaction`` records.

    Updates and deletes are filtered by owner address, so one user can never
    touch another user's record. Concurrent updates of the same record are
    last-write-wins.
    """

    @abstractmethod
    async def insert(self, transaction: Transaction) -> Transaction:
        """Persist a new record and return the stored copy."""

    @abstractmethod
    async def get(self, transaction_id: str, user_address: Optional[str] = None) -> Optional[Transaction]:
        """Return the record, optionally only if owned by ``user_address``."""

    @abstractmethod
    async def update(self, transaction_id: str, user_address: str, changes: Dict[str, Any]) -> Optional[Transaction]:
        """
        Apply a partial update keyed by attribute name.

        Returns:
            The updated record, or None if no record matches id and owner.
        """

    @abstractmethod
    async def delete(self, transaction_id: str, user_address: str) -> bool:
        """Delete the record; True if something was deleted."""

    @abstractmethod
    async def find_by_owner(
        self, user_address: str, status: Optional[TransactionStatus] = None
    ) -> List[Transaction]:
        """Records sent by ``user_address``, newest first."""

    @abstractmethod
    async def find_by_recipient(self, address: str) -> List[Transaction]:
        """Records whose ``toRecipients`` include ``address``, newest first."""

    @abstractmethod
    async def search(
        self,
        user_address: str,
        query: str,
        status: Optional[TransactionStatus] = None,
        limit: int = 50,
    ) -> List[Transaction]:
        """
        Case-insensitive substring search over subject, message and the
        names/emails of all recipients, newest first.
        """
