"""
In-process transaction store.

Records are copied on the way in and out so callers can never mutate stored
state without going through ``update``. Address matching ignores case, since
the same wallet may arrive checksummed or lower-cased.
"""

import asyncio
from typing import Any, Dict, List, Optional

from .bases import TransactionStore
from ..schemas.transactions import Transaction, TransactionStatus, utc_now


def _same_address(a: Optional[str], b: Optional[str]) -> bool:
    return bool(a) and bool(b) and a.lower() == b.lower()


def _newest_first(records: List[Transaction]) -> List[Transaction]:
    return sorted(records, key=lambda record: record.created_at, reverse=True)


class InMemoryTransactionStore(TransactionStore):
    """Dictionary-backed ``TransactionStore`` guarded by an ``asyncio.Lock``."""

    def __init__(self) -> None:
        self._records: Dict[str, Transaction] = {}
        self._lock = asyncio.Lock()

    async def insert(self, transaction: Transaction) -> Transaction:
        async with self._lock:
            if transaction.id in self._records:
                raise KeyError(f"Transaction {transaction.id} already exists")
            self._records[transaction.id] = transaction.model_copy(deep=True)
            return transaction.model_copy(deep=True)

    async def get(self, transaction_id: str, user_address: Optional[str] = None) -> Optional[Transaction]:
        record = self._records.get(transaction_id)
        if record is None:
            return None
        if user_address is not None and not _same_address(record.user_address, user_address):
            return None
        return record.model_copy(deep=True)

    async def update(self, transaction_id: str, user_address: str, changes: Dict[str, Any]) -> Optional[Transaction]:
        async with self._lock:
            record = self._records.get(transaction_id)
            if record is None or not _same_address(record.user_address, user_address):
                return None
            unknown = set(changes) - set(Transaction.model_fields)
            if unknown:
                raise KeyError(f"Unknown transaction fields: {sorted(unknown)}")
            updated = record.model_copy(update={**changes, "updated_at": utc_now()}, deep=True)
            self._records[transaction_id] = updated
            return updated.model_copy(deep=True)

    async def delete(self, transaction_id: str, user_address: str) -> bool:
        async with self._lock:
            record = self._records.get(transaction_id)
            if record is None or not _same_address(record.user_address, user_address):
                return False
            del self._records[transaction_id]
            return True

    async def find_by_owner(
        self, user_address: str, status: Optional[TransactionStatus] = None
    ) -> List[Transaction]:
        matches = [
            record.model_copy(deep=True)
            for record in self._records.values()
            if _same_address(record.user_address, user_address)
            and (status is None or record.status == status)
        ]
        return _newest_first(matches)

    async def find_by_recipient(self, address: str) -> List[Transaction]:
        matches = [
            record.model_copy(deep=True)
            for record in self._records.values()
            if any(_same_address(r.address, address) for r in record.to_recipients)
        ]
        return _newest_first(matches)

    async def search(
        self,
        user_address: str,
        query: str,
        status: Optional[TransactionStatus] = None,
        limit: int = 50,
    ) -> List[Transaction]:
        needle = query.lower()
        matches = []
        for record in await self.find_by_owner(user_address, status):
            haystack = [record.subject, record.message]
            for recipient in record.to_recipients + record.cc + record.bcc:
                haystack.extend([recipient.email, recipient.name])
            if any(needle in (text or "").lower() for text in haystack):
                matches.append(record)
        return matches[:limit]
