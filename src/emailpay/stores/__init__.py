from .bases import TransactionStore
from .memory import InMemoryTransactionStore

__all__ = ["TransactionStore", "InMemoryTransactionStore"]
