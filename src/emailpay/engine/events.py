"""
Typed events emitted by the transaction state machine.

Events carry their own data; collaborators (email dispatcher, ...) are
injected separately through ``Dependencies``. Handlers never influence the
persisted record: by the time an event is published the state change it
describes has already been written to the store.
"""

import asyncio
import inspect
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Any, Callable, Optional, List, Awaitable

from pydantic import BaseModel, ConfigDict

from ..schemas.transactions import Transaction

logger = logging.getLogger(__name__)


# ==================== Base Event ====================

class BaseEvent(ABC):
    """Base class for all events in the system."""

    @abstractmethod
    def __repr__(self) -> str:
        """String representation of the event."""
        pass


# ==================== Lifecycle Events ====================

class PermitExecutedEvent(BaseModel, BaseEvent):
    """The owner's permit was mined; the relayer now holds the allowance."""
    transaction_id: str
    permit_tx_hash: str

    model_config = ConfigDict(arbitrary_types_allowed=True)

    def __repr__(self) -> str:
        return f"PermitExecutedEvent(id={self.transaction_id}, tx={self.permit_tx_hash})"


class TransactionCompletedEvent(BaseModel, BaseEvent):
    """A record moved into ``completed``; fired once per record."""
    transaction: Transaction

    model_config = ConfigDict(arbitrary_types_allowed=True)

    def __repr__(self) -> str:
        return f"TransactionCompletedEvent(id={self.transaction.id}, tx={self.transaction.tx_hash})"


class TransactionFailedEvent(BaseModel, BaseEvent):
    """The gasless pipeline ended a record in ``failed``."""
    transaction: Transaction
    reason: str

    model_config = ConfigDict(arbitrary_types_allowed=True)

    def __repr__(self) -> str:
        return f"TransactionFailedEvent(id={self.transaction.id}, reason={self.reason})"


# ==================== Dependencies Container ====================

@dataclass(frozen=True)
class Dependencies:
    """Container for collaborators handlers may use (read-only)."""
    email_dispatcher: Optional[Any] = None


# ==================== Event Bus ====================

EventHandlerFunc = Callable[[BaseEvent, Dependencies], Awaitable[Optional[Any]]]
EventHookFunc = Callable[[BaseEvent, Dependencies], Awaitable[None]]


class EventBus:
    """Event dispatcher for publishing and subscribing to events."""

    def __init__(self) -> None:
        self._subscribers: Dict[type, List[EventHandlerFunc]] = {}
        self._hooks: Dict[type, List[EventHookFunc]] = {}

    def subscribe(self, event_class: type[BaseEvent], handler: EventHandlerFunc) -> None:
        """
        Register an async handler for the given event class.

        Raises:
            TypeError: If handler is not a coroutine function.
        """
        if not inspect.iscoroutinefunction(handler):
            raise TypeError(f"Handler must be a coroutine function, got {type(handler).__name__}")
        self._subscribers.setdefault(event_class, []).append(handler)

    def hook(self, event_class: type[BaseEvent], hook_func: EventHookFunc) -> None:
        """
        Register a hook; hooks run before subscribers.

        Raises:
            TypeError: If hook_func is not a coroutine function.
        """
        if not inspect.iscoroutinefunction(hook_func):
            raise TypeError(f"Hook must be a coroutine function, got {type(hook_func).__name__}")
        self._hooks.setdefault(event_class, []).append(hook_func)

    async def publish(self, event: BaseEvent, deps: Dependencies) -> List[Any]:
        """
        Best-effort delivery: every hook and handler runs, failures are logged
        and never raised to the publisher.

        Returns:
            Results of the handlers that succeeded.
        """
        hooks = self._hooks.get(type(event), [])
        for outcome in await asyncio.gather(*(hook(event, deps) for hook in hooks), return_exceptions=True):
            if isinstance(outcome, Exception):
                logger.error("Hook failed for %r", event, exc_info=outcome)

        handlers = self._subscribers.get(type(event), [])
        outcomes = await asyncio.gather(*(handler(event, deps) for handler in handlers), return_exceptions=True)

        results = []
        for outcome in outcomes:
            if isinstance(outcome, Exception):
                logger.error("Handler failed for %r", event, exc_info=outcome)
            else:
                results.append(outcome)
        return results
