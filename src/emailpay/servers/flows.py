"""
Built-in event handlers for the EmailPay transaction workflow.
"""

import logging

from ..engine.events import (
    EventBus,
    Dependencies,
    TransactionCompletedEvent,
    TransactionFailedEvent,
)

logger = logging.getLogger(__name__)


# ==================== Event Handlers ====================

async def handle_transaction_completed(
    event: TransactionCompletedEvent,
    deps: Dependencies
) -> bool:
    """Email the recipients of a completed transaction."""
    if deps.email_dispatcher is None:
        logger.info("No email dispatcher configured; skipping notification for %s", event.transaction.id)
        return False
    return await deps.email_dispatcher.send(event.transaction)


async def handle_transaction_failed(
    event: TransactionFailedEvent,
    deps: Dependencies
) -> None:
    """Record why the gasless pipeline failed."""
    eip2612 = event.transaction.eip2612
    logger.error(
        "Transaction %s failed (permit executed=%s, permit tx=%s): %s",
        event.transaction.id,
        eip2612.executed if eip2612 else False,
        eip2612.transaction_hash if eip2612 else None,
        event.reason,
    )


# ==================== Event Bus Setup ====================

def setup_event_bus() -> EventBus:
    """Initialize event bus with built-in handlers."""
    event_bus = EventBus()
    event_bus.subscribe(TransactionCompletedEvent, handle_transaction_completed)
    event_bus.subscribe(TransactionFailedEvent, handle_transaction_failed)
    return event_bus
