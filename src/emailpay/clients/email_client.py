"""
Email notification dispatch.

The engine only decides *when* a recipient is notified (once, on the move
into ``completed``). Rendering and delivery belong to an external email
service; ``HttpEmailDispatcher`` hands it the full record over HTTP.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import httpx

from ..adapters.evm.constants import explorer_tx_url
from ..schemas.transactions import Transaction

logger = logging.getLogger(__name__)


class EmailDispatcher(ABC):
    """Sends the completion email for a transaction."""

    @abstractmethod
    async def send(self, transaction: Transaction) -> bool:
        """Return True if the email service accepted the notification."""


class HttpEmailDispatcher(EmailDispatcher):
    """
    Posts completed transactions to an email service webhook.

    The body is the transaction record (camelCase keys) plus the list of
    recipient addresses and a block explorer link for ``txHash``.

    Usage:
        ```python
        dispatcher = HttpEmailDispatcher("https://mailer.internal/emailpay")
        await dispatcher.send(transaction)
        await dispatcher.aclose()
        ```
    """

    def __init__(
        self,
        webhook_url: str,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0,
    ):
        """
        Args:
            webhook_url: Email service endpoint
            client: Optional shared ``httpx.AsyncClient`` (owned by the caller)
            timeout: Request timeout in seconds when the client is created here
        """
        self.webhook_url = webhook_url
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    @staticmethod
    def build_payload(transaction: Transaction) -> Dict[str, Any]:
        recipients = [r.email for r in transaction.to_recipients]
        return {
            "to": recipients,
            "cc": [r.email for r in transaction.cc],
            "bcc": [r.email for r in transaction.bcc],
            "subject": transaction.subject,
            "explorerUrl": explorer_tx_url(transaction.tx_hash) if transaction.tx_hash else None,
            "transaction": transaction.to_dict(),
        }

    async def send(self, transaction: Transaction) -> bool:
        try:
            response = await self._client.post(self.webhook_url, json=self.build_payload(transaction))
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning("Email dispatch for transaction %s failed: %s", transaction.id, e)
            return False
        logger.info("Email dispatched for transaction %s", transaction.id)
        return True

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
