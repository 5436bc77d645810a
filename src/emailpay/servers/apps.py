"""
EmailPay transaction API - FastAPI wrapper around ``TransactionService``.

Gasless sends run inside the request: the response is returned once the
relayer's permit and transfer have confirmed or failed. Pipeline failures
are not HTTP errors; the record comes back with ``status="failed"``.
"""

import logging
from typing import Optional, Callable

from fastapi import FastAPI, Query, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from web3 import AsyncWeb3

from ..adapters.evm.readers import TokenReader
from ..adapters.evm.relayer import RelayerExecutor
from ..clients.email_client import HttpEmailDispatcher
from ..config import Settings
from ..engine.events import BaseEvent, Dependencies
from ..engine.exceptions import (
    ConfigurationError,
    InputValidationError,
    InvalidTransition,
    TransactionNotFoundError,
)
from ..engine.machine import TransactionService
from ..schemas.transactions import (
    CreateTransactionRequest,
    TransactionStatus,
    UpdateTransactionRequest,
)
from ..stores.memory import InMemoryTransactionStore
from .flows import setup_event_bus

logger = logging.getLogger(__name__)


def build_service(settings: Settings) -> TransactionService:
    """
    Wire a ``TransactionService`` from settings: in-memory store, relayer and
    reader on the configured RPC, HTTP email dispatcher when a webhook is set.
    """
    relayer = None
    web3 = AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(
        settings.rpc_url,
        request_kwargs={"timeout": settings.request_timeout}
    ))
    try:
        relayer = RelayerExecutor.from_settings(settings, web3=web3)
    except ConfigurationError as e:
        logger.warning("Gasless sends disabled: %s", e)

    dispatcher = HttpEmailDispatcher(settings.email_webhook_url) if settings.email_webhook_url else None
    return TransactionService(
        store=InMemoryTransactionStore(),
        relayer=relayer,
        reader=TokenReader(web3),
        event_bus=setup_event_bus(),
        dependencies=Dependencies(email_dispatcher=dispatcher),
        caip2=settings.caip2,
        token_symbol=settings.token_symbol,
        reuse_existing_allowance=settings.reuse_existing_allowance,
    )


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


async def _read_json(request: Request):
    try:
        return await request.json()
    except ValueError:
        raise InputValidationError("request body is not valid JSON") from None


class EmailPayServer(FastAPI):
    """FastAPI server exposing the EmailPay transaction endpoints."""

    def __init__(
        self,
        service: Optional[TransactionService] = None,
        settings: Optional[Settings] = None,
        **fastapi_kwargs
    ):
        """Initialize the EmailPay server.

        Args:
            service: Pre-built transaction service (default: built from settings)
            settings: Settings used when no service is given (default: from environment)
            **fastapi_kwargs: FastAPI arguments (title, version, etc.)
        """
        if service is None:
            service = build_service(settings or Settings.from_env())
        self.service = service
        self.event_bus = service.event_bus

        super().__init__(**fastapi_kwargs)

        self._setup_exception_handlers()
        self._setup_transaction_endpoints()

    def subscribe(self, event_class: type[BaseEvent], handler: Callable) -> None:
        """Register an extra event handler, e.g. for analytics."""
        self.event_bus.subscribe(event_class, handler)

    def hook(self, event_class: type[BaseEvent]) -> Callable:
        """Decorator for registering event hooks.

        Example:
            @app.hook(TransactionCompletedEvent)
            async def on_completed(event, deps):
                await push_notification(event.transaction)
        """
        def decorator(hook_func: Callable) -> Callable:
            self.event_bus.hook(event_class, hook_func)
            return hook_func
        return decorator

    def _setup_exception_handlers(self) -> None:
        async def bad_request(request: Request, exc: Exception):
            return _error(400, str(exc))

        async def not_found(request: Request, exc: Exception):
            return _error(404, str(exc))

        async def conflict(request: Request, exc: Exception):
            return _error(409, str(exc))

        self.add_exception_handler(InputValidationError, bad_request)
        self.add_exception_handler(ValidationError, bad_request)
        self.add_exception_handler(TransactionNotFoundError, not_found)
        self.add_exception_handler(InvalidTransition, conflict)

    def _setup_transaction_endpoints(self) -> None:
        service = self.service

        @self.post("/transactions")
        async def create_transaction(request: Request):
            payload = await _read_json(request)
            record = await service.create(CreateTransactionRequest.model_validate(payload))
            return JSONResponse(status_code=201, content=record.to_dict())

        @self.get("/transactions")
        async def list_transactions(
            user_address: str = Query(..., alias="userAddress"),
            status: Optional[TransactionStatus] = Query(None),
        ):
            records = await service.list(user_address, status)
            return {"transactions": [r.to_dict() for r in records]}

        @self.get("/transactions/search")
        async def search_transactions(
            user_address: str = Query(..., alias="userAddress"),
            q: str = Query(""),
            status: Optional[TransactionStatus] = Query(None),
        ):
            records = await service.search(user_address, q, status)
            return {"transactions": [r.to_dict() for r in records]}

        @self.get("/transactions/received")
        async def received_transactions(address: str = Query(...)):
            records = await service.received(address)
            return {"transactions": [r.to_dict() for r in records]}

        @self.get("/transactions/{transaction_id}")
        async def get_transaction(transaction_id: str, user_address: str = Query(..., alias="userAddress")):
            record = await service.get(transaction_id, user_address)
            return record.to_dict()

        @self.put("/transactions")
        async def update_transaction(request: Request):
            payload = await _read_json(request)
            record = await service.update(UpdateTransactionRequest.model_validate(payload))
            return record.to_dict()

        @self.patch("/transactions/{transaction_id}")
        async def patch_transaction(transaction_id: str, request: Request):
            payload = await _read_json(request)
            if not isinstance(payload, dict):
                raise InputValidationError("request body must be a JSON object")
            payload["id"] = transaction_id
            record = await service.update(UpdateTransactionRequest.model_validate(payload))
            return record.to_dict()

        @self.delete("/transactions/{transaction_id}")
        async def delete_transaction(transaction_id: str, user_address: str = Query(..., alias="userAddress")):
            await service.delete(transaction_id, user_address)
            return {"success": True}
