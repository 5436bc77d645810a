"""
Transaction state machine.

``TransactionService`` owns every status change of a persisted transaction:
request validation, the gasless permit-then-transfer pipeline, and the
completion notification. It is the only place that maps a relayer or chain
failure onto a persisted status.

Pipeline outline::

    pending/scheduled ──> processing ──permit ok──> transfer ok ──> completed
                                     └─permit failed─┐    └─ failed ──> failed
                                                     └──────────────> failed

The permit outcome is written to ``eip2612.transactionHash`` /
``eip2612.executed`` before the transfer is attempted, so a record can end
``failed`` while still showing an executed permit. That mismatch is what
operators reconcile against on-chain allowances.
"""

import logging
from datetime import timedelta
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

from ..adapters.evm.constants import (
    DEFAULT_CAIP2,
    find_asset_by_address,
    get_asset_config,
    get_chain_config,
    to_base_units,
)
from ..adapters.evm.readers import TokenReader
from ..adapters.evm.relayer import RelayerExecutor
from ..adapters.evm.schemas import EVMECDSASignature, EVMTokenPermit
from ..schemas.transactions import (
    CreateTransactionRequest,
    EIP2612PermitData,
    Transaction,
    TransactionStatus,
    UpdateTransactionRequest,
    utc_now,
)
from ..stores.bases import TransactionStore
from .events import (
    Dependencies,
    EventBus,
    PermitExecutedEvent,
    TransactionCompletedEvent,
    TransactionFailedEvent,
)
from .exceptions import (
    BlockchainInteractionError,
    InputValidationError,
    TransactionNotFoundError,
)
from .transitions import INITIAL_STATUSES, check_transition

logger = logging.getLogger(__name__)

S = TransactionStatus

#: Default delay for a scheduled send without an explicit date.
DEFAULT_SCHEDULE_DELAY = timedelta(hours=24)

#: Statuses from which a move to ``pending`` (re)runs the gasless pipeline.
_SEND_FROM = frozenset({S.DRAFT, S.SCHEDULED, S.FAILED})


class TransactionService:
    """
    Create, update and query transactions; run the gasless pipeline.

    Args:
        store: Document store for transaction records.
        relayer: Gas-paying relayer. Required for gasless sends.
        reader: Token reader for decimals and allowance checks.
        event_bus: Bus the completion/failure events are published on.
        dependencies: Collaborators handed to event handlers.
        caip2: Chain the token lives on.
        token_symbol: Only token type accepted on transactions.
        reuse_existing_allowance: On retry, skip re-submitting an already
            executed permit when the relayer still holds enough allowance.

    Example::

        service = TransactionService(store, relayer=relayer, reader=reader, event_bus=bus,
                                     dependencies=Dependencies(email_dispatcher=mailer))
        record = await service.create(CreateTransactionRequest.model_validate(body))
    """

    def __init__(
        self,
        store: TransactionStore,
        relayer: Optional[RelayerExecutor] = None,
        reader: Optional[TokenReader] = None,
        event_bus: Optional[EventBus] = None,
        dependencies: Optional[Dependencies] = None,
        caip2: str = DEFAULT_CAIP2,
        token_symbol: str = "PYUSD",
        reuse_existing_allowance: bool = True,
    ):
        chain = get_chain_config(caip2)
        asset = get_asset_config(caip2, token_symbol)

        self.store = store
        self.relayer = relayer
        self.reader = reader
        self.event_bus = event_bus or EventBus()
        self.dependencies = dependencies or Dependencies()
        self.caip2 = caip2
        self.chain_id = chain.chain_id
        self.network_name = chain.name
        self.token_symbol = token_symbol
        self.token_address = relayer.token if relayer else asset.address
        self.reuse_existing_allowance = reuse_existing_allowance

    # ==================== Validation ====================

    def _validate_send_fields(self, record: Transaction) -> None:
        if not record.subject or not record.subject.strip():
            raise InputValidationError("subject is required")
        try:
            amount = Decimal(str(record.amount).strip())
        except (InvalidOperation, ValueError):
            raise InputValidationError(f"amount {record.amount!r} is not a number") from None
        if not amount.is_finite() or amount <= 0:
            raise InputValidationError("amount must be greater than zero")
        if record.token_type != self.token_symbol:
            raise InputValidationError(f"tokenType must be {self.token_symbol}")
        if record.network != self.network_name:
            raise InputValidationError(f"network must be {self.network_name}")

    @staticmethod
    def _validate_parties(user_address: str, recipients: List[Any]) -> None:
        if not user_address:
            raise InputValidationError("userAddress is required")
        if not recipients:
            raise InputValidationError("at least one recipient is required")

    # ==================== Operations ====================

    async def create(self, request: CreateTransactionRequest) -> Transaction:
        """
        Persist a new transaction and, for a gasless ``pending`` send, run the
        pipeline before returning.

        Raises:
            InputValidationError: On missing/invalid fields. Nothing is persisted.
        """
        self._validate_parties(request.user_address, request.to_recipients)
        if request.status not in INITIAL_STATUSES:
            raise InputValidationError(f"cannot create a transaction in status '{request.status.value}'")

        record = Transaction(
            user_address=request.user_address,
            to_recipients=request.to_recipients,
            cc=request.cc,
            bcc=request.bcc,
            subject=request.subject,
            message=request.message,
            amount=request.amount,
            token_type=request.token_type or self.token_symbol,
            network=request.network or self.network_name,
            status=request.status,
            is_gasless=request.is_gasless,
            eip2612=request.eip2612,
            scheduled_date=request.scheduled_date,
        )

        if record.status != S.DRAFT:
            self._validate_send_fields(record)
            if record.is_gasless and record.eip2612 is None:
                raise InputValidationError("eip2612 permit data is required for gasless transactions")
        if record.status == S.SCHEDULED and record.scheduled_date is None:
            record.scheduled_date = utc_now() + DEFAULT_SCHEDULE_DELAY

        record = await self.store.insert(record)
        logger.info("Created transaction %s status=%s gasless=%s", record.id, record.status.value, record.is_gasless)

        if record.status == S.PENDING and record.is_gasless:
            record = await self._run_gasless_pipeline(record)
            await self._notify_if_completed(None, record)
        return record

    async def update(self, request: UpdateTransactionRequest) -> Transaction:
        """
        Apply a partial update, enforcing the transition table.

        The gasless pipeline runs when a gasless record is
        - moved to ``completed`` with an active wallet session (``provider``), or
        - moved to ``pending`` from draft/scheduled/failed.

        Raises:
            TransactionNotFoundError: No such record for this owner.
            InvalidTransition: Status change not allowed.
            InputValidationError: Record would violate a send invariant.
        """
        existing = await self.store.get(request.id, request.user_address)
        if existing is None:
            raise TransactionNotFoundError(f"Transaction {request.id} not found")

        changes: Dict[str, Any] = {k: v for k, v in request.field_changes().items() if v is not None}
        new_status: TransactionStatus = changes.get("status", existing.status)
        check_transition(existing.status, new_status)

        merged = existing.model_copy(update=changes)
        if "tx_hash" in changes and merged.is_gasless:
            raise InputValidationError("txHash of a gasless transaction is set by the relayer")
        if new_status != S.DRAFT:
            self._validate_parties(merged.user_address, merged.to_recipients)
            self._validate_send_fields(merged)
        if new_status == S.SCHEDULED and merged.scheduled_date is None:
            changes["scheduled_date"] = utc_now() + DEFAULT_SCHEDULE_DELAY

        run_pipeline = False
        if merged.is_gasless and new_status != existing.status:
            if new_status == S.COMPLETED:
                if request.provider is None:
                    raise InputValidationError("completing a gasless transaction requires an active wallet session")
                if merged.eip2612 is None:
                    raise InputValidationError("eip2612 permit data is required for gasless transactions")
                run_pipeline = True
                # The pipeline decides whether the record actually completes.
                changes.pop("status")
            elif new_status == S.PENDING and existing.status in _SEND_FROM:
                if "eip2612" not in changes and not self._can_reuse_permit(existing.eip2612):
                    raise InputValidationError("a freshly signed eip2612 permit is required to send")
                run_pipeline = True

        record = await self._save(existing, changes)
        if run_pipeline:
            record = await self._run_gasless_pipeline(record)

        await self._notify_if_completed(existing.status, record)
        return record

    async def get(self, transaction_id: str, user_address: str) -> Transaction:
        record = await self.store.get(transaction_id, user_address)
        if record is None:
            raise TransactionNotFoundError(f"Transaction {transaction_id} not found")
        return record

    async def list(self, user_address: str, status: Optional[TransactionStatus] = None) -> List[Transaction]:
        return await self.store.find_by_owner(user_address, status)

    async def search(
        self, user_address: str, query: str, status: Optional[TransactionStatus] = None
    ) -> List[Transaction]:
        if not query or not query.strip():
            return await self.list(user_address, status)
        return await self.store.search(user_address, query.strip(), status)

    async def received(self, address: str) -> List[Transaction]:
        return await self.store.find_by_recipient(address)

    async def delete(self, transaction_id: str, user_address: str) -> None:
        if not await self.store.delete(transaction_id, user_address):
            raise TransactionNotFoundError(f"Transaction {transaction_id} not found")

    # ==================== Pipeline ====================

    def _can_reuse_permit(self, permit: Optional[EIP2612PermitData]) -> bool:
        return bool(self.reuse_existing_allowance and permit is not None and permit.executed)

    async def _save(self, record: Transaction, changes: Dict[str, Any]) -> Transaction:
        updated = await self.store.update(record.id, record.user_address, changes)
        if updated is None:
            raise TransactionNotFoundError(f"Transaction {record.id} disappeared during update")
        return updated

    async def _fail(self, record: Transaction, reason: str) -> Transaction:
        logger.warning("Transaction %s failed: %s", record.id, reason)
        record = await self._save(record, {"status": S.FAILED, "failure_reason": reason, "tx_hash": None})
        await self.event_bus.publish(TransactionFailedEvent(transaction=record, reason=reason), self.dependencies)
        return record

    async def _transfer_value(self, record: Transaction, permit: EIP2612PermitData) -> int:
        if permit.value is not None:
            return int(permit.value)
        if self.reader is not None:
            decimals = await self.reader.get_decimals(self.token_address)
        else:
            asset = find_asset_by_address(self.caip2, self.token_address)
            if asset is None:
                raise ValueError(f"decimals of token {self.token_address} are unknown")
            decimals = asset.decimals
        return to_base_units(record.amount, decimals)

    async def _run_gasless_pipeline(self, record: Transaction) -> Transaction:
        """
        Permit then transfer. Always returns the persisted record in its
        final status (``completed`` or ``failed``).
        """
        recipient = record.primary_recipient
        if recipient is None or not recipient.address:
            return await self._fail(record, "No wallet address could be resolved for the recipient")
        if self.relayer is None:
            return await self._fail(record, "Relayer is not configured")

        permit = record.eip2612
        check_transition(record.status, S.PROCESSING)
        record = await self._save(record, {"status": S.PROCESSING})

        owner = permit.owner or record.user_address
        try:
            value = await self._transfer_value(record, permit)
        except (BlockchainInteractionError, ValueError) as e:
            return await self._fail(record, f"Cannot determine transfer value: {e}")

        permit_needed = True
        if self._can_reuse_permit(permit) and self.reader is not None:
            try:
                allowance = await self.reader.get_allowance(owner, self.relayer.wallet_address, self.token_address)
            except BlockchainInteractionError as e:
                return await self._fail(record, f"Cannot read allowance: {e}")
            if allowance >= value:
                logger.info("Transaction %s reuses existing allowance %s", record.id, allowance)
                permit_needed = False

        if permit_needed:
            record = await self._submit_permit(record, permit, owner, value)
            if record.status == S.FAILED:
                return record

        transfer = await self.relayer.execute_gasless_transfer(
            owner, recipient.address, value, token=self.token_address
        )
        if not transfer.success:
            return await self._fail(record, f"Transfer failed: {transfer.error}")

        logger.info("Transaction %s completed tx=%s", record.id, transfer.transaction_hash)
        return await self._save(
            record,
            {"status": S.COMPLETED, "tx_hash": transfer.transaction_hash, "failure_reason": None},
        )

    async def _submit_permit(
        self, record: Transaction, permit: EIP2612PermitData, owner: str, value: int
    ) -> Transaction:
        try:
            payload = EVMTokenPermit(
                owner=owner,
                spender=permit.spender or self.relayer.wallet_address,
                token=self.token_address,
                value=value,
                nonce=permit.nonce,
                deadline=permit.deadline,
                chain_id=self.chain_id,
                signature=EVMECDSASignature(v=permit.v, r=permit.r, s=permit.s),
            )
        except ValueError as e:
            return await self._fail(record, f"Invalid permit data: {e}")

        result = await self.relayer.execute_permit_transaction(payload)
        executed = permit.model_copy(update={
            "transaction_hash": result.transaction_hash or permit.transaction_hash,
            "executed": result.success,
        })
        record = await self._save(record, {"eip2612": executed})

        if not result.success:
            return await self._fail(record, f"Permit failed: {result.error}")

        await self.event_bus.publish(
            PermitExecutedEvent(transaction_id=record.id, permit_tx_hash=result.transaction_hash),
            self.dependencies,
        )
        return record

    async def _notify_if_completed(self, previous: Optional[TransactionStatus], record: Transaction) -> None:
        """
        Publish the completion event once, after the completed status is stored.
        Handler failures are logged by the bus and never reach the caller.
        """
        if record.status == S.COMPLETED and previous != S.COMPLETED:
            await self.event_bus.publish(TransactionCompletedEvent(transaction=record), self.dependencies)
