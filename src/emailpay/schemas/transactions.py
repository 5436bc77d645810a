"""
Transaction record models.

The persisted record keeps the camelCase field names the EmailPay clients send
and read (``userAddress``, ``toRecipients``, ``eip2612`` ...); Python code uses
the snake_case attribute names. ``CanonicalModel`` allows population by either.
"""

import re
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, ConfigDict, Field, field_validator

from .bases import CanonicalModel


_HEX32_PATTERN = re.compile(r"^0x[0-9a-fA-F]{64}$")

SUPPORTED_TOKEN_TYPE = "PYUSD"
SUPPORTED_NETWORK = "Ethereum Sepolia"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class TransactionStatus(str, Enum):
    """
    Lifecycle status of a persisted transaction record.

    ``processing`` is accepted and stored but the gasless pipeline treats it
    the same as ``pending``.
    """
    DRAFT = "draft"
    PENDING = "pending"
    SCHEDULED = "scheduled"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class Recipient(CanonicalModel):
    """A named email recipient, optionally resolved to an on-chain address."""
    name: str = ""
    email: str
    address: Optional[str] = None


class EIP2612PermitData(CanonicalModel):
    """
    Signed EIP-2612 permit as carried on a transaction record.

    ``v``, ``r``, ``s``, ``deadline`` and ``nonce`` are mandatory. ``owner``,
    ``spender`` and ``value`` are filled in by the gasless permit constructor;
    when absent the pipeline derives them from the record. ``transactionHash``
    and ``executed`` are written by the server once the permit call has been
    mined.
    """
    v: int
    r: str
    s: str
    deadline: int = Field(..., ge=0)
    nonce: int = Field(..., ge=0)
    owner: Optional[str] = None
    spender: Optional[str] = None
    value: Optional[str] = None
    transaction_hash: Optional[str] = Field(None, alias="transactionHash")
    executed: bool = False

    @field_validator("v")
    @classmethod
    def _normalize_v(cls, v: int) -> int:
        if v in (0, 1):
            v += 27
        if v not in (27, 28):
            raise ValueError(f"v must be 27 or 28 (or a 0/1 recovery id), got {v}")
        return v

    @field_validator("r", "s")
    @classmethod
    def _check_hex32(cls, value: str) -> str:
        if not value.startswith("0x"):
            value = "0x" + value
        if not _HEX32_PATTERN.match(value):
            raise ValueError("signature components must be 32-byte hex strings")
        return value

    @field_validator("value", mode="before")
    @classmethod
    def _value_as_string(cls, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value


class Transaction(CanonicalModel):
    """A persisted EmailPay transaction record."""
    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    user_address: str = Field(..., alias="userAddress")
    to_recipients: List[Recipient] = Field(default_factory=list, alias="toRecipients")
    cc: List[Recipient] = Field(default_factory=list, alias="ccRecipients")
    bcc: List[Recipient] = Field(default_factory=list, alias="bccRecipients")
    subject: str = ""
    message: str = ""
    amount: str = ""
    token_type: str = Field(SUPPORTED_TOKEN_TYPE, alias="tokenType")
    network: str = SUPPORTED_NETWORK
    status: TransactionStatus = TransactionStatus.PENDING
    is_gasless: bool = Field(False, alias="isGasless")
    eip2612: Optional[EIP2612PermitData] = None
    tx_hash: Optional[str] = Field(None, alias="txHash")
    failure_reason: Optional[str] = Field(None, alias="failureReason")
    scheduled_date: Optional[datetime] = Field(None, alias="scheduledDate")
    created_at: datetime = Field(default_factory=utc_now, alias="createdAt")
    updated_at: datetime = Field(default_factory=utc_now, alias="updatedAt")

    @field_validator("amount", mode="before")
    @classmethod
    def _amount_as_string(cls, value: Any) -> Any:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value

    @property
    def primary_recipient(self) -> Optional[Recipient]:
        """The first ``to`` recipient, the only one that ever receives funds."""
        return self.to_recipients[0] if self.to_recipients else None


class CreateTransactionRequest(CanonicalModel):
    """
    Body of a create request.

    ``provider`` is the caller's wallet-session context. The server only
    checks for its presence; signing always happens on the client side.
    """
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    user_address: str = Field(..., alias="userAddress")
    to_recipients: List[Recipient] = Field(default_factory=list, alias="toRecipients")
    cc: List[Recipient] = Field(default_factory=list, alias="ccRecipients")
    bcc: List[Recipient] = Field(default_factory=list, alias="bccRecipients")
    subject: str = ""
    message: str = ""
    amount: str = ""
    token_type: Optional[str] = Field(None, alias="tokenType")
    network: Optional[str] = None
    status: TransactionStatus = TransactionStatus.PENDING
    is_gasless: bool = Field(False, alias="isGasless")
    eip2612: Optional[EIP2612PermitData] = None
    scheduled_date: Optional[datetime] = Field(None, alias="scheduledDate")
    provider: Optional[Dict[str, Any]] = None

    @field_validator("amount", mode="before")
    @classmethod
    def _amount_as_string(cls, value: Any) -> Any:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value


class UpdateTransactionRequest(CanonicalModel):
    """
    Body of a partial update. Only fields explicitly present are applied.

    The record id may be sent as ``id`` or ``transactionId``. ``txHash`` is
    accepted for non-gasless records only, whose transfer the client made.
    """
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = Field(..., validation_alias=AliasChoices("id", "transactionId"))
    user_address: str = Field(..., alias="userAddress")
    to_recipients: Optional[List[Recipient]] = Field(None, alias="toRecipients")
    cc: Optional[List[Recipient]] = Field(None, alias="ccRecipients")
    bcc: Optional[List[Recipient]] = Field(None, alias="bccRecipients")
    subject: Optional[str] = None
    message: Optional[str] = None
    amount: Optional[str] = None
    token_type: Optional[str] = Field(None, alias="tokenType")
    network: Optional[str] = None
    status: Optional[TransactionStatus] = None
    is_gasless: Optional[bool] = Field(None, alias="isGasless")
    eip2612: Optional[EIP2612PermitData] = None
    tx_hash: Optional[str] = Field(None, alias="txHash")
    scheduled_date: Optional[datetime] = Field(None, alias="scheduledDate")
    provider: Optional[Dict[str, Any]] = None

    @field_validator("amount", mode="before")
    @classmethod
    def _amount_as_string(cls, value: Any) -> Any:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("tx_hash")
    @classmethod
    def _check_tx_hash(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not _HEX32_PATTERN.match(value):
            raise ValueError("txHash must be a 32-byte 0x-hex string")
        return value

    def field_changes(self) -> Dict[str, Any]:
        """Return the explicitly supplied record fields, keyed by attribute name."""
        changes = {}
        for name in self.model_fields_set - {"id", "user_address", "provider"}:
            changes[name] = getattr(self, name)
        return changes
