"""
EVM Adapter Schema Models

Pydantic models for the gasless permit pipeline. All classes inherit from
the base schema hierarchy in ``schemas.bases``.

    - EVMECDSASignature: v/r/s signature produced by either signer variant.
    - EVMTokenPermit: Signed EIP-2612 permit ready for relayer submission.
    - PermitFailure: Typed failure returned by the gasless permit constructor.
    - RelayConfirmation: Outcome of a relayer-submitted ``permit`` or
      ``transferFrom`` transaction.
"""

from typing import Optional, Literal

from pydantic import Field, field_serializer

from ...schemas.bases import (
    BaseSignature,
    BasePermit,
    BaseTransactionConfirmation,
    CanonicalModel,
)
from ...schemas.transactions import EIP2612PermitData


class EVMECDSASignature(BaseSignature):
    """
    EVM ECDSA signature (v, r, s) over a permit digest.

    Attributes:
        v: ECDSA recovery ID (27 or 28).
        r: r component, 0x-prefixed 64-char hex.
        s: s component, 0x-prefixed 64-char hex.

    Example::

        sig = EVMECDSASignature(v=27, r="0x" + "a" * 64, s="0x" + "b" * 64)
        sig.validate_format()
    """

    signature_type: Literal["EIP2612"] = Field(default="EIP2612", description="Signing standard")
    v: int = Field(..., ge=27, le=28, description="ECDSA recovery ID (27 or 28)")
    r: str = Field(..., description="Signature r component (32 bytes hex)")
    s: str = Field(..., description="Signature s component (32 bytes hex)")

    def validate_format(self) -> bool:
        """
        Validate v/r/s components.

        Raises:
            ValueError: Descriptive message on the first failed check.
        """
        if self.v not in (27, 28):
            raise ValueError(f"Invalid recovery ID: {self.v}. Must be 27 or 28")

        for name, val in [("r", self.r), ("s", self.s)]:
            hex_str = val[2:] if val.lower().startswith("0x") else val
            if len(hex_str) != 64:
                raise ValueError(f"Invalid {name}: expected 64 hex chars, got {len(hex_str)}")
            try:
                int(hex_str, 16)
            except ValueError:
                raise ValueError(f"Invalid {name}: not valid hexadecimal")

        return True

    def to_packed_hex(self) -> str:
        """Encode as a 65-byte ``r || s || v`` hex string."""
        self.validate_format()
        r = self.r[2:] if self.r.lower().startswith("0x") else self.r
        s = self.s[2:] if self.s.lower().startswith("0x") else self.s
        return "0x" + r + s + format(self.v, "02x")


class EVMTokenPermit(BasePermit):
    """
    Signed EIP-2612 permit payload.

    ``value`` is held as an integer but serialized as a decimal string, since
    base-unit amounts routinely exceed what JSON numbers carry safely.

    Attributes:
        owner: Token holder (sender).
        spender: Relayer address receiving the allowance.
        token: Token contract address.
        value: Allowance in base units.
        nonce: ``nonces(owner)`` at signing time.
        deadline: Unix timestamp or ``MAX_UINT256``.
        chain_id: Chain the domain separator was built for.
        signature: v/r/s over the permit digest.
    """

    permit_type: Literal["EIP2612"] = Field(default="EIP2612", description="Permit standard identifier")
    owner: str = Field(..., description="Token owner's wallet address (0x-prefixed)")
    spender: str = Field(..., description="Relayer (spender) address")
    token: str = Field(..., description="ERC-20 token contract address")
    value: int = Field(..., ge=0, description="Approved amount in base units")
    nonce: int = Field(..., ge=0, description="Permit nonce for replay protection")
    deadline: int = Field(..., ge=0, description="Unix timestamp after which the permit expires")
    chain_id: int = Field(..., ge=1, description="EVM network ID")
    signature: EVMECDSASignature = Field(..., description="ECDSA signature over the permit digest")

    @field_serializer("value")
    def _serialize_value(self, value: int) -> str:
        return str(value)

    def validate_structure(self) -> bool:
        """
        Validate addresses and the embedded signature.

        Raises:
            ValueError: With a descriptive message on the first failed check.
        """
        for field_name, value in [("owner", self.owner), ("spender", self.spender), ("token", self.token)]:
            if not value.startswith("0x") or len(value) != 42:
                raise ValueError(f"{field_name} must be a 0x-prefixed 20-byte address")

        try:
            self.signature.validate_format()
        except ValueError as e:
            raise ValueError(f"Signature validation failed: {e}")

        return True

    def to_permit_data(self) -> EIP2612PermitData:
        """Convert to the ``eip2612`` sub-record carried on a transaction."""
        return EIP2612PermitData(
            v=self.signature.v,
            r=self.signature.r,
            s=self.signature.s,
            deadline=self.deadline,
            nonce=self.nonce,
            owner=self.owner,
            spender=self.spender,
            value=str(self.value),
        )


class PermitFailure(CanonicalModel):
    """
    Typed failure of the gasless permit constructor.

    Attributes:
        stage: Step that failed (``nonce``, ``decimals``, ``amount``,
            ``domain``, ``sign``).
        error: Human-readable reason.
    """
    stage: str
    error: str

    def is_success(self) -> bool:
        return False


class RelayConfirmation(BaseTransactionConfirmation):
    """
    Outcome of a relayer-submitted transaction.

    ``status`` distinguishes a revert (``FAILED``) from a confirmation wait
    that ran out (``TIMEOUT``) and from a transaction that never made it to
    the chain (``INVALID_TRANSACTION`` / ``NETWORK_ERROR``).

    Example::

        confirmation = await relayer.execute_permit_transaction(permit)
        if confirmation.success:
            print(confirmation.transaction_hash)
        else:
            print(confirmation.error)
    """

    confirmation_type: Literal["evm"] = Field(default="evm", description="Confirmation type")
    action: Literal["permit", "transferFrom"] = Field(..., description="Submitted contract call")
    transaction_hash: Optional[str] = Field(None, description="Hash of the broadcast transaction")
    block_number: Optional[int] = Field(None, ge=0, description="Block the transaction was mined in")
    gas_used: Optional[int] = Field(None, ge=0, description="Gas consumed")

    @property
    def success(self) -> bool:
        return self.is_success()

    @property
    def error(self) -> Optional[str]:
        return None if self.is_success() else self.get_confirmation_status()
