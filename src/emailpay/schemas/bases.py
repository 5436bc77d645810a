"""
Base Schema Models for EmailPay

This module defines the base classes that the permit, signature and on-chain
confirmation models inherit from, so that every payload travelling between
the signer, the relayer and the transaction store serializes the same way.

Core Classes:
    - CanonicalModel: Pydantic base model serializing by alias
    - BaseSignature: Abstract signature component model
    - BasePermit: Abstract permit model for off-chain approvals
    - ConfirmationStatus: Outcome of a relayer-submitted transaction
    - BaseTransactionConfirmation: Abstract on-chain confirmation model

Dependencies:
    - pydantic: For data validation and serialization
"""

from typing import Optional, Dict, Any
from abc import ABC
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class CanonicalModel(BaseModel):
    """
    Pydantic base model that dumps by alias.

    Aliased fields can be populated by either their Python name or their
    alias, and always serialize under the alias (the camelCase wire names).

    Example:
        class MyModel(CanonicalModel):
            name: str
            value: int

        MyModel(name="test", value=123).to_dict()
        # {"name": "test", "value": 123}
    """

    model_config = ConfigDict(populate_by_name=True)

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert model to a JSON-compatible dictionary using field aliases.

        Returns:
            Dict[str, Any]: Dictionary with all model fields.
        """
        return self.model_dump(mode="json", by_alias=True)


class BaseSignature(CanonicalModel, ABC):
    """
    Abstract base class for signature components.

    Attributes:
        signature_type: The type of signature (e.g., "EIP2612")
        created_at: Timestamp when the signature was created
    """

    signature_type: str = Field(..., description="Type of signature (e.g., EIP2612)")
    created_at: datetime = Field(default_factory=datetime.now, description="Signature creation timestamp")

    def validate_format(self) -> bool:
        """
        Validate the signature format.

        Returns:
            bool: True if signature format is valid.

        Raises:
            ValueError: If signature format is invalid with descriptive message.
        """
        return True


class BasePermit(CanonicalModel, ABC):
    """
    Abstract base class for off-chain approval permits.

    A permit is a signed message that authorizes a spender to move tokens on
    behalf of their owner without the owner sending a transaction.

    Attributes:
        permit_type: Type of permit (e.g., "EIP2612")
        signature: Signature components for permit authorization
        created_at: Timestamp when permit was created
    """

    permit_type: str = Field(..., description="Type of permit (e.g., EIP2612)")
    signature: Optional[BaseSignature] = Field(None, description="Signature components")
    created_at: datetime = Field(default_factory=datetime.now, description="Permit creation timestamp")

    def validate_structure(self) -> bool:
        """
        Validate the permit structure and required fields.

        Returns:
            bool: True if permit structure is valid.

        Raises:
            ValueError: If permit structure is invalid with descriptive message.
        """
        return True


class ConfirmationStatus(str, Enum):
    """
    Outcome of a transaction submitted by the relayer.

    Attributes:
        SUCCESS: Transaction mined and executed successfully
        FAILED: Transaction reverted on-chain
        TIMEOUT: No receipt was observed before the confirmation deadline
        NETWORK_ERROR: The RPC node could not be reached or rejected the request
        INVALID_TRANSACTION: Transaction could not be built (e.g. gas estimation reverted)
    """
    SUCCESS = "success"
    FAILED = "failed"
    TIMEOUT = "timeout"
    NETWORK_ERROR = "network_error"
    INVALID_TRANSACTION = "invalid_transaction"


class BaseTransactionConfirmation(CanonicalModel, ABC):
    """
    Abstract base class for on-chain transaction confirmation data.

    Attributes:
        confirmation_type: Type of confirmation (e.g., "evm")
        status: Transaction execution status
        confirmations: Number of block confirmations
        error_message: Error message if transaction failed
        created_at: Timestamp when confirmation was recorded
    """

    confirmation_type: str = Field(..., description="Type of confirmation (e.g., evm)")
    status: ConfirmationStatus = Field(..., description="Transaction execution status")
    confirmations: int = Field(default=0, ge=0, description="Number of block confirmations")
    error_message: Optional[str] = Field(None, description="Error message if transaction failed")
    created_at: datetime = Field(default_factory=datetime.now, description="Confirmation recording timestamp")

    def is_success(self) -> bool:
        """Return True if the transaction executed successfully on-chain."""
        return self.status == ConfirmationStatus.SUCCESS

    def get_confirmation_status(self) -> str:
        """
        Get human-readable confirmation status message.

        Example:
            confirmation.get_confirmation_status()
            # "Transaction confirmed with 3 confirmations"
        """
        if self.status == ConfirmationStatus.SUCCESS:
            confirmations_text = f"with {self.confirmations} confirmations" if self.confirmations > 0 else "pending confirmations"
            return f"Transaction confirmed {confirmations_text}"
        elif self.status == ConfirmationStatus.TIMEOUT:
            return f"Transaction not confirmed in time: {self.error_message or 'no receipt'}"
        else:
            return f"Transaction failed: {self.error_message or self.status.value}"
