from .bases import CanonicalModel, BaseSignature, BasePermit, ConfirmationStatus, BaseTransactionConfirmation
from .transactions import (
    TransactionStatus,
    Recipient,
    EIP2612PermitData,
    Transaction,
    CreateTransactionRequest,
    UpdateTransactionRequest,
    SUPPORTED_TOKEN_TYPE,
    SUPPORTED_NETWORK,
)

__all__ = [
    "CanonicalModel",
    "BaseSignature",
    "BasePermit",
    "ConfirmationStatus",
    "BaseTransactionConfirmation",
    "TransactionStatus",
    "Recipient",
    "EIP2612PermitData",
    "Transaction",
    "CreateTransactionRequest",
    "UpdateTransactionRequest",
    "SUPPORTED_TOKEN_TYPE",
    "SUPPORTED_NETWORK",
]
