from .exceptions import (
    EmailPayError,
    InputValidationError,
    PermitSignatureError,
    BlockchainInteractionError,
    ChainReadError,
    ContractCallError,
    TransactionNotFoundError,
    InvalidTransition,
    ConfigurationError,
)

__all__ = [
    "EmailPayError",
    "InputValidationError",
    "PermitSignatureError",
    "BlockchainInteractionError",
    "ChainReadError",
    "ContractCallError",
    "TransactionNotFoundError",
    "InvalidTransition",
    "ConfigurationError",
]
