"""
Exception and Error Definitions Module

Defines the exception hierarchy for transaction validation, permit signing,
chain reads and the transaction state machine. All exceptions inherit from
EmailPayError for unified handling at the HTTP boundary.

On-chain submission failures are not exceptions: the relayer reports
them as result objects (see ``adapters.evm.schemas.RelayConfirmation``).

Exception Hierarchy:
    EmailPayError (root)
    ├── InputValidationError
    ├── PermitSignatureError
    ├── BlockchainInteractionError
    │   ├── ChainReadError
    │   └── ContractCallError
    ├── TransactionNotFoundError
    ├── InvalidTransition
    └── ConfigurationError
"""


class EmailPayError(Exception):
    """
    Root exception class for all project-specific exceptions.
    """
    pass


class InputValidationError(EmailPayError):
    """
    Raised when a transaction request is rejected before any chain interaction.

    This includes scenarios such as:
    - Missing sender address or recipients
    - Missing subject, token type or network on a non-draft transaction
    - Non-positive or non-numeric amount
    - Gasless transaction without permit data
    """
    pass


class PermitSignatureError(EmailPayError):
    """
    Raised when a permit digest cannot be signed.

    This includes scenarios such as:
    - Malformed private key material
    - Wallet provider session expired or key export refused
    - Provider returned a signature that is not 65 bytes
    """
    pass


class BlockchainInteractionError(EmailPayError):
    """
    Base exception for read-only chain interaction failures.

    Attributes:
        method: Contract method or RPC call that failed
    """

    def __init__(self, message: str, method: str = None):
        super().__init__(message)
        self.method = method


class ChainReadError(BlockchainInteractionError):
    """
    Raised when the RPC node cannot serve a read.

    This includes scenarios such as:
    - RPC endpoint unreachable or timing out
    - Malformed JSON-RPC response
    """
    pass


class ContractCallError(BlockchainInteractionError):
    """
    Raised when a view call reached the node but the contract rejected it.

    This includes scenarios such as:
    - Call reverted
    - Address has no code or does not implement the ERC-20 interface
    """
    pass


class TransactionNotFoundError(EmailPayError):
    """
    Raised when a transaction id does not exist for the requesting owner.
    """
    pass


class InvalidTransition(EmailPayError):
    """
    Raised when a status change is not in the allowed transition table.

    Attributes:
        current: Status currently persisted
        requested: Status the caller asked for
    """

    def __init__(self, current, requested):
        self.current = getattr(current, "value", current)
        self.requested = getattr(requested, "value", requested)
        super().__init__(f"Cannot move transaction from '{self.current}' to '{self.requested}'")


class ConfigurationError(EmailPayError):
    """
    Raised when configuration is missing or invalid.

    This includes scenarios such as:
    - Missing relayer private key
    - Unsupported chain or token
    - Invalid numeric environment values
    """
    pass
