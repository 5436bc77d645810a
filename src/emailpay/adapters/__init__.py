from .evm import (
    RelayerExecutor,
    TokenReader,
    create_gasless_permit,
    EVMTokenPermit,
    PermitFailure,
    RelayConfirmation,
    RawKeySigner,
    ProviderSigner,
)

__all__ = [
    "RelayerExecutor",
    "TokenReader",
    "create_gasless_permit",
    "EVMTokenPermit",
    "PermitFailure",
    "RelayConfirmation",
    "RawKeySigner",
    "ProviderSigner",
]
