from .relayer import RelayerExecutor
from .readers import TokenReader
from .permits import create_gasless_permit
from .schemas import (
    EVMECDSASignature,
    EVMTokenPermit,
    PermitFailure,
    RelayConfirmation,
)
from .signatures import (
    PermitSigner,
    RawKeySigner,
    ProviderSigner,
    WalletProvider,
    split_signature,
    recover_permit_signer,
)
from .digests import (
    PERMIT_TYPEHASH,
    EIP712_DOMAIN_TYPEHASH,
    build_domain_separator,
    build_permit_struct_hash,
    build_permit_digest,
    build_permit_typed_data,
)
from .constants import MAX_UINT256, to_base_units, from_base_units

__all__ = [
    "RelayerExecutor",
    "TokenReader",
    "create_gasless_permit",
    "EVMECDSASignature",
    "EVMTokenPermit",
    "PermitFailure",
    "RelayConfirmation",
    "PermitSigner",
    "RawKeySigner",
    "ProviderSigner",
    "WalletProvider",
    "split_signature",
    "recover_permit_signer",
    "PERMIT_TYPEHASH",
    "EIP712_DOMAIN_TYPEHASH",
    "build_domain_separator",
    "build_permit_struct_hash",
    "build_permit_digest",
    "build_permit_typed_data",
    "MAX_UINT256",
    "to_base_units",
    "from_base_units",
]
