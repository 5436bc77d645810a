"""
EIP-712 domain separator and EIP-2612 permit digest construction.

All functions here are pure: given the token identity and the permit fields
(with nonce/decimals already read from chain) they return the exact 32-byte
values the token contract recomputes inside ``permit``. Any difference in a
single input yields a different digest, and the contract rejects the
signature on-chain.
"""

from typing import Union

from eth_abi import encode
from eth_utils import keccak, to_checksum_address

from .standards import EIP712Domain, EIP712TypedData, PermitMessage

#: keccak256("EIP712Domain(string name,string version,uint256 chainId,address verifyingContract)")
EIP712_DOMAIN_TYPEHASH: bytes = keccak(
    text="EIP712Domain(string name,string version,uint256 chainId,address verifyingContract)"
)

#: keccak256("Permit(address owner,address spender,uint256 value,uint256 nonce,uint256 deadline)")
PERMIT_TYPEHASH: bytes = keccak(
    text="Permit(address owner,address spender,uint256 value,uint256 nonce,uint256 deadline)"
)

EIP712_PREFIX = b"\x19\x01"


def _as_bytes32(value: Union[str, bytes]) -> bytes:
    if isinstance(value, str):
        value = bytes.fromhex(value[2:] if value.startswith("0x") else value)
    if len(value) != 32:
        raise ValueError(f"expected 32 bytes, got {len(value)}")
    return value


def build_domain_separator(name: str, version: str, chain_id: int, contract_address: str) -> bytes:
    """
    Compute the EIP-712 domain separator of a token contract.

    Args:
        name: Token EIP-712 name (``name()`` on-chain)
        version: Token EIP-712 version (``version()`` on-chain, usually "1")
        chain_id: Chain id the contract is deployed on
        contract_address: Token contract address (any case)

    Returns:
        bytes: 32-byte domain separator

    Example::

        ds = build_domain_separator("PYUSD", "1", 11155111,
                                    "0xCaC524BcA292aaade2DF8A05cC58F0a65B1B3bB9")
        ds.hex()
    """
    return keccak(
        encode(
            ["bytes32", "bytes32", "bytes32", "uint256", "address"],
            [
                EIP712_DOMAIN_TYPEHASH,
                keccak(text=name),
                keccak(text=version),
                int(chain_id),
                to_checksum_address(contract_address),
            ],
        )
    )


def build_permit_struct_hash(owner: str, spender: str, value: int, nonce: int, deadline: int) -> bytes:
    """keccak256 of the ABI-encoded ``Permit`` struct."""
    return keccak(
        encode(
            ["bytes32", "address", "address", "uint256", "uint256", "uint256"],
            [
                PERMIT_TYPEHASH,
                to_checksum_address(owner),
                to_checksum_address(spender),
                int(value),
                int(nonce),
                int(deadline),
            ],
        )
    )


def build_permit_digest(
    domain_separator: Union[str, bytes],
    owner: str,
    spender: str,
    value: int,
    nonce: int,
    deadline: int,
) -> bytes:
    """
    Compute the signable EIP-2612 permit digest.

    ``keccak256(0x1901 || domainSeparator || keccak256(encode(PERMIT_TYPEHASH, ...)))``

    Args:
        domain_separator: 32-byte separator (bytes or 0x-hex)
        owner: Token holder granting the allowance
        spender: Relayer address receiving the allowance
        value: Allowance in base units
        nonce: Owner's current ``nonces(owner)`` value
        deadline: Unix timestamp or ``MAX_UINT256``

    Returns:
        bytes: 32-byte digest to be signed with raw ECDSA (no message prefix)
    """
    struct_hash = build_permit_struct_hash(owner, spender, value, nonce, deadline)
    return keccak(EIP712_PREFIX + _as_bytes32(domain_separator) + struct_hash)


def build_permit_typed_data(
    name: str,
    version: str,
    chain_id: int,
    contract_address: str,
    owner: str,
    spender: str,
    value: int,
    nonce: int,
    deadline: int,
) -> EIP712TypedData:
    """
    The same permit as an ``eth_signTypedData_v4`` document.

    Its hash equals ``build_permit_digest`` over ``build_domain_separator`` of
    the same token identity.
    """
    return EIP712TypedData(
        domain=EIP712Domain(
            name=name,
            version=version,
            chainId=int(chain_id),
            verifyingContract=to_checksum_address(contract_address),
        ),
        message=PermitMessage(
            owner=to_checksum_address(owner),
            spender=to_checksum_address(spender),
            value=int(value),
            nonce=int(nonce),
            deadline=int(deadline),
        ),
    )
