"""
EVM Permit Signing

Signs a 32-byte EIP-2612 permit digest and returns ``EVMECDSASignature``
(v, r, s). Digest construction and on-chain submission do not care which
variant produced the signature.

Exported helpers
----------------
PermitSigner
    Common interface: ``await signer.sign(digest) -> EVMECDSASignature``.

RawKeySigner
    Signs in-process with ``eth_account`` from a private key the caller holds
    transiently (e.g. exported from the wallet provider for the gasless flow).

ProviderSigner
    Delegates to a connected ``WalletProvider`` and splits the returned
    65-byte signature into v/r/s.

split_signature
    Split a packed ``r || s || v`` signature, normalizing v to 27/28.

recover_permit_signer
    Recover the signing address from a digest and v/r/s.
"""

from abc import ABC, abstractmethod
from typing import Protocol, Union, runtime_checkable

from eth_account import Account
from eth_keys import keys
from eth_keys.exceptions import BadSignature, ValidationError
from eth_utils import to_checksum_address

from .schemas import EVMECDSASignature
from ...engine.exceptions import PermitSignatureError


def _int_to_hex32(value: int) -> str:
    return "0x" + value.to_bytes(32, "big").hex()


def split_signature(signature: Union[str, bytes]) -> EVMECDSASignature:
    """
    Split a 65-byte ``r || s || v`` signature into components.

    r is bytes 0..32, s is bytes 32..64 and v is the final byte. A v of 0/1
    (raw recovery id, as some wallets return) is shifted to 27/28.

    Raises:
        PermitSignatureError: If the signature is not 65 bytes or v is invalid.

    Example::

        sig = split_signature("0x" + "11" * 32 + "22" * 32 + "1c")
        sig.v  # 28
    """
    if isinstance(signature, str):
        hex_str = signature[2:] if signature.lower().startswith("0x") else signature
        try:
            raw = bytes.fromhex(hex_str)
        except ValueError as e:
            raise PermitSignatureError(f"Signature is not valid hex: {e}") from e
    else:
        raw = bytes(signature)

    if len(raw) != 65:
        raise PermitSignatureError(f"Signature must be 65 bytes, got {len(raw)}")

    v = raw[64]
    if v in (0, 1):
        v += 27
    if v not in (27, 28):
        raise PermitSignatureError(f"Invalid signature recovery byte: {raw[64]}")

    return EVMECDSASignature(v=v, r="0x" + raw[:32].hex(), s="0x" + raw[32:64].hex())


def recover_permit_signer(digest: bytes, signature: EVMECDSASignature) -> str:
    """
    Recover the checksummed address that produced ``signature`` over ``digest``.

    Raises:
        PermitSignatureError: If the signature cannot be recovered.
    """
    try:
        sig = keys.Signature(vrs=(signature.v - 27, int(signature.r, 16), int(signature.s, 16)))
        public_key = sig.recover_public_key_from_msg_hash(digest)
    except (BadSignature, ValidationError, ValueError) as e:
        raise PermitSignatureError(f"Cannot recover signer: {e}") from e
    return public_key.to_checksum_address()


@runtime_checkable
class WalletProvider(Protocol):
    """
    Session-scoped wallet of the sending user.

    ``sign_message`` must sign the raw 32-byte digest without an EIP-191
    prefix; a prefixed signature recovers to a different address and the
    token contract rejects the permit.
    """

    async def get_address(self) -> str: ...

    async def sign_message(self, message: bytes) -> Union[str, bytes]: ...

    async def export_private_key(self) -> str: ...


class PermitSigner(ABC):
    """Produces a v/r/s signature over a permit digest."""

    @abstractmethod
    async def sign(self, digest: bytes) -> EVMECDSASignature:
        """
        Sign a 32-byte digest.

        Raises:
            PermitSignatureError: If key material is unavailable or malformed.
        """


class RawKeySigner(PermitSigner):
    """
    In-process ECDSA signer over an explicit private key.

    The key stays inside the ``eth_account`` account object for the lifetime
    of this signer; it is never written out and never appears in ``repr``.

    Example::

        signer = RawKeySigner(private_key)
        sig = await signer.sign(digest)
    """

    def __init__(self, private_key: str):
        if not private_key:
            raise PermitSignatureError("Private key is not available")
        try:
            self._account = Account.from_key(private_key)
        except (ValueError, TypeError, ValidationError):
            # The message of these errors can echo the key; keep it out.
            raise PermitSignatureError("Private key is malformed") from None

    @classmethod
    async def from_provider(cls, provider: WalletProvider) -> "RawKeySigner":
        """
        Build a signer from key material exported by the wallet provider.

        Raises:
            PermitSignatureError: If the session is gone or export is refused.
        """
        try:
            private_key = await provider.export_private_key()
        except Exception as e:
            raise PermitSignatureError(f"Wallet provider did not export key material: {e}") from e
        return cls(private_key)

    @property
    def address(self) -> str:
        return to_checksum_address(self._account.address)

    async def sign(self, digest: bytes) -> EVMECDSASignature:
        if len(digest) != 32:
            raise PermitSignatureError(f"Digest must be 32 bytes, got {len(digest)}")
        signed = self._account.unsafe_sign_hash(digest)
        v = signed.v if signed.v >= 27 else signed.v + 27
        return EVMECDSASignature(v=v, r=_int_to_hex32(signed.r), s=_int_to_hex32(signed.s))

    def __repr__(self) -> str:
        return f"RawKeySigner(address={self.address})"


class ProviderSigner(PermitSigner):
    """Signer that asks the connected wallet provider to sign the digest."""

    def __init__(self, provider: WalletProvider):
        self.provider = provider

    async def sign(self, digest: bytes) -> EVMECDSASignature:
        if len(digest) != 32:
            raise PermitSignatureError(f"Digest must be 32 bytes, got {len(digest)}")
        try:
            signature = await self.provider.sign_message(digest)
        except PermitSignatureError:
            raise
        except Exception as e:
            raise PermitSignatureError(f"Wallet provider failed to sign: {e}") from e
        if not signature:
            raise PermitSignatureError("Wallet provider returned an empty signature")
        return split_signature(signature)
