"""
Gasless permit construction.

``create_gasless_permit`` reads the owner's permit nonce and the token
decimals, converts the human amount to base units, builds the EIP-712 digest
and signs it. It never raises: every failure comes back as a ``PermitFailure``
naming the step that failed, and callers must check for it explicitly.

Calling it twice without an intervening on-chain ``permit`` yields two
independently signed permits with the same nonce. Only one of them can ever
be executed; the token contract rejects the second as a replay.
"""

import logging
from typing import Optional, Union

from .constants import MAX_UINT256, DEFAULT_TOKEN_SYMBOL, find_asset_by_address, to_base_units
from .digests import build_domain_separator, build_permit_digest
from .readers import TokenReader
from .schemas import EVMTokenPermit, PermitFailure
from .signatures import PermitSigner, RawKeySigner
from ...engine.exceptions import (
    BlockchainInteractionError,
    ConfigurationError,
    PermitSignatureError,
)

logger = logging.getLogger(__name__)


async def create_gasless_permit(
    *,
    owner: str,
    spender: str,
    amount: str,
    token: str,
    chain_id: int,
    reader: TokenReader,
    private_key: Optional[str] = None,
    signer: Optional[PermitSigner] = None,
    deadline: int = MAX_UINT256,
    domain_separator: Optional[Union[str, bytes]] = None,
) -> Union[EVMTokenPermit, PermitFailure]:
    """
    Build and sign an EIP-2612 permit granting ``spender`` ``amount`` of ``token``.

    Args:
        owner: Token holder (the sender).
        spender: Relayer address that will submit ``permit`` and ``transferFrom``.
        amount: Human-readable amount, e.g. ``"10.5"``.
        token: Token contract address.
        chain_id: Chain the token lives on.
        reader: Chain reader used for ``nonces`` / ``decimals`` / ``name`` / ``version``.
        private_key: Owner key exported for this call only. Ignored if
            ``signer`` is given.
        signer: Any ``PermitSigner``; defaults to ``RawKeySigner(private_key)``.
        deadline: Unix timestamp, or ``MAX_UINT256`` for no expiry.
        domain_separator: Known separator of the token. When omitted it is
            built from the token's ``name()`` / ``version()``.

    Returns:
        EVMTokenPermit on success, PermitFailure otherwise.

    Example::

        result = await create_gasless_permit(
            owner=owner, spender=relayer, amount="10.5",
            token=PYUSD, chain_id=11155111, reader=reader,
            private_key=exported_key,
        )
        if isinstance(result, PermitFailure):
            ...
    """
    if signer is None:
        try:
            signer = RawKeySigner(private_key)
        except PermitSignatureError as e:
            return PermitFailure(stage="sign", error=str(e))

    try:
        nonce = await reader.get_nonce(owner, token)
    except BlockchainInteractionError as e:
        return PermitFailure(stage="nonce", error=str(e))

    try:
        decimals = await reader.get_decimals(token)
    except BlockchainInteractionError as e:
        return PermitFailure(stage="decimals", error=str(e))

    try:
        value = to_base_units(amount, decimals)
    except ValueError as e:
        return PermitFailure(stage="amount", error=str(e))

    if domain_separator is None:
        try:
            domain_separator = await _resolve_domain_separator(reader, token, chain_id)
        except (BlockchainInteractionError, ConfigurationError, ValueError) as e:
            return PermitFailure(stage="domain", error=str(e))

    try:
        digest = build_permit_digest(domain_separator, owner, spender, value, nonce, deadline)
    except (ValueError, TypeError) as e:
        return PermitFailure(stage="digest", error=str(e))

    try:
        signature = await signer.sign(digest)
    except PermitSignatureError as e:
        return PermitFailure(stage="sign", error=str(e))

    logger.info("Signed permit owner=%s spender=%s value=%s nonce=%s", owner, spender, value, nonce)
    return EVMTokenPermit(
        owner=owner,
        spender=spender,
        token=token,
        value=value,
        nonce=nonce,
        deadline=deadline,
        chain_id=chain_id,
        signature=signature,
    )


async def _resolve_domain_separator(reader: TokenReader, token: str, chain_id: int) -> bytes:
    default_name, default_version = DEFAULT_TOKEN_SYMBOL, "1"
    try:
        asset = find_asset_by_address(f"eip155:{chain_id}", token)
    except ConfigurationError:
        asset = None
    if asset is not None:
        default_name, default_version = asset.name, asset.version

    name, version = await reader.get_domain_metadata(token, default_name, default_version)
    return build_domain_separator(name, version, chain_id, token)
