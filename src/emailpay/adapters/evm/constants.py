"""
EVM Chain Configuration Management

Provides the supported chain/token table, environment-aware RPC and relayer
key lookup, and exact conversion between human-readable token amounts and
on-chain base units.
"""

import os
from decimal import Decimal, InvalidOperation, localcontext
from typing import Dict, Optional

from pydantic import BaseModel, Field
import dotenv

from ...engine.exceptions import ConfigurationError

dotenv.load_dotenv()


#: Sentinel "infinite" permit deadline (and the largest uint256 value).
MAX_UINT256: int = 2**256 - 1

DEFAULT_CAIP2 = "eip155:11155111"
DEFAULT_TOKEN_SYMBOL = "PYUSD"

#: Enough digits to hold any uint256 without Decimal rounding.
_DECIMAL_PRECISION = 100


class EvmAssetConfig(BaseModel):
    """Token asset configuration."""
    symbol: str
    address: str = Field(..., description="Token contract address")
    name: str = Field(..., description="EIP-712 domain name used when name() is unavailable")
    decimals: int = Field(..., description="Token decimals")
    version: str = Field(default="1", description="EIP-712 domain version used when version() is unavailable")
    domain_separator: Optional[str] = Field(
        default=None,
        description="Known DOMAIN_SEPARATOR of the deployed token, if pinned",
    )


class EvmChainConfig(BaseModel):
    """EVM network configuration."""
    caip2: str
    chain_id: int
    name: str = Field(..., description="Human-readable network name stored on transactions")
    public_rpc_url: str = Field(..., description="Public RPC endpoint")
    explorer_url: str = Field(..., description="Block explorer URL")
    assets: Dict[str, EvmAssetConfig] = Field(default_factory=dict, description="Supported assets")


# Only one token/network pairing is supported for value movement.
_EVM_CHAINS_DATA: Dict = {
    "eip155:11155111": {
        "name": "Ethereum Sepolia",
        "public_rpc_url": "https://ethereum-sepolia-rpc.publicnode.com",
        "explorer_url": "https://sepolia.etherscan.io",
        "assets": {
            "PYUSD": {
                "address": "0xCaC524BcA292aaade2DF8A05cC58F0a65B1B3bB9",
                "name": "PYUSD",
                "decimals": 6,
                "version": "1",
                "domain_separator": "0xeb1535de0433e1aef3829afd2ac55ec7cceed66557c581c4273fbf7fc537c14a",
            }
        },
    },
}


def _parse_caip2_eip155_chain_id(caip2: str) -> int:
    """
    Parse the numeric chain id from an ``eip155:<id>`` CAIP-2 identifier.

    Raises:
        ConfigurationError: If the identifier is not an eip155 chain.
    """
    namespace, _, reference = caip2.partition(":")
    if namespace != "eip155" or not reference.isdigit():
        raise ConfigurationError(f"Unsupported CAIP-2 chain identifier: {caip2!r}")
    return int(reference)


def get_chain_config(caip2: str = DEFAULT_CAIP2) -> EvmChainConfig:
    """
    Return the configuration of a supported chain.

    Raises:
        ConfigurationError: If the chain is not supported.
    """
    data = _EVM_CHAINS_DATA.get(caip2)
    if data is None:
        raise ConfigurationError(f"Chain {caip2} is not supported")

    assets = {
        symbol: EvmAssetConfig(symbol=symbol, **asset)
        for symbol, asset in data["assets"].items()
    }
    return EvmChainConfig(
        caip2=caip2,
        chain_id=_parse_caip2_eip155_chain_id(caip2),
        name=data["name"],
        public_rpc_url=data["public_rpc_url"],
        explorer_url=data["explorer_url"],
        assets=assets,
    )


def get_asset_config(caip2: str = DEFAULT_CAIP2, symbol: str = DEFAULT_TOKEN_SYMBOL) -> EvmAssetConfig:
    """
    Return the configuration of a supported token on a supported chain.

    Raises:
        ConfigurationError: If the chain or token is not supported.
    """
    chain = get_chain_config(caip2)
    asset = chain.assets.get(symbol)
    if asset is None:
        raise ConfigurationError(f"Token {symbol} is not supported on {caip2}")
    return asset


def find_asset_by_address(caip2: str, token_address: str) -> Optional[EvmAssetConfig]:
    """Look up a supported asset by contract address (case-insensitive)."""
    chain = get_chain_config(caip2)
    for asset in chain.assets.values():
        if asset.address.lower() == token_address.lower():
            return asset
    return None


def explorer_tx_url(tx_hash: str, caip2: str = DEFAULT_CAIP2) -> str:
    """Block explorer link for a transaction hash."""
    return f"{get_chain_config(caip2).explorer_url}/tx/{tx_hash}"


def get_private_key_from_env() -> Optional[str]:
    """
    Load the relayer (spender) private key from environment variables.

    Environment Variables:
        - SPENDER_PRIVATE_KEY: relayer key (0x-prefixed hex)
        - EVM_PRIVATE_KEY: fallback name

    Returns:
        str: Private key from environment, or None if not configured

    Note:
        The key pays gas for every gasless transfer. Keep it out of version
        control and out of logs.
    """
    return os.getenv("SPENDER_PRIVATE_KEY") or os.getenv("EVM_PRIVATE_KEY")


def get_rpc_url_from_env(caip2: str = DEFAULT_CAIP2) -> str:
    """
    Resolve the JSON-RPC endpoint.

    ``EMAILPAY_RPC_URL`` wins when set; otherwise the chain's public RPC is used.
    """
    return os.getenv("EMAILPAY_RPC_URL") or get_chain_config(caip2).public_rpc_url


def to_base_units(amount: int | str | Decimal, decimals: int) -> int:
    """Convert a human-readable token `amount` into a base-unit integer.

    Args:
        amount: Human-readable amount such as ``"10.5"``. Accepts int/str/Decimal;
            floats are converted through ``str`` to avoid binary drift.
        decimals: Token decimals (6 for PYUSD).

    Returns:
        int: Base-unit integer value.

    Raises:
        ValueError: If the amount is malformed, negative, or has more
            fractional digits than `decimals` allows.
    """
    if not isinstance(decimals, int) or decimals < 0:
        raise ValueError("decimals must be a non-negative int")

    try:
        dec_amount = amount if isinstance(amount, Decimal) else Decimal(str(amount).strip())
    except (InvalidOperation, ValueError, TypeError) as e:
        raise ValueError(f"Invalid amount: {amount!r}") from e

    if not dec_amount.is_finite():
        raise ValueError(f"Invalid amount: {amount!r}")
    if dec_amount < 0:
        raise ValueError("amount must be non-negative")

    with localcontext() as ctx:
        ctx.prec = _DECIMAL_PRECISION
        scaled = dec_amount.scaleb(decimals)
        if scaled != scaled.to_integral_value():
            raise ValueError(
                f"amount {amount!r} has more than {decimals} fractional digits"
            )
        return int(scaled)


def from_base_units(value: int | str | Decimal, decimals: int) -> str:
    """Convert a base-unit integer `value` into an exact human-readable string.

    Trailing zeros are dropped: ``from_base_units(10500000, 6) == "10.5"``.

    Raises:
        ValueError: If inputs are invalid.
    """
    if not isinstance(decimals, int) or decimals < 0:
        raise ValueError("decimals must be a non-negative int")

    try:
        dec_value = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError) as e:
        raise ValueError(f"Invalid value: {value!r}") from e

    if not dec_value.is_finite() or dec_value < 0:
        raise ValueError("value must be a non-negative number")
    if dec_value != dec_value.to_integral_value():
        raise ValueError("value must be an integer in base units")

    with localcontext() as ctx:
        ctx.prec = _DECIMAL_PRECISION
        amount = dec_value.scaleb(-decimals).normalize()
        return format(amount, "f")
