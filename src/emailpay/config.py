"""
Runtime configuration.

Values come from the process environment after ``.env`` has been loaded with
python-dotenv. Secrets are held as ``SecretStr`` so that neither ``repr`` nor
log lines can reveal them.

Environment Variables:
    - EMAILPAY_RPC_URL: JSON-RPC endpoint (default: chain public RPC)
    - SPENDER_PRIVATE_KEY / EVM_PRIVATE_KEY: relayer key
    - EMAILPAY_CHAIN: CAIP-2 chain id (default ``eip155:11155111``)
    - EMAILPAY_TOKEN: token symbol (default ``PYUSD``)
    - PERMIT_DEADLINE_SECONDS: permit lifetime; unset or ``infinite`` means
      no expiry (``MAX_UINT256``)
    - CONFIRMATION_MAX_ATTEMPTS / CONFIRMATION_POLL_INTERVAL: receipt polling
    - RPC_REQUEST_TIMEOUT: HTTP timeout for RPC calls, seconds
    - REUSE_EXISTING_ALLOWANCE: skip re-submitting a permit on retry when the
      relayer already holds enough allowance
    - EMAIL_WEBHOOK_URL: email dispatcher endpoint (optional)
    - LOG_LEVEL: logging level name
"""

import logging
import os
import time
from typing import Optional

import dotenv
from pydantic import BaseModel, Field, SecretStr

from .adapters.evm.constants import (
    MAX_UINT256,
    DEFAULT_CAIP2,
    DEFAULT_TOKEN_SYMBOL,
    get_asset_config,
    get_chain_config,
    get_private_key_from_env,
    get_rpc_url_from_env,
)
from .engine.exceptions import ConfigurationError

dotenv.load_dotenv()

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ConfigurationError(f"{name} must be a boolean, got {raw!r}")


def _env_number(name: str, default, cast):
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return cast(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from None


def _env_deadline_seconds() -> Optional[int]:
    raw = os.getenv("PERMIT_DEADLINE_SECONDS")
    if raw is None or raw.strip().lower() in ("", "infinite", "max"):
        return None
    try:
        seconds = int(raw)
    except ValueError:
        raise ConfigurationError(f"PERMIT_DEADLINE_SECONDS must be an integer or 'infinite', got {raw!r}") from None
    if seconds <= 0:
        raise ConfigurationError("PERMIT_DEADLINE_SECONDS must be positive")
    return seconds


class Settings(BaseModel):
    """Resolved EmailPay settings."""

    caip2: str = Field(default=DEFAULT_CAIP2, description="CAIP-2 chain identifier")
    chain_id: int = Field(default=11155111, description="Numeric chain id")
    network_name: str = Field(default="Ethereum Sepolia", description="Network name stored on transactions")
    token_symbol: str = Field(default=DEFAULT_TOKEN_SYMBOL, description="Token symbol stored on transactions")
    token_address: str = Field(..., description="Token contract address")
    rpc_url: str = Field(..., description="JSON-RPC endpoint")
    relayer_private_key: Optional[SecretStr] = Field(default=None, description="Relayer key")
    permit_deadline_seconds: Optional[int] = Field(
        default=None, description="Permit lifetime in seconds; None means MAX_UINT256"
    )
    confirmation_max_attempts: int = Field(default=60, ge=1)
    confirmation_poll_interval: float = Field(default=2.0, ge=0)
    request_timeout: int = Field(default=60, ge=1)
    reuse_existing_allowance: bool = True
    email_webhook_url: Optional[str] = None
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        """
        Build settings from the environment.

        Raises:
            ConfigurationError: If the chain/token is unsupported or a value is malformed.
        """
        caip2 = os.getenv("EMAILPAY_CHAIN", DEFAULT_CAIP2)
        symbol = os.getenv("EMAILPAY_TOKEN", DEFAULT_TOKEN_SYMBOL)
        chain = get_chain_config(caip2)
        asset = get_asset_config(caip2, symbol)
        private_key = get_private_key_from_env()

        return cls(
            caip2=caip2,
            chain_id=chain.chain_id,
            network_name=chain.name,
            token_symbol=symbol,
            token_address=asset.address,
            rpc_url=get_rpc_url_from_env(caip2),
            relayer_private_key=SecretStr(private_key) if private_key else None,
            permit_deadline_seconds=_env_deadline_seconds(),
            confirmation_max_attempts=_env_number("CONFIRMATION_MAX_ATTEMPTS", 60, int),
            confirmation_poll_interval=_env_number("CONFIRMATION_POLL_INTERVAL", 2.0, float),
            request_timeout=_env_number("RPC_REQUEST_TIMEOUT", 60, int),
            reuse_existing_allowance=_env_bool("REUSE_EXISTING_ALLOWANCE", True),
            email_webhook_url=os.getenv("EMAIL_WEBHOOK_URL") or None,
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )

    def permit_deadline(self, now: Optional[float] = None) -> int:
        """
        Deadline to use for a newly created permit.

        ``MAX_UINT256`` when no lifetime is configured, otherwise ``now + lifetime``.
        """
        if self.permit_deadline_seconds is None:
            return MAX_UINT256
        return int(now if now is not None else time.time()) + self.permit_deadline_seconds


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging for the service process."""
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)
