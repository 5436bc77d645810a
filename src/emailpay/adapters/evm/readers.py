"""
Read-only token queries used before a permit is signed.

``TokenReader`` wraps the ERC-20 / EIP-2612 view functions. Each call either
returns a value or raises one of two typed errors so callers can tell an
unreachable node apart from a contract that rejected the call:

    - ``ChainReadError``: provider/network failure (retrying may help)
    - ``ContractCallError``: the call reached the contract and reverted or
      returned nothing decodable (wrong address, missing function)

No retries are performed here.
"""

import logging
from typing import Awaitable, Callable, Optional, Tuple, TypeVar

from web3 import AsyncWeb3
from web3.exceptions import BadFunctionCallOutput, ContractLogicError, Web3Exception

from .constants import from_base_units
from .ERC20_ABI import get_token_abi
from ...engine.exceptions import ChainReadError, ContractCallError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class TokenReader:
    """
    View-call client for one chain.

    Args:
        web3: Connected ``AsyncWeb3`` instance.

    Example::

        reader = TokenReader(AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(rpc_url)))
        nonce = await reader.get_nonce(owner, token)
        decimals = await reader.get_decimals(token)
    """

    def __init__(self, web3: AsyncWeb3):
        self.web3 = web3

    def _contract(self, token: str):
        try:
            address = AsyncWeb3.to_checksum_address(token)
        except ValueError as e:
            raise ContractCallError(f"Invalid token address {token!r}: {e}", method="address") from e
        return self.web3.eth.contract(address=address, abi=get_token_abi())

    @staticmethod
    def _checksum(address: str, method: str) -> str:
        try:
            return AsyncWeb3.to_checksum_address(address)
        except ValueError as e:
            raise ContractCallError(f"Invalid address {address!r}: {e}", method=method) from e

    async def _call(self, method: str, token: str, call: Callable[[], Awaitable[T]]) -> T:
        try:
            return await call()
        except (ContractLogicError, BadFunctionCallOutput) as e:
            raise ContractCallError(f"{method}() call on {token} failed: {e}", method=method) from e
        except Web3Exception as e:
            raise ChainReadError(f"RPC error during {method}() on {token}: {e}", method=method) from e
        except Exception as e:
            # aiohttp / socket / timeout errors surface here untyped
            raise ChainReadError(f"Provider unavailable during {method}() on {token}: {e}", method=method) from e

    async def get_nonce(self, owner: str, token: str) -> int:
        """Return ``nonces(owner)``, the next EIP-2612 permit nonce."""
        contract = self._contract(token)
        owner = self._checksum(owner, "nonces")
        nonce = await self._call("nonces", token, lambda: contract.functions.nonces(owner).call())
        return int(nonce)

    async def get_decimals(self, token: str) -> int:
        """Return ``decimals()``."""
        contract = self._contract(token)
        decimals = await self._call("decimals", token, lambda: contract.functions.decimals().call())
        return int(decimals)

    async def get_balance(self, owner: str, token: str) -> str:
        """Return ``balanceOf(owner)`` as an exact human-readable decimal string."""
        contract = self._contract(token)
        owner = self._checksum(owner, "balanceOf")
        decimals = await self.get_decimals(token)
        value = await self._call("balanceOf", token, lambda: contract.functions.balanceOf(owner).call())
        return from_base_units(int(value), decimals)

    async def get_allowance(self, owner: str, spender: str, token: str) -> int:
        """Return ``allowance(owner, spender)`` in base units."""
        contract = self._contract(token)
        owner = self._checksum(owner, "allowance")
        spender = self._checksum(spender, "allowance")
        allowance = await self._call(
            "allowance", token, lambda: contract.functions.allowance(owner, spender).call()
        )
        return int(allowance)

    async def get_domain_metadata(
        self,
        token: str,
        default_name: str,
        default_version: str = "1",
    ) -> Tuple[str, str]:
        """
        Return the token's EIP-712 ``(name, version)``.

        A token that does not expose ``name()`` or ``version()`` falls back to
        the supplied defaults; provider errors still propagate.
        """
        contract = self._contract(token)
        name = await self._optional_string(token, "name", contract.functions.name)
        version = await self._optional_string(token, "version", contract.functions.version)
        if name is None:
            logger.info("Token %s has no name(); using %r", token, default_name)
        if version is None:
            logger.info("Token %s has no version(); using %r", token, default_version)
        return name or default_name, version or default_version

    async def _optional_string(self, token: str, method: str, fn) -> Optional[str]:
        try:
            value = await self._call(method, token, lambda: fn().call())
        except ContractCallError:
            return None
        return value or None
