"""
EVM Relayer Executor

Server-held "spender" wallet that pays gas for gasless transfers. It submits
the owner's signed EIP-2612 ``permit`` and, once the allowance is in place,
``transferFrom(owner, recipient, value)``.

Key Features:
    - All submissions from the relayer account are serialized behind one
      ``asyncio.Lock``; the account nonce is tracked locally so concurrent
      requests never reuse it. The lock is released as soon as the node
      accepts the raw transaction, not when it confirms.
    - Confirmation waits are bounded (``max_attempts * poll_interval``) and
      time out with ``ConfirmationStatus.TIMEOUT``, distinct from a revert.
    - No method raises: every outcome is a ``RelayConfirmation``.
    - No automatic resubmission.

Dependencies:
    - web3.py: For RPC interaction and contract calls
    - eth_account: For transaction signing
"""

from typing import Optional, Union
import asyncio
import logging

from web3 import AsyncWeb3
from eth_account import Account
from eth_keys.exceptions import ValidationError
from web3.exceptions import TransactionNotFound

from ...schemas.bases import ConfirmationStatus
from ...engine.exceptions import ConfigurationError
from .schemas import EVMTokenPermit, RelayConfirmation
from .ERC20_ABI import get_token_abi
from .constants import get_private_key_from_env, get_rpc_url_from_env, get_asset_config

logger = logging.getLogger(__name__)

#: Headroom added on top of ``estimate_gas``.
GAS_LIMIT_MULTIPLIER = 1.1


class RelayerExecutor:
    """
    Gas-paying relayer for permit and transferFrom submissions.

    Attributes:
        account: Relayer account (from ``SPENDER_PRIVATE_KEY`` / ``EVM_PRIVATE_KEY``)
        wallet_address: Checksummed relayer address; this is the permit ``spender``
        token: Token contract the relayer moves funds on
        web3: ``AsyncWeb3`` used for every submission

    Example:
        relayer = RelayerExecutor()  # key and RPC from environment

        permit_result = await relayer.execute_permit_transaction(permit)
        if permit_result.success:
            transfer_result = await relayer.execute_gasless_transfer(owner, recipient, permit.value)
    """

    def __init__(
        self,
        private_key: Optional[str] = None,
        rpc_url: Optional[str] = None,
        token: Optional[str] = None,
        web3: Optional[AsyncWeb3] = None,
        request_timeout: int = 60,
        max_attempts: int = 60,
        poll_interval: float = 2.0,
    ):
        """
        Initialize the relayer.

        Args:
            private_key: Relayer key. Falls back to the environment.
            rpc_url: JSON-RPC endpoint. Falls back to ``EMAILPAY_RPC_URL`` or
                the chain's public RPC. Ignored when ``web3`` is given.
            token: Token contract address. Defaults to PYUSD on Sepolia.
            web3: Pre-built ``AsyncWeb3`` (tests inject a mock here).
            request_timeout: HTTP timeout for RPC requests in seconds.
            max_attempts: Receipt polls before giving up with TIMEOUT.
            poll_interval: Seconds between receipt polls.

        Raises:
            ConfigurationError: If no key is available or the key is malformed.
        """
        resolved_pk = private_key if private_key else get_private_key_from_env()
        if not resolved_pk:
            raise ConfigurationError(
                "Relayer private key not provided. Either pass 'private_key' or "
                "set 'SPENDER_PRIVATE_KEY' environment variable."
            )
        try:
            self.account = Account.from_key(resolved_pk)
        except (ValueError, TypeError, ValidationError):
            raise ConfigurationError("Relayer private key is malformed") from None

        self.wallet_address = AsyncWeb3.to_checksum_address(self.account.address)
        self.token = AsyncWeb3.to_checksum_address(token or get_asset_config().address)
        self.web3 = web3 or AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(
            rpc_url or get_rpc_url_from_env(),
            request_kwargs={"timeout": request_timeout}
        ))
        self.max_attempts = max_attempts
        self.poll_interval = poll_interval

        self._submit_lock = asyncio.Lock()
        self._next_nonce: Optional[int] = None

    @classmethod
    def from_settings(cls, settings, web3: Optional[AsyncWeb3] = None) -> "RelayerExecutor":
        """Build a relayer from an ``emailpay.config.Settings`` instance."""
        key = settings.relayer_private_key.get_secret_value() if settings.relayer_private_key else None
        return cls(
            private_key=key,
            rpc_url=settings.rpc_url,
            token=settings.token_address,
            web3=web3,
            request_timeout=settings.request_timeout,
            max_attempts=settings.confirmation_max_attempts,
            poll_interval=settings.confirmation_poll_interval,
        )

    @property
    def relayer_address(self) -> str:
        return self.wallet_address

    def _contract(self, token: Optional[str] = None):
        address = AsyncWeb3.to_checksum_address(token or self.token)
        return self.web3.eth.contract(address=address, abi=get_token_abi())

    async def execute_permit_transaction(self, payload: EVMTokenPermit) -> RelayConfirmation:
        """
        Submit ``permit(owner, spender, value, deadline, v, r, s)`` and wait for it.

        Args:
            payload: Signed permit whose ``spender`` should be this relayer.

        Returns:
            RelayConfirmation with ``action="permit"``. Expired deadlines, bad
            signatures and stale nonces surface as failures (usually at gas
            estimation, otherwise as an on-chain revert).
        """
        if payload.spender.lower() != self.wallet_address.lower():
            return RelayConfirmation(
                action="permit",
                status=ConfirmationStatus.INVALID_TRANSACTION,
                error_message=f"Permit spender {payload.spender} is not the relayer {self.wallet_address}",
            )
        try:
            sig = payload.signature
            tx_fn = self._contract(payload.token).functions.permit(
                AsyncWeb3.to_checksum_address(payload.owner),
                self.wallet_address,
                int(payload.value),
                int(payload.deadline),
                sig.v,
                bytes.fromhex(sig.r[2:] if sig.r.startswith("0x") else sig.r),
                bytes.fromhex(sig.s[2:] if sig.s.startswith("0x") else sig.s),
            )
        except Exception as e:
            return RelayConfirmation(
                action="permit",
                status=ConfirmationStatus.INVALID_TRANSACTION,
                error_message=f"Cannot encode permit call: {e}",
            )
        return await self._submit("permit", tx_fn)

    async def execute_gasless_transfer(
        self,
        owner: str,
        recipient: str,
        value: Union[int, str],
        token: Optional[str] = None,
    ) -> RelayConfirmation:
        """
        Submit ``transferFrom(owner, recipient, value)`` and wait for it.

        Must only be called after the permit granting the allowance has
        confirmed. Insufficient balance or allowance surfaces as a failure.
        """
        try:
            tx_fn = self._contract(token).functions.transferFrom(
                AsyncWeb3.to_checksum_address(owner),
                AsyncWeb3.to_checksum_address(recipient),
                int(value),
            )
        except Exception as e:
            return RelayConfirmation(
                action="transferFrom",
                status=ConfirmationStatus.INVALID_TRANSACTION,
                error_message=f"Cannot encode transferFrom call: {e}",
            )
        return await self._submit("transferFrom", tx_fn)

    async def _submit(self, action: str, tx_fn) -> RelayConfirmation:
        """
        Build, sign and broadcast under the submission lock, then wait unlocked.
        """
        async with self._submit_lock:
            try:
                chain_nonce = await self.web3.eth.get_transaction_count(self.wallet_address, "pending")
                tx_nonce = chain_nonce if self._next_nonce is None else max(chain_nonce, self._next_nonce)

                gas_estimate = await tx_fn.estimate_gas({"from": self.wallet_address})
                gas_price = await self.web3.eth.gas_price

                tx_dict = await tx_fn.build_transaction({
                    "from": self.wallet_address,
                    "gas": int(gas_estimate * GAS_LIMIT_MULTIPLIER),
                    "gasPrice": gas_price,
                    "nonce": tx_nonce,
                })
                signed_tx = self.account.sign_transaction(tx_dict)
            except Exception as e:
                logger.warning("%s rejected before broadcast: %s", action, e)
                return RelayConfirmation(
                    action=action,
                    status=ConfirmationStatus.INVALID_TRANSACTION,
                    error_message=f"{action} transaction could not be built: {e}",
                )

            try:
                tx_hash = await self.web3.eth.send_raw_transaction(signed_tx.raw_transaction)
            except Exception as e:
                logger.warning("%s broadcast failed: %s", action, e)
                return RelayConfirmation(
                    action=action,
                    status=ConfirmationStatus.NETWORK_ERROR,
                    error_message=f"Failed to broadcast {action} transaction: {e}",
                )

            self._next_nonce = tx_nonce + 1

        tx_hash_hex = AsyncWeb3.to_hex(tx_hash)
        logger.info("%s broadcast tx=%s nonce=%s", action, tx_hash_hex, tx_nonce)
        result = await self._wait_for_confirmation(action, tx_hash_hex)

        if result.status == ConfirmationStatus.TIMEOUT:
            # A dropped transaction leaves a nonce gap; the next submission
            # starts again from the node's pending count.
            async with self._submit_lock:
                self._next_nonce = None
        return result

    async def _wait_for_confirmation(self, action: str, tx_hash_hex: str) -> RelayConfirmation:
        """
        Poll for the receipt at most ``max_attempts`` times.

        Returns:
            SUCCESS / FAILED with receipt data, or TIMEOUT when no receipt appeared.
        """
        receipt = None
        for _ in range(self.max_attempts):
            try:
                receipt = await self.web3.eth.get_transaction_receipt(tx_hash_hex)
                if receipt:
                    break
            except TransactionNotFound:
                pass  # still pending
            except Exception as e:
                logger.warning("Receipt poll for %s failed: %s", tx_hash_hex, e)
            await self._sleep_async(self.poll_interval)

        if not receipt:
            logger.warning("%s tx=%s not confirmed after %s polls", action, tx_hash_hex, self.max_attempts)
            return RelayConfirmation(
                action=action,
                status=ConfirmationStatus.TIMEOUT,
                transaction_hash=tx_hash_hex,
                error_message=f"{action} transaction confirmation timed out",
            )

        try:
            current_block = await self.web3.eth.block_number
            confirmations = max(current_block - receipt["blockNumber"], 0)
        except Exception:
            confirmations = 0

        if receipt.get("status") == 1:
            logger.info("%s tx=%s confirmed in block %s", action, tx_hash_hex, receipt["blockNumber"])
            return RelayConfirmation(
                action=action,
                status=ConfirmationStatus.SUCCESS,
                transaction_hash=tx_hash_hex,
                block_number=receipt["blockNumber"],
                gas_used=receipt["gasUsed"],
                confirmations=confirmations,
            )

        logger.warning("%s tx=%s reverted in block %s", action, tx_hash_hex, receipt["blockNumber"])
        return RelayConfirmation(
            action=action,
            status=ConfirmationStatus.FAILED,
            transaction_hash=tx_hash_hex,
            block_number=receipt["blockNumber"],
            gas_used=receipt["gasUsed"],
            confirmations=confirmations,
            error_message=f"{action} transaction reverted on-chain",
        )

    @staticmethod
    async def _sleep_async(seconds: float):
        """Simple async sleep utility."""
        await asyncio.sleep(seconds)
