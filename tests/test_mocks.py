"""
Mock objects and test data for the EmailPay test suite.

This module provides:
- Signing keys and the addresses derived from them
- Transaction and permit fixtures data
- A web3-shaped mock (contract functions, ``eth`` namespace) that lets the
  reader and the relayer run end to end without a node
- Fakes for the relayer/reader/dispatcher collaborators of the state machine

Usage:
    from test_mocks import MockWeb3, MockContract, MOCK_OWNER_ADDRESS

    web3 = MockWeb3(MockContract(nonce=3))
    reader = TokenReader(web3)
"""

from typing import Any, Dict, Optional
from unittest.mock import AsyncMock, Mock

from eth_account import Account
from eth_utils import keccak, to_checksum_address
from web3.exceptions import TransactionNotFound

from emailpay.adapters.evm.constants import MAX_UINT256
from emailpay.adapters.evm.schemas import RelayConfirmation
from emailpay.schemas.bases import ConfirmationStatus
from emailpay.schemas.transactions import EIP2612PermitData


# ========================================================================
# Keys and Addresses
# ========================================================================

# Test-only keys. Never fund these on a real network.
MOCK_OWNER_PRIVATE_KEY = "0x" + "1234567890" * 6 + "1234"
MOCK_RELAYER_PRIVATE_KEY = "0x" + "abcd" * 16

MOCK_OWNER_ADDRESS = Account.from_key(MOCK_OWNER_PRIVATE_KEY).address
MOCK_RELAYER_ADDRESS = Account.from_key(MOCK_RELAYER_PRIVATE_KEY).address
MOCK_RECIPIENT_ADDRESS = to_checksum_address("0x742d35cc6634c0532925a3b844bc454e4438f44e")

# ========================================================================
# Chain and Token
# ========================================================================

MOCK_CHAIN_ID_SEPOLIA = 11155111
MOCK_PYUSD_SEPOLIA = "0xCaC524BcA292aaade2DF8A05cC58F0a65B1B3bB9"
MOCK_TOKEN_NAME = "PYUSD"
MOCK_TOKEN_VERSION = "1"
MOCK_TOKEN_DECIMALS = 6

MOCK_AMOUNT = "10.5"
MOCK_AMOUNT_BASE_UNITS = 10500000

MOCK_GAS_ESTIMATE = 80000
MOCK_GAS_PRICE = 2_000_000_000
MOCK_BLOCK_NUMBER = 100
MOCK_LATEST_BLOCK = 105
MOCK_GAS_USED = 61234

MOCK_PERMIT_TX_HASH = "0x" + "a1" * 32
MOCK_TRANSFER_TX_HASH = "0x" + "b2" * 32


async def _resolved(value):
    return value


# ========================================================================
# Mock Contract
# ========================================================================

def _view_function(result: Any) -> Mock:
    fn = Mock()
    fn.call = AsyncMock(return_value=result)
    return fn


class MockContractFunction:
    """
    A state-changing contract call (``permit`` / ``transferFrom``).

    ``build_transaction`` returns a complete legacy transaction so the
    relayer's ``Account.sign_transaction`` works offline.
    """

    def __init__(self, contract_address: str, selector: str):
        self.contract_address = contract_address
        self.selector = selector
        self.estimate_gas = AsyncMock(return_value=MOCK_GAS_ESTIMATE)
        self.build_transaction = AsyncMock(side_effect=self._build)

    async def _build(self, params: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "to": to_checksum_address(self.contract_address),
            "data": self.selector + "00" * 96,
            "value": 0,
            "chainId": MOCK_CHAIN_ID_SEPOLIA,
            "gas": params["gas"],
            "gasPrice": params["gasPrice"],
            "nonce": params["nonce"],
        }


class MockContract:
    """
    Mock PYUSD contract.

    View results can be changed per test through the exposed function mocks,
    e.g. ``contract.nonces.call.side_effect = ConnectionError()``.
    """

    def __init__(
        self,
        address: str = MOCK_PYUSD_SEPOLIA,
        nonce: int = 0,
        decimals: int = MOCK_TOKEN_DECIMALS,
        name: str = MOCK_TOKEN_NAME,
        version: str = MOCK_TOKEN_VERSION,
        balance: int = 25_000000,
        allowance: int = 0,
    ):
        self.address = address
        self.nonces = _view_function(nonce)
        self.decimals = _view_function(decimals)
        self.name = _view_function(name)
        self.version = _view_function(version)
        self.balance_of = _view_function(balance)
        self.allowance = _view_function(allowance)
        self.permit = MockContractFunction(address, "0xd505accf")
        self.transfer_from = MockContractFunction(address, "0x23b872dd")
        self.functions = self._create_functions_mock()

    def _create_functions_mock(self) -> Mock:
        functions = Mock()
        functions.nonces = Mock(return_value=self.nonces)
        functions.decimals = Mock(return_value=self.decimals)
        functions.name = Mock(return_value=self.name)
        functions.version = Mock(return_value=self.version)
        functions.balanceOf = Mock(return_value=self.balance_of)
        functions.allowance = Mock(return_value=self.allowance)
        functions.permit = Mock(return_value=self.permit)
        functions.transferFrom = Mock(return_value=self.transfer_from)
        return functions


# ========================================================================
# Mock Web3
# ========================================================================

class MockEth:
    """
    The ``web3.eth`` namespace.

    ``gas_price`` and ``block_number`` are awaitable properties, as on
    ``AsyncWeb3``. Receipts are returned immediately unless
    ``pending_polls`` is set, in which case that many polls raise
    ``TransactionNotFound`` first.
    """

    def __init__(self, contract: MockContract, chain_nonce: int = 0):
        self.mock_contract = contract
        self.contract = Mock(return_value=contract)
        self.get_transaction_count = AsyncMock(return_value=chain_nonce)
        self.send_raw_transaction = AsyncMock(side_effect=self._send_raw)
        self.get_transaction_receipt = AsyncMock(side_effect=self._receipt)
        self.gas_price_value = MOCK_GAS_PRICE
        self.block_number_value = MOCK_LATEST_BLOCK
        self.receipt_status = 1
        self.pending_polls = 0
        self.sent_raw = []

    @property
    def gas_price(self):
        return _resolved(self.gas_price_value)

    @property
    def block_number(self):
        return _resolved(self.block_number_value)

    async def _send_raw(self, raw: bytes) -> bytes:
        self.sent_raw.append(raw)
        return keccak(raw)

    async def _receipt(self, tx_hash: str) -> Dict[str, Any]:
        if self.pending_polls > 0:
            self.pending_polls -= 1
            raise TransactionNotFound(f"Transaction with hash {tx_hash} not found")
        return {
            "transactionHash": tx_hash,
            "status": self.receipt_status,
            "blockNumber": MOCK_BLOCK_NUMBER,
            "gasUsed": MOCK_GAS_USED,
        }


class MockWeb3:
    """Stand-in for ``AsyncWeb3`` exposing only what the adapters use."""

    def __init__(self, contract: Optional[MockContract] = None, chain_nonce: int = 0):
        self.contract = contract or MockContract()
        self.eth = MockEth(self.contract, chain_nonce=chain_nonce)


# ========================================================================
# State Machine Collaborators
# ========================================================================

def confirmation(
    action: str,
    status: ConfirmationStatus = ConfirmationStatus.SUCCESS,
    tx_hash: Optional[str] = None,
    error: Optional[str] = None,
) -> RelayConfirmation:
    """Build the result a relayer call would return."""
    if tx_hash is None and status in (ConfirmationStatus.SUCCESS, ConfirmationStatus.FAILED):
        tx_hash = MOCK_PERMIT_TX_HASH if action == "permit" else MOCK_TRANSFER_TX_HASH
    return RelayConfirmation(
        action=action,
        status=status,
        transaction_hash=tx_hash,
        block_number=MOCK_BLOCK_NUMBER if tx_hash else None,
        error_message=error,
    )


def create_mock_relayer(
    permit_result: Optional[RelayConfirmation] = None,
    transfer_result: Optional[RelayConfirmation] = None,
) -> Mock:
    """Relayer double whose calls succeed unless told otherwise."""
    relayer = Mock()
    relayer.wallet_address = MOCK_RELAYER_ADDRESS
    relayer.token = MOCK_PYUSD_SEPOLIA
    relayer.execute_permit_transaction = AsyncMock(
        return_value=permit_result or confirmation("permit")
    )
    relayer.execute_gasless_transfer = AsyncMock(
        return_value=transfer_result or confirmation("transferFrom")
    )
    return relayer


def create_mock_reader(allowance: int = 0, decimals: int = MOCK_TOKEN_DECIMALS) -> Mock:
    reader = Mock()
    reader.get_decimals = AsyncMock(return_value=decimals)
    reader.get_allowance = AsyncMock(return_value=allowance)
    return reader


def create_mock_dispatcher(accepted: bool = True) -> Mock:
    dispatcher = Mock()
    dispatcher.send = AsyncMock(return_value=accepted)
    return dispatcher


# ========================================================================
# Request Payloads
# ========================================================================

def create_permit_data(**overrides) -> EIP2612PermitData:
    """Structurally valid permit sub-record (the signature is not real)."""
    fields = {
        "v": 27,
        "r": "0x" + "a1b2c3d4" * 8,
        "s": "0x" + "e5f6a7b8" * 8,
        "deadline": MAX_UINT256,
        "nonce": 0,
        "owner": MOCK_OWNER_ADDRESS,
        "spender": MOCK_RELAYER_ADDRESS,
        "value": str(MOCK_AMOUNT_BASE_UNITS),
    }
    fields.update(overrides)
    return EIP2612PermitData(**fields)


def create_transaction_payload(**overrides) -> Dict[str, Any]:
    """A camelCase create-request body, as the web client sends it."""
    payload = {
        "userAddress": MOCK_OWNER_ADDRESS,
        "toRecipients": [
            {"name": "Alice", "email": "alice@example.com", "address": MOCK_RECIPIENT_ADDRESS}
        ],
        "ccRecipients": [{"name": "Bob", "email": "bob@example.com"}],
        "bccRecipients": [],
        "subject": "Lunch money",
        "message": "Thanks for lunch!",
        "amount": MOCK_AMOUNT,
        "tokenType": "PYUSD",
        "network": "Ethereum Sepolia",
        "status": "pending",
        "isGasless": False,
    }
    payload.update(overrides)
    return payload
