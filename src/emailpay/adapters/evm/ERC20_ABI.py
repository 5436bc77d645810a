"""
ERC20 + EIP-2612 Smart Contract ABI Module

Minimal ABI fragments for the token calls the gasless engine makes: the
read-only metadata and nonce queries, and the two state-changing calls the
relayer submits (``permit`` and ``transferFrom``).

Usage:
    from .ERC20_ABI import get_token_abi, get_permit_abi

    # Everything the reader and relayer need
    contract = web3.eth.contract(address=token_address, abi=get_token_abi())
"""

from typing import Dict, Any, List


def _view(name: str, inputs: List[Dict[str, str]], output_type: str) -> Dict[str, Any]:
    return {
        "name": name,
        "type": "function",
        "stateMutability": "view",
        "inputs": inputs,
        "outputs": [{"name": "", "type": output_type}],
    }


def get_balance_abi() -> List[Dict[str, Any]]:
    """
    Get ABI for ``balanceOf(account)``.

    Example:
        contract = web3.eth.contract(address=token_address, abi=get_balance_abi())
        balance = await contract.functions.balanceOf(owner).call()
    """
    return [_view("balanceOf", [{"name": "account", "type": "address"}], "uint256")]


def get_allowance_abi() -> List[Dict[str, Any]]:
    """
    Get ABI for ``allowance(owner, spender)``.

    Example:
        allowance = await contract.functions.allowance(owner, spender).call()
    """
    return [
        _view(
            "allowance",
            [
                {"name": "owner", "type": "address"},
                {"name": "spender", "type": "address"},
            ],
            "uint256",
        )
    ]


def get_metadata_abi() -> List[Dict[str, Any]]:
    """
    Get ABI for ``decimals()``, ``name()``, ``version()`` and ``nonces(owner)``.

    ``version()`` is optional in EIP-2612 tokens; callers must tolerate a
    revert or empty return.
    """
    return [
        _view("decimals", [], "uint8"),
        _view("name", [], "string"),
        _view("version", [], "string"),
        _view("nonces", [{"name": "owner", "type": "address"}], "uint256"),
    ]


def get_permit_abi() -> List[Dict[str, Any]]:
    """
    Get ABI for EIP-2612 ``permit(owner, spender, value, deadline, v, r, s)``.

    Example:
        tx_fn = contract.functions.permit(owner, spender, value, deadline, v, r, s)
        gas = await tx_fn.estimate_gas({"from": relayer})
    """
    return [
        {
            "name": "permit",
            "type": "function",
            "stateMutability": "nonpayable",
            "inputs": [
                {"name": "owner", "type": "address"},
                {"name": "spender", "type": "address"},
                {"name": "value", "type": "uint256"},
                {"name": "deadline", "type": "uint256"},
                {"name": "v", "type": "uint8"},
                {"name": "r", "type": "bytes32"},
                {"name": "s", "type": "bytes32"},
            ],
            "outputs": [],
        }
    ]


def get_transfer_from_abi() -> List[Dict[str, Any]]:
    """
    Get ABI for ``transferFrom(sender, recipient, amount)``.
    """
    return [
        {
            "name": "transferFrom",
            "type": "function",
            "stateMutability": "nonpayable",
            "inputs": [
                {"name": "sender", "type": "address"},
                {"name": "recipient", "type": "address"},
                {"name": "amount", "type": "uint256"},
            ],
            "outputs": [{"name": "", "type": "bool"}],
        }
    ]


def get_token_abi() -> List[Dict[str, Any]]:
    """Combined ABI covering every token call used by this package."""
    return (
        get_balance_abi()
        + get_allowance_abi()
        + get_metadata_abi()
        + get_permit_abi()
        + get_transfer_from_abi()
    )
