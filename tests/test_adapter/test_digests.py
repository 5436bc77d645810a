"""
EIP-712 domain separator and permit digest tests.

The reference for every hash here is ``eth_account.messages.encode_typed_data``
fed with the typed-data document a wallet would sign.
"""

import pytest
from eth_account import Account
from eth_account.messages import encode_typed_data
from eth_utils import keccak

from emailpay.adapters.evm.constants import MAX_UINT256
from emailpay.adapters.evm.digests import (
    EIP712_DOMAIN_TYPEHASH,
    PERMIT_TYPEHASH,
    build_domain_separator,
    build_permit_digest,
    build_permit_typed_data,
    build_permit_struct_hash,
)
from emailpay.adapters.evm.signatures import RawKeySigner, recover_permit_signer

from test_mocks import (
    MOCK_AMOUNT_BASE_UNITS,
    MOCK_CHAIN_ID_SEPOLIA,
    MOCK_OWNER_ADDRESS,
    MOCK_OWNER_PRIVATE_KEY,
    MOCK_PYUSD_SEPOLIA,
    MOCK_RELAYER_ADDRESS,
    MOCK_TOKEN_NAME,
    MOCK_TOKEN_VERSION,
)


@pytest.fixture
def permit_fields():
    return {
        "owner": MOCK_OWNER_ADDRESS,
        "spender": MOCK_RELAYER_ADDRESS,
        "value": MOCK_AMOUNT_BASE_UNITS,
        "nonce": 3,
        "deadline": MAX_UINT256,
    }


@pytest.fixture
def domain_separator():
    return build_domain_separator(
        MOCK_TOKEN_NAME, MOCK_TOKEN_VERSION, MOCK_CHAIN_ID_SEPOLIA, MOCK_PYUSD_SEPOLIA
    )


def _typed_data(fields) -> dict:
    return build_permit_typed_data(
        MOCK_TOKEN_NAME, MOCK_TOKEN_VERSION, MOCK_CHAIN_ID_SEPOLIA, MOCK_PYUSD_SEPOLIA, **fields
    ).to_dict()


class TestTypeHashes:
    def test_domain_typehash(self):
        assert EIP712_DOMAIN_TYPEHASH.hex() == (
            "8b73c3c69bb8fe3d512ecc4cf759cc79239f7b179b0ffacaa9a75d522b39400f"
        )

    def test_permit_typehash(self):
        assert PERMIT_TYPEHASH.hex() == (
            "6e71edae12b1b97f4d1f60370fef10105fa2faae0126114a169c64845d6126c9"
        )


class TestDomainSeparator:
    def test_is_32_bytes_and_deterministic(self, domain_separator):
        assert len(domain_separator) == 32
        assert domain_separator == build_domain_separator(
            MOCK_TOKEN_NAME, MOCK_TOKEN_VERSION, MOCK_CHAIN_ID_SEPOLIA, MOCK_PYUSD_SEPOLIA
        )

    def test_address_case_does_not_matter(self, domain_separator):
        assert domain_separator == build_domain_separator(
            MOCK_TOKEN_NAME, MOCK_TOKEN_VERSION, MOCK_CHAIN_ID_SEPOLIA, MOCK_PYUSD_SEPOLIA.lower()
        )

    @pytest.mark.parametrize("args", [
        ("PayPal USD", MOCK_TOKEN_VERSION, MOCK_CHAIN_ID_SEPOLIA, MOCK_PYUSD_SEPOLIA),
        (MOCK_TOKEN_NAME, "2", MOCK_CHAIN_ID_SEPOLIA, MOCK_PYUSD_SEPOLIA),
        (MOCK_TOKEN_NAME, MOCK_TOKEN_VERSION, 1, MOCK_PYUSD_SEPOLIA),
        (MOCK_TOKEN_NAME, MOCK_TOKEN_VERSION, MOCK_CHAIN_ID_SEPOLIA, MOCK_RELAYER_ADDRESS),
    ])
    def test_every_field_is_bound(self, domain_separator, args):
        assert build_domain_separator(*args) != domain_separator

    def test_matches_eth_account(self, domain_separator, permit_fields):
        signable = encode_typed_data(full_message=_typed_data(permit_fields))
        assert signable.header == domain_separator


class TestPermitDigest:
    def test_struct_hash_matches_eth_account(self, permit_fields):
        signable = encode_typed_data(full_message=_typed_data(permit_fields))
        assert signable.body == build_permit_struct_hash(**permit_fields)

    def test_digest_matches_eth_account(self, domain_separator, permit_fields):
        signable = encode_typed_data(full_message=_typed_data(permit_fields))
        expected = keccak(b"\x19" + signable.version + signable.header + signable.body)
        assert build_permit_digest(domain_separator, **permit_fields) == expected

    def test_accepts_hex_domain_separator(self, domain_separator, permit_fields):
        assert build_permit_digest("0x" + domain_separator.hex(), **permit_fields) == \
            build_permit_digest(domain_separator, **permit_fields)

    def test_rejects_short_domain_separator(self, permit_fields):
        with pytest.raises(ValueError):
            build_permit_digest(b"\x00" * 31, **permit_fields)

    @pytest.mark.parametrize("field,value", [
        ("owner", MOCK_RELAYER_ADDRESS),
        ("spender", MOCK_OWNER_ADDRESS),
        ("value", MOCK_AMOUNT_BASE_UNITS + 1),
        ("nonce", 4),
        ("deadline", 1_900_000_000),
    ])
    def test_every_field_is_bound(self, domain_separator, permit_fields, field, value):
        changed = {**permit_fields, field: value}
        assert build_permit_digest(domain_separator, **changed) != \
            build_permit_digest(domain_separator, **permit_fields)

    @pytest.mark.asyncio
    async def test_raw_signature_matches_typed_data_signature(self, domain_separator, permit_fields):
        """Signing the digest directly equals eth_account's typed-data signing."""
        digest = build_permit_digest(domain_separator, **permit_fields)
        signature = await RawKeySigner(MOCK_OWNER_PRIVATE_KEY).sign(digest)

        reference = Account.from_key(MOCK_OWNER_PRIVATE_KEY).sign_message(
            encode_typed_data(full_message=_typed_data(permit_fields))
        )
        assert signature.v == reference.v
        assert int(signature.r, 16) == reference.r
        assert int(signature.s, 16) == reference.s
        assert recover_permit_signer(digest, signature) == MOCK_OWNER_ADDRESS
