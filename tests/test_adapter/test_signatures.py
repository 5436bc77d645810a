"""
Permit signer tests: raw-key signing, provider signing and signature splitting.
"""

from unittest.mock import AsyncMock, Mock

import pytest
from eth_account import Account
from eth_utils import keccak

from emailpay.adapters.evm.schemas import EVMECDSASignature
from emailpay.adapters.evm.signatures import (
    ProviderSigner,
    RawKeySigner,
    WalletProvider,
    recover_permit_signer,
    split_signature,
)
from emailpay.engine.exceptions import PermitSignatureError

from test_mocks import MOCK_OWNER_ADDRESS, MOCK_OWNER_PRIVATE_KEY

DIGEST = keccak(text="emailpay permit digest")


def _packed(v: int) -> str:
    return "0x" + "11" * 32 + "22" * 32 + format(v, "02x")


def _provider(signature=None, error=None) -> Mock:
    provider = Mock()
    provider.get_address = AsyncMock(return_value=MOCK_OWNER_ADDRESS)
    provider.sign_message = AsyncMock(return_value=signature, side_effect=error)
    provider.export_private_key = AsyncMock(return_value=MOCK_OWNER_PRIVATE_KEY)
    return provider


class TestSplitSignature:
    @pytest.mark.parametrize("v_byte,expected_v", [(27, 27), (28, 28), (0, 27), (1, 28)])
    def test_normalizes_v(self, v_byte, expected_v):
        sig = split_signature(_packed(v_byte))
        assert sig.v == expected_v
        assert sig.r == "0x" + "11" * 32
        assert sig.s == "0x" + "22" * 32

    def test_accepts_bytes_and_unprefixed_hex(self):
        packed = _packed(28)
        from_bytes = split_signature(bytes.fromhex(packed[2:]))
        from_hex = split_signature(packed[2:])
        assert (from_bytes.v, from_bytes.r, from_bytes.s) == (from_hex.v, from_hex.r, from_hex.s)

    @pytest.mark.parametrize("signature", [
        "0x" + "11" * 64,
        "0x" + "11" * 66,
        b"\x01" * 10,
    ])
    def test_rejects_wrong_length(self, signature):
        with pytest.raises(PermitSignatureError, match="65 bytes"):
            split_signature(signature)

    def test_rejects_bad_recovery_byte(self):
        with pytest.raises(PermitSignatureError):
            split_signature(_packed(5))

    def test_rejects_non_hex(self):
        with pytest.raises(PermitSignatureError):
            split_signature("0x" + "zz" * 65)

    def test_packed_hex_round_trip(self):
        sig = split_signature(_packed(27))
        assert sig.to_packed_hex() == _packed(27)


class TestRawKeySigner:
    @pytest.mark.asyncio
    async def test_signature_recovers_owner(self):
        signer = RawKeySigner(MOCK_OWNER_PRIVATE_KEY)
        sig = await signer.sign(DIGEST)

        assert sig.v in (27, 28)
        assert sig.validate_format()
        assert recover_permit_signer(DIGEST, sig) == MOCK_OWNER_ADDRESS
        assert signer.address == MOCK_OWNER_ADDRESS

    @pytest.mark.asyncio
    async def test_rejects_non_32_byte_digest(self):
        with pytest.raises(PermitSignatureError, match="32 bytes"):
            await RawKeySigner(MOCK_OWNER_PRIVATE_KEY).sign(b"\x00" * 31)

    @pytest.mark.parametrize("key", [None, ""])
    def test_missing_key(self, key):
        with pytest.raises(PermitSignatureError, match="not available"):
            RawKeySigner(key)

    def test_malformed_key_is_not_echoed(self):
        bad_key = "0x" + "zz" * 32
        with pytest.raises(PermitSignatureError) as excinfo:
            RawKeySigner(bad_key)
        assert bad_key not in str(excinfo.value)
        assert excinfo.value.__cause__ is None

    def test_repr_hides_key(self):
        text = repr(RawKeySigner(MOCK_OWNER_PRIVATE_KEY))
        assert MOCK_OWNER_PRIVATE_KEY[2:] not in text
        assert MOCK_OWNER_ADDRESS in text

    @pytest.mark.asyncio
    async def test_from_provider(self):
        signer = await RawKeySigner.from_provider(_provider())
        assert signer.address == MOCK_OWNER_ADDRESS

    @pytest.mark.asyncio
    async def test_from_provider_export_refused(self):
        provider = _provider()
        provider.export_private_key.side_effect = RuntimeError("session expired")
        with pytest.raises(PermitSignatureError, match="session expired"):
            await RawKeySigner.from_provider(provider)


class TestProviderSigner:
    @pytest.mark.asyncio
    async def test_splits_provider_signature(self):
        signed = Account.from_key(MOCK_OWNER_PRIVATE_KEY).unsafe_sign_hash(DIGEST)
        provider = _provider(signature=signed.signature)

        sig = await ProviderSigner(provider).sign(DIGEST)

        provider.sign_message.assert_awaited_once_with(DIGEST)
        assert isinstance(sig, EVMECDSASignature)
        assert recover_permit_signer(DIGEST, sig) == MOCK_OWNER_ADDRESS

    @pytest.mark.asyncio
    async def test_provider_failure_is_wrapped(self):
        provider = _provider(error=ConnectionError("wallet offline"))
        with pytest.raises(PermitSignatureError, match="wallet offline"):
            await ProviderSigner(provider).sign(DIGEST)

    @pytest.mark.asyncio
    async def test_empty_signature(self):
        with pytest.raises(PermitSignatureError, match="empty"):
            await ProviderSigner(_provider(signature="")).sign(DIGEST)

    def test_mock_satisfies_wallet_provider_protocol(self):
        assert isinstance(_provider(), WalletProvider)


class TestRecoverPermitSigner:
    @pytest.mark.asyncio
    async def test_other_digest_recovers_someone_else(self):
        sig = await RawKeySigner(MOCK_OWNER_PRIVATE_KEY).sign(DIGEST)
        other = keccak(text="a different permit")
        assert recover_permit_signer(other, sig) != MOCK_OWNER_ADDRESS
