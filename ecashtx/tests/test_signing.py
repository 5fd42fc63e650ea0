"""
Tests for transaction signing and fee-change resolution.
"""

from __future__ import annotations

import pytest
from coincurve import PublicKey

from ecashtx.config import FeeConfig
from ecashtx.errors import TransactionSigningError
from ecashtx.models import UTXO, AnnouncementOutput, ChangeOutput, ValueOutput
from ecashtx.script import p2pkh_script
from ecashtx.wallet.address import hash160
from ecashtx.wallet.bip32 import HDKey
from ecashtx.wallet.signing import (
    SIGHASH_ALL_FORKID,
    SigningInput,
    TxOutput,
    TxSigner,
    compute_sighash_forkid,
    compute_txid,
    estimate_tx_size,
    hash256,
)

SEED = bytes.fromhex("000102030405060708090a0b0c0d0e0f")
RECIPIENT_SCRIPT = p2pkh_script(bytes([0x11]) * 20)


@pytest.fixture
def key() -> HDKey:
    return HDKey.from_seed(SEED).derive("m/44'/1899'/0'/0/0")


@pytest.fixture
def wallet_script(key: HDKey) -> bytes:
    return p2pkh_script(hash160(key.get_public_key_bytes()))


def make_input(key: HDKey, script: bytes, value: int, vout: int = 0) -> SigningInput:
    utxo = UTXO(txid="aa" * 32, vout=vout, value=value, address="")
    return SigningInput(utxo=utxo, private_key=key.get_private_key_bytes(), script=script)


def parse_single_input_script_sig(raw: bytes) -> tuple[bytes, bytes]:
    """Signature and pubkey from the scriptSig of a one-input transaction."""
    offset = 4 + 1 + 36
    script_len = raw[offset]
    script_sig = raw[offset + 1 : offset + 1 + script_len]
    sig_len = script_sig[0]
    signature = script_sig[1 : 1 + sig_len]
    pubkey = script_sig[2 + sig_len : 2 + sig_len + 33]
    return signature, pubkey


class TestHashing:
    def test_hash256_empty(self) -> None:
        expected = "5df6e0e2761359d30a8275058e299fcc0381534545f55cf43e41983f5d4c9456"
        assert hash256(b"").hex() == expected

    def test_size_estimate(self) -> None:
        outputs = [TxOutput(1_000, RECIPIENT_SCRIPT), TxOutput(0, RECIPIENT_SCRIPT)]
        # 4 version + 1 + 149 input + 1 + 2 * 34 outputs + 4 locktime
        assert estimate_tx_size(1, outputs) == 227


class TestResolveOutputs:
    def test_placeholder_gets_remainder(self, key: HDKey, wallet_script: bytes) -> None:
        signer = TxSigner()
        inputs = [make_input(key, wallet_script, 10_000)]
        outputs = [ValueOutput(1_000, RECIPIENT_SCRIPT), ChangeOutput(wallet_script)]

        resolved, fee = signer.resolve_outputs(inputs, outputs)

        assert fee == 227
        assert [o.value for o in resolved] == [1_000, 10_000 - 1_000 - 227]
        assert resolved[-1].script == wallet_script

    def test_dust_change_dropped(self, key: HDKey, wallet_script: bytes) -> None:
        signer = TxSigner()
        inputs = [make_input(key, wallet_script, 1_500)]
        outputs = [ValueOutput(1_000, RECIPIENT_SCRIPT), ChangeOutput(wallet_script)]

        resolved, fee = signer.resolve_outputs(inputs, outputs)

        assert len(resolved) == 1
        assert fee == 500

    def test_outputs_exceed_inputs(self, key: HDKey, wallet_script: bytes) -> None:
        signer = TxSigner()
        inputs = [make_input(key, wallet_script, 500)]
        outputs = [ValueOutput(1_000, RECIPIENT_SCRIPT), ChangeOutput(wallet_script)]

        with pytest.raises(TransactionSigningError):
            signer.resolve_outputs(inputs, outputs)

    def test_fee_not_covered(self, key: HDKey, wallet_script: bytes) -> None:
        signer = TxSigner()
        inputs = [make_input(key, wallet_script, 1_100)]
        outputs = [ValueOutput(1_000, RECIPIENT_SCRIPT), ChangeOutput(wallet_script)]

        with pytest.raises(TransactionSigningError):
            signer.resolve_outputs(inputs, outputs)

    def test_placeholder_must_be_last(self, key: HDKey, wallet_script: bytes) -> None:
        signer = TxSigner()
        inputs = [make_input(key, wallet_script, 10_000)]
        outputs = [ChangeOutput(wallet_script), ValueOutput(1_000, RECIPIENT_SCRIPT)]

        with pytest.raises(TransactionSigningError):
            signer.resolve_outputs(inputs, outputs)

    def test_fixed_change_is_kept(self, key: HDKey, wallet_script: bytes) -> None:
        signer = TxSigner()
        inputs = [make_input(key, wallet_script, 10_000)]
        outputs = [
            AnnouncementOutput(b"\x6a\x04test"),
            ValueOutput(546, RECIPIENT_SCRIPT),
            ChangeOutput(wallet_script, value=546),
            ChangeOutput(wallet_script),
        ]

        resolved, fee = signer.resolve_outputs(inputs, outputs)

        assert [o.value for o in resolved[:3]] == [0, 546, 546]
        assert sum(o.value for o in resolved) + fee == 10_000

    def test_custom_fee_rate(self, key: HDKey, wallet_script: bytes) -> None:
        signer = TxSigner(FeeConfig(fee_per_kb=2_000))
        inputs = [make_input(key, wallet_script, 10_000)]
        outputs = [ValueOutput(1_000, RECIPIENT_SCRIPT), ChangeOutput(wallet_script)]

        _, fee = signer.resolve_outputs(inputs, outputs)

        assert fee == 454

    def test_no_inputs(self, wallet_script: bytes) -> None:
        with pytest.raises(TransactionSigningError):
            TxSigner().resolve_outputs([], [ChangeOutput(wallet_script)])


class TestSign:
    def test_signature_verifies(self, key: HDKey, wallet_script: bytes) -> None:
        signer = TxSigner()
        inputs = [make_input(key, wallet_script, 10_000)]
        outputs = [ValueOutput(1_000, RECIPIENT_SCRIPT), ChangeOutput(wallet_script)]

        signed = signer.sign(inputs, outputs)

        signature, pubkey = parse_single_input_script_sig(signed.raw)
        assert signature[-1] == SIGHASH_ALL_FORKID
        assert pubkey == key.get_public_key_bytes()

        sighash = compute_sighash_forkid(inputs, signed.outputs, 0)
        assert PublicKey(pubkey).verify(signature[:-1], sighash, hasher=None)

    def test_serialization(self, key: HDKey, wallet_script: bytes) -> None:
        signer = TxSigner()
        inputs = [make_input(key, wallet_script, 10_000)]
        outputs = [ValueOutput(1_000, RECIPIENT_SCRIPT), ChangeOutput(wallet_script)]

        signed = signer.sign(inputs, outputs)

        assert signed.raw[:4] == bytes.fromhex("02000000")
        assert signed.raw[-4:] == bytes(4)
        assert signed.txid == compute_txid(signed.raw)
        assert signed.size == len(signed.raw)
        assert signed.size <= estimate_tx_size(1, signed.outputs)
        assert signed.hex == signed.raw.hex()

    def test_deterministic(self, key: HDKey, wallet_script: bytes) -> None:
        inputs = [make_input(key, wallet_script, 10_000)]
        outputs = [ValueOutput(1_000, RECIPIENT_SCRIPT), ChangeOutput(wallet_script)]

        assert TxSigner().sign(inputs, outputs).raw == TxSigner().sign(inputs, outputs).raw

    def test_every_input_signed(self, key: HDKey, wallet_script: bytes) -> None:
        inputs = [
            make_input(key, wallet_script, 3_000, vout=0),
            make_input(key, wallet_script, 4_000, vout=1),
        ]
        outputs = [ValueOutput(5_000, RECIPIENT_SCRIPT), ChangeOutput(wallet_script)]

        signed = TxSigner().sign(inputs, outputs)

        assert sum(o.value for o in signed.outputs) + signed.fee == 7_000

    def test_forkid_required(self, key: HDKey, wallet_script: bytes) -> None:
        inputs = [make_input(key, wallet_script, 10_000)]
        with pytest.raises(TransactionSigningError):
            compute_sighash_forkid(inputs, [TxOutput(1_000, RECIPIENT_SCRIPT)], 0, sighash_type=0x01)
