"""
eCash transaction signing for P2PKH inputs.

Signature digests follow the BIP143 layout with SIGHASH_FORKID, which eCash
uses for every input type. The fee-change placeholder (a ChangeOutput
without value, always last) receives whatever is left after the explicit
outputs and the fee.
"""

from __future__ import annotations

import hashlib
from collections.abc import Sequence
from dataclasses import dataclass

from coincurve import PrivateKey
from loguru import logger

from ecashtx.config import FeeConfig
from ecashtx.errors import TransactionSigningError
from ecashtx.models import UTXO, ChangeOutput, Output
from ecashtx.script import compact_size as encode_varint
from ecashtx.script import push_bytes_op

SIGHASH_ALL = 0x01
SIGHASH_FORKID = 0x40
SIGHASH_ALL_FORKID = SIGHASH_ALL | SIGHASH_FORKID

TX_VERSION = 2
SEQUENCE_FINAL = 0xFFFFFFFF

# push(DER signature <= 72 bytes + sighash byte) + push(33-byte pubkey)
MAX_P2PKH_SCRIPTSIG_SIZE = 1 + 73 + 1 + 33


@dataclass
class SigningInput:
    """A UTXO to spend together with the key and script that unlock it."""

    utxo: UTXO
    private_key: bytes
    # Locking script of the spent output, used as scriptCode
    script: bytes
    sequence: int = SEQUENCE_FINAL


@dataclass
class TxOutput:
    value: int
    script: bytes


@dataclass
class SignedTransaction:
    raw: bytes
    txid: str
    fee: int
    size: int
    outputs: list[TxOutput]

    @property
    def hex(self) -> str:
        return self.raw.hex()


def hash256(data: bytes) -> bytes:
    return hashlib.sha256(hashlib.sha256(data).digest()).digest()


def serialize_outpoint(txid: str, vout: int) -> bytes:
    """Serialize outpoint (txid:vout)."""
    # txid is in display format (big-endian), reversed for raw tx
    return bytes.fromhex(txid)[::-1] + vout.to_bytes(4, "little")


def serialize_output(out: TxOutput) -> bytes:
    return out.value.to_bytes(8, "little") + encode_varint(len(out.script)) + out.script


def serialize_transaction(
    inputs: Sequence[SigningInput],
    script_sigs: Sequence[bytes],
    outputs: Sequence[TxOutput],
    version: int = TX_VERSION,
    locktime: int = 0,
) -> bytes:
    """Serialize a (non-segwit) transaction."""
    result = version.to_bytes(4, "little")

    result += encode_varint(len(inputs))
    for inp, script_sig in zip(inputs, script_sigs, strict=True):
        result += serialize_outpoint(inp.utxo.txid, inp.utxo.vout)
        result += encode_varint(len(script_sig)) + script_sig
        result += inp.sequence.to_bytes(4, "little")

    result += encode_varint(len(outputs))
    for out in outputs:
        result += serialize_output(out)

    result += locktime.to_bytes(4, "little")
    return result


def compute_txid(raw: bytes) -> str:
    return hash256(raw)[::-1].hex()


def compute_sighash_forkid(
    inputs: Sequence[SigningInput],
    outputs: Sequence[TxOutput],
    input_index: int,
    sighash_type: int = SIGHASH_ALL_FORKID,
    version: int = TX_VERSION,
    locktime: int = 0,
) -> bytes:
    if input_index >= len(inputs):
        raise TransactionSigningError("Input index out of range")
    if not sighash_type & SIGHASH_FORKID:
        raise TransactionSigningError("eCash signatures require SIGHASH_FORKID")

    hash_prevouts = hash256(
        b"".join(serialize_outpoint(inp.utxo.txid, inp.utxo.vout) for inp in inputs)
    )
    hash_sequence = hash256(b"".join(inp.sequence.to_bytes(4, "little") for inp in inputs))
    hash_outputs = hash256(b"".join(serialize_output(out) for out in outputs))

    target = inputs[input_index]

    preimage = (
        version.to_bytes(4, "little")
        + hash_prevouts
        + hash_sequence
        + serialize_outpoint(target.utxo.txid, target.utxo.vout)
        + encode_varint(len(target.script))
        + target.script
        + target.utxo.value.to_bytes(8, "little")
        + target.sequence.to_bytes(4, "little")
        + hash_outputs
        + locktime.to_bytes(4, "little")
        + sighash_type.to_bytes(4, "little")
    )

    return hash256(preimage)


def sign_p2pkh_input(
    inputs: Sequence[SigningInput],
    outputs: Sequence[TxOutput],
    input_index: int,
    sighash_type: int = SIGHASH_ALL_FORKID,
) -> bytes:
    """Sign an input with ECDSA.

    Returns:
        DER-encoded signature with sighash type byte appended
    """
    sighash = compute_sighash_forkid(inputs, outputs, input_index, sighash_type)
    private_key = PrivateKey(inputs[input_index].private_key)

    # sighash is already SHA256d, hasher=None skips hashing
    signature = private_key.sign(sighash, hasher=None)

    return signature + bytes([sighash_type])


def create_p2pkh_script_sig(signature: bytes, pubkey: bytes) -> bytes:
    return push_bytes_op(signature) + push_bytes_op(pubkey)


def estimate_tx_size(input_count: int, outputs: Sequence[TxOutput]) -> int:
    """Upper bound of the serialized size with P2PKH inputs."""
    input_size = 32 + 4 + len(encode_varint(MAX_P2PKH_SCRIPTSIG_SIZE))
    input_size += MAX_P2PKH_SCRIPTSIG_SIZE + 4
    output_size = sum(len(serialize_output(out)) for out in outputs)
    return (
        4
        + len(encode_varint(input_count))
        + input_count * input_size
        + len(encode_varint(len(outputs)))
        + output_size
        + 4
    )


class TxSigner:
    """
    Signs P2PKH transactions and resolves the fee-change placeholder.

    Fee = ceil(estimated size * fee_per_kb / 1000). A placeholder change
    that would fall below the dust limit is dropped and the remainder goes
    to the fee.
    """

    def __init__(self, fees: FeeConfig | None = None):
        self.fees = fees or FeeConfig()

    def calculate_fee(self, input_count: int, outputs: Sequence[TxOutput]) -> int:
        size = estimate_tx_size(input_count, outputs)
        return (size * self.fees.fee_per_kb + 999) // 1000

    def resolve_outputs(
        self, inputs: Sequence[SigningInput], outputs: Sequence[Output]
    ) -> tuple[list[TxOutput], int]:
        """Turn assembled outputs into concrete outputs plus the fee they leave."""
        if not inputs:
            raise TransactionSigningError("Transaction has no inputs")
        if not outputs:
            raise TransactionSigningError("Transaction has no outputs")

        placeholders = [
            i
            for i, out in enumerate(outputs)
            if isinstance(out, ChangeOutput) and out.is_placeholder
        ]
        if len(placeholders) > 1 or (placeholders and placeholders[0] != len(outputs) - 1):
            raise TransactionSigningError("The fee-change placeholder must be the last output")

        fixed = [TxOutput(out.value, out.script) for out in outputs if out.value is not None]
        total_in = sum(inp.utxo.value for inp in inputs)
        leftover = total_in - sum(out.value for out in fixed)

        if leftover < 0:
            raise TransactionSigningError(
                f"Outputs exceed inputs: inputs {total_in}, outputs {total_in - leftover}"
            )

        if placeholders:
            change_script = outputs[-1].script
            fee = self.calculate_fee(len(inputs), fixed + [TxOutput(0, change_script)])
            change = leftover - fee
            if change >= self.fees.dust_limit:
                return fixed + [TxOutput(change, change_script)], fee
            logger.debug(f"Dropping change output below dust ({change} sats)")

        fee = self.calculate_fee(len(inputs), fixed)
        if leftover < fee:
            raise TransactionSigningError(
                f"Insufficient input for fee: have {leftover}, need {fee}"
            )
        return fixed, leftover

    def sign(self, inputs: Sequence[SigningInput], outputs: Sequence[Output]) -> SignedTransaction:
        tx_outputs, fee = self.resolve_outputs(inputs, outputs)

        script_sigs = []
        for i, inp in enumerate(inputs):
            signature = sign_p2pkh_input(inputs, tx_outputs, i)
            pubkey = PrivateKey(inp.private_key).public_key.format(compressed=True)
            script_sigs.append(create_p2pkh_script_sig(signature, pubkey))

        raw = serialize_transaction(inputs, script_sigs, tx_outputs)
        txid = compute_txid(raw)

        logger.debug(f"Signed {txid}: {len(inputs)} inputs, {len(tx_outputs)} outputs, fee {fee}")
        return SignedTransaction(raw=raw, txid=txid, fee=fee, size=len(raw), outputs=tx_outputs)
