"""
Output script helpers and token announcement encodings.

SLP (Type-A) SEND is a plain OP_RETURN script made of data pushes:
    OP_RETURN <"SLP\\0"> <token_type> <"SEND"> <token_id> <u64 BE amount>...

ALP (Type-B) SEND is a binary section carried in an eMPP OP_RETURN:
    OP_RETURN OP_RESERVED <section>
    section = "SLP2" | u8 token_type | varbytes("SEND") | token_id (LE) |
              u8 count | u48 LE amount...

The two encodings are not interchangeable; observers locate the
announcement by position (output 0) and then parse by protocol.
"""

from __future__ import annotations

import re
import struct
from collections.abc import Sequence

from ecashtx.constants import (
    ALP_LOKAD_ID,
    ALP_MAX_ATOMS,
    ALP_MAX_SEND_OUTPUTS,
    ALP_STANDARD,
    SLP_FUNGIBLE,
    SLP_LOKAD_ID,
    SLP_MAX_ATOMS,
    SLP_MAX_SEND_OUTPUTS,
)
from ecashtx.errors import AnnouncementEncodingError

OP_0 = 0x00
OP_PUSHDATA1 = 0x4C
OP_PUSHDATA2 = 0x4D
OP_PUSHDATA4 = 0x4E
OP_RESERVED = 0x50
OP_RETURN = 0x6A
OP_DUP = 0x76
OP_EQUAL = 0x87
OP_EQUALVERIFY = 0x88
OP_HASH160 = 0xA9
OP_CHECKSIG = 0xAC

SEND = b"SEND"

_TOKEN_ID_RE = re.compile(r"^[0-9a-fA-F]{64}$")


def is_valid_token_id(token_id: str) -> bool:
    return isinstance(token_id, str) and bool(_TOKEN_ID_RE.match(token_id))


def compact_size(n: int) -> bytes:
    """Encode integer as a compact size (varint)."""
    if n < 0xFD:
        return bytes([n])
    elif n <= 0xFFFF:
        return bytes([0xFD]) + struct.pack("<H", n)
    elif n <= 0xFFFFFFFF:
        return bytes([0xFE]) + struct.pack("<I", n)
    else:
        return bytes([0xFF]) + struct.pack("<Q", n)


def push_bytes_op(data: bytes) -> bytes:
    """Smallest data push for ``data`` (never an OP_n number opcode)."""
    size = len(data)
    if size < OP_PUSHDATA1:
        return bytes([size]) + data
    elif size <= 0xFF:
        return bytes([OP_PUSHDATA1, size]) + data
    elif size <= 0xFFFF:
        return bytes([OP_PUSHDATA2]) + struct.pack("<H", size) + data
    return bytes([OP_PUSHDATA4]) + struct.pack("<I", size) + data


def p2pkh_script(pubkey_hash: bytes) -> bytes:
    """OP_DUP OP_HASH160 <20-byte-pubkeyhash> OP_EQUALVERIFY OP_CHECKSIG"""
    if len(pubkey_hash) != 20:
        raise ValueError(f"Invalid pubkey hash length: {len(pubkey_hash)}")
    return bytes([OP_DUP, OP_HASH160, 0x14]) + pubkey_hash + bytes([OP_EQUALVERIFY, OP_CHECKSIG])


def p2sh_script(script_hash: bytes) -> bytes:
    """OP_HASH160 <20-byte-scripthash> OP_EQUAL"""
    if len(script_hash) != 20:
        raise ValueError(f"Invalid script hash length: {len(script_hash)}")
    return bytes([OP_HASH160, 0x14]) + script_hash + bytes([OP_EQUAL])


def is_p2pkh(script: bytes) -> bool:
    return (
        len(script) == 25
        and script[:3] == bytes([OP_DUP, OP_HASH160, 0x14])
        and script[23:] == bytes([OP_EQUALVERIFY, OP_CHECKSIG])
    )


def is_p2sh(script: bytes) -> bool:
    return len(script) == 23 and script[:2] == bytes([OP_HASH160, 0x14]) and script[22] == OP_EQUAL


def _check_send(
    token_id: str, amounts: Sequence[int], max_outputs: int, max_atoms: int, protocol: str
) -> None:
    if not is_valid_token_id(token_id):
        raise AnnouncementEncodingError(f"Invalid token id: {token_id!r}")
    if not amounts:
        raise AnnouncementEncodingError(f"{protocol} SEND needs at least one amount")
    if len(amounts) > max_outputs:
        raise AnnouncementEncodingError(
            f"{protocol} SEND supports at most {max_outputs} outputs, got {len(amounts)}"
        )
    for amount in amounts:
        if not 0 <= amount <= max_atoms:
            raise AnnouncementEncodingError(f"{protocol} amount out of range: {amount}")


def slp_send(token_id: str, amounts: Sequence[int], token_type: int = SLP_FUNGIBLE) -> bytes:
    """Build the OP_RETURN script of an SLP SEND."""
    _check_send(token_id, amounts, SLP_MAX_SEND_OUTPUTS, SLP_MAX_ATOMS, "SLP")

    script = bytes([OP_RETURN])
    script += push_bytes_op(SLP_LOKAD_ID)
    script += push_bytes_op(bytes([token_type]))
    script += push_bytes_op(SEND)
    script += push_bytes_op(bytes.fromhex(token_id))
    for amount in amounts:
        script += push_bytes_op(amount.to_bytes(8, "big"))
    return script


def alp_send(token_id: str, amounts: Sequence[int], token_type: int = ALP_STANDARD) -> bytes:
    """Build the eMPP section payload of an ALP SEND."""
    _check_send(token_id, amounts, ALP_MAX_SEND_OUTPUTS, ALP_MAX_ATOMS, "ALP")

    section = ALP_LOKAD_ID
    section += bytes([token_type])
    section += compact_size(len(SEND)) + SEND
    # ALP serializes the token id in txid byte order (reversed hex)
    section += bytes.fromhex(token_id)[::-1]
    section += bytes([len(amounts)])
    for amount in amounts:
        section += amount.to_bytes(6, "little")
    return section


def empp_script(*sections: bytes) -> bytes:
    """Wrap eMPP sections: OP_RETURN OP_RESERVED <section>..."""
    if not sections:
        raise AnnouncementEncodingError("eMPP script needs at least one section")
    script = bytes([OP_RETURN, OP_RESERVED])
    for section in sections:
        if not section:
            raise AnnouncementEncodingError("eMPP sections must not be empty")
        script += push_bytes_op(section)
    return script
