"""
eCash CashAddr encoding and address <-> script conversion.
"""

from __future__ import annotations

import hashlib

from ecashtx.constants import DEFAULT_ADDRESS_PREFIX
from ecashtx.script import is_p2pkh, is_p2sh, p2pkh_script, p2sh_script

CHARSET = "qpzry9x8gf2tvdw0s3jn54khce6mua7l"

ADDRESS_TYPES = {"p2pkh": 0, "p2sh": 1}


def hash160(data: bytes) -> bytes:
    """RIPEMD160(SHA256(data))"""
    h = hashlib.new("ripemd160")
    h.update(hashlib.sha256(data).digest())
    return h.digest()


def cashaddr_polymod(values: list[int]) -> int:
    """CashAddr 40-bit BCH checksum polymod"""
    gen = [0x98F2BC8E61, 0x79B76D99E2, 0xF33E5FB3C4, 0xAE2EABE2A8, 0x1E4F43E470]
    chk = 1
    for v in values:
        b = chk >> 35
        chk = ((chk & 0x07FFFFFFFF) << 5) ^ v
        for i in range(5):
            chk ^= gen[i] if ((b >> i) & 1) else 0
    return chk ^ 1


def cashaddr_prefix_expand(prefix: str) -> list[int]:
    """Lower 5 bits of each prefix character followed by a zero separator"""
    return [ord(x) & 0x1F for x in prefix] + [0]


def cashaddr_create_checksum(prefix: str, data: list[int]) -> list[int]:
    polymod = cashaddr_polymod(cashaddr_prefix_expand(prefix) + data + [0] * 8)
    return [(polymod >> 5 * (7 - i)) & 31 for i in range(8)]


def convertbits(data: bytes | list[int], frombits: int, tobits: int, pad: bool = True) -> list[int]:
    """Convert between bit groups"""
    acc = 0
    bits = 0
    ret = []
    maxv = (1 << tobits) - 1
    max_acc = (1 << (frombits + tobits - 1)) - 1

    for value in data:
        if value < 0 or (value >> frombits):
            raise ValueError("Invalid data value")
        acc = ((acc << frombits) | value) & max_acc
        bits += frombits
        while bits >= tobits:
            bits -= tobits
            ret.append((acc >> bits) & maxv)

    if pad:
        if bits:
            ret.append((acc << (tobits - bits)) & maxv)
    elif bits >= frombits or ((acc << (tobits - bits)) & maxv):
        raise ValueError("Invalid bits")

    return ret


def encode_cashaddr(prefix: str, addr_type: str, payload: bytes) -> str:
    """
    Encode a 20-byte hash as a CashAddr string (``prefix:payload``).

    Args:
        prefix: Network prefix, e.g. "ecash" or "ectest"
        addr_type: "p2pkh" or "p2sh"
        payload: 20-byte public key hash or script hash
    """
    if addr_type not in ADDRESS_TYPES:
        raise ValueError(f"Unsupported address type: {addr_type}")
    if len(payload) != 20:
        raise ValueError(f"Unsupported hash length: {len(payload)}")

    # Version byte: type bits << 3 | size bits (0 = 160-bit hash)
    version_byte = ADDRESS_TYPES[addr_type] << 3
    data = convertbits(bytes([version_byte]) + payload, 8, 5)
    combined = data + cashaddr_create_checksum(prefix, data)
    return prefix + ":" + "".join(CHARSET[d] for d in combined)


def decode_cashaddr(
    address: str, default_prefix: str = DEFAULT_ADDRESS_PREFIX
) -> tuple[str, str, bytes]:
    """
    Decode a CashAddr string.

    Addresses without a prefix are checked against ``default_prefix``.

    Returns:
        (prefix, addr_type, hash)

    Raises:
        ValueError: On mixed case, bad characters, bad checksum or
            unsupported version
    """
    if address.lower() != address and address.upper() != address:
        raise ValueError(f"Mixed case address: {address}")
    address = address.lower()

    if ":" in address:
        prefix, _, body = address.rpartition(":")
    else:
        prefix, body = default_prefix, address

    if not prefix or not body:
        raise ValueError(f"Invalid address: {address}")

    try:
        data = [CHARSET.index(c) for c in body]
    except ValueError:
        raise ValueError(f"Invalid character in address: {address}") from None

    if len(data) <= 8:
        raise ValueError(f"Address too short: {address}")
    if cashaddr_polymod(cashaddr_prefix_expand(prefix) + data) != 0:
        raise ValueError(f"Invalid checksum: {address}")

    decoded = bytes(convertbits(data[:-8], 5, 8, pad=False))
    version_byte, payload = decoded[0], decoded[1:]

    if version_byte & 0x07 != 0 or len(payload) != 20:
        raise ValueError(f"Unsupported hash size in address: {address}")

    type_bits = version_byte >> 3
    for name, bits in ADDRESS_TYPES.items():
        if bits == type_bits:
            return prefix, name, payload

    raise ValueError(f"Unsupported address type {type_bits}: {address}")


def is_valid_address(address: str, prefix: str = DEFAULT_ADDRESS_PREFIX) -> bool:
    try:
        decoded_prefix, _, _ = decode_cashaddr(address, prefix)
    except (ValueError, AttributeError):
        return False
    return decoded_prefix == prefix


def address_to_script(address: str, default_prefix: str = DEFAULT_ADDRESS_PREFIX) -> bytes:
    """Locking script paying to a CashAddr address."""
    _, addr_type, payload = decode_cashaddr(address, default_prefix)
    if addr_type == "p2pkh":
        return p2pkh_script(payload)
    return p2sh_script(payload)


def script_to_address(script: bytes, prefix: str = DEFAULT_ADDRESS_PREFIX) -> str:
    if is_p2pkh(script):
        return encode_cashaddr(prefix, "p2pkh", script[3:23])
    if is_p2sh(script):
        return encode_cashaddr(prefix, "p2sh", script[2:22])
    raise ValueError(f"Unsupported script: {script.hex()}")


def pubkey_to_address(pubkey: bytes, prefix: str = DEFAULT_ADDRESS_PREFIX) -> str:
    """P2PKH CashAddr for a compressed public key."""
    if len(pubkey) != 33:
        raise ValueError(f"Invalid compressed pubkey length: {len(pubkey)}")
    return encode_cashaddr(prefix, "p2pkh", hash160(pubkey))
