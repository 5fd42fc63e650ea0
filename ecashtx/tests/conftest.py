"""
Test configuration for ecashtx tests.
"""

from __future__ import annotations

from collections.abc import Callable

import pytest

from ecashtx.models import UTXO, TokenAnnotation
from ecashtx.wallet.address import encode_cashaddr

TOKEN_ID = "ab" * 32
OTHER_TOKEN_ID = "cd" * 32


def make_address(seed: int) -> str:
    """Deterministic P2PKH address whose hash is ``seed`` repeated."""
    return encode_cashaddr("ecash", "p2pkh", bytes([seed]) * 20)


def make_utxo(
    value: int,
    vout: int = 0,
    token_id: str | None = None,
    atoms: int = 0,
    address: str = "",
    txid: str | None = None,
) -> UTXO:
    token = TokenAnnotation(token_id=token_id, atoms=atoms) if token_id else None
    return UTXO(
        txid=txid or f"{vout + 1:064x}",
        vout=vout,
        value=value,
        address=address,
        token=token,
    )


@pytest.fixture
def sample_mnemonic() -> str:
    """Test mnemonic (not for production use!)."""
    return (
        "abandon abandon abandon abandon abandon abandon "
        "abandon abandon abandon abandon abandon about"
    )


@pytest.fixture
def address_factory() -> Callable[[int], str]:
    return make_address


@pytest.fixture
def utxo_factory() -> Callable[..., UTXO]:
    return make_utxo
