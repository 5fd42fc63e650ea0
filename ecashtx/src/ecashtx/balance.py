"""
Balance aggregation over an inventory snapshot.

Read-only diagnostics: the selectors never call into this module.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from loguru import logger

from ecashtx.backends.base import UtxoProvider
from ecashtx.errors import InventoryFetchFailedError
from ecashtx.models import UTXO


@dataclass
class TokenBalance:
    total_atoms: int = 0
    utxo_count: int = 0


@dataclass
class AddressBalance:
    """Native and per-token totals of one address"""

    native_total: int = 0
    native_count: int = 0
    token_utxo_count: int = 0
    tokens: dict[str, TokenBalance] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "native_total": self.native_total,
            "native_count": self.native_count,
            "token_utxo_count": self.token_utxo_count,
            "tokens": {
                token_id: {"total_atoms": str(t.total_atoms), "utxo_count": t.utxo_count}
                for token_id, t in self.tokens.items()
            },
        }


@dataclass
class BalanceQuery:
    """Result of a best-effort balance lookup. ``error`` is set when the fetch failed."""

    address: str
    balance: AddressBalance
    error: InventoryFetchFailedError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def aggregate_balance(utxos: Iterable[UTXO]) -> AddressBalance:
    """
    Fold UTXOs into native and per-token totals.

    Token UTXOs count towards their token only, never the native total,
    even though they carry a dust value.
    """
    balance = AddressBalance()
    for utxo in utxos:
        if utxo.token is None:
            balance.native_total += utxo.value
            balance.native_count += 1
            continue

        balance.token_utxo_count += 1
        token = balance.tokens.setdefault(utxo.token.token_id, TokenBalance())
        token.total_atoms += utxo.token.atoms
        token.utxo_count += 1
    return balance


async def get_address_balance(provider: UtxoProvider, address: str) -> BalanceQuery:
    """
    Fetch and aggregate the balance of an address.

    A failed fetch does not raise: the query returns an empty balance with
    the failure in ``error``.
    """
    try:
        utxos = await provider.get_utxos(address)
    except Exception as e:
        logger.warning(f"Balance query for {address} failed: {e}")
        error = InventoryFetchFailedError(f"Failed to fetch UTXOs for {address}: {e}")
        error.__cause__ = e
        return BalanceQuery(address=address, balance=AddressBalance(), error=error)

    balance = aggregate_balance(utxos)
    logger.debug(
        f"Balance of {address}: {balance.native_total} sats in {balance.native_count} UTXOs, "
        f"{len(balance.tokens)} tokens"
    )
    return BalanceQuery(address=address, balance=balance)
