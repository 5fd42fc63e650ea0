"""
Base inventory and broadcast backend interfaces.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from ecashtx.models import UTXO


class UtxoProvider(ABC):
    """
    Source of unspent outputs.
    Implementations must report token annotations for every token UTXO;
    a token UTXO without its annotation would be spent as plain XEC and
    its tokens burned.
    """

    @abstractmethod
    async def get_utxos(self, address: str) -> list[UTXO]:
        """Get UTXOs currently held by an address (may be empty)"""

    async def close(self) -> None:
        """Close backend connection"""
        pass


class Broadcaster(ABC):
    """Relays signed transactions to the network."""

    @abstractmethod
    async def broadcast_transaction(self, tx_hex: str) -> str:
        """Broadcast transaction, returns txid"""

    async def close(self) -> None:
        """Close backend connection"""
        pass
