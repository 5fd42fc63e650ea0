"""
File-based UTXO snapshot backend.

Serves UTXOs from a JSON file and records broadcasts instead of relaying
them, which makes every send a dry run. Accepted file layouts:

    [{"txid": ..., "vout": 0, "value": 1000, "address": "ecash:q...",
      "token": {"tokenId": ..., "atoms": "500"}}, ...]

    {"ecash:q...": [{"txid": ..., "vout": 0, "value": 1000}, ...], ...}
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from loguru import logger

from ecashtx.backends.base import Broadcaster, UtxoProvider
from ecashtx.models import UTXO
from ecashtx.wallet.signing import compute_txid


class SnapshotBackend(UtxoProvider, Broadcaster):
    def __init__(self, path: Path | str):
        self.path = Path(path)
        self.broadcasted: list[str] = []
        self._utxos: dict[str, list[UTXO]] | None = None

    def _load(self) -> dict[str, list[UTXO]]:
        if self._utxos is not None:
            return self._utxos

        data: Any = json.loads(self.path.read_text())
        utxos: dict[str, list[UTXO]] = {}

        if isinstance(data, dict):
            for address, records in data.items():
                utxos[address] = [UTXO.from_dict(r, address=address) for r in records]
        elif isinstance(data, list):
            for record in data:
                utxo = UTXO.from_dict(record)
                utxos.setdefault(utxo.address, []).append(utxo)
        else:
            raise ValueError(f"Unsupported snapshot layout in {self.path}")

        logger.debug(
            f"Loaded {sum(len(u) for u in utxos.values())} UTXOs "
            f"for {len(utxos)} addresses from {self.path}"
        )
        self._utxos = utxos
        return utxos

    async def get_utxos(self, address: str) -> list[UTXO]:
        return list(self._load().get(address, []))

    async def broadcast_transaction(self, tx_hex: str) -> str:
        txid = compute_txid(bytes.fromhex(tx_hex))
        self.broadcasted.append(tx_hex)
        logger.info(f"Dry run: recorded transaction {txid} ({len(tx_hex) // 2} bytes)")
        return txid
