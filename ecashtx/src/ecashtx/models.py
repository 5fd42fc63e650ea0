"""
Transaction data models.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union

from ecashtx.constants import EXPLORER_TX_URL
from ecashtx.errors import UnknownStrategyError


class TxKind(str, Enum):
    XEC = "xec"
    SLP = "slp"
    ALP = "alp"

    @property
    def is_token(self) -> bool:
        return self is not TxKind.XEC


class UtxoStrategy(str, Enum):
    """How plain XEC UTXOs are picked."""

    ALL = "all"
    MINIMAL = "minimal"
    LARGEST_FIRST = "largest_first"

    @classmethod
    def parse(cls, value: str | UtxoStrategy) -> UtxoStrategy:
        try:
            return cls(value)
        except ValueError:
            raise UnknownStrategyError(f"Unknown UTXO selection strategy: {value}") from None


class TokenStrategy(str, Enum):
    """How token UTXOs are picked."""

    ALL = "all"
    LARGEST = "largest"
    MINIMAL = "minimal"

    @classmethod
    def parse(cls, value: str | TokenStrategy) -> TokenStrategy:
        try:
            return cls(value)
        except ValueError:
            raise UnknownStrategyError(f"Unknown token selection strategy: {value}") from None


@dataclass(frozen=True)
class TokenAnnotation:
    token_id: str
    atoms: int


@dataclass(frozen=True)
class UTXO:
    """Unspent output as reported by the inventory provider"""

    txid: str
    vout: int
    value: int
    address: str
    token: TokenAnnotation | None = None

    @property
    def is_token(self) -> bool:
        return self.token is not None

    @property
    def outpoint(self) -> str:
        return f"{self.txid}:{self.vout}"

    @classmethod
    def from_dict(cls, data: dict[str, Any], address: str | None = None) -> UTXO:
        """
        Build a UTXO from an indexer-style record.

        Accepts either flat ``txid``/``vout`` keys or an ``outpoint`` object
        with ``txid``/``outIdx``, ``value`` or ``sats`` for the amount, and an
        optional ``token``/``slpToken`` object with ``tokenId`` and ``atoms``.
        Atom counts may be given as decimal strings.
        """
        outpoint = data.get("outpoint") or {}
        txid = data.get("txid", outpoint.get("txid"))
        vout = data.get("vout", outpoint.get("outIdx"))
        value = data.get("value", data.get("sats"))
        if txid is None or vout is None or value is None:
            raise ValueError(f"Incomplete UTXO record: {data}")

        token = None
        token_data = data.get("token") or data.get("slpToken")
        if token_data:
            token = TokenAnnotation(
                token_id=str(token_data.get("tokenId", token_data.get("token_id"))).lower(),
                atoms=int(token_data["atoms"]),
            )

        return cls(
            txid=str(txid).lower(),
            vout=int(vout),
            value=int(value),
            address=data.get("address", address or ""),
            token=token,
        )


@dataclass(frozen=True)
class Recipient:
    """
    Payment destination.

    ``amount`` is sats for XEC sends and atoms for token sends. ``token_id``
    and ``decimals`` are only carried through on XEC sends.
    """

    address: str
    amount: int
    token_id: str | None = None
    decimals: int | None = None


@dataclass
class CoinSelection:
    """Result of XEC coin selection"""

    utxos: list[UTXO]
    total_value: int
    fee: int
    change_value: int
    strategy: UtxoStrategy = UtxoStrategy.ALL

    @property
    def utxo_count(self) -> int:
        return len(self.utxos)

    def summary(self) -> dict[str, Any]:
        return {
            "strategy": self.strategy.value,
            "utxo_count": self.utxo_count,
            "total_input": self.total_value,
            "estimated_fee": self.fee,
            "change": self.change_value,
        }


@dataclass
class TokenSelection:
    """Result of token coin selection"""

    token_utxos: list[UTXO]
    fee_utxos: list[UTXO]
    total_tokens: int
    total_send_tokens: int
    token_change: int
    final_send_amounts: list[int]
    total_fee_input: int
    estimated_fee: int
    fee_change_value: int
    dust_limit: int
    token_strategy: TokenStrategy = TokenStrategy.ALL
    fee_strategy: UtxoStrategy = UtxoStrategy.ALL
    token_id: str = ""

    @property
    def has_token_change(self) -> bool:
        return self.token_change > 0

    @property
    def recipient_count(self) -> int:
        return len(self.final_send_amounts) - (1 if self.has_token_change else 0)

    @property
    def total_outputs(self) -> int:
        # OP_RETURN + recipients + token change + fee change
        return 1 + self.recipient_count + (1 if self.has_token_change else 0) + 1

    @property
    def inputs(self) -> list[UTXO]:
        return self.token_utxos + self.fee_utxos

    def summary(self) -> dict[str, Any]:
        return {
            "token_id": self.token_id,
            "token_strategy": self.token_strategy.value,
            "fee_strategy": self.fee_strategy.value,
            "token_utxo_count": len(self.token_utxos),
            "fee_utxo_count": len(self.fee_utxos),
            "recipient_count": self.recipient_count,
            "total_tokens": str(self.total_tokens),
            "total_send_tokens": str(self.total_send_tokens),
            "token_change": str(self.token_change),
            "has_token_change": self.has_token_change,
            "total_fee_input": self.total_fee_input,
            "estimated_fee": self.estimated_fee,
            "total_outputs": self.total_outputs,
        }


@dataclass(frozen=True)
class AnnouncementOutput:
    """OP_RETURN output carrying token protocol data."""

    script: bytes
    value: int = 0


@dataclass(frozen=True)
class ValueOutput:
    value: int
    script: bytes
    # Pass-through metadata for token-tagged XEC recipients
    token_id: str | None = None
    decimals: int | None = None


@dataclass(frozen=True)
class ChangeOutput:
    """
    Output paid back to the wallet.

    ``value=None`` marks the fee-change placeholder: the signer fills in
    whatever remains after explicit outputs and the fee.
    """

    script: bytes
    value: int | None = None

    @property
    def is_placeholder(self) -> bool:
        return self.value is None


Output = Union[AnnouncementOutput, ValueOutput, ChangeOutput]


@dataclass(frozen=True)
class SpendingIdentity:
    """Keys, locking script and address derived for one address index"""

    private_key: bytes
    public_key: bytes
    script: bytes
    address: str
    index: int
    path: str


@dataclass
class TxPlan:
    """Inputs and ordered outputs ready to be handed to the signer."""

    kind: TxKind
    identity: SpendingIdentity
    inputs: list[UTXO]
    outputs: list[Output]
    selection: CoinSelection | TokenSelection
    summary: dict[str, Any] = field(default_factory=dict)


@dataclass
class BuildResult:
    kind: TxKind
    txid: str
    raw_tx: str
    fee: int
    inputs: list[UTXO]
    outputs: list[Output]
    selection: CoinSelection | TokenSelection
    summary: dict[str, Any] = field(default_factory=dict)

    @property
    def explorer_link(self) -> str:
        return f"{EXPLORER_TX_URL}{self.txid}"
