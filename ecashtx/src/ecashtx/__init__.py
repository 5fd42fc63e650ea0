"""
ecashtx - Transaction assembler for eCash

Builds XEC sends and SLP/ALP token sends: coin selection, output
assembly, signing and broadcast.
"""

__version__ = "0.1.0"

from ecashtx.balance import AddressBalance, BalanceQuery, aggregate_balance, get_address_balance
from ecashtx.config import FeeConfig, SendConfig
from ecashtx.errors import (
    AnnouncementEncodingError,
    BroadcastFailedError,
    ConservationError,
    InsufficientFeeBalanceError,
    InsufficientFundsError,
    InsufficientTokenBalanceError,
    InvalidRecipientError,
    InventoryFetchFailedError,
    MissingParameterError,
    NoFeeUtxosError,
    NoSpendableOutputsError,
    NoTokenUtxosError,
    TransactionBuildError,
    TransactionSigningError,
    UnknownStrategyError,
)
from ecashtx.models import (
    UTXO,
    AnnouncementOutput,
    BuildResult,
    ChangeOutput,
    CoinSelection,
    Recipient,
    TokenAnnotation,
    TokenSelection,
    TokenStrategy,
    TxKind,
    TxPlan,
    UtxoStrategy,
    ValueOutput,
)
from ecashtx.outputs import assemble_outputs
from ecashtx.selection import select_token_utxos, select_utxos
from ecashtx.tx_builder import TransactionManager

__all__ = [
    "AddressBalance",
    "AnnouncementEncodingError",
    "AnnouncementOutput",
    "BalanceQuery",
    "BroadcastFailedError",
    "BuildResult",
    "ChangeOutput",
    "CoinSelection",
    "ConservationError",
    "FeeConfig",
    "InsufficientFeeBalanceError",
    "InsufficientFundsError",
    "InsufficientTokenBalanceError",
    "InvalidRecipientError",
    "InventoryFetchFailedError",
    "MissingParameterError",
    "NoFeeUtxosError",
    "NoSpendableOutputsError",
    "NoTokenUtxosError",
    "Recipient",
    "SendConfig",
    "TokenAnnotation",
    "TokenSelection",
    "TokenStrategy",
    "TransactionBuildError",
    "TransactionManager",
    "TransactionSigningError",
    "TxKind",
    "TxPlan",
    "UTXO",
    "UnknownStrategyError",
    "UtxoStrategy",
    "ValueOutput",
    "aggregate_balance",
    "assemble_outputs",
    "get_address_balance",
    "select_token_utxos",
    "select_utxos",
]
