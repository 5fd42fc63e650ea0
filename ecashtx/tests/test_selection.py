"""
Tests for XEC coin selection.
"""

from __future__ import annotations

import pytest

from ecashtx.config import FeeConfig
from ecashtx.errors import (
    InsufficientFundsError,
    InvalidRecipientError,
    NoSpendableOutputsError,
    UnknownStrategyError,
)
from ecashtx.models import UtxoStrategy
from ecashtx.selection import select_utxos

TOKEN_ID = "ab" * 32


class TestFeeModel:
    def test_default_fee(self) -> None:
        """fee(n) = n * 150 + 250"""
        fees = FeeConfig()
        assert fees.xec_fee(1) == 400
        assert fees.xec_fee(3) == 700

    def test_token_fee(self) -> None:
        fees = FeeConfig()
        assert fees.token_fee(2) == 350


class TestSelectAll:
    def test_single_output(self, utxo_factory) -> None:
        """One 10 000 sat UTXO, send 100: change is what is left after one-input fee."""
        utxos = [utxo_factory(10_000)]

        selection = select_utxos(utxos, 100, UtxoStrategy.ALL)

        assert selection.utxos == utxos
        assert selection.total_value == 10_000
        assert selection.fee == 400
        assert selection.change_value == 10_000 - 100 - 400

    def test_keeps_snapshot_order(self, utxo_factory) -> None:
        utxos = [utxo_factory(1_000, 0), utxo_factory(5_000, 1), utxo_factory(3_000, 2)]

        selection = select_utxos(utxos, 1_000, "all")

        assert [u.vout for u in selection.utxos] == [0, 1, 2]
        assert selection.fee == 3 * 150 + 250

    def test_skips_token_utxos(self, utxo_factory) -> None:
        utxos = [
            utxo_factory(546, 0, token_id=TOKEN_ID, atoms=100),
            utxo_factory(5_000, 1),
        ]

        selection = select_utxos(utxos, 1_000)

        assert [u.vout for u in selection.utxos] == [1]
        assert selection.total_value == 5_000

    def test_zero_send_amount(self, utxo_factory) -> None:
        selection = select_utxos([utxo_factory(1_000)], 0)
        assert selection.change_value == 600


class TestSelectLargestFirst:
    def test_orders_descending(self, utxo_factory) -> None:
        utxos = [utxo_factory(1_000, 0), utxo_factory(5_000, 1), utxo_factory(3_000, 2)]

        selection = select_utxos(utxos, 1_000, UtxoStrategy.LARGEST_FIRST)

        assert [u.value for u in selection.utxos] == [5_000, 3_000, 1_000]
        assert selection.strategy == UtxoStrategy.LARGEST_FIRST

    def test_ties_keep_snapshot_order(self, utxo_factory) -> None:
        utxos = [utxo_factory(2_000, 0), utxo_factory(2_000, 1), utxo_factory(2_000, 2)]

        selection = select_utxos(utxos, 100, UtxoStrategy.LARGEST_FIRST)

        assert [u.vout for u in selection.utxos] == [0, 1, 2]


class TestSelectMinimal:
    def test_single_largest_covers(self, utxo_factory) -> None:
        utxos = [utxo_factory(10_000, 0), utxo_factory(30_000, 1), utxo_factory(20_000, 2)]

        selection = select_utxos(utxos, 25_000, UtxoStrategy.MINIMAL)

        assert [u.value for u in selection.utxos] == [30_000]
        assert selection.fee == 400
        assert selection.change_value == 30_000 - 25_000 - 400

    def test_selects_first_when_it_covers_fee(self, utxo_factory) -> None:
        """[300, 200, 100], send 250: [300] when 300 >= 250 + fee(1)."""
        fees = FeeConfig(per_input_fee=30, base_fee=0)
        utxos = [utxo_factory(300, 0), utxo_factory(200, 1), utxo_factory(100, 2)]

        selection = select_utxos(utxos, 250, UtxoStrategy.MINIMAL, fees)

        assert [u.value for u in selection.utxos] == [300]
        assert selection.change_value == 300 - 250 - 30

    def test_escalates_when_fee_not_covered(self, utxo_factory) -> None:
        """[300, 200, 100], send 250: escalates to [300, 200] when 300 < 250 + fee(1)."""
        fees = FeeConfig(per_input_fee=60, base_fee=0)
        utxos = [utxo_factory(300, 0), utxo_factory(200, 1), utxo_factory(100, 2)]

        selection = select_utxos(utxos, 250, UtxoStrategy.MINIMAL, fees)

        assert [u.value for u in selection.utxos] == [300, 200]
        assert selection.fee == 120
        assert selection.change_value == 500 - 250 - 120

    def test_default_fees_exhaust_small_outputs(self, utxo_factory) -> None:
        utxos = [utxo_factory(300, 0), utxo_factory(200, 1), utxo_factory(100, 2)]

        with pytest.raises(InsufficientFundsError) as exc_info:
            select_utxos(utxos, 250, UtxoStrategy.MINIMAL)

        assert exc_info.value.total_input == 600
        assert exc_info.value.fee == 700
        assert exc_info.value.required == 950


class TestSelectErrors:
    def test_no_utxos(self) -> None:
        with pytest.raises(NoSpendableOutputsError):
            select_utxos([], 100)

    def test_only_token_utxos(self, utxo_factory) -> None:
        utxos = [utxo_factory(546, 0, token_id=TOKEN_ID, atoms=100)]
        with pytest.raises(NoSpendableOutputsError):
            select_utxos(utxos, 100)

    def test_insufficient_funds(self, utxo_factory) -> None:
        with pytest.raises(InsufficientFundsError) as exc_info:
            select_utxos([utxo_factory(500)], 200)

        error = exc_info.value
        assert error.total_input == 500
        assert error.required == 600
        assert error.fee == 400
        assert error.retryable is False

    def test_exact_amount_is_enough(self, utxo_factory) -> None:
        selection = select_utxos([utxo_factory(600)], 200)
        assert selection.change_value == 0

    def test_unknown_strategy(self, utxo_factory) -> None:
        with pytest.raises(UnknownStrategyError):
            select_utxos([utxo_factory(10_000)], 100, "random")

    def test_negative_send_amount(self, utxo_factory) -> None:
        with pytest.raises(InvalidRecipientError):
            select_utxos([utxo_factory(10_000)], -1)


class TestDeterminism:
    @pytest.mark.parametrize("strategy", list(UtxoStrategy))
    def test_same_snapshot_same_result(self, utxo_factory, strategy: UtxoStrategy) -> None:
        utxos = [utxo_factory(v, i) for i, v in enumerate([4_000, 9_000, 1_000, 9_000, 2_500])]

        first = select_utxos(utxos, 5_000, strategy)
        second = select_utxos(list(utxos), 5_000, strategy)

        assert first == second

    def test_input_not_modified(self, utxo_factory) -> None:
        utxos = [utxo_factory(1_000, 0), utxo_factory(5_000, 1)]
        snapshot = list(utxos)

        select_utxos(utxos, 100, UtxoStrategy.LARGEST_FIRST)

        assert utxos == snapshot
