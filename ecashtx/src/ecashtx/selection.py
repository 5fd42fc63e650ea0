"""
UTXO selection for XEC and token sends.

Selection only partitions an inventory snapshot; UTXOs are never modified.
All strategies are deterministic: sorts are stable and ties keep snapshot
order.
"""

from __future__ import annotations

from collections.abc import Sequence

from loguru import logger

from ecashtx.config import FeeConfig
from ecashtx.errors import (
    ConservationError,
    InsufficientFeeBalanceError,
    InsufficientFundsError,
    InsufficientTokenBalanceError,
    InvalidRecipientError,
    NoFeeUtxosError,
    NoSpendableOutputsError,
    NoTokenUtxosError,
)
from ecashtx.models import (
    UTXO,
    CoinSelection,
    Recipient,
    TokenSelection,
    TokenStrategy,
    UtxoStrategy,
)


def _atoms(utxo: UTXO) -> int:
    assert utxo.token is not None
    return utxo.token.atoms


def select_utxos(
    utxos: Sequence[UTXO],
    send_amount: int,
    strategy: UtxoStrategy | str = UtxoStrategy.ALL,
    fees: FeeConfig | None = None,
) -> CoinSelection:
    """
    Select plain XEC UTXOs to cover ``send_amount`` plus the estimated fee.

    Token UTXOs are never selected here. Strategies:
    - all: every eligible UTXO, avoids fragmentation
    - largest_first: every eligible UTXO, largest value first
    - minimal: largest first, stop once value >= send_amount + fee(count)

    "minimal" is a greedy approximation: it does not guarantee the fewest
    inputs or the smallest leftover.

    Raises:
        NoSpendableOutputsError: No UTXO without a token annotation
        InsufficientFundsError: Selected value below send_amount + fee
        UnknownStrategyError: Unrecognized strategy
    """
    fees = fees or FeeConfig()
    strategy = UtxoStrategy.parse(strategy)

    if send_amount < 0:
        raise InvalidRecipientError(f"Send amount must not be negative: {send_amount}")

    eligible = [utxo for utxo in utxos if not utxo.is_token]
    if not eligible:
        raise NoSpendableOutputsError("No spendable non-token UTXOs available")

    if strategy is UtxoStrategy.ALL:
        selected = eligible
    elif strategy is UtxoStrategy.LARGEST_FIRST:
        selected = sorted(eligible, key=lambda u: u.value, reverse=True)
    else:
        selected = []
        total = 0
        for utxo in sorted(eligible, key=lambda u: u.value, reverse=True):
            selected.append(utxo)
            total += utxo.value
            if total >= send_amount + fees.xec_fee(len(selected)):
                break

    total_value = sum(utxo.value for utxo in selected)
    fee = fees.xec_fee(len(selected))

    if total_value < send_amount + fee:
        raise InsufficientFundsError(total_value, send_amount + fee, fee)

    logger.debug(
        f"Selected {len(selected)}/{len(eligible)} UTXOs ({strategy.value}): "
        f"total {total_value}, fee {fee}, change {total_value - send_amount - fee}"
    )

    return CoinSelection(
        utxos=list(selected),
        total_value=total_value,
        fee=fee,
        change_value=total_value - send_amount - fee,
        strategy=strategy,
    )


def _select_token_subset(
    token_utxos: list[UTXO], total_send: int, strategy: TokenStrategy
) -> list[UTXO]:
    if strategy is TokenStrategy.ALL:
        return token_utxos

    if strategy is TokenStrategy.LARGEST:
        # Single largest UTXO, first one wins on ties; never combined
        largest = token_utxos[0]
        for utxo in token_utxos[1:]:
            if _atoms(utxo) > _atoms(largest):
                largest = utxo
        return [largest]

    # minimal: smallest single UTXO that covers the whole send on its own
    covering = sorted(
        (utxo for utxo in token_utxos if _atoms(utxo) >= total_send),
        key=_atoms,
    )
    if not covering:
        raise InsufficientTokenBalanceError(
            max(_atoms(u) for u in token_utxos), total_send
        )
    return [covering[0]]


def select_token_utxos(
    utxos: Sequence[UTXO],
    token_id: str,
    recipients: Sequence[Recipient],
    token_strategy: TokenStrategy | str = TokenStrategy.ALL,
    fee_strategy: UtxoStrategy | str = UtxoStrategy.ALL,
    fees: FeeConfig | None = None,
) -> TokenSelection:
    """
    Select token UTXOs covering the recipients' atoms and XEC UTXOs paying
    for the dust outputs and the fee.

    Recipient amounts are atoms; no decimal scaling is applied.

    Token strategies:
    - all: every UTXO of the token, avoids fragmentation
    - largest: the single largest UTXO only
    - minimal: the smallest single UTXO that covers the send on its own

    Fee strategy "all" spends every plain UTXO; other strategies go through
    select_utxos() with a target of the dust outputs plus a fixed reserve.

    Raises:
        NoTokenUtxosError: No UTXO carries token_id
        NoFeeUtxosError: No plain UTXO to pay the fee
        InsufficientTokenBalanceError: Selected atoms below the send total
        InsufficientFeeBalanceError: Plain UTXOs cannot cover dust and fee
        InvalidRecipientError: Amount not a non-negative integer
    """
    fees = fees or FeeConfig()
    token_strategy = TokenStrategy.parse(token_strategy)
    fee_strategy = UtxoStrategy.parse(fee_strategy)
    token_id = token_id.lower()
    dust = fees.dust_limit

    token_utxos = [u for u in utxos if u.token is not None and u.token.token_id == token_id]
    fee_utxos = [u for u in utxos if not u.is_token]

    if not token_utxos:
        raise NoTokenUtxosError(f"No UTXOs available for token {token_id}")
    if not fee_utxos:
        raise NoFeeUtxosError("No non-token UTXOs available to pay the fee")

    for r in recipients:
        if not isinstance(r.amount, int) or isinstance(r.amount, bool) or r.amount < 0:
            raise InvalidRecipientError(
                f"Token amount must be a non-negative integer, got {r.amount!r} for {r.address}"
            )
    send_amounts = [r.amount for r in recipients]
    total_send_tokens = sum(send_amounts)

    selected_token_utxos = _select_token_subset(token_utxos, total_send_tokens, token_strategy)
    total_tokens = sum(_atoms(u) for u in selected_token_utxos)

    if total_send_tokens > total_tokens:
        raise InsufficientTokenBalanceError(total_tokens, total_send_tokens)

    token_change = total_tokens - total_send_tokens
    change_dust = dust if token_change > 0 else 0

    if fee_strategy is UtxoStrategy.ALL:
        selected_fee_utxos = fee_utxos
    else:
        target = len(recipients) * dust + change_dust + fees.fee_reserve
        try:
            selected_fee_utxos = select_utxos(utxos, target, fee_strategy, fees).utxos
        except InsufficientFundsError as e:
            raise InsufficientFeeBalanceError(e.total_input, e.required, e.fee) from e

    total_fee_input = sum(u.value for u in selected_fee_utxos)
    estimated_fee = fees.token_fee(len(selected_fee_utxos) + len(selected_token_utxos))
    required = len(recipients) * dust + change_dust + estimated_fee

    if total_fee_input < required:
        raise InsufficientFeeBalanceError(total_fee_input, required, estimated_fee)

    final_send_amounts = list(send_amounts)
    if token_change > 0:
        final_send_amounts.append(token_change)

    if sum(final_send_amounts) != total_tokens:
        raise ConservationError(
            f"Output atoms {sum(final_send_amounts)} != input atoms {total_tokens}"
        )

    logger.debug(
        f"Token selection ({token_strategy.value}/{fee_strategy.value}): "
        f"{len(selected_token_utxos)} token UTXOs with {total_tokens} atoms, "
        f"{len(selected_fee_utxos)} fee UTXOs with {total_fee_input} sats, "
        f"token change {token_change}"
    )

    return TokenSelection(
        token_utxos=list(selected_token_utxos),
        fee_utxos=list(selected_fee_utxos),
        total_tokens=total_tokens,
        total_send_tokens=total_send_tokens,
        token_change=token_change,
        final_send_amounts=final_send_amounts,
        total_fee_input=total_fee_input,
        estimated_fee=estimated_fee,
        # Value left for the fee-change placeholder before the signer takes the fee
        fee_change_value=total_fee_input - required + estimated_fee,
        dust_limit=dust,
        token_strategy=token_strategy,
        fee_strategy=fee_strategy,
        token_id=token_id,
    )
