"""
Output assembly.

Token sends (SLP and ALP) use a fixed layout that observers decode by
position:

    0       announcement (OP_RETURN with token id and send amounts)
    1..n    one dust output per recipient
    n+1     token change at dust, only if there is token change
    last    fee-change placeholder paid to the wallet

XEC sends are one output per recipient followed by the placeholder.
"""

from __future__ import annotations

from collections.abc import Sequence

from ecashtx.errors import InvalidRecipientError, TransactionBuildError
from ecashtx.models import (
    AnnouncementOutput,
    ChangeOutput,
    CoinSelection,
    Output,
    Recipient,
    TokenSelection,
    TxKind,
    ValueOutput,
)
from ecashtx.script import alp_send, empp_script, slp_send
from ecashtx.wallet.address import address_to_script


def recipient_script(recipient: Recipient) -> bytes:
    try:
        return address_to_script(recipient.address)
    except (ValueError, AttributeError) as e:
        raise InvalidRecipientError(f"Invalid address: {recipient.address}") from e


def encode_announcement(kind: TxKind, token_id: str, amounts: Sequence[int]) -> bytes:
    """OP_RETURN script announcing a token SEND for the given protocol."""
    if kind is TxKind.SLP:
        return slp_send(token_id, amounts)
    if kind is TxKind.ALP:
        return empp_script(alp_send(token_id, amounts))
    raise ValueError(f"{kind.value} transactions carry no token announcement")


def assemble_outputs(
    selection: CoinSelection | TokenSelection,
    recipients: Sequence[Recipient],
    change_script: bytes,
    dust_limit: int,
    kind: TxKind,
) -> list[Output]:
    """
    Build the ordered output list for a selection.

    Args:
        selection: Result of select_utxos() (XEC) or select_token_utxos()
        recipients: Payment destinations in output order
        change_script: Wallet locking script for token change and fee change
        dust_limit: Value of every recipient and token change output on token sends
        kind: Transaction kind, picks the layout and the announcement encoding
    """
    outputs: list[Output] = []

    if kind.is_token:
        if not isinstance(selection, TokenSelection):
            raise TransactionBuildError(f"{kind.value} send needs a token selection")

        outputs.append(
            AnnouncementOutput(
                script=encode_announcement(kind, selection.token_id, selection.final_send_amounts)
            )
        )
        for recipient in recipients:
            outputs.append(ValueOutput(value=dust_limit, script=recipient_script(recipient)))
        if selection.has_token_change:
            outputs.append(ChangeOutput(script=change_script, value=dust_limit))
    else:
        for recipient in recipients:
            outputs.append(
                ValueOutput(
                    value=recipient.amount,
                    script=recipient_script(recipient),
                    token_id=recipient.token_id,
                    decimals=recipient.decimals,
                )
            )

    outputs.append(ChangeOutput(script=change_script))
    return outputs
