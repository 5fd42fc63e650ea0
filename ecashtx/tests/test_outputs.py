"""
Tests for output assembly.
"""

from __future__ import annotations

import pytest

from ecashtx.errors import InvalidRecipientError, TransactionBuildError
from ecashtx.models import (
    AnnouncementOutput,
    ChangeOutput,
    Recipient,
    TxKind,
    ValueOutput,
)
from ecashtx.outputs import assemble_outputs, encode_announcement
from ecashtx.script import alp_send, empp_script, p2pkh_script, slp_send
from ecashtx.selection import select_token_utxos, select_utxos
from ecashtx.wallet.address import address_to_script

TOKEN_ID = "ab" * 32
DUST = 546
CHANGE_SCRIPT = p2pkh_script(bytes([0xEE]) * 20)


@pytest.fixture
def token_utxos(utxo_factory):
    return [
        utxo_factory(DUST, 0, token_id=TOKEN_ID, atoms=1_000),
        utxo_factory(20_000, 1),
    ]


class TestTokenLayout:
    @pytest.mark.parametrize("kind", [TxKind.SLP, TxKind.ALP])
    def test_announcement_first_placeholder_last(
        self, kind: TxKind, token_utxos, address_factory
    ) -> None:
        recipients = [Recipient(address_factory(1), 300), Recipient(address_factory(2), 200)]
        selection = select_token_utxos(token_utxos, TOKEN_ID, recipients)

        outputs = assemble_outputs(selection, recipients, CHANGE_SCRIPT, DUST, kind)

        assert isinstance(outputs[0], AnnouncementOutput)
        assert outputs[0].value == 0
        assert isinstance(outputs[-1], ChangeOutput)
        assert outputs[-1].is_placeholder
        assert outputs[-1].script == CHANGE_SCRIPT
        assert len(outputs) == selection.total_outputs == 5

    def test_recipients_get_dust(self, token_utxos, address_factory) -> None:
        recipients = [Recipient(address_factory(1), 999), Recipient(address_factory(2), 1)]
        selection = select_token_utxos(token_utxos, TOKEN_ID, recipients)

        outputs = assemble_outputs(selection, recipients, CHANGE_SCRIPT, DUST, TxKind.SLP)

        for out, recipient in zip(outputs[1:3], recipients, strict=True):
            assert isinstance(out, ValueOutput)
            assert out.value == DUST
            assert out.script == address_to_script(recipient.address)

    def test_token_change_output(self, token_utxos, address_factory) -> None:
        recipients = [Recipient(address_factory(1), 400)]
        selection = select_token_utxos(token_utxos, TOKEN_ID, recipients)

        outputs = assemble_outputs(selection, recipients, CHANGE_SCRIPT, DUST, TxKind.SLP)

        assert len(outputs) == 4
        change = outputs[2]
        assert isinstance(change, ChangeOutput)
        assert change.value == DUST
        assert change.script == CHANGE_SCRIPT
        assert not change.is_placeholder

    def test_no_token_change_output(self, token_utxos, address_factory) -> None:
        recipients = [Recipient(address_factory(1), 1_000)]
        selection = select_token_utxos(token_utxos, TOKEN_ID, recipients)

        outputs = assemble_outputs(selection, recipients, CHANGE_SCRIPT, DUST, TxKind.SLP)

        assert len(outputs) == 3
        assert [type(o) for o in outputs] == [AnnouncementOutput, ValueOutput, ChangeOutput]

    def test_slp_announcement_bytes(self, token_utxos, address_factory) -> None:
        recipients = [Recipient(address_factory(1), 400)]
        selection = select_token_utxos(token_utxos, TOKEN_ID, recipients)

        outputs = assemble_outputs(selection, recipients, CHANGE_SCRIPT, DUST, TxKind.SLP)

        assert outputs[0].script == slp_send(TOKEN_ID, [400, 600])

    def test_alp_announcement_bytes(self, token_utxos, address_factory) -> None:
        recipients = [Recipient(address_factory(1), 400)]
        selection = select_token_utxos(token_utxos, TOKEN_ID, recipients)

        outputs = assemble_outputs(selection, recipients, CHANGE_SCRIPT, DUST, TxKind.ALP)

        assert outputs[0].script == empp_script(alp_send(TOKEN_ID, [400, 600]))
        assert outputs[0].script[:2] == bytes([0x6A, 0x50])

    def test_token_kind_needs_token_selection(self, utxo_factory, address_factory) -> None:
        recipients = [Recipient(address_factory(1), 100)]
        selection = select_utxos([utxo_factory(10_000)], 100)

        with pytest.raises(TransactionBuildError):
            assemble_outputs(selection, recipients, CHANGE_SCRIPT, DUST, TxKind.SLP)


class TestXecLayout:
    def test_recipient_values_then_placeholder(self, utxo_factory, address_factory) -> None:
        recipients = [Recipient(address_factory(1), 1_000), Recipient(address_factory(2), 2_500)]
        selection = select_utxos([utxo_factory(10_000)], 3_500)

        outputs = assemble_outputs(selection, recipients, CHANGE_SCRIPT, DUST, TxKind.XEC)

        assert [o.value for o in outputs[:-1]] == [1_000, 2_500]
        assert isinstance(outputs[-1], ChangeOutput)
        assert outputs[-1].is_placeholder
        assert not any(isinstance(o, AnnouncementOutput) for o in outputs)

    def test_token_metadata_passes_through(self, utxo_factory, address_factory) -> None:
        recipients = [
            Recipient(address_factory(1), 1_000),
            Recipient(address_factory(2), 546, token_id=TOKEN_ID, decimals=2),
        ]
        selection = select_utxos([utxo_factory(10_000)], 1_000)

        outputs = assemble_outputs(selection, recipients, CHANGE_SCRIPT, DUST, TxKind.XEC)

        tagged = outputs[1]
        assert isinstance(tagged, ValueOutput)
        assert tagged.value == 546
        assert tagged.token_id == TOKEN_ID
        assert tagged.decimals == 2
        assert outputs[0].token_id is None

    def test_invalid_address(self, utxo_factory) -> None:
        recipients = [Recipient("ecash:notanaddress", 1_000)]
        selection = select_utxos([utxo_factory(10_000)], 1_000)

        with pytest.raises(InvalidRecipientError):
            assemble_outputs(selection, recipients, CHANGE_SCRIPT, DUST, TxKind.XEC)


class TestEncodeAnnouncement:
    def test_xec_has_no_announcement(self) -> None:
        with pytest.raises(ValueError):
            encode_announcement(TxKind.XEC, TOKEN_ID, [1])

    def test_protocols_differ(self) -> None:
        slp = encode_announcement(TxKind.SLP, TOKEN_ID, [1, 2])
        alp = encode_announcement(TxKind.ALP, TOKEN_ID, [1, 2])
        assert slp != alp
