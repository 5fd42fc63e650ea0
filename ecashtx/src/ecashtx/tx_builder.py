"""
Transaction orchestration for XEC, SLP and ALP sends.

Each build runs the same pipeline:
1. Validate parameters, strategy names and recipients (no I/O yet)
2. Derive the spending identity for the address index
3. Fetch the UTXO snapshot of that address
4. Select inputs and assemble the ordered outputs
5. Log the selection summary
6. Sign and broadcast (send_* only)

Nothing is retried. Any failure aborts the build before signing, so a
failed build never leaves a partially broadcast transaction behind.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from loguru import logger

from ecashtx.backends.base import Broadcaster, UtxoProvider
from ecashtx.config import FeeConfig
from ecashtx.constants import (
    ALP_MAX_ATOMS,
    ALP_MAX_SEND_OUTPUTS,
    SLP_MAX_ATOMS,
    SLP_MAX_SEND_OUTPUTS,
)
from ecashtx.errors import (
    BroadcastFailedError,
    InvalidRecipientError,
    InventoryFetchFailedError,
    MissingParameterError,
    NoSpendableOutputsError,
    TransactionBuildError,
    UnknownStrategyError,
)
from ecashtx.models import (
    UTXO,
    BuildResult,
    Recipient,
    SpendingIdentity,
    TokenStrategy,
    TxKind,
    TxPlan,
    UtxoStrategy,
)
from ecashtx.outputs import assemble_outputs
from ecashtx.script import is_valid_token_id
from ecashtx.selection import select_token_utxos, select_utxos
from ecashtx.wallet.address import decode_cashaddr
from ecashtx.wallet.service import WalletService
from ecashtx.wallet.signing import SigningInput, TxSigner

# Per protocol: (max atoms per output, max outputs in one SEND)
TOKEN_LIMITS = {
    TxKind.SLP: (SLP_MAX_ATOMS, SLP_MAX_SEND_OUTPUTS),
    TxKind.ALP: (ALP_MAX_ATOMS, ALP_MAX_SEND_OUTPUTS),
}

RecipientLike = Recipient | Mapping[str, Any]

# Options each kind reads from a shared option set; other keys are ignored
XEC_OPTIONS = ("utxo_strategy", "address_index")
TOKEN_OPTIONS = ("address_index", "fee_strategy", "token_strategy")


def parse_kind(kind: TxKind | str) -> TxKind:
    try:
        return TxKind(kind)
    except ValueError:
        raise UnknownStrategyError(f"Unknown transaction kind: {kind}") from None


def pick_options(options: Mapping[str, Any], names: Sequence[str]) -> dict[str, Any]:
    return {name: options[name] for name in names if name in options}


def validate_required_params(
    kind: TxKind, token_id: str | None, token_decimals: int | None
) -> None:
    """
    Check the parameters a token send cannot do without.

    Raises:
        MissingParameterError: token_id or token_decimals absent or malformed
    """
    if not kind.is_token:
        return
    if not token_id:
        raise MissingParameterError(f"tokenId is required for {kind.value} sends")
    if not is_valid_token_id(token_id):
        raise MissingParameterError(f"tokenId must be 64 hex characters, got {token_id!r}")
    if token_decimals is None:
        raise MissingParameterError(f"tokenDecimals is required for {kind.value} sends")
    if not _is_int(token_decimals) or token_decimals < 0:
        raise MissingParameterError(
            f"tokenDecimals must be a non-negative integer: {token_decimals!r}"
        )


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _coerce_recipient(entry: RecipientLike) -> Recipient:
    if isinstance(entry, Recipient):
        return entry
    if isinstance(entry, Mapping):
        return Recipient(
            address=entry.get("address"),  # type: ignore[arg-type]
            amount=entry.get("amount"),  # type: ignore[arg-type]
            token_id=entry.get("token_id", entry.get("tokenId")),
            decimals=entry.get("decimals"),
        )
    raise InvalidRecipientError(f"Unsupported recipient: {entry!r}")


def validate_recipients(
    recipients: Sequence[RecipientLike], kind: TxKind, address_prefix: str
) -> list[Recipient]:
    """
    Normalize and check recipients before any inventory fetch.

    Raises:
        InvalidRecipientError: Empty list, undecodable address, amount that is
            not a non-negative integer, bad metadata or protocol limits exceeded
    """
    if not recipients:
        raise InvalidRecipientError("At least one recipient is required")

    result = [_coerce_recipient(entry) for entry in recipients]

    for recipient in result:
        if not isinstance(recipient.address, str) or not recipient.address:
            raise InvalidRecipientError(f"Missing recipient address: {recipient}")
        try:
            decode_cashaddr(recipient.address, address_prefix)
        except ValueError as e:
            raise InvalidRecipientError(f"Invalid address {recipient.address}: {e}") from e

        if not _is_int(recipient.amount):
            raise InvalidRecipientError(
                f"Amount must be an integer, got {recipient.amount!r} for {recipient.address}"
            )
        if recipient.amount < 0:
            raise InvalidRecipientError(
                f"Amount must not be negative: {recipient.amount} for {recipient.address}"
            )
        if recipient.decimals is not None and (
            not _is_int(recipient.decimals) or recipient.decimals < 0
        ):
            raise InvalidRecipientError(f"Invalid decimals: {recipient.decimals!r}")
        if recipient.token_id is not None and not is_valid_token_id(recipient.token_id):
            raise InvalidRecipientError(f"Invalid token id: {recipient.token_id!r}")

    if kind.is_token:
        max_atoms, max_outputs = TOKEN_LIMITS[kind]
        if len(result) > max_outputs:
            raise InvalidRecipientError(
                f"{kind.value} sends support at most {max_outputs} outputs, got {len(result)}"
            )
        for recipient in result:
            if recipient.amount > max_atoms:
                raise InvalidRecipientError(
                    f"Amount {recipient.amount} exceeds the {kind.value} maximum of {max_atoms}"
                )

    return result


class TransactionManager:
    """
    Builds, signs and broadcasts sends from one wallet.

    Collaborators are injected:
    - wallet: derives the spending identity for an address index
    - inventory: UTXO source for the spending address
    - broadcaster: relays signed transactions; defaults to ``inventory``
      when it implements Broadcaster
    - signer: resolves the fee-change placeholder and signs
    """

    def __init__(
        self,
        wallet: WalletService,
        inventory: UtxoProvider,
        broadcaster: Broadcaster | None = None,
        signer: TxSigner | None = None,
        fees: FeeConfig | None = None,
    ):
        self.wallet = wallet
        self.inventory = inventory
        if broadcaster is None and isinstance(inventory, Broadcaster):
            broadcaster = inventory
        self.broadcaster = broadcaster
        self.fees = fees or (signer.fees if signer else FeeConfig())
        self.signer = signer or TxSigner(self.fees)

    async def _fetch_utxos(self, identity: SpendingIdentity) -> list[UTXO]:
        try:
            utxos = await self.inventory.get_utxos(identity.address)
        except TransactionBuildError:
            raise
        except Exception as e:
            logger.error(f"Failed to fetch UTXOs for {identity.address}: {e}")
            raise InventoryFetchFailedError(
                f"Failed to fetch UTXOs for {identity.address}: {e}"
            ) from e

        if not utxos:
            raise NoSpendableOutputsError(f"No UTXOs found for {identity.address}")

        logger.debug(f"Fetched {len(utxos)} UTXOs for {identity.address}")
        return list(utxos)

    def _plan(
        self,
        kind: TxKind,
        identity: SpendingIdentity,
        recipients: list[Recipient],
        selection: Any,
        inputs: list[UTXO],
        **details: Any,
    ) -> TxPlan:
        outputs = assemble_outputs(
            selection, recipients, identity.script, self.fees.dust_limit, kind
        )
        summary = {
            "kind": kind.value,
            "address": identity.address,
            "address_index": identity.index,
            "recipient_count": len(recipients),
            "input_count": len(inputs),
            "output_count": len(outputs),
            **selection.summary(),
            **details,
        }
        logger.info(f"Built {kind.value} send: {summary}")
        return TxPlan(
            kind=kind,
            identity=identity,
            inputs=inputs,
            outputs=outputs,
            selection=selection,
            summary=summary,
        )

    async def build_xec(
        self,
        recipients: Sequence[RecipientLike],
        utxo_strategy: UtxoStrategy | str = UtxoStrategy.ALL,
        address_index: int = 0,
    ) -> TxPlan:
        """
        Plan an XEC send.

        Token-tagged recipients get an output at their own amount but do
        not count towards the selection target.
        """
        strategy = UtxoStrategy.parse(utxo_strategy)
        checked = validate_recipients(recipients, TxKind.XEC, self.wallet.prefix)

        identity = self.wallet.derive_identity(address_index)
        utxos = await self._fetch_utxos(identity)

        xec_recipients = [r for r in checked if r.token_id is None]
        token_recipients = [r for r in checked if r.token_id is not None]
        send_amount = sum(r.amount for r in xec_recipients)
        selection = select_utxos(utxos, send_amount, strategy, self.fees)

        return self._plan(
            TxKind.XEC,
            identity,
            checked,
            selection,
            selection.utxos,
            xec_recipient_count=len(xec_recipients),
            token_recipient_count=len(token_recipients),
            send_amount=send_amount,
            token_transfers=[
                {
                    "token_id": r.token_id,
                    "amount": r.amount,
                    "decimals": r.decimals,
                    "address": r.address,
                }
                for r in token_recipients
            ],
        )

    async def build_token(
        self,
        kind: TxKind | str,
        recipients: Sequence[RecipientLike],
        token_id: str | None,
        token_decimals: int | None,
        address_index: int = 0,
        fee_strategy: UtxoStrategy | str = UtxoStrategy.ALL,
        token_strategy: TokenStrategy | str = TokenStrategy.ALL,
    ) -> TxPlan:
        """
        Plan an SLP or ALP send.

        Recipient amounts are atoms. ``token_decimals`` is only checked for
        presence and reported in the summary; no scaling is applied.
        """
        kind = parse_kind(kind)
        if not kind.is_token:
            raise MissingParameterError(f"{kind.value} is not a token kind")
        validate_required_params(kind, token_id, token_decimals)
        assert token_id is not None
        fee_strategy = UtxoStrategy.parse(fee_strategy)
        token_strategy = TokenStrategy.parse(token_strategy)
        checked = validate_recipients(recipients, kind, self.wallet.prefix)

        identity = self.wallet.derive_identity(address_index)
        utxos = await self._fetch_utxos(identity)

        selection = select_token_utxos(
            utxos, token_id, checked, token_strategy, fee_strategy, self.fees
        )

        return self._plan(
            kind, identity, checked, selection, selection.inputs, token_decimals=token_decimals
        )

    async def build(
        self, kind: TxKind | str, recipients: Sequence[RecipientLike], **options: Any
    ) -> TxPlan:
        """Plan a send dispatching on kind, see send() for the options."""
        kind = parse_kind(kind)
        if kind is TxKind.XEC:
            return await self.build_xec(recipients, **pick_options(options, XEC_OPTIONS))
        return await self.build_token(
            kind,
            recipients,
            options.get("token_id"),
            options.get("token_decimals"),
            **pick_options(options, TOKEN_OPTIONS),
        )

    async def sign_and_broadcast(self, plan: TxPlan) -> BuildResult:
        """
        Sign a plan with its identity's key and broadcast it.

        Raises:
            TransactionSigningError: Outputs and fee exceed the inputs
            BroadcastFailedError: Broadcaster rejected or was unreachable
        """
        if self.broadcaster is None:
            raise MissingParameterError("No broadcaster configured")

        signing_inputs = [
            SigningInput(
                utxo=utxo,
                private_key=plan.identity.private_key,
                script=plan.identity.script,
            )
            for utxo in plan.inputs
        ]
        signed = self.signer.sign(signing_inputs, plan.outputs)

        try:
            txid = await self.broadcaster.broadcast_transaction(signed.hex)
        except Exception as e:
            logger.error(f"Broadcast of {signed.txid} failed: {e}")
            raise BroadcastFailedError(f"Broadcast failed: {e}") from e

        if txid != signed.txid:
            logger.warning(f"Broadcaster returned txid {txid}, expected {signed.txid}")

        summary = {**plan.summary, "txid": txid, "fee": signed.fee, "size": signed.size}
        logger.info(f"Sent {plan.kind.value} transaction {txid} (fee {signed.fee} sats)")

        return BuildResult(
            kind=plan.kind,
            txid=txid,
            raw_tx=signed.hex,
            fee=signed.fee,
            inputs=plan.inputs,
            outputs=plan.outputs,
            selection=plan.selection,
            summary=summary,
        )

    async def send_xec(
        self,
        recipients: Sequence[RecipientLike],
        utxo_strategy: UtxoStrategy | str = UtxoStrategy.ALL,
        address_index: int = 0,
    ) -> BuildResult:
        plan = await self.build_xec(recipients, utxo_strategy, address_index)
        return await self.sign_and_broadcast(plan)

    async def send_slp(
        self,
        recipients: Sequence[RecipientLike],
        token_id: str | None,
        token_decimals: int | None,
        address_index: int = 0,
        fee_strategy: UtxoStrategy | str = UtxoStrategy.ALL,
        token_strategy: TokenStrategy | str = TokenStrategy.ALL,
    ) -> BuildResult:
        plan = await self.build_token(
            TxKind.SLP,
            recipients,
            token_id,
            token_decimals,
            address_index,
            fee_strategy,
            token_strategy,
        )
        return await self.sign_and_broadcast(plan)

    async def send_alp(
        self,
        recipients: Sequence[RecipientLike],
        token_id: str | None,
        token_decimals: int | None,
        address_index: int = 0,
        fee_strategy: UtxoStrategy | str = UtxoStrategy.ALL,
        token_strategy: TokenStrategy | str = TokenStrategy.ALL,
    ) -> BuildResult:
        plan = await self.build_token(
            TxKind.ALP,
            recipients,
            token_id,
            token_decimals,
            address_index,
            fee_strategy,
            token_strategy,
        )
        return await self.sign_and_broadcast(plan)

    async def send(
        self, kind: TxKind | str, recipients: Sequence[RecipientLike], **options: Any
    ) -> BuildResult:
        """
        Send dispatching on kind.

        Options are passed to send_xec (utxo_strategy, address_index) or
        send_slp/send_alp (token_id, token_decimals, address_index,
        fee_strategy, token_strategy). Options the kind does not use are
        ignored, so one option set can serve every kind.
        """
        kind = parse_kind(kind)
        if kind is TxKind.XEC:
            return await self.send_xec(recipients, **pick_options(options, XEC_OPTIONS))
        send_token = self.send_slp if kind is TxKind.SLP else self.send_alp
        return await send_token(
            recipients,
            options.get("token_id"),
            options.get("token_decimals"),
            **pick_options(options, TOKEN_OPTIONS),
        )

    async def close(self) -> None:
        await self.inventory.close()
        if self.broadcaster is not None and self.broadcaster is not self.inventory:
            await self.broadcaster.close()
