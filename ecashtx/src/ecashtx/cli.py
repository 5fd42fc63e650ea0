"""
Command-line interface for ecashtx.
"""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path
from typing import Annotated

import typer
from loguru import logger
from pydantic import ValidationError

from ecashtx.backends.base import Broadcaster
from ecashtx.backends.node_rpc import NodeRpcBroadcaster
from ecashtx.backends.snapshot import SnapshotBackend
from ecashtx.balance import get_address_balance
from ecashtx.config import SendConfig, load_mnemonic
from ecashtx.constants import SATS_PER_XEC
from ecashtx.errors import TransactionBuildError
from ecashtx.models import BuildResult, Recipient, TxKind
from ecashtx.tx_builder import TransactionManager
from ecashtx.wallet.bip32 import private_key_to_wif
from ecashtx.wallet.service import WalletService

app = typer.Typer(
    name="ecashtx",
    help="Build, sign and broadcast eCash XEC, SLP and ALP sends",
    add_completion=False,
)


def setup_logging(level: str = "INFO") -> None:
    """Configure loguru logging."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=level.upper(),
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | {message}",
    )


def parse_recipient(value: str) -> Recipient:
    """Parse ``address:amount``; the address may carry its own ``ecash:`` prefix."""
    address, sep, amount = value.rpartition(":")
    if not sep or not address:
        raise typer.BadParameter(f"Expected ADDRESS:AMOUNT, got {value!r}")
    try:
        return Recipient(address=address, amount=int(amount))
    except ValueError:
        raise typer.BadParameter(f"Amount must be an integer: {amount!r}") from None


def _load_config(mnemonic: str | None, mnemonic_file: Path | None, **kwargs: object) -> SendConfig:
    try:
        resolved_mnemonic = load_mnemonic(mnemonic, mnemonic_file)
        return SendConfig(mnemonic=resolved_mnemonic, **kwargs)  # type: ignore[arg-type]
    except (ValueError, ValidationError) as e:
        logger.error(str(e))
        raise typer.Exit(1)


def _build_manager(config: SendConfig, dry_run: bool) -> TransactionManager:
    if config.snapshot_path is None:
        logger.error("A UTXO snapshot is required: use --snapshot")
        raise typer.Exit(1)

    wallet = WalletService(
        mnemonic=config.mnemonic,
        prefix=config.address_prefix,
        derivation_path=config.derivation_path,
    )
    inventory = SnapshotBackend(config.snapshot_path)

    broadcaster: Broadcaster = inventory
    if config.rpc_url and not dry_run:
        broadcaster = NodeRpcBroadcaster(
            rpc_url=config.rpc_url, rpc_user=config.rpc_user, rpc_password=config.rpc_password
        )
    else:
        logger.info("Dry run: the signed transaction will not be relayed")

    return TransactionManager(
        wallet=wallet, inventory=inventory, broadcaster=broadcaster, fees=config.fees
    )


def _print_result(result: BuildResult) -> None:
    print(f"\nTransaction: {result.txid}")
    print(f"  Kind:     {result.kind.value}")
    print(f"  Inputs:   {len(result.inputs)}")
    print(f"  Outputs:  {len(result.outputs)}")
    print(f"  Fee:      {result.fee:,} sats")
    print(f"  Explorer: {result.explorer_link}")
    print(f"\n{result.raw_tx}\n")


async def _send(
    manager: TransactionManager, kind: TxKind, recipients: list[Recipient], **options: object
) -> None:
    try:
        result = await manager.send(kind, recipients, **options)
    except TransactionBuildError as e:
        hint = " (may succeed if retried)" if e.retryable else ""
        logger.error(f"{type(e).__name__}: {e}{hint}")
        raise typer.Exit(1)
    finally:
        await manager.close()
    _print_result(result)


@app.command()
def address(
    mnemonic: Annotated[
        str | None, typer.Option("--mnemonic", envvar="MNEMONIC", help="Wallet mnemonic phrase")
    ] = None,
    mnemonic_file: Annotated[
        Path | None, typer.Option("--mnemonic-file", "-f", help="Path to mnemonic file")
    ] = None,
    index: Annotated[int, typer.Option("--index", "-i", help="First address index")] = 0,
    count: Annotated[int, typer.Option("--count", "-n", help="Number of addresses")] = 1,
    prefix: Annotated[str, typer.Option("--prefix", help="CashAddr prefix")] = "ecash",
    show_wif: Annotated[
        bool, typer.Option("--show-wif", help="Also print private keys (WIF)")
    ] = False,
    log_level: Annotated[str, typer.Option("--log-level", "-l", help="Log level")] = "INFO",
) -> None:
    """Show wallet addresses by derivation index."""
    setup_logging(log_level)
    config = _load_config(mnemonic, mnemonic_file, address_prefix=prefix, address_index=index)

    wallet = WalletService(
        mnemonic=config.mnemonic,
        prefix=config.address_prefix,
        derivation_path=config.derivation_path,
    )
    for i in range(config.address_index, config.address_index + count):
        identity = wallet.derive_identity(i)
        line = f"{identity.path:<24} {identity.address}"
        if show_wif:
            line += f"  {private_key_to_wif(identity.private_key)}"
        print(line)


@app.command()
def balance(
    snapshot: Annotated[Path, typer.Option("--snapshot", "-s", help="UTXO snapshot JSON file")],
    address_arg: Annotated[
        str | None, typer.Option("--address", "-a", help="Address to query (skips the wallet)")
    ] = None,
    mnemonic: Annotated[
        str | None, typer.Option("--mnemonic", envvar="MNEMONIC", help="Wallet mnemonic phrase")
    ] = None,
    mnemonic_file: Annotated[
        Path | None, typer.Option("--mnemonic-file", "-f", help="Path to mnemonic file")
    ] = None,
    index: Annotated[int, typer.Option("--index", "-i", help="Address index")] = 0,
    log_level: Annotated[str, typer.Option("--log-level", "-l", help="Log level")] = "INFO",
) -> None:
    """Show XEC and token balances of an address."""
    setup_logging(log_level)

    if address_arg is None:
        config = _load_config(mnemonic, mnemonic_file, address_index=index)
        wallet = WalletService(
            mnemonic=config.mnemonic,
            prefix=config.address_prefix,
            derivation_path=config.derivation_path,
        )
        address_arg = wallet.get_address(config.address_index)

    asyncio.run(_show_balance(SnapshotBackend(snapshot), address_arg))


async def _show_balance(provider: SnapshotBackend, address_str: str) -> None:
    query = await get_address_balance(provider, address_str)
    if not query.ok:
        logger.error(f"Balance unavailable: {query.error}")
        raise typer.Exit(1)

    bal = query.balance
    print(f"\nAddress: {address_str}")
    print(
        f"XEC:     {bal.native_total:,} sats ({bal.native_total / SATS_PER_XEC:,.2f} XEC) "
        f"in {bal.native_count} UTXOs"
    )
    if not bal.tokens:
        print("Tokens:  none")
        return
    print(f"Tokens:  {len(bal.tokens)} ({bal.token_utxo_count} UTXOs)")
    for token_id, token in bal.tokens.items():
        print(f"  {token_id}  {token.total_atoms:>20} atoms  |  {token.utxo_count} UTXOs")


@app.command("send-xec")
def send_xec(
    to: Annotated[
        list[str], typer.Option("--to", "-t", help="Recipient as ADDRESS:SATS (repeatable)")
    ],
    snapshot: Annotated[Path, typer.Option("--snapshot", "-s", help="UTXO snapshot JSON file")],
    strategy: Annotated[
        str, typer.Option("--strategy", help="UTXO strategy: all | minimal | largest_first")
    ] = "all",
    mnemonic: Annotated[
        str | None, typer.Option("--mnemonic", envvar="MNEMONIC", help="Wallet mnemonic phrase")
    ] = None,
    mnemonic_file: Annotated[
        Path | None, typer.Option("--mnemonic-file", "-f", help="Path to mnemonic file")
    ] = None,
    index: Annotated[int, typer.Option("--index", "-i", help="Spending address index")] = 0,
    rpc_url: Annotated[
        str, typer.Option("--rpc-url", envvar="ECASH_RPC_URL", help="Node RPC URL for broadcast")
    ] = "",
    rpc_user: Annotated[str, typer.Option("--rpc-user", envvar="ECASH_RPC_USER")] = "",
    rpc_password: Annotated[str, typer.Option("--rpc-password", envvar="ECASH_RPC_PASSWORD")] = "",
    dry_run: Annotated[
        bool, typer.Option("--dry-run", help="Sign but do not broadcast")
    ] = False,
    log_level: Annotated[str, typer.Option("--log-level", "-l", help="Log level")] = "INFO",
) -> None:
    """Send XEC to one or more recipients."""
    setup_logging(log_level)
    recipients = [parse_recipient(value) for value in to]
    config = _load_config(
        mnemonic,
        mnemonic_file,
        address_index=index,
        utxo_strategy=strategy,
        snapshot_path=snapshot,
        rpc_url=rpc_url,
        rpc_user=rpc_user,
        rpc_password=rpc_password,
    )
    manager = _build_manager(config, dry_run)

    asyncio.run(
        _send(
            manager,
            TxKind.XEC,
            recipients,
            utxo_strategy=config.utxo_strategy,
            address_index=config.address_index,
        )
    )


@app.command("send-token")
def send_token(
    token_id: Annotated[str, typer.Option("--token-id", help="Token id (64 hex characters)")],
    decimals: Annotated[int, typer.Option("--decimals", help="Token decimals")],
    to: Annotated[
        list[str], typer.Option("--to", "-t", help="Recipient as ADDRESS:ATOMS (repeatable)")
    ],
    snapshot: Annotated[Path, typer.Option("--snapshot", "-s", help="UTXO snapshot JSON file")],
    protocol: Annotated[
        str, typer.Option("--protocol", "-p", help="Token protocol: slp | alp")
    ] = "slp",
    token_strategy: Annotated[
        str, typer.Option("--token-strategy", help="Token UTXO strategy: all | largest | minimal")
    ] = "all",
    fee_strategy: Annotated[
        str, typer.Option("--fee-strategy", help="Fee UTXO strategy: all | minimal | largest_first")
    ] = "all",
    mnemonic: Annotated[
        str | None, typer.Option("--mnemonic", envvar="MNEMONIC", help="Wallet mnemonic phrase")
    ] = None,
    mnemonic_file: Annotated[
        Path | None, typer.Option("--mnemonic-file", "-f", help="Path to mnemonic file")
    ] = None,
    index: Annotated[int, typer.Option("--index", "-i", help="Spending address index")] = 0,
    rpc_url: Annotated[
        str, typer.Option("--rpc-url", envvar="ECASH_RPC_URL", help="Node RPC URL for broadcast")
    ] = "",
    rpc_user: Annotated[str, typer.Option("--rpc-user", envvar="ECASH_RPC_USER")] = "",
    rpc_password: Annotated[str, typer.Option("--rpc-password", envvar="ECASH_RPC_PASSWORD")] = "",
    dry_run: Annotated[
        bool, typer.Option("--dry-run", help="Sign but do not broadcast")
    ] = False,
    log_level: Annotated[str, typer.Option("--log-level", "-l", help="Log level")] = "INFO",
) -> None:
    """Send SLP or ALP tokens. Amounts are in atoms."""
    setup_logging(log_level)

    try:
        kind = TxKind(protocol.lower())
    except ValueError:
        kind = None
    if kind is None or not kind.is_token:
        logger.error(f"Invalid token protocol: {protocol}")
        raise typer.Exit(1)

    recipients = [parse_recipient(value) for value in to]
    config = _load_config(
        mnemonic,
        mnemonic_file,
        address_index=index,
        token_strategy=token_strategy,
        fee_strategy=fee_strategy,
        snapshot_path=snapshot,
        rpc_url=rpc_url,
        rpc_user=rpc_user,
        rpc_password=rpc_password,
    )
    manager = _build_manager(config, dry_run)

    asyncio.run(
        _send(
            manager,
            kind,
            recipients,
            token_id=token_id,
            token_decimals=decimals,
            address_index=config.address_index,
            fee_strategy=config.fee_strategy,
            token_strategy=config.token_strategy,
        )
    )


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
