"""
ledgerkit.cli.main
==================

`ledgerkit`, a small command-line interface for poking at a ledger node
through the SDK's own read paths (batched reads, filtered scans).

Examples
--------
    $ ledgerkit --rpc https://api.devnet.solana.com version
    $ ledgerkit env
    $ ledgerkit blockhash
    $ ledgerkit accounts get <ADDR> <ADDR> --chunk-size 50
    $ ledgerkit accounts scan <PROGRAM> --size 165 --where 32:<OWNER> --keys-only

Configuration
-------------
- RPC URL     : `--rpc` or env `LEDGERKIT_RPC_URL` (default: http://127.0.0.1:8899)
- Commitment  : `--commitment` or env `LEDGERKIT_COMMITMENT`
- Timeout     : `--timeout` or env `LEDGERKIT_TIMEOUT` seconds (default: 30.0)
- Log level   : `--log-level` (default: WARNING)
"""

from __future__ import annotations

import asyncio
import base64
import json
import logging
import sys
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, TypeVar

import typer

from ..client import LedgerClient
from ..config import SDKConfig
from ..types.core import MaybeAccount, UnparsedAccount
from ..version import __version__ as SDK_VERSION

T = TypeVar("T")

# --- Typer app and global context --------------------------------------------

app = typer.Typer(
    name="ledgerkit",
    help="ledgerkit CLI: read accounts, scan programs, inspect the node.",
    no_args_is_help=True,
    add_completion=False,
)
accounts_app = typer.Typer(no_args_is_help=True, help="Read and scan accounts.")
app.add_typer(accounts_app, name="accounts")

__all__ = ["app", "main", "run"]


@dataclass
class Ctx:
    config: SDKConfig


def _print_json(obj: Any) -> None:
    typer.echo(json.dumps(obj, indent=2, ensure_ascii=False))


def _account_json(account: MaybeAccount) -> Dict[str, Any]:
    if not isinstance(account, UnparsedAccount):
        return {"address": str(account.public_key), "exists": False}
    return {
        "address": str(account.public_key),
        "exists": True,
        "lamports": account.lamports,
        "owner": str(account.owner),
        "executable": account.executable,
        "data": base64.b64encode(account.data).decode("ascii"),
    }


def _run_with_client(ctx: typer.Context, fn: Callable[[LedgerClient], Awaitable[T]]) -> T:
    c: Ctx = ctx.obj

    async def _go() -> T:
        async with LedgerClient(config=c.config) as client:
            return await fn(client)

    return asyncio.run(_go())


@app.callback()
def _root(
    ctx: typer.Context,
    rpc: Optional[str] = typer.Option(
        None,
        "--rpc",
        help="Node HTTP JSON-RPC URL.",
        envvar="LEDGERKIT_RPC_URL",
    ),
    commitment: Optional[str] = typer.Option(
        None,
        "--commitment",
        help="processed | confirmed | finalized",
        envvar="LEDGERKIT_COMMITMENT",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="HTTP timeout in seconds.",
        envvar="LEDGERKIT_TIMEOUT",
    ),
    log_level: str = typer.Option("WARNING", "--log-level", help="Python logging level."),
) -> None:
    """Resolve the effective configuration for this CLI process."""
    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        config = SDKConfig.with_overrides(
            rpc_url=rpc, commitment=commitment, request_timeout=timeout
        )
    except ValueError as e:
        raise typer.BadParameter(str(e)) from e
    ctx.obj = Ctx(config=config)


# --- Commands ----------------------------------------------------------------


@app.command("version")
def version() -> None:
    """Print the SDK CLI version."""
    typer.echo(f"ledgerkit {SDK_VERSION}")


@app.command("env")
def env(ctx: typer.Context) -> None:
    """Show the effective configuration."""
    c: Ctx = ctx.obj
    _print_json({**c.config.to_dict(), "sdk_version": SDK_VERSION})


@app.command("blockhash")
def blockhash(ctx: typer.Context) -> None:
    """Fetch the latest blockhash and its last valid block height."""
    info = _run_with_client(ctx, lambda client: client.rpc().get_latest_blockhash())
    _print_json(
        {"blockhash": str(info.blockhash), "last_valid_block_height": info.last_valid_block_height}
    )


@accounts_app.command("get")
def accounts_get(
    ctx: typer.Context,
    addresses: List[str] = typer.Argument(..., help="Base58 account addresses."),
    chunk_size: Optional[int] = typer.Option(
        None, "--chunk-size", help="Keys per getMultipleAccounts call."
    ),
) -> None:
    """Fetch accounts in batches; output order matches the arguments."""
    result = _run_with_client(
        ctx, lambda client: client.gma(addresses, chunk_size=chunk_size).get()
    )
    _print_json([_account_json(a) for a in result])


def _parse_where(raw: str) -> tuple:
    offset, sep, value = raw.partition(":")
    if not sep or not value:
        raise typer.BadParameter(f"expected OFFSET:BASE58, got {raw!r}")
    try:
        return int(offset), value
    except ValueError as e:
        raise typer.BadParameter(f"invalid offset in {raw!r}") from e


@accounts_app.command("scan")
def accounts_scan(
    ctx: typer.Context,
    program: str = typer.Argument(..., help="Program address."),
    where: List[str] = typer.Option([], "--where", help="memcmp filter OFFSET:BASE58 (repeatable)."),
    size: Optional[int] = typer.Option(None, "--size", help="dataSize filter."),
    keys_only: bool = typer.Option(False, "--keys-only", help="Print addresses only."),
) -> None:
    """Scan a program's accounts with server-side filters."""
    filters = [_parse_where(w) for w in where]

    async def _scan(client: LedgerClient) -> Any:
        gpa = client.gpa(program)
        if size is not None:
            gpa.where_size(size)
        for offset, value in filters:
            gpa.where(offset, value)
        if keys_only:
            return [str(k) for k in await gpa.without_data().get_public_keys()]
        return [_account_json(a) for a in await gpa.get()]

    _print_json(_run_with_client(ctx, _scan))


# --- Entrypoints --------------------------------------------------------------


def main(argv: Optional[list[str]] = None) -> int:
    """
    Run the CLI. Returns an integer exit code.
    """
    try:
        app(prog_name="ledgerkit", standalone_mode=False, args=argv)
        return 0
    except typer.Exit as e:  # normal exit
        return int(e.exit_code)
    except Exception as e:
        typer.echo(f"error: {e}", err=True)
        return 1


def run(argv: Optional[list[str]] = None) -> int:
    """Alias for :func:`main`."""
    return main(argv)


def console() -> None:  # pragma: no cover
    sys.exit(main())


if __name__ == "__main__":  # pragma: no cover
    console()
