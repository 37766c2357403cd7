#!/usr/bin/env python3
"""
cli.py - evm-client command line.

Usage:
    evm-client --endpoint https://rpc.example block-at 1700000000
    evm-client balance 0xabc... --contract 0xdef... --decimals 6 --at 1700000000
    evm-client token-info 0xdef...
    evm-client owner-of 0xnft... 42

Endpoint and API key default to EVM_RPC_ENDPOINT / EVM_RPC_API_KEY
(a .env file is honoured) and config/client.yaml.
"""

import asyncio
import json
import sys
from typing import Any, Awaitable, Callable, Optional

import click

from core.exceptions import EvmClientError
from core.logging import get_logger, log_error, set_global_context, setup_logging
from client import EvmClient, create_client_from_config
from config import load_client_config

logger = get_logger(__name__)

VERSION = "0.1.0"


def _run(ctx: click.Context, action: Callable[[EvmClient], Awaitable[Any]]) -> Any:
    """Load config, open a client, run one action and close the client."""
    options = ctx.obj
    try:
        config = load_client_config(
            path=options["config_path"],
            endpoint=options["endpoint"],
            api_key=options["api_key"],
        )

        async def runner() -> Any:
            async with create_client_from_config(config) as client:
                return await action(client)

        return asyncio.run(runner())
    except EvmClientError as e:
        log_error(logger, e.code.value, e.message, details=e.details)
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


def _echo(value: Any, as_json: bool) -> None:
    if as_json:
        click.echo(json.dumps(value, indent=2, sort_keys=True))
    else:
        click.echo(value)


@click.group()
@click.option("--endpoint", "-e", default=None, help="JSON-RPC endpoint URL")
@click.option("--api-key", default=None, help="Bearer API key for the endpoint")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Client YAML config (default: config/client.yaml)",
)
@click.option(
    "--log-level",
    "-l",
    default="WARNING",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"]),
    help="Log level",
)
@click.option(
    "--json-logs/--no-json-logs",
    default=False,
    help="Use JSON log format",
)
@click.version_option(VERSION, prog_name="evm-client")
@click.pass_context
def main(
    ctx: click.Context,
    endpoint: Optional[str],
    api_key: Optional[str],
    config_path: Optional[str],
    log_level: str,
    json_logs: bool,
) -> None:
    """
    EVM token client.

    Token balances and metadata over JSON-RPC, optionally as of a
    UNIX timestamp.
    """
    setup_logging(level=log_level, json_output=json_logs)
    set_global_context(service="evm-client", version=VERSION)
    ctx.obj = {
        "endpoint": endpoint,
        "api_key": api_key,
        "config_path": config_path,
    }


@main.command("block-at")
@click.argument("timestamp", type=int)
@click.option("--json", "as_json", is_flag=True, help="Print JSON")
@click.pass_context
def block_at(ctx: click.Context, timestamp: int, as_json: bool) -> None:
    """Print the last block mined at or before TIMESTAMP."""
    async def action(client: EvmClient):
        return await client.block_time.get_block_from_timestamp(timestamp)

    ref = _run(ctx, action)
    _echo(ref.to_dict() if as_json else ref.block, as_json)


@main.command()
@click.argument("account")
@click.option("--contract", "-c", default=None, help="ERC20 contract (native balance if omitted)")
@click.option("--decimals", "-d", default=18, show_default=True, help="Token decimals")
@click.option("--at", "timestamp", type=int, default=None, help="UNIX timestamp to read at")
@click.pass_context
def balance(
    ctx: click.Context,
    account: str,
    contract: Optional[str],
    decimals: int,
    timestamp: Optional[int],
) -> None:
    """Print the native or ERC20 balance of ACCOUNT."""
    async def action(client: EvmClient):
        if contract:
            return await client.erc20.get_balance_of(
                account, contract, decimals=decimals, timestamp=timestamp
            )
        return await client.erc20.get_balance(account, timestamp=timestamp)

    click.echo(_run(ctx, action))


@main.command("token-info")
@click.argument("contract")
@click.option("--json", "as_json", is_flag=True, help="Print JSON")
@click.pass_context
def token_info(ctx: click.Context, contract: str, as_json: bool) -> None:
    """Print name, symbol, decimals and total supply of an ERC20 CONTRACT."""
    async def action(client: EvmClient):
        return await client.erc20.get_token_info(contract)

    info = _run(ctx, action)
    if as_json:
        _echo(info.to_dict(), as_json=True)
        return
    click.echo(f"Name: {info.name}")
    click.echo(f"Symbol: {info.symbol}")
    click.echo(f"Decimals: {info.decimals}")
    click.echo(f"Total supply: {info.total_supply}")


@main.command("owner-of")
@click.argument("contract")
@click.argument("token_id")
@click.option("--at", "timestamp", type=int, default=None, help="UNIX timestamp to read at")
@click.pass_context
def owner_of(ctx: click.Context, contract: str, token_id: str, timestamp: Optional[int]) -> None:
    """Print the owner of ERC721 TOKEN_ID in CONTRACT."""
    async def action(client: EvmClient):
        return await client.erc721.get_owner_of(contract, token_id, timestamp=timestamp)

    click.echo(_run(ctx, action))


if __name__ == "__main__":
    main()
