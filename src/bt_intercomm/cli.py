"""CLI entry point for the bt_intercomm daemon."""

from __future__ import annotations

import asyncio
import logging
import sys

import click

from bt_intercomm.config import load_config
from bt_intercomm.daemon import run_daemon
from bt_intercomm.errors import ConfigError
from bt_intercomm.models.attempts import AttemptState
from bt_intercomm.storage.sqlite import SQLiteStateStore

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


def _load(ctx: click.Context):
    try:
        return load_config(ctx.obj["config_path"])
    except ConfigError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)


def _require_store(cfg):
    """Exit with error if no database is configured."""
    if not cfg.db_path:
        click.echo("Error: No db_path configured; nothing is persisted.", err=True)
        click.echo("Set BT_INTERCOMM_DB_PATH or [storage] db_path in config.", err=True)
        sys.exit(1)


def _mask(value: str) -> str:
    return "***configured***" if value else "(not set)"


@click.group()
@click.option("-c", "--config", "config_path", default=None, help="Path to config TOML file")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, config_path: str | None, verbose: bool) -> None:
    """bt_intercomm - branded token registration between value and utility chains."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["verbose"] = verbose

    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


# ── Daemon ─────────────────────────────────────────────


@cli.command()
@click.pass_context
def run(ctx: click.Context) -> None:
    """Start the inter-comm daemon."""
    cfg = _load(ctx)
    if not ctx.obj["verbose"]:
        logging.getLogger().setLevel(_LEVELS.get(cfg.log_level.lower(), logging.INFO))

    problems = cfg.validate()
    if problems:
        for problem in problems:
            click.echo(f"Error: {problem}", err=True)
        sys.exit(1)

    click.echo(f"Starting bt_intercomm daemon (confirmation depth: {cfg.confirmation_depth})")
    try:
        asyncio.run(run_daemon(cfg))
    except ConfigError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)


# ── Info ───────────────────────────────────────────────


@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show daemon configuration."""
    cfg = _load(ctx)
    click.echo(f"Confirmation depth:  {cfg.confirmation_depth} blocks")
    click.echo(f"Max concurrent:      {cfg.max_concurrent_attempts}")
    click.echo(f"Utility RPC:         {cfg.utility.rpc_url}")
    click.echo(f"Utility chain id:    {cfg.utility.chain_id}")
    click.echo(f"openSTUtility:       {cfg.utility.openst_utility_address or '(not set)'}")
    click.echo(f"UtilityRegistrar:    {cfg.utility.registrar_contract or '(not set)'}")
    click.echo(f"  signer:            {cfg.utility.registrar_address or '(not set)'}")
    click.echo(f"  key:               {_mask(cfg.utility.registrar_key)}")
    click.echo(f"Value RPC:           {cfg.value.rpc_url}")
    click.echo(f"openSTValue:         {cfg.value.openst_value_address or '(not set)'}")
    click.echo(f"ValueRegistrar:      {cfg.value.registrar_contract or '(not set)'}")
    click.echo(f"  signer:            {cfg.value.registrar_address or '(not set)'}")
    click.echo(f"  key:               {_mask(cfg.value.registrar_key)}")
    click.echo(f"Tx timeout:          {cfg.transactions.tx_timeout}s")
    click.echo(f"DB path:             {cfg.db_path or '(in-memory only)'}")


@cli.command()
@click.pass_context
def pending(ctx: click.Context) -> None:
    """Show tasks still waiting for confirmations or in flight."""
    cfg = _load(ctx)
    _require_store(cfg)

    async def _pending():
        store = SQLiteStateStore(cfg.db_path)
        await store.initialize()
        try:
            tasks = await store.get_tasks(["waiting", "dispatched"])
            if not tasks:
                click.echo("No pending tasks.")
                return

            for t in tasks:
                e = t.event
                click.echo(
                    f"  {t.state.value:<10} {e.payload.symbol:<8} uuid={e.uuid[:18]}... "
                    f"block={e.block_number} ready_at={t.ready_at_block}"
                )
        finally:
            await store.close()

    asyncio.run(_pending())


@cli.command()
@click.option("-n", "--limit", type=int, default=20, help="Number of recent attempts to show")
@click.option(
    "--state", "state_filter", default=None,
    type=click.Choice([s.value for s in AttemptState]),
    help="Only show attempts in this terminal state",
)
@click.pass_context
def attempts(ctx: click.Context, limit: int, state_filter: str | None) -> None:
    """Show recent registration attempts."""
    cfg = _load(ctx)
    _require_store(cfg)

    async def _attempts():
        store = SQLiteStateStore(cfg.db_path)
        await store.initialize()
        try:
            records = await store.get_attempts(limit, state=state_filter)
            if not records:
                click.echo("No registration attempts recorded.")
                return

            for a in records:
                line = (
                    f"  #{a.id} {a.state:<16} {a.symbol:<8} uuid={a.uuid[:18]}... "
                    f"step1={a.step1_status} step2={a.step2_status}"
                )
                if a.reason:
                    line += f" reason={a.reason}"
                click.echo(line)
        finally:
            await store.close()

    asyncio.run(_attempts())


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
