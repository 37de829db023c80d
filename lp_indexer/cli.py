"""
CLI entrypoint for the LP position indexer.

Provides commands for replay, seed, status, position and verify.
"""
from pathlib import Path
from typing import Optional

import typer

from lp_indexer import __version__
from lp_indexer.config.config import Config, load_config
from lp_indexer.exceptions import DataError, OperationalError
from lp_indexer.monitoring.logger import get_logger, setup_logging
from lp_indexer.storage.db import init_db

app = typer.Typer(
    name="lp-indexer",
    help="LP position lifecycle and accounting indexer",
    add_completion=False,
)

logger = get_logger(__name__)


def _bootstrap(config_path: Optional[Path]) -> Config:
    config = load_config(config_path)
    setup_logging(
        config.monitoring.log_level,
        config.monitoring.log_format,
        config.monitoring.log_file,
    )
    return config


def _open_store(config: Config):
    from lp_indexer.storage.repository import SqlEntityStore

    db = init_db(config.data.database_url, echo=config.data.echo_sql)
    return SqlEntityStore(db)


def _print_violations(violations) -> None:
    typer.secho(f"{len(violations)} invariant violation(s):", fg=typer.colors.RED, bold=True)
    for line in violations:
        typer.echo(f"  - {line}")


@app.command()
def replay(
    events_file: Path = typer.Argument(..., help="JSON Lines file of decoded events"),
    config_path: Optional[Path] = typer.Option(None, "--config", help="Path to config file"),
    stop_on_error: bool = typer.Option(False, "--stop-on-error", help="Abort on the first malformed record"),
    verify: bool = typer.Option(True, "--verify/--no-verify", help="Check counter invariants afterwards"),
):
    """
    Replay decoded position-manager events into the store.

    Example:
        lp-indexer replay events.jsonl --config config.yaml
    """
    config = _bootstrap(config_path)

    from lp_indexer.positions import build_handlers, verify_store
    from lp_indexer.replay import EventProcessor

    if not events_file.exists():
        typer.secho(f"Events file not found: {events_file}", fg=typer.colors.RED)
        raise typer.Exit(code=1)

    store = _open_store(config)
    processor = EventProcessor(build_handlers(store, config.indexer), config.indexer)

    logger.info("Starting replay", events_file=str(events_file), protocol_id=config.indexer.protocol_id)
    try:
        summary = processor.replay(events_file, stop_on_error=stop_on_error)
    except DataError as e:
        typer.secho(f"Replay stopped: {e}", fg=typer.colors.RED)
        raise typer.Exit(code=1)
    except OperationalError as e:
        logger.error("REPLAY_FAILED", error=str(e))
        typer.secho(f"Storage failure: {e}", fg=typer.colors.RED)
        raise typer.Exit(code=2)

    typer.echo("\n" + "=" * 50)
    typer.echo(f"REPLAY SUMMARY: {events_file.name}")
    typer.echo("=" * 50)
    typer.echo(f"Processed:          {summary.processed}")
    typer.echo(f"Applied:            {summary.applied}")
    typer.echo(f"Skipped:            {summary.skipped}")
    typer.echo(f"Position not found: {summary.position_not_found}")
    typer.echo(f"Pool not found:     {summary.pool_not_found}")
    typer.echo(f"Decode errors:      {summary.decode_errors}")
    if summary.out_of_order:
        typer.secho(f"Out of order:       {summary.out_of_order}", fg=typer.colors.YELLOW)
    for transition, count in sorted(summary.transitions.items()):
        typer.echo(f"  {transition:<16} {count}")
    typer.echo("=" * 50 + "\n")

    if verify:
        violations = verify_store(store, config.indexer.protocol_id)
        if violations:
            _print_violations(violations)
            raise typer.Exit(code=1)


@app.command()
def seed(
    seed_file: Path = typer.Argument(..., help="YAML file with tokens, pools and positions"),
    config_path: Optional[Path] = typer.Option(None, "--config", help="Path to config file"),
):
    """
    Load pools, tokens and position metadata into the store.

    Example:
        lp-indexer seed seed.yaml
    """
    config = _bootstrap(config_path)

    from lp_indexer.storage.seed import apply_seed, load_seed_file

    try:
        data = load_seed_file(seed_file)
        store = _open_store(config)
        counts = apply_seed(store, data)
    except (FileNotFoundError, DataError) as e:
        typer.secho(f"Seed failed: {e}", fg=typer.colors.RED)
        raise typer.Exit(code=1)

    typer.secho(
        f"Seeded {counts['tokens']} token(s), {counts['pools']} pool(s), "
        f"{counts['positions']} position(s)",
        fg=typer.colors.GREEN,
    )


@app.command()
def status(
    config_path: Optional[Path] = typer.Option(None, "--config", help="Path to config file"),
):
    """
    Display protocol and pool counters.

    Example:
        lp-indexer status
    """
    config = _bootstrap(config_path)
    store = _open_store(config)

    protocol = store.get_or_create_protocol(config.indexer.protocol_id)
    pools = store.list_pools()

    typer.echo(f"{config.system.name} Status")
    typer.echo("=" * 50)
    typer.echo(f"Environment: {config.environment}")
    typer.echo(f"Protocol:    {protocol.id}")
    typer.echo(f"  Open positions:       {protocol.open_position_count}")
    typer.echo(f"  Cumulative positions: {protocol.cumulative_position_count}")
    typer.echo(f"Accounts:    {len(store.list_accounts())}")
    typer.echo(f"Positions:   {len(store.list_positions())}")

    if pools:
        typer.echo(f"\nPools ({len(pools)})")
        typer.echo("-" * 50)
        for pool in pools:
            typer.echo(
                f"  {pool.id} | open {pool.open_position_count} | "
                f"closed {pool.closed_position_count} | total {pool.position_count}"
            )
    else:
        typer.echo("\nNo pools seeded yet.")

    typer.echo("\n" + "=" * 50)


@app.command()
def position(
    position_id: str = typer.Argument(..., help="Position id (the NFT token id)"),
    config_path: Optional[Path] = typer.Option(None, "--config", help="Path to config file"),
):
    """
    Show one position and its snapshot count.

    Example:
        lp-indexer position 42
    """
    config = _bootstrap(config_path)
    store = _open_store(config)

    pos = store.get_position(position_id)
    if pos is None:
        typer.secho(f"Position {position_id} not found", fg=typer.colors.RED)
        raise typer.Exit(code=1)

    color = typer.colors.GREEN if pos.liquidity != 0 else typer.colors.YELLOW
    typer.secho(f"Position {pos.id} ({pos.status.value.upper()})", fg=color, bold=True)
    typer.echo(f"  Pool:         {pos.pool}")
    typer.echo(f"  Account:      {pos.account}")
    typer.echo(f"  Ticks:        {pos.tick_lower} .. {pos.tick_upper}")
    typer.echo(f"  Liquidity:    {pos.liquidity} (${pos.liquidity_usd:,.2f})")
    typer.echo(f"  Deposited:    {pos.cumulative_deposit_token_amounts} (${pos.cumulative_deposit_usd:,.2f})")
    typer.echo(f"  Withdrawn:    {pos.cumulative_withdraw_token_amounts} (${pos.cumulative_withdraw_usd:,.2f})")
    typer.echo(f"  Deposits:     {pos.deposit_count}  Withdraws: {pos.withdraw_count}")
    typer.echo(f"  Opened:       {pos.hash_opened} (block {pos.block_number_opened})")
    if pos.hash_closed is not None:
        typer.echo(f"  Closed:       {pos.hash_closed} (block {pos.block_number_closed})")
    typer.echo(f"  Snapshots:    {len(store.snapshots_for(pos.id))}")


@app.command()
def verify(
    config_path: Optional[Path] = typer.Option(None, "--config", help="Path to config file"),
):
    """
    Check counter and position invariants over the whole store.

    Exits with code 1 when any invariant is violated.
    """
    config = _bootstrap(config_path)
    store = _open_store(config)

    from lp_indexer.positions import verify_store

    violations = verify_store(store, config.indexer.protocol_id)
    if violations:
        _print_violations(violations)
        raise typer.Exit(code=1)
    typer.secho("All invariants hold", fg=typer.colors.GREEN)


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    version: bool = typer.Option(False, "--version", help="Show version and exit"),
):
    """
    LP Position Indexer

    Tracks liquidity-provider positions and their open/closed counters.
    """
    if version:
        typer.echo(f"LP Position Indexer v{__version__}")
        raise typer.Exit()
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())


if __name__ == "__main__":
    app()
