#!/usr/bin/env python3
"""
QuantaPool Simulator CLI

Replays staking scenarios against an in-process pool deployment.

Usage:
    quantapool-sim run <scenario.toml> [--config FILE] [--json] [--keep-going]
    quantapool-sim config [--config FILE]
    quantapool-sim address <label>
"""

import json
from decimal import Decimal
from typing import Optional

import click
from rich.console import Console
from rich.table import Table

from ..config import PoolConfig, load_config
from ..constants import WEI
from ..exceptions import QuantaPoolError
from .scenario import Scenario, ScenarioRunner, account_address

console = Console()


def format_amount(value: int, unit: str = "QRL") -> str:
    """Format base units as whole tokens."""
    tokens = Decimal(value) / Decimal(WEI)
    text = format(tokens.normalize(), "f") if value else "0"
    return f"{text} {unit}"


def _status_table(runner: ScenarioRunner) -> Table:
    status = runner.controller.get_pool_status()
    table = Table(title="Pool Status", show_header=False)
    table.add_column("Field", style="bold cyan")
    table.add_column("Value", justify="right")
    table.add_row("Total pooled", format_amount(status.total_pooled))
    table.add_row("Total shares", format_amount(status.total_shares, "stQRL"))
    table.add_row("Buffered", format_amount(status.buffered))
    table.add_row("Reserve", format_amount(status.reserve))
    table.add_row("Validators funded", str(status.validator_count))
    table.add_row("Pending withdrawal shares", format_amount(status.pending_withdrawal_shares, "stQRL"))
    table.add_row("Exchange rate", format_amount(status.exchange_rate, "QRL/stQRL"))
    table.add_row("TVL", format_amount(runner.controller.get_tvl()))
    return table


def _rewards_table(runner: ScenarioRunner) -> Table:
    stats = runner.controller.get_reward_stats()
    table = Table(title="Reward Stats", show_header=False)
    table.add_column("Field", style="bold cyan")
    table.add_column("Value", justify="right")
    table.add_row("Total rewards", f"[green]{format_amount(stats.total_rewards)}[/green]")
    table.add_row("Total losses", f"[red]{format_amount(stats.total_losses)}[/red]")
    table.add_row("Net", format_amount(stats.net_rewards))
    table.add_row("Last sync block", str(stats.last_sync_block))
    return table


def _steps_table(runner: ScenarioRunner) -> Table:
    table = Table(title="Steps")
    table.add_column("#", justify="right")
    table.add_column("Action", style="bold")
    table.add_column("Account")
    table.add_column("Result")
    for r in runner.results:
        if r.error is None:
            outcome = "[green]ok[/green]" if r.result is None else f"[green]{r.result}[/green]"
        elif r.expected:
            outcome = f"[yellow]{r.error} (expected)[/yellow]"
        else:
            outcome = f"[red]{r.error}[/red]"
        table.add_row(str(r.index), r.action, r.account or "-", outcome)
    return table


def _accounts_table(runner: ScenarioRunner) -> Table:
    table = Table(title="Accounts")
    table.add_column("Account", style="bold")
    table.add_column("Native", justify="right")
    table.add_column("Shares", justify="right")
    table.add_column("Share value", justify="right")
    for label, row in runner.balances().items():
        table.add_row(
            label,
            format_amount(row["native"]),
            format_amount(row["shares"], "stQRL"),
            format_amount(row["value"]),
        )
    return table


@click.group()
@click.version_option(version="0.1.0", prog_name="quantapool-sim")
def cli():
    """QuantaPool Simulator

    Replay deposit, withdrawal, reward and validator-funding scenarios
    against an in-process pool.
    """
    pass


@cli.command("run")
@click.argument("scenario_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--config", "-c", "config_file", type=click.Path(), help="Pool config TOML (overrides the scenario's [pool] section)")
@click.option("--json", "as_json", is_flag=True, help="Print the final state as JSON")
@click.option("--keep-going", is_flag=True, help="Continue after an unexpected step failure")
def run_cmd(scenario_file: str, config_file: Optional[str], as_json: bool, keep_going: bool):
    """Replay SCENARIO_FILE and print the resulting pool state.

    Examples:

        quantapool-sim run examples/basic_scenario.toml

        quantapool-sim run examples/basic_scenario.toml --json
    """
    try:
        scenario = Scenario.from_file(scenario_file)
        config = PoolConfig.from_file(config_file) if config_file else None
        runner = ScenarioRunner(scenario, config)
        runner.run(stop_on_error=not keep_going)
    except QuantaPoolError as e:
        raise click.ClickException(str(e))

    if as_json:
        click.echo(json.dumps({
            "succeeded": runner.succeeded,
            "deployment": runner.deployment.to_dict(),
            "steps": [r.to_dict() for r in runner.results],
            "status": runner.controller.get_pool_status().to_dict(),
            "rewards": runner.controller.get_reward_stats().to_dict(),
            "ledger": runner.ledger.to_dict(),
        }, indent=2, default=str))
    else:
        console.print(_steps_table(runner))
        console.print(_status_table(runner))
        console.print(_rewards_table(runner))
        console.print(_accounts_table(runner))

    if not runner.succeeded:
        failed = next(r for r in runner.results if not r.ok)
        raise click.ClickException(f"Step {failed.index} ({failed.action}) failed: {failed.error}")


@cli.command("config")
@click.option("--config", "-c", "config_file", type=click.Path(), help="Pool config TOML")
def config_cmd(config_file: Optional[str]):
    """Show the effective pool configuration."""
    try:
        config = load_config(config_file)
        config.validate()
    except QuantaPoolError as e:
        raise click.ClickException(str(e))
    click.echo(json.dumps(config.to_dict(), indent=2))


@cli.command("address")
@click.argument("label")
def address_cmd(label: str):
    """Print the simulated address of account LABEL."""
    click.echo(account_address(label))


def main():
    """Entry point."""
    cli()


if __name__ == "__main__":
    main()
