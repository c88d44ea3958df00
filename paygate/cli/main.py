"""
CLI interface for the payment gate.

Provides command-line access to configuration checks and gated generation.
"""

import logging
import sys
from typing import Optional

import typer
import yaml
from rich.console import Console
from rich.table import Table

from paygate.config.loader import GateConfig, default_config, load_gate_config
from paygate.core.delivery import Cancelled, Chunk, Complete, Failed
from paygate.core.errors import GateError
from paygate.core.generation import AppCategory, AppDetails, AppPricing
from paygate.core.pricing import format_amount
from paygate.sdk.gate import EntitlementGate

app = typer.Typer()
console = Console()

EXIT_CODE_PASS = 0
EXIT_CODE_FAIL = 1


def _load_config(path: Optional[str]) -> GateConfig:
    if path is None:
        return default_config()
    return load_gate_config(path)


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging")
):
    """Payment gate CLI."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )
    if ctx.invoked_subcommand is None:
        console.print("Payment gate - Use --help to see available commands")


@app.command()
def fee(
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to YAML config")
):
    """Show the one-time usage fee."""
    try:
        gate_config = _load_config(config)
    except (FileNotFoundError, ValueError, yaml.YAMLError) as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    fee_wei = gate_config.payment.fee_wei
    console.print(f"One-time usage fee: {format_amount(fee_wei)} ({fee_wei} wei)")


@app.command("check-config")
def check_config(path: str = typer.Argument(..., help="Path to YAML config")):
    """Validate a configuration file."""
    try:
        gate_config = load_gate_config(path)
    except (FileNotFoundError, ValueError, yaml.YAMLError) as e:
        console.print(f"[red]Invalid configuration:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    table = Table(title="Gate configuration")
    table.add_column("Setting")
    table.add_column("Value")
    table.add_row("fee", f"{format_amount(gate_config.payment.fee_wei)} ({gate_config.payment.fee_wei} wei)")
    table.add_row("policy", gate_config.payment.policy.value)
    table.add_row("free uses", str(gate_config.payment.free_uses))
    table.add_row("uses per payment", str(gate_config.payment.uses_per_payment))
    table.add_row("model", gate_config.generation.model)
    table.add_row("timeout", f"{gate_config.generation.timeout_seconds}s")
    table.add_row("chunk size", str(gate_config.delivery.chunk_size))
    table.add_row("chunk delay", f"{gate_config.delivery.chunk_delay_seconds}s")
    console.print(table)
    console.print("[green]✓[/] Configuration is valid")


@app.command()
def generate(
    identity: Optional[str] = typer.Option(None, "--identity", "-i", help="Verified identity token"),
    description: str = typer.Option(..., "--description", "-d", help="What the app should do"),
    behavior: str = typer.Option("", "--behavior", help="App behavior"),
    style: str = typer.Option("", "--style", help="App style"),
    color: str = typer.Option("", "--color", help="App color"),
    category: AppCategory = typer.Option(AppCategory.MINI_WORLD, "--category", help="App category"),
    pricing: AppPricing = typer.Option(AppPricing.FREE, "--pricing", help="Free or paid app"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to YAML config")
):
    """
    Generate an app through the gate and stream it to the console.

    The ledger lives in this process only, so each invocation starts with
    the identity's free use available.
    """
    gate = None
    try:
        gate = EntitlementGate(config=_load_config(config))
        details = AppDetails(
            description=description,
            behavior=behavior,
            style=style,
            color=color,
            category=category,
            pricing=pricing
        )
        session = gate.generate(identity, details)
        for event in session:
            if isinstance(event, Chunk):
                console.out(event.data, end="", highlight=False)
            elif isinstance(event, Complete):
                console.print()
            elif isinstance(event, Cancelled):
                console.print("\n[yellow]Delivery cancelled[/]")
            elif isinstance(event, Failed):
                console.print(f"\n[red]Delivery failed:[/] {event.reason}")
                sys.exit(EXIT_CODE_FAIL)
    except GateError as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)
    except (FileNotFoundError, ValueError, yaml.YAMLError) as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)
    finally:
        if gate is not None:
            gate.close()


if __name__ == "__main__":
    app()
