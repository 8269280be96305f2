"""Typer CLI for the Kafka batch publisher."""

from __future__ import annotations

import json

import typer
from rich.console import Console

from kafka_publisher.config.loader import load_credentials, load_parameters, load_records
from kafka_publisher.config.resolver import resolve_producer_config
from kafka_publisher.errors import ConfigurationError
from kafka_publisher.pipeline.runner import build_items, execute

console = Console()
app = typer.Typer(name="kafka-publisher", help="Publish records to Kafka in one batch")


@app.command()
def validate(
    credentials_path: str = typer.Argument(..., help="Path to credentials YAML"),
) -> None:
    """Validate a credentials file without connecting."""
    try:
        config = resolve_producer_config(load_credentials(credentials_path))
    except ConfigurationError as exc:
        console.print(f"[red]Validation error:[/red] {exc}")
        raise typer.Exit(1) from exc
    console.print(f"[green]Valid[/green] client_id={config.client_id or '(none)'}")
    console.print(f"  brokers: {', '.join(config.brokers)}")
    console.print(f"  ssl:     {config.ssl}")
    if config.sasl is not None:
        console.print(f"  sasl:    {config.sasl.mechanism} as {config.sasl.username}")
    else:
        console.print("  sasl:    (none)")


@app.command()
def publish(
    credentials_path: str = typer.Argument(..., help="Path to credentials YAML"),
    parameters_path: str = typer.Argument(..., help="Path to publish parameters YAML"),
    records_path: str = typer.Argument(
        ..., help="Records as a JSON array or JSON lines"
    ),
    continue_on_fail: bool = typer.Option(
        False, "--continue-on-fail", help="Emit an error record instead of failing"
    ),
) -> None:
    """Publish every record as one batch and print the output records."""
    try:
        credentials = load_credentials(credentials_path)
        items = build_items(load_records(records_path), load_parameters(parameters_path))
    except ConfigurationError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(1) from exc

    try:
        results = execute(items, credentials, continue_on_fail=continue_on_fail)
    except Exception as exc:
        console.print(f"[red]Publish failed:[/red] {exc}")
        raise typer.Exit(1) from exc

    console.print_json(json.dumps(results))
