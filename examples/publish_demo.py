#!/usr/bin/env python3
"""Runnable demo: publish the sample records to a local broker.

Prerequisites:
    a broker on localhost:9092 (or set KAFKA_BROKERS)
    uv run python examples/publish_demo.py
"""

from __future__ import annotations

from pathlib import Path

from rich.console import Console

from kafka_publisher.config.loader import load_credentials, load_parameters, load_records
from kafka_publisher.pipeline.runner import build_items, execute

console = Console()
HERE = Path(__file__).parent


def main() -> None:
    credentials = load_credentials(HERE / "credentials.yaml")
    items = build_items(
        load_records(HERE / "records.json"), load_parameters(HERE / "parameters.yaml")
    )
    console.print(f"[bold]Publishing {len(items)} records[/bold]")

    results = execute(items, credentials, continue_on_fail=True)
    for record in results:
        console.print(record)


if __name__ == "__main__":
    main()
