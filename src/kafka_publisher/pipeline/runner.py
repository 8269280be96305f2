"""Publish execution: config, batch assembly, one send, output records."""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from contextlib import ExitStack
from typing import Any

import structlog
from confluent_kafka import Producer
from confluent_kafka.schema_registry import SchemaRegistryClient
from pydantic import ValidationError

from kafka_publisher.config.loader import merge_configs
from kafka_publisher.config.models import KafkaCredentials, PublishParameters
from kafka_publisher.config.resolver import resolve_producer_config
from kafka_publisher.errors import ConfigurationError
from kafka_publisher.publishing.batch import (
    BatchAssembler,
    InputItem,
    PayloadBuilder,
    RawPayloadBuilder,
    SchemaPayloadBuilder,
)
from kafka_publisher.publishing.results import map_outcomes
from kafka_publisher.publishing.schema import SchemaEncoder, create_registry_client
from kafka_publisher.publishing.session import ClientFactory, ProducerSession

logger = structlog.get_logger()

RegistryFactory = Callable[[str], SchemaRegistryClient]


def execute(
    items: Sequence[InputItem],
    credentials: KafkaCredentials | Mapping[str, Any],
    *,
    continue_on_fail: bool = False,
    client_factory: ClientFactory = Producer,
    registry_factory: RegistryFactory = create_registry_client,
) -> list[dict[str, Any]]:
    """Publish *items* as one batch and return the output records.

    With *continue_on_fail* any error becomes a single ``{"error": ...}``
    record; otherwise it propagates unchanged. Either way nothing is
    returned for a batch that failed part-way.
    """
    try:
        return _publish(items, credentials, client_factory, registry_factory)
    except Exception as exc:
        if not continue_on_fail:
            raise
        logger.warning(
            "publish.failed", error=str(exc), error_type=type(exc).__name__
        )
        return [{"error": str(exc)}]


def _publish(
    items: Sequence[InputItem],
    credentials: KafkaCredentials | Mapping[str, Any],
    client_factory: ClientFactory,
    registry_factory: RegistryFactory,
) -> list[dict[str, Any]]:
    config = resolve_producer_config(credentials)
    if not items:
        logger.info("publish.no_items")
        return []

    # Batch-level values come from the first item only
    first = items[0].parameters
    settings = first.options.to_settings()
    raw = RawPayloadBuilder(first.send_input_data)

    with ExitStack() as stack:
        payloads: PayloadBuilder = raw
        if first.use_schema_registry:
            registry = registry_factory(first.schema_registry_url)
            stack.enter_context(registry)
            encoder = SchemaEncoder(registry)
            schema_id = encoder.resolve_schema_id(first.event_name)
            payloads = SchemaPayloadBuilder(raw, encoder, schema_id)

        assembler = BatchAssembler(settings, payloads)
        for item in items:
            assembler.add(item)
        batch = assembler.build()

        session = stack.enter_context(ProducerSession(client_factory))
        session.open(config, settings)
        outcomes = session.send(batch)

    logger.info(
        "publish.completed", messages=len(batch.messages), outcomes=len(outcomes)
    )
    return map_outcomes(outcomes)


def build_items(
    records: Sequence[Mapping[str, Any]],
    parameters: Mapping[str, Any],
) -> list[InputItem]:
    """Pair records with their parameters.

    A record shaped ``{"json": {...}, "parameters": {...}}`` carries its own
    parameter overrides, deep-merged over *parameters*; any other record is
    used as the data with *parameters* unchanged.
    """
    items: list[InputItem] = []
    for index, record in enumerate(records):
        if "json" in record:
            data = record["json"]
            overrides = record.get("parameters") or {}
        else:
            data, overrides = dict(record), {}
        try:
            params = PublishParameters.model_validate(
                merge_configs(dict(parameters), dict(overrides))
            )
        except ValidationError as exc:
            msg = f"Invalid publish parameters for record {index}:\n{exc}"
            raise ConfigurationError(msg) from exc
        items.append(InputItem(data=data, parameters=params))
    return items
