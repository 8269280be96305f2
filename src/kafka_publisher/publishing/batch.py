"""Payload building and batch assembly.

A payload is one of two variants, :class:`RawText` or :class:`SchemaEncoded`.
Which one an execution produces is fixed when its payload builder is chosen,
so the assembler itself never branches on the registry flag.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Protocol

import structlog

from kafka_publisher.config.models import DeliverySettings, PublishParameters
from kafka_publisher.errors import ConfigurationError, SchemaRegistryError
from kafka_publisher.publishing.headers import resolve_headers
from kafka_publisher.publishing.schema import VERIFY_REGISTRY, SchemaEncoder

logger = structlog.get_logger()


@dataclass(frozen=True, slots=True)
class RawText:
    """UTF-8 text payload: a JSON-serialized record or an explicit message."""

    text: str

    def to_bytes(self) -> bytes:
        return self.text.encode("utf-8")


@dataclass(frozen=True, slots=True)
class SchemaEncoded:
    """Confluent wire-format bytes produced by the schema encoder."""

    data: bytes
    schema_id: int

    def to_bytes(self) -> bytes:
        return self.data


Payload = RawText | SchemaEncoded


@dataclass(slots=True)
class InputItem:
    """One input record plus the parameters the host resolved for it."""

    data: dict[str, Any]
    parameters: PublishParameters = field(default_factory=PublishParameters)


@dataclass(frozen=True, slots=True)
class TopicMessage:
    topic: str
    payload: Payload
    headers: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class BatchRequest:
    """Every message of an execution plus the settings they are sent with."""

    messages: tuple[TopicMessage, ...]
    settings: DeliverySettings

    def by_topic(self) -> dict[str, list[TopicMessage]]:
        """Group messages per topic, keeping input order inside each topic."""
        grouped: dict[str, list[TopicMessage]] = {}
        for msg in self.messages:
            grouped.setdefault(msg.topic, []).append(msg)
        return grouped


def serialize_record(data: dict[str, Any]) -> str:
    """Compact JSON text for a record, non-ASCII kept as-is."""
    return json.dumps(data, separators=(",", ":"), ensure_ascii=False)


class PayloadBuilder(Protocol):
    def build(self, item: InputItem) -> Payload: ...


class RawPayloadBuilder:
    """Uses the whole record as JSON, or the item's ``message`` parameter."""

    def __init__(self, send_input_data: bool) -> None:
        self._send_input_data = send_input_data

    def build(self, item: InputItem) -> RawText:
        if self._send_input_data:
            return RawText(serialize_record(item.data))
        return RawText(item.parameters.message)


class SchemaPayloadBuilder:
    """Encodes the raw JSON text with one schema id shared by the batch."""

    def __init__(
        self, raw: RawPayloadBuilder, encoder: SchemaEncoder, schema_id: int
    ) -> None:
        self._raw = raw
        self._encoder = encoder
        self._schema_id = schema_id

    def build(self, item: InputItem) -> SchemaEncoded:
        text = self._raw.build(item).text
        try:
            value = json.loads(text)
        except json.JSONDecodeError as exc:
            logger.error("schema.message_not_json", error=str(exc))
            raise SchemaRegistryError(VERIFY_REGISTRY) from exc
        return SchemaEncoded(self._encoder.encode(self._schema_id, value), self._schema_id)


class BatchAssembler:
    """Accumulates one :class:`TopicMessage` per input item, in input order."""

    def __init__(self, settings: DeliverySettings, payloads: PayloadBuilder) -> None:
        self._settings = settings
        self._payloads = payloads
        self._messages: list[TopicMessage] = []

    def __len__(self) -> int:
        return len(self._messages)

    def add(self, item: InputItem) -> TopicMessage:
        payload = self._payloads.build(item)
        topic = item.parameters.topic
        if not topic:
            msg = f"Topic is required (item {len(self._messages)})"
            raise ConfigurationError(msg)
        headers = resolve_headers(item.parameters)
        message = TopicMessage(topic=topic, payload=payload, headers=headers)
        self._messages.append(message)
        return message

    def build(self) -> BatchRequest:
        batch = BatchRequest(messages=tuple(self._messages), settings=self._settings)
        logger.debug(
            "batch.assembled",
            messages=len(batch.messages),
            topics=len(batch.by_topic()),
        )
        return batch
