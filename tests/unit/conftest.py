"""Shared doubles for the broker and schema registry clients."""

from __future__ import annotations

import json
from typing import Any
from unittest.mock import MagicMock

import pytest
from confluent_kafka import KafkaError, KafkaException
from confluent_kafka.schema_registry import Schema

from kafka_publisher.publishing.schema import SchemaEncoder

ORDER_SUBJECT = "shop.events.OrderCreated"
ORDER_SCHEMA = json.dumps(
    {
        "type": "record",
        "name": "OrderCreated",
        "namespace": "shop.events",
        "fields": [
            {"name": "id", "type": "int"},
            {"name": "item", "type": "string"},
        ],
    }
)

# librdkafka's OFFSET_INVALID, reported for acks=0 deliveries
OFFSET_INVALID = -1001


class FakeMessage:
    def __init__(self, topic: str, partition: int, offset: int) -> None:
        self._topic = topic
        self._partition = partition
        self._offset = offset

    def topic(self) -> str:
        return self._topic

    def partition(self) -> int:
        return self._partition

    def offset(self) -> int:
        return self._offset

    def timestamp(self) -> tuple[int, int]:
        return (1, 1_700_000_000_000)


class FakeProducer:
    """In-memory stand-in for ``confluent_kafka.Producer``.

    Delivery callbacks fire on ``flush``; offsets are only assigned when the
    client was configured with ``acks=all``.
    """

    def __init__(
        self,
        conf: dict[str, Any],
        *,
        connect_error: Exception | None = None,
        produce_error: Exception | None = None,
        delivery_error: KafkaError | None = None,
        undelivered: int = 0,
    ) -> None:
        self.conf = conf
        self.connect_error = connect_error
        self.produce_error = produce_error
        self.delivery_error = delivery_error
        self.undelivered = undelivered
        self.produced: list[dict[str, Any]] = []
        self.flush_timeouts: list[float] = []
        self.purged = False
        self._pending: list[tuple[str, Any]] = []
        self._next_offset: dict[str, int] = {}

    def list_topics(self, topic: str | None = None, timeout: float = -1) -> Any:
        if self.connect_error is not None:
            raise self.connect_error
        return MagicMock()

    def produce(self, topic: str, value: Any = None, headers: Any = None, on_delivery: Any = None) -> None:
        if self.produce_error is not None:
            raise self.produce_error
        self.produced.append({"topic": topic, "value": value, "headers": headers})
        self._pending.append((topic, on_delivery))

    def flush(self, timeout: float = -1) -> int:
        self.flush_timeouts.append(timeout)
        if self.undelivered:
            return self.undelivered
        for topic, callback in self._pending:
            if self.conf.get("acks") == "all":
                offset = self._next_offset.get(topic, 0)
                self._next_offset[topic] = offset + 1
            else:
                offset = OFFSET_INVALID
            callback(self.delivery_error, FakeMessage(topic, 0, offset))
        self._pending.clear()
        return 0

    def purge(self, in_queue: bool = True, in_flight: bool = True, blocking: bool = True) -> None:
        self.purged = True
        self._pending.clear()

    def poll(self, timeout: float = -1) -> int:
        return 0


class FakeProducerFactory:
    """Callable client factory that remembers every producer it built."""

    def __init__(self, **behaviour: Any) -> None:
        self._behaviour = behaviour
        self.instances: list[FakeProducer] = []

    def __call__(self, conf: dict[str, Any]) -> FakeProducer:
        producer = FakeProducer(conf, **self._behaviour)
        self.instances.append(producer)
        return producer

    @property
    def last(self) -> FakeProducer:
        return self.instances[-1]


@pytest.fixture
def producer_factory() -> type[FakeProducerFactory]:
    return FakeProducerFactory


@pytest.fixture
def transport_error() -> KafkaException:
    return KafkaException(KafkaError(KafkaError._TRANSPORT, "broker transport failure"))


@pytest.fixture
def registry() -> MagicMock:
    """Registry client double serving ORDER_SCHEMA as id 42."""
    client = MagicMock()
    client.get_latest_version.return_value = MagicMock(schema_id=42)
    client.get_schema.return_value = Schema(schema_str=ORDER_SCHEMA, schema_type="AVRO")
    client.lookup_schema.return_value = MagicMock(schema_id=42, guid=None)
    return client


@pytest.fixture
def encoder(registry: MagicMock) -> SchemaEncoder:
    """Encoder with ORDER_SUBJECT already resolved to id 42."""
    schema_encoder = SchemaEncoder(registry)
    schema_encoder.resolve_schema_id(ORDER_SUBJECT)
    return schema_encoder
