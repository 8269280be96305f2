"""Publish against a live broker.

Runs only when ``KAFKA_BOOTSTRAP`` points at a reachable Kafka cluster
(e.g. ``KAFKA_BOOTSTRAP=localhost:9092 pytest -m integration``).
"""

from __future__ import annotations

import os
import time
import uuid

import pytest
from confluent_kafka import Consumer, KafkaError

from kafka_publisher.errors import BrokerConnectionError
from kafka_publisher.pipeline.runner import build_items, execute

BOOTSTRAP = os.environ.get("KAFKA_BOOTSTRAP")

pytestmark = [
    pytest.mark.integration,
    pytest.mark.skipif(not BOOTSTRAP, reason="KAFKA_BOOTSTRAP not set"),
]


def _consume(topic: str, count: int, *, timeout: float = 30.0) -> list[tuple[bytes, dict]]:
    consumer = Consumer(
        {
            "bootstrap.servers": BOOTSTRAP,
            "group.id": f"publish-test-{uuid.uuid4()}",
            "auto.offset.reset": "earliest",
            "enable.auto.commit": False,
        }
    )
    consumer.subscribe([topic])
    received: list[tuple[bytes, dict]] = []
    deadline = time.time() + timeout
    try:
        while len(received) < count and time.time() < deadline:
            msg = consumer.poll(1.0)
            if msg is None:
                continue
            if msg.error():
                if msg.error().code() in (
                    KafkaError._PARTITION_EOF,
                    KafkaError.UNKNOWN_TOPIC_OR_PART,
                ):
                    continue
                raise Exception(msg.error())
            headers = {k: v.decode() for k, v in (msg.headers() or [])}
            received.append((msg.value(), headers))
    finally:
        consumer.close()
    return received


class TestPublishIntegration:
    def test_batch_round_trip(self):
        topic = f"publish-test-{uuid.uuid4().hex[:8]}"
        items = build_items(
            [{"id": 1}, {"id": 2}],
            {
                "topic": topic,
                "headersUi": {"headerValues": [{"key": "source", "value": "it"}]},
                "options": {"acks": True},
            },
        )

        result = execute(items, {"brokers": BOOTSTRAP, "clientId": "it"})

        assert len(result) == 2
        received = _consume(topic, 2)
        assert [value for value, _ in received] == [b'{"id":1}', b'{"id":2}']
        assert all(headers == {"source": "it"} for _, headers in received)

    def test_unreachable_broker(self):
        items = build_items([{"id": 1}], {"topic": "t", "options": {"timeout": 2000}})
        with pytest.raises(BrokerConnectionError):
            execute(items, {"brokers": "127.0.0.1:1"})
