"""Broker connection lifecycle and the single batched send."""

from __future__ import annotations

from collections.abc import Callable
from types import TracebackType
from typing import Any, Self

import structlog
from confluent_kafka import KafkaException, Message, Producer

from kafka_publisher.config.models import DeliverySettings, ProducerConfig
from kafka_publisher.config.resolver import build_client_config
from kafka_publisher.errors import BrokerConnectionError, BrokerSendError
from kafka_publisher.publishing.batch import BatchRequest
from kafka_publisher.publishing.results import DeliveryOutcome

logger = structlog.get_logger()

ClientFactory = Callable[[dict[str, Any]], Producer]


class ProducerSession:
    """Owns one producer client for one execution: ``Closed -> Open -> Closed``.

    The client is built by *client_factory* on :meth:`open`, so nothing is
    shared between executions. Use it as a context manager so :meth:`close`
    runs on every exit path, including a failed :meth:`send`.
    """

    def __init__(self, client_factory: ClientFactory = Producer) -> None:
        self._client_factory = client_factory
        self._producer: Producer | None = None
        self._settings: DeliverySettings | None = None

    @property
    def is_open(self) -> bool:
        return self._producer is not None

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def open(self, config: ProducerConfig, settings: DeliverySettings) -> None:
        """Build the client and fetch cluster metadata to prove connectivity.

        Acks and compression are client-level settings in librdkafka, so the
        batch's :class:`DeliverySettings` are fixed here.
        """
        if self._producer is not None:
            msg = "ProducerSession is already open"
            raise RuntimeError(msg)
        client_conf = build_client_config(config, settings)
        try:
            producer = self._client_factory(client_conf)
        except KafkaException as exc:
            raise _connect_failed(config, exc) from exc
        try:
            producer.list_topics(timeout=settings.timeout_seconds)
        except KafkaException as exc:
            _release(producer)
            raise _connect_failed(config, exc) from exc
        self._producer = producer
        self._settings = settings
        logger.info(
            "producer.connected",
            brokers=config.bootstrap_servers,
            client_id=config.client_id,
            ssl=config.ssl,
            sasl=config.sasl is not None,
        )

    def send(self, batch: BatchRequest) -> list[DeliveryOutcome]:
        """Produce every message, then flush once within the batch timeout.

        The batch fails as a unit: any undelivered or rejected message raises
        :class:`BrokerSendError`. Messages the broker gave no offset for
        (``acks=0``) produce no outcome.
        """
        if self._producer is None:
            msg = "ProducerSession is not open"
            raise RuntimeError(msg)
        if batch.settings != self._settings:
            msg = "Batch delivery settings differ from the ones the session was opened with"
            raise ValueError(msg)

        producer = self._producer
        delivered: list[Message | None] = [None] * len(batch.messages)
        failures: list[str] = []

        def _on_delivery(index: int) -> Callable[[Any, Message], None]:
            def _report(err: Any, msg: Message) -> None:
                if err is not None:
                    failures.append(f"{msg.topic()}: {err}")
                else:
                    delivered[index] = msg

            return _report

        timeout_ms = batch.settings.timeout_ms
        try:
            for index, message in enumerate(batch.messages):
                producer.produce(
                    topic=message.topic,
                    value=message.payload.to_bytes(),
                    headers=[(k, v.encode()) for k, v in message.headers.items()],
                    on_delivery=_on_delivery(index),
                )
            remaining = producer.flush(timeout=batch.settings.timeout_seconds)
        except (KafkaException, BufferError) as exc:
            logger.error("producer.send_failed", error=str(exc))
            msg = f"Failed to send batch: {exc}"
            raise BrokerSendError(msg) from exc

        if remaining:
            logger.error(
                "producer.send_timeout", timeout_ms=timeout_ms, undelivered=remaining
            )
            msg = (
                f"Timed out after {timeout_ms} ms with "
                f"{remaining} message(s) undelivered"
            )
            raise BrokerSendError(msg)
        if failures:
            logger.error("producer.send_rejected", failed=len(failures))
            msg = f"Broker rejected {len(failures)} message(s): {failures[0]}"
            raise BrokerSendError(msg)

        outcomes = [_outcome(m) for m in delivered if m is not None and m.offset() >= 0]
        logger.info(
            "producer.batch_sent",
            messages=len(batch.messages),
            topics=len(batch.by_topic()),
            reported=len(outcomes),
        )
        return outcomes

    def close(self) -> None:
        """Drop anything still queued and release the client. Idempotent."""
        producer, self._producer = self._producer, None
        self._settings = None
        if producer is None:
            return
        _release(producer)
        logger.debug("producer.closed")


def _release(producer: Producer) -> None:
    try:
        producer.purge(in_queue=True, in_flight=True, blocking=False)
        producer.poll(0)
    except KafkaException as exc:
        logger.warning("producer.close_failed", error=str(exc))


def _connect_failed(config: ProducerConfig, exc: KafkaException) -> BrokerConnectionError:
    logger.error(
        "producer.connect_failed", brokers=config.bootstrap_servers, error=str(exc)
    )
    return BrokerConnectionError(
        f"Could not connect to Kafka brokers {config.bootstrap_servers}: {exc}"
    )


def _outcome(msg: Message) -> DeliveryOutcome:
    ts_type, ts = msg.timestamp()
    return DeliveryOutcome(
        topic=msg.topic() or "",
        partition=msg.partition() or 0,
        offset=msg.offset() or 0,
        timestamp=ts if ts_type else None,
    )
