"""Schema Registry binding: schema id lookup and Avro wire-format encoding."""

from __future__ import annotations

from typing import Any

import structlog
from confluent_kafka.schema_registry import SchemaRegistryClient
from confluent_kafka.schema_registry.avro import AvroDeserializer, AvroSerializer
from confluent_kafka.serialization import MessageField, SerializationContext

from kafka_publisher.errors import SchemaRegistryError

logger = structlog.get_logger()

VERIFY_REGISTRY = "Verify your Schema Registry configuration"


def create_registry_client(url: str) -> SchemaRegistryClient:
    """Create a Schema Registry client."""
    try:
        return SchemaRegistryClient({"url": url})
    except Exception as exc:
        raise SchemaRegistryError(VERIFY_REGISTRY) from exc


def _no_subject(ctx: SerializationContext | None, record_name: str | None) -> None:
    return None


class SchemaEncoder:
    """Encodes JSON values to the Confluent Avro wire format.

    The event name is the registry subject. Every registry or encoding failure
    surfaces as :class:`SchemaRegistryError` with a stable message; the
    underlying exception is kept as ``__cause__``.
    """

    def __init__(self, registry: SchemaRegistryClient) -> None:
        self._registry = registry
        self._subjects: dict[int, str] = {}
        self._serializers: dict[int, AvroSerializer] = {}
        self._deserializer: AvroDeserializer | None = None

    def resolve_schema_id(self, event_name: str) -> int:
        """Return the id of the latest schema registered under *event_name*."""
        try:
            registered = self._registry.get_latest_version(event_name)
            schema_id = registered.schema_id
            if schema_id is None:
                msg = f"Registry returned no schema id for '{event_name}'"
                raise ValueError(msg)
        except Exception as exc:
            logger.error("schema.lookup_failed", subject=event_name, error=str(exc))
            raise SchemaRegistryError(VERIFY_REGISTRY) from exc
        self._subjects[int(schema_id)] = event_name
        logger.info("schema.id_resolved", subject=event_name, schema_id=schema_id)
        return int(schema_id)

    def encode(self, schema_id: int, value: Any) -> bytes:
        """Serialize *value* with the schema identified by *schema_id*."""
        try:
            serializer = self._serializer_for(schema_id)
            ctx = SerializationContext(self._subjects[schema_id], MessageField.VALUE)
            data = serializer(value, ctx)
        except Exception as exc:
            logger.error("schema.encode_failed", schema_id=schema_id, error=str(exc))
            raise SchemaRegistryError(VERIFY_REGISTRY) from exc
        return data

    def decode(self, data: bytes, topic: str | None = None) -> Any:
        """Decode wire-format *data* with the writer schema it references."""
        try:
            if self._deserializer is None:
                self._deserializer = AvroDeserializer(
                    self._registry, conf={"subject.name.strategy": _no_subject}
                )
            return self._deserializer(data, SerializationContext(topic, MessageField.VALUE))
        except Exception as exc:
            raise SchemaRegistryError(VERIFY_REGISTRY) from exc

    def _serializer_for(self, schema_id: int) -> AvroSerializer:
        serializer = self._serializers.get(schema_id)
        if serializer is not None:
            return serializer
        subject = self._subjects.get(schema_id)
        if subject is None:
            msg = f"Schema {schema_id} was not resolved through this encoder"
            raise KeyError(msg)
        schema = self._registry.get_schema(schema_id)
        if schema.schema_type not in (None, "AVRO"):
            msg = f"Schema {schema_id} is {schema.schema_type}, only AVRO is supported"
            raise ValueError(msg)
        # The subject lookup pins the framed id to the registered schema
        serializer = AvroSerializer(
            self._registry,
            schema,
            conf={
                "auto.register.schemas": False,
                "subject.name.strategy": lambda ctx, record_name: subject,
            },
        )
        self._serializers[schema_id] = serializer
        return serializer
