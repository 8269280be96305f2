"""Turn raw credential fields into a validated producer configuration."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError

from kafka_publisher.config.models import (
    AckLevel,
    DeliverySettings,
    KafkaCredentials,
    ProducerConfig,
    SaslCredential,
    SaslMechanism,
)
from kafka_publisher.errors import ConfigurationError

_SASL_MECHANISMS = {
    SaslMechanism.PLAIN: "PLAIN",
    SaslMechanism.SCRAM_SHA_256: "SCRAM-SHA-256",
    SaslMechanism.SCRAM_SHA_512: "SCRAM-SHA-512",
}


def resolve_producer_config(
    credentials: KafkaCredentials | Mapping[str, Any],
) -> ProducerConfig:
    """Validate credential fields and build a :class:`ProducerConfig`.

    Raises :class:`ConfigurationError` when authentication is enabled without
    both a username and a password, or when no broker address is given.
    No network access happens here.
    """
    if not isinstance(credentials, KafkaCredentials):
        try:
            credentials = KafkaCredentials.model_validate(dict(credentials))
        except ValidationError as exc:
            msg = f"Invalid Kafka credentials:\n{exc}"
            raise ConfigurationError(msg) from exc

    brokers = tuple(b.strip() for b in credentials.brokers.split(",") if b.strip())
    if not brokers:
        msg = "At least one broker address is required"
        raise ConfigurationError(msg)

    sasl: SaslCredential | None = None
    if credentials.authentication:
        password = (
            credentials.password.get_secret_value() if credentials.password else ""
        )
        if not (credentials.username and password):
            msg = "Username and password are required for authentication"
            raise ConfigurationError(msg)
        sasl = SaslCredential(
            username=credentials.username,
            password=credentials.password,
            mechanism=credentials.sasl_mechanism,
        )

    return ProducerConfig(
        client_id=credentials.client_id,
        brokers=brokers,
        ssl=credentials.ssl,
        sasl=sasl,
    )


def build_client_config(
    config: ProducerConfig, settings: DeliverySettings
) -> dict[str, Any]:
    """Build the confluent_kafka ``Producer`` config dict."""
    client_conf: dict[str, Any] = {
        "bootstrap.servers": config.bootstrap_servers,
        "acks": "all" if settings.acks == AckLevel.ALL else "0",
        "compression.type": settings.compression.value,
    }
    if config.client_id:
        client_conf["client.id"] = config.client_id

    if config.sasl is None:
        client_conf["security.protocol"] = "SSL" if config.ssl else "PLAINTEXT"
        return client_conf

    client_conf["security.protocol"] = "SASL_SSL" if config.ssl else "SASL_PLAINTEXT"
    client_conf["sasl.mechanism"] = _SASL_MECHANISMS[config.sasl.mechanism]
    client_conf["sasl.username"] = config.sasl.username
    client_conf["sasl.password"] = config.sasl.password.get_secret_value()
    return client_conf
