"""Pydantic models for credentials, per-item parameters and delivery settings."""

from __future__ import annotations

import json
from enum import IntEnum, StrEnum
from typing import Any, Self

from pydantic import BaseModel, Field, SecretStr, field_validator, model_validator


class SaslMechanism(StrEnum):
    """SASL mechanisms accepted in stored credentials."""

    PLAIN = "plain"
    SCRAM_SHA_256 = "scram-sha-256"
    SCRAM_SHA_512 = "scram-sha-512"


class CompressionMode(StrEnum):
    """Batch compression codecs."""

    NONE = "none"
    GZIP = "gzip"


class AckLevel(IntEnum):
    """Replica acknowledgments required before the broker reports success."""

    NONE = 0
    ALL = 1


class KafkaCredentials(BaseModel, populate_by_name=True):
    """Raw credential fields as kept by the credential store.

    Both the camelCase store names (``clientId``, ``saslMechanism``) and the
    snake_case attribute names are accepted.
    """

    brokers: str = ""
    client_id: str = Field(default="", alias="clientId")
    ssl: bool = False
    authentication: bool = False
    username: str | None = None
    password: SecretStr | None = None
    sasl_mechanism: SaslMechanism = Field(
        default=SaslMechanism.PLAIN, alias="saslMechanism"
    )


class SaslCredential(BaseModel, frozen=True):
    """Username/password pair plus the SASL mechanism to present them with."""

    username: str = Field(min_length=1)
    password: SecretStr
    mechanism: SaslMechanism = SaslMechanism.PLAIN

    @field_validator("password")
    @classmethod
    def validate_password_present(cls, v: SecretStr) -> SecretStr:
        if not v.get_secret_value():
            msg = "password must not be empty"
            raise ValueError(msg)
        return v


class ProducerConfig(BaseModel, frozen=True):
    """Validated, immutable broker connection settings for one execution."""

    client_id: str = ""
    brokers: tuple[str, ...]
    ssl: bool = False
    sasl: SaslCredential | None = None

    @field_validator("brokers")
    @classmethod
    def validate_brokers(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        """Trim each address and require at least one non-empty entry."""
        trimmed = tuple(b.strip() for b in v)
        if not trimmed or any(not b for b in trimmed):
            msg = "at least one broker address is required and none may be empty"
            raise ValueError(msg)
        return trimmed

    @property
    def bootstrap_servers(self) -> str:
        return ",".join(self.brokers)


class DeliverySettings(BaseModel, frozen=True):
    """Timeout, compression and ack level applied to a whole batch."""

    timeout_ms: int = Field(default=30000, gt=0)
    compression: CompressionMode = CompressionMode.NONE
    acks: AckLevel = AckLevel.NONE

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000.0


class PublishOptions(BaseModel):
    """The ``options`` collection of the publish parameters."""

    acks: bool = False
    compression: bool = False
    timeout: int = Field(default=30000, gt=0)

    def to_settings(self) -> DeliverySettings:
        return DeliverySettings(
            timeout_ms=self.timeout,
            compression=CompressionMode.GZIP if self.compression else CompressionMode.NONE,
            acks=AckLevel.ALL if self.acks else AckLevel.NONE,
        )


class HeaderEntry(BaseModel):
    key: str = ""
    value: str = ""

    @field_validator("key", "value", mode="before")
    @classmethod
    def stringify_scalars(cls, v: Any) -> Any:
        """Stringify scalars the way raw JSON header values are."""
        if v is None:
            return ""
        if isinstance(v, bool | int | float):
            return json.dumps(v)
        return v


class HeadersUi(BaseModel, populate_by_name=True):
    """Structured header list: ``{"headerValues": [{"key": ..., "value": ...}]}``."""

    header_values: list[HeaderEntry] | None = Field(default=None, alias="headerValues")


class PublishParameters(BaseModel, populate_by_name=True):
    """Parameters the host resolves for a single input item.

    Batch-level values (``options``, ``sendInputData``, ``useSchemaRegistry``,
    ``schemaRegistryUrl``, ``eventName``) are only read from the first item.
    """

    topic: str = ""
    send_input_data: bool = Field(default=True, alias="sendInputData")
    # Used when send_input_data is False
    message: str = ""
    json_parameters: bool = Field(default=False, alias="jsonParameters")
    headers_ui: HeadersUi = Field(default_factory=HeadersUi, alias="headersUi")
    header_parameters_json: str = Field(default="", alias="headerParametersJson")
    use_schema_registry: bool = Field(default=False, alias="useSchemaRegistry")
    schema_registry_url: str = Field(default="", alias="schemaRegistryUrl")
    # Namespace-qualified schema name (namespace.name), used as the subject
    event_name: str = Field(default="", alias="eventName")
    options: PublishOptions = Field(default_factory=PublishOptions)

    @model_validator(mode="after")
    def check_schema_registry_fields(self) -> Self:
        """Registry URL and event name are required once the registry is in use."""
        if self.use_schema_registry and not (
            self.schema_registry_url and self.event_name
        ):
            msg = (
                "schemaRegistryUrl and eventName are required "
                "when useSchemaRegistry is enabled"
            )
            raise ValueError(msg)
        return self
