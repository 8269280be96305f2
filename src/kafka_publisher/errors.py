"""Exception taxonomy for a publish execution."""

from __future__ import annotations


class PublishError(Exception):
    """Base class for every error that aborts a publish execution."""


class ConfigurationError(PublishError):
    """Credentials or parameters are missing or invalid."""


class HeaderFormatError(PublishError):
    """Raw header text could not be parsed as a flat JSON object."""


class SchemaRegistryError(PublishError):
    """Schema lookup or encoding against the registry failed."""


class BrokerConnectionError(PublishError):
    """The broker could not be reached or rejected the credentials."""


class BrokerSendError(PublishError):
    """The batched send timed out, was rejected, or hit a transport fault."""
