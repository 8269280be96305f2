"""Per-message header resolution from structured pairs or raw JSON text."""

from __future__ import annotations

import json
from typing import Any

from kafka_publisher.config.models import PublishParameters
from kafka_publisher.errors import HeaderFormatError

_INVALID_HEADERS = "Headers must be valid JSON (a flat object)"


def resolve_headers(parameters: PublishParameters) -> dict[str, str]:
    """Build the header set for one message.

    ``jsonParameters`` selects raw mode (``headerParametersJson``), otherwise
    the structured ``headersUi`` list is folded in order so later keys win.
    """
    if parameters.json_parameters:
        return parse_raw_headers(parameters.header_parameters_json)

    entries = parameters.headers_ui.header_values
    if entries is None:
        return {}
    headers: dict[str, str] = {}
    for entry in entries:
        headers[entry.key] = entry.value
    return headers


def parse_raw_headers(text: str) -> dict[str, str]:
    """Parse a flat JSON object into a header set.

    String values are kept verbatim; other scalars are JSON-encoded
    (``true``, ``42``, ``null``). Nested objects or arrays are rejected.
    """
    try:
        data = json.loads(text)
    except (json.JSONDecodeError, TypeError) as exc:
        raise HeaderFormatError(_INVALID_HEADERS) from exc
    if not isinstance(data, dict):
        raise HeaderFormatError(_INVALID_HEADERS)

    headers: dict[str, str] = {}
    for key, value in data.items():
        headers[key] = _header_value(value)
    return headers


def _header_value(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, (dict, list)):
        raise HeaderFormatError(_INVALID_HEADERS)
    return json.dumps(value)
