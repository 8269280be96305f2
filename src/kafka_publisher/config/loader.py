"""Load credentials, publish parameters and input records from files.

Every problem with a file (missing, unparsable, wrong shape, unset
``${VAR}``, invalid fields) is reported as a :class:`ConfigurationError`
naming the document and the path, so callers handle a single error type.
"""

from __future__ import annotations

import json
import os
import re
from pathlib import Path
from typing import Any, cast

import yaml
from pydantic import ValidationError

from kafka_publisher.config.models import KafkaCredentials, PublishParameters
from kafka_publisher.errors import ConfigurationError

# ${VAR} or ${VAR:-default}; "\}" escapes a brace inside the default
_ENV_REF = re.compile(r"\$\{([^}:]+)(?::-((?:[^}\\]|\\.)*))?}")


def _substitute(text: str) -> str:
    def _lookup(match: re.Match[str]) -> str:
        name, default = match.group(1), match.group(2)
        value = os.environ.get(name)
        if value is not None:
            return value
        if default is None:
            msg = f"Environment variable '{name}' is not set and has no default"
            raise ConfigurationError(msg)
        return default.replace("\\}", "}")

    return _ENV_REF.sub(_lookup, text)


def resolve_env_vars(data: Any) -> Any:
    """Substitute ``${VAR}`` references in every string of a parsed document."""
    if isinstance(data, str):
        return _substitute(data)
    if isinstance(data, dict):
        return {key: resolve_env_vars(value) for key, value in data.items()}
    if isinstance(data, list):
        return [resolve_env_vars(value) for value in data]
    return data


def merge_configs(base: dict[str, Any], overrides: dict[str, Any]) -> dict[str, Any]:
    """Recursively deep-merge *overrides* into *base* (non-mutating)."""
    merged: dict[str, Any] = {**base}
    for key, value in overrides.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = merge_configs(merged[key], value)
        else:
            merged[key] = value
    return merged


def _read(path: str | Path, kind: str) -> tuple[Path, str]:
    p = Path(path)
    try:
        return p, p.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        msg = f"{kind.capitalize()} file not found: {p}"
        raise ConfigurationError(msg) from exc
    except OSError as exc:
        msg = f"Cannot read {kind} file {p}: {exc.strerror}"
        raise ConfigurationError(msg) from exc


def load_yaml(path: str | Path, kind: str = "config") -> dict[str, Any]:
    """Parse a YAML mapping and resolve its ``${VAR}`` references.

    *kind* names the document in error messages (``credentials``,
    ``parameters``).
    """
    p, text = _read(path, kind)
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        msg = f"Failed to parse {kind} YAML in {p}"
        mark = getattr(exc, "problem_mark", None)
        if mark is not None:
            msg += f" at line {mark.line + 1}, column {mark.column + 1}"
        raise ConfigurationError(msg) from exc
    if data is None:
        data = {}
    if not isinstance(data, dict):
        msg = f"Expected {kind} in {p} to be a mapping, got {type(data).__name__}"
        raise ConfigurationError(msg)
    return cast(dict[str, Any], resolve_env_vars(data))


def load_credentials(path: str | Path) -> KafkaCredentials:
    """Load Kafka credential fields from a YAML file."""
    data = load_yaml(path, "credentials")
    try:
        return KafkaCredentials.model_validate(data)
    except ValidationError as exc:
        msg = f"Invalid Kafka credentials ({path}):\n{exc}"
        raise ConfigurationError(msg) from exc


def load_parameters(path: str | Path) -> dict[str, Any]:
    """Load publish parameters from YAML, validated but returned as raw data.

    The raw mapping is returned so per-record overrides can be merged on top
    of it before each item's :class:`PublishParameters` is built.
    """
    data = load_yaml(path, "parameters")
    try:
        PublishParameters.model_validate(data)
    except ValidationError as exc:
        msg = f"Invalid publish parameters ({path}):\n{exc}"
        raise ConfigurationError(msg) from exc
    return data


def load_records(path: str | Path) -> list[dict[str, Any]]:
    """Load input records from a JSON array file or a JSON-lines file."""
    p, text = _read(path, "records")
    if text.lstrip().startswith("["):
        records = _parse_json(text, p, 1)
    else:
        records = [
            _parse_json(line, p, lineno)
            for lineno, line in enumerate(text.splitlines(), 1)
            if line.strip()
        ]
    for index, record in enumerate(records):
        if not isinstance(record, dict):
            msg = f"Record {index} in {p} is {type(record).__name__}, expected an object"
            raise ConfigurationError(msg)
    return cast(list[dict[str, Any]], records)


def _parse_json(chunk: str, path: Path, first_line: int) -> Any:
    try:
        return json.loads(chunk)
    except json.JSONDecodeError as exc:
        lineno = first_line + exc.lineno - 1
        msg = f"Failed to parse records in {path} at line {lineno}: {exc.msg}"
        raise ConfigurationError(msg) from exc
