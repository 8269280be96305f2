"""Broker delivery outcomes and their mapping to output records."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True, slots=True)
class DeliveryOutcome:
    """What the broker reported for one delivered message."""

    topic: str
    partition: int
    offset: int
    timestamp: int | None = None
    error_code: int = 0

    def to_record(self) -> dict[str, Any]:
        return {
            "topicName": self.topic,
            "partition": self.partition,
            "errorCode": self.error_code,
            "baseOffset": str(self.offset),
            "timestamp": self.timestamp,
        }


def map_outcomes(outcomes: list[DeliveryOutcome]) -> list[dict[str, Any]]:
    """Convert outcomes to output records in the order the broker reported them.

    A batch the broker reported nothing for (e.g. sent with ``acks=0``)
    yields a single ``{"success": True}`` record instead of an empty list.
    """
    if not outcomes:
        return [{"success": True}]
    return [o.to_record() for o in outcomes]
