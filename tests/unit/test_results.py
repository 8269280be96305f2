"""Unit tests for mapping delivery outcomes to output records."""

from __future__ import annotations

from kafka_publisher.publishing.results import DeliveryOutcome, map_outcomes


class TestMapOutcomes:
    def test_zero_outcomes_yield_single_success_record(self):
        assert map_outcomes([]) == [{"success": True}]

    def test_outcomes_map_one_to_one_in_order(self):
        outcomes = [
            DeliveryOutcome(topic="b", partition=1, offset=10, timestamp=5),
            DeliveryOutcome(topic="a", partition=0, offset=3),
        ]

        records = map_outcomes(outcomes)

        assert records == [
            {"topicName": "b", "partition": 1, "errorCode": 0, "baseOffset": "10", "timestamp": 5},
            {"topicName": "a", "partition": 0, "errorCode": 0, "baseOffset": "3", "timestamp": None},
        ]
