"""Batched Kafka publishing with optional Schema Registry encoding."""
