"""Headers, payloads, batching, broker session and result mapping."""
