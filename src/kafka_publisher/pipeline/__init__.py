"""Single-execution orchestration."""
