"""Resilience helpers"""
from gamify.resilience.retry import retry_on_conflict, calculate_backoff

__all__ = ["retry_on_conflict", "calculate_backoff"]
