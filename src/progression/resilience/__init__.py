"""Resilience patterns for storage writes"""

from progression.resilience.retry import retry_with_backoff

__all__ = ["retry_with_backoff"]
