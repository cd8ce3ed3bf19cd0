"""
Observability for the progression engine.

This module provides:
- Error tracking with Sentry
- Metrics collection with Prometheus
"""

__all__ = ["sentry_config", "metrics", "metrics_middleware"]
