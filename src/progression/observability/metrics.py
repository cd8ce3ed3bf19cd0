"""
Prometheus metrics definitions for the progression engine.

Metrics are organized by category:
- HTTP/API metrics: Request counts, latency
- Progression metrics: XP awarded, level-ups, achievements
- Presence metrics: Campus joins and sweeps
- Storage metrics: Operation latency and failures

Metrics are exposed at the /metrics endpoint for Prometheus scraping.
"""

import logging
from prometheus_client import Counter, Gauge, Histogram

logger = logging.getLogger(__name__)

# =============================================================================
# HTTP/API Metrics
# =============================================================================

http_requests_total = Counter(
    "progression_http_requests_total",
    "Total HTTP requests received",
    ["method", "endpoint", "status"],
)

http_request_duration_seconds = Histogram(
    "progression_http_request_duration_seconds",
    "HTTP request latency in seconds",
    ["method", "endpoint"],
    buckets=[0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 2.0, 5.0],
)

# =============================================================================
# Progression Metrics
# =============================================================================

xp_awarded_total = Counter(
    "progression_xp_awarded_total",
    "Total XP granted",
    ["source_type"],  # source_type: award/reward/activity
)

level_ups_total = Counter(
    "progression_level_ups_total",
    "Avatar level-ups",
)

achievements_unlocked_total = Counter(
    "progression_achievements_unlocked_total",
    "Achievements awarded",
    ["achievement_id", "rarity"],
)

side_effect_failures_total = Counter(
    "progression_side_effect_failures_total",
    "Best-effort side effects that failed after a committed award",
    ["side_effect"],  # side_effect: achievements/leaderboard
)

# =============================================================================
# Presence Metrics
# =============================================================================

campus_joins_total = Counter(
    "progression_campus_joins_total",
    "Campus join attempts",
    ["location_id", "result"],  # result: joined/rejoined/full/denied
)

campus_occupants = Gauge(
    "progression_campus_occupants",
    "Current occupants per campus location",
    ["location_id"],
)

presence_swept_total = Counter(
    "progression_presence_swept_total",
    "Occupants removed by the staleness sweep",
)

# =============================================================================
# Storage Metrics
# =============================================================================

storage_operation_duration_seconds = Histogram(
    "progression_storage_operation_duration_seconds",
    "Progress store operation latency in seconds",
    ["operation"],
    buckets=[0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0],
)

storage_errors_total = Counter(
    "progression_storage_errors_total",
    "Progress store operations that failed",
    ["operation"],
)

leaderboard_rebuilds_total = Counter(
    "progression_leaderboard_rebuilds_total",
    "Full leaderboard rebuilds",
    ["status"],
)
