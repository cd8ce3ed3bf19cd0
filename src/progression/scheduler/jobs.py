"""
Background jobs

Periodic maintenance that only reads engine state and never runs inside a
request handler:
- leaderboard rebuild from the authoritative avatar records
- campus presence sweep of stale occupants
"""

import logging
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from progression.config import (
    LEADERBOARD_REBUILD_INTERVAL_SECONDS,
    PRESENCE_SWEEP_INTERVAL_SECONDS,
)
from progression.observability import metrics
from progression.services.container import ServiceContainer

logger = logging.getLogger(__name__)


async def rebuild_leaderboard(container: ServiceContainer) -> Optional[int]:
    """Rebuild the leaderboard index; failures are logged and retried next run"""
    try:
        count = await container.rebuild_leaderboard()
    except Exception:
        logger.error("Leaderboard rebuild failed", exc_info=True)
        metrics.leaderboard_rebuilds_total.labels(status="failed").inc()
        return None

    metrics.leaderboard_rebuilds_total.labels(status="ok").inc()
    return count


async def sweep_presence(container: ServiceContainer) -> int:
    try:
        return await container.presence.sweep()
    except Exception:
        logger.error("Presence sweep failed", exc_info=True)
        return 0


def create_scheduler(
    container: ServiceContainer,
    rebuild_interval: int = LEADERBOARD_REBUILD_INTERVAL_SECONDS,
    sweep_interval: int = PRESENCE_SWEEP_INTERVAL_SECONDS,
) -> AsyncIOScheduler:
    """Build (but do not start) the scheduler with both maintenance jobs"""
    scheduler = AsyncIOScheduler()

    scheduler.add_job(
        rebuild_leaderboard,
        'interval',
        seconds=rebuild_interval,
        args=[container],
        id="leaderboard_rebuild",
        max_instances=1,
        coalesce=True,
    )
    scheduler.add_job(
        sweep_presence,
        'interval',
        seconds=sweep_interval,
        args=[container],
        id="presence_sweep",
        max_instances=1,
        coalesce=True,
    )

    logger.info(
        f"Scheduled leaderboard rebuild every {rebuild_interval}s "
        f"and presence sweep every {sweep_interval}s"
    )
    return scheduler
