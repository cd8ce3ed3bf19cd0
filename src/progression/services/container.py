"""
Service Container - Dependency Injection Container

Holds the single instance of each engine component for the process. The
store and leaderboard are injected (built from config by build_container);
engine and presence are lazy-loaded on first access.
"""

from dataclasses import dataclass, field
from typing import Any, List, Optional
import logging

from progression.db.store import ProgressStore
from progression.gamification.achievement_catalog import AchievementCatalog
from progression.gamification.campus_catalog import default_locations
from progression.gamification.leaderboard import LeaderboardIndex
from progression.models.campus import CampusLocation

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    """
    Simple dependency injection container for engine services.

    Infrastructure dependencies (store, leaderboard, redis client) are
    injected; services are lazy-loaded via properties.
    """

    # Infrastructure dependencies (injected)
    store: ProgressStore
    leaderboard: Any = field(default_factory=LeaderboardIndex)
    catalog: AchievementCatalog = field(default_factory=AchievementCatalog)
    locations: List[CampusLocation] = field(default_factory=default_locations)
    redis_client: Optional[Any] = None

    # Services (lazy-loaded via properties)
    _engine: Optional[Any] = field(default=None, init=False, repr=False)
    _presence: Optional[Any] = field(default=None, init=False, repr=False)

    @property
    def engine(self):
        """Get XPEngine instance (lazy-loaded)"""
        if self._engine is None:
            from progression.gamification.xp_engine import XPEngine
            self._engine = XPEngine(self.store, self.catalog, self.leaderboard)
            logger.debug("XPEngine instantiated")
        return self._engine

    @property
    def presence(self):
        """Get PresenceManager instance (lazy-loaded)"""
        if self._presence is None:
            from progression.gamification.presence import PresenceManager
            self._presence = PresenceManager(self.locations, self.store, self.engine)
            logger.debug("PresenceManager instantiated")
        return self._presence

    async def rebuild_leaderboard(self) -> int:
        """Re-derive the leaderboard index from the authoritative avatar records"""
        avatars = await self.store.list_avatars()
        return await self.leaderboard.rebuild(avatars)

    async def close(self) -> None:
        await self.store.close()
        if self.redis_client is not None:
            await self.redis_client.aclose()
            logger.info("Redis connection closed")


# Global container instance (initialized by the API lifespan)
_container: Optional[ServiceContainer] = None


def get_container() -> ServiceContainer:
    """
    Get the global service container.

    Raises:
        RuntimeError: If container not initialized (call init_container first)
    """
    if _container is None:
        raise RuntimeError(
            "Service container not initialized. "
            "Call init_container() before using services."
        )
    return _container


def init_container(store: ProgressStore, **kwargs) -> ServiceContainer:
    """Initialize the global service container"""
    global _container

    _container = ServiceContainer(store=store, **kwargs)
    logger.info("Service container initialized")
    return _container


def reset_container() -> None:
    global _container
    _container = None


async def build_container() -> ServiceContainer:
    """
    Build infrastructure from config and initialize the global container

    Opens the PostgreSQL pool and schema when STORE_BACKEND=postgres, and the
    Redis client when LEADERBOARD_BACKEND=redis.
    """
    from progression.config import LEADERBOARD_BACKEND, STORE_BACKEND, REDIS_URL
    from progression.db import create_store

    store = create_store(STORE_BACKEND)
    if STORE_BACKEND == "postgres":
        from progression.db.connection import db
        await db.init_pool()
        await db.init_schema()

    redis_client = None
    if LEADERBOARD_BACKEND == "redis":
        import redis.asyncio as redis
        from progression.gamification.leaderboard import RedisLeaderboardIndex

        redis_client = redis.from_url(REDIS_URL, encoding="utf-8", decode_responses=True)
        await redis_client.ping()
        logger.info(f"Redis connected: {REDIS_URL}")
        leaderboard = RedisLeaderboardIndex(redis_client)
    else:
        leaderboard = LeaderboardIndex()

    container = init_container(store, leaderboard=leaderboard, redis_client=redis_client)
    logger.info(f"Engine services ready (store={STORE_BACKEND}, leaderboard={LEADERBOARD_BACKEND})")
    return container
