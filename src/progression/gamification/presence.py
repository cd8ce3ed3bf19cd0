"""
Campus Presence

Tracks which campus location each user is in.

Rules:
- A user occupies at most one location; joining another moves them
- Occupants never exceed a location's capacity
- Access rules (level, achievement, restricted) are checked on join
- Rejoining the current location only refreshes the heartbeat
- Occupants whose last heartbeat is older than the stale threshold are
  removed by sweep()

Locking: the user's lock is taken first, then the lock of every location
touched by the operation in sorted id order, so capacity check and mutation
are one atomic step and two moves can never deadlock.
"""

import asyncio
import logging
from contextlib import AsyncExitStack, asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, AsyncIterator, Callable, Dict, Iterable, List, Optional

from progression.config import PRESENCE_STALE_AFTER_SECONDS
from progression.db.store import ProgressStore
from progression.exceptions import (
    AccessDenied,
    ActivityNotFound,
    CapacityExceeded,
    LocationNotFound,
    NotAnOccupant,
)
from progression.gamification.level_curve import level_of
from progression.gamification.xp_engine import AwardResult, XPEngine
from progression.models.achievement import AchievementDefinition, EventType, ProgressEvent
from progression.models.avatar import Avatar, utcnow
from progression.models.campus import AccessLevel, CampusLocation, Occupant
from progression.observability import metrics

logger = logging.getLogger(__name__)


@dataclass
class JoinResult:
    location: CampusLocation
    rejoined: bool = False
    previous_location_id: Optional[str] = None
    new_achievements: List[AchievementDefinition] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "location": self.location.to_dict(),
            "rejoined": self.rejoined,
            "previous_location_id": self.previous_location_id,
            "new_achievements": [d.to_dict() for d in self.new_achievements],
        }


def access_denial_reason(location: CampusLocation, avatar: Optional[Avatar]) -> Optional[str]:
    """Why ``avatar`` may not enter ``location``, or None when allowed"""
    access = location.access

    if access.level == AccessLevel.PUBLIC:
        return None
    if access.level == AccessLevel.RESTRICTED:
        return "location is restricted"
    if access.level == AccessLevel.LEVEL_REQUIRED:
        level = level_of(avatar.total_xp if avatar else 0)
        if level < access.required_level:
            return f"requires level {access.required_level}"
        return None
    if access.level == AccessLevel.ACHIEVEMENT_REQUIRED:
        if avatar is None or not avatar.has_achievement(access.required_achievement):
            return f"requires achievement {access.required_achievement}"
        return None

    return f"unsupported access level {access.level}"


class PresenceManager:
    """Capacity-bounded campus occupancy"""

    def __init__(
        self,
        locations: Iterable[CampusLocation],
        store: ProgressStore,
        engine: Optional[XPEngine] = None,
        stale_after_seconds: int = PRESENCE_STALE_AFTER_SECONDS,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._locations: Dict[str, CampusLocation] = {}
        for location in locations:
            if location.id in self._locations:
                raise ValueError(f"Duplicate campus location id: {location.id}")
            self._locations[location.id] = location

        self.store = store
        self.engine = engine
        self.stale_after = timedelta(seconds=stale_after_seconds)
        self.clock = clock

        self._user_location: Dict[str, str] = {}
        # Created on first use, dropped once no task holds or awaits them
        self._user_locks: Dict[str, asyncio.Lock] = {}
        self._user_lock_waiters: Dict[str, int] = {}
        self._location_locks: Dict[str, asyncio.Lock] = {
            location_id: asyncio.Lock() for location_id in self._locations
        }

    def get_location(self, location_id: str) -> CampusLocation:
        location = self._locations.get(location_id)
        if location is None:
            raise LocationNotFound(location_id)
        return location

    def location_of(self, user_id: str) -> Optional[str]:
        return self._user_location.get(user_id)

    async def list_locations(self, user_id: Optional[str] = None) -> List[CampusLocation]:
        """All locations, or only those ``user_id`` may enter"""
        locations = list(self._locations.values())
        if user_id is None:
            return locations

        avatar = await self.store.get_avatar(user_id)
        return [loc for loc in locations if access_denial_reason(loc, avatar) is None]

    async def join(self, user_id: str, location_id: str, display_name: Optional[str] = None) -> JoinResult:
        """
        Enter a location, leaving any other location first

        Raises:
            LocationNotFound, AccessDenied, CapacityExceeded
        """
        location = self.get_location(location_id)

        avatar = await self.store.get_avatar(user_id)
        reason = access_denial_reason(location, avatar)
        if reason is not None:
            metrics.campus_joins_total.labels(location_id=location_id, result="denied").inc()
            raise AccessDenied(location_id, reason, user_id=user_id, operation="campus_join")

        name = display_name or (avatar.display_name if avatar else user_id)

        async with self._user_locked(user_id):
            previous_id = self._user_location.get(user_id)

            async with self._locked(location_id, previous_id):
                now = self.clock()

                if previous_id == location_id:
                    occupant = location.find_occupant(user_id)
                    occupant.last_seen_at = now
                    if display_name:
                        occupant.display_name = display_name
                    metrics.campus_joins_total.labels(location_id=location_id, result="rejoined").inc()
                    return JoinResult(location=location, rejoined=True)

                if location.is_full:
                    metrics.campus_joins_total.labels(location_id=location_id, result="full").inc()
                    raise CapacityExceeded(
                        location_id, location.capacity, user_id=user_id, operation="campus_join"
                    )

                if previous_id is not None:
                    self._remove(self._locations[previous_id], user_id)

                location.occupants.append(Occupant(
                    user_id=user_id,
                    display_name=name,
                    joined_at=now,
                    last_seen_at=now,
                ))
                location.total_visits += 1
                self._user_location[user_id] = location_id
                metrics.campus_occupants.labels(location_id=location_id).set(len(location.occupants))

        metrics.campus_joins_total.labels(location_id=location_id, result="joined").inc()
        logger.info(f"User {user_id} joined {location_id} ({len(location.occupants)}/{location.capacity})")

        result = JoinResult(location=location, previous_location_id=previous_id)
        if self.engine is not None:
            event = ProgressEvent(type=EventType.CAMPUS_JOIN, location_id=location_id, occurred_at=now)
            result.new_achievements = await self.engine.evaluate_event(user_id, event)
        return result

    async def leave(self, user_id: str, location_id: str) -> bool:
        """Leave a location; returns False (no-op) when the user was not there"""
        self.get_location(location_id)

        async with self._user_locked(user_id):
            if self._user_location.get(user_id) != location_id:
                return False
            async with self._locked(location_id):
                self._remove(self._locations[location_id], user_id)

        logger.info(f"User {user_id} left {location_id}")
        return True

    async def disconnect(self, user_id: str) -> Optional[str]:
        """Remove the user from wherever they are; returns that location id"""
        async with self._user_locked(user_id):
            location_id = self._user_location.get(user_id)
            if location_id is None:
                return None
            async with self._locked(location_id):
                self._remove(self._locations[location_id], user_id)

        logger.info(f"User {user_id} disconnected from {location_id}")
        return location_id

    async def heartbeat(self, user_id: str) -> Optional[str]:
        """Refresh the user's presence; returns their location id, or None if absent"""
        async with self._user_locked(user_id):
            location_id = self._user_location.get(user_id)
            if location_id is None:
                return None
            async with self._locked(location_id):
                occupant = self._locations[location_id].find_occupant(user_id)
                occupant.last_seen_at = self.clock()
        return location_id

    async def sweep(self, now: Optional[datetime] = None) -> int:
        """Remove occupants whose last heartbeat is older than the stale threshold"""
        cutoff = (now or self.clock()) - self.stale_after

        stale = [
            (occupant.user_id, location.id)
            for location in self._locations.values()
            for occupant in location.occupants
            if occupant.last_seen_at < cutoff
        ]

        removed = 0
        for user_id, location_id in stale:
            async with self._user_locked(user_id):
                if self._user_location.get(user_id) != location_id:
                    continue
                async with self._locked(location_id):
                    location = self._locations[location_id]
                    occupant = location.find_occupant(user_id)
                    # A heartbeat may have landed since the scan
                    if occupant is None or occupant.last_seen_at >= cutoff:
                        continue
                    self._remove(location, user_id)
                    removed += 1

        if removed:
            metrics.presence_swept_total.inc(removed)
            logger.info(f"Presence sweep removed {removed} stale occupant(s)")
        return removed

    async def complete_activity(self, user_id: str, location_id: str, activity_id: str) -> AwardResult:
        """Award a location activity's XP to a current occupant"""
        location = self.get_location(location_id)
        activity = location.find_activity(activity_id)
        if activity is None:
            raise ActivityNotFound(location_id, activity_id, user_id=user_id)

        async with self._user_locked(user_id):
            if self._user_location.get(user_id) != location_id:
                raise NotAnOccupant(location_id, user_id=user_id, operation="complete_activity")
            async with self._locked(location_id):
                location.find_occupant(user_id).last_seen_at = self.clock()

        if self.engine is None:
            raise RuntimeError("PresenceManager has no engine to award activity XP")

        return await self.engine.award(
            user_id,
            activity.xp_reward,
            skill=activity.skill,
            source=f"campus:{location_id}:{activity_id}",
            reason=activity.name,
        )

    @asynccontextmanager
    async def _user_locked(self, user_id: str) -> AsyncIterator[None]:
        lock = self._user_locks.setdefault(user_id, asyncio.Lock())
        self._user_lock_waiters[user_id] = self._user_lock_waiters.get(user_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._user_lock_waiters[user_id] -= 1
            if not self._user_lock_waiters[user_id]:
                del self._user_lock_waiters[user_id]
                del self._user_locks[user_id]

    @asynccontextmanager
    async def _locked(self, *location_ids: Optional[str]) -> AsyncIterator[None]:
        async with AsyncExitStack() as stack:
            for location_id in sorted({lid for lid in location_ids if lid is not None}):
                await stack.enter_async_context(self._location_locks[location_id])
            yield

    def _remove(self, location: CampusLocation, user_id: str) -> None:
        location.occupants = [o for o in location.occupants if o.user_id != user_id]
        if self._user_location.get(user_id) == location.id:
            del self._user_location[user_id]
        metrics.campus_occupants.labels(location_id=location.id).set(len(location.occupants))
