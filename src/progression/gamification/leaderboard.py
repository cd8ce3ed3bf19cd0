"""
Leaderboard Index

Rank-ordered, read-optimized projection of avatars. One ranking per scope:
``overall`` (total XP) and one per skill (skill XP).

Ordering is total and deterministic: XP descending, then user id ascending.
An upsert never lowers the XP already indexed for a user in a scope, so a
late or replayed update cannot regress a ranking. The avatar record stays
authoritative; ``rebuild`` merges a fresh snapshot of the records into the
index.

Backends:
- LeaderboardIndex: in-process sorted lists maintained with bisect
- RedisLeaderboardIndex: Redis sorted sets scored by -xp so that equal
  scores fall back to Redis' lexicographic member order
"""

import asyncio
import logging
from bisect import bisect_left, insort
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from progression.gamification.level_curve import level_of
from progression.models.avatar import Avatar, Skill
from progression.models.leaderboard import OVERALL, LeaderboardEntry, LeaderboardScope, scope_key

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 10


def _score_pairs(total_xp: int, skill_xp: Mapping[Skill, int]) -> List[Tuple[str, int]]:
    pairs = [(OVERALL, total_xp)]
    pairs.extend((Skill.parse(skill).value, xp) for skill, xp in skill_xp.items())
    return pairs


class LeaderboardIndex:
    """In-memory leaderboard index"""

    def __init__(self):
        # scope -> sorted [(-xp, user_id)]
        self._rankings: Dict[str, List[Tuple[int, str]]] = {}
        # scope -> user_id -> xp
        self._scores: Dict[str, Dict[str, int]] = {}
        self._names: Dict[str, str] = {}
        self._lock = asyncio.Lock()

    async def upsert(
        self,
        user_id: str,
        display_name: str,
        total_xp: int,
        skill_xp: Optional[Mapping[Skill, int]] = None,
    ) -> None:
        """Record a user's latest XP for every scope they have"""
        async with self._lock:
            self._names[user_id] = display_name
            for scope, xp in _score_pairs(total_xp, skill_xp or {}):
                self._set_score(scope, user_id, xp)

    def _set_score(self, scope: str, user_id: str, xp: int) -> None:
        scores = self._scores.setdefault(scope, {})
        ranking = self._rankings.setdefault(scope, [])

        previous = scores.get(user_id)
        if previous is not None:
            if xp <= previous:
                return
            ranking.pop(bisect_left(ranking, (-previous, user_id)))

        scores[user_id] = xp
        insort(ranking, (-xp, user_id))

    async def rebuild(self, avatars: Iterable[Avatar]) -> int:
        """
        Re-derive the index from a snapshot of avatar records

        The snapshot may predate upserts that landed while it was read, so
        each score is merged with the one already indexed (XP only grows)
        instead of replacing it. Users absent from the snapshot are dropped.
        """
        staged: Dict[str, Dict[str, int]] = {}
        names: Dict[str, str] = {}
        for avatar in avatars:
            names[avatar.user_id] = avatar.display_name
            for scope, xp in _score_pairs(avatar.total_xp, avatar.skill_xp_map()):
                staged.setdefault(scope, {})[avatar.user_id] = xp

        async with self._lock:
            for scope, indexed in self._scores.items():
                for user_id, xp in indexed.items():
                    if user_id not in names:
                        continue
                    merged = staged.setdefault(scope, {})
                    if xp > merged.get(user_id, -1):
                        merged[user_id] = xp
                        if scope == OVERALL and user_id in self._names:
                            # The index saw a later write than the snapshot
                            names[user_id] = self._names[user_id]

            self._scores = staged
            self._rankings = {
                scope: sorted((-xp, user_id) for user_id, xp in scores.items())
                for scope, scores in staged.items()
            }
            self._names = names

        logger.info(f"Leaderboard rebuilt from {len(names)} avatars")
        return len(names)

    async def top(self, n: int = DEFAULT_LIMIT, scope: LeaderboardScope = OVERALL) -> List[LeaderboardEntry]:
        key = scope_key(scope)
        ranking = self._rankings.get(key, [])[:max(0, n)]
        return [
            LeaderboardEntry(
                rank=position,
                user_id=user_id,
                display_name=self._names.get(user_id, user_id),
                xp=-negative_xp,
                level=level_of(-negative_xp),
            )
            for position, (negative_xp, user_id) in enumerate(ranking, start=1)
        ]

    async def rank_of(self, user_id: str, scope: LeaderboardScope = OVERALL) -> Optional[int]:
        """1-based rank, or None when the user is not indexed for the scope"""
        key = scope_key(scope)
        xp = self._scores.get(key, {}).get(user_id)
        if xp is None:
            return None
        return bisect_left(self._rankings[key], (-xp, user_id)) + 1


class RedisLeaderboardIndex:
    """Leaderboard index on Redis sorted sets"""

    def __init__(self, client, prefix: str = "leaderboard"):
        self.client = client
        self.prefix = prefix

    def _key(self, scope: str) -> str:
        return f"{self.prefix}:{scope}"

    @property
    def _names_key(self) -> str:
        return f"{self.prefix}:names"

    async def upsert(
        self,
        user_id: str,
        display_name: str,
        total_xp: int,
        skill_xp: Optional[Mapping[Skill, int]] = None,
    ) -> None:
        async with self.client.pipeline(transaction=True) as pipe:
            pipe.hset(self._names_key, user_id, display_name)
            for scope, xp in _score_pairs(total_xp, skill_xp or {}):
                # LT on a negated score: only ever raise a user's XP
                pipe.zadd(self._key(scope), {user_id: -xp}, lt=True)
            await pipe.execute()

    async def rebuild(self, avatars: Iterable[Avatar]) -> int:
        """Merge a snapshot into the sorted sets (LT keeps newer, higher XP)"""
        staged: Dict[str, Dict[str, int]] = {}
        names: Dict[str, str] = {}
        for avatar in avatars:
            names[avatar.user_id] = avatar.display_name
            for scope, xp in _score_pairs(avatar.total_xp, avatar.skill_xp_map()):
                staged.setdefault(scope, {})[avatar.user_id] = -xp

        # Members indexed now but absent from the snapshot; anything added
        # after this read is left alone
        stale: Dict[str, List[str]] = {}
        for scope in [OVERALL] + [skill.value for skill in Skill]:
            members = await self.client.zrange(self._key(scope), 0, -1)
            missing = [m for m in map(_decode, members) if m not in names]
            if missing:
                stale[scope] = missing

        async with self.client.pipeline(transaction=True) as pipe:
            for scope, members in stale.items():
                pipe.zrem(self._key(scope), *members)
            dropped = sorted({m for members in stale.values() for m in members})
            if dropped:
                pipe.hdel(self._names_key, *dropped)
            if names:
                pipe.hset(self._names_key, mapping=names)
            for scope, members in staged.items():
                pipe.zadd(self._key(scope), members, lt=True)
            await pipe.execute()

        logger.info(f"Redis leaderboard rebuilt from {len(names)} avatars")
        return len(names)

    async def top(self, n: int = DEFAULT_LIMIT, scope: LeaderboardScope = OVERALL) -> List[LeaderboardEntry]:
        if n <= 0:
            return []
        rows = await self.client.zrange(self._key(scope_key(scope)), 0, n - 1, withscores=True)
        if not rows:
            return []
        user_ids = [_decode(member) for member, _ in rows]
        names = await self.client.hmget(self._names_key, user_ids)
        entries = []
        for position, ((_, score), user_id, name) in enumerate(zip(rows, user_ids, names), start=1):
            xp = int(-score)
            entries.append(LeaderboardEntry(
                rank=position,
                user_id=user_id,
                display_name=_decode(name) if name is not None else user_id,
                xp=xp,
                level=level_of(xp),
            ))
        return entries

    async def rank_of(self, user_id: str, scope: LeaderboardScope = OVERALL) -> Optional[int]:
        rank = await self.client.zrank(self._key(scope_key(scope)), user_id)
        return None if rank is None else rank + 1


def _decode(value) -> str:
    return value.decode("utf-8") if isinstance(value, bytes) else str(value)
