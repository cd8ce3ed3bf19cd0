"""Leaderboard data models"""
from dataclasses import dataclass, asdict
from typing import Any, Dict, Union

from progression.models.avatar import Skill

OVERALL = "overall"

LeaderboardScope = Union[str, Skill]


def scope_key(scope: LeaderboardScope) -> str:
    """Normalize a scope to its storage key ('overall' or a skill id)"""
    if scope == OVERALL:
        return OVERALL
    return Skill.parse(scope).value


@dataclass(frozen=True)
class LeaderboardEntry:
    """Single leaderboard row (read-only projection of an avatar)"""
    rank: int
    user_id: str
    display_name: str
    xp: int
    level: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
