"""Virtual campus models"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from progression.models.avatar import Skill


class AccessLevel(str, Enum):
    PUBLIC = "public"
    LEVEL_REQUIRED = "level_required"
    ACHIEVEMENT_REQUIRED = "achievement_required"
    RESTRICTED = "restricted"


@dataclass(frozen=True)
class LocationAccess:
    level: AccessLevel = AccessLevel.PUBLIC
    required_level: int = 1
    required_achievement: Optional[str] = None

    @classmethod
    def public(cls) -> "LocationAccess":
        return cls()

    @classmethod
    def level_required(cls, level: int) -> "LocationAccess":
        return cls(level=AccessLevel.LEVEL_REQUIRED, required_level=level)

    @classmethod
    def achievement_required(cls, achievement_id: str) -> "LocationAccess":
        return cls(level=AccessLevel.ACHIEVEMENT_REQUIRED, required_achievement=achievement_id)

    @classmethod
    def restricted(cls) -> "LocationAccess":
        return cls(level=AccessLevel.RESTRICTED)


@dataclass(frozen=True)
class CampusActivity:
    """Something an occupant can do in a location for XP"""
    id: str
    name: str
    description: str
    xp_reward: int
    skill: Optional[Skill] = None


@dataclass
class Occupant:
    user_id: str
    display_name: str
    joined_at: datetime
    last_seen_at: datetime


@dataclass
class CampusLocation:
    """A capacity-bounded shared space; occupants keep join order"""
    id: str
    name: str
    description: str
    type: str
    capacity: int
    access: LocationAccess = field(default_factory=LocationAccess.public)
    activities: List[CampusActivity] = field(default_factory=list)
    occupants: List[Occupant] = field(default_factory=list)
    total_visits: int = 0

    @property
    def is_full(self) -> bool:
        return len(self.occupants) >= self.capacity

    def find_occupant(self, user_id: str) -> Optional[Occupant]:
        for occupant in self.occupants:
            if occupant.user_id == user_id:
                return occupant
        return None

    def find_activity(self, activity_id: str) -> Optional[CampusActivity]:
        for activity in self.activities:
            if activity.id == activity_id:
                return activity
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "type": self.type,
            "capacity": self.capacity,
            "access_level": self.access.level.value,
            "required_level": self.access.required_level,
            "required_achievement": self.access.required_achievement,
            "activities": [
                {
                    "id": a.id,
                    "name": a.name,
                    "description": a.description,
                    "xp_reward": a.xp_reward,
                    "skill": a.skill.value if a.skill else None,
                }
                for a in self.activities
            ],
            "occupants": [
                {
                    "user_id": o.user_id,
                    "display_name": o.display_name,
                    "joined_at": o.joined_at.isoformat(),
                }
                for o in self.occupants
            ],
            "occupancy": len(self.occupants),
            "total_visits": self.total_visits,
        }
