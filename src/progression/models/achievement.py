"""Achievement models for progression"""
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Callable, Dict, Optional

from progression.exceptions import InvalidCategory
from progression.models.avatar import Avatar, Skill, utcnow


class AchievementCategory(str, Enum):
    """Achievement categories"""
    STUDY = "study"
    SOCIAL = "social"
    CREATIVE = "creative"
    ACADEMIC = "academic"
    SPECIAL = "special"
    STREAK = "streak"
    EXPLORATION = "exploration"

    @classmethod
    def parse(cls, value: Any) -> "AchievementCategory":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise InvalidCategory(value) from None


class Rarity(str, Enum):
    """Achievement rarity"""
    COMMON = "common"
    UNCOMMON = "uncommon"
    RARE = "rare"
    EPIC = "epic"
    LEGENDARY = "legendary"


class EventType(str, Enum):
    """What triggered an achievement evaluation"""
    XP_AWARD = "xp_award"
    STREAK_UPDATE = "streak_update"
    CAMPUS_JOIN = "campus_join"
    REWARD = "reward"


@dataclass(frozen=True)
class ProgressEvent:
    """Triggering event passed to achievement predicates"""
    type: EventType
    amount: int = 0
    skill: Optional[Skill] = None
    source: str = ""
    location_id: Optional[str] = None
    activity_date: Optional[date] = None
    occurred_at: datetime = field(default_factory=utcnow)


@dataclass(frozen=True)
class Rewards:
    """Reward bundle granted once when an achievement is earned"""
    xp: int = 0
    coins: int = 0
    gems: int = 0
    title: Optional[str] = None


Predicate = Callable[[Avatar, ProgressEvent], bool]


@dataclass(frozen=True)
class AchievementDefinition:
    """Immutable achievement definition"""
    id: str
    name: str
    description: str
    icon: str
    category: AchievementCategory
    predicate: Predicate = field(compare=False, repr=False)
    rarity: Rarity = Rarity.COMMON
    secret: bool = False
    rewards: Rewards = field(default_factory=Rewards)
    priority: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "icon": self.icon,
            "category": self.category.value,
            "rarity": self.rarity.value,
            "secret": self.secret,
            "rewards": {
                "xp": self.rewards.xp,
                "coins": self.rewards.coins,
                "gems": self.rewards.gems,
                "title": self.rewards.title,
            },
        }
