"""Avatar models for progression"""
from enum import Enum
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional, Set

from pydantic import BaseModel, ConfigDict, Field

from progression.exceptions import UnknownSkill


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Skill(str, Enum):
    """Fixed set of study skills tracked per avatar"""
    MATHEMATICS = "mathematics"
    SCIENCE = "science"
    ENGLISH = "english"
    HISTORY = "history"
    ART = "art"
    MUSIC = "music"
    CODING = "coding"
    LANGUAGES = "languages"

    @classmethod
    def parse(cls, value: Any) -> "Skill":
        """Validate a caller-supplied skill id, raising UnknownSkill"""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise UnknownSkill(value) from None


class SkillProgress(BaseModel):
    """Per-skill XP sub-ledger (level is derived from xp)"""
    xp: int = Field(default=0, ge=0)


class StreakState(BaseModel):
    """Consecutive-day study streak"""
    model_config = ConfigDict(frozen=True)

    current: int = Field(default=0, ge=0)
    longest: int = Field(default=0, ge=0)
    last_activity_date: Optional[date] = None


class EarnedAchievement(BaseModel):
    """An achievement id the avatar holds"""
    id: str
    earned_at: datetime = Field(default_factory=utcnow)


class Avatar(BaseModel):
    """
    Per-user progression record.

    Level is never stored: always derive it from total_xp with level_for_xp().
    """
    user_id: str
    display_name: str = "Student"
    total_xp: int = Field(default=0, ge=0)
    coins: int = Field(default=100, ge=0)
    gems: int = Field(default=10, ge=0)
    skills: Dict[Skill, SkillProgress] = Field(default_factory=dict)
    achievements: List[EarnedAchievement] = Field(default_factory=list)
    titles: List[str] = Field(default_factory=list)
    streak: StreakState = Field(default_factory=StreakState)
    appearance: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    version: int = 0

    @property
    def achievement_ids(self) -> Set[str]:
        return {earned.id for earned in self.achievements}

    def has_achievement(self, achievement_id: str) -> bool:
        return any(earned.id == achievement_id for earned in self.achievements)

    def skill_xp(self, skill: Skill) -> int:
        progress = self.skills.get(skill)
        return progress.xp if progress else 0

    def skill_xp_map(self) -> Dict[Skill, int]:
        return {skill: progress.xp for skill, progress in self.skills.items()}


class XPTransaction(BaseModel):
    """Append-only XP ledger row"""
    user_id: str
    amount: int = Field(gt=0)
    source: str
    skill: Optional[Skill] = None
    reason: str = ""
    awarded_at: datetime = Field(default_factory=utcnow)
