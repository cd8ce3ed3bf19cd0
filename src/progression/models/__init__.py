"""Domain models for the progression engine"""
from progression.models.avatar import (
    Avatar,
    EarnedAchievement,
    Skill,
    SkillProgress,
    StreakState,
    XPTransaction,
)
from progression.models.achievement import (
    AchievementCategory,
    AchievementDefinition,
    EventType,
    ProgressEvent,
    Rarity,
    Rewards,
)
from progression.models.campus import (
    AccessLevel,
    CampusActivity,
    CampusLocation,
    LocationAccess,
    Occupant,
)
from progression.models.leaderboard import OVERALL, LeaderboardEntry, scope_key

__all__ = [
    "Avatar",
    "EarnedAchievement",
    "Skill",
    "SkillProgress",
    "StreakState",
    "XPTransaction",
    "AchievementCategory",
    "AchievementDefinition",
    "EventType",
    "ProgressEvent",
    "Rarity",
    "Rewards",
    "AccessLevel",
    "CampusActivity",
    "CampusLocation",
    "LocationAccess",
    "Occupant",
    "OVERALL",
    "LeaderboardEntry",
    "scope_key",
]
