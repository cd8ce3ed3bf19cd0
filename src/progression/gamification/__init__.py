"""
Progression system

Turns study activity into:
- XP and levels (overall and per skill)
- Study streaks
- Achievements with one-time rewards
- Leaderboard rankings
- Campus presence
"""

from progression.gamification.level_curve import LevelInfo, level_for_xp, level_of, xp_threshold
from progression.gamification.streak_tracker import is_streak_active, record_activity
from progression.gamification.achievement_catalog import AchievementCatalog
from progression.gamification.achievement_evaluator import AchievementEvaluator
from progression.gamification.xp_engine import AwardResult, StreakResult, XPEngine, avatar_projection
from progression.gamification.leaderboard import LeaderboardIndex, RedisLeaderboardIndex
from progression.gamification.presence import JoinResult, PresenceManager
from progression.gamification.campus_catalog import default_locations

__all__ = [
    "LevelInfo",
    "level_for_xp",
    "level_of",
    "xp_threshold",
    "is_streak_active",
    "record_activity",
    "AchievementCatalog",
    "AchievementEvaluator",
    "AwardResult",
    "StreakResult",
    "XPEngine",
    "avatar_projection",
    "LeaderboardIndex",
    "RedisLeaderboardIndex",
    "JoinResult",
    "PresenceManager",
    "default_locations",
]
