"""Pydantic models for API request/response validation"""
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


# ============================================
# Avatar
# ============================================

class AwardXPRequest(BaseModel):
    """Request to award XP to an avatar"""
    amount: Any = Field(..., description="Positive integer XP amount")
    skill: Optional[str] = Field(default=None, description="Skill credited alongside total XP")
    source: str = Field(default="study_session", description="Activity that earned the XP")
    reason: str = Field(default="", description="Human-readable ledger note")
    activity_date: Optional[date] = Field(
        default=None,
        description="Calendar day of the activity in the user's timezone; updates the streak"
    )


class AchievementInfo(BaseModel):
    id: str
    name: str
    description: str
    icon: str
    category: str
    rarity: str
    secret: bool
    rewards: Dict[str, Any]
    earned: Optional[bool] = None
    earned_at: Optional[datetime] = None


class AwardXPResponse(BaseModel):
    """Result of an XP award"""
    xp_awarded: int
    leveled_up: bool
    old_level: int
    new_level: int
    current_xp: int
    skill: Optional[str] = None
    skill_leveled_up: bool
    new_skill_level: Optional[int] = None
    streak_milestone: Optional[int] = None
    new_achievements: List[AchievementInfo] = Field(default_factory=list)


class AppearanceUpdateRequest(BaseModel):
    """Merge appearance keys and optionally rename the avatar"""
    appearance: Dict[str, Any] = Field(default_factory=dict)
    display_name: Optional[str] = Field(default=None, min_length=1, max_length=50)


class ActivityRequest(BaseModel):
    """Record a study day without XP"""
    activity_date: Optional[date] = Field(default=None, description="Defaults to today (UTC)")
    source: str = Field(default="study_session")


class StreakResponse(BaseModel):
    current_streak: int
    longest_streak: int
    last_activity_date: Optional[date] = None
    streak_extended: bool
    milestone: Optional[int] = None
    new_achievements: List[AchievementInfo] = Field(default_factory=list)


class XPTransactionInfo(BaseModel):
    amount: int
    skill: Optional[str] = None
    source: str
    reason: str
    awarded_at: datetime


class XPHistoryResponse(BaseModel):
    user_id: str
    transactions: List[XPTransactionInfo]


# ============================================
# Achievements / Leaderboard
# ============================================

class AchievementListResponse(BaseModel):
    achievements: List[AchievementInfo]
    total: int


class LeaderboardEntryInfo(BaseModel):
    rank: int
    user_id: str
    display_name: str
    xp: int
    level: int


class LeaderboardResponse(BaseModel):
    scope: str
    entries: List[LeaderboardEntryInfo]


class RankResponse(BaseModel):
    user_id: str
    scope: str
    rank: Optional[int] = None


# ============================================
# Campus
# ============================================

class JoinLocationRequest(BaseModel):
    user_id: str = Field(..., min_length=1)
    display_name: Optional[str] = None


class PresenceRequest(BaseModel):
    user_id: str = Field(..., min_length=1)


class LeaveResponse(BaseModel):
    user_id: str
    location_id: str
    left: bool


class HeartbeatResponse(BaseModel):
    user_id: str
    location_id: Optional[str] = None
    present: bool


# ============================================
# Service
# ============================================

class HealthCheckResponse(BaseModel):
    """Health check response"""
    status: str = Field(..., description="Service status")
    store: str = Field(..., description="Progress store status")
    timestamp: datetime = Field(..., description="Check timestamp")
