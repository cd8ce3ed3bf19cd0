"""Global test fixtures and utilities for progression engine tests"""
import pytest
from datetime import datetime, timedelta, timezone

from progression.db.memory_store import InMemoryProgressStore
from progression.gamification.achievement_catalog import AchievementCatalog
from progression.gamification.leaderboard import LeaderboardIndex
from progression.gamification.xp_engine import XPEngine


# ============================================================================
# Clock
# ============================================================================

class FakeClock:
    """Manually advanced clock for presence timeouts"""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def noon():
    """Fixed mid-day timestamp (no time-of-day achievements fire)"""
    return datetime(2024, 3, 4, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock(noon):
    return FakeClock(noon)


# ============================================================================
# Engine Fixtures
# ============================================================================

@pytest.fixture
def test_user_id():
    """Standard test user ID"""
    return "student-1"


@pytest.fixture
def store():
    return InMemoryProgressStore()


@pytest.fixture
def leaderboard():
    return LeaderboardIndex()


@pytest.fixture
def engine(store, leaderboard):
    """Engine with the default achievement catalog"""
    return XPEngine(store, AchievementCatalog(), leaderboard)


@pytest.fixture
def bare_engine(store, leaderboard):
    """Engine with no achievements, for exact XP arithmetic"""
    return XPEngine(store, AchievementCatalog([]), leaderboard)
