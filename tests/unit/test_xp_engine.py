"""Unit tests for the XP engine (progression/gamification/xp_engine.py)"""
import asyncio
import pytest
from datetime import date, datetime, timedelta, timezone
from unittest.mock import AsyncMock

from progression.db.memory_store import InMemoryProgressStore
from progression.exceptions import InvalidAmount, StorageError, UnknownSkill
from progression.gamification.achievement_catalog import AchievementCatalog
from progression.gamification.xp_engine import XPEngine, avatar_projection
from progression.models.avatar import Skill

DAY = date(2024, 3, 4)


# ============================================================================
# Award Tests
# ============================================================================

@pytest.mark.asyncio
async def test_award_then_level_up(bare_engine, test_user_id):
    """50 XP stays at level 1; another 60 XP reaches level 2"""
    first = await bare_engine.award(test_user_id, 50, skill="mathematics")

    assert first.avatar.total_xp == 50
    assert first.leveled_up is False
    assert first.new_level == 1
    assert first.avatar.skill_xp(Skill.MATHEMATICS) == 50

    second = await bare_engine.award(test_user_id, 60, skill="mathematics")

    assert second.avatar.total_xp == 110
    assert second.leveled_up is True
    assert second.old_level == 1
    assert second.new_level == 2
    assert second.skill_leveled_up is True
    assert second.new_skill_level == 2


@pytest.mark.asyncio
async def test_identical_awards_add_up(bare_engine, test_user_id):
    await bare_engine.award(test_user_id, 25, source="quiz")
    result = await bare_engine.award(test_user_id, 25, source="quiz")

    assert result.avatar.total_xp == 50


@pytest.mark.asyncio
@pytest.mark.parametrize("amount", [0, -5, 1.5, True, "10", None])
async def test_invalid_amount_rejected(bare_engine, store, test_user_id, amount):
    with pytest.raises(InvalidAmount):
        await bare_engine.award(test_user_id, amount)

    assert await store.get_avatar(test_user_id) is None


@pytest.mark.asyncio
async def test_unknown_skill_rejected(bare_engine, store, test_user_id):
    with pytest.raises(UnknownSkill):
        await bare_engine.award(test_user_id, 10, skill="alchemy")

    assert await store.get_avatar(test_user_id) is None


@pytest.mark.asyncio
async def test_concurrent_awards_do_not_lose_updates(bare_engine, test_user_id):
    await asyncio.gather(*[
        bare_engine.award(test_user_id, 10, skill="science", source="quiz")
        for _ in range(50)
    ])

    avatar = await bare_engine.get_avatar(test_user_id)
    assert avatar.total_xp == 500
    assert avatar.skill_xp(Skill.SCIENCE) == 500
    assert len(await bare_engine.get_xp_history(test_user_id, limit=100)) == 50


@pytest.mark.asyncio
async def test_ledger_sum_matches_total_xp(engine, test_user_id, noon):
    """Reward XP from achievements lands in the ledger too"""
    await engine.award(test_user_id, 40, skill="english", occurred_at=noon)
    await engine.award(test_user_id, 70, source="quiz", occurred_at=noon)

    avatar = await engine.get_avatar(test_user_id)
    history = await engine.get_xp_history(test_user_id, limit=100)

    assert avatar.has_achievement("first_study_session")
    assert sum(tx.amount for tx in history) == avatar.total_xp
    assert any(tx.source == "achievement:first_study_session" for tx in history)


@pytest.mark.asyncio
async def test_first_study_session_reported(engine, test_user_id, noon):
    result = await engine.award(test_user_id, 10, occurred_at=noon)

    assert [d.id for d in result.new_achievements] == ["first_study_session"]
    # 10 XP plus the 50 XP reward
    assert result.avatar.total_xp == 60
    assert result.avatar.coins == 110


@pytest.mark.asyncio
async def test_early_bird_secret_achievement(engine, test_user_id):
    result = await engine.award(
        test_user_id,
        10,
        occurred_at=datetime(2024, 3, 4, 6, 45, tzinfo=timezone.utc),
    )

    assert "early_bird" in {d.id for d in result.new_achievements}


@pytest.mark.asyncio
async def test_award_updates_streak_in_same_transaction(bare_engine, test_user_id):
    await bare_engine.award(test_user_id, 10, activity_date=DAY)
    result = await bare_engine.award(test_user_id, 10, activity_date=DAY + timedelta(days=1))

    assert result.avatar.streak.current == 2
    assert result.avatar.total_xp == 20


@pytest.mark.asyncio
async def test_out_of_order_activity_still_awards_xp(bare_engine, test_user_id):
    await bare_engine.award(test_user_id, 10, activity_date=DAY)
    result = await bare_engine.award(test_user_id, 10, activity_date=DAY - timedelta(days=3))

    assert result.avatar.total_xp == 20
    assert result.avatar.streak.current == 1
    assert result.avatar.streak.last_activity_date == DAY


@pytest.mark.asyncio
async def test_award_updates_leaderboard(bare_engine, leaderboard, test_user_id):
    await bare_engine.award(test_user_id, 120, skill="coding")

    assert await leaderboard.rank_of(test_user_id) == 1
    assert await leaderboard.rank_of(test_user_id, "coding") == 1


# ============================================================================
# Side Effects
# ============================================================================

@pytest.mark.asyncio
async def test_leaderboard_failure_does_not_roll_back(store, test_user_id):
    broken_leaderboard = AsyncMock()
    broken_leaderboard.upsert.side_effect = RuntimeError("index down")
    engine = XPEngine(store, AchievementCatalog([]), broken_leaderboard)

    result = await engine.award(test_user_id, 30)

    assert result.avatar.total_xp == 30
    assert (await store.get_avatar(test_user_id)).total_xp == 30


@pytest.mark.asyncio
async def test_evaluator_failure_does_not_roll_back(engine, store, test_user_id):
    engine.evaluator.evaluate_and_apply = AsyncMock(side_effect=RuntimeError("boom"))

    result = await engine.award(test_user_id, 30)

    assert result.new_achievements == []
    assert (await store.get_avatar(test_user_id)).total_xp == 30


@pytest.mark.asyncio
async def test_storage_timeout_leaves_avatar_unchanged(test_user_id):
    class SlowStore(InMemoryProgressStore):
        async def _update_avatar(self, user_id, mutate):
            await asyncio.sleep(1)
            return await super()._update_avatar(user_id, mutate)

    store = SlowStore(timeout=0.01)
    engine = XPEngine(store, AchievementCatalog([]))

    with pytest.raises(StorageError):
        await engine.award(test_user_id, 10)

    assert await store.get_avatar(test_user_id) is None


# ============================================================================
# Streaks
# ============================================================================

@pytest.mark.asyncio
async def test_week_warrior_awarded_exactly_once(engine, test_user_id, noon):
    results = []
    for offset in range(9):
        results.append(await engine.award(
            test_user_id,
            10,
            source="quiz",
            activity_date=DAY + timedelta(days=offset),
            occurred_at=noon,
        ))

    earned_on = [
        index for index, result in enumerate(results)
        if "study_streak_7" in {d.id for d in result.new_achievements}
    ]
    assert earned_on == [6]
    assert results[6].streak_milestone == 7

    avatar = await engine.get_avatar(test_user_id)
    assert [a.id for a in avatar.achievements].count("study_streak_7") == 1
    # 9 awards of 10 XP plus the 200 XP reward
    assert avatar.total_xp == 290
    assert avatar.gems == 15


@pytest.mark.asyncio
async def test_record_activity_without_xp(bare_engine, test_user_id):
    first = await bare_engine.record_activity(test_user_id, DAY)
    second = await bare_engine.record_activity(test_user_id, DAY + timedelta(days=1))
    repeat = await bare_engine.record_activity(test_user_id, DAY + timedelta(days=1))

    assert first.new_streak.current == 1
    assert second.new_streak.current == 2
    assert repeat.changed is False
    assert second.avatar.total_xp == 0


# ============================================================================
# Rewards
# ============================================================================

@pytest.mark.asyncio
async def test_grant_rewards_skips_already_earned(engine, store, test_user_id):
    month_master = engine.catalog.get("study_streak_30")

    _, first = await engine.grant_rewards(test_user_id, [month_master])
    avatar, second = await engine.grant_rewards(test_user_id, [month_master])

    assert first == [month_master]
    assert second == []
    assert avatar.total_xp == 1000
    assert avatar.titles == ["Month Master"]
    assert avatar.coins == 300
    assert avatar.gems == 35


@pytest.mark.asyncio
async def test_grant_rewards_with_nothing_to_grant(engine, test_user_id):
    avatar, awarded = await engine.grant_rewards(test_user_id, [])

    assert awarded == []
    assert avatar.user_id == test_user_id


# ============================================================================
# Profile
# ============================================================================

@pytest.mark.asyncio
async def test_get_avatar_creates_with_defaults(bare_engine, test_user_id):
    avatar = await bare_engine.get_avatar(test_user_id)

    assert avatar.total_xp == 0
    assert avatar.coins == 100
    assert avatar.gems == 10
    assert avatar.display_name == "Student"


@pytest.mark.asyncio
async def test_update_appearance_merges(bare_engine, leaderboard, test_user_id):
    await bare_engine.update_appearance(test_user_id, {"hair": "red", "hat": "cap"})
    avatar = await bare_engine.update_appearance(
        test_user_id, {"hat": "beanie"}, display_name="Ada"
    )

    assert avatar.appearance == {"hair": "red", "hat": "beanie"}
    assert avatar.display_name == "Ada"
    top = await leaderboard.top(1)
    assert top[0].display_name == "Ada"


@pytest.mark.asyncio
async def test_xp_history_newest_first(bare_engine, test_user_id):
    await bare_engine.award(test_user_id, 10, source="quiz", reason="first")
    await bare_engine.award(test_user_id, 20, source="quiz", reason="second")

    history = await bare_engine.get_xp_history(test_user_id, limit=1)

    assert [tx.reason for tx in history] == ["second"]


@pytest.mark.asyncio
async def test_avatar_projection(bare_engine, test_user_id):
    result = await bare_engine.award(test_user_id, 150, skill="history", activity_date=DAY)

    projection = avatar_projection(result.avatar, today=DAY + timedelta(days=1))

    assert projection["level"] == 2
    assert projection["level_progress"]["xp_in_current_level"] == 50
    assert projection["skills"]["history"] == {"xp": 150, "level": 2}
    assert projection["streak"]["active"] is True
    assert projection["streak"]["current"] == 1

    lapsed = avatar_projection(result.avatar, today=DAY + timedelta(days=4))
    assert lapsed["streak"]["current"] == 0
    assert lapsed["streak"]["longest"] == 1
