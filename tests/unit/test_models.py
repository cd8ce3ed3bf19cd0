"""Unit tests for Pydantic models"""
import pytest
from pydantic import ValidationError as PydanticValidationError

from progression.exceptions import UnknownSkill
from progression.models.avatar import Avatar, Skill, SkillProgress, StreakState, XPTransaction


def test_avatar_defaults():
    """Test Avatar with defaults"""
    avatar = Avatar(user_id="student-1")

    assert avatar.total_xp == 0
    assert avatar.coins == 100
    assert avatar.gems == 10
    assert avatar.skills == {}
    assert avatar.streak.current == 0
    assert avatar.version == 0


def test_avatar_rejects_negative_balances():
    with pytest.raises(PydanticValidationError):
        Avatar(user_id="student-1", total_xp=-1)


def test_avatar_json_round_trip_keeps_skill_keys():
    avatar = Avatar(user_id="student-1", skills={Skill.ART: SkillProgress(xp=40)})

    restored = Avatar.model_validate(avatar.model_dump(mode="json"))

    assert restored.skill_xp(Skill.ART) == 40
    assert restored.skill_xp(Skill.MUSIC) == 0


def test_has_achievement():
    avatar = Avatar(user_id="student-1", achievements=[{"id": "level_5"}])

    assert avatar.has_achievement("level_5")
    assert avatar.achievement_ids == {"level_5"}
    assert not avatar.has_achievement("level_10")


def test_streak_state_is_frozen():
    streak = StreakState(current=3, longest=5)

    with pytest.raises(PydanticValidationError):
        streak.current = 4


def test_skill_parse():
    assert Skill.parse(" Mathematics ") == Skill.MATHEMATICS
    assert Skill.parse(Skill.CODING) == Skill.CODING

    with pytest.raises(UnknownSkill):
        Skill.parse("alchemy")


def test_xp_transaction_requires_positive_amount():
    with pytest.raises(PydanticValidationError):
        XPTransaction(user_id="student-1", amount=0, source="quiz")
