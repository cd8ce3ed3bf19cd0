"""
XP Engine

Owns every write to an avatar's progression state.

Award flow:
1. Validate amount and skill at the boundary
2. One atomic store update: total XP, skill sub-ledger, ledger row and
   (optionally) the study streak
3. After commit, best effort: achievement evaluation, then leaderboard upsert

Side effects never roll back a committed award. A failed achievement pass is
picked up by the next evaluation; a failed leaderboard upsert is healed by the
periodic rebuild.

Reward grants (achievement XP/coins/gems/titles) go through grant_rewards,
which re-checks earned ids inside the atomic update so the same achievement
can never be granted twice, even from a stale snapshot.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple
import logging

from progression.db.store import ProgressStore
from progression.exceptions import InvalidAmount
from progression.gamification import streak_tracker
from progression.gamification.achievement_catalog import AchievementCatalog
from progression.gamification.achievement_evaluator import AchievementEvaluator
from progression.gamification.level_curve import level_for_xp, level_of
from progression.models.achievement import AchievementDefinition, EventType, ProgressEvent
from progression.models.avatar import (
    Avatar,
    EarnedAchievement,
    Skill,
    SkillProgress,
    StreakState,
    XPTransaction,
    utcnow,
)
from progression.observability import metrics

logger = logging.getLogger(__name__)

DEFAULT_SOURCE = "study_session"


@dataclass
class AwardResult:
    """Outcome of a committed XP award"""
    avatar: Avatar
    xp_awarded: int
    old_level: int
    new_level: int
    skill: Optional[Skill] = None
    old_skill_level: int = 0
    new_skill_level: int = 0
    streak_milestone: int = 0
    new_achievements: List[AchievementDefinition] = field(default_factory=list)

    @property
    def leveled_up(self) -> bool:
        return self.new_level > self.old_level

    @property
    def skill_leveled_up(self) -> bool:
        return self.skill is not None and self.new_skill_level > self.old_skill_level

    def to_dict(self) -> Dict[str, Any]:
        return {
            "xp_awarded": self.xp_awarded,
            "leveled_up": self.leveled_up,
            "old_level": self.old_level,
            "new_level": self.new_level,
            "current_xp": self.avatar.total_xp,
            "skill": self.skill.value if self.skill else None,
            "skill_leveled_up": self.skill_leveled_up,
            "new_skill_level": self.new_skill_level if self.skill else None,
            "streak_milestone": self.streak_milestone or None,
            "new_achievements": [d.to_dict() for d in self.new_achievements],
        }


@dataclass
class StreakResult:
    """Outcome of recording a study day"""
    avatar: Avatar
    old_streak: StreakState
    new_streak: StreakState
    milestone: int = 0
    new_achievements: List[AchievementDefinition] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return self.new_streak != self.old_streak

    def to_dict(self) -> Dict[str, Any]:
        return {
            "current_streak": self.new_streak.current,
            "longest_streak": self.new_streak.longest,
            "last_activity_date": (
                self.new_streak.last_activity_date.isoformat()
                if self.new_streak.last_activity_date else None
            ),
            "streak_extended": self.new_streak.current > self.old_streak.current,
            "milestone": self.milestone or None,
            "new_achievements": [d.to_dict() for d in self.new_achievements],
        }


def validate_amount(amount: Any) -> int:
    """XP amounts are positive ints; bools and floats are rejected"""
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise InvalidAmount(amount)
    return amount


class XPEngine:
    """Awards XP, grants achievement rewards and records study streaks"""

    def __init__(
        self,
        store: ProgressStore,
        catalog: Optional[AchievementCatalog] = None,
        leaderboard=None,
    ):
        self.store = store
        self.catalog = catalog if catalog is not None else AchievementCatalog()
        self.leaderboard = leaderboard
        self.evaluator = AchievementEvaluator(self.catalog, self)

    # ============================================
    # Awards
    # ============================================

    async def award(
        self,
        user_id: str,
        amount: int,
        skill: Optional[Any] = None,
        source: str = DEFAULT_SOURCE,
        reason: str = "",
        activity_date: Optional[date] = None,
        occurred_at: Optional[datetime] = None,
    ) -> AwardResult:
        """
        Award XP to a user and check for level up

        Args:
            user_id: Avatar owner
            amount: Positive XP amount (priced by the caller)
            skill: Optional skill id credited alongside total XP
            source: What earned the XP (study_session, quiz, campus:<location>, ...)
            reason: Human-readable description for the ledger
            activity_date: Calendar day of the activity; updates the streak in
                the same transaction when given
            occurred_at: Event time used by time-of-day achievements

        Raises:
            InvalidAmount, UnknownSkill: before anything is written
            StorageError: the award was not applied
        """
        amount = validate_amount(amount)
        parsed_skill = Skill.parse(skill) if skill is not None else None
        occurred_at = occurred_at or utcnow()

        before: Dict[str, Any] = {}

        def apply_award(avatar: Avatar) -> List[XPTransaction]:
            # Runs once per store attempt; only record, never accumulate
            before["total_xp"] = avatar.total_xp
            before["skill_xp"] = avatar.skill_xp(parsed_skill) if parsed_skill else 0
            before["streak"] = avatar.streak

            avatar.total_xp += amount
            if parsed_skill is not None:
                avatar.skills.setdefault(parsed_skill, SkillProgress()).xp += amount
            if activity_date is not None:
                avatar.streak = streak_tracker.record_activity(avatar.streak, activity_date)

            return [XPTransaction(
                user_id=user_id,
                amount=amount,
                source=source,
                skill=parsed_skill,
                reason=reason,
                awarded_at=occurred_at,
            )]

        avatar = await self.store.update_avatar(user_id, apply_award)

        result = AwardResult(
            avatar=avatar,
            xp_awarded=amount,
            old_level=level_of(before["total_xp"]),
            new_level=level_of(avatar.total_xp),
            skill=parsed_skill,
            old_skill_level=level_of(before["skill_xp"]) if parsed_skill else 0,
            new_skill_level=level_of(avatar.skill_xp(parsed_skill)) if parsed_skill else 0,
            streak_milestone=streak_tracker.milestone_reached(before["streak"], avatar.streak),
        )

        metrics.xp_awarded_total.labels(source_type="award").inc(amount)
        logger.info(
            f"Awarded {amount} XP to user {user_id} for {source}. "
            f"Total: {avatar.total_xp} XP, Level: {result.new_level}"
        )
        if result.leveled_up:
            metrics.level_ups_total.inc()
            logger.info(f"User {user_id} leveled up from {result.old_level} to {result.new_level}!")
        if result.streak_milestone:
            logger.info(f"User {user_id} reached a {result.streak_milestone}-day study streak")

        event = ProgressEvent(
            type=EventType.XP_AWARD,
            amount=amount,
            skill=parsed_skill,
            source=source,
            activity_date=activity_date,
            occurred_at=occurred_at,
        )
        result.avatar, result.new_achievements = await self._after_commit(avatar, event)
        return result

    async def grant_rewards(
        self,
        user_id: str,
        definitions: Iterable[AchievementDefinition],
        event: Optional[ProgressEvent] = None,
    ) -> Tuple[Avatar, List[AchievementDefinition]]:
        """
        Mark achievements earned and apply their rewards in one atomic update

        Ids the avatar already holds are skipped inside the transaction. Never
        triggers achievement evaluation.

        Returns:
            (committed avatar, definitions actually awarded by this call)
        """
        definitions = list(definitions)
        if not definitions:
            return await self.store.get_or_create_avatar(user_id), []

        earned_at = event.occurred_at if event is not None else utcnow()
        awarded: List[AchievementDefinition] = []
        before: Dict[str, int] = {}

        def apply_rewards(avatar: Avatar) -> List[XPTransaction]:
            awarded.clear()
            before["total_xp"] = avatar.total_xp
            earned = avatar.achievement_ids
            rows = []

            for definition in definitions:
                if definition.id in earned:
                    continue
                earned.add(definition.id)
                avatar.achievements.append(EarnedAchievement(id=definition.id, earned_at=earned_at))

                rewards = definition.rewards
                if rewards.xp > 0:
                    avatar.total_xp += rewards.xp
                    rows.append(XPTransaction(
                        user_id=user_id,
                        amount=rewards.xp,
                        source=f"achievement:{definition.id}",
                        reason=f"Achievement unlocked: {definition.name}",
                        awarded_at=earned_at,
                    ))
                avatar.coins += rewards.coins
                avatar.gems += rewards.gems
                if rewards.title and rewards.title not in avatar.titles:
                    avatar.titles.append(rewards.title)

                awarded.append(definition)

            return rows

        avatar = await self.store.update_avatar(user_id, apply_rewards)

        reward_xp = avatar.total_xp - before["total_xp"]
        if reward_xp > 0:
            metrics.xp_awarded_total.labels(source_type="reward").inc(reward_xp)
        if level_of(avatar.total_xp) > level_of(before["total_xp"]):
            metrics.level_ups_total.inc()

        for definition in awarded:
            metrics.achievements_unlocked_total.labels(
                achievement_id=definition.id,
                rarity=definition.rarity.value,
            ).inc()
            logger.info(f"User {user_id} unlocked achievement: {definition.name}")

        return avatar, list(awarded)

    # ============================================
    # Streaks
    # ============================================

    async def record_activity(
        self,
        user_id: str,
        activity_date: Optional[date] = None,
        source: str = DEFAULT_SOURCE,
    ) -> StreakResult:
        """Record a study day without awarding XP"""
        activity_date = activity_date or utcnow().date()
        before: Dict[str, StreakState] = {}

        def apply_streak(avatar: Avatar) -> None:
            before["streak"] = avatar.streak
            avatar.streak = streak_tracker.record_activity(avatar.streak, activity_date)

        avatar = await self.store.update_avatar(user_id, apply_streak)

        result = StreakResult(
            avatar=avatar,
            old_streak=before["streak"],
            new_streak=avatar.streak,
            milestone=streak_tracker.milestone_reached(before["streak"], avatar.streak),
        )
        logger.info(
            f"Recorded {source} activity for user {user_id} on {activity_date}: "
            f"streak {result.new_streak.current} (longest {result.new_streak.longest})"
        )

        if result.changed:
            event = ProgressEvent(
                type=EventType.STREAK_UPDATE,
                source=source,
                activity_date=activity_date,
            )
            result.avatar, result.new_achievements = await self._after_commit(avatar, event)
        return result

    # ============================================
    # Profile
    # ============================================

    async def get_avatar(self, user_id: str) -> Avatar:
        """Return the avatar, creating it on first access"""
        return await self.store.get_or_create_avatar(user_id)

    async def update_appearance(
        self,
        user_id: str,
        appearance: Optional[Dict[str, Any]] = None,
        display_name: Optional[str] = None,
    ) -> Avatar:
        """Merge appearance keys (opaque to the engine) and optionally rename"""
        patch = dict(appearance or {})

        def apply_appearance(avatar: Avatar) -> None:
            avatar.appearance.update(patch)
            if display_name:
                avatar.display_name = display_name

        avatar = await self.store.update_avatar(user_id, apply_appearance)
        logger.info(f"Updated appearance for user {user_id}: {sorted(patch)}")

        if display_name:
            await self._publish(avatar)
        return avatar

    async def get_xp_history(self, user_id: str, limit: int = 50) -> List[XPTransaction]:
        """Most recent ledger rows first"""
        return await self.store.get_xp_transactions(user_id, limit=limit)

    # ============================================
    # Side effects
    # ============================================

    async def evaluate_event(self, user_id: str, event: ProgressEvent) -> List[AchievementDefinition]:
        """Best-effort achievement pass for events that are not XP awards (campus joins)"""
        try:
            avatar = await self.store.get_or_create_avatar(user_id)
        except Exception:
            logger.error(f"Could not load avatar {user_id} for {event.type.value} evaluation", exc_info=True)
            metrics.side_effect_failures_total.labels(side_effect="achievements").inc()
            return []

        _, awarded = await self._after_commit(avatar, event)
        return awarded

    async def _after_commit(
        self,
        avatar: Avatar,
        event: ProgressEvent,
    ) -> Tuple[Avatar, List[AchievementDefinition]]:
        awarded: List[AchievementDefinition] = []
        try:
            avatar, awarded = await self.evaluator.evaluate_and_apply(avatar, event)
        except Exception:
            logger.error(
                f"Achievement evaluation failed for user {avatar.user_id} "
                f"after {event.type.value}",
                exc_info=True
            )
            metrics.side_effect_failures_total.labels(side_effect="achievements").inc()

        await self._publish(avatar)
        return avatar, awarded

    async def _publish(self, avatar: Avatar) -> None:
        if self.leaderboard is None:
            return
        try:
            await self.leaderboard.upsert(
                avatar.user_id,
                avatar.display_name,
                avatar.total_xp,
                avatar.skill_xp_map(),
            )
        except Exception:
            logger.error(f"Leaderboard upsert failed for user {avatar.user_id}", exc_info=True)
            metrics.side_effect_failures_total.labels(side_effect="leaderboard").inc()


def avatar_projection(avatar: Avatar, today: Optional[date] = None) -> Dict[str, Any]:
    """Full read model of an avatar with derived levels"""
    today = today or utcnow().date()
    level = level_for_xp(avatar.total_xp)

    return {
        "user_id": avatar.user_id,
        "display_name": avatar.display_name,
        "total_xp": avatar.total_xp,
        "level": level.level,
        "level_progress": level.to_dict(),
        "coins": avatar.coins,
        "gems": avatar.gems,
        "skills": {
            skill.value: {"xp": progress.xp, "level": level_of(progress.xp)}
            for skill, progress in sorted(avatar.skills.items(), key=lambda item: item[0].value)
        },
        "achievements": [
            {"id": earned.id, "earned_at": earned.earned_at.isoformat()}
            for earned in avatar.achievements
        ],
        "titles": list(avatar.titles),
        "streak": {
            "current": streak_tracker.effective_current(avatar.streak, today),
            "longest": avatar.streak.longest,
            "last_activity_date": (
                avatar.streak.last_activity_date.isoformat()
                if avatar.streak.last_activity_date else None
            ),
            "active": streak_tracker.is_streak_active(avatar.streak, today),
        },
        "appearance": dict(avatar.appearance),
        "created_at": avatar.created_at.isoformat(),
        "updated_at": avatar.updated_at.isoformat(),
    }
