"""
Achievement Evaluator

Checks the catalog against a post-event avatar snapshot and awards every
match exactly once. Awards go through XPEngine.grant_rewards, whose store-side
guard skips ids already earned, so re-running an evaluation (or running it on
a stale snapshot) never double-awards.

Reward XP can itself satisfy cumulative goals (``level_5`` after a big reward),
so evaluation repeats with a ``reward`` event until nothing new is earned.
"""

from typing import TYPE_CHECKING, List, Optional, Tuple
import logging

from progression.gamification.achievement_catalog import AchievementCatalog
from progression.models.achievement import AchievementDefinition, EventType, ProgressEvent
from progression.models.avatar import Avatar

if TYPE_CHECKING:
    from progression.gamification.xp_engine import XPEngine

logger = logging.getLogger(__name__)


class AchievementEvaluator:
    """Exactly-once achievement awarding"""

    def __init__(self, catalog: AchievementCatalog, engine: Optional["XPEngine"] = None):
        self.catalog = catalog
        self.engine = engine

    def find_unearned(self, avatar: Avatar, event: ProgressEvent) -> List[AchievementDefinition]:
        """Definitions whose predicate holds and that the avatar does not hold yet"""
        earned = avatar.achievement_ids
        matches = []

        for definition in self.catalog:
            if definition.id in earned:
                continue
            try:
                if definition.predicate(avatar, event):
                    matches.append(definition)
            except Exception:
                # One broken predicate must not block the rest of the catalog
                logger.error(f"Predicate for achievement {definition.id} raised", exc_info=True)

        return matches

    async def evaluate(self, avatar: Avatar, event: ProgressEvent) -> List[AchievementDefinition]:
        """Award every newly satisfied achievement; returns what was actually awarded"""
        _, awarded = await self.evaluate_and_apply(avatar, event)
        return awarded

    async def evaluate_and_apply(
        self,
        avatar: Avatar,
        event: ProgressEvent,
    ) -> Tuple[Avatar, List[AchievementDefinition]]:
        """Like evaluate, also returning the avatar as committed after the rewards"""
        if self.engine is None:
            raise RuntimeError("AchievementEvaluator has no engine to grant rewards through")

        awarded: List[AchievementDefinition] = []

        for _ in range(len(self.catalog)):
            matches = self.find_unearned(avatar, event)
            if not matches:
                break

            avatar, granted = await self.engine.grant_rewards(avatar.user_id, matches, event)
            awarded.extend(granted)
            if not granted:
                break

            event = ProgressEvent(
                type=EventType.REWARD,
                amount=sum(d.rewards.xp for d in granted),
                occurred_at=event.occurred_at,
            )

        if awarded:
            logger.info(
                f"User {avatar.user_id} earned {len(awarded)} achievement(s): "
                f"{', '.join(d.id for d in awarded)}"
            )
        return avatar, awarded
