"""
Achievement Catalog

Static set of achievement definitions loaded at startup. Each definition
carries a pure predicate over (avatar snapshot, triggering event) that is
evaluated against the post-event state, so cumulative goals ("reach level
10") and event-specific ones ("study before 8 AM") share one call site.

Categories:
- study / academic / creative: overall and per-skill level goals
- streak: consecutive study days
- exploration: campus visits
- special: time-of-day and secret achievements

New achievements are added here; engine code never changes for them.
"""

from typing import Dict, Iterable, List, Optional

from progression.gamification.level_curve import level_of
from progression.models.achievement import (
    AchievementCategory,
    AchievementDefinition,
    EventType,
    Predicate,
    ProgressEvent,
    Rarity,
    Rewards,
)
from progression.models.avatar import Avatar, Skill


# ============================================
# Predicate Builders
# ============================================

def level_at_least(level: int) -> Predicate:
    return lambda avatar, event: level_of(avatar.total_xp) >= level


def total_xp_at_least(xp: int) -> Predicate:
    return lambda avatar, event: avatar.total_xp >= xp


def skill_level_at_least(skill: Skill, level: int) -> Predicate:
    return lambda avatar, event: level_of(avatar.skill_xp(skill)) >= level


def streak_at_least(days: int) -> Predicate:
    return lambda avatar, event: avatar.streak.current >= days


def skills_studied_at_least(count: int) -> Predicate:
    return lambda avatar, event: sum(1 for p in avatar.skills.values() if p.xp > 0) >= count


def study_session(avatar: Avatar, event: ProgressEvent) -> bool:
    return event.type == EventType.XP_AWARD and event.source == "study_session"


def study_session_before(hour: int) -> Predicate:
    return lambda avatar, event: study_session(avatar, event) and event.occurred_at.hour < hour


def study_session_from(hour: int) -> Predicate:
    return lambda avatar, event: study_session(avatar, event) and event.occurred_at.hour >= hour


def joined_location(location_id: str) -> Predicate:
    return lambda avatar, event: (
        event.type == EventType.CAMPUS_JOIN and event.location_id == location_id
    )


def any_campus_join(avatar: Avatar, event: ProgressEvent) -> bool:
    return event.type == EventType.CAMPUS_JOIN


# ============================================
# Default Definitions
# ============================================

def _skill_master(achievement_id: str, name: str, icon: str, skill: Skill) -> AchievementDefinition:
    return AchievementDefinition(
        id=achievement_id,
        name=name,
        description=f"Reach level 10 in {skill.value.capitalize()}",
        icon=icon,
        category=AchievementCategory.ACADEMIC,
        rarity=Rarity.RARE,
        predicate=skill_level_at_least(skill, 10),
        rewards=Rewards(xp=500, coins=100, gems=10, title=name),
        priority=50,
    )


DEFAULT_ACHIEVEMENTS: List[AchievementDefinition] = [
    AchievementDefinition(
        id="first_study_session",
        name="First Steps",
        description="Complete your first study session",
        icon="🎓",
        category=AchievementCategory.STUDY,
        predicate=study_session,
        rewards=Rewards(xp=50, coins=10),
        priority=100,
    ),
    AchievementDefinition(
        id="study_streak_7",
        name="Week Warrior",
        description="Maintain a 7-day study streak",
        icon="🔥",
        category=AchievementCategory.STREAK,
        rarity=Rarity.UNCOMMON,
        predicate=streak_at_least(7),
        rewards=Rewards(xp=200, coins=50, gems=5),
        priority=90,
    ),
    AchievementDefinition(
        id="study_streak_30",
        name="Month Master",
        description="Maintain a 30-day study streak",
        icon="👑",
        category=AchievementCategory.STREAK,
        rarity=Rarity.EPIC,
        predicate=streak_at_least(30),
        rewards=Rewards(xp=1000, coins=200, gems=25, title="Month Master"),
        priority=80,
    ),
    _skill_master("math_expert", "Math Wizard", "🧮", Skill.MATHEMATICS),
    _skill_master("science_explorer", "Science Explorer", "🔬", Skill.SCIENCE),
    _skill_master("word_master", "Word Master", "📚", Skill.ENGLISH),
    _skill_master("history_buff", "History Buff", "🏛️", Skill.HISTORY),
    _skill_master("code_crafter", "Code Crafter", "💻", Skill.CODING),
    AchievementDefinition(
        id="level_5",
        name="Rising Star",
        description="Reach level 5",
        icon="⭐",
        category=AchievementCategory.STUDY,
        predicate=level_at_least(5),
        rewards=Rewards(xp=100, coins=25),
        priority=70,
    ),
    AchievementDefinition(
        id="level_10",
        name="Bright Mind",
        description="Reach level 10",
        icon="🌟",
        category=AchievementCategory.STUDY,
        rarity=Rarity.UNCOMMON,
        predicate=level_at_least(10),
        rewards=Rewards(xp=300, coins=75, gems=5),
        priority=60,
    ),
    AchievementDefinition(
        id="level_25",
        name="Genius",
        description="Reach level 25",
        icon="🧠",
        category=AchievementCategory.STUDY,
        rarity=Rarity.EPIC,
        predicate=level_at_least(25),
        rewards=Rewards(xp=1000, coins=250, gems=20, title="Genius"),
        priority=40,
    ),
    AchievementDefinition(
        id="level_50",
        name="Legendary Scholar",
        description="Reach level 50",
        icon="🏆",
        category=AchievementCategory.STUDY,
        rarity=Rarity.LEGENDARY,
        predicate=level_at_least(50),
        rewards=Rewards(xp=2500, coins=500, gems=50, title="Legendary Scholar"),
        priority=30,
    ),
    AchievementDefinition(
        id="xp_10000",
        name="Ten Thousand Club",
        description="Earn 10,000 XP in total",
        icon="💎",
        category=AchievementCategory.STUDY,
        rarity=Rarity.RARE,
        predicate=total_xp_at_least(10_000),
        rewards=Rewards(xp=250, coins=100, gems=10),
        priority=35,
    ),
    AchievementDefinition(
        id="renaissance_learner",
        name="Renaissance Learner",
        description="Earn XP in five different subjects",
        icon="🧭",
        category=AchievementCategory.ACADEMIC,
        rarity=Rarity.UNCOMMON,
        predicate=skills_studied_at_least(5),
        rewards=Rewards(xp=200, coins=50, gems=5),
        priority=45,
    ),
    AchievementDefinition(
        id="artist",
        name="Artist",
        description="Reach level 5 in Art",
        icon="🎨",
        category=AchievementCategory.CREATIVE,
        rarity=Rarity.UNCOMMON,
        predicate=skill_level_at_least(Skill.ART, 5),
        rewards=Rewards(xp=200, coins=50, gems=5),
        priority=20,
    ),
    AchievementDefinition(
        id="musician",
        name="Musician",
        description="Reach level 5 in Music",
        icon="🎵",
        category=AchievementCategory.CREATIVE,
        rarity=Rarity.UNCOMMON,
        predicate=skill_level_at_least(Skill.MUSIC, 5),
        rewards=Rewards(xp=200, coins=50, gems=5),
        priority=20,
    ),
    AchievementDefinition(
        id="campus_newcomer",
        name="Campus Newcomer",
        description="Join your first campus location",
        icon="🏫",
        category=AchievementCategory.EXPLORATION,
        predicate=any_campus_join,
        rewards=Rewards(xp=25, coins=10),
        priority=15,
    ),
    AchievementDefinition(
        id="lab_access",
        name="Lab Partner",
        description="Enter the Science Laboratory",
        icon="🧪",
        category=AchievementCategory.EXPLORATION,
        rarity=Rarity.UNCOMMON,
        predicate=joined_location("science_lab"),
        rewards=Rewards(xp=75, coins=20),
        priority=10,
    ),
    AchievementDefinition(
        id="early_bird",
        name="Early Bird",
        description="Study before 8 AM",
        icon="🌅",
        category=AchievementCategory.SPECIAL,
        rarity=Rarity.RARE,
        secret=True,
        predicate=study_session_before(8),
        rewards=Rewards(xp=150, coins=30, gems=3),
    ),
    AchievementDefinition(
        id="night_owl",
        name="Night Owl",
        description="Study after 10 PM",
        icon="🦉",
        category=AchievementCategory.SPECIAL,
        rarity=Rarity.RARE,
        secret=True,
        predicate=study_session_from(22),
        rewards=Rewards(xp=150, coins=30, gems=3),
    ),
]


class AchievementCatalog:
    """Read-only registry of achievement definitions, keyed by id"""

    def __init__(self, definitions: Optional[Iterable[AchievementDefinition]] = None):
        definitions = list(DEFAULT_ACHIEVEMENTS if definitions is None else definitions)
        by_id: Dict[str, AchievementDefinition] = {}
        for definition in definitions:
            if definition.id in by_id:
                raise ValueError(f"Duplicate achievement id: {definition.id}")
            by_id[definition.id] = definition
        self._by_id = by_id

    def __iter__(self):
        return iter(self._by_id.values())

    def __len__(self) -> int:
        return len(self._by_id)

    def __contains__(self, achievement_id: str) -> bool:
        return achievement_id in self._by_id

    def get(self, achievement_id: str) -> Optional[AchievementDefinition]:
        return self._by_id.get(achievement_id)

    def list(
        self,
        category: Optional[AchievementCategory] = None,
        include_secret: bool = False,
        earned_ids: Iterable[str] = (),
        secret_only: bool = False,
    ) -> List[AchievementDefinition]:
        """
        List definitions for display, highest priority first

        Secret achievements are hidden unless already earned or the caller
        explicitly asks for them (include_secret / secret_only).
        """
        earned = set(earned_ids)
        result = []
        for definition in self._by_id.values():
            if category is not None and definition.category != category:
                continue
            if secret_only and not definition.secret:
                continue
            if definition.secret and not (include_secret or secret_only or definition.id in earned):
                continue
            result.append(definition)

        result.sort(key=lambda d: (-d.priority, d.id))
        return result
