"""
Leveling Curve

Maps cumulative XP to a level. Every level costs 100 XP more than the one
before it:

    threshold(n) = 100 * n * (n - 1) / 2

    Level 1:     0 XP
    Level 2:   100 XP
    Level 3:   300 XP
    Level 4:   600 XP
    Level 10: 4500 XP

The inverse is closed-form (integer square root), so a level lookup costs the
same at level 2 as at level 200. The same curve drives overall and per-skill
levels. Callers always re-derive level from total XP; a stored level counter
is never trusted.
"""

from dataclasses import dataclass
from math import isqrt
from typing import Any, Dict

XP_PER_LEVEL_STEP = 100


@dataclass(frozen=True)
class LevelInfo:
    level: int
    xp_into_level: int
    xp_to_next: int
    next_threshold: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "current_level": self.level,
            "xp_in_current_level": self.xp_into_level,
            "xp_to_next_level": self.xp_to_next,
            "total_xp_for_next_level": self.next_threshold,
        }


def xp_threshold(level: int) -> int:
    """Cumulative XP needed to reach ``level``"""
    if level <= 1:
        return 0
    return XP_PER_LEVEL_STEP * level * (level - 1) // 2


def level_for_xp(total_xp: int) -> LevelInfo:
    """
    Calculate level and progress from total XP

    Negative XP is treated as zero (level 1).
    """
    xp = max(0, int(total_xp))

    # Largest n with 50 * n * (n - 1) <= xp, i.e. (2n - 1)^2 <= 4k + 1
    k = xp // (XP_PER_LEVEL_STEP // 2)
    level = (isqrt(4 * k + 1) + 1) // 2

    current_threshold = xp_threshold(level)
    next_threshold = xp_threshold(level + 1)

    return LevelInfo(
        level=level,
        xp_into_level=xp - current_threshold,
        xp_to_next=next_threshold - xp,
        next_threshold=next_threshold,
    )


def level_of(total_xp: int) -> int:
    return level_for_xp(total_xp).level
