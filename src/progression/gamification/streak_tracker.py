"""
Study Streak Tracking

Counts consecutive calendar days with recorded study activity.

Rules:
- First activity ever: streak starts at 1
- Same day as the last activity: no change (re-recording is idempotent)
- Day after the last activity: streak continues (+1)
- Any larger gap: streak resets to 1
- A date before the last recorded activity is ignored; the XP for that
  activity is still awarded by the caller, only the streak skips it

Calendar days come from the caller, already resolved in the user's timezone.
"""

from datetime import date, timedelta
import logging

from progression.models.avatar import StreakState

logger = logging.getLogger(__name__)

STREAK_MILESTONES = (7, 14, 30, 100)


def record_activity(state: StreakState, activity_date: date) -> StreakState:
    """
    Apply one day of activity to a streak

    Returns a new StreakState; ``state`` is never modified.
    """
    last_date = state.last_activity_date

    if last_date is None:
        current = 1

    elif activity_date == last_date:
        return state

    elif activity_date < last_date:
        logger.debug(
            f"Ignoring out-of-order activity on {activity_date} "
            f"(last recorded {last_date})"
        )
        return state

    elif activity_date == last_date + timedelta(days=1):
        current = state.current + 1

    else:
        gap_days = (activity_date - last_date).days
        logger.debug(f"Streak broken after {state.current} days, gap was {gap_days} days")
        current = 1

    return StreakState(
        current=current,
        longest=max(state.longest, current),
        last_activity_date=activity_date,
    )


def is_streak_active(state: StreakState, today: date) -> bool:
    """True when the streak can still be continued (activity today or yesterday)"""
    if state.last_activity_date is None or state.current == 0:
        return False
    return state.last_activity_date >= today - timedelta(days=1)


def effective_current(state: StreakState, today: date) -> int:
    """Streak length as seen on ``today``; a lapsed streak reads as 0"""
    return state.current if is_streak_active(state, today) else 0


def milestone_reached(old: StreakState, new: StreakState) -> int:
    """Return the milestone crossed by this update, or 0"""
    for milestone in STREAK_MILESTONES:
        if old.current < milestone <= new.current:
            return milestone
    return 0
