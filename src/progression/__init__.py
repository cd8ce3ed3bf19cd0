"""Study progression engine: XP, levels, streaks, achievements, leaderboards and campus presence"""

__version__ = "1.0.0"
