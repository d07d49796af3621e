from .user import User
from .entry import Entry
from .daily_mood_aggregate import DailyMoodAggregate
from .tag_mood_stat import TagMoodStat
from .writing_streak import WritingStreak
from .mood_trend_cache import MoodTrendCache
from .mood_insight import MoodInsight
from .pipeline_run import PipelineRun

__all__ = [
    "User",
    "Entry",
    "DailyMoodAggregate",
    "TagMoodStat",
    "WritingStreak",
    "MoodTrendCache",
    "MoodInsight",
    "PipelineRun",
]
