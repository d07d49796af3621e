"""
Read-side analytics schemas.

GET  /analytics/users/{user_id}/today         → TodayMoodResponse
GET  /analytics/users/{user_id}/happiest-day  → DayScoreResponse | null
GET  /analytics/users/{user_id}/lowest-day    → DayScoreResponse | null
GET  /analytics/users/{user_id}/trend         → TrendResponse
GET  /analytics/users/{user_id}/tags          → TagStatListResponse
GET  /analytics/users/{user_id}/streaks       → StreakResponse
GET  /analytics/users/{user_id}/mood-highlights → MoodHighlightsResponse
GET  /analytics/users/{user_id}/insights      → InsightListResponse
POST /analytics/users/{user_id}/insights      → GenerateInsightRequest → InsightResponse
"""
from __future__ import annotations

from datetime import date
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class TodayMoodResponse(BaseModel):
    date: str
    entries_count: int
    avg_mood_score: Optional[float] = None
    dominant_mood: Optional[str] = None
    mood_counts: Optional[dict[str, int]] = None


class DayScoreResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    date: str
    avg_mood_score: float
    entries_count: int


class DayScoreEnvelope(BaseModel):
    data: Optional[DayScoreResponse] = None


class TrendPointResponse(BaseModel):
    date: str
    avg: Optional[float] = None


class TrendResponse(BaseModel):
    range_start: str
    range_end: str
    granularity: str = "day"
    cached: bool = Field(description="False when the series was computed from entries on read.")
    data: list[TrendPointResponse]


class TagStatResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    tag: str
    occurrences: int
    avg_mood_score: Optional[float] = None
    last_seen: Optional[str] = None


class TagStatListResponse(BaseModel):
    total: int
    items: list[TagStatResponse]


class StreakResponse(BaseModel):
    current_streak: int
    longest_streak: int
    last_written_date: Optional[str] = None


class HighlightDayResponse(BaseModel):
    date: str
    avg_mood_score: float
    entries_count: int


class PositiveTagResponse(BaseModel):
    tag: str
    avg_mood_score: float
    occurrences: int


class MoodHighlightsResponse(BaseModel):
    date_from: str
    date_to: str
    happiest_days: list[HighlightDayResponse]
    top_positive_tags: list[PositiveTagResponse]
    note: str = Field(description="One-line summary built from the highlights.")


class InsightResponse(BaseModel):
    id: Optional[int] = None
    date_from: str
    date_to: str
    insight_type: str
    summary: str
    structured: Optional[dict[str, Any]] = None
    generated_by: str
    generated_at: Optional[str] = None


class InsightListResponse(BaseModel):
    items: list[InsightResponse]


class GenerateInsightRequest(BaseModel):
    date_from: date = Field(examples=["2026-10-01"])
    date_to: date = Field(examples=["2026-10-17"])

    @model_validator(mode="after")
    def _ordered(self):
        if self.date_from > self.date_to:
            raise ValueError("date_from must not be after date_to")
        return self
