"""
Operator schemas for the batch aggregator.

POST /pipeline/run       → RunAcceptedResponse
POST /pipeline/backfill  → BackfillRequest → RunAcceptedResponse
GET  /pipeline/status    → PipelineStatusResponse
"""
from __future__ import annotations

from datetime import date
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class BackfillRequest(BaseModel):
    """Either an explicit range or a trailing number of days (ending today)."""
    start_date: Optional[date] = Field(default=None, examples=["2025-10-18"])
    end_date: Optional[date] = Field(default=None, examples=["2026-10-17"])
    days: Optional[int] = Field(
        default=None, ge=1,
        description="Trailing window ending today. Ignored when start_date/end_date are set.",
        examples=[365],
    )

    @model_validator(mode="after")
    def _range_or_days(self):
        if (self.start_date is None) != (self.end_date is None):
            raise ValueError("start_date and end_date must be given together")
        return self


class RunAcceptedResponse(BaseModel):
    accepted: bool = True
    start_date: str
    end_date: str
    message: str


class PipelineStatusResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    name: str
    is_running: bool
    started_at: Optional[str] = None
    finished_at: Optional[str] = None
    last_status: Optional[str] = Field(default=None, description='"ok" | "partial" | "failed"')
    last_window_start: Optional[str] = None
    last_window_end: Optional[str] = None
    last_error: Optional[str] = None
