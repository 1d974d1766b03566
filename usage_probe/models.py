"""Pydantic models for the canonical usage snapshot and the web API payloads."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Literal

from pydantic import (
    BaseModel,
    ConfigDict,
    ValidationError,
    ValidatorFunctionWrapHandler,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel


class UsageCategory(str, Enum):
    """Quota category, decides the fallback reset time."""

    SESSION = "session"
    WEEKLY = "weekly"
    MODEL = "model"


def clamp_percentage(value: float) -> float:
    """Clamp a percentage into [0, 100]."""
    return max(0.0, min(100.0, float(value)))


# ── Canonical snapshot ───────────────────────────────────────────────────────


class UsageSnapshot(BaseModel):
    """One immutable result of a usage fetch, whichever strategy produced it.

    Serialized with camelCase keys (``model_dump(by_alias=True)``) for the UI.
    """

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    source: Literal["web", "cli"]

    session_tokens_used: int = 0  # unknown upstream
    session_limit: int = 0
    session_percentage: float
    session_reset_time: datetime
    session_reset_text: str | None = None

    weekly_tokens_used: int = 0
    weekly_limit: int = 0
    weekly_percentage: float
    weekly_reset_time: datetime
    weekly_reset_text: str | None = None

    opus_weekly_tokens_used: int = 0
    opus_weekly_percentage: float
    opus_reset_text: str | None = None

    cost_used: float | None = None
    cost_limit: float | None = None
    cost_currency: str | None = None

    last_updated: datetime
    user_timezone: str

    @field_validator("session_percentage", "weekly_percentage", "opus_weekly_percentage")
    @classmethod
    def _clamp(cls, v: float) -> float:
        return clamp_percentage(v)

    @model_validator(mode="after")
    def _cost_fields_together(self) -> UsageSnapshot:
        present = [f is not None for f in (self.cost_used, self.cost_limit, self.cost_currency)]
        if any(present) and not all(present):
            raise ValueError("cost_used, cost_limit and cost_currency must be set together")
        return self


# ── claude.ai web API payloads ───────────────────────────────────────────────


class Organization(BaseModel):
    model_config = ConfigDict(extra="ignore")

    uuid: str
    name: str = ""
    capabilities: list[str] = []


class UsageWindow(BaseModel):
    """One ``five_hour`` / ``seven_day`` / ``seven_day_opus`` block."""

    model_config = ConfigDict(extra="ignore")

    utilization: float | None = None
    resets_at: datetime | None = None

    @field_validator("utilization", mode="before")
    @classmethod
    def _numbers_only(cls, v: object) -> object:
        # Upstream sometimes sends strings or nulls here; only numbers count
        if isinstance(v, bool) or not isinstance(v, (int, float)):
            return None
        return v

    @field_validator("resets_at", mode="wrap")
    @classmethod
    def _lenient_timestamp(cls, v: object, handler: ValidatorFunctionWrapHandler) -> datetime | None:
        # A malformed timestamp falls back to the category default
        try:
            return handler(v)
        except ValidationError:
            return None


class UsageResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    five_hour: UsageWindow | None = None
    seven_day: UsageWindow | None = None
    seven_day_opus: UsageWindow | None = None


class OverageSpendLimit(BaseModel):
    model_config = ConfigDict(extra="ignore")

    monthly_credit_limit: float | None = None
    currency: str | None = None
    used_credits: float | None = None
    is_enabled: bool | None = None


# ── Terminal parse results ───────────────────────────────────────────────────


class SectionUsage(BaseModel):
    """Percentage and reset text scraped from one section of the /usage screen.

    ``reset_text`` is the raw line (fed to the time resolver);
    ``display_reset_text`` has the trailing ``(Time/Zone)`` removed.
    """

    percentage: float = 0.0
    reset_text: str = ""
    display_reset_text: str = ""


class TerminalUsage(BaseModel):
    session: SectionUsage = SectionUsage()
    weekly: SectionUsage = SectionUsage()
    model: SectionUsage = SectionUsage()


# ── Produced-interface results ───────────────────────────────────────────────


class SaveResult(BaseModel):
    success: bool
    error: str | None = None


class FetchFailure(BaseModel):
    error: str
    kind: str
    requires_reauth: bool = False
