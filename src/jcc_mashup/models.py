"""Pydantic models for cached sessions and schedule requests.

All data structures use Pydantic v2 for validation, serialization, and type safety.
"""

import time
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


class SessionRecord(BaseModel):
    """Upstream cookies captured by one successful login.

    Persisted as {"cookies": {...}, "timestamp": <epoch ms>}.
    """

    cookies: dict[str, str]
    timestamp: int = Field(default_factory=now_ms)  # creation time, epoch ms

    def age_ms(self, now: int | None = None) -> int:
        return (now if now is not None else now_ms()) - self.timestamp

    def is_expired(self, max_age_ms: int, now: int | None = None) -> bool:
        return self.age_ms(now) > max_age_ms


class BranchMapping(BaseModel):
    """One branch entry of the portal's all_mapped_branches list."""

    model_config = ConfigDict(extra="allow")

    gxp_location_id: int
    branch_id: int
    branch_name: str = ""


class ScheduleMappings(BaseModel):
    """ID mappings the class-list endpoint insists on receiving back.

    Scraped from the object literal embedded in the schedule page. Instructor
    and area entries are relayed as-is, so they stay untyped.
    """

    model_config = ConfigDict(extra="ignore")

    all_mapped_instructor: list[dict[str, Any]]
    all_mapped_areas: list[dict[str, Any]]
    all_mapped_branches: list[BranchMapping]
    gxp_account_id: int
    any_exerciser_id_of_unit: int | None = None


class ScheduleFilters(BaseModel):
    """Filter block of a class-list request; only the date varies."""

    date: str  # YYYY-MM-DD
    gxp_location_id: int
    gxp_instructor_ids: list[int] = Field(default_factory=list)
    gxp_studio_ids: list[int] = Field(default_factory=list)
    gxp_class_name_ids: list[int] = Field(default_factory=list)
    gxp_category_ids: list[int] = Field(default_factory=list)


class ScheduleRequest(BaseModel):
    """Body POSTed to ClassSchedule.mvc/get_gxp_classes."""

    all_mapped_areas: list[dict[str, Any]]
    all_mapped_instructor: list[dict[str, Any]]
    all_mapped_branches: list[BranchMapping]
    filters: ScheduleFilters
    gxp_account_id: int
    any_exerciser_id_of_unit: int | None = None
    page: int = 1
