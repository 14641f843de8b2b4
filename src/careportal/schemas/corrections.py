"""Admin correction request schemas."""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class TimeAdjustmentRequest(BaseModel):
    employee_id: Optional[str] = Field(default=None, alias="userId")
    date: Optional[str] = None
    assignment_id: Optional[str] = Field(default=None, alias="assignmentId")
    delta_minutes: Any = Field(default=None, alias="deltaMinutes")
    reason: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)


class KmAdjustmentRequest(BaseModel):
    employee_id: Optional[str] = Field(default=None, alias="userId")
    date: Optional[str] = None
    delta_km: Any = Field(default=None, alias="deltaKm")
    reason: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)
