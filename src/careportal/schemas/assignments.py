"""Assignment, time entry and km entry request schemas."""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..config import settings


class AckRequest(BaseModel):
    action: str
    reason: Optional[str] = None


class SignatureRequest(BaseModel):
    """Either a finished data URI or raw strokes recorded in CSS pixels."""

    signature_data: Optional[str] = Field(default=None, alias="signatureData")
    strokes: Optional[List[List[List[float]]]] = None
    width: Optional[float] = Field(default=None, gt=0, le=settings.signature_max_css_width)
    height: Optional[float] = Field(default=None, gt=0, le=settings.signature_max_css_height)
    device_pixel_ratio: float = Field(
        default=1.0, gt=0, le=settings.signature_max_pixel_ratio, alias="devicePixelRatio"
    )

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("strokes")
    @classmethod
    def _limit_points(cls, value: Optional[List[List[List[float]]]]) -> Optional[List[List[List[float]]]]:
        if value is not None and sum(len(stroke) for stroke in value) > settings.signature_max_points:
            raise ValueError(f"at most {settings.signature_max_points} points per signature")
        return value


class KmPatchRequest(BaseModel):
    kilometers: float | str | None = None


class TimeEntryRequest(BaseModel):
    assignment_id: Optional[str] = Field(default=None, alias="assignmentId")
    date: Optional[str] = None
    minutes: Optional[float] = None
    start_at: Optional[str] = Field(default=None, alias="startAt")
    end_at: Optional[str] = Field(default=None, alias="endAt")
    notes: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)


class KmEntryRequest(BaseModel):
    date: Optional[str] = None
    km: float | str | None = None
