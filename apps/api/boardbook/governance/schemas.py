"""
Governance Pydantic Schemas

API request/response schemas for meetings, minutes, motions, annotations
and review flags.
"""

from datetime import date as calendar_date
from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from boardbook.governance.models import (
    AnnotationTargetType,
    FlagTargetType,
    MeetingType,
    MinutesStatus,
    MotionResult,
    ReviewFlagStatus,
    ReviewFlagType,
)


class PaginatedResponse(BaseModel):
    """Generic paginated response."""

    items: list[Any]
    total: int
    page: int
    page_size: int
    pages: int


# =============================================================================
# Meeting Schemas
# =============================================================================


class MeetingBase(BaseModel):
    """Base schema for meeting."""

    title: str | None = Field(default=None, min_length=1, max_length=200)
    location: str | None = Field(default=None, max_length=200)
    attendance_count: int | None = Field(default=None, ge=0)
    quorum_met: bool = True


class MeetingCreate(MeetingBase):
    """Schema for creating a meeting."""

    date: calendar_date
    type: MeetingType


class MeetingUpdate(BaseModel):
    """Schema for updating a meeting. Date and type are fixed."""

    model_config = ConfigDict(extra="forbid")

    title: str | None = Field(default=None, min_length=1, max_length=200)
    location: str | None = Field(default=None, max_length=200)
    attendance_count: int | None = Field(default=None, ge=0)
    quorum_met: bool | None = None


class MeetingResponse(MeetingBase):
    """Schema for meeting response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    date: calendar_date
    type: MeetingType
    created_by_id: UUID | None = None
    created_at: datetime
    updated_at: datetime


class MinutesBrief(BaseModel):
    """Latest minutes info embedded in meeting lists."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    version: int
    status: MinutesStatus


class MeetingListItem(BaseModel):
    """Meeting with its read-side summary."""

    meeting: MeetingResponse
    latest_minutes: MinutesBrief | None = None
    motion_count: int = 0


# =============================================================================
# Minutes Schemas
# =============================================================================


class MinutesCreate(BaseModel):
    """Schema for creating minutes."""

    content: dict[str, Any]
    summary: str | None = Field(default=None, max_length=2000)


class MinutesUpdate(BaseModel):
    """Schema for editing minutes content."""

    content: dict[str, Any] | None = None
    summary: str | None = Field(default=None, max_length=2000)


class MinutesRevisionCreate(BaseModel):
    """Schema for starting a new round of minutes from an earlier version."""

    from_version_id: UUID
    content: dict[str, Any] | None = None


class MinutesApproveRequest(BaseModel):
    """Schema for approving submitted minutes."""

    notes: str | None = Field(default=None, max_length=2000)


class MinutesReviseRequest(BaseModel):
    """Schema for sending submitted minutes back."""

    review_notes: str = Field(min_length=1, max_length=2000)


class MinutesResponse(BaseModel):
    """Schema for minutes response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    meeting_id: UUID
    version: int
    status: MinutesStatus
    content: dict[str, Any]
    summary: str | None = None
    review_notes: str | None = None
    approval_notes: str | None = None
    based_on_id: UUID | None = None
    superseded_at: datetime | None = None
    created_by_id: UUID | None = None
    last_edited_by_id: UUID | None = None
    submitted_at: datetime | None = None
    submitted_by_id: UUID | None = None
    reviewed_at: datetime | None = None
    reviewed_by_id: UUID | None = None
    approved_at: datetime | None = None
    approved_by_id: UUID | None = None
    published_at: datetime | None = None
    published_by_id: UUID | None = None
    archived_at: datetime | None = None
    archived_by_id: UUID | None = None
    created_at: datetime
    updated_at: datetime


# =============================================================================
# Motion Schemas
# =============================================================================


class MotionCreate(BaseModel):
    """Schema for creating a motion."""

    motion_text: str = Field(min_length=1, max_length=5000)
    moved_by_id: UUID | None = None
    seconded_by_id: UUID | None = None


class MotionUpdate(BaseModel):
    """Schema for updating a motion. Tallies go through the vote endpoint."""

    model_config = ConfigDict(extra="forbid")

    motion_text: str | None = Field(default=None, min_length=1, max_length=5000)
    moved_by_id: UUID | None = None
    seconded_by_id: UUID | None = None
    result: MotionResult | None = None
    result_notes: str | None = Field(default=None, max_length=1000)


class RecordVoteRequest(BaseModel):
    """Schema for recording a vote."""

    votes_yes: int = Field(ge=0)
    votes_no: int = Field(ge=0)
    votes_abstain: int = Field(ge=0)
    result: MotionResult
    result_notes: str | None = Field(default=None, max_length=1000)


class MotionResponse(BaseModel):
    """Schema for motion response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    meeting_id: UUID
    motion_number: int
    motion_text: str
    moved_by_id: UUID | None = None
    seconded_by_id: UUID | None = None
    votes_yes: int
    votes_no: int
    votes_abstain: int
    result: MotionResult | None = None
    result_notes: str | None = None
    created_by_id: UUID | None = None
    created_at: datetime
    updated_at: datetime


class MotionStatsResponse(BaseModel):
    """Motion counts by result for a meeting."""

    total: int
    passed: int
    failed: int
    tabled: int
    withdrawn: int
    pending: int


# =============================================================================
# Annotation Schemas
# =============================================================================


class AnnotationCreate(BaseModel):
    """Schema for creating an annotation."""

    target_type: AnnotationTargetType
    target_id: UUID
    motion_id: UUID | None = None
    anchor: str | None = Field(default=None, max_length=500)
    body: str = Field(min_length=1, max_length=10000)
    is_published: bool = False


class AnnotationUpdate(BaseModel):
    """Schema for updating an annotation."""

    model_config = ConfigDict(extra="forbid")

    anchor: str | None = Field(default=None, max_length=500)
    body: str | None = Field(default=None, min_length=1, max_length=10000)
    is_published: bool | None = None


class AnnotationResponse(BaseModel):
    """Schema for annotation response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    target_type: AnnotationTargetType
    target_id: UUID
    motion_id: UUID | None = None
    anchor: str | None = None
    body: str
    is_published: bool
    created_by_id: UUID | None = None
    created_at: datetime
    updated_at: datetime


class AnnotationCountsResponse(BaseModel):
    """Annotation counts for dashboard badges."""

    total: int
    published: int
    unpublished: int


# =============================================================================
# Review Flag Schemas
# =============================================================================


class ReviewFlagCreate(BaseModel):
    """Schema for raising a review flag."""

    target_type: FlagTargetType
    target_id: UUID
    flag_type: ReviewFlagType
    title: str = Field(min_length=1, max_length=200)
    notes: str | None = Field(default=None, max_length=5000)
    due_date: datetime | None = None


class ReviewFlagUpdate(BaseModel):
    """Schema for updating a review flag."""

    model_config = ConfigDict(extra="forbid")

    title: str | None = Field(default=None, min_length=1, max_length=200)
    notes: str | None = Field(default=None, max_length=5000)
    due_date: datetime | None = None
    status: ReviewFlagStatus | None = None


class ResolveFlagRequest(BaseModel):
    """Schema for resolving or dismissing a flag."""

    # Emptiness is checked by the service so the error kind stays consistent
    resolution: str | None = Field(default=None, max_length=5000)


class ReviewFlagResponse(BaseModel):
    """Schema for review flag response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    target_type: FlagTargetType
    target_id: UUID
    flag_type: ReviewFlagType
    status: ReviewFlagStatus
    title: str
    notes: str | None = None
    due_date: datetime | None = None
    resolution: str | None = None
    resolved_by_id: UUID | None = None
    resolved_at: datetime | None = None
    created_by_id: UUID | None = None
    created_at: datetime
    updated_at: datetime
