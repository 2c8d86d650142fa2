"""
Governance Database Models

SQLAlchemy models for board meetings, their versioned minutes, motions,
annotations and compliance review flags.
"""

import uuid
from datetime import date as calendar_date
from datetime import datetime, timezone
from enum import StrEnum
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from boardbook.core.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# JSONB on PostgreSQL, plain JSON elsewhere
JSONDocument = JSON().with_variant(JSONB(), "postgresql")


# =============================================================================
# Enums
# =============================================================================


class MeetingType(StrEnum):
    """Kinds of board meetings."""

    BOARD = "BOARD"
    EXECUTIVE = "EXECUTIVE"
    SPECIAL = "SPECIAL"
    ANNUAL = "ANNUAL"


class MinutesStatus(StrEnum):
    """Status of a minutes version in its workflow."""

    DRAFT = "DRAFT"  # Secretary is editing
    SUBMITTED = "SUBMITTED"  # Awaiting president review
    REVISED = "REVISED"  # Sent back for changes
    APPROVED = "APPROVED"  # Approved, ready to publish
    PUBLISHED = "PUBLISHED"  # Visible to members, read-only
    ARCHIVED = "ARCHIVED"  # Historical record, terminal


class MotionResult(StrEnum):
    """Outcome of a vote on a motion."""

    PASSED = "PASSED"
    FAILED = "FAILED"
    TABLED = "TABLED"
    WITHDRAWN = "WITHDRAWN"


class AnnotationTargetType(StrEnum):
    """Artifacts an annotation can be attached to."""

    MOTION = "motion"
    BYLAW = "bylaw"
    POLICY = "policy"
    PAGE = "page"
    FILE = "file"
    MINUTES = "minutes"


class FlagTargetType(StrEnum):
    """Objects a review flag can be raised against."""

    PAGE = "page"
    FILE = "file"
    POLICY = "policy"
    EVENT = "event"
    BYLAW = "bylaw"
    MINUTES = "minutes"
    MOTION = "motion"


class ReviewFlagType(StrEnum):
    """Kind of review a flag asks for."""

    INSURANCE_REVIEW = "INSURANCE_REVIEW"
    LEGAL_REVIEW = "LEGAL_REVIEW"
    POLICY_REVIEW = "POLICY_REVIEW"
    COMPLIANCE_CHECK = "COMPLIANCE_CHECK"
    GENERAL = "GENERAL"


class ReviewFlagStatus(StrEnum):
    """Status of a review flag."""

    OPEN = "OPEN"
    IN_PROGRESS = "IN_PROGRESS"
    RESOLVED = "RESOLVED"
    DISMISSED = "DISMISSED"


# Minutes versions that are still moving through the workflow
IN_FLIGHT_STATUSES = (
    MinutesStatus.DRAFT,
    MinutesStatus.SUBMITTED,
    MinutesStatus.REVISED,
    MinutesStatus.APPROVED,
)

FINAL_STATUSES = (MinutesStatus.PUBLISHED, MinutesStatus.ARCHIVED)

CLOSED_FLAG_STATUSES = (ReviewFlagStatus.RESOLVED, ReviewFlagStatus.DISMISSED)


# =============================================================================
# Meeting
# =============================================================================


class Meeting(Base):
    """
    A board meeting that took place.
    Anchors the minutes and motions recorded for it.
    """

    __tablename__ = "governance_meetings"
    __table_args__ = (
        UniqueConstraint("date", "type", name="uq_governance_meetings_date_type"),
        CheckConstraint(
            "attendance_count IS NULL OR attendance_count >= 0",
            name="ck_governance_meetings_attendance",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    date: Mapped[calendar_date] = mapped_column(Date, index=True)
    type: Mapped[MeetingType] = mapped_column(
        Enum(MeetingType, name="governance_meeting_type"), index=True
    )
    title: Mapped[str | None] = mapped_column(String(200), nullable=True)
    location: Mapped[str | None] = mapped_column(String(200), nullable=True)
    attendance_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    quorum_met: Mapped[bool] = mapped_column(Boolean, default=True)

    # Actors live in the member directory, no foreign key
    created_by_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True, index=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    # Relationships (deletion is blocked while children exist)
    minutes: Mapped[list["Minutes"]] = relationship(
        back_populates="meeting", passive_deletes=True
    )
    motions: Mapped[list["Motion"]] = relationship(
        back_populates="meeting", passive_deletes=True
    )


# =============================================================================
# Minutes
# =============================================================================


class Minutes(Base):
    """
    One version of the minutes of a meeting.

    Revisions append new version rows; a row is only edited in place while it
    is a current DRAFT or REVISED version.
    """

    __tablename__ = "governance_minutes"
    __table_args__ = (
        UniqueConstraint("meeting_id", "version", name="uq_governance_minutes_meeting_version"),
        # At most one version of a meeting's minutes may be in flight
        Index(
            "uq_governance_minutes_in_flight",
            "meeting_id",
            unique=True,
            postgresql_where=text(
                "status IN ('DRAFT', 'SUBMITTED', 'REVISED', 'APPROVED') "
                "AND superseded_at IS NULL"
            ),
            sqlite_where=text(
                "status IN ('DRAFT', 'SUBMITTED', 'REVISED', 'APPROVED') "
                "AND superseded_at IS NULL"
            ),
        ),
        CheckConstraint("version > 0", name="ck_governance_minutes_version"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    meeting_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("governance_meetings.id"), index=True
    )
    version: Mapped[int] = mapped_column(Integer, default=1)
    status: Mapped[MinutesStatus] = mapped_column(
        Enum(MinutesStatus, name="minutes_status"), default=MinutesStatus.DRAFT, index=True
    )

    # Document (schema owned by the UI)
    content: Mapped[dict[str, Any]] = mapped_column(JSONDocument, default=dict)
    summary: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Version chain
    based_on_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("governance_minutes.id"), nullable=True
    )
    superseded_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # Review
    review_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    approval_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Actors
    created_by_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    last_edited_by_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    submitted_by_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    reviewed_by_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    approved_by_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    published_by_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    archived_by_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)

    # Workflow timestamps
    submitted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    published_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    archived_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    # Relationships
    meeting: Mapped["Meeting"] = relationship(back_populates="minutes")

    @property
    def is_superseded(self) -> bool:
        """Check if a newer version replaced this one mid-workflow."""
        return self.superseded_at is not None

    @property
    def is_in_flight(self) -> bool:
        """Check if this version is still moving through the workflow."""
        return self.status in IN_FLIGHT_STATUSES and not self.is_superseded


# =============================================================================
# Motion
# =============================================================================


class Motion(Base):
    """
    A motion made during a meeting.
    Numbered sequentially per meeting, starting at 1.
    """

    __tablename__ = "governance_motions"
    __table_args__ = (
        UniqueConstraint(
            "meeting_id", "motion_number", name="uq_governance_motions_meeting_number"
        ),
        CheckConstraint(
            "votes_yes >= 0 AND votes_no >= 0 AND votes_abstain >= 0",
            name="ck_governance_motions_votes",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    meeting_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("governance_meetings.id"), index=True
    )
    motion_number: Mapped[int] = mapped_column(Integer)
    motion_text: Mapped[str] = mapped_column(Text)

    # Mover and seconder (member directory ids)
    moved_by_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    seconded_by_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)

    # Vote
    votes_yes: Mapped[int] = mapped_column(Integer, default=0)
    votes_no: Mapped[int] = mapped_column(Integer, default=0)
    votes_abstain: Mapped[int] = mapped_column(Integer, default=0)
    result: Mapped[MotionResult | None] = mapped_column(
        Enum(MotionResult, name="motion_result"), nullable=True, index=True
    )
    result_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_by_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    # Relationships
    meeting: Mapped["Meeting"] = relationship(back_populates="motions")
    annotations: Mapped[list["Annotation"]] = relationship(
        back_populates="motion", passive_deletes=True
    )

    @property
    def has_result(self) -> bool:
        return self.result is not None


# =============================================================================
# Annotation
# =============================================================================


class Annotation(Base):
    """
    A note attached to a governance artifact.
    Only published annotations are visible outside the governance roles.
    """

    __tablename__ = "governance_annotations"
    __table_args__ = (
        Index("ix_governance_annotations_target", "target_type", "target_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    # Polymorphic target
    target_type: Mapped[str] = mapped_column(String(20))
    target_id: Mapped[uuid.UUID] = mapped_column(Uuid)
    motion_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("governance_motions.id", ondelete="SET NULL"), nullable=True, index=True
    )

    anchor: Mapped[str | None] = mapped_column(String(500), nullable=True)
    body: Mapped[str] = mapped_column(Text)
    is_published: Mapped[bool] = mapped_column(Boolean, default=False, index=True)

    created_by_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True, index=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    # Relationships
    motion: Mapped["Motion | None"] = relationship(back_populates="annotations")


# =============================================================================
# Review Flag
# =============================================================================


class ReviewFlag(Base):
    """
    A compliance or legal follow-up raised against an object.
    Moves through its own workflow independent of the target.
    """

    __tablename__ = "governance_review_flags"
    __table_args__ = (
        Index("ix_governance_review_flags_target", "target_type", "target_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    # Polymorphic target
    target_type: Mapped[str] = mapped_column(String(20))
    target_id: Mapped[uuid.UUID] = mapped_column(Uuid)

    flag_type: Mapped[ReviewFlagType] = mapped_column(
        Enum(ReviewFlagType, name="review_flag_type"), index=True
    )
    status: Mapped[ReviewFlagStatus] = mapped_column(
        Enum(ReviewFlagStatus, name="review_flag_status"),
        default=ReviewFlagStatus.OPEN,
        index=True,
    )
    title: Mapped[str] = mapped_column(String(200))
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    due_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, index=True
    )

    # Resolution
    resolution: Mapped[str | None] = mapped_column(Text, nullable=True)
    resolved_by_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    created_by_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True, index=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    @property
    def is_closed(self) -> bool:
        return self.status in CLOSED_FLAG_STATUSES
