"""
Governance Services

Business logic for the governance record-keeping core: the meeting registry,
the minutes approval workflow, the motion ledger, the annotation overlay and
the review flag tracker.

Services flush but never commit; the caller owns the transaction.
"""

import copy
import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from boardbook.core.config import settings
from boardbook.core.exceptions import (
    BadRequest,
    Conflict,
    Forbidden,
    InvalidTransition,
    NotFound,
)
from boardbook.governance.models import (
    CLOSED_FLAG_STATUSES,
    FINAL_STATUSES,
    IN_FLIGHT_STATUSES,
    Annotation,
    AnnotationTargetType,
    FlagTargetType,
    Meeting,
    MeetingType,
    Minutes,
    MinutesStatus,
    Motion,
    MotionResult,
    ReviewFlag,
    ReviewFlagStatus,
    ReviewFlagType,
    utcnow,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Pagination
# =============================================================================


@dataclass
class Page:
    """One page of a listing."""

    items: list[Any]
    total: int
    page: int
    page_size: int

    @property
    def pages(self) -> int:
        return (self.total + self.page_size - 1) // self.page_size


def _clamp(page: int, page_size: int | None) -> tuple[int, int]:
    page = max(page, 1)
    page_size = page_size or settings.default_page_size
    return page, max(1, min(page_size, settings.max_page_size))


async def _paginate(db: AsyncSession, query, page: int, page_size: int | None) -> Page:
    page, page_size = _clamp(page, page_size)
    total = await db.scalar(select(func.count()).select_from(query.order_by(None).subquery()))
    result = await db.execute(query.offset((page - 1) * page_size).limit(page_size))
    return Page(items=list(result.scalars().all()), total=total or 0, page=page, page_size=page_size)


def _coerce(enum_cls, value: Any, field: str):
    """Convert a raw value into an enum member or raise BadRequest."""
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise BadRequest(f"Invalid {field} '{value}'. Expected one of: {allowed}", field=field) from None


def _require_text(value: str | None, field: str) -> str:
    if value is None or not value.strip():
        raise BadRequest(f"{field} is required", field=field)
    return value


# =============================================================================
# Meeting Registry
# =============================================================================


@dataclass
class MeetingSummary:
    """A meeting with its read-side minutes and motion summary."""

    meeting: Meeting
    latest_minutes: Minutes | None
    motion_count: int


MEETING_EDITABLE_FIELDS = {"title", "location", "attendance_count", "quorum_met"}


class MeetingService:
    """Service for the meeting registry."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_meeting(self, meeting_id: UUID) -> Meeting:
        """Get a meeting or raise NotFound."""
        meeting = await self.db.get(Meeting, meeting_id)
        if meeting is None:
            raise NotFound("Meeting", meeting_id)
        return meeting

    async def create_meeting(
        self,
        meeting_date: date,
        meeting_type: MeetingType | str,
        created_by_id: UUID | None = None,
        title: str | None = None,
        location: str | None = None,
        attendance_count: int | None = None,
        quorum_met: bool = True,
    ) -> Meeting:
        """
        Record a meeting.

        Raises:
            Conflict: A meeting of the same type already exists on that date
        """
        meeting_type = _coerce(MeetingType, meeting_type, "type")
        if attendance_count is not None and attendance_count < 0:
            raise BadRequest("attendance_count must be >= 0", field="attendance_count")

        existing = await self.db.scalar(
            select(Meeting.id).where(Meeting.date == meeting_date, Meeting.type == meeting_type)
        )
        if existing is not None:
            raise Conflict(
                f"A {meeting_type} meeting already exists on {meeting_date.isoformat()}",
                meeting_id=str(existing),
            )

        meeting = Meeting(
            date=meeting_date,
            type=meeting_type,
            title=title,
            location=location,
            attendance_count=attendance_count,
            quorum_met=quorum_met,
            created_by_id=created_by_id,
        )
        try:
            async with self.db.begin_nested():
                self.db.add(meeting)
        except IntegrityError:
            raise Conflict(
                f"A {meeting_type} meeting already exists on {meeting_date.isoformat()}"
            ) from None

        logger.info("Meeting %s created (%s %s)", meeting.id, meeting_type, meeting_date)
        return meeting

    async def list_meetings(
        self,
        meeting_type: MeetingType | str | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
        page: int = 1,
        page_size: int | None = None,
    ) -> Page:
        """List meetings newest first, each as a MeetingSummary."""
        query = select(Meeting)
        if meeting_type is not None:
            query = query.where(Meeting.type == _coerce(MeetingType, meeting_type, "type"))
        if start_date is not None:
            query = query.where(Meeting.date >= start_date)
        if end_date is not None:
            query = query.where(Meeting.date <= end_date)
        query = query.order_by(Meeting.date.desc(), Meeting.created_at.desc())

        result = await _paginate(self.db, query, page, page_size)
        meeting_ids = [meeting.id for meeting in result.items]
        if not meeting_ids:
            return result

        # Latest minutes version per meeting
        minutes_result = await self.db.execute(
            select(Minutes)
            .where(Minutes.meeting_id.in_(meeting_ids))
            .order_by(Minutes.meeting_id, Minutes.version.desc())
        )
        latest: dict[UUID, Minutes] = {}
        for minutes in minutes_result.scalars():
            latest.setdefault(minutes.meeting_id, minutes)

        count_result = await self.db.execute(
            select(Motion.meeting_id, func.count(Motion.id))
            .where(Motion.meeting_id.in_(meeting_ids))
            .group_by(Motion.meeting_id)
        )
        motion_counts = dict(count_result.all())

        result.items = [
            MeetingSummary(
                meeting=meeting,
                latest_minutes=latest.get(meeting.id),
                motion_count=motion_counts.get(meeting.id, 0),
            )
            for meeting in result.items
        ]
        return result

    async def update_meeting(self, meeting_id: UUID, changes: dict[str, Any]) -> Meeting:
        """
        Update a meeting's descriptive fields.

        Date and type identify the meeting and cannot change.
        """
        unknown = set(changes) - MEETING_EDITABLE_FIELDS
        if unknown:
            raise BadRequest(
                f"Fields cannot be updated: {', '.join(sorted(unknown))}",
                fields=sorted(unknown),
            )
        if changes.get("attendance_count") is not None and changes["attendance_count"] < 0:
            raise BadRequest("attendance_count must be >= 0", field="attendance_count")
        if "quorum_met" in changes and changes["quorum_met"] is None:
            raise BadRequest("quorum_met cannot be null", field="quorum_met")

        meeting = await self.get_meeting(meeting_id)
        for field, value in changes.items():
            setattr(meeting, field, value)

        await self.db.flush()
        return meeting

    async def delete_meeting(self, meeting_id: UUID) -> None:
        """
        Delete a meeting that has no minutes and no motions.

        Raises:
            Conflict: Minutes or motions are recorded for the meeting
        """
        meeting = await self.get_meeting(meeting_id)

        minutes_count = await self.db.scalar(
            select(func.count(Minutes.id)).where(Minutes.meeting_id == meeting_id)
        )
        motions_count = await self.db.scalar(
            select(func.count(Motion.id)).where(Motion.meeting_id == meeting_id)
        )
        if minutes_count or motions_count:
            raise Conflict(
                f"Meeting has {minutes_count} minutes versions and {motions_count} motions",
                minutes_count=minutes_count,
                motions_count=motions_count,
            )

        await self.db.delete(meeting)
        await self.db.flush()
        logger.info("Meeting %s deleted", meeting_id)


# =============================================================================
# Minutes Workflow
# =============================================================================

# Status transition table for a minutes version
MINUTES_STATUS_TRANSITIONS: dict[MinutesStatus, tuple[MinutesStatus, ...]] = {
    MinutesStatus.DRAFT: (MinutesStatus.SUBMITTED,),
    MinutesStatus.SUBMITTED: (MinutesStatus.APPROVED, MinutesStatus.REVISED),
    MinutesStatus.REVISED: (MinutesStatus.SUBMITTED,),
    MinutesStatus.APPROVED: (MinutesStatus.PUBLISHED,),
    MinutesStatus.PUBLISHED: (MinutesStatus.ARCHIVED,),
    MinutesStatus.ARCHIVED: (),
}

# Statuses in which the author may edit content in place
AUTHOR_EDITABLE_STATUSES = (MinutesStatus.DRAFT, MinutesStatus.REVISED)

MINUTES_STATUS_DESCRIPTIONS = {
    MinutesStatus.DRAFT: "Being written by the secretary",
    MinutesStatus.SUBMITTED: "Waiting for review",
    MinutesStatus.REVISED: "Sent back for changes",
    MinutesStatus.APPROVED: "Approved, waiting to be published",
    MinutesStatus.PUBLISHED: "Published to members",
    MinutesStatus.ARCHIVED: "Archived",
}


def is_valid_status_transition(current: MinutesStatus | str, target: MinutesStatus | str) -> bool:
    """Check whether minutes may move from one status to another."""
    try:
        current, target = MinutesStatus(current), MinutesStatus(target)
    except ValueError:
        return False
    return target in MINUTES_STATUS_TRANSITIONS[current]


def get_status_description(status: MinutesStatus | str) -> str:
    """Human-readable description of a minutes status."""
    return MINUTES_STATUS_DESCRIPTIONS[_coerce(MinutesStatus, status, "status")]


class MinutesWorkflowService:
    """
    Service for the minutes approval workflow:
    DRAFT → SUBMITTED → (REVISED → SUBMITTED)* → APPROVED → PUBLISHED → ARCHIVED

    Each round of review appends a new version row. A row is superseded when
    a later version replaced it mid-workflow; superseded rows are frozen.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_minutes(self, minutes_id: UUID) -> Minutes:
        """Get a minutes version or raise NotFound."""
        minutes = await self.db.get(Minutes, minutes_id)
        if minutes is None:
            raise NotFound("Minutes", minutes_id)
        return minutes

    async def list_minutes(
        self,
        meeting_id: UUID | None = None,
        status: MinutesStatus | str | None = None,
        page: int = 1,
        page_size: int | None = None,
    ) -> Page:
        """List minutes versions, newest version first."""
        query = select(Minutes)
        if meeting_id is not None:
            query = query.where(Minutes.meeting_id == meeting_id)
        if status is not None:
            query = query.where(Minutes.status == _coerce(MinutesStatus, status, "status"))
        query = query.order_by(Minutes.created_at.desc(), Minutes.version.desc())
        return await _paginate(self.db, query, page, page_size)

    async def get_minutes_history(self, meeting_id: UUID) -> list[Minutes]:
        """Get every minutes version of a meeting, oldest first."""
        await MeetingService(self.db).get_meeting(meeting_id)
        result = await self.db.execute(
            select(Minutes).where(Minutes.meeting_id == meeting_id).order_by(Minutes.version)
        )
        return list(result.scalars().all())

    async def get_current_minutes(self, meeting_id: UUID) -> Minutes | None:
        """
        Get the version that currently represents a meeting's minutes.

        That is the in-flight version if there is one, otherwise the highest
        published or archived version.
        """
        in_flight = await self._get_in_flight(meeting_id)
        if in_flight is not None:
            return in_flight

        result = await self.db.execute(
            select(Minutes)
            .where(Minutes.meeting_id == meeting_id, Minutes.status.in_(FINAL_STATUSES))
            .order_by(Minutes.version.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def create_minutes(
        self,
        meeting_id: UUID,
        content: dict[str, Any],
        created_by_id: UUID | None = None,
        summary: str | None = None,
    ) -> Minutes:
        """
        Start a minutes draft for a meeting.

        Raises:
            NotFound: Unknown meeting
            Conflict: Another version is still in flight
        """
        await MeetingService(self.db).get_meeting(meeting_id)

        in_flight = await self._get_in_flight(meeting_id)
        if in_flight is not None:
            raise Conflict(
                f"Minutes version {in_flight.version} is still {in_flight.status}",
                minutes_id=str(in_flight.id),
                status=str(in_flight.status),
            )

        minutes = Minutes(
            meeting_id=meeting_id,
            version=await self._next_version(meeting_id),
            status=MinutesStatus.DRAFT,
            content=content,
            summary=summary,
            created_by_id=created_by_id,
            last_edited_by_id=created_by_id,
        )
        await self._insert(minutes)

        logger.info("Minutes %s created as version %d of meeting %s", minutes.id, minutes.version, meeting_id)
        return minutes

    async def update_minutes(
        self,
        minutes_id: UUID,
        edited_by_id: UUID | None = None,
        content: dict[str, Any] | None = None,
        summary: str | None = None,
    ) -> Minutes:
        """
        Edit the content of a current DRAFT or REVISED version.

        Raises:
            Forbidden: The version is not author-editable
        """
        minutes = await self.get_minutes(minutes_id)
        if minutes.is_superseded:
            raise Forbidden(
                f"Minutes version {minutes.version} was superseded and cannot be edited",
                status=str(minutes.status),
            )
        if minutes.status not in AUTHOR_EDITABLE_STATUSES:
            raise Forbidden(
                f"Minutes cannot be edited while {minutes.status}",
                status=str(minutes.status),
            )

        if content is not None:
            minutes.content = content
        if summary is not None:
            minutes.summary = summary
        minutes.last_edited_by_id = edited_by_id

        await self.db.flush()
        return minutes

    async def submit_minutes(self, minutes_id: UUID, submitted_by_id: UUID | None = None) -> Minutes:
        """Submit a draft or revised version for review."""
        minutes = await self.get_minutes(minutes_id)
        self._transition(minutes, MinutesStatus.SUBMITTED)
        minutes.submitted_at = utcnow()
        minutes.submitted_by_id = submitted_by_id

        await self.db.flush()
        return minutes

    async def approve_minutes(
        self,
        minutes_id: UUID,
        approved_by_id: UUID | None = None,
        notes: str | None = None,
    ) -> Minutes:
        """Approve a submitted version."""
        minutes = await self.get_minutes(minutes_id)
        self._transition(minutes, MinutesStatus.APPROVED)

        now = utcnow()
        minutes.approved_at = now
        minutes.approved_by_id = approved_by_id
        minutes.reviewed_at = now
        minutes.reviewed_by_id = approved_by_id
        minutes.approval_notes = notes

        await self.db.flush()
        return minutes

    async def request_revision(
        self,
        minutes_id: UUID,
        review_notes: str,
        reviewed_by_id: UUID | None = None,
    ) -> Minutes:
        """
        Send a submitted version back for changes.

        The submitted row keeps its content, records the review and is
        superseded. A new REVISED row with a copy of the content becomes the
        in-flight version and is returned.
        """
        _require_text(review_notes, "review_notes")

        minutes = await self.get_minutes(minutes_id)
        self._transition(minutes, MinutesStatus.REVISED)

        now = utcnow()
        minutes.reviewed_at = now
        minutes.reviewed_by_id = reviewed_by_id
        minutes.review_notes = review_notes
        minutes.superseded_at = now
        await self.db.flush()

        revision = Minutes(
            meeting_id=minutes.meeting_id,
            version=await self._next_version(minutes.meeting_id),
            status=MinutesStatus.REVISED,
            content=copy.deepcopy(minutes.content),
            summary=minutes.summary,
            based_on_id=minutes.id,
            review_notes=review_notes,
            reviewed_at=now,
            reviewed_by_id=reviewed_by_id,
            created_by_id=reviewed_by_id,
            last_edited_by_id=minutes.last_edited_by_id,
        )
        await self._insert(revision)

        logger.info(
            "Minutes %s sent back for revision, continued as version %d (%s)",
            minutes.id,
            revision.version,
            revision.id,
        )
        return revision

    async def publish_minutes(self, minutes_id: UUID, published_by_id: UUID | None = None) -> Minutes:
        """Publish an approved version. Content is immutable from here on."""
        minutes = await self.get_minutes(minutes_id)
        self._transition(minutes, MinutesStatus.PUBLISHED)
        minutes.published_at = utcnow()
        minutes.published_by_id = published_by_id

        await self.db.flush()
        return minutes

    async def archive_minutes(self, minutes_id: UUID, archived_by_id: UUID | None = None) -> Minutes:
        """Archive a published version."""
        minutes = await self.get_minutes(minutes_id)
        self._transition(minutes, MinutesStatus.ARCHIVED)
        minutes.archived_at = utcnow()
        minutes.archived_by_id = archived_by_id

        await self.db.flush()
        return minutes

    async def create_minutes_revision(
        self,
        meeting_id: UUID,
        from_version_id: UUID,
        created_by_id: UUID | None = None,
        content: dict[str, Any] | None = None,
    ) -> Minutes:
        """
        Start a new DRAFT version based on an earlier one.

        Allowed from a published or archived version while nothing is in
        flight, or from the current REVISED version, which is superseded.

        Raises:
            BadRequest: The source belongs to another meeting
            Conflict: Another version is in flight
            InvalidTransition: The source cannot be revised
        """
        await MeetingService(self.db).get_meeting(meeting_id)
        source = await self.get_minutes(from_version_id)
        if source.meeting_id != meeting_id:
            raise BadRequest(
                f"Minutes {from_version_id} do not belong to meeting {meeting_id}",
                from_version_id=str(from_version_id),
            )

        if source.status in FINAL_STATUSES:
            in_flight = await self._get_in_flight(meeting_id)
            if in_flight is not None:
                raise Conflict(
                    f"Minutes version {in_flight.version} is still {in_flight.status}",
                    minutes_id=str(in_flight.id),
                    status=str(in_flight.status),
                )
        elif source.status == MinutesStatus.REVISED and not source.is_superseded:
            source.superseded_at = utcnow()
            await self.db.flush()
        else:
            raise InvalidTransition(
                source.status,
                MinutesStatus.DRAFT,
                message=f"Cannot start a revision from {source.status} minutes",
            )

        revision = Minutes(
            meeting_id=meeting_id,
            version=await self._next_version(meeting_id),
            status=MinutesStatus.DRAFT,
            content=content if content is not None else copy.deepcopy(source.content),
            summary=source.summary,
            based_on_id=source.id,
            created_by_id=created_by_id,
            last_edited_by_id=created_by_id,
        )
        await self._insert(revision)

        logger.info(
            "Minutes revision %s created as version %d from %s",
            revision.id,
            revision.version,
            source.id,
        )
        return revision

    async def delete_minutes(self, minutes_id: UUID) -> None:
        """Delete a DRAFT version. Anything past draft is part of the record."""
        minutes = await self.get_minutes(minutes_id)
        if minutes.status != MinutesStatus.DRAFT:
            raise Forbidden(
                f"Only draft minutes can be deleted, these are {minutes.status}",
                status=str(minutes.status),
            )

        await self.db.delete(minutes)
        await self.db.flush()
        logger.info("Minutes %s deleted", minutes_id)

    def _transition(self, minutes: Minutes, target: MinutesStatus) -> None:
        current = minutes.status
        if minutes.is_superseded:
            raise InvalidTransition(
                current,
                target,
                message=f"Minutes version {minutes.version} was superseded",
            )
        if not is_valid_status_transition(current, target):
            logger.info("Rejected minutes %s transition %s -> %s", minutes.id, current, target)
            raise InvalidTransition(current, target)

        minutes.status = target
        logger.info("Minutes %s moved %s -> %s", minutes.id, current, target)

    async def _get_in_flight(self, meeting_id: UUID) -> Minutes | None:
        result = await self.db.execute(
            select(Minutes)
            .where(
                Minutes.meeting_id == meeting_id,
                Minutes.status.in_(IN_FLIGHT_STATUSES),
                Minutes.superseded_at.is_(None),
            )
            .order_by(Minutes.version.desc())
        )
        return result.scalars().first()

    async def _next_version(self, meeting_id: UUID) -> int:
        current = await self.db.scalar(
            select(func.max(Minutes.version)).where(Minutes.meeting_id == meeting_id)
        )
        return (current or 0) + 1

    async def _insert(self, minutes: Minutes) -> None:
        try:
            async with self.db.begin_nested():
                self.db.add(minutes)
        except IntegrityError:
            logger.warning("Concurrent minutes write for meeting %s", minutes.meeting_id)
            raise Conflict(
                "Another minutes version was started for this meeting",
                meeting_id=str(minutes.meeting_id),
            ) from None


# =============================================================================
# Motion Ledger
# =============================================================================

MOTION_EDITABLE_FIELDS = {"motion_text", "moved_by_id", "seconded_by_id", "result", "result_notes"}


class MotionLedgerService:
    """Service for motions and their votes."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_motion(self, motion_id: UUID) -> Motion:
        """Get a motion or raise NotFound."""
        motion = await self.db.get(Motion, motion_id)
        if motion is None:
            raise NotFound("Motion", motion_id)
        return motion

    async def create_motion(
        self,
        meeting_id: UUID,
        motion_text: str,
        created_by_id: UUID | None = None,
        moved_by_id: UUID | None = None,
        seconded_by_id: UUID | None = None,
    ) -> Motion:
        """
        Record a motion with the next number of its meeting.

        The meeting row is locked for the rest of the transaction so
        concurrent motions of one meeting are numbered one after another.
        """
        _require_text(motion_text, "motion_text")

        result = await self.db.execute(
            select(Meeting).where(Meeting.id == meeting_id).with_for_update()
        )
        if result.scalar_one_or_none() is None:
            raise NotFound("Meeting", meeting_id)

        for attempt in range(settings.motion_number_retries + 1):
            number = await self._next_number(meeting_id)
            motion = Motion(
                meeting_id=meeting_id,
                motion_number=number,
                motion_text=motion_text,
                moved_by_id=moved_by_id,
                seconded_by_id=seconded_by_id,
                created_by_id=created_by_id,
            )
            try:
                async with self.db.begin_nested():
                    self.db.add(motion)
            except IntegrityError:
                logger.warning(
                    "Motion number %d of meeting %s taken (attempt %d)",
                    number,
                    meeting_id,
                    attempt + 1,
                )
                continue

            logger.info("Motion %s recorded as #%d of meeting %s", motion.id, number, meeting_id)
            return motion

        raise Conflict(
            "Could not allocate a motion number, try again",
            meeting_id=str(meeting_id),
        )

    async def update_motion(self, motion_id: UUID, changes: dict[str, Any]) -> Motion:
        """
        Update a motion's text, mover, seconder or notes.

        The result can only be set to WITHDRAWN here; votes are recorded with
        record_vote.
        """
        unknown = set(changes) - MOTION_EDITABLE_FIELDS
        if unknown:
            raise BadRequest(
                f"Fields cannot be updated: {', '.join(sorted(unknown))}",
                fields=sorted(unknown),
            )
        if "motion_text" in changes:
            _require_text(changes["motion_text"], "motion_text")
        if "result" in changes:
            if changes["result"] is None:
                raise BadRequest("result cannot be cleared", field="result")
            result = _coerce(MotionResult, changes["result"], "result")
            if result != MotionResult.WITHDRAWN:
                raise BadRequest(
                    "Only WITHDRAWN can be set directly, record a vote instead",
                    field="result",
                )
            changes = {**changes, "result": result}

        motion = await self.get_motion(motion_id)
        for field, value in changes.items():
            setattr(motion, field, value)

        await self.db.flush()
        return motion

    async def record_vote(
        self,
        motion_id: UUID,
        votes_yes: int,
        votes_no: int,
        votes_abstain: int,
        result: MotionResult | str,
        result_notes: str | None = None,
    ) -> Motion:
        """Record the tallies and result of a vote. Recording the same vote twice is a no-op."""
        result = _coerce(MotionResult, result, "result")
        for field, value in (
            ("votes_yes", votes_yes),
            ("votes_no", votes_no),
            ("votes_abstain", votes_abstain),
        ):
            if value is None or value < 0:
                raise BadRequest(f"{field} must be >= 0", field=field)

        motion = await self.get_motion(motion_id)
        motion.votes_yes = votes_yes
        motion.votes_no = votes_no
        motion.votes_abstain = votes_abstain
        motion.result = result
        motion.result_notes = result_notes

        await self.db.flush()
        logger.info(
            "Vote on motion %s: %d/%d/%d %s",
            motion.id,
            votes_yes,
            votes_no,
            votes_abstain,
            result,
        )
        return motion

    async def delete_motion(self, motion_id: UUID) -> None:
        """Delete a motion that has not been voted on."""
        motion = await self.get_motion(motion_id)
        if motion.has_result:
            raise Conflict(
                "Motion was already voted on, mark it WITHDRAWN instead",
                result=str(motion.result),
            )

        await self.db.delete(motion)
        await self.db.flush()
        logger.info("Motion %s deleted", motion_id)

    async def list_motions_by_meeting(
        self,
        meeting_id: UUID,
        page: int = 1,
        page_size: int | None = None,
    ) -> Page:
        """List a meeting's motions in number order."""
        await MeetingService(self.db).get_meeting(meeting_id)
        query = (
            select(Motion).where(Motion.meeting_id == meeting_id).order_by(Motion.motion_number)
        )
        return await _paginate(self.db, query, page, page_size)

    async def list_motions(
        self,
        meeting_id: UUID | None = None,
        result: MotionResult | str | None = None,
        has_result: bool | None = None,
        page: int = 1,
        page_size: int | None = None,
    ) -> Page:
        """List motions across meetings."""
        query = select(Motion)
        if meeting_id is not None:
            query = query.where(Motion.meeting_id == meeting_id)
        if result is not None:
            query = query.where(Motion.result == _coerce(MotionResult, result, "result"))
        if has_result is True:
            query = query.where(Motion.result.is_not(None))
        elif has_result is False:
            query = query.where(Motion.result.is_(None))
        query = query.order_by(Motion.created_at.desc(), Motion.motion_number.desc())
        return await _paginate(self.db, query, page, page_size)

    async def get_meeting_motion_stats(self, meeting_id: UUID) -> dict[str, int]:
        """Count a meeting's motions by result."""
        await MeetingService(self.db).get_meeting(meeting_id)
        rows = await self.db.execute(
            select(Motion.result, func.count(Motion.id))
            .where(Motion.meeting_id == meeting_id)
            .group_by(Motion.result)
        )
        counts = {result: count for result, count in rows.all()}

        return {
            "total": sum(counts.values()),
            "passed": counts.get(MotionResult.PASSED, 0),
            "failed": counts.get(MotionResult.FAILED, 0),
            "tabled": counts.get(MotionResult.TABLED, 0),
            "withdrawn": counts.get(MotionResult.WITHDRAWN, 0),
            "pending": counts.get(None, 0),
        }

    async def _next_number(self, meeting_id: UUID) -> int:
        current = await self.db.scalar(
            select(func.max(Motion.motion_number)).where(Motion.meeting_id == meeting_id)
        )
        return (current or 0) + 1


# =============================================================================
# Annotation Overlay
# =============================================================================

ANNOTATION_EDITABLE_FIELDS = {"anchor", "body", "is_published"}


class AnnotationService:
    """Service for annotations on governance artifacts."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_annotation(self, annotation_id: UUID) -> Annotation:
        """Get an annotation or raise NotFound."""
        annotation = await self.db.get(Annotation, annotation_id)
        if annotation is None:
            raise NotFound("Annotation", annotation_id)
        return annotation

    async def create_annotation(
        self,
        target_type: AnnotationTargetType | str,
        target_id: UUID,
        body: str,
        created_by_id: UUID | None = None,
        anchor: str | None = None,
        motion_id: UUID | None = None,
        is_published: bool = False,
    ) -> Annotation:
        """
        Attach an annotation to a target.

        Motion and minutes targets must exist. Other target types live
        outside the governance core and are taken as given.
        """
        target_type = _coerce(AnnotationTargetType, target_type, "target_type")
        _require_text(body, "body")

        if target_type == AnnotationTargetType.MOTION:
            await MotionLedgerService(self.db).get_motion(target_id)
            motion_id = target_id
        else:
            if target_type == AnnotationTargetType.MINUTES:
                await MinutesWorkflowService(self.db).get_minutes(target_id)
            if motion_id is not None:
                await MotionLedgerService(self.db).get_motion(motion_id)

        annotation = Annotation(
            target_type=target_type.value,
            target_id=target_id,
            motion_id=motion_id,
            anchor=anchor,
            body=body,
            is_published=is_published,
            created_by_id=created_by_id,
        )
        self.db.add(annotation)
        await self.db.flush()

        logger.info("Annotation %s added to %s %s", annotation.id, target_type, target_id)
        return annotation

    async def update_annotation(self, annotation_id: UUID, changes: dict[str, Any]) -> Annotation:
        """Update an annotation's anchor, body or publication state."""
        unknown = set(changes) - ANNOTATION_EDITABLE_FIELDS
        if unknown:
            raise BadRequest(
                f"Fields cannot be updated: {', '.join(sorted(unknown))}",
                fields=sorted(unknown),
            )
        if "body" in changes:
            _require_text(changes["body"], "body")
        if "is_published" in changes and changes["is_published"] is None:
            raise BadRequest("is_published cannot be null", field="is_published")

        annotation = await self.get_annotation(annotation_id)
        for field, value in changes.items():
            setattr(annotation, field, value)

        await self.db.flush()
        return annotation

    async def publish_annotation(self, annotation_id: UUID) -> Annotation:
        """Make an annotation visible to everyone who can read meetings."""
        return await self.update_annotation(annotation_id, {"is_published": True})

    async def unpublish_annotation(self, annotation_id: UUID) -> Annotation:
        """Hide an annotation from readers without annotation rights."""
        return await self.update_annotation(annotation_id, {"is_published": False})

    async def delete_annotation(self, annotation_id: UUID) -> None:
        annotation = await self.get_annotation(annotation_id)
        await self.db.delete(annotation)
        await self.db.flush()
        logger.info("Annotation %s deleted", annotation_id)

    async def list_annotations_by_target(
        self,
        target_type: AnnotationTargetType | str,
        target_id: UUID,
        include_unpublished: bool = False,
        page: int = 1,
        page_size: int | None = None,
    ) -> Page:
        """List the annotations of one target, oldest first."""
        return await self.list_annotations(
            target_type=target_type,
            target_id=target_id,
            include_unpublished=include_unpublished,
            page=page,
            page_size=page_size,
        )

    async def list_annotations_by_motion(
        self,
        motion_id: UUID,
        include_unpublished: bool = False,
        page: int = 1,
        page_size: int | None = None,
    ) -> Page:
        """List the annotations related to a motion, oldest first."""
        return await self.list_annotations(
            motion_id=motion_id,
            include_unpublished=include_unpublished,
            page=page,
            page_size=page_size,
        )

    async def list_annotations(
        self,
        target_type: AnnotationTargetType | str | None = None,
        target_id: UUID | None = None,
        motion_id: UUID | None = None,
        created_by_id: UUID | None = None,
        include_unpublished: bool = False,
        page: int = 1,
        page_size: int | None = None,
    ) -> Page:
        """
        List annotations, oldest first.

        Unpublished annotations are filtered out in the query unless
        include_unpublished is set.
        """
        query = select(Annotation)
        if target_type is not None:
            target_type = _coerce(AnnotationTargetType, target_type, "target_type")
            query = query.where(Annotation.target_type == target_type.value)
        if target_id is not None:
            query = query.where(Annotation.target_id == target_id)
        if motion_id is not None:
            query = query.where(Annotation.motion_id == motion_id)
        if created_by_id is not None:
            query = query.where(Annotation.created_by_id == created_by_id)
        if not include_unpublished:
            query = query.where(Annotation.is_published.is_(True))
        query = query.order_by(Annotation.created_at, Annotation.id)

        result = await _paginate(self.db, query, page, page_size)
        await self._warn_orphans(result.items)
        return result

    async def get_annotation_counts(
        self,
        target_type: AnnotationTargetType | str | None = None,
        target_id: UUID | None = None,
        minutes_id: UUID | None = None,
        motion_id: UUID | None = None,
        include_unpublished: bool = True,
    ) -> dict[str, int]:
        """
        Count annotations, optionally for one target.

        With include_unpublished off, unpublished annotations are not counted.
        """
        query = select(Annotation.is_published, func.count(Annotation.id))
        if minutes_id is not None:
            target_type, target_id = AnnotationTargetType.MINUTES, minutes_id
        if target_type is not None:
            target_type = _coerce(AnnotationTargetType, target_type, "target_type")
            query = query.where(Annotation.target_type == target_type.value)
        if target_id is not None:
            query = query.where(Annotation.target_id == target_id)
        if motion_id is not None:
            query = query.where(Annotation.motion_id == motion_id)
        if not include_unpublished:
            query = query.where(Annotation.is_published.is_(True))

        rows = await self.db.execute(query.group_by(Annotation.is_published))
        counts = {bool(published): count for published, count in rows.all()}
        published = counts.get(True, 0)
        unpublished = counts.get(False, 0)
        return {"total": published + unpublished, "published": published, "unpublished": unpublished}

    async def _warn_orphans(self, annotations: list[Annotation]) -> None:
        """Log annotations whose motion or minutes target no longer exists."""
        checks = (
            (AnnotationTargetType.MOTION, Motion),
            (AnnotationTargetType.MINUTES, Minutes),
        )
        for target_type, model in checks:
            target_ids = {a.target_id for a in annotations if a.target_type == target_type.value}
            if not target_ids:
                continue
            result = await self.db.execute(select(model.id).where(model.id.in_(target_ids)))
            missing = target_ids - set(result.scalars().all())
            for annotation in annotations:
                if annotation.target_type == target_type.value and annotation.target_id in missing:
                    logger.warning(
                        "Annotation %s points at missing %s %s",
                        annotation.id,
                        target_type,
                        annotation.target_id,
                    )


# =============================================================================
# Review Flag Tracker
# =============================================================================

# Status transition table for a review flag
FLAG_STATUS_TRANSITIONS: dict[ReviewFlagStatus, tuple[ReviewFlagStatus, ...]] = {
    ReviewFlagStatus.OPEN: (ReviewFlagStatus.IN_PROGRESS,),
    ReviewFlagStatus.IN_PROGRESS: (ReviewFlagStatus.RESOLVED, ReviewFlagStatus.DISMISSED),
    ReviewFlagStatus.RESOLVED: (ReviewFlagStatus.OPEN,),
    ReviewFlagStatus.DISMISSED: (ReviewFlagStatus.OPEN,),
}

# Fields editable per status; closed flags are frozen
FLAG_EDITABLE_FIELDS = {
    ReviewFlagStatus.OPEN: {"title", "notes", "due_date"},
    ReviewFlagStatus.IN_PROGRESS: {"notes", "due_date"},
}


def is_valid_flag_transition(current: ReviewFlagStatus | str, target: ReviewFlagStatus | str) -> bool:
    """Check whether a flag may move from one status to another."""
    try:
        current, target = ReviewFlagStatus(current), ReviewFlagStatus(target)
    except ValueError:
        return False
    return target in FLAG_STATUS_TRANSITIONS[current]


class ReviewFlagService:
    """
    Service for review flags:
    OPEN → IN_PROGRESS → RESOLVED | DISMISSED, closed flags can be reopened.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_flag(self, flag_id: UUID) -> ReviewFlag:
        """Get a flag or raise NotFound."""
        flag = await self.db.get(ReviewFlag, flag_id)
        if flag is None:
            raise NotFound("ReviewFlag", flag_id)
        return flag

    async def create_flag(
        self,
        target_type: FlagTargetType | str,
        target_id: UUID,
        flag_type: ReviewFlagType | str,
        title: str,
        created_by_id: UUID | None = None,
        notes: str | None = None,
        due_date: datetime | None = None,
    ) -> ReviewFlag:
        """Raise a flag against any target. Targets are not checked."""
        target_type = _coerce(FlagTargetType, target_type, "target_type")
        flag_type = _coerce(ReviewFlagType, flag_type, "flag_type")
        _require_text(title, "title")

        flag = ReviewFlag(
            target_type=target_type.value,
            target_id=target_id,
            flag_type=flag_type,
            status=ReviewFlagStatus.OPEN,
            title=title,
            notes=notes,
            due_date=due_date,
            created_by_id=created_by_id,
        )
        self.db.add(flag)
        await self.db.flush()

        logger.info("Flag %s (%s) raised on %s %s", flag.id, flag_type, target_type, target_id)
        return flag

    async def update_flag(self, flag_id: UUID, changes: dict[str, Any]) -> ReviewFlag:
        """
        Update a flag.

        OPEN flags accept title, notes and due date; IN_PROGRESS flags only
        notes and due date. A status change goes through the transition
        table, except that closing needs a resolution and goes through
        resolve_flag or dismiss_flag.
        """
        changes = dict(changes)
        status = changes.pop("status", None)

        flag = await self.get_flag(flag_id)
        if flag.is_closed:
            raise Forbidden(
                f"Flag is {flag.status}, reopen it before editing",
                status=str(flag.status),
            )

        editable = FLAG_EDITABLE_FIELDS[flag.status]
        blocked = set(changes) - editable
        if blocked:
            raise Forbidden(
                f"Fields cannot be edited while {flag.status}: {', '.join(sorted(blocked))}",
                status=str(flag.status),
                fields=sorted(blocked),
            )
        if "title" in changes:
            _require_text(changes["title"], "title")

        if status is not None:
            status = _coerce(ReviewFlagStatus, status, "status")
            if status in CLOSED_FLAG_STATUSES:
                raise BadRequest(
                    f"A resolution is required to mark a flag {status}",
                    field="resolution",
                )
            if status == flag.status:
                status = None
            elif not is_valid_flag_transition(flag.status, status):
                logger.info("Rejected flag %s transition %s -> %s", flag.id, flag.status, status)
                raise InvalidTransition(flag.status, status)

        for field, value in changes.items():
            setattr(flag, field, value)
        if status is not None:
            self._transition(flag, status)

        await self.db.flush()
        return flag

    async def start_flag(self, flag_id: UUID) -> ReviewFlag:
        """Start working on an open flag."""
        flag = await self.get_flag(flag_id)
        self._transition(flag, ReviewFlagStatus.IN_PROGRESS)
        await self.db.flush()
        return flag

    async def resolve_flag(
        self,
        flag_id: UUID,
        resolution: str | None,
        resolved_by_id: UUID | None = None,
    ) -> ReviewFlag:
        """Resolve a flag that is in progress."""
        return await self._close(flag_id, ReviewFlagStatus.RESOLVED, resolution, resolved_by_id)

    async def dismiss_flag(
        self,
        flag_id: UUID,
        resolution: str | None,
        dismissed_by_id: UUID | None = None,
    ) -> ReviewFlag:
        """Dismiss a flag that is in progress."""
        return await self._close(flag_id, ReviewFlagStatus.DISMISSED, resolution, dismissed_by_id)

    async def reopen_flag(self, flag_id: UUID) -> ReviewFlag:
        """Reopen a resolved or dismissed flag, clearing its resolution."""
        flag = await self.get_flag(flag_id)
        self._transition(flag, ReviewFlagStatus.OPEN)
        flag.resolution = None
        flag.resolved_by_id = None
        flag.resolved_at = None

        await self.db.flush()
        return flag

    async def delete_flag(self, flag_id: UUID) -> None:
        """Delete an OPEN flag. Worked-on flags are part of the record."""
        flag = await self.get_flag(flag_id)
        if flag.status != ReviewFlagStatus.OPEN:
            raise Forbidden(
                f"Cannot delete a flag that is {flag.status}",
                status=str(flag.status),
            )

        await self.db.delete(flag)
        await self.db.flush()
        logger.info("Flag %s deleted", flag_id)

    async def get_overdue_flags(self, now: datetime | None = None) -> list[ReviewFlag]:
        """Get flags past their due date that are not closed, most overdue first."""
        result = await self.db.execute(
            self._overdue_query(select(ReviewFlag), now or utcnow()).order_by(ReviewFlag.due_date)
        )
        return list(result.scalars().all())

    async def list_flags(
        self,
        target_type: FlagTargetType | str | None = None,
        target_id: UUID | None = None,
        flag_type: ReviewFlagType | str | None = None,
        status: ReviewFlagStatus | str | None = None,
        overdue: bool = False,
        page: int = 1,
        page_size: int | None = None,
    ) -> Page:
        """List flags, newest first."""
        query = select(ReviewFlag)
        if target_type is not None:
            target_type = _coerce(FlagTargetType, target_type, "target_type")
            query = query.where(ReviewFlag.target_type == target_type.value)
        if target_id is not None:
            query = query.where(ReviewFlag.target_id == target_id)
        if flag_type is not None:
            query = query.where(ReviewFlag.flag_type == _coerce(ReviewFlagType, flag_type, "flag_type"))
        if status is not None:
            query = query.where(ReviewFlag.status == _coerce(ReviewFlagStatus, status, "status"))
        if overdue:
            query = self._overdue_query(query, utcnow())
        query = query.order_by(ReviewFlag.created_at.desc(), ReviewFlag.id)
        return await _paginate(self.db, query, page, page_size)

    async def list_flags_by_target(
        self,
        target_type: FlagTargetType | str,
        target_id: UUID,
        status: ReviewFlagStatus | str | None = None,
    ) -> list[ReviewFlag]:
        """Get every flag raised on one target, newest first."""
        target_type = _coerce(FlagTargetType, target_type, "target_type")
        query = select(ReviewFlag).where(
            ReviewFlag.target_type == target_type.value,
            ReviewFlag.target_id == target_id,
        )
        if status is not None:
            query = query.where(ReviewFlag.status == _coerce(ReviewFlagStatus, status, "status"))
        result = await self.db.execute(query.order_by(ReviewFlag.created_at.desc()))
        return list(result.scalars().all())

    async def get_open_flag_counts(self) -> dict[str, int]:
        """Count OPEN and IN_PROGRESS flags per flag type."""
        rows = await self.db.execute(
            select(ReviewFlag.flag_type, func.count(ReviewFlag.id))
            .where(ReviewFlag.status.not_in(CLOSED_FLAG_STATUSES))
            .group_by(ReviewFlag.flag_type)
        )
        counts = {flag_type.value: 0 for flag_type in ReviewFlagType}
        for flag_type, count in rows.all():
            counts[ReviewFlagType(flag_type).value] = count
        return counts

    async def _close(
        self,
        flag_id: UUID,
        target: ReviewFlagStatus,
        resolution: str | None,
        closed_by_id: UUID | None,
    ) -> ReviewFlag:
        _require_text(resolution, "resolution")

        flag = await self.get_flag(flag_id)
        self._transition(flag, target)
        flag.resolution = resolution
        flag.resolved_by_id = closed_by_id
        flag.resolved_at = utcnow()

        await self.db.flush()
        return flag

    @staticmethod
    def _overdue_query(query, now: datetime):
        return query.where(
            ReviewFlag.due_date.is_not(None),
            ReviewFlag.due_date < now,
            ReviewFlag.status.not_in(CLOSED_FLAG_STATUSES),
        )

    def _transition(self, flag: ReviewFlag, target: ReviewFlagStatus) -> None:
        current = flag.status
        if not is_valid_flag_transition(current, target):
            logger.info("Rejected flag %s transition %s -> %s", flag.id, current, target)
            raise InvalidTransition(current, target)

        flag.status = target
        logger.info("Flag %s moved %s -> %s", flag.id, current, target)
