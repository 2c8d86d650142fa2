"""
Governance API Router

Endpoints for meetings, minutes, motions, annotations and review flags.
Every route is guarded by a capability; every successful mutation commits and
then writes one audit entry.
"""

from datetime import date
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from boardbook.auth.dependencies import Actor, require_capability
from boardbook.core.audit import AuditLogger, get_audit_logger
from boardbook.core.database import get_db
from boardbook.core.exceptions import NotFound
from boardbook.governance.models import (
    AnnotationTargetType,
    FlagTargetType,
    MeetingType,
    MinutesStatus,
    MotionResult,
    ReviewFlagStatus,
    ReviewFlagType,
)
from boardbook.governance.schemas import (
    AnnotationCountsResponse,
    AnnotationCreate,
    AnnotationResponse,
    AnnotationUpdate,
    MeetingCreate,
    MeetingListItem,
    MeetingResponse,
    MeetingUpdate,
    MinutesApproveRequest,
    MinutesBrief,
    MinutesCreate,
    MinutesResponse,
    MinutesReviseRequest,
    MinutesRevisionCreate,
    MinutesUpdate,
    MotionCreate,
    MotionResponse,
    MotionStatsResponse,
    MotionUpdate,
    PaginatedResponse,
    RecordVoteRequest,
    ResolveFlagRequest,
    ReviewFlagCreate,
    ReviewFlagResponse,
    ReviewFlagUpdate,
)
from boardbook.governance.services import (
    AnnotationService,
    MeetingService,
    MinutesWorkflowService,
    MotionLedgerService,
    Page,
    ReviewFlagService,
)

router = APIRouter(prefix="/governance", tags=["governance"])


# =============================================================================
# Helpers
# =============================================================================


def paginated(page: Page, schema: Any) -> PaginatedResponse:
    """Serialize a service page with the given response schema."""
    return PaginatedResponse(
        items=[schema.model_validate(item) for item in page.items],
        total=page.total,
        page=page.page,
        page_size=page.page_size,
        pages=page.pages,
    )


async def audit(
    audit_logger: AuditLogger,
    action: str,
    object_type: str,
    object_id: UUID,
    actor: Actor,
    capability: str,
    **metadata: Any,
) -> None:
    """Record the audit entry of a committed mutation."""
    await audit_logger.record_audit(
        action,
        object_type,
        object_id,
        actor.id,
        {"capability": capability, "actor_role": actor.role, **metadata},
    )


# =============================================================================
# Meetings
# =============================================================================


@router.get("/meetings", response_model=PaginatedResponse)
async def list_meetings(
    type: MeetingType | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_capability("meetings:read")),
) -> PaginatedResponse:
    """List meetings, newest first, with their latest minutes and motion count."""
    result = await MeetingService(db).list_meetings(type, start_date, end_date, page, page_size)
    return PaginatedResponse(
        items=[
            MeetingListItem(
                meeting=MeetingResponse.model_validate(summary.meeting),
                latest_minutes=(
                    MinutesBrief.model_validate(summary.latest_minutes)
                    if summary.latest_minutes
                    else None
                ),
                motion_count=summary.motion_count,
            )
            for summary in result.items
        ],
        total=result.total,
        page=result.page,
        page_size=result.page_size,
        pages=result.pages,
    )


@router.post("/meetings", response_model=MeetingResponse, status_code=status.HTTP_201_CREATED)
async def create_meeting(
    data: MeetingCreate,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_capability("meetings:manage")),
    audit_logger: AuditLogger = Depends(get_audit_logger),
) -> MeetingResponse:
    """Record a meeting."""
    meeting = await MeetingService(db).create_meeting(
        data.date,
        data.type,
        created_by_id=actor.id,
        title=data.title,
        location=data.location,
        attendance_count=data.attendance_count,
        quorum_met=data.quorum_met,
    )
    await db.commit()
    await audit(audit_logger, "create", "Meeting", meeting.id, actor, "meetings:manage")
    return meeting


@router.get("/meetings/{meeting_id}", response_model=MeetingResponse)
async def get_meeting(
    meeting_id: UUID,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_capability("meetings:read")),
) -> MeetingResponse:
    """Get a meeting."""
    return await MeetingService(db).get_meeting(meeting_id)


@router.patch("/meetings/{meeting_id}", response_model=MeetingResponse)
async def update_meeting(
    meeting_id: UUID,
    data: MeetingUpdate,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_capability("meetings:manage")),
    audit_logger: AuditLogger = Depends(get_audit_logger),
) -> MeetingResponse:
    """Update a meeting's title, location or attendance."""
    changes = data.model_dump(exclude_unset=True)
    meeting = await MeetingService(db).update_meeting(meeting_id, changes)
    await db.commit()
    await audit(
        audit_logger, "update", "Meeting", meeting.id, actor, "meetings:manage",
        fields=",".join(sorted(changes)),
    )
    return meeting


@router.delete("/meetings/{meeting_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_meeting(
    meeting_id: UUID,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_capability("meetings:manage")),
    audit_logger: AuditLogger = Depends(get_audit_logger),
) -> None:
    """Delete a meeting without minutes or motions."""
    await MeetingService(db).delete_meeting(meeting_id)
    await db.commit()
    await audit(audit_logger, "delete", "Meeting", meeting_id, actor, "meetings:manage")


# =============================================================================
# Minutes
# =============================================================================


@router.get("/meetings/{meeting_id}/minutes", response_model=list[MinutesResponse])
async def get_minutes_history(
    meeting_id: UUID,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_capability("meetings:minutes:read_all")),
) -> list[MinutesResponse]:
    """Get every minutes version of a meeting, oldest first."""
    return await MinutesWorkflowService(db).get_minutes_history(meeting_id)


@router.get("/meetings/{meeting_id}/minutes/current", response_model=MinutesResponse | None)
async def get_current_minutes(
    meeting_id: UUID,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_capability("meetings:minutes:read_all")),
) -> MinutesResponse | None:
    """Get the version that currently represents a meeting's minutes."""
    await MeetingService(db).get_meeting(meeting_id)
    return await MinutesWorkflowService(db).get_current_minutes(meeting_id)


@router.post(
    "/meetings/{meeting_id}/minutes",
    response_model=MinutesResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_minutes(
    meeting_id: UUID,
    data: MinutesCreate,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_capability("meetings:minutes:draft:create")),
    audit_logger: AuditLogger = Depends(get_audit_logger),
) -> MinutesResponse:
    """Start a minutes draft."""
    minutes = await MinutesWorkflowService(db).create_minutes(
        meeting_id, data.content, created_by_id=actor.id, summary=data.summary
    )
    await db.commit()
    await audit(
        audit_logger, "create", "Minutes", minutes.id, actor, "meetings:minutes:draft:create",
        status=minutes.status, version=minutes.version,
    )
    return minutes


@router.post(
    "/meetings/{meeting_id}/minutes/revisions",
    response_model=MinutesResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_minutes_revision(
    meeting_id: UUID,
    data: MinutesRevisionCreate,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_capability("meetings:minutes:draft:create")),
    audit_logger: AuditLogger = Depends(get_audit_logger),
) -> MinutesResponse:
    """Start a new draft based on an earlier minutes version."""
    minutes = await MinutesWorkflowService(db).create_minutes_revision(
        meeting_id, data.from_version_id, created_by_id=actor.id, content=data.content
    )
    await db.commit()
    await audit(
        audit_logger, "create_revision", "Minutes", minutes.id, actor,
        "meetings:minutes:draft:create",
        status=minutes.status, version=minutes.version, based_on_id=minutes.based_on_id,
    )
    return minutes


@router.get("/minutes", response_model=PaginatedResponse)
async def list_minutes(
    meeting_id: UUID | None = None,
    status_filter: MinutesStatus | None = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_capability("meetings:minutes:read_all")),
) -> PaginatedResponse:
    """List minutes versions."""
    result = await MinutesWorkflowService(db).list_minutes(meeting_id, status_filter, page, page_size)
    return paginated(result, MinutesResponse)


@router.get("/minutes/{minutes_id}", response_model=MinutesResponse)
async def get_minutes(
    minutes_id: UUID,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_capability("meetings:minutes:read_all")),
) -> MinutesResponse:
    """Get a minutes version."""
    return await MinutesWorkflowService(db).get_minutes(minutes_id)


@router.patch("/minutes/{minutes_id}", response_model=MinutesResponse)
async def update_minutes(
    minutes_id: UUID,
    data: MinutesUpdate,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_capability("meetings:minutes:draft:edit")),
    audit_logger: AuditLogger = Depends(get_audit_logger),
) -> MinutesResponse:
    """Edit a DRAFT or REVISED minutes version."""
    minutes = await MinutesWorkflowService(db).update_minutes(
        minutes_id, edited_by_id=actor.id, content=data.content, summary=data.summary
    )
    await db.commit()
    await audit(audit_logger, "update", "Minutes", minutes.id, actor, "meetings:minutes:draft:edit")
    return minutes


@router.delete("/minutes/{minutes_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_minutes(
    minutes_id: UUID,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_capability("meetings:minutes:draft:edit")),
    audit_logger: AuditLogger = Depends(get_audit_logger),
) -> None:
    """Delete a DRAFT minutes version."""
    await MinutesWorkflowService(db).delete_minutes(minutes_id)
    await db.commit()
    await audit(audit_logger, "delete", "Minutes", minutes_id, actor, "meetings:minutes:draft:edit")


@router.post("/minutes/{minutes_id}/submit", response_model=MinutesResponse)
async def submit_minutes(
    minutes_id: UUID,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_capability("meetings:minutes:draft:submit")),
    audit_logger: AuditLogger = Depends(get_audit_logger),
) -> MinutesResponse:
    """Submit minutes for review."""
    minutes = await MinutesWorkflowService(db).submit_minutes(minutes_id, submitted_by_id=actor.id)
    await db.commit()
    await audit(
        audit_logger, "submit", "Minutes", minutes.id, actor, "meetings:minutes:draft:submit",
        status=minutes.status,
    )
    return minutes


@router.post("/minutes/{minutes_id}/approve", response_model=MinutesResponse)
async def approve_minutes(
    minutes_id: UUID,
    data: MinutesApproveRequest | None = None,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_capability("meetings:minutes:finalize")),
    audit_logger: AuditLogger = Depends(get_audit_logger),
) -> MinutesResponse:
    """Approve submitted minutes."""
    minutes = await MinutesWorkflowService(db).approve_minutes(
        minutes_id, approved_by_id=actor.id, notes=data.notes if data else None
    )
    await db.commit()
    await audit(
        audit_logger, "approve", "Minutes", minutes.id, actor, "meetings:minutes:finalize",
        status=minutes.status,
    )
    return minutes


@router.post("/minutes/{minutes_id}/revise", response_model=MinutesResponse)
async def request_revision(
    minutes_id: UUID,
    data: MinutesReviseRequest,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_capability("meetings:minutes:revise")),
    audit_logger: AuditLogger = Depends(get_audit_logger),
) -> MinutesResponse:
    """Send submitted minutes back for changes. Returns the new REVISED version."""
    revision = await MinutesWorkflowService(db).request_revision(
        minutes_id, data.review_notes, reviewed_by_id=actor.id
    )
    await db.commit()
    await audit(
        audit_logger, "request_revision", "Minutes", minutes_id, actor, "meetings:minutes:revise",
        status=revision.status, revision_id=revision.id, version=revision.version,
    )
    return revision


@router.post("/minutes/{minutes_id}/publish", response_model=MinutesResponse)
async def publish_minutes(
    minutes_id: UUID,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_capability("meetings:minutes:finalize")),
    audit_logger: AuditLogger = Depends(get_audit_logger),
) -> MinutesResponse:
    """Publish approved minutes."""
    minutes = await MinutesWorkflowService(db).publish_minutes(minutes_id, published_by_id=actor.id)
    await db.commit()
    await audit(
        audit_logger, "publish", "Minutes", minutes.id, actor, "meetings:minutes:finalize",
        status=minutes.status,
    )
    return minutes


@router.post("/minutes/{minutes_id}/archive", response_model=MinutesResponse)
async def archive_minutes(
    minutes_id: UUID,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_capability("meetings:minutes:finalize")),
    audit_logger: AuditLogger = Depends(get_audit_logger),
) -> MinutesResponse:
    """Archive published minutes."""
    minutes = await MinutesWorkflowService(db).archive_minutes(minutes_id, archived_by_id=actor.id)
    await db.commit()
    await audit(
        audit_logger, "archive", "Minutes", minutes.id, actor, "meetings:minutes:finalize",
        status=minutes.status,
    )
    return minutes


# =============================================================================
# Motions
# =============================================================================


@router.get("/meetings/{meeting_id}/motions", response_model=PaginatedResponse)
async def list_meeting_motions(
    meeting_id: UUID,
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_capability("meetings:motions:read")),
) -> PaginatedResponse:
    """List a meeting's motions in number order."""
    result = await MotionLedgerService(db).list_motions_by_meeting(meeting_id, page, page_size)
    return paginated(result, MotionResponse)


@router.get("/meetings/{meeting_id}/motion-stats", response_model=MotionStatsResponse)
async def get_meeting_motion_stats(
    meeting_id: UUID,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_capability("meetings:motions:read")),
) -> MotionStatsResponse:
    """Count a meeting's motions by result."""
    return MotionStatsResponse(**await MotionLedgerService(db).get_meeting_motion_stats(meeting_id))


@router.post(
    "/meetings/{meeting_id}/motions",
    response_model=MotionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_motion(
    meeting_id: UUID,
    data: MotionCreate,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_capability("meetings:motions:manage")),
    audit_logger: AuditLogger = Depends(get_audit_logger),
) -> MotionResponse:
    """Record a motion with the meeting's next number."""
    motion = await MotionLedgerService(db).create_motion(
        meeting_id,
        data.motion_text,
        created_by_id=actor.id,
        moved_by_id=data.moved_by_id,
        seconded_by_id=data.seconded_by_id,
    )
    await db.commit()
    await audit(
        audit_logger, "create", "Motion", motion.id, actor, "meetings:motions:manage",
        motion_number=motion.motion_number,
    )
    return motion


@router.get("/motions", response_model=PaginatedResponse)
async def list_motions(
    meeting_id: UUID | None = None,
    result: MotionResult | None = None,
    has_result: bool | None = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_capability("meetings:motions:read")),
) -> PaginatedResponse:
    """List motions across meetings."""
    motions = await MotionLedgerService(db).list_motions(
        meeting_id, result, has_result, page, page_size
    )
    return paginated(motions, MotionResponse)


@router.get("/motions/{motion_id}", response_model=MotionResponse)
async def get_motion(
    motion_id: UUID,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_capability("meetings:motions:read")),
) -> MotionResponse:
    """Get a motion."""
    return await MotionLedgerService(db).get_motion(motion_id)


@router.patch("/motions/{motion_id}", response_model=MotionResponse)
async def update_motion(
    motion_id: UUID,
    data: MotionUpdate,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_capability("meetings:motions:manage")),
    audit_logger: AuditLogger = Depends(get_audit_logger),
) -> MotionResponse:
    """Update a motion, or withdraw it."""
    changes = data.model_dump(exclude_unset=True)
    motion = await MotionLedgerService(db).update_motion(motion_id, changes)
    await db.commit()
    await audit(
        audit_logger, "update", "Motion", motion.id, actor, "meetings:motions:manage",
        fields=",".join(sorted(changes)), result=motion.result,
    )
    return motion


@router.delete("/motions/{motion_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_motion(
    motion_id: UUID,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_capability("meetings:motions:manage")),
    audit_logger: AuditLogger = Depends(get_audit_logger),
) -> None:
    """Delete a motion that was not voted on."""
    await MotionLedgerService(db).delete_motion(motion_id)
    await db.commit()
    await audit(audit_logger, "delete", "Motion", motion_id, actor, "meetings:motions:manage")


@router.post("/motions/{motion_id}/vote", response_model=MotionResponse)
async def record_vote(
    motion_id: UUID,
    data: RecordVoteRequest,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_capability("meetings:motions:manage")),
    audit_logger: AuditLogger = Depends(get_audit_logger),
) -> MotionResponse:
    """Record the vote on a motion."""
    motion = await MotionLedgerService(db).record_vote(
        motion_id,
        data.votes_yes,
        data.votes_no,
        data.votes_abstain,
        data.result,
        data.result_notes,
    )
    await db.commit()
    await audit(
        audit_logger, "record_vote", "Motion", motion.id, actor, "meetings:motions:manage",
        result=motion.result,
    )
    return motion


# =============================================================================
# Annotations
# =============================================================================


@router.get("/annotations", response_model=PaginatedResponse)
async def list_annotations(
    target_type: AnnotationTargetType | None = None,
    target_id: UUID | None = None,
    motion_id: UUID | None = None,
    minutes_id: UUID | None = None,
    include_unpublished: bool = False,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_capability("meetings:read")),
) -> PaginatedResponse:
    """
    List annotations.

    Unpublished annotations are only included for actors who may write
    annotations.
    """
    if minutes_id is not None:
        target_type, target_id = AnnotationTargetType.MINUTES, minutes_id

    result = await AnnotationService(db).list_annotations(
        target_type=target_type,
        target_id=target_id,
        motion_id=motion_id,
        include_unpublished=include_unpublished and actor.can("governance:annotations:write"),
        page=page,
        page_size=page_size,
    )
    return paginated(result, AnnotationResponse)


@router.get("/annotations/counts", response_model=AnnotationCountsResponse)
async def get_annotation_counts(
    target_type: AnnotationTargetType | None = None,
    target_id: UUID | None = None,
    minutes_id: UUID | None = None,
    motion_id: UUID | None = None,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_capability("meetings:read")),
) -> AnnotationCountsResponse:
    """Count annotations. Readers without annotation rights only see published ones."""
    counts = await AnnotationService(db).get_annotation_counts(
        target_type=target_type,
        target_id=target_id,
        minutes_id=minutes_id,
        motion_id=motion_id,
        include_unpublished=actor.can("governance:annotations:write"),
    )
    return AnnotationCountsResponse(**counts)


@router.get("/annotations/{annotation_id}", response_model=AnnotationResponse)
async def get_annotation(
    annotation_id: UUID,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_capability("meetings:read")),
) -> AnnotationResponse:
    """Get an annotation. Unpublished ones are hidden from readers."""
    annotation = await AnnotationService(db).get_annotation(annotation_id)
    if not annotation.is_published and not actor.can("governance:annotations:write"):
        raise NotFound("Annotation", annotation_id)
    return annotation


@router.post("/annotations", response_model=AnnotationResponse, status_code=status.HTTP_201_CREATED)
async def create_annotation(
    data: AnnotationCreate,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_capability("governance:annotations:write")),
    audit_logger: AuditLogger = Depends(get_audit_logger),
) -> AnnotationResponse:
    """Attach an annotation to a governance artifact."""
    if data.is_published and not actor.can("governance:annotations:publish"):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Missing capability: governance:annotations:publish",
        )

    annotation = await AnnotationService(db).create_annotation(
        data.target_type,
        data.target_id,
        data.body,
        created_by_id=actor.id,
        anchor=data.anchor,
        motion_id=data.motion_id,
        is_published=data.is_published,
    )
    await db.commit()
    await audit(
        audit_logger, "create", "Annotation", annotation.id, actor, "governance:annotations:write",
        target_type=annotation.target_type, target_id=annotation.target_id,
    )
    return annotation


@router.patch("/annotations/{annotation_id}", response_model=AnnotationResponse)
async def update_annotation(
    annotation_id: UUID,
    data: AnnotationUpdate,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_capability("governance:annotations:write")),
    audit_logger: AuditLogger = Depends(get_audit_logger),
) -> AnnotationResponse:
    """Update an annotation."""
    changes = data.model_dump(exclude_unset=True)
    if "is_published" in changes and not actor.can("governance:annotations:publish"):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Missing capability: governance:annotations:publish",
        )

    annotation = await AnnotationService(db).update_annotation(annotation_id, changes)
    await db.commit()
    await audit(
        audit_logger, "update", "Annotation", annotation.id, actor, "governance:annotations:write",
        fields=",".join(sorted(changes)),
    )
    return annotation


@router.delete("/annotations/{annotation_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_annotation(
    annotation_id: UUID,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_capability("governance:annotations:write")),
    audit_logger: AuditLogger = Depends(get_audit_logger),
) -> None:
    """Delete an annotation."""
    await AnnotationService(db).delete_annotation(annotation_id)
    await db.commit()
    await audit(
        audit_logger, "delete", "Annotation", annotation_id, actor, "governance:annotations:write"
    )


@router.post("/annotations/{annotation_id}/publish", response_model=AnnotationResponse)
async def publish_annotation(
    annotation_id: UUID,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_capability("governance:annotations:publish")),
    audit_logger: AuditLogger = Depends(get_audit_logger),
) -> AnnotationResponse:
    """Publish an annotation."""
    annotation = await AnnotationService(db).publish_annotation(annotation_id)
    await db.commit()
    await audit(
        audit_logger, "publish", "Annotation", annotation.id, actor, "governance:annotations:publish"
    )
    return annotation


@router.post("/annotations/{annotation_id}/unpublish", response_model=AnnotationResponse)
async def unpublish_annotation(
    annotation_id: UUID,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_capability("governance:annotations:publish")),
    audit_logger: AuditLogger = Depends(get_audit_logger),
) -> AnnotationResponse:
    """Unpublish an annotation."""
    annotation = await AnnotationService(db).unpublish_annotation(annotation_id)
    await db.commit()
    await audit(
        audit_logger, "unpublish", "Annotation", annotation.id, actor,
        "governance:annotations:publish",
    )
    return annotation


# =============================================================================
# Review Flags
# =============================================================================


@router.get("/flags", response_model=PaginatedResponse)
async def list_flags(
    target_type: FlagTargetType | None = None,
    target_id: UUID | None = None,
    flag_type: ReviewFlagType | None = None,
    status_filter: ReviewFlagStatus | None = Query(None, alias="status"),
    overdue: bool = False,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_capability("governance:flags:read")),
) -> PaginatedResponse:
    """List review flags, newest first."""
    result = await ReviewFlagService(db).list_flags(
        target_type=target_type,
        target_id=target_id,
        flag_type=flag_type,
        status=status_filter,
        overdue=overdue,
        page=page,
        page_size=page_size,
    )
    return paginated(result, ReviewFlagResponse)


@router.get("/flags/overdue", response_model=list[ReviewFlagResponse])
async def get_overdue_flags(
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_capability("governance:flags:read")),
) -> list[ReviewFlagResponse]:
    """Get flags past their due date that are not closed."""
    return await ReviewFlagService(db).get_overdue_flags()


@router.get("/flags/counts", response_model=dict[str, int])
async def get_open_flag_counts(
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_capability("governance:flags:read")),
) -> dict[str, int]:
    """Count OPEN and IN_PROGRESS flags per flag type."""
    return await ReviewFlagService(db).get_open_flag_counts()


@router.get("/flags/{flag_id}", response_model=ReviewFlagResponse)
async def get_flag(
    flag_id: UUID,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_capability("governance:flags:read")),
) -> ReviewFlagResponse:
    """Get a review flag."""
    return await ReviewFlagService(db).get_flag(flag_id)


@router.post("/flags", response_model=ReviewFlagResponse, status_code=status.HTTP_201_CREATED)
async def create_flag(
    data: ReviewFlagCreate,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_capability("governance:flags:create")),
    audit_logger: AuditLogger = Depends(get_audit_logger),
) -> ReviewFlagResponse:
    """Raise a review flag."""
    flag = await ReviewFlagService(db).create_flag(
        data.target_type,
        data.target_id,
        data.flag_type,
        data.title,
        created_by_id=actor.id,
        notes=data.notes,
        due_date=data.due_date,
    )
    await db.commit()
    await audit(
        audit_logger, "create", "ReviewFlag", flag.id, actor, "governance:flags:create",
        status=flag.status, flag_type=flag.flag_type,
    )
    return flag


@router.patch("/flags/{flag_id}", response_model=ReviewFlagResponse)
async def update_flag(
    flag_id: UUID,
    data: ReviewFlagUpdate,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_capability("governance:flags:create")),
    audit_logger: AuditLogger = Depends(get_audit_logger),
) -> ReviewFlagResponse:
    """Update a review flag."""
    changes = data.model_dump(exclude_unset=True)
    flag = await ReviewFlagService(db).update_flag(flag_id, changes)
    await db.commit()
    await audit(
        audit_logger, "update", "ReviewFlag", flag.id, actor, "governance:flags:create",
        status=flag.status, fields=",".join(sorted(changes)),
    )
    return flag


@router.delete("/flags/{flag_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_flag(
    flag_id: UUID,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_capability("governance:flags:create")),
    audit_logger: AuditLogger = Depends(get_audit_logger),
) -> None:
    """Delete an OPEN review flag."""
    await ReviewFlagService(db).delete_flag(flag_id)
    await db.commit()
    await audit(audit_logger, "delete", "ReviewFlag", flag_id, actor, "governance:flags:create")


@router.post("/flags/{flag_id}/start", response_model=ReviewFlagResponse)
async def start_flag(
    flag_id: UUID,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_capability("governance:flags:resolve")),
    audit_logger: AuditLogger = Depends(get_audit_logger),
) -> ReviewFlagResponse:
    """Start working on a review flag."""
    flag = await ReviewFlagService(db).start_flag(flag_id)
    await db.commit()
    await audit(
        audit_logger, "start", "ReviewFlag", flag.id, actor, "governance:flags:resolve",
        status=flag.status,
    )
    return flag


@router.post("/flags/{flag_id}/resolve", response_model=ReviewFlagResponse)
async def resolve_flag(
    flag_id: UUID,
    data: ResolveFlagRequest,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_capability("governance:flags:resolve")),
    audit_logger: AuditLogger = Depends(get_audit_logger),
) -> ReviewFlagResponse:
    """Resolve a review flag."""
    flag = await ReviewFlagService(db).resolve_flag(
        flag_id, data.resolution, resolved_by_id=actor.id
    )
    await db.commit()
    await audit(
        audit_logger, "resolve", "ReviewFlag", flag.id, actor, "governance:flags:resolve",
        status=flag.status,
    )
    return flag


@router.post("/flags/{flag_id}/dismiss", response_model=ReviewFlagResponse)
async def dismiss_flag(
    flag_id: UUID,
    data: ResolveFlagRequest,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_capability("governance:flags:resolve")),
    audit_logger: AuditLogger = Depends(get_audit_logger),
) -> ReviewFlagResponse:
    """Dismiss a review flag."""
    flag = await ReviewFlagService(db).dismiss_flag(
        flag_id, data.resolution, dismissed_by_id=actor.id
    )
    await db.commit()
    await audit(
        audit_logger, "dismiss", "ReviewFlag", flag.id, actor, "governance:flags:resolve",
        status=flag.status,
    )
    return flag


@router.post("/flags/{flag_id}/reopen", response_model=ReviewFlagResponse)
async def reopen_flag(
    flag_id: UUID,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_capability("governance:flags:resolve")),
    audit_logger: AuditLogger = Depends(get_audit_logger),
) -> ReviewFlagResponse:
    """Reopen a resolved or dismissed review flag."""
    flag = await ReviewFlagService(db).reopen_flag(flag_id)
    await db.commit()
    await audit(
        audit_logger, "reopen", "ReviewFlag", flag.id, actor, "governance:flags:resolve",
        status=flag.status,
    )
    return flag
