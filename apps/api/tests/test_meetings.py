"""
Tests for the meeting registry.
"""

import uuid
from datetime import date

import pytest

from boardbook.core.exceptions import BadRequest, Conflict, NotFound
from boardbook.governance.models import MeetingType, MinutesStatus
from boardbook.governance.services import (
    MeetingService,
    MinutesWorkflowService,
    MotionLedgerService,
)

from conftest import SECRETARY_ID


class TestCreateMeeting:
    """Tests for recording meetings."""

    @pytest.mark.asyncio
    async def test_create(self, db) -> None:
        meeting = await MeetingService(db).create_meeting(
            date(2026, 10, 5),
            "SPECIAL",
            SECRETARY_ID,
            title="Budget hearing",
            attendance_count=9,
        )

        assert meeting.type == MeetingType.SPECIAL
        assert meeting.quorum_met is True
        assert meeting.created_by_id == SECRETARY_ID

    @pytest.mark.asyncio
    async def test_duplicate_date_and_type(self, db, meeting) -> None:
        with pytest.raises(Conflict) as exc_info:
            await MeetingService(db).create_meeting(meeting.date, MeetingType.BOARD)

        assert exc_info.value.details["meeting_id"] == str(meeting.id)

    @pytest.mark.asyncio
    async def test_same_date_other_type(self, db, meeting) -> None:
        other = await MeetingService(db).create_meeting(meeting.date, MeetingType.EXECUTIVE)

        assert other.id != meeting.id

    @pytest.mark.asyncio
    async def test_unknown_type(self, db) -> None:
        with pytest.raises(BadRequest) as exc_info:
            await MeetingService(db).create_meeting(date(2026, 10, 5), "PICNIC")

        assert exc_info.value.details["field"] == "type"

    @pytest.mark.asyncio
    async def test_negative_attendance(self, db) -> None:
        with pytest.raises(BadRequest):
            await MeetingService(db).create_meeting(
                date(2026, 10, 5), MeetingType.BOARD, attendance_count=-1
            )


class TestListMeetings:
    """Tests for the meeting listing."""

    @pytest.mark.asyncio
    async def test_summary_carries_latest_minutes_and_motion_count(self, db, meeting) -> None:
        minutes_service = MinutesWorkflowService(db)
        first = await minutes_service.create_minutes(meeting.id, {"body": "Draft"}, SECRETARY_ID)
        await minutes_service.submit_minutes(first.id, SECRETARY_ID)
        await minutes_service.request_revision(first.id, "Fix attendance", SECRETARY_ID)
        motions = MotionLedgerService(db)
        await motions.create_motion(meeting.id, "Approve the agenda")
        await motions.create_motion(meeting.id, "Adjourn")

        page = await MeetingService(db).list_meetings()

        assert page.total == 1
        summary = page.items[0]
        assert summary.meeting.id == meeting.id
        assert summary.latest_minutes.version == 2
        assert summary.latest_minutes.status == MinutesStatus.REVISED
        assert summary.motion_count == 2

    @pytest.mark.asyncio
    async def test_newest_first_and_filters(self, db, meeting) -> None:
        service = MeetingService(db)
        await service.create_meeting(date(2026, 8, 10), MeetingType.BOARD)
        await service.create_meeting(date(2026, 10, 12), MeetingType.EXECUTIVE)

        everything = await service.list_meetings()
        boards = await service.list_meetings(meeting_type="BOARD")
        autumn = await service.list_meetings(start_date=date(2026, 9, 1), end_date=date(2026, 9, 30))

        assert [s.meeting.date for s in everything.items] == [
            date(2026, 10, 12),
            date(2026, 9, 14),
            date(2026, 8, 10),
        ]
        assert all(s.meeting.type == MeetingType.BOARD for s in boards.items)
        assert boards.total == 2
        assert [s.meeting.id for s in autumn.items] == [meeting.id]

    @pytest.mark.asyncio
    async def test_meeting_without_records(self, db, meeting) -> None:
        page = await MeetingService(db).list_meetings()

        assert page.items[0].latest_minutes is None
        assert page.items[0].motion_count == 0

    @pytest.mark.asyncio
    async def test_empty_page(self, db) -> None:
        page = await MeetingService(db).list_meetings(page=3)

        assert page.items == []
        assert page.total == 0


class TestUpdateMeeting:
    """Tests for editing meetings."""

    @pytest.mark.asyncio
    async def test_update_descriptive_fields(self, db, meeting) -> None:
        updated = await MeetingService(db).update_meeting(
            meeting.id, {"location": "Clubhouse", "attendance_count": 11, "quorum_met": False}
        )

        assert updated.location == "Clubhouse"
        assert updated.attendance_count == 11
        assert updated.quorum_met is False

    @pytest.mark.asyncio
    @pytest.mark.parametrize("field", ["date", "type", "created_by_id"])
    async def test_identity_fields_rejected(self, db, meeting, field) -> None:
        with pytest.raises(BadRequest) as exc_info:
            await MeetingService(db).update_meeting(meeting.id, {field: None})

        assert exc_info.value.details["fields"] == [field]

    @pytest.mark.asyncio
    async def test_quorum_cannot_be_null(self, db, meeting) -> None:
        with pytest.raises(BadRequest):
            await MeetingService(db).update_meeting(meeting.id, {"quorum_met": None})

    @pytest.mark.asyncio
    async def test_unknown_meeting(self, db) -> None:
        with pytest.raises(NotFound):
            await MeetingService(db).update_meeting(uuid.uuid4(), {"title": "Nothing"})


class TestDeleteMeeting:
    """Tests for deleting meetings."""

    @pytest.mark.asyncio
    async def test_delete_empty_meeting(self, db, meeting) -> None:
        service = MeetingService(db)

        await service.delete_meeting(meeting.id)

        with pytest.raises(NotFound):
            await service.get_meeting(meeting.id)

    @pytest.mark.asyncio
    async def test_meeting_with_records_is_kept(self, db, meeting) -> None:
        await MinutesWorkflowService(db).create_minutes(meeting.id, {"body": "Draft"})
        await MotionLedgerService(db).create_motion(meeting.id, "Adjourn")

        with pytest.raises(Conflict) as exc_info:
            await MeetingService(db).delete_meeting(meeting.id)

        assert exc_info.value.details["minutes_count"] == 1
        assert exc_info.value.details["motions_count"] == 1
