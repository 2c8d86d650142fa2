"""
Tests for the motion ledger.
"""

import asyncio
import uuid
from datetime import date

import pytest
from sqlalchemy import select

from boardbook.core.exceptions import BadRequest, Conflict, NotFound
from boardbook.governance.models import Annotation, Motion, MotionResult
from boardbook.governance.services import AnnotationService, MeetingService, MotionLedgerService

from conftest import SECRETARY_ID


class TestNumbering:
    """Tests for per-meeting motion numbers."""

    @pytest.mark.asyncio
    async def test_sequential_numbers(self, db, meeting) -> None:
        service = MotionLedgerService(db)

        first = await service.create_motion(meeting.id, "Approve the agenda", SECRETARY_ID)
        second = await service.create_motion(meeting.id, "Approve the budget", SECRETARY_ID)

        assert (first.motion_number, second.motion_number) == (1, 2)
        assert first.result is None
        assert (first.votes_yes, first.votes_no, first.votes_abstain) == (0, 0, 0)

    @pytest.mark.asyncio
    async def test_numbers_are_per_meeting(self, db, meeting) -> None:
        other = await MeetingService(db).create_meeting(date(2026, 9, 15), "EXECUTIVE")
        service = MotionLedgerService(db)
        await service.create_motion(meeting.id, "First")

        motion = await service.create_motion(other.id, "First of another meeting")

        assert motion.motion_number == 1

    @pytest.mark.asyncio
    async def test_numbers_continue_after_delete(self, db, meeting) -> None:
        """A deleted last motion frees its number; earlier gaps are not refilled."""
        service = MotionLedgerService(db)
        await service.create_motion(meeting.id, "One")
        two = await service.create_motion(meeting.id, "Two")
        await service.create_motion(meeting.id, "Three")
        await service.delete_motion(two.id)

        motion = await service.create_motion(meeting.id, "Four")

        assert motion.motion_number == 4

    @pytest.mark.asyncio
    @pytest.mark.slow
    async def test_parallel_creates_get_distinct_numbers(self, session_maker, meeting) -> None:
        """Concurrent sessions on one meeting end up numbered 1..N."""
        count = 12

        async def record(i: int) -> int:
            async with session_maker() as session:
                motion = await MotionLedgerService(session).create_motion(
                    meeting.id, f"Parallel motion {i}", SECRETARY_ID
                )
                await session.commit()
                return motion.motion_number

        numbers = await asyncio.gather(*(record(i) for i in range(count)))

        assert sorted(numbers) == list(range(1, count + 1))

    @pytest.mark.asyncio
    async def test_unknown_meeting(self, db) -> None:
        with pytest.raises(NotFound):
            await MotionLedgerService(db).create_motion(uuid.uuid4(), "Orphan")

    @pytest.mark.asyncio
    async def test_text_required(self, db, meeting) -> None:
        with pytest.raises(BadRequest):
            await MotionLedgerService(db).create_motion(meeting.id, "  ")


class TestVoting:
    """Tests for recording votes."""

    @pytest.mark.asyncio
    async def test_record_vote(self, db, meeting) -> None:
        service = MotionLedgerService(db)
        motion = await service.create_motion(meeting.id, "Approve the budget")

        voted = await service.record_vote(motion.id, 7, 2, 1, MotionResult.PASSED, "Carried")

        assert (voted.votes_yes, voted.votes_no, voted.votes_abstain) == (7, 2, 1)
        assert voted.result == MotionResult.PASSED
        assert voted.result_notes == "Carried"

    @pytest.mark.asyncio
    async def test_record_vote_is_idempotent(self, db, meeting) -> None:
        service = MotionLedgerService(db)
        motion = await service.create_motion(meeting.id, "Approve the budget")

        await service.record_vote(motion.id, 5, 4, 0, "FAILED")
        again = await service.record_vote(motion.id, 5, 4, 0, "FAILED")

        assert (again.votes_yes, again.votes_no, again.votes_abstain) == (5, 4, 0)
        assert again.result == MotionResult.FAILED

    @pytest.mark.asyncio
    async def test_invalid_result(self, db, meeting) -> None:
        service = MotionLedgerService(db)
        motion = await service.create_motion(meeting.id, "Approve the budget")

        with pytest.raises(BadRequest):
            await service.record_vote(motion.id, 1, 0, 0, "CARRIED")
        assert motion.result is None

    @pytest.mark.asyncio
    async def test_negative_tally(self, db, meeting) -> None:
        service = MotionLedgerService(db)
        motion = await service.create_motion(meeting.id, "Approve the budget")

        with pytest.raises(BadRequest):
            await service.record_vote(motion.id, 3, -1, 0, MotionResult.PASSED)

    @pytest.mark.asyncio
    async def test_stats(self, db, meeting) -> None:
        service = MotionLedgerService(db)
        results = [MotionResult.PASSED, MotionResult.PASSED, MotionResult.FAILED, MotionResult.TABLED]
        for i, result in enumerate(results):
            motion = await service.create_motion(meeting.id, f"Motion {i}")
            await service.record_vote(motion.id, 1, 0, 0, result)
        withdrawn = await service.create_motion(meeting.id, "Withdrawn")
        await service.update_motion(withdrawn.id, {"result": "WITHDRAWN"})
        await service.create_motion(meeting.id, "Pending")

        stats = await service.get_meeting_motion_stats(meeting.id)

        assert stats == {
            "total": 6,
            "passed": 2,
            "failed": 1,
            "tabled": 1,
            "withdrawn": 1,
            "pending": 1,
        }


class TestUpdateMotion:
    """Tests for editing motions."""

    @pytest.mark.asyncio
    async def test_edit_text_and_mover(self, db, meeting) -> None:
        service = MotionLedgerService(db)
        motion = await service.create_motion(meeting.id, "Original")
        mover = uuid.uuid4()

        updated = await service.update_motion(
            motion.id, {"motion_text": "Amended", "moved_by_id": mover}
        )

        assert updated.motion_text == "Amended"
        assert updated.moved_by_id == mover

    @pytest.mark.asyncio
    async def test_withdraw(self, db, meeting) -> None:
        service = MotionLedgerService(db)
        motion = await service.create_motion(meeting.id, "Original")

        updated = await service.update_motion(
            motion.id, {"result": MotionResult.WITHDRAWN, "result_notes": "Mover withdrew"}
        )

        assert updated.result == MotionResult.WITHDRAWN

    @pytest.mark.asyncio
    @pytest.mark.parametrize("result", ["PASSED", "FAILED", "TABLED", None, "NOPE"])
    async def test_other_results_rejected(self, db, meeting, result) -> None:
        service = MotionLedgerService(db)
        motion = await service.create_motion(meeting.id, "Original")

        with pytest.raises(BadRequest):
            await service.update_motion(motion.id, {"result": result})

    @pytest.mark.asyncio
    async def test_tallies_not_editable(self, db, meeting) -> None:
        service = MotionLedgerService(db)
        motion = await service.create_motion(meeting.id, "Original")

        with pytest.raises(BadRequest):
            await service.update_motion(motion.id, {"votes_yes": 9})


class TestDeleteMotion:
    """Tests for deleting motions."""

    @pytest.mark.asyncio
    async def test_delete_pending(self, db, meeting) -> None:
        service = MotionLedgerService(db)
        motion = await service.create_motion(meeting.id, "Pending")

        await service.delete_motion(motion.id)

        with pytest.raises(NotFound):
            await service.get_motion(motion.id)

    @pytest.mark.asyncio
    async def test_voted_motion_cannot_be_deleted(self, db, meeting) -> None:
        service = MotionLedgerService(db)
        motion = await service.create_motion(meeting.id, "Voted")
        await service.record_vote(motion.id, 3, 3, 0, MotionResult.TABLED)

        with pytest.raises(Conflict):
            await service.delete_motion(motion.id)

    @pytest.mark.asyncio
    async def test_withdrawn_motion_cannot_be_deleted(self, db, meeting) -> None:
        service = MotionLedgerService(db)
        motion = await service.create_motion(meeting.id, "Withdrawn")
        await service.update_motion(motion.id, {"result": "WITHDRAWN"})

        with pytest.raises(Conflict):
            await service.delete_motion(motion.id)

    @pytest.mark.asyncio
    async def test_delete_keeps_annotations(self, db, meeting) -> None:
        """Annotations outlive the motion; their motion link is cleared."""
        service = MotionLedgerService(db)
        motion = await service.create_motion(meeting.id, "Pending")
        annotation = await AnnotationService(db).create_annotation(
            "motion", motion.id, "Check against bylaw 4.2"
        )
        annotation_id, motion_id = annotation.id, motion.id

        await service.delete_motion(motion.id)
        db.expunge_all()

        result = await db.execute(select(Annotation).where(Annotation.id == annotation_id))
        kept = result.scalar_one()
        assert kept.motion_id is None
        assert kept.target_id == motion_id


class TestListing:
    """Tests for motion listings."""

    @pytest.mark.asyncio
    async def test_meeting_motions_in_number_order(self, db, meeting) -> None:
        service = MotionLedgerService(db)
        for text in ("A", "B", "C"):
            await service.create_motion(meeting.id, text)

        page = await service.list_motions_by_meeting(meeting.id, page=1, page_size=2)

        assert [m.motion_number for m in page.items] == [1, 2]
        assert page.total == 3
        assert page.pages == 2

    @pytest.mark.asyncio
    async def test_filter_has_result(self, db, meeting) -> None:
        service = MotionLedgerService(db)
        voted = await service.create_motion(meeting.id, "Voted")
        await service.record_vote(voted.id, 1, 0, 0, MotionResult.PASSED)
        await service.create_motion(meeting.id, "Pending")

        pending = await service.list_motions(meeting_id=meeting.id, has_result=False)
        passed = await service.list_motions(result=MotionResult.PASSED)

        assert [m.motion_text for m in pending.items] == ["Pending"]
        assert [m.id for m in passed.items] == [voted.id]

    @pytest.mark.asyncio
    async def test_motion_rows(self, db, meeting) -> None:
        service = MotionLedgerService(db)
        await service.create_motion(meeting.id, "Stored")

        result = await db.execute(select(Motion).where(Motion.meeting_id == meeting.id))

        assert len(result.scalars().all()) == 1
