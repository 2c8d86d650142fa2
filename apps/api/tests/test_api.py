"""
Tests for the governance HTTP API.
"""

import uuid

import pytest
from sqlalchemy import select

from boardbook.core.audit import AuditLogEntry, AuditLogger

from conftest import MEMBER, PARLIAMENTARIAN, PRESIDENT, PRESIDENT_ID, SECRETARY, SECRETARY_ID

API = "/api/v1/governance"


async def create_meeting(client, day: str = "2026-10-05", meeting_type: str = "BOARD") -> dict:
    response = await client.post(
        f"{API}/meetings",
        json={"date": day, "type": meeting_type, "title": "October board meeting"},
        headers=PRESIDENT,
    )
    assert response.status_code == 201, response.text
    return response.json()


class TestSystem:
    """Tests for system endpoints."""

    @pytest.mark.asyncio
    async def test_health(self, client) -> None:
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


class TestAccess:
    """Tests for authentication and capability checks."""

    @pytest.mark.asyncio
    async def test_missing_actor_headers(self, client) -> None:
        response = await client.get(f"{API}/meetings")

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_malformed_actor_id(self, client) -> None:
        response = await client.get(
            f"{API}/meetings", headers={"X-Actor-Id": "nobody", "X-Actor-Role": "secretary"}
        )

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_missing_capability(self, client) -> None:
        response = await client.post(
            f"{API}/meetings",
            json={"date": "2026-10-05", "type": "BOARD"},
            headers=MEMBER,
        )

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_member_can_read_meetings(self, client) -> None:
        await create_meeting(client)

        response = await client.get(f"{API}/meetings", headers=MEMBER)

        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 1
        assert body["items"][0]["meeting"]["type"] == "BOARD"
        assert body["items"][0]["latest_minutes"] is None

    @pytest.mark.asyncio
    async def test_secretary_cannot_request_revision(self, client) -> None:
        meeting = await create_meeting(client)
        minutes = (
            await client.post(
                f"{API}/meetings/{meeting['id']}/minutes",
                json={"content": {"body": "Draft"}},
                headers=SECRETARY,
            )
        ).json()
        await client.post(f"{API}/minutes/{minutes['id']}/submit", headers=SECRETARY)

        response = await client.post(
            f"{API}/minutes/{minutes['id']}/revise",
            json={"review_notes": "Self review"},
            headers=SECRETARY,
        )

        assert response.status_code == 403


class TestErrors:
    """Tests for error responses."""

    @pytest.mark.asyncio
    async def test_not_found(self, client) -> None:
        missing = uuid.uuid4()

        response = await client.get(f"{API}/meetings/{missing}", headers=MEMBER)

        assert response.status_code == 404
        assert response.json() == {
            "error": "not_found",
            "message": f"Meeting {missing} not found",
            "entity": "Meeting",
            "id": str(missing),
        }

    @pytest.mark.asyncio
    async def test_duplicate_meeting(self, client) -> None:
        await create_meeting(client)

        response = await client.post(
            f"{API}/meetings", json={"date": "2026-10-05", "type": "BOARD"}, headers=PRESIDENT
        )

        assert response.status_code == 409
        assert response.json()["error"] == "conflict"

    @pytest.mark.asyncio
    async def test_invalid_transition(self, client) -> None:
        meeting = await create_meeting(client)
        minutes = (
            await client.post(
                f"{API}/meetings/{meeting['id']}/minutes",
                json={"content": {"body": "Draft"}},
                headers=SECRETARY,
            )
        ).json()

        response = await client.post(f"{API}/minutes/{minutes['id']}/approve", headers=PRESIDENT)

        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "invalid_transition"
        assert (body["current"], body["target"]) == ("DRAFT", "APPROVED")

    @pytest.mark.asyncio
    async def test_flag_resolution_required(self, client) -> None:
        flag = (
            await client.post(
                f"{API}/flags",
                json={
                    "target_type": "bylaw",
                    "target_id": str(uuid.uuid4()),
                    "flag_type": "LEGAL_REVIEW",
                    "title": "Check quorum clause",
                },
                headers=PARLIAMENTARIAN,
            )
        ).json()
        await client.post(f"{API}/flags/{flag['id']}/start", headers=PARLIAMENTARIAN)

        response = await client.post(
            f"{API}/flags/{flag['id']}/resolve", json={}, headers=PARLIAMENTARIAN
        )

        assert response.status_code == 400
        assert response.json()["field"] == "resolution"

    @pytest.mark.asyncio
    async def test_delete_worked_on_flag_forbidden(self, client) -> None:
        flag = (
            await client.post(
                f"{API}/flags",
                json={
                    "target_type": "policy",
                    "target_id": str(uuid.uuid4()),
                    "flag_type": "GENERAL",
                    "title": "Refresh travel policy",
                },
                headers=PRESIDENT,
            )
        ).json()
        await client.post(f"{API}/flags/{flag['id']}/start", headers=PRESIDENT)

        response = await client.delete(f"{API}/flags/{flag['id']}", headers=PRESIDENT)

        assert response.status_code == 403
        assert response.json()["error"] == "forbidden"


class TestMinutesFlow:
    """Tests for the minutes workflow over HTTP."""

    @pytest.mark.asyncio
    async def test_draft_to_archive_with_revision(self, client) -> None:
        meeting = await create_meeting(client)
        created = await client.post(
            f"{API}/meetings/{meeting['id']}/minutes",
            json={"content": {"body": "Draft"}, "summary": "October"},
            headers=SECRETARY,
        )
        assert created.status_code == 201
        first = created.json()
        assert (first["version"], first["status"]) == (1, "DRAFT")

        submitted = await client.post(f"{API}/minutes/{first['id']}/submit", headers=SECRETARY)
        assert submitted.json()["status"] == "SUBMITTED"

        revised = await client.post(
            f"{API}/minutes/{first['id']}/revise",
            json={"review_notes": "Add the treasurer's report"},
            headers=PRESIDENT,
        )
        assert revised.status_code == 200
        second = revised.json()
        assert (second["version"], second["status"]) == (2, "REVISED")
        assert second["based_on_id"] == first["id"]

        edited = await client.patch(
            f"{API}/minutes/{second['id']}",
            json={"content": {"body": "Draft with treasurer's report"}},
            headers=SECRETARY,
        )
        assert edited.status_code == 200

        await client.post(f"{API}/minutes/{second['id']}/submit", headers=SECRETARY)
        approved = await client.post(
            f"{API}/minutes/{second['id']}/approve",
            json={"notes": "Approved as amended"},
            headers=PRESIDENT,
        )
        assert approved.json()["approved_by_id"] == str(PRESIDENT_ID)

        published = await client.post(f"{API}/minutes/{second['id']}/publish", headers=SECRETARY)
        assert published.json()["status"] == "PUBLISHED"

        archived = await client.post(f"{API}/minutes/{second['id']}/archive", headers=PRESIDENT)
        assert archived.json()["status"] == "ARCHIVED"

        history = await client.get(f"{API}/meetings/{meeting['id']}/minutes", headers=PRESIDENT)
        assert [(m["version"], m["status"]) for m in history.json()] == [
            (1, "REVISED"),
            (2, "ARCHIVED"),
        ]
        assert history.json()[0]["superseded_at"] is not None

    @pytest.mark.asyncio
    async def test_current_minutes(self, client) -> None:
        meeting = await create_meeting(client)

        as_member = await client.get(f"{API}/meetings/{meeting['id']}/minutes/current", headers=MEMBER)
        assert as_member.status_code == 403

        none_yet = await client.get(
            f"{API}/meetings/{meeting['id']}/minutes/current", headers=PRESIDENT
        )
        assert none_yet.status_code == 200
        assert none_yet.json() is None


class TestMotionsAndAnnotations:
    """Tests for motions and annotations over HTTP."""

    @pytest.mark.asyncio
    async def test_motion_vote_and_stats(self, client) -> None:
        meeting = await create_meeting(client)
        motion = (
            await client.post(
                f"{API}/meetings/{meeting['id']}/motions",
                json={"motion_text": "Adopt the 2027 budget"},
                headers=SECRETARY,
            )
        ).json()
        assert motion["motion_number"] == 1

        voted = await client.post(
            f"{API}/motions/{motion['id']}/vote",
            json={"votes_yes": 8, "votes_no": 1, "votes_abstain": 0, "result": "PASSED"},
            headers=SECRETARY,
        )
        assert voted.status_code == 200

        stats = await client.get(f"{API}/meetings/{meeting['id']}/motion-stats", headers=PRESIDENT)
        assert stats.json()["passed"] == 1

        deleted = await client.delete(f"{API}/motions/{motion['id']}", headers=SECRETARY)
        assert deleted.status_code == 409

    @pytest.mark.asyncio
    async def test_unpublished_annotations_hidden_from_readers(self, client) -> None:
        target_id = str(uuid.uuid4())
        private = (
            await client.post(
                f"{API}/annotations",
                json={"target_type": "bylaw", "target_id": target_id, "body": "Draft note"},
                headers=PARLIAMENTARIAN,
            )
        ).json()
        await client.post(
            f"{API}/annotations",
            json={
                "target_type": "bylaw",
                "target_id": target_id,
                "body": "Public note",
                "is_published": True,
            },
            headers=PARLIAMENTARIAN,
        )

        as_member = await client.get(
            f"{API}/annotations",
            params={"target_type": "bylaw", "target_id": target_id, "include_unpublished": True},
            headers=MEMBER,
        )
        as_parliamentarian = await client.get(
            f"{API}/annotations",
            params={"target_type": "bylaw", "target_id": target_id, "include_unpublished": True},
            headers=PARLIAMENTARIAN,
        )
        hidden = await client.get(f"{API}/annotations/{private['id']}", headers=MEMBER)

        assert as_member.json()["total"] == 1
        assert as_parliamentarian.json()["total"] == 2
        assert hidden.status_code == 404

    @pytest.mark.asyncio
    async def test_annotation_counts_follow_visibility(self, client) -> None:
        target_id = str(uuid.uuid4())
        for body, is_published in [("Draft note", False), ("Public note", True)]:
            await client.post(
                f"{API}/annotations",
                json={
                    "target_type": "bylaw",
                    "target_id": target_id,
                    "body": body,
                    "is_published": is_published,
                },
                headers=PARLIAMENTARIAN,
            )
        params = {"target_type": "bylaw", "target_id": target_id}

        as_member = await client.get(f"{API}/annotations/counts", params=params, headers=MEMBER)
        as_parliamentarian = await client.get(
            f"{API}/annotations/counts", params=params, headers=PARLIAMENTARIAN
        )

        assert as_member.status_code == 200
        assert as_member.json() == {"total": 1, "published": 1, "unpublished": 0}
        assert as_parliamentarian.json() == {"total": 2, "published": 1, "unpublished": 1}

    @pytest.mark.asyncio
    async def test_annotation_on_missing_motion(self, client) -> None:
        response = await client.post(
            f"{API}/annotations",
            json={"target_type": "motion", "target_id": str(uuid.uuid4()), "body": "Orphan"},
            headers=PARLIAMENTARIAN,
        )

        assert response.status_code == 404


class TestAudit:
    """Tests for audit entries written by mutations."""

    @pytest.mark.asyncio
    async def test_mutation_is_audited(self, client, session_maker) -> None:
        meeting = await create_meeting(client)

        async with session_maker() as session:
            result = await session.execute(
                select(AuditLogEntry).where(AuditLogEntry.object_id == meeting["id"])
            )
            entries = result.scalars().all()

        assert len(entries) == 1
        entry = entries[0]
        assert (entry.action, entry.object_type) == ("create", "Meeting")
        assert entry.actor_id == PRESIDENT_ID
        assert entry.extra["capability"] == "meetings:manage"
        assert entry.extra["actor_role"] == "president"

    @pytest.mark.asyncio
    async def test_rejected_mutation_is_not_audited(self, client, session_maker) -> None:
        await client.post(
            f"{API}/meetings/{uuid.uuid4()}/motions",
            json={"motion_text": "Nowhere"},
            headers=SECRETARY,
        )

        async with session_maker() as session:
            result = await session.execute(
                select(AuditLogEntry).where(AuditLogEntry.actor_id == SECRETARY_ID)
            )
            entries = result.scalars().all()

        assert entries == []

    @pytest.mark.asyncio
    async def test_disabled_logger_writes_nothing(self, session_maker) -> None:
        logger = AuditLogger(session_factory=session_maker, enabled=False)

        assert await logger.record_audit("create", "Meeting", uuid.uuid4(), SECRETARY_ID) is None
