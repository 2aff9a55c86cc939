"""
End-to-end tests through the HTTP layer.
"""

from datetime import date

import pytest
from sqlalchemy import select

from congregation_planner import __version__
from congregation_planner.core.audit import AuditAction, AuditLogEntry

pytestmark = pytest.mark.api

NEXT_SUNDAY = date(2026, 10, 25)
SATURDAY = date(2026, 10, 24)

ADMIN_HEADERS = {"X-User-Id": "user-1", "X-User-Email": "admin@example.org", "X-User-Role": "admin"}
PUBLISHER_HEADERS = {"X-User-Id": "user-2", "X-User-Role": "publisher"}


async def create_talk(client, no: int = 12, title: str = "What Is the Kingdom?") -> dict:
    response = await client.post(
        "/api/v1/public-talks", json={"no": no, "title": title}, headers=ADMIN_HEADERS
    )
    assert response.status_code == 201
    return response.json()


async def create_speaker(client, talk_ids: list[int]) -> dict:
    congregation = await client.post(
        "/api/v1/congregations", json={"name": "Bytom"}, headers=ADMIN_HEADERS
    )
    assert congregation.status_code == 201
    response = await client.post(
        "/api/v1/speakers",
        json={
            "first_name": "Piotr",
            "last_name": "Nowak",
            "congregation_id": congregation.json()["id"],
            "talk_ids": talk_ids,
        },
        headers=ADMIN_HEADERS,
    )
    assert response.status_code == 201
    return response.json()


class TestSystem:
    async def test_health(self, client) -> None:
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "version": __version__}


class TestAccessControl:
    """Tests for authentication and permission checks."""

    async def test_missing_identity(self, client, session_maker) -> None:
        response = await client.get("/api/v1/schedules")

        assert response.status_code == 401
        assert response.json()["error"]["kind"] == "Unauthorized"
        assert response.json()["error"]["message"] == "errors.unauthorized"
        async with session_maker() as session:
            result = await session.execute(
                select(AuditLogEntry).where(
                    AuditLogEntry.action == AuditAction.UNAUTHORIZED_ACCESS.value
                )
            )
            entry = result.scalar_one()
        assert entry.resource_id == "/api/v1/schedules"

    async def test_publisher_cannot_schedule(self, client, session_maker) -> None:
        response = await client.post(
            "/api/v1/schedules",
            json={
                "date": "2026-10-25",
                "speaker_id": "00000000-0000-0000-0000-000000000001",
                "talk_id": 1,
            },
            headers=PUBLISHER_HEADERS,
        )

        assert response.status_code == 403
        assert response.json() == {
            "error": {
                "kind": "PermissionDenied",
                "message": "errors.permissionDenied",
                "data": {
                    "required_permission": "weekend_meetings.schedule_public_talks",
                    "role": "publisher",
                },
            }
        }
        async with session_maker() as session:
            result = await session.execute(
                select(AuditLogEntry).where(
                    AuditLogEntry.action == AuditAction.PERMISSION_DENIED.value
                )
            )
            entry = result.scalar_one()
        assert entry.actor_id == "user-2"
        assert entry.details["user_role"] == "publisher"

    async def test_publisher_can_list_upcoming_only(self, client) -> None:
        upcoming = await client.get("/api/v1/schedules", headers=PUBLISHER_HEADERS)
        history = await client.get(
            "/api/v1/schedules", params={"history": "true"}, headers=PUBLISHER_HEADERS
        )

        assert upcoming.status_code == 200
        assert upcoming.json() == []
        assert history.status_code == 403
        assert history.json()["error"]["data"]["required_permission"] == (
            "weekend_meetings.list_history"
        )


class TestErrorEnvelope:
    """Tests for the machine-readable error body."""

    async def test_malformed_date(self, client) -> None:
        response = await client.post(
            "/api/v1/schedules",
            json={"date": "25.10.2026", "speaker_id": None, "talk_id": 1},
            headers=ADMIN_HEADERS,
        )

        assert response.status_code == 400
        error = response.json()["error"]
        assert error["kind"] == "ValidationError"
        assert error["message"] == "errors.validation"
        assert any(e["field"] == "date" for e in error["data"]["errors"])

    async def test_domain_error(self, client) -> None:
        talk = await create_talk(client)
        speaker = await create_speaker(client, [talk["id"]])

        response = await client.post(
            "/api/v1/schedules",
            json={"date": SATURDAY.isoformat(), "speaker_id": speaker["id"], "talk_id": talk["id"]},
            headers=ADMIN_HEADERS,
        )

        assert response.status_code == 400
        assert response.json() == {
            "error": {
                "kind": "DateMustBeSunday",
                "message": "errors.dateMustBeSunday",
                "data": {"date": "2026-10-24"},
            }
        }


class TestScheduleFlow:
    """Catalog to conflict: one talk through the whole API."""

    async def test_schedule_talk(self, client) -> None:
        talk = await create_talk(client)
        speaker = await create_speaker(client, [talk["id"]])
        assert [t["no"] for t in speaker["talks"]] == [12]
        assert speaker["congregation"]["name"] == "Bytom"

        created = await client.post(
            "/api/v1/schedules",
            json={
                "date": NEXT_SUNDAY.isoformat(),
                "speaker_id": speaker["id"],
                "talk_id": talk["id"],
            },
            headers=ADMIN_HEADERS,
        )
        assert created.status_code == 201
        schedule = created.json()
        assert schedule["date"] == "2026-10-25"
        assert schedule["speaker_name"] == "Piotr Nowak"

        listed = await client.get("/api/v1/schedules", headers=ADMIN_HEADERS)
        assert [s["id"] for s in listed.json()] == [schedule["id"]]

        conflict = await client.get(
            "/api/v1/schedules/conflicts",
            params={
                "date": "2026-10-25",
                "meeting_program_id": schedule["meeting_program_id"],
                "part_id": schedule["part_id"],
            },
            headers=ADMIN_HEADERS,
        )
        assert conflict.status_code == 200
        assert conflict.json()["has_conflict"] is True
        assert conflict.json()["existing_schedule"]["id"] == schedule["id"]

        again = await client.post(
            "/api/v1/schedules",
            json={
                "date": NEXT_SUNDAY.isoformat(),
                "speaker_id": speaker["id"],
                "talk_id": talk["id"],
            },
            headers=ADMIN_HEADERS,
        )
        assert again.status_code == 409
        assert again.json()["error"]["data"]["existing_schedule_id"] == schedule["id"]

        deleted = await client.delete(f"/api/v1/schedules/{schedule['id']}", headers=ADMIN_HEADERS)
        assert deleted.status_code == 204

    async def test_exception_blocks_program(self, client) -> None:
        talk = await create_talk(client)
        speaker = await create_speaker(client, [talk["id"]])
        await client.post(
            "/api/v1/schedules",
            json={
                "date": NEXT_SUNDAY.isoformat(),
                "speaker_id": speaker["id"],
                "talk_id": talk["id"],
            },
            headers=ADMIN_HEADERS,
        )
        body = {"date": "2026-10-25", "exception_type": "memorial"}

        blocked = await client.post("/api/v1/meeting-exceptions", json=body, headers=ADMIN_HEADERS)
        assert blocked.status_code == 409
        error = blocked.json()["error"]
        assert error["kind"] == "MeetingAlreadyScheduledOnException"
        assert {"type": "public_talk", "person_name": "Piotr Nowak"} in error["data"]["meeting"][
            "parts"
        ]

        confirmed = await client.post(
            "/api/v1/meeting-exceptions",
            json={**body, "confirm_delete_existing": True},
            headers=ADMIN_HEADERS,
        )
        assert confirmed.status_code == 201
        listed = await client.get("/api/v1/schedules", headers=ADMIN_HEADERS)
        assert listed.json() == []


class TestRegistryEndpoints:
    async def test_talk_flag(self, client) -> None:
        talk = await create_talk(client)

        response = await client.patch(
            f"/api/v1/public-talks/{talk['id']}/status",
            json={"status": "circuit_overseer"},
            headers=ADMIN_HEADERS,
        )

        assert response.status_code == 200
        assert response.json()["status"] == "circuit_overseer"

    async def test_unknown_publisher(self, client) -> None:
        response = await client.patch(
            "/api/v1/publishers/00000000-0000-0000-0000-000000000000",
            json={"is_reader": True},
            headers=ADMIN_HEADERS,
        )

        assert response.status_code == 404
        assert response.json()["error"]["kind"] == "ResourceNotFound"

    async def test_archive_speaker(self, client) -> None:
        talk = await create_talk(client)
        speaker = await create_speaker(client, [talk["id"]])

        response = await client.patch(
            f"/api/v1/speakers/{speaker['id']}/archive",
            json={"archived": True},
            headers=ADMIN_HEADERS,
        )
        assert response.status_code == 200
        assert response.json()["archived"] is True

        listed = await client.get("/api/v1/speakers", headers=ADMIN_HEADERS)
        assert listed.json() == []


class TestAutoSuggestionEndpoint:
    async def test_suggest_and_skip(self, client) -> None:
        talk = await create_talk(client)
        speaker = await create_speaker(client, [talk["id"]])

        first = await client.post("/api/v1/auto-suggestion", json={}, headers=ADMIN_HEADERS)
        assert first.status_code == 200
        assert first.json()["speaker"]["id"] == speaker["id"]
        assert [t["no"] for t in first.json()["available_talks"]] == [12]

        skipped = await client.post(
            "/api/v1/auto-suggestion",
            json={"excluded_speaker_ids": [speaker["id"]]},
            headers=ADMIN_HEADERS,
        )
        assert skipped.status_code == 200
        assert skipped.json() == {
            "speaker": None,
            "available_talks": [],
            "has_more_suggestions": False,
        }


class TestMeetingExceptionEndpoints:
    async def test_move_exception(self, client) -> None:
        created = await client.post(
            "/api/v1/meeting-exceptions",
            json={"date": "2026-10-25", "exception_type": "memorial"},
            headers=ADMIN_HEADERS,
        )
        assert created.status_code == 201

        moved = await client.patch(
            f"/api/v1/meeting-exceptions/{created.json()['id']}",
            json={"date": "2026-11-01"},
            headers=ADMIN_HEADERS,
        )

        assert moved.status_code == 200
        assert moved.json()["date"] == "2026-11-01"
        assert moved.json()["exception_type"] == "memorial"

    async def test_move_exception_to_saturday(self, client) -> None:
        created = await client.post(
            "/api/v1/meeting-exceptions",
            json={"date": "2026-10-25", "exception_type": "memorial"},
            headers=ADMIN_HEADERS,
        )

        moved = await client.patch(
            f"/api/v1/meeting-exceptions/{created.json()['id']}",
            json={"date": SATURDAY.isoformat()},
            headers=ADMIN_HEADERS,
        )

        assert moved.status_code == 400
        assert moved.json()["error"]["kind"] == "DateMustBeSunday"


class TestRegistryUpdates:
    """Tests for editing speakers and catalog talks."""

    async def test_replace_speaker_talks(self, client, session_maker) -> None:
        first = await create_talk(client)
        second = await create_talk(client, no=35, title="Can We Live Forever?")
        speaker = await create_speaker(client, [first["id"]])

        response = await client.patch(
            f"/api/v1/speakers/{speaker['id']}",
            json={"phone": "+48 600 100 200", "talk_ids": [second["id"]]},
            headers=ADMIN_HEADERS,
        )

        assert response.status_code == 200
        body = response.json()
        assert body["phone"] == "+48 600 100 200"
        assert [t["no"] for t in body["talks"]] == [35]
        assert body["first_name"] == "Piotr"

        async with session_maker() as session:
            result = await session.execute(
                select(AuditLogEntry).where(
                    AuditLogEntry.action == AuditAction.SPEAKER_UPDATED.value
                )
            )
            entry = result.scalar_one()
        assert entry.details["previous_talk_ids"] == [first["id"]]
        assert entry.details["talk_ids"] == [second["id"]]

    async def test_unknown_talk_leaves_speaker(self, client) -> None:
        talk = await create_talk(client)
        speaker = await create_speaker(client, [talk["id"]])

        response = await client.patch(
            f"/api/v1/speakers/{speaker['id']}",
            json={"last_name": "Kowalski", "talk_ids": [talk["id"], 999]},
            headers=ADMIN_HEADERS,
        )
        assert response.status_code == 400
        assert response.json()["error"] == {
            "kind": "TalkNotFound",
            "message": "errors.talkNotFound",
            "data": {"talk_ids": [999]},
        }

        listed = await client.get("/api/v1/speakers", headers=ADMIN_HEADERS)
        assert listed.json()[0]["last_name"] == "Nowak"
        assert [t["no"] for t in listed.json()[0]["talks"]] == [12]

    async def test_update_talk(self, client) -> None:
        talk = await create_talk(client)

        response = await client.patch(
            f"/api/v1/public-talks/{talk['id']}",
            json={"title": "Whose Kingdom Is It?", "video_count": 2},
            headers=ADMIN_HEADERS,
        )

        assert response.status_code == 200
        assert response.json()["title"] == "Whose Kingdom Is It?"
        assert response.json()["video_count"] == 2
        assert response.json()["no"] == 12

    async def test_publisher_cannot_update_talk(self, client) -> None:
        talk = await create_talk(client)

        response = await client.patch(
            f"/api/v1/public-talks/{talk['id']}",
            json={"title": "Whose Kingdom Is It?"},
            headers=PUBLISHER_HEADERS,
        )

        assert response.status_code == 403
        assert response.json()["error"]["data"]["required_permission"] == "talks.update"
