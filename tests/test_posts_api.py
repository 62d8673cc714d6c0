"""
Scheduled posts API over httpx.AsyncClient + ASGITransport (no server).
- Schedule in / out of territory (violation flagged on create).
- Edit re-evaluates the violation; posted posts are frozen.
- Visibility: author, dealership manager, other dealership, admin.
- Delete keeps the audit trail; mark-posted from pending, ready and failed.
"""
from datetime import timedelta

import pytest

from post_scheduler.services import audit_service
from tests.conftest import add_post, as_profile, minutes, utcnow


def _schedule_body(group_id, delta: timedelta = timedelta(hours=3), **fields) -> dict:
    body = {"group_id": str(group_id), "scheduled_for": (utcnow() + delta).isoformat()}
    body.update(fields)
    return body


@pytest.mark.asyncio
async def test_requests_need_a_known_profile(client, seed) -> None:
    r = await client.get("/api/posts")
    assert r.status_code == 401
    r = await client.get("/api/posts", headers={"X-Profile-ID": "not-a-uuid"})
    assert r.status_code == 401
    r = await client.get("/api/posts", headers={"X-Profile-ID": "00000000-0000-0000-0000-000000000000"})
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_schedule_in_territory(client, seed) -> None:
    r = await client.post(
        "/api/posts",
        json=_schedule_body(seed.groups["north"], generated_content="Spring sale!"),
        headers=as_profile(seed.author),
    )
    assert r.status_code == 201
    data = r.json()
    assert data["status"] == "pending"
    assert data["territory_violation"] is False
    assert data["violation"] is None
    assert data["reminder_sent"] is False
    assert data["overdue"] is False
    assert data["territory_id"] == str(seed.north)


@pytest.mark.asyncio
async def test_secondary_territory_and_global_groups_are_fine(client, seed) -> None:
    for group in ("east", "global"):
        r = await client.post("/api/posts", json=_schedule_body(seed.groups[group]), headers=as_profile(seed.author))
        assert r.status_code == 201
        assert r.json()["territory_violation"] is False


@pytest.mark.asyncio
async def test_schedule_out_of_territory_flags_violation(client, seed) -> None:
    r = await client.post("/api/posts", json=_schedule_body(seed.groups["south"]), headers=as_profile(seed.author))
    assert r.status_code == 201
    data = r.json()
    assert data["territory_violation"] is True
    assert data["violation"]["status"] == "unresolved"
    assert data["violation"]["justification"] is None

    events = await client.get(f"/api/posts/{data['id']}/events", headers=as_profile(seed.author))
    types = [e["event_type"] for e in events.json()["events"]]
    assert audit_service.POST_CREATED in types
    assert audit_service.VIOLATION_FLAGGED in types


@pytest.mark.asyncio
async def test_schedule_rejects_unknown_and_inactive_groups(client, seed) -> None:
    r = await client.post(
        "/api/posts",
        json=_schedule_body("11111111-1111-1111-1111-111111111111"),
        headers=as_profile(seed.author),
    )
    assert r.status_code == 404
    assert r.headers["X-Error-Code"] == "group_not_found"

    r = await client.post("/api/posts", json=_schedule_body(seed.groups["inactive"]), headers=as_profile(seed.author))
    assert r.status_code == 409
    assert r.headers["X-Error-Code"] == "group_inactive"


@pytest.mark.asyncio
async def test_schedule_rejects_unknown_post_type(client, seed) -> None:
    r = await client.post(
        "/api/posts",
        json=_schedule_body(seed.groups["north"], post_type="flash_mob"),
        headers=as_profile(seed.author),
    )
    assert r.status_code == 422


@pytest.mark.asyncio
async def test_edit_into_and_out_of_violation(client, seed) -> None:
    created = await client.post("/api/posts", json=_schedule_body(seed.groups["north"]), headers=as_profile(seed.author))
    post_id = created.json()["id"]

    r = await client.patch(
        f"/api/posts/{post_id}", json={"group_id": str(seed.groups["south"])}, headers=as_profile(seed.author)
    )
    assert r.status_code == 200
    assert r.json()["violation"]["status"] == "unresolved"

    r = await client.post(f"/api/violations/{post_id}/request-authorization", headers=as_profile(seed.author))
    assert r.json()["violation"]["status"] == "authorization_requested"

    # Same group, other fields: violation workflow state is kept.
    r = await client.patch(f"/api/posts/{post_id}", json={"generated_content": "New copy"}, headers=as_profile(seed.author))
    assert r.json()["violation"]["status"] == "authorization_requested"
    assert r.json()["generated_content"] == "New copy"

    # Back in territory: the record disappears.
    r = await client.patch(
        f"/api/posts/{post_id}", json={"group_id": str(seed.groups["north"])}, headers=as_profile(seed.author)
    )
    assert r.json()["territory_violation"] is False
    assert r.json()["violation"] is None

    events = await client.get(f"/api/posts/{post_id}/events", headers=as_profile(seed.author))
    types = [e["event_type"] for e in events.json()["events"]]
    assert audit_service.VIOLATION_CLEARED in types
    assert types.count(audit_service.POST_EDITED) == 3


@pytest.mark.asyncio
async def test_edit_is_author_only_and_rejects_nulls(client, seed) -> None:
    created = await client.post("/api/posts", json=_schedule_body(seed.groups["north"]), headers=as_profile(seed.author))
    post_id = created.json()["id"]

    r = await client.patch(f"/api/posts/{post_id}", json={"special_context": "x"}, headers=as_profile(seed.manager))
    assert r.status_code == 403
    assert r.headers["X-Error-Code"] == "not_post_author"

    r = await client.patch(f"/api/posts/{post_id}", json={"scheduled_for": None}, headers=as_profile(seed.author))
    assert r.status_code == 422


@pytest.mark.asyncio
async def test_reschedule_keeps_reminder_sent(client, session_factory, seed) -> None:
    post_id = await add_post(
        session_factory, seed.author, seed.groups["north"], utcnow() + minutes(30), status="ready", reminder_sent=True
    )
    new_time = (utcnow() + timedelta(days=1)).isoformat()
    r = await client.patch(f"/api/posts/{post_id}", json={"scheduled_for": new_time}, headers=as_profile(seed.author))
    assert r.status_code == 200
    assert r.json()["reminder_sent"] is True
    assert r.json()["status"] == "ready"


@pytest.mark.asyncio
async def test_posted_post_cannot_be_edited_or_deleted(client, session_factory, seed) -> None:
    now = utcnow()
    post_id = await add_post(session_factory, seed.author, seed.groups["north"], now - minutes(30), status="posted", posted_at=now)

    r = await client.patch(f"/api/posts/{post_id}", json={"generated_content": "late"}, headers=as_profile(seed.author))
    assert r.status_code == 409
    assert r.headers["X-Error-Code"] == "post_not_editable"

    r = await client.delete(f"/api/posts/{post_id}", headers=as_profile(seed.author))
    assert r.status_code == 409
    assert r.headers["X-Error-Code"] == "illegal_transition"

    r = await client.post(f"/api/posts/{post_id}/mark-posted", headers=as_profile(seed.author))
    assert r.status_code == 409


@pytest.mark.asyncio
@pytest.mark.parametrize("start", ["pending", "ready", "failed"])
async def test_mark_posted(client, session_factory, seed, start: str) -> None:
    post_id = await add_post(session_factory, seed.author, seed.groups["north"], utcnow() - minutes(10), status=start)

    r = await client.post(f"/api/posts/{post_id}/mark-posted", headers=as_profile(seed.author))

    assert r.status_code == 200
    data = r.json()
    assert data["status"] == "posted"
    assert data["posted_at"] is not None
    assert data["overdue"] is False


@pytest.mark.asyncio
async def test_delete_keeps_audit_trail(client, session_factory, seed) -> None:
    created = await client.post("/api/posts", json=_schedule_body(seed.groups["north"]), headers=as_profile(seed.author))
    post_id = created.json()["id"]

    r = await client.delete(f"/api/posts/{post_id}", headers=as_profile(seed.colleague))
    assert r.status_code == 404

    r = await client.delete(f"/api/posts/{post_id}", headers=as_profile(seed.author))
    assert r.status_code == 200
    assert r.json()["message"] == "deleted"

    r = await client.get(f"/api/posts/{post_id}", headers=as_profile(seed.author))
    assert r.status_code == 404

    from sqlalchemy import select

    from post_scheduler.models import PostEvent

    async with session_factory() as db:
        events = (await db.execute(select(PostEvent).order_by(PostEvent.created_at))).scalars().all()
    types = [e.event_type for e in events]
    assert types[0] == audit_service.POST_CREATED
    assert audit_service.POST_DELETED in types
    assert all(e.post_id is None for e in events)
    deleted = next(e for e in events if e.event_type == audit_service.POST_DELETED)
    assert deleted.metadata_["post_id"] == post_id


@pytest.mark.asyncio
async def test_visibility(client, session_factory, seed) -> None:
    now = utcnow()
    mine = await add_post(session_factory, seed.author, seed.groups["north"], now + minutes(60))
    theirs = await add_post(session_factory, seed.colleague, seed.groups["south"], now + minutes(90))

    author_view = await client.get("/api/posts", headers=as_profile(seed.author))
    assert [p["id"] for p in author_view.json()["items"]] == [str(mine)]

    manager_view = await client.get("/api/posts", headers=as_profile(seed.manager))
    assert [p["id"] for p in manager_view.json()["items"]] == [str(mine), str(theirs)]

    other_view = await client.get("/api/posts", headers=as_profile(seed.other_manager))
    assert other_view.json()["items"] == []

    admin_view = await client.get("/api/posts", headers=as_profile(seed.admin))
    assert len(admin_view.json()["items"]) == 2

    r = await client.get(f"/api/posts/{theirs}", headers=as_profile(seed.author))
    assert r.status_code == 404
    r = await client.get(f"/api/posts/{theirs}", headers=as_profile(seed.manager))
    assert r.status_code == 200


@pytest.mark.asyncio
async def test_list_filters(client, session_factory, seed) -> None:
    now = utcnow()
    overdue = await add_post(session_factory, seed.author, seed.groups["north"], now - minutes(30))
    upcoming = await add_post(session_factory, seed.author, seed.groups["north"], now + minutes(30), status="ready")
    await add_post(session_factory, seed.author, seed.groups["north"], now - minutes(90), status="posted", posted_at=now)
    violating = await add_post(
        session_factory,
        seed.author,
        seed.groups["south"],
        now + minutes(300),
        territory_violation=True,
        violation_status="unresolved",
    )
    headers = as_profile(seed.author)

    r = await client.get("/api/posts", params={"overdue": "true"}, headers=headers)
    assert [p["id"] for p in r.json()["items"]] == [str(overdue)]
    assert r.json()["items"][0]["overdue"] is True

    r = await client.get("/api/posts", params={"status": "ready"}, headers=headers)
    assert [p["id"] for p in r.json()["items"]] == [str(upcoming)]

    r = await client.get("/api/posts", params={"status": "redy"}, headers=headers)
    assert r.status_code == 422

    r = await client.get("/api/posts", params={"violations_only": "true"}, headers=headers)
    assert [p["id"] for p in r.json()["items"]] == [str(violating)]

    r = await client.get(
        "/api/posts",
        params={"from": (now + minutes(1)).isoformat(), "to": (now + minutes(60)).isoformat()},
        headers=headers,
    )
    assert [p["id"] for p in r.json()["items"]] == [str(upcoming)]

    r = await client.get("/api/posts", params={"limit": 2}, headers=headers)
    assert len(r.json()["items"]) == 2
