"""
Reminder trigger endpoint and scheduler status.
GET|POST /api/cron/send-notifications: 500 without CRON_SECRET, 401 bad token, 200 summary.
"""
import pytest

from post_scheduler.config import get_settings
from tests.conftest import add_post, fetch_post, minutes, utcnow

SECRET = "cron-test-secret"


@pytest.fixture
def cron_secret(monkeypatch):
    monkeypatch.setenv("CRON_SECRET", SECRET)
    get_settings.cache_clear()
    yield SECRET
    get_settings.cache_clear()


@pytest.fixture
def no_cron_secret(monkeypatch):
    monkeypatch.delenv("CRON_SECRET", raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def _bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.mark.asyncio
async def test_missing_secret_is_server_error(client, seed, no_cron_secret, session_factory, transport) -> None:
    await add_post(session_factory, seed.author, seed.groups["north"], utcnow() + minutes(10))
    r = await client.get("/api/cron/send-notifications", headers=_bearer("anything"))
    assert r.status_code == 500
    assert transport.sent == []


@pytest.mark.asyncio
async def test_wrong_or_missing_token(client, seed, cron_secret, session_factory, transport) -> None:
    post_id = await add_post(session_factory, seed.author, seed.groups["north"], utcnow() + minutes(10))

    r = await client.get("/api/cron/send-notifications")
    assert r.status_code == 401
    r = await client.post("/api/cron/send-notifications", headers=_bearer("wrong"))
    assert r.status_code == 401
    r = await client.get("/api/cron/send-notifications", headers={"Authorization": f"Basic {SECRET}"})
    assert r.status_code == 401

    assert transport.sent == []
    assert (await fetch_post(session_factory, post_id)).reminder_claim_token is None


@pytest.mark.asyncio
@pytest.mark.parametrize("method", ["GET", "POST"])
async def test_trigger_sends_due_reminders(client, seed, cron_secret, session_factory, transport, method: str) -> None:
    post_id = await add_post(session_factory, seed.author, seed.groups["north"], utcnow() + minutes(10))
    await add_post(session_factory, seed.author, seed.groups["north"], utcnow() + minutes(600))

    r = await client.request(method, "/api/cron/send-notifications", headers=_bearer(SECRET))

    assert r.status_code == 200
    data = r.json()
    assert data["found"] == 1
    assert data["sent"] == 1
    assert data["failed"] == 0
    assert data["run_id"]
    assert data["timestamp"]
    assert len(transport.sent) == 1
    post = await fetch_post(session_factory, post_id)
    assert post.reminder_sent is True
    assert post.status == "ready"

    again = await client.request(method, "/api/cron/send-notifications", headers=_bearer(SECRET))
    assert again.json()["found"] == 0
    assert len(transport.sent) == 1


@pytest.mark.asyncio
async def test_trigger_without_email_key_is_server_error(client, seed, cron_secret, session_factory, transport) -> None:
    transport.is_configured = False
    post_id = await add_post(session_factory, seed.author, seed.groups["north"], utcnow() + minutes(10))

    r = await client.post("/api/cron/send-notifications", headers=_bearer(SECRET))

    assert r.status_code == 500
    assert "RESEND_API_KEY" in r.json()["detail"]
    post = await fetch_post(session_factory, post_id)
    assert post.reminder_claim_token is None
    assert post.reminder_sent is False


@pytest.mark.asyncio
async def test_scheduler_status_and_runs(client, seed, cron_secret, session_factory) -> None:
    await add_post(session_factory, seed.author, seed.groups["north"], utcnow() + minutes(10))

    status = await client.get("/scheduler/status")
    assert status.status_code == 200
    assert status.json()["enabled"] is False
    assert status.json()["pending_count"] == 1
    assert status.json()["delivery_unknown_count"] == 0

    await client.post("/api/cron/send-notifications", headers=_bearer(SECRET))

    status = await client.get("/scheduler/status")
    assert status.json()["pending_count"] == 0
    runs = await client.get("/scheduler/runs")
    assert len(runs.json()["runs"]) == 1
    assert runs.json()["runs"][0]["sent"] == 1
    assert runs.json()["runs"][0]["trigger"] == "http"


@pytest.mark.asyncio
async def test_health(client, monkeypatch) -> None:
    monkeypatch.delenv("REDIS_URL", raising=False)
    get_settings.cache_clear()
    r = await client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"
    r = await client.get("/health/ready")
    assert r.status_code == 200
    assert r.json()["db"] == "ok"


@pytest.mark.asyncio
async def test_correlation_id_is_echoed(client) -> None:
    r = await client.get("/health", headers={"X-Correlation-ID": "req-42"})
    assert r.headers["X-Correlation-ID"] == "req-42"
    r = await client.get("/health")
    assert r.headers["X-Correlation-ID"]
