"""Settings: ENV aliases, defaults and the claim TTL / run budget constraint."""
import pytest
from pydantic import ValidationError

from post_scheduler.config import Settings
from post_scheduler.middleware.rate_limit import rate_limit_key


def test_reminder_defaults() -> None:
    s = Settings(_env_file=None)
    assert s.reminder_lead_minutes == 120
    assert s.reminder_claim_ttl_seconds > s.reminder_run_budget_seconds + s.reminder_candidate_timeout_seconds
    assert s.reminder_concurrency >= 1


def test_env_aliases(monkeypatch) -> None:
    monkeypatch.setenv("REMINDER_LEAD_MINUTES", "45")
    monkeypatch.setenv("CRON_SECRET", "s3cret")
    monkeypatch.setenv("SCHEDULER_ENABLED", "true")
    s = Settings(_env_file=None)
    assert s.reminder_lead_minutes == 45
    assert s.cron_secret == "s3cret"
    assert s.scheduler_enabled is True


def test_claim_must_outlive_budget_and_candidate_timeout() -> None:
    timing = {"REMINDER_RUN_BUDGET_SECONDS": 50, "REMINDER_CANDIDATE_TIMEOUT_SECONDS": 20}
    with pytest.raises(ValidationError):
        Settings(_env_file=None, **{"REMINDER_CLAIM_TTL_SECONDS": 21}, **timing)
    with pytest.raises(ValidationError):
        Settings(_env_file=None, **{"REMINDER_CLAIM_TTL_SECONDS": 70}, **timing)
    s = Settings(_env_file=None, **{"REMINDER_CLAIM_TTL_SECONDS": 71}, **timing)
    assert s.reminder_claim_ttl_seconds == 71


def test_lead_minutes_must_be_positive() -> None:
    with pytest.raises(ValidationError):
        Settings(_env_file=None, **{"REMINDER_LEAD_MINUTES": 0})


class _Req:
    def __init__(self, headers: dict) -> None:
        self.headers = headers


def test_rate_limit_key() -> None:
    assert rate_limit_key(_Req({"X-Profile-ID": "abc"})) == "profile:abc"
    bearer = rate_limit_key(_Req({"Authorization": "Bearer token-1"}))
    assert bearer.startswith("bearer:")
    assert "token-1" not in bearer
    assert bearer != rate_limit_key(_Req({"Authorization": "Bearer token-2"}))
    assert rate_limit_key(_Req({})) is None
