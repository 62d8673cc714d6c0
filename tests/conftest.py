"""
Shared fixtures: temporary SQLite database, seeded organisation, fake dispatch collaborators
and an HTTP client with get_db / session factory / dispatch client overridden.

Seed:
  territories North, South, East
  dealership "Main Street Motors": author (North primary + East), colleague (South), manager
  dealership "Harbor Auto": other_manager
  admin without dealership
  groups: north, south, east, global (no territory), inactive (North)
"""
import asyncio
import uuid
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from typing import List, Optional, Tuple

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from post_scheduler.config import Settings, get_settings
from post_scheduler.db import Base, build_engine, get_db, get_session_factory
from post_scheduler.models import (
    Dealership,
    FacebookGroup,
    Profile,
    ProfileTerritory,
    ScheduledPost,
    Territory,
)
from post_scheduler.services.dispatch_client import DispatchClient, get_dispatch_client


class FakeGenerator:
    """Content generator double: fixed text, optional failure, records requests."""

    def __init__(self, text: str = "Generated post copy", fail: Optional[Exception] = None) -> None:
        self.is_configured = True
        self.text = text
        self.fail = fail
        self.requests: List = []

    async def generate_post(self, request) -> str:  # noqa: ANN001
        self.requests.append(request)
        if self.fail is not None:
            raise self.fail
        return self.text


class FakeTransport:
    """Email transport double: records sends; fails or stalls on demand."""

    def __init__(self, fail: Optional[Exception] = None, delay: float = 0.0) -> None:
        self.is_configured = True
        self.fail = fail
        self.delay = delay
        self.sent: List[Tuple[str, str, str]] = []
        self.keys: List[Optional[str]] = []

    async def send(self, to: str, subject: str, html: str, idempotency_key: Optional[str] = None) -> str:
        self.keys.append(idempotency_key)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail is not None:
            raise self.fail
        self.sent.append((to, subject, html))
        return f"email-{len(self.sent)}"


def make_settings(**overrides) -> Settings:
    """Settings for tests, keyed by field name."""
    return get_settings().model_copy(update=overrides)


@pytest.fixture
def settings() -> Settings:
    return make_settings(
        reminder_lead_minutes=120,
        reminder_stale_after_minutes=None,
        reminder_claim_ttl_seconds=300,
        reminder_candidate_timeout_seconds=5.0,
        reminder_run_budget_seconds=50.0,
        reminder_max_attempts=5,
        reminder_concurrency=1,
        reminder_batch_limit=100,
        app_url="https://scheduler.test",
        display_timezone="Europe/Berlin",
    )


@pytest.fixture
def generator() -> FakeGenerator:
    return FakeGenerator()


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def dispatch(settings: Settings, generator: FakeGenerator, transport: FakeTransport) -> DispatchClient:
    return DispatchClient(settings, generator=generator, transport=transport)


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'post_scheduler.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)
    yield factory
    await engine.dispose()


@pytest_asyncio.fixture
async def seed(session_factory) -> SimpleNamespace:
    north, south, east = (Territory(id=uuid.uuid4(), name=n) for n in ("North", "South", "East"))
    main_street = Dealership(id=uuid.uuid4(), name="Main Street Motors", location="Springfield")
    harbor = Dealership(id=uuid.uuid4(), name="Harbor Auto", location="Shelbyville")

    author = Profile(
        id=uuid.uuid4(),
        email="sam@mainstreet.test",
        full_name="Sam Seller",
        role="salesperson",
        dealership_id=main_street.id,
    )
    colleague = Profile(
        id=uuid.uuid4(),
        email="cory@mainstreet.test",
        full_name="Cory Closer",
        role="salesperson",
        dealership_id=main_street.id,
    )
    manager = Profile(
        id=uuid.uuid4(),
        email="morgan@mainstreet.test",
        full_name="Morgan Manager",
        role="manager",
        dealership_id=main_street.id,
    )
    other_manager = Profile(
        id=uuid.uuid4(),
        email="harper@harbor.test",
        full_name="Harper Harbor",
        role="manager",
        dealership_id=harbor.id,
    )
    admin = Profile(id=uuid.uuid4(), email="owner@group.test", full_name="Olive Owner", role="admin")

    groups = {
        "north": FacebookGroup(id=uuid.uuid4(), name="North Car Deals", group_url="https://facebook.com/groups/north", territory_id=north.id),
        "south": FacebookGroup(id=uuid.uuid4(), name="South Side Autos", group_url="https://facebook.com/groups/south", territory_id=south.id),
        "east": FacebookGroup(id=uuid.uuid4(), name="East End Wheels", group_url=None, territory_id=east.id),
        "global": FacebookGroup(id=uuid.uuid4(), name="Statewide Car Buyers", territory_id=None),
        "inactive": FacebookGroup(id=uuid.uuid4(), name="Old North Group", territory_id=north.id, is_active=False),
    }

    async with session_factory() as session:
        session.add_all([north, south, east, main_street, harbor])
        await session.flush()
        session.add_all([author, colleague, manager, other_manager, admin])
        await session.flush()
        session.add_all(
            [
                ProfileTerritory(profile_id=author.id, territory_id=north.id, is_primary=True),
                ProfileTerritory(profile_id=author.id, territory_id=east.id, is_primary=False),
                ProfileTerritory(profile_id=colleague.id, territory_id=south.id, is_primary=True),
            ]
        )
        session.add_all(groups.values())
        await session.commit()

    return SimpleNamespace(
        north=north.id,
        south=south.id,
        east=east.id,
        main_street=main_street.id,
        harbor=harbor.id,
        author=author.id,
        colleague=colleague.id,
        manager=manager.id,
        other_manager=other_manager.id,
        admin=admin.id,
        groups={k: g.id for k, g in groups.items()},
    )


async def add_post(
    session_factory,
    author_id: uuid.UUID,
    group_id: uuid.UUID,
    scheduled_for: datetime,
    **fields,
) -> uuid.UUID:
    """Insert a post directly (bypasses the service) and return its id."""
    fields.setdefault("status", "pending")
    fields.setdefault("generated_content", "Spring sale on every SUV!")
    post = ScheduledPost(
        id=uuid.uuid4(),
        author_id=author_id,
        group_id=group_id,
        scheduled_for=scheduled_for,
        **fields,
    )
    async with session_factory() as session:
        session.add(post)
        await session.commit()
    return post.id


async def fetch_post(session_factory, post_id: uuid.UUID) -> Optional[ScheduledPost]:
    async with session_factory() as session:
        return await session.get(ScheduledPost, post_id)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def minutes(n: float) -> timedelta:
    return timedelta(minutes=n)


def as_profile(profile_id: uuid.UUID) -> dict:
    return {"X-Profile-ID": str(profile_id)}


@pytest_asyncio.fixture
async def client(session_factory, dispatch):
    from post_scheduler.main import app

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_dispatch_client] = lambda: dispatch
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
