"""Shared fixtures: an isolated environment and a throwaway SQLite database per test."""

from __future__ import annotations

import datetime
import os
import uuid

# Pin configuration before the package reads it; no test should reach a real database or push vendor.
for _name in ("BANDNOTIFY_PG_DSN", "DATABASE_URL", "BANDNOTIFY_PUSH_ENABLED", "BANDNOTIFY_SCHEDULER_ENABLED", "FIREBASE_PROJECT_ID"):
  os.environ.pop(_name, None)
os.environ["BANDNOTIFY_TASK_SECRET"] = "test-task-secret"

import pytest  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402

import bandnotify.schema  # noqa: E402, F401
from bandnotify.core.clock import ManualClock  # noqa: E402
from bandnotify.core.database import Base  # noqa: E402
from bandnotify.schema.notifications import Notification  # noqa: E402


@pytest.fixture
def anyio_backend():
  return "asyncio"


@pytest.fixture
def clock():
  return ManualClock(datetime.datetime(2026, 3, 1, 12, 0, tzinfo=datetime.UTC))


@pytest.fixture
async def session_factory(tmp_path):
  engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'bandnotify.db'}")
  async with engine.begin() as connection:
    await connection.run_sync(Base.metadata.create_all)
  factory = async_sessionmaker(bind=engine, expire_on_commit=False, class_=AsyncSession)
  yield factory
  await engine.dispose()


@pytest.fixture
def seed_notifications(session_factory):
  """Insert pending notifications with strictly increasing created_at and return their ids in that order."""

  async def _seed(count: int, *, start: datetime.datetime, recipient_ids: list[uuid.UUID] | None = None, band_id: uuid.UUID | None = None) -> list[uuid.UUID]:
    band = band_id or uuid.uuid4()
    recipients = recipient_ids or [uuid.uuid4()]
    rows = [
      Notification(
        id=uuid.uuid4(),
        band_id=band,
        recipient_id=recipients[index % len(recipients)],
        actor_id=None,
        type="gig_created",
        title=f"Gig {index}",
        body=f"Body {index}",
        metadata_json={"gig_id": str(uuid.uuid4())},
        created_at=start + datetime.timedelta(seconds=index),
      )
      for index in range(count)
    ]
    async with session_factory() as session:
      session.add_all(rows)
      await session.commit()
    return [row.id for row in rows]

  return _seed
