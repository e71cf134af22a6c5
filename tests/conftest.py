"""Pytest configuration and fixtures."""

import os
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator

# Must be set before src.config is imported so the rate limiter stays in memory
os.environ["STORAGE_BACKEND"] = "memory"

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from src.db.backend import InMemoryBackend  # noqa: E402
from src.db.codec import encode_record  # noqa: E402
from src.db.keys import primary_key  # noqa: E402
from src.db.models import FileMeta, Transcription  # noqa: E402
from src.db.session import get_backend  # noqa: E402
from src.main import app  # noqa: E402
from src.middleware.rate_limit import limiter  # noqa: E402
from src.services.asr import MockTranscriptionProducer, TranscriptionResult, get_producer  # noqa: E402
from src.services.sweeper import ExpirySweeper  # noqa: E402
from src.services.transcription_store import TranscriptionStore  # noqa: E402


START_TIME = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Controllable replacement for the store clock."""

    def __init__(self, start: datetime = START_TIME):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> datetime:
        self.current += timedelta(**kwargs)
        return self.current


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def backend() -> InMemoryBackend:
    """Empty in-memory key-value backend."""
    return InMemoryBackend()


@pytest.fixture
def store(backend: InMemoryBackend, clock: FakeClock) -> TranscriptionStore:
    """Store with a 24h TTL and a fake clock."""
    return TranscriptionStore(backend, ttl_seconds=86400, clock=clock)


@pytest.fixture
def sweeper(store: TranscriptionStore) -> ExpirySweeper:
    return ExpirySweeper(store)


@pytest.fixture
def file_meta() -> FileMeta:
    return FileMeta(filename="meeting.wav", size_bytes=1000, mime_type="audio/wav")


@pytest.fixture
def producer_result() -> TranscriptionResult:
    return TranscriptionResult(text="Hello world", confidence=0.95)


@pytest.fixture
def force_expired(backend: InMemoryBackend):
    """Rewrite a stored record so that it expired at the given time."""

    async def _force_expired(record: Transcription, expired_at: datetime) -> Transcription:
        expired = record.model_copy(
            update={"created_at": expired_at - timedelta(days=1), "expires_at": expired_at}
        )
        await backend.put(primary_key(record.id), encode_record(expired))
        return expired

    return _force_expired


@pytest_asyncio.fixture
async def client(backend: InMemoryBackend) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client backed by the in-memory backend."""

    async def override_get_backend():
        return backend

    app.dependency_overrides[get_backend] = override_get_backend
    app.dependency_overrides[get_producer] = lambda: MockTranscriptionProducer()
    limiter.enabled = False

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    limiter.enabled = True
    app.dependency_overrides.clear()


@pytest.fixture
def user_headers() -> dict:
    """Headers identifying the test user."""
    return {"X-User-Id": "u1"}
