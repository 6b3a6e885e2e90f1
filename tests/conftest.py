from __future__ import annotations

import asyncio
import os
import tempfile
from collections import Counter
from datetime import datetime, timedelta
from pathlib import Path

_TEST_DATA = Path(tempfile.mkdtemp(prefix="jobletter-tests-"))
os.environ.setdefault("DATABASE_URL", f"sqlite:///{_TEST_DATA / 'jobletter-test.db'}")
os.environ.setdefault("DATA_DIR", str(_TEST_DATA))
os.environ.setdefault("APP_ENV", "test")
os.environ["OPENAI_API_KEY"] = ""

import pytest  # noqa: E402

from jobletter.core.runtime import reset_runtime  # noqa: E402
from jobletter.db import models  # noqa: E402,F401
from jobletter.db.base import Base  # noqa: E402
from jobletter.db.session import engine  # noqa: E402
from jobletter.types import ApplicantProfile, GeneratedLetter, JobInput, JobRecord  # noqa: E402


@pytest.fixture(autouse=True)
def reset_db() -> None:
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    reset_runtime()
    yield
    reset_runtime()


class FakeGateway:
    """In-memory gateway; ``generate_gate`` holds generation until the event is set."""

    def __init__(self) -> None:
        self.calls: Counter[str] = Counter()
        self.profile = ApplicantProfile(name="Jane Doe", email="jane@x.dk")
        self.content = "Jeg søger stillingen med stor motivation. " * 5
        self.next_job_ids = ["j1", "j2", "j3"]
        self.jobs: dict[str, JobRecord] = {}
        self.letters: dict[tuple[str, str], GeneratedLetter] = {}
        self.errors: dict[str, BaseException] = {}
        self.generate_gate: asyncio.Event | None = None
        self.generate_started = asyncio.Event()
        self._clock = datetime(2026, 10, 19, 9, 0, 0)

    def _tick(self) -> datetime:
        self._clock += timedelta(seconds=1)
        return self._clock

    def _maybe_fail(self, name: str) -> None:
        self.calls[name] += 1
        if name in self.errors:
            raise self.errors[name]

    async def fetch_profile(self, owner_id: str) -> ApplicantProfile:
        self._maybe_fail("fetch_profile")
        return self.profile

    async def save_job(self, job: JobInput, owner_id: str, existing_job_id: str | None = None) -> str:
        self._maybe_fail("save_job")
        now = self._tick()
        if existing_job_id:
            previous = self.jobs[existing_job_id]
            self.jobs[existing_job_id] = JobRecord(
                id=existing_job_id,
                owner_id=owner_id,
                created_at=previous.created_at,
                updated_at=now,
                **job.model_dump(),
            )
            return existing_job_id
        job_id = self.next_job_ids.pop(0)
        self.jobs[job_id] = JobRecord(id=job_id, owner_id=owner_id, created_at=now, updated_at=now, **job.model_dump())
        return job_id

    async def generate_letter_content(self, job: JobInput, profile: ApplicantProfile, signal=None) -> str:
        self._maybe_fail("generate_letter_content")
        gate = self.generate_gate
        self.generate_started.set()
        if gate is not None:
            await gate.wait()
        return self.content

    async def save_letter(self, owner_id: str, job_id: str, content: str) -> GeneratedLetter:
        self._maybe_fail("save_letter")
        now = self._tick()
        existing = self.letters.get((owner_id, job_id))
        letter = GeneratedLetter(
            id=existing.id if existing else f"l{len(self.letters) + 1}",
            job_id=job_id,
            owner_id=owner_id,
            content=content,
            created_at=existing.created_at if existing else now,
            updated_at=now,
        )
        self.letters[(owner_id, job_id)] = letter
        return letter

    async def fetch_job(self, job_id: str) -> JobRecord | None:
        self._maybe_fail("fetch_job")
        return self.jobs.get(job_id)


@pytest.fixture
def fake_gateway() -> FakeGateway:
    return FakeGateway()
