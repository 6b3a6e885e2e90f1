from __future__ import annotations

import pytest
from sqlalchemy.exc import OperationalError

from jobletter.config import Settings
from jobletter.core.gateway import BackendGateway
from jobletter.core.orchestrator import GenerationOrchestrator
from jobletter.db.repositories import Repository
from jobletter.db.session import SessionLocal
from jobletter.errors import ClassifiedError, ErrorKind
from jobletter.llm.writer import LetterWriter
from jobletter.types import JobInput, RunState


def _orchestrator() -> GenerationOrchestrator:
    settings = Settings(openai_api_key="")
    gateway = BackendGateway(writer=LetterWriter(settings))
    return GenerationOrchestrator(gateway, settings=settings, timeout_sec=10)


def _job(**overrides) -> JobInput:
    values = {
        "title": "Marketing Manager",
        "company": "Acme A/S",
        "description": "Ansvar for kampagner og markedsføring.",
        "contact_person": "  ",
        "deadline": "",
    }
    values.update(overrides)
    return JobInput(**values)


@pytest.mark.asyncio
async def test_pipeline_persists_job_and_template_letter() -> None:
    with SessionLocal() as db:
        Repository(db).upsert_profile("owner-1", {"name": "Jane Doe", "email": "jane@x.dk"})

    orchestrator = _orchestrator()
    result = await orchestrator.run(_job(), owner_id="owner-1")

    assert orchestrator.state == RunState.SUCCEEDED
    assert result.job.contact_person is None
    assert result.job.deadline is None
    assert result.letter.job_id == result.job.id
    assert "Kære Rekrutteringsansvarlig," in result.letter.content
    assert result.letter.content.rstrip().endswith("jane@x.dk")
    assert result.profile_incomplete is True

    with SessionLocal() as db:
        repo = Repository(db)
        assert [row.id for row in repo.list_jobs("owner-1")] == [result.job.id]
        assert len(repo.list_letters_for_job(result.job.id)) == 1


@pytest.mark.asyncio
async def test_rerun_with_existing_job_updates_rows() -> None:
    orchestrator = _orchestrator()

    first = await orchestrator.run(_job(), owner_id="owner-1")
    second = await orchestrator.run(_job(title="Senior Marketing Manager"), owner_id="owner-1", existing_job_id=first.job.id)

    assert second.job.id == first.job.id
    assert second.job.title == "Senior Marketing Manager"
    assert second.job.updated_at > first.job.updated_at
    assert second.letter.id == first.letter.id

    with SessionLocal() as db:
        repo = Repository(db)
        assert len(repo.list_jobs("owner-1")) == 1
        assert len(repo.list_letters_for_job(first.job.id)) == 1


@pytest.mark.asyncio
async def test_unknown_existing_job_is_validation_error() -> None:
    orchestrator = _orchestrator()

    with pytest.raises(ClassifiedError) as excinfo:
        await orchestrator.run(_job(), owner_id="owner-1", existing_job_id="does-not-exist")

    assert excinfo.value.kind == ErrorKind.VALIDATION_REJECTED
    assert excinfo.value.fields == ["existing_job_id"]


@pytest.mark.asyncio
async def test_unreachable_database_is_network_error() -> None:
    def broken_session():
        raise OperationalError("SELECT 1", {}, Exception("unable to open database file"))

    settings = Settings(openai_api_key="")
    gateway = BackendGateway(session_factory=broken_session, writer=LetterWriter(settings))
    orchestrator = GenerationOrchestrator(gateway, settings=settings, timeout_sec=10)

    with pytest.raises(ClassifiedError) as excinfo:
        await orchestrator.run(_job(), owner_id="owner-1")

    assert excinfo.value.title == "Netværksfejl"
    assert excinfo.value.kind == ErrorKind.UPSTREAM_UNAVAILABLE
