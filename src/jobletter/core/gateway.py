from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Protocol

from sqlalchemy.exc import DataError, DBAPIError, IntegrityError, SQLAlchemyError, StatementError
from sqlalchemy.orm import Session

from jobletter.core.attempts import AbortSignal
from jobletter.db.repositories import Repository
from jobletter.db.session import SessionLocal
from jobletter.errors import UpstreamUnavailable, ValidationRejected
from jobletter.llm.writer import LetterWriter
from jobletter.types import ApplicantProfile, GeneratedLetter, JobInput, JobRecord

logger = logging.getLogger(__name__)

JOB_NOT_FOUND_MESSAGE = "Jobbet blev ikke fundet. Prøv igen eller opret et nyt job."


class Gateway(Protocol):
    """Remote operations used by the generation pipeline; one round trip each, no retries."""

    async def fetch_profile(self, owner_id: str) -> ApplicantProfile: ...

    async def save_job(self, job: JobInput, owner_id: str, existing_job_id: str | None = None) -> str: ...

    async def generate_letter_content(
        self, job: JobInput, profile: ApplicantProfile, signal: AbortSignal | None = None
    ) -> str: ...

    async def save_letter(self, owner_id: str, job_id: str, content: str) -> GeneratedLetter: ...

    async def fetch_job(self, job_id: str) -> JobRecord | None: ...


@contextmanager
def translate_db_errors(action: str) -> Iterator[None]:
    try:
        yield
    except (IntegrityError, DataError) as exc:
        raise ValidationRejected(f"{action} rejected by backend: {exc.orig}") from exc
    except DBAPIError as exc:
        raise UpstreamUnavailable(f"{action} failed, backend unreachable: {exc.orig}") from exc
    except StatementError as exc:
        raise ValidationRejected(f"{action} rejected: {exc}") from exc
    except SQLAlchemyError as exc:
        raise UpstreamUnavailable(f"{action} failed: {exc}") from exc


class BackendGateway:
    def __init__(
        self,
        *,
        session_factory: Callable[[], Session] = SessionLocal,
        writer: LetterWriter | None = None,
    ):
        self.session_factory = session_factory
        self.writer = writer or LetterWriter()

    async def fetch_profile(self, owner_id: str) -> ApplicantProfile:
        return await asyncio.to_thread(self._fetch_profile, owner_id)

    async def save_job(self, job: JobInput, owner_id: str, existing_job_id: str | None = None) -> str:
        return await asyncio.to_thread(self._save_job, job, owner_id, existing_job_id)

    async def generate_letter_content(
        self, job: JobInput, profile: ApplicantProfile, signal: AbortSignal | None = None
    ) -> str:
        content = await asyncio.to_thread(self.writer.write_letter, job=job, profile=profile)
        if signal is not None:
            signal.raise_if_aborted()
        return content

    async def save_letter(self, owner_id: str, job_id: str, content: str) -> GeneratedLetter:
        return await asyncio.to_thread(self._save_letter, owner_id, job_id, content)

    async def fetch_job(self, job_id: str) -> JobRecord | None:
        return await asyncio.to_thread(self._fetch_job, job_id)

    def _fetch_profile(self, owner_id: str) -> ApplicantProfile:
        with translate_db_errors("fetch profile"), self.session_factory() as session:
            row = Repository(session).get_profile(owner_id)
            if row is None:
                logger.info("No profile stored for owner=%s; using empty profile", owner_id)
                return ApplicantProfile()
            return ApplicantProfile.model_validate(row)

    def _save_job(self, job: JobInput, owner_id: str, existing_job_id: str | None) -> str:
        values = job.model_dump()
        with translate_db_errors("save job"), self.session_factory() as session:
            try:
                row = Repository(session).save_job(owner_id, values, existing_job_id)
            except ValueError as exc:
                raise ValidationRejected(
                    str(exc), fields=["existing_job_id"], user_message=JOB_NOT_FOUND_MESSAGE
                ) from exc
            return row.id

    def _save_letter(self, owner_id: str, job_id: str, content: str) -> GeneratedLetter:
        with translate_db_errors("save letter"), self.session_factory() as session:
            row = Repository(session).upsert_letter(owner_id, job_id, content)
            return GeneratedLetter.model_validate(row)

    def _fetch_job(self, job_id: str) -> JobRecord | None:
        with translate_db_errors("fetch job"), self.session_factory() as session:
            row = Repository(session).get_job(job_id)
            return JobRecord.model_validate(row) if row is not None else None
