from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import and_, delete, select
from sqlalchemy.orm import Session

from jobletter.db.base import utcnow
from jobletter.db.models import CoverLetter, JobPosting, Profile

PROFILE_FIELDS = ("name", "email", "phone", "address", "experience", "education", "skills")
JOB_FIELDS = ("title", "company", "description", "contact_person", "url", "deadline")


def advance_timestamp(previous: datetime | None) -> datetime:
    """Current UTC time, nudged forward so it is strictly after ``previous``."""
    now = utcnow()
    if previous is not None and now <= previous:
        return previous + timedelta(microseconds=1)
    return now


class Repository:
    def __init__(self, session: Session):
        self.session = session

    def get_profile(self, owner_id: str) -> Profile | None:
        return self.session.get(Profile, owner_id)

    def upsert_profile(self, owner_id: str, values: dict[str, Any]) -> Profile:
        profile = self.session.get(Profile, owner_id)
        if profile is None:
            profile = Profile(owner_id=owner_id)
            self.session.add(profile)
        for key in PROFILE_FIELDS:
            if key not in values:
                continue
            value = values[key]
            if value is None and key in {"name", "email"}:
                value = ""
            setattr(profile, key, value)
        profile.updated_at = advance_timestamp(profile.updated_at)

        self.session.commit()
        self.session.refresh(profile)
        return profile

    def save_job(self, owner_id: str, values: dict[str, Any], job_id: str | None = None) -> JobPosting:
        if job_id:
            job = self.session.get(JobPosting, job_id)
            if job is None or job.owner_id != owner_id:
                raise ValueError(f"job {job_id} not found")
            for key in JOB_FIELDS:
                if key in values:
                    setattr(job, key, values[key])
            job.updated_at = advance_timestamp(job.updated_at)
        else:
            job = JobPosting(owner_id=owner_id, **{key: values.get(key) for key in JOB_FIELDS})
            self.session.add(job)

        self.session.commit()
        self.session.refresh(job)
        return job

    def get_job(self, job_id: str) -> JobPosting | None:
        return self.session.get(JobPosting, job_id)

    def list_jobs(self, owner_id: str, limit: int = 50) -> list[JobPosting]:
        statement = (
            select(JobPosting)
            .where(JobPosting.owner_id == owner_id)
            .order_by(JobPosting.updated_at.desc())
            .limit(limit)
        )
        return list(self.session.scalars(statement).all())

    def delete_job(self, job_id: str, owner_id: str) -> bool:
        job = self.session.get(JobPosting, job_id)
        if job is None or job.owner_id != owner_id:
            return False
        self.session.execute(delete(CoverLetter).where(CoverLetter.job_posting_id == job_id))
        self.session.delete(job)
        self.session.commit()
        return True

    def find_letter(self, owner_id: str, job_id: str) -> CoverLetter | None:
        statement = (
            select(CoverLetter)
            .where(and_(CoverLetter.owner_id == owner_id, CoverLetter.job_posting_id == job_id))
            .order_by(CoverLetter.updated_at.desc())
        )
        return self.session.scalars(statement).first()

    def upsert_letter(self, owner_id: str, job_id: str, content: str) -> CoverLetter:
        letter = self.find_letter(owner_id, job_id)
        if letter is None:
            letter = CoverLetter(owner_id=owner_id, job_posting_id=job_id, content=content)
            self.session.add(letter)
        else:
            letter.content = content
            letter.updated_at = advance_timestamp(letter.updated_at)

        self.session.commit()
        self.session.refresh(letter)
        return letter

    def list_letters_for_job(self, job_id: str) -> list[CoverLetter]:
        statement = (
            select(CoverLetter)
            .where(CoverLetter.job_posting_id == job_id)
            .order_by(CoverLetter.created_at.asc())
        )
        return list(self.session.scalars(statement).all())

    def get_letter(self, letter_id: str) -> CoverLetter | None:
        return self.session.get(CoverLetter, letter_id)

    def update_letter_content(self, letter_id: str, content: str) -> CoverLetter:
        letter = self.session.get(CoverLetter, letter_id)
        if letter is None:
            raise ValueError(f"letter {letter_id} not found")
        letter.content = content
        letter.updated_at = advance_timestamp(letter.updated_at)
        self.session.commit()
        self.session.refresh(letter)
        return letter
