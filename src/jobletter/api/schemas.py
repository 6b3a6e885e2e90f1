from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from jobletter.types import GeneratedLetter, JobInput, JobRecord


class ProfileRequest(BaseModel):
    name: str = ""
    email: str = ""
    phone: str | None = None
    address: str | None = None
    experience: str | None = None
    education: str | None = None
    skills: str | None = None


class ProfileResponse(ProfileRequest):
    owner_id: str
    is_complete: bool
    updated_at: datetime | None = None


class GenerationRequest(BaseModel):
    job: JobInput
    existing_job_id: str | None = None


class GenerationResponse(BaseModel):
    job: JobRecord
    letter: GeneratedLetter
    profile_incomplete: bool = False


class ProgressResponse(BaseModel):
    state: str
    attempt: int
    phase: str | None = None
    progress: int = 0
    message: str = ""


class CancelResponse(BaseModel):
    cancelled: bool


class LetterUpdateRequest(BaseModel):
    content: str = Field(min_length=1)


class JobExtractRequest(BaseModel):
    url: str


class JobExtractResponse(BaseModel):
    job: JobInput
    fetched: bool
