from __future__ import annotations

from datetime import date, datetime
from enum import StrEnum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class Phase(StrEnum):
    JOB_SAVE = "job-save"
    USER_FETCH = "user-fetch"
    GENERATION = "generation"
    LETTER_SAVE = "letter-save"


class RunState(StrEnum):
    IDLE = "idle"
    INITIALIZING = "initializing"
    SAVING_JOB = "saving_job"
    FETCHING_PROFILE = "fetching_profile"
    GENERATING = "generating"
    SAVING_LETTER = "saving_letter"
    REFRESHING_JOB = "refreshing_job"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def is_active(self) -> bool:
        return self not in {RunState.IDLE, RunState.SUCCEEDED, RunState.FAILED}


REQUIRED_JOB_FIELDS = ("title", "company", "description")


class JobInput(BaseModel):
    title: str = ""
    company: str = ""
    description: str = ""
    contact_person: str | None = None
    url: str | None = None
    deadline: date | None = None

    @field_validator("title", "company", "description", mode="before")
    @classmethod
    def coerce_required(cls, value: object) -> str:
        if value is None:
            return ""
        return str(value)

    @field_validator("contact_person", "url", mode="before")
    @classmethod
    def blank_to_none(cls, value: object) -> str | None:
        if value is None:
            return None
        text = str(value).strip()
        return text or None

    @field_validator("deadline", mode="before")
    @classmethod
    def blank_deadline(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    def missing_fields(self) -> list[str]:
        return [name for name in REQUIRED_JOB_FIELDS if not getattr(self, name).strip()]


class JobRecord(JobInput):
    model_config = ConfigDict(from_attributes=True)

    id: str
    owner_id: str
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ApplicantProfile(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    name: str = ""
    email: str = ""
    phone: str | None = None
    address: str | None = None
    experience: str | None = None
    education: str | None = None
    skills: str | None = None

    @property
    def is_complete(self) -> bool:
        return any((self.experience, self.education, self.skills))


class GeneratedLetter(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    job_id: str = Field(validation_alias=AliasChoices("job_id", "job_posting_id"))
    owner_id: str
    content: str
    created_at: datetime | None = None
    updated_at: datetime | None = None


class GenerationProgress(BaseModel):
    phase: Phase | None = None
    progress: int = 0
    message: str = ""

    @field_validator("progress")
    @classmethod
    def clamp_progress(cls, value: int) -> int:
        return max(0, min(100, value))


class GenerationResult(BaseModel):
    job: JobRecord
    letter: GeneratedLetter
    profile_incomplete: bool = False


class ModelResponse(BaseModel):
    content: str
    raw: dict[str, Any] = Field(default_factory=dict)
