from __future__ import annotations

from enum import StrEnum
from typing import Any

from jobletter.types import Phase


class ErrorKind(StrEnum):
    CANCELLED = "cancelled"
    VALIDATION_REJECTED = "validation_rejected"
    UPSTREAM_UNAVAILABLE = "upstream_unavailable"
    GENERATION_TIMEOUT = "generation_timeout"
    GENERATION_REJECTED = "generation_rejected"
    SECURITY_FLAGGED = "security_flagged"
    UNKNOWN = "unknown"


class PipelineError(Exception):
    """Base for failures raised by gateway steps and the orchestrator."""

    def __init__(self, message: str = "", *, user_message: str = "", phase: Phase | None = None):
        super().__init__(message)
        self.user_message = user_message
        self.phase = phase


class ValidationRejected(PipelineError):
    def __init__(self, message: str = "", *, fields: list[str] | None = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.fields = list(fields or [])


class UpstreamUnavailable(PipelineError):
    pass


class GenerationTimeout(PipelineError):
    pass


class GenerationRejected(PipelineError):
    pass


class GenerationCancelled(PipelineError):
    """The attempt was superseded or cancelled by its caller."""


class ClassifiedError(Exception):
    """A failure prepared for display: never carries raw backend text."""

    def __init__(
        self,
        *,
        kind: ErrorKind,
        title: str,
        description: str,
        recoverable: bool = True,
        is_security: bool = False,
        silent: bool = False,
        phase: Phase | None = None,
        fields: list[str] | None = None,
        job_id: str | None = None,
    ):
        super().__init__(f"{title}: {description}")
        self.kind = kind
        self.title = title
        self.description = description
        self.recoverable = recoverable
        self.is_security = is_security
        self.silent = silent
        self.phase = phase
        self.fields = list(fields or [])
        self.job_id = job_id

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "title": self.title,
            "description": self.description,
            "recoverable": self.recoverable,
            "is_security": self.is_security,
            "silent": self.silent,
            "phase": self.phase.value if self.phase else None,
            "fields": self.fields,
            "job_id": self.job_id,
        }
