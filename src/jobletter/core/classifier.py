from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from jobletter.core.sanitize import looks_malicious, sanitize_message
from jobletter.errors import (
    ClassifiedError,
    ErrorKind,
    GenerationCancelled,
    GenerationRejected,
    GenerationTimeout,
    PipelineError,
    UpstreamUnavailable,
    ValidationRejected,
)
from jobletter.types import REQUIRED_JOB_FIELDS, Phase

logger = logging.getLogger(__name__)

PHASE_TITLES: dict[Phase, str] = {
    Phase.JOB_SAVE: "Fejl ved gemning af job",
    Phase.USER_FETCH: "Fejl ved hentning af profil",
    Phase.GENERATION: "Fejl ved generering",
    Phase.LETTER_SAVE: "Fejl ved gemning",
}

PHASE_DESCRIPTIONS: dict[Phase, str] = {
    Phase.JOB_SAVE: "Kunne ikke gemme jobdetaljerne. Prøv igen.",
    Phase.USER_FETCH: "Kunne ikke hente din profil. Prøv at opdatere siden.",
    Phase.GENERATION: "Kunne ikke generere ansøgningen. Prøv igen senere.",
    Phase.LETTER_SAVE: "Ansøgningen blev genereret, men kunne ikke gemmes. Prøv igen fra det gemte job.",
}

TIMEOUT_TITLE = "Generering tog for lang tid"
TIMEOUT_DESCRIPTION = "Generering af ansøgningen tog for lang tid. Prøv igen senere."
NETWORK_TITLE = "Netværksfejl"
NETWORK_DESCRIPTION = "Kunne ikke forbinde til serveren. Tjek din internetforbindelse og prøv igen."
SECURITY_TITLE = "Der opstod en fejl"
SECURITY_DESCRIPTION = "Handlingen kunne ikke gennemføres. Prøv venligst igen."
VALIDATION_TITLE = "Manglende felter"
INVALID_TITLE = "Ugyldige oplysninger"
VALIDATION_DESCRIPTION = "Udfyld venligst alle påkrævede felter."
LOGIN_TITLE = "Login påkrævet"
LOGIN_DESCRIPTION = "Du skal være logget ind for at udføre denne handling."
UNKNOWN_TITLE = "Ukendt fejl"
UNKNOWN_DESCRIPTION = "Der opstod en ukendt fejl. Prøv igen."

_NETWORK_MARKERS = ("network", "connection", "forbindelse", "netværk", "offline", "unreachable")
_TIMEOUT_MARKERS = ("timed out", "timeout")


class ErrorClassifier:
    """Turns raw failures into display-safe ``ClassifiedError`` values.

    Rules are applied in priority order: cancellation, timeout, security
    markers, validation, connectivity, phase tag, and finally a catch-all.
    Every description is sanitised before it leaves this class.
    """

    def __init__(self, *, is_online: Callable[[], bool] | None = None) -> None:
        self._is_online = is_online or (lambda: True)

    def classify(
        self,
        error: BaseException,
        phase: Phase | None = None,
        elapsed_ms: float | None = None,
        *,
        deadline_ms: float | None = None,
        job_id: str | None = None,
    ) -> ClassifiedError:
        phase = phase or getattr(error, "phase", None)
        message = str(error)
        lowered = message.lower()
        user_message = getattr(error, "user_message", "") or ""

        if isinstance(error, (GenerationCancelled, asyncio.CancelledError)):
            return ClassifiedError(
                kind=ErrorKind.CANCELLED,
                title="Annulleret",
                description="",
                silent=True,
                phase=phase,
                job_id=job_id,
            )

        timed_out = (
            isinstance(error, (GenerationTimeout, TimeoutError))
            or (elapsed_ms is not None and deadline_ms is not None and elapsed_ms >= deadline_ms)
            or any(marker in lowered for marker in _TIMEOUT_MARKERS)
        )
        if timed_out:
            return self._build(
                kind=ErrorKind.GENERATION_TIMEOUT,
                title=TIMEOUT_TITLE,
                description=TIMEOUT_DESCRIPTION,
                phase=phase,
                job_id=job_id,
            )

        if looks_malicious(message) or looks_malicious(user_message):
            logger.warning("Security-flagged failure phase=%s type=%s", phase, type(error).__name__)
            return self._build(
                kind=ErrorKind.SECURITY_FLAGGED,
                title=SECURITY_TITLE,
                description=SECURITY_DESCRIPTION,
                is_security=True,
                phase=phase,
                job_id=job_id,
            )

        if isinstance(error, ValidationRejected):
            login = "owner_id" in error.fields
            if login:
                title = LOGIN_TITLE
            elif any(name in REQUIRED_JOB_FIELDS for name in error.fields):
                title = VALIDATION_TITLE
            else:
                title = INVALID_TITLE
            return self._build(
                kind=ErrorKind.VALIDATION_REJECTED,
                title=title,
                description=user_message or (LOGIN_DESCRIPTION if login else VALIDATION_DESCRIPTION),
                recoverable=False,
                phase=phase,
                fields=error.fields,
                job_id=job_id,
            )

        offline = not self._is_online()
        if (
            offline
            or isinstance(error, (UpstreamUnavailable, ConnectionError))
            or any(marker in lowered for marker in _NETWORK_MARKERS)
        ):
            return self._build(
                kind=ErrorKind.UPSTREAM_UNAVAILABLE,
                title=NETWORK_TITLE,
                description=NETWORK_DESCRIPTION,
                phase=phase,
                job_id=job_id,
            )

        kind = ErrorKind.GENERATION_REJECTED if isinstance(error, GenerationRejected) else ErrorKind.UNKNOWN

        if phase is not None:
            return self._build(
                kind=kind,
                title=PHASE_TITLES[phase],
                description=user_message or PHASE_DESCRIPTIONS[phase],
                phase=phase,
                job_id=job_id,
            )

        if isinstance(error, PipelineError) and user_message:
            description = user_message
        else:
            description = message or UNKNOWN_DESCRIPTION
        return self._build(
            kind=kind,
            title=UNKNOWN_TITLE,
            description=description,
            phase=None,
            job_id=job_id,
        )

    @staticmethod
    def _build(*, title: str, description: str, **kwargs) -> ClassifiedError:
        return ClassifiedError(
            title=sanitize_message(title),
            description=sanitize_message(description) or UNKNOWN_DESCRIPTION,
            **kwargs,
        )
