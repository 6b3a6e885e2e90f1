from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable
from dataclasses import dataclass
from typing import Any, TypeVar

from jobletter.config import Settings, get_settings
from jobletter.core.attempts import AbortSignal, AttemptController, Deadline
from jobletter.core.classifier import ErrorClassifier
from jobletter.core.gateway import Gateway
from jobletter.core.progress import PhaseTracker
from jobletter.errors import (
    ClassifiedError,
    ErrorKind,
    GenerationCancelled,
    GenerationRejected,
    PipelineError,
    ValidationRejected,
)
from jobletter.llm.writer import NO_CONTENT_MESSAGE
from jobletter.types import GenerationResult, JobInput, JobRecord, Phase, RunState

logger = logging.getLogger(__name__)

T = TypeVar("T")

FIELD_LABELS = {"title": "jobtitel", "company": "virksomhed", "description": "jobbeskrivelse"}


@dataclass(slots=True)
class PipelineRun:
    attempt: int
    signal: AbortSignal
    deadline: Deadline
    phase: Phase
    job_id: str | None = None


class GenerationOrchestrator:
    """Runs save job -> fetch profile -> generate -> save letter -> refresh job.

    One attempt is live at a time. Starting a run supersedes any attempt still
    in flight; every continuation compares its attempt number with the current
    one before touching state, so late results of superseded or timed-out
    attempts are dropped.
    """

    def __init__(
        self,
        gateway: Gateway,
        *,
        settings: Settings | None = None,
        tracker: PhaseTracker | None = None,
        classifier: ErrorClassifier | None = None,
        timeout_sec: float | None = None,
    ):
        self.gateway = gateway
        self.settings = settings or get_settings()
        self.tracker = tracker or PhaseTracker()
        self.classifier = classifier or ErrorClassifier()
        self.attempts = AttemptController()
        self.timeout_sec = timeout_sec or self.settings.generation_timeout_sec
        self._state = RunState.IDLE
        self._orphans: set[asyncio.Future[Any]] = set()

    @property
    def state(self) -> RunState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state.is_active

    def snapshot(self) -> dict[str, Any]:
        progress = self.tracker.current
        return {
            "state": self._state.value,
            "attempt": self.attempts.current_attempt,
            "phase": progress.phase.value if progress.phase else None,
            "progress": progress.progress,
            "message": progress.message,
        }

    async def run(
        self,
        job_input: JobInput,
        *,
        owner_id: str | None,
        existing_job_id: str | None = None,
    ) -> GenerationResult:
        rejected = self._validate(job_input, owner_id)
        if rejected is not None:
            classified = self.classifier.classify(rejected)
            if not self.is_running:
                self._state = RunState.FAILED
            logger.info("Rejected generation input fields=%s", classified.fields)
            raise classified

        signal = self.attempts.new_attempt()
        self._state = RunState.INITIALIZING
        deadline = self.attempts.start_deadline(self.timeout_sec)
        run = PipelineRun(
            attempt=signal.attempt,
            signal=signal,
            deadline=deadline,
            phase=Phase.JOB_SAVE,
            job_id=existing_job_id,
        )
        self._advance(run, Phase.JOB_SAVE, 10, "Forbereder generering...")
        logger.info(
            "Starting generation attempt=%s owner=%s existing_job_id=%s",
            run.attempt,
            owner_id,
            existing_job_id,
        )

        try:
            result = await self._pipeline(run, job_input, owner_id, existing_job_id)
        except asyncio.CancelledError:
            if self.attempts.is_current(run.attempt):
                self.attempts.cancel()
                self.attempts.finish(run.attempt)
                self._state = RunState.IDLE
            raise
        except Exception as exc:
            raise self._fail(run, exc) from exc

        self.attempts.finish(run.attempt)
        self._state = RunState.SUCCEEDED
        self._advance(run, Phase.LETTER_SAVE, 100, "Færdig")
        logger.info(
            "Generation attempt=%s finished job_id=%s letter_id=%s in %.0fms",
            run.attempt,
            result.job.id,
            result.letter.id,
            deadline.elapsed_ms(),
        )
        return result

    def cancel(self) -> bool:
        """Abort the live attempt, if any. Its caller receives a silent error."""
        cancelled = self.attempts.cancel()
        if cancelled:
            logger.info("Cancelled generation attempt=%s", self.attempts.current_attempt)
            self._state = RunState.IDLE
            self.tracker.reset()
        return cancelled

    async def _pipeline(
        self,
        run: PipelineRun,
        job_input: JobInput,
        owner_id: str,
        existing_job_id: str | None,
    ) -> GenerationResult:
        self._set_state(run, RunState.SAVING_JOB)
        job_id = await self._step(run, self.gateway.save_job(job_input, owner_id, existing_job_id))
        run.job_id = job_id

        self._enter(run, RunState.FETCHING_PROFILE, Phase.USER_FETCH, 30, "Henter profiloplysninger...")
        profile = await self._step(run, self.gateway.fetch_profile(owner_id))
        if not profile.is_complete:
            logger.info("Profile for owner=%s has no experience, education or skills", owner_id)

        self._enter(run, RunState.GENERATING, Phase.GENERATION, 50, "Genererer ansøgning...")
        content = await self._step(run, self.gateway.generate_letter_content(job_input, profile, run.signal))
        if not content or not content.strip():
            raise GenerationRejected("generation returned no content", user_message=NO_CONTENT_MESSAGE)

        self._enter(run, RunState.SAVING_LETTER, Phase.LETTER_SAVE, 80, "Gemmer ansøgning...")
        letter = await self._step(run, self.gateway.save_letter(owner_id, job_id, content))

        self._enter(run, RunState.REFRESHING_JOB, Phase.LETTER_SAVE, 95, "Opdaterer job...")
        job = await self._refresh_job(run, job_input, owner_id, job_id)
        return GenerationResult(job=job, letter=letter, profile_incomplete=not profile.is_complete)

    async def _refresh_job(self, run: PipelineRun, job_input: JobInput, owner_id: str, job_id: str) -> JobRecord:
        try:
            record = await self._step(run, self.gateway.fetch_job(job_id))
        except Exception as exc:
            if run.signal.aborted or not self.attempts.is_current(run.attempt):
                raise
            logger.warning("Job refresh failed job_id=%s (%s); using submitted values", job_id, exc)
            record = None

        if record is None:
            return JobRecord(id=job_id, owner_id=owner_id, **job_input.model_dump())
        return record

    async def _step(self, run: PipelineRun, operation: Awaitable[T]) -> T:
        """Await ``operation`` unless the attempt is aborted first.

        An aborted attempt does not wait for the in-flight call; it is left to
        finish on its own and whatever it returns is dropped.
        """
        try:
            self._ensure_live(run)
        except PipelineError:
            if asyncio.iscoroutine(operation):
                operation.close()
            raise

        task = asyncio.ensure_future(operation)
        aborted = asyncio.ensure_future(run.signal.wait())
        try:
            done, _ = await asyncio.wait({task, aborted}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            self._orphan(task)
            raise
        finally:
            aborted.cancel()

        if task not in done:
            self._orphan(task)
            run.signal.raise_if_aborted()
        result = task.result()
        self._ensure_live(run)
        return result

    def _ensure_live(self, run: PipelineRun) -> None:
        if not self.attempts.is_current(run.attempt):
            raise GenerationCancelled(f"attempt {run.attempt} was superseded")
        run.signal.raise_if_aborted()

    def _orphan(self, task: asyncio.Future[Any]) -> None:
        self._orphans.add(task)

        def _discard(done: asyncio.Future[Any]) -> None:
            self._orphans.discard(done)
            if done.cancelled():
                return
            exc = done.exception()
            if exc is not None:
                logger.debug("Dropped failure of abandoned step: %s", exc)
            else:
                logger.info("Dropped late result of abandoned step")

        task.add_done_callback(_discard)

    def _fail(self, run: PipelineRun, exc: Exception) -> ClassifiedError:
        if not self.attempts.is_current(run.attempt):
            logger.info("Discarding outcome of superseded attempt=%s (%s)", run.attempt, type(exc).__name__)
            return ClassifiedError(
                kind=ErrorKind.CANCELLED,
                title="Annulleret",
                description="",
                silent=True,
                phase=run.phase,
                job_id=run.job_id,
            )

        classified = self.classifier.classify(
            exc,
            run.phase,
            run.deadline.elapsed_ms(),
            deadline_ms=run.deadline.deadline_ms,
            job_id=run.job_id,
        )
        self.attempts.finish(run.attempt)
        if classified.silent:
            self._state = RunState.IDLE
            logger.info("Generation attempt=%s cancelled during %s", run.attempt, run.phase.value)
        else:
            self._state = RunState.FAILED
            log = logger.exception if classified.kind == ErrorKind.UNKNOWN else logger.warning
            log(
                "Generation attempt=%s failed phase=%s kind=%s error=%s",
                run.attempt,
                run.phase.value,
                classified.kind.value,
                exc,
            )
        return classified

    def _validate(self, job_input: JobInput, owner_id: str | None) -> ValidationRejected | None:
        if not owner_id or not owner_id.strip():
            return ValidationRejected("generation requested without an authenticated owner", fields=["owner_id"])

        missing = job_input.missing_fields()
        if missing:
            labels = ", ".join(FIELD_LABELS.get(name, name) for name in missing)
            return ValidationRejected(
                f"missing required job fields: {missing}",
                fields=missing,
                user_message=f"Udfyld venligst alle påkrævede felter: {labels}.",
            )
        return None

    def _enter(self, run: PipelineRun, state: RunState, phase: Phase, progress: int, message: str) -> None:
        run.phase = phase
        self._set_state(run, state)
        self._advance(run, phase, progress, message)

    def _set_state(self, run: PipelineRun, state: RunState) -> None:
        if self.attempts.is_current(run.attempt):
            self._state = state

    def _advance(self, run: PipelineRun, phase: Phase, progress: int, message: str) -> None:
        if self.attempts.is_current(run.attempt):
            self.tracker.advance(phase, progress, message)
