from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field

from jobletter.errors import GenerationCancelled, GenerationTimeout, PipelineError

logger = logging.getLogger(__name__)

TIMEOUT_MESSAGE = "Generering af ansøgningen tog for lang tid. Prøv igen senere."


class AbortSignal:
    """Cooperative cancellation token for one generation attempt.

    The first ``abort`` wins; later calls are ignored so a timeout cannot be
    relabelled as a cancellation or the other way round.
    """

    def __init__(self, attempt: int) -> None:
        self.attempt = attempt
        self._reason: PipelineError | None = None
        self._event = asyncio.Event()

    @property
    def aborted(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> PipelineError | None:
        return self._reason

    def abort(self, reason: PipelineError) -> bool:
        if self._event.is_set():
            return False
        self._reason = reason
        self._event.set()
        return True

    def raise_if_aborted(self) -> None:
        if self._reason is not None:
            raise self._reason

    async def wait(self) -> PipelineError:
        await self._event.wait()
        assert self._reason is not None
        return self._reason


@dataclass(slots=True)
class Deadline:
    attempt: int
    seconds: float
    started_at: float
    fired: bool = False
    _handle: asyncio.TimerHandle | None = field(default=None, repr=False)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def elapsed_ms(self) -> float:
        return (asyncio.get_running_loop().time() - self.started_at) * 1000.0

    @property
    def deadline_ms(self) -> float:
        return self.seconds * 1000.0


class AttemptController:
    """Owns the attempt counter, the live abort signal and the deadline timer."""

    def __init__(self) -> None:
        self._attempt = 0
        self._signal: AbortSignal | None = None
        self._deadline: Deadline | None = None

    @property
    def current_attempt(self) -> int:
        return self._attempt

    @property
    def signal(self) -> AbortSignal | None:
        return self._signal

    def is_current(self, attempt: int) -> bool:
        return attempt == self._attempt

    def new_attempt(self) -> AbortSignal:
        if self.cancel(GenerationCancelled("superseded by a newer attempt")):
            logger.info("Superseded generation attempt=%s", self._attempt)
        self._attempt += 1
        self._signal = AbortSignal(self._attempt)
        return self._signal

    def start_deadline(self, seconds: float) -> Deadline:
        attempt = self._attempt
        signal = self._signal
        loop = asyncio.get_running_loop()
        deadline = Deadline(attempt=attempt, seconds=seconds, started_at=loop.time())

        def _expire() -> None:
            if attempt != self._attempt or signal is None:
                logger.debug("Ignoring deadline of stale attempt=%s", attempt)
                return
            deadline.fired = True
            if signal.abort(GenerationTimeout("generation timed out", user_message=TIMEOUT_MESSAGE)):
                logger.warning("Generation deadline elapsed attempt=%s after %.1fs", attempt, seconds)

        if self._deadline is not None:
            self._deadline.cancel()
        deadline._handle = loop.call_later(seconds, _expire)
        self._deadline = deadline
        return deadline

    def finish(self, attempt: int) -> None:
        """Release the timer and signal if ``attempt`` still owns them."""
        if attempt != self._attempt:
            return
        if self._deadline is not None:
            self._deadline.cancel()
            self._deadline = None
        self._signal = None

    def cancel(self, reason: PipelineError | None = None) -> bool:
        if self._deadline is not None:
            self._deadline.cancel()
            self._deadline = None
        if self._signal is None or self._signal.aborted:
            return False
        return self._signal.abort(reason or GenerationCancelled("cancelled by caller"))
