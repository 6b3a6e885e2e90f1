from __future__ import annotations

import logging
from collections.abc import Callable

from jobletter.types import GenerationProgress, Phase

logger = logging.getLogger(__name__)

ProgressListener = Callable[[GenerationProgress], None]


class PhaseTracker:
    """Holds the live phase/progress/message of a generation run.

    ``advance`` is a plain assignment; ordering of phases is a display
    convention only. Listeners are notified synchronously after each update.
    """

    def __init__(self) -> None:
        self._current = GenerationProgress()
        self._listeners: list[ProgressListener] = []

    @property
    def current(self) -> GenerationProgress:
        return self._current

    def advance(self, phase: Phase | None, progress: int, message: str) -> GenerationProgress:
        self._current = GenerationProgress(phase=phase, progress=progress, message=message)
        for listener in list(self._listeners):
            try:
                listener(self._current)
            except Exception:
                logger.exception("Progress listener failed phase=%s", phase)
        return self._current

    def reset(self) -> None:
        self.advance(None, 0, "")

    def subscribe(self, listener: ProgressListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe
