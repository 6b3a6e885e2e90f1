from __future__ import annotations

import asyncio

import pytest

from jobletter.core.attempts import AttemptController
from jobletter.core.progress import PhaseTracker
from jobletter.errors import GenerationCancelled, GenerationTimeout
from jobletter.types import Phase


@pytest.mark.asyncio
async def test_new_attempt_aborts_previous_signal() -> None:
    controller = AttemptController()
    first = controller.new_attempt()
    second = controller.new_attempt()

    assert first.aborted
    assert isinstance(first.reason, GenerationCancelled)
    assert not second.aborted
    assert controller.is_current(second.attempt)
    assert not controller.is_current(first.attempt)


@pytest.mark.asyncio
async def test_deadline_aborts_current_attempt() -> None:
    controller = AttemptController()
    signal = controller.new_attempt()
    deadline = controller.start_deadline(0.01)

    reason = await asyncio.wait_for(signal.wait(), timeout=1)

    assert isinstance(reason, GenerationTimeout)
    assert deadline.fired is True
    with pytest.raises(GenerationTimeout):
        signal.raise_if_aborted()


@pytest.mark.asyncio
async def test_finished_attempt_deadline_never_fires() -> None:
    controller = AttemptController()
    signal = controller.new_attempt()
    deadline = controller.start_deadline(0.01)
    controller.finish(signal.attempt)

    await asyncio.sleep(0.05)

    assert not signal.aborted
    assert deadline.fired is False
    assert controller.cancel() is False


@pytest.mark.asyncio
async def test_first_abort_reason_wins() -> None:
    controller = AttemptController()
    signal = controller.new_attempt()

    assert controller.cancel() is True
    assert signal.abort(GenerationTimeout("late")) is False
    assert isinstance(signal.reason, GenerationCancelled)


def test_tracker_notifies_and_unsubscribes() -> None:
    tracker = PhaseTracker()
    seen = []
    unsubscribe = tracker.subscribe(seen.append)

    tracker.advance(Phase.GENERATION, 50, "Genererer ansøgning...")
    tracker.advance(Phase.JOB_SAVE, 150, "ude af rækkefølge")
    unsubscribe()
    tracker.reset()

    assert [p.progress for p in seen] == [50, 100]
    assert tracker.current.phase is None


def test_tracker_survives_failing_listener() -> None:
    tracker = PhaseTracker()

    def broken(_progress) -> None:
        raise RuntimeError("listener bug")

    tracker.subscribe(broken)
    current = tracker.advance(Phase.USER_FETCH, 30, "Henter profiloplysninger...")

    assert current.progress == 30
