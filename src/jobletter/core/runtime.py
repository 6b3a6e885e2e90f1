from __future__ import annotations

import logging
from collections import OrderedDict

from jobletter.config import get_settings
from jobletter.core.events import EventBus
from jobletter.core.gateway import BackendGateway, Gateway
from jobletter.core.orchestrator import GenerationOrchestrator
from jobletter.types import GenerationProgress

logger = logging.getLogger(__name__)

_EVENT_BUS: EventBus | None = None
_GATEWAY: Gateway | None = None
_ORCHESTRATORS: OrderedDict[str, GenerationOrchestrator] = OrderedDict()


def get_event_bus() -> EventBus:
    global _EVENT_BUS
    if _EVENT_BUS is None:
        _EVENT_BUS = EventBus()
    return _EVENT_BUS


def get_gateway() -> Gateway:
    global _GATEWAY
    if _GATEWAY is None:
        _GATEWAY = BackendGateway()
    return _GATEWAY


def set_gateway(gateway: Gateway | None) -> None:
    """Swap the gateway used by orchestrators created from now on."""
    global _GATEWAY
    _GATEWAY = gateway


def get_orchestrator(owner_id: str) -> GenerationOrchestrator:
    orchestrator = _ORCHESTRATORS.get(owner_id)
    if orchestrator is None:
        orchestrator = GenerationOrchestrator(get_gateway())
        orchestrator.tracker.subscribe(_progress_publisher(owner_id, orchestrator))
        _ORCHESTRATORS[owner_id] = orchestrator
        _evict_idle(get_settings().orchestrator_registry_size)
    else:
        _ORCHESTRATORS.move_to_end(owner_id)
    return orchestrator


def find_orchestrator(owner_id: str) -> GenerationOrchestrator | None:
    return _ORCHESTRATORS.get(owner_id)


def orchestrator_count() -> int:
    return len(_ORCHESTRATORS)


def reset_runtime() -> None:
    global _EVENT_BUS, _GATEWAY
    for orchestrator in _ORCHESTRATORS.values():
        orchestrator.cancel()
    _ORCHESTRATORS.clear()
    _GATEWAY = None
    _EVENT_BUS = None


def _evict_idle(limit: int) -> None:
    # Least recently used first. The newest entry and orchestrators with a live run stay.
    for owner_id in list(_ORCHESTRATORS)[:-1]:
        if len(_ORCHESTRATORS) <= limit:
            return
        if _ORCHESTRATORS[owner_id].is_running:
            continue
        del _ORCHESTRATORS[owner_id]
        logger.debug("Evicted idle orchestrator owner=%s", owner_id)


def _progress_publisher(owner_id: str, orchestrator: GenerationOrchestrator):
    bus = get_event_bus()

    def _publish(progress: GenerationProgress) -> None:
        bus.publish_nowait(
            owner_id,
            {
                "type": "progress",
                "owner_id": owner_id,
                "attempt": orchestrator.attempts.current_attempt,
                "state": orchestrator.state.value,
                "phase": progress.phase.value if progress.phase else None,
                "progress": progress.progress,
                "message": progress.message,
            },
        )

    return _publish
