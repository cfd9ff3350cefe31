"""
Pipeline Events Module

Lifecycle events published by a pipeline to optional listeners.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List

logger = logging.getLogger(__name__)

PIPELINE_CREATED = "rag.pipeline.created"
PIPELINE_DESTROYED = "rag.pipeline.destroyed"
INGESTION_STARTED = "rag.ingestion.started"
INGESTION_COMPLETE = "rag.ingestion.complete"
QUERY_STARTED = "rag.query.started"
QUERY_COMPLETE = "rag.query.complete"
ERROR = "rag.error"


@dataclass(frozen=True)
class RagEvent:
    name: str
    properties: Dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)


EventListener = Callable[[RagEvent], None]


class EventEmitter:
    """
    Delivers events to listeners synchronously, in registration order.

    A listener that raises is logged and does not affect the operation that
    published the event or the remaining listeners.
    """

    def __init__(self, listeners: Iterable[EventListener] = ()):
        self._listeners: List[EventListener] = list(listeners)

    def subscribe(self, listener: EventListener) -> None:
        self._listeners.append(listener)

    def unsubscribe(self, listener: EventListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def emit(self, name: str, **properties: Any) -> None:
        if not self._listeners:
            return
        event = RagEvent(name=name, properties=properties)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Event listener failed", extra={"event": name})
