"""
Pipeline Statistics Module

Counts and per-phase latency collected by a pipeline, and the snapshot
record returned by get_statistics().
"""

import json
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Optional


@dataclass
class PhaseStats:
    """Latency aggregate of one phase."""

    count: int = 0
    total_ms: float = 0.0
    last_ms: Optional[float] = None
    max_ms: float = 0.0

    def record(self, elapsed_ms: float) -> None:
        self.count += 1
        self.total_ms += elapsed_ms
        self.last_ms = elapsed_ms
        self.max_ms = max(self.max_ms, elapsed_ms)

    @property
    def avg_ms(self) -> float:
        return self.total_ms / self.count if self.count else 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "count": self.count,
            "total_ms": round(self.total_ms, 3),
            "avg_ms": round(self.avg_ms, 3),
            "last_ms": self.last_ms,
            "max_ms": self.max_ms,
        }


class StatisticsCollector:
    """Running counters of one pipeline; reset by clear_documents()."""

    PHASES = ("ingestion", "retrieval", "generation", "total")

    def __init__(self):
        self.reset()

    def reset(self) -> None:
        self.source_documents = 0
        self.documents_failed = 0
        self.queries = 0
        self.queries_failed = 0
        self.phases: Dict[str, PhaseStats] = {name: PhaseStats() for name in self.PHASES}

    def reset_documents(self) -> None:
        """Zero the ingestion side; query history is kept."""
        self.source_documents = 0
        self.documents_failed = 0
        self.phases["ingestion"] = PhaseStats()

    def record_phase(self, phase: str, elapsed_ms: Optional[float]) -> None:
        if elapsed_ms is not None:
            self.phases[phase].record(elapsed_ms)


@dataclass
class PipelineStatistics:
    """
    Snapshot of a pipeline.

    ``document_count`` is the number of indexed chunks, the historical name
    used by every binding; ``source_document_count`` counts added documents.
    """

    document_count: int
    source_document_count: int
    index_size: int
    embedding_dimension: int
    index_type: str
    memory_bytes: int
    queries: int
    queries_failed: int
    documents_failed: int
    latency: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    config: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def to_json(self, indent: Optional[int] = None) -> str:
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)
