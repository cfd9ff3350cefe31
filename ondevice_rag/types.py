"""
Data Types Module

Provides the value objects exchanged between pipeline components and
returned to callers. All records handed to callers are fresh copies.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class PipelineState(str, Enum):
    UNINITIALIZED = "uninitialized"
    READY = "ready"
    DESTROYED = "destroyed"


@dataclass(frozen=True)
class Chunk:
    """A bounded slice of a document, the unit of indexing and retrieval."""

    id: str
    text: str
    metadata: Dict[str, Any] = field(default_factory=dict)
    source_document_index: int = 0
    chunk_index: int = 0


@dataclass(frozen=True)
class SearchResult:
    chunk_id: str
    text: str
    similarity_score: float
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "chunk_id": self.chunk_id,
            "text": self.text,
            "similarity_score": self.similarity_score,
            "metadata": dict(self.metadata),
        }


@dataclass(frozen=True)
class RagQuery:
    """
    A question plus optional sampling overrides.

    Unset sampling fields fall back to GenerationOptions defaults.
    """

    question: str
    system_prompt: Optional[str] = None
    max_tokens: Optional[int] = None
    temperature: Optional[float] = None
    top_p: Optional[float] = None
    top_k: Optional[int] = None


@dataclass
class RagResult:
    answer: str
    retrieved_chunks: List[SearchResult]
    context_used: str
    retrieval_time_ms: float
    generation_time_ms: Optional[float]
    total_time_ms: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "answer": self.answer,
            "retrieved_chunks": [r.to_dict() for r in self.retrieved_chunks],
            "context_used": self.context_used,
            "retrieval_time_ms": self.retrieval_time_ms,
            "generation_time_ms": self.generation_time_ms,
            "total_time_ms": self.total_time_ms,
        }


@dataclass
class BatchIngestResult:
    """Outcome of add_documents_batch; failures are (document_index, error)."""

    documents_added: int = 0
    chunks_added: int = 0
    failures: List[Tuple[int, Exception]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures

    def to_dict(self) -> Dict[str, Any]:
        return {
            "documents_added": self.documents_added,
            "chunks_added": self.chunks_added,
            "failures": [
                {"document_index": index, "error": str(error)}
                for index, error in self.failures
            ],
        }
