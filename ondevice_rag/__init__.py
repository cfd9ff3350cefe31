"""
On-device RAG

A bounded retrieval-augmented generation pipeline: chunking, embedding,
vector search, token-budgeted context assembly and generation.
"""

from .chunking import DocumentChunker
from .config import RagConfig, RagSettings
from .context import ContextAssembler, build_prompt
from .embedding import EmbeddingClient
from .errors import (
    BatchIngestionError,
    EmbeddingError,
    GenerationError,
    InvalidConfigError,
    InvalidInputError,
    ModelLoadError,
    NotInitializedError,
    RagError,
)
from .events import RagEvent
from .generation import GenerationClient
from .indexing import VectorIndex
from .logger import setup_logger
from .providers import EmbeddingProvider, GenerationOptions, GenerationProvider
from .rag_pipeline import RagPipeline, create_pipeline
from .retrieval import VectorRetriever
from .statistics import PipelineStatistics
from .types import BatchIngestResult, Chunk, PipelineState, RagQuery, RagResult, SearchResult

__version__ = "0.1.0"

__all__ = [
    "RagPipeline",
    "create_pipeline",
    "RagConfig",
    "RagSettings",
    "RagQuery",
    "RagResult",
    "SearchResult",
    "Chunk",
    "PipelineState",
    "BatchIngestResult",
    "PipelineStatistics",
    "RagEvent",
    "DocumentChunker",
    "VectorIndex",
    "VectorRetriever",
    "ContextAssembler",
    "build_prompt",
    "EmbeddingProvider",
    "GenerationProvider",
    "GenerationOptions",
    "EmbeddingClient",
    "GenerationClient",
    "setup_logger",
    "RagError",
    "NotInitializedError",
    "InvalidConfigError",
    "ModelLoadError",
    "EmbeddingError",
    "GenerationError",
    "InvalidInputError",
    "BatchIngestionError"
]
