"""
Vector Retrieval Module

Provides semantic search: embed the question, search the index and drop
results below the similarity threshold.
"""

import copy
import logging
from typing import Any, List

from ..errors import EmbeddingError, InvalidInputError, RagError
from ..indexing import VectorIndex
from ..providers import EmbeddingProvider
from ..types import SearchResult

logger = logging.getLogger(__name__)


class VectorRetriever:
    """
    Performs semantic search over a VectorIndex.

    Retrieves most similar chunks for given queries.
    """

    def __init__(self, index: VectorIndex, embedding_provider: EmbeddingProvider):
        """
        Initialize retriever.

        Args:
            index: VectorIndex holding chunk vectors
            embedding_provider: Provider used for query embedding
        """
        self.index = index
        self.embedding_provider = embedding_provider

    def embed_query(self, question: str) -> Any:
        """Embed a question, wrapping provider failures in EmbeddingError."""
        try:
            vector = self.embedding_provider.embed(question)
        except RagError:
            raise
        except Exception as e:
            raise EmbeddingError(f"Query embedding failed: {e}", original_error=e) from e

        try:
            self.index.validate(vector)
        except InvalidInputError as e:
            raise EmbeddingError(f"Query embedding rejected: {e.message}", original_error=e) from e
        return vector

    def search(
        self,
        question: str,
        top_k: int,
        similarity_threshold: float
    ) -> List[SearchResult]:
        """
        Search for chunks similar to a question.

        Args:
            question: Query text
            top_k: Number of candidates taken from the index
            similarity_threshold: Results scoring below this are dropped

        Returns:
            Threshold-filtered results, best first
        """
        query_embedding = self.embed_query(question)
        hits = self.index.search(query_embedding, top_k)

        results = [
            SearchResult(
                chunk_id=hit.chunk.id,
                text=hit.chunk.text,
                similarity_score=hit.score,
                metadata=copy.deepcopy(hit.chunk.metadata)
            )
            for hit in hits
            if hit.score >= similarity_threshold
        ]

        logger.debug(
            "Retrieved chunks",
            extra={"candidates": len(hits), "kept": len(results), "top_k": top_k}
        )
        return results
