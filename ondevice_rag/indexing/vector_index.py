"""
Vector Index Module

Provides an incrementally built FAISS index over chunk embeddings with
cosine-similarity search.
"""

import logging
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Sequence

import faiss
import numpy as np

from ..errors import InvalidInputError
from ..types import Chunk

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IndexHit:
    chunk: Chunk
    score: float


class VectorIndex:
    """
    Stores chunk vectors and answers top-k cosine queries.

    Supports flat (exact) and HNSW (approximate) FAISS indices. Vectors are
    L2-normalized on the way in so inner product equals cosine similarity.
    Results are ordered by score descending; equal scores keep insertion
    order. HNSW recall is bounded by ``hnsw_ef_search`` and is not exact.
    """

    def __init__(
        self,
        embedding_dim: int,
        index_type: str = "flat",  # "flat" or "hnsw"
        hnsw_m: int = 16,  # HNSW parameter
        hnsw_ef_construction: int = 128,  # HNSW construction parameter
        hnsw_ef_search: int = 64  # HNSW search parameter
    ):
        """
        Initialize the index.

        Args:
            embedding_dim: Dimension of embeddings
            index_type: Type of index ("flat" for exact, "hnsw" for approximate)
            hnsw_m: Number of connections per layer (HNSW only)
            hnsw_ef_construction: Size of dynamic candidate list (HNSW only)
            hnsw_ef_search: Search depth (HNSW only)
        """
        if index_type not in ("flat", "hnsw"):
            raise ValueError(f"Unsupported index type: {index_type}")

        self.embedding_dim = embedding_dim
        self.index_type = index_type
        self.hnsw_m = hnsw_m
        self.hnsw_ef_construction = hnsw_ef_construction
        self.hnsw_ef_search = hnsw_ef_search

        self.index = self._create_index()
        self._chunks: List[Chunk] = []
        self._next_id = 0

    def _create_index(self) -> faiss.Index:
        if self.index_type == "flat":
            # After normalization, cosine similarity = inner product
            return faiss.IndexFlatIP(self.embedding_dim)

        index = faiss.IndexHNSWFlat(self.embedding_dim, self.hnsw_m, faiss.METRIC_INNER_PRODUCT)
        index.hnsw.efConstruction = self.hnsw_ef_construction
        index.hnsw.efSearch = self.hnsw_ef_search
        return index

    def _normalize_vectors(self, vectors: np.ndarray) -> np.ndarray:
        """Normalize vectors to unit length for cosine similarity."""
        norms = np.linalg.norm(vectors, axis=1, keepdims=True)
        # Zero vectors stay zero
        norms = np.where(norms == 0, 1, norms)
        return (vectors / norms).astype(np.float32)

    def _as_matrix(self, embeddings: Any) -> np.ndarray:
        try:
            matrix = np.asarray(embeddings, dtype=np.float32)
        except (TypeError, ValueError) as e:
            raise InvalidInputError(f"Embedding is not numeric: {e}", original_error=e) from e

        if matrix.ndim == 1:
            matrix = matrix.reshape(1, -1)
        if matrix.ndim != 2 or matrix.shape[1] != self.embedding_dim:
            got = matrix.shape[-1] if matrix.ndim else 0
            raise InvalidInputError(
                f"Embedding dimension mismatch: expected {self.embedding_dim}, got {got}"
            )
        if not np.all(np.isfinite(matrix)):
            raise InvalidInputError("Embedding contains NaN or infinite values")
        return matrix

    def validate(self, embedding: Any) -> None:
        """Raise InvalidInputError if the vector cannot be inserted."""
        self._as_matrix(embedding)

    def insert(self, chunk: Chunk, embedding: Any) -> str:
        """
        Append one chunk.

        Args:
            chunk: Chunk to store; its id is assigned by the index
            embedding: Vector of ``embedding_dim`` floats

        Returns:
            Assigned chunk id
        """
        return self.insert_batch([chunk], [embedding])[0]

    def insert_batch(self, chunks: Sequence[Chunk], embeddings: Any) -> List[str]:
        """
        Append several chunks at once.

        Every vector is validated before any is added, so a bad vector leaves
        the index unchanged.

        Args:
            chunks: Chunks to store
            embeddings: One vector per chunk

        Returns:
            Assigned chunk ids, in order
        """
        if len(chunks) == 0:
            return []

        matrix = self._as_matrix(embeddings)
        if len(matrix) != len(chunks):
            raise InvalidInputError(
                f"Embeddings ({len(matrix)}) and chunks ({len(chunks)}) length mismatch"
            )

        stored = []
        for chunk in chunks:
            stored.append(replace(chunk, id=f"chunk_{self._next_id}"))
            self._next_id += 1

        self.index.add(self._normalize_vectors(matrix))
        self._chunks.extend(stored)

        logger.debug(
            "Added vectors to index",
            extra={"added": len(stored), "total": self.index.ntotal}
        )
        return [c.id for c in stored]

    def search(self, query_embedding: Any, top_k: int) -> List[IndexHit]:
        """
        Find the chunks most similar to a query vector.

        Args:
            query_embedding: Query vector
            top_k: Number of results to return

        Returns:
            At most top_k hits, score descending, ties in insertion order
        """
        query = self._as_matrix(query_embedding)
        if len(query) != 1:
            raise InvalidInputError("search expects a single query vector")

        total = self.index.ntotal
        if total == 0 or top_k <= 0:
            return []

        if self.index_type == "flat":
            k = total
        else:
            k = min(total, max(top_k, self.hnsw_ef_search))

        scores, indices = self.index.search(self._normalize_vectors(query), k)

        candidates = []
        for idx, score in zip(indices[0], scores[0]):
            if idx == -1:  # FAISS returns -1 for missing results
                continue
            candidates.append((float(np.clip(score, -1.0, 1.0)), int(idx)))

        candidates.sort(key=lambda pair: (-pair[0], pair[1]))

        return [IndexHit(chunk=self._chunks[idx], score=score) for score, idx in candidates[:top_k]]

    def clear(self) -> None:
        """Drop all entries and restart chunk ids at zero."""
        self.index = self._create_index()
        self._chunks = []
        self._next_id = 0

    def size(self) -> int:
        return self.index.ntotal

    def __len__(self) -> int:
        return self.size()

    def memory_bytes(self) -> int:
        """Approximate memory held by vectors, graph links and chunk text."""
        total = self.index.ntotal
        vector_bytes = total * self.embedding_dim * 4
        # HNSW keeps 2*M links on level 0 plus M on upper levels
        link_bytes = total * self.hnsw_m * 3 * 4 if self.index_type == "hnsw" else 0
        text_bytes = sum(len(c.text.encode("utf-8")) for c in self._chunks)
        return vector_bytes + link_bytes + text_bytes

    def get_stats(self) -> Dict[str, Any]:
        """Get index statistics."""
        stats = {
            "total_vectors": self.index.ntotal,
            "embedding_dim": self.embedding_dim,
            "index_type": self.index_type,
            "memory_bytes": self.memory_bytes()
        }
        if self.index_type == "hnsw":
            stats["hnsw_m"] = self.hnsw_m
            stats["hnsw_ef_construction"] = self.hnsw_ef_construction
            stats["hnsw_ef_search"] = self.hnsw_ef_search
        return stats
