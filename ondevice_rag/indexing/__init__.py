"""Indexing module for FAISS-backed vector search."""

from .vector_index import IndexHit, VectorIndex

__all__ = ["IndexHit", "VectorIndex"]
