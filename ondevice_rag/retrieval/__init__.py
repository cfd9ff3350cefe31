"""Retrieval module for threshold-filtered semantic search."""

from .retriever import VectorRetriever

__all__ = ["VectorRetriever"]
