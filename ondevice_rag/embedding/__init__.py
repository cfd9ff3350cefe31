"""Embedding module for the HTTP embedding provider."""

from .client import EmbeddingClient

__all__ = ["EmbeddingClient"]
