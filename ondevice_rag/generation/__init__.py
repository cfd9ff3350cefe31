"""Generation module for the HTTP completion provider."""

from .client import GenerationClient

__all__ = ["GenerationClient"]
