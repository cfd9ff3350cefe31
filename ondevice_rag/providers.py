"""
Model Provider Interfaces

Defines the contracts the pipeline consumes for embedding and generation.
Concrete providers may wrap a local runtime or an inference server; the
pipeline only relies on the methods below.
"""

from dataclasses import dataclass
from typing import List, Sequence, Tuple


@dataclass(frozen=True)
class GenerationOptions:
    max_tokens: int = 512
    temperature: float = 0.7
    top_p: float = 0.9
    top_k: int = 40
    stop: Tuple[str, ...] = ()


class EmbeddingProvider:
    """
    Turns text into a fixed-length vector.

    Sessions are not assumed reentrant; the pipeline never calls a provider
    from two threads at once.
    """

    name = "embedding"

    def load(self) -> None:
        """Prepare the model. Raise on failure."""

    def embed(self, text: str) -> List[float]:
        raise NotImplementedError

    def embed_batch(self, texts: Sequence[str]) -> List[List[float]]:
        return [self.embed(text) for text in texts]

    def close(self) -> None:
        """Release the model session."""


class GenerationProvider:
    """Completes a prompt under the given sampling options."""

    name = "generation"

    def load(self) -> None:
        """Prepare the model. Raise on failure."""

    def generate(self, prompt: str, options: GenerationOptions) -> str:
        raise NotImplementedError

    def close(self) -> None:
        """Release the model session."""
