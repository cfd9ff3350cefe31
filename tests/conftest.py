"""
Pytest configuration and shared fixtures.

Provides deterministic in-memory providers so pipeline tests run without
an inference server.
"""

import hashlib
import os
import re
from typing import List, Optional, Sequence

import pytest
import tiktoken

from ondevice_rag.chunking.tokenizer import TiktokenTokenizer
from ondevice_rag.config import RagConfig
from ondevice_rag.providers import EmbeddingProvider, GenerationOptions, GenerationProvider
from ondevice_rag.rag_pipeline import create_pipeline

DIM = 64

_WORD_RE = re.compile(r"[a-z0-9]+")


def pytest_configure(config) -> None:
    config.addinivalue_line(
        "markers", "unit: Unit tests (fast, no external dependencies)"
    )


@pytest.fixture(autouse=True)
def clean_rag_environment(monkeypatch) -> None:
    """Keep RAG_* variables from the outer shell out of every test."""
    for name in list(os.environ):
        if name.startswith("RAG_"):
            monkeypatch.delenv(name)


def words(count: int, prefix: str = "w") -> str:
    """Text of ``count`` distinct whitespace tokens."""
    return " ".join(f"{prefix}{i}" for i in range(count))


def byte_encoding() -> tiktoken.Encoding:
    """One token per UTF-8 byte, built locally instead of downloaded."""
    return tiktoken.Encoding(
        name="bytes",
        pat_str=r"\s+|\S+",
        mergeable_ranks={bytes([i]): i for i in range(256)},
        special_tokens={"<|endoftext|>": 256}
    )


@pytest.fixture
def byte_tokenizer() -> TiktokenTokenizer:
    return TiktokenTokenizer(encoding=byte_encoding())


class HashingEmbedder(EmbeddingProvider):
    """Bag-of-words vector: each word hashes to one dimension."""

    name = "hashing"

    def __init__(self, dim: int = DIM):
        self.dim = dim
        self.loaded = False
        self.closed = False
        self.calls = 0

    def load(self) -> None:
        self.loaded = True

    def embed(self, text: str) -> List[float]:
        self.calls += 1
        vector = [0.0] * self.dim
        for word in _WORD_RE.findall(text.lower()):
            digest = hashlib.md5(word.encode("utf-8")).hexdigest()
            vector[int(digest, 16) % self.dim] += 1.0
        return vector

    def close(self) -> None:
        self.closed = True


class FailingEmbedder(HashingEmbedder):
    """Fails for any text containing ``trigger``."""

    name = "failing"

    def __init__(self, trigger: str = "poison", dim: int = DIM):
        super().__init__(dim)
        self.trigger = trigger

    def embed(self, text: str) -> List[float]:
        if self.trigger in text:
            raise RuntimeError(f"embedding model rejected input containing '{self.trigger}'")
        return super().embed(text)


class WrongDimEmbedder(HashingEmbedder):
    """Returns vectors one component short."""

    name = "wrong-dim"

    def embed(self, text: str) -> List[float]:
        return super().embed(text)[:-1]


class EchoGenerator(GenerationProvider):
    """Records every prompt and answers with a fixed string."""

    name = "echo"

    def __init__(self, answer: str = "generated answer"):
        self.answer = answer
        self.prompts: List[str] = []
        self.options: List[GenerationOptions] = []
        self.loaded = False
        self.closed = False

    def load(self) -> None:
        self.loaded = True

    def generate(self, prompt: str, options: GenerationOptions) -> str:
        self.prompts.append(prompt)
        self.options.append(options)
        return self.answer

    def close(self) -> None:
        self.closed = True


class FailingGenerator(EchoGenerator):
    name = "failing-generator"

    def __init__(self, message: str = "llama_decode failed: KV cache is full"):
        super().__init__()
        self.message = message

    def generate(self, prompt: str, options: GenerationOptions) -> str:
        self.prompts.append(prompt)
        raise RuntimeError(self.message)


class BrokenLoadProvider(HashingEmbedder):
    name = "broken"

    def load(self) -> None:
        raise OSError("model file not found")


def make_config(**overrides) -> RagConfig:
    values = dict(
        embedding_model_path="models/embed.gguf",
        llm_model_path="models/llm.gguf",
        embedding_dimension=DIM,
        chunk_size=10,
        chunk_overlap=2,
        top_k=3,
        similarity_threshold=0.0,
    )
    values.update(overrides)
    return RagConfig(**values)


@pytest.fixture
def config() -> RagConfig:
    return make_config()


@pytest.fixture
def embedder() -> HashingEmbedder:
    return HashingEmbedder()


@pytest.fixture
def generator() -> EchoGenerator:
    return EchoGenerator()


@pytest.fixture
def pipeline(config, embedder, generator):
    with create_pipeline(config, embedding_provider=embedder, generation_provider=generator) as p:
        yield p


def build_pipeline(
    embedding_provider: Optional[EmbeddingProvider] = None,
    generation_provider: Optional[GenerationProvider] = None,
    listeners: Sequence = (),
    **overrides
):
    return create_pipeline(
        make_config(**overrides),
        embedding_provider=embedding_provider or HashingEmbedder(),
        generation_provider=generation_provider or EchoGenerator(),
        listeners=listeners
    )
