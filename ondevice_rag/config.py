"""
Pipeline Configuration Module

Provides the immutable RagConfig record, its validation, the two threshold
presets shipped by the mobile bindings and RagSettings, which reads
overrides from the environment with pydantic-settings.
"""

from dataclasses import asdict, dataclass, fields, replace
from typing import Any, Dict, Optional

from pydantic import ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import InvalidConfigError

DEFAULT_PROMPT_TEMPLATE = "Context:\n{context}\n\nQuestion: {query}\n\nAnswer:"

TOKENIZERS = ("whitespace", "tiktoken")
INDEX_TYPES = ("flat", "hnsw")

# Threshold defaults differ between bindings; both are kept as named presets
PRESETS: Dict[str, Dict[str, Any]] = {
    "default": {"similarity_threshold": 0.15},
    "strict": {"similarity_threshold": 0.7},
}


@dataclass(frozen=True)
class RagConfig:
    """
    Configuration of a single pipeline instance.

    Model paths identify the embedding and generation models; with the
    bundled HTTP providers they are sent as the ``model`` field of each
    request.
    """

    embedding_model_path: str
    llm_model_path: str
    embedding_dimension: int = 384
    top_k: int = 3
    similarity_threshold: float = 0.15
    max_context_tokens: int = 2048
    chunk_size: int = 512
    chunk_overlap: int = 50
    prompt_template: str = DEFAULT_PROMPT_TEMPLATE

    # Token counting
    tokenizer: str = "whitespace"  # "whitespace" or "tiktoken"
    encoding_name: str = "cl100k_base"

    # Vector index
    index_type: str = "flat"  # "flat" (exact) or "hnsw" (approximate)
    hnsw_m: int = 16
    hnsw_ef_construction: int = 128
    hnsw_ef_search: int = 64

    # HTTP providers
    embedding_api_url: str = "http://localhost:8080/v1/embeddings"
    generation_api_url: str = "http://localhost:8081/v1/completions"
    embedding_batch_size: int = 32
    request_timeout: int = 60
    max_retries: int = 3

    verbose: bool = False

    def validate(self) -> None:
        """
        Check every field, raising on the first problem.

        Raises:
            InvalidConfigError: If any value is out of range
        """
        if not self.embedding_model_path:
            raise InvalidConfigError("embedding_model_path is required")
        if not self.llm_model_path:
            raise InvalidConfigError("llm_model_path is required")

        for name in (
            "embedding_dimension",
            "top_k",
            "max_context_tokens",
            "chunk_size",
            "hnsw_m",
            "hnsw_ef_construction",
            "hnsw_ef_search",
            "embedding_batch_size",
            "request_timeout",
        ):
            if getattr(self, name) <= 0:
                raise InvalidConfigError(f"{name} must be positive, got {getattr(self, name)}")

        if self.chunk_overlap < 0:
            raise InvalidConfigError(f"chunk_overlap must be >= 0, got {self.chunk_overlap}")
        if self.chunk_overlap >= self.chunk_size:
            raise InvalidConfigError(
                f"chunk_overlap ({self.chunk_overlap}) must be smaller than "
                f"chunk_size ({self.chunk_size})"
            )
        if not -1.0 <= self.similarity_threshold <= 1.0:
            raise InvalidConfigError(
                f"similarity_threshold must be within [-1, 1], got {self.similarity_threshold}"
            )
        if self.max_retries < 1:
            raise InvalidConfigError(f"max_retries must be >= 1, got {self.max_retries}")
        if self.tokenizer not in TOKENIZERS:
            raise InvalidConfigError(f"Unsupported tokenizer: {self.tokenizer}")
        if self.index_type not in INDEX_TYPES:
            raise InvalidConfigError(f"Unsupported index type: {self.index_type}")

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RagConfig":
        """Build a config from a mapping, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})

    @classmethod
    def preset(cls, name: str, **overrides: Any) -> "RagConfig":
        """
        Build a config from a named preset.

        Args:
            name: "default" (threshold 0.15) or "strict" (threshold 0.7)
            **overrides: Field values applied on top of the preset

        Returns:
            New RagConfig

        Raises:
            InvalidConfigError: Unknown preset, or model paths missing
        """
        if name not in PRESETS:
            raise InvalidConfigError(
                f"Unknown preset '{name}', expected one of {sorted(PRESETS)}"
            )
        values = dict(PRESETS[name])
        values.update(overrides)
        return cls._build(values, f"preset '{name}'")

    @classmethod
    def from_env(cls, prefix: str = "RAG_", base: Optional["RagConfig"] = None) -> "RagConfig":
        """
        Read overrides from environment variables via RagSettings.

        Each field maps to ``<prefix><FIELD_NAME>``. Fields that are unset
        keep the value from ``base``.

        Args:
            prefix: Variable name prefix
            base: Config supplying values for unset variables

        Returns:
            New RagConfig

        Raises:
            InvalidConfigError: A variable failed validation, or model paths
                are missing and no base supplies them
        """
        try:
            settings = RagSettings(_env_prefix=prefix)
        except ValidationError as e:
            raise InvalidConfigError(
                f"Invalid configuration in environment: {e}", original_error=e
            ) from e

        values = base.to_dict() if base is not None else {}
        values.update(settings.model_dump(exclude_none=True))
        return cls._build(values, "environment")

    @classmethod
    def _build(cls, values: Dict[str, Any], origin: str) -> "RagConfig":
        try:
            return cls(**values)
        except TypeError as e:
            raise InvalidConfigError(f"Incomplete configuration from {origin}: {e}") from e

    def with_overrides(self, **changes: Any) -> "RagConfig":
        return replace(self, **changes)


class RagSettings(BaseSettings):
    """
    RagConfig fields read from ``RAG_*`` environment variables.

    Every field is optional; only variables that are set override a config.
    Range checks stay in RagConfig.validate().
    """

    embedding_model_path: Optional[str] = None
    llm_model_path: Optional[str] = None
    embedding_dimension: Optional[int] = None
    top_k: Optional[int] = None
    similarity_threshold: Optional[float] = None
    max_context_tokens: Optional[int] = None
    chunk_size: Optional[int] = None
    chunk_overlap: Optional[int] = None
    prompt_template: Optional[str] = None

    tokenizer: Optional[str] = None
    encoding_name: Optional[str] = None

    index_type: Optional[str] = None
    hnsw_m: Optional[int] = None
    hnsw_ef_construction: Optional[int] = None
    hnsw_ef_search: Optional[int] = None

    embedding_api_url: Optional[str] = None
    generation_api_url: Optional[str] = None
    embedding_batch_size: Optional[int] = None
    request_timeout: Optional[int] = None
    max_retries: Optional[int] = None

    verbose: Optional[bool] = None

    @field_validator("tokenizer", "index_type")
    @classmethod
    def normalize_choice(cls, v: Optional[str]) -> Optional[str]:
        return v.strip().lower() if v is not None else v

    model_config = SettingsConfigDict(
        env_prefix="RAG_",
        extra="ignore",
    )
