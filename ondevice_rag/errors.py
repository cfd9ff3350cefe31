"""
Error Types Module

Provides the exception hierarchy raised by the pipeline. Every error carries a
stable error code, a correlation id and the underlying provider exception.
"""

from typing import Any, Dict, List, Optional, Tuple
from uuid import uuid4


class RagError(Exception):
    """Base class for all pipeline errors."""

    error_code: str = "RAG_ERROR"

    def __init__(
        self,
        message: str,
        error_id: Optional[str] = None,
        original_error: Optional[BaseException] = None
    ):
        self.message = message
        self.error_id = error_id or str(uuid4())
        self.original_error = original_error
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the error for binding layers."""
        return {
            "error_code": self.error_code,
            "message": self.message,
            "error_id": self.error_id,
        }


class NotInitializedError(RagError):
    """Operation attempted before creation or after destruction."""

    error_code = "NOT_INITIALIZED"


class InvalidConfigError(RagError):
    """Configuration rejected at pipeline creation."""

    error_code = "INVALID_CONFIG"


class ModelLoadError(RagError):
    """Embedding or generation model failed to initialize."""

    error_code = "MODEL_LOAD_FAILED"


class EmbeddingError(RagError):
    """Embedding provider failed or returned a malformed vector."""

    error_code = "EMBEDDING_FAILED"


class GenerationError(RagError):
    """
    Generation provider failed.

    ``partial_result`` holds the RagResult of the retrieval phase, with
    ``generation_time_ms`` left unset.
    """

    error_code = "GENERATION_FAILED"

    def __init__(
        self,
        message: str,
        partial_result: Any = None,
        error_id: Optional[str] = None,
        original_error: Optional[BaseException] = None
    ):
        super().__init__(message, error_id=error_id, original_error=original_error)
        self.partial_result = partial_result


class InvalidInputError(RagError):
    """Empty question, malformed metadata or wrong-sized vector."""

    error_code = "INVALID_INPUT"


class BatchIngestionError(RagError):
    """
    One or more documents of a batch failed.

    Documents that succeeded stay indexed; ``result`` reports both sides.
    """

    error_code = "PARTIAL_FAILURE"

    def __init__(self, message: str, result: Any, error_id: Optional[str] = None):
        super().__init__(message, error_id=error_id)
        self.result = result

    @property
    def failures(self) -> List[Tuple[int, RagError]]:
        return list(self.result.failures)

    @property
    def failed_indices(self) -> List[int]:
        return [index for index, _ in self.result.failures]

    def to_dict(self) -> Dict[str, Any]:
        payload = super().to_dict()
        payload["failed_indices"] = self.failed_indices
        return payload
