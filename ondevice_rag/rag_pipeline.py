"""
RAG Pipeline - Main Module

Provides the pipeline handle integrating chunking, embedding, indexing,
retrieval, context assembly and generation.
"""

import copy
import json
import logging
import threading
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from tqdm import tqdm

from . import events
from .chunking import DocumentChunker, get_tokenizer
from .config import RagConfig
from .context import ContextAssembler, build_prompt
from .embedding import EmbeddingClient
from .errors import (
    BatchIngestionError,
    EmbeddingError,
    GenerationError,
    InvalidInputError,
    ModelLoadError,
    NotInitializedError,
    RagError,
)
from .events import EventEmitter, EventListener
from .generation import GenerationClient
from .indexing import VectorIndex
from .providers import EmbeddingProvider, GenerationOptions, GenerationProvider
from .retrieval import VectorRetriever
from .statistics import PipelineStatistics, StatisticsCollector
from .timing import StageTimings, Timer
from .types import BatchIngestResult, Chunk, PipelineState, RagQuery, RagResult

logger = logging.getLogger(__name__)

Metadata = Union[None, str, Mapping[str, Any]]

JSONL_SUFFIXES = (".jsonl", ".ndjson")


class RagPipeline:
    """
    On-device RAG pipeline.

    One instance owns one embedding session, one generation session and one
    vector index. Every operation runs under a single re-entrant lock, so an
    in-flight query never observes an index mutated by a concurrent add.
    In-flight calls cannot be cancelled.

    Instances are obtained from create_pipeline(); use as a context manager
    to destroy on exit.
    """

    def __init__(
        self,
        config: RagConfig,
        embedding_provider: EmbeddingProvider,
        generation_provider: GenerationProvider,
        listeners: Iterable[EventListener] = ()
    ):
        """
        Build the pipeline components without loading any model.

        Args:
            config: Validated pipeline configuration
            embedding_provider: Provider for chunk and query vectors
            generation_provider: Provider for answers
            listeners: Callables receiving lifecycle events
        """
        self.config = config
        self.verbose = config.verbose
        self.embedding_provider = embedding_provider
        self.generation_provider = generation_provider

        self.tokenizer = get_tokenizer(config.tokenizer, config.encoding_name)
        self.chunker = DocumentChunker(
            chunk_size=config.chunk_size,
            chunk_overlap=config.chunk_overlap,
            tokenizer=self.tokenizer
        )
        self.index = VectorIndex(
            embedding_dim=config.embedding_dimension,
            index_type=config.index_type,
            hnsw_m=config.hnsw_m,
            hnsw_ef_construction=config.hnsw_ef_construction,
            hnsw_ef_search=config.hnsw_ef_search
        )
        self.retriever = VectorRetriever(self.index, embedding_provider)
        self.assembler = ContextAssembler(self.tokenizer)

        self.events = EventEmitter(listeners)
        self._stats = StatisticsCollector()
        self._lock = threading.RLock()
        self._state = PipelineState.UNINITIALIZED

    def _log(self, message: str, **extra: Any) -> None:
        """Log progress at INFO when verbose, DEBUG otherwise."""
        logger.log(logging.INFO if self.verbose else logging.DEBUG, message, extra=extra)

    @property
    def state(self) -> PipelineState:
        return self._state

    def _require_ready(self) -> None:
        if self._state is not PipelineState.READY:
            raise NotInitializedError(f"Pipeline is {self._state.value}")

    def _load_providers(self) -> None:
        """Load both providers; on failure close what was loaded and raise."""
        loaded: List[Any] = []
        for provider in (self.embedding_provider, self.generation_provider):
            try:
                provider.load()
            except Exception as e:
                self._close_providers(loaded)
                if isinstance(e, ModelLoadError):
                    raise
                raise ModelLoadError(
                    f"Failed to load {provider.name} provider: {e}",
                    original_error=e
                ) from e
            loaded.append(provider)

        self._state = PipelineState.READY
        self._log(
            "Pipeline ready",
            embedding_provider=self.embedding_provider.name,
            generation_provider=self.generation_provider.name,
            index_type=self.config.index_type
        )
        self.events.emit(events.PIPELINE_CREATED, config=self.config.to_dict())

    def _close_providers(self, providers: Sequence[Any]) -> None:
        for provider in reversed(providers):
            try:
                provider.close()
            except Exception:
                logger.exception("Failed to close provider", extra={"provider": provider.name})

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    def add_document(self, text: str, metadata: Metadata = None) -> int:
        """
        Chunk, embed and index one document.

        The document is indexed all-or-nothing: if any chunk fails to embed,
        none of its chunks are inserted.

        Args:
            text: Document text
            metadata: Mapping or JSON object string copied onto every chunk

        Returns:
            Number of chunks added (0 for blank text)

        Raises:
            NotInitializedError: Pipeline is not ready
            InvalidInputError: Text is not a string, cannot be tokenized, or metadata is malformed
            EmbeddingError: Embedding failed or returned bad vectors
        """
        with self._lock:
            self._require_ready()
            return self._add_document(text, metadata)

    def _add_document(self, text: str, metadata: Metadata) -> int:
        document_index = self._stats.source_documents
        try:
            if not isinstance(text, str):
                raise InvalidInputError(f"Document text must be a string, got {type(text).__name__}")
            doc_metadata = _parse_metadata(metadata)

            self.events.emit(events.INGESTION_STARTED, document_index=document_index)
            with Timer() as timer:
                try:
                    pieces = self.chunker.chunk_text(text)
                except Exception as e:
                    raise InvalidInputError(
                        f"Document could not be tokenized: {e}", original_error=e
                    ) from e
                if pieces:
                    vectors = self._embed_chunks([p.text for p in pieces])
                    chunks = [
                        Chunk(
                            id="",
                            text=p.text,
                            metadata=copy.deepcopy(doc_metadata),
                            source_document_index=document_index,
                            chunk_index=p.chunk_index
                        )
                        for p in pieces
                    ]
                    try:
                        self.index.insert_batch(chunks, vectors)
                    except InvalidInputError as e:
                        raise EmbeddingError(
                            f"Embedding provider returned unusable vectors: {e.message}",
                            original_error=e
                        ) from e
        except RagError as e:
            self._stats.documents_failed += 1
            logger.warning(
                "Document ingestion failed: %s", e.message,
                extra={"document_index": document_index, "error_code": e.error_code, "error_id": e.error_id}
            )
            self.events.emit(events.ERROR, operation="add_document", error=e.to_dict())
            raise

        self._stats.source_documents += 1
        self._stats.record_phase("ingestion", timer.elapsed_ms)
        self._log(
            "Indexed document",
            document_index=document_index,
            chunks=len(pieces),
            elapsed_ms=timer.elapsed_ms
        )
        self.events.emit(
            events.INGESTION_COMPLETE,
            document_index=document_index,
            chunks_added=len(pieces),
            duration_ms=timer.elapsed_ms
        )
        return len(pieces)

    def _embed_chunks(self, texts: List[str]) -> List[Any]:
        try:
            vectors = self.embedding_provider.embed_batch(texts)
        except EmbeddingError:
            raise
        except Exception as e:
            raise EmbeddingError(f"Embedding failed: {e}", original_error=e) from e

        vectors = list(vectors)
        if len(vectors) != len(texts):
            raise EmbeddingError(
                f"Embedding provider returned {len(vectors)} vectors for {len(texts)} chunks"
            )
        return vectors

    def add_documents_batch(
        self,
        texts: Sequence[str],
        metadata: Optional[Sequence[Metadata]] = None
    ) -> BatchIngestResult:
        """
        Add documents in order, continuing past failures.

        Documents indexed before or after a failed one stay indexed.

        Args:
            texts: Document texts
            metadata: Optional per-document metadata, same length as texts

        Returns:
            BatchIngestResult when every document succeeded

        Raises:
            NotInitializedError: Pipeline is not ready
            InvalidInputError: Metadata length differs from texts
            BatchIngestionError: One or more documents failed; carries the result
        """
        with self._lock:
            self._require_ready()
            if metadata is not None and len(metadata) != len(texts):
                raise InvalidInputError(
                    f"Got {len(metadata)} metadata entries for {len(texts)} documents"
                )

            self._log("Starting batch indexing", documents=len(texts))
            result = BatchIngestResult()

            for i, text in enumerate(tqdm(texts, desc="Indexing documents", disable=not self.verbose)):
                doc_metadata = metadata[i] if metadata is not None else None
                try:
                    added = self._add_document(text, doc_metadata)
                except RagError as e:
                    result.failures.append((i, e))
                    continue
                result.documents_added += 1
                result.chunks_added += added

            if result.failures:
                raise BatchIngestionError(
                    f"{len(result.failures)} of {len(texts)} documents failed to index",
                    result=result
                )

            self._log(
                "Batch indexing complete",
                documents=result.documents_added,
                chunks=result.chunks_added
            )
            return result

    def add_documents_from_file(self, file_path: Union[str, Path], text_field: str = "text") -> BatchIngestResult:
        """
        Index documents from a JSONL or plain text file.

        JSONL files (``.jsonl``/``.ndjson``) hold one JSON object per line;
        ``text_field`` is the document text and the remaining fields become
        its metadata. Any other file is indexed as a single document.

        Args:
            file_path: Path to the file
            text_field: Field containing text (JSONL only)

        Returns:
            BatchIngestResult, as add_documents_batch
        """
        path = Path(file_path)
        self._log("Loading documents", path=str(path))

        texts: List[str] = []
        metadata: List[Dict[str, Any]] = []

        if path.suffix.lower() in JSONL_SUFFIXES:
            with open(path, "r", encoding="utf-8") as f:
                for line_no, line in enumerate(f, start=1):
                    if not line.strip():
                        continue
                    try:
                        record = json.loads(line)
                    except json.JSONDecodeError as e:
                        raise InvalidInputError(
                            f"{path}:{line_no}: invalid JSON: {e}", original_error=e
                        ) from e
                    if not isinstance(record, dict) or not isinstance(record.get(text_field), str):
                        raise InvalidInputError(f"{path}:{line_no}: missing string field '{text_field}'")
                    texts.append(record.pop(text_field))
                    metadata.append(record)
        else:
            texts.append(path.read_text(encoding="utf-8"))
            metadata.append({"source": str(path)})

        self._log("Loaded documents", documents=len(texts))
        return self.add_documents_batch(texts, metadata)

    # ------------------------------------------------------------------
    # Query
    # ------------------------------------------------------------------

    def query(self, query: Union[RagQuery, str]) -> RagResult:
        """
        Answer a question from the indexed documents.

        Retrieval time covers query embedding, search and threshold
        filtering. Generation time covers context packing, prompt building
        and generation. Total time is their sum.

        Args:
            query: RagQuery, or a bare question string

        Returns:
            RagResult; ``retrieved_chunks`` holds every result above the
            threshold, ``context_used`` what fit in the token budget

        Raises:
            NotInitializedError: Pipeline is not ready
            InvalidInputError: Question is empty or not a string
            EmbeddingError: Question could not be embedded
            GenerationError: Generation failed; ``partial_result`` carries
                the retrieval phase
        """
        with self._lock:
            self._require_ready()

            if isinstance(query, str):
                query = RagQuery(question=query)
            if not isinstance(query.question, str):
                raise InvalidInputError(
                    f"Question must be a string, got {type(query.question).__name__}"
                )
            if not query.question.strip():
                raise InvalidInputError("Question must not be empty")

            self.events.emit(events.QUERY_STARTED, question_length=len(query.question))
            timings = StageTimings()

            try:
                with timings.measure("retrieval"):
                    retrieved = self.retriever.search(
                        query.question,
                        top_k=self.config.top_k,
                        similarity_threshold=self.config.similarity_threshold
                    )
            except RagError as e:
                self._query_failed("retrieval", e)
                raise

            retrieval_ms = timings.get("retrieval")
            self._stats.record_phase("retrieval", retrieval_ms)

            context_used = ""
            try:
                with timings.measure("generation"):
                    packed = self.assembler.pack(retrieved, self.config.max_context_tokens)
                    context_used = packed.text
                    prompt = build_prompt(
                        self.config.prompt_template,
                        packed.text,
                        query.question,
                        system_prompt=query.system_prompt
                    )
                    answer = self._generate(prompt, _generation_options(query))
            except GenerationError as e:
                partial = RagResult(
                    answer="",
                    retrieved_chunks=retrieved,
                    context_used=context_used,
                    retrieval_time_ms=retrieval_ms,
                    generation_time_ms=None,
                    total_time_ms=retrieval_ms
                )
                self._query_failed("generation", e)
                raise GenerationError(
                    e.message,
                    partial_result=partial,
                    error_id=e.error_id,
                    original_error=e.original_error
                ) from e

            generation_ms = timings.get("generation")
            total_ms = timings.total_ms
            self._stats.queries += 1
            self._stats.record_phase("generation", generation_ms)
            self._stats.record_phase("total", total_ms)

            self._log(
                "Query answered",
                retrieved=len(retrieved),
                chunks_used=packed.chunks_used,
                context_tokens=packed.token_count,
                **timings.to_dict()
            )
            self.events.emit(
                events.QUERY_COMPLETE,
                retrieved=len(retrieved),
                chunks_used=packed.chunks_used,
                retrieval_time_ms=retrieval_ms,
                generation_time_ms=generation_ms,
                total_time_ms=total_ms
            )

            return RagResult(
                answer=answer,
                retrieved_chunks=retrieved,
                context_used=packed.text,
                retrieval_time_ms=retrieval_ms,
                generation_time_ms=generation_ms,
                total_time_ms=total_ms
            )

    def _generate(self, prompt: str, options: GenerationOptions) -> str:
        try:
            answer = self.generation_provider.generate(prompt, options)
        except GenerationError:
            raise
        except Exception as e:
            raise GenerationError(str(e), original_error=e) from e

        if not isinstance(answer, str):
            raise GenerationError(
                f"Generation provider returned {type(answer).__name__} instead of text"
            )
        return answer

    def _query_failed(self, phase: str, error: RagError) -> None:
        self._stats.queries += 1
        self._stats.queries_failed += 1
        logger.warning(
            "Query failed during %s: %s", phase, error.message,
            extra={"phase": phase, "error_code": error.error_code, "error_id": error.error_id}
        )
        self.events.emit(events.ERROR, operation="query", phase=phase, error=error.to_dict())

    # ------------------------------------------------------------------
    # Housekeeping
    # ------------------------------------------------------------------

    def clear_documents(self) -> None:
        """Drop every indexed chunk; chunk ids restart at chunk_0."""
        with self._lock:
            self._require_ready()
            self.index.clear()
            self._stats.reset_documents()
            self._log("Cleared documents")

    def get_document_count(self) -> int:
        """
        Number of indexed chunks.

        Every binding reports this as the document count; it is a chunk
        count. Returns 0 when the pipeline is not ready.
        """
        with self._lock:
            if self._state is not PipelineState.READY:
                return 0
            return self.index.size()

    def get_statistics(self) -> PipelineStatistics:
        """Get pipeline statistics."""
        with self._lock:
            self._require_ready()
            return PipelineStatistics(
                document_count=self.index.size(),
                source_document_count=self._stats.source_documents,
                index_size=self.index.size(),
                embedding_dimension=self.index.embedding_dim,
                index_type=self.index.index_type,
                memory_bytes=self.index.memory_bytes(),
                queries=self._stats.queries,
                queries_failed=self._stats.queries_failed,
                documents_failed=self._stats.documents_failed,
                latency={name: phase.to_dict() for name, phase in self._stats.phases.items()},
                config=self.config.to_dict()
            )

    def destroy(self) -> None:
        """Release both providers and the index. Safe to call repeatedly."""
        with self._lock:
            if self._state is PipelineState.DESTROYED:
                return
            was_ready = self._state is PipelineState.READY
            if was_ready:
                self._close_providers([self.embedding_provider, self.generation_provider])
            self.index.clear()
            self._state = PipelineState.DESTROYED
            self._log("Pipeline destroyed")
            if was_ready:
                self.events.emit(events.PIPELINE_DESTROYED)

    def __enter__(self) -> "RagPipeline":
        return self

    def __exit__(self, *args) -> None:
        self.destroy()


def create_pipeline(
    config: RagConfig,
    embedding_provider: Optional[EmbeddingProvider] = None,
    generation_provider: Optional[GenerationProvider] = None,
    listeners: Iterable[EventListener] = ()
) -> RagPipeline:
    """
    Validate the config, load both models and return a ready pipeline.

    Providers left as None are built from the config as HTTP clients.

    Raises:
        InvalidConfigError: Config failed validation
        ModelLoadError: Either provider failed to load; nothing stays loaded
    """
    config.validate()

    if embedding_provider is None:
        embedding_provider = EmbeddingClient(
            api_url=config.embedding_api_url,
            model_name=config.embedding_model_path,
            batch_size=config.embedding_batch_size,
            max_retries=config.max_retries,
            timeout=config.request_timeout,
            expected_dim=config.embedding_dimension,
            show_progress=config.verbose
        )
    if generation_provider is None:
        generation_provider = GenerationClient(
            api_url=config.generation_api_url,
            model_name=config.llm_model_path,
            max_retries=config.max_retries,
            timeout=config.request_timeout
        )

    pipeline = RagPipeline(config, embedding_provider, generation_provider, listeners)
    pipeline._load_providers()
    return pipeline


def _parse_metadata(metadata: Metadata) -> Dict[str, Any]:
    if metadata is None:
        return {}
    if isinstance(metadata, str):
        if not metadata.strip():
            return {}
        try:
            parsed = json.loads(metadata)
        except json.JSONDecodeError as e:
            raise InvalidInputError(f"Metadata is not valid JSON: {e}", original_error=e) from e
    elif isinstance(metadata, Mapping):
        parsed = dict(metadata)
    else:
        raise InvalidInputError(f"Metadata must be a mapping or JSON string, got {type(metadata).__name__}")

    if not isinstance(parsed, dict):
        raise InvalidInputError("Metadata must be a JSON object")
    return copy.deepcopy(parsed)


def _generation_options(query: RagQuery) -> GenerationOptions:
    overrides = {
        name: getattr(query, name)
        for name in ("max_tokens", "temperature", "top_p", "top_k")
        if getattr(query, name) is not None
    }
    return replace(GenerationOptions(), **overrides)
