"""
Command Line Interface

Index text or JSONL files and answer questions against local
OpenAI-compatible inference servers.

Usage:
    ondevice-rag --embedding-model bge-small --llm-model qwen2.5-0.5b \\
        --docs notes.jsonl --question "What is the warranty period?"
    echo "What is covered?" | ondevice-rag --embedding-model m --llm-model l --docs manual.txt

Settings resolve in order: preset, RAG_* environment variables, flags.
"""

import argparse
import json
import sys
from typing import Any, Dict, List, Optional

from .config import PRESETS, RagConfig
from .errors import BatchIngestionError, RagError
from .logger import setup_logger
from .rag_pipeline import create_pipeline
from .types import RagQuery, RagResult

# Flag destination -> RagConfig field
_CONFIG_FLAGS = {
    "embedding_model": "embedding_model_path",
    "llm_model": "llm_model_path",
    "embedding_url": "embedding_api_url",
    "generation_url": "generation_api_url",
    "dimension": "embedding_dimension",
    "top_k": "top_k",
    "threshold": "similarity_threshold",
    "max_context_tokens": "max_context_tokens",
    "chunk_size": "chunk_size",
    "chunk_overlap": "chunk_overlap",
    "tokenizer": "tokenizer",
    "index_type": "index_type",
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ondevice-rag",
        description="Answer questions from local documents with an on-device RAG pipeline"
    )
    parser.add_argument("--embedding-model", type=str, help="Embedding model name or path")
    parser.add_argument("--llm-model", type=str, help="Generation model name or path")
    parser.add_argument("--embedding-url", type=str, help="Embeddings endpoint URL")
    parser.add_argument("--generation-url", type=str, help="Completions endpoint URL")
    parser.add_argument(
        "--docs",
        type=str,
        nargs="+",
        default=[],
        help="Files to index (.jsonl/.ndjson records or plain text)"
    )
    parser.add_argument("--text-field", type=str, default="text", help="JSONL field containing text")
    parser.add_argument(
        "--question",
        type=str,
        action="append",
        default=[],
        help="Question to answer (repeatable); read from stdin when omitted"
    )
    parser.add_argument("--system-prompt", type=str, help="Text placed before the prompt template")
    parser.add_argument(
        "--preset",
        type=str,
        default="default",
        choices=sorted(PRESETS),
        help="Threshold preset"
    )
    parser.add_argument("--dimension", type=int, help="Embedding dimension")
    parser.add_argument("--top-k", type=int, help="Chunks retrieved per question")
    parser.add_argument("--threshold", type=float, help="Minimum similarity score")
    parser.add_argument("--max-context-tokens", type=int, help="Token budget of the context")
    parser.add_argument("--chunk-size", type=int, help="Tokens per chunk")
    parser.add_argument("--chunk-overlap", type=int, help="Tokens shared by consecutive chunks")
    parser.add_argument("--tokenizer", type=str, choices=["whitespace", "tiktoken"])
    parser.add_argument("--index-type", type=str, choices=["flat", "hnsw"])
    parser.add_argument("--max-tokens", type=int, help="Maximum tokens to generate")
    parser.add_argument("--temperature", type=float, help="Sampling temperature")
    parser.add_argument("--json", action="store_true", help="Print results as JSON lines")
    parser.add_argument("--stats", action="store_true", help="Print pipeline statistics at exit")
    parser.add_argument("--log-level", type=str, default=None, help="Logging level (default: RAG_LOG_LEVEL or INFO)")
    parser.add_argument("--verbose", action="store_true", help="Progress logging and progress bars")
    return parser


def build_config(args: argparse.Namespace) -> RagConfig:
    """Resolve preset, environment and flags into a RagConfig."""
    base = RagConfig.preset(args.preset, embedding_model_path="", llm_model_path="")
    config = RagConfig.from_env(base=base)

    overrides: Dict[str, Any] = {
        field: getattr(args, dest)
        for dest, field in _CONFIG_FLAGS.items()
        if getattr(args, dest) is not None
    }
    if args.verbose:
        overrides["verbose"] = True
    return config.with_overrides(**overrides)


def _print_result(question: str, result: RagResult, as_json: bool) -> None:
    if as_json:
        payload = {"question": question, **result.to_dict()}
        print(json.dumps(payload, ensure_ascii=False))
        return

    print(f"\n{'=' * 60}")
    print(f"Q: {question}")
    print(f"A: {result.answer.strip()}")
    print(f"{'-' * 60}")
    for rank, chunk in enumerate(result.retrieved_chunks, start=1):
        preview = chunk.text[:80].replace("\n", " ")
        print(f"  [{rank}] {chunk.chunk_id} score={chunk.similarity_score:.4f} {preview}")
    print(
        f"  retrieval {result.retrieval_time_ms:.1f} ms, "
        f"generation {result.generation_time_ms:.1f} ms, "
        f"total {result.total_time_ms:.1f} ms"
    )


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logger(level=args.log_level)

    try:
        config = build_config(args)
    except RagError as e:
        print(f"error: {e.message}", file=sys.stderr)
        return 2

    questions = args.question or [line.strip() for line in sys.stdin if line.strip()]

    try:
        with create_pipeline(config) as pipeline:
            for path in args.docs:
                try:
                    pipeline.add_documents_from_file(path, text_field=args.text_field)
                except BatchIngestionError as e:
                    print(
                        f"warning: {path}: documents {e.failed_indices} failed to index",
                        file=sys.stderr
                    )

            for question in questions:
                result = pipeline.query(RagQuery(
                    question=question,
                    system_prompt=args.system_prompt,
                    max_tokens=args.max_tokens,
                    temperature=args.temperature
                ))
                _print_result(question, result, args.json)

            if args.stats:
                print(pipeline.get_statistics().to_json(indent=2))
    except RagError as e:
        print(f"error [{e.error_code}]: {e.message}", file=sys.stderr)
        return 1
    except OSError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
