"""
Context Assembly Module

Packs ranked search results into a context string bounded by a token budget
and substitutes it into the prompt template.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

from ..chunking.tokenizer import Tokenizer, WhitespaceTokenizer
from ..types import SearchResult

logger = logging.getLogger(__name__)

CONTEXT_SEPARATOR = "\n\n"


@dataclass(frozen=True)
class PackedContext:
    text: str
    chunks_used: int
    token_count: int


class ContextAssembler:
    """
    Greedy, rank-ordered context packing.

    Chunks are appended in rank order while the joined context fits the
    budget. The first chunk that would overflow is dropped and packing stops,
    so the context is always a contiguous prefix of the ranking.
    """

    def __init__(self, tokenizer: Optional[Tokenizer] = None, separator: str = CONTEXT_SEPARATOR):
        self.tokenizer = tokenizer or WhitespaceTokenizer()
        self.separator = separator

    def pack(self, results: Sequence[SearchResult], max_tokens: int) -> PackedContext:
        """
        Build the context string.

        Args:
            results: Threshold-filtered results, best first
            max_tokens: Token budget for the joined context

        Returns:
            PackedContext with the text and how many chunks it holds
        """
        parts: List[str] = []
        token_count = 0

        for result in results:
            candidate = self.separator.join(parts + [result.text])
            candidate_tokens = self.tokenizer.count(candidate)

            if candidate_tokens > max_tokens:
                logger.debug(
                    "Context budget reached",
                    extra={
                        "chunks_used": len(parts),
                        "dropped_chunk_id": result.chunk_id,
                        "max_tokens": max_tokens
                    }
                )
                break

            parts.append(result.text)
            token_count = candidate_tokens

        return PackedContext(
            text=self.separator.join(parts),
            chunks_used=len(parts),
            token_count=token_count
        )


def build_prompt(
    template: str,
    context: str,
    question: str,
    system_prompt: Optional[str] = None
) -> str:
    """
    Substitute ``{context}`` and ``{query}`` into a template.

    Placeholders missing from the template are simply not substituted.
    A system prompt, when given, is placed before the template followed by a
    blank line.
    """
    prompt = template.replace("{context}", context).replace("{query}", question)
    if system_prompt:
        prompt = f"{system_prompt}\n\n{prompt}"
    return prompt
