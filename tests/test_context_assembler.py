"""Tests for context packing and prompt assembly."""

import pytest

from conftest import byte_encoding
from ondevice_rag.chunking.tokenizer import TiktokenTokenizer, WhitespaceTokenizer
from ondevice_rag.config import DEFAULT_PROMPT_TEMPLATE
from ondevice_rag.context import ContextAssembler, build_prompt
from ondevice_rag.types import SearchResult


def result(text: str, score: float = 0.5, chunk_id: str = "chunk_0") -> SearchResult:
    return SearchResult(chunk_id=chunk_id, text=text, similarity_score=score)


@pytest.mark.unit
class TestContextAssembler:

    def test_no_results_gives_empty_context(self):
        packed = ContextAssembler().pack([], max_tokens=100)

        assert packed.text == ""
        assert packed.chunks_used == 0
        assert packed.token_count == 0

    def test_chunks_joined_in_rank_order(self):
        packed = ContextAssembler().pack(
            [result("first chunk"), result("second chunk")],
            max_tokens=100
        )

        assert packed.text == "first chunk\n\nsecond chunk"
        assert packed.chunks_used == 2
        assert packed.token_count == 4

    def test_stops_at_first_overflowing_chunk(self):
        results = [
            result("a b c"),
            result("d e f g h"),
            result("i"),
        ]

        packed = ContextAssembler().pack(results, max_tokens=6)

        # "i" alone would fit but packing stops at the first overflow
        assert packed.text == "a b c"
        assert packed.chunks_used == 1
        assert packed.token_count == 3

    def test_budget_exactly_filled(self):
        packed = ContextAssembler().pack([result("a b"), result("c d")], max_tokens=4)

        assert packed.chunks_used == 2
        assert packed.token_count == 4

    def test_first_chunk_larger_than_budget_gives_empty_context(self):
        packed = ContextAssembler().pack([result("a b c d e")], max_tokens=3)

        assert packed.text == ""
        assert packed.chunks_used == 0

    @pytest.mark.parametrize("budget", [1, 2, 5, 8, 13, 40])
    def test_token_count_never_exceeds_budget(self, budget):
        assembler = ContextAssembler()
        results = [result(" ".join(["tok"] * n)) for n in (3, 1, 4, 1, 5, 9, 2, 6)]

        packed = assembler.pack(results, max_tokens=budget)

        assert assembler.tokenizer.count(packed.text) <= budget
        assert packed.token_count <= budget

    def test_packing_is_deterministic(self):
        results = [result("x y"), result("z")]
        assembler = ContextAssembler()

        assert assembler.pack(results, 10) == assembler.pack(results, 10)

    def test_custom_separator(self):
        packed = ContextAssembler(separator="\n---\n").pack([result("a"), result("b")], 10)

        assert packed.text == "a\n---\nb"


@pytest.mark.unit
class TestBuildPrompt:

    def test_default_template(self):
        prompt = build_prompt(DEFAULT_PROMPT_TEMPLATE, "some context", "why?")

        assert prompt == "Context:\nsome context\n\nQuestion: why?\n\nAnswer:"

    def test_empty_context_substitutes_empty_string(self):
        prompt = build_prompt(DEFAULT_PROMPT_TEMPLATE, "", "why?")

        assert prompt == "Context:\n\n\nQuestion: why?\n\nAnswer:"

    def test_missing_placeholder_is_not_validated(self):
        assert build_prompt("Answer: {query}", "ignored context", "q") == "Answer: q"

    def test_system_prompt_is_prepended(self):
        prompt = build_prompt("{context}|{query}", "c", "q", system_prompt="Be brief.")

        assert prompt == "Be brief.\n\nc|q"


@pytest.mark.unit
class TestPackingBudget:

    @pytest.fixture
    def assembler(self):
        return ContextAssembler(TiktokenTokenizer(encoding=byte_encoding()))

    def test_separator_tokens_count_against_budget(self, assembler):
        results = [result("aaaa"), result("bbbb")]

        assert assembler.pack(results, max_tokens=9).text == "aaaa"
        assert assembler.pack(results, max_tokens=10).text == "aaaa\n\nbbbb"

    def test_token_count_includes_separator(self, assembler):
        packed = assembler.pack([result("aaaa"), result("bbbb"), result("cc")], max_tokens=100)

        assert packed.token_count == 4 + 2 + 4 + 2 + 2

    @pytest.mark.parametrize("tokenizer", [
        WhitespaceTokenizer(),
        TiktokenTokenizer(encoding=byte_encoding()),
    ], ids=["whitespace", "bytes"])
    @pytest.mark.parametrize("budget", [0, 3, 7, 12, 25, 60])
    def test_packed_context_never_exceeds_budget(self, tokenizer, budget):
        results = [result(f"chunk {i} " + "word " * i, chunk_id=f"chunk_{i}") for i in range(6)]
        assembler = ContextAssembler(tokenizer)

        packed = assembler.pack(results, max_tokens=budget)

        assert tokenizer.count(packed.text) == packed.token_count
        assert packed.token_count <= budget
        assert packed.text == "\n\n".join(r.text for r in results[:packed.chunks_used])
