"""Chunking module for token-bounded document segmentation."""

from .chunker import DocumentChunker, TextChunk
from .tokenizer import TiktokenTokenizer, Tokenizer, WhitespaceTokenizer, get_tokenizer

__all__ = [
    "DocumentChunker",
    "TextChunk",
    "Tokenizer",
    "WhitespaceTokenizer",
    "TiktokenTokenizer",
    "get_tokenizer"
]
