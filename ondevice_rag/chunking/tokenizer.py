"""
Tokenizer Module

Provides the token counting shared by chunking and context assembly:
- WhitespaceTokenizer: words separated by whitespace (default proxy)
- TiktokenTokenizer: BPE tokens via tiktoken
"""

import logging
from typing import List, Optional, Sequence

import tiktoken

logger = logging.getLogger(__name__)


class Tokenizer:
    """Base class: encode text into tokens and decode a window back."""

    name = "base"

    def encode(self, text: str) -> Sequence:
        raise NotImplementedError

    def decode(self, tokens: Sequence) -> str:
        raise NotImplementedError

    def count(self, text: str) -> int:
        return len(self.encode(text))

    def char_boundaries(self, tokens: Sequence) -> List[bool]:
        """
        Flag the token offsets where a window may start or end.

        Entry ``i`` is True when ``tokens[:i]`` ends on a whole character.
        The list has ``len(tokens) + 1`` entries.
        """
        return [True] * (len(tokens) + 1)


class WhitespaceTokenizer(Tokenizer):
    """Word tokens; decoding joins with single spaces."""

    name = "whitespace"

    def encode(self, text: str) -> List[str]:
        return text.split()

    def decode(self, tokens: Sequence[str]) -> str:
        return " ".join(tokens)


class TiktokenTokenizer(Tokenizer):
    """
    BPE tokens via tiktoken.

    Special-token strings such as ``<|endoftext|>`` are encoded as ordinary
    text. Byte-level tokens can split a multi-byte character, so
    ``char_boundaries`` marks the offsets that fall between characters.
    """

    name = "tiktoken"

    def __init__(self, encoding_name: str = "cl100k_base", encoding: Optional[tiktoken.Encoding] = None):
        if encoding is None:
            encoding = tiktoken.get_encoding(encoding_name)
        self.encoding = encoding
        self.encoding_name = encoding.name

    def encode(self, text: str) -> List[int]:
        return self.encoding.encode(text, disallowed_special=())

    def decode(self, tokens: Sequence[int]) -> str:
        return self.encoding.decode(list(tokens))

    def char_boundaries(self, tokens: Sequence[int]) -> List[bool]:
        flags = [True]
        for token in tokens[1:]:
            lead = self.encoding.decode_single_token_bytes(token)[0]
            # 0b10xxxxxx continues the previous character
            flags.append((lead & 0xC0) != 0x80)
        flags.append(True)
        return flags[:len(tokens) + 1]


def get_tokenizer(name: str = "whitespace", encoding_name: str = "cl100k_base") -> Tokenizer:
    """
    Build a tokenizer by name.

    A tiktoken encoding that cannot be loaded (e.g. offline on first use)
    falls back to whitespace counting with a warning.

    Args:
        name: "whitespace" or "tiktoken"
        encoding_name: tiktoken encoding (tiktoken only)

    Returns:
        Tokenizer instance
    """
    if name == "whitespace":
        return WhitespaceTokenizer()
    if name == "tiktoken":
        try:
            return TiktokenTokenizer(encoding_name)
        except Exception as e:
            logger.warning(
                "Failed to load tokenizer (%s), falling back to whitespace mode", e,
                extra={"encoding_name": encoding_name}
            )
            return WhitespaceTokenizer()
    raise ValueError(f"Unsupported tokenizer: {name}")
