"""Context module for token-budgeted packing and prompt assembly."""

from .assembler import CONTEXT_SEPARATOR, ContextAssembler, PackedContext, build_prompt

__all__ = ["CONTEXT_SEPARATOR", "ContextAssembler", "PackedContext", "build_prompt"]
