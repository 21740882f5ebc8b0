"""Tokenization engine for HTML normalization.

This module converts raw HTML bytes into a flat, mutable token list while
discovering the document's text encoding.

Key Components:
    HTMLTokenizer: Single-pass byte scanner producing tokens and issues
    Token: Classified markup fragment with its source offset
    TokenType: Enumeration of all token kinds
    TokenizerSession: Per-parse state, created fresh for every parse
    Cursor: Explicit scan position threaded through the scan helpers
"""

from .cursor import Cursor
from .tokenizer import (
    ATTRIBUTE_TYPES,
    INVALID_NAME,
    OPENING_TAG_TYPES,
    RAW_TEXT_TYPES,
    SYNTHETIC_OFFSET,
    HTMLTokenizer,
    Token,
    TokenizationResult,
    TokenizerSession,
    TokenType,
)

__all__ = [
    "ATTRIBUTE_TYPES",
    "Cursor",
    "HTMLTokenizer",
    "INVALID_NAME",
    "OPENING_TAG_TYPES",
    "RAW_TEXT_TYPES",
    "SYNTHETIC_OFFSET",
    "Token",
    "TokenizationResult",
    "TokenizerSession",
    "TokenType",
]
