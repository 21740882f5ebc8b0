"""Structural repair for HTML normalization.

This module turns the tokenizer's flat token list into one that describes a
single-rooted, properly nested document without duplicate attributes.
"""

from .repairer import (
    GENERIC_CONTAINER,
    ROOT_VIOLATION_ATTRIBUTE,
    RepairResult,
    TokenRepairer,
)

__all__ = [
    "GENERIC_CONTAINER",
    "ROOT_VIOLATION_ATTRIBUTE",
    "RepairResult",
    "TokenRepairer",
]
