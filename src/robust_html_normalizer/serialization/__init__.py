"""XML rendering for HTML normalization.

This module turns a repaired token list into XML text or bytes, and into the
column-aligned token dump used when debugging the tokenizer.
"""

from .serializer import (
    XMLSerializer,
    quote_attribute_value,
    wrap_script,
    wrap_style,
)

__all__ = [
    "XMLSerializer",
    "quote_attribute_value",
    "wrap_script",
    "wrap_style",
]
