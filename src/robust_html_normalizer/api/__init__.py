"""Public entry points for HTML normalization.

Module-level functions for one-call use, ``HtmlNormalizer`` for access to
every rendering of a parse, and ``LxmlAdapter`` for strict-XML verification.
"""

from .adapters import LxmlAdapter, VerificationResult
from .parser import (
    HtmlNormalizer,
    NormalizationResult,
    detect_encoding,
    normalize,
    normalize_file,
)

__all__ = [
    "HtmlNormalizer",
    "LxmlAdapter",
    "NormalizationResult",
    "VerificationResult",
    "detect_encoding",
    "normalize",
    "normalize_file",
]
