"""Robust HTML Normalizer.

A lenient HTML-to-XML normalizer that turns raw, possibly malformed HTML bytes
of unknown or mislabeled encoding into well-formed XML, without prettifying
the content.

Progressive API Disclosure:
- Level 1: Simple functions - normalize(), normalize_file(), detect_encoding()
- Level 2: Configured normalizer - HtmlNormalizer class
- Level 3: Pipeline stages - HTMLTokenizer, TokenRepairer, XMLSerializer
"""

__version__ = "0.1.0"
__author__ = "Robust HTML Normalizer Team"

# Progressive API disclosure - Level 1: Simple functions
# Progressive API disclosure - Level 2: Configured normalizer
from .api import (
    HtmlNormalizer,
    LxmlAdapter,
    NormalizationResult,
    VerificationResult,
    detect_encoding,
    normalize,
    normalize_file,
)

# Level 3: Pipeline stages
from .repair import RepairResult, TokenRepairer
from .serialization import XMLSerializer

# Configuration and result objects
from .shared import Issue, IssueLog, IssueSeverity, NormalizerConfig
from .tokenization import HTMLTokenizer, Token, TokenType

__all__ = [
    # Version and metadata
    "__author__",
    "__version__",

    # Level 1: Simple normalization functions
    "normalize",
    "normalize_file",
    "detect_encoding",

    # Level 2: Configured normalizer
    "HtmlNormalizer",
    "NormalizationResult",
    "LxmlAdapter",
    "VerificationResult",

    # Level 3: Pipeline stages
    "HTMLTokenizer",
    "Token",
    "TokenType",
    "TokenRepairer",
    "RepairResult",
    "XMLSerializer",

    # Configuration and diagnostics
    "NormalizerConfig",
    "Issue",
    "IssueLog",
    "IssueSeverity",
]
