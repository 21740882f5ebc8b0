"""Shared utilities for HTML normalization.

This module provides the configuration object, the issue log and metrics
types, and the correlation-aware logging helpers used by every stage.
"""

from .config import (
    ConfigError,
    ConfigValidationError,
    NormalizerConfig,
)
from .logging import (
    CorrelationLogger,
    get_logger,
)
from .result import (
    Issue,
    IssueLog,
    IssueSeverity,
    NormalizationMetrics,
)

__all__ = [
    "ConfigError",
    "ConfigValidationError",
    "NormalizerConfig",
    "CorrelationLogger",
    "get_logger",
    "Issue",
    "IssueLog",
    "IssueSeverity",
    "NormalizationMetrics",
]
