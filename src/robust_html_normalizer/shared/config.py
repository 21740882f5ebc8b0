"""Configuration for HTML normalization.

A single immutable ``NormalizerConfig`` controls every stage of the pipeline.
Configuration is set before a parse and validated on construction, so an
invalid value fails fast instead of surfacing in the middle of a parse.
"""

import codecs
import json
import re
from dataclasses import asdict, dataclass, fields, replace
from typing import Any, Dict, List, Optional

DEFAULT_ROOT_ELEMENT = "html"
DEFAULT_ENCODING = "utf-8"
MAX_INPUT_SIZE_BYTES = 2**31 - 1  # Largest addressable single buffer

ROOT_NAME_PATTERN = re.compile(r"^[A-Za-z_][-A-Za-z0-9_.]*$")


class ConfigError(Exception):
    """Base exception for configuration errors."""


class ConfigValidationError(ConfigError):
    """Exception raised when configuration validation fails."""

    def __init__(self, message: str, field_name: Optional[str] = None,
                 suggestions: Optional[List[str]] = None):
        super().__init__(message)
        self.field_name = field_name
        self.suggestions = suggestions or []


@dataclass(frozen=True)
class NormalizerConfig:
    """Configuration for the tokenizer, repairer and serializer.

    Thread-safe due to frozen dataclass implementation; a single instance may
    be shared by any number of normalizers.
    """

    enable_repair: bool = True
    lowercase_names: bool = False
    trace_tokenizer: bool = False
    trace_repair: bool = False
    root_element: str = DEFAULT_ROOT_ELEMENT
    default_encoding: str = DEFAULT_ENCODING
    max_input_size_bytes: int = MAX_INPUT_SIZE_BYTES
    correlation_id: Optional[str] = None

    def __post_init__(self) -> None:
        """Validate normalizer configuration."""
        if not ROOT_NAME_PATTERN.match(self.root_element or ""):
            raise ValueError(
                f"root_element must be a valid element name, got {self.root_element!r}"
            )
        try:
            codec = codecs.lookup(self.default_encoding)
        except LookupError:
            raise ValueError(
                f"default_encoding is not a known encoding: {self.default_encoding!r}"
            ) from None
        try:
            compatible = "<html>".encode(codec.name) == b"<html>"
        except (LookupError, UnicodeError):
            # Binary codecs such as base64 cannot encode text at all
            compatible = False
        if not compatible:
            raise ValueError("default_encoding must be ASCII-compatible")
        if self.max_input_size_bytes <= 0:
            raise ValueError("max_input_size_bytes must be > 0")

    @property
    def canonical_encoding(self) -> str:
        """Python codec name of ``default_encoding`` (e.g. ``utf-8``)."""
        return codecs.lookup(self.default_encoding).name

    def override(self, **kwargs: Any) -> "NormalizerConfig":
        """Create a copy with selected fields replaced.

        Raises:
            ConfigValidationError: If a field is unknown or a value is invalid
        """
        known = {f.name for f in fields(self)}
        unknown = sorted(set(kwargs) - known)
        if unknown:
            raise ConfigValidationError(
                f"Unknown configuration field: {unknown[0]}",
                field_name=unknown[0],
                suggestions=sorted(known)
            )
        try:
            return replace(self, **kwargs)
        except ValueError as e:
            raise ConfigValidationError(str(e)) from e

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def to_json(self, indent: int = 2) -> str:
        """Serialize configuration to JSON string."""
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NormalizerConfig":
        """Create configuration from dictionary.

        Unknown keys are rejected rather than silently ignored.
        """
        if not isinstance(data, dict):
            raise ConfigValidationError("Configuration data must be a mapping")
        return cls().override(**data)

    @classmethod
    def from_json(cls, json_str: str) -> "NormalizerConfig":
        """Create configuration from JSON string."""
        try:
            data = json.loads(json_str)
        except json.JSONDecodeError as e:
            raise ConfigValidationError(f"Invalid configuration JSON: {e}") from e
        return cls.from_dict(data)

    # Preset factory methods
    @classmethod
    def default(cls) -> "NormalizerConfig":
        """Repair enabled, names kept as written, ``html`` root."""
        return cls()

    @classmethod
    def xhtml(cls) -> "NormalizerConfig":
        """Lower-case element and attribute names, as XHTML expects."""
        return cls(lowercase_names=True)

    @classmethod
    def tokens_only(cls) -> "NormalizerConfig":
        """Tokenize and serialize without structural repair."""
        return cls(enable_repair=False)
