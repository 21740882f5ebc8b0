"""Issue log and metrics types shared by every normalization stage.

An ``Issue`` is the only diagnostic the normalizer reports to callers. A parse
is considered successful when no issue was recorded, regardless of how much
structural repair was needed to produce well-formed output.
"""

import time
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, BinaryIO, Dict, Iterator, List, Optional

UTF8_BOM = "\ufeff"
NO_OFFSET = -1


class IssueSeverity(Enum):
    """Severity levels for recorded issues."""

    WARNING = auto()    # Recovered, output unaffected
    ERROR = auto()      # Malformed construct recovered by re-reading as text
    CRITICAL = auto()   # Fatal input condition, no output produced


@dataclass
class Issue:
    """Single recorded issue with its source position."""

    message: str
    offset: int = NO_OFFSET
    severity: IssueSeverity = IssueSeverity.ERROR
    component: str = "tokenizer"
    details: Optional[Dict[str, Any]] = None
    timestamp: float = field(default_factory=time.time)

    def __post_init__(self) -> None:
        """Validate issue entry."""
        if not self.message:
            raise ValueError("Issue message cannot be empty")
        if not self.component:
            raise ValueError("Issue component cannot be empty")

    @property
    def is_fatal(self) -> bool:
        return self.severity is IssueSeverity.CRITICAL

    def __str__(self) -> str:
        return self.message


class IssueLog:
    """Ordered collection of issues written by the tokenizer and repairer."""

    def __init__(self) -> None:
        self._issues: List[Issue] = []

    def add(
        self,
        message: str,
        offset: int = NO_OFFSET,
        component: str = "tokenizer",
        severity: IssueSeverity = IssueSeverity.ERROR,
        details: Optional[Dict[str, Any]] = None
    ) -> Issue:
        """Record a recoverable issue and return it."""
        issue = Issue(
            message=message,
            offset=offset,
            severity=severity,
            component=component,
            details=details
        )
        self._issues.append(issue)
        return issue

    def add_fatal(self, message: str, component: str = "input") -> Issue:
        """Record a fatal, session-level issue."""
        return self.add(message, component=component, severity=IssueSeverity.CRITICAL)

    def clear(self) -> None:
        self._issues.clear()

    def truncate(self, length: int) -> None:
        """Drop every issue recorded after the first ``length``."""
        del self._issues[length:]

    def __len__(self) -> int:
        return len(self._issues)

    def __iter__(self) -> Iterator[Issue]:
        return iter(self._issues)

    def __getitem__(self, index: int) -> Issue:
        return self._issues[index]

    @property
    def messages(self) -> List[str]:
        return [issue.message for issue in self._issues]

    @property
    def has_fatal(self) -> bool:
        return any(issue.is_fatal for issue in self._issues)

    def render(self) -> str:
        """Render the log as BOM-prefixed text, one issue per line."""
        return UTF8_BOM + "".join(f"{issue.message}\n" for issue in self._issues)

    def write(self, stream: BinaryIO) -> None:
        """Write the rendered log to a binary stream as UTF-8."""
        stream.write(self.render().encode("utf-8"))


@dataclass
class NormalizationMetrics:
    """Counters collected over a single normalization run."""

    bytes_processed: int = 0
    tokens_generated: int = 0
    restarts: int = 0
    repair_insertions: int = 0
    repair_removals: int = 0
    repair_conversions: int = 0
    processing_time_ms: float = 0.0

    @property
    def repair_operations(self) -> int:
        return self.repair_insertions + self.repair_removals + self.repair_conversions

    @property
    def tokens_per_second(self) -> float:
        """Calculate tokens generated per second."""
        if self.processing_time_ms <= 0:
            return 0.0
        return (self.tokens_generated * 1000.0) / self.processing_time_ms
