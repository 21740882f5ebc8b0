"""Public API with progressive disclosure for HTML normalization.

Module-level functions cover the common cases in one call; ``HtmlNormalizer``
exposes every rendering of the last parse (clean XML, token dump, issue log)
as text or written to a file or binary stream.

The API never raises for bad input. Missing, empty, oversized or unreadable
input, and any unexpected fault inside the pipeline, end up as issues.
"""

import time
import traceback
from dataclasses import dataclass, field
from pathlib import Path
from typing import BinaryIO, Callable, List, Optional, Union

from robust_html_normalizer.character import CharsetResolver
from robust_html_normalizer.repair import TokenRepairer
from robust_html_normalizer.serialization import XMLSerializer
from robust_html_normalizer.shared import (
    IssueLog,
    IssueSeverity,
    NormalizationMetrics,
    NormalizerConfig,
    get_logger,
)
from robust_html_normalizer.tokenization import HTMLTokenizer, Token

PathType = Union[str, Path]
OutputTarget = Union[str, Path, BinaryIO]

MS_PER_SECOND = 1000


@dataclass
class NormalizationResult:
    """Outcome of one normalization run.

    Attributes:
        tokens: Final token list
        issues: Issues recorded during the run
        encoding: Text encoding in effect at the end of the run
        xml: Clean XML text, empty for fatal input and encoding-only runs
        root_name: Root element name as written in the output
        metrics: Counters for the run
        correlation_id: Correlation ID of the run, if any
    """

    tokens: List[Token]
    issues: IssueLog
    encoding: str
    xml: str = ""
    root_name: str = ""
    metrics: NormalizationMetrics = field(default_factory=NormalizationMetrics)
    correlation_id: Optional[str] = None

    @property
    def success(self) -> bool:
        """True when no issue was recorded, however much repair was needed."""
        return len(self.issues) == 0

    @property
    def is_fatal(self) -> bool:
        return self.issues.has_fatal

    @property
    def issue_count(self) -> int:
        return len(self.issues)

    @property
    def token_count(self) -> int:
        return len(self.tokens)


class HtmlNormalizer:
    """Reusable normalizer holding the state of its last parse.

    Every parse starts from a clean state. An instance must not be shared by
    concurrent callers; use one per thread.

    Examples:
        >>> normalizer = HtmlNormalizer()
        >>> result = normalizer.parse_data(b'<p><b>bold</p>')
        >>> normalizer.get_clean_xml().lstrip('\\ufeff')
        '<html><p><b>bold</b></p></html>'
    """

    def __init__(
        self,
        config: Optional[NormalizerConfig] = None,
        resolver: Optional[CharsetResolver] = None
    ) -> None:
        """Initialize the normalizer.

        Args:
            config: Normalizer configuration, defaults to ``NormalizerConfig()``
            resolver: Charset resolver used by the tokenizer
        """
        self.config = config or NormalizerConfig()
        self.correlation_id = self.config.correlation_id
        self.logger = get_logger(__name__, self.correlation_id, "html_normalizer")

        self._tokenizer = HTMLTokenizer(self.config, resolver)
        self._repairer = TokenRepairer(self.config)
        self._serializer = XMLSerializer.from_config(self.config)
        self._reset()

    def _reset(self) -> None:
        self._tokens: List[Token] = []
        self._issues = IssueLog()
        self._encoding = self.config.canonical_encoding
        self._root_name = self.config.root_element
        self._last_result: Optional[NormalizationResult] = None

    # Parsing

    def parse_data(self, data: bytes) -> NormalizationResult:
        """Normalize an in-memory buffer.

        Args:
            data: Raw HTML bytes

        Returns:
            NormalizationResult for the buffer
        """
        return self._run(lambda: self._check_data(data), encoding_only=False)

    def parse_file(self, path: PathType) -> NormalizationResult:
        """Normalize the contents of a file."""
        return self._run(lambda: self._read_file(path), encoding_only=False)

    def parse_data_encoding_only(self, data: bytes) -> str:
        """Detect the text encoding of a buffer without a full parse.

        Scanning stops at the first confirmed encoding directive.

        Returns:
            Python codec name of the text encoding
        """
        return self._run(lambda: self._check_data(data), encoding_only=True).encoding

    def parse_file_encoding_only(self, path: PathType) -> str:
        return self._run(lambda: self._read_file(path), encoding_only=True).encoding

    def _run(
        self,
        load: Callable[[], Optional[bytes]],
        encoding_only: bool
    ) -> NormalizationResult:
        start_time = time.time()
        self._reset()
        metrics = NormalizationMetrics()

        data = load()
        if data is not None:
            metrics = self._process(data, encoding_only)
        metrics.processing_time_ms = (time.time() - start_time) * MS_PER_SECOND

        xml = "" if encoding_only else self.get_clean_xml()
        self._last_result = NormalizationResult(
            tokens=self._tokens,
            issues=self._issues,
            encoding=self._encoding,
            xml=xml,
            root_name=self._root_name,
            metrics=metrics,
            correlation_id=self.correlation_id,
        )
        self.logger.info(
            "Normalization completed",
            extra={
                "encoding_only": encoding_only,
                "encoding": self._encoding,
                "token_count": len(self._tokens),
                "issue_count": len(self._issues),
                "processing_time_ms": metrics.processing_time_ms,
            }
        )
        return self._last_result

    def _process(self, data: bytes, encoding_only: bool) -> NormalizationMetrics:
        """Tokenize and repair, converting any unexpected fault into an issue."""
        metrics = NormalizationMetrics(bytes_processed=len(data))
        try:
            tokenization = self._tokenizer.tokenize(
                data, encoding_only=encoding_only, issues=self._issues
            )
            self._tokens = tokenization.tokens
            self._encoding = tokenization.encoding
            metrics = tokenization.metrics

            if self.config.enable_repair and not encoding_only:
                repair = self._repairer.repair(self._tokens)
                self._root_name = repair.root_name
                metrics.repair_insertions = repair.insertions
                metrics.repair_removals = repair.removals
                metrics.repair_conversions = repair.conversions
        except Exception:
            self.logger.exception("Normalization failed")
            self._tokens = []
            self._issues.add(
                traceback.format_exc().rstrip(),
                component="normalizer",
                severity=IssueSeverity.CRITICAL,
            )
        return metrics

    # Input checks

    def _fatal(self, message: str) -> None:
        self._issues.add_fatal(message)
        self.logger.warning("Input rejected", extra={"reason": message})

    def _check_data(self, data: bytes) -> Optional[bytes]:
        if not isinstance(data, (bytes, bytearray, memoryview)):
            self._fatal(f"Input must be bytes, got {type(data).__name__}")
            return None
        data = bytes(data)
        if not data:
            self._fatal("Buffer is empty")
            return None
        if len(data) > self.config.max_input_size_bytes:
            self._fatal(f"Buffer size is greater than {self.config.max_input_size_bytes}")
            return None
        return data

    def _read_file(self, path: PathType) -> Optional[bytes]:
        file_path = Path(path)
        if not file_path.exists():
            self._fatal("File does not exist")
            return None
        if file_path.is_dir():
            self._fatal("Path is a directory")
            return None
        try:
            size = file_path.stat().st_size
            if size == 0:
                self._fatal("File size is zero")
                return None
            if size > self.config.max_input_size_bytes:
                self._fatal(f"File size is greater than {self.config.max_input_size_bytes}")
                return None
            data = file_path.read_bytes()
        except OSError as e:
            self._fatal(f"Error reading file: {e}")
            return None
        if len(data) != size:
            self._fatal("Error reading file")
            return None
        return data

    # Results of the last parse

    @property
    def encoding(self) -> str:
        return self._encoding

    @property
    def issue_count(self) -> int:
        return len(self._issues)

    @property
    def issues(self) -> IssueLog:
        return self._issues

    @property
    def token_count(self) -> int:
        return len(self._tokens)

    @property
    def tokens(self) -> List[Token]:
        return list(self._tokens)

    @property
    def last_result(self) -> Optional[NormalizationResult]:
        return self._last_result

    # Renderings

    def get_clean_xml(self) -> str:
        """Clean XML text of the last parse, empty if it produced no tokens."""
        if not self._tokens:
            return ""
        return self._serializer.to_xml(self._tokens, self._encoding, self._root_name)

    def get_clean_xml_bytes(self) -> bytes:
        """Clean XML encoded in the document's text encoding."""
        return self.get_clean_xml().encode(self._encoding, errors="xmlcharrefreplace")

    def write_clean_xml(self, target: OutputTarget) -> None:
        self._write(target, self.get_clean_xml_bytes())

    def get_token_dump(self) -> str:
        return self._serializer.dump_tokens(self._tokens, self._encoding)

    def write_token_dump(self, target: OutputTarget) -> None:
        dump = self.get_token_dump()
        self._write(target, dump.encode(self._encoding, errors="xmlcharrefreplace"))

    def get_issue_log(self) -> str:
        return self._issues.render()

    def write_issue_log(self, target: OutputTarget) -> None:
        self._write(target, self._issues.render().encode("utf-8"))

    @staticmethod
    def _write(target: OutputTarget, payload: bytes) -> None:
        """Write ``payload`` to a binary stream or to a file path."""
        if hasattr(target, "write"):
            target.write(payload)
            return
        with open(target, "wb") as stream:
            stream.write(payload)


def normalize(
    data: bytes,
    config: Optional[NormalizerConfig] = None
) -> NormalizationResult:
    """Normalize an HTML buffer to well-formed XML.

    Args:
        data: Raw HTML bytes
        config: Optional normalizer configuration

    Returns:
        NormalizationResult whose ``xml`` holds the clean document

    Examples:
        >>> result = normalize(b'<div><span>text')
        >>> result.xml.lstrip('\\ufeff')
        '<html><div><span>text</span></div></html>'
    """
    return HtmlNormalizer(config).parse_data(data)


def normalize_file(
    path: PathType,
    config: Optional[NormalizerConfig] = None
) -> NormalizationResult:
    """Normalize an HTML file to well-formed XML."""
    return HtmlNormalizer(config).parse_file(path)


def detect_encoding(
    data: bytes,
    config: Optional[NormalizerConfig] = None
) -> str:
    """Return the text encoding an HTML buffer declares.

    Falls back to the configured default encoding when the buffer declares
    none that can be resolved.
    """
    return HtmlNormalizer(config).parse_data_encoding_only(data)
