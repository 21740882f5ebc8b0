"""Strict-XML verification of normalized output with lxml.

lxml is an optional dependency: it is imported only when an adapter method
needs it, and ``LxmlAdapter.is_available()`` tells callers whether the
verification path can be used at all.
"""

import time
from dataclasses import dataclass
from typing import Any, Optional, Union

from robust_html_normalizer.shared import get_logger

from .parser import NormalizationResult

MS_PER_SECOND = 1000


@dataclass
class VerificationResult:
    """Outcome of parsing normalized output with a strict XML parser.

    Attributes:
        well_formed: True if the strict parser accepted the document
        root_tag: Tag of the document element, if parsed
        error: Parser error message, if rejected
        verification_time_ms: Time spent in the strict parser
    """

    well_formed: bool
    root_tag: Optional[str] = None
    error: Optional[str] = None
    verification_time_ms: float = 0.0


class LxmlAdapter:
    """Verifies normalized documents with ``lxml.etree``.

    The strict parser runs without recovery, network access or entity
    resolution, so only a genuinely well-formed document is accepted.
    """

    def __init__(self, correlation_id: Optional[str] = None) -> None:
        self.logger = get_logger(__name__, correlation_id, "lxml_adapter")

    def is_available(self) -> bool:
        """Check if lxml is available."""
        try:
            import lxml.etree  # noqa: F401
            return True
        except ImportError:
            return False

    def _make_parser(self) -> Any:
        import lxml.etree as ET

        return ET.XMLParser(
            recover=False,
            no_network=True,
            resolve_entities=False,
            huge_tree=True,
        )

    def _document_bytes(self, document: Union[bytes, str, NormalizationResult]) -> bytes:
        if isinstance(document, NormalizationResult):
            return document.xml.encode(document.encoding, errors="xmlcharrefreplace")
        if isinstance(document, str):
            return document.encode("utf-8")
        return document

    def verify(self, document: Union[bytes, str, NormalizationResult]) -> VerificationResult:
        """Parse a normalized document strictly.

        Args:
            document: Normalized XML as bytes, text, or a NormalizationResult

        Returns:
            VerificationResult, never raises for a rejected document
        """
        start_time = time.time()
        if not self.is_available():
            return VerificationResult(well_formed=False, error="lxml is not installed")

        import lxml.etree as ET

        try:
            root = ET.fromstring(self._document_bytes(document), self._make_parser())
        except ET.XMLSyntaxError as e:
            elapsed = (time.time() - start_time) * MS_PER_SECOND
            self.logger.debug("Strict XML parse rejected document", extra={"error": str(e)})
            return VerificationResult(
                well_formed=False, error=str(e), verification_time_ms=elapsed
            )

        elapsed = (time.time() - start_time) * MS_PER_SECOND
        return VerificationResult(
            well_formed=True, root_tag=root.tag, verification_time_ms=elapsed
        )

    def to_element(self, document: Union[bytes, str, NormalizationResult]) -> Any:
        """Parse a normalized document into an ``lxml.etree`` element.

        Raises:
            ImportError: If lxml is not installed
            lxml.etree.XMLSyntaxError: If the document is not well-formed
        """
        import lxml.etree as ET

        return ET.fromstring(self._document_bytes(document), self._make_parser())
