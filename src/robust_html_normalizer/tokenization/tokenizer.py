"""Byte-level HTML tokenizer with encoding discovery.

This module scans raw HTML bytes once, left to right, and produces a flat list
of tokens plus an issue log. The tokenizer never fails on malformed input:
a construct that cannot be read is recorded as an issue and its ``<`` is
re-read as literal text, so every input byte ends up in some token.

Two encodings are tracked per parse. Markup (tag and attribute names) is
always decoded with the configured default encoding, which is required to be
ASCII-compatible. Text may switch once, when an ``encoding=`` or ``charset=``
directive is confirmed; the scan then restarts from the beginning.
"""

import logging
import re
import time
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Dict, List, Optional, Pattern

from robust_html_normalizer.character import (
    RAW_TEXT_ELEMENTS,
    CharsetResolver,
    NameValidity,
    clean_comment,
    clean_script_comments,
    detect_bom,
    find_encoding_directive,
    is_ascii_compatible,
    is_raw_text_element,
    is_valid_name,
    is_void_element,
    match_declaration_keyword,
    replace_invalid_chars,
    sanitize_attribute_text,
    translate_special_chars,
)
from robust_html_normalizer.shared import (
    IssueLog,
    NormalizationMetrics,
    NormalizerConfig,
    get_logger,
)

from .cursor import Cursor

# Byte values of markup delimiters
LT = ord("<")
GT = ord(">")
BANG = ord("!")
QUESTION = ord("?")
SLASH = ord("/")
DASH = ord("-")
EQUALS = ord("=")
LBRACKET = ord("[")
QUOTES = frozenset(b"\"'")

SYNTHETIC_OFFSET = -1
INVALID_NAME = "InvalidXmlName"
CDATA_PREFIX = b"CDATA["

_RAW_END: Dict[str, Pattern[bytes]] = {
    name: re.compile(b"</" + name.encode("ascii") + rb"[\s/>]", re.IGNORECASE)
    for name in RAW_TEXT_ELEMENTS
}

logger = logging.getLogger(__name__)


class TokenType(Enum):
    """Kinds of markup fragments produced by the tokenizer."""

    TAG_START = auto()               # <name ...>
    TAG_EMPTY = auto()               # <name .../> or a void element
    TAG_END = auto()                 # </name>
    DECLARATION = auto()             # <!DOCTYPE ...> and other known keywords
    DECLARATION2 = auto()            # <![CDATA[ ... ]]>
    PROCESSING_INSTRUCTION = auto()  # <? ... ?>
    COMMENT = auto()                 # <!-- ... -->
    ATTR_NAME = auto()               # Attribute name, followed by ATTR_VALUE
    ATTR_VALUE = auto()              # Attribute value, already translated
    ATTR_SOLO = auto()               # Attribute written without a value
    TEXT = auto()                    # Character content between tags
    TEXT_SCRIPT = auto()             # Raw <script> content
    TEXT_STYLE = auto()              # Raw <style> content


OPENING_TAG_TYPES = frozenset({TokenType.TAG_START, TokenType.TAG_EMPTY})
ATTRIBUTE_TYPES = frozenset({
    TokenType.ATTR_NAME, TokenType.ATTR_VALUE, TokenType.ATTR_SOLO,
})
RAW_TEXT_TYPES = frozenset({TokenType.TEXT_SCRIPT, TokenType.TEXT_STYLE})


@dataclass
class Token:
    """Single classified markup fragment.

    Attributes:
        type: Token kind
        value: Name or decoded, XML-safe content
        offset: Source byte offset, ``SYNTHETIC_OFFSET`` for inserted tokens
        level: Nesting depth, assigned during repair
    """

    type: TokenType
    value: str
    offset: int = SYNTHETIC_OFFSET
    level: int = 0

    @property
    def is_synthetic(self) -> bool:
        return self.offset < 0


@dataclass
class TokenizationResult:
    """Outcome of tokenizing one buffer."""

    tokens: List[Token]
    issues: IssueLog
    encoding: str
    encoding_confirmed: bool = False
    restarted: bool = False
    stopped_early: bool = False
    metrics: NormalizationMetrics = field(default_factory=NormalizationMetrics)

    @property
    def token_count(self) -> int:
        return len(self.tokens)

    @property
    def success(self) -> bool:
        """True when no issue was recorded."""
        return len(self.issues) == 0


@dataclass
class TokenizerSession:
    """Mutable state of a single parse, discarded when the parse ends.

    ``origin`` is the first byte after a UTF-8 byte order mark. A restart
    rewinds to it, drops collected tokens and the issues recorded by the
    abandoned pass, and keeps the newly confirmed text encoding.
    """

    data: bytes
    config: NormalizerConfig
    issues: IssueLog
    encoding_only: bool = False
    tags_encoding: str = ""
    text_encoding: str = ""
    encoding_found: bool = False
    restarts: int = 0
    tokens: List[Token] = field(default_factory=list)
    origin: int = field(init=False)
    cursor: Cursor = field(init=False)
    issue_mark: int = field(init=False)

    def __post_init__(self) -> None:
        """Position the cursor after any byte order mark."""
        encoding = self.config.canonical_encoding
        self.tags_encoding = self.tags_encoding or encoding
        self.text_encoding = self.text_encoding or encoding
        self.origin = detect_bom(self.data)
        self.cursor = Cursor(self.data, self.origin)
        self.issue_mark = len(self.issues)

    def restart(self) -> None:
        self.restarts += 1
        self.tokens.clear()
        self.issues.truncate(self.issue_mark)
        self.cursor.pos = self.origin

    def decode_tag(self, start: int, end: int) -> str:
        return self.data[start:end].decode(self.tags_encoding, errors="replace")

    def decode_text(self, start: int, end: int) -> str:
        return self.data[start:end].decode(self.text_encoding, errors="replace")


class _ScanOutcome(Enum):
    COMPLETE = auto()  # Reached end of input
    RESTART = auto()   # New text encoding confirmed, rescan required
    STOP = auto()      # Encoding-only mode found its answer


@dataclass
class _Markup:
    """Tokens of one successfully scanned construct."""

    tokens: List[Token]
    resume: int
    directive: Optional[str] = None
    raw_element: Optional[str] = None


class HTMLTokenizer:
    """Single-pass HTML tokenizer.

    Instances hold only configuration and may be reused for any number of
    sequential parses; all per-parse state lives in a ``TokenizerSession``.
    """

    def __init__(
        self,
        config: Optional[NormalizerConfig] = None,
        resolver: Optional[CharsetResolver] = None
    ) -> None:
        """Initialize the tokenizer.

        Args:
            config: Normalizer configuration, defaults to ``NormalizerConfig()``
            resolver: Charset resolver used to confirm encoding directives
        """
        self.config = config or NormalizerConfig()
        self.resolver = resolver or CharsetResolver()
        self.correlation_id = self.config.correlation_id
        self.logger = get_logger(__name__, self.correlation_id, "tokenizer")

    def tokenize(
        self,
        data: bytes,
        encoding_only: bool = False,
        issues: Optional[IssueLog] = None
    ) -> TokenizationResult:
        """Tokenize a byte buffer.

        Args:
            data: Raw HTML bytes
            encoding_only: Stop at the first confirmed encoding directive
            issues: Issue log to append to, a new one is created if omitted

        Returns:
            TokenizationResult with tokens, issues and the final text encoding
        """
        start_time = time.time()
        issues = IssueLog() if issues is None else issues
        session = TokenizerSession(data, self.config, issues, encoding_only)

        outcome = self._scan(session)
        while outcome is _ScanOutcome.RESTART:
            self.logger.info(
                "Restarting tokenization with declared text encoding",
                extra={"encoding": session.text_encoding}
            )
            session.restart()
            outcome = self._scan(session)

        metrics = NormalizationMetrics(
            bytes_processed=len(data),
            tokens_generated=len(session.tokens),
            restarts=session.restarts,
            processing_time_ms=(time.time() - start_time) * 1000,
        )
        self.logger.debug(
            "Tokenization completed",
            extra={
                "token_count": len(session.tokens),
                "issue_count": len(issues),
                "encoding": session.text_encoding,
            }
        )
        return TokenizationResult(
            tokens=session.tokens,
            issues=issues,
            encoding=session.text_encoding,
            encoding_confirmed=session.encoding_found,
            restarted=session.restarts > 0,
            stopped_early=outcome is _ScanOutcome.STOP,
            metrics=metrics,
        )

    def _scan(self, session: TokenizerSession) -> _ScanOutcome:
        cursor = session.cursor
        text_start = cursor.pos
        while cursor.find(b"<"):
            lt = cursor.pos
            markup = self._scan_markup(session, lt)
            if markup is None:
                # Re-read the '<' as text
                cursor.pos = lt + 1
                continue

            self._emit_text(session, text_start, lt)
            if markup.directive:
                outcome = self._confirm_encoding(session, markup.directive)
                if outcome is not _ScanOutcome.COMPLETE:
                    return outcome
            for token in markup.tokens:
                self._append(session, token)

            cursor.pos = markup.resume
            text_start = markup.resume
            if markup.raw_element:
                text_start = self._capture_raw(session, markup.raw_element)

        self._emit_text(session, text_start, len(session.data))
        return _ScanOutcome.COMPLETE

    def _scan_markup(self, session: TokenizerSession, lt: int) -> Optional[_Markup]:
        """Dispatch on the byte after ``<``."""
        cursor = session.cursor
        cursor.pos = lt + 1
        byte = cursor.current
        if byte == BANG:
            following = cursor.peek()
            if following == LBRACKET:
                return self._scan_bracketed(session, lt)
            if following == DASH:
                return self._scan_comment(session, lt)
            return self._scan_declaration(session, lt)
        if byte == QUESTION:
            return self._scan_processing_instruction(session, lt)
        if byte == SLASH:
            return self._scan_end_tag(session, lt)
        return self._scan_start_tag(session, lt)

    def _scan_bracketed(self, session: TokenizerSession, lt: int) -> Optional[_Markup]:
        cursor = session.cursor
        body_start = lt + 3
        cursor.pos = body_start
        if not cursor.find(b"]]>"):
            return self._malformed(session, "Invalid xml include declaration", lt)
        body_end = cursor.pos
        value = replace_invalid_chars(session.decode_text(body_start, body_end))
        if session.data.startswith(CDATA_PREFIX, body_start):
            token = Token(TokenType.DECLARATION2, value, lt)
        else:
            # Only CDATA sections are legal in the output grammar
            token = Token(TokenType.COMMENT, clean_comment(value), lt)
        return _Markup([token], resume=body_end + 3)

    def _scan_comment(self, session: TokenizerSession, lt: int) -> Optional[_Markup]:
        cursor = session.cursor
        if cursor.peek(2) != DASH:
            return self._malformed(session, "Invalid xml comment", lt)
        body_start = lt + 4
        cursor.pos = body_start
        if not cursor.find(b"-->"):
            return self._malformed(session, "Invalid xml comment", lt)
        value = replace_invalid_chars(session.decode_text(body_start, cursor.pos))
        token = Token(TokenType.COMMENT, clean_comment(value), lt)
        return _Markup([token], resume=cursor.pos + 3)

    def _scan_declaration(self, session: TokenizerSession, lt: int) -> Optional[_Markup]:
        cursor = session.cursor
        body_start = lt + 2
        cursor.pos = body_start
        if not cursor.find(b">"):
            return self._malformed(session, "Invalid xml declaration", lt)
        value = replace_invalid_chars(session.decode_tag(body_start, cursor.pos))
        if match_declaration_keyword(value):
            token = Token(TokenType.DECLARATION, value, lt)
        else:
            token = Token(TokenType.COMMENT, clean_comment(value), lt)
        return _Markup([token], resume=cursor.pos + 1)

    def _scan_processing_instruction(
        self,
        session: TokenizerSession,
        lt: int
    ) -> Optional[_Markup]:
        cursor = session.cursor
        body_start = lt + 2
        cursor.pos = body_start
        if not cursor.find(b"?>"):
            return self._malformed(session, "Invalid xml processing instruction", lt)
        value = replace_invalid_chars(session.decode_tag(body_start, cursor.pos))
        token = Token(TokenType.PROCESSING_INSTRUCTION, value, lt)
        return _Markup(
            [token],
            resume=cursor.pos + 2,
            directive=find_encoding_directive(value, "encoding"),
        )

    def _scan_end_tag(self, session: TokenizerSession, lt: int) -> Optional[_Markup]:
        cursor = session.cursor
        cursor.pos = lt + 2
        if not cursor.find(b">"):
            return self._malformed(session, "Invalid end tag", lt)
        parts = session.decode_tag(lt + 2, cursor.pos).split()
        name = parts[0] if parts else ""
        if len(parts) > 1:
            # Only the name is kept; anything after it is reported
            self._record(session, "Extra content in end tag", lt)
        if is_valid_name(name) is not NameValidity.VALID:
            logger.debug(
                "Invalid end tag name replaced",
                extra={
                    "component": "tokenizer",
                    "correlation_id": self.correlation_id,
                    "tag_name": name,
                    "offset": lt,
                }
            )
            name = INVALID_NAME
        return _Markup([Token(TokenType.TAG_END, name, lt)], resume=cursor.pos + 1)

    def _scan_start_tag(self, session: TokenizerSession, lt: int) -> Optional[_Markup]:
        cursor = session.cursor
        name_start = lt + 1
        cursor.pos = name_start
        if not cursor.scan_until(b"/>", stop_on_whitespace=True) or cursor.pos == name_start:
            return self._malformed(session, "Invalid start or empty tag", lt)
        name_end = cursor.pos
        name = session.decode_tag(name_start, name_end)
        validity = is_valid_name(name)
        if validity is NameValidity.STRUCTURAL:
            return self._malformed(session, "Invalid start or empty tag", lt)

        tag = Token(TokenType.TAG_START, name, lt)
        tokens = [tag]
        if validity is NameValidity.INVALID:
            tag.value = INVALID_NAME
            tokens.extend(self._placeholder(name, name_start, name_end))
        elif is_void_element(name):
            tag.type = TokenType.TAG_EMPTY
        return self._scan_attributes(session, lt, tag, tokens)

    def _scan_attributes(
        self,
        session: TokenizerSession,
        lt: int,
        tag: Token,
        tokens: List[Token]
    ) -> Optional[_Markup]:
        """Scan attributes up to the end of the tag opened at ``lt``.

        Returns:
            The tag's tokens, or None if input ended inside the tag
        """
        cursor = session.cursor
        data = session.data
        is_meta = tag.value.lower() == "meta"
        directive: Optional[str] = None

        while True:
            if not cursor.skip_whitespace():
                return self._malformed(session, "Invalid start or empty tag", lt)
            byte = cursor.current
            if byte == GT:
                cursor.advance()
                break
            if byte == SLASH:
                if cursor.peek() == GT:
                    tag.type = TokenType.TAG_EMPTY
                    cursor.advance(2)
                    break
                cursor.advance()
                continue

            attr_start = cursor.pos
            if not cursor.scan_until(b"=/>", stop_on_whitespace=True):
                return self._malformed(session, "Invalid start or empty tag", lt)
            name_end = cursor.pos
            name = session.decode_tag(attr_start, name_end)
            validity = is_valid_name(name)
            if validity is NameValidity.STRUCTURAL:
                # The tag was never closed; a new one starts here
                return _Markup(tokens, resume=attr_start, directive=directive)

            if not cursor.skip_whitespace():
                return self._malformed(session, "Invalid start or empty tag", lt)
            if cursor.current != EQUALS:
                if validity is NameValidity.INVALID:
                    tokens.extend(self._placeholder(name, attr_start, name_end))
                else:
                    tokens.append(Token(TokenType.ATTR_SOLO, name, attr_start))
                continue

            cursor.advance()
            if not cursor.skip_whitespace():
                return self._malformed(session, "Invalid start or empty tag", lt)
            value_start = cursor.pos
            quote = cursor.current
            if quote in QUOTES:
                cursor.advance()
                if not cursor.find(bytes([quote])):
                    self._record(session, "Invalid attribute value", attr_start)
                    return _Markup(tokens, resume=attr_start, directive=directive)
                raw = session.decode_text(value_start + 1, cursor.pos)
                cursor.advance()
            elif quote == GT:
                raw = ""
            else:
                if not cursor.scan_until(b">", stop_on_whitespace=True):
                    return self._malformed(session, "Invalid start or empty tag", lt)
                value_end = cursor.pos
                if (cursor.current == GT and value_end > value_start
                        and data[value_end - 1] == SLASH):
                    # Leave "/>" for the loop to close the tag as empty
                    value_end -= 1
                    cursor.pos = value_end
                raw = session.decode_text(value_start, value_end)

            if validity is NameValidity.INVALID:
                original = session.decode_text(attr_start, cursor.pos)
                tokens.extend(self._placeholder(original, attr_start, cursor.pos))
                continue
            tokens.append(Token(TokenType.ATTR_NAME, name, attr_start))
            tokens.append(
                Token(TokenType.ATTR_VALUE, translate_special_chars(raw), value_start)
            )
            if is_meta and directive is None:
                if name.lower() == "charset":
                    directive = raw.strip() or None
                else:
                    directive = find_encoding_directive(raw, "charset")

        raw_element = None
        if tag.type is TokenType.TAG_START and is_raw_text_element(tag.value):
            raw_element = tag.value.lower()
        return _Markup(
            tokens, resume=cursor.pos, directive=directive, raw_element=raw_element
        )

    def _placeholder(self, original: str, start: int, end: int) -> List[Token]:
        """Stand-in attribute pair preserving an unusable name's text."""
        logger.debug(
            "Invalid name preserved as placeholder attribute",
            extra={
                "component": "tokenizer",
                "correlation_id": self.correlation_id,
                "invalid_name": original,
                "offset": start,
            }
        )
        return [
            Token(TokenType.ATTR_NAME, f"{INVALID_NAME}_{start}_{end}", start),
            Token(TokenType.ATTR_VALUE, sanitize_attribute_text(original), start),
        ]

    def _capture_raw(self, session: TokenizerSession, element: str) -> int:
        """Capture script or style content verbatim up to its end tag.

        Returns:
            Offset where normal scanning resumes
        """
        cursor = session.cursor
        start = cursor.pos
        match = _RAW_END[element].search(session.data, start)
        if match is None:
            end = len(session.data)
            self._record(session, f"Unterminated {element} content", start)
        else:
            end = match.start()

        if end > start:
            value = replace_invalid_chars(session.decode_text(start, end))
            if element == "script":
                token = Token(TokenType.TEXT_SCRIPT, clean_script_comments(value), start)
            else:
                token = Token(TokenType.TEXT_STYLE, value, start)
            self._append(session, token)
        cursor.pos = end
        return end

    def _confirm_encoding(self, session: TokenizerSession, name: str) -> _ScanOutcome:
        """React to an encoding directive found in the current construct."""
        if session.encoding_found:
            return _ScanOutcome.COMPLETE
        resolved = self.resolver.resolve(name)
        if resolved is None or not is_ascii_compatible(resolved):
            self.logger.debug(
                "Ignoring unusable encoding directive",
                extra={"declared": name, "resolved": resolved}
            )
            return _ScanOutcome.COMPLETE

        session.encoding_found = True
        changed = resolved != session.text_encoding
        session.text_encoding = resolved
        self.logger.debug(
            "Encoding directive confirmed",
            extra={"declared": name, "resolved": resolved, "changed": changed}
        )
        if session.encoding_only:
            return _ScanOutcome.STOP
        if changed and session.restarts == 0:
            return _ScanOutcome.RESTART
        return _ScanOutcome.COMPLETE

    def _emit_text(self, session: TokenizerSession, start: int, end: int) -> None:
        if end <= start:
            return
        value = translate_special_chars(session.decode_text(start, end))
        if value:
            self._append(session, Token(TokenType.TEXT, value, start))

    def _append(self, session: TokenizerSession, token: Token) -> None:
        session.tokens.append(token)
        if self.config.trace_tokenizer and self.logger.is_enabled_for(logging.DEBUG):
            self.logger.debug(
                "Token",
                extra={
                    "token_type": token.type.name,
                    "offset": token.offset,
                    "value": token.value,
                }
            )

    def _record(self, session: TokenizerSession, what: str, offset: int) -> None:
        message = f"{what} at {offset}"
        session.issues.add(message, offset=offset, component="tokenizer")
        logger.debug(
            "Recovered from malformed input",
            extra={
                "component": "tokenizer",
                "correlation_id": self.correlation_id,
                "issue": message,
            }
        )

    def _malformed(self, session: TokenizerSession, what: str, offset: int) -> None:
        self._record(session, what, offset)
        return None
