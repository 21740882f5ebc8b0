"""Rendering of a token list as XML text and as a debug token dump.

Token values are stored already translated, so text and attribute values are
written as they are. The serializer only decides on delimiters: how a tag is
closed, how an attribute value is quoted, and how script and style content
is shielded from the XML parser.
"""

import codecs
import re
from typing import BinaryIO, Iterable, List, Optional

from robust_html_normalizer.character import clean_comment
from robust_html_normalizer.shared import NormalizerConfig
from robust_html_normalizer.shared.config import DEFAULT_ENCODING, DEFAULT_ROOT_ELEMENT
from robust_html_normalizer.shared.result import UTF8_BOM
from robust_html_normalizer.tokenization import ATTRIBUTE_TYPES, Token, TokenType

DUMP_COLUMN_WIDTH = 20
SCRIPT_CDATA_OPEN = "//<![CDATA["
SCRIPT_CDATA_CLOSE = "//]]>"
STYLE_CDATA_OPEN = "/*<![CDATA[*/"
STYLE_CDATA_CLOSE = "/*]]>*/"
CDATA_OPEN = "<![CDATA["
CDATA_END = "]]>"
CDATA_END_SPLIT = "]]]]><![CDATA[>"
DOCTYPE_PREFIX = "DOCTYPE"

_CDATA_SECTION = re.compile(r"<!\[CDATA\[.*?\]\]>", re.DOTALL)


def quote_attribute_value(value: str) -> str:
    """Wrap ``value`` in the quote character it does not contain.

    Double quotes are preferred. A value containing both quote characters is
    double-quoted with its double quotes escaped.
    """
    if '"' not in value:
        return f'"{value}"'
    if "'" not in value:
        return f"'{value}'"
    return '"' + value.replace('"', "&quot;") + '"'


def _needs_shield(value: str) -> bool:
    """Check for markup outside any CDATA section in ``value``."""
    if CDATA_OPEN in value:
        value = _CDATA_SECTION.sub("", value)
    return "<" in value or "&" in value or CDATA_END in value


def _shield(value: str, open_marker: str, close_marker: str) -> str:
    return open_marker + value.replace(CDATA_END, CDATA_END_SPLIT) + close_marker


def wrap_script(value: str) -> str:
    """Shield script content in a comment-style CDATA section.

    Empty content is left alone, and so is content that brings its own CDATA
    sections and has no markup characters outside them.
    """
    if not value or (CDATA_OPEN in value and not _needs_shield(value)):
        return value
    return _shield(value, SCRIPT_CDATA_OPEN, SCRIPT_CDATA_CLOSE)


def wrap_style(value: str) -> str:
    """Shield style content holding markup characters in a CSS-comment CDATA section."""
    if not _needs_shield(value):
        return value
    return _shield(value, STYLE_CDATA_OPEN, STYLE_CDATA_CLOSE)


class XMLSerializer:
    """Renders repaired tokens as XML.

    Args:
        lowercase_names: Lower-case element and attribute names
        root_element: Root name used in a canonical ``<!DOCTYPE>``
        default_encoding: Encoding whose use as text encoding adds a BOM
    """

    def __init__(
        self,
        lowercase_names: bool = False,
        root_element: str = DEFAULT_ROOT_ELEMENT,
        default_encoding: str = DEFAULT_ENCODING
    ) -> None:
        self.lowercase_names = lowercase_names
        self.root_element = root_element
        self.default_encoding = codecs.lookup(default_encoding).name

    @classmethod
    def from_config(cls, config: NormalizerConfig) -> "XMLSerializer":
        return cls(
            lowercase_names=config.lowercase_names,
            root_element=config.root_element,
            default_encoding=config.default_encoding,
        )

    def needs_bom(self, text_encoding: str) -> bool:
        """Check whether output in ``text_encoding`` starts with a BOM.

        Only the configured default encoding gets one, and only when it is a
        Unicode encoding able to represent the mark.
        """
        try:
            canonical = codecs.lookup(text_encoding).name
        except LookupError:
            return False
        return canonical == self.default_encoding and canonical.startswith("utf")

    def _name(self, name: str) -> str:
        return name.lower() if self.lowercase_names else name

    def to_xml(
        self,
        tokens: Iterable[Token],
        text_encoding: str = DEFAULT_ENCODING,
        root_name: Optional[str] = None
    ) -> str:
        """Render tokens as an XML document.

        Args:
            tokens: Repaired token list
            text_encoding: Encoding the document will be written in
            root_name: Root element name for a DOCTYPE, defaults to the
                configured root element

        Returns:
            XML text, BOM-prefixed when ``needs_bom(text_encoding)``
        """
        doctype_root = self._name(root_name or self.root_element)
        parts: List[str] = [UTF8_BOM] if self.needs_bom(text_encoding) else []
        pending_close = ""

        for token in tokens:
            kind = token.type
            if kind not in ATTRIBUTE_TYPES and pending_close:
                parts.append(pending_close)
                pending_close = ""

            if kind is TokenType.TAG_START:
                parts.append("<" + self._name(token.value))
                pending_close = ">"
            elif kind is TokenType.TAG_EMPTY:
                parts.append("<" + self._name(token.value))
                pending_close = "/>"
            elif kind is TokenType.TAG_END:
                parts.append(f"</{self._name(token.value)}>")
            elif kind is TokenType.ATTR_NAME:
                parts.append(f" {self._name(token.value)}=")
            elif kind is TokenType.ATTR_VALUE:
                parts.append(quote_attribute_value(token.value))
            elif kind is TokenType.ATTR_SOLO:
                parts.append(f' {self._name(token.value)}="{token.value}"')
            elif kind is TokenType.DECLARATION:
                if token.value.upper().startswith(DOCTYPE_PREFIX):
                    # The original declaration is not carried over
                    parts.append(f"<!DOCTYPE {doctype_root}>")
                else:
                    parts.append(f"<!-- {clean_comment(token.value)} -->")
            elif kind is TokenType.DECLARATION2:
                parts.append(f"<![{token.value}]]>")
            elif kind is TokenType.PROCESSING_INSTRUCTION:
                parts.append(f"<?{token.value}?>")
            elif kind is TokenType.COMMENT:
                parts.append(f"<!--{token.value}-->")
            elif kind is TokenType.TEXT_SCRIPT:
                parts.append(wrap_script(token.value))
            elif kind is TokenType.TEXT_STYLE:
                parts.append(wrap_style(token.value))
            else:
                parts.append(token.value)

        parts.append(pending_close)
        return "".join(parts)

    def write_xml(
        self,
        tokens: Iterable[Token],
        stream: BinaryIO,
        text_encoding: str = DEFAULT_ENCODING,
        root_name: Optional[str] = None
    ) -> None:
        """Write the XML document to a binary stream in ``text_encoding``.

        Characters the encoding cannot represent are written as numeric
        character references.
        """
        xml = self.to_xml(tokens, text_encoding, root_name)
        stream.write(xml.encode(text_encoding, errors="xmlcharrefreplace"))

    def dump_tokens(
        self,
        tokens: Iterable[Token],
        text_encoding: str = DEFAULT_ENCODING
    ) -> str:
        """Render one line per token: offset, type and level columns, then value."""
        lines: List[str] = [UTF8_BOM] if self.needs_bom(text_encoding) else []
        for token in tokens:
            lines.append(
                f"offset={token.offset}".ljust(DUMP_COLUMN_WIDTH)
                + f"type={token.type.name}".ljust(DUMP_COLUMN_WIDTH)
                + f"level={token.level}".ljust(DUMP_COLUMN_WIDTH)
                + f"value~{token.value}~\n"
            )
        return "".join(lines)

    def write_token_dump(
        self,
        tokens: Iterable[Token],
        stream: BinaryIO,
        text_encoding: str = DEFAULT_ENCODING
    ) -> None:
        dump = self.dump_tokens(tokens, text_encoding)
        stream.write(dump.encode(text_encoding, errors="xmlcharrefreplace"))
