"""Character and entity translation for text destined for XML output.

Every text span and attribute value collected by the tokenizer passes through
``translate_special_chars`` before it is stored, so the serializer can emit
token values verbatim. Translation never fails: anything that cannot be
represented becomes an escape or a single space.
"""

import re
from enum import Enum, auto
from typing import List, Optional, Tuple

from .entities import lookup_entity

# XML 1.0 valid character ranges
XML_VALID_RANGES: List[Tuple[int, int]] = [
    (0x0009, 0x0009),  # Tab
    (0x000A, 0x000A),  # Line Feed
    (0x000D, 0x000D),  # Carriage Return
    (0x0020, 0xD7FF),  # Basic Multilingual Plane excluding surrogates
    (0xE000, 0xFFFD),  # Private Use and extended characters
    (0x10000, 0x10FFFF),  # Supplementary planes
]

INVALID_CHAR_REPLACEMENT = " "
BASE64_MARKER = "base64"
LATIN1_MAX = 0xFF
NAMESPACE_PREFIXES = frozenset({"xml", "xmlns"})

_DECIMAL_BODY = re.compile(r"[0-9]+")
_HEX_BODY = re.compile(r"[xX]([0-9a-fA-F]+)")
_SCRIPT_COMMENT = re.compile(r"<!--(.*?)-->", re.DOTALL)
_INVALID_CHARS = re.compile(
    r"[^\t\n\r \u0020-\uD7FF\uE000-\uFFFD\U00010000-\U0010FFFF]"
)

# XML 1.0 (fifth edition) NameStartChar / NameChar productions
_NAME_START_CHARS = (
    r":A-Z_a-z\u00C0-\u00D6\u00D8-\u00F6\u00F8-\u02FF"
    r"\u0370-\u037D\u037F-\u1FFF\u200C-\u200D"
    r"\u2070-\u218F\u2C00-\u2FEF\u3001-\uD7FF"
    r"\uF900-\uFDCF\uFDF0-\uFFFD\U00010000-\U000EFFFF"
)
_NAME_CHARS = _NAME_START_CHARS + r"\-.0-9\u00B7\u0300-\u036F\u203F-\u2040"
_XML_NAME = re.compile(f"[{_NAME_START_CHARS}][{_NAME_CHARS}]*")

_FORBIDDEN_NAME_CHARS = frozenset("\"'=<>")


class NameValidity(Enum):
    """Outcome of checking a tag or attribute name."""

    VALID = auto()       # Usable as an XML name
    INVALID = auto()     # Replaced by a placeholder, original text preserved
    STRUCTURAL = auto()  # Starts with '<': the enclosing tag was never closed


def is_xml_char(codepoint: int) -> bool:
    """Check if a code point is legal in XML 1.0 content."""
    for low, high in XML_VALID_RANGES:
        if low <= codepoint <= high:
            return True
    return False


def replace_invalid_chars(value: str) -> str:
    """Replace every code point XML 1.0 forbids with a single space."""
    return _INVALID_CHARS.sub(INVALID_CHAR_REPLACEMENT, value)


def clean_comment(value: str) -> str:
    """Make ``value`` safe inside ``<!-- -->``.

    Strict XML parsers reject ``--`` anywhere in a comment and a ``-`` right
    before the closing ``-->``, so every dash becomes an underscore.
    """
    return value.replace("-", "_")


def clean_script_comments(value: str) -> str:
    """Apply ``clean_comment`` to the body of each ``<!--...-->`` in a script."""
    return _SCRIPT_COMMENT.sub(
        lambda match: f"<!--{clean_comment(match.group(1))}-->", value
    )


def _escape_markup(value: str) -> str:
    """Escape markup characters without interpreting references."""
    value = replace_invalid_chars(value)
    return value.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


def _parse_numeric_body(digits: str) -> Optional[int]:
    if _DECIMAL_BODY.fullmatch(digits):
        return int(digits)
    match = _HEX_BODY.fullmatch(digits)
    if match:
        return int(match.group(1), 16)
    return None


def _translate_reference(value: str, start: int) -> Tuple[str, int]:
    """Translate the candidate reference opened by the ``&`` at ``start``.

    Returns:
        Replacement text and the number of input characters it consumes
    """
    end = start + 1
    length = len(value)
    while end < length and value[end] not in "&;":
        end += 1
    if end >= length or value[end] == "&":
        return "&amp;", 1

    body = value[start + 1:end]
    consumed = end - start + 1
    if body.startswith("#"):
        codepoint = _parse_numeric_body(body[1:])
        if codepoint is None:
            return "&amp;", 1
        if not is_xml_char(codepoint):
            return INVALID_CHAR_REPLACEMENT, consumed
        return f"&{body};", consumed
    return f"&{lookup_entity(body)};", consumed


def translate_special_chars(value: str) -> str:
    """Translate a text span or attribute value into XML-legal text.

    Known references are kept or rewritten in XML-safe form, unknown named
    references become a non-breaking space, and a bare ``&`` is escaped.
    A bare ``;`` marks script-like content: from there on every ``&`` is
    escaped literally. When ``;`` is directly followed by ``base64`` the rest
    of the value is copied without reference translation so inline image
    data survives untouched; only markup characters are escaped there.

    Args:
        value: Decoded text

    Returns:
        Text that can be written between tags or inside a quoted attribute
    """
    out: List[str] = []
    entity_lookup = True
    length = len(value)
    i = 0
    while i < length:
        ch = value[i]
        if ch == "&":
            if entity_lookup:
                replacement, consumed = _translate_reference(value, i)
                out.append(replacement)
                i += consumed
                continue
            out.append("&amp;")
        elif ch == ";":
            if value.startswith(BASE64_MARKER, i + 1):
                out.append(_escape_markup(value[i:]))
                break
            out.append(ch)
            entity_lookup = False
        elif ch == "<":
            out.append("&lt;")
        elif ch == ">":
            out.append("&gt;")
        elif not is_xml_char(ord(ch)):
            out.append(INVALID_CHAR_REPLACEMENT)
        else:
            out.append(ch)
        i += 1
    return "".join(out)


def sanitize_attribute_text(value: str) -> str:
    """Translate ``value`` and neutralize quotes so it fits any quoting style."""
    return translate_special_chars(value).replace('"', "_").replace("'", "_")


def is_valid_name(name: str) -> NameValidity:
    """Classify a tag or attribute name.

    A usable name starts with a letter in the Latin-1 range, contains no
    quote, ``=``, ``<`` or ``>``, and is a well-formed XML name. A colon is
    only accepted after the predeclared ``xml`` and ``xmlns`` prefixes.
    """
    if not name:
        return NameValidity.INVALID
    first = name[0]
    if first == "<":
        return NameValidity.STRUCTURAL
    if ord(first) > LATIN1_MAX or not first.isalpha():
        return NameValidity.INVALID
    if _FORBIDDEN_NAME_CHARS.intersection(name):
        return NameValidity.INVALID
    if not _XML_NAME.fullmatch(name):
        return NameValidity.INVALID
    if ":" in name:
        prefix, _, local = name.partition(":")
        if (prefix not in NAMESPACE_PREFIXES or ":" in local
                or not _XML_NAME.fullmatch(local)):
            return NameValidity.INVALID
    return NameValidity.VALID
