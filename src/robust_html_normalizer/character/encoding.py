"""Charset name resolution and encoding directive helpers.

The tokenizer discovers encodings from noisy, hand-written declarations such as
``charset=ISO_8859-1`` or ``encoding='UTF8'``. This module maps those names onto
Python codec names and extracts them from declaration text.
"""

import codecs
import re
from encodings.aliases import aliases
from functools import lru_cache
from typing import Dict, Optional

UTF8_BOM_BYTES = codecs.BOM_UTF8
ASCII_PROBE = "<html>"

_NON_ALNUM = re.compile(r"[^a-z0-9]")
_QUOTES = "\"'"


def _strip_name(name: str) -> str:
    return _NON_ALNUM.sub("", name.lower())


def _text_codec_name(name: str) -> Optional[str]:
    """Return the canonical codec name if ``name`` is a text encoding."""
    try:
        codec = codecs.lookup(name)
        "a".encode(codec.name)
    except (LookupError, UnicodeError):
        return None
    return codec.name


@lru_cache(maxsize=1)
def _known_encodings() -> Dict[str, str]:
    """Build the stripped-key -> canonical codec name table.

    Names are visited in sorted order so that, when several known names strip
    to the same key, the lexicographically last one wins.
    """
    table: Dict[str, str] = {}
    for name in sorted(set(aliases) | set(aliases.values())):
        canonical = _text_codec_name(name)
        if canonical is None:
            continue
        table[_strip_name(name)] = canonical
        table.setdefault(_strip_name(canonical), canonical)
    return table


def is_ascii_compatible(encoding: str) -> bool:
    """Check whether markup bytes decode identically under ``encoding``."""
    try:
        return ASCII_PROBE.encode(encoding) == ASCII_PROBE.encode("ascii")
    except (LookupError, UnicodeError):
        return False


def detect_bom(data: bytes) -> int:
    """Return the length of a leading UTF-8 byte order mark, or 0."""
    return len(UTF8_BOM_BYTES) if data.startswith(UTF8_BOM_BYTES) else 0


def find_encoding_directive(value: str, keyword: str) -> Optional[str]:
    """Extract the encoding name declared as ``keyword=name`` inside ``value``.

    The keyword is matched case-insensitively and whitespace around ``=`` is
    skipped. A quoted name ends at the matching quote; an unquoted one ends at
    whitespace, ``;`` or a quote.

    Args:
        value: Processing instruction or attribute value text
        keyword: Directive keyword without ``=`` (``encoding`` or ``charset``)

    Returns:
        The declared name, or None if no non-empty directive is present
    """
    lowered = value.lower()
    keyword = keyword.lower()
    start = lowered.find(keyword)
    while start >= 0:
        pos = start + len(keyword)
        while pos < len(value) and value[pos].isspace():
            pos += 1
        if pos < len(value) and value[pos] == "=":
            pos += 1
            while pos < len(value) and value[pos].isspace():
                pos += 1
            name = _read_directive_value(value, pos)
            if name:
                return name
        start = lowered.find(keyword, start + 1)
    return None


def _read_directive_value(value: str, pos: int) -> str:
    if pos < len(value) and value[pos] in _QUOTES:
        end = value.find(value[pos], pos + 1)
        if end < 0:
            end = len(value)
        return value[pos + 1:end].strip()
    end = pos
    while end < len(value) and not (
        value[end].isspace() or value[end] == ";" or value[end] in _QUOTES
    ):
        end += 1
    return value[pos:end]


class CharsetResolver:
    """Resolves declared charset names to Python codec names.

    Resolution never raises: an unknown name resolves to ``None`` and the
    caller keeps whatever encoding it was already using.
    """

    def resolve(self, name: Optional[str]) -> Optional[str]:
        """Resolve a noisy charset name.

        Args:
            name: Declared name, e.g. ``ISO_8859-1`` or ``utf8``

        Returns:
            Canonical codec name (``iso8859-1``, ``utf-8``) or None
        """
        if not name:
            return None
        key = _strip_name(name)
        if not key:
            return None
        return _known_encodings().get(key)

    def transcode(self, text: str, target: str) -> str:
        """Best-effort round trip of ``text`` through ``target``.

        Returns:
            The stripped round-tripped text, or ``""`` on any failure
        """
        try:
            return text.encode(target).decode(target).strip()
        except (LookupError, UnicodeError):
            return ""
