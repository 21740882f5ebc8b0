"""Immutable lookup tables for HTML normalization.

The tables are built once at import time and exposed through read-only views,
so every parse in the process shares the same data without any risk of one
caller mutating it for another.
"""

from html.entities import name2codepoint
from types import MappingProxyType
from typing import Dict, FrozenSet, Mapping, Tuple

# Entities XML defines itself; everything else is rewritten as a numeric
# character reference. ``apos`` is numeric because older HTML user agents
# never supported the named form.
_XML_PREDEFINED: Dict[str, str] = {
    "quot": "quot",
    "amp": "amp",
    "lt": "lt",
    "gt": "gt",
    "apos": "#39",
}

# HTML 5 moved the angle brackets off the deprecated U+2329/U+232A code points
_CODEPOINT_OVERRIDES: Dict[str, int] = {
    "lang": 0x27E8,
    "rang": 0x27E9,
}


def _build_entity_table() -> Mapping[str, str]:
    table = {
        name: f"#{_CODEPOINT_OVERRIDES.get(name, codepoint)}"
        for name, codepoint in name2codepoint.items()
    }
    table.update(_XML_PREDEFINED)
    return MappingProxyType(table)


# Entity name -> XML-legal reference body (the text between '&' and ';')
ENTITY_TABLE: Mapping[str, str] = _build_entity_table()

# HTML 4.01: area, base, basefont, br, col, frame, hr, img, input, isindex,
# link, meta, param. HTML 5 adds command, embed, keygen, source, track, wbr.
VOID_ELEMENTS: FrozenSet[str] = frozenset({
    "area", "base", "basefont", "br", "col", "command", "embed", "frame",
    "hr", "img", "input", "isindex", "keygen", "link", "meta", "param",
    "source", "track", "wbr",
})

# Markup declarations allowed in the output grammar, matched by prefix
DECLARATION_KEYWORDS: Tuple[str, ...] = (
    "DOCTYPE", "ATTLIST", "ELEMENT", "ENTITY", "NOTATION",
)

# Elements whose content is captured verbatim up to the matching end tag
RAW_TEXT_ELEMENTS: FrozenSet[str] = frozenset({"script", "style"})

# Non-breaking space, the substitute for unknown named references
NBSP_REFERENCE = "#160"


def lookup_entity(name: str) -> str:
    """Return the XML-safe body for ``name``, or the nbsp body if unknown."""
    return ENTITY_TABLE.get(name, NBSP_REFERENCE)


def is_void_element(name: str) -> bool:
    return name.lower() in VOID_ELEMENTS


def is_raw_text_element(name: str) -> bool:
    return name.lower() in RAW_TEXT_ELEMENTS


def match_declaration_keyword(value: str) -> str:
    """Return the keyword ``value`` starts with (case-insensitive), or ``""``."""
    upper = value.upper()
    for keyword in DECLARATION_KEYWORDS:
        if upper.startswith(keyword):
            return keyword
    return ""
