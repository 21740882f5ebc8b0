"""Character processing layer for HTML normalization.

This module provides charset resolution, the immutable entity and element
tables, and the translation rules that make decoded text XML-legal.
"""

from .encoding import (
    CharsetResolver,
    detect_bom,
    find_encoding_directive,
    is_ascii_compatible,
)
from .entities import (
    DECLARATION_KEYWORDS,
    ENTITY_TABLE,
    RAW_TEXT_ELEMENTS,
    VOID_ELEMENTS,
    is_raw_text_element,
    is_void_element,
    lookup_entity,
    match_declaration_keyword,
)
from .transformation import (
    NameValidity,
    clean_comment,
    clean_script_comments,
    is_valid_name,
    is_xml_char,
    replace_invalid_chars,
    sanitize_attribute_text,
    translate_special_chars,
)

__all__ = [
    # Modules
    "encoding",
    "entities",
    "transformation",
    # Charset resolution
    "CharsetResolver",
    "detect_bom",
    "find_encoding_directive",
    "is_ascii_compatible",
    # Tables
    "DECLARATION_KEYWORDS",
    "ENTITY_TABLE",
    "RAW_TEXT_ELEMENTS",
    "VOID_ELEMENTS",
    "is_raw_text_element",
    "is_void_element",
    "lookup_entity",
    "match_declaration_keyword",
    # Translation
    "NameValidity",
    "clean_comment",
    "clean_script_comments",
    "is_valid_name",
    "is_xml_char",
    "replace_invalid_chars",
    "sanitize_attribute_text",
    "translate_special_chars",
]
