"""Structural repair of a token list.

The repairer walks the tokenizer's output once, in place, and makes it
describe a single well-formed XML document:

* exactly one top-level element, named after the configured root;
* every start tag closed by exactly one matching end tag;
* no element carrying the same attribute twice;
* nothing after the root's end tag.

Running the repairer over its own output changes nothing.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional, Set

from robust_html_normalizer.character import (
    NameValidity,
    clean_comment,
    is_valid_name,
)
from robust_html_normalizer.shared import NormalizerConfig, get_logger
from robust_html_normalizer.tokenization import Token, TokenType

GENERIC_CONTAINER = "div"
ROOT_VIOLATION_ATTRIBUTE = "InvalidHtmlTag"
XML_DECLARATION_TARGET = "xml"
DOCTYPE_KEYWORD = "DOCTYPE"

_PI_TARGET = re.compile(r"[^\s?]+")


@dataclass
class RepairResult:
    """Summary of one repair pass.

    Attributes:
        tokens: The repaired token list (the same list object that was passed in)
        insertions: Synthetic tokens inserted
        removals: Tokens removed
        conversions: Tokens renamed or reclassified in place
        root_name: Root element name as written in the output
    """

    tokens: List[Token]
    insertions: int = 0
    removals: int = 0
    conversions: int = 0
    root_name: str = ""

    @property
    def changed(self) -> bool:
        return (self.insertions + self.removals + self.conversions) > 0

    @property
    def operations(self) -> int:
        return self.insertions + self.removals + self.conversions


@dataclass
class _RepairState:
    tokens: List[Token]
    root_name: str
    root_token: Optional[Token] = None
    stack: List[Token] = field(default_factory=list)
    attributes: Set[str] = field(default_factory=set)
    level: int = 1
    attribute_level: int = 1
    doctype_seen: bool = False


def _same_name(left: str, right: str) -> bool:
    return left.lower() == right.lower()


def _is_content(token: Token) -> bool:
    """Check whether ``token`` must live inside the root element."""
    if token.type in (
        TokenType.TAG_START,
        TokenType.TAG_EMPTY,
        TokenType.TEXT_SCRIPT,
        TokenType.TEXT_STYLE,
        TokenType.DECLARATION2,
    ):
        return True
    return token.type is TokenType.TEXT and not token.value.isspace()


class TokenRepairer:
    """Single forward pass with an explicit tag stack.

    Levels are assigned on the way: a start tag and its end tag share the
    nesting depth of the element (the root is at depth 1), while an element's
    attributes and content sit one level deeper.
    """

    def __init__(self, config: Optional[NormalizerConfig] = None) -> None:
        """Initialize the repairer.

        Args:
            config: Normalizer configuration, defaults to ``NormalizerConfig()``
        """
        self.config = config or NormalizerConfig()
        self.correlation_id = self.config.correlation_id
        self.logger = get_logger(__name__, self.correlation_id, "repairer")

    def repair(self, tokens: List[Token]) -> RepairResult:
        """Repair ``tokens`` in place.

        Args:
            tokens: Token list produced by the tokenizer

        Returns:
            RepairResult describing the changes made
        """
        state = _RepairState(tokens, root_name=self.config.root_element)
        result = RepairResult(tokens)

        i = 0
        while i < len(tokens):
            token = tokens[i]

            if state.root_token is None and _is_content(token):
                if token.type is TokenType.TAG_START and _same_name(
                    token.value, state.root_name
                ):
                    # Keep the document's own spelling of the root name
                    state.root_name = token.value
                    state.root_token = token
                else:
                    self._insert(result, i, Token(TokenType.TAG_START, state.root_name))
                    continue

            kind = token.type
            if kind is TokenType.TAG_START:
                self._open_element(state, result, i)
            elif kind is TokenType.TAG_EMPTY:
                self._demote_nested_root(state, result, i)
                state.attributes.clear()
                token.level = state.level
                state.attribute_level = state.level + 1
            elif kind is TokenType.TAG_END:
                if not self._close_element(state, result, i):
                    continue
                if not state.stack:
                    # The root is closed: the document ends here
                    removed = len(tokens) - i - 1
                    if removed:
                        del tokens[i + 1:]
                        result.removals += removed
                        self._trace("truncated after root end", token, i)
                    break
            elif kind in (TokenType.ATTR_NAME, TokenType.ATTR_SOLO):
                if not self._keep_attribute(state, result, i):
                    continue
                token.level = state.attribute_level
            elif kind is TokenType.ATTR_VALUE:
                token.level = state.attribute_level
            else:
                self._check_prolog_construct(state, result, i)
                token.level = state.level
            i += 1

        # Trailing closure, innermost element first
        while state.stack:
            start = state.stack.pop()
            state.level -= 1
            self._append(result, Token(TokenType.TAG_END, start.value, level=start.level))

        if state.root_token is None:
            self._append(result, Token(TokenType.TAG_START, state.root_name, level=1))
            self._append(result, Token(TokenType.TAG_END, state.root_name, level=1))

        result.root_name = state.root_name
        self.logger.debug(
            "Repair completed",
            extra={
                "insertions": result.insertions,
                "removals": result.removals,
                "conversions": result.conversions,
            }
        )
        return result

    def _open_element(self, state: _RepairState, result: RepairResult, i: int) -> None:
        tokens = state.tokens
        token = tokens[i]
        self._demote_nested_root(state, result, i)
        state.attributes.clear()
        self._heal_reopening(result, tokens, i)
        token.level = state.level
        state.level += 1
        state.attribute_level = state.level
        state.stack.append(token)

    def _demote_nested_root(self, state: _RepairState, result: RepairResult, i: int) -> None:
        """Turn a second root-named start or empty tag into a flagged container."""
        token = state.tokens[i]
        if token is state.root_token or not _same_name(token.value, state.root_name):
            return
        token.value = GENERIC_CONTAINER
        result.conversions += 1
        self._trace("demoted nested root", token, i)
        self._insert(result, i + 1, Token(TokenType.ATTR_NAME, ROOT_VIOLATION_ATTRIBUTE))
        self._insert(result, i + 2, Token(TokenType.ATTR_VALUE, state.root_name))

    def _heal_reopening(self, result: RepairResult, tokens: List[Token], i: int) -> None:
        """Close an element that is reopened before ever being closed.

        Counts later same-named start and end tags. When the element is
        reopened and the openings outnumber the closings by more than one,
        a synthetic end tag goes right before the first reopening.
        """
        name = tokens[i].value.lower()
        count_start = 1
        count_end = 0
        insert_index = -1
        for j in range(i + 1, len(tokens)):
            other = tokens[j]
            if other.type is TokenType.TAG_START and other.value.lower() == name:
                if insert_index == -1:
                    insert_index = j
                count_start += 1
            elif other.type is TokenType.TAG_END and other.value.lower() == name:
                if insert_index == -1:
                    break
                count_end += 1
        if insert_index != -1 and count_start > count_end + 1:
            self._insert(result, insert_index, Token(TokenType.TAG_END, tokens[i].value))

    def _close_element(self, state: _RepairState, result: RepairResult, i: int) -> bool:
        """Match the end tag at ``i`` against the stack.

        Returns:
            True if the end tag closed an element, False if the token at ``i``
            was replaced or removed and must be looked at again
        """
        tokens = state.tokens
        token = tokens[i]
        if not state.stack:
            self._remove(result, i)
            return False

        if _same_name(token.value, state.root_name) and self._has_later_root_end(
            tokens, i, state.root_name
        ):
            token.value = GENERIC_CONTAINER
            result.conversions += 1
            self._trace("demoted early root end", token, i)

        top = state.stack[-1]
        if _same_name(top.value, token.value):
            state.stack.pop()
            state.level -= 1
            token.level = top.level
            if token.value != top.value:
                token.value = top.value
            return True

        if any(_same_name(open_tag.value, token.value) for open_tag in state.stack):
            # Close the elements left open inside the one being closed
            self._insert(result, i, Token(TokenType.TAG_END, top.value))
            return False

        self._remove(result, i)
        return False

    @staticmethod
    def _has_later_root_end(tokens: List[Token], i: int, root_name: str) -> bool:
        return any(
            other.type is TokenType.TAG_END and _same_name(other.value, root_name)
            for other in tokens[i + 1:]
        )

    def _keep_attribute(self, state: _RepairState, result: RepairResult, i: int) -> bool:
        """Drop a repeated attribute; the first occurrence wins."""
        tokens = state.tokens
        token = tokens[i]
        key = token.value.lower() if self.config.lowercase_names else token.value
        if key not in state.attributes:
            state.attributes.add(key)
            return True

        self._remove(result, i)
        if (token.type is TokenType.ATTR_NAME and i < len(tokens)
                and tokens[i].type is TokenType.ATTR_VALUE):
            self._remove(result, i)
        return False

    def _check_prolog_construct(
        self,
        state: _RepairState,
        result: RepairResult,
        i: int
    ) -> None:
        """Turn declarations that XML only allows in the prolog into comments."""
        token = state.tokens[i]
        if token.type is TokenType.DECLARATION:
            if not token.value.upper().startswith(DOCTYPE_KEYWORD):
                return
            if state.root_token is None and not state.doctype_seen:
                state.doctype_seen = True
                return
        elif token.type is TokenType.PROCESSING_INSTRUCTION:
            match = _PI_TARGET.match(token.value)
            target = match.group(0) if match else ""
            valid = is_valid_name(target) is NameValidity.VALID
            if valid and (i == 0 or target.lower() != XML_DECLARATION_TARGET):
                return
        else:
            return
        token.type = TokenType.COMMENT
        token.value = clean_comment(token.value)
        result.conversions += 1
        self._trace("demoted misplaced declaration", token, i)

    def _insert(self, result: RepairResult, index: int, token: Token) -> None:
        result.tokens.insert(index, token)
        result.insertions += 1
        self._trace("inserted", token, index)

    def _append(self, result: RepairResult, token: Token) -> None:
        self._insert(result, len(result.tokens), token)

    def _remove(self, result: RepairResult, index: int) -> None:
        token = result.tokens.pop(index)
        result.removals += 1
        self._trace("removed", token, index)

    def _trace(self, action: str, token: Token, index: int) -> None:
        if not (self.config.trace_repair and self.logger.is_enabled_for(logging.DEBUG)):
            return
        self.logger.debug(
            f"Repair: {action}",
            extra={
                "token_type": token.type.name,
                "token_value": token.value,
                "index": index,
            }
        )
