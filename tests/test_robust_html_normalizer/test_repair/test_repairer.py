"""Comprehensive tests for structural token repair."""

import logging
from unittest.mock import patch

import pytest

from robust_html_normalizer.repair import (
    GENERIC_CONTAINER,
    ROOT_VIOLATION_ATTRIBUTE,
    RepairResult,
    TokenRepairer,
)
from robust_html_normalizer.serialization import XMLSerializer
from robust_html_normalizer.shared import NormalizerConfig
from robust_html_normalizer.tokenization import HTMLTokenizer, Token, TokenType


def repair_markup(data, config=None):
    """Tokenize and repair ``data``; return the repair result and its XML."""
    config = config or NormalizerConfig()
    tokens = HTMLTokenizer(config).tokenize(data).tokens
    result = TokenRepairer(config).repair(tokens)
    xml = XMLSerializer.from_config(config).to_xml(
        result.tokens, text_encoding="ascii", root_name=result.root_name
    )
    return result, xml


class TestRepairResult:
    """Tests for the repair summary."""

    def test_unchanged(self):
        """Test a result without operations."""
        result = RepairResult(tokens=[])

        assert not result.changed
        assert result.operations == 0

    def test_operations(self):
        """Test that all kinds of changes are counted."""
        result = RepairResult(tokens=[], insertions=2, removals=1, conversions=1)

        assert result.changed
        assert result.operations == 4


class TestRootElement:
    """Tests for the single root element rule."""

    def test_root_inserted(self):
        """Test wrapping a fragment in the configured root."""
        result, xml = repair_markup(b"<p>hello</p>")

        assert xml == "<html><p>hello</p></html>"
        assert result.insertions == 2
        assert result.root_name == "html"

    def test_existing_root_kept(self):
        """Test a document that already has a root."""
        result, xml = repair_markup(b"<html><body>x</body></html>")

        assert xml == "<html><body>x</body></html>"
        assert not result.changed

    def test_root_casing_preserved(self):
        """Test that the document's spelling of the root is kept."""
        result, xml = repair_markup(b"<HTML><p>x</p></html>")

        assert xml == "<HTML><p>x</p></HTML>"
        assert result.root_name == "HTML"

    def test_configured_root(self):
        """Test a custom root element name."""
        _, xml = repair_markup(b"text", NormalizerConfig(root_element="doc"))

        assert xml == "<doc>text</doc>"

    def test_root_inserted_after_prolog(self):
        """Test that leading declarations stay outside the root."""
        _, xml = repair_markup(b"<!DOCTYPE html>\n<!-- c --><p>x</p>")

        assert xml == "<!DOCTYPE html>\n<!-- c --><html><p>x</p></html>"

    def test_empty_document(self):
        """Test that an empty token list becomes an empty root."""
        tokens = []
        result = TokenRepairer().repair(tokens)

        assert [(token.type, token.value, token.level) for token in tokens] == [
            (TokenType.TAG_START, "html", 1),
            (TokenType.TAG_END, "html", 1),
        ]
        assert result.tokens is tokens

    def test_whitespace_only_document(self):
        """Test that whitespace does not open the root."""
        _, xml = repair_markup(b"\n  ")

        assert xml == "\n  <html></html>"

    def test_nested_root_demoted(self):
        """Test that a second root becomes a flagged container."""
        result, xml = repair_markup(b"<html><body>x</body><html>y</html></html>")

        assert xml == (
            '<html><body>x</body><div InvalidHtmlTag="html">y</div></html>'
        )
        assert result.conversions == 2
        assert result.insertions == 2

    def test_second_root_after_first_closed(self):
        """Test a root that is closed and then opened again."""
        result, xml = repair_markup(b"<html><body>x</body></html><html>y</html>")

        assert xml == (
            '<html><body>x</body><div InvalidHtmlTag="html">y</div></html>'
        )
        assert result.conversions == 2

    @pytest.mark.parametrize("data, expected", [
        (b"<html/>", '<html><div InvalidHtmlTag="html"/></html>'),
        (b"<p><html/></p>", '<html><p><div InvalidHtmlTag="html"/></p></html>'),
        (
            b"<html><body><HTML/></body></html>",
            '<html><body><div InvalidHtmlTag="html"/></body></html>',
        ),
    ])
    def test_root_named_empty_tag_demoted(self, data, expected):
        """Test that an empty tag named like the root is demoted as well."""
        result, xml = repair_markup(data)

        assert xml == expected
        assert xml.lower().count("<html") == 1
        assert result.conversions == 1

    def test_demoted_empty_tag_levels(self):
        """Test the levels of a demoted empty tag and its flag attribute."""
        tokens = HTMLTokenizer().tokenize(b"<html><html/></html>").tokens
        TokenRepairer().repair(tokens)

        assert [(token.type, token.value, token.level) for token in tokens] == [
            (TokenType.TAG_START, "html", 1),
            (TokenType.TAG_EMPTY, GENERIC_CONTAINER, 2),
            (TokenType.ATTR_NAME, ROOT_VIOLATION_ATTRIBUTE, 3),
            (TokenType.ATTR_VALUE, "html", 3),
            (TokenType.TAG_END, "html", 1),
        ]

    def test_constants(self):
        """Test the names used for demoted roots."""
        assert GENERIC_CONTAINER == "div"
        assert ROOT_VIOLATION_ATTRIBUTE == "InvalidHtmlTag"

    def test_content_after_root_removed(self):
        """Test that nothing follows the root's end tag."""
        result, xml = repair_markup(b"<html>x</html>trailing<p>y</p>")

        assert xml == "<html>x</html>"
        assert result.removals == 4


class TestElementNesting:
    """Tests for start and end tag balancing."""

    def test_unclosed_inner_element(self):
        """Test that an end tag closes the elements left open inside it."""
        result, xml = repair_markup(b"<p><b>bold</p>")

        assert xml == "<html><p><b>bold</b></p></html>"
        assert result.insertions == 3

    def test_unclosed_at_end_of_input(self):
        """Test trailing closure, innermost first."""
        _, xml = repair_markup(b"<div><span>text")

        assert xml == "<html><div><span>text</span></div></html>"

    def test_stray_end_tag_removed(self):
        """Test an end tag with no open element."""
        result, xml = repair_markup(b"<p>x</b></p>")

        assert xml == "<html><p>x</p></html>"
        assert result.removals == 1

    def test_end_tag_before_content_removed(self):
        """Test an end tag before any element."""
        _, xml = repair_markup(b"</p><p>x</p>")

        assert xml == "<html><p>x</p></html>"

    def test_reopened_element_closed(self):
        """Test that a reopened paragraph closes the first one."""
        _, xml = repair_markup(b"<p>one<p>two")

        assert xml == "<html><p>one</p><p>two</p></html>"

    def test_balanced_reopening_nests(self):
        """Test that a balanced reopening is treated as nesting."""
        _, xml = repair_markup(b"<p>a<p>b</p>")

        assert xml == "<html><p>a<p>b</p></p></html>"

    def test_end_tag_takes_start_spelling(self):
        """Test case-insensitive matching of end tags."""
        _, xml = repair_markup(b"<DIV>x</div>")

        assert xml == "<html><DIV>x</DIV></html>"

    def test_void_and_empty_elements(self):
        """Test that empty elements need no end tag."""
        _, xml = repair_markup(b"<p>a<br>b<img src=x.png/></p>")

        assert xml == '<html><p>a<br/>b<img src="x.png"/></p></html>'

    def test_levels(self):
        """Test nesting depths assigned during repair."""
        tokens = HTMLTokenizer().tokenize(b'<div><p class="c">x</p></div>').tokens
        TokenRepairer().repair(tokens)

        assert [(token.type.name, token.level) for token in tokens] == [
            ("TAG_START", 1),
            ("TAG_START", 2),
            ("TAG_START", 3),
            ("ATTR_NAME", 4),
            ("ATTR_VALUE", 4),
            ("TEXT", 4),
            ("TAG_END", 3),
            ("TAG_END", 2),
            ("TAG_END", 1),
        ]

    def test_empty_element_levels(self):
        """Test that empty elements sit at the current depth."""
        tokens = HTMLTokenizer().tokenize(b"<img alt=x>").tokens
        TokenRepairer().repair(tokens)

        assert [(token.type.name, token.level) for token in tokens] == [
            ("TAG_START", 1),
            ("TAG_EMPTY", 2),
            ("ATTR_NAME", 3),
            ("ATTR_VALUE", 3),
            ("TAG_END", 1),
        ]


class TestAttributes:
    """Tests for duplicate attribute removal."""

    def test_duplicate_attribute_removed(self):
        """Test that the first occurrence wins."""
        result, xml = repair_markup(b'<p class="a" class="b" id=x>t</p>')

        assert xml == '<html><p class="a" id="x">t</p></html>'
        assert result.removals == 2

    def test_duplicate_solo_attribute(self):
        """Test a repeated attribute without a value."""
        _, xml = repair_markup(b"<input checked checked>")

        assert xml == '<html><input checked="checked"/></html>'

    def test_case_sensitive_by_default(self):
        """Test that differently cased names are distinct by default."""
        _, xml = repair_markup(b"<p ID=1 id=2>t</p>")

        assert xml == '<html><p ID="1" id="2">t</p></html>'

    def test_case_insensitive_when_lowercasing(self):
        """Test duplicate detection when names are lower-cased."""
        _, xml = repair_markup(b"<p ID=1 id=2>t</p>", NormalizerConfig.xhtml())

        assert xml == '<html><p id="1">t</p></html>'

    def test_attributes_scoped_per_element(self):
        """Test that the same attribute may appear on different elements."""
        _, xml = repair_markup(b"<p id=a><b id=b>x</b></p>")

        assert xml == '<html><p id="a"><b id="b">x</b></p></html>'


class TestPrologConstructs:
    """Tests for declarations that are only legal before the root."""

    def test_doctype_after_root_demoted(self):
        """Test a DOCTYPE inside the document."""
        result, xml = repair_markup(b"<html><!DOCTYPE x></html>")

        assert xml == "<html><!--DOCTYPE x--></html>"
        assert result.conversions == 1

    def test_second_doctype_demoted(self):
        """Test that only the first DOCTYPE is kept."""
        _, xml = repair_markup(b"<!DOCTYPE html><!DOCTYPE html><p/>")

        assert xml == "<!DOCTYPE html><!--DOCTYPE html--><html><p/></html>"

    def test_xml_declaration_must_come_first(self):
        """Test a misplaced XML declaration."""
        _, xml = repair_markup(b'<p>x</p><?xml version="1.0"?>')

        assert xml == '<html><p>x</p><!--xml version="1.0"--></html>'

    def test_xml_declaration_at_start_kept(self):
        """Test a leading XML declaration."""
        _, xml = repair_markup(b'<?xml version="1.0"?><p/>')

        assert xml == '<?xml version="1.0"?><html><p/></html>'

    def test_processing_instruction_kept(self):
        """Test a processing instruction with a usable target."""
        _, xml = repair_markup(b"<p><?php echo 1 ?></p>")

        assert xml == "<html><p><?php echo 1 ?></p></html>"

    @pytest.mark.parametrize("data", [b"<? x?>", b"<?1abc?>"])
    def test_processing_instruction_without_target(self, data):
        """Test that unusable targets are demoted to comments."""
        result, xml = repair_markup(data)

        assert "<?" not in xml
        assert result.conversions == 1


class TestIdempotence:
    """Tests that repaired output is a fixed point."""

    @pytest.mark.parametrize(
        "data",
        [
            b"<p><b>bold</p>",
            b"<div><span>text",
            b"<p>one<p>two",
            b"<html><body>x</body><html>y</html></html>",
            b'<p a=1 a=2><?xml x?>text</p>trailing',
            b"",
        ],
    )
    def test_second_repair_changes_nothing(self, data):
        """Test that repairing twice equals repairing once."""
        tokens = HTMLTokenizer().tokenize(data).tokens
        repairer = TokenRepairer()
        repairer.repair(tokens)
        snapshot = [(token.type, token.value, token.level) for token in tokens]

        second = repairer.repair(tokens)

        assert not second.changed
        assert [(token.type, token.value, token.level) for token in tokens] == snapshot


class TestTracing:
    """Tests for repair tracing."""

    def test_trace_repair_logs_operations(self, caplog):
        """Test that each operation is logged when tracing is enabled."""
        repairer = TokenRepairer(NormalizerConfig(trace_repair=True))
        tokens = [Token(TokenType.TEXT, "x", 0)]

        with caplog.at_level(logging.DEBUG, logger="robust_html_normalizer.repair.repairer"):
            repairer.repair(tokens)

        messages = [record.getMessage() for record in caplog.records]
        assert messages.count("Repair: inserted") == 2

    def test_trace_skipped_when_debug_disabled(self, caplog):
        """Test that no trace record is built unless the logger accepts DEBUG."""
        repairer = TokenRepairer(NormalizerConfig(trace_repair=True))
        tokens = [Token(TokenType.TEXT, "x", 0)]

        with caplog.at_level(logging.INFO, logger="robust_html_normalizer.repair.repairer"):
            with patch.object(repairer.logger, "debug") as debug:
                repairer.repair(tokens)

        traced = [call for call in debug.call_args_list if call.args[0].startswith("Repair:")]
        assert traced == []
        assert len(tokens) == 3
