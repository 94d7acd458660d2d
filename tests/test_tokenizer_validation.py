"""
Strict-mode validation tests

Each malformed construct must raise TokenizerError with the right code and
the position where the problem starts; lenient mode must never raise.
"""

import pytest

from hypernote.lib.tokenizer import tokenize
from hypernote.lib.validator import (
    SourcePosition,
    ValidationState,
    formEvent_validate,
    variableReference_validate,
)
from hypernote.models.errors import ErrorCode, TokenizerError


def strict_error(source):
    with pytest.raises(TokenizerError) as excinfo:
        tokenize(source, strict=True)
    return excinfo.value


class TestSourcePosition:
    """Offset to line/column mapping"""

    def test_first_character(self):
        """Offset 0 is line 1, column 1"""
        assert SourcePosition("abc").position_get(0) == (1, 1)

    def test_second_line(self):
        """Offsets after a newline start a new line"""
        position = SourcePosition("ab\ncd")
        assert position.position_get(3) == (2, 1)
        assert position.position_get(4) == (2, 2)

    def test_end_of_text(self):
        """The end offset stays on the last line; anything beyond is clamped"""
        position = SourcePosition("ab\ncd")
        assert position.position_get(5) == (2, 3)
        assert position.position_get(40) == (2, 1)


class TestTagBalance:
    """Tag stack behaviour"""

    def test_well_formed_nesting(self):
        """Properly nested tags tokenize without error"""
        source = "[div]\n[span]x[/span]\n[each $f as $n]\n[/each]\n[/div]"
        tokens = tokenize(source, strict=True)
        assert tokens[-1].value == ""

    def test_mismatched_closing_tag(self):
        """Closing the wrong tag names both tags and the open position"""
        error = strict_error("[div]\n[span]\n[/div]")
        assert error.code == ErrorCode.MISMATCHED_TAG
        assert "[/div]" in error.message
        assert "[/span]" in error.message
        assert "line 2, column 1" in error.message
        assert (error.line, error.column) == (3, 1)

    def test_unmatched_closing_tag(self):
        """A closing tag with nothing open"""
        error = strict_error("text\n[/div]")
        assert error.code == ErrorCode.UNMATCHED_CLOSING_TAG
        assert (error.line, error.column) == (2, 1)

    def test_unclosed_reports_first_open_tag(self):
        """At EOF the oldest unclosed tag is reported"""
        error = strict_error("# T\n[div]\n  [span]")
        assert error.code == ErrorCode.UNCLOSED_TAG
        assert error.message == "Unclosed tag [div]"
        assert (error.line, error.column) == (2, 1)

    def test_self_closing_names_never_pushed(self):
        """pushTag ignores self-closing names"""
        state = ValidationState()
        state.tag_push("ELEMENT_START", "img", 1, 1)
        assert state.tag_stack == []
        state.unclosedTags_check()


class TestSyntaxRules:
    """Element, attribute, loop, form and variable syntax"""

    @pytest.mark.parametrize("source, code", [
        ("[form submit]", ErrorCode.MISSING_FORM_EVENT),
        ("[form @]", ErrorCode.INVALID_EVENT_NAME),
        ("[@element]", ErrorCode.EMPTY_ELEMENT_NAME),
        ("[]", ErrorCode.EMPTY_ELEMENT_NAME),
        ("[123div]", ErrorCode.INVALID_ELEMENT_NAME),
        ("[each  as $item]", ErrorCode.INVALID_LOOP_SOURCE),
        ("[each feed as $item]", ErrorCode.INVALID_LOOP_SOURCE),
        ("[each $feed]", ErrorCode.MISSING_LOOP_VARIABLE),
        ("[each $feed as 1x]", ErrorCode.INVALID_LOOP_VARIABLE),
        ("[if ]", ErrorCode.EMPTY_CONDITION),
        ("[if {}]", ErrorCode.INVALID_CONDITION),
        ("[div class=card]", ErrorCode.UNQUOTED_ATTRIBUTE),
        ('[div 1st="x"]', ErrorCode.INVALID_ATTRIBUTE_NAME),
        ("[json ]", ErrorCode.EMPTY_VARIABLE),
        ("{$name", ErrorCode.UNBALANCED_BRACES),
        ("{#anchor", ErrorCode.UNBALANCED_BRACES),
        ("{#}", ErrorCode.EMPTY_ELEMENT_NAME),
        ("{# }", ErrorCode.EMPTY_ELEMENT_NAME),
        ("{class=card}", ErrorCode.UNQUOTED_ATTRIBUTE),
        ('[div class="test]\nContent\n[/div]', ErrorCode.UNCLOSED_QUOTE),
        ('[span style="color:red]\nText', ErrorCode.UNCLOSED_QUOTE),
        ("[div unclosed bracket", ErrorCode.UNCLOSED_ELEMENT),
    ])
    def test_error_codes(self, source, code):
        """Each rule reports its own code"""
        assert strict_error(source).code == code

    def test_unclosed_quote_position(self):
        """UNCLOSED_QUOTE points at the opening quote"""
        error = strict_error('[div class="test]\nContent\n[/div]')
        assert (error.line, error.column) == (1, 12)

    def test_missing_bracket_position(self):
        """UNCLOSED_ELEMENT points at the opening bracket"""
        error = strict_error('ok\n[div class="test"')
        assert error.code == ErrorCode.UNCLOSED_ELEMENT
        assert (error.line, error.column) == (2, 1)

    def test_unquoted_style_marker_position(self):
        """An unquoted class= value is reported where the value starts"""
        error = strict_error("text\n{class=card}\n[div][/div]")
        assert error.code == ErrorCode.UNQUOTED_ATTRIBUTE
        assert (error.line, error.column) == (2, 8)

    def test_invalid_form_event_prefix(self):
        """Events must start with '@'"""
        with pytest.raises(TokenizerError) as excinfo:
            formEvent_validate("post", 1, 1)
        assert excinfo.value.code == ErrorCode.INVALID_FORM_EVENT

    def test_empty_variable(self):
        """{} and { } are empty references"""
        with pytest.raises(TokenizerError) as excinfo:
            variableReference_validate("{ }", 4, 2)
        assert excinfo.value.code == ErrorCode.EMPTY_VARIABLE
        assert (excinfo.value.line, excinfo.value.column) == (4, 2)


class TestErrorValue:
    """TokenizerError presentation"""

    def test_str_includes_position(self):
        """str() appends line and column"""
        error = TokenizerError("Unclosed tag [div]", 2, 1, ErrorCode.UNCLOSED_TAG)
        assert str(error) == "Unclosed tag [div] at line 2, column 1"

    def test_as_dict(self):
        """as_dict() is JSON friendly"""
        error = strict_error("[/div]")
        assert error.as_dict() == {
            "message": error.message,
            "line": 1,
            "column": 1,
            "code": "UNMATCHED_CLOSING_TAG",
        }


class TestLenientMode:
    """Lenient mode never raises"""

    @pytest.mark.parametrize("source", [
        "[div]\n[span]\n[/div]",
        "[/div]",
        "[div]\n[span]",
        "[form submit]",
        "[123div]",
        '[div class="test"',
        "{$name",
        "{#anchor",
        '{class="p-4',
        "{class=card}",
        "{#}",
    ])
    def test_no_error(self, source):
        """Malformed input still produces a token stream"""
        tokens = tokenize(source, strict=False)
        assert tokens[-1].value == ""

    def test_empty_id_marker_dropped(self):
        """An empty {#} is consumed without decorating anything"""
        tokens = tokenize("{#}\n# A", strict=False)
        assert [token.type.name for token in tokens] == ["NEWLINE", "HEADING", "EOF"]
