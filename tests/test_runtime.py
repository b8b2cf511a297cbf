"""Parser runtime tests: state primitives, expectation bookkeeping and messages."""

import pytest

from pegc.runtime import (
    FAILED,
    ParserState,
    PegSyntaxError,
    build_message,
    describe_expectation,
)


def test_failed_sentinel():
    assert not FAILED
    assert repr(FAILED) == "FAILED"


def test_matching_primitives_advance_on_success():
    state = ParserState("abc")
    assert state.match_char("a") == "a"
    assert state.match_literal("bc") == "bc"
    assert state.pos == 3
    assert state.match_any() is FAILED
    assert state.match_char("x") is FAILED


def test_case_insensitive_literal_returns_input_text():
    state = ParserState("HeLLo")
    assert state.match_literal_ic("hello") == "HeLLo"
    assert state.pos == 5


def test_rightmost_expectations_are_kept():
    state = ParserState("ab")
    state.expect({"type": "any"})
    state.pos = 1
    state.expect({"type": "literal", "text": "x", "ignore_case": False})
    state.pos = 0
    state.expect({"type": "literal", "text": "y", "ignore_case": False})
    with pytest.raises(PegSyntaxError) as exc:
        state.parse(lambda: FAILED)
    assert exc.value.expected == [{"type": "literal", "text": "x", "ignore_case": False}]
    assert exc.value.found == "b"


def test_silent_fails_record_nothing():
    state = ParserState("a")
    state.silent_fails += 1
    state.expect({"type": "any"})
    state.silent_fails -= 1
    with pytest.raises(PegSyntaxError) as exc:
        state.parse(lambda: FAILED)
    assert exc.value.expected == []
    assert exc.value.message == 'Unexpected "a".'


def test_inverted_namespace_and_double_inversion():
    state = ParserState("a")
    state.begin()
    state.begin()
    state.expect({"type": "any"})
    state.end(True)
    state.end(True)
    state.begin()
    state.expect({"type": "end"})
    state.end(True)
    with pytest.raises(PegSyntaxError) as exc:
        state.parse(lambda: FAILED)
    assert exc.value.expected == [{"type": "any"}, {"type": "not", "expected": {"type": "end"}}]


def test_duplicate_expectations_are_reported_once():
    state = ParserState("")
    entry = {"type": "literal", "text": "a", "ignore_case": False}
    state.expect(entry)
    state.expect(dict(entry))
    with pytest.raises(PegSyntaxError) as exc:
        state.parse(lambda: FAILED)
    assert exc.value.expected == [entry]
    assert exc.value.message == 'Expected "a" but end of input found.'


def test_position_details_treat_crlf_as_one_break():
    state = ParserState("a\r\nbc")
    assert state.position_details(3) == {"offset": 3, "line": 2, "column": 1}
    assert state.position_details(4) == {"offset": 4, "line": 2, "column": 2}


@pytest.mark.parametrize("text", ["a\rbc", "a\u2028bc", "a\u2029bc"])
def test_position_details_count_other_line_breaks(text):
    state = ParserState(text)
    assert state.position_details(3) == {"offset": 3, "line": 2, "column": 2}


def test_position_details_between_cr_and_lf():
    state = ParserState("a\r\nb")
    assert state.position_details(2) == {"offset": 2, "line": 2, "column": 1}


def test_user_helpers_use_the_saved_position():
    state = ParserState("hello world", source="greeting.txt")
    state.mark, state.pos = 6, 11
    assert state.text() == "world"
    assert state.offset() == 6
    assert state.range() == [6, 11]
    assert state.location()["source"] == "greeting.txt"
    with pytest.raises(PegSyntaxError, match='Expected a name but "world" found.'):
        state.expected("a name")


@pytest.mark.parametrize("entry, text", [
    ({"type": "literal", "text": 'a"b\n', "ignore_case": False}, '"a\\"b\\n"'),
    ({"type": "class", "parts": ["a", ("0", "9"), "-"], "inverted": True, "ignore_case": False}, "[^a0-9\\-]"),
    ({"type": "any"}, "any character"),
    ({"type": "end"}, "end of input"),
    ({"type": "rule", "description": "number"}, "number"),
    ({"type": "not", "expected": {"type": "any"}}, "not any character"),
])
def test_describe_expectation(entry, text):
    assert describe_expectation(entry) == text


def test_message_sorts_and_joins_descriptions():
    expected = [
        {"type": "rule", "description": "c"},
        {"type": "rule", "description": "a"},
        {"type": "rule", "description": "b"},
        {"type": "rule", "description": "a"},
    ]
    assert build_message(expected, "x") == 'Expected a, b, or c but "x" found.'
    assert build_message(expected[:2], None) == "Expected a or c but end of input found."


def test_error_format_points_at_location():
    state = ParserState("one\ntwo three", source="input.txt")
    error = PegSyntaxError("Bad thing.", None, None, state.compute_location(8, 9))
    assert error.format("one\ntwo three") == (
        "Error: Bad thing.\n"
        " --> input.txt:2:5\n"
        "two three\n"
        "    ^"
    )


def test_error_format_splits_lines_on_carriage_return():
    text = "one\rtwo three\rfour"
    error = PegSyntaxError("Bad thing.", None, None, ParserState(text).compute_location(8, 9))
    assert error.format(text) == (
        "Error: Bad thing.\n"
        " --> 2:5\n"
        "two three\n"
        "    ^"
    )
