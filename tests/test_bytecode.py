"""Bytecode lowering tests: instruction shapes and constant tables."""

import pytest

from pegc.codegen.bytecode import ConstantTable, build_condition, build_try_condition, generate_bytecode
from pegc.codegen.opcodes import Op, disassemble
from pegc.compiler.passes import calc_report_failures, inference_match_result
from pegc.grammar.ast import Function

LOWERING = (calc_report_failures, inference_match_result, generate_bytecode)


@pytest.fixture
def lower(run_passes):
    def run(text, **options):
        ast, _ = run_passes(text, *LOWERING, **options)
        return ast
    return run


def test_constant_table_deduplicates_by_value():
    table = ConstantTable()
    assert table.add("a") == 0
    assert table.add("b") == 1
    assert table.add("a") == 0
    assert table.items == ["a", "b"]


def test_condition_collapses_when_outcome_is_known():
    assert build_condition(1, [Op.IF], [Op.POP], [Op.PUSH_NULL]) == [Op.POP]
    assert build_condition(-1, [Op.IF], [Op.POP], [Op.PUSH_NULL]) == [Op.PUSH_NULL]
    assert build_condition(0, [Op.IF], [Op.POP], [Op.PUSH_NULL]) == [Op.IF, 1, 1, Op.POP, Op.PUSH_NULL]
    assert build_try_condition(0, [Op.MATCH_ANY], [Op.ACCEPT_N, 1], [Op.PUSH_FAILED]) == [Op.MATCH_ANY]


def test_literal(lower):
    ast = lower("start = 'a'")
    assert ast.rules[0].bytecode == [Op.EXPECT, 0, Op.MATCH_LITERAL, 0]
    assert ast.literals == ["a"]
    assert ast.expectations == [{"type": "literal", "value": "a", "ignore_case": False}]


def test_repeated_literal_is_stored_once(lower):
    ast = lower("start = 'a' 'a'")
    assert ast.literals == ["a"]
    assert len(ast.expectations) == 1
    code = ast.rules[0].bytecode
    matches = [i for i, op in enumerate(code) if op == Op.MATCH_LITERAL]
    assert len(matches) == 2
    assert all(code[i + 1] == 0 for i in matches)


def test_ignore_case_literal_is_stored_lowercase(lower):
    ast = lower("start = 'AbC'i")
    assert ast.rules[0].bytecode == [Op.EXPECT, 0, Op.MATCH_LITERAL_IC, 0]
    assert ast.literals == ["abc"]
    assert ast.expectations == [{"type": "literal", "value": "AbC", "ignore_case": True}]


def test_empty_literal_always_matches(lower):
    ast = lower("start = ''")
    assert ast.rules[0].bytecode == [Op.PUSH_EMPTY_STRING]
    assert ast.literals == []


def test_optional(lower):
    ast = lower("start = 'a'?")
    assert ast.rules[0].bytecode == [
        Op.EXPECT, 0, Op.MATCH_LITERAL, 0,
        Op.IF_ERROR, 2, 0, Op.POP, Op.PUSH_NULL,
    ]


def test_choice(lower):
    ast = lower("start = 'a' / 'b'")
    assert ast.rules[0].bytecode == [
        Op.LOOP, 0, 14,
        Op.EXPECT, 0, Op.MATCH_LITERAL, 0,
        Op.IF_NOT_ERROR, 2, 0, Op.BREAK, 0,
        Op.POP,
        Op.EXPECT, 1, Op.MATCH_LITERAL, 1,
    ]


def test_choice_skips_alternatives_that_never_match(lower):
    ast = lower("start = [] / 'a'")
    assert ast.rules[0].bytecode == [Op.LOOP, 0, 4, Op.EXPECT, 0, Op.MATCH_LITERAL, 0]
    assert ast.classes == []


def test_choice_stops_at_alternative_that_always_matches(lower):
    ast = lower("start = '' / 'a'")
    assert ast.rules[0].bytecode == [Op.LOOP, 0, 1, Op.PUSH_EMPTY_STRING]
    assert ast.literals == []


def test_sequence(lower):
    ast = lower("start = 'a' 'b'")
    assert ast.rules[0].bytecode == [
        Op.PUSH_CURR_POS,
        Op.LOOP, 0, 22,
        Op.EXPECT, 0, Op.MATCH_LITERAL, 0,
        Op.IF_ERROR, 3, 0, Op.LOAD_CURR_POS, Op.BREAK, 1,
        Op.EXPECT, 1, Op.MATCH_LITERAL, 1,
        Op.IF_ERROR, 3, 0, Op.LOAD_CURR_POS, Op.BREAK, 2,
        Op.WRAP, 2,
        Op.POP_POS,
    ]


def test_named_rule_reports_its_display_name(lower):
    ast = lower("start \"greeting\" = 'hi'")
    assert ast.rules[0].bytecode == [
        Op.EXPECT, 0, Op.SILENT_FAILS_ON, Op.MATCH_LITERAL, 0, Op.SILENT_FAILS_OFF,
    ]
    assert ast.expectations == [{"type": "rule", "value": "greeting"}]


def test_non_reporting_rule_has_no_expectations(lower):
    ast = lower("start \"s\" = a\na = 'x'")
    assert ast.rules[0].bytecode == [Op.EXPECT, 0, Op.SILENT_FAILS_ON, Op.RULE, 1, Op.SILENT_FAILS_OFF]
    assert ast.rules[1].bytecode == [Op.MATCH_LITERAL, 0]


def test_class_table(lower):
    ast = lower("start = [^a-z_]i")
    assert ast.classes == [{"value": [("a", "z"), "_"], "inverted": True, "ignore_case": True}]
    assert ast.expectations == [{
        "type": "class", "value": [("a", "z"), "_"], "inverted": True, "ignore_case": True,
    }]
    assert ast.rules[0].bytecode == [Op.EXPECT, 0, Op.MATCH_CLASS, 0]


def test_action_functions_capture_labels(lower):
    ast = lower("start = a:'a' b:'b' { return a + b }")
    assert ast.functions == [Function(False, ["a", "b"], " return a + b ")]


def test_semantic_predicate_function(lower):
    ast = lower("start = n:'a' &{ return n == 'a' }")
    assert ast.functions == [Function(True, ["n"], " return n == 'a' ")]


def test_identical_actions_share_a_function(lower):
    ast = lower("start = 'a' { return 1 } / 'b' { return 1 }")
    assert len(ast.functions) == 1


def test_disassemble_nests_arms_and_loops(lower):
    ast = lower("start = 'a'*")
    listing = disassemble(ast.rules[0].bytecode)
    assert listing.splitlines() == [
        "PUSH_EMPTY_ARRAY",
        "LOOP true",
        "  EXPECT 0",
        "  MATCH_LITERAL 0",
        "  IF_ERROR",
        "  then:",
        "    POP",
        "    BREAK 0",
        "  else:",
        "    APPEND",
    ]
