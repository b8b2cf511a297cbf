"""Tree query tests."""

import pytest

from pegc.compiler import asts
from pegc.grammar.parser import parse_grammar


def _consumes(expression, extra=""):
    ast = parse_grammar(f"start = {expression}\n{extra}")
    return asts.always_consumes_on_success(ast, ast.rules[0].expression)


def test_find_rule_and_index():
    ast = parse_grammar("start = a\na = 'x'")
    assert asts.find_rule(ast, "a") is ast.rules[1]
    assert asts.find_rule(ast, "missing") is None
    assert asts.index_of_rule(ast, "a") == 1
    assert asts.index_of_rule(ast, "missing") == -1


@pytest.mark.parametrize("expression, expected", [
    ("'a'", True),
    ("''", False),
    ("[a-z]", True),
    ("[]", False),
    (".", True),
    ("'a'?", False),
    ("'a'*", False),
    ("'a'+", True),
    ("'a' / ''", False),
    ("'a' / 'b'", True),
    ("'' 'a'", True),
    ("&'a'", False),
    ("!'a'", False),
    ("&{ return True }", False),
    ("x:'a'", True),
    ("$'a'", True),
    ("'a' { return 1 }", True),
    ("'a'|2..3|", True),
    ("'a'|0..3|", False),
    ("''|2..3, 'x'|", True),
    ("''|1..3, 'x'|", False),
])
def test_always_consumes_on_success(expression, expected):
    assert _consumes(expression) is expected


def test_dynamic_minimum_never_guarantees_consumption():
    ast = parse_grammar("start = n:'a' 'a'|n..|")
    repetition = ast.rules[0].expression.elements[1]
    assert asts.always_consumes_on_success(ast, repetition) is False


def test_rule_references_are_followed():
    assert _consumes("a", "a = 'x'") is True
    assert _consumes("a", "a = 'x'?") is False


def test_undefined_and_cyclic_references_terminate():
    assert _consumes("missing") is False
    assert _consumes("a", "a = b\nb = a") is False
