"""Node dispatcher tests."""

import pytest

from pegc.compiler import visitor
from pegc.grammar.parser import parse_grammar


def _collect_literals(text):
    ast = parse_grammar(text)
    found = []
    walk = visitor.build({"literal": lambda node, acc: acc.append(node.value)})
    walk(ast, found)
    return found


def test_default_handlers_walk_every_child():
    found = _collect_literals("start = 'a' ('b' / 'c') d\nd = 'e'* !'f' $'g'?")
    assert found == ["a", "b", "c", "e", "f", "g"]


def test_range_visits_delimiter_before_expression():
    assert _collect_literals("start = 'a'|1.., 'b'|") == ["b", "a"]


def test_handler_return_value_is_passed_through():
    ast = parse_grammar("start = 'abc'")
    measure = visitor.build({"literal": lambda node: len(node.value)})
    assert measure(ast.rules[0]) == 3


def test_custom_handler_replaces_default():
    ast = parse_grammar("start = a:'x' / 'y'")
    seen = []

    def labeled(node):
        seen.append(node.label)

    walk = visitor.build({
        "labeled": labeled,
        "literal": lambda node: seen.append(node.value),
    })
    walk(ast)
    # the labeled handler does not descend, so 'x' is never reached
    assert seen == ["a", "y"]


def test_unknown_node_type_raises():
    class Bogus:
        type = "bogus"

    walk = visitor.build({})
    with pytest.raises(ValueError, match="node type 'bogus'"):
        walk(Bogus())


def test_missing_node_raises():
    walk = visitor.build({})
    with pytest.raises(ValueError, match="no node"):
        walk(None)
