# pegc/compiler/passes/inference_match_result.py
"""
Three-valued match inference.

Every expression node (and every rule) gets `match`:
    -1  never matches
     0  may or may not match
     1  always matches

Rules are solved by iterating to a fixpoint. Recursive references see the rule's
current approximation (starting from 0), and the result can only move a bounded
number of times before it settles; a rule that still changes after
`MAX_REVISITS` rounds is reported as a warning and left at 0.
"""

from __future__ import annotations
import logging
from typing import List

from ...grammar.ast import Expression, Grammar
from .. import asts, visitor
from ..options import CompileOptions

LOGGER = logging.getLogger(__name__)

MAX_REVISITS = 6


def _combine(results: List[int], for_choice: bool) -> int:
    if all(r > 0 for r in results):
        return 1
    if for_choice:
        return -1 if all(r < 0 for r in results) else 0
    return -1 if any(r < 0 for r in results) else 0


def inference_match_result(ast: Grammar, options: CompileOptions) -> None:

    def set_match(node, result: int) -> int:
        node.match = result
        return result

    def sometimes_match(node) -> int:
        return set_match(node, 0)

    def always_match(node) -> int:
        inference(node.expression)
        return set_match(node, 1)

    def from_expression(node) -> int:
        return set_match(node, inference(node.expression))

    def rule(node) -> int:
        if node.match is not None:
            return node.match
        node.match = 0
        count = 0
        while True:
            previous = node.match
            node.match = inference(node.expression)
            if node.match == previous:
                break
            count += 1
            if count > MAX_REVISITS:
                LOGGER.debug("match inference for rule %s did not settle", node.name)
                options.collector.emit_warning(
                    f"Infinity cycle detected when trying to evaluate match result of rule \"{node.name}\".",
                    node.location,
                )
                node.match = 0
                break
        return node.match

    def choice(node) -> int:
        results = [inference(a) for a in node.alternatives]
        return set_match(node, _combine(results, True))

    def sequence(node) -> int:
        results = [inference(e) for e in node.elements]
        return set_match(node, _combine(results, False))

    def simple_not(node) -> int:
        return set_match(node, -inference(node.expression))

    def range_(node) -> int:
        expression = inference(node.expression)
        delimiter = inference(node.delimiter) if node.delimiter is not None else None

        if not node.min.constant or not node.max.constant:
            return set_match(node, 0)
        low = node.min.value or 0
        if low == 0:
            return set_match(node, 1)
        if low == 1 or delimiter is None:
            return set_match(node, expression)
        # from the second element on, every repetition also matches the delimiter
        return set_match(node, _combine([expression, delimiter], False))

    def rule_ref(node) -> int:
        target = asts.find_rule(ast, node.name)
        return set_match(node, inference(target) if target is not None else 0)

    def literal(node) -> int:
        return set_match(node, 1 if node.value == "" else 0)

    def char_class(node) -> int:
        return set_match(node, -1 if not node.parts else 0)

    def grammar(node):
        for r in node.rules:
            inference(r)

    inference = visitor.build({
        "grammar":      grammar,
        "rule":         rule,
        "named":        from_expression,
        "choice":       choice,
        "action":       from_expression,
        "sequence":     sequence,
        "labeled":      from_expression,
        "text":         from_expression,
        "simple_and":   from_expression,
        "simple_not":   simple_not,
        "optional":     always_match,
        "zero_or_more": always_match,
        "one_or_more":  from_expression,
        "range":        range_,
        "group":        from_expression,
        "semantic_and": sometimes_match,
        "semantic_not": sometimes_match,
        "rule_ref":     rule_ref,
        "literal":      literal,
        "class":        char_class,
        "any":          sometimes_match,
    })
    inference(ast)


def match_of(node: Expression) -> int:
    """`node.match` with "not inferred" read as unknown."""
    return node.match or 0
