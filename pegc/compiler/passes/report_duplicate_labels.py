# pegc/compiler/passes/report_duplicate_labels.py
"""
Labels live in scopes:
  - choice      : every alternative gets its own copy of the environment
  - sequence    : elements share (and extend) one environment
  - wrappers    : action/text/predicates/repetitions/group see a copy, so labels
                  defined inside them don't leak out
  - range       : a variable bound must name a label defined earlier in scope
"""

from __future__ import annotations
from typing import Dict, Optional

from ...grammar.ast import Grammar, Location
from .. import visitor
from ..options import CompileOptions
from .report_duplicate_rules import _at

Env = Dict[str, Optional[Location]]


def report_duplicate_labels(ast: Grammar, options: CompileOptions) -> None:
    emit_error = options.collector.emit_error

    def with_cloned_env(node, env: Env):
        check(node.expression, dict(env))

    def rule(node):
        check(node.expression, {})

    def choice(node, env: Env):
        for alternative in node.alternatives:
            check(alternative, dict(env))

    def labeled(node, env: Env):
        label = node.label
        if label is not None and label in env:
            emit_error(
                f'Label "{label}" is already defined {_at(env[label])}.',
                node.location,
            )
        check(node.expression, env)
        if label is not None:
            env[label] = node.location

    def range_(node, env: Env):
        names = [b.value for b in (node.min, node.max) if not b.constant]
        for name in dict.fromkeys(names):
            if name not in env:
                emit_error(f'Label "{name}" is not defined.', node.location)
        if node.delimiter is not None:
            check(node.delimiter, dict(env))
        check(node.expression, dict(env))

    check = visitor.build({
        "rule":         rule,
        "choice":       choice,
        "action":       with_cloned_env,
        "labeled":      labeled,
        "text":         with_cloned_env,
        "simple_and":   with_cloned_env,
        "simple_not":   with_cloned_env,
        "optional":     with_cloned_env,
        "zero_or_more": with_cloned_env,
        "one_or_more":  with_cloned_env,
        "range":        range_,
        "group":        with_cloned_env,
    })
    check(ast)
