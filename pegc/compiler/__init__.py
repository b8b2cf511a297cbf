# pegc/compiler/__init__.py
"""Compiler orchestrator.

Passes run stage by stage (`check`, `transform`, `generate`). Within a stage every
pass runs to completion; if the stage reported errors, one GrammarError carrying all
problems of that stage is raised before the next stage starts.
"""

from __future__ import annotations
import builtins
import logging
import types
from typing import Any, Callable, Dict, List, Mapping, Optional

from ..codegen.bytecode import generate_bytecode
from ..codegen.emit_py import generate_python
from ..errors import GrammarError
from ..grammar.ast import Grammar
from . import asts, visitor
from .options import CompileOptions
from .passes import (
    calc_report_failures,
    inference_match_result,
    remove_proxy_rules,
    report_ambiguous_labels,
    report_duplicate_labels,
    report_duplicate_rules,
    report_infinite_recursion,
    report_infinite_repetition,
    report_undefined_rules,
    report_unused_rules,
)
from .session import Collector, DefaultCollector, merge

LOGGER = logging.getLogger(__name__)

Pass = Callable[[Grammar, CompileOptions], None]

PASSES: Dict[str, List[Pass]] = {
    "check": [
        report_undefined_rules,
        report_duplicate_rules,
        report_duplicate_labels,
        report_ambiguous_labels,
        report_infinite_recursion,
        report_infinite_repetition,
        report_unused_rules,
    ],
    "transform": [
        remove_proxy_rules,
    ],
    "generate": [
        calc_report_failures,
        inference_match_result,
        generate_bytecode,
        generate_python,
    ],
}


def load_parser(code: str, name: str = "pegc_parser") -> types.ModuleType:
    """Execute generated parser source into a fresh module object."""
    module = types.ModuleType(name)
    exec(builtins.compile(code, f"<{name}>", "exec"), module.__dict__)
    return module


def _map_output(ast: Grammar, kind: str):
    if kind == "parser":
        return load_parser(ast.code)
    if kind == "source":
        return ast.code
    if kind == "ast":
        return ast
    raise ValueError(f"Invalid output format: {kind}.")


def compile(ast: Grammar, passes: Optional[Mapping[str, List[Pass]]] = None,
            options: Any = None, **kwargs):
    """
    Run `passes` (default: PASSES) over `ast` and return the requested output:
    a loaded parser module, its source text, the annotated AST, or a dict of these
    when `output` is a list.
    """
    if passes is None:
        passes = PASSES
    opts = CompileOptions.from_mapping(options).merged(kwargs)
    opts.resolve(ast.rule_names())

    default = DefaultCollector()
    opts.collector = merge(opts.collector, default)

    for stage, stage_passes in passes.items():
        default.reset()
        opts.collector.emit_info(f"Process stage '{stage}'...")
        LOGGER.debug("stage %s: %d pass(es)", stage, len(stage_passes))
        for i, p in enumerate(stage_passes):
            opts.collector.emit_info(f" -> Process pass {i}")
            LOGGER.debug("  pass %s", getattr(p, "__name__", i))
            p(ast, opts)
        if default.errors:
            raise GrammarError(
                f"Stage '{stage}' contains {default.errors} error(s).",
                problems=default.problems,
            )

    if isinstance(opts.output, list):
        return {kind: _map_output(ast, kind) for kind in opts.output}
    return _map_output(ast, opts.output)


__all__ = [
    "PASSES",
    "Collector",
    "CompileOptions",
    "asts",
    "compile",
    "load_parser",
    "visitor",
]
