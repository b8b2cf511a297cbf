# pegc/compiler/passes/__init__.py
"""Compiler passes. Each one is `pass(ast, options) -> None` and mutates `ast`."""

from .calc_report_failures import calc_report_failures
from .inference_match_result import inference_match_result
from .remove_proxy_rules import remove_proxy_rules
from .report_ambiguous_labels import report_ambiguous_labels
from .report_duplicate_labels import report_duplicate_labels
from .report_duplicate_rules import report_duplicate_rules
from .report_infinite_recursion import report_infinite_recursion
from .report_infinite_repetition import report_infinite_repetition
from .report_undefined_rules import report_undefined_rules
from .report_unused_rules import report_unused_rules

__all__ = [
    "calc_report_failures",
    "inference_match_result",
    "remove_proxy_rules",
    "report_ambiguous_labels",
    "report_duplicate_labels",
    "report_duplicate_rules",
    "report_infinite_recursion",
    "report_infinite_repetition",
    "report_undefined_rules",
    "report_unused_rules",
]
