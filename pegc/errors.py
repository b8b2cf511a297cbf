# pegc/errors.py
"""Compiler error types.

- GrammarError          : semantic problem in the grammar (recoverable by fixing it)
- GrammarSyntaxError    : the grammar text could not be parsed
- InternalInvariantError: generator defect (stack imbalance, invalid opcode)
"""

from __future__ import annotations
from typing import List, Optional, Tuple

from .grammar.ast import Location

Problem = Tuple[str, str, Optional[Location]]


class GrammarError(Exception):
    def __init__(self, message: str, location: Optional[Location] = None,
                 problems: Optional[List[Problem]] = None):
        super().__init__(message)
        self.message = message
        self.location = location
        self.problems: List[Problem] = list(problems) if problems else []

    def __str__(self) -> str:
        if not self.problems:
            return self.message
        lines = [self.message]
        for severity, message, location in self.problems:
            if severity != "error":
                continue
            where = f" ({location})" if location is not None else ""
            lines.append(f"  - {message}{where}")
        return "\n".join(lines)


class GrammarSyntaxError(SyntaxError):
    def __init__(self, message: str, location: Optional[Location] = None):
        super().__init__(message)
        self.location = location


class InternalInvariantError(RuntimeError):
    def __init__(self, rule: str, position: int, message: str, stack: Optional[str] = None):
        where = f"Rule '{rule}', position {position}"
        if stack is not None:
            where += f", stack '{stack}'"
        super().__init__(f"{where}: {message}")
        self.rule = rule
        self.position = position
        self.stack = stack
