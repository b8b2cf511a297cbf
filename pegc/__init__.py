# pegc/__init__.py
"""pegc: PEG grammar to Python parser compiler.

    >>> import pegc
    >>> parser = pegc.generate("start = 'a' / 'b'")
    >>> parser.parse("b")
    'b'
"""

from __future__ import annotations
from typing import Any, Optional

from . import compiler
from .compiler import CompileOptions
from .errors import GrammarError, GrammarSyntaxError, InternalInvariantError
from .grammar import parse_grammar
from .runtime import PegSyntaxError
from .version import VERSION


def generate(grammar: str, options: Any = None, source: Optional[str] = None, **kwargs):
    """Parse grammar text and compile it with the default passes."""
    ast = parse_grammar(grammar, source)
    return compiler.compile(ast, compiler.PASSES, options, **kwargs)


__all__ = [
    "VERSION",
    "CompileOptions",
    "GrammarError",
    "GrammarSyntaxError",
    "InternalInvariantError",
    "PegSyntaxError",
    "compiler",
    "generate",
    "parse_grammar",
]
