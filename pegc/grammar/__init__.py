# pegc/grammar/__init__.py
from .ast import Grammar, Location, Position, Rule
from .loader import load_grammar_text
from .parser import parse_grammar

__all__ = ["Grammar", "Location", "Position", "Rule", "load_grammar_text", "parse_grammar"]
