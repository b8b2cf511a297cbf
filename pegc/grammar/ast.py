# pegc/grammar/ast.py
"""Grammar AST

- Grammar/Rule: rules are looked up by name; a rule_ref never points at a node.
- Expression nodes: one dataclass per node kind; `type` is the dispatch key used by
  `pegc.compiler.visitor`.
- Passes annotate nodes in place (`match`, `report_failures`, `bytecode`, constant
  tables on the grammar). Annotations start out as None.
"""

from __future__     import annotations
from dataclasses    import dataclass, field
from typing         import ClassVar, Dict, List, Optional, Tuple, Union


@dataclass
class Position:
    offset: int
    line: int
    column: int


@dataclass
class Location:
    source: Optional[str]
    start: Position
    end: Position

    def __str__(self) -> str:
        where = f"{self.start.line}:{self.start.column}"
        return f"{self.source}:{where}" if self.source else where


class Node:
    type: ClassVar[str] = "node"


class Expression(Node):
    # -1: always fails, 0: unknown, 1: always matches (set by inference_match_result)
    match: Optional[int] = None


ClassPart = Union[str, Tuple[str, str]]


@dataclass
class Literal(Expression):
    type: ClassVar[str] = "literal"
    value: str
    ignore_case: bool = False
    location: Optional[Location] = None


@dataclass
class CharClass(Expression):
    """`[...]`. parts holds single characters and inclusive (lo, hi) ranges."""
    type: ClassVar[str] = "class"
    parts: List[ClassPart] = field(default_factory=list)
    inverted: bool = False
    ignore_case: bool = False
    location: Optional[Location] = None


@dataclass
class AnyChar(Expression):
    type: ClassVar[str] = "any"
    location: Optional[Location] = None


@dataclass
class RuleRef(Expression):
    type: ClassVar[str] = "rule_ref"
    name: str
    location: Optional[Location] = None


@dataclass
class Sequence(Expression):
    type: ClassVar[str] = "sequence"
    elements: List[Expression] = field(default_factory=list)
    location: Optional[Location] = None


@dataclass
class Choice(Expression):
    type: ClassVar[str] = "choice"
    alternatives: List[Expression] = field(default_factory=list)
    location: Optional[Location] = None


@dataclass
class Labeled(Expression):
    """`label:expr`, `@expr` or `@label:expr`. Auto labels may have no name."""
    type: ClassVar[str] = "labeled"
    label: Optional[str]
    expression: Expression
    auto: bool = False
    label_location: Optional[Location] = None
    location: Optional[Location] = None


@dataclass
class Text(Expression):
    type: ClassVar[str] = "text"
    expression: Expression
    location: Optional[Location] = None


@dataclass
class SimpleAnd(Expression):
    type: ClassVar[str] = "simple_and"
    expression: Expression
    location: Optional[Location] = None


@dataclass
class SimpleNot(Expression):
    type: ClassVar[str] = "simple_not"
    expression: Expression
    location: Optional[Location] = None


@dataclass
class OptionalExpr(Expression):
    type: ClassVar[str] = "optional"
    expression: Expression
    location: Optional[Location] = None


@dataclass
class ZeroOrMore(Expression):
    type: ClassVar[str] = "zero_or_more"
    expression: Expression
    location: Optional[Location] = None


@dataclass
class OneOrMore(Expression):
    type: ClassVar[str] = "one_or_more"
    expression: Expression
    location: Optional[Location] = None


@dataclass
class Boundary:
    """
    Range bound.
    - constant=True : value is an int, or None when the bound is absent (max only)
    - constant=False: value is the name of a label holding the bound at parse time
    """
    constant: bool
    value: Union[int, str, None]


@dataclass
class Range(Expression):
    type: ClassVar[str] = "range"
    expression: Expression
    min: Boundary
    max: Boundary
    delimiter: Optional[Expression] = None
    location: Optional[Location] = None


@dataclass
class Group(Expression):
    type: ClassVar[str] = "group"
    expression: Expression
    location: Optional[Location] = None


@dataclass
class Named(Expression):
    """Display-name wrapper produced by `rule "name" = ...`."""
    type: ClassVar[str] = "named"
    name: str
    expression: Expression
    location: Optional[Location] = None


@dataclass
class Action(Expression):
    type: ClassVar[str] = "action"
    expression: Expression
    code: str
    code_location: Optional[Location] = None
    location: Optional[Location] = None


@dataclass
class SemanticAnd(Expression):
    type: ClassVar[str] = "semantic_and"
    code: str
    location: Optional[Location] = None


@dataclass
class SemanticNot(Expression):
    type: ClassVar[str] = "semantic_not"
    code: str
    location: Optional[Location] = None


@dataclass
class Initializer(Node):
    type: ClassVar[str] = "initializer"
    code: str
    location: Optional[Location] = None


@dataclass
class Rule(Node):
    type: ClassVar[str] = "rule"
    name: str
    expression: Expression
    location: Optional[Location] = None
    name_location: Optional[Location] = None
    # annotations
    match: Optional[int] = field(default=None, compare=False)
    report_failures: Optional[bool] = field(default=None, compare=False)
    bytecode: Optional[List[int]] = field(default=None, compare=False, repr=False)


@dataclass
class Function:
    """Entry of the grammar's function table: user code plus the labels it sees."""
    predicate: bool
    params: List[str]
    body: str


@dataclass
class Grammar(Node):
    type: ClassVar[str] = "grammar"
    rules: List[Rule] = field(default_factory=list)
    initializer: Optional[Initializer] = None
    location: Optional[Location] = None
    # constant tables (generate_bytecode) and emitted code (generate_python)
    literals: Optional[List[str]] = field(default=None, compare=False, repr=False)
    classes: Optional[List[Dict]] = field(default=None, compare=False, repr=False)
    expectations: Optional[List[Dict]] = field(default=None, compare=False, repr=False)
    functions: Optional[List[Function]] = field(default=None, compare=False, repr=False)
    code: Optional[str] = field(default=None, compare=False, repr=False)

    def rule_names(self) -> List[str]:
        return [r.name for r in self.rules]
