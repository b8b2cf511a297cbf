# pegc/grammar/parser.py
from __future__ import annotations
import bisect
import keyword
import regex as re
from typing import List, Optional, Tuple

from ..errors import GrammarSyntaxError
from .ast import (
    Action, AnyChar, Boundary, CharClass, Choice, ClassPart, Expression, Grammar, Group,
    Initializer, Labeled, Literal, Location, Named, OneOrMore, OptionalExpr, Position,
    Range, Rule, RuleRef, SemanticAnd, SemanticNot, Sequence, SimpleAnd, SimpleNot,
    Text, ZeroOrMore,
)

# Grammar we parse:
#   grammar   := initializer? rule+
#   initializer := code ";"?
#   rule      := IDENT STRING? "=" choice ";"?
#   choice    := action ("/" action)*
#   action    := sequence code?
#   sequence  := labeled+
#   labeled   := "@" (IDENT ":")? prefixed
#              | IDENT ":" prefixed
#              | prefixed
#   prefixed  := ("&" | "!") code
#              | ("$" | "&" | "!") suffixed
#              | suffixed
#   suffixed  := primary ("?" | "*" | "+" | range)?
#   range     := "|" bound? ".." bound? ("," choice)? "|"
#              | "|" bound ("," choice)? "|"
#   bound     := INTEGER | IDENT
#   primary   := literal | class | "." | IDENT | "(" choice ")"
#
#   literal   := ' ... ' | " ... "   followed by optional "i"
#   class     := "[" "^"? (char ("-" char)?)* "]"   followed by optional "i"
#   code      := "{" balanced braces "}"
#   comments  : "//" ... endline, "#" ... endline, "/*" ... "*/"

_IDENT_RE = re.compile(r"[\p{ID_Start}_][\p{ID_Continue}]*")
_INT_RE = re.compile(r"[0-9]+")

_ESCAPES = {
    "n": "\n", "r": "\r", "t": "\t", "b": "\b", "f": "\f", "v": "\v", "0": "\0",
    "\\": "\\", "'": "'", '"': '"',
}


def _line_bounds(src: str, pos: int) -> Tuple[int, int]:
    start = src.rfind("\n", 0, pos)
    start = 0 if start == -1 else start + 1
    end = src.find("\n", pos)
    end = len(src) if end == -1 else end
    return start, end


def _snippet_caret_at_pos(src: str, pos: int) -> str:
    start, end = _line_bounds(src, pos)
    caret = " " * (pos - start) + "^"
    return f"{src[start:end]}\n{caret}"


class _TS:
    def __init__(self, src: str, source: Optional[str] = None):
        self.s = src
        self.i = 0
        self.n = len(src)
        self.source = source
        self._line_starts = [0] + [m.end() for m in re.finditer("\n", src)]
        self._in_delimiter = False

    # ---------- positions ----------

    def _position(self, offset: int) -> Position:
        line = bisect.bisect_right(self._line_starts, offset)
        return Position(offset, line, offset - self._line_starts[line - 1] + 1)

    def _loc(self, start: int, end: Optional[int] = None) -> Location:
        return Location(self.source, self._position(start), self._position(self.i if end is None else end))

    def _err(self, msg: str, pos: Optional[int] = None) -> GrammarSyntaxError:
        pos = self.i if pos is None else pos
        where = self._position(pos)
        return GrammarSyntaxError(
            f"{msg} at {where.line}:{where.column}\n{_snippet_caret_at_pos(self.s, pos)}",
            self._loc(pos, pos),
        )

    # ---------- characters ----------

    def _peek(self, k: int = 0) -> Optional[str]:
        j = self.i + k
        if j >= self.n:
            return None
        return self.s[j]

    def _starts(self, lit: str) -> bool:
        return self.s.startswith(lit, self.i)

    def _bump(self, n: int = 1) -> None:
        self.i += n

    def _eof(self) -> bool:
        return self.i >= self.n

    def _skip_ws(self) -> None:
        while not self._eof():
            if self._starts("/*"):
                j = self.s.find("*/", self.i + 2)
                if j == -1:
                    raise self._err("Unclosed block comment")
                self.i = j + 2
                continue
            ch = self._peek()
            if ch in " \t\r\n\f\v\ufeff":
                self._bump(1)
                continue
            if self._starts("//") or ch == "#":
                while not self._eof() and self._peek() != "\n":
                    self._bump(1)
                continue
            break

    def _eat(self, lit: str) -> None:
        self._skip_ws()
        if not self._starts(lit):
            found = self._peek()
            found = "end of input" if found is None else repr(found)
            raise self._err(f"Expected {lit!r}, found {found}")
        self._bump(len(lit))

    def _try_eat(self, lit: str) -> bool:
        self._skip_ws()
        if self._starts(lit):
            self._bump(len(lit))
            return True
        return False

    def _ident(self) -> str:
        self._skip_ws()
        m = _IDENT_RE.match(self.s, self.i)
        if not m:
            raise self._err("Expected identifier")
        self.i = m.end()
        return m.group(0)

    def _looking_at_ident(self) -> bool:
        self._skip_ws()
        return _IDENT_RE.match(self.s, self.i) is not None

    def _looking_at_rule_head(self) -> bool:
        """IDENT STRING? "=" ahead; position is restored."""
        save = self.i
        try:
            if not self._looking_at_ident():
                return False
            self._ident()
            self._skip_ws()
            if self._peek() in ("'", '"'):
                self._string()
                self._skip_ws()
            return self._starts("=")
        except GrammarSyntaxError:
            return False
        finally:
            self.i = save

    def _looking_at_label(self) -> bool:
        save = self.i
        try:
            if not self._looking_at_ident():
                return False
            self._ident()
            self._skip_ws()
            return self._starts(":")
        finally:
            self.i = save

    # ---------- lexical pieces ----------

    def _read_escape(self) -> str:
        c = self._peek()
        if c is None:
            raise self._err("Unterminated escape sequence")
        if c in _ESCAPES:
            self._bump(1)
            return _ESCAPES[c]
        if c in "xu":
            width = 2 if c == "x" else 4
            digits = self.s[self.i + 1:self.i + 1 + width]
            if len(digits) != width or any(d not in "0123456789abcdefABCDEF" for d in digits):
                raise self._err(f"Invalid \\{c} escape")
            self._bump(1 + width)
            return chr(int(digits, 16))
        # any other escaped character stands for itself
        self._bump(1)
        return c

    def _string(self) -> str:
        q = self._peek()
        start = self.i
        self._bump(1)
        out = []
        while True:
            c = self._peek()
            if c is None or c == "\n":
                raise self._err("Unterminated string literal", start)
            self._bump(1)
            if c == q:
                break
            out.append(self._read_escape() if c == "\\" else c)
        return "".join(out)

    def _ignore_case_flag(self) -> bool:
        # the flag must follow the closing quote/bracket directly
        if self._peek() == "i" and not _IDENT_RE.match(self.s, self.i + 1):
            self._bump(1)
            return True
        return False

    def _literal(self) -> Literal:
        start = self.i
        value = self._string()
        ignore_case = self._ignore_case_flag()
        return Literal(value, ignore_case, location=self._loc(start))

    def _class_char(self) -> str:
        c = self._peek()
        if c is None or c == "\n":
            raise self._err("Unterminated character class")
        self._bump(1)
        return self._read_escape() if c == "\\" else c

    def _class(self) -> CharClass:
        start = self.i
        self._bump(1)
        inverted = False
        if self._peek() == "^":
            inverted = True
            self._bump(1)
        parts: List[ClassPart] = []
        while self._peek() != "]":
            part_start = self.i
            lo = self._class_char()
            if self._peek() == "-" and self._peek(1) not in ("]", None):
                self._bump(1)
                hi = self._class_char()
                if lo > hi:
                    raise self._err(f"Invalid character range: {lo}-{hi}.", part_start)
                parts.append((lo, hi))
            else:
                parts.append(lo)
        self._bump(1)
        ignore_case = self._ignore_case_flag()
        return CharClass(parts, inverted, ignore_case, location=self._loc(start))

    def _code(self) -> Tuple[str, Location]:
        """`{ ... }` with nested braces; braces inside Python strings/comments don't count."""
        self._skip_ws()
        start = self.i
        if self._peek() != "{":
            raise self._err("Expected code block")
        self._bump(1)
        depth = 1
        quote: Optional[str] = None
        while not self._eof():
            ch = self._peek()
            if quote is not None:
                if ch == "\\":
                    self._bump(2)
                    continue
                if ch == quote:
                    quote = None
                self._bump(1)
                continue
            if ch in ("'", '"'):
                quote = ch
            elif ch == "#":
                j = self.s.find("\n", self.i)
                self.i = self.n if j == -1 else j
                continue
            elif ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    self._bump(1)
                    return self.s[start + 1:self.i - 1], self._loc(start + 1, self.i - 1)
            self._bump(1)
        raise self._err("Unterminated code block", start)

    # ---------- grammar ----------

    def parse_grammar(self) -> Grammar:
        self._skip_ws()
        start = self.i
        initializer = None
        if self._peek() == "{":
            code, code_loc = self._code()
            initializer = Initializer(code, location=self._loc(code_loc.start.offset - 1))
            self._try_eat(";")
        rules: List[Rule] = []
        while True:
            self._skip_ws()
            if self._eof():
                break
            rules.append(self._rule())
        if not rules:
            raise self._err("Grammar must contain at least one rule")
        return Grammar(rules, initializer, location=self._loc(start))

    def _rule(self) -> Rule:
        self._skip_ws()
        start = self.i
        name = self._ident()
        name_loc = self._loc(start)
        self._skip_ws()
        display_name = None
        display_start = self.i
        if self._peek() in ("'", '"'):
            display_name = self._string()
        self._eat("=")
        expression = self._choice()
        if display_name is not None:
            expression = Named(display_name, expression, location=self._loc(display_start))
        rule = Rule(name, expression, location=self._loc(start), name_location=name_loc)
        self._try_eat(";")
        return rule

    def _choice(self) -> Expression:
        self._skip_ws()
        start = self.i
        alternatives = [self._action()]
        while self._try_eat("/"):
            alternatives.append(self._action())
        if len(alternatives) == 1:
            return alternatives[0]
        return Choice(alternatives, location=self._loc(start))

    def _action(self) -> Expression:
        self._skip_ws()
        start = self.i
        expression = self._sequence()
        self._skip_ws()
        if self._peek() == "{":
            code, code_loc = self._code()
            return Action(expression, code, code_location=code_loc, location=self._loc(start))
        return expression

    def _sequence_ends(self) -> bool:
        self._skip_ws()
        ch = self._peek()
        if ch is None or ch in ")/;{|,":
            return True
        return self._looking_at_rule_head()

    def _sequence(self) -> Expression:
        self._skip_ws()
        start = self.i
        elements: List[Expression] = []
        while not self._sequence_ends():
            elements.append(self._labeled())
        if not elements:
            raise self._err("Expected expression")
        if len(elements) == 1 and not (isinstance(elements[0], Labeled) and elements[0].auto):
            return elements[0]
        return Sequence(elements, location=self._loc(start))

    def _label_name(self) -> Tuple[str, Location]:
        self._skip_ws()
        start = self.i
        label = self._ident()
        if keyword.iskeyword(label):
            raise self._err(f'Label can\'t be a reserved word "{label}".', start)
        loc = self._loc(start)
        self._eat(":")
        return label, loc

    def _labeled(self) -> Expression:
        self._skip_ws()
        start = self.i
        if self._peek() == "@":
            self._bump(1)
            label, label_loc = None, None
            if self._looking_at_label():
                label, label_loc = self._label_name()
            expression = self._prefixed()
            return Labeled(label, expression, auto=True, label_location=label_loc, location=self._loc(start))
        if self._looking_at_label():
            label, label_loc = self._label_name()
            expression = self._prefixed()
            return Labeled(label, expression, label_location=label_loc, location=self._loc(start))
        return self._prefixed()

    def _prefixed(self) -> Expression:
        self._skip_ws()
        start = self.i
        ch = self._peek()
        if ch in ("&", "!"):
            self._bump(1)
            self._skip_ws()
            if self._peek() == "{":
                code, _ = self._code()
                node = SemanticAnd if ch == "&" else SemanticNot
                return node(code, location=self._loc(start))
            expression = self._suffixed()
            node = SimpleAnd if ch == "&" else SimpleNot
            return node(expression, location=self._loc(start))
        if ch == "$":
            self._bump(1)
            return Text(self._suffixed(), location=self._loc(start))
        return self._suffixed()

    def _suffixed(self) -> Expression:
        self._skip_ws()
        start = self.i
        expression = self._primary()
        self._skip_ws()
        ch = self._peek()
        if ch == "?":
            self._bump(1)
            return OptionalExpr(expression, location=self._loc(start))
        if ch == "*":
            self._bump(1)
            return ZeroOrMore(expression, location=self._loc(start))
        if ch == "+":
            self._bump(1)
            return OneOrMore(expression, location=self._loc(start))
        if ch == "|" and not self._in_delimiter:
            return self._range(expression, start)
        return expression

    def _bound(self) -> Optional[Boundary]:
        self._skip_ws()
        m = _INT_RE.match(self.s, self.i)
        if m:
            self.i = m.end()
            return Boundary(True, int(m.group(0)))
        if self._looking_at_ident():
            return Boundary(False, self._ident())
        return None

    def _range(self, expression: Expression, start: int) -> Range:
        self._bump(1)
        self._skip_ws()
        low_at = self.i
        low = self._bound()
        if self._try_eat(".."):
            self._skip_ws()
            high_at = self.i
            high = self._bound()
            low = low if low is not None else Boundary(True, 0)
            high = high if high is not None else Boundary(True, None)
        elif low is not None:
            high, high_at = low, low_at
        else:
            raise self._err("Expected range boundary or '..'")
        if high.constant and high.value == 0:
            raise self._err("The maximum count of repetitions must be greater than 0", high_at)
        if low.constant and high.constant and high.value is not None and low.value > high.value:
            raise self._err(
                f"The minimum count of repetitions ({low.value}) exceeds the maximum ({high.value})", low_at,
            )
        delimiter = None
        if self._try_eat(","):
            # a bare "|" closes the range instead of opening a nested one
            outer, self._in_delimiter = self._in_delimiter, True
            delimiter = self._choice()
            self._in_delimiter = outer
        self._eat("|")
        return Range(expression, low, high, delimiter, location=self._loc(start))

    def _primary(self) -> Expression:
        self._skip_ws()
        start = self.i
        ch = self._peek()
        if ch in ("'", '"'):
            return self._literal()
        if ch == "[":
            return self._class()
        if ch == ".":
            self._bump(1)
            return AnyChar(location=self._loc(start))
        if ch == "(":
            self._bump(1)
            outer, self._in_delimiter = self._in_delimiter, False
            expression = self._choice()
            self._in_delimiter = outer
            self._eat(")")
            if isinstance(expression, (Sequence, Labeled)):
                return Group(expression, location=self._loc(start))
            return expression
        if self._looking_at_ident():
            name = self._ident()
            return RuleRef(name, location=self._loc(start))
        found = "end of input" if ch is None else repr(ch)
        raise self._err(f"Expected expression, found {found}")


def parse_grammar(text: str, source: Optional[str] = None) -> Grammar:
    """Parse grammar text into a Grammar AST. Raises GrammarSyntaxError."""
    ts = _TS(text, source)
    return ts.parse_grammar()
