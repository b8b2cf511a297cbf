# pegc/runtime.py
"""Runtime support imported by generated parsers.

A generated parser keeps all mutable parsing state in one `ParserState`:
- `pos`          current input offset
- `mark`         start offset of the match the running action/predicate sees
- `silent_fails` while > 0, `expect()` records nothing
- expectations   rightmost-failure bookkeeping, with nested namespaces used by
                 lookahead (`begin()` / `end(invert)`)

Expectation entries are plain dicts:
    {"type": "literal", "text": str, "ignore_case": bool}
    {"type": "class", "parts": [...], "inverted": bool, "ignore_case": bool}
    {"type": "any"} | {"type": "end"}
    {"type": "rule", "description": str} | {"type": "user", "description": str}
    {"type": "not", "expected": <entry>}
"""

from __future__ import annotations
import sys
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, TextIO, Tuple

import regex as re


class _Failed:
    def __repr__(self) -> str:
        return "FAILED"

    def __bool__(self) -> bool:
        return False


FAILED = _Failed()


# ---------- messages ----------

def _hex(ch: str) -> str:
    return f"{ord(ch):02X}"


def _literal_escape(s: str) -> str:
    out = []
    for ch in s:
        if ch == "\\":
            out.append("\\\\")
        elif ch == '"':
            out.append('\\"')
        elif ch == "\0":
            out.append("\\0")
        elif ch == "\t":
            out.append("\\t")
        elif ch == "\n":
            out.append("\\n")
        elif ch == "\r":
            out.append("\\r")
        elif ord(ch) < 0x20 or 0x7F <= ord(ch) <= 0x9F:
            out.append("\\x" + _hex(ch))
        else:
            out.append(ch)
    return "".join(out)


def _class_escape(s: str) -> str:
    return "".join("\\" + ch if ch in "]^-" else ch for ch in _literal_escape(s))


def describe_expectation(entry: Dict[str, Any]) -> str:
    kind = entry["type"]
    if kind == "literal":
        return f'"{_literal_escape(entry["text"])}"'
    if kind == "class":
        parts = []
        for part in entry["parts"]:
            if isinstance(part, str):
                parts.append(_class_escape(part))
            else:
                parts.append(f"{_class_escape(part[0])}-{_class_escape(part[1])}")
        return "[" + ("^" if entry["inverted"] else "") + "".join(parts) + "]"
    if kind == "any":
        return "any character"
    if kind == "end":
        return "end of input"
    if kind == "not":
        return "not " + describe_expectation(entry["expected"])
    return entry["description"]


def describe_found(found: Optional[str]) -> str:
    return f'"{_literal_escape(found)}"' if found is not None else "end of input"


def build_message(expected: List[Dict[str, Any]], found: Optional[str]) -> str:
    descriptions = sorted({describe_expectation(e) for e in expected})
    if not descriptions:
        return f"Unexpected {describe_found(found)}."
    if len(descriptions) == 1:
        listed = descriptions[0]
    elif len(descriptions) == 2:
        listed = f"{descriptions[0]} or {descriptions[1]}"
    else:
        listed = ", ".join(descriptions[:-1]) + ", or " + descriptions[-1]
    return f"Expected {listed} but {describe_found(found)} found."


# "\r\n" is one break; a lone "\r", U+2028 and U+2029 also end a line
_LINE_BREAK_RE = re.compile(r"\r\n|[\n\r\u2028\u2029]")


def _line_bounds(src: str, pos: int) -> Tuple[int, int]:
    start = 0
    for m in _LINE_BREAK_RE.finditer(src, 0, pos):
        start = m.end()
    m = _LINE_BREAK_RE.search(src, pos)
    end = len(src) if m is None else m.start()
    return start, end


class PegSyntaxError(SyntaxError):
    """Raised by generated parsers when the input does not match.

    `expected` entries use snake_case keys, so pegjs's `ignoreCase` is `ignore_case` here.
    """

    def __init__(self, message: str, expected: Optional[List[Dict[str, Any]]],
                 found: Optional[str], location: Dict[str, Any]):
        super().__init__(message)
        self.message = message
        self.expected = expected
        self.found = found
        self.location = location

    def __str__(self) -> str:
        return self.message

    def format(self, text: str) -> str:
        """Message plus the offending line of `text` with a caret under the error."""
        start = self.location["start"]
        begin, end = _line_bounds(text, start["offset"])
        where = f'{start["line"]}:{start["column"]}'
        if self.location.get("source"):
            where = f'{self.location["source"]}:{where}'
        caret = " " * (start["offset"] - begin) + "^"
        return f"Error: {self.message}\n --> {where}\n{text[begin:end]}\n{caret}"


# ---------- state ----------

@dataclass
class _Namespace:
    pos: int
    variants: List[Dict[str, Any]] = field(default_factory=list)


class ParserState:
    def __init__(self, input: str, source: Optional[str] = None):
        self.input = input
        self.source = source
        self.pos = 0
        self.mark = 0
        self.silent_fails = 0
        self._expected: List[_Namespace] = [_Namespace(0)]

    # matching primitives: each returns the matched text and advances, or FAILED

    def match_any(self):
        if self.pos < len(self.input):
            ch = self.input[self.pos]
            self.pos += 1
            return ch
        return FAILED

    def match_char(self, ch: str):
        if self.pos < len(self.input) and self.input[self.pos] == ch:
            self.pos += 1
            return ch
        return FAILED

    def match_literal(self, literal: str):
        if self.input.startswith(literal, self.pos):
            self.pos += len(literal)
            return literal
        return FAILED

    def match_literal_ic(self, lowered: str):
        chunk = self.input[self.pos:self.pos + len(lowered)]
        if chunk.lower() == lowered:
            self.pos += len(chunk)
            return chunk
        return FAILED

    def match_class(self, pattern):
        """`pattern` is a compiled single-character `regex` pattern."""
        if self.pos < len(self.input) and pattern.match(self.input, self.pos):
            ch = self.input[self.pos]
            self.pos += 1
            return ch
        return FAILED

    # expectations

    def expect(self, entry: Dict[str, Any]) -> None:
        if self.silent_fails > 0:
            return
        top = self._expected[-1]
        if self.pos < top.pos:
            return
        if self.pos > top.pos:
            top.pos = self.pos
            top.variants = []
        top.variants.append(entry)

    def begin(self) -> None:
        self._expected.append(_Namespace(self.pos))

    def end(self, invert: bool) -> None:
        ns = self._expected.pop()
        top = self._expected[-1]
        variants = [_invert(e) for e in ns.variants] if invert else ns.variants
        if ns.pos > top.pos:
            top.pos = ns.pos
            top.variants = list(variants)
        elif ns.pos == top.pos:
            top.variants.extend(variants)

    # helpers available to user code

    def text(self) -> str:
        return self.input[self.mark:self.pos]

    def offset(self) -> int:
        return self.mark

    def range(self) -> List[int]:
        return [self.mark, self.pos]

    def location(self) -> Dict[str, Any]:
        return self.compute_location(self.mark, self.pos)

    def expected(self, description: str, location: Optional[Dict[str, Any]] = None):
        expected = [{"type": "user", "description": description}]
        found = self.input[self.mark:self.pos]
        raise PegSyntaxError(
            build_message(expected, found), expected, found,
            location if location is not None else self.location(),
        )

    def error(self, message: str, location: Optional[Dict[str, Any]] = None):
        raise PegSyntaxError(message, None, None, location if location is not None else self.location())

    def position_details(self, pos: int) -> Dict[str, int]:
        line, line_start = 1, 0
        for m in _LINE_BREAK_RE.finditer(self.input, 0, pos):
            line += 1
            line_start = m.end()
        return {"offset": pos, "line": line, "column": pos - line_start + 1}

    def compute_location(self, start: int, end: int) -> Dict[str, Any]:
        return {
            "source": self.source,
            "start": self.position_details(start),
            "end": self.position_details(end),
        }

    # driver

    def parse(self, rule: Callable[[], Any]):
        result = rule()
        if result is not FAILED and self.pos == len(self.input):
            return result
        if result is not FAILED and self.pos < len(self.input):
            self.expect({"type": "end"})

        top = self._expected[0]
        expected: List[Dict[str, Any]] = []
        for entry in top.variants:
            if entry not in expected:
                expected.append(entry)
        found = self.input[top.pos] if top.pos < len(self.input) else None
        location = self.compute_location(top.pos, top.pos + 1 if found is not None else top.pos)
        raise PegSyntaxError(build_message(expected, found), expected, found, location)


def _invert(entry: Dict[str, Any]) -> Dict[str, Any]:
    if entry["type"] == "not":
        return entry["expected"]
    return {"type": "not", "expected": entry}


class DefaultTracer:
    """Prints one line per rule event: location, event type and the indented rule name."""

    def __init__(self, stream: Optional[TextIO] = None):
        self.stream = stream
        self.indent = 0

    def _log(self, event: Dict[str, Any]) -> None:
        loc = event["location"]
        span = (f'{loc["start"]["line"]}:{loc["start"]["column"]}-'
                f'{loc["end"]["line"]}:{loc["end"]["column"]}')
        stream = self.stream if self.stream is not None else sys.stderr
        print(f'{span:<20} {event["type"]:<10} {"  " * self.indent}{event["rule"]}', file=stream)

    def trace(self, event: Dict[str, Any]) -> None:
        if event["type"] == "rule.enter":
            self._log(event)
            self.indent += 1
        else:
            self.indent -= 1
            self._log(event)
