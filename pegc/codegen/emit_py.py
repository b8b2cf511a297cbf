# pegc/codegen/emit_py.py
"""Python code emitter (the `generate_python` pass).

Overview
--------
- Reads `rule.bytecode` and the grammar's constant tables and stores the text of a
  Python module in `ast.code`.
- Every rule becomes a nested function `parse_<rule>()`. Result/position stack slots
  become its locals (`r0..`, `p0..`) via `Stack`; conditions become `if`, loops become
  `while True:`. Stack balance is checked while emitting.
- Constant tables become module globals:
    _c<i>  literal strings
    _r<i>  compiled `regex` single-character patterns
    _e<i>  expectation dicts (see pegc.runtime)
    _f<i>  user functions, defined inside `_init()` so that they close over the
           initializer's names
- `_define()` builds the rule functions over one `ParserState` and returns the
  start-rule table; `parse(input, **options)` is the public entry point.

Options honoured: cache, trace, allowed_start_rules, format, dependencies, export_var.
"""

from __future__ import annotations
import textwrap
from typing import Dict, List, Optional, Tuple

from ..compiler import asts
from ..compiler.options import CompileOptions
from ..errors import InternalInvariantError
from ..grammar.ast import Grammar, Rule
from ..version import VERSION
from .opcodes import CONDITIONS, Op
from .stack import Stack

INDENT = "    "


# ---------- utils ----------

def _indent(lines: List[str], depth: int = 1) -> List[str]:
    pad = INDENT * depth
    return [pad + line if line else line for line in lines]


def _block(lines: List[str]) -> List[str]:
    return _indent(lines if lines else ["pass"])


def user_code_lines(code: str) -> List[str]:
    """
    Normalize a `{ ... }` code block into lines indented from column 0.
    Code may start right after the brace; the following lines keep their relative
    indentation (and are nested under the first line when it opens a block).
    """
    first, _, rest = code.partition("\n")
    first = first.strip()
    rest_lines = textwrap.dedent(rest).strip("\n").splitlines() if rest.strip() else []
    rest_lines = [line.rstrip() for line in rest_lines]
    if not first:
        return rest_lines
    if first.endswith(":"):
        return [first] + _indent(rest_lines)
    return [first] + rest_lines


def _class_escape(ch: str) -> str:
    if ch in "\\]^-[":
        return "\\" + ch
    if not ch.isprintable() or ch.isspace():
        return f"\\x{{{ord(ch):X}}}"
    return ch


def class_pattern(cls: Dict) -> str:
    """`regex` pattern text for a class-table entry."""
    parts = []
    for part in cls["value"]:
        if isinstance(part, str):
            parts.append(_class_escape(part))
        else:
            parts.append(f"{_class_escape(part[0])}-{_class_escape(part[1])}")
    return "[" + ("^" if cls["inverted"] else "") + "".join(parts) + "]"


def _expectation(e: Dict) -> Dict:
    """Class/literal table entry -> runtime expectation entry."""
    kind = e["type"]
    if kind == "rule":
        return {"type": "rule", "description": e["value"]}
    if kind == "literal":
        return {"type": "literal", "text": e["value"], "ignore_case": e["ignore_case"]}
    if kind == "class":
        return {"type": "class", "parts": list(e["value"]),
                "inverted": e["inverted"], "ignore_case": e["ignore_case"]}
    if kind == "any":
        return {"type": "any"}
    raise ValueError(f"Unknown expectation type ({e!r})")


# ---------- rule functions ----------

class RuleEmitter:
    """Translates the bytecode of one rule into the body of its parse function."""

    def __init__(self, ast: Grammar, rule: Rule):
        self.ast = ast
        self.rule = rule
        self.bc = rule.bytecode
        self.res = Stack(rule.name, "r")
        self.pos = Stack(rule.name, "p")
        self.stacks = [self.res, self.pos]
        self.loops: List[List[Tuple[int, ...]]] = []

    def emit(self) -> List[str]:
        lines, _ = self.compile(0, len(self.bc))
        return lines

    def compile(self, start: int, end: int) -> Tuple[List[str], bool]:
        """Compile bc[start:end]; the flag tells whether the block ends in a `break`."""
        bc, res, pos = self.bc, self.res, self.pos
        lines: List[str] = []
        jumps = False
        ip = start
        while ip < end:
            op = bc[ip]
            jumps = False
            if op == Op.PUSH_EMPTY_STRING:
                lines.append(res.push("''"))
                ip += 1
            elif op in (Op.PUSH_UNDEFINED, Op.PUSH_NULL):
                lines.append(res.push("None"))
                ip += 1
            elif op == Op.PUSH_FAILED:
                lines.append(res.push("FAILED"))
                ip += 1
            elif op == Op.PUSH_EMPTY_ARRAY:
                lines.append(res.push("[]"))
                ip += 1
            elif op == Op.POP:
                res.pop()
                ip += 1
            elif op == Op.BREAK:
                res.fork(lambda: self.compile_break(ip, lines))
                jumps = True
                ip += 2
            elif op == Op.GET:
                value = res.index(bc[ip + 2])
                res.pop(bc[ip + 1])
                line = res.push(value)
                if res.top() != value:
                    lines.append(line)
                ip += 3
            elif op == Op.APPEND:
                value = res.pop()
                lines.append(f"{res.top()}.append({value})")
                ip += 1
            elif op == Op.WRAP:
                lines.append(res.push("[" + ", ".join(res.pop(bc[ip + 1])) + "]"))
                ip += 2
            elif op == Op.WRAP_SOME:
                count = bc[ip + 2]
                values = [res.index(p) for p in bc[ip + 3:ip + 3 + count]]
                res.pop(bc[ip + 1])
                lines.append(res.push("[" + ", ".join(values) + "]"))
                ip += 3 + count
            elif op == Op.TEXT:
                res.pop()
                lines.append(res.push(f"state.input[{pos.top()}:state.pos]"))
                ip += 1
            elif op == Op.PUSH_CURR_POS:
                lines.append(pos.push("state.pos"))
                ip += 1
            elif op == Op.LOAD_CURR_POS:
                lines.append(f"state.pos = {pos.top()}")
                ip += 1
            elif op == Op.POP_POS:
                pos.pop()
                ip += 1
            elif op in CONDITIONS:
                ip, jumps = self.compile_condition(ip, lines)
            elif op == Op.LOOP:
                ip = self.compile_loop(ip, lines)
            elif op == Op.MATCH_ANY:
                lines.append(res.push("state.match_any()"))
                ip += 1
            elif op == Op.MATCH_LITERAL:
                index = bc[ip + 1]
                if len(self.ast.literals[index]) == 1:
                    lines.append(res.push(f"state.match_char(_c{index})"))
                else:
                    lines.append(res.push(f"state.match_literal(_c{index})"))
                ip += 2
            elif op == Op.MATCH_LITERAL_IC:
                lines.append(res.push(f"state.match_literal_ic(_c{bc[ip + 1]})"))
                ip += 2
            elif op == Op.MATCH_CLASS:
                lines.append(res.push(f"state.match_class(_r{bc[ip + 1]})"))
                ip += 2
            elif op == Op.ACCEPT_N:
                n = bc[ip + 1]
                if n > 1:
                    lines.append(res.push(f"state.input[state.pos:state.pos + {n}]"))
                else:
                    lines.append(res.push("state.input[state.pos]"))
                lines.append(f"state.pos += {n}")
                ip += 2
            elif op == Op.ACCEPT_STRING:
                index = bc[ip + 1]
                lines.append(res.push(f"_c{index}"))
                lines.append(f"state.pos += {len(self.ast.literals[index])}")
                ip += 2
            elif op == Op.EXPECT:
                lines.append(f"state.expect(_e{bc[ip + 1]})")
                ip += 2
            elif op == Op.LOAD_SAVED_POS:
                lines.append(f"state.mark = {pos.top()}")
                ip += 1
            elif op == Op.UPDATE_SAVED_POS:
                lines.append("state.mark = state.pos")
                ip += 1
            elif op == Op.CALL:
                count = bc[ip + 3]
                args = [res.index(p) for p in bc[ip + 4:ip + 4 + count]]
                res.pop(bc[ip + 2])
                lines.append(res.push(f"_f{bc[ip + 1]}({', '.join(args)})"))
                ip += 4 + count
            elif op == Op.RULE:
                lines.append(res.push(f"parse_{self.ast.rules[bc[ip + 1]].name}()"))
                ip += 2
            elif op == Op.SILENT_FAILS_ON:
                lines.append("state.silent_fails += 1")
                ip += 1
            elif op == Op.SILENT_FAILS_OFF:
                lines.append("state.silent_fails -= 1")
                ip += 1
            elif op == Op.EXPECT_NS_BEGIN:
                lines.append("state.begin()")
                ip += 1
            elif op == Op.EXPECT_NS_END:
                lines.append(f"state.end({bool(bc[ip + 1])})")
                ip += 2
            else:
                raise InternalInvariantError(self.rule.name, ip, f"Invalid opcode {op}.")
        return lines, jumps

    def compile_break(self, ip: int, lines: List[str]) -> None:
        n = self.bc[ip + 1]
        if n > 0:
            self.res.pop(n)
            lines.append(self.res.push("FAILED"))
        if not self.loops:
            raise InternalInvariantError(self.rule.name, ip, "BREAK outside of a loop.")
        self.loops[-1].append(Stack.depths(self.stacks))
        lines.append("break")

    def condition(self, op: int, ip: int) -> str:
        top = self.res.top()
        if op == Op.IF:
            return top
        if op == Op.IF_ERROR:
            return f"{top} is FAILED"
        if op == Op.IF_NOT_ERROR:
            return f"{top} is not FAILED"
        if op == Op.IF_LT:
            return f"len({top}) < {self.bc[ip + 1]}"
        if op == Op.IF_GE:
            return f"len({top}) >= {self.bc[ip + 1]}"
        if op == Op.IF_LT_DYNAMIC:
            return f"len({top}) < {self.res.index(self.bc[ip + 1])}"
        return f"len({top}) >= {self.res.index(self.bc[ip + 1])}"

    def compile_condition(self, ip: int, lines: List[str]) -> Tuple[int, bool]:
        bc = self.bc
        argc = CONDITIONS[bc[ip]]
        cond = self.condition(bc[ip], ip)
        then_start = ip + argc + 3
        else_start = then_start + bc[ip + argc + 1]
        else_end = else_start + bc[ip + argc + 2]
        arms: Dict[str, List[str]] = {}

        def generate_then() -> bool:
            arms["then"], jumps = self.compile(then_start, else_start)
            return jumps

        def generate_else() -> bool:
            arms["else"], jumps = self.compile(else_start, else_end)
            return jumps

        jumps = Stack.checked_if(self.stacks, ip, generate_then,
                                 generate_else if else_end > else_start else None)
        lines.append(f"if {cond}:")
        lines.extend(_block(arms["then"]))
        if arms.get("else"):
            lines.append("else:")
            lines.extend(_block(arms["else"]))
        return else_end, jumps

    def compile_loop(self, ip: int, lines: List[str]) -> int:
        infinite = bool(self.bc[ip + 1])
        body_start = ip + 3
        body_end = body_start + self.bc[ip + 2]
        body: List[str] = []
        state = {"jumps": False}

        def generate_body(exits) -> bool:
            self.loops.append(exits)
            code, state["jumps"] = self.compile(body_start, body_end)
            self.loops.pop()
            body.extend(code)
            return state["jumps"]

        balanced = self.stacks if infinite else [self.pos]
        Stack.checked_loop(self.stacks, ip, generate_body, balanced)

        lines.append("while True:")
        if not infinite and not state["jumps"]:
            body.append("break")
        lines.extend(_block(body))
        return body_end


def _trace_call(kind: str, rule_name: str, result: Optional[str] = None, end: str = "start_pos") -> str:
    fields = [f'"type": "{kind}"', f'"rule": {rule_name!r}']
    if result is not None:
        fields.append(f'"result": {result}')
    fields.append(f'"location": state.compute_location(start_pos, {end})')
    return "tracer.trace({" + ", ".join(fields) + "})"


def _trace_result(rule_name: str, result: str) -> List[str]:
    return [
        f"if {result} is not FAILED:",
        INDENT + _trace_call("rule.match", rule_name, result, "state.pos"),
        "else:",
        INDENT + _trace_call("rule.fail", rule_name),
    ]


def generate_rule_function(ast: Grammar, rule: Rule, options: CompileOptions) -> List[str]:
    emitter = RuleEmitter(ast, rule)
    code = emitter.emit()
    result = emitter.res.result()
    index = asts.index_of_rule(ast, rule.name)

    body: List[str] = []
    if options.trace:
        body.append("start_pos = state.pos")
    for stack in emitter.stacks:
        if stack.defines():
            body.append(stack.defines())
    if options.trace:
        body.append(_trace_call("rule.enter", rule.name))
    if options.cache:
        body.append(f"key = state.pos * {len(ast.rules)} + {index}")
        body.append("cached = _cache.get(key)")
        body.append("if cached is not None:")
        hit = ["state.pos = cached[0]"]
        if options.trace:
            hit.extend(_trace_result(rule.name, "cached[1]"))
        hit.append("return cached[1]")
        body.extend(_indent(hit))
        body.append("")
    body.extend(code)
    if options.cache:
        body.append(f"_cache[key] = (state.pos, {result})")
    if options.trace:
        body.extend(_trace_result(rule.name, result))
    body.append(f"return {result}")

    return [f"def parse_{rule.name}():"] + _indent(body)


# ---------- module ----------

def _generate_tables(ast: Grammar) -> List[str]:
    lines: List[str] = []
    for i, literal in enumerate(ast.literals):
        lines.append(f"_c{i} = {literal!r}")
    for i, cls in enumerate(ast.classes):
        flags = ", regex.IGNORECASE" if cls["ignore_case"] else ""
        lines.append(f"_r{i} = regex.compile({class_pattern(cls)!r}{flags})")
    for i, e in enumerate(ast.expectations):
        lines.append(f"_e{i} = {_expectation(e)!r}")
    return lines


def _generate_init(ast: Grammar) -> List[str]:
    body = [
        "text = state.text",
        "offset = state.offset",
        "location = state.location",
        "expected = state.expected",
        "error = state.error",
    ]
    if ast.initializer is not None:
        body.append("")
        body.extend(user_code_lines(ast.initializer.code))
    for i, func in enumerate(ast.functions):
        body.append("")
        body.append(f"def _f{i}({', '.join(func.params)}):")
        body.extend(_block(user_code_lines(func.body)))
    body.append("")
    names = "".join(f"_f{i}, " for i in range(len(ast.functions)))
    body.append(f"return ({names.rstrip()})" if names else "return ()")
    return ["def _init(input, options, state):"] + _indent(body)


def _generate_define(ast: Grammar, options: CompileOptions) -> List[str]:
    body: List[str] = []
    if ast.functions:
        body.append("".join(f"_f{i}, " for i in range(len(ast.functions))) + "= functions")
    if options.cache:
        body.append("_cache = {}")
    if options.trace:
        body.append('tracer = options.get("tracer") or DefaultTracer()')
    for rule in ast.rules:
        body.append("")
        body.extend(generate_rule_function(ast, rule, options))
    body.append("")
    body.append("return {")
    for name in options.allowed_start_rules:
        body.append(f"{INDENT}{name!r}: parse_{name},")
    body.append("}")
    return ["def _define(state, options, functions):"] + _indent(body)


def _generate_parse(options: CompileOptions) -> List[str]:
    default = options.allowed_start_rules[0] if options.allowed_start_rules else None
    return f"""
_START_RULES = {tuple(options.allowed_start_rules)!r}


def parse(input, **options):
    start_rule = options.get("start_rule", {default!r})
    if start_rule not in _START_RULES:
        raise ValueError(f"Can't start parsing from rule \\"{{start_rule}}\\".")

    state = ParserState(input, options.get("source"))
    functions = _init(input, options, state)
    rules = _define(state, options, functions)
    return state.parse(rules[start_rule])


SyntaxError = PegSyntaxError
""".strip("\n").splitlines()


def generate_toplevel(ast: Grammar, options: CompileOptions) -> List[str]:
    imports = ["from pegc.runtime import FAILED, DefaultTracer, ParserState, PegSyntaxError"]
    if ast.classes:
        imports.insert(0, "import regex")
        imports.insert(1, "")
    lines = imports + [""]
    tables = _generate_tables(ast)
    if tables:
        lines += tables + [""]
    lines += [""] + _generate_init(ast)
    lines += ["", ""] + _generate_define(ast, options)
    lines += ["", ""] + _generate_parse(options)
    return lines


def _header() -> List[str]:
    return [f"# Generated by pegc {VERSION}", "#", "# Do not edit: regenerate from the grammar instead.", ""]


def wrap_bare(toplevel: List[str], options: CompileOptions) -> List[str]:
    return _header() + toplevel


def wrap_module(toplevel: List[str], options: CompileOptions) -> List[str]:
    lines = _header()
    lines.append('"""Parser module generated from a PEG grammar."""')
    lines.append("")
    if options.export_var is not None:
        lines.append("import types")
    for var, path in options.dependencies.items():
        module, _, attr = path.rpartition(".")
        if var == path:
            lines.append(f"import {path}")
        elif module and var == attr:
            lines.append(f"from {module} import {attr}")
        else:
            lines.append(f"import {path} as {var}")
    if options.export_var is not None or options.dependencies:
        lines.append("")
    lines.extend(toplevel)
    lines.append("")
    lines.append('__all__ = ["parse", "SyntaxError", "PegSyntaxError"]')
    if options.export_var is not None:
        lines.append("")
        lines.append(f"{options.export_var} = types.SimpleNamespace(parse=parse, SyntaxError=PegSyntaxError)")
        lines.append(f'__all__.append("{options.export_var}")')
    return lines


WRAPPERS = {
    "bare": wrap_bare,
    "module": wrap_module,
}


def generate_python(ast: Grammar, options: CompileOptions) -> None:
    toplevel = generate_toplevel(ast, options)
    ast.code = "\n".join(WRAPPERS[options.format](toplevel, options)) + "\n"
