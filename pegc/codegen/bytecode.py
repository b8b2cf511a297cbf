# pegc/codegen/bytecode.py
"""
Lowering of the grammar tree into bytecode (see `opcodes`).

Every rule gets `rule.bytecode`; the grammar gets four constant tables that the
bytecode indexes into. Tables are content-addressed: adding a value equal to an
existing entry returns the existing index.

    literals      str (lowercased for case-insensitive literals)
    classes       {"value": parts, "inverted": bool, "ignore_case": bool}
    expectations  {"type": "rule" | "literal" | "class" | "any", ...}
    functions     Function(predicate, params, body)

Lowering is driven by the inferred `match` of each node: a sub-expression known to
always (or never) match collapses its condition into the single reachable arm.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from ..compiler import asts, visitor
from ..compiler.options import CompileOptions
from ..compiler.passes.inference_match_result import match_of
from ..grammar.ast import Boundary, Function, Grammar
from .opcodes import Op

Code = List[int]


@dataclass
class Context:
    sp: int                                   # top of the result stack
    env: Dict[str, int]                       # label -> result stack position
    action: Any = None                        # action whose code a sequence finishes with
    report_failures: bool = True              # False: no EXPECT instructions
    auto: List[Tuple[Optional[str], int]] = field(default_factory=list)

    def child(self, **changes) -> "Context":
        """Context for a sub-expression that gets its own scope."""
        values = dict(sp=self.sp, env=dict(self.env), action=None,
                      report_failures=self.report_failures, auto=[])
        values.update(changes)
        return Context(**values)


class ConstantTable:
    def __init__(self) -> None:
        self.items: List[Any] = []

    def add(self, value: Any) -> int:
        for i, item in enumerate(self.items):
            if item == value:
                return i
        self.items.append(value)
        return len(self.items) - 1


# ---------- bytecode builders ----------

def build_sequence(*parts: Code) -> Code:
    out: Code = []
    for part in parts:
        out.extend(part)
    return out


def build_condition(match: int, cond: Code, then_code: Code, else_code: Code) -> Code:
    if match > 0:
        return then_code
    if match < 0:
        return else_code
    return cond + [len(then_code), len(else_code)] + then_code + else_code


def build_try_condition(match: int, common: Code, then_code: Code, else_code: Code) -> Code:
    """`common` matches and pushes the value or FAILED itself; the arms are only used when the outcome is known."""
    if match > 0:
        return then_code
    if match < 0:
        return else_code
    return common


def build_break_condition(match: int, cond: Code, count: int, then_code: Code, else_code: Code) -> Code:
    """If `cond` holds, run `then_code` and leave the loop; otherwise fall through to `else_code`."""
    then_code = then_code + [Op.BREAK, count]
    if match > 0:
        return then_code
    if match < 0:
        return else_code
    return cond + [len(then_code), 0] + then_code + else_code


def build_loop(cond: Code, body: Code) -> Code:
    return cond + [len(body)] + body


def build_call(index: int, delta: int, env: Dict[str, int], sp: int) -> Code:
    params = [sp - pos for pos in env.values()]
    return [Op.CALL, index, delta, len(params)] + params


def build_check_max(max_: Optional[Boundary], sp: int, env: Dict[str, int]) -> Code:
    if max_ is None or max_.value is None:
        return []
    if max_.constant:
        check = [Op.IF_GE, max_.value]
    else:
        check = [Op.IF_GE_DYNAMIC, sp - env[max_.value]]
    return build_condition(0, check, [Op.BREAK, 0], [])


def build_check_min(expression_code: Code, min_: Boundary, sp: int, env: Dict[str, int]) -> Code:
    if min_.value is None or (min_.constant and min_.value <= 0):
        return expression_code
    if min_.constant:
        check = [Op.IF_LT, min_.value]
    else:
        check = [Op.IF_LT_DYNAMIC, sp - env[min_.value]]
    return build_sequence(
        [Op.PUSH_CURR_POS],
        expression_code,
        build_condition(0, check, [Op.LOAD_CURR_POS, Op.POP, Op.PUSH_FAILED], []),
        [Op.POP_POS],
    )


def build_range_append(match: int, expression_code: Code, load_curr_pos: bool) -> Code:
    return build_sequence(
        expression_code,
        build_condition(
            -match,
            [Op.IF_ERROR],
            ([Op.LOAD_CURR_POS] if load_curr_pos else []) + [Op.POP, Op.BREAK, 0],
            [Op.APPEND],
        ),
    )


# ---------- pass ----------

def generate_bytecode(ast: Grammar, options: CompileOptions) -> None:
    literals = ConstantTable()
    classes = ConstantTable()
    expectations = ConstantTable()
    functions = ConstantTable()

    def add_function(predicate: bool, params: List[str], body: str) -> int:
        return functions.add(Function(predicate, list(params), body))

    def build_simple_predicate(expression, negative: bool, ctx: Context) -> Code:
        match = match_of(expression)
        if negative:
            finalization = build_condition(
                -match, [Op.IF_ERROR],
                [Op.POP, Op.PUSH_UNDEFINED],
                [Op.LOAD_CURR_POS, Op.POP, Op.PUSH_FAILED],
            )
        else:
            finalization = build_condition(
                match, [Op.IF_NOT_ERROR],
                [Op.LOAD_CURR_POS, Op.POP, Op.PUSH_UNDEFINED],
                [],
            )
        return build_sequence(
            [Op.PUSH_CURR_POS],
            [Op.EXPECT_NS_BEGIN],
            generate(expression, ctx.child()),
            [Op.EXPECT_NS_END, 1 if negative else 0],
            finalization,
            [Op.POP_POS],
        )

    def build_semantic_predicate(node, negative: bool, ctx: Context) -> Code:
        index = add_function(True, list(ctx.env), node.code)
        fail_or_pass = [Op.POP, Op.PUSH_FAILED]
        pass_or_fail = [Op.POP, Op.PUSH_UNDEFINED]
        return build_sequence(
            [Op.UPDATE_SAVED_POS],
            build_call(index, 0, ctx.env, ctx.sp),
            build_condition(
                match_of(node), [Op.IF],
                fail_or_pass if negative else pass_or_fail,
                pass_or_fail if negative else fail_or_pass,
            ),
        )

    def build_range_body(expression, delimiter, max_: Optional[Boundary], sp: int, ctx: Context) -> Code:
        expression_code = generate(expression, ctx.child(sp=sp))
        check_max = build_check_max(max_, sp, ctx.env)
        parse_next = build_range_append(match_of(expression), expression_code, delimiter is not None)

        if delimiter is None:
            return build_loop([Op.LOOP, 1], build_sequence(check_max, parse_next))

        # a matched delimiter is dropped; a failed one ends the repetition
        delimiter_code = build_sequence(
            [Op.POP_POS],
            [Op.PUSH_CURR_POS],
            generate(delimiter, ctx.child(sp=sp)),
            build_condition(
                -match_of(delimiter), [Op.IF_ERROR],
                [Op.POP, Op.BREAK, 0],
                [Op.POP],
            ),
        )
        return build_loop(
            [Op.LOOP, 0],
            build_sequence(
                [] if max_.constant and max_.value else check_max,
                [Op.PUSH_CURR_POS],
                build_loop([Op.LOOP, 1], build_sequence(parse_next, check_max, delimiter_code)),
                [Op.POP_POS],
            ),
        )

    def grammar(node) -> None:
        for rule in node.rules:
            generate(rule)
        node.literals = literals.items
        node.classes = classes.items
        node.expectations = expectations.items
        node.functions = functions.items

    def rule(node) -> None:
        node.bytecode = generate(node.expression, Context(
            sp=-1, env={}, report_failures=node.report_failures is not False,
        ))

    def named(node, ctx: Context) -> Code:
        index = expectations.add({"type": "rule", "value": node.name}) if ctx.report_failures else None
        code = generate(node.expression, Context(
            sp=ctx.sp, env=ctx.env, action=ctx.action, report_failures=False, auto=ctx.auto,
        ))
        if index is None:
            return code
        return build_sequence([Op.EXPECT, index], [Op.SILENT_FAILS_ON], code, [Op.SILENT_FAILS_OFF])

    def choice(node, ctx: Context) -> Code:
        if match_of(node) < 0:
            return [Op.PUSH_FAILED]
        reachable = []
        for alternative in node.alternatives:
            match = match_of(alternative)
            if match < 0:
                continue
            reachable.append(alternative)
            if match > 0:
                break
        if not reachable:
            return [Op.PUSH_EMPTY_STRING]
        codes = []
        for i, alternative in enumerate(reachable):
            code = generate(alternative, ctx.child())
            if i + 1 < len(reachable):
                code = code + build_break_condition(0, [Op.IF_NOT_ERROR], 0, [], [Op.POP])
            codes.append(code)
        return build_loop([Op.LOOP, 0], build_sequence(*codes))

    def action(node, ctx: Context) -> Code:
        env = dict(ctx.env)
        expression = node.expression
        emit_call = expression.type != "sequence" or not expression.elements
        expression_code = generate(expression, Context(
            sp=ctx.sp, env=env, action=node, report_failures=ctx.report_failures,
        ))
        if not emit_call:
            return expression_code
        match = match_of(expression)
        call = []
        if match >= 0:
            index = add_function(False, list(env), node.code)
            call = build_sequence([Op.LOAD_SAVED_POS], build_call(index, 1, env, ctx.sp + 1))
        return build_sequence(
            [Op.PUSH_CURR_POS],
            expression_code,
            build_condition(match, [Op.IF_NOT_ERROR], call, []),
            [Op.POP_POS],
        )

    def sequence(node, ctx: Context) -> Code:
        if not node.elements:
            return [Op.PUSH_EMPTY_ARRAY]
        elements = []
        for i, element in enumerate(node.elements):
            elements.append(build_sequence(
                generate(element, Context(
                    sp=ctx.sp + i, env=ctx.env, report_failures=ctx.report_failures, auto=ctx.auto,
                )),
                build_break_condition(-match_of(element), [Op.IF_ERROR], i + 1, [Op.LOAD_CURR_POS], []),
            ))

        count = len(node.elements)
        sp = ctx.sp + count
        if ctx.action is not None:
            index = add_function(False, list(ctx.env), ctx.action.code)
            final = build_sequence([Op.LOAD_SAVED_POS], build_call(index, count, ctx.env, sp))
        elif not ctx.auto:
            final = [Op.WRAP, count]
        elif len(ctx.auto) == 1:
            final = [Op.GET, count, sp - ctx.auto[0][1]]
        else:
            final = [Op.WRAP_SOME, count, len(ctx.auto)] + [sp - pos for _, pos in ctx.auto]

        return build_sequence(
            [Op.PUSH_CURR_POS],
            build_loop([Op.LOOP, 0], build_sequence(*elements, final)),
            [Op.POP_POS],
        )

    def labeled(node, ctx: Context) -> Code:
        env = ctx.env
        if node.label is not None:
            env = dict(ctx.env)
            ctx.env[node.label] = ctx.sp + 1
        if node.auto:
            ctx.auto.append((node.label, ctx.sp + 1))
        return generate(node.expression, ctx.child(env=env))

    def text(node, ctx: Context) -> Code:
        match = match_of(node)
        return build_sequence(
            [Op.PUSH_CURR_POS] if match >= 0 else [],
            generate(node.expression, ctx.child()),
            build_condition(match, [Op.IF_NOT_ERROR], [Op.TEXT], []),
            [Op.POP_POS] if match >= 0 else [],
        )

    def optional(node, ctx: Context) -> Code:
        return build_sequence(
            generate(node.expression, ctx.child()),
            build_condition(-match_of(node.expression), [Op.IF_ERROR], [Op.POP, Op.PUSH_NULL], []),
        )

    def zero_or_more(node, ctx: Context) -> Code:
        body = build_range_body(node.expression, None, None, ctx.sp + 1, ctx)
        return build_sequence([Op.PUSH_EMPTY_ARRAY], body)

    def one_or_more(node, ctx: Context) -> Code:
        sp = ctx.sp + 1
        body = build_range_body(node.expression, None, None, sp, ctx)
        return build_check_min(build_sequence([Op.PUSH_EMPTY_ARRAY], body), Boundary(True, 1), sp, ctx.env)

    def range_(node, ctx: Context) -> Code:
        sp = ctx.sp + 1
        body = build_range_body(node.expression, node.delimiter, node.max, sp, ctx)
        return build_check_min(build_sequence([Op.PUSH_EMPTY_ARRAY], body), node.min, sp, ctx.env)

    def group(node, ctx: Context) -> Code:
        return generate(node.expression, ctx.child())

    def rule_ref(node, ctx: Context) -> Code:
        return [Op.RULE, asts.index_of_rule(ast, node.name)]

    def literal(node, ctx: Context) -> Code:
        if not node.value:
            return [Op.PUSH_EMPTY_STRING]
        match = match_of(node)
        index = None
        if match == 0 or (match > 0 and not node.ignore_case):
            index = literals.add(node.value.lower() if node.ignore_case else node.value)
        expect = []
        if ctx.report_failures:
            expect = [Op.EXPECT, expectations.add(
                {"type": "literal", "value": node.value, "ignore_case": node.ignore_case}
            )]
        if node.ignore_case:
            return expect + build_try_condition(
                match, [Op.MATCH_LITERAL_IC, index], [Op.ACCEPT_N, len(node.value)], [Op.PUSH_FAILED],
            )
        return expect + build_try_condition(
            match, [Op.MATCH_LITERAL, index], [Op.ACCEPT_STRING, index], [Op.PUSH_FAILED],
        )

    def char_class(node, ctx: Context) -> Code:
        match = match_of(node)
        index = None
        if match == 0:
            index = classes.add({
                "value": list(node.parts), "inverted": node.inverted, "ignore_case": node.ignore_case,
            })
        expect = []
        if ctx.report_failures:
            expect = [Op.EXPECT, expectations.add({
                "type": "class", "value": list(node.parts),
                "inverted": node.inverted, "ignore_case": node.ignore_case,
            })]
        return expect + build_try_condition(match, [Op.MATCH_CLASS, index], [Op.ACCEPT_N, 1], [Op.PUSH_FAILED])

    def any_(node, ctx: Context) -> Code:
        expect = [Op.EXPECT, expectations.add({"type": "any"})] if ctx.report_failures else []
        return expect + build_try_condition(match_of(node), [Op.MATCH_ANY], [Op.ACCEPT_N, 1], [Op.PUSH_FAILED])

    generate = visitor.build({
        "grammar":      grammar,
        "rule":         rule,
        "named":        named,
        "choice":       choice,
        "action":       action,
        "sequence":     sequence,
        "labeled":      labeled,
        "text":         text,
        "simple_and":   lambda node, ctx: build_simple_predicate(node.expression, False, ctx),
        "simple_not":   lambda node, ctx: build_simple_predicate(node.expression, True, ctx),
        "optional":     optional,
        "zero_or_more": zero_or_more,
        "one_or_more":  one_or_more,
        "range":        range_,
        "group":        group,
        "semantic_and": lambda node, ctx: build_semantic_predicate(node, False, ctx),
        "semantic_not": lambda node, ctx: build_semantic_predicate(node, True, ctx),
        "rule_ref":     rule_ref,
        "literal":      literal,
        "class":        char_class,
        "any":          any_,
    })
    generate(ast)
