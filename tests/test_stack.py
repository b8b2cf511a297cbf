"""Symbolic stack allocator and balance guard tests."""

import pytest

from pegc.codegen.emit_py import RuleEmitter
from pegc.codegen.opcodes import Op
from pegc.codegen.stack import Stack
from pegc.errors import InternalInvariantError
from pegc.grammar.ast import Grammar, Literal, Rule


def _stacks():
    return Stack("x", "r"), Stack("x", "p")


def test_push_pop_and_names():
    s = Stack("x", "r")
    assert s.push("1") == "r0 = 1"
    assert s.push("2") == "r1 = 2"
    assert s.top() == "r1"
    assert s.index(1) == "r0"
    assert s.pop() == "r1"
    assert s.top() == "r0"
    assert s.defines() == "r0 = r1 = None"
    assert s.result() == "r0"


def test_pop_many_returns_names_bottom_first():
    s = Stack("x", "r")
    for value in "abc":
        s.push(repr(value))
    assert s.pop(2) == ["r1", "r2"]
    assert s.sp == 0


def test_empty_stack_errors():
    s = Stack("x", "r")
    with pytest.raises(IndexError, match="underflow"):
        s.top()
    with pytest.raises(IndexError, match="empty"):
        s.result()
    assert s.defines() == ""


def test_fork_restores_pointer():
    s = Stack("x", "r")
    s.push("1")
    s.fork(lambda: (s.pop(), s.push("2"), s.push("3")))
    assert s.sp == 0


def test_balanced_condition_passes():
    res, pos = _stacks()
    res.push("a")

    def arm():
        res.pop()
        res.push("b")
        return False

    assert Stack.checked_if([res, pos], 0, arm, arm) is False
    assert res.sp == 0


def test_unbalanced_condition_raises():
    res, pos = _stacks()
    res.push("a")

    def then_arm():
        res.push("b")
        return False

    with pytest.raises(InternalInvariantError) as exc:
        Stack.checked_if([res, pos], 4, then_arm, lambda: False)
    assert str(exc.value) == (
        "Rule 'x', position 4, stack 'r': Branches of a condition can't move the stack "
        "pointer differently (before: 0, after then: 1, after else: 0)."
    )
    assert exc.value.stack == "r"
    assert exc.value.position == 4


def test_jumping_arm_is_not_compared():
    res, pos = _stacks()
    res.push("a")

    def then_arm():
        res.push("b")
        return True

    assert Stack.checked_if([res, pos], 0, then_arm, lambda: False) is False
    # execution continues with the arm that falls through
    assert res.sp == 0


def test_loop_body_must_be_balanced():
    res, pos = _stacks()

    def body(exits):
        pos.push("state.pos")
        return False

    with pytest.raises(InternalInvariantError, match=r"stack 'p': Body of a loop can't move the stack pointer \(before: -1, after: 0\)"):
        Stack.checked_loop([res, pos], 2, body, [pos])


def test_loop_exits_must_agree_with_fall_through():
    res, pos = _stacks()

    def body(exits):
        res.push("x")
        exits.append(Stack.depths([res, pos]))
        res.push("y")
        return False

    with pytest.raises(InternalInvariantError, match=r"after loop: 1, at break: 0"):
        Stack.checked_loop([res, pos], 0, body, [pos])


def test_loop_exit_depth_becomes_continuation():
    res, pos = _stacks()

    def body(exits):
        res.push("x")
        exits.append(Stack.depths([res, pos]))
        return False

    Stack.checked_loop([res, pos], 0, body, [pos])
    assert res.sp == 0


# ---------- guards on hand-built bytecode ----------

def _emit(bytecode):
    rule = Rule("bad", Literal("a"))
    rule.bytecode = bytecode
    ast = Grammar([rule])
    ast.literals, ast.classes, ast.expectations, ast.functions = [], [], [], []
    return RuleEmitter(ast, rule).emit()


def test_balanced_bytecode_emits():
    lines = _emit([Op.PUSH_NULL, Op.IF, 2, 2, Op.POP, Op.PUSH_FAILED, Op.POP, Op.PUSH_EMPTY_STRING])
    assert lines == [
        "r0 = None",
        "if r0:",
        "    r0 = FAILED",
        "else:",
        "    r0 = ''",
    ]


def test_arm_pushing_extra_value_raises():
    with pytest.raises(InternalInvariantError) as exc:
        _emit([Op.PUSH_NULL, Op.IF, 1, 0, Op.PUSH_NULL])
    assert str(exc.value) == (
        "Rule 'bad', position 1, stack 'r': Branches of a condition can't move the stack "
        "pointer differently (before: 0, after then: 1, after else: 0)."
    )


def test_unbalanced_infinite_loop_raises():
    with pytest.raises(InternalInvariantError, match="Body of a loop"):
        _emit([Op.PUSH_EMPTY_ARRAY, Op.LOOP, 1, 1, Op.PUSH_NULL])


def test_break_outside_loop_raises():
    with pytest.raises(InternalInvariantError, match="BREAK outside of a loop."):
        _emit([Op.PUSH_NULL, Op.BREAK, 0])


def test_invalid_opcode_raises():
    with pytest.raises(InternalInvariantError) as exc:
        _emit([99])
    assert str(exc.value) == "Rule 'bad', position 0: Invalid opcode 99."
