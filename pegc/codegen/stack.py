# pegc/codegen/stack.py
"""Symbolic stack allocator.

The emitter never builds a runtime stack. Each stack slot becomes a local variable
of the generated rule function (`r0`, `r1`, ... for results, `p0`, ... for saved
positions); `Stack` only tracks which slot is on top while code is generated, and
how many slots the function needs (`max_sp`).

Balance guards
--------------
- condition: both arms must leave every stack at the same depth. An arm that ends in
  a `break` does not fall through, so its depth is not compared.
- loop: `balanced` stacks must be back at their starting depth after the body, and
  every `break` out of the loop must leave every stack at the depth execution has
  after the loop.
Violations raise InternalInvariantError naming the rule, the stack and the offset.
"""

from __future__ import annotations
from typing import Callable, List, Optional, Sequence, Tuple

from ..errors import InternalInvariantError

Depths = Tuple[int, ...]


class Stack:
    def __init__(self, rule_name: str, var_name: str):
        self.sp = -1
        self.max_sp = -1
        self.var_name = var_name
        self.rule_name = rule_name

    def name(self, i: int) -> str:
        if i < 0:
            raise IndexError(
                f"Rule '{self.rule_name}': Var stack underflow: "
                f"attempt to use var '{self.var_name}<x>' at index {i}"
            )
        return f"{self.var_name}{i}"

    def push(self, expr_code: str) -> str:
        """Assign `expr_code` to a new top slot; returns the assignment statement."""
        self.sp += 1
        code = f"{self.name(self.sp)} = {expr_code}"
        if self.sp > self.max_sp:
            self.max_sp = self.sp
        return code

    def pop(self, n: Optional[int] = None):
        """Pop one slot (returns its name) or `n` slots (returns their names, bottom first)."""
        if n is None:
            name = self.name(self.sp)
            self.sp -= 1
            return name
        self.sp -= n
        return [self.name(self.sp + 1 + i) for i in range(n)]

    def top(self) -> str:
        return self.name(self.sp)

    def index(self, i: int) -> str:
        """Slot `i` positions below the top."""
        if i < 0:
            raise IndexError(
                f"Rule '{self.rule_name}': Var stack overflow: "
                f"attempt to get variable at negative index {i}"
            )
        return self.name(self.sp - i)

    def result(self) -> str:
        if self.max_sp < 0:
            raise IndexError(f"Rule '{self.rule_name}': Var stack is empty, can't get result")
        return self.name(0)

    def defines(self) -> str:
        if self.max_sp < 0:
            return ""
        names = [self.name(i) for i in range(self.max_sp + 1)]
        return " = ".join(names) + " = None"

    def fork(self, generate: Callable[[], object]):
        """Run `generate` and restore the stack pointer afterwards."""
        base = self.sp
        result = generate()
        self.sp = base
        return result

    def _fail(self, pos: int, message: str) -> InternalInvariantError:
        return InternalInvariantError(self.rule_name, pos, message, stack=self.var_name)

    # ---------- guards ----------

    @staticmethod
    def depths(stacks: Sequence["Stack"]) -> Depths:
        return tuple(s.sp for s in stacks)

    @staticmethod
    def restore(stacks: Sequence["Stack"], depths: Depths) -> None:
        for s, sp in zip(stacks, depths):
            s.sp = sp

    @staticmethod
    def checked_if(stacks: Sequence["Stack"], pos: int,
                   generate_then: Callable[[], bool],
                   generate_else: Optional[Callable[[], bool]]) -> bool:
        """
        Generate both arms of a condition. Each generator returns True when its arm
        ends in a jump. Returns True when neither arm falls through.
        """
        base = Stack.depths(stacks)
        then_jumps = generate_then()
        after_then = Stack.depths(stacks)

        Stack.restore(stacks, base)
        else_jumps = generate_else() if generate_else is not None else False
        after_else = Stack.depths(stacks)

        if not then_jumps and not else_jumps:
            for s, b, t, e in zip(stacks, base, after_then, after_else):
                if t != e:
                    raise s._fail(
                        pos,
                        "Branches of a condition can't move the stack pointer differently "
                        f"(before: {b}, after then: {t}, after else: {e}).",
                    )
        Stack.restore(stacks, after_then if else_jumps or not then_jumps else after_else)
        return then_jumps and else_jumps

    @staticmethod
    def checked_loop(stacks: Sequence["Stack"], pos: int,
                     generate_body: Callable[[List[Depths]], bool],
                     balanced: Sequence["Stack"]) -> None:
        """
        Generate a loop body. `generate_body` receives a list to which every `break`
        out of this loop appends the stack depths at that point.
        """
        base = Stack.depths(stacks)
        exits: List[Depths] = []
        body_jumps = generate_body(exits)
        after = Stack.depths(stacks)

        if not body_jumps:
            for s, b, a in zip(stacks, base, after):
                if s in balanced and a != b:
                    raise s._fail(
                        pos,
                        f"Body of a loop can't move the stack pointer (before: {b}, after: {a}).",
                    )
        infinite = len(balanced) == len(stacks)
        if infinite:
            done = base
        elif not body_jumps:
            done = after
        elif exits:
            done = exits[0]
        else:
            done = base

        for depths in exits:
            for s, d, e in zip(stacks, done, depths):
                if d != e:
                    raise s._fail(
                        pos,
                        "Exits of a loop can't leave the stack pointer differently "
                        f"(after loop: {d}, at break: {e}).",
                    )
        Stack.restore(stacks, done)
