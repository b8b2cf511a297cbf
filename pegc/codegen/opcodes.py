# pegc/codegen/opcodes.py
"""Instruction set of the parsing machine.

Bytecode is a flat list of ints: an opcode followed by its operands. Operands that
refer to constants are indexes into the grammar's tables (literals, classes,
expectations, functions). Conditional instructions are followed by the lengths of
their two arms and then the arms themselves:

    IF_ERROR   then_len else_len <then...> <else...>
    IF_LT  min then_len else_len <then...> <else...>
    LOOP  infinite body_len <body...>

Stack comments use  p:[positions]  r:[results].
"""

from __future__ import annotations
from enum import IntEnum


class Op(IntEnum):
    # result stack
    PUSH_EMPTY_STRING = 0   # PUSH_EMPTY_STRING
    PUSH_UNDEFINED = 1      # PUSH_UNDEFINED
    PUSH_NULL = 2           # PUSH_NULL
    PUSH_FAILED = 3         # PUSH_FAILED
    PUSH_EMPTY_ARRAY = 4    # PUSH_EMPTY_ARRAY
    POP = 6                 # POP
    BREAK = 8               # BREAK n           pop n, push FAILED if n > 0, leave loop
    GET = 36                # GET n, i          replace top n with the i-th from top
    APPEND = 10             # APPEND            pop value, append it to new top
    WRAP = 11               # WRAP n            pop n, push them as a list
    WRAP_SOME = 37          # WRAP_SOME n, k, p1..pk
    TEXT = 12               # TEXT              replace top with input[saved:current]

    # position stack
    PUSH_CURR_POS = 5       # PUSH_CURR_POS
    LOAD_CURR_POS = 7       # LOAD_CURR_POS     current = top
    POP_POS = 9             # POP_POS

    # conditions and loops
    IF = 13                 # IF t, f
    IF_ERROR = 14           # IF_ERROR t, f
    IF_NOT_ERROR = 15       # IF_NOT_ERROR t, f
    IF_LT = 30              # IF_LT min, t, f
    IF_GE = 31              # IF_GE max, t, f
    IF_LT_DYNAMIC = 32      # IF_LT_DYNAMIC min, t, f
    IF_GE_DYNAMIC = 33      # IF_GE_DYNAMIC max, t, f
    LOOP = 41               # LOOP infinite, b

    # matching
    MATCH_ANY = 17          # MATCH_ANY
    MATCH_LITERAL = 18      # MATCH_LITERAL l
    MATCH_LITERAL_IC = 19   # MATCH_LITERAL_IC l
    MATCH_CLASS = 20        # MATCH_CLASS c
    ACCEPT_N = 21           # ACCEPT_N n
    ACCEPT_STRING = 22      # ACCEPT_STRING l
    EXPECT = 23             # EXPECT e

    # calls
    LOAD_SAVED_POS = 24     # LOAD_SAVED_POS    mark = top of position stack
    UPDATE_SAVED_POS = 25   # UPDATE_SAVED_POS  mark = current
    CALL = 26               # CALL f, n, pc, p1..pc
    RULE = 27               # RULE r

    # failure reporting
    SILENT_FAILS_ON = 28    # SILENT_FAILS_ON
    SILENT_FAILS_OFF = 29   # SILENT_FAILS_OFF
    EXPECT_NS_BEGIN = 38    # EXPECT_NS_BEGIN
    EXPECT_NS_END = 39      # EXPECT_NS_END invert


CONDITIONS = {
    Op.IF: 0,
    Op.IF_ERROR: 0,
    Op.IF_NOT_ERROR: 0,
    Op.IF_LT: 1,
    Op.IF_GE: 1,
    Op.IF_LT_DYNAMIC: 1,
    Op.IF_GE_DYNAMIC: 1,
}


def disassemble(bc) -> str:
    """One instruction per line; arms and loop bodies are indented."""
    out = []

    def walk(start: int, end: int, depth: int) -> None:
        ip = start
        pad = "  " * depth
        while ip < end:
            op = Op(bc[ip])
            if op in CONDITIONS:
                n = CONDITIONS[op]
                args = bc[ip + 1:ip + 1 + n]
                then_len, else_len = bc[ip + 1 + n], bc[ip + 2 + n]
                out.append(f"{pad}{op.name} {' '.join(map(str, args))}".rstrip())
                ip += n + 3
                out.append(f"{pad}then:")
                walk(ip, ip + then_len, depth + 1)
                ip += then_len
                if else_len:
                    out.append(f"{pad}else:")
                    walk(ip, ip + else_len, depth + 1)
                    ip += else_len
            elif op is Op.LOOP:
                out.append(f"{pad}LOOP {'true' if bc[ip + 1] else 'false'}")
                body = bc[ip + 2]
                walk(ip + 3, ip + 3 + body, depth + 1)
                ip += 3 + body
            else:
                n = _operand_count(bc, ip)
                args = bc[ip + 1:ip + 1 + n]
                out.append(f"{pad}{op.name} {' '.join(map(str, args))}".rstrip())
                ip += 1 + n

    walk(0, len(bc), 0)
    return "\n".join(out)


def _operand_count(bc, ip: int) -> int:
    op = bc[ip]
    if op in (Op.BREAK, Op.WRAP, Op.MATCH_LITERAL, Op.MATCH_LITERAL_IC, Op.MATCH_CLASS,
              Op.ACCEPT_N, Op.ACCEPT_STRING, Op.EXPECT, Op.RULE, Op.EXPECT_NS_END):
        return 1
    if op == Op.GET:
        return 2
    if op == Op.WRAP_SOME:
        return 2 + bc[ip + 2]
    if op == Op.CALL:
        return 3 + bc[ip + 3]
    return 0
