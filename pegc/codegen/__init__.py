# pegc/codegen/__init__.py
from .bytecode import generate_bytecode
from .emit_py import generate_python
from .opcodes import Op, disassemble
from .stack import Stack

__all__ = ["Op", "Stack", "disassemble", "generate_bytecode", "generate_python"]
