# pegc/pegcc.py
"""pegcc - pegc CLI

Examples
    $ python -m pegc.pegcc check grammars/arithmetics.pegjs -D
    $ python -m pegc.pegcc build grammars/arithmetics.pegjs -o build/arith.py --cache
    $ python -m pegc.pegcc build json.pegjs -o json_parser.py --format module --export-var JSON

Commands
--------
- check : parse the grammar and run the check/transform stages; print a summary
- build : compile the grammar and write the generated Python parser

With -D/--debug the AST and per-rule bytecode are printed and logging goes to DEBUG.
Exit codes: 0 ok, 1 grammar errors, 2 syntax/IO/usage errors.
"""

from __future__ import annotations
import argparse
import json
import logging
import pathlib
import sys
from typing import Any, Dict, List, Optional

# ------------------------------
# helpers
# ------------------------------

def _eprint(*args, **kw) -> None:
    print(*args, file=sys.stderr, **kw)


class _ReportingCollector:
    """Prints warnings as they are reported."""

    def __init__(self) -> None:
        self.warnings = 0

    def emit_warning(self, message, location=None) -> None:
        self.warnings += 1
        where = f" ({location})" if location is not None else ""
        _eprint(f"[WARN] {message}{where}")


def _options_from_args(args) -> Dict[str, Any]:
    options: Dict[str, Any] = {}
    if args.extra_options_file:
        text = pathlib.Path(args.extra_options_file).read_text(encoding="utf-8")
        loaded = json.loads(text)
        if not isinstance(loaded, dict):
            raise ValueError(f"{args.extra_options_file}: options must be a JSON object")
        options.update(loaded)
    if args.allowed_start_rules:
        options["allowed_start_rules"] = [r.strip() for r in args.allowed_start_rules.split(",") if r.strip()]
    if getattr(args, "cache", False):
        options["cache"] = True
    if getattr(args, "trace", False):
        options["trace"] = True
    if getattr(args, "format", None):
        options["format"] = args.format
    if getattr(args, "dependency", None):
        deps = dict(options.get("dependencies", {}))
        for item in args.dependency:
            var, sep, module = item.partition(":")
            if not sep:
                module = var
            deps[var] = module
        options["dependencies"] = deps
    if getattr(args, "export_var", None):
        options["export_var"] = args.export_var
    return options


def _load_ast(path: str):
    from .grammar.loader import load_grammar_text
    from .grammar.parser import parse_grammar

    src = load_grammar_text(path)
    return parse_grammar(src, source=path)

# ------------------------------
# debug output
# ------------------------------

def _print_ast(g) -> None:
    _eprint("\n[AST]")
    for rule in g.rules:
        _eprint(f"  {rule.name} = {rule.expression!r}")


def _print_bytecode(g) -> None:
    from .codegen.opcodes import disassemble

    _eprint("\n[Bytecode]")
    for rule in g.rules:
        _eprint(f"{rule.name}:")
        for line in disassemble(rule.bytecode).splitlines():
            _eprint("  " + line)
    _eprint(f"\nliterals={len(g.literals)} classes={len(g.classes)} "
            f"expectations={len(g.expectations)} functions={len(g.functions)}")

# ------------------------------
# commands
# ------------------------------

def _run(args, passes, output: str):
    from . import compiler
    from .errors import GrammarError, GrammarSyntaxError

    collector = _ReportingCollector()
    try:
        ast = _load_ast(args.file)
        options = compiler.CompileOptions.from_mapping(_options_from_args(args))
        options = options.merged({"output": output, "collector": collector})
        result = compiler.compile(ast, passes, options)
    except GrammarSyntaxError as e:
        _eprint("[SYNTAX ERROR]")
        _eprint(str(e))
        return None, 2
    except GrammarError as e:
        _eprint("[GRAMMAR ERROR]")
        _eprint(str(e))
        return None, 1
    except (OSError, ValueError) as e:
        _eprint("[ERROR]", type(e).__name__, str(e))
        return None, 2
    return (ast, result, collector), 0


def cmd_check(args) -> int:
    from .compiler import PASSES

    passes = {stage: PASSES[stage] for stage in ("check", "transform")}
    done, code = _run(args, passes, "ast")
    if done is None:
        return code
    ast, _, collector = done
    if args.debug:
        _print_ast(ast)
    print(f"[CHECK OK] rules={len(ast.rules)} warnings={collector.warnings}")
    return 0


def cmd_build(args) -> int:
    from .compiler import PASSES

    done, code = _run(args, PASSES, "source")
    if done is None:
        return code
    ast, source, _ = done
    if args.debug:
        _print_ast(ast)
        _print_bytecode(ast)

    out_path = pathlib.Path(args.output)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(source, encoding="utf-8")
    print(f"[EMIT] format={args.format or 'bare'} -> {out_path}")
    if args.debug:
        _eprint(f"[DEBUG] rules={len(ast.rules)} bytes={len(source)}")
    return 0

# ------------------------------
# entry point
# ------------------------------

def _add_common(p: argparse.ArgumentParser) -> None:
    p.add_argument("file", help="grammar file")
    p.add_argument("--allowed-start-rules", help="comma separated start rules (default: first rule)")
    p.add_argument("--extra-options-file", help="JSON file with additional compile options")
    p.add_argument("-D", "--debug", action="store_true", help="print AST/bytecode and debug logs")


def main(argv: Optional[List[str]] = None) -> int:
    ap = argparse.ArgumentParser(prog="pegcc", description="pegc parser generator CLI")
    sub = ap.add_subparsers(dest="cmd", required=True)

    p_check = sub.add_parser("check", help="check the grammar for errors")
    _add_common(p_check)
    p_check.set_defaults(func=cmd_check)

    p_build = sub.add_parser("build", help="generate a Python parser")
    _add_common(p_build)
    p_build.add_argument("-o", "--output", required=True, help="output file path")
    p_build.add_argument("--cache", action="store_true", help="memoize rule results")
    p_build.add_argument("--trace", action="store_true", help="emit tracing hooks")
    p_build.add_argument("--format", choices=["bare", "module"], help="module format (default: bare)")
    p_build.add_argument("--dependency", action="append", metavar="VAR:MODULE",
                         help="module import for the generated parser (repeatable)")
    p_build.add_argument("--export-var", help="name of the namespace object exposing parse()")
    p_build.set_defaults(func=cmd_build)

    args = ap.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format="[%(levelname)s] %(name)s: %(message)s",
    )
    return int(args.func(args))

if __name__ == "__main__":
    sys.exit(main())
