"""Orchestrator tests: stages, aggregated errors, options and output modes."""

import types

import pytest

from pegc import compiler
from pegc.compiler.options import CompileOptions
from pegc.errors import GrammarError
from pegc.grammar.ast import Grammar
from pegc.grammar.parser import parse_grammar


def _errors(problems):
    return [message for severity, message, _ in problems if severity == "error"]


def test_default_output_is_a_loaded_parser():
    parser = compiler.compile(parse_grammar("start = 'a'"))
    assert isinstance(parser, types.ModuleType)
    assert parser.parse("a") == "a"


def test_output_modes():
    source = compiler.compile(parse_grammar("start = 'a'"), output="source")
    assert isinstance(source, str)

    ast = compiler.compile(parse_grammar("start = 'a'"), output="ast")
    assert isinstance(ast, Grammar)
    assert ast.code is not None
    assert ast.rules[0].bytecode is not None


def test_output_list_returns_a_dict():
    result = compiler.compile(parse_grammar("start = 'a'"), output=["source", "parser"])
    assert set(result) == {"source", "parser"}
    assert result["parser"].parse("a") == "a"


def test_invalid_output_mode():
    with pytest.raises(ValueError, match="Invalid output format: bogus."):
        compiler.compile(parse_grammar("start = 'a'"), output="bogus")


def test_invalid_module_format():
    with pytest.raises(ValueError, match="Invalid module format: cjs."):
        compiler.compile(parse_grammar("start = 'a'"), format="cjs")


def test_unknown_option():
    with pytest.raises(ValueError, match="Unknown option: bogus"):
        compiler.compile(parse_grammar("start = 'a'"), bogus=True)


def test_unknown_start_rule_is_a_check_error():
    with pytest.raises(GrammarError) as exc:
        compiler.compile(parse_grammar("start = 'a'"), allowed_start_rules=["nope"])
    assert exc.value.message == "Stage 'check' contains 1 error(s)."
    assert _errors(exc.value.problems) == ['Start rule "nope" is not defined.']


def test_check_stage_errors_are_aggregated():
    with pytest.raises(GrammarError) as exc:
        compiler.compile(parse_grammar("start = a:'a' a:'b' missing"))
    error = exc.value
    assert error.message == "Stage 'check' contains 2 error(s)."
    assert sorted(_errors(error.problems)) == [
        'Label "a" is already defined at line 1, column 9.',
        'Rule "missing" is not defined.',
    ]
    assert 'Rule "missing" is not defined.' in str(error)


def test_failed_stage_stops_later_stages():
    calls = []

    def failing(ast, options):
        options.collector.emit_error("broken")

    def later(ast, options):
        calls.append("later")

    with pytest.raises(GrammarError, match="Stage 'first' contains 1 error"):
        compiler.compile(parse_grammar("start = 'a'"), {"first": [failing], "second": [later]}, output="ast")
    assert calls == []


def test_passes_run_in_stage_order():
    calls = []

    def make(name):
        def run(ast, options):
            calls.append(name)
        return run

    passes = {"one": [make("a"), make("b")], "two": [make("c")]}
    compiler.compile(parse_grammar("start = 'a'"), passes, output="ast")
    assert calls == ["a", "b", "c"]


def test_fatal_error_raises_immediately():
    calls = []

    def fatal(ast, options):
        options.collector.emit_fatal_error("stop here")
        calls.append("after")

    with pytest.raises(GrammarError, match="stop here"):
        compiler.compile(parse_grammar("start = 'a'"), {"check": [fatal]}, output="ast")
    assert calls == []


def test_user_collector_sees_warnings_and_info():
    class Sink:
        def __init__(self):
            self.warnings = []
            self.infos = []

        def emit_warning(self, message, location=None):
            self.warnings.append(message)

        def emit_info(self, message, location=None):
            self.infos.append(message)

    sink = Sink()
    parser = compiler.compile(parse_grammar("start = 'a'\nunused = 'b'"), collector=sink)
    assert parser.parse("a") == "a"
    assert sink.warnings == ['Rule "unused" not used.']
    assert "Process stage 'check'..." in sink.infos
    assert " -> Process pass 0" in sink.infos


def test_collector_without_methods_is_rejected():
    with pytest.raises(TypeError):
        compiler.compile(parse_grammar("start = 'a'"), collector=object())


def test_options_object_is_not_mutated_by_overrides():
    options = CompileOptions(cache=False)
    compiler.compile(parse_grammar("start = 'a'"), None, options, cache=True, output="source")
    assert options.cache is False


def test_options_resolve_first_rule_as_default_start():
    options = CompileOptions()
    options.resolve(["first", "second"])
    assert options.allowed_start_rules == ["first"]


def test_from_mapping_accepts_camel_case_aliases():
    options = CompileOptions.from_mapping({"allowedStartRules": ["b"], "exportVar": "P"})
    assert options.allowed_start_rules == ["b"]
    assert options.export_var == "P"
