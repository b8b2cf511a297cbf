"""Shared fixtures for the pegc test suite."""

import pytest

from pegc.compiler.options import CompileOptions
from pegc.compiler.session import Collector
from pegc.errors import GrammarError
from pegc.grammar.parser import parse_grammar


class StrictCollector(Collector):
    """Raises on the first error; keeps warnings and info messages."""

    def __init__(self):
        self.warnings = []
        self.infos = []

    def emit_fatal_error(self, message, location=None):
        raise GrammarError(message, location)

    def emit_error(self, message, location=None):
        raise GrammarError(message, location)

    def emit_warning(self, message, location=None):
        self.warnings.append(message)

    def emit_info(self, message, location=None):
        self.infos.append(message)


class RecordingCollector(Collector):
    """Records everything as (severity, message) pairs."""

    def __init__(self):
        self.records = []

    def emit_fatal_error(self, message, location=None):
        raise GrammarError(message, location)

    def emit_error(self, message, location=None):
        self.records.append(("error", message))

    def emit_warning(self, message, location=None):
        self.records.append(("warning", message))

    def emit_info(self, message, location=None):
        self.records.append(("info", message))

    def messages(self, severity):
        return [m for s, m in self.records if s == severity]


@pytest.fixture
def run_passes():
    """run_passes(text, *passes, collector=None, **options) -> (ast, collector)"""

    def run(text, *passes, collector=None, **options):
        ast = parse_grammar(text)
        opts = CompileOptions.from_mapping(options)
        opts.collector = collector if collector is not None else StrictCollector()
        opts.resolve(ast.rule_names())
        for p in passes:
            p(ast, opts)
        return ast, opts.collector

    return run


@pytest.fixture
def recorder():
    return RecordingCollector()
