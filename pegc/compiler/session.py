# pegc/compiler/session.py
"""Diagnostic collectors.

Passes report through `options.collector`, which has four methods:
    emit_fatal_error / emit_error / emit_warning / emit_info (message, location=None)

`DefaultCollector` raises on fatal errors and records everything else so the
orchestrator can decide at the end of a stage. `merge()` chains a caller-supplied
collector in front of the default one.
"""

from __future__ import annotations
import logging
from typing import Any, List, Optional

from ..errors import GrammarError, Problem
from ..grammar.ast import Location

LOGGER = logging.getLogger(__name__)

_METHODS = ("emit_fatal_error", "emit_error", "emit_warning", "emit_info")


class Collector:
    """No-op base; subclasses override what they care about."""

    def emit_fatal_error(self, message: str, location: Optional[Location] = None) -> None:
        pass

    def emit_error(self, message: str, location: Optional[Location] = None) -> None:
        pass

    def emit_warning(self, message: str, location: Optional[Location] = None) -> None:
        pass

    def emit_info(self, message: str, location: Optional[Location] = None) -> None:
        pass


class DefaultCollector(Collector):
    def __init__(self) -> None:
        self.problems: List[Problem] = []
        self.errors = 0

    def reset(self) -> None:
        self.problems = []
        self.errors = 0

    def emit_fatal_error(self, message: str, location: Optional[Location] = None) -> None:
        raise GrammarError(message, location)

    def emit_error(self, message: str, location: Optional[Location] = None) -> None:
        self.errors += 1
        self.problems.append(("error", message, location))
        LOGGER.debug("error: %s (%s)", message, location)

    def emit_warning(self, message: str, location: Optional[Location] = None) -> None:
        self.problems.append(("warning", message, location))
        LOGGER.warning("%s (%s)", message, location)

    def emit_info(self, message: str, location: Optional[Location] = None) -> None:
        self.problems.append(("info", message, location))
        LOGGER.debug("%s", message)


class ChainedCollector(Collector):
    """Calls the user's collector first, then the default one."""

    def __init__(self, first: Any, second: DefaultCollector):
        self.first = first
        self.second = second

    def _dispatch(self, method: str, message: str, location: Optional[Location]) -> None:
        func = getattr(self.first, method, None)
        if func is not None:
            func(message, location)
        getattr(self.second, method)(message, location)

    def emit_fatal_error(self, message: str, location: Optional[Location] = None) -> None:
        self._dispatch("emit_fatal_error", message, location)

    def emit_error(self, message: str, location: Optional[Location] = None) -> None:
        self._dispatch("emit_error", message, location)

    def emit_warning(self, message: str, location: Optional[Location] = None) -> None:
        self._dispatch("emit_warning", message, location)

    def emit_info(self, message: str, location: Optional[Location] = None) -> None:
        self._dispatch("emit_info", message, location)


def merge(user: Any, default: DefaultCollector) -> Collector:
    if user is None:
        return default
    if not any(hasattr(user, m) for m in _METHODS):
        raise TypeError(f"collector must provide at least one of {', '.join(_METHODS)}")
    return ChainedCollector(user, default)
