# pegc/compiler/options.py
"""Compilation options.

All fields have defaults; `allowed_start_rules=None` means "the first rule of the
grammar" and is resolved by `resolve()` once the AST is known.
"""

from __future__ import annotations
from dataclasses import dataclass, field, fields, replace
from typing import Any, Dict, List, Mapping, Optional, Union

OUTPUTS = ("parser", "source", "ast")
FORMATS = ("bare", "module")

_ALIASES = {
    "allowedStartRules": "allowed_start_rules",
    "exportVar": "export_var",
}


@dataclass
class CompileOptions:
    allowed_start_rules: Optional[List[str]] = None
    cache: bool = False
    trace: bool = False
    output: Union[str, List[str]] = "parser"
    format: str = "bare"
    dependencies: Dict[str, str] = field(default_factory=dict)
    export_var: Optional[str] = None
    collector: Any = None

    @classmethod
    def from_mapping(cls, options: Optional[Mapping[str, Any]] = None) -> "CompileOptions":
        if options is None:
            return cls()
        if isinstance(options, CompileOptions):
            return options
        return cls(**cls._normalize(options))

    @classmethod
    def _normalize(cls, options: Mapping[str, Any]) -> Dict[str, Any]:
        known = {f.name for f in fields(cls)}
        kwargs: Dict[str, Any] = {}
        for key, value in options.items():
            name = _ALIASES.get(key, key)
            if name not in known:
                raise ValueError(f"Unknown option: {key}")
            kwargs[name] = value
        return kwargs

    def merged(self, overrides: Optional[Mapping[str, Any]] = None) -> "CompileOptions":
        """Copy of these options with `overrides` (same keys as from_mapping) applied."""
        return replace(self, **self._normalize(overrides or {}))

    def resolve(self, rule_names: List[str]) -> None:
        if self.allowed_start_rules is None:
            self.allowed_start_rules = rule_names[:1]
        else:
            self.allowed_start_rules = list(self.allowed_start_rules)
        outputs = self.output if isinstance(self.output, list) else [self.output]
        for kind in outputs:
            if kind not in OUTPUTS:
                raise ValueError(f"Invalid output format: {kind}.")
        if self.format not in FORMATS:
            raise ValueError(f"Invalid module format: {self.format}.")
        if self.export_var is not None and not self.export_var.isidentifier():
            raise ValueError(f"Invalid export variable name: {self.export_var}.")
        for var in self.dependencies:
            if not var.isidentifier():
                raise ValueError(f"Invalid dependency variable name: {var}.")
