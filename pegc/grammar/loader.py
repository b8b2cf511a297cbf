# pegc/grammar/loader.py
"""Grammar file reader."""

from __future__ import annotations
from pathlib    import Path


def load_grammar_text(path: str) -> str:
    """
    Read a grammar file as UTF-8 with newlines normalized to "\\n"
    (a leading byte-order mark is dropped).
    """
    text = Path(path).read_text(encoding="utf-8-sig")
    return text.replace("\r\n", "\n").replace("\r", "\n")
