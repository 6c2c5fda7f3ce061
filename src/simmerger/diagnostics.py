# src/simmerger/diagnostics.py
"""
Line-oriented diagnostics.

The tree algorithms never print on their own: they accept a ``log`` callable
that takes one already-formatted line (e.g. ``"[trim] removing track 7"``).
``None`` selects ``null_log``. Pipelines hand in ``print`` depending on
[run].diagnostics_level (0=off, 1=minimal, 2=verbose).
"""
from __future__ import annotations
from typing import Callable, List, Optional

LogFn = Callable[[str], None]


def null_log(line: str) -> None:
    return None


def resolve_log(log: Optional[LogFn]) -> LogFn:
    return null_log if log is None else log


def make_log(diagnostics_level: int, threshold: int, sink: LogFn = print) -> LogFn:
    """Return `sink` if diagnostics_level >= threshold, else the no-op logger."""
    return sink if diagnostics_level >= threshold else null_log


class LineRecorder:
    """Collects emitted lines; handy for tests and for embedding in output files."""

    def __init__(self) -> None:
        self.lines: List[str] = []

    def __call__(self, line: str) -> None:
        self.lines.append(line)

    def text(self) -> str:
        return "\n".join(self.lines)
