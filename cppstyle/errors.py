"""
cppstyle/errors.py
══════════════════

Exception types raised by cppstyle.

The checking core degrades into diagnostics instead of raising for anything
found in C++ source text.  Exceptions are reserved for programming-level
problems at the boundary (bad configuration) and for the per-node skip
signal used inside rule checkers.

  CppStyleError (base)
  ├── ConfigError          - invalid configuration mapping or file
  └── UnclassifiableNode   - a checker met a model shape it cannot classify
"""

from __future__ import annotations

from typing import Any, Optional


class CppStyleError(Exception):
    """Base exception for all cppstyle errors."""
    pass


class ConfigError(CppStyleError):
    """Raised when a configuration mapping or file is malformed."""

    def __init__(self, message: str, key: Optional[str] = None) -> None:
        self.key = key
        if key:
            message = f"{message} (option '{key}')"
        super().__init__(message)


class UnclassifiableNode(CppStyleError):
    """
    Raised by a checker helper when a declaration has a shape the checker
    cannot reason about.

    The checker base class catches it per node and skips that node; it
    never escapes a checker run.
    """

    def __init__(self, node: Any, reason: str = "") -> None:
        self.node = node
        self.reason = reason
        super().__init__(reason or f"cannot classify {node!r}")
