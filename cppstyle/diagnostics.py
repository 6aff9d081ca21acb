"""
cppstyle/diagnostics.py
═══════════════════════

Diagnostic model, inline suppressions and the diagnostic aggregator.

    ┌──────────────┐   ┌────────────────────┐   ┌──────────────────────┐
    │ rule checkers│──▶│ SuppressionManager │──▶│ DiagnosticAggregator │
    └──────────────┘   │ // cppstyle-suppress│   │ dedupe + sort        │
                       └────────────────────┘   └──────────┬───────────┘
                                                           ▼
                                              tuple[Diagnostic, ...]

Ordering is total and stable: ``(file, line, column, rule_id)``.  Two
diagnostics with the same rule id at the same position are one finding,
however many checker passes produced them.
"""

from __future__ import annotations

import json
import logging
import re
from collections import defaultdict
from dataclasses import dataclass
from enum import Enum
from fnmatch import fnmatch
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from cppstyle.lexer import Token

_log = logging.getLogger(__name__)


# ═════════════════════════════════════════════════════════════════════════
#  PART 1 — DIAGNOSTIC MODEL
# ═════════════════════════════════════════════════════════════════════════

class DiagnosticSeverity(Enum):
    """Severity levels, most severe first."""
    ERROR = "error"
    WARNING = "warning"
    INFORMATION = "information"

    @classmethod
    def parse(cls, value: str) -> "DiagnosticSeverity":
        """Accept ``"error"``, ``"Warning"``, ``"info"`` and friends."""
        low = value.strip().lower()
        if low == "info":
            low = "information"
        return cls(low)


@dataclass(frozen=True)
class SourceLocation:
    """A specific point in source code (1-based)."""
    file: str = ""
    line: int = 1
    column: int = 1

    def __str__(self) -> str:
        return f"{self.file}:{self.line}:{self.column}"


@dataclass(frozen=True)
class Diagnostic:
    """
    A single style finding.

    Attributes
    ----------
    rule_id      : rule identifier (e.g. ``"namingCase"``)
    message      : human-readable description
    severity     : DiagnosticSeverity
    location     : primary source location
    suggestion   : optional descriptive fix text
    checker_name : name of the checker that produced this
    symbol       : the identifier the finding is about; matched by
                   ``ignore_patterns``
    """
    rule_id: str
    message: str
    severity: DiagnosticSeverity
    location: SourceLocation
    suggestion: str = ""
    checker_name: str = ""
    symbol: str = ""

    @property
    def file(self) -> str:
        return self.location.file

    @property
    def line(self) -> int:
        return self.location.line

    @property
    def column(self) -> int:
        return self.location.column

    @property
    def dedupe_key(self) -> Tuple[str, str, int, int]:
        return (self.rule_id, self.location.file, self.location.line, self.location.column)

    @property
    def sort_key(self) -> Tuple[str, int, int, str]:
        return (self.location.file, self.location.line, self.location.column, self.rule_id)

    def to_json(self) -> Dict[str, Any]:
        """Plain record: ``{rule_id, severity, file, line, column, message[, suggestion]}``."""
        result: Dict[str, Any] = {
            "rule_id": self.rule_id,
            "severity": self.severity.value,
            "file": self.location.file,
            "line": self.location.line,
            "column": self.location.column,
            "message": self.message,
        }
        if self.suggestion:
            result["suggestion"] = self.suggestion
        return result

    def to_json_str(self) -> str:
        """Single-line JSON string."""
        return json.dumps(self.to_json())

    def to_gcc_format(self) -> str:
        """GCC-style diagnostic string: file:line:col: severity: message [rule]."""
        return f"{self.location}: {self.severity.value}: {self.message} [{self.rule_id}]"


# ═════════════════════════════════════════════════════════════════════════
#  PART 2 — SUPPRESSION MANAGER
# ═════════════════════════════════════════════════════════════════════════

SUPPRESS_MARKER = "cppstyle-suppress"

_SUPPRESS_RE = re.compile(r"cppstyle-suppress\b[ \t:]*([^\n]*)")


class SuppressionManager:
    """
    Manages diagnostic suppressions from multiple sources.

    Sources:
      1. Inline comments: ``// cppstyle-suppress ruleId [ruleId...]`` or
         ``// cppstyle-suppress *``, covering the comment's own line and
         the line after it
      2. File-level suppressions (passed programmatically)
      3. Global suppressions

    Usage
    -----
    >>> sm = SuppressionManager()
    >>> sm.load_inline_suppressions(tokens)
    >>> sm.add_file_suppression("tabCharacter", "third_party/*")
    >>> sm.add_global_suppression("docMissingBrief")
    >>> kept = sm.filter_diagnostics(diagnostics)
    """

    def __init__(self) -> None:
        # (file, line) → rule ids suppressed at that location
        self._inline: Dict[Tuple[str, int], Set[str]] = defaultdict(set)
        # file pattern → rule ids
        self._file_level: Dict[str, Set[str]] = defaultdict(set)
        self._global: Set[str] = set()

    def load_inline_suppressions(self, tokens: Iterable[Token]) -> int:
        """
        Scan comment tokens for suppression markers.

        Returns the number of markers found.
        """
        found = 0
        for tok in tokens:
            if not tok.is_comment or SUPPRESS_MARKER not in tok.text:
                continue
            match = _SUPPRESS_RE.search(tok.text)
            if match is None:
                continue
            body = match.group(1).replace("*/", " ")
            ids = {part for part in re.split(r"[\s,]+", body) if part} or {"*"}
            self._inline[(tok.file, tok.end_line)].update(ids)
            found += 1
        if found:
            _log.debug("loaded %d inline suppressions", found)
        return found

    def add_file_suppression(self, rule_id: str, file_pattern: str) -> None:
        """Suppress ``rule_id`` in files matching ``file_pattern``."""
        self._file_level[file_pattern].add(rule_id)

    def add_global_suppression(self, rule_id: str) -> None:
        """Globally suppress ``rule_id``."""
        self._global.add(rule_id)

    def is_suppressed(self, diag: Diagnostic) -> bool:
        """Check whether a diagnostic should be suppressed."""
        rid = diag.rule_id
        if rid in self._global or "*" in self._global:
            return True

        loc = diag.location
        for line_offset in (0, 1):
            ids = self._inline.get((loc.file, loc.line - line_offset), ())
            if rid in ids or "*" in ids:
                return True

        for pattern, ids in self._file_level.items():
            if rid in ids or "*" in ids:
                if pattern == loc.file or fnmatch(loc.file, pattern):
                    return True
        return False

    def filter_diagnostics(self, diagnostics: Iterable[Diagnostic]) -> List[Diagnostic]:
        """Return only non-suppressed diagnostics."""
        return [d for d in diagnostics if not self.is_suppressed(d)]


# ═════════════════════════════════════════════════════════════════════════
#  PART 3 — AGGREGATOR
# ═════════════════════════════════════════════════════════════════════════

class DiagnosticAggregator:
    """
    Collect diagnostics, drop exact repeats and expose them sorted.

    Applying the aggregator to its own output changes nothing.

    Usage
    -----
    >>> agg = DiagnosticAggregator()
    >>> agg.extend(checker_a_diags)
    >>> agg.extend(checker_b_diags)
    >>> agg.results()            # tuple, sorted by file/line/column/rule
    """

    def __init__(self, diagnostics: Optional[Iterable[Diagnostic]] = None) -> None:
        self._by_key: Dict[Tuple[str, str, int, int], Diagnostic] = {}
        if diagnostics is not None:
            self.extend(diagnostics)

    def add(self, diag: Diagnostic) -> bool:
        """Add one diagnostic; returns False if it repeats an earlier one."""
        key = diag.dedupe_key
        if key in self._by_key:
            return False
        self._by_key[key] = diag
        return True

    def extend(self, diagnostics: Iterable[Diagnostic]) -> None:
        for diag in diagnostics:
            self.add(diag)

    def __len__(self) -> int:
        return len(self._by_key)

    def results(self) -> Tuple[Diagnostic, ...]:
        return tuple(sorted(self._by_key.values(), key=lambda d: d.sort_key))

    @classmethod
    def aggregate(cls, diagnostics: Iterable[Diagnostic]) -> Tuple[Diagnostic, ...]:
        """One-shot dedupe and sort."""
        return cls(diagnostics).results()


__all__ = [
    "Diagnostic",
    "DiagnosticAggregator",
    "DiagnosticSeverity",
    "SUPPRESS_MARKER",
    "SourceLocation",
    "SuppressionManager",
]
