"""
cppstyle/runner.py
══════════════════

Per-file pipeline and parallel batch execution.

    (path, text) ──▶ decode ──▶ Lexer ──▶ ModelBuilder ──▶ checkers
                                                              │
                   CheckerConfig (rules, severities, ignores) ◀┘
                                  │
                                  ▼
                        DiagnosticAggregator ──▶ CheckerRunResults

``run_batch`` fans files out to a thread pool.  Per-file state is private
to its task.  The only shared state is the :class:`NamespaceLedger`,
which keeps one ``namespaceDuplicateWord`` finding per namespace path
across the whole batch: the finding of the first file in input order
wins, whatever order the tasks finish in.
"""

from __future__ import annotations

import logging
import os
import threading
import time
from collections import defaultdict
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple, Union

from cppstyle.builder import ModelBuilder
from cppstyle.checkers import CheckerContext, CheckerRegistry, default_registry
from cppstyle.config import CheckerConfig
from cppstyle.diagnostics import (
    Diagnostic,
    DiagnosticAggregator,
    DiagnosticSeverity,
    SourceLocation,
    SuppressionManager,
)
from cppstyle.lexer import Lexer

_log = logging.getLogger(__name__)

INPUT_ERROR = "inputError"
INTERNAL_ERROR = "internalError"
NAMESPACE_RULE = "namespaceDuplicateWord"

Source = Union[str, bytes]


def decode_source(data: Source) -> str:
    """UTF-8 with an optional BOM; raises UnicodeDecodeError on bad bytes."""
    if isinstance(data, str):
        return data[1:] if data.startswith("\ufeff") else data
    return data.decode("utf-8-sig")


def input_error(path: str, message: str, rule_id: str = INPUT_ERROR) -> Diagnostic:
    return Diagnostic(
        rule_id=rule_id,
        message=message,
        severity=DiagnosticSeverity.ERROR,
        location=SourceLocation(file=path, line=1, column=1),
        checker_name="runner",
    )


# ═════════════════════════════════════════════════════════════════════════
#  PART 1 — RESULTS
# ═════════════════════════════════════════════════════════════════════════

@dataclass
class CheckerRunResults:
    """
    Results of checking one file.

    Attributes
    ----------
    file                   : path of the file
    diagnostics            : deduplicated, sorted diagnostics
    diagnostics_by_checker : raw diagnostics grouped by checker name
    stats                  : timing statistics (``<checker>_elapsed_ms``)
    checker_names          : names of checkers that ran
    """
    file: str = ""
    diagnostics: Tuple[Diagnostic, ...] = ()
    diagnostics_by_checker: Dict[str, List[Diagnostic]] = field(
        default_factory=lambda: defaultdict(list)
    )
    stats: Dict[str, Any] = field(default_factory=dict)
    checker_names: List[str] = field(default_factory=list)

    @property
    def error_count(self) -> int:
        return sum(1 for d in self.diagnostics if d.severity is DiagnosticSeverity.ERROR)

    @property
    def warning_count(self) -> int:
        return sum(1 for d in self.diagnostics if d.severity is DiagnosticSeverity.WARNING)

    @property
    def total_count(self) -> int:
        return len(self.diagnostics)

    def by_severity(self, severity: DiagnosticSeverity) -> List[Diagnostic]:
        return [d for d in self.diagnostics if d.severity is severity]

    def by_rule(self, rule_id: str) -> List[Diagnostic]:
        return [d for d in self.diagnostics if d.rule_id == rule_id]

    def to_json_lines(self) -> str:
        return "\n".join(d.to_json_str() for d in self.diagnostics)

    def to_gcc_format(self) -> str:
        return "\n".join(d.to_gcc_format() for d in self.diagnostics)

    def summary(self) -> str:
        """Human-readable summary."""
        lines = [
            f"{self.file}: {self.total_count} diagnostics "
            f"({self.error_count} errors, {self.warning_count} warnings)",
        ]
        for name in self.checker_names:
            count = len(self.diagnostics_by_checker.get(name, []))
            elapsed = self.stats.get(f"{name}_elapsed_ms", 0)
            lines.append(f"  {name}: {count} findings ({elapsed:.1f}ms)")
        return "\n".join(lines)


@dataclass
class BatchResults:
    """
    Results of a batch, in input order.

    Attributes
    ----------
    files     : per-file results of every file that was checked
    cancelled : paths never started because the batch was cancelled
    failed    : paths whose pipeline crashed; each also gets a result
                holding one ``internalError`` diagnostic
    """
    files: List[CheckerRunResults] = field(default_factory=list)
    cancelled: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)

    @property
    def diagnostics(self) -> Tuple[Diagnostic, ...]:
        return DiagnosticAggregator.aggregate(d for r in self.files for d in r.diagnostics)

    @property
    def error_count(self) -> int:
        return sum(r.error_count for r in self.files)

    @property
    def warning_count(self) -> int:
        return sum(r.warning_count for r in self.files)

    @property
    def total_count(self) -> int:
        return sum(r.total_count for r in self.files)

    def by_file(self, path: str) -> Optional[CheckerRunResults]:
        for result in self.files:
            if result.file == path:
                return result
        return None

    def summary(self) -> str:
        text = (
            f"{len(self.files)} files checked: {self.total_count} diagnostics "
            f"({self.error_count} errors, {self.warning_count} warnings)"
        )
        if self.cancelled:
            text += f", {len(self.cancelled)} cancelled"
        if self.failed:
            text += f", {len(self.failed)} failed"
        return text


# ═════════════════════════════════════════════════════════════════════════
#  PART 2 — NAMESPACE LEDGER
# ═════════════════════════════════════════════════════════════════════════

class NamespaceLedger:
    """
    Project-wide record of duplicate-word namespace findings.

    Files record their findings when their pass completes, in whatever
    order the pool finishes them.  ``resolve`` then keeps, for each
    namespace path, only the finding of the earliest file in input order.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._entries: Dict[str, List[Tuple[int, Diagnostic]]] = defaultdict(list)

    def record(self, order: int, diagnostics: Iterable[Diagnostic]) -> None:
        found = [d for d in diagnostics if d.rule_id == NAMESPACE_RULE]
        if not found:
            return
        with self._lock:
            for diag in found:
                self._entries[diag.symbol].append((order, diag))

    def resolve(self) -> Set[Tuple[int, Tuple[str, str, int, int]]]:
        """``(order, dedupe key)`` of every finding that repeats an earlier file's path."""
        drop: Set[Tuple[int, Tuple[str, str, int, int]]] = set()
        with self._lock:
            for entries in self._entries.values():
                entries.sort(key=lambda e: (e[0], e[1].sort_key))
                drop.update((order, diag.dedupe_key) for order, diag in entries[1:])
        return drop

    def paths(self) -> List[str]:
        with self._lock:
            return sorted(self._entries)


# ═════════════════════════════════════════════════════════════════════════
#  PART 3 — RUNNER
# ═════════════════════════════════════════════════════════════════════════

class CheckerRunner:
    """
    Runs the enabled checkers over source files.

    Usage
    -----
    >>> runner = CheckerRunner()
    >>> result = runner.check_source("a.hpp", "namespace {}")
    >>> [d.rule_id for d in result.diagnostics]
    ['anonymousNamespace']

    >>> batch = runner.run_batch([("a.hpp", text_a), ("b.cpp", text_b)], jobs=4)
    >>> print(batch.summary())

    Parameters for constructor
    ─────────────────────────
    registry : CheckerRegistry; source of checker classes
    config   : CheckerConfig; rule selection, severities, ignores
    options  : dict; free-form options passed to checkers
    """

    def __init__(
        self,
        registry: Optional[CheckerRegistry] = None,
        config: Optional[CheckerConfig] = None,
        options: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.registry = registry or default_registry()
        self.config = config or CheckerConfig()
        self.options = options or {}

    def check_source(self, path: str, source: Source) -> CheckerRunResults:
        """Check one file's contents.  Never raises for source content."""
        results = CheckerRunResults(file=path)
        try:
            text = decode_source(source)
        except UnicodeDecodeError as exc:
            _log.warning("%s: not valid UTF-8: %s", path, exc)
            results.diagnostics = (input_error(path, f"cannot decode file as UTF-8: {exc.reason}"),)
            return results

        t0 = time.monotonic()
        tokens = Lexer(text, path).tokens()
        try:
            tree = ModelBuilder(tokens, path).build()
        except Exception as exc:
            _log.exception("model builder failed on %s", path)
            results.diagnostics = (input_error(
                path, f"internal error while building the model: {exc!r}", INTERNAL_ERROR,
            ),)
            return results
        results.stats["model_elapsed_ms"] = (time.monotonic() - t0) * 1000.0

        suppressions = SuppressionManager()
        suppressions.load_inline_suppressions(tokens)
        ctx = CheckerContext(tree=tree, suppressions=suppressions, options=self.options)

        aggregator = DiagnosticAggregator()
        for cls in self.config.enabled_checkers(self.registry):
            checker = cls()
            results.checker_names.append(cls.name)
            t0 = time.monotonic()
            try:
                diags = checker.check(ctx)
            except Exception:
                # one broken checker must not take the others down
                _log.exception("checker '%s' failed on %s", cls.name, path)
                diags = []
            elapsed_ms = (time.monotonic() - t0) * 1000.0
            if checker.skipped:
                _log.debug("%s: checker '%s' skipped %d nodes", path, cls.name, checker.skipped)

            diags = self.config.apply(diags)
            results.diagnostics_by_checker[cls.name] = diags
            results.stats[f"{cls.name}_elapsed_ms"] = elapsed_ms
            aggregator.extend(diags)

        results.diagnostics = aggregator.results()
        _log.info("%s: %d diagnostics", path, len(results.diagnostics))
        return results

    def check_file(self, path: Union[str, Path]) -> CheckerRunResults:
        """Read and check one file; unreadable files yield an ``inputError``."""
        path = str(path)
        try:
            data = Path(path).read_bytes()
        except OSError as exc:
            _log.warning("cannot read %s: %s", path, exc)
            return CheckerRunResults(
                file=path,
                diagnostics=(input_error(path, f"cannot read file: {exc.strerror or exc}"),),
            )
        return self.check_source(path, data)

    def run_batch(
        self,
        sources: Iterable[Tuple[str, Optional[Source]]],
        jobs: Optional[int] = None,
        cancel: Optional[threading.Event] = None,
    ) -> BatchResults:
        """
        Check many files concurrently.

        Parameters
        ----------
        sources : (path, text) pairs; the order fixes the output order.  A
                  text of None means "read the file at path"
        jobs    : worker threads (default ``os.cpu_count()``)
        cancel  : when set, files not yet started are skipped

        Returns
        -------
        BatchResults
        """
        items = list(sources)
        if jobs is not None and jobs < 1:
            raise ValueError(f"jobs must be at least 1, got {jobs}")
        workers = jobs or os.cpu_count() or 1
        cancel = cancel or threading.Event()
        ledger = NamespaceLedger()

        def task(order: int, path: str, source: Optional[Source]) -> Optional[CheckerRunResults]:
            if cancel.is_set():
                return None
            if source is None:
                result = self.check_file(path)
            else:
                result = self.check_source(path, source)
            ledger.record(order, result.diagnostics)
            return result

        outcomes: List[Optional[CheckerRunResults]] = [None] * len(items)
        failed: Dict[int, Exception] = {}
        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = [pool.submit(task, n, path, src) for n, (path, src) in enumerate(items)]
            for n, future in enumerate(futures):
                try:
                    outcomes[n] = future.result()
                except Exception as exc:
                    _log.exception("failed to check %s", items[n][0])
                    failed[n] = exc

        drop = ledger.resolve()
        batch = BatchResults()
        for n, (path, _) in enumerate(items):
            result = outcomes[n]
            if n in failed:
                batch.failed.append(path)
                batch.files.append(CheckerRunResults(file=path, diagnostics=(input_error(
                    path, f"internal error while checking file: {failed[n]!r}", INTERNAL_ERROR,
                ),)))
            elif result is None:
                batch.cancelled.append(path)
            else:
                if drop:
                    result = replace(result, diagnostics=tuple(
                        d for d in result.diagnostics if (n, d.dedupe_key) not in drop
                    ))
                batch.files.append(result)
        _log.info("%s", batch.summary())
        return batch

    def run_files(
        self,
        paths: Iterable[Union[str, Path]],
        jobs: Optional[int] = None,
        cancel: Optional[threading.Event] = None,
    ) -> BatchResults:
        """Read and check files from disk concurrently; see :meth:`run_batch`."""
        return self.run_batch([(str(p), None) for p in paths], jobs=jobs, cancel=cancel)


def check_source(path: str, source: Source, config: Optional[CheckerConfig] = None) -> Tuple[Diagnostic, ...]:
    """Convenience wrapper: the diagnostics of one file with the default registry."""
    return CheckerRunner(config=config).check_source(path, source).diagnostics


__all__ = [
    "BatchResults",
    "CheckerRunResults",
    "CheckerRunner",
    "INPUT_ERROR",
    "INTERNAL_ERROR",
    "NamespaceLedger",
    "check_source",
    "decode_source",
    "input_error",
]
