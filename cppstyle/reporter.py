"""
cppstyle/reporter.py
════════════════════

Diagnostic output.

Output formats
──────────────
  • gcc   : ``file:line:col: severity: message [ruleId]`` one-liners
  • json  : one JSON object per line
  • sarif : a SARIF 2.1.0 document written when the reporter finishes
  • text  : colourful Rust-style rendering with the offending source line

Usage
─────
    from cppstyle.reporter import Reporter

    with Reporter(fmt="text", stream=sys.stdout) as rep:
        for diag in batch.diagnostics:
            rep.emit(diag)
"""

from __future__ import annotations

import json
import sys
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence, TextIO, Union

from termcolor import colored

from cppstyle.diagnostics import Diagnostic, DiagnosticSeverity

FORMATS = ("gcc", "json", "sarif", "text")

_COLOURS: Dict[DiagnosticSeverity, str] = {
    DiagnosticSeverity.ERROR: "red",
    DiagnosticSeverity.WARNING: "yellow",
    DiagnosticSeverity.INFORMATION: "cyan",
}

_SARIF_LEVELS: Dict[DiagnosticSeverity, str] = {
    DiagnosticSeverity.ERROR: "error",
    DiagnosticSeverity.WARNING: "warning",
    DiagnosticSeverity.INFORMATION: "note",
}


# ═════════════════════════════════════════════════════════════════════════
#  STATISTICS
# ═════════════════════════════════════════════════════════════════════════

@dataclass
class ReporterStats:
    error: int = 0
    warning: int = 0
    information: int = 0

    def record(self, severity: DiagnosticSeverity) -> None:
        setattr(self, severity.value, getattr(self, severity.value) + 1)

    @property
    def total(self) -> int:
        return self.error + self.warning + self.information

    def summary_line(self) -> str:
        if not self.total:
            return "no style violations found"
        parts = []
        for name, count in (("error", self.error), ("warning", self.warning),
                            ("note", self.information)):
            if count:
                parts.append(f"{count} {name}{'s' if count != 1 else ''}")
        return "found " + ", ".join(parts)


# ═════════════════════════════════════════════════════════════════════════
#  TEXT RENDERERS
# ═════════════════════════════════════════════════════════════════════════

class _SourceCache:
    """Source lines by path; falls back to reading the file."""

    def __init__(self, sources: Optional[Mapping[str, str]] = None) -> None:
        self._lines: Dict[str, List[str]] = {
            path: text.splitlines() for path, text in (sources or {}).items()
        }

    def line(self, path: str, number: int) -> str:
        if path not in self._lines:
            try:
                with open(path, "r", encoding="utf-8", errors="replace") as fh:
                    self._lines[path] = fh.read().splitlines()
            except OSError:
                self._lines[path] = []
        lines = self._lines[path]
        return lines[number - 1] if 0 < number <= len(lines) else ""


class _TerminalRenderer:
    """Render diagnostics to a terminal with colours."""

    def __init__(self, stream: TextIO, sources: _SourceCache) -> None:
        self._stream = stream
        self._sources = sources

    def render(self, diag: Diagnostic) -> None:
        colour = _COLOURS[diag.severity]
        lines: List[str] = []

        # ── header: severity[ruleId]: message ────────────────────────
        sev_str = colored(f"{diag.severity.value}[{diag.rule_id}]", colour, attrs=["bold"])
        lines.append(f"{sev_str}: {colored(diag.message, attrs=['bold'])}")

        arrow = colored("-->", "blue", attrs=["bold"])
        lines.append(f"  {arrow} {diag.location}")

        # ── source line with a caret under the column ────────────────
        src = self._sources.line(diag.file, diag.line)
        if src:
            gutter = str(diag.line)
            pipe = colored("|", "blue", attrs=["bold"])
            blank = " " * len(gutter)
            lines.append(f" {blank} {pipe}")
            lines.append(f" {colored(gutter, 'blue', attrs=['bold'])} {pipe} {src.expandtabs(1)}")
            pad = " " * (diag.column - 1)
            lines.append(f" {blank} {pipe} {pad}{colored('^', colour, attrs=['bold'])}")

        if diag.suggestion:
            prefix = colored("help", "green", attrs=["bold"])
            lines.append(f"  = {prefix}: {diag.suggestion}")

        lines.append("")
        self._stream.write("\n".join(lines) + "\n")


class _PlainRenderer:
    """Non-coloured renderer: the gcc line plus the suggestion."""

    def __init__(self, stream: TextIO) -> None:
        self._stream = stream

    def render(self, diag: Diagnostic) -> None:
        self._stream.write(diag.to_gcc_format() + "\n")
        if diag.suggestion:
            self._stream.write(f"  help: {diag.suggestion}\n")


class _GccRenderer:
    def __init__(self, stream: TextIO) -> None:
        self._stream = stream

    def render(self, diag: Diagnostic) -> None:
        self._stream.write(diag.to_gcc_format() + "\n")


class _JsonRenderer:
    def __init__(self, stream: TextIO) -> None:
        self._stream = stream

    def render(self, diag: Diagnostic) -> None:
        self._stream.write(diag.to_json_str() + "\n")


# ═════════════════════════════════════════════════════════════════════════
#  SARIF 2.1.0 BUILDER
# ═════════════════════════════════════════════════════════════════════════

class SarifBuilder:
    """Accumulates diagnostics into a SARIF 2.1.0 document."""

    SARIF_VERSION = "2.1.0"
    SARIF_SCHEMA = (
        "https://raw.githubusercontent.com/oasis-tcs/sarif-spec/master/"
        "Schemata/sarif-schema-2.1.0.json"
    )

    def __init__(self, rule_descriptions: Optional[Mapping[str, str]] = None) -> None:
        self._results: List[Dict[str, Any]] = []
        self._rules: Dict[str, Dict[str, Any]] = {}  # ruleId → rule obj
        self._descriptions = dict(rule_descriptions or {})

    def add(self, diag: Diagnostic) -> None:
        if diag.rule_id not in self._rules:
            self._rules[diag.rule_id] = {
                "id": diag.rule_id,
                "shortDescription": {
                    "text": self._descriptions.get(diag.rule_id, diag.rule_id),
                },
            }

        result: Dict[str, Any] = {
            "ruleId": diag.rule_id,
            "level": _SARIF_LEVELS[diag.severity],
            "message": {"text": diag.message},
            "locations": [{
                "physicalLocation": {
                    "artifactLocation": {"uri": diag.file},
                    "region": {"startLine": diag.line, "startColumn": diag.column},
                },
            }],
        }
        if diag.suggestion:
            result["properties"] = {"suggestion": diag.suggestion}
        self._results.append(result)

    def to_dict(self, tool_name: str = "cppstyle", version: str = "0.0.0") -> Dict[str, Any]:
        return {
            "$schema": self.SARIF_SCHEMA,
            "version": self.SARIF_VERSION,
            "runs": [
                {
                    "tool": {
                        "driver": {
                            "name": tool_name,
                            "version": version,
                            "rules": [self._rules[k] for k in sorted(self._rules)],
                        }
                    },
                    "results": self._results,
                }
            ],
        }

    def to_json(self, tool_name: str = "cppstyle", version: str = "0.0.0") -> str:
        return json.dumps(self.to_dict(tool_name, version), indent=2)


# ═════════════════════════════════════════════════════════════════════════
#  REPORTER
# ═════════════════════════════════════════════════════════════════════════

_Renderer = Union[_TerminalRenderer, _PlainRenderer, _GccRenderer, _JsonRenderer]


class Reporter:
    """
    Central diagnostic dispatcher.

    Use as a context manager::

        with Reporter(fmt="sarif") as rep:
            rep.emit_all(diagnostics)
        # finish() is called automatically

    Parameters
    ----------
    fmt               : one of ``FORMATS``
    stream            : where output goes (default stdout)
    colour            : force colour on/off for ``text``; None means "if a tty"
    sources           : path → text, used to show source lines in ``text``
    rule_descriptions : rule id → description for SARIF rule metadata
    """

    def __init__(
        self,
        fmt: str = "text",
        stream: Optional[TextIO] = None,
        colour: Optional[bool] = None,
        sources: Optional[Mapping[str, str]] = None,
        rule_descriptions: Optional[Mapping[str, str]] = None,
        tool_name: str = "cppstyle",
        tool_version: str = "0.0.0",
    ) -> None:
        if fmt not in FORMATS:
            raise ValueError(f"unknown output format '{fmt}' (expected one of {', '.join(FORMATS)})")
        self.fmt = fmt
        self.stream = stream or sys.stdout
        self.tool_name = tool_name
        self.tool_version = tool_version
        self.stats = ReporterStats()

        self._sarif: Optional[SarifBuilder] = None
        self._renderer: Optional[_Renderer] = None
        if fmt == "sarif":
            self._sarif = SarifBuilder(rule_descriptions)
        elif fmt == "gcc":
            self._renderer = _GccRenderer(self.stream)
        elif fmt == "json":
            self._renderer = _JsonRenderer(self.stream)
        else:
            use_colour = colour if colour is not None else (
                hasattr(self.stream, "isatty") and self.stream.isatty()
            )
            if use_colour:
                self._renderer = _TerminalRenderer(self.stream, _SourceCache(sources))
            else:
                self._renderer = _PlainRenderer(self.stream)

    def __enter__(self) -> "Reporter":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.finish()

    def emit(self, diag: Diagnostic) -> None:
        self.stats.record(diag.severity)
        if self._renderer is not None:
            self._renderer.render(diag)
        if self._sarif is not None:
            self._sarif.add(diag)

    def emit_all(self, diagnostics: Sequence[Diagnostic]) -> None:
        for diag in diagnostics:
            self.emit(diag)

    def finish(self) -> ReporterStats:
        """Write the SARIF document or the text summary; return the stats."""
        if self._sarif is not None:
            self.stream.write(self._sarif.to_json(self.tool_name, self.tool_version) + "\n")
        elif isinstance(self._renderer, _TerminalRenderer):
            colour = "red" if self.stats.error else ("yellow" if self.stats.total else "green")
            self.stream.write(colored(f"  ╰─ {self.stats.summary_line()}", colour, attrs=["bold"]) + "\n")
        elif isinstance(self._renderer, _PlainRenderer):
            self.stream.write(f"  {self.stats.summary_line()}\n")
        self.stream.flush()
        return self.stats


__all__ = ["FORMATS", "Reporter", "ReporterStats", "SarifBuilder"]
