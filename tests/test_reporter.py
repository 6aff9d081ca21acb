# tests/test_reporter.py
"""
Tests for the output formats.
"""

import io
import json

import pytest

from cppstyle.diagnostics import Diagnostic, DiagnosticSeverity, SourceLocation
from cppstyle.reporter import FORMATS, Reporter, ReporterStats, SarifBuilder


def make_diag(rule_id="namingCase", line=1, column=5, severity=DiagnosticSeverity.WARNING,
              suggestion="rename to 'bad'", message="variable 'Bad' is not snake_case"):
    return Diagnostic(
        rule_id=rule_id,
        message=message,
        severity=severity,
        location=SourceLocation("a.hpp", line, column),
        suggestion=suggestion,
    )


DIAGNOSTICS = [
    make_diag(),
    make_diag(rule_id="anonymousNamespace", line=3, column=1, severity=DiagnosticSeverity.ERROR,
              suggestion="", message="anonymous namespace"),
    make_diag(rule_id="docMissingBrief", line=4, column=1,
              severity=DiagnosticSeverity.INFORMATION, suggestion="", message="no brief"),
]


def render(fmt, diagnostics=DIAGNOSTICS, **kwargs):
    out = io.StringIO()
    with Reporter(fmt=fmt, stream=out, **kwargs) as rep:
        rep.emit_all(diagnostics)
    return out.getvalue(), rep.stats


class TestStats:

    def test_empty(self):
        assert ReporterStats().summary_line() == "no style violations found"

    def test_counts(self):
        stats = ReporterStats()
        stats.record(DiagnosticSeverity.ERROR)
        stats.record(DiagnosticSeverity.WARNING)
        stats.record(DiagnosticSeverity.WARNING)
        assert stats.total == 3
        assert stats.summary_line() == "found 1 error, 2 warnings"

    def test_notes(self):
        stats = ReporterStats(information=1)
        assert stats.summary_line() == "found 1 note"


class TestLineFormats:

    def test_gcc(self):
        text, stats = render("gcc")
        assert text.splitlines() == [
            "a.hpp:1:5: warning: variable 'Bad' is not snake_case [namingCase]",
            "a.hpp:3:1: error: anonymous namespace [anonymousNamespace]",
            "a.hpp:4:1: information: no brief [docMissingBrief]",
        ]
        assert stats.error == 1

    def test_json_lines(self):
        text, _ = render("json")
        records = [json.loads(line) for line in text.splitlines()]
        assert [r["rule_id"] for r in records] == [
            "namingCase", "anonymousNamespace", "docMissingBrief",
        ]
        assert records[0]["suggestion"] == "rename to 'bad'"
        assert "suggestion" not in records[1]

    def test_plain_text(self):
        text, _ = render("text", colour=False)
        lines = text.splitlines()
        assert lines[0].startswith("a.hpp:1:5: warning:")
        assert lines[1] == "  help: rename to 'bad'"
        assert lines[-1] == "  found 1 error, 1 warning, 1 note"

    def test_plain_text_without_findings(self):
        text, _ = render("text", diagnostics=[], colour=False)
        assert text == "  no style violations found\n"

    def test_terminal_text_shows_source_line(self):
        text, _ = render("text", diagnostics=[make_diag()], colour=True,
                         sources={"a.hpp": "int Bad = 0;\n"})
        assert "--> a.hpp:1:5" in text
        assert "int Bad = 0;" in text
        assert "^" in text
        assert "help" in text and "rename to 'bad'" in text
        assert "found 1 warning" in text

    def test_unknown_format(self):
        with pytest.raises(ValueError, match="unknown output format"):
            Reporter(fmt="xml", stream=io.StringIO())

    def test_formats(self):
        assert FORMATS == ("gcc", "json", "sarif", "text")


class TestSarif:

    def test_document(self):
        text, _ = render("sarif", rule_descriptions={"namingCase": "Identifiers are snake_case"},
                         tool_version="1.2.3")
        doc = json.loads(text)
        assert doc["version"] == "2.1.0"
        (run,) = doc["runs"]
        driver = run["tool"]["driver"]
        assert (driver["name"], driver["version"]) == ("cppstyle", "1.2.3")
        assert [r["id"] for r in driver["rules"]] == [
            "anonymousNamespace", "docMissingBrief", "namingCase",
        ]
        assert driver["rules"][2]["shortDescription"]["text"] == "Identifiers are snake_case"
        assert driver["rules"][0]["shortDescription"]["text"] == "anonymousNamespace"
        assert [r["level"] for r in run["results"]] == ["warning", "error", "note"]

    def test_result_location(self):
        builder = SarifBuilder()
        builder.add(make_diag())
        (result,) = builder.to_dict()["runs"][0]["results"]
        region = result["locations"][0]["physicalLocation"]["region"]
        assert region == {"startLine": 1, "startColumn": 5}
        assert result["locations"][0]["physicalLocation"]["artifactLocation"]["uri"] == "a.hpp"
        assert result["properties"] == {"suggestion": "rename to 'bad'"}

    def test_empty_document(self):
        text, _ = render("sarif", diagnostics=[])
        assert json.loads(text)["runs"][0]["results"] == []
