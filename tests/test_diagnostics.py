# tests/test_diagnostics.py
"""
Tests for diagnostic records, suppressions and the aggregator.
"""

import json

import pytest

from cppstyle.diagnostics import (
    Diagnostic,
    DiagnosticAggregator,
    DiagnosticSeverity,
    SourceLocation,
    SuppressionManager,
)
from cppstyle.lexer import Lexer


def make_diag(rule_id="namingCase", file="a.hpp", line=1, column=1,
              severity=DiagnosticSeverity.WARNING, suggestion="", message="msg"):
    return Diagnostic(
        rule_id=rule_id,
        message=message,
        severity=severity,
        location=SourceLocation(file=file, line=line, column=column),
        suggestion=suggestion,
    )


class TestSeverity:

    @pytest.mark.parametrize("text, severity", [
        ("error", DiagnosticSeverity.ERROR),
        ("WARNING", DiagnosticSeverity.WARNING),
        (" information ", DiagnosticSeverity.INFORMATION),
    ])
    def test_parse(self, text, severity):
        assert DiagnosticSeverity.parse(text) is severity

    def test_parse_unknown(self):
        with pytest.raises(ValueError):
            DiagnosticSeverity.parse("fatal")


class TestDiagnostic:

    def test_gcc_format(self):
        diag = make_diag(line=3, column=7, message="bad name")
        assert diag.to_gcc_format() == "a.hpp:3:7: warning: bad name [namingCase]"

    def test_json(self):
        diag = make_diag(suggestion="rename to 'x'")
        data = json.loads(diag.to_json_str())
        assert data == {
            "rule_id": "namingCase",
            "severity": "warning",
            "file": "a.hpp",
            "line": 1,
            "column": 1,
            "message": "msg",
            "suggestion": "rename to 'x'",
        }

    def test_json_without_suggestion(self):
        assert "suggestion" not in make_diag().to_json()

    def test_frozen(self):
        diag = make_diag()
        with pytest.raises(AttributeError):
            diag.rule_id = "other"

    def test_location_str(self):
        assert str(SourceLocation("b.cpp", 2, 4)) == "b.cpp:2:4"


class TestAggregator:

    def test_deduplicates_on_rule_and_position(self):
        agg = DiagnosticAggregator()
        assert agg.add(make_diag())
        assert not agg.add(make_diag(message="different text"))
        assert agg.add(make_diag(rule_id="aliasSuffix"))
        assert len(agg) == 2

    def test_sorted_by_file_line_column_rule(self):
        diags = [
            make_diag(file="b.hpp"),
            make_diag(),
            make_diag(line=2),
            make_diag(column=5),
            make_diag(rule_id="aliasSuffix"),
        ]
        results = DiagnosticAggregator.aggregate(diags)
        assert [(d.file, d.line, d.column, d.rule_id) for d in results] == [
            ("a.hpp", 1, 1, "aliasSuffix"),
            ("a.hpp", 1, 1, "namingCase"),
            ("a.hpp", 1, 5, "namingCase"),
            ("a.hpp", 2, 1, "namingCase"),
            ("b.hpp", 1, 1, "namingCase"),
        ]

    def test_idempotent(self):
        diags = [make_diag(line=n % 3 + 1, column=n % 2 + 1) for n in range(10)]
        once = DiagnosticAggregator.aggregate(diags)
        assert DiagnosticAggregator.aggregate(once) == once


class TestSuppressionManager:

    def _manager(self, source, file="a.hpp"):
        sm = SuppressionManager()
        sm.load_inline_suppressions(Lexer(source, file).tokens())
        return sm

    def test_inline_same_and_next_line(self):
        sm = self._manager("int a; // cppstyle-suppress namingCase\nint b;\nint c;\n")
        assert sm.is_suppressed(make_diag(line=1))
        assert sm.is_suppressed(make_diag(line=2))
        assert not sm.is_suppressed(make_diag(line=3))
        assert not sm.is_suppressed(make_diag(rule_id="aliasSuffix", line=1))

    def test_several_ids(self):
        sm = self._manager("// cppstyle-suppress namingCase, aliasSuffix\nusing A = int;\n")
        assert sm.is_suppressed(make_diag(line=2))
        assert sm.is_suppressed(make_diag(rule_id="aliasSuffix", line=2))

    def test_bare_marker_suppresses_everything(self):
        sm = self._manager("int a; // cppstyle-suppress\n")
        assert sm.is_suppressed(make_diag(rule_id="tabCharacter"))

    def test_block_comment_marker(self):
        sm = self._manager("int a; /* cppstyle-suppress namingCase */\n")
        assert sm.is_suppressed(make_diag())

    def test_marker_counts(self):
        sm = SuppressionManager()
        tokens = Lexer("// cppstyle-suppress a\n// unrelated\n// cppstyle-suppress b\n").tokens()
        assert sm.load_inline_suppressions(tokens) == 2

    def test_other_file_unaffected(self):
        sm = self._manager("int a; // cppstyle-suppress namingCase\n")
        assert not sm.is_suppressed(make_diag(file="other.hpp"))

    def test_file_level(self):
        sm = SuppressionManager()
        sm.add_file_suppression("tabCharacter", "third_party/*")
        assert sm.is_suppressed(make_diag(rule_id="tabCharacter", file="third_party/x.hpp"))
        assert not sm.is_suppressed(make_diag(rule_id="tabCharacter", file="src/x.hpp"))

    def test_global(self):
        sm = SuppressionManager()
        sm.add_global_suppression("docMissingBrief")
        kept = sm.filter_diagnostics([make_diag(rule_id="docMissingBrief"), make_diag()])
        assert [d.rule_id for d in kept] == ["namingCase"]
