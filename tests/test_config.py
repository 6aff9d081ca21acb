# tests/test_config.py
"""
Tests for configuration validation and application.
"""

import json

import pytest

from cppstyle.checkers import CheckerRegistry, WhitespaceChecker, default_registry
from cppstyle.config import CheckerConfig, load_config
from cppstyle.diagnostics import Diagnostic, DiagnosticSeverity, SourceLocation
from cppstyle.errors import ConfigError
from cppstyle.runner import CheckerRunner
from tests.conftest import diagnostics_for, rule_ids


def make_diag(rule_id="namingCase", checker_name="naming", symbol="Widget",
              severity=DiagnosticSeverity.WARNING):
    return Diagnostic(
        rule_id=rule_id,
        message="msg",
        severity=severity,
        location=SourceLocation("a.hpp", 1, 1),
        checker_name=checker_name,
        symbol=symbol,
    )


class TestFromMapping:

    def test_empty_mapping_runs_everything(self):
        config = CheckerConfig.from_mapping({})
        assert config.rules is None
        assert config.severity_overrides == {}
        assert config.ignore_patterns == ()

    def test_full_mapping(self):
        config = CheckerConfig.from_mapping({
            "rules": ["naming", "missingNoexcept"],
            "severity_overrides": {"documentation": "info", "namingCase": "error"},
            "ignore_patterns": ["test_*"],
        })
        assert config.rules == frozenset({"naming", "missingNoexcept"})
        assert config.severity_overrides["documentation"] is DiagnosticSeverity.INFORMATION
        assert config.severity_overrides["namingCase"] is DiagnosticSeverity.ERROR
        assert config.ignore_patterns == ("test_*",)

    def test_empty_rule_list_means_all(self):
        assert CheckerConfig.from_mapping({"rules": []}).rules is None

    @pytest.mark.parametrize("data, key", [
        ({"rulez": []}, "rulez"),
        ({"rules": ["noSuchRule"]}, "rules"),
        ({"rules": "naming"}, "rules"),
        ({"rules": [3]}, "rules"),
        ({"severity_overrides": {"naming": "fatal"}}, "severity_overrides"),
        ({"severity_overrides": {"noSuchRule": "error"}}, "severity_overrides"),
        ({"severity_overrides": ["naming"]}, "severity_overrides"),
        ({"severity_overrides": {"naming": 2}}, "severity_overrides"),
        ({"ignore_patterns": "test_*"}, "ignore_patterns"),
    ])
    def test_invalid(self, data, key):
        with pytest.raises(ConfigError) as info:
            CheckerConfig.from_mapping(data)
        assert info.value.key == key
        assert key in str(info.value)

    def test_not_a_mapping(self):
        with pytest.raises(ConfigError):
            CheckerConfig.from_mapping(["naming"])

    def test_custom_registry_limits_names(self):
        registry = CheckerRegistry()
        registry.register(WhitespaceChecker)
        with pytest.raises(ConfigError):
            CheckerConfig.from_mapping({"rules": ["namingCase"]}, registry=registry)


class TestQueries:

    def test_selects_by_rule_or_checker(self):
        config = CheckerConfig(rules=frozenset({"naming", "tabCharacter"}))
        assert config.selects("aliasSuffix", "naming")
        assert config.selects("tabCharacter", "whitespace")
        assert not config.selects("missingNoexcept", "exception-spec")

    def test_rule_override_beats_checker_override(self):
        config = CheckerConfig(severity_overrides={
            "naming": DiagnosticSeverity.INFORMATION,
            "namingCase": DiagnosticSeverity.ERROR,
        })
        assert config.severity_for(make_diag()) is DiagnosticSeverity.ERROR
        assert config.severity_for(make_diag(rule_id="aliasSuffix")) is DiagnosticSeverity.INFORMATION
        assert config.severity_for(
            make_diag(rule_id="tabCharacter", checker_name="whitespace")
        ) is DiagnosticSeverity.WARNING

    def test_ignore_patterns_are_case_sensitive(self):
        config = CheckerConfig(ignore_patterns=("test_*",))
        assert config.is_ignored("test_helper")
        assert not config.is_ignored("Test_helper")
        assert not config.is_ignored("")

    def test_enabled_checkers(self):
        registry = default_registry()
        config = CheckerConfig(rules=frozenset({"tabCharacter", "naming"}))
        assert sorted(cls.name for cls in config.enabled_checkers(registry)) == [
            "naming", "whitespace",
        ]

    def test_apply(self):
        config = CheckerConfig(
            rules=frozenset({"naming"}),
            severity_overrides={"naming": DiagnosticSeverity.ERROR},
            ignore_patterns=("Legacy*",),
        )
        kept = config.apply([
            make_diag(),
            make_diag(symbol="LegacyThing"),
            make_diag(rule_id="tabCharacter", checker_name="whitespace"),
        ])
        assert len(kept) == 1
        assert kept[0].severity is DiagnosticSeverity.ERROR
        assert kept[0].symbol == "Widget"


class TestConfigInPipeline:

    def test_ignore_pattern_hides_symbol(self):
        source = "class BadName;\n"
        assert rule_ids(diagnostics_for(source, rules=["namingCase"])) == ["namingCase"]
        config = CheckerConfig(rules=frozenset({"namingCase"}), ignore_patterns=("Bad*",))
        assert CheckerRunner(config=config).check_source("test.hpp", source).diagnostics == ()

    def test_override_reaches_output(self):
        config = CheckerConfig.from_mapping({
            "rules": ["naming"],
            "severity_overrides": {"naming": "error"},
        })
        (diag,) = CheckerRunner(config=config).check_source("test.hpp", "int Bad = 0;\n").diagnostics
        assert diag.severity is DiagnosticSeverity.ERROR


class TestLoadConfig:

    def test_load(self, tmp_path):
        path = tmp_path / "cppstyle.json"
        path.write_text(json.dumps({"rules": ["whitespace"]}), encoding="utf-8")
        assert load_config(path).rules == frozenset({"whitespace"})

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "cppstyle.json"
        path.write_text("{ not json", encoding="utf-8")
        with pytest.raises(ConfigError, match="invalid JSON"):
            load_config(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match="cannot read"):
            load_config(tmp_path / "absent.json")

    def test_validation_errors_propagate(self, tmp_path):
        path = tmp_path / "cppstyle.json"
        path.write_text(json.dumps({"colour": True}), encoding="utf-8")
        with pytest.raises(ConfigError, match="colour"):
            load_config(path)
