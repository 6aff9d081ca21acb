# tests/test_cli.py
"""
Tests for the command line driver.
"""

import json

import pytest

from cppstyle.__main__ import EXIT_ERROR, EXIT_INFRA, EXIT_OK, discover_sources, main
from tests.conftest import CLEAN_HEADER, cpp


@pytest.fixture
def clean_file(tmp_path):
    path = tmp_path / "clean.hpp"
    path.write_text(cpp(CLEAN_HEADER), encoding="utf-8")
    return path


@pytest.fixture
def anonymous_file(tmp_path):
    path = tmp_path / "anon.cpp"
    path.write_text("namespace\n{\n}\n", encoding="utf-8")
    return path


class TestExitCodes:

    def test_clean_file(self, clean_file, capsys):
        assert main([str(clean_file), "--color", "never"]) == EXIT_OK
        assert capsys.readouterr().out == "  no style violations found\n"

    def test_error_severity_finding(self, anonymous_file, capsys):
        assert main([str(anonymous_file), "--format", "gcc"]) == EXIT_ERROR
        out = capsys.readouterr().out
        assert f"{anonymous_file}:1:1: error:" in out
        assert "[anonymousNamespace]" in out

    def test_warnings_only(self, tmp_path, capsys):
        path = tmp_path / "w.hpp"
        path.write_text("int Bad = 0;\n", encoding="utf-8")
        config = tmp_path / "cppstyle.json"
        config.write_text(json.dumps({"rules": ["naming"]}), encoding="utf-8")
        assert main([str(path), "--config", str(config), "--format", "gcc"]) == EXIT_OK
        assert "[namingCase]" in capsys.readouterr().out

    def test_severity_override_turns_warning_into_error(self, tmp_path):
        path = tmp_path / "w.hpp"
        path.write_text("int Bad = 0;\n", encoding="utf-8")
        config = tmp_path / "cppstyle.json"
        config.write_text(json.dumps({
            "rules": ["naming"],
            "severity_overrides": {"namingCase": "error"},
        }), encoding="utf-8")
        assert main([str(path), "--config", str(config), "--format", "json"]) == EXIT_ERROR

    def test_no_paths(self, capsys):
        assert main([]) == EXIT_INFRA
        assert "usage" in capsys.readouterr().err

    def test_bad_config(self, clean_file, tmp_path):
        config = tmp_path / "cppstyle.json"
        config.write_text(json.dumps({"rules": ["noSuchRule"]}), encoding="utf-8")
        assert main([str(clean_file), "--config", str(config)]) == EXIT_INFRA

    def test_missing_config(self, clean_file, tmp_path):
        assert main([str(clean_file), "--config", str(tmp_path / "absent.json")]) == EXIT_INFRA

    def test_bad_jobs(self, clean_file):
        assert main([str(clean_file), "--jobs", "0"]) == EXIT_INFRA

    def test_empty_directory(self, tmp_path):
        assert main([str(tmp_path)]) == EXIT_INFRA

    def test_missing_file_is_an_input_error(self, tmp_path, capsys):
        missing = tmp_path / "absent.hpp"
        assert main([str(missing), "--format", "json"]) == EXIT_ERROR
        (record,) = [json.loads(line) for line in capsys.readouterr().out.splitlines()]
        assert record["rule_id"] == "inputError"


class TestOutput:

    def test_json(self, anonymous_file, capsys):
        main([str(anonymous_file), "--format", "json"])
        records = [json.loads(line) for line in capsys.readouterr().out.splitlines()]
        assert "anonymousNamespace" in [r["rule_id"] for r in records]
        assert all(r["file"] == str(anonymous_file) for r in records)

    def test_sarif(self, anonymous_file, capsys):
        main([str(anonymous_file), "--format", "sarif"])
        doc = json.loads(capsys.readouterr().out)
        driver = doc["runs"][0]["tool"]["driver"]
        assert driver["name"] == "cppstyle"
        rules = {r["id"]: r for r in driver["rules"]}
        assert rules["anonymousNamespace"]["shortDescription"]["text"] != "anonymousNamespace"

    def test_list_rules(self, capsys):
        assert main(["--list-rules"]) == EXIT_OK
        out = capsys.readouterr().out
        assert out.startswith("anonymous-namespace: ")
        assert "\nnaming: " in out
        assert "    namingCase " in out
        assert "    anonymousNamespace " in out

    def test_directory_batch(self, tmp_path, clean_file, anonymous_file, capsys):
        assert main([str(tmp_path), "--format", "gcc", "-j", "2"]) == EXIT_ERROR
        out = capsys.readouterr().out
        assert str(anonymous_file) in out
        assert str(clean_file) not in out


class TestDiscoverSources:

    def test_directory_walk(self, tmp_path):
        (tmp_path / "sub").mkdir()
        (tmp_path / ".git").mkdir()
        for name in ("b.hpp", "a.cpp", "notes.txt", "sub/c.h", ".git/d.hpp"):
            (tmp_path / name).write_text("", encoding="utf-8")
        assert discover_sources([str(tmp_path)]) == [
            str(tmp_path / "a.cpp"),
            str(tmp_path / "b.hpp"),
            str(tmp_path / "sub" / "c.h"),
        ]

    def test_explicit_files_kept(self, tmp_path):
        odd = tmp_path / "widget.inc"
        odd.write_text("", encoding="utf-8")
        missing = tmp_path / "absent.hpp"
        assert discover_sources([str(odd), str(missing), str(odd)]) == [str(odd), str(missing)]
