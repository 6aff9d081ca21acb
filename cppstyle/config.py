"""
cppstyle/config.py
══════════════════

Run configuration.

A :class:`CheckerConfig` is an immutable value built either directly or
from a plain mapping (``CheckerConfig.from_mapping``).  The checking core
only ever sees the validated object; reading JSON from disk is the job of
:func:`load_config`, used by the command line driver.

    {
        "rules": ["naming", "missingNoexcept"],
        "severity_overrides": {"documentation": "information"},
        "ignore_patterns": ["test_*", "*_impl"]
    }

``rules`` and the keys of ``severity_overrides`` accept either rule ids or
checker names.  A rule id override beats a checker name override.
"""

from __future__ import annotations

import dataclasses
import json
import logging
from dataclasses import dataclass, field
from fnmatch import fnmatchcase
from pathlib import Path
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Optional, Tuple, Type, Union

from cppstyle.checkers import Checker, CheckerRegistry, default_registry
from cppstyle.diagnostics import Diagnostic, DiagnosticSeverity
from cppstyle.errors import ConfigError

_log = logging.getLogger(__name__)

_KNOWN_KEYS = frozenset({"rules", "severity_overrides", "ignore_patterns"})


@dataclass(frozen=True)
class CheckerConfig:
    """
    Which rules run, at what severity, and which identifiers are exempt.

    Attributes
    ----------
    rules              : rule ids and/or checker names to run; None runs all
    severity_overrides : rule id or checker name → severity
    ignore_patterns    : fnmatch globs over the identifier a diagnostic is about
    """
    rules: Optional[FrozenSet[str]] = None
    severity_overrides: Mapping[str, DiagnosticSeverity] = field(default_factory=dict)
    ignore_patterns: Tuple[str, ...] = ()

    @classmethod
    def from_mapping(
        cls,
        data: Mapping[str, Any],
        registry: Optional[CheckerRegistry] = None,
    ) -> "CheckerConfig":
        """
        Validate a plain mapping and build a config.

        Raises
        ------
        ConfigError
            On unknown keys, wrong value types, unknown rule or checker
            names, or unknown severities.
        """
        if not isinstance(data, Mapping):
            raise ConfigError(f"configuration must be a mapping, not {type(data).__name__}")
        unknown = sorted(set(data) - _KNOWN_KEYS)
        if unknown:
            raise ConfigError(f"unknown configuration key '{unknown[0]}'", key=unknown[0])

        registry = registry or default_registry()
        known = set(registry.names) | set(registry.rule_catalog())

        rules: Optional[FrozenSet[str]] = None
        raw_rules = data.get("rules")
        if raw_rules is not None:
            names = _string_list(raw_rules, "rules")
            for name in names:
                if name not in known:
                    raise ConfigError(f"unknown rule or checker '{name}'", key="rules")
            rules = frozenset(names) or None

        overrides: Dict[str, DiagnosticSeverity] = {}
        raw_overrides = data.get("severity_overrides") or {}
        if not isinstance(raw_overrides, Mapping):
            raise ConfigError("expected a mapping of rule → severity", key="severity_overrides")
        for name, value in raw_overrides.items():
            if name not in known:
                raise ConfigError(f"unknown rule or checker '{name}'", key="severity_overrides")
            if isinstance(value, DiagnosticSeverity):
                overrides[name] = value
                continue
            if not isinstance(value, str):
                raise ConfigError(f"severity for '{name}' must be a string", key="severity_overrides")
            try:
                overrides[name] = DiagnosticSeverity.parse(value)
            except ValueError:
                raise ConfigError(
                    f"unknown severity '{value}' for '{name}'", key="severity_overrides"
                ) from None

        patterns = tuple(_string_list(data.get("ignore_patterns") or [], "ignore_patterns"))
        return cls(rules=rules, severity_overrides=overrides, ignore_patterns=patterns)

    # ── queries ──────────────────────────────────────────────────────

    def selects(self, rule_id: str, checker_name: str = "") -> bool:
        if self.rules is None:
            return True
        return rule_id in self.rules or checker_name in self.rules

    def severity_for(self, diag: Diagnostic) -> DiagnosticSeverity:
        if diag.rule_id in self.severity_overrides:
            return self.severity_overrides[diag.rule_id]
        return self.severity_overrides.get(diag.checker_name, diag.severity)

    def is_ignored(self, symbol: str) -> bool:
        return bool(symbol) and any(fnmatchcase(symbol, pat) for pat in self.ignore_patterns)

    def enabled_checkers(self, registry: CheckerRegistry) -> List[Type[Checker]]:
        """Enabled checkers that can produce at least one selected rule."""
        return [
            cls for cls in registry.checkers()
            if any(self.selects(rid, cls.name) for rid in cls.rule_ids)
        ]

    def apply(self, diagnostics: Iterable[Diagnostic]) -> List[Diagnostic]:
        """Drop unselected and ignored diagnostics and apply severity overrides."""
        kept: List[Diagnostic] = []
        for diag in diagnostics:
            if not self.selects(diag.rule_id, diag.checker_name):
                continue
            if self.is_ignored(diag.symbol):
                continue
            severity = self.severity_for(diag)
            if severity is not diag.severity:
                diag = dataclasses.replace(diag, severity=severity)
            kept.append(diag)
        return kept


def _string_list(value: Any, key: str) -> List[str]:
    if isinstance(value, str) or not isinstance(value, (list, tuple, set, frozenset)):
        raise ConfigError("expected a list of strings", key=key)
    items = list(value)
    for item in items:
        if not isinstance(item, str):
            raise ConfigError(f"expected a string, got {item!r}", key=key)
    return items


def load_config(
    path: Union[str, Path],
    registry: Optional[CheckerRegistry] = None,
) -> CheckerConfig:
    """Read a JSON configuration file."""
    path = Path(path)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise ConfigError(f"cannot read configuration file {path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise ConfigError(f"invalid JSON in {path}: {exc}") from exc
    _log.debug("loaded configuration from %s", path)
    return CheckerConfig.from_mapping(data, registry=registry)


__all__ = ["CheckerConfig", "load_config"]
