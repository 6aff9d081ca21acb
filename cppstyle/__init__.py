"""
cppstyle — Style Conformance Checker for C++
============================================

Parses C++ translation units into a shallow declaration model and reports
violations of the house style guide: naming, brace placement, const and
noexcept correctness, namespace hierarchy and mandatory documentation.

Core modules
------------
lexer
    Raw text → restartable token stream with whitespace and comments kept.
docblock
    Doxygen comments → tag mappings (parsimonious grammar).
model, builder
    Tokens → DeclarationTree with a documentation index.
checkers
    Independent rule checkers and their registry.
diagnostics
    Diagnostic records, inline suppressions and the aggregator.
config, runner, reporter
    Run configuration, per-file and batch execution, output formats.

Quick start
-----------
>>> from cppstyle import check_source
>>> [d.rule_id for d in check_source("a.hpp", "namespace {}")]
['anonymousNamespace']

Package layout
--------------
::

    cppstyle/
    ├── __init__.py            ← this file
    ├── __main__.py            ← command line driver
    ├── lexer.py
    ├── docblock.py
    ├── model.py
    ├── builder.py
    ├── checkers.py
    ├── diagnostics.py
    ├── config.py
    ├── runner.py
    ├── reporter.py
    └── errors.py
"""

from __future__ import annotations

import logging

__version__ = "0.1.0"

from cppstyle.builder import ModelBuilder, build_tree
from cppstyle.checkers import Checker, CheckerContext, CheckerRegistry, default_registry
from cppstyle.config import CheckerConfig, load_config
from cppstyle.diagnostics import (
    Diagnostic,
    DiagnosticAggregator,
    DiagnosticSeverity,
    SourceLocation,
    SuppressionManager,
)
from cppstyle.errors import ConfigError, CppStyleError, UnclassifiableNode
from cppstyle.lexer import Lexer, Token, TokenKind, tokenize
from cppstyle.model import Declaration, DeclarationKind, DeclarationTree
from cppstyle.runner import BatchResults, CheckerRunner, CheckerRunResults, check_source

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "BatchResults",
    "Checker",
    "CheckerConfig",
    "CheckerContext",
    "CheckerRegistry",
    "CheckerRunResults",
    "CheckerRunner",
    "ConfigError",
    "CppStyleError",
    "Declaration",
    "DeclarationKind",
    "DeclarationTree",
    "Diagnostic",
    "DiagnosticAggregator",
    "DiagnosticSeverity",
    "Lexer",
    "ModelBuilder",
    "SourceLocation",
    "SuppressionManager",
    "Token",
    "TokenKind",
    "UnclassifiableNode",
    "build_tree",
    "check_source",
    "default_registry",
    "load_config",
    "tokenize",
    "__version__",
]
