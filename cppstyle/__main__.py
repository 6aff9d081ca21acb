#!/usr/bin/env python3
"""cppstyle/__main__.py — command line driver for the C++ style checker.

Usage examples
--------------
    # Check a source tree, colourful output on a terminal
    python -m cppstyle src/ include/

    # Machine-readable output
    cppstyle src/ --format json
    cppstyle src/ --format sarif > cppstyle.sarif

    # Restrict rules and tune severities
    cppstyle src/ --config cppstyle.json --jobs 8

    # Show every rule and exit
    cppstyle --list-rules

Exit codes
----------
    0   Success (no error-severity diagnostics).
    1   One or more diagnostics with severity ERROR were emitted.
    2   Infrastructure failure (bad configuration, crashed file pass, etc.).
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
import textwrap
from pathlib import Path
from typing import List, Optional, Sequence, TextIO

from cppstyle import __version__
from cppstyle.checkers import CheckerRegistry, default_registry
from cppstyle.config import CheckerConfig, load_config
from cppstyle.errors import ConfigError
from cppstyle.reporter import FORMATS, Reporter
from cppstyle.runner import CheckerRunner

_log = logging.getLogger("cppstyle")

# Exit codes ----------------------------------------------------------------

EXIT_OK: int = 0
EXIT_ERROR: int = 1
EXIT_INFRA: int = 2

SOURCE_SUFFIXES = frozenset({
    ".h", ".hh", ".hpp", ".hxx", ".h++", ".ipp", ".inl", ".tpp",
    ".c", ".cc", ".cpp", ".cxx", ".c++",
})


# ===========================================================================
# Utility helpers
# ===========================================================================

def _configure_logging(verbosity: int) -> None:
    """Set up the ``cppstyle`` logger.

    Parameters
    ----------
    verbosity:
        0 → WARNING, 1 → INFO, 2+ → DEBUG.
    """
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s [%(levelname)-5.5s] %(name)s: %(message)s",
            datefmt="%H:%M:%S",
        )
    )
    root = logging.getLogger("cppstyle")
    root.setLevel(level)
    for old in list(root.handlers):
        if isinstance(old, logging.StreamHandler):
            root.removeHandler(old)
    root.addHandler(handler)


def discover_sources(paths: Sequence[str]) -> List[str]:
    """Expand directories into C++ source files, sorted, without duplicates.

    Explicit file arguments are kept whatever their suffix; missing paths
    are kept too so that the runner reports them as input errors.
    """
    found: List[str] = []
    seen = set()
    for raw in paths:
        path = Path(raw)
        if path.is_dir():
            candidates = []
            for dirpath, dirnames, filenames in os.walk(path):
                dirnames[:] = sorted(d for d in dirnames if not d.startswith("."))
                for name in filenames:
                    if Path(name).suffix.lower() in SOURCE_SUFFIXES:
                        candidates.append(os.path.join(dirpath, name))
            candidates.sort()
        else:
            candidates = [str(path)]
        for candidate in candidates:
            if candidate not in seen:
                seen.add(candidate)
                found.append(candidate)
    return found


def list_rules(registry: CheckerRegistry, stream: TextIO) -> None:
    for cls in sorted(registry.checkers(), key=lambda c: c.name):
        stream.write(f"{cls.name}: {cls.description}\n")
        for rule_id in sorted(cls.rule_ids):
            stream.write(f"    {rule_id:<24} {cls.default_severity.value}\n")


# ===========================================================================
# Argument parser
# ===========================================================================

def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cppstyle",
        description="Check C++ sources against the house style guide.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent("""\
            examples:
              cppstyle src/ include/
              cppstyle src/ --format sarif > cppstyle.sarif
              cppstyle widget.hpp --config cppstyle.json -v
        """),
    )
    parser.add_argument(
        "paths",
        nargs="*",
        metavar="PATH",
        help="Files or directories to check.",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (-v info, -vv debug).",
    )
    parser.add_argument(
        "--config",
        metavar="FILE",
        help="JSON configuration file (rules, severity_overrides, ignore_patterns).",
    )
    parser.add_argument(
        "--format",
        choices=FORMATS,
        default="text",
        help="Output format (default: %(default)s).",
    )
    parser.add_argument(
        "-j", "--jobs",
        type=int,
        default=None,
        help="Worker threads (default: number of CPUs).",
    )
    parser.add_argument(
        "--color",
        choices=("auto", "always", "never"),
        default="auto",
        help="Colour text output (default: %(default)s).",
    )
    parser.add_argument(
        "--list-rules",
        action="store_true",
        help="List every checker and rule id, then exit.",
    )
    return parser


# ===========================================================================
# Main entry point
# ===========================================================================

def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the cppstyle CLI.

    Parameters
    ----------
    argv:
        Command-line arguments.  ``None`` → ``sys.argv[1:]``.

    Returns
    -------
    int
        Exit code (see module docstring for semantics).
    """
    parser = _build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.verbose)

    registry = default_registry()
    if args.list_rules:
        list_rules(registry, sys.stdout)
        return EXIT_OK

    if not args.paths:
        parser.print_help(sys.stderr)
        return EXIT_INFRA
    if args.jobs is not None and args.jobs < 1:
        _log.error("--jobs must be at least 1")
        return EXIT_INFRA

    try:
        config = load_config(args.config, registry) if args.config else CheckerConfig()
    except ConfigError as exc:
        _log.error("%s", exc)
        return EXIT_INFRA

    files = discover_sources(args.paths)
    if not files:
        _log.error("no C++ sources found under %s", ", ".join(args.paths))
        return EXIT_INFRA
    _log.info("checking %d files", len(files))

    try:
        batch = CheckerRunner(registry, config).run_files(files, jobs=args.jobs)
    except KeyboardInterrupt:
        _log.info("Interrupted by user.")
        return 130

    colour = {"always": True, "never": False}.get(args.color)
    descriptions = {rid: cls.description for rid, cls in registry.rule_catalog().items()}
    with Reporter(
        fmt=args.format,
        stream=sys.stdout,
        colour=colour,
        rule_descriptions=descriptions,
        tool_version=__version__,
    ) as reporter:
        reporter.emit_all(batch.diagnostics)

    if batch.failed:
        _log.error("could not check: %s", ", ".join(batch.failed))
        return EXIT_INFRA
    return EXIT_ERROR if batch.error_count else EXIT_OK


if __name__ == "__main__":
    raise SystemExit(main())
