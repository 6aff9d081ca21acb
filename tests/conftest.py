# tests/conftest.py
"""
Shared helpers and C++ snippets for the cppstyle test-suite.

Snippets are written in the house style so that each test only sees the
diagnostics it provokes on purpose.
"""

import textwrap
from typing import Iterable, List, Optional

import pytest

from cppstyle.builder import build_tree
from cppstyle.config import CheckerConfig
from cppstyle.lexer import Lexer
from cppstyle.runner import CheckerRunner


def cpp(text: str) -> str:
    """Dedent a triple-quoted snippet and drop the leading newline."""
    return textwrap.dedent(text).lstrip("\n")


def diagnostics_for(source: str, rules: Optional[Iterable[str]] = None,
                    path: str = "test.hpp", dedent: bool = True):
    """Run the default checkers over *source*, optionally restricted to *rules*.

    Pass ``dedent=False`` when leading whitespace matters (tabs).
    """
    config = CheckerConfig(rules=frozenset(rules)) if rules else CheckerConfig()
    text = cpp(source) if dedent else source
    return CheckerRunner(config=config).check_source(path, text).diagnostics


def rule_ids(diagnostics) -> List[str]:
    return [d.rule_id for d in diagnostics]


def tree_for(source: str, path: str = "test.hpp"):
    text = cpp(source)
    return build_tree(Lexer(text, path).tokens(), path)


def names(tree) -> List[str]:
    return [d.name for d in tree.walk()]


def find(tree, name: str):
    """First declaration called *name*; fails the test when missing."""
    for decl in tree.walk():
        if decl.name == name:
            return decl
    raise AssertionError(f"no declaration named {name!r}")


# ---------------------------------------------------------------------------
#  Snippets
# ---------------------------------------------------------------------------

CLEAN_HEADER = """
/// @brief Geometry helpers.
namespace kmx::geo
{
/// @brief Adds two values.
/// @param lhs left operand
/// @param rhs right operand
/// @return the sum
int add(const int lhs, const int rhs) noexcept;
}
"""

CLEAN_CLASS = """
namespace kmx::geo
{
/// @brief A point on the plane.
class point
{
public:
    /// @brief Builds the origin.
    point() noexcept;

    /// @brief Horizontal position.
    /// @return the x coordinate
    int x() const noexcept;

private:
    int x_ = 0;
    int y_ = 0;
};
}
"""


@pytest.fixture
def clean_header() -> str:
    return CLEAN_HEADER


@pytest.fixture
def clean_class() -> str:
    return CLEAN_CLASS
