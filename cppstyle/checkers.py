"""
cppstyle/checkers.py
════════════════════

Rule engine: independent style checkers over one declaration tree.

Architecture
────────────

  ┌──────────────────────────────────────────────────────────┐
  │                     CheckerRegistry                      │
  │  ┌──────────┐ ┌──────────────────┐ ┌──────────────────┐  │
  │  │  naming  │ │ const-correctness│ │  documentation   │  │
  │  └────┬─────┘ └────────┬─────────┘ └────────┬─────────┘  │
  │  ┌────┴─────┐ ┌────────┴─────────┐ ┌────────┴─────────┐  │
  │  │ brace-   │ │ exception-spec   │ │ namespace-       │  │
  │  │ style    │ │                  │ │ hierarchy  …     │  │
  │  └────┬─────┘ └────────┬─────────┘ └────────┬─────────┘  │
  │       └────────────────┼────────────────────┘            │
  │                        ▼                                 │
  │        CheckerContext (tree, tokens, suppressions)       │
  └──────────────────────────────────────────────────────────┘

Every checker is instantiated fresh for each file and exposes
``check(ctx) -> list[Diagnostic]``.  Checkers never look at each other's
output and there is no precedence between them.

A checker that meets a node it cannot classify raises
:class:`~cppstyle.errors.UnclassifiableNode` from its per-node helper; the
base class skips that node and carries on.
"""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import (
    Any,
    Callable,
    ClassVar,
    Dict,
    FrozenSet,
    Iterable,
    List,
    Optional,
    Sequence,
    Set,
    Tuple,
    Type,
)

from cppstyle.builder import count_statements, match_close
from cppstyle.diagnostics import (
    Diagnostic,
    DiagnosticSeverity,
    SourceLocation,
    SuppressionManager,
)
from cppstyle.errors import UnclassifiableNode
from cppstyle.lexer import Token, TokenKind
from cppstyle.model import (
    Declaration,
    DeclarationKind,
    DeclarationTree,
    ExceptionSpec,
    Visibility,
)

_log = logging.getLogger(__name__)


# ═════════════════════════════════════════════════════════════════════════
#  PART 1 — CHECKER BASE CLASS
# ═════════════════════════════════════════════════════════════════════════

@dataclass
class CheckerContext:
    """
    Shared, read-only context passed to every checker for one file.

    Attributes
    ----------
    tree         : the file's DeclarationTree
    suppressions : SuppressionManager loaded with the file's inline markers
    options      : free-form per-run options
    """
    tree: DeclarationTree
    suppressions: SuppressionManager = field(default_factory=SuppressionManager)
    options: Dict[str, Any] = field(default_factory=dict)

    @property
    def file(self) -> str:
        return self.tree.file

    @property
    def tokens(self) -> Sequence[Token]:
        return self.tree.tokens

    def get_option(self, key: str, default: Any = None) -> Any:
        return self.options.get(key, default)


class Checker(ABC):
    """
    Abstract base class for all rule checkers.

    Lifecycle
    ─────────
      1. ``configure(ctx)`` — optional per-file setup
      2. ``inspect(ctx)``   — walk the tree, ``_emit`` findings
      3. ``report(ctx)``    — findings minus inline suppressions

    Subclass Contract
    ─────────────────
      - Override ``name``, ``description``, ``rule_ids``
      - Implement ``inspect()``
      - Use ``_for_each`` for per-node work so unclassifiable nodes are
        skipped rather than aborting the whole checker
    """

    name: ClassVar[str] = "base-checker"
    description: ClassVar[str] = ""
    rule_ids: ClassVar[FrozenSet[str]] = frozenset()
    default_severity: ClassVar[DiagnosticSeverity] = DiagnosticSeverity.WARNING

    def __init__(self) -> None:
        self._diagnostics: List[Diagnostic] = []
        self.skipped: int = 0

    @property
    def diagnostics(self) -> List[Diagnostic]:
        return list(self._diagnostics)

    def configure(self, ctx: CheckerContext) -> None:
        """Called before inspection.  Default implementation does nothing."""
        pass

    @abstractmethod
    def inspect(self, ctx: CheckerContext) -> None:
        """Walk the tree and append findings with ``_emit``."""
        ...

    def report(self, ctx: CheckerContext) -> List[Diagnostic]:
        return ctx.suppressions.filter_diagnostics(self._diagnostics)

    def check(self, ctx: CheckerContext) -> List[Diagnostic]:
        """Run the full lifecycle and return the diagnostics."""
        self._diagnostics = []
        self.skipped = 0
        self.configure(ctx)
        self.inspect(ctx)
        return self.report(ctx)

    def _for_each(self, nodes: Iterable[Any], visit: Callable[[Any], None]) -> None:
        for node in nodes:
            try:
                visit(node)
            except UnclassifiableNode as exc:
                self.skipped += 1
                _log.debug("%s: skipped %r: %s", self.name, exc.node, exc.reason)

    def _emit(
        self,
        rule_id: str,
        message: str,
        file: str,
        line: int,
        column: int,
        suggestion: str = "",
        symbol: str = "",
        severity: Optional[DiagnosticSeverity] = None,
    ) -> None:
        """Helper to create and store a diagnostic."""
        self._diagnostics.append(Diagnostic(
            rule_id=rule_id,
            message=message,
            severity=severity or self.default_severity,
            location=SourceLocation(file=file, line=max(line, 1), column=max(column, 1)),
            suggestion=suggestion,
            checker_name=self.name,
            symbol=symbol,
        ))

    def _emit_at(self, rule_id: str, message: str, ctx: CheckerContext, decl: Declaration,
                 suggestion: str = "", symbol: Optional[str] = None) -> None:
        self._emit(rule_id, message, ctx.file, decl.name_line, decl.name_column,
                   suggestion=suggestion, symbol=decl.name if symbol is None else symbol)

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} '{self.name}'>"


_KIND_LABELS: Dict[DeclarationKind, str] = {
    DeclarationKind.NAMESPACE: "namespace",
    DeclarationKind.CLASS_OR_STRUCT: "class",
    DeclarationKind.FUNCTION: "function",
    DeclarationKind.VARIABLE: "variable",
    DeclarationKind.TYPE_ALIAS: "type alias",
    DeclarationKind.TEMPLATE_PARAMETER: "template parameter",
}


def describe(decl: Declaration) -> str:
    """Human label for a declaration; raises for shapes no rule reasons about."""
    label = _KIND_LABELS.get(decl.kind)
    if label is None:
        raise UnclassifiableNode(decl, f"no rule applies to {decl.kind.value} nodes")
    if decl.kind is DeclarationKind.CLASS_OR_STRUCT:
        for key in ("struct", "union", "enum"):
            if decl.has(key):
                return key
    if decl.kind is DeclarationKind.VARIABLE:
        if decl.has("enumerator"):
            return "enumerator"
        if decl.has("local"):
            return "local variable"
        if decl.has("member"):
            return "data member"
        if decl.is_constant:
            return "constant"
    return label


# ═════════════════════════════════════════════════════════════════════════
#  PART 2 — NAMING
# ═════════════════════════════════════════════════════════════════════════

SNAKE_CASE = re.compile(r"^[a-z][a-z0-9]*(_[a-z0-9]+)*$")
PASCAL_CASE = re.compile(r"^[A-Z][a-zA-Z0-9]*$")


def to_snake_case(name: str) -> str:
    """``parseHTTPHeader`` → ``parse_http_header``."""
    text = re.sub(r"([A-Z]+)([A-Z][a-z])", r"\1_\2", name)
    text = re.sub(r"([a-z0-9])([A-Z])", r"\1_\2", text)
    text = re.sub(r"_+", "_", text).strip("_").lower()
    return text or name.lower()


def to_pascal_case(name: str) -> str:
    """``value_type`` → ``ValueType``."""
    parts = [p for p in re.split(r"_+", name) if p]
    return "".join(p[:1].upper() + p[1:] for p in parts) or name


class NamingChecker(Checker):
    """
    Identifier casing: ``lowercase_with_underscores`` everywhere, type
    aliases ending in ``_t``, private data members ending in ``_`` and
    ``PascalCase`` template parameters.

    Operators, constructors and destructors are skipped, as are
    out-of-line definitions (``void ns::widget::draw()``) whose name is
    checked at its declaration.
    """

    name = "naming"
    description = "Identifier casing and suffix conventions"
    rule_ids = frozenset({"namingCase", "aliasSuffix", "privateMemberSuffix", "templateParamCase"})

    def inspect(self, ctx: CheckerContext) -> None:
        self._for_each(ctx.tree.walk(), lambda decl: self._check_declaration(ctx, decl))

    def _check_declaration(self, ctx: CheckerContext, decl: Declaration) -> None:
        if decl.kind is DeclarationKind.OPAQUE or decl.is_anonymous:
            return
        label = describe(decl)

        if decl.kind is DeclarationKind.FUNCTION:
            for param in decl.parameters:
                if param.name and not SNAKE_CASE.match(param.name):
                    self._emit(
                        "namingCase",
                        f"parameter name '{param.name}' is not lowercase_with_underscores",
                        ctx.file, param.line, param.column,
                        suggestion=f"rename to '{to_snake_case(param.name)}'",
                        symbol=param.name,
                    )
            if decl.has("operator") or decl.has("constructor") or decl.has("destructor"):
                return
        if decl.qualified_by:
            return

        if decl.kind is DeclarationKind.TEMPLATE_PARAMETER:
            if not PASCAL_CASE.match(decl.name):
                self._emit_at(
                    "templateParamCase",
                    f"template parameter '{decl.name}' is not PascalCase",
                    ctx, decl, suggestion=f"rename to '{to_pascal_case(decl.name)}'",
                )
            return

        name = decl.name
        if decl.kind is DeclarationKind.VARIABLE and self._is_private_member(decl):
            if not name.endswith("_"):
                self._emit_at(
                    "privateMemberSuffix",
                    f"private data member '{name}' does not end with '_'",
                    ctx, decl, suggestion=f"rename to '{to_snake_case(name)}_'",
                )
            else:
                name = name[:-1]

        if not SNAKE_CASE.match(name):
            fixed = to_snake_case(name)
            if name != decl.name:
                fixed += "_"
            self._emit_at(
                "namingCase",
                f"{label} name '{decl.name}' is not lowercase_with_underscores",
                ctx, decl, suggestion=f"rename to '{fixed}'",
            )

        if decl.kind is DeclarationKind.TYPE_ALIAS and not decl.name.endswith("_t"):
            self._emit_at(
                "aliasSuffix",
                f"type alias '{decl.name}' does not end with '_t'",
                ctx, decl, suggestion=f"rename to '{to_snake_case(decl.name)}_t'",
            )

    @staticmethod
    def _is_private_member(decl: Declaration) -> bool:
        return (
            decl.has("member")
            and decl.visibility is Visibility.PRIVATE
            and not decl.has("enumerator")
        )


# ═════════════════════════════════════════════════════════════════════════
#  PART 3 — NAMESPACES
# ═════════════════════════════════════════════════════════════════════════

class AnonymousNamespaceChecker(Checker):
    """Every unnamed namespace is reported, whatever it contains."""

    name = "anonymous-namespace"
    description = "Anonymous namespaces are not allowed"
    rule_ids = frozenset({"anonymousNamespace"})
    default_severity = DiagnosticSeverity.ERROR

    def inspect(self, ctx: CheckerContext) -> None:
        for decl in ctx.tree.of_kind(DeclarationKind.NAMESPACE):
            if decl.is_anonymous:
                self._emit_at(
                    "anonymousNamespace",
                    "anonymous namespace is not allowed",
                    ctx, decl,
                    suggestion="give the namespace a name, e.g. 'detail'",
                    symbol="",
                )


def namespace_words(path: Sequence[str]) -> List[str]:
    """Lower-cased ``_``-separated words of every segment of *path*."""
    return [word.lower() for segment in path for word in segment.split("_") if word]


def repeated_word(path: Sequence[str]) -> Optional[str]:
    """The first word that repeats within *path*, or None."""
    seen: Set[str] = set()
    for word in namespace_words(path):
        if word in seen:
            return word
        seen.add(word)
    return None


class NamespaceHierarchyChecker(Checker):
    """
    No word may repeat within a fully qualified namespace path.

    ``kmx::gis::gis_data`` repeats ``gis`` and is reported at the
    ``gis_data`` segment, where the repetition first appears; its nested
    namespaces are not reported again.  The ``symbol`` of each finding is
    the qualified path, which the runner uses to keep one finding per path
    across a whole batch.
    """

    name = "namespace-hierarchy"
    description = "Namespace paths must not repeat a word"
    rule_ids = frozenset({"namespaceDuplicateWord"})

    def inspect(self, ctx: CheckerContext) -> None:
        reported: Set[Tuple[str, ...]] = set()
        for decl in ctx.tree.of_kind(DeclarationKind.NAMESPACE):
            if decl.is_anonymous:
                continue
            path = decl.namespace_path + (decl.name,)
            word = repeated_word(path)
            if word is None or repeated_word(decl.namespace_path) is not None:
                continue
            if path in reported:
                continue
            reported.add(path)
            qualified = "::".join(path)
            self._emit_at(
                "namespaceDuplicateWord",
                f"namespace '{qualified}' repeats the word '{word}'",
                ctx, decl,
                suggestion=f"drop '{word}' from '{decl.name}'",
                symbol=qualified,
            )


# ═════════════════════════════════════════════════════════════════════════
#  PART 4 — CONST AND NOEXCEPT
# ═════════════════════════════════════════════════════════════════════════

class ConstCorrectnessChecker(Checker):
    """
    Initialised locals and by-value parameters that are never written
    should be ``const``.

    "Written" is the builder's conservative notion of a possible write site
    (assignment, increment, address-of, member access, subscript, call
    argument, range-for range, stream extraction, reference binding).  A
    name declared twice in one function is skipped because the model cannot
    tell the two apart.
    """

    name = "const-correctness"
    description = "Never-modified locals and by-value parameters must be const"
    rule_ids = frozenset({"constCorrectness"})

    def inspect(self, ctx: CheckerContext) -> None:
        functions = [
            f for f in ctx.tree.of_kind(DeclarationKind.FUNCTION)
            if f.has("definition") and f.body is not None
        ]
        self._for_each(functions, lambda fn: self._check_function(ctx, fn))

    def _check_function(self, ctx: CheckerContext, fn: Declaration) -> None:
        untouchable = fn.written_names | fn.shadowed_names
        for var in fn.locals:
            if not var.has_initializer or var.has("loop") or var.is_constant:
                continue
            if var.qualifiers & {"reference", "pointer", "array"}:
                continue
            if var.name in untouchable:
                continue
            self._emit_at(
                "constCorrectness",
                f"local variable '{var.name}' is never modified; declare it const",
                ctx, var,
                suggestion=f"const {var.type_text} {var.name}".replace("  ", " "),
            )

        for param in fn.parameters:
            if not param.name or not param.is_by_value or param.is_const:
                continue
            if param.name in untouchable:
                continue
            self._emit(
                "constCorrectness",
                f"parameter '{param.name}' is passed by value and never modified; declare it const",
                ctx.file, param.line, param.column,
                suggestion=f"const {param.type_text} {param.name}",
                symbol=param.name,
            )


class ExceptionSpecChecker(Checker):
    """Every function declaration must carry ``noexcept`` or ``noexcept(...)``."""

    name = "exception-spec"
    description = "Functions must declare an exception specification"
    rule_ids = frozenset({"missingNoexcept"})

    def inspect(self, ctx: CheckerContext) -> None:
        for fn in ctx.tree.of_kind(DeclarationKind.FUNCTION):
            if fn.exception_spec is not ExceptionSpec.NONE or fn.has("deleted"):
                continue
            self._emit_at(
                "missingNoexcept",
                f"function '{fn.name}' has no exception specification",
                ctx, fn,
                suggestion="add 'noexcept' or 'noexcept(false)'",
            )


# ═════════════════════════════════════════════════════════════════════════
#  PART 5 — BRACES AND WHITESPACE
# ═════════════════════════════════════════════════════════════════════════

class BraceStyleChecker(Checker):
    """
    Brace placement.

    * ``if``/``else``/``for``/``while``/``do`` bodies holding exactly one
      statement must not be braced (``bracesSingleStatement``), unless the
      braces keep an inner ``if`` from capturing a following ``else``.
    * A brace opening a scope of two or more statements must stand alone
      on its line, at the indentation of the line owning it
      (``braceOwnLine``).  This covers control bodies, nested blocks and
      function, class and namespace bodies.
    """

    name = "brace-style"
    description = "Brace placement for single- and multi-statement scopes"
    rule_ids = frozenset({"bracesSingleStatement", "braceOwnLine"})

    _SINGLE_STATEMENT_OWNERS = frozenset({"if", "else", "for", "while", "do"})

    def configure(self, ctx: CheckerContext) -> None:
        self._code = ctx.tree.code
        self._indent: Dict[int, int] = {}
        for tok in self._code:
            self._indent.setdefault(tok.line, tok.column)
        self._seen: Set[int] = set()

    def inspect(self, ctx: CheckerContext) -> None:
        nodes = [d for d in ctx.tree.walk() if d.body is not None]
        self._for_each(nodes, lambda decl: self._check_declaration(ctx, decl))

    def _check_declaration(self, ctx: CheckerContext, decl: Declaration) -> None:
        body = decl.body
        if body.open_index < 0:
            raise UnclassifiableNode(decl, "body without token positions")
        if body.open_index not in self._seen:
            self._seen.add(body.open_index)
            if body.statement_count >= 2 and (
                not body.alone_on_line or body.open_column != body.owner_indent
            ):
                self._report_own_line(ctx, self._code[body.open_index], body.statement_count)
        if decl.kind is DeclarationKind.FUNCTION and body.close_index > 0:
            self._scan_function_body(ctx, body.open_index, body.close_index)

    def _scan_function_body(self, ctx: CheckerContext, open_index: int, close_index: int) -> None:
        code = self._code
        opener_of: Dict[int, int] = {}
        stack: List[int] = []
        for k in range(open_index, close_index + 1):
            if code[k].text == "{":
                stack.append(k)
            elif code[k].text == "}" and stack:
                opener_of[k] = stack.pop()

        for k in range(open_index + 1, close_index):
            text = code[k].text
            if text in ("if", "for", "while", "switch", "catch"):
                if text == "while" and self._is_do_tail(k, opener_of):
                    continue
                j = k + 1
                while j < close_index and code[j].text in ("constexpr", "!", "consteval"):
                    j += 1
                if code[j].text == "(":
                    paren_close = match_close(code, j, close_index)
                    if paren_close < 0:
                        continue
                    j = paren_close + 1
                single = text in self._SINGLE_STATEMENT_OWNERS
                self._check_body(ctx, j, k, close_index, single)
            elif text == "else" and code[k + 1].text != "if":
                self._check_body(ctx, k + 1, k, close_index, True)
            elif text == "do":
                self._check_body(ctx, k + 1, k, close_index, True)
            elif text == "try":
                self._check_body(ctx, k + 1, k, close_index, False)
            elif text == "{" and code[k - 1].text in (";", "{", "}", ":"):
                self._check_body(ctx, k, None, close_index, False)

    def _is_do_tail(self, k: int, opener_of: Dict[int, int]) -> bool:
        code = self._code
        prev = k - 1
        if code[prev].text != "}" or prev not in opener_of:
            return False
        opener = opener_of[prev]
        return opener > 0 and code[opener - 1].text == "do"

    def _check_body(self, ctx: CheckerContext, brace_index: int, owner_index: Optional[int],
                    limit: int, single_rule: bool) -> None:
        code = self._code
        if brace_index >= limit or code[brace_index].text != "{" or brace_index in self._seen:
            return
        self._seen.add(brace_index)
        close = match_close(code, brace_index, limit)
        if close < 0:
            return
        brace = code[brace_index]
        count = count_statements(code, brace_index, close)
        if single_rule and count == 1:
            guards_else = code[brace_index + 1].text == "if" and code[close + 1].text == "else"
            if not guards_else:
                self._emit(
                    "bracesSingleStatement",
                    "single-statement body must not be enclosed in braces",
                    ctx.file, brace.line, brace.column,
                    suggestion="remove the braces around the statement",
                )
            return
        if count < 2:
            return
        alone = (code[brace_index - 1].end_line < brace.line
                 and code[brace_index + 1].line > brace.line)
        misplaced = not alone
        if owner_index is not None and alone:
            misplaced = brace.column != self._indent.get(code[owner_index].line, brace.column)
        if misplaced:
            self._report_own_line(ctx, brace, count)

    def _report_own_line(self, ctx: CheckerContext, brace: Token, count: int) -> None:
        self._emit(
            "braceOwnLine",
            f"opening brace of a {count}-statement scope must be on its own line",
            ctx.file, brace.line, brace.column,
            suggestion="move the brace to its own line at the enclosing indentation",
        )


class WhitespaceChecker(Checker):
    """Tab characters in whitespace; one finding per line."""

    name = "whitespace"
    description = "Indentation and spacing use spaces, never tabs"
    rule_ids = frozenset({"tabCharacter"})

    def inspect(self, ctx: CheckerContext) -> None:
        tokens = ctx.tokens
        runs = [tok.leading for tok in tokens]
        if tokens:
            runs.append(tokens[-1].trailing)
        lines: Dict[int, int] = {}
        for run in runs:
            for line, column in run.tab_positions:
                lines.setdefault(line, column)
        for line in sorted(lines):
            self._emit(
                "tabCharacter",
                "tab character in whitespace",
                ctx.file, line, lines[line],
                suggestion="indent with spaces",
            )


# ═════════════════════════════════════════════════════════════════════════
#  PART 6 — DOCUMENTATION
# ═════════════════════════════════════════════════════════════════════════

class DocumentationChecker(Checker):
    """
    Public declarations need Doxygen documentation.

    Public means: not inside an anonymous namespace or a function, not a
    namespace-scope ``static``, and every enclosing class section public.
    Locals, enumerators, forward declarations, deleted functions and
    out-of-line member definitions are exempt. Named namespaces are exempt
    too: a namespace is reopened in many files and none of the openings
    owns its documentation.

    One finding per missing tag: ``brief`` always; ``param`` per named
    parameter; ``tparam`` per named template parameter; ``return`` for
    value-returning functions; ``throws`` for ``noexcept(false)``.
    """

    name = "documentation"
    description = "Public declarations carry brief/param/tparam/return/throws tags"
    rule_ids = frozenset({
        "docMissingBrief", "docMissingParam", "docMissingTparam",
        "docMissingReturn", "docMissingThrows",
    })

    _DOCUMENTED_KINDS = frozenset({
        DeclarationKind.FUNCTION,
        DeclarationKind.CLASS_OR_STRUCT,
        DeclarationKind.TYPE_ALIAS,
        DeclarationKind.VARIABLE,
    })

    def inspect(self, ctx: CheckerContext) -> None:
        self._for_each(ctx.tree.walk_with_ancestors(), lambda item: self._check(ctx, *item))

    def _is_public(self, decl: Declaration, ancestors: Tuple[Declaration, ...]) -> bool:
        if decl.kind not in self._DOCUMENTED_KINDS:
            return False
        if decl.has("local") or decl.has("enumerator") or decl.qualified_by:
            return False
        if decl.kind is DeclarationKind.CLASS_OR_STRUCT and (
            not decl.has("definition") or decl.is_anonymous
        ):
            return False
        if decl.kind is DeclarationKind.FUNCTION and decl.has("deleted"):
            return False
        if decl.visibility not in (Visibility.PUBLIC, Visibility.NONE):
            return False
        if decl.visibility is Visibility.NONE and decl.has("static"):
            return False
        for outer in ancestors:
            if outer.kind is DeclarationKind.FUNCTION:
                return False
            if outer.kind is DeclarationKind.NAMESPACE and outer.is_anonymous:
                return False
            if outer.kind is DeclarationKind.CLASS_OR_STRUCT and outer.visibility not in (
                Visibility.PUBLIC, Visibility.NONE
            ):
                return False
        return True

    def _check(self, ctx: CheckerContext, decl: Declaration,
               ancestors: Tuple[Declaration, ...]) -> None:
        if not self._is_public(decl, ancestors):
            return
        label = describe(decl)
        block = ctx.tree.doc_for(decl)

        if block is None or not block.has("brief"):
            self._emit_at(
                "docMissingBrief",
                f"public {label} '{decl.name}' has no @brief documentation",
                ctx, decl, suggestion="add '/// @brief ...' above the declaration",
            )

        documented = block.documented_names("tparam") if block else frozenset()
        for tparam in decl.template_parameters:
            if tparam.name and tparam.name not in documented:
                self._emit_at(
                    "docMissingTparam",
                    f"template parameter '{tparam.name}' of '{decl.name}' is not documented",
                    ctx, tparam, suggestion=f"add '@tparam {tparam.name} ...'",
                )

        if decl.kind is not DeclarationKind.FUNCTION:
            return

        documented = block.documented_names("param") if block else frozenset()
        for param in decl.parameters:
            if param.name and param.name not in documented:
                self._emit(
                    "docMissingParam",
                    f"parameter '{param.name}' of '{decl.name}' is not documented",
                    ctx.file, param.line, param.column,
                    suggestion=f"add '@param {param.name} ...'",
                    symbol=param.name,
                )

        if decl.returns_value and not (block and block.has("return")):
            self._emit_at(
                "docMissingReturn",
                f"return value of '{decl.name}' is not documented",
                ctx, decl, suggestion="add '@return ...'",
            )

        if decl.exception_spec is ExceptionSpec.NOEXCEPT_FALSE and not (block and block.has("throws")):
            self._emit(
                "docMissingThrows",
                f"'{decl.name}' is noexcept(false) but documents no @throws",
                ctx.file, decl.exception_line, decl.exception_column,
                suggestion="add '@throws <exception> ...'",
                symbol=decl.name,
            )


# ═════════════════════════════════════════════════════════════════════════
#  PART 7 — PARSE DEGRADATION
# ═════════════════════════════════════════════════════════════════════════

class UnparseableRegionChecker(Checker):
    """One low-severity finding per region the builder could not model."""

    name = "parse"
    description = "Regions skipped by the model builder"
    rule_ids = frozenset({"unparseableRegion"})
    default_severity = DiagnosticSeverity.INFORMATION

    def inspect(self, ctx: CheckerContext) -> None:
        for region in ctx.tree.opaque_regions:
            span = region.span
            self._emit(
                "unparseableRegion",
                f"could not parse lines {span.line}-{span.end_line} ({region.reason}); region skipped",
                ctx.file, span.line, span.column,
            )


# ═════════════════════════════════════════════════════════════════════════
#  PART 8 — CHECKER REGISTRY
# ═════════════════════════════════════════════════════════════════════════

class CheckerRegistry:
    """
    The checker classes one run may use, keyed by checker name.

    A rule id belongs to exactly one checker; registering a second checker
    that claims it raises ValueError.

    >>> registry = CheckerRegistry()
    >>> registry.register(NamingChecker)
    >>> registry.names
    ['naming']
    """

    def __init__(self) -> None:
        self._checkers: Dict[str, Type[Checker]] = {}

    def register(self, checker_cls: Type[Checker]) -> None:
        owners = self.rule_catalog()
        for rule_id in checker_cls.rule_ids:
            owner = owners.get(rule_id)
            if owner is not None and owner.name != checker_cls.name:
                raise ValueError(
                    f"rule '{rule_id}' of checker '{checker_cls.name}' "
                    f"already belongs to '{owner.name}'"
                )
        self._checkers[checker_cls.name] = checker_cls

    def checkers(self) -> List[Type[Checker]]:
        """Checker classes in registration order."""
        return list(self._checkers.values())

    def __contains__(self, name: object) -> bool:
        return name in self._checkers

    def rule_catalog(self) -> Dict[str, Type[Checker]]:
        """Map every known rule id to the checker producing it."""
        return {rid: cls for cls in self._checkers.values() for rid in cls.rule_ids}

    @property
    def names(self) -> List[str]:
        return sorted(self._checkers.keys())


def default_registry() -> CheckerRegistry:
    """A fresh registry holding every built-in checker."""
    registry = CheckerRegistry()
    for cls in (
        NamingChecker,
        AnonymousNamespaceChecker,
        NamespaceHierarchyChecker,
        ConstCorrectnessChecker,
        ExceptionSpecChecker,
        BraceStyleChecker,
        DocumentationChecker,
        WhitespaceChecker,
        UnparseableRegionChecker,
    ):
        registry.register(cls)
    return registry


__all__ = [
    "AnonymousNamespaceChecker",
    "BraceStyleChecker",
    "Checker",
    "CheckerContext",
    "CheckerRegistry",
    "ConstCorrectnessChecker",
    "DocumentationChecker",
    "ExceptionSpecChecker",
    "NamespaceHierarchyChecker",
    "NamingChecker",
    "PASCAL_CASE",
    "SNAKE_CASE",
    "UnparseableRegionChecker",
    "WhitespaceChecker",
    "default_registry",
    "describe",
    "namespace_words",
    "repeated_word",
    "to_pascal_case",
    "to_snake_case",
]
