"""
cppstyle/builder.py
═══════════════════

Token stream → :class:`~cppstyle.model.DeclarationTree`.

The builder is a forgiving recursive-descent recogniser over the *code*
tokens of one file (comments and preprocessor directives removed).  It
knows enough C++ declaration syntax to recover names, scopes, qualifiers,
parameters and exception specifications; it does not type-check and it
never raises on source content.

    ┌─────────────────────────────────────────────────────────────────┐
    │  namespace / class scope                                        │
    │    namespace a::b { … }      inline / anonymous namespaces       │
    │    extern "C" { … }          transparent linkage blocks          │
    │    class / struct / union    sections, bases, trailing names     │
    │    enum [class]              enumerators                         │
    │    template<…>               type, non-type, packs, defaults     │
    │    using X = …; typedef …;   type aliases                        │
    │    functions                 ctors, dtors, operators, trailers   │
    │    variables                 several declarators, initialisers   │
    ├─────────────────────────────────────────────────────────────────┤
    │  function bodies                                                │
    │    locals and loop variables, possible write sites              │
    └─────────────────────────────────────────────────────────────────┘

Anything the builder cannot recognise becomes an ``OPAQUE`` declaration
covering the statement; parsing resumes after it.

Usage
─────
    >>> from cppstyle.builder import build_tree
    >>> tree = build_tree("namespace a { int f() noexcept; }", "a.hpp")
    >>> [d.name for d in tree.walk()]
    ['a', 'f']
"""

from __future__ import annotations

import logging
import re
from collections import Counter
from dataclasses import dataclass, field
from typing import (
    Dict,
    FrozenSet,
    Iterable,
    List,
    NamedTuple,
    Optional,
    Sequence,
    Set,
    Tuple,
    Union,
)

from cppstyle.docblock import DocumentationBlock, collect_blocks
from cppstyle.lexer import Lexer, Token, TokenKind
from cppstyle.model import (
    BodyInfo,
    Declaration,
    DeclarationKind,
    DeclarationTree,
    ExceptionSpec,
    Parameter,
    SourceSpan,
    Visibility,
)

_log = logging.getLogger(__name__)


# ═════════════════════════════════════════════════════════════════════════
#  PART 1 — TOKEN HELPERS
# ═════════════════════════════════════════════════════════════════════════

_CLOSERS: Dict[str, str] = {"(": ")", "[": "]", "{": "}"}


def match_close(code: Sequence[Token], index: int, limit: Optional[int] = None) -> int:
    """
    Index of the bracket closing ``code[index]``.

    Only brackets of the same type are counted.  Returns -1 when the
    bracket is not closed before *limit*.
    """
    opener = code[index].text
    closer = _CLOSERS[opener]
    stop = len(code) if limit is None else limit
    depth = 0
    for k in range(index, stop):
        text = code[k].text
        if text == opener:
            depth += 1
        elif text == closer:
            depth -= 1
            if depth == 0:
                return k
    return -1


def match_angle(code: Sequence[Token], index: int, limit: Optional[int] = None) -> int:
    """
    Index of the ``>`` closing a template argument list opened at *index*.

    Returns -1 when the ``<`` does not look like a template bracket, i.e.
    a statement or scope boundary is reached first.
    """
    stop = len(code) if limit is None else limit
    depth = 0
    k = index
    while k < stop:
        text = code[k].text
        if text == "<":
            depth += 1
        elif text == ">":
            depth -= 1
            if depth == 0:
                return k
        elif text in ("(", "["):
            k = match_close(code, k, stop)
            if k < 0:
                return -1
        elif text in (";", "{", "}", ")", "]"):
            return -1
        k += 1
    return -1


_TIGHT_BEFORE = frozenset({"::", "<", ">", "*", "&", "&&", ",", "(", ")", "[", "]", "..."})
_TIGHT_AFTER = frozenset({"::", "<", "(", "["})


def join_tokens(tokens: Iterable[Token]) -> str:
    """Render tokens as compact C++ text: ``std::vector<int> const&``."""
    out: List[str] = []
    prev = ""
    for tok in tokens:
        text = tok.text
        if out and text not in _TIGHT_BEFORE and prev not in _TIGHT_AFTER:
            out.append(" ")
        out.append(text)
        prev = text
    return "".join(out)


# Tokens after a closing brace that mean the braces belonged to an expression.
_EXPRESSION_FOLLOWERS = frozenset({
    "(", ")", ",", ".", "->", "[", "]", "+", "-", "*", "/", "%", "<", ">",
    "==", "!=", "<=", ">=", "&&", "||", "?", ":", "&", "|", "^", "<<", "=",
    "catch",
})


def count_statements(code: Sequence[Token], open_index: int, close_index: int) -> int:
    """
    Number of statements directly inside the braces ``code[open_index]``
    .. ``code[close_index]``.

    A statement ends at a top-level ``;`` or at the ``}`` of a nested
    block that is not followed by ``;``.  An ``if``/``else`` chain and a
    ``do``/``while`` loop each count once.
    """
    count = 0
    pending_do = 0
    k = open_index + 1
    while k < close_index:
        text = code[k].text
        if text in ("(", "["):
            end = match_close(code, k, close_index)
            k = close_index if end < 0 else end + 1
            continue
        nxt = code[k + 1].text if k + 1 < close_index else ""
        if text == "do":
            pending_do += 1
        elif text == "while" and pending_do and code[k - 1].text in (";", "}"):
            pending_do -= 1
        elif text == "{":
            end = match_close(code, k, close_index)
            if end < 0:
                return count + 1
            after = code[end + 1].text if end + 1 < close_index else ""
            if after == "while" and pending_do:
                pass
            elif after not in (";", "else") and after not in _EXPRESSION_FOLLOWERS:
                count += 1
            k = end + 1
            continue
        elif text == ";":
            if not (nxt == "else" or (nxt == "while" and pending_do)):
                count += 1
        k += 1
    return count


# ═════════════════════════════════════════════════════════════════════════
#  PART 2 — VOCABULARY
# ═════════════════════════════════════════════════════════════════════════

_SPECIFIERS = frozenset({
    "static", "inline", "virtual", "explicit", "constexpr", "consteval",
    "constinit", "friend", "extern", "thread_local", "mutable", "register",
    "export",
})

_TYPE_WORDS = frozenset({
    "auto", "bool", "char", "char8_t", "char16_t", "char32_t", "wchar_t",
    "short", "int", "long", "signed", "unsigned", "float", "double", "void",
})

_ATTRIBUTE_CALLS = frozenset({"__attribute__", "__declspec", "alignas"})

_HEAD_STOPS = frozenset({"=", ";", "{", "}", ",", ":"})

_CLASS_KEYS = frozenset({"class", "struct", "union"})

_ACCESS = frozenset({"public", "protected", "private"})

# Statements in a function body that never declare a local.
_STATEMENT_KEYWORDS = frozenset({
    "return", "co_return", "co_yield", "co_await", "throw", "delete", "new",
    "break", "continue", "goto", "using", "typedef", "static_assert", "asm",
    "sizeof", "this", "case", "default",
})

_EXPRESSION_KEYWORDS = frozenset({
    "this", "true", "false", "nullptr", "new", "delete", "sizeof", "alignof",
    "typeid", "static_cast", "dynamic_cast", "const_cast", "reinterpret_cast",
    "throw",
})

_EXPRESSION_OPERATORS = frozenset({
    "+", "-", "/", "%", "==", "!=", "!", ".", "->", "?", "||", "<=", ">=",
    "<<", "|", "^", "~",
})

_ASSIGN_OPS = frozenset({"=", "+=", "-=", "*=", "/=", "%=", "&=", "|=", "^=", "<<="})

# Tokens that continue a declaration begun on the previous line.
_DECL_CONTINUATION = frozenset({
    ";", "{", "(", "::", "<", "=", ":", ",", "const", "noexcept", "override",
    "final", "->", "*", "&", "&&", "requires",
})

_MACRO_NAME = re.compile(r"^[A-Z][A-Z0-9_]+$")


# ═════════════════════════════════════════════════════════════════════════
#  PART 3 — BUILDER STATE
# ═════════════════════════════════════════════════════════════════════════

@dataclass
class _Scope:
    """Where the builder currently is: namespace, class or function body."""
    kind: str
    namespace_path: Tuple[str, ...] = ()
    scope_path: Tuple[str, ...] = ()
    class_name: Optional[str] = None
    visibility: Visibility = Visibility.NONE

    def member_visibility(self) -> Visibility:
        return self.visibility if self.kind == "class" else Visibility.NONE


class _Head(NamedTuple):
    """Top-level items of a declaration up to its first terminator."""
    items: List[int]            # token indices; groups appear as their opener
    stop: int                   # index of the terminator (or the limit)
    operator: Optional[Tuple[int, int]] = None  # [start, end) of an operator name


class _Declarator(NamedTuple):
    name_index: int
    type_items: List[int]
    qualifiers: FrozenSet[str]
    qualified_by: Tuple[str, ...]
    paren_init: bool


class _TemplateParam(NamedTuple):
    name: str
    name_index: int
    first: int
    last: int
    qualifiers: FrozenSet[str]


@dataclass
class _BodyState:
    """Facts gathered while scanning one function body."""
    scope: _Scope
    locals: List[Declaration] = field(default_factory=list)
    declarator_indices: Set[int] = field(default_factory=set)
    binding_ranges: List[Tuple[int, int]] = field(default_factory=list)


# ═════════════════════════════════════════════════════════════════════════
#  PART 4 — MODEL BUILDER
# ═════════════════════════════════════════════════════════════════════════

class ModelBuilder:
    """
    Build the declaration tree of one file.

    Parameters
    ----------
    tokens : full token stream of the file (comments included)
    file   : path recorded on the tree
    """

    def __init__(self, tokens: Sequence[Token], file: str = "<input>") -> None:
        self.file = file
        self.tokens = list(tokens)
        self.code = [t for t in self.tokens if t.is_code]
        self._next_id = 0
        self._line_indent: Dict[int, int] = {}
        for tok in self.code:
            self._line_indent.setdefault(tok.line, tok.column)

    # ── driver ───────────────────────────────────────────────────────

    def build(self) -> DeclarationTree:
        self._next_id = 0
        root = Declaration(
            id=0,
            kind=DeclarationKind.NAMESPACE,
            name="",
            span=SourceSpan(1, 1, 1, 1),
            name_line=1,
            name_column=1,
        )
        self._parse_scope(root, 0, len(self.code), _Scope("namespace"))

        tree = DeclarationTree(
            file=self.file,
            root=root,
            tokens=tuple(self.tokens),
            code=tuple(self.code),
        )
        if self.code and tree.declaration_count == 0:
            # One region for the whole file instead of one per statement.
            root.children = []
            self._opaque(root, _Scope("namespace"), 0, len(self.code) - 1,
                         "no declarations recognised")
        tree.documentation.update(self._associate_docs(tree))
        _log.debug("%s: %d declarations, %d opaque regions",
                   self.file, tree.declaration_count, len(tree.opaque_regions))
        return tree

    # ── small utilities ──────────────────────────────────────────────

    def _peek(self, k: int, limit: Optional[int] = None) -> str:
        stop = len(self.code) if limit is None else limit
        return self.code[k].text if 0 <= k < stop else ""

    def _new(
        self,
        kind: DeclarationKind,
        name: str,
        first: int,
        last: int,
        name_index: int,
        scope: _Scope,
        **fields,
    ) -> Declaration:
        code = self.code
        first = min(first, len(code) - 1)
        last = min(max(last, first), len(code) - 1)
        self._next_id += 1
        name_tok = code[min(name_index, len(code) - 1)]
        return Declaration(
            id=self._next_id,
            kind=kind,
            name=name,
            span=SourceSpan.between(code[first], code[last]),
            name_line=name_tok.line,
            name_column=name_tok.column,
            namespace_path=scope.namespace_path,
            scope_path=scope.scope_path,
            **fields,
        )

    def _opaque(self, parent: Declaration, scope: _Scope, first: int, last: int,
                reason: str) -> Declaration:
        node = self._new(DeclarationKind.OPAQUE, "", first, last, first, scope, reason=reason)
        parent.children.append(node)
        _log.debug("%s:%d: opaque region (%s)", self.file, node.span.line, reason)
        return node

    def _statement_end(self, k: int, stop: int, block_ends: bool = True) -> int:
        """
        Index of the token ending the statement starting at *k*: its ``;``,
        or the ``}`` of a block when *block_ends* is set.
        """
        code = self.code
        j = k
        while j < stop:
            text = code[j].text
            if text == ";":
                return j
            if text == "}":
                return max(j - 1, k)
            if text in _CLOSERS:
                close = match_close(code, j, stop)
                if close < 0:
                    return stop - 1
                if text == "{" and block_ends:
                    return close
                j = close + 1
                continue
            j += 1
        return stop - 1

    def _skip_statement(self, k: int, stop: int) -> int:
        end = self._statement_end(k, stop)
        return max(end + 1, k + 1)

    def _opaque_statement(self, parent: Declaration, scope: _Scope, start: int,
                          stop: int, reason: str) -> int:
        end = self._statement_end(start, stop)
        self._opaque(parent, scope, start, end, reason)
        nxt = max(end + 1, start + 1)
        if self.code[end].text == "}" and self._peek(nxt, stop) == ";":
            nxt += 1
        return nxt

    def _skip_attributes(self, k: int, stop: int) -> int:
        code = self.code
        while k < stop:
            text = code[k].text
            if text == "[" and self._peek(k + 1, stop) == "[":
                close = match_close(code, k, stop)
            elif text in _ATTRIBUTE_CALLS and self._peek(k + 1, stop) == "(":
                close = match_close(code, k + 1, stop)
            else:
                return k
            if close < 0:
                return stop
            k = close + 1
        return k

    def _expand(self, items: Sequence[int]) -> List[Token]:
        """Tokens covered by *items*, with groups expanded to their full text."""
        code = self.code
        out: List[Token] = []
        for idx in items:
            text = code[idx].text
            close = -1
            if text in ("(", "["):
                close = match_close(code, idx)
            elif text == "<":
                close = match_angle(code, idx)
            out.extend(code[idx:close + 1] if close > idx else [code[idx]])
        return out

    def _split_top_level(self, start: int, stop: int, angles: bool) -> List[Tuple[int, int]]:
        """Split ``code[start:stop]`` at top-level commas into ``[s, e)`` ranges."""
        code = self.code
        ranges: List[Tuple[int, int]] = []
        angle = 0
        begin = k = start
        while k < stop:
            text = code[k].text
            if text in _CLOSERS:
                close = match_close(code, k, stop)
                k = stop if close < 0 else close + 1
                continue
            if angles and text == "<":
                angle += 1
            elif angles and text == ">" and angle:
                angle -= 1
            elif text == "," and not angle:
                ranges.append((begin, k))
                begin = k + 1
            k += 1
        if begin < stop or ranges:
            ranges.append((begin, stop))
        return ranges

    def _type_qualifiers(self, items: Sequence[int]) -> Set[str]:
        """Qualifiers implied by the top-level type items of a declarator."""
        code = self.code
        quals: Set[str] = set()
        last_star = -1
        for pos, idx in enumerate(items):
            text = code[idx].text
            if text in ("*", "^"):
                quals.add("pointer")
                last_star = pos
            elif text in ("&", "&&"):
                quals.add("reference")
            elif text == "...":
                quals.add("variadic")
            elif text == "[":
                quals.add("array")
        for pos, idx in enumerate(items):
            text = code[idx].text
            if text == "const" and pos > last_star:
                quals.add("const")
            elif text in _SPECIFIERS or text == "volatile":
                quals.add(text)
        return quals

    def _type_text(self, items: Sequence[int]) -> str:
        return join_tokens(self._expand([i for i in items if self.code[i].text not in _SPECIFIERS]))

    # ── declaration heads ────────────────────────────────────────────

    def _scan_head(self, i: int, stop: int) -> _Head:
        """Collect the top-level items of a declaration up to a terminator."""
        code = self.code
        items: List[int] = []
        operator: Optional[Tuple[int, int]] = None
        j = i
        while j < stop:
            tok = code[j]
            text = tok.text
            if (text == "[" and self._peek(j + 1, stop) == "[") or (
                text in _ATTRIBUTE_CALLS and self._peek(j + 1, stop) == "("
            ):
                j = self._skip_attributes(j, stop)
                continue
            if text in _HEAD_STOPS:
                break
            if text == "operator" and operator is None:
                end = self._operator_end(j, stop)
                items.append(j)
                operator = (j, end)
                j = end
                continue
            if text in ("(", "["):
                close = match_close(code, j, stop)
                items.append(j)
                if close < 0:
                    return _Head(items, stop, operator)
                j = close + 1
                continue
            if text == "<" and items and code[items[-1]].kind is TokenKind.IDENTIFIER:
                close = match_angle(code, j, stop)
                if close > 0:
                    items.append(j)
                    j = close + 1
                    continue
            items.append(j)
            j += 1
        return _Head(items, j, operator)

    def _operator_end(self, j: int, stop: int) -> int:
        """Index just past the name of the operator whose keyword is at *j*."""
        k = j + 1
        if self._peek(k, stop) in ("(", "[") and self._peek(k + 1, stop) in (")", "]"):
            return k + 2
        while k < stop and self.code[k].text not in ("(", ";", "{", "}"):
            k += 1
        return k

    def _operator_name(self, span: Tuple[int, int]) -> str:
        start, end = span
        rest = self.code[start + 1:end]
        if not rest:
            return "operator"
        if rest[0].kind in (TokenKind.IDENTIFIER, TokenKind.KEYWORD) and rest[0].text not in ("new", "delete"):
            return "operator " + join_tokens(rest)
        return "operator" + "".join(t.text for t in rest)

    # ── scopes ───────────────────────────────────────────────────────

    def _parse_scope(self, parent: Declaration, start: int, end: int, scope: _Scope) -> None:
        code = self.code
        i = start
        while i < end:
            tok = code[i]
            text = tok.text
            nxt = self._peek(i + 1, end)
            if text == ";":
                i += 1
            elif text == "}":
                self._opaque(parent, scope, i, i, "unbalanced closing brace")
                i += 1
            elif text == "namespace" or (text == "inline" and nxt == "namespace"):
                i = self._parse_namespace(parent, i, end, scope)
            elif text == "extern" and i + 1 < end and code[i + 1].kind is TokenKind.LITERAL:
                i = self._parse_linkage(parent, i, end, scope)
            elif text in _ACCESS and nxt == ":":
                scope.visibility = Visibility(text)
                i += 2
            elif text in _ACCESS and self._peek(i + 2, end) == ":":
                scope.visibility = Visibility(text)  # public slots:
                i += 3
            elif scope.kind == "class" and tok.kind is TokenKind.IDENTIFIER and nxt == ":":
                i += 2  # section macro such as Q_SIGNALS:
            elif text == "template":
                i = self._parse_template(parent, i, end, scope)
            elif text == "using":
                i = self._parse_using(parent, i, end, scope, i, ())
            elif text == "typedef":
                i = self._parse_typedef(parent, i, end, scope)
            elif text in ("static_assert", "friend", "asm") or (text == "export" and nxt == "module"):
                i = self._skip_statement(i, end)
            elif text in _CLASS_KEYS or text == "enum":
                i = self._parse_class(parent, i, end, scope, i, ())
            else:
                macro_end = self._macro_end(i, end)
                if macro_end >= 0:
                    self._opaque(parent, scope, i, macro_end, "macro invocation")
                    i = macro_end + 1
                else:
                    i = self._parse_declaration(parent, i, end, scope, i, ())

    def _macro_end(self, i: int, end: int) -> int:
        """Last index of an object- or function-like macro standing alone, or -1."""
        code = self.code
        tok = code[i]
        if tok.kind is not TokenKind.IDENTIFIER or not _MACRO_NAME.match(tok.text):
            return -1
        last = i
        if self._peek(i + 1, end) == "(":
            last = match_close(code, i + 1, end)
            if last < 0:
                return -1
        if last + 1 >= end:
            return last
        follow = code[last + 1]
        if follow.line > code[last].end_line and follow.text not in _DECL_CONTINUATION:
            return last
        return -1

    def _parse_namespace(self, parent: Declaration, i: int, end: int, scope: _Scope) -> int:
        code = self.code
        first = i
        inline_next = code[i].text == "inline"
        keyword = i + 1 if inline_next else i
        k = self._skip_attributes(keyword + 1, end)

        segments: List[Tuple[str, int, bool]] = []
        while k < end and code[k].text not in ("{", ";", "="):
            text = code[k].text
            if text == "inline":
                inline_next = True
            elif code[k].kind is TokenKind.IDENTIFIER:
                segments.append((text, k, inline_next))
                inline_next = False
            elif text != "::":
                break
            k += 1

        if self._peek(k, end) == "=":
            return self._skip_statement(k, end)  # namespace alias
        if self._peek(k, end) != "{":
            return self._opaque_statement(parent, scope, first, end, "malformed namespace")
        if not segments:
            segments = [("", keyword, inline_next)]

        open_index = k
        close = match_close(code, open_index, end)
        unterminated = close < 0
        if unterminated:
            close = end

        ns_path, sc_path = scope.namespace_path, scope.scope_path
        owner = parent
        node = parent
        for name, name_index, is_inline in segments:
            quals = {"definition"}
            if is_inline:
                quals.add("inline")
            if not name:
                quals.add("anonymous")
            node = self._new(
                DeclarationKind.NAMESPACE, name, first, close, name_index,
                _Scope("namespace", ns_path, sc_path), qualifiers=frozenset(quals),
            )
            owner.children.append(node)
            if name:
                ns_path += (name,)
                sc_path += (name,)
            owner = node

        node.body = self._body_info(open_index, -1 if unterminated else close, first)
        if unterminated:
            self._opaque(node, scope, open_index, open_index, "namespace is never closed")
        self._parse_scope(node, open_index + 1, close, _Scope("namespace", ns_path, sc_path))
        return close + 1

    def _parse_linkage(self, parent: Declaration, i: int, end: int, scope: _Scope) -> int:
        k = i + 2
        if self._peek(k, end) != "{":
            return self._parse_declaration(parent, k, end, scope, i, ())
        close = match_close(self.code, k, end)
        if close < 0:
            self._opaque(parent, scope, k, k, "linkage block is never closed")
            close = end
        self._parse_scope(parent, k + 1, close, scope)
        return close + 1

    def _body_info(self, open_index: int, close_index: int, owner_index: int) -> BodyInfo:
        code = self.code
        brace = code[open_index]
        stop = close_index if close_index >= 0 else len(code)
        prev_same_line = open_index > 0 and code[open_index - 1].end_line == brace.line
        next_same_line = open_index + 1 < len(code) and code[open_index + 1].line == brace.line
        owner_line = code[owner_index].line
        return BodyInfo(
            open_line=brace.line,
            open_column=brace.column,
            statement_count=count_statements(code, open_index, stop),
            alone_on_line=not prev_same_line and not next_same_line,
            owner_indent=self._line_indent.get(owner_line, 1),
            open_index=open_index,
            close_index=close_index,
        )

    # ── templates and aliases ────────────────────────────────────────

    def _parse_template(
        self,
        parent: Declaration,
        i: int,
        end: int,
        scope: _Scope,
        decl_start: Optional[int] = None,
        outer: Tuple[_TemplateParam, ...] = (),
    ) -> int:
        code = self.code
        decl_start = i if decl_start is None else decl_start
        k = i + 1
        if self._peek(k, end) != "<":
            return self._skip_statement(i, end)  # explicit instantiation
        close = match_angle(code, k, end)
        if close < 0:
            return self._opaque_statement(parent, scope, decl_start, end,
                                          "malformed template parameter list")
        params = outer + tuple(self._template_parameters(k, close))
        k = close + 1
        if self._peek(k, end) == "requires":
            k = self._skip_requires(k + 1, end)

        text = self._peek(k, end)
        if text == "template":
            return self._parse_template(parent, k, end, scope, decl_start, params)
        if text in _CLASS_KEYS:
            return self._parse_class(parent, k, end, scope, decl_start, params)
        if text == "using":
            return self._parse_using(parent, k, end, scope, decl_start, params)
        if text in ("concept", "friend"):
            return self._skip_statement(k, end)
        if k >= end:
            return self._opaque_statement(parent, scope, decl_start, end, "dangling template")
        return self._parse_declaration(parent, k, end, scope, decl_start, params)

    def _template_parameters(self, open_index: int, close_index: int) -> List[_TemplateParam]:
        code = self.code
        params: List[_TemplateParam] = []
        for s, e in self._split_top_level(open_index + 1, close_index, angles=True):
            if s >= e:
                continue
            cut = e
            depth = 0
            for k in range(s, e):
                text = code[k].text
                if text == "<":
                    depth += 1
                elif text == ">" and depth:
                    depth -= 1
                elif text == "=" and not depth:
                    cut = k
                    break
            last = cut - 1
            quals = set()
            first_text = code[s].text
            if first_text == "template":
                quals.add("template")
            elif first_text in ("typename", "class"):
                quals.add("type")
            else:
                quals.add("nontype")
            if any(code[k].text == "..." for k in range(s, cut)):
                quals.add("pack")
            named = cut - s >= 2 and code[last].kind is TokenKind.IDENTIFIER
            name_index = last if named else s
            params.append(_TemplateParam(
                code[last].text if named else "", name_index, s, e - 1, frozenset(quals),
            ))
        return params

    def _attach_template_params(self, decl: Declaration, params: Sequence[_TemplateParam],
                                scope: _Scope) -> None:
        created = [
            self._new(DeclarationKind.TEMPLATE_PARAMETER, p.name, p.first, p.last,
                      p.name_index, scope, qualifiers=p.qualifiers)
            for p in params
        ]
        decl.children[:0] = created

    def _skip_requires(self, k: int, end: int) -> int:
        """Skip a requires-clause made of primaries joined by ``&&``/``||``."""
        code = self.code
        while k < end:
            if code[k].text == "!":
                k += 1
                continue
            if code[k].text == "(":
                close = match_close(code, k, end)
                if close < 0:
                    return end
                k = close + 1
            else:
                while k < end and (code[k].kind is TokenKind.IDENTIFIER
                                   or code[k].text in ("::", "typename")):
                    k += 1
                    if self._peek(k, end) == "<":
                        close = match_angle(code, k, end)
                        if close < 0:
                            return k
                        k = close + 1
            if self._peek(k, end) in ("&&", "||"):
                k += 1
                continue
            return k
        return k

    def _parse_using(self, parent: Declaration, i: int, end: int, scope: _Scope,
                     decl_start: int, tparams: Sequence[_TemplateParam]) -> int:
        code = self.code
        if self._peek(i + 1, end) in ("namespace", "enum"):
            return self._skip_statement(i, end)
        k = self._skip_attributes(i + 1, end)
        if k < end and code[k].kind is TokenKind.IDENTIFIER:
            eq = self._skip_attributes(k + 1, end)
            if self._peek(eq, end) == "=":
                stop = self._statement_end(eq, end)
                decl = self._new(
                    DeclarationKind.TYPE_ALIAS, code[k].text, decl_start, stop, k, scope,
                    qualifiers=frozenset({"using"}),
                    visibility=scope.member_visibility(),
                )
                decl.type_text = join_tokens(t for t in code[eq + 1:stop + 1] if t.text != ";")
                self._attach_template_params(decl, tparams, scope)
                parent.children.append(decl)
                return stop + 1
        return self._skip_statement(i, end)  # using-declaration

    def _parse_typedef(self, parent: Declaration, i: int, end: int, scope: _Scope) -> int:
        code = self.code
        stop = self._statement_end(i, end, block_ends=False)
        items: List[int] = []
        k = i + 1
        while k < stop + 1 and k < end:
            text = code[k].text
            if text == ";":
                break
            items.append(k)
            if text in _CLOSERS:
                close = match_close(code, k, end)
                if close < 0:
                    break
                k = close + 1
                continue
            k += 1

        name_index = -1
        for idx in items:
            if code[idx].text == "(" and self._peek(idx + 1, end) in ("*", "^", "&"):
                close = match_close(code, idx, end)
                names = [n for n in range(idx + 1, close) if code[n].kind is TokenKind.IDENTIFIER]
                if names:
                    name_index = names[-1]
                break
        if name_index < 0:
            names = [idx for idx in items if code[idx].kind is TokenKind.IDENTIFIER]
            if names:
                name_index = names[-1]
        if name_index < 0:
            self._opaque(parent, scope, i, stop, "unrecognised typedef")
            return stop + 1

        decl = self._new(
            DeclarationKind.TYPE_ALIAS, code[name_index].text, i, stop, name_index, scope,
            qualifiers=frozenset({"typedef"}),
            visibility=scope.member_visibility(),
        )
        decl.type_text = join_tokens(code[n] for n in range(i + 1, name_index))
        parent.children.append(decl)
        return stop + 1

    # ── classes and enums ────────────────────────────────────────────

    def _parse_class(self, parent: Declaration, i: int, end: int, scope: _Scope,
                     decl_start: int, tparams: Sequence[_TemplateParam]) -> int:
        code = self.code
        key = code[i].text
        k = i + 1
        scoped = False
        if key == "enum" and self._peek(k, end) in ("class", "struct"):
            scoped = True
            k += 1

        names: List[int] = []
        final = False
        j = k
        while j < end:
            j = self._skip_attributes(j, end)
            if j >= end:
                break
            tok = code[j]
            if tok.text == "final" and self._peek(j + 1, end) in ("{", ":"):
                final = True
            elif tok.kind is TokenKind.IDENTIFIER:
                names.append(j)
            elif tok.text == "<" and names and names[-1] == j - 1:
                close = match_angle(code, j, end)
                if close < 0:
                    break
                j = close + 1
                continue
            elif tok.text != "::":
                break
            j += 1

        terminator = self._peek(j, end)
        bare_names = [n for n in names if self._peek(n - 1, end) != "::"]
        if terminator not in ("{", ":", ";") or (terminator == ";" and len(bare_names) > 1):
            # Elaborated type specifier: `struct stat st;`, `struct node* next;`
            return self._parse_declaration(parent, i, end, scope, decl_start, tparams)

        open_index = j
        if terminator == ":":
            open_index = j + 1
            while open_index < end and code[open_index].text not in ("{", ";"):
                if code[open_index].text in ("(", "["):
                    close = match_close(code, open_index, end)
                    if close < 0:
                        break
                    open_index = close
                open_index += 1
        name_index = names[-1] if names else i
        name = code[name_index].text if names else ""
        qualified_by = tuple(
            code[n].text for n in names[:-1] if self._peek(n + 1, end) == "::"
        )
        quals = {key}
        if scoped:
            quals.add("scoped")
        if final:
            quals.add("final")

        if self._peek(open_index, end) != "{":
            # forward declaration
            stop = min(open_index, end - 1)
            decl = self._new(
                DeclarationKind.CLASS_OR_STRUCT, name, decl_start, stop, name_index, scope,
                qualifiers=frozenset(quals), visibility=scope.member_visibility(),
                qualified_by=qualified_by,
            )
            self._attach_template_params(decl, tparams, scope)
            parent.children.append(decl)
            return stop + 1

        close = match_close(code, open_index, end)
        unterminated = close < 0
        if unterminated:
            close = end
        quals.add("definition")
        decl = self._new(
            DeclarationKind.CLASS_OR_STRUCT, name, decl_start, close, name_index, scope,
            qualifiers=frozenset(quals), visibility=scope.member_visibility(),
            qualified_by=qualified_by,
        )
        self._attach_template_params(decl, tparams, scope)
        decl.body = self._body_info(open_index, -1 if unterminated else close, decl_start)
        parent.children.append(decl)

        inner = _Scope(
            "class",
            scope.namespace_path,
            scope.scope_path + ((name,) if name else ()),
            class_name=name or None,
            visibility=Visibility.PRIVATE if key == "class" else Visibility.PUBLIC,
        )
        if unterminated:
            self._opaque(decl, scope, open_index, open_index, f"{key} body is never closed")
        if key == "enum":
            self._parse_enumerators(decl, open_index, close, inner if scoped else scope)
        else:
            self._parse_scope(decl, open_index + 1, close, inner)
        if unterminated:
            return end

        k = close + 1
        if self._peek(k, end) == ";":
            return k + 1
        return self._parse_trailing_declarators(parent, decl, k, end, scope)

    def _parse_enumerators(self, enum: Declaration, open_index: int, close_index: int,
                           scope: _Scope) -> None:
        code = self.code
        for s, e in self._split_top_level(open_index + 1, close_index, angles=False):
            s = self._skip_attributes(s, e)
            if s >= e or code[s].kind is not TokenKind.IDENTIFIER:
                continue
            var = self._new(
                DeclarationKind.VARIABLE, code[s].text, s, e - 1, s, scope,
                qualifiers=frozenset({"enumerator", "constexpr"}),
                visibility=enum.visibility,
            )
            var.type_text = enum.name
            var.has_initializer = any(code[n].text == "=" for n in range(s, e))
            enum.children.append(var)

    def _parse_trailing_declarators(self, parent: Declaration, owner: Declaration, k: int,
                                    end: int, scope: _Scope) -> int:
        """Variables declared after a class body: ``struct { … } a, *b;``."""
        code = self.code
        stop = self._statement_end(k, end, block_ends=False)
        limit = stop if code[stop].text == ";" else stop + 1
        for s, e in self._split_top_level(k, limit, angles=False):
            head = self._scan_head(s, e)
            names = [n for n in head.items if code[n].kind is TokenKind.IDENTIFIER]
            if not names:
                continue
            quals = self._type_qualifiers(head.items)
            if scope.kind == "class":
                quals.add("member")
            var = self._new(
                DeclarationKind.VARIABLE, code[names[-1]].text, s, e - 1, names[-1], scope,
                qualifiers=frozenset(quals), visibility=scope.member_visibility(),
            )
            var.type_text = owner.name
            var.has_initializer = head.stop < e
            parent.children.append(var)
        return stop + 1

    # ── functions and variables ──────────────────────────────────────

    def _parse_declaration(self, parent: Declaration, i: int, end: int, scope: _Scope,
                           decl_start: int, tparams: Sequence[_TemplateParam]) -> int:
        head = self._scan_head(i, end)
        if not head.items:
            return self._opaque_statement(parent, scope, decl_start, end, "unrecognised statement")
        shape = self._function_shape(head)
        if shape is not None:
            return self._parse_function(parent, scope, decl_start, tparams, head, end, shape)
        return self._parse_variables(parent, scope, decl_start, tparams, head, end)

    def _function_shape(self, head: _Head) -> Optional[Tuple[int, int]]:
        """``(name position, parameter-list position)`` within head items."""
        code = self.code
        items = head.items
        for pos in range(1, len(items)):
            if code[items[pos]].text != "(":
                continue
            prev = items[pos - 1]
            if head.operator is not None and prev == head.operator[0]:
                return pos - 1, pos
            if code[prev].kind is TokenKind.IDENTIFIER:
                return pos - 1, pos
            if (code[prev].text == "<" and pos >= 2
                    and code[items[pos - 2]].kind is TokenKind.IDENTIFIER):
                return pos - 2, pos
        return None

    def _looks_like_parameters(self, open_index: int, close_index: int) -> bool:
        """False when the parenthesised text reads as an argument list."""
        code = self.code
        if close_index == open_index + 1:
            return True
        for s, e in self._split_top_level(open_index + 1, close_index, angles=True):
            s = self._skip_attributes(s, e)
            if s >= e:
                return False
            first = code[s]
            if first.kind in (TokenKind.LITERAL, TokenKind.UNKNOWN):
                return False
            if first.kind is TokenKind.PUNCTUATION and first.text not in ("::", "..."):
                return False
            if first.text in _EXPRESSION_KEYWORDS:
                return False
            k = s
            while k < e and code[k].text != "=":
                text = code[k].text
                if text in _EXPRESSION_OPERATORS or code[k].kind is TokenKind.LITERAL:
                    return False
                if text in _CLOSERS:
                    close = match_close(code, k, e)
                    k = e if close < 0 else close + 1
                    continue
                k += 1
        return True

    def _parameters(self, open_index: int, close_index: int) -> Tuple[Parameter, ...]:
        code = self.code
        chunks = self._split_top_level(open_index + 1, close_index, angles=True)
        params: List[Parameter] = []
        for s, e in chunks:
            items = self._scan_head(s, e).items  # stops before a default argument
            if not items:
                continue
            if len(chunks) == 1 and [code[n].text for n in items] == ["void"]:
                continue

            name_index = -1
            quals: Set[str] = set()
            type_items = items
            pointer_group = next(
                (n for n in items if code[n].text == "(" and self._peek(n + 1) in ("*", "^", "&", "&&")),
                None,
            )
            if pointer_group is not None:
                close = match_close(code, pointer_group)
                names = [n for n in range(pointer_group + 1, close)
                         if code[n].kind is TokenKind.IDENTIFIER]
                if names:
                    name_index = names[-1]
                quals.add("pointer")
                type_items = items[:items.index(pointer_group)]
            else:
                brackets = [p for p, n in enumerate(items) if code[n].text == "["]
                name_pos = brackets[0] - 1 if brackets else len(items) - 1
                if brackets:
                    quals.add("array")
                if (name_pos >= 1 and code[items[name_pos]].kind is TokenKind.IDENTIFIER
                        and code[items[name_pos - 1]].text != "::"):
                    name_index = items[name_pos]
                    type_items = items[:name_pos]
            quals |= self._type_qualifiers(type_items)
            where = code[name_index] if name_index >= 0 else code[items[0]]
            params.append(Parameter(
                name=code[name_index].text if name_index >= 0 else "",
                type_text=self._type_text(type_items),
                line=where.line,
                column=where.column,
                qualifiers=frozenset(quals),
            ))
        return tuple(params)

    def _find_body_after_init_list(self, k: int, end: int) -> int:
        """Index of the ``{`` opening a constructor body, or -1."""
        code = self.code
        while k < end:
            text = code[k].text
            if text in ("(", "["):
                close = match_close(code, k, end)
                if close < 0:
                    return -1
                k = close + 1
                continue
            if text == "{":
                prev = code[k - 1]
                if prev.kind is TokenKind.IDENTIFIER or prev.text == ">":
                    close = match_close(code, k, end)
                    if close < 0:
                        return -1
                    k = close + 1
                    continue
                return k
            if text == "<" and code[k - 1].kind is TokenKind.IDENTIFIER:
                close = match_angle(code, k, end)
                if close > 0:
                    k = close + 1
                    continue
            if text in (";", "}"):
                return -1
            k += 1
        return -1

    def _parse_function(self, parent: Declaration, scope: _Scope, decl_start: int,
                        tparams: Sequence[_TemplateParam], head: _Head, end: int,
                        shape: Tuple[int, int]) -> int:
        code = self.code
        items = head.items
        name_pos, params_pos = shape
        name_index = items[name_pos]
        popen = items[params_pos]
        pclose = match_close(code, popen, end)
        if pclose < 0:
            return self._opaque_statement(parent, scope, decl_start, end, "unclosed parameter list")

        is_operator = head.operator is not None and name_index == head.operator[0]
        name = self._operator_name(head.operator) if is_operator else code[name_index].text

        q = name_pos - 1
        destructor = q >= 0 and code[items[q]].text == "~"
        if destructor:
            q -= 1
        qualified: List[str] = []
        while q >= 0 and code[items[q]].text == "::":
            q -= 1
            if q >= 0 and code[items[q]].text == "<":
                q -= 1
            if q >= 0 and code[items[q]].kind is TokenKind.IDENTIFIER:
                qualified.insert(0, code[items[q]].text)
                q -= 1
            else:
                break
        prefix = items[:q + 1]
        specifiers = {code[n].text for n in prefix if code[n].text in _SPECIFIERS}
        type_items = [n for n in prefix if code[n].text not in _SPECIFIERS]

        constructor = not destructor and not is_operator and (
            (not qualified and name == scope.class_name)
            or (bool(qualified) and qualified[-1] == name)
        )
        conversion = is_operator and name.startswith("operator ")
        if not type_items and not (constructor or destructor or conversion):
            return self._opaque_statement(parent, scope, decl_start, end,
                                          "macro invocation or unrecognised declaration")
        if type_items and not self._looks_like_parameters(popen, pclose):
            return self._parse_variables(parent, scope, decl_start, tparams, head, end)

        quals: Set[str] = set(specifiers)
        for flag, present in (("constructor", constructor), ("destructor", destructor),
                              ("operator", is_operator), ("conversion", conversion)):
            if present:
                quals.add(flag)
        if scope.kind == "class":
            quals.add("member")

        spec = ExceptionSpec.NONE
        spec_index = -1
        trailing_return: Optional[str] = None
        pos = params_pos + 1
        while pos < len(items):
            idx = items[pos]
            text = code[idx].text
            if text == "noexcept":
                spec_index = idx
                spec = ExceptionSpec.NOEXCEPT
                if pos + 1 < len(items) and items[pos + 1] == idx + 1 and code[idx + 1].text == "(":
                    operand = [t.text for t in code[idx + 2:match_close(code, idx + 1, end)]]
                    if operand == ["false"]:
                        spec = ExceptionSpec.NOEXCEPT_FALSE
                    elif operand not in (["true"], []):
                        spec = ExceptionSpec.NOEXCEPT_EXPR
                    pos += 1
            elif text == "throw":
                quals.add("dynamic_throw")
                if pos + 1 < len(items) and code[items[pos + 1]].text == "(":
                    pos += 1
            elif text == "->":
                ret: List[int] = []
                pos += 1
                while pos < len(items) and code[items[pos]].text != "requires":
                    ret.append(items[pos])
                    pos += 1
                trailing_return = join_tokens(self._expand(ret))
                continue
            elif text == "requires":
                break
            elif text in ("const", "volatile", "override", "final"):
                quals.add(text)
            elif text in ("&", "&&"):
                quals.add("lvalue_ref" if text == "&" else "rvalue_ref")
            pos += 1

        stop = head.stop
        terminator = self._peek(stop, end)
        body_open = -1
        init_list: Optional[Tuple[int, int]] = None
        last = stop
        next_index = stop + 1
        if terminator == "=":
            what = self._peek(stop + 1, end)
            if what == "0":
                quals.add("pure")
            elif what == "default":
                quals.add("defaulted")
            elif what == "delete":
                quals.add("deleted")
            last = self._statement_end(stop, end)
            next_index = last + 1
        elif terminator == ":":
            body_open = self._find_body_after_init_list(stop + 1, end)
            if body_open < 0:
                return self._opaque_statement(parent, scope, decl_start, end,
                                              "unrecognised constructor initializer list")
            init_list = (stop + 1, body_open)
        elif terminator == "{":
            body_open = stop
        elif terminator == ",":
            last = self._statement_end(stop, end)
            next_index = last + 1
        elif terminator != ";":
            last = max(stop - 1, name_index)
            next_index = max(stop, name_index + 1)

        body_close = -1
        if body_open >= 0:
            body_close = match_close(code, body_open, end)
            quals.add("definition")
            if body_close < 0:
                last = end - 1
                next_index = end
            else:
                last = body_close
                next_index = body_close + 1

        return_type = trailing_return or self._type_text(type_items)
        if conversion and not trailing_return:
            return_type = name[len("operator "):]
        decl = self._new(
            DeclarationKind.FUNCTION, name, decl_start, last, name_index, scope,
            qualifiers=frozenset(quals),
            visibility=scope.member_visibility(),
            parameters=self._parameters(popen, pclose),
            return_type=return_type,
            exception_spec=spec,
            exception_line=code[spec_index].line if spec_index >= 0 else 0,
            exception_column=code[spec_index].column if spec_index >= 0 else 0,
            qualified_by=tuple(qualified),
        )
        self._attach_template_params(decl, tparams, scope)
        parent.children.append(decl)

        if body_open >= 0:
            close = body_close if body_close >= 0 else end
            decl.body = self._body_info(body_open, body_close, decl_start)
            self._scan_body(decl, scope, body_open, close, init_list)
            if body_close < 0:
                self._opaque(parent, scope, body_open, body_open, "function body is never closed")
        return next_index

    def _declarator(self, items: Sequence[int], continuation: bool = False) -> Optional[_Declarator]:
        """Name and type of a variable declarator, or None."""
        code = self.code
        if not items:
            return None
        for pos, idx in enumerate(items):
            if code[idx].text == "(" and self._peek(idx + 1) in ("*", "^", "&", "&&"):
                close = match_close(code, idx)
                names = [n for n in range(idx + 1, close) if code[n].kind is TokenKind.IDENTIFIER]
                if not names:
                    return None
                type_items = list(items[:pos])
                quals = self._type_qualifiers(type_items) | {"pointer"}
                return _Declarator(names[-1], type_items, frozenset(quals), (), False)

        work = list(items)
        paren_init = False
        if len(work) >= 2 and code[work[-1]].text == "(":
            paren_init = True
            work.pop()
        brackets = [p for p, idx in enumerate(work) if code[idx].text == "["]
        name_pos = brackets[0] - 1 if brackets else len(work) - 1
        if name_pos < 0:
            return None
        name_index = work[name_pos]
        if code[name_index].kind is not TokenKind.IDENTIFIER:
            return None

        q = name_pos - 1
        qualified: List[str] = []
        while q >= 1 and code[work[q]].text == "::" and code[work[q - 1]].kind is TokenKind.IDENTIFIER:
            qualified.insert(0, code[work[q - 1]].text)
            q -= 2
        type_items = work[:q + 1]
        if not continuation and not any(
            code[n].kind is TokenKind.IDENTIFIER or code[n].text in _TYPE_WORDS
            or code[n].text == "decltype"
            for n in type_items
        ):
            return None
        quals = self._type_qualifiers(type_items)
        if brackets:
            quals.add("array")
        return _Declarator(name_index, type_items, frozenset(quals), tuple(qualified), paren_init)

    def _initializer_end(self, k: int, stop: int) -> int:
        """Index of the ``,``/``;`` ending an initializer that starts at *k*."""
        code = self.code
        while k < stop:
            text = code[k].text
            if text in (",", ";", "}"):
                return k
            if text in _CLOSERS:
                close = match_close(code, k, stop)
                if close < 0:
                    return stop
                k = close + 1
                continue
            if text == "<" and code[k - 1].kind is TokenKind.IDENTIFIER:
                close = match_angle(code, k, stop)
                if close > 0 and self._peek(close + 1, stop) in ("(", "{", "::"):
                    k = close + 1
                    continue
            k += 1
        return stop

    def _parse_variables(self, parent: Declaration, scope: _Scope, decl_start: int,
                         tparams: Sequence[_TemplateParam], head: _Head, end: int,
                         extra: FrozenSet[str] = frozenset(),
                         state: Optional[_BodyState] = None) -> int:
        """
        Declare one variable per declarator of the statement in *head*.

        At namespace and class scope an unrecognisable statement becomes an
        opaque region; inside a function body (*state* given) it is ignored.
        """
        code = self.code
        first = self._declarator(head.items)
        if first is None:
            if state is not None:
                return head.stop + 1
            return self._opaque_statement(parent, scope, decl_start, end, "unrecognised declaration")

        base_items = [n for n in first.type_items if code[n].text not in ("*", "^", "&", "&&")]
        declarator = first
        k = head.stop
        start = decl_start
        while True:
            has_init = declarator.paren_init
            terminator = self._peek(k, end)
            init_range: Optional[Tuple[int, int]] = None
            if terminator == "=":
                init_end = self._initializer_end(k + 1, end)
                init_range = (k + 1, init_end)
                has_init = True
                k = init_end
            elif terminator == "{":
                close = match_close(code, k, end)
                if close < 0:
                    close = end - 1
                init_range = (k + 1, close)
                has_init = True
                k = close + 1
            elif terminator == ":":
                k = self._initializer_end(k + 1, end)

            quals = set(declarator.qualifiers) | set(extra)
            if scope.kind == "class":
                quals.add("member")
            if declarator is first:
                type_items = declarator.type_items
            else:
                type_items = base_items + list(declarator.type_items)
                quals = (quals - {"const"}) | self._type_qualifiers(type_items)
            var = self._new(
                DeclarationKind.VARIABLE, code[declarator.name_index].text, start,
                max(k - 1, declarator.name_index), declarator.name_index, scope,
                qualifiers=frozenset(quals),
                visibility=scope.member_visibility(),
                qualified_by=declarator.qualified_by,
            )
            var.type_text = self._type_text(type_items)
            var.has_initializer = has_init
            if declarator is first:
                self._attach_template_params(var, tparams, scope)
            parent.children.append(var)

            if state is not None:
                state.locals.append(var)
                state.declarator_indices.add(declarator.name_index)
                if (init_range is not None and "reference" in quals
                        and "const" not in quals):
                    state.binding_ranges.append(init_range)

            if self._peek(k, end) != ",":
                break
            start = k + 1
            nxt = self._scan_head(k + 1, end)
            declarator = self._declarator(nxt.items, continuation=True)
            if declarator is None:
                if state is not None:
                    return nxt.stop + 1
                if k + 1 >= end:
                    # dangling comma at the end of the input
                    self._opaque(parent, scope, k, k, "unterminated declarator list")
                    return end
                return self._opaque_statement(parent, scope, k + 1, end, "unrecognised declarator")
            k = nxt.stop

        if self._peek(k, end) == ";":
            return k + 1
        return max(k, head.items[0] + 1)

    # ── function bodies ──────────────────────────────────────────────

    def _scan_body(self, decl: Declaration, scope: _Scope, open_index: int, close_index: int,
                   init_list: Optional[Tuple[int, int]]) -> None:
        body_scope = _Scope(
            "function", scope.namespace_path, scope.scope_path + (decl.name,),
        )
        state = _BodyState(body_scope)
        self._scan_statements(decl, state, open_index + 1, close_index)

        ranges = [(open_index + 1, close_index)]
        if init_list is not None:
            ranges.append(init_list)
        decl.written_names = frozenset(self._collect_writes(state, ranges))

        counts = Counter(v.name for v in state.locals)
        counts.update(p.name for p in decl.parameters if p.name)
        decl.shadowed_names = frozenset(n for n, c in counts.items() if c > 1)

    def _scan_statements(self, decl: Declaration, state: _BodyState, start: int, stop: int) -> None:
        code = self.code
        k = start
        while k < stop:
            tok = code[k]
            text = tok.text
            if text in ("{", "}", ";"):
                k += 1
                continue
            if text in ("if", "switch", "while", "for", "catch"):
                j = k + 1
                while j < stop and code[j].text in ("constexpr", "!", "consteval"):
                    j += 1
                if self._peek(j, stop) == "(":
                    close = match_close(code, j, stop)
                    if close < 0:
                        return
                    if text == "for":
                        self._scan_for_header(decl, state, j, close)
                    elif text in ("if", "switch"):
                        semi = self._top_level_index(j + 1, close, ";")
                        if semi >= 0:
                            self._try_local(decl, state, j + 1, semi + 1, loop=False)
                    k = close + 1
                    continue
                k = j
                continue
            if text in ("else", "do", "try"):
                k += 1
                continue
            if text in ("case", "default"):
                colon = self._top_level_index(k + 1, stop, ":")
                k = stop if colon < 0 else colon + 1
                continue
            if tok.kind is TokenKind.IDENTIFIER and self._peek(k + 1, stop) == ":":
                k += 2  # label
                continue
            if text in _CLASS_KEYS or text == "enum":
                brace = self._top_level_index(k, stop, "{")
                semi = self._top_level_index(k, stop, ";")
                if brace >= 0 and (semi < 0 or brace < semi):
                    close = match_close(code, brace, stop)
                    k = stop if close < 0 else close + 1
                    continue
            end_index = self._statement_end(k, stop)
            self._try_local(decl, state, k, end_index + 1, loop=False)
            k = max(end_index + 1, k + 1)

    def _top_level_index(self, start: int, stop: int, wanted: str) -> int:
        code = self.code
        k = start
        while k < stop:
            text = code[k].text
            if text == wanted:
                return k
            if text in _CLOSERS:
                close = match_close(code, k, stop)
                if close < 0:
                    return -1
                k = close + 1
                continue
            k += 1
        return -1

    def _scan_for_header(self, decl: Declaration, state: _BodyState, open_index: int,
                         close_index: int) -> None:
        semi = self._top_level_index(open_index + 1, close_index, ";")
        if semi >= 0:
            self._try_local(decl, state, open_index + 1, semi + 1, loop=True)
            return
        colon = self._top_level_index(open_index + 1, close_index, ":")
        if colon >= 0:
            self._try_local(decl, state, open_index + 1, colon, loop=True)
            state.binding_ranges.append((colon + 1, close_index))

    def _is_type_items(self, items: Sequence[int]) -> bool:
        code = self.code
        for pos, idx in enumerate(items):
            tok = code[idx]
            text = tok.text
            if tok.kind is TokenKind.IDENTIFIER or text in _TYPE_WORDS or text in _SPECIFIERS:
                continue
            if text in ("const", "volatile", "::", "*", "&", "&&", "typename", "decltype",
                        "struct", "class", "enum", "union"):
                continue
            if text == "<" and pos > 0 and match_angle(code, idx) > 0:
                continue
            if text == "(" and pos > 0 and code[items[pos - 1]].text == "decltype":
                continue
            return False
        return True

    def _try_local(self, decl: Declaration, state: _BodyState, start: int, stop: int,
                   loop: bool) -> None:
        """Record the statement ``code[start:stop]`` as local declarations if it is one."""
        code = self.code
        head = self._scan_head(start, stop)
        if not head.items or code[head.items[0]].text in _STATEMENT_KEYWORDS:
            return
        first = self._declarator(head.items)
        if first is None or first.qualified_by or not self._is_type_items(first.type_items):
            if any(code[n].text == "[" for n in head.items) and self._peek(head.stop, stop) == "=":
                # structured binding: `auto& [a, b] = pair;`
                state.binding_ranges.append((head.stop + 1, stop))
            return
        extra = {"local", "loop"} if loop else {"local"}
        self._parse_variables(decl, state.scope, start, (), head, stop,
                              extra=frozenset(extra), state=state)

    def _opens_call(self, k: int) -> bool:
        code = self.code
        if k == 0:
            return False
        text = code[k].text
        prev = code[k - 1]
        if text == "(":
            if prev.kind is TokenKind.IDENTIFIER:
                return True
            if prev.kind is TokenKind.KEYWORD:
                return False
            return prev.text in (">", ")", "]")
        if text == "{":
            return prev.kind is TokenKind.IDENTIFIER or prev.text == ">"
        return False

    @staticmethod
    def _ends_operand(tok: Token) -> bool:
        return (tok.kind in (TokenKind.IDENTIFIER, TokenKind.LITERAL)
                or tok.text in (")", "]", "this"))

    def _modified_operand(self, first: int, last: int) -> bool:
        """True when the operand spanning *first*..*last* is assigned or stepped."""
        nxt = self._peek(last + 1)
        if nxt in _ASSIGN_OPS or nxt in ("++", "--") or self._peek(first - 1) in ("++", "--"):
            return True
        return nxt == ">" and self._peek(last + 2) == ">="  # >>=

    def _is_write(self, k: int) -> bool:
        """True when the identifier at *k* sits at a possible write site."""
        code = self.code
        nxt = self._peek(k + 1)
        prev = self._peek(k - 1)
        if self._modified_operand(k, k):
            return True
        if nxt in (".", "->", "[", "(", ".*", "->*"):
            return True
        if prev == "&" and (k < 2 or not self._ends_operand(code[k - 2])):
            return True  # address taken
        if (prev == ">" and self._peek(k - 2) == ">"
                and code[k - 2].end_column == code[k - 1].column
                and code[k - 2].line == code[k - 1].line):
            return True  # stream extraction
        return False

    def _collect_writes(self, state: _BodyState, ranges: Sequence[Tuple[int, int]]) -> Set[str]:
        code = self.code
        written: Set[str] = set()
        for s, e in state.binding_ranges:
            written.update(code[k].text for k in range(s, e) if code[k].kind is TokenKind.IDENTIFIER)
        for start, stop in ranges:
            calls: List[bool] = []
            for k in range(start, stop):
                tok = code[k]
                text = tok.text
                if text in _CLOSERS:
                    is_call = self._opens_call(k)
                    calls.append(is_call)
                    if text == "(" and not is_call:
                        close = match_close(code, k, stop)
                        if close > 0 and self._modified_operand(k, close):
                            # (c ? x : y) = v writes every name in the group
                            written.update(code[n].text for n in range(k + 1, close)
                                           if code[n].kind is TokenKind.IDENTIFIER)
                    continue
                if text in (")", "}", "]"):
                    if calls:
                        calls.pop()
                    continue
                if tok.kind is not TokenKind.IDENTIFIER or k in state.declarator_indices:
                    continue
                if self._peek(k - 1) in (".", "->", "::"):
                    continue
                if any(calls) or self._is_write(k):
                    written.add(text)
        return written

    # ── documentation ────────────────────────────────────────────────

    def _associate_docs(self, tree: DeclarationTree) -> Dict[int, DocumentationBlock]:
        preceding: Dict[int, DocumentationBlock] = {}
        trailing: Dict[int, DocumentationBlock] = {}
        for block in collect_blocks(self.tokens):
            if block.trailing:
                trailing.setdefault(block.start_line, block)
            else:
                preceding[block.end_line] = block

        docs: Dict[int, DocumentationBlock] = {}
        for decl in tree.walk():
            if decl.kind in (DeclarationKind.OPAQUE, DeclarationKind.TEMPLATE_PARAMETER):
                continue
            if decl.has("local"):
                continue
            block = preceding.get(decl.span.line - 1) or trailing.get(decl.span.end_line)
            if block is not None:
                docs[decl.id] = block
        return docs


def build_tree(source: Union[str, bytes, Sequence[Token]], file: str = "<input>") -> DeclarationTree:
    """
    Build the declaration tree of one file.

    Parameters
    ----------
    source : source text, or an already lexed token sequence
    file   : path recorded on tokens and the tree
    """
    if isinstance(source, (str, bytes)):
        tokens = Lexer(source, file).tokens()
    else:
        tokens = list(source)
    return ModelBuilder(tokens, file).build()


__all__ = [
    "ModelBuilder",
    "build_tree",
    "count_statements",
    "join_tokens",
    "match_angle",
    "match_close",
]
