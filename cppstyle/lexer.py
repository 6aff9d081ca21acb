"""
cppstyle/lexer.py
═════════════════

C++ tokeniser used by every later stage of the checker.

The lexer is deliberately forgiving: it never raises on malformed input.
Anything it cannot recognise (stray bytes, unterminated string or character
literals, unterminated raw strings) becomes an ``UNKNOWN`` token so the
model builder can degrade locally instead of abandoning the file.

Notable behaviour
─────────────────
  • Comments keep their style (``//``, ``/* */``, ``///``/``//!``,
    ``/** */``/``/*! */``) because documentation and spacing rules need it.
  • Preprocessor directives are single opaque ``DIRECTIVE`` tokens running
    to the first unescaped end of line.
  • ``>>`` is emitted as two ``>`` tokens so template argument lists close
    cleanly; no rule needs the shift operator as one token.
  • Every token records the whitespace run before and after it, including
    the positions of any tab characters (style rule 3.1).

Usage
─────
    >>> from cppstyle.lexer import Lexer
    >>> lexer = Lexer("int x = 0;", file="a.cpp")
    >>> [t.text for t in lexer]
    ['int', 'x', '=', '0', ';']
    >>> [t.text for t in lexer]        # restartable: re-lexes each time
    ['int', 'x', '=', '0', ';']
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import FrozenSet, Iterator, List, Optional, Tuple, Union


# ═════════════════════════════════════════════════════════════════════════
#  PART 1 — TOKEN MODEL
# ═════════════════════════════════════════════════════════════════════════

class TokenKind(enum.Enum):
    """Lexical categories produced by :class:`Lexer`."""
    IDENTIFIER = "identifier"
    KEYWORD = "keyword"
    PUNCTUATION = "punctuation"
    LITERAL = "literal"
    COMMENT = "comment"
    DIRECTIVE = "directive"
    UNKNOWN = "unknown"


class CommentStyle(enum.Enum):
    """Syntactic form of a comment token."""
    LINE = "//"
    BLOCK = "/*"
    DOC_LINE = "///"
    DOC_BLOCK = "/**"


@dataclass(frozen=True)
class Whitespace:
    """A run of whitespace between two tokens."""
    spaces: int = 0
    tabs: int = 0
    newlines: int = 0
    tab_positions: Tuple[Tuple[int, int], ...] = ()

    @property
    def width(self) -> int:
        return self.spaces + self.tabs

    @property
    def has_newline(self) -> bool:
        return self.newlines > 0


_NO_WHITESPACE = Whitespace()


@dataclass(frozen=True)
class Token:
    """
    A single lexical token.

    Attributes
    ----------
    kind          : TokenKind
    text          : raw source text of the token
    file          : originating file path
    line, column  : 1-based start position
    end_line      : line holding the last character of the token
    leading       : whitespace run before the token
    trailing      : whitespace run after the token
    comment_style : set for COMMENT tokens only
    """
    kind: TokenKind
    text: str
    file: str
    line: int
    column: int
    end_line: int
    leading: Whitespace = _NO_WHITESPACE
    trailing: Whitespace = _NO_WHITESPACE
    comment_style: Optional[CommentStyle] = None

    @property
    def is_comment(self) -> bool:
        return self.kind is TokenKind.COMMENT

    @property
    def is_doc_comment(self) -> bool:
        return self.comment_style in (CommentStyle.DOC_LINE, CommentStyle.DOC_BLOCK)

    @property
    def is_code(self) -> bool:
        """True for tokens that take part in C++ syntax."""
        return self.kind not in (TokenKind.COMMENT, TokenKind.DIRECTIVE)

    @property
    def is_name(self) -> bool:
        return self.kind is TokenKind.IDENTIFIER

    @property
    def end_column(self) -> int:
        """Column one past the last character (single-line tokens only)."""
        if self.end_line != self.line:
            return len(self.text) - self.text.rfind("\n")
        return self.column + len(self.text)

    def __repr__(self) -> str:
        return f"Token({self.kind.name}, {self.text!r}, {self.line}:{self.column})"


# ═════════════════════════════════════════════════════════════════════════
#  PART 2 — LEXICAL TABLES
# ═════════════════════════════════════════════════════════════════════════

KEYWORDS: FrozenSet[str] = frozenset({
    "alignas", "alignof", "and", "and_eq", "asm", "auto", "bitand", "bitor",
    "bool", "break", "case", "catch", "char", "char8_t", "char16_t",
    "char32_t", "class", "compl", "concept", "const", "consteval",
    "constexpr", "constinit", "const_cast", "continue", "co_await",
    "co_return", "co_yield", "decltype", "default", "delete", "do",
    "double", "dynamic_cast", "else", "enum", "explicit", "export", "extern",
    "false", "float", "for", "friend", "goto", "if", "inline", "int", "long",
    "mutable", "namespace", "new", "noexcept", "not", "not_eq", "nullptr",
    "operator", "or", "or_eq", "private", "protected", "public", "register",
    "reinterpret_cast", "requires", "return", "short", "signed", "sizeof",
    "static", "static_assert", "static_cast", "struct", "switch", "template",
    "this", "thread_local", "throw", "true", "try", "typedef", "typeid",
    "typename", "union", "unsigned", "using", "virtual", "void", "volatile",
    "wchar_t", "while", "xor", "xor_eq",
})

# Longest match first.  ">>" and ">>=" are intentionally absent.
_PUNCT_3 = frozenset({"<=>", "<<=", "->*", "..."})
_PUNCT_2 = frozenset({
    "::", "->", ".*", "++", "--", "<<", "<=", ">=", "==", "!=", "&&", "||",
    "+=", "-=", "*=", "/=", "%=", "&=", "|=", "^=", "##",
})
_PUNCT_1 = frozenset("{}[]()<>;:,.?+-*/%^&|~!=#")

_STRING_PREFIXES = frozenset({"L", "u", "U", "u8"})
_RAW_PREFIXES = frozenset({"R", "LR", "uR", "UR", "u8R"})


def _is_ident_start(ch: str) -> bool:
    return ch == "_" or ch.isalpha()


def _is_ident_char(ch: str) -> bool:
    return ch == "_" or ch.isalnum()


# ═════════════════════════════════════════════════════════════════════════
#  PART 3 — SCANNER
# ═════════════════════════════════════════════════════════════════════════

class _Cursor:
    """Character cursor tracking 1-based line/column."""

    __slots__ = ("text", "pos", "line", "column", "size")

    def __init__(self, text: str) -> None:
        self.text = text
        self.pos = 0
        self.line = 1
        self.column = 1
        self.size = len(text)

    def at_end(self) -> bool:
        return self.pos >= self.size

    def peek(self, offset: int = 0) -> str:
        p = self.pos + offset
        return self.text[p] if p < self.size else ""

    def startswith(self, s: str) -> bool:
        return self.text.startswith(s, self.pos)

    def advance(self, count: int = 1) -> None:
        for _ in range(count):
            if self.pos >= self.size:
                return
            if self.text[self.pos] == "\n":
                self.line += 1
                self.column = 1
            else:
                self.column += 1
            self.pos += 1


class Lexer:
    """
    Restartable lexer over one translation unit.

    Iterating a ``Lexer`` lexes the text from the start; tokens are produced
    lazily, one at a time.

    Parameters
    ----------
    text : source text; ``bytes`` are decoded as UTF-8 with replacement
    file : path recorded on every token
    """

    def __init__(self, text: Union[str, bytes], file: str = "<input>") -> None:
        if isinstance(text, bytes):
            text = text.decode("utf-8", errors="replace")
        if text.startswith("\ufeff"):
            text = text[1:]
        self.text = text
        self.file = file

    def __iter__(self) -> Iterator[Token]:
        return self._scan()

    def tokens(self) -> List[Token]:
        """Materialise the full token list."""
        return list(self._scan())

    # ── driver ───────────────────────────────────────────────────────

    def _scan(self) -> Iterator[Token]:
        cur = _Cursor(self.text)
        leading = self._read_whitespace(cur)
        first = True
        while not cur.at_end():
            line, column, start = cur.line, cur.column, cur.pos
            at_line_start = first or leading.has_newline
            kind, style = self._read_token(cur, at_line_start)
            text = self.text[start:cur.pos]
            trailing = self._read_whitespace(cur)
            yield Token(
                kind=kind,
                text=text,
                file=self.file,
                line=line,
                column=column,
                end_line=line + text.count("\n"),
                leading=leading,
                trailing=trailing,
                comment_style=style,
            )
            leading = trailing
            first = False

    @staticmethod
    def _read_whitespace(cur: _Cursor) -> Whitespace:
        spaces = tabs = newlines = 0
        tab_positions: List[Tuple[int, int]] = []
        while not cur.at_end():
            ch = cur.peek()
            if ch == " " or ch == "\f" or ch == "\v":
                spaces += 1
            elif ch == "\t":
                tabs += 1
                tab_positions.append((cur.line, cur.column))
            elif ch == "\n":
                newlines += 1
            elif ch == "\r":
                pass
            elif ch == "\\" and cur.peek(1) in ("\n", "\r"):
                pass  # line splice
            else:
                break
            cur.advance()
        if not (spaces or tabs or newlines):
            return _NO_WHITESPACE
        return Whitespace(spaces, tabs, newlines, tuple(tab_positions))

    def _read_token(
        self, cur: _Cursor, at_line_start: bool
    ) -> Tuple[TokenKind, Optional[CommentStyle]]:
        ch = cur.peek()

        if cur.startswith("//"):
            return TokenKind.COMMENT, self._read_line_comment(cur)
        if cur.startswith("/*"):
            return TokenKind.COMMENT, self._read_block_comment(cur)
        if ch == "#" and at_line_start:
            self._read_directive(cur)
            return TokenKind.DIRECTIVE, None
        if _is_ident_start(ch):
            return self._read_word(cur), None
        if ch.isdigit() or (ch == "." and cur.peek(1).isdigit()):
            self._read_number(cur)
            return TokenKind.LITERAL, None
        if ch == '"' or ch == "'":
            return self._read_quoted(cur, ch), None

        for table, width in ((_PUNCT_3, 3), (_PUNCT_2, 2), (_PUNCT_1, 1)):
            if cur.text[cur.pos:cur.pos + width] in table:
                cur.advance(width)
                return TokenKind.PUNCTUATION, None

        cur.advance()
        return TokenKind.UNKNOWN, None

    # ── individual token forms ───────────────────────────────────────

    @staticmethod
    def _read_line_comment(cur: _Cursor) -> CommentStyle:
        style = CommentStyle.LINE
        if (cur.startswith("///") and not cur.startswith("////")) or cur.startswith("//!"):
            style = CommentStyle.DOC_LINE
        while not cur.at_end() and cur.peek() not in ("\n", "\r"):
            cur.advance()
        return style

    @staticmethod
    def _read_block_comment(cur: _Cursor) -> CommentStyle:
        style = CommentStyle.BLOCK
        if cur.startswith("/*!") or (
            cur.startswith("/**") and not cur.startswith("/**/") and not cur.startswith("/***")
        ):
            style = CommentStyle.DOC_BLOCK
        end = cur.text.find("*/", cur.pos + 2)
        # An unterminated block comment swallows the rest of the input.
        cur.advance((end + 2 if end >= 0 else cur.size) - cur.pos)
        return style

    @staticmethod
    def _read_directive(cur: _Cursor) -> None:
        while not cur.at_end():
            ch = cur.peek()
            if ch == "\\" and cur.peek(1) == "\n":
                cur.advance(2)
                continue
            if ch == "\\" and cur.peek(1) == "\r" and cur.peek(2) == "\n":
                cur.advance(3)
                continue
            if ch in ("\n", "\r"):
                return
            cur.advance()

    def _read_word(self, cur: _Cursor) -> TokenKind:
        start = cur.pos
        while not cur.at_end() and _is_ident_char(cur.peek()):
            cur.advance()
        word = cur.text[start:cur.pos]
        nxt = cur.peek()
        if nxt == '"' and word in _RAW_PREFIXES:
            return self._read_raw_string(cur)
        if nxt in ('"', "'") and word in _STRING_PREFIXES:
            return self._read_quoted(cur, nxt)
        return TokenKind.KEYWORD if word in KEYWORDS else TokenKind.IDENTIFIER

    @staticmethod
    def _read_number(cur: _Cursor) -> None:
        prev = ""
        while not cur.at_end():
            ch = cur.peek()
            if _is_ident_char(ch) or ch == ".":
                pass
            elif ch == "'" and _is_ident_char(cur.peek(1)):
                pass  # digit separator
            elif ch in "+-" and prev and prev in "eEpP":
                pass  # exponent sign
            else:
                return
            prev = ch
            cur.advance()

    @staticmethod
    def _read_quoted(cur: _Cursor, quote: str) -> TokenKind:
        cur.advance()  # opening quote
        while not cur.at_end():
            ch = cur.peek()
            if ch == "\\":
                cur.advance(2)
                continue
            if ch == quote:
                cur.advance()
                return TokenKind.LITERAL
            if ch in ("\n", "\r"):
                break
            cur.advance()
        return TokenKind.UNKNOWN

    @staticmethod
    def _read_raw_string(cur: _Cursor) -> TokenKind:
        cur.advance()  # opening quote
        open_paren = cur.text.find("(", cur.pos, cur.pos + 17)
        delimiter = cur.text[cur.pos:open_paren] if open_paren >= 0 else None
        if delimiter is None or any(c in delimiter for c in ' \\)\t\n"'):
            return TokenKind.UNKNOWN
        terminator = ")" + delimiter + '"'
        end = cur.text.find(terminator, open_paren + 1)
        if end < 0:
            cur.advance(cur.size - cur.pos)
            return TokenKind.UNKNOWN
        cur.advance(end + len(terminator) - cur.pos)
        return TokenKind.LITERAL


def tokenize(text: Union[str, bytes], file: str = "<input>") -> Iterator[Token]:
    """Lazily tokenise *text*; convenience wrapper over :class:`Lexer`."""
    return iter(Lexer(text, file))


__all__ = [
    "CommentStyle",
    "KEYWORDS",
    "Lexer",
    "Token",
    "TokenKind",
    "Whitespace",
    "tokenize",
]
