"""
cppstyle/docblock.py
════════════════════

Documentation comments → :class:`DocumentationBlock`.

Consecutive ``///``/``//!`` lines, or a single ``/** */``/``/*! */`` block,
form one documentation block.  After the comment markers are stripped the
remaining text is parsed with a small PEG grammar (parsimonious) into
Doxygen-style tags.  A tag starts a line with ``@name`` or ``\\name``;
following prose lines continue the tag body until a blank line or the next
tag.

Doxygen aliases are folded into the canonical tag names used by the
documentation checker:

    short               → brief
    returns, retval     → return
    throw, exception    → throws
    see, sa             → reference
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Mapping, Optional, Sequence, Tuple

from parsimonious.exceptions import ParseError, VisitationError
from parsimonious.grammar import Grammar
from parsimonious.nodes import NodeVisitor

from cppstyle.lexer import CommentStyle, Token

_log = logging.getLogger(__name__)


# ═════════════════════════════════════════════════════════════════════════
#  PART 1 — TAG GRAMMAR
# ═════════════════════════════════════════════════════════════════════════

DOC_GRAMMAR = Grammar(r'''
    doc         = line*
    line        = indent (tag / prose) eol
    tag         = marker tag_name body
    marker      = "@" / "\\"
    tag_name    = ~r"[A-Za-z][A-Za-z_]*"
    body        = ~r"[^\n]*"
    prose       = ~r"[^\n]*"
    indent      = ~r"[ \t]*"
    eol         = "\n"
''')

KNOWN_TAGS: FrozenSet[str] = frozenset({
    "brief", "param", "tparam", "return", "throws", "note", "warning",
    "reference",
})

_TAG_ALIASES: Dict[str, str] = {
    "short": "brief",
    "returns": "return",
    "retval": "return",
    "throw": "throws",
    "exception": "throws",
    "see": "reference",
    "sa": "reference",
}


def canonical_tag(name: str) -> str:
    """Map a Doxygen tag name onto the canonical checker vocabulary."""
    low = name.lower()
    return _TAG_ALIASES.get(low, low)


class _DocVisitor(NodeVisitor):
    """Turn the parse tree into ``[("tag", name, body) | ("prose", text)]``."""

    def visit_doc(self, node, visited_children):
        return list(visited_children)

    def visit_line(self, node, visited_children):
        _, content, _ = visited_children
        return content[0]

    def visit_tag(self, node, visited_children):
        _, name, body = visited_children
        return ("tag", name, body)

    def visit_tag_name(self, node, visited_children):
        return node.text

    def visit_body(self, node, visited_children):
        return node.text.strip()

    def visit_prose(self, node, visited_children):
        return ("prose", node.text.strip())

    def generic_visit(self, node, visited_children):
        return visited_children or node


def parse_tags(text: str) -> Dict[str, Tuple[str, ...]]:
    """
    Parse marker-free documentation text into a tag mapping.

    Returns
    -------
    dict mapping canonical tag name → tuple of tag bodies, in source order.
    Text that cannot be parsed yields an empty mapping.
    """
    if not text.endswith("\n"):
        text += "\n"
    try:
        items = _DocVisitor().visit(DOC_GRAMMAR.parse(text))
    except (ParseError, VisitationError) as exc:
        _log.debug("untagged documentation block: %s", exc)
        return {}

    tags: Dict[str, List[str]] = {}
    current: Optional[List[str]] = None  # [name, body-so-far]
    for item in items:
        if item[0] == "tag":
            if current is not None:
                tags.setdefault(current[0], []).append(current[1])
            current = [canonical_tag(item[1]), item[2]]
        elif current is not None:
            prose = item[1]
            if not prose:
                tags.setdefault(current[0], []).append(current[1])
                current = None
            else:
                current[1] = f"{current[1]} {prose}".strip()
    if current is not None:
        tags.setdefault(current[0], []).append(current[1])
    return {name: tuple(bodies) for name, bodies in tags.items()}


# ═════════════════════════════════════════════════════════════════════════
#  PART 2 — DOCUMENTATION BLOCK
# ═════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True, eq=False)
class DocumentationBlock:
    """
    A parsed documentation comment.

    Attributes
    ----------
    text       : comment text with markers stripped
    tags       : canonical tag name → tuple of bodies
    start_line : first line of the comment
    end_line   : last line of the comment
    trailing   : True for member-trailing ``///<`` blocks
    """
    text: str
    tags: Mapping[str, Tuple[str, ...]] = field(default_factory=dict)
    start_line: int = 0
    end_line: int = 0
    trailing: bool = False

    def has(self, tag: str) -> bool:
        return bool(self.tags.get(tag))

    def bodies(self, tag: str) -> Tuple[str, ...]:
        return self.tags.get(tag, ())

    def documented_names(self, tag: str) -> FrozenSet[str]:
        """
        First word of every *tag* body, used for ``param``/``tparam``.

        A Doxygen direction attribute (``@param[in] x``) is ignored.
        """
        names = set()
        for body in self.bodies(tag):
            if body.startswith("["):
                close = body.find("]")
                body = body[close + 1:] if close >= 0 else ""
            words = body.split()
            if words:
                names.add(words[0].rstrip(",.:"))
        return frozenset(names)


def _strip_markers(tok: Token) -> Tuple[str, bool]:
    """Return (text without comment markers, is-trailing-member-doc)."""
    text = tok.text
    if tok.comment_style is CommentStyle.DOC_LINE:
        body = text[3:]
        trailing = body.startswith("<")
        return (body[1:] if trailing else body), trailing

    body = text[3:]
    if body.endswith("*/"):
        body = body[:-2]
    trailing = body.startswith("<")
    if trailing:
        body = body[1:]
    lines = []
    for raw in body.split("\n"):
        stripped = raw.strip()
        if stripped.startswith("*"):
            stripped = stripped[1:]
            if stripped.startswith(" "):
                stripped = stripped[1:]
        lines.append(stripped.rstrip())
    return "\n".join(lines).strip("\n"), trailing


def build_block(comments: Sequence[Token]) -> DocumentationBlock:
    """Build one :class:`DocumentationBlock` from grouped doc comments."""
    parts: List[str] = []
    trailing = False
    for tok in comments:
        text, is_trailing = _strip_markers(tok)
        trailing = trailing or is_trailing
        parts.append(text)
    text = "\n".join(parts)
    return DocumentationBlock(
        text=text,
        tags=parse_tags(text),
        start_line=comments[0].line,
        end_line=comments[-1].end_line,
        trailing=trailing,
    )


def collect_blocks(tokens: Sequence[Token]) -> List[DocumentationBlock]:
    """
    Group the doc comments of a token stream into documentation blocks.

    Adjacent ``///`` lines with nothing else between them merge into one
    block; each ``/** */`` comment is a block of its own.
    """
    blocks: List[DocumentationBlock] = []
    group: List[Token] = []
    prev: Optional[Token] = None

    def flush() -> None:
        if group:
            blocks.append(build_block(group))
            group.clear()

    for tok in tokens:
        if tok.is_doc_comment:
            extends = (
                bool(group)
                and prev is group[-1]
                and tok.comment_style is CommentStyle.DOC_LINE
                and group[-1].comment_style is CommentStyle.DOC_LINE
                and tok.line == group[-1].end_line + 1
            )
            if not extends:
                flush()
            group.append(tok)
        else:
            flush()
        prev = tok
    flush()
    return blocks


__all__ = [
    "DOC_GRAMMAR",
    "DocumentationBlock",
    "KNOWN_TAGS",
    "build_block",
    "canonical_tag",
    "collect_blocks",
    "parse_tags",
]
