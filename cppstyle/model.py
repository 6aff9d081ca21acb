"""
cppstyle/model.py
═════════════════

Declaration tree: the rule-checkable model of one translation unit.

The tree is deliberately shallow: enough to answer naming, structure and
documentation questions without template instantiation or overload
resolution.  A :class:`Declaration` is a tagged variant (``kind``) rather
than a class hierarchy; kind-specific data lives in optional fields that
are empty for other kinds.

Ownership is strictly hierarchical: a declaration owns its ``children``.
Documentation is *not* owned by declarations; :class:`DeclarationTree`
keeps an index ``declaration id → DocumentationBlock``.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterator, List, Optional, Sequence, Tuple

from cppstyle.docblock import DocumentationBlock
from cppstyle.lexer import Token


class DeclarationKind(enum.Enum):
    NAMESPACE = "namespace"
    CLASS_OR_STRUCT = "class_or_struct"
    FUNCTION = "function"
    VARIABLE = "variable"
    TYPE_ALIAS = "type_alias"
    TEMPLATE_PARAMETER = "template_parameter"
    OPAQUE = "opaque"


class Visibility(enum.Enum):
    PUBLIC = "public"
    PROTECTED = "protected"
    PRIVATE = "private"
    NONE = "none"           # not a class member


class ExceptionSpec(enum.Enum):
    NONE = "none"                       # no specifier written
    NOEXCEPT = "noexcept"               # noexcept / noexcept(true)
    NOEXCEPT_FALSE = "noexcept(false)"
    NOEXCEPT_EXPR = "noexcept(expr)"    # any other operand


@dataclass(frozen=True)
class SourceSpan:
    """Inclusive start and end positions (1-based)."""
    line: int
    column: int
    end_line: int
    end_column: int

    @classmethod
    def between(cls, first: Token, last: Token) -> "SourceSpan":
        return cls(first.line, first.column, last.end_line, last.end_column)


@dataclass(frozen=True)
class Parameter:
    """A function parameter.  ``name`` is empty for unnamed parameters."""
    name: str
    type_text: str
    line: int
    column: int
    qualifiers: FrozenSet[str] = frozenset()

    @property
    def is_by_value(self) -> bool:
        return not (self.qualifiers & {"reference", "pointer", "array", "variadic"})

    @property
    def is_const(self) -> bool:
        return bool(self.qualifiers & {"const", "constexpr"})


@dataclass(frozen=True)
class BodyInfo:
    """Placement facts about the brace that opens a scope."""
    open_line: int
    open_column: int
    statement_count: int
    alone_on_line: bool
    owner_indent: int       # column of the first token on the owning line
    open_index: int = -1    # indices into DeclarationTree.code
    close_index: int = -1


@dataclass(eq=False)
class Declaration:
    """
    One node of the declaration tree.

    Common fields apply to every kind; the remaining fields are populated
    only for the kinds noted beside them.
    """
    id: int
    kind: DeclarationKind
    name: str
    span: SourceSpan
    name_line: int
    name_column: int
    namespace_path: Tuple[str, ...] = ()
    scope_path: Tuple[str, ...] = ()
    qualifiers: FrozenSet[str] = frozenset()
    visibility: Visibility = Visibility.NONE
    children: List["Declaration"] = field(default_factory=list)
    body: Optional[BodyInfo] = None

    # FUNCTION
    parameters: Tuple[Parameter, ...] = ()
    return_type: str = ""
    exception_spec: ExceptionSpec = ExceptionSpec.NONE
    exception_line: int = 0
    exception_column: int = 0
    qualified_by: Tuple[str, ...] = ()      # A::B::f → ("A", "B")
    written_names: FrozenSet[str] = frozenset()
    shadowed_names: FrozenSet[str] = frozenset()

    # VARIABLE
    type_text: str = ""
    has_initializer: bool = False

    # OPAQUE
    reason: str = ""

    def has(self, qualifier: str) -> bool:
        return qualifier in self.qualifiers

    @property
    def is_anonymous(self) -> bool:
        return not self.name

    @property
    def template_parameters(self) -> List["Declaration"]:
        return [c for c in self.children if c.kind is DeclarationKind.TEMPLATE_PARAMETER]

    @property
    def locals(self) -> List["Declaration"]:
        return [
            c for c in self.children
            if c.kind is DeclarationKind.VARIABLE and c.has("local")
        ]

    @property
    def is_constant(self) -> bool:
        return self.has("const") or self.has("constexpr")

    @property
    def returns_value(self) -> bool:
        """True when the function returns something other than ``void``."""
        if self.kind is not DeclarationKind.FUNCTION:
            return False
        if self.has("constructor") or self.has("destructor"):
            return False
        return self.return_type not in ("", "void")

    def walk(self) -> Iterator["Declaration"]:
        """Pre-order traversal of this node and its descendants."""
        yield self
        for child in self.children:
            yield from child.walk()

    def __repr__(self) -> str:
        return f"<Declaration {self.kind.value} '{self.name}' @{self.name_line}:{self.name_column}>"


@dataclass
class DeclarationTree:
    """
    The model of a single file.

    Attributes
    ----------
    file          : path of the translation unit
    root          : global scope (kind NAMESPACE, empty name)
    documentation : declaration id → DocumentationBlock
    tokens        : the token stream the tree was built from
    code          : the subset of ``tokens`` taking part in C++ syntax
    """
    file: str
    root: Declaration
    documentation: Dict[int, DocumentationBlock] = field(default_factory=dict)
    tokens: Sequence[Token] = ()
    code: Sequence[Token] = ()

    def walk(self) -> Iterator[Declaration]:
        """All declarations in source order, excluding the global root."""
        for child in self.root.children:
            yield from child.walk()

    def walk_with_ancestors(self) -> Iterator[Tuple[Declaration, Tuple[Declaration, ...]]]:
        """Yield ``(declaration, ancestors)``; ancestors exclude the root."""
        def visit(node: Declaration, ancestors: Tuple[Declaration, ...]):
            yield node, ancestors
            for child in node.children:
                yield from visit(child, ancestors + (node,))

        for child in self.root.children:
            yield from visit(child, ())

    def of_kind(self, kind: DeclarationKind) -> List[Declaration]:
        return [d for d in self.walk() if d.kind is kind]

    def doc_for(self, decl: Declaration) -> Optional[DocumentationBlock]:
        return self.documentation.get(decl.id)

    @property
    def opaque_regions(self) -> List[Declaration]:
        return self.of_kind(DeclarationKind.OPAQUE)

    @property
    def declaration_count(self) -> int:
        return sum(1 for d in self.walk() if d.kind is not DeclarationKind.OPAQUE)


__all__ = [
    "BodyInfo",
    "Declaration",
    "DeclarationKind",
    "DeclarationTree",
    "ExceptionSpec",
    "Parameter",
    "SourceSpan",
    "Visibility",
]
