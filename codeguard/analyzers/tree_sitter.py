"""Tree-sitter parsing and traversal helpers for JavaScript and TypeScript sources."""

from __future__ import annotations

from bisect import bisect_right
from dataclasses import dataclass, field
from enum import Enum
from pathlib import PurePosixPath
from typing import Callable, Dict, Iterator, List, Optional, Tuple

import tree_sitter_javascript
import tree_sitter_typescript
from tree_sitter import Language, Node, Parser, Tree

ANONYMOUS = "anonymous"

_DIALECT_BY_SUFFIX = {
    ".ts": "typescript",
    ".mts": "typescript",
    ".cts": "typescript",
    ".tsx": "tsx",
    ".js": "javascript",
    ".jsx": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
}

_LANGUAGE_LOADERS: Dict[str, Callable[[], object]] = {
    "typescript": tree_sitter_typescript.language_typescript,
    "tsx": tree_sitter_typescript.language_tsx,
    "javascript": tree_sitter_javascript.language,
}


class ParseError(ValueError):
    """Raised when a source file cannot be parsed into a clean syntax tree."""


class NodeKind(Enum):
    """Structural classification of syntax nodes used by the engines."""

    FUNCTION = "function"
    CLASS = "class"
    BRANCH = "branch"
    LOGICAL = "logical"
    IMPORT = "import"
    EXPORT = "export"
    MARKUP = "markup"
    OTHER = "other"


_KIND_BY_TYPE: Dict[str, NodeKind] = {
    "function_declaration": NodeKind.FUNCTION,
    "generator_function_declaration": NodeKind.FUNCTION,
    "function_expression": NodeKind.FUNCTION,
    "function": NodeKind.FUNCTION,
    "generator_function": NodeKind.FUNCTION,
    "arrow_function": NodeKind.FUNCTION,
    "method_definition": NodeKind.FUNCTION,
    "class_declaration": NodeKind.CLASS,
    "abstract_class_declaration": NodeKind.CLASS,
    "class": NodeKind.CLASS,
    "if_statement": NodeKind.BRANCH,
    "switch_case": NodeKind.BRANCH,
    "switch_default": NodeKind.BRANCH,
    "for_statement": NodeKind.BRANCH,
    "for_in_statement": NodeKind.BRANCH,
    "while_statement": NodeKind.BRANCH,
    "do_statement": NodeKind.BRANCH,
    "ternary_expression": NodeKind.BRANCH,
    "import_statement": NodeKind.IMPORT,
    "export_statement": NodeKind.EXPORT,
    "jsx_element": NodeKind.MARKUP,
    "jsx_self_closing_element": NodeKind.MARKUP,
    "jsx_fragment": NodeKind.MARKUP,
}

_SHORT_CIRCUIT_OPERATORS = {"&&", "||"}
_METHOD_TYPES = {"method_definition", "abstract_method_signature"}
_ACCESSOR_TOKENS = {"get", "set"}


def classify(node: Node) -> NodeKind:
    """Return the structural kind of ``node``; keyword tokens are always OTHER."""
    if not node.is_named:
        return NodeKind.OTHER
    kind = _KIND_BY_TYPE.get(node.type)
    if kind is not None:
        return kind
    if node.type == "binary_expression":
        operator = node.child_by_field_name("operator")
        if operator is not None and operator.type in _SHORT_CIRCUIT_OPERATORS:
            return NodeKind.LOGICAL
    return NodeKind.OTHER


def is_function_like(node: Node) -> bool:
    return classify(node) is NodeKind.FUNCTION


def is_class_like(node: Node) -> bool:
    return classify(node) is NodeKind.CLASS


def is_branching(node: Node) -> bool:
    return classify(node) is NodeKind.BRANCH


def is_logical_and_or(node: Node) -> bool:
    return classify(node) is NodeKind.LOGICAL


def is_import(node: Node) -> bool:
    return classify(node) is NodeKind.IMPORT


def is_export(node: Node) -> bool:
    return classify(node) is NodeKind.EXPORT


def is_markup(node: Node) -> bool:
    return classify(node) is NodeKind.MARKUP


def walk(root: Node) -> Iterator[Tuple[Node, Optional[Node]]]:
    """Yield ``(node, parent)`` pairs depth-first in document order, starting at ``root``."""
    stack: List[Tuple[Node, Optional[Node]]] = [(root, root.parent)]
    while stack:
        node, parent = stack.pop()
        yield node, parent
        for child in reversed(node.children):
            stack.append((child, node))


def visit(root: Node, callback: Callable[[Node, Optional[Node]], None]) -> None:
    for node, parent in walk(root):
        callback(node, parent)


def descendants(root: Node) -> Iterator[Node]:
    """Yield every node strictly below ``root``."""
    nodes = walk(root)
    next(nodes, None)
    for node, _ in nodes:
        yield node


def contains_markup(node: Node) -> bool:
    return any(is_markup(child) for child, _ in walk(node))


def dialect_for_path(path: str) -> Optional[str]:
    return _DIALECT_BY_SUFFIX.get(PurePosixPath(path.replace("\\", "/")).suffix.lower())


@dataclass
class ParsedSource:
    """A parsed file plus the offset tables needed to report positions."""

    path: str
    dialect: str
    source: bytes
    tree: Tree
    _line_starts: List[int] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        starts = [0]
        index = self.source.find(b"\n")
        while index != -1:
            starts.append(index + 1)
            index = self.source.find(b"\n", index + 1)
        self._line_starts = starts

    @property
    def root(self) -> Node:
        return self.tree.root_node

    def text(self, node: Optional[Node]) -> str:
        if node is None:
            return ""
        return self.source[node.start_byte : node.end_byte].decode("utf-8", errors="ignore")

    def position(self, offset: int) -> Tuple[int, int]:
        """Resolve an absolute byte offset to a 1-indexed line and 0-indexed column."""
        line = bisect_right(self._line_starts, offset)
        return line, offset - self._line_starts[line - 1]

    def line_of(self, node: Node) -> int:
        return self.position(node.start_byte)[0]

    def end_line_of(self, node: Node) -> int:
        return self.position(max(node.start_byte, node.end_byte - 1))[0]


class SourceParser:
    """Parses JavaScript/TypeScript sources, picking the grammar from the file extension."""

    def __init__(self) -> None:
        self._parsers: Dict[str, Parser] = {}

    def supports(self, path: str) -> bool:
        return dialect_for_path(path) is not None

    def parse(self, content: str, path: str) -> ParsedSource:
        dialect = dialect_for_path(path)
        if dialect is None:
            raise ParseError(f"Unsupported source dialect for {path}")
        source = content.encode("utf-8")
        tree = self._get_parser(dialect).parse(source)
        if tree.root_node.has_error:
            line = _first_error_line(tree.root_node)
            raise ParseError(f"Syntax error in {path} near line {line}")
        return ParsedSource(path=path, dialect=dialect, source=source, tree=tree)

    def _get_parser(self, dialect: str) -> Parser:
        parser = self._parsers.get(dialect)
        if parser is None:
            parser = Parser(Language(_LANGUAGE_LOADERS[dialect]()))
            self._parsers[dialect] = parser
        return parser


def _first_error_line(root: Node) -> int:
    for node, _ in walk(root):
        if node.type == "ERROR" or node.is_missing:
            return node.start_point[0] + 1
    return root.start_point[0] + 1


# Structural extraction helpers


def declared_name(node: Node, parsed: ParsedSource) -> str:
    """Declared name, or the binding an anonymous function is assigned to."""
    name_node = node.child_by_field_name("name")
    if name_node is not None:
        return parsed.text(name_node)
    parent = node.parent
    if parent is not None and parent.type == "variable_declarator":
        binding = parent.child_by_field_name("name")
        if binding is not None and binding.type == "identifier":
            return parsed.text(binding)
    return ANONYMOUS


def parameter_nodes(node: Node) -> List[Node]:
    params = node.child_by_field_name("parameters")
    if params is None:
        single = node.child_by_field_name("parameter")
        return [single] if single is not None else []
    return [child for child in params.named_children if child.type != "comment"]


def signature_of(node: Node, parsed: ParsedSource) -> str:
    params = ", ".join(parsed.text(param) for param in parameter_nodes(node))
    return_type = parsed.text(node.child_by_field_name("return_type"))
    return f"({params}){return_type}"


def class_methods(node: Node, parsed: ParsedSource) -> List[Node]:
    """Methods declared directly on a class body, excluding constructors and accessors."""
    body = node.child_by_field_name("body")
    if body is None:
        return []
    methods: List[Node] = []
    for member in body.named_children:
        if member.type not in _METHOD_TYPES:
            continue
        if parsed.text(member.child_by_field_name("name")) == "constructor":
            continue
        if any(not token.is_named and token.type in _ACCESSOR_TOKENS for token in member.children):
            continue
        methods.append(member)
    return methods


def class_heritage(node: Node) -> Optional[Node]:
    for child in node.named_children:
        if child.type == "class_heritage":
            return child
    return None


def export_statement_of(statement: Node) -> Optional[Node]:
    """Return the ``export`` statement wrapping a declaration statement, if any."""
    parent = statement.parent
    if parent is not None and is_export(parent):
        return parent
    return None


def doc_comment(statement: Node, parsed: ParsedSource) -> str:
    """Return the text of the ``/** ... */`` block directly preceding a declaration."""
    target = export_statement_of(statement) or statement
    previous = target.prev_sibling
    if previous is None or previous.type != "comment":
        return ""
    raw = parsed.text(previous)
    if not raw.startswith("/**"):
        return ""
    lines: List[str] = []
    for line in raw[3:].removesuffix("*/").splitlines():
        cleaned = line.strip().lstrip("*").strip()
        if cleaned.startswith("@"):
            break
        if cleaned:
            lines.append(cleaned)
    return " ".join(lines)


__all__ = [
    "ANONYMOUS",
    "NodeKind",
    "ParseError",
    "ParsedSource",
    "SourceParser",
    "class_heritage",
    "class_methods",
    "classify",
    "contains_markup",
    "declared_name",
    "descendants",
    "dialect_for_path",
    "doc_comment",
    "export_statement_of",
    "is_branching",
    "is_class_like",
    "is_export",
    "is_function_like",
    "is_import",
    "is_logical_and_or",
    "is_markup",
    "parameter_nodes",
    "signature_of",
    "visit",
    "walk",
]
