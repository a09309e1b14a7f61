"""Single-file declaration extraction for the pattern index."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, List, Optional

from tree_sitter import Node

from ..analyzers.tree_sitter import (
    ParsedSource,
    SourceParser,
    class_heritage,
    class_methods,
    contains_markup,
    doc_comment,
    export_statement_of,
    is_function_like,
    is_import,
    signature_of,
    walk,
)
from ..config import IndexConfig
from ..hashing import declaration_id, hash_content
from ..models import Declaration, DeclarationKind
from ..scanner import glob_matches

_FUNCTION_DECLARATIONS = {"function_declaration", "generator_function_declaration"}
_CLASS_DECLARATIONS = {"class_declaration", "abstract_class_declaration"}
_VARIABLE_STATEMENTS = {"lexical_declaration", "variable_declaration"}
_LITERAL_INITIALIZERS = {"string", "number", "object"}

_CAMEL_BOUNDARY = re.compile(r"([a-z])([A-Z])")
_ACRONYM_BOUNDARY = re.compile(r"([A-Z]+)([A-Z][a-z])")
_WORD_SEPARATORS = re.compile(r"[\s_-]+")


def extract_keywords(name: str) -> List[str]:
    """Split a camelCase, PascalCase or snake_case name into unique lowercase words."""
    spaced = _ACRONYM_BOUNDARY.sub(r"\1 \2", _CAMEL_BOUNDARY.sub(r"\1 \2", name))
    words = [word for word in _WORD_SEPARATORS.split(spaced.lower()) if len(word) > 1]
    return list(dict.fromkeys(words))


def detect_function_kind(name: str, node: Node) -> DeclarationKind:
    if name.startswith("use") and len(name) > 3 and name[3].isupper():
        return DeclarationKind.HOOK
    if name[:1].isupper() and contains_markup(node):
        return DeclarationKind.COMPONENT
    if "Middleware" in name or "middleware" in name:
        return DeclarationKind.MIDDLEWARE
    if "Handler" in name or "handler" in name:
        return DeclarationKind.HANDLER
    if name.startswith(("create", "make")) or "Factory" in name:
        return DeclarationKind.FACTORY
    return DeclarationKind.FUNCTION


def detect_class_kind(name: str, node: Node, parsed: ParsedSource) -> DeclarationKind:
    if name.endswith(("Error", "Exception")):
        return DeclarationKind.ERROR
    # Matches Component and PureComponent bases.
    if "Component" in parsed.text(class_heritage(node)):
        return DeclarationKind.COMPONENT
    if name.endswith(("Store", "State")):
        return DeclarationKind.STORE
    if name.endswith(("Model", "Entity")):
        return DeclarationKind.MODEL
    return DeclarationKind.CLASS


@dataclass
class FileExtraction:
    """Declarations and imported names found in one file."""

    patterns: List[Declaration]
    imports: List[str]


class PatternExtractor:
    """Turns one source file into Declaration records. Pure: no disk access."""

    def __init__(
        self, config: IndexConfig | None = None, *, parser: SourceParser | None = None
    ) -> None:
        self.config = config or IndexConfig()
        self._parser = parser or SourceParser()

    def extract_patterns(self, file: str, content: str) -> List[Declaration]:
        return self.extract_file(file, content).patterns

    def extract_file(self, file: str, content: str) -> FileExtraction:
        """Parse ``content`` (reported as ``file``); raises ParseError for malformed source."""
        parsed = self._parser.parse(content, file)
        patterns: List[Declaration] = []
        for node, _ in walk(parsed.root):
            patterns.extend(self._node_to_patterns(node, parsed, file))
        return FileExtraction(patterns=patterns, imports=imported_names(parsed))

    def _node_to_patterns(
        self, node: Node, parsed: ParsedSource, file: str
    ) -> Iterable[Declaration]:
        node_type = node.type
        if node_type in _FUNCTION_DECLARATIONS:
            name = parsed.text(node.child_by_field_name("name"))
            if self._accepts(name):
                yield self._entry(
                    kind=detect_function_kind(name, node),
                    name=name,
                    statement=node,
                    parsed=parsed,
                    file=file,
                    signature=signature_of(node, parsed),
                )
        elif node_type in _CLASS_DECLARATIONS:
            yield from self._class_patterns(node, parsed, file)
        elif node_type == "interface_declaration":
            name = parsed.text(node.child_by_field_name("name"))
            if self._accepts(name):
                type_params = parsed.text(node.child_by_field_name("type_parameters"))
                yield self._entry(
                    kind=DeclarationKind.INTERFACE,
                    name=name,
                    statement=node,
                    parsed=parsed,
                    file=file,
                    signature=f"interface {name}{type_params}",
                )
        elif node_type == "type_alias_declaration":
            name = parsed.text(node.child_by_field_name("name"))
            if self._accepts(name):
                yield self._entry(
                    kind=DeclarationKind.TYPE,
                    name=name,
                    statement=node,
                    parsed=parsed,
                    file=file,
                    signature=parsed.text(node).split("=", 1)[0].strip(),
                )
        elif node_type == "enum_declaration":
            name = parsed.text(node.child_by_field_name("name"))
            if self._accepts(name):
                yield self._entry(
                    kind=DeclarationKind.ENUM,
                    name=name,
                    statement=node,
                    parsed=parsed,
                    file=file,
                    signature=f"enum {name}",
                )
        elif node_type in _VARIABLE_STATEMENTS and _is_module_level(node):
            yield from self._variable_patterns(node, parsed, file)

    def _class_patterns(self, node: Node, parsed: ParsedSource, file: str) -> Iterable[Declaration]:
        name = parsed.text(node.child_by_field_name("name"))
        if not self._accepts(name):
            return
        heritage = parsed.text(class_heritage(node))
        class_entry = self._entry(
            kind=detect_class_kind(name, node, parsed),
            name=name,
            statement=node,
            parsed=parsed,
            file=file,
            signature=f"class {name} {heritage}" if heritage else f"class {name}",
        )
        yield class_entry
        if not self.config.index_methods:
            return
        for method in class_methods(node, parsed):
            method_name = parsed.text(method.child_by_field_name("name"))
            if not self._accepts(method_name):
                continue
            yield self._entry(
                kind=DeclarationKind.METHOD,
                name=f"{name}.{method_name}",
                statement=method,
                parsed=parsed,
                file=file,
                signature=signature_of(method, parsed),
                exported=class_entry.exported,
                keywords=extract_keywords(method_name),
            )

    def _variable_patterns(self, node: Node, parsed: ParsedSource, file: str) -> Iterable[Declaration]:
        declarators = [child for child in node.named_children if child.type == "variable_declarator"]
        is_const = bool(node.children) and node.children[0].type == "const"
        for position, declarator in enumerate(declarators):
            binding = declarator.child_by_field_name("name")
            value = declarator.child_by_field_name("value")
            if binding is None or binding.type != "identifier" or value is None:
                continue
            name = parsed.text(binding)
            if not self._accepts(name):
                continue
            # The first declarator shares the statement's position; later ones report their own.
            anchor = declarator if position > 0 else None
            if is_function_like(value):
                yield self._entry(
                    kind=detect_function_kind(name, value),
                    name=name,
                    statement=node,
                    parsed=parsed,
                    file=file,
                    signature=signature_of(value, parsed),
                    anchor=anchor,
                    body=declarator if len(declarators) > 1 else None,
                )
            elif is_const and value.type in _LITERAL_INITIALIZERS and name == name.upper():
                yield self._entry(
                    kind=DeclarationKind.CONSTANT,
                    name=name,
                    statement=node,
                    parsed=parsed,
                    file=file,
                    signature="",
                    anchor=anchor,
                    body=declarator if len(declarators) > 1 else None,
                )

    def _accepts(self, name: str) -> bool:
        return len(name) >= self.config.min_name_length

    def _entry(
        self,
        *,
        kind: DeclarationKind,
        name: str,
        statement: Node,
        parsed: ParsedSource,
        file: str,
        signature: str,
        exported: Optional[bool] = None,
        keywords: Optional[List[str]] = None,
        anchor: Optional[Node] = None,
        body: Optional[Node] = None,
    ) -> Declaration:
        export = export_statement_of(statement)
        outer = export or statement
        line = parsed.line_of(anchor or outer)
        content = parsed.text(body or outer)
        return Declaration(
            id=declaration_id(file, name, line),
            kind=kind,
            name=name,
            file=file,
            line=line,
            end_line=parsed.end_line_of(anchor or outer),
            signature=signature,
            description=doc_comment(statement, parsed),
            keywords=keywords if keywords is not None else extract_keywords(name),
            hash=hash_content(content),
            exported=export is not None if exported is None else exported,
            category=self._category_for(file),
        )

    def _category_for(self, file: str) -> Optional[str]:
        for category, globs in self.config.categories.items():
            if any(glob_matches(file, pattern) for pattern in globs):
                return category
        return None


def imported_names(parsed: ParsedSource) -> List[str]:
    """Names bound by the file's ``import`` statements (default and named imports)."""
    names: List[str] = []
    for statement in parsed.root.named_children:
        if not is_import(statement):
            continue
        for node, parent in walk(statement):
            if node.type == "import_specifier":
                names.append(parsed.text(node.child_by_field_name("name")))
            elif node.type == "identifier" and parent is not None and parent.type == "import_clause":
                names.append(parsed.text(node))
    return list(dict.fromkeys(name for name in names if name))


def _is_module_level(statement: Node) -> bool:
    parent = statement.parent
    if parent is not None and parent.type == "export_statement":
        parent = parent.parent
    return parent is not None and parent.type == "program"


__all__ = [
    "FileExtraction",
    "PatternExtractor",
    "detect_class_kind",
    "detect_function_kind",
    "extract_keywords",
    "imported_names",
]
