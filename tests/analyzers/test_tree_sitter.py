"""Tests for the tree-sitter parsing and traversal helpers."""

from __future__ import annotations

import textwrap

import pytest

from codeguard.analyzers.tree_sitter import (
    ANONYMOUS,
    NodeKind,
    ParseError,
    SourceParser,
    class_methods,
    classify,
    declared_name,
    dialect_for_path,
    doc_comment,
    export_statement_of,
    is_branching,
    is_class_like,
    is_export,
    is_function_like,
    is_import,
    is_logical_and_or,
    is_markup,
    parameter_nodes,
    signature_of,
    visit,
    walk,
)


def _parse(content: str, path: str = "src/example.ts"):
    return SourceParser().parse(textwrap.dedent(content).lstrip("\n"), path)


def _first(parsed, node_type: str):
    for node, _ in walk(parsed.root):
        if node.type == node_type:
            return node
    raise AssertionError(f"no {node_type} node")


def test_dialect_follows_extension() -> None:
    assert dialect_for_path("a/b.ts") == "typescript"
    assert dialect_for_path("a/b.tsx") == "tsx"
    assert dialect_for_path("a/b.jsx") == "javascript"
    assert dialect_for_path("a/b.mjs") == "javascript"
    assert dialect_for_path("README.md") is None


def test_unsupported_extension_raises_parse_error() -> None:
    with pytest.raises(ParseError):
        SourceParser().parse("hello", "notes.md")


def test_malformed_source_raises_parse_error() -> None:
    with pytest.raises(ParseError):
        SourceParser().parse("function broken( {\n", "src/broken.ts")


def test_markup_is_recognised_in_tsx_and_jsx() -> None:
    source = "export const App = () => <div>hi</div>;\n"
    for path in ("src/App.tsx", "src/App.jsx"):
        parsed = SourceParser().parse(source, path)
        kinds = {classify(node) for node, _ in walk(parsed.root)}
        assert NodeKind.MARKUP in kinds


def test_classify_branches_and_short_circuit_operators() -> None:
    parsed = _parse(
        """
        function f(a, b) {
          if (a && b) { return 1; }
          return a < b ? a : b;
        }
        """
    )
    kinds = [classify(node) for node, _ in walk(parsed.root)]
    assert kinds.count(NodeKind.FUNCTION) == 1
    assert kinds.count(NodeKind.BRANCH) == 2
    assert kinds.count(NodeKind.LOGICAL) == 1


def test_kind_predicates_agree_with_classify() -> None:
    parsed = _parse(
        """
        import { x } from "./x";
        export class Box {}
        const ok = x || Box;
        """
    )
    predicates = {
        NodeKind.FUNCTION: is_function_like,
        NodeKind.CLASS: is_class_like,
        NodeKind.BRANCH: is_branching,
        NodeKind.LOGICAL: is_logical_and_or,
        NodeKind.IMPORT: is_import,
        NodeKind.EXPORT: is_export,
        NodeKind.MARKUP: is_markup,
    }
    for node, _ in walk(parsed.root):
        kind = classify(node)
        for predicate_kind, predicate in predicates.items():
            assert predicate(node) is (kind is predicate_kind)

    assert is_import(_first(parsed, "import_statement"))
    assert is_class_like(_first(parsed, "class_declaration"))
    assert is_logical_and_or(_first(parsed, "binary_expression"))


def test_visit_reports_parent_links() -> None:
    parsed = _parse("export function foo() {}\n")
    seen = []
    visit(parsed.root, lambda node, parent: seen.append((node.type, parent.type if parent else None)))
    assert ("program", None) in seen
    assert ("function_declaration", "export_statement") in seen


def test_positions_are_one_indexed() -> None:
    parsed = _parse(
        """
        const a = 1;

        function later() {
          return a;
        }
        """
    )
    function = _first(parsed, "function_declaration")
    assert parsed.line_of(function) == 3
    assert parsed.end_line_of(function) == 5
    assert parsed.position(0) == (1, 0)


def test_declared_name_uses_binding_for_assigned_arrows() -> None:
    parsed = _parse(
        """
        const handler = (event) => event;
        [1, 2].map((value) => value);
        """
    )
    arrows = [node for node, _ in walk(parsed.root) if node.type == "arrow_function"]
    assert declared_name(arrows[0], parsed) == "handler"
    assert declared_name(arrows[1], parsed) == ANONYMOUS


def test_parameters_and_signature() -> None:
    parsed = _parse("function save(id: string, /* note */ data?: Payload): Promise<void> {}\n")
    function = _first(parsed, "function_declaration")
    assert len(parameter_nodes(function)) == 2
    assert signature_of(function, parsed) == "(id: string, data?: Payload): Promise<void>"

    single = _parse("const twice = x => x * 2;\n")
    assert len(parameter_nodes(_first(single, "arrow_function"))) == 1


def test_doc_comment_reads_block_before_export() -> None:
    parsed = _parse(
        """
        /**
         * Formats a date for display.
         * @param value the date
         */
        export function formatDate(value: Date): string {
          return String(value);
        }
        """
    )
    function = _first(parsed, "function_declaration")
    assert export_statement_of(function) is not None
    assert doc_comment(function, parsed) == "Formats a date for display."


def test_line_comments_are_not_documentation() -> None:
    parsed = _parse(
        """
        // helper
        function plain() {}
        """
    )
    assert doc_comment(_first(parsed, "function_declaration"), parsed) == ""


def test_class_methods_skip_constructor_and_accessors() -> None:
    parsed = _parse(
        """
        class Account {
          constructor(private id: string) {}
          get label() { return this.id; }
          set label(value: string) {}
          load() {}
          save() {}
        }
        """
    )
    methods = class_methods(_first(parsed, "class_declaration"), parsed)
    assert [parsed.text(method.child_by_field_name("name")) for method in methods] == ["load", "save"]
