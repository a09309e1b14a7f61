"""Tests for the structural metrics analyzer."""

from __future__ import annotations

import textwrap

from codeguard.analyzers.metrics import (
    COMPLEXITY_RULE,
    METHODS_RULE,
    PARAMS_RULE,
    MetricsAnalyzer,
    cyclomatic_complexity,
)
from codeguard.analyzers.tree_sitter import SourceParser, walk
from codeguard.config import AstConfig


def _source(content: str) -> str:
    return textwrap.dedent(content).lstrip("\n")


def _function_node(parsed, name: str):
    for node, _ in walk(parsed.root):
        if node.type == "function_declaration" and parsed.text(node.child_by_field_name("name")) == name:
            return node
    raise AssertionError(f"function {name} not found")


def _class_with_methods(count: int) -> str:
    methods = "\n".join(f"  method{index}() {{ return {index}; }}" for index in range(count))
    return f"export class Service {{\n  constructor() {{}}\n  get size() {{ return 0; }}\n{methods}\n}}\n"


def test_six_parameters_yield_single_violation() -> None:
    analyzer = MetricsAnalyzer()
    violations = analyzer.analyze_source(
        "export function configure(a, b, c, d, e, f) {}\n", "src/configure.ts"
    )

    assert len(violations) == 1
    violation = violations[0]
    assert violation.rule_id == PARAMS_RULE
    assert violation.metrics == {"count": 6, "max": 5}
    assert violation.files == ["src/configure.ts"]
    assert "'configure'" in violation.details


def test_complexity_is_branch_count_plus_one() -> None:
    parsed = SourceParser().parse(
        _source(
            """
            function branchy(a, b) {
              if (a) { return 1; }
              for (let i = 0; i < 3; i++) {}
              for (const key of [1, 2]) {}
              while (b) { b = false; }
              do { a = false; } while (a);
              switch (a) {
                case 1: break;
                case 2: break;
                default: break;
              }
              const c = a ? 1 : 2;
              return (a && b) || c;
            }
            """
        ),
        "src/branchy.js",
    )
    # if, for, for-of, while, do, 2 cases, default, ternary, &&, ||
    assert cyclomatic_complexity(_function_node(parsed, "branchy")) == 12


def test_straight_line_function_has_complexity_one() -> None:
    parsed = SourceParser().parse("function flat(a) { return a + 1; }\n", "src/flat.js")
    assert cyclomatic_complexity(_function_node(parsed, "flat")) == 1


def test_nested_function_branches_count_towards_outer() -> None:
    parsed = SourceParser().parse(
        _source(
            """
            function outer(items) {
              if (!items) { return []; }
              return items.map((item) => (item ? item : null));
            }
            """
        ),
        "src/outer.js",
    )
    assert cyclomatic_complexity(_function_node(parsed, "outer")) == 3


def test_complexity_violation_reports_observed_value() -> None:
    analyzer = MetricsAnalyzer(AstConfig(complexity=2))
    violations = analyzer.analyze_source(
        _source(
            """
            export function pick(a, b) {
              if (a) { return a; }
              if (b) { return b; }
              return null;
            }
            """
        ),
        "src/pick.ts",
    )

    assert [violation.rule_id for violation in violations] == [COMPLEXITY_RULE]
    assert violations[0].metrics == {"complexity": 3, "max": 2}


def test_method_density_threshold_is_inclusive() -> None:
    analyzer = MetricsAnalyzer(AstConfig(max_methods=10))

    at_limit = analyzer.analyze_source(_class_with_methods(10), "src/service.ts")
    over_limit = analyzer.analyze_source(_class_with_methods(11), "src/service.ts")

    assert at_limit == []
    assert len(over_limit) == 1
    assert over_limit[0].rule_id == METHODS_RULE
    assert over_limit[0].metrics == {"methodCount": 11, "max": 10}
    assert "'Service'" in over_limit[0].details


def test_anonymous_arrow_reports_binding_name() -> None:
    violations = MetricsAnalyzer().analyze_source(
        "export const handler = (a, b, c, d, e, f) => a;\n", "src/handler.ts"
    )
    assert len(violations) == 1
    assert "'handler'" in violations[0].details


def test_unparsable_source_contributes_nothing() -> None:
    assert MetricsAnalyzer().analyze_source("function broken( {\n", "src/broken.ts") == []


def test_analyze_project_skips_broken_and_test_files(repo_builder) -> None:
    repo_builder.write(
        {
            "src/wide.ts": "export function wide(a, b, c, d, e, f) {}\n",
            "src/broken.ts": "function broken( {\n",
            "src/wide.test.ts": "export function alsoWide(a, b, c, d, e, f) {}\n",
            "node_modules/pkg/index.js": "function vendored(a, b, c, d, e, f) {}\n",
        }
    )

    violations = MetricsAnalyzer().analyze_project(repo_builder.path())

    assert [violation.files for violation in violations] == [["src/wide.ts"]]


def test_analyze_project_on_empty_directory(tmp_path) -> None:
    assert MetricsAnalyzer().analyze_project(tmp_path) == []
