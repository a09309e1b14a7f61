"""Structural metrics: parameter counts, cyclomatic complexity and class method density."""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional

from tree_sitter import Node

from ..config import DEFAULT_EXCLUDE, DEFAULT_EXTENSIONS, AstConfig
from ..logging import get_logger
from ..models import Violation
from ..scanner import SourceScanner
from .tree_sitter import (
    NodeKind,
    ParsedSource,
    ParseError,
    SourceParser,
    class_methods,
    classify,
    declared_name,
    descendants,
    parameter_nodes,
    walk,
)

logger = get_logger("metrics")

PARAMS_RULE = "ast.max-params"
COMPLEXITY_RULE = "ast.complexity"
METHODS_RULE = "ast.max-methods"


def cyclomatic_complexity(node: Node) -> int:
    """Baseline 1 plus one per branch point or short-circuit operator below ``node``.

    Nested function bodies count towards the enclosing function as well.
    """
    complexity = 1
    for child in descendants(node):
        if classify(child) in (NodeKind.BRANCH, NodeKind.LOGICAL):
            complexity += 1
    return complexity


class MetricsAnalyzer:
    """Reports functions and classes that exceed the configured structural thresholds."""

    def __init__(
        self, config: AstConfig | None = None, *, parser: SourceParser | None = None
    ) -> None:
        self.config = config or AstConfig()
        self._parser = parser or SourceParser()

    def analyze_file(self, parsed: ParsedSource, path: str) -> List[Violation]:
        violations: List[Violation] = []
        for node, _ in walk(parsed.root):
            kind = classify(node)
            if kind is NodeKind.FUNCTION:
                violations.extend(self._check_function(node, parsed, path))
            elif kind is NodeKind.CLASS:
                violation = self._check_class(node, parsed, path)
                if violation is not None:
                    violations.append(violation)
        return violations

    def analyze_source(self, content: str, path: str) -> List[Violation]:
        try:
            parsed = self._parser.parse(content, path)
        except ParseError as exc:
            logger.warning("Skipping %s: %s", path, exc)
            return []
        return self.analyze_file(parsed, path)

    def analyze_project(
        self, root: str | Path, *, scanner: SourceScanner | None = None
    ) -> List[Violation]:
        """Analyze every code file below ``root``; unreadable or unparsable files are skipped."""
        root_path = Path(root).expanduser().resolve()
        scanner = scanner or SourceScanner(
            include=["**/*"], exclude=list(DEFAULT_EXCLUDE), extensions=list(DEFAULT_EXTENSIONS)
        )
        violations: List[Violation] = []
        files = scanner.scan(root_path)
        logger.debug("Analyzing %d files under %s", len(files), root_path)
        for path in files:
            rel_path = path.relative_to(root_path).as_posix()
            try:
                content = path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as exc:
                logger.warning("Skipping %s: %s", rel_path, exc)
                continue
            violations.extend(self.analyze_source(content, rel_path))
        return violations

    def _check_function(self, node: Node, parsed: ParsedSource, path: str) -> List[Violation]:
        name = declared_name(node, parsed)
        line = parsed.line_of(node)
        violations: List[Violation] = []

        max_params = self.config.max_params
        count = len(parameter_nodes(node))
        if count > max_params:
            violations.append(
                Violation(
                    rule_id=PARAMS_RULE,
                    title="Too many parameters",
                    details=f"Function '{name}' (line {line}) has {count} parameters (max: {max_params})",
                    files=[path],
                    hint="Reduce number of parameters or use an options object.",
                    metrics={"count": count, "max": max_params},
                )
            )

        max_complexity = self.config.complexity
        complexity = cyclomatic_complexity(node)
        if complexity > max_complexity:
            violations.append(
                Violation(
                    rule_id=COMPLEXITY_RULE,
                    title="Cyclomatic complexity too high",
                    details=(
                        f"Function '{name}' (line {line}) has cyclomatic complexity of "
                        f"{complexity} (max: {max_complexity})"
                    ),
                    files=[path],
                    hint=f"Refactor '{name}' into smaller, more focused functions.",
                    metrics={"complexity": complexity, "max": max_complexity},
                )
            )
        return violations

    def _check_class(self, node: Node, parsed: ParsedSource, path: str) -> Optional[Violation]:
        max_methods = self.config.max_methods
        method_count = len(class_methods(node, parsed))
        if method_count <= max_methods:
            return None
        name = declared_name(node, parsed)
        return Violation(
            rule_id=METHODS_RULE,
            title="Too many methods",
            details=(
                f"Class '{name}' (line {parsed.line_of(node)}) has {method_count} methods "
                f"(max: {max_methods})"
            ),
            files=[path],
            hint=f"Class '{name}' is becoming a 'God Object'. Split it into smaller services.",
            metrics={"methodCount": method_count, "max": max_methods},
        )


__all__ = [
    "COMPLEXITY_RULE",
    "METHODS_RULE",
    "MetricsAnalyzer",
    "PARAMS_RULE",
    "cyclomatic_complexity",
]
