"""Syntax-tree parsing and structural metrics."""

from __future__ import annotations

from .metrics import MetricsAnalyzer, cyclomatic_complexity
from .tree_sitter import ParseError, ParsedSource, SourceParser

__all__ = ["MetricsAnalyzer", "ParseError", "ParsedSource", "SourceParser", "cyclomatic_complexity"]
