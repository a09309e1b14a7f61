"""Pattern index: extraction, incremental indexing, matching, staleness and overrides."""

from __future__ import annotations

from .extractor import PatternExtractor
from .indexer import PatternIndexer, refresh_index
from .matcher import PatternMatcher, check_pattern_duplicate
from .overrides import OverrideManager, load_config_overrides, parse_inline_overrides
from .staleness import DEFAULT_DEPRECATIONS, StalenessDetector, check_code_staleness

__all__ = [
    "DEFAULT_DEPRECATIONS",
    "OverrideManager",
    "PatternExtractor",
    "PatternIndexer",
    "PatternMatcher",
    "StalenessDetector",
    "check_code_staleness",
    "check_pattern_duplicate",
    "load_config_overrides",
    "parse_inline_overrides",
    "refresh_index",
]
