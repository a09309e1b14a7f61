"""Configuration loading for codeguard (.codeguard.yml)."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import yaml

CONFIG_FILENAME = ".codeguard.yml"

DEFAULT_INCLUDE = [
    "src/**/*",
    "lib/**/*",
    "app/**/*",
    "components/**/*",
    "utils/**/*",
    "hooks/**/*",
]
DEFAULT_EXCLUDE = [
    "**/node_modules/**",
    "**/dist/**",
    "**/build/**",
    "**/.git/**",
    "**/coverage/**",
]
DEFAULT_EXTENSIONS = [".ts", ".tsx", ".js", ".jsx"]


class ConfigError(RuntimeError):
    """Raised when the configuration file is missing, unreadable or malformed."""


@dataclass
class AstConfig:
    """Structural thresholds for the metrics analyzer."""

    complexity: int = 10
    max_params: int = 5
    max_methods: int = 10


@dataclass
class IndexConfig:
    """File selection and extraction settings for the pattern indexer."""

    include: List[str] = field(default_factory=lambda: list(DEFAULT_INCLUDE))
    exclude: List[str] = field(default_factory=lambda: list(DEFAULT_EXCLUDE))
    extensions: List[str] = field(default_factory=lambda: list(DEFAULT_EXTENSIONS))
    index_tests: bool = False
    min_name_length: int = 2
    use_embeddings: bool = False
    index_methods: bool = False
    categories: Dict[str, List[str]] = field(default_factory=dict)


@dataclass
class MatcherConfig:
    """Thresholds for duplicate detection."""

    fuzzy_threshold: float = 0.7
    semantic_threshold: float = 0.75
    max_matches: int = 5
    use_semantic: bool = True


@dataclass
class CodeGuardConfig:
    """Represents the high-level settings defined in .codeguard.yml."""

    root: Path
    ast: AstConfig = field(default_factory=AstConfig)
    patterns: IndexConfig = field(default_factory=IndexConfig)
    matcher: MatcherConfig = field(default_factory=MatcherConfig)
    allow: List[Dict[str, Any]] = field(default_factory=list)
    exclude_paths: List[str] = field(default_factory=list)


def load_config(config_path: Path, *, required: bool = False) -> CodeGuardConfig:
    """Load configuration from disk.

    A missing file yields defaults unless ``required`` is set, in which case
    :class:`ConfigError` is raised so callers can exit distinctly.
    """
    config_file = _resolve_config_path(config_path)
    root = config_file.parent.resolve()

    if not config_file.exists():
        if required:
            raise ConfigError(f"Configuration file not found: {config_file}")
        return CodeGuardConfig(root=root)

    data = _read_config(config_file)
    if not isinstance(data, dict):
        raise ConfigError(f"{config_file.name} must contain a mapping at the root")

    ast_data = _as_dict(data.get("ast"))
    ast = AstConfig()
    if ast_data:
        for key in ("complexity", "max_params", "max_methods"):
            limit = _as_int(ast_data.get(key))
            if limit is not None:
                setattr(ast, key, limit)

    pattern_data = _as_dict(data.get("patterns"))
    patterns = IndexConfig()
    allow: List[Dict[str, Any]] = []
    if pattern_data:
        if "include" in pattern_data:
            patterns.include = _as_str_list(pattern_data.get("include"))
        if "exclude" in pattern_data:
            patterns.exclude = _as_str_list(pattern_data.get("exclude"))
        if "extensions" in pattern_data:
            patterns.extensions = [
                ext if ext.startswith(".") else f".{ext}"
                for ext in _as_str_list(pattern_data.get("extensions"))
            ]
        patterns.index_tests = _as_bool(pattern_data.get("index_tests")) or False
        patterns.use_embeddings = _as_bool(pattern_data.get("use_embeddings")) or False
        patterns.index_methods = _as_bool(pattern_data.get("index_methods")) or False
        min_length = _as_int(pattern_data.get("min_name_length"))
        if min_length is not None:
            patterns.min_name_length = min_length
        categories = _as_dict(pattern_data.get("categories"))
        patterns.categories = {
            str(name): _as_str_list(globs) for name, globs in categories.items()
        }
        allow = _as_allow_list(pattern_data.get("allow"))

    matcher_data = _as_dict(data.get("matcher"))
    matcher = MatcherConfig()
    if matcher_data:
        fuzzy = _as_float(matcher_data.get("fuzzy_threshold"))
        if fuzzy is not None:
            matcher.fuzzy_threshold = fuzzy
        semantic = _as_float(matcher_data.get("semantic_threshold"))
        if semantic is not None:
            matcher.semantic_threshold = semantic
        max_matches = _as_int(matcher_data.get("max_matches"))
        if max_matches is not None:
            matcher.max_matches = max_matches
        use_semantic = _as_bool(matcher_data.get("use_semantic"))
        if use_semantic is not None:
            matcher.use_semantic = use_semantic

    return CodeGuardConfig(
        root=root,
        ast=ast,
        patterns=patterns,
        matcher=matcher,
        allow=allow,
        exclude_paths=_as_str_list(data.get("exclude_paths")),
    )


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Any:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Failed to read {path.name}: {exc}") from exc
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    return loaded or {}


def _as_allow_list(value: Any) -> List[Dict[str, Any]]:
    if not isinstance(value, list):
        return []
    entries: List[Dict[str, Any]] = []
    for item in value:
        if isinstance(item, str):
            entries.append({"pattern": item})
        elif isinstance(item, dict):
            entries.append(dict(item))
    return entries


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return None
    return None


def _as_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "yes", "1"}:
            return True
        if lowered in {"false", "no", "0"}:
            return False
    return None


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, int, float, bool))]
    return []


__all__ = [
    "AstConfig",
    "CONFIG_FILENAME",
    "CodeGuardConfig",
    "ConfigError",
    "IndexConfig",
    "MatcherConfig",
    "load_config",
]
