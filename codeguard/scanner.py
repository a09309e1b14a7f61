"""Source file enumeration shared by the metrics analyzer and the pattern indexer."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from fnmatch import fnmatchcase
from pathlib import Path
from typing import Iterator, List, Sequence

from .config import DEFAULT_EXCLUDE, DEFAULT_EXTENSIONS, DEFAULT_INCLUDE, IndexConfig

# Dependency and build output directories are never scanned, whatever the globs say.
_EXCLUDED_DIRS = {
    ".git",
    ".hg",
    ".svn",
    ".venv",
    "node_modules",
    "bower_components",
    "dist",
    "build",
    "coverage",
    ".next",
    ".nuxt",
    ".turbo",
    "__pycache__",
    ".pytest_cache",
    ".mypy_cache",
    ".idea",
    ".codeguard",
}

_TEST_MARKERS = (".test.", ".spec.")
_TEST_DIRS = {"__tests__", "__mocks__"}


@dataclass
class IgnoreRule:
    """Represents an ignore rule parsed from .gitignore."""

    pattern: str
    directory_only: bool
    anchored: bool
    negate: bool
    has_slash: bool

    def matches(self, rel_path: str, is_dir: bool) -> bool:
        if not self.pattern:
            return False
        if self.directory_only and not is_dir:
            return False

        if self.anchored or self.has_slash:
            if fnmatchcase(rel_path, self.pattern):
                return True
            if self.directory_only and rel_path.startswith(f"{self.pattern}/"):
                return True
            return False

        for part in rel_path.split("/"):
            if fnmatchcase(part, self.pattern):
                return True
        return False


def _build_ignore_rule(pattern: str, negate: bool = False) -> IgnoreRule | None:
    pattern = pattern.strip()
    if not pattern:
        return None

    directory_only = pattern.endswith("/")
    if directory_only:
        pattern = pattern[:-1]

    anchored = pattern.startswith("/")
    if anchored:
        pattern = pattern[1:]

    return IgnoreRule(
        pattern=pattern,
        directory_only=directory_only,
        anchored=anchored,
        negate=negate,
        has_slash="/" in pattern,
    )


def _parse_gitignore(path: Path) -> List[IgnoreRule]:
    if not path.exists():
        return []

    rules: List[IgnoreRule] = []
    try:
        lines = path.read_text(encoding="utf-8").splitlines()
    except (OSError, UnicodeDecodeError):
        return []
    for raw_line in lines:
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        negate = line.startswith("!")
        if negate:
            line = line[1:]
        rule = _build_ignore_rule(line, negate=negate)
        if rule is not None:
            rules.append(rule)
    return rules


def _should_ignore(rel_path: str, is_dir: bool, rules: Sequence[IgnoreRule]) -> bool:
    ignored = False
    for rule in rules:
        if rule.matches(rel_path, is_dir):
            ignored = not rule.negate
    return ignored


def glob_matches(path: str, pattern: str) -> bool:
    """Match a relative POSIX path against a glob where ``**/`` may match no directories."""
    normalized = path.replace("\\", "/")
    if fnmatchcase(normalized, pattern):
        return True
    if "**/" in pattern:
        return fnmatchcase(normalized, pattern.replace("**/", ""))
    return False


def is_test_file(rel_path: str) -> bool:
    parts = rel_path.replace("\\", "/").split("/")
    if any(part in _TEST_DIRS for part in parts[:-1]):
        return True
    return any(marker in parts[-1] for marker in _TEST_MARKERS)


@dataclass
class SourceScanner:
    """Walks a project and yields the source files selected by include/exclude globs.

    A file is selected when its extension is configured, it matches at least one
    include glob, and it matches no exclude glob. Exclusion always wins.
    """

    include: Sequence[str] = field(default_factory=lambda: list(DEFAULT_INCLUDE))
    exclude: Sequence[str] = field(default_factory=lambda: list(DEFAULT_EXCLUDE))
    extensions: Sequence[str] = field(default_factory=lambda: list(DEFAULT_EXTENSIONS))
    include_tests: bool = False

    @classmethod
    def from_config(
        cls, config: IndexConfig, *, extra_excludes: Sequence[str] = ()
    ) -> "SourceScanner":
        return cls(
            include=list(config.include),
            exclude=[*config.exclude, *extra_excludes],
            extensions=list(config.extensions),
            include_tests=config.index_tests,
        )

    def scan(self, root: str | Path) -> List[Path]:
        """Return absolute paths of the selected files, sorted by relative path."""
        root_path = Path(root).expanduser().resolve()
        if not root_path.exists():
            raise FileNotFoundError(f"Project path not found: {root}")
        if not root_path.is_dir():
            raise NotADirectoryError(f"Project path is not a directory: {root}")

        rules = _parse_gitignore(root_path / ".gitignore")
        selected = [
            path
            for path in self._iter_files(root_path, rules)
            if self._selects(path.relative_to(root_path).as_posix())
        ]
        return sorted(selected, key=lambda path: path.relative_to(root_path).as_posix())

    def _selects(self, rel_path: str) -> bool:
        suffix = Path(rel_path).suffix.lower()
        if suffix not in {ext.lower() for ext in self.extensions}:
            return False
        if not self.include_tests and is_test_file(rel_path):
            return False
        if any(glob_matches(rel_path, pattern) for pattern in self.exclude):
            return False
        return any(glob_matches(rel_path, pattern) for pattern in self._include_patterns())

    def _include_patterns(self) -> List[str]:
        patterns: List[str] = []
        for pattern in self.include:
            if pattern.endswith("*"):
                patterns.extend(f"{pattern}{ext}" for ext in self.extensions)
            else:
                patterns.append(pattern)
        return patterns

    @staticmethod
    def _iter_files(root: Path, rules: Sequence[IgnoreRule]) -> Iterator[Path]:
        for dirpath, dirnames, filenames in os.walk(root):
            current_dir = Path(dirpath)
            rel_dir = current_dir.relative_to(root).as_posix() if current_dir != root else ""

            filtered_dirs = []
            for name in dirnames:
                if name in _EXCLUDED_DIRS:
                    continue
                rel_path = f"{rel_dir}/{name}" if rel_dir else name
                if _should_ignore(rel_path, True, rules):
                    continue
                filtered_dirs.append(name)
            dirnames[:] = filtered_dirs

            for filename in filenames:
                rel_path = f"{rel_dir}/{filename}" if rel_dir else filename
                if _should_ignore(rel_path, False, rules):
                    continue
                yield current_dir / filename


__all__ = ["IgnoreRule", "SourceScanner", "glob_matches", "is_test_file"]
