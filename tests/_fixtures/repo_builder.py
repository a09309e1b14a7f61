"""Helper utilities for constructing temporary projects in tests."""

from __future__ import annotations

import json
import textwrap
from pathlib import Path
from typing import List, Mapping

from codeguard.scanner import SourceScanner


class RepoBuilder:
    """Utility for writing files into a throwaway project and rescanning it."""

    def __init__(self, tmp_path: Path) -> None:
        self.root = tmp_path / "repo"
        self.root.mkdir()
        self._scanner = SourceScanner()

    def write(self, files: Mapping[str, str]) -> None:
        """Write `path -> contents` entries into the project."""
        for relative, content in files.items():
            path = self.root / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            normalised = textwrap.dedent(content).lstrip("\n")
            path.write_text(normalised, encoding="utf-8")

    def write_package_json(self, dependencies: Mapping[str, str], dev: Mapping[str, str] | None = None) -> None:
        payload = {"name": "fixture", "dependencies": dict(dependencies)}
        if dev:
            payload["devDependencies"] = dict(dev)
        (self.root / "package.json").write_text(json.dumps(payload), encoding="utf-8")

    def remove(self, relative: str) -> None:
        (self.root / relative).unlink()

    def scan(self) -> List[str]:
        """Return the relative paths the default scanner selects."""
        return [path.relative_to(self.root).as_posix() for path in self._scanner.scan(self.root)]

    def path(self) -> Path:
        """Return the project root path."""
        return self.root


__all__ = ["RepoBuilder"]
