"""Persistent pattern catalog snapshot (``.codeguard/patterns.json``)."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

from ..logging import get_logger
from ..models import PatternIndex

logger = get_logger("catalog")

STATE_DIRNAME = ".codeguard"
CATALOG_FILENAME = "patterns.json"


def default_index_path(root: Path) -> Path:
    return Path(root) / STATE_DIRNAME / CATALOG_FILENAME


def save_index(index: PatternIndex, path: Path) -> None:
    """Write the whole catalog as one JSON document."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(index.to_dict(), indent=2), encoding="utf-8")


def load_index(path: Path) -> Optional[PatternIndex]:
    """Load a catalog snapshot; a missing or unreadable file means no prior catalog."""
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return None
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        logger.warning("Ignoring unreadable catalog %s: %s", path, exc)
        return None
    if not isinstance(data, dict) or "version" not in data:
        logger.warning("Ignoring malformed catalog %s", path)
        return None
    try:
        return PatternIndex.from_dict(data)
    except (KeyError, TypeError, ValueError) as exc:
        logger.warning("Ignoring malformed catalog %s: %s", path, exc)
        return None


__all__ = ["CATALOG_FILENAME", "STATE_DIRNAME", "default_index_path", "load_index", "save_index"]
