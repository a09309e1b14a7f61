"""Override ledger that suppresses duplicate findings by name or glob."""

from __future__ import annotations

import json
import re
from datetime import UTC, datetime, timedelta
from functools import lru_cache
from pathlib import Path
from typing import Iterable, List, Optional, Pattern

from ..config import CodeGuardConfig
from ..logging import get_logger
from ..models import OverrideEntry, parse_timestamp, timestamp_now
from ..stores.catalog import STATE_DIRNAME

logger = get_logger("overrides")

LEDGER_FILENAME = "allow.json"
DEFAULT_EXPIRATION_DAYS = 30
CONFIG_REASON = "Configured in .codeguard.yml"

_INLINE_MARKER = re.compile(r"//\s*codeguard-allow:\s*(\S+)(?:\s*\(([^)]+)\))?", re.IGNORECASE)


@lru_cache(maxsize=256)
def _glob_regex(pattern: str) -> Pattern[str]:
    """Anchored regex for a ``*`` glob; every other character matches literally."""
    return re.compile("^" + ".*".join(re.escape(part) for part in pattern.split("*")) + "$")


def pattern_matches(pattern: str, name: str) -> bool:
    if pattern == name:
        return True
    return "*" in pattern and _glob_regex(pattern).match(name) is not None


class OverrideManager:
    """Loads, queries and persists ``.codeguard/allow.json``.

    Expired entries stay in memory (and on disk) until :meth:`cleanup_expired`
    runs, but are never returned by lookups. Ephemeral entries, such as inline
    annotations or configured allows, take part in lookups without being saved.
    """

    def __init__(self, root: str | Path, *, path: Path | None = None) -> None:
        self.root = Path(root).expanduser().resolve()
        self.path = path or self.root / STATE_DIRNAME / LEDGER_FILENAME
        self._overrides: List[OverrideEntry] = []
        self._ephemeral: List[OverrideEntry] = []

    def load(self) -> List[OverrideEntry]:
        """Read the ledger from disk and return its active entries."""
        self._overrides = _read_ledger(self.path)
        return self.get_active_overrides()

    def save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = {"overrides": [entry.to_dict() for entry in self._overrides]}
        self.path.write_text(json.dumps(payload, indent=2), encoding="utf-8")

    def add_override(
        self,
        pattern: str,
        reason: str,
        *,
        expires_at: str | datetime | None = None,
        approved_by: str | None = None,
    ) -> OverrideEntry:
        """Grant and persist an override, replacing any entry with the same pattern."""
        if not pattern:
            raise ValueError("Override pattern must not be empty")
        entry = OverrideEntry(
            pattern=pattern,
            reason=reason,
            created_at=timestamp_now(),
            expires_at=_normalize_expiry(expires_at),
            approved_by=approved_by,
        )
        self._overrides = [item for item in self._overrides if item.pattern != pattern]
        self._overrides.append(entry)
        self.save()
        logger.debug("Added override %s (expires %s)", pattern, entry.expires_at)
        return entry

    def remove_override(self, pattern: str) -> bool:
        remaining = [item for item in self._overrides if item.pattern != pattern]
        if len(remaining) == len(self._overrides):
            return False
        self._overrides = remaining
        self.save()
        return True

    def add_ephemeral(self, entries: Iterable[OverrideEntry]) -> None:
        self._ephemeral.extend(entries)

    def is_overridden(self, name: str, now: datetime | None = None) -> Optional[OverrideEntry]:
        """Return the first active entry whose pattern equals or glob-matches ``name``."""
        now = now or datetime.now(UTC)
        for entry in [*self._overrides, *self._ephemeral]:
            if entry.is_expired(now):
                continue
            if pattern_matches(entry.pattern, name):
                return entry
        return None

    def get_active_overrides(self, now: datetime | None = None) -> List[OverrideEntry]:
        now = now or datetime.now(UTC)
        return [entry for entry in self._overrides if not entry.is_expired(now)]

    def get_expired_overrides(self, now: datetime | None = None) -> List[OverrideEntry]:
        now = now or datetime.now(UTC)
        return [entry for entry in self._overrides if entry.is_expired(now)]

    def cleanup_expired(self, now: datetime | None = None) -> int:
        """Drop expired entries from the ledger; returns how many were removed."""
        active = self.get_active_overrides(now)
        removed = len(self._overrides) - len(active)
        if removed:
            self._overrides = active
            self.save()
            logger.info("Removed %d expired override(s)", removed)
        return removed


def parse_inline_overrides(code: str, file_path: str) -> List[OverrideEntry]:
    """Collect ``// codeguard-allow: name (reason)`` annotations from source text."""
    entries: List[OverrideEntry] = []
    for number, line in enumerate(code.split("\n"), start=1):
        match = _INLINE_MARKER.search(line)
        if not match:
            continue
        origin = f"{file_path}:{number}"
        entries.append(
            OverrideEntry(
                pattern=match.group(1),
                reason=match.group(2) or f"Inline override in {origin}",
                created_at=timestamp_now(),
                approved_by=f"inline:{origin}",
            )
        )
    return entries


def load_config_overrides(config: CodeGuardConfig) -> List[OverrideEntry]:
    """Turn ``patterns.allow`` entries from the config file into override entries."""
    entries: List[OverrideEntry] = []
    for item in config.allow:
        pattern = item.get("pattern") or item.get("path") or item.get("name")
        if not isinstance(pattern, str) or not pattern:
            continue
        expires = item.get("expires") or item.get("expires_at")
        entries.append(
            OverrideEntry(
                pattern=pattern,
                reason=str(item.get("reason") or CONFIG_REASON),
                created_at=timestamp_now(),
                expires_at=str(expires) if expires else None,
                approved_by=item.get("approved_by"),
            )
        )
    return entries


def _normalize_expiry(value: str | datetime | None) -> str:
    if value is None:
        expires = datetime.now(UTC) + timedelta(days=DEFAULT_EXPIRATION_DAYS)
    elif isinstance(value, datetime):
        expires = value if value.tzinfo else value.replace(tzinfo=UTC)
    else:
        parsed = parse_timestamp(value)
        if parsed is None:
            raise ValueError(f"Invalid expiry timestamp: {value!r}")
        expires = parsed
    return expires.astimezone(UTC).isoformat().replace("+00:00", "Z")


def _read_ledger(path: Path) -> List[OverrideEntry]:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return []
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        logger.warning("Ignoring unreadable override ledger %s: %s", path, exc)
        return []
    raw_entries = data.get("overrides") if isinstance(data, dict) else None
    if not isinstance(raw_entries, list):
        return []
    entries: List[OverrideEntry] = []
    for raw in raw_entries:
        if not isinstance(raw, dict):
            continue
        entry = OverrideEntry.from_dict(raw)
        if entry is not None:
            entries.append(entry)
    return entries


__all__ = [
    "DEFAULT_EXPIRATION_DAYS",
    "LEDGER_FILENAME",
    "OverrideManager",
    "load_config_overrides",
    "parse_inline_overrides",
    "pattern_matches",
]
