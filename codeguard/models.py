"""Core data models shared across codeguard components."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Dict, List, Optional

INDEX_VERSION = "1.0.0"


def timestamp_now() -> str:
    """Return the current UTC time as an ISO-8601 string with a ``Z`` suffix."""
    return datetime.now(UTC).isoformat().replace("+00:00", "Z")


def parse_timestamp(value: str) -> Optional[datetime]:
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (TypeError, ValueError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


class DeclarationKind(str, Enum):
    """Kinds of named declarations recorded in the pattern index."""

    FUNCTION = "function"
    CLASS = "class"
    METHOD = "method"
    COMPONENT = "component"
    HOOK = "hook"
    MIDDLEWARE = "middleware"
    HANDLER = "handler"
    FACTORY = "factory"
    INTERFACE = "interface"
    TYPE = "type"
    ENUM = "enum"
    CONSTANT = "constant"
    ERROR = "error"
    STORE = "store"
    MODEL = "model"


@dataclass
class Declaration:
    """One named structural unit found in a source file."""

    id: str
    kind: DeclarationKind
    name: str
    file: str
    line: int
    end_line: int
    signature: str
    description: str
    keywords: List[str]
    hash: str
    exported: bool
    usage_count: int = 0
    category: Optional[str] = None
    embedding: Optional[List[float]] = None
    indexed_at: str = field(default_factory=timestamp_now)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "type": self.kind.value,
            "name": self.name,
            "file": self.file,
            "line": self.line,
            "endLine": self.end_line,
            "signature": self.signature,
            "description": self.description,
            "keywords": list(self.keywords),
            "hash": self.hash,
            "exported": self.exported,
            "usageCount": self.usage_count,
            "indexedAt": self.indexed_at,
        }
        if self.category is not None:
            data["category"] = self.category
        if self.embedding is not None:
            data["embedding"] = list(self.embedding)
        return data

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "Declaration":
        embedding = payload.get("embedding")
        return cls(
            id=str(payload["id"]),
            kind=DeclarationKind(payload["type"]),
            name=str(payload["name"]),
            file=str(payload["file"]),
            line=int(payload["line"]),
            end_line=int(payload.get("endLine", payload["line"])),
            signature=str(payload.get("signature", "")),
            description=str(payload.get("description", "")),
            keywords=[str(word) for word in payload.get("keywords", [])],
            hash=str(payload["hash"]),
            exported=bool(payload.get("exported", False)),
            usage_count=int(payload.get("usageCount", 0)),
            category=payload.get("category"),
            embedding=[float(value) for value in embedding] if isinstance(embedding, list) else None,
            indexed_at=str(payload.get("indexedAt", "")),
        )


@dataclass
class IndexedFile:
    """Per-file record of an indexing pass."""

    path: str
    hash: str
    pattern_count: int
    indexed_at: str = field(default_factory=timestamp_now)
    imports: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "path": self.path,
            "hash": self.hash,
            "patternCount": self.pattern_count,
            "indexedAt": self.indexed_at,
            "imports": list(self.imports),
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "IndexedFile":
        return cls(
            path=str(payload["path"]),
            hash=str(payload["hash"]),
            pattern_count=int(payload.get("patternCount", 0)),
            indexed_at=str(payload.get("indexedAt", "")),
            imports=[str(name) for name in payload.get("imports", [])],
        )


@dataclass
class IndexStats:
    total_patterns: int
    total_files: int
    by_type: Dict[str, int]
    index_duration_ms: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalPatterns": self.total_patterns,
            "totalFiles": self.total_files,
            "byType": dict(self.by_type),
            "indexDurationMs": self.index_duration_ms,
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "IndexStats":
        return cls(
            total_patterns=int(payload.get("totalPatterns", 0)),
            total_files=int(payload.get("totalFiles", 0)),
            by_type={str(key): int(value) for key, value in payload.get("byType", {}).items()},
            index_duration_ms=float(payload.get("indexDurationMs", 0.0)),
        )


@dataclass
class PatternIndex:
    """Versioned snapshot of every declaration found in a project."""

    version: str
    last_updated: str
    root_dir: str
    patterns: List[Declaration]
    files: List[IndexedFile]
    stats: IndexStats
    config_hash: str = ""

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "version": self.version,
            "lastUpdated": self.last_updated,
            "rootDir": self.root_dir,
            "patterns": [pattern.to_dict() for pattern in self.patterns],
            "files": [record.to_dict() for record in self.files],
            "stats": self.stats.to_dict(),
        }
        if self.config_hash:
            data["configHash"] = self.config_hash
        return data

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "PatternIndex":
        return cls(
            version=str(payload["version"]),
            last_updated=str(payload.get("lastUpdated", "")),
            root_dir=str(payload.get("rootDir", "")),
            patterns=[Declaration.from_dict(item) for item in payload.get("patterns", [])],
            files=[IndexedFile.from_dict(item) for item in payload.get("files", [])],
            stats=IndexStats.from_dict(payload.get("stats", {})),
            config_hash=str(payload.get("configHash", "")),
        )


@dataclass
class Violation:
    """A breach of a configured structural threshold."""

    rule_id: str
    title: str
    details: str
    files: List[str]
    hint: Optional[str] = None
    metrics: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.rule_id,
            "title": self.title,
            "details": self.details,
            "files": list(self.files),
        }
        if self.hint:
            data["hint"] = self.hint
        if self.metrics:
            data["metrics"] = dict(self.metrics)
        return data


@dataclass
class OverrideEntry:
    """Time-bounded suppression of duplicate matching for a name or glob."""

    pattern: str
    reason: str
    created_at: str = field(default_factory=timestamp_now)
    expires_at: Optional[str] = None
    approved_by: Optional[str] = None

    def is_expired(self, now: datetime | None = None) -> bool:
        if not self.expires_at:
            return False
        expires = parse_timestamp(self.expires_at)
        if expires is None:
            return False
        return expires < (now or datetime.now(UTC))

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "pattern": self.pattern,
            "reason": self.reason,
            "createdAt": self.created_at,
        }
        if self.expires_at:
            data["expiresAt"] = self.expires_at
        if self.approved_by:
            data["approvedBy"] = self.approved_by
        return data

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> Optional["OverrideEntry"]:
        pattern = payload.get("pattern")
        if not isinstance(pattern, str) or not pattern:
            return None
        return cls(
            pattern=pattern,
            reason=str(payload.get("reason", "")),
            created_at=str(payload.get("createdAt", timestamp_now())),
            expires_at=payload.get("expiresAt") or None,
            approved_by=payload.get("approvedBy") or None,
        )


@dataclass(frozen=True)
class DeprecationRule:
    """Known-obsolete API or idiom, optionally tied to a declared library.

    ``pattern`` is matched literally unless ``regex`` is given.
    """

    pattern: str
    deprecated_in: str
    replacement: str
    severity: str = "warning"
    library: Optional[str] = None
    reason: Optional[str] = None
    docs: Optional[str] = None
    regex: Optional[str] = None


@dataclass
class StalenessIssue:
    line: int
    pattern: str
    severity: str
    reason: str
    replacement: str
    docs: Optional[str] = None


@dataclass
class StalenessResult:
    status: str
    issues: List[StalenessIssue]
    project_context: Dict[str, str]


@dataclass
class MatchQuery:
    """A candidate declaration to look up in the pattern index."""

    name: str
    signature: Optional[str] = None
    description: Optional[str] = None
    kind: Optional[DeclarationKind] = None
    embedding: Optional[List[float]] = None


@dataclass
class PatternMatch:
    pattern: Declaration
    match_type: str
    confidence: int
    reason: str


@dataclass
class MatchResult:
    query: str
    matches: List[PatternMatch]
    suggestion: str
    can_override: bool
    status: str
    action: str


__all__ = [
    "INDEX_VERSION",
    "Declaration",
    "DeclarationKind",
    "DeprecationRule",
    "IndexStats",
    "IndexedFile",
    "MatchQuery",
    "MatchResult",
    "OverrideEntry",
    "PatternIndex",
    "PatternMatch",
    "StalenessIssue",
    "StalenessResult",
    "Violation",
    "parse_timestamp",
    "timestamp_now",
]
