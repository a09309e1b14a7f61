"""Duplicate detection against the pattern catalog."""

from __future__ import annotations

import re
from difflib import SequenceMatcher
from typing import List, Optional, Tuple

from ..config import MatcherConfig
from ..logging import get_logger
from ..models import Declaration, DeclarationKind, MatchQuery, MatchResult, PatternIndex, PatternMatch
from .embedder import SentenceTransformerEmbedder, cosine_similarity, query_text
from .extractor import extract_keywords
from .overrides import OverrideManager

logger = get_logger("matcher")

ACTION_BLOCK = "BLOCK"
ACTION_WARN = "WARN"
ACTION_ALLOW = "ALLOW"

STATUS_FOUND = "FOUND_SIMILAR"
STATUS_NONE = "NO_MATCH"
STATUS_OVERRIDE = "OVERRIDE_ALLOWED"

EXACT_CONFIDENCE = 100
CASE_INSENSITIVE_CONFIDENCE = 95
BLOCK_CONFIDENCE = 90
WARN_CONFIDENCE = 60
_FUZZY_CEILING = 94
_TYPED_SIGNATURE_CONFIDENCE = 70
_UNTYPED_SIGNATURE_CONFIDENCE = 60

# Lower sorts first when confidences tie.
_PRIORITY = {"exact": 0, "signature": 1, "fuzzy": 2, "semantic": 3}

_OPENERS = "([{<"
_DEFAULT_VALUE = re.compile(r"=(?!>)")
_CLOSERS = ")]}>"


def signature_shape(signature: str) -> Tuple[str, ...]:
    """Parameter types of ``(a: string, b) => ...`` style signatures, ``*`` when untyped."""
    start = signature.find("(")
    if start == -1:
        return ()
    depth = 0
    end = -1
    for position in range(start, len(signature)):
        char = signature[position]
        if char in _OPENERS:
            depth += 1
        elif char in _CLOSERS and signature[position - 1] != "=":
            depth -= 1
            if depth == 0:
                end = position
                break
    if end == -1:
        return ()
    return tuple(_param_type(param) for param in _split_top_level(signature[start + 1 : end]))


def _split_top_level(params: str) -> List[str]:
    parts: List[str] = []
    depth = 0
    current: List[str] = []
    previous = ""
    for char in params:
        if char in _OPENERS:
            depth += 1
        elif char in _CLOSERS and previous != "=":
            depth -= 1
        previous = char
        if char == "," and depth == 0:
            parts.append("".join(current).strip())
            current = []
            continue
        current.append(char)
    tail = "".join(current).strip()
    if tail:
        parts.append(tail)
    return [part for part in parts if part]


def _param_type(param: str) -> str:
    if ":" not in param:
        return "*"
    annotation = _DEFAULT_VALUE.split(param.split(":", 1)[1], maxsplit=1)[0]
    return "".join(annotation.split())


class PatternMatcher:
    """Ranks catalog declarations against a candidate and recommends an action."""

    def __init__(
        self,
        index: PatternIndex,
        config: MatcherConfig | None = None,
        *,
        overrides: OverrideManager | None = None,
        embedder: SentenceTransformerEmbedder | None = None,
    ) -> None:
        self.index = index
        self.config = config or MatcherConfig()
        self.overrides = overrides
        self.embedder = embedder

    async def match_async(self, query: MatchQuery) -> MatchResult:
        """Embed ``query`` when the catalog carries vectors, then :meth:`match` it."""
        if self.embedder is not None and self._wants_query_embedding(query):
            vector = await self.embedder.embed(query_text(query))
            if vector:
                query.embedding = vector
            else:
                logger.debug("No embedding for %s; semantic matching skipped", query.name)
        return self.match(query)

    def _wants_query_embedding(self, query: MatchQuery) -> bool:
        if not self.config.use_semantic or query.embedding:
            return False
        return any(pattern.embedding for pattern in self.index.patterns)

    def match(self, query: MatchQuery) -> MatchResult:
        matches = self.find_matches(query)
        override = self.overrides.is_overridden(query.name) if self.overrides else None
        if override is not None:
            return MatchResult(
                query=query.name,
                matches=matches,
                suggestion=f"Override active for '{query.name}': {override.reason}",
                can_override=True,
                status=STATUS_OVERRIDE,
                action=ACTION_ALLOW,
            )
        if not matches:
            return MatchResult(
                query=query.name,
                matches=[],
                suggestion="No similar patterns found. Safe to create.",
                can_override=True,
                status=STATUS_NONE,
                action=ACTION_ALLOW,
            )

        best = matches[0]
        action = self._action(matches)
        logger.debug("Query %s -> %s (%s, %d)", query.name, action, best.match_type, best.confidence)
        return MatchResult(
            query=query.name,
            matches=matches,
            suggestion=_suggestion(best, action),
            can_override=True,
            status=STATUS_FOUND,
            action=action,
        )

    def find_matches(self, query: MatchQuery) -> List[PatternMatch]:
        matches: List[PatternMatch] = []
        for pattern in self.index.patterns:
            candidates = [
                self._exact(query, pattern),
                self._signature(query, pattern),
                self._fuzzy(query, pattern),
                self._semantic(query, pattern),
            ]
            found = [candidate for candidate in candidates if candidate is not None]
            if found:
                matches.append(min(found, key=_rank_key))
        matches.sort(key=_rank_key)
        return matches[: self.config.max_matches]

    @staticmethod
    def _exact(query: MatchQuery, pattern: Declaration) -> Optional[PatternMatch]:
        if pattern.name == query.name:
            return PatternMatch(pattern, "exact", EXACT_CONFIDENCE, f"Exact name match: '{pattern.name}'")
        if pattern.name.lower() == query.name.lower():
            return PatternMatch(
                pattern,
                "exact",
                CASE_INSENSITIVE_CONFIDENCE,
                f"Name matches '{pattern.name}' ignoring case",
            )
        return None

    def _fuzzy(self, query: MatchQuery, pattern: Declaration) -> Optional[PatternMatch]:
        ratio = SequenceMatcher(None, query.name.lower(), pattern.name.lower()).ratio()
        query_words = set(extract_keywords(query.name))
        pattern_words = set(pattern.keywords)
        union = query_words | pattern_words
        overlap = len(query_words & pattern_words) / len(union) if union else 0.0
        score = max(ratio, overlap)
        if score < self.config.fuzzy_threshold:
            return None
        confidence = min(round(score * 100), _FUZZY_CEILING)
        return PatternMatch(
            pattern,
            "fuzzy",
            confidence,
            f"Similar name to '{pattern.name}' ({round(score * 100)}% similar)",
        )

    @staticmethod
    def _signature(query: MatchQuery, pattern: Declaration) -> Optional[PatternMatch]:
        if not query.signature or not pattern.signature:
            return None
        if query.kind is not None and _family(query.kind) != _family(pattern.kind):
            return None
        shape = signature_shape(query.signature)
        # Arity alone is too weak a signal.
        if all(param == "*" for param in shape) or shape != signature_shape(pattern.signature):
            return None
        typed = "*" not in shape
        confidence = _TYPED_SIGNATURE_CONFIDENCE if typed else _UNTYPED_SIGNATURE_CONFIDENCE
        return PatternMatch(
            pattern,
            "signature",
            confidence,
            f"Same parameter shape as '{pattern.name}{pattern.signature}'",
        )

    def _semantic(self, query: MatchQuery, pattern: Declaration) -> Optional[PatternMatch]:
        if not self.config.use_semantic or not query.embedding or not pattern.embedding:
            return None
        similarity = cosine_similarity(query.embedding, pattern.embedding)
        if similarity < self.config.semantic_threshold:
            return None
        confidence = round((similarity + 1) / 2 * 100)
        return PatternMatch(
            pattern,
            "semantic",
            confidence,
            f"Semantically similar to '{pattern.name}' (cosine {similarity:.2f})",
        )

    @staticmethod
    def _action(matches: List[PatternMatch]) -> str:
        strong_exact = [
            match
            for match in matches
            if match.match_type == "exact" and match.confidence >= BLOCK_CONFIDENCE
        ]
        if len(strong_exact) == 1 and strong_exact[0].pattern.exported:
            return ACTION_BLOCK
        if any(match.confidence >= WARN_CONFIDENCE for match in matches):
            return ACTION_WARN
        return ACTION_ALLOW


def check_pattern_duplicate(
    index: PatternIndex,
    name: str,
    *,
    signature: str | None = None,
    description: str | None = None,
    kind: DeclarationKind | None = None,
    config: MatcherConfig | None = None,
    overrides: OverrideManager | None = None,
) -> MatchResult:
    query = MatchQuery(name=name, signature=signature, description=description, kind=kind)
    return PatternMatcher(index, config, overrides=overrides).match(query)


def _rank_key(match: PatternMatch) -> Tuple[int, int]:
    return -match.confidence, _PRIORITY[match.match_type]


_FUNCTION_FAMILY = {
    DeclarationKind.FUNCTION,
    DeclarationKind.METHOD,
    DeclarationKind.COMPONENT,
    DeclarationKind.HOOK,
    DeclarationKind.MIDDLEWARE,
    DeclarationKind.HANDLER,
    DeclarationKind.FACTORY,
}


def _family(kind: DeclarationKind) -> str:
    return "function" if kind in _FUNCTION_FAMILY else kind.value


def _suggestion(best: PatternMatch, action: str) -> str:
    pattern = best.pattern
    location = f"{pattern.file}:{pattern.line}"
    if action == ACTION_BLOCK:
        return (
            f"Use existing {pattern.kind.value} '{pattern.name}' from {location} "
            "instead of creating a new one."
        )
    return (
        f"Similar {pattern.kind.value} '{pattern.name}' exists in {location}. "
        "Consider reusing or extending it."
    )


__all__ = [
    "ACTION_ALLOW",
    "ACTION_BLOCK",
    "ACTION_WARN",
    "PatternMatcher",
    "STATUS_FOUND",
    "STATUS_NONE",
    "STATUS_OVERRIDE",
    "check_pattern_duplicate",
    "signature_shape",
]
