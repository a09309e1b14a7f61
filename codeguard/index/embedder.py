"""Optional sentence embeddings for semantic duplicate matching."""

from __future__ import annotations

import asyncio
import math
from typing import TYPE_CHECKING, Iterable, List, Optional, Sequence

from ..logging import get_logger
from ..models import Declaration, MatchQuery

if TYPE_CHECKING:
    from sentence_transformers import SentenceTransformer

logger = get_logger("embedder")

DEFAULT_MODEL = "all-MiniLM-L6-v2"


def embedding_text(pattern: Declaration) -> str:
    """Text a declaration is embedded from: name, kind and description."""
    return _join(pattern.name, pattern.kind.value, pattern.description)


def query_text(query: MatchQuery) -> str:
    """Text a candidate is embedded from, built the same way as :func:`embedding_text`."""
    return _join(query.name, query.kind.value if query.kind else None, query.description)


def _join(*parts: str | None) -> str:
    return " ".join(part for part in parts if part)


class SentenceTransformerEmbedder:
    """Lazily loads a sentence-transformers model on first use.

    Loading happens once per instance, guarded by an asyncio lock so that a
    batch of concurrent ``embed`` calls shares a single model. Any failure,
    including a missing ``sentence-transformers`` install, yields an empty
    vector and disables semantic matching for that declaration only.
    """

    def __init__(self, model_name: str = DEFAULT_MODEL) -> None:
        self.model_name = model_name
        self._model: Optional["SentenceTransformer"] = None
        self._load_failed = False
        self._lock = asyncio.Lock()

    async def embed(self, text: str) -> List[float]:
        model = await self._ensure_model()
        if model is None:
            return []
        loop = asyncio.get_running_loop()
        try:
            vector = await loop.run_in_executor(None, self._encode, model, text)
        except Exception as exc:  # pylint: disable=broad-except
            logger.warning("Embedding failed for %r: %s", text[:40], exc)
            return []
        return vector

    async def embed_many(self, texts: Iterable[str]) -> List[List[float]]:
        return list(await asyncio.gather(*(self.embed(text) for text in texts)))

    async def _ensure_model(self) -> Optional["SentenceTransformer"]:
        async with self._lock:
            if self._model is None and not self._load_failed:
                loop = asyncio.get_running_loop()
                try:
                    self._model = await loop.run_in_executor(None, self._load_model)
                except Exception as exc:  # pylint: disable=broad-except
                    logger.warning("Semantic model %s unavailable: %s", self.model_name, exc)
                    self._load_failed = True
            return self._model

    def _load_model(self) -> "SentenceTransformer":
        from sentence_transformers import SentenceTransformer

        logger.info("Loading semantic model %s", self.model_name)
        return SentenceTransformer(self.model_name)

    @staticmethod
    def _encode(model: "SentenceTransformer", text: str) -> List[float]:
        return [float(value) for value in model.encode(text, normalize_embeddings=True)]


def cosine_similarity(left: Sequence[float], right: Sequence[float]) -> float:
    """Cosine of the angle between two vectors; 0.0 for empty or mismatched input."""
    if not left or not right or len(left) != len(right):
        return 0.0
    dot = sum(a * b for a, b in zip(left, right))
    norm = math.sqrt(sum(a * a for a in left)) * math.sqrt(sum(b * b for b in right))
    if norm == 0:
        return 0.0
    return dot / norm


__all__ = [
    "DEFAULT_MODEL",
    "SentenceTransformerEmbedder",
    "cosine_similarity",
    "embedding_text",
    "query_text",
]
