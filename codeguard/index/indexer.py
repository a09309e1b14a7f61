"""Project-wide pattern index: full builds and hash-driven incremental updates."""

from __future__ import annotations

import asyncio
import json
import time
from collections import Counter, defaultdict
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Sequence

from ..analyzers.tree_sitter import ParseError
from ..config import IndexConfig
from ..hashing import hash_content
from ..logging import get_logger
from ..models import (
    INDEX_VERSION,
    Declaration,
    DeclarationKind,
    IndexedFile,
    IndexStats,
    PatternIndex,
    timestamp_now,
)
from ..scanner import SourceScanner
from ..stores.catalog import default_index_path, load_index, save_index
from .embedder import SentenceTransformerEmbedder, embedding_text
from .extractor import PatternExtractor

logger = get_logger("indexer")

BATCH_SIZE = 10


def extraction_fingerprint(config: IndexConfig) -> str:
    """Fingerprint of the settings that change what a file yields when extracted."""
    settings = {
        "categories": config.categories,
        "index_methods": config.index_methods,
        "min_name_length": config.min_name_length,
    }
    return hash_content(json.dumps(settings, sort_keys=True))


@dataclass
class _FileOutcome:
    record: IndexedFile
    patterns: List[Declaration]
    reused: bool = False


class PatternIndexer:
    """Builds and refreshes the pattern catalog for one project root.

    Files are processed in sequential batches of ``BATCH_SIZE``; members of a
    batch run concurrently and their results are merged only after the whole
    batch has resolved. A file that cannot be read or parsed is logged and
    left out without affecting the rest of the run.
    """

    def __init__(
        self,
        root: str | Path,
        config: IndexConfig | None = None,
        *,
        exclude_paths: Sequence[str] = (),
        extractor: PatternExtractor | None = None,
        embedder: SentenceTransformerEmbedder | None = None,
    ) -> None:
        self.root = Path(root).expanduser().resolve()
        self.config = config or IndexConfig()
        self.scanner = SourceScanner.from_config(self.config, extra_excludes=exclude_paths)
        self.extractor = extractor or PatternExtractor(self.config)
        if embedder is None and self.config.use_embeddings:
            embedder = SentenceTransformerEmbedder()
        self.embedder = embedder

    def find_files(self) -> List[str]:
        """Relative POSIX paths of every file selected for indexing."""
        return [path.relative_to(self.root).as_posix() for path in self.scanner.scan(self.root)]

    async def build_index(self) -> PatternIndex:
        started = time.perf_counter()
        files = self.find_files()
        logger.debug("Building pattern index for %d files under %s", len(files), self.root)

        outcomes: List[_FileOutcome] = []
        for batch in _batches(files, BATCH_SIZE):
            results = await asyncio.gather(*(self._index_file(path) for path in batch))
            outcomes.extend(outcome for outcome in results if outcome is not None)
        return await self._finalize(outcomes, started)

    async def update_index(self, prior: PatternIndex) -> PatternIndex:
        """Re-extract only files whose content hash differs from ``prior``.

        Unchanged files carry their declaration records forward verbatim;
        files missing from the new enumeration are dropped.
        A catalog built under different extraction settings is rebuilt in full.
        """
        fingerprint = extraction_fingerprint(self.config)
        if prior.config_hash != fingerprint:
            logger.info("Extraction settings changed since the last run; rebuilding the index")
            return await self.build_index()

        started = time.perf_counter()
        files = self.find_files()
        prior_files = {record.path: record for record in prior.files}
        prior_patterns: Dict[str, List[Declaration]] = defaultdict(list)
        for pattern in prior.patterns:
            prior_patterns[pattern.file].append(pattern)

        outcomes: List[_FileOutcome] = []
        for batch in _batches(files, BATCH_SIZE):
            results = await asyncio.gather(
                *(
                    self._index_file(
                        path,
                        prior_record=prior_files.get(path),
                        prior_patterns=prior_patterns.get(path, []),
                    )
                    for path in batch
                )
            )
            outcomes.extend(outcome for outcome in results if outcome is not None)

        reused = sum(1 for outcome in outcomes if outcome.reused)
        logger.debug("Reused %d of %d files from the previous index", reused, len(outcomes))
        return await self._finalize(outcomes, started)

    async def _index_file(
        self,
        rel_path: str,
        *,
        prior_record: Optional[IndexedFile] = None,
        prior_patterns: Sequence[Declaration] = (),
    ) -> Optional[_FileOutcome]:
        loop = asyncio.get_running_loop()
        try:
            content = await loop.run_in_executor(None, _read_text, self.root / rel_path)
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning("Skipping %s: %s", rel_path, exc)
            return None

        content_hash = hash_content(content)
        if prior_record is not None and prior_record.hash == content_hash:
            return _FileOutcome(record=prior_record, patterns=list(prior_patterns), reused=True)

        try:
            extraction = self.extractor.extract_file(rel_path, content)
        except ParseError as exc:
            logger.warning("Skipping %s: %s", rel_path, exc)
            return None
        except (RecursionError, ValueError) as exc:
            logger.warning("Failed to extract patterns from %s: %s", rel_path, exc)
            return None

        record = IndexedFile(
            path=rel_path,
            hash=content_hash,
            pattern_count=len(extraction.patterns),
            imports=extraction.imports,
        )
        return _FileOutcome(record=record, patterns=extraction.patterns)

    async def _finalize(self, outcomes: List[_FileOutcome], started: float) -> PatternIndex:
        records = [outcome.record for outcome in outcomes]
        patterns = _with_usage_counts(
            [pattern for outcome in outcomes for pattern in outcome.patterns], records
        )
        if self.config.use_embeddings and self.embedder is not None:
            patterns = await self._embed(patterns)

        duration_ms = round((time.perf_counter() - started) * 1000, 2)
        by_type = Counter(pattern.kind.value for pattern in patterns)
        stats = IndexStats(
            total_patterns=len(patterns),
            total_files=len(records),
            by_type=dict(sorted(by_type.items())),
            index_duration_ms=duration_ms,
        )
        logger.info(
            "Indexed %d patterns from %d files in %.0fms",
            stats.total_patterns,
            stats.total_files,
            duration_ms,
        )
        return PatternIndex(
            version=INDEX_VERSION,
            last_updated=timestamp_now(),
            root_dir=str(self.root),
            patterns=patterns,
            files=records,
            stats=stats,
            config_hash=extraction_fingerprint(self.config),
        )

    async def _embed(self, patterns: List[Declaration]) -> List[Declaration]:
        """Attach vectors to records that lack one, in batches of ``BATCH_SIZE``."""
        assert self.embedder is not None
        pending = [index for index, pattern in enumerate(patterns) if not pattern.embedding]
        for batch in _batches(pending, BATCH_SIZE):
            vectors = await self.embedder.embed_many(
                embedding_text(patterns[index]) for index in batch
            )
            for index, vector in zip(batch, vectors):
                patterns[index] = replace(patterns[index], embedding=vector or None)
        return patterns


async def refresh_index(
    root: str | Path,
    config: IndexConfig | None = None,
    *,
    exclude_paths: Sequence[str] = (),
    index_path: Path | None = None,
    force: bool = False,
) -> PatternIndex:
    """Update the persisted catalog, falling back to a full build when none exists."""
    indexer = PatternIndexer(root, config, exclude_paths=exclude_paths)
    target = index_path or default_index_path(indexer.root)
    prior = None if force else load_index(target)
    if prior is None:
        index = await indexer.build_index()
    else:
        index = await indexer.update_index(prior)
    save_index(index, target)
    return index


def _with_usage_counts(
    patterns: List[Declaration], records: Sequence[IndexedFile]
) -> List[Declaration]:
    """Return copies whose ``usage_count`` is the number of other files importing the name."""
    importers: Dict[str, set[str]] = defaultdict(set)
    for record in records:
        for name in record.imports:
            importers[name].add(record.path)

    counted: List[Declaration] = []
    for pattern in patterns:
        usage = 0
        if pattern.exported and pattern.kind is not DeclarationKind.METHOD:
            usage = len(importers.get(pattern.name, set()) - {pattern.file})
        counted.append(replace(pattern, usage_count=usage))
    return counted


def _batches(items: Sequence, size: int) -> Iterator[Sequence]:
    for start in range(0, len(items), size):
        yield items[start : start + size]


def _read_text(path: Path) -> str:
    return path.read_text(encoding="utf-8")


__all__ = ["BATCH_SIZE", "PatternIndexer", "extraction_fingerprint", "refresh_index"]
