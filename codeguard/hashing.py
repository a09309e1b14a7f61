"""Content fingerprints shared by the indexing engine and its stores."""

from __future__ import annotations

import hashlib

_DIGEST_LENGTH = 16


def hash_content(text: str) -> str:
    """Return a short, stable SHA-256 fingerprint of ``text``."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()[:_DIGEST_LENGTH]


def declaration_id(file: str, name: str, line: int) -> str:
    """Identity of a declaration: stable while path, name and line are unchanged."""
    return hash_content(f"{file}:{name}:{line}")


__all__ = ["declaration_id", "hash_content"]
