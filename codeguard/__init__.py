"""Structural quality gates and duplicate detection for JavaScript/TypeScript projects."""

__version__ = "0.1.0"
