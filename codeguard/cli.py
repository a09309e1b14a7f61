"""CLI entrypoints for codeguard commands."""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

from .analyzers.metrics import MetricsAnalyzer
from .config import DEFAULT_EXCLUDE, DEFAULT_EXTENSIONS, CodeGuardConfig, ConfigError, load_config
from .index.embedder import SentenceTransformerEmbedder
from .index.indexer import refresh_index
from .index.matcher import ACTION_ALLOW, PatternMatcher
from .index.overrides import OverrideManager, load_config_overrides
from .index.staleness import STATUS_FRESH, StalenessDetector
from .logging import configure_logging
from .models import DeclarationKind, MatchQuery
from .scanner import SourceScanner
from .stores.catalog import default_index_path, load_index

EXIT_OK = 0
EXIT_FINDINGS = 1
EXIT_CONFIG = 2


def _add_verbose_option(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    kwargs: dict[str, object] = {
        "action": "store_true",
        "help": "Increase log verbosity for troubleshooting.",
    }
    if suppress_default:
        kwargs["default"] = argparse.SUPPRESS
    else:
        kwargs["default"] = False
    parser.add_argument("-v", "--verbose", **kwargs)


def _add_path_argument(parser: argparse.ArgumentParser, *, positional: bool) -> None:
    help_text = "Path to the project root (defaults to current directory)."
    if positional:
        parser.add_argument("path", nargs="?", default=".", help=help_text)
    else:
        parser.add_argument("--path", default=".", help=help_text)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="codeguard",
        description="Structural quality gates and duplicate detection for JS/TS projects.",
    )
    _add_verbose_option(parser)
    parser.add_argument(
        "--config",
        default=None,
        help="Explicit .codeguard.yml to use; it must exist.",
    )
    parser.add_argument(
        "--log-file",
        default=None,
        help="Also write log records to this file.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    check_parser = subparsers.add_parser(
        "check",
        help="Report functions and classes that exceed structural thresholds.",
    )
    _add_verbose_option(check_parser, suppress_default=True)
    _add_path_argument(check_parser, positional=True)

    index_parser = subparsers.add_parser(
        "index",
        help="Build or incrementally update the pattern index.",
    )
    _add_verbose_option(index_parser, suppress_default=True)
    _add_path_argument(index_parser, positional=True)
    index_parser.add_argument(
        "--force",
        action="store_true",
        help="Ignore the existing index and rebuild from scratch.",
    )
    index_parser.add_argument(
        "--semantic",
        action="store_true",
        help="Generate embeddings for semantic matching (requires sentence-transformers).",
    )
    index_parser.add_argument("--output", default=None, help="Where to write the index.")

    match_parser = subparsers.add_parser(
        "match",
        help="Check whether a declaration name already exists in the index.",
    )
    _add_verbose_option(match_parser, suppress_default=True)
    match_parser.add_argument("name", help="Name of the declaration about to be created.")
    match_parser.add_argument("--signature", default=None, help="Signature, e.g. '(id: string)'.")
    match_parser.add_argument(
        "--description",
        default=None,
        help="What the declaration does; used for semantic matching.",
    )
    match_parser.add_argument(
        "--kind",
        default=None,
        choices=[kind.value for kind in DeclarationKind],
        help="Kind of declaration being created.",
    )
    _add_path_argument(match_parser, positional=False)

    stale_parser = subparsers.add_parser(
        "stale",
        help="Flag deprecated APIs used in a source file.",
    )
    _add_verbose_option(stale_parser, suppress_default=True)
    stale_parser.add_argument("file", help="Source file to check.")
    _add_path_argument(stale_parser, positional=False)

    allow_parser = subparsers.add_parser(
        "allow",
        help="Grant (or revoke) an override for a name or glob.",
    )
    _add_verbose_option(allow_parser, suppress_default=True)
    allow_parser.add_argument("pattern", help="Exact name or '*' glob to allow.")
    allow_parser.add_argument("--reason", default="", help="Why the duplicate is acceptable.")
    allow_parser.add_argument("--expires", default=None, help="ISO timestamp (default: 30 days).")
    allow_parser.add_argument("--by", default=None, help="Who approved the override.")
    allow_parser.add_argument(
        "--remove",
        action="store_true",
        help="Remove the override instead of adding it.",
    )
    _add_path_argument(allow_parser, positional=False)

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for codeguard commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    log_file = Path(args.log_file).expanduser() if args.log_file else None
    configure_logging(verbose=bool(args.verbose), log_file=log_file)

    root = Path(args.path).expanduser().resolve()
    try:
        config = _load_config(args.config, root)
    except ConfigError as exc:
        parser.exit(EXIT_CONFIG, f"codeguard: {exc}\n")

    try:
        if args.command == "check":
            code = _run_check(root, config)
        elif args.command == "index":
            code = _run_index(root, config, args)
        elif args.command == "match":
            code = _run_match(root, config, args)
        elif args.command == "stale":
            code = _run_stale(root, args)
        elif args.command == "allow":
            code = _run_allow(root, args)
        else:  # pragma: no cover - argparse enforces choices
            parser.exit(EXIT_CONFIG, "Unknown command\n")
    except (FileNotFoundError, NotADirectoryError) as exc:
        parser.exit(EXIT_CONFIG, f"codeguard: {exc}\n")
    except ValueError as exc:
        parser.exit(EXIT_CONFIG, f"codeguard {args.command} failed: {exc}\n")

    if code != EXIT_OK:
        parser.exit(code)


def _load_config(config_arg: str | None, root: Path) -> CodeGuardConfig:
    if config_arg:
        return load_config(Path(config_arg), required=True)
    return load_config(root)


def _run_check(root: Path, config: CodeGuardConfig) -> int:
    scanner = SourceScanner(
        include=["**/*"],
        exclude=[*DEFAULT_EXCLUDE, *config.exclude_paths],
        extensions=list(DEFAULT_EXTENSIONS),
    )
    violations = MetricsAnalyzer(config.ast).analyze_project(root, scanner=scanner)
    for violation in violations:
        print(f"[{violation.rule_id}] {', '.join(violation.files)}: {violation.details}")
    if not violations:
        print("No structural violations found")
        return EXIT_OK
    print(f"{len(violations)} violation(s) found")
    return EXIT_FINDINGS


def _run_index(root: Path, config: CodeGuardConfig, args: argparse.Namespace) -> int:
    if args.semantic:
        config.patterns.use_embeddings = True
    output = Path(args.output).expanduser() if args.output else None
    index = asyncio.run(
        refresh_index(
            root,
            config.patterns,
            exclude_paths=config.exclude_paths,
            index_path=output,
            force=bool(args.force),
        )
    )
    target = output or default_index_path(root)
    print(
        f"Indexed {index.stats.total_patterns} patterns from {index.stats.total_files} files "
        f"-> {_relativize(target)}"
    )
    return EXIT_OK


def _run_match(root: Path, config: CodeGuardConfig, args: argparse.Namespace) -> int:
    index = load_index(default_index_path(root))
    if index is None:
        index = asyncio.run(
            refresh_index(root, config.patterns, exclude_paths=config.exclude_paths)
        )
    overrides = OverrideManager(root)
    overrides.load()
    overrides.add_ephemeral(load_config_overrides(config))

    query = MatchQuery(
        name=args.name,
        signature=args.signature,
        description=args.description,
        kind=DeclarationKind(args.kind) if args.kind else None,
    )
    embedder = SentenceTransformerEmbedder() if config.matcher.use_semantic else None
    matcher = PatternMatcher(index, config.matcher, overrides=overrides, embedder=embedder)
    result = asyncio.run(matcher.match_async(query))
    print(f"{result.action}: {result.suggestion}")
    for match in result.matches:
        print(
            f"  {match.confidence:>3} {match.match_type:<9} {match.pattern.name} "
            f"({match.pattern.file}:{match.pattern.line}) {match.reason}"
        )
    return EXIT_OK if result.action == ACTION_ALLOW else EXIT_FINDINGS


def _run_stale(root: Path, args: argparse.Namespace) -> int:
    source = Path(args.file).expanduser()
    code = source.read_text(encoding="utf-8")
    result = StalenessDetector(root).check_staleness(code)
    for issue in result.issues:
        print(
            f"{source}:{issue.line} [{issue.severity}] {issue.pattern}: {issue.reason} "
            f"-> {issue.replacement}"
        )
    print(result.status)
    return EXIT_OK if result.status == STATUS_FRESH else EXIT_FINDINGS


def _run_allow(root: Path, args: argparse.Namespace) -> int:
    manager = OverrideManager(root)
    manager.load()
    if args.remove:
        removed = manager.remove_override(args.pattern)
        print(f"Removed override for {args.pattern}" if removed else f"No override for {args.pattern}")
        return EXIT_OK
    entry = manager.add_override(
        args.pattern,
        args.reason or "Approved via codeguard allow",
        expires_at=args.expires,
        approved_by=args.by,
    )
    print(f"Allowed {entry.pattern} until {entry.expires_at}")
    return EXIT_OK


def _relativize(path: Path) -> str:
    try:
        return str(path.resolve().relative_to(Path.cwd()))
    except ValueError:
        return str(path)


__all__ = ["main"]


if __name__ == "__main__":
    main(sys.argv[1:])
