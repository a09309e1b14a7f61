"""CLI parser and command behaviour tests."""

from __future__ import annotations

import json

import pytest

from codeguard.cli import EXIT_CONFIG, EXIT_FINDINGS, _build_parser, main
from codeguard.index.embedder import SentenceTransformerEmbedder


class _TopicModel:
    """Stands in for a sentence-transformers model; one axis per topic."""

    def encode(self, text, normalize_embeddings=False):
        lowered = text.lower()
        return [float("order" in lowered or "purchase" in lowered), float("plot" in lowered), 0.1]


def test_cli_accepts_verbose_before_command() -> None:
    parser = _build_parser()
    args = parser.parse_args(["--verbose", "check"])
    assert args.verbose is True
    assert args.command == "check"
    assert args.path == "."


def test_cli_accepts_verbose_after_command() -> None:
    parser = _build_parser()
    args = parser.parse_args(["index", "src", "--verbose", "--force"])
    assert args.verbose is True
    assert args.path == "src"
    assert args.force is True
    assert args.semantic is False


def test_cli_match_options() -> None:
    parser = _build_parser()
    args = parser.parse_args(["match", "formatDate", "--signature", "(d: Date)", "--kind", "function"])
    assert args.name == "formatDate"
    assert args.signature == "(d: Date)"
    assert args.kind == "function"
    assert args.description is None


def test_cli_rejects_unknown_kind() -> None:
    with pytest.raises(SystemExit):
        _build_parser().parse_args(["match", "x", "--kind", "widget"])


def test_check_exits_one_on_violations(repo_builder, capsys) -> None:
    repo_builder.write({"src/wide.ts": "export function wide(a, b, c, d, e, f) {}\n"})

    with pytest.raises(SystemExit) as excinfo:
        main(["check", str(repo_builder.path())])

    assert excinfo.value.code == EXIT_FINDINGS
    assert "1 violation(s) found" in capsys.readouterr().out


def test_check_passes_clean_project(repo_builder, capsys) -> None:
    repo_builder.write({"src/ok.ts": "export function ok(a) { return a; }\n"})

    main(["check", str(repo_builder.path())])

    assert "No structural violations found" in capsys.readouterr().out


def test_missing_explicit_config_exits_two(repo_builder) -> None:
    with pytest.raises(SystemExit) as excinfo:
        main(["--config", str(repo_builder.path() / "absent.yml"), "check", str(repo_builder.path())])
    assert excinfo.value.code == EXIT_CONFIG


def test_missing_project_exits_two(tmp_path) -> None:
    with pytest.raises(SystemExit) as excinfo:
        main(["check", str(tmp_path / "nowhere")])
    assert excinfo.value.code == EXIT_CONFIG


def test_index_then_match(repo_builder, capsys) -> None:
    repo_builder.write({"src/utils/date.ts": "export function formatDate(d: Date) {}\n"})
    root = str(repo_builder.path())

    main(["index", root])
    stored = json.loads((repo_builder.path() / ".codeguard" / "patterns.json").read_text(encoding="utf-8"))
    assert [pattern["name"] for pattern in stored["patterns"]] == ["formatDate"]

    with pytest.raises(SystemExit) as excinfo:
        main(["match", "formatDate", "--path", root])
    assert excinfo.value.code == EXIT_FINDINGS
    assert "BLOCK: Use existing function 'formatDate'" in capsys.readouterr().out

    main(["match", "renderChart", "--path", root])
    assert "ALLOW: No similar patterns found" in capsys.readouterr().out


def test_allow_suppresses_match(repo_builder, capsys) -> None:
    repo_builder.write({"src/utils/date.ts": "export function formatDate(d: Date) {}\n"})
    root = str(repo_builder.path())

    main(["allow", "format*", "--reason", "Locale variants", "--by", "alice", "--path", root])
    main(["match", "formatDate", "--path", root])

    output = capsys.readouterr().out
    assert "Allowed format*" in output
    assert "ALLOW: Override active for 'formatDate': Locale variants" in output

    main(["allow", "format*", "--remove", "--path", root])
    assert "Removed override for format*" in capsys.readouterr().out


def test_stale_reports_deprecated_usage(repo_builder, capsys) -> None:
    repo_builder.write_package_json({"react-dom": "^18.2.0"})
    repo_builder.write({"src/index.tsx": "ReactDOM.render(<App />, root);\n"})
    root = repo_builder.path()

    with pytest.raises(SystemExit) as excinfo:
        main(["stale", str(root / "src" / "index.tsx"), "--path", str(root)])

    assert excinfo.value.code == EXIT_FINDINGS
    output = capsys.readouterr().out
    assert "[error] ReactDOM.render" in output
    assert output.strip().endswith("DEPRECATED")


def test_match_description_drives_semantic_matching(repo_builder, capsys, monkeypatch) -> None:
    monkeypatch.setattr(SentenceTransformerEmbedder, "_load_model", lambda self: _TopicModel())
    repo_builder.write(
        {
            "src/orders.ts": "export function summarizeOrders() { return 0; }\n",
            "src/charts.ts": "export function plotRevenue() { return 0; }\n",
        }
    )
    root = str(repo_builder.path())

    main(["index", root, "--semantic"])
    capsys.readouterr()

    with pytest.raises(SystemExit) as excinfo:
        main(
            [
                "match",
                "digestPurchases",
                "--description",
                "Totals each purchase by customer.",
                "--path",
                root,
            ]
        )

    out = capsys.readouterr().out
    assert excinfo.value.code == EXIT_FINDINGS
    assert out.startswith("WARN: Similar ")
    assert "'summarizeOrders'" in out.splitlines()[0]
    assert "semantic  summarizeOrders" in out
    assert "plotRevenue" not in out


def test_log_file_receives_log_records(repo_builder, tmp_path) -> None:
    repo_builder.write({"src/lib.ts": "export function foo() {}\n"})
    log_file = tmp_path / "logs" / "codeguard.log"

    main(["--log-file", str(log_file), "index", str(repo_builder.path())])
    main(["index", str(repo_builder.path())])

    text = log_file.read_text(encoding="utf-8")
    assert "INFO codeguard.indexer: Indexed 1 patterns from 1 files" in text
    assert text.count("Indexed 1 patterns") == 1
