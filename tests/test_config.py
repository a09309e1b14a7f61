"""Tests for codeguard.config."""

from __future__ import annotations

from pathlib import Path

import pytest

from codeguard.config import (
    DEFAULT_EXCLUDE,
    DEFAULT_INCLUDE,
    CodeGuardConfig,
    ConfigError,
    load_config,
)


def test_load_config_returns_defaults_when_missing(tmp_path: Path) -> None:
    config = load_config(tmp_path)

    assert isinstance(config, CodeGuardConfig)
    assert config.root == tmp_path.resolve()
    assert config.ast.complexity == 10
    assert config.ast.max_params == 5
    assert config.ast.max_methods == 10
    assert config.patterns.include == DEFAULT_INCLUDE
    assert config.patterns.exclude == DEFAULT_EXCLUDE
    assert config.patterns.use_embeddings is False
    assert config.matcher.fuzzy_threshold == pytest.approx(0.7)
    assert config.allow == []
    assert config.exclude_paths == []


def test_load_config_parses_expected_fields(tmp_path: Path) -> None:
    config_file = tmp_path / ".codeguard.yml"
    config_file.write_text(
        """
ast:
  complexity: 15
  max_params: 4
  max_methods: 12
patterns:
  include: ["packages/**/*"]
  exclude: ["**/generated/**"]
  extensions: [ts, ".tsx"]
  index_tests: true
  use_embeddings: yes
  index_methods: true
  min_name_length: 3
  categories:
    utils: ["packages/*/utils/**"]
    hooks: "packages/*/hooks/**"
  allow:
    - legacy*
    - pattern: "format*"
      reason: "Locale helpers"
      expires: "2030-01-01"
matcher:
  fuzzy_threshold: 0.8
  semantic_threshold: "0.9"
  max_matches: 3
  use_semantic: false
exclude_paths:
  - "sandbox/"
""",
        encoding="utf-8",
    )

    config = load_config(config_file)

    assert config.ast.complexity == 15
    assert config.ast.max_params == 4
    assert config.ast.max_methods == 12

    assert config.patterns.include == ["packages/**/*"]
    assert config.patterns.exclude == ["**/generated/**"]
    assert config.patterns.extensions == [".ts", ".tsx"]
    assert config.patterns.index_tests is True
    assert config.patterns.use_embeddings is True
    assert config.patterns.index_methods is True
    assert config.patterns.min_name_length == 3
    assert config.patterns.categories == {
        "utils": ["packages/*/utils/**"],
        "hooks": ["packages/*/hooks/**"],
    }
    assert config.allow == [
        {"pattern": "legacy*"},
        {"pattern": "format*", "reason": "Locale helpers", "expires": "2030-01-01"},
    ]

    assert config.matcher.fuzzy_threshold == pytest.approx(0.8)
    assert config.matcher.semantic_threshold == pytest.approx(0.9)
    assert config.matcher.max_matches == 3
    assert config.matcher.use_semantic is False

    assert config.exclude_paths == ["sandbox/"]


def test_invalid_values_fall_back_to_defaults(tmp_path: Path) -> None:
    (tmp_path / ".codeguard.yml").write_text(
        """
ast:
  complexity: lots
  max_params: true
patterns: "not a mapping"
""",
        encoding="utf-8",
    )

    config = load_config(tmp_path)

    assert config.ast.complexity == 10
    assert config.ast.max_params == 5
    assert config.patterns.include == DEFAULT_INCLUDE


def test_explicit_zero_limits_are_kept(tmp_path: Path) -> None:
    (tmp_path / ".codeguard.yml").write_text(
        """
ast:
  complexity: 0
  max_params: 0
  max_methods: 0
matcher:
  max_matches: 0
""",
        encoding="utf-8",
    )

    config = load_config(tmp_path)

    assert (config.ast.complexity, config.ast.max_params, config.ast.max_methods) == (0, 0, 0)
    assert config.matcher.max_matches == 0


def test_empty_config_file_yields_defaults(tmp_path: Path) -> None:
    (tmp_path / ".codeguard.yml").write_text("\n", encoding="utf-8")
    assert load_config(tmp_path).ast.max_params == 5


def test_required_config_must_exist(tmp_path: Path) -> None:
    with pytest.raises(ConfigError):
        load_config(tmp_path / "missing.yml", required=True)


def test_malformed_yaml_raises(tmp_path: Path) -> None:
    config_file = tmp_path / ".codeguard.yml"
    config_file.write_text("ast: [unclosed\n", encoding="utf-8")

    with pytest.raises(ConfigError):
        load_config(config_file)


def test_non_mapping_root_raises(tmp_path: Path) -> None:
    config_file = tmp_path / ".codeguard.yml"
    config_file.write_text("- just\n- a list\n", encoding="utf-8")

    with pytest.raises(ConfigError):
        load_config(config_file)
