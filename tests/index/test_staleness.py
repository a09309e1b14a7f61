"""Tests for deprecated API detection."""

from __future__ import annotations

import textwrap

import pytest

from codeguard.index.staleness import (
    STATUS_DEPRECATED,
    STATUS_FRESH,
    STATUS_STALE,
    StalenessDetector,
    check_code_staleness,
    library_satisfies,
    parse_version,
)
from codeguard.models import DeprecationRule

REACT_17 = {"react": "^17.0.2", "react-dom": "^17.0.2"}


def _code(content: str) -> str:
    return textwrap.dedent(content).lstrip("\n")


def test_legacy_lifecycle_is_deprecated_for_current_react() -> None:
    code = _code(
        """
        class Legacy extends React.Component {
          componentWillMount() {
            this.load();
          }
        }
        """
    )

    result = StalenessDetector().check_staleness(code, REACT_17)

    assert result.status == STATUS_DEPRECATED
    assert [(issue.line, issue.pattern, issue.severity) for issue in result.issues] == [
        (2, "componentWillMount", "error")
    ]
    assert "componentDidMount" in result.issues[0].replacement
    assert result.project_context == REACT_17


def test_library_rules_need_the_library_declared() -> None:
    code = "componentWillMount() {}\nReactDOM.render(<App />, root);\n"
    assert StalenessDetector().check_staleness(code, {}).issues == []


def test_library_rules_respect_declared_version() -> None:
    code = "ReactDOM.render(<App />, document.getElementById('root'));\n"
    detector = StalenessDetector()

    assert detector.check_staleness(code, {"react-dom": "^17.0.2"}).issues == []

    result = detector.check_staleness(code, {"react-dom": "^18.2.0"})
    assert [issue.pattern for issue in result.issues] == ["ReactDOM.render"]
    assert result.status == STATUS_DEPRECATED


def test_unconditional_rules_apply_without_dependencies() -> None:
    code = _code(
        """
        import moment from 'moment';
        var total = 0;
        const head = label.substr(0, 3);
        """
    )

    result = StalenessDetector().check_staleness(code, {})

    assert result.status == STATUS_STALE
    assert sorted((issue.line, issue.pattern) for issue in result.issues) == [
        (1, "moment"),
        (2, "var"),
        (3, ".substr("),
    ]


def test_request_package_and_buffer_constructor_are_errors() -> None:
    code = _code(
        """
        const request = require('request');
        const data = new Buffer(16);
        """
    )
    result = StalenessDetector().check_staleness(code, {})

    assert result.status == STATUS_DEPRECATED
    assert [issue.pattern for issue in result.issues] == ["request", "new Buffer("]


def test_info_only_findings_stay_fresh() -> None:
    result = StalenessDetector().check_staleness("export enum Color { Red }\n", {})
    assert [issue.severity for issue in result.issues] == ["info"]
    assert result.status == STATUS_FRESH


def test_clean_code_is_fresh() -> None:
    code = _code(
        """
        import { format } from 'date-fns';
        export const label = (value: string) => value.slice(0, 3);
        """
    )
    result = StalenessDetector().check_staleness(code, REACT_17)
    assert result.status == STATUS_FRESH
    assert result.issues == []


def test_one_issue_per_line_per_rule() -> None:
    code = "var a = 1, b = new Buffer(1), c = new Buffer(2);\n"
    result = StalenessDetector().check_staleness(code, {})
    assert [issue.pattern for issue in result.issues] == ["new Buffer(", "var"]


def test_matches_inside_comments_are_reported() -> None:
    result = StalenessDetector().check_staleness("// TODO: drop url.parse( usage\n", {})
    assert [issue.pattern for issue in result.issues] == ["url.parse("]


def test_custom_rule_is_matched_literally() -> None:
    detector = StalenessDetector(rules=[])
    detector.add_deprecation(
        DeprecationRule(
            pattern="legacyApi.call(",
            deprecated_in="2.0.0",
            replacement="modernApi.call(",
            severity="error",
        )
    )

    result = detector.check_staleness("legacyApi.call(1);\nlegacyApiXcall(2);\n", {})

    assert [issue.line for issue in result.issues] == [1]
    assert result.issues[0].reason == "Deprecated since 2.0.0"


def test_dependencies_read_from_package_json(repo_builder) -> None:
    repo_builder.write_package_json({"redux": "^4.2.1"}, dev={"next": "13.4.0"})
    code = _code(
        """
        const store = createStore(reducer);
        Page.getInitialProps = async () => ({});
        """
    )

    result = check_code_staleness(repo_builder.path(), code)

    assert result.project_context == {"redux": "^4.2.1", "next": "13.4.0"}
    assert [issue.pattern for issue in result.issues] == ["createStore", "getInitialProps"]
    assert result.status == STATUS_STALE


def test_missing_manifest_yields_empty_context(tmp_path) -> None:
    result = check_code_staleness(tmp_path, "const ok = 1;\n")
    assert result.project_context == {}
    assert result.status == STATUS_FRESH


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("^18.2.0", (18, 2, 0)),
        ("~4.1", (4, 1, 0)),
        (">=16", (16, 0, 0)),
        ("latest", None),
    ],
)
def test_parse_version(value: str, expected) -> None:
    assert parse_version(value) == expected


def test_library_satisfies() -> None:
    assert library_satisfies("^18.0.0", "18.0.0") is True
    assert library_satisfies("17.0.2", "18.0.0") is False
    assert library_satisfies("latest", "18.0.0") is True
