"""Deprecated API detection gated on the project's declared dependencies.

Rules are matched line by line against raw text, so occurrences inside
comments and string literals are reported as well. This keeps the detector
independent of the parser and is a known source of false positives.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Pattern, Tuple

from ..logging import get_logger
from ..manifest import load_project_dependencies
from ..models import DeprecationRule, StalenessIssue, StalenessResult

logger = get_logger("staleness")

STATUS_FRESH = "FRESH"
STATUS_STALE = "STALE"
STATUS_DEPRECATED = "DEPRECATED"

_VERSION = re.compile(r"(\d+)(?:\.(\d+))?(?:\.(\d+))?")

DEFAULT_DEPRECATIONS: Tuple[DeprecationRule, ...] = (
    DeprecationRule(
        pattern="componentWillMount",
        regex=r"\bcomponentWillMount\s*\(",
        library="react",
        deprecated_in="16.9.0",
        replacement="useEffect(() => { ... }, []) or componentDidMount",
        severity="error",
        reason="Legacy lifecycle method, unsafe with concurrent rendering",
        docs="https://react.dev/reference/react/Component#unsafe_componentwillmount",
    ),
    DeprecationRule(
        pattern="componentWillReceiveProps",
        regex=r"\bcomponentWillReceiveProps\s*\(",
        library="react",
        deprecated_in="16.9.0",
        replacement="getDerivedStateFromProps or useEffect",
        severity="error",
        reason="Legacy lifecycle method, unsafe with concurrent rendering",
        docs="https://react.dev/reference/react/Component#unsafe_componentwillreceiveprops",
    ),
    DeprecationRule(
        pattern="componentWillUpdate",
        regex=r"\bcomponentWillUpdate\s*\(",
        library="react",
        deprecated_in="16.9.0",
        replacement="getSnapshotBeforeUpdate or useEffect",
        severity="error",
        reason="Legacy lifecycle method, unsafe with concurrent rendering",
        docs="https://react.dev/reference/react/Component#unsafe_componentwillupdate",
    ),
    DeprecationRule(
        pattern="ReactDOM.render",
        regex=r"\bReactDOM\.render\s*\(",
        library="react-dom",
        deprecated_in="18.0.0",
        replacement="createRoot(container).render(element)",
        severity="error",
        reason="Legacy root API; the app runs as if it were React 17",
        docs="https://react.dev/reference/react-dom/render",
    ),
    DeprecationRule(
        pattern="moment",
        regex=r"""(?:from\s+['"]moment['"]|require\(\s*['"]moment['"]\s*\))""",
        deprecated_in="2.29.4",
        replacement="date-fns, dayjs or the Intl API",
        severity="warning",
        reason="moment is in maintenance mode and is not tree-shakeable",
        docs="https://momentjs.com/docs/#/-project-status/",
    ),
    DeprecationRule(
        pattern="request",
        regex=r"""(?:from\s+['"]request['"]|require\(\s*['"]request['"]\s*\))""",
        deprecated_in="2.88.2",
        replacement="native fetch, undici or axios",
        severity="error",
        reason="The request package is deprecated and unmaintained",
        docs="https://github.com/request/request/issues/3142",
    ),
    DeprecationRule(
        pattern="createStore",
        regex=r"\bcreateStore\s*\(",
        library="redux",
        deprecated_in="4.2.0",
        replacement="configureStore from @reduxjs/toolkit",
        severity="warning",
        reason="createStore is marked deprecated in favour of Redux Toolkit",
        docs="https://redux.js.org/introduction/why-rtk-is-redux-today",
    ),
    DeprecationRule(
        pattern="new Buffer(",
        regex=r"\bnew\s+Buffer\s*\(",
        deprecated_in="6.0.0",
        replacement="Buffer.from() or Buffer.alloc()",
        severity="error",
        reason="The Buffer constructor is unsafe and deprecated",
        docs="https://nodejs.org/api/buffer.html#new-bufferarray",
    ),
    DeprecationRule(
        pattern="getInitialProps",
        regex=r"\bgetInitialProps\b",
        library="next",
        deprecated_in="13.0.0",
        replacement="getServerSideProps, getStaticProps or App Router data fetching",
        severity="warning",
        reason="getInitialProps disables automatic static optimization",
        docs="https://nextjs.org/docs/pages/api-reference/functions/get-initial-props",
    ),
    DeprecationRule(
        pattern="var",
        regex=r"\bvar\s+[A-Za-z_$]",
        deprecated_in="ES2015",
        replacement="const or let",
        severity="warning",
        reason="var is function-scoped and hoisted",
    ),
    DeprecationRule(
        pattern="enum",
        regex=r"\benum\s+[A-Za-z_$]",
        deprecated_in="TypeScript 5.0",
        replacement="a const object with 'as const' or a union of literal types",
        severity="info",
        reason="Enums emit runtime code and are unsupported by type-stripping tools",
    ),
    DeprecationRule(
        pattern=".substr(",
        regex=r"\.substr\s*\(",
        deprecated_in="ES5",
        replacement=".slice() or .substring()",
        severity="warning",
        reason="String.prototype.substr is a legacy Annex B feature",
    ),
    DeprecationRule(
        pattern="url.parse(",
        regex=r"\burl\.parse\s*\(",
        deprecated_in="11.0.0",
        replacement="new URL(input)",
        severity="warning",
        reason="The legacy URL parser is lenient and inconsistent with WHATWG URL",
        docs="https://nodejs.org/api/url.html#urlparseurlstring-parsequerystring-slashesdenotehost",
    ),
    DeprecationRule(
        pattern="fs.exists(",
        regex=r"\bfs\.exists\s*\(",
        deprecated_in="1.0.0",
        replacement="fs.existsSync() or fs.promises.access()",
        severity="warning",
        reason="fs.exists has an inconsistent callback signature",
        docs="https://nodejs.org/api/fs.html#fsexistspath-callback",
    ),
)


def parse_version(value: str) -> Optional[Tuple[int, int, int]]:
    """Lowest concrete version mentioned by a range like ``^18.2.0`` or ``>=4``."""
    match = _VERSION.search(value)
    if not match:
        return None
    major, minor, patch = match.groups()
    return int(major), int(minor or 0), int(patch or 0)


def library_satisfies(declared: str, deprecated_in: str) -> bool:
    """True when the declared range is at or past the version that deprecated the API.

    Ranges or versions that cannot be read (``latest``, git URLs) count as satisfied.
    """
    declared_version = parse_version(declared)
    threshold = parse_version(deprecated_in)
    if declared_version is None or threshold is None:
        return True
    return declared_version >= threshold


class StalenessDetector:
    """Scans source text for uses of known-obsolete APIs."""

    def __init__(
        self,
        root: str | Path | None = None,
        rules: Iterable[DeprecationRule] | None = None,
    ) -> None:
        self.root = Path(root).expanduser().resolve() if root is not None else None
        self.rules: List[DeprecationRule] = list(DEFAULT_DEPRECATIONS if rules is None else rules)
        self._compiled: Dict[DeprecationRule, Pattern[str]] = {}
        self._dependencies: Optional[Dict[str, str]] = None

    def add_deprecation(self, rule: DeprecationRule) -> None:
        self.rules.append(rule)

    def load_project_dependencies(self) -> Dict[str, str]:
        if self._dependencies is None:
            self._dependencies = load_project_dependencies(self.root) if self.root else {}
            logger.debug("Loaded %d declared dependencies", len(self._dependencies))
        return self._dependencies

    def check_staleness(
        self, code: str, project_deps: Dict[str, str] | None = None
    ) -> StalenessResult:
        deps = self.load_project_dependencies() if project_deps is None else project_deps
        lines = code.split("\n")
        issues: List[StalenessIssue] = []
        for rule in self.rules:
            if not self._applies(rule, deps):
                continue
            regex = self._regex(rule)
            for number, line in enumerate(lines, start=1):
                if regex.search(line):
                    issues.append(
                        StalenessIssue(
                            line=number,
                            pattern=rule.pattern,
                            severity=rule.severity,
                            reason=rule.reason or f"Deprecated since {rule.deprecated_in}",
                            replacement=rule.replacement,
                            docs=rule.docs,
                        )
                    )
        return StalenessResult(status=_status(issues), issues=issues, project_context=dict(deps))

    @staticmethod
    def _applies(rule: DeprecationRule, deps: Dict[str, str]) -> bool:
        if rule.library is None:
            return True
        declared = deps.get(rule.library)
        if declared is None:
            return False
        return library_satisfies(declared, rule.deprecated_in)

    def _regex(self, rule: DeprecationRule) -> Pattern[str]:
        compiled = self._compiled.get(rule)
        if compiled is None:
            compiled = re.compile(rule.regex) if rule.regex else re.compile(re.escape(rule.pattern))
            self._compiled[rule] = compiled
        return compiled


def check_code_staleness(root: str | Path, code: str) -> StalenessResult:
    return StalenessDetector(root).check_staleness(code)


def _status(issues: List[StalenessIssue]) -> str:
    severities = {issue.severity for issue in issues}
    if "error" in severities:
        return STATUS_DEPRECATED
    if "warning" in severities:
        return STATUS_STALE
    return STATUS_FRESH


__all__ = [
    "DEFAULT_DEPRECATIONS",
    "STATUS_DEPRECATED",
    "STATUS_FRESH",
    "STATUS_STALE",
    "StalenessDetector",
    "check_code_staleness",
    "library_satisfies",
    "parse_version",
]
