"""Declared project dependencies, read from package manifests."""

from __future__ import annotations

import json
import re
import tomllib
from pathlib import Path
from typing import Dict

_REQUIREMENT_SPLIT = re.compile(r"[<>=!~;\[ ]")
_VERSION_PREFIX = re.compile(r"[<>=!~]+\s*")


def load_node_dependencies(root: Path) -> Dict[str, str]:
    """Return ``name -> version range`` from package.json dependencies and devDependencies."""
    package_json = root / "package.json"
    if not package_json.exists():
        return {}

    try:
        data = json.loads(package_json.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError):
        return {}
    if not isinstance(data, dict):
        return {}

    deps: Dict[str, str] = {}
    for key in ("dependencies", "devDependencies"):
        section = data.get(key, {})
        if isinstance(section, dict):
            for name, version in section.items():
                deps[str(name)] = str(version)
    return deps


def load_python_dependencies(root: Path) -> Dict[str, str]:
    """Collect Python dependencies from requirements.txt and pyproject.toml."""
    deps: Dict[str, str] = {}

    requirements = root / "requirements.txt"
    if requirements.exists():
        deps.update(_parse_requirements(requirements))

    pyproject = root / "pyproject.toml"
    if pyproject.exists():
        deps.update(_parse_pyproject(pyproject))

    return deps


def load_project_dependencies(root: Path) -> Dict[str, str]:
    deps = load_python_dependencies(root)
    deps.update(load_node_dependencies(root))
    return deps


def _parse_requirements(path: Path) -> Dict[str, str]:
    packages: Dict[str, str] = {}
    try:
        lines = path.read_text(encoding="utf-8").splitlines()
    except OSError:
        return {}
    for line in lines:
        stripped = line.strip()
        if not stripped or stripped.startswith(("#", "-")):
            continue
        name, version = _split_requirement(stripped)
        if name:
            packages[name] = version
    return packages


def _parse_pyproject(path: Path) -> Dict[str, str]:
    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except (OSError, tomllib.TOMLDecodeError):
        return {}

    packages: Dict[str, str] = {}
    project = data.get("project")
    if isinstance(project, dict):
        requirements = list(project.get("dependencies", []) or [])
        optional = project.get("optional-dependencies", {}) or {}
        for values in optional.values():
            requirements.extend(values or [])
        for requirement in requirements:
            if isinstance(requirement, str):
                name, version = _split_requirement(requirement)
                if name:
                    packages[name] = version

    tool = data.get("tool")
    poetry = tool.get("poetry", {}) if isinstance(tool, dict) else {}
    if isinstance(poetry, dict):
        for name, spec in (poetry.get("dependencies", {}) or {}).items():
            if name.lower() == "python":
                continue
            if isinstance(spec, dict):
                spec = spec.get("version", "*")
            packages[name] = str(spec)
    return packages


def _split_requirement(requirement: str) -> tuple[str, str]:
    name = _REQUIREMENT_SPLIT.split(requirement, 1)[0].strip()
    remainder = requirement[len(name):].split(";", 1)[0].strip()
    if remainder.startswith("["):
        remainder = remainder.split("]", 1)[-1].strip()
    version = _VERSION_PREFIX.sub("", remainder.split(",", 1)[0]).strip()
    return name, version or "*"


__all__ = ["load_node_dependencies", "load_project_dependencies", "load_python_dependencies"]
