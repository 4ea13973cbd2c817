"""Remote integrity verification for a fleet of managed sites."""

from __future__ import annotations

import tomllib
from functools import lru_cache
from importlib import metadata
from pathlib import Path

DISTRIBUTION_NAME = "integrit-remote"


def _checkout_version(start: Path) -> str | None:
    """Return `[project].version` from the nearest pyproject.toml owned by this project."""

    for directory in (start, *start.parents):
        pyproject = directory / "pyproject.toml"
        if not pyproject.is_file():
            continue
        try:
            with pyproject.open("rb") as handle:
                project = tomllib.load(handle).get("project")
        except (OSError, tomllib.TOMLDecodeError):  # pragma: no cover - filesystem errors
            return None
        if not isinstance(project, dict) or project.get("name") != DISTRIBUTION_NAME:
            return None
        version = project.get("version")
        if isinstance(version, str) and version.strip():
            return version.strip()
        return None
    return None


@lru_cache(maxsize=1)
def get_version() -> str:
    """Return the package version.

    A source checkout reads `pyproject.toml` directly; an installed copy falls back to the
    distribution metadata generated from it.
    """

    version = _checkout_version(Path(__file__).resolve().parent)
    if version is not None:
        return version
    try:
        return metadata.version(DISTRIBUTION_NAME)
    except metadata.PackageNotFoundError as exc:  # pragma: no cover - occurs in dev
        raise RuntimeError("Unable to determine integrit-remote version.") from exc


__all__ = ["DISTRIBUTION_NAME", "get_version"]
