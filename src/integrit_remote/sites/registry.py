"""Site registry: naming convention, host resolution and listing."""

from __future__ import annotations

import re
from collections.abc import Iterator
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from importlib import resources
from pathlib import Path
from string import Template

from integrit_remote.errors import ConfigError, LocalStorageError

CONFIG_SUFFIX = ".integrit.conf"
KNOWN_DB_SUFFIX = ".integrit.known.cdb"
CURRENT_DB_SUFFIX = ".integrit.current.cdb"

SITE_NAME_PATTERN = re.compile(r"[A-Za-z0-9][A-Za-z0-9._-]*")
HOST_LINE_PATTERN = re.compile(r"^# Host:[ \t]*(.*?)[ \t]*$", re.MULTILINE)
HOST_DESCRIPTOR_PATTERN = re.compile(r"[^@\s-][^@\s]*@[^@\s]+")


class SiteState(Enum):
    """Lifecycle state derived from the presence of the Known database."""

    UNINITIALIZED = "uninitialized"
    BASELINED = "baselined"


@dataclass(slots=True, frozen=True)
class SiteConfig:
    """A site's configuration artifact together with its resolved host descriptor."""

    site: str
    path: Path
    content: str
    host: str


@dataclass(slots=True, frozen=True)
class SiteListing:
    name: str
    last_modified: datetime
    state: SiteState


def validate_site_name(site: str) -> str:
    """Reject names that would escape the config directory or need shell quoting."""

    if not SITE_NAME_PATTERN.fullmatch(site or ""):
        raise ConfigError(f"Invalid site name: {site!r}")
    return site


def resolve_host(config_content: str) -> str:
    """Extract the ``user@host`` descriptor from a ``# Host:`` line.

    Exactly one descriptor must be present; repeating the same line is tolerated.
    """

    found = {match.group(1) for match in HOST_LINE_PATTERN.finditer(config_content)}
    if not found:
        raise ConfigError("Config has no '# Host: <user>@<host>' line")
    if len(found) > 1:
        raise ConfigError(f"Config names more than one host: {', '.join(sorted(found))}")

    descriptor = found.pop()
    if not HOST_DESCRIPTOR_PATTERN.fullmatch(descriptor):
        raise ConfigError(f"Malformed host descriptor: {descriptor!r}")
    return descriptor


def config_name(site: str) -> str:
    return f"{site}{CONFIG_SUFFIX}"


def known_db_name(site: str) -> str:
    return f"{site}{KNOWN_DB_SUFFIX}"


def current_db_name(site: str) -> str:
    return f"{site}{CURRENT_DB_SUFFIX}"


@dataclass(slots=True)
class SiteRegistry:
    """Maps site names onto config and baseline database artifacts."""

    config_dir: Path
    database_dir: Path

    def config_for(self, site: str) -> Path:
        """Return where the site's config is expected; existence is not checked."""

        return self.config_dir / config_name(validate_site_name(site))

    def known_db_path(self, site: str) -> Path:
        return self.database_dir / known_db_name(validate_site_name(site))

    def state(self, site: str) -> SiteState:
        if self.known_db_path(site).is_file():
            return SiteState.BASELINED
        return SiteState.UNINITIALIZED

    def load(self, site: str) -> SiteConfig:
        """Read the site's config and resolve its host; re-read on every call."""

        path = self.config_for(site)
        try:
            content = path.read_text(encoding="utf-8")
        except FileNotFoundError as exc:
            raise ConfigError(f"No config for site '{site}' at {path}") from exc
        except (OSError, UnicodeDecodeError) as exc:
            raise ConfigError(f"Unable to read config {path}: {exc}") from exc

        try:
            host = resolve_host(content)
        except ConfigError as exc:
            raise ConfigError(f"{path}: {exc}") from exc
        return SiteConfig(site=site, path=path, content=content, host=host)

    def scaffold(self, site: str, host: str, template: str | None = None) -> Path:
        """Write a starter config for ``site`` targeting ``host``; never overwrites."""

        path = self.config_for(site)
        if not HOST_DESCRIPTOR_PATTERN.fullmatch(host):
            raise ConfigError(f"Malformed host descriptor: {host!r}")
        if path.exists():
            raise ConfigError(f"Config for site '{site}' already exists at {path}")

        source = template if template is not None else _packaged_site_template()
        content = Template(source).safe_substitute(
            host=host,
            site=site,
            known_db=known_db_name(site),
            current_db=current_db_name(site),
        )
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with path.open("x", encoding="utf-8") as handle:
                handle.write(content)
        except FileExistsError as exc:
            if path.exists():
                raise ConfigError(f"Config for site '{site}' already exists at {path}") from exc
            raise LocalStorageError(f"Unable to write config {path}: {exc}") from exc
        except OSError as exc:
            raise LocalStorageError(f"Unable to write config {path}: {exc}") from exc
        return path

    def list_sites(self) -> list[SiteListing]:
        """Enumerate configured sites from the live directory state, sorted by name."""

        return sorted(self._iter_sites(), key=lambda listing: listing.name)

    def _iter_sites(self) -> Iterator[SiteListing]:
        if not self.config_dir.is_dir():
            return
        for path in self.config_dir.glob(f"*{CONFIG_SUFFIX}"):
            if not path.is_file():
                continue
            name = path.name.removesuffix(CONFIG_SUFFIX)
            if not SITE_NAME_PATTERN.fullmatch(name):
                continue
            yield SiteListing(
                name=name,
                last_modified=datetime.fromtimestamp(path.stat().st_mtime),
                state=self.state(name),
            )


def _packaged_site_template() -> str:
    return (
        resources.files("integrit_remote.sites")
        .joinpath("templates/site.integrit.conf")
        .read_text(encoding="utf-8")
    )
