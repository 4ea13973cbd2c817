"""Immutable command values handed from the CLI to the lifecycle controller."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from integrit_remote.errors import IntegritRemoteError
from integrit_remote.notify import NotificationSettings
from integrit_remote.report import ReportStatus
from integrit_remote.sites import SiteState


class Mode(Enum):
    INIT = "init"
    UPDATE = "update"
    CHECK = "check"


@dataclass(slots=True, frozen=True)
class SiteCommand:
    """One lifecycle operation for one site.

    ``host`` is only meaningful for INIT (scaffolds a missing config) and
    ``notification`` only for CHECK.
    """

    mode: Mode
    site: str
    host: str | None = None
    notification: NotificationSettings | None = None

    @classmethod
    def init(cls, site: str, host: str | None = None) -> SiteCommand:
        return cls(mode=Mode.INIT, site=site, host=host)

    @classmethod
    def update(cls, site: str) -> SiteCommand:
        return cls(mode=Mode.UPDATE, site=site)

    @classmethod
    def check(cls, site: str, notification: NotificationSettings | None) -> SiteCommand:
        return cls(mode=Mode.CHECK, site=site, notification=notification)


@dataclass(slots=True)
class OperationOutcome:
    """What happened to one site during one operation."""

    site: str
    mode: Mode
    state: SiteState = SiteState.UNINITIALIZED
    ok: bool = False
    host: str | None = None
    report: str = ""
    report_status: ReportStatus | None = None
    notified: bool = False
    rebaselined: bool = False
    config_created: Path | None = None
    error: IntegritRemoteError | None = None

    @property
    def message(self) -> str:
        return str(self.error) if self.error is not None else ""
