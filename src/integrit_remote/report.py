"""Classification of the verification binary's check output."""

from __future__ import annotations

from enum import Enum

# integrit prefixes every difference it reports with one of these.
CHANGE_PREFIXES = ("changed:", "new:", "deleted:")


class ReportStatus(Enum):
    CHANGED = "changed"
    CLEAN = "clean"


def change_lines(report: str) -> list[str]:
    """Return the report lines that describe a difference from the baseline."""

    return [line for line in report.splitlines() if line.startswith(CHANGE_PREFIXES)]


def classify_report(report: str) -> ReportStatus:
    """A report is changed when at least one line starts with a change prefix."""

    if change_lines(report):
        return ReportStatus.CHANGED
    return ReportStatus.CLEAN
