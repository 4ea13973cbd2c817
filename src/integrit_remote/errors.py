"""Exception hierarchy shared by the registry, lifecycle controller and notifier."""

from __future__ import annotations


class IntegritRemoteError(Exception):
    """Base class for failures that abort a single site operation."""


class ConfigError(IntegritRemoteError):
    """Site configuration is missing, unreadable or lacks a usable host line."""


class SiteStateError(IntegritRemoteError):
    """The requested operation does not apply to the site's current state."""


class TransferError(IntegritRemoteError):
    """A file copy between local and remote endpoints failed."""

    def __init__(self, source: str, destination: str) -> None:
        super().__init__(f"Transfer failed: {source} -> {destination}")
        self.source = source
        self.destination = destination


class RemoteExecError(IntegritRemoteError):
    """A remote command exited non-zero or the shell channel faulted."""

    def __init__(self, host: str, command: str, output: str = "") -> None:
        detail = output.strip()
        message = f"Remote command failed on {host}: {command}"
        if detail:
            message = f"{message}\n{detail}"
        super().__init__(message)
        self.host = host
        self.command = command
        self.output = output


class NotificationPreconditionError(IntegritRemoteError):
    """Alert relay settings are incomplete; raised before any remote work starts."""

    def __init__(self, missing: list[str]) -> None:
        super().__init__(
            "Notification settings incomplete; missing: " + ", ".join(missing)
        )
        self.missing = list(missing)


class NotificationDispatchError(IntegritRemoteError):
    """The relay rejected the alert or could not be reached."""


class LocalStorageError(IntegritRemoteError):
    """A local config or database file could not be created, replaced or removed."""
