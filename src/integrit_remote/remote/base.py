"""Remote executor contract shared by the OpenSSH and Paramiko backends."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


@dataclass(slots=True, frozen=True)
class ExecResult:
    """Outcome of one remote command."""

    success: bool
    output: str
    exit_status: int | None = None


@dataclass(slots=True, frozen=True)
class Endpoint:
    """One side of a transfer: a local path, or a path on ``host``."""

    path: str
    host: str | None = None

    @property
    def is_remote(self) -> bool:
        return self.host is not None

    @classmethod
    def parse(cls, ref: str) -> Endpoint:
        """Split ``host:path`` references the way scp does.

        A colon counts as a host separator only when no slash precedes it, so
        ``/srv/a:b`` stays local while ``alice@web1:site.conf`` is remote.
        """

        head, sep, tail = ref.partition(":")
        if sep and head and "/" not in head:
            return cls(path=tail or ".", host=head)
        return cls(path=ref)

    def __str__(self) -> str:
        return f"{self.host}:{self.path}" if self.host is not None else self.path


def remote_ref(host: str, path: str) -> str:
    """Build a ``host:path`` transfer reference."""

    return f"{host}:{path}"


class RemoteExecutor(Protocol):
    """Remote shell plus file copy capability.

    Neither method raises for channel failures: callers inspect the returned
    value. Calls block until the remote side finishes; no timeout or retry is applied.
    """

    def execute(self, host: str, command: str) -> ExecResult:
        """Run ``command`` on ``host`` and capture its output."""

    def transfer(self, source: str, destination: str) -> bool:
        """Copy ``source`` to ``destination``; either may be local or ``host:path``."""

    def close(self) -> None:
        """Release any connections held by the executor."""

    def __enter__(self) -> RemoteExecutor: ...

    def __exit__(self, *exc_info: object) -> None: ...
