"""Remote shell and file copy backends."""

from __future__ import annotations

import logging

from integrit_remote.config import RemoteSettings

from .base import Endpoint, ExecResult, RemoteExecutor, remote_ref
from .openssh import OpenSSHExecutor
from .sftp import ParamikoExecutor


def build_executor(settings: RemoteSettings, logger: logging.Logger) -> RemoteExecutor:
    """Instantiate the executor backend selected in the remote settings."""

    if settings.backend == "paramiko":
        return ParamikoExecutor(logger=logger, connect_timeout=settings.connect_timeout_seconds)
    return OpenSSHExecutor(
        logger=logger,
        ssh_command=settings.ssh_command,
        scp_command=settings.scp_command,
        ssh_options=tuple(settings.ssh_options),
    )


__all__ = [
    "Endpoint",
    "ExecResult",
    "OpenSSHExecutor",
    "ParamikoExecutor",
    "RemoteExecutor",
    "build_executor",
    "remote_ref",
]
