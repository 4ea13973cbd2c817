"""Remote executor built on paramiko's SSH client and SFTP channel."""

from __future__ import annotations

import logging
import os
import shutil
import stat
from collections.abc import Callable
from dataclasses import dataclass, field

import paramiko

from integrit_remote.remote.base import Endpoint, ExecResult

ClientFactory = Callable[[], paramiko.SSHClient]


def split_descriptor(descriptor: str) -> tuple[str | None, str]:
    """Split ``user@host`` into its parts; the user is optional."""

    user, sep, hostname = descriptor.rpartition("@")
    if not sep:
        return None, descriptor
    return user or None, hostname


@dataclass(slots=True)
class ParamikoExecutor:
    """Same contract as the OpenSSH backend without external binaries.

    One client is opened per host descriptor and reused for the rest of the invocation.
    Host keys come from the user's ``known_hosts``; unknown hosts are rejected.
    """

    logger: logging.Logger
    connect_timeout: float | None = None
    client_factory: ClientFactory = paramiko.SSHClient
    _clients: dict[str, paramiko.SSHClient] = field(default_factory=dict, init=False)

    def execute(self, host: str, command: str) -> ExecResult:
        self.logger.info("Executing on %s: %s", host, command)
        try:
            output, status = self._run(self._client(host), command)
        except (paramiko.SSHException, OSError) as exc:
            self.logger.error("Remote command on %s faulted: %s", host, exc)
            self._discard(host)
            return ExecResult(success=False, output=str(exc))

        if status != 0:
            diagnostic = output.strip()
            self.logger.error("Remote command on %s exited %s: %s", host, status, diagnostic)
            return ExecResult(success=False, output=diagnostic, exit_status=status)
        return ExecResult(success=True, output=output, exit_status=0)

    def transfer(self, source: str, destination: str) -> bool:
        src = Endpoint.parse(source)
        dst = Endpoint.parse(destination)
        self.logger.info("Transferring %s -> %s", src, dst)

        if src.is_remote and dst.is_remote:
            self.logger.error("Remote-to-remote copy is not supported: %s -> %s", src, dst)
            return False

        try:
            if not src.is_remote and not dst.is_remote:
                shutil.copyfile(src.path, dst.path)
                return True
            with self._client(src.host or dst.host).open_sftp() as sftp:
                if src.is_remote:
                    sftp.get(src.path, dst.path)
                else:
                    sftp.put(src.path, dst.path)
                    sftp.chmod(dst.path, stat.S_IMODE(os.stat(src.path).st_mode))
        except (paramiko.SSHException, OSError) as exc:
            self.logger.error("Transfer %s -> %s failed: %s", src, dst, exc)
            return False
        return True

    def close(self) -> None:
        for host in list(self._clients):
            self._discard(host)

    def __enter__(self) -> ParamikoExecutor:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _client(self, host: str) -> paramiko.SSHClient:
        client = self._clients.get(host)
        if client is not None:
            return client

        username, hostname = split_descriptor(host)
        client = self.client_factory()
        client.load_system_host_keys()
        client.set_missing_host_key_policy(paramiko.RejectPolicy())
        self.logger.debug("Connecting to %s as %s", hostname, username or "<default>")
        try:
            client.connect(hostname=hostname, username=username, timeout=self.connect_timeout)
        except Exception:
            client.close()
            raise
        self._clients[host] = client
        return client

    @staticmethod
    def _run(client: paramiko.SSHClient, command: str) -> tuple[str, int]:
        """Run ``command`` with stderr merged into the stdout stream."""

        channel = client.get_transport().open_session()
        try:
            channel.set_combine_stderr(True)
            channel.exec_command(command)
            with channel.makefile("rb") as stream:
                output = stream.read().decode("utf-8", errors="replace")
            return output, channel.recv_exit_status()
        finally:
            channel.close()

    def _discard(self, host: str) -> None:
        client = self._clients.pop(host, None)
        if client is not None:
            client.close()
