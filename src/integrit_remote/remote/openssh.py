"""Remote executor that shells out to the OpenSSH ``ssh`` and ``scp`` clients."""

from __future__ import annotations

import logging
import subprocess
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

from integrit_remote.remote.base import ExecResult

Runner = Callable[..., subprocess.CompletedProcess]


@dataclass(slots=True)
class OpenSSHExecutor:
    """Run commands with ``ssh host command`` and copy files with ``scp src dst``.

    Authentication is left to the user's ssh configuration (pre-shared keys); the
    default ``BatchMode=yes`` option makes a missing key fail instead of prompting.
    """

    logger: logging.Logger
    ssh_command: str = "ssh"
    scp_command: str = "scp"
    ssh_options: Sequence[str] = field(default_factory=lambda: ("-o", "BatchMode=yes"))
    runner: Runner = subprocess.run

    def execute(self, host: str, command: str) -> ExecResult:
        args = [self.ssh_command, *self.ssh_options, host, command]
        self.logger.info("Executing on %s: %s", host, command)
        completed = self._run(args)
        if completed is None:
            return ExecResult(success=False, output=f"Unable to start {self.ssh_command}")

        if completed.returncode != 0:
            diagnostic = _join_output(completed.stdout, completed.stderr)
            self.logger.error(
                "Remote command on %s exited %s: %s", host, completed.returncode, diagnostic
            )
            return ExecResult(
                success=False, output=diagnostic, exit_status=completed.returncode
            )

        self.logger.debug("Remote command on %s succeeded", host)
        return ExecResult(success=True, output=completed.stdout or "", exit_status=0)

    def transfer(self, source: str, destination: str) -> bool:
        args = [self.scp_command, "-q", *self.ssh_options, source, destination]
        self.logger.info("Transferring %s -> %s", source, destination)
        completed = self._run(args)
        if completed is None:
            return False
        if completed.returncode != 0:
            self.logger.error(
                "Transfer %s -> %s failed (exit %s): %s",
                source,
                destination,
                completed.returncode,
                _join_output(completed.stdout, completed.stderr),
            )
            return False
        return True

    def close(self) -> None:
        return None

    def __enter__(self) -> OpenSSHExecutor:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _run(self, args: list[str]) -> subprocess.CompletedProcess | None:
        self.logger.debug("Running %s", args)
        try:
            return self.runner(args, capture_output=True, text=True, check=False)
        except OSError as exc:
            self.logger.error("Unable to start %s: %s", args[0], exc)
            return None


def _join_output(stdout: str | None, stderr: str | None) -> str:
    parts = [part.strip() for part in (stdout, stderr) if part and part.strip()]
    return "\n".join(parts)
