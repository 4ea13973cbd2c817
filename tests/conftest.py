"""Shared fixtures: a simulated remote host and a local site workspace."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

import pytest

from integrit_remote.core import LifecycleController
from integrit_remote.remote import Endpoint, ExecResult
from integrit_remote.sites import SiteRegistry


class FakeRemote:
    """In-memory remote hosts that behave like integrit for ``-u`` and ``-c``.

    ``filesystem[host]`` is the state integrit would scan; an update snapshots it into the
    current database and a check diffs it against the uploaded known database.
    """

    def __init__(self) -> None:
        self.files: dict[str, dict[str, bytes]] = {}
        self.filesystem: dict[str, str] = {}
        self.calls: list[tuple[str, ...]] = []
        self.fail_exec_flags: set[str] = set()
        self.fail_transfers: set[str] = set()
        self.closed = False

    def execute(self, host: str, command: str) -> ExecResult:
        self.calls.append(("execute", host, command))
        flag = command.split()[1]
        if flag in self.fail_exec_flags:
            return ExecResult(success=False, output="integrit: simulated failure", exit_status=1)

        remote = self.files.setdefault(host, {})
        site = command.split()[-1].removesuffix(".integrit.conf")
        state = self.filesystem.get(host, "").encode("utf-8")
        if flag == "-u":
            remote[f"{site}.integrit.current.cdb"] = state
            return ExecResult(success=True, output="", exit_status=0)

        known = remote.get(f"{site}.integrit.known.cdb", b"")
        if known == state:
            return ExecResult(success=True, output="no changes detected\n", exit_status=0)
        return ExecResult(
            success=True,
            output="integrit: checking\nchanged: /etc/passwd   s(1024:1030)\nnew: /tmp/x\n",
            exit_status=0,
        )

    def transfer(self, source: str, destination: str) -> bool:
        self.calls.append(("transfer", source, destination))
        if any(marker in source or marker in destination for marker in self.fail_transfers):
            return False

        src = Endpoint.parse(source)
        dst = Endpoint.parse(destination)
        if src.is_remote:
            data = self.files.get(src.host, {}).get(src.path)
            if data is None:
                return False
        else:
            data = Path(src.path).read_bytes()

        if dst.is_remote:
            self.files.setdefault(dst.host, {})[dst.path] = data
        else:
            Path(dst.path).write_bytes(data)
        return True

    def close(self) -> None:
        self.closed = True

    def __enter__(self) -> FakeRemote:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def count(self, kind: str) -> int:
        return sum(1 for call in self.calls if call[0] == kind)


@dataclass
class FakeNotifier:
    """Records alerts instead of sending them."""

    delivered: bool = True
    preflights: int = 0
    sent: list[tuple[str, str, str]] = field(default_factory=list)

    def preflight(self) -> None:
        self.preflights += 1

    def notify(self, host: str, site: str, report: str) -> bool:
        self.sent.append((host, site, report))
        return self.delivered


@dataclass
class Workspace:
    root: Path
    config_dir: Path
    database_dir: Path
    binary: Path
    registry: SiteRegistry

    def add_site(self, name: str, host: str) -> Path:
        path = self.config_dir / f"{name}.integrit.conf"
        path.write_text(f"# Host: {host}\nroot=/\n", encoding="utf-8")
        return path

    def known_db(self, name: str) -> Path:
        return self.database_dir / f"{name}.integrit.known.cdb"


@pytest.fixture
def logger() -> logging.Logger:
    log = logging.getLogger("integrit-remote-test")
    log.addHandler(logging.NullHandler())
    return log


@pytest.fixture
def fake_remote() -> FakeRemote:
    return FakeRemote()


@pytest.fixture
def workspace(tmp_path) -> Workspace:
    config_dir = tmp_path / "config-files"
    database_dir = tmp_path / "databases"
    binary = tmp_path / "bin" / "integrit"
    config_dir.mkdir()
    database_dir.mkdir()
    binary.parent.mkdir()
    binary.write_bytes(b"\x7fELF integrit")
    return Workspace(
        root=tmp_path,
        config_dir=config_dir,
        database_dir=database_dir,
        binary=binary,
        registry=SiteRegistry(config_dir=config_dir, database_dir=database_dir),
    )


@pytest.fixture
def fake_notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
def controller(workspace, fake_remote, fake_notifier, logger):
    return LifecycleController(
        registry=workspace.registry,
        executor=fake_remote,
        binary=workspace.binary,
        logger=logger,
        notifier_factory=lambda settings, log: fake_notifier,
    )
