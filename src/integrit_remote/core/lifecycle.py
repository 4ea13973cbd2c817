"""Per-site lifecycle: establish, refresh and verify baselines on remote hosts."""

from __future__ import annotations

import logging
import os
import shlex
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from integrit_remote.core.commands import Mode, OperationOutcome, SiteCommand
from integrit_remote.errors import (
    ConfigError,
    IntegritRemoteError,
    LocalStorageError,
    NotificationDispatchError,
    NotificationPreconditionError,
    RemoteExecError,
    SiteStateError,
    TransferError,
)
from integrit_remote.notify import ChangeNotifier, NotificationSettings
from integrit_remote.remote import RemoteExecutor, remote_ref
from integrit_remote.report import ReportStatus, change_lines, classify_report
from integrit_remote.sites import (
    SiteConfig,
    SiteRegistry,
    SiteState,
    config_name,
    current_db_name,
    known_db_name,
    validate_site_name,
)


class Notifier(Protocol):
    def preflight(self) -> None: ...

    def notify(self, host: str, site: str, report: str) -> bool: ...


NotifierFactory = Callable[[NotificationSettings, logging.Logger], Notifier]


@dataclass(slots=True)
class LifecycleController:
    """Drive Init, Update and Check for individual sites.

    Each operation stands alone: it derives the site's state from the Known database,
    stops at the first failed transfer or remote command, and reports the result as an
    OperationOutcome instead of raising. The local baseline is only ever replaced by a
    completed download.
    """

    registry: SiteRegistry
    executor: RemoteExecutor
    binary: Path
    logger: logging.Logger
    binary_name: str = "integrit"
    notifier_factory: NotifierFactory = ChangeNotifier

    def execute(self, command: SiteCommand) -> OperationOutcome:
        if command.mode is Mode.INIT:
            return self.init(command.site, host=command.host)
        if command.mode is Mode.UPDATE:
            return self.update(command.site)
        return self.check(command.site, command.notification)

    def init(self, site: str, host: str | None = None) -> OperationOutcome:
        """Create the first baseline; scaffolds the config when ``host`` is given."""

        outcome = OperationOutcome(site=site, mode=Mode.INIT)
        with self._boundary(outcome):
            outcome.state = self._derive_state(site)
            if outcome.state is SiteState.BASELINED:
                raise SiteStateError(
                    f"Site '{site}' already has a baseline; use --update to refresh it."
                )
            if host is not None and not self.registry.config_for(site).exists():
                outcome.config_created = self.registry.scaffold(site, host)
                self.logger.info("Wrote config %s for %s", outcome.config_created, host)

            config = self._load(site, outcome)
            self._refresh_baseline(config)
            outcome.rebaselined = True
            outcome.state = SiteState.BASELINED
        return outcome

    def update(self, site: str) -> OperationOutcome:
        """Replace the Known database with the remote host's current state."""

        outcome = OperationOutcome(site=site, mode=Mode.UPDATE)
        with self._boundary(outcome):
            outcome.state = self._require_baseline(site)
            config = self._load(site, outcome)
            self._refresh_baseline(config)
            outcome.rebaselined = True
        return outcome

    def check(self, site: str, notification: NotificationSettings | None) -> OperationOutcome:
        """Verify the remote host against the Known database, alerting once on change.

        A changed report is followed by exactly one alert and, once that alert is
        delivered, a re-baseline so the same changes are not reported again. An
        undelivered alert leaves the baseline in place for the next check.
        """

        outcome = OperationOutcome(site=site, mode=Mode.CHECK)
        with self._boundary(outcome):
            if notification is None:
                raise NotificationPreconditionError(["mailserver", "to-address"])
            notifier = self.notifier_factory(notification, self.logger)
            notifier.preflight()

            outcome.state = self._require_baseline(site)
            config = self._load(site, outcome)
            self._stage(config)
            self._transfer(
                str(self.registry.known_db_path(site)),
                remote_ref(config.host, known_db_name(site)),
            )

            outcome.report = self._exec(config.host, self._command("-c", site))
            outcome.report_status = classify_report(outcome.report)
            if outcome.report_status is ReportStatus.CLEAN:
                self.logger.info("Site %s is clean", site)
                return outcome

            self.logger.warning(
                "Site %s reported %s change(s)", site, len(change_lines(outcome.report))
            )
            outcome.notified = notifier.notify(config.host, site, outcome.report)
            if not outcome.notified:
                raise NotificationDispatchError(
                    f"Alert for '{site}' was not delivered; baseline left unchanged."
                )

            self._refresh_baseline(config)
            outcome.rebaselined = True
        return outcome

    @contextmanager
    def _boundary(self, outcome: OperationOutcome) -> Iterator[OperationOutcome]:
        """Record the operation's failure on the outcome instead of letting it escape.

        Local filesystem errors that no step translated are reported as LocalStorageError.
        """

        try:
            yield outcome
        except (IntegritRemoteError, OSError) as exc:
            error = exc if isinstance(exc, IntegritRemoteError) else LocalStorageError(str(exc))
            outcome.ok = False
            outcome.error = error
            self.logger.error("%s of %s failed: %s", outcome.mode.value, outcome.site, error)
        else:
            outcome.ok = True

    def _derive_state(self, site: str) -> SiteState:
        validate_site_name(site)
        return self.registry.state(site)

    def _require_baseline(self, site: str) -> SiteState:
        state = self._derive_state(site)
        if state is SiteState.UNINITIALIZED:
            raise SiteStateError(f"Site '{site}' has no baseline yet; run --init first.")
        return state

    def _load(self, site: str, outcome: OperationOutcome) -> SiteConfig:
        config = self.registry.load(site)
        outcome.host = config.host
        self.logger.debug("Site %s resolves to %s", site, config.host)
        return config

    def _stage(self, config: SiteConfig) -> None:
        """Upload the binary and config, replacing whatever the remote side holds."""

        if not self.binary.is_file():
            raise ConfigError(f"Verification binary not found at {self.binary}")
        self._transfer(str(self.binary), remote_ref(config.host, self.binary_name))
        self._transfer(str(config.path), remote_ref(config.host, config_name(config.site)))

    def _refresh_baseline(self, config: SiteConfig) -> None:
        self._stage(config)
        self._exec(config.host, self._command("-u", config.site))

        known = self.registry.known_db_path(config.site)
        try:
            known.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise LocalStorageError(
                f"Unable to create database directory {known.parent}: {exc}"
            ) from exc

        partial = known.with_name(f"{known.name}.partial")
        source = remote_ref(config.host, current_db_name(config.site))
        try:
            self._transfer(source, str(partial))
            try:
                os.replace(partial, known)
            except OSError as exc:
                raise LocalStorageError(f"Unable to replace {known}: {exc}") from exc
        except IntegritRemoteError:
            self._discard_partial(partial)
            raise
        self.logger.info("Baseline for %s replaced from %s", config.site, source)

    def _discard_partial(self, partial: Path) -> None:
        try:
            partial.unlink(missing_ok=True)
        except OSError as exc:
            self.logger.warning("Could not remove incomplete download %s: %s", partial, exc)

    def _command(self, flag: str, site: str) -> str:
        return f"./{self.binary_name} {flag} -C {shlex.quote(config_name(site))}"

    def _transfer(self, source: str, destination: str) -> None:
        if not self.executor.transfer(source, destination):
            raise TransferError(source, destination)

    def _exec(self, host: str, command: str) -> str:
        result = self.executor.execute(host, command)
        if not result.success:
            raise RemoteExecError(host, command, result.output)
        return result.output

