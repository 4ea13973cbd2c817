"""Alert rendering and dispatch through an SMTP relay."""

from __future__ import annotations

import logging
import smtplib
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.message import EmailMessage
from importlib import resources
from pathlib import Path
from string import Template

from integrit_remote.config import NotifySettings
from integrit_remote.errors import (
    ConfigError,
    NotificationDispatchError,
    NotificationPreconditionError,
)
from integrit_remote.report import change_lines

SmtpFactory = Callable[..., smtplib.SMTP]


@dataclass(slots=True, frozen=True)
class NotificationSettings:
    """Resolved relay settings for one invocation."""

    mailserver: str | None
    to_address: str | None
    from_address: str = "integrit@test.com"
    port: int = 25
    subject: str = "Changes detected on $host"
    template: Path | None = None

    @classmethod
    def from_config(
        cls,
        config: NotifySettings,
        *,
        mailserver: str | None = None,
        from_address: str | None = None,
        to_address: str | None = None,
    ) -> NotificationSettings:
        """Overlay explicit values (CLI/environment) on the configured defaults."""

        return cls(
            mailserver=mailserver or config.mailserver,
            to_address=to_address or config.to_address,
            from_address=from_address or config.from_address,
            port=config.port,
            subject=config.subject,
            template=config.template,
        )

    @property
    def recipients(self) -> list[str]:
        """Addresses from a comma-separated ``to_address``, blanks dropped."""

        if not self.to_address:
            return []
        return [part.strip() for part in self.to_address.split(",") if part.strip()]

    def missing(self) -> list[str]:
        absent = []
        if not self.mailserver:
            absent.append("mailserver")
        if not self.recipients:
            absent.append("to-address")
        return absent

    def validate(self) -> NotificationSettings:
        """Raise before any remote work when the relay cannot possibly be used."""

        absent = self.missing()
        if absent:
            raise NotificationPreconditionError(absent)
        return self


def load_template(path: Path | None) -> str:
    """Return the alert body template from ``path`` or the packaged default."""

    if path is None:
        return (
            resources.files("integrit_remote.notify")
            .joinpath("templates/alert.txt")
            .read_text(encoding="utf-8")
        )
    try:
        return path.expanduser().read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Unable to read alert template {path}: {exc}") from exc


@dataclass(slots=True)
class ChangeNotifier:
    """Send one alert per detected change."""

    settings: NotificationSettings
    logger: logging.Logger
    smtp_factory: SmtpFactory = smtplib.SMTP
    _template: str | None = field(default=None, init=False, repr=False)

    def preflight(self) -> None:
        """Check relay settings and load the body template before any remote work."""

        self.settings.validate()
        self._template = load_template(self.settings.template)

    def render(self, host: str, site: str, report: str) -> EmailMessage:
        if self._template is None:
            self._template = load_template(self.settings.template)

        values = {
            "host": host,
            "site": site,
            "report": report.rstrip("\n"),
            "change_count": str(len(change_lines(report))),
            "timestamp": datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC"),
        }
        message = EmailMessage()
        message["From"] = self.settings.from_address
        message["To"] = ", ".join(self.settings.recipients)
        message["Subject"] = Template(self.settings.subject).safe_substitute(values)
        message.set_content(Template(self._template).safe_substitute(values))
        return message

    def dispatch(self, message: EmailMessage) -> None:
        """Hand the message to the relay, raising NotificationDispatchError on failure."""

        self.settings.validate()
        try:
            with self.smtp_factory(self.settings.mailserver, self.settings.port) as smtp:
                smtp.send_message(
                    message,
                    from_addr=self.settings.from_address,
                    to_addrs=self.settings.recipients,
                )
        except (smtplib.SMTPException, OSError) as exc:
            raise NotificationDispatchError(
                f"Relay {self.settings.mailserver}:{self.settings.port} rejected alert: {exc}"
            ) from exc

    def notify(self, host: str, site: str, report: str) -> bool:
        """Render and send the alert; relay failures are logged and reported as False."""

        message = self.render(host, site, report)
        try:
            self.dispatch(message)
        except NotificationDispatchError as exc:
            self.logger.error("Alert for %s (%s) not delivered: %s", site, host, exc)
            return False
        self.logger.info(
            "Alert for %s (%s) sent to %s via %s",
            site,
            host,
            ", ".join(self.settings.recipients),
            self.settings.mailserver,
        )
        return True
