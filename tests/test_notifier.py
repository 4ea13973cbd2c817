"""Tests for alert rendering and dispatch."""

from __future__ import annotations

import smtplib

import pytest

from integrit_remote.config import NotifySettings
from integrit_remote.errors import ConfigError, NotificationPreconditionError
from integrit_remote.notify import ChangeNotifier, NotificationSettings

REPORT = "integrit: checking\nchanged: /etc/passwd\nnew: /tmp/dropper\n"


class FakeSMTP:
    instances: list[FakeSMTP] = []

    def __init__(self, host, port):
        self.host = host
        self.port = port
        self.messages = []
        FakeSMTP.instances.append(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        return False

    def send_message(self, message, from_addr=None, to_addrs=None):
        self.messages.append((message, from_addr, to_addrs))


class RefusingSMTP(FakeSMTP):
    def send_message(self, message, from_addr=None, to_addrs=None):
        raise smtplib.SMTPRecipientsRefused({to_addrs[0]: (550, b"no such user")})


def _unreachable(host, port):
    raise ConnectionRefusedError(111, "Connection refused")


@pytest.fixture(autouse=True)
def _reset_fake_smtp():
    FakeSMTP.instances.clear()


def _settings(**overrides) -> NotificationSettings:
    values = {"mailserver": "smtp.example.com", "to_address": "ops@example.com"}
    values.update(overrides)
    return NotificationSettings(**values)


def test_from_config_prefers_explicit_values():
    configured = NotifySettings(
        mailserver="relay.internal", to_address="team@example.com", port=2525
    )

    settings = NotificationSettings.from_config(configured, to_address="oncall@example.com")

    assert settings.mailserver == "relay.internal"
    assert settings.to_address == "oncall@example.com"
    assert settings.from_address == "integrit@test.com"
    assert settings.port == 2525


@pytest.mark.parametrize(
    "overrides,missing",
    [
        ({"to_address": None}, ["to-address"]),
        ({"mailserver": None}, ["mailserver"]),
        ({"mailserver": "", "to_address": None}, ["mailserver", "to-address"]),
    ],
)
def test_preflight_requires_relay_and_recipient(logger, overrides, missing):
    notifier = ChangeNotifier(_settings(**overrides), logger, smtp_factory=FakeSMTP)

    with pytest.raises(NotificationPreconditionError) as excinfo:
        notifier.preflight()

    assert excinfo.value.missing == missing
    assert FakeSMTP.instances == []


def test_preflight_rejects_unreadable_template(logger, tmp_path):
    notifier = ChangeNotifier(
        _settings(template=tmp_path / "missing.txt"), logger, smtp_factory=FakeSMTP
    )

    with pytest.raises(ConfigError):
        notifier.preflight()


def test_render_embeds_host_and_report(logger):
    notifier = ChangeNotifier(_settings(from_address="checker@example.com"), logger)

    message = notifier.render("alice@web1", "web1", REPORT)

    assert message["Subject"] == "Changes detected on alice@web1"
    assert message["From"] == "checker@example.com"
    assert message["To"] == "ops@example.com"
    body = message.get_content()
    assert "alice@web1" in body
    assert "changed: /etc/passwd" in body
    assert "2 change(s) reported" in body


def test_render_uses_custom_template(logger, tmp_path):
    template = tmp_path / "alert.txt"
    template.write_text("[$site] $host\n$report\n", encoding="utf-8")
    notifier = ChangeNotifier(_settings(template=template, subject="ALERT $site"), logger)

    message = notifier.render("alice@web1", "web1", "deleted: /x\n")

    assert message["Subject"] == "ALERT web1"
    assert message.get_content().startswith("[web1] alice@web1\ndeleted: /x")


def test_notify_sends_one_message(logger):
    notifier = ChangeNotifier(_settings(port=2525), logger, smtp_factory=FakeSMTP)
    notifier.preflight()

    assert notifier.notify("alice@web1", "web1", REPORT) is True

    (smtp,) = FakeSMTP.instances
    assert (smtp.host, smtp.port) == ("smtp.example.com", 2525)
    ((message, from_addr, to_addrs),) = smtp.messages
    assert from_addr == "integrit@test.com"
    assert to_addrs == ["ops@example.com"]
    assert "new: /tmp/dropper" in message.get_content()


@pytest.mark.parametrize("factory", [RefusingSMTP, _unreachable])
def test_notify_reports_relay_failure(logger, factory):
    notifier = ChangeNotifier(_settings(), logger, smtp_factory=factory)

    assert notifier.notify("alice@web1", "web1", REPORT) is False


def test_comma_separated_recipients_are_sent_separately(logger):
    notifier = ChangeNotifier(
        _settings(to_address="ops@example.com, oncall@example.com,"),
        logger,
        smtp_factory=FakeSMTP,
    )
    notifier.preflight()

    assert notifier.notify("alice@web1", "web1", REPORT) is True

    ((message, _, to_addrs),) = FakeSMTP.instances[0].messages
    assert to_addrs == ["ops@example.com", "oncall@example.com"]
    assert message["To"] == "ops@example.com, oncall@example.com"


def test_recipient_list_of_only_separators_counts_as_missing(logger):
    notifier = ChangeNotifier(_settings(to_address=" , "), logger, smtp_factory=FakeSMTP)

    with pytest.raises(NotificationPreconditionError) as excinfo:
        notifier.preflight()

    assert excinfo.value.missing == ["to-address"]
