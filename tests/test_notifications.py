"""Email providers and message builders."""

import smtplib
import socket

import pytest

from conftest import START
from core.exceptions import ConfigurationError
from utils import notifications
from utils.notifications import (
    INVITE_TEMPLATE,
    DeliveryStatus,
    EmailMessage,
    InMemoryEmailProvider,
    SMTPProvider,
    get_email_provider,
    invite_message,
    password_reset_message,
)


class FakeSMTP:
    """Stands in for smtplib.SMTP and records what was sent."""

    instances = []

    def __init__(self, host, port, timeout=None):
        self.host = host
        self.port = port
        self.timeout = timeout
        self.sent = []
        self.started_tls = False
        self.logged_in = None
        FakeSMTP.instances.append(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def starttls(self):
        self.started_tls = True

    def login(self, username, password):
        self.logged_in = (username, password)

    def sendmail(self, from_addr, to_addrs, msg):
        self.sent.append((from_addr, to_addrs, msg))


@pytest.fixture
def fake_smtp(monkeypatch):
    FakeSMTP.instances = []
    monkeypatch.setattr(notifications.smtplib, "SMTP", FakeSMTP)
    return FakeSMTP


def _message() -> EmailMessage:
    return invite_message("alice@x.com", "the-code", "editor", START)


def test_invite_message_carries_code_and_link():
    message = _message()

    assert message.to == "alice@x.com"
    assert message.template_id == INVITE_TEMPLATE
    assert message.template_data["code"] == "the-code"
    assert message.template_data["role"] == "editor"
    assert "code=the-code" in message.template_data["link"]
    assert "alice%40x.com" in message.template_data["link"]
    assert START.isoformat() in message.body_text


def test_reset_message_carries_token():
    message = password_reset_message("alice@x.com", "tok", START)
    assert message.template_data["token"] == "tok"
    assert "/reset-password?" in message.template_data["link"]


def test_in_memory_provider_records_messages():
    provider = InMemoryEmailProvider()
    result = provider.send(_message())

    assert result.success
    assert result.status == DeliveryStatus.SENT
    assert provider.outbox == [_message()]


def test_in_memory_provider_can_fail():
    provider = InMemoryEmailProvider(fail_with="mailbox full")
    result = provider.send(_message())

    assert not result.success
    assert result.error_message == "mailbox full"
    assert provider.outbox == []


def test_smtp_provider_sends_with_timeout(fake_smtp):
    provider = SMTPProvider(
        host="mail.looped.dev", port=2525, username="u", password="p", timeout=3
    )
    result = provider.send(_message())

    assert result.success
    server = fake_smtp.instances[-1]
    assert (server.host, server.port, server.timeout) == ("mail.looped.dev", 2525, 3)
    assert server.started_tls
    assert server.logged_in == ("u", "p")
    _, to_addrs, raw = server.sent[0]
    assert to_addrs == ["alice@x.com"]
    assert "X-Template-Id: staff_invite" in raw


def test_smtp_provider_reports_timeout(monkeypatch):
    def timing_out(*args, **kwargs):
        raise socket.timeout("timed out")

    monkeypatch.setattr(notifications.smtplib, "SMTP", timing_out)
    result = SMTPProvider(host="mail.looped.dev").send(_message())

    assert not result.success
    assert result.status == DeliveryStatus.FAILED
    assert result.error_code == "timeout"


def test_smtp_provider_reports_smtp_errors(monkeypatch):
    def refusing(*args, **kwargs):
        raise smtplib.SMTPConnectError(421, "go away")

    monkeypatch.setattr(notifications.smtplib, "SMTP", refusing)
    result = SMTPProvider(host="mail.looped.dev").send(_message())

    assert not result.success
    assert result.error_code == "SMTPConnectError"


def test_smtp_provider_requires_host(monkeypatch):
    monkeypatch.setattr(notifications.config, "SMTP_HOST", "")
    with pytest.raises(ConfigurationError):
        SMTPProvider()


def test_get_email_provider():
    assert isinstance(get_email_provider("memory"), InMemoryEmailProvider)
    with pytest.raises(ConfigurationError):
        get_email_provider("carrier-pigeon")
