import logging
import smtplib
from dataclasses import replace
from datetime import datetime

import pytest

from logwatcher.alert import ALERT_SUBJECT, DEFAULT_SMTP_PORT, AlertDispatcher, build_message, parse_endpoint
from logwatcher.config import Settings
from logwatcher.errors import SendError


@pytest.fixture
def settings():
    return Settings(
        log_id="app-server",
        log_path="/var/log/app.log",
        username="bot@example.com",
        password="secret",
        smtp="smtp.example.com",
        target="ops@example.com",
        count_threshold=3,
        time_threshold=5000,
    )


class FakeSMTP:
    """Records what the dispatcher does with the transport."""

    instances = []

    def __init__(self, host, port, timeout=None, context=None):
        self.host = host
        self.port = port
        self.timeout = timeout
        self.logins = []
        self.sent = []
        FakeSMTP.instances.append(self)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False

    def login(self, user, password):
        self.logins.append((user, password))

    def send_message(self, msg):
        self.sent.append(msg)


class RefusingSMTP(FakeSMTP):
    def login(self, user, password):
        raise smtplib.SMTPAuthenticationError(535, b"bad credentials")


@pytest.fixture(autouse=True)
def reset_fake():
    FakeSMTP.instances = []


def test_build_message(settings):
    when = datetime(2024, 5, 1, 12, 30, 0)
    msg = build_message(settings, now=when)

    assert msg["Subject"] == ALERT_SUBJECT
    assert msg["From"] == "bot@example.com"
    assert msg["To"] == "ops@example.com"
    assert msg.get_content().strip() == "Multiple error occurred on app-server at 2024-05-01 12:30:00"


@pytest.mark.parametrize(
    "endpoint,expected",
    [
        ("smtp.example.com", ("smtp.example.com", DEFAULT_SMTP_PORT)),
        ("smtp.example.com:2465", ("smtp.example.com", 2465)),
        ("::1", ("::1", DEFAULT_SMTP_PORT)),
        ("2001:db8::25", ("2001:db8::25", DEFAULT_SMTP_PORT)),
        ("[2001:db8::25]", ("2001:db8::25", DEFAULT_SMTP_PORT)),
        ("[::1]:2465", ("::1", 2465)),
    ],
)
def test_parse_endpoint(endpoint, expected):
    assert parse_endpoint(endpoint) == expected


def test_malformed_bracketed_endpoint_is_a_send_error(settings):
    dispatcher = AlertDispatcher(replace(settings, smtp="[::1:2465"), smtp_factory=FakeSMTP)
    assert dispatcher.dispatch() is False
    assert FakeSMTP.instances == []


def test_dispatch_sends_once(settings):
    dispatcher = AlertDispatcher(settings, smtp_factory=FakeSMTP)

    assert dispatcher.dispatch() is True
    assert len(FakeSMTP.instances) == 1
    smtp = FakeSMTP.instances[0]
    assert (smtp.host, smtp.port) == ("smtp.example.com", DEFAULT_SMTP_PORT)
    assert smtp.logins == [("bot@example.com", "secret")]
    assert len(smtp.sent) == 1
    assert smtp.sent[0]["Subject"] == ALERT_SUBJECT


def test_send_raises_send_error_on_transport_failure(settings):
    dispatcher = AlertDispatcher(settings, smtp_factory=RefusingSMTP)
    with pytest.raises(SendError):
        dispatcher.send()


def test_dispatch_swallows_failure_and_logs(settings, caplog):
    dispatcher = AlertDispatcher(settings, smtp_factory=RefusingSMTP)

    with caplog.at_level(logging.ERROR, logger="logwatcher.alert"):
        assert dispatcher.dispatch() is False

    assert "Email failed to send" in caplog.text
    # Exactly one attempt, no retry.
    assert len(FakeSMTP.instances) == 1


def test_dispatch_handles_connection_errors(settings):
    def unreachable(host, port, timeout=None, context=None):
        raise ConnectionRefusedError("connection refused")

    assert AlertDispatcher(settings, smtp_factory=unreachable).dispatch() is False
