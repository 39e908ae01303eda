import logging

import pytest

from accounts.shared import mailer
from accounts.shared.config import settings

LINK = "http://localhost:3000/auth/reset-password?token=abc123"


class FakeSMTP:
    def __init__(self):
        self.sent = []
        self.closed = False

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.closed = True
        return False

    def send_message(self, msg):
        self.sent.append(msg)


@pytest.fixture
def smtp(monkeypatch):
    fake = FakeSMTP()
    monkeypatch.setattr(settings, "SMTP_HOST", "smtp.test")
    monkeypatch.setattr(settings, "SMTP_FROM_EMAIL", "no-reply@router.test")
    monkeypatch.setattr(mailer, "_create_smtp_client", lambda: fake)
    return fake


def test_reset_message_headers_and_body(monkeypatch):
    monkeypatch.setattr(settings, "SMTP_FROM_EMAIL", "no-reply@router.test")
    msg = mailer.build_reset_message("a@x.com", LINK)
    assert msg["To"] == "a@x.com"
    assert msg["From"] == "no-reply@router.test"
    assert msg["Subject"] == "Reset your password"
    body = msg.get_content()
    assert LINK in body
    assert f"expires in {settings.RESET_TOKEN_TTL_MIN} minutes" in body


def test_send_reset_link_delivers_over_smtp(smtp):
    mailer.send_reset_link("a@x.com", LINK)
    assert len(smtp.sent) == 1
    assert smtp.sent[0]["To"] == "a@x.com"
    assert LINK in smtp.sent[0].get_content()
    assert smtp.closed


def test_send_reset_link_skips_without_smtp_host(monkeypatch, caplog):
    monkeypatch.setattr(settings, "SMTP_HOST", None)

    def refuse():
        raise AssertionError("no SMTP connection expected")

    monkeypatch.setattr(mailer, "_create_smtp_client", refuse)
    with caplog.at_level(logging.WARNING, logger="accounts.shared.mailer"):
        mailer.send_reset_link("a@x.com", LINK)
    assert "reset link not delivered" in caplog.text
    assert "abc123" not in caplog.text


def test_default_sender_is_smtp_delivery():
    assert mailer.get_reset_sender() is mailer.send_reset_link
