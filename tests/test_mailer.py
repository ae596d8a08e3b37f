"""Unit tests for core/mailer.py.

smtplib is mocked throughout -- no network traffic. Covers:
- STARTTLS path: starttls, login and send_message called on the server
- implicit TLS path when use_tls=False
- transport failures (SMTPException, socket errors) raise DeliveryError
- LogMailer writes the message to the log
- build_mailer() picks the transport from settings
"""

from __future__ import annotations

import logging
import smtplib
from unittest.mock import MagicMock, patch

import pytest

from core.config import Settings
from core.mailer import DeliveryError, LogMailer, MailMessage, SmtpMailer, build_mailer

_SECRET = "mailer-test-secret-key-long-enough-000000"

_MESSAGE = MailMessage(
    sender="noreply@example.test",
    to="ada@example.test",
    subject="Email Verification",
    body="Hello Ada,\n\nhttps://app.example.test/verify-email/tok\n",
)


def _server(mock_smtp_cls: MagicMock) -> MagicMock:
    return mock_smtp_cls.return_value.__enter__.return_value


class TestSmtpMailer:
    def test_starttls_login_and_send(self):
        mailer = SmtpMailer("smtp.example.test", 587, username="u", password="p", timeout=5)
        with patch("core.mailer.smtplib.SMTP") as mock_smtp:
            mailer.send(_MESSAGE)

        mock_smtp.assert_called_once_with("smtp.example.test", 587, timeout=5)
        server = _server(mock_smtp)
        server.starttls.assert_called_once()
        server.login.assert_called_once_with("u", "p")
        sent = server.send_message.call_args.args[0]
        assert sent["To"] == "ada@example.test"
        assert sent["From"] == "noreply@example.test"
        assert sent["Subject"] == "Email Verification"
        assert "verify-email/tok" in sent.get_content()

    def test_no_login_without_credentials(self):
        mailer = SmtpMailer("smtp.example.test")
        with patch("core.mailer.smtplib.SMTP") as mock_smtp:
            mailer.send(_MESSAGE)
        _server(mock_smtp).login.assert_not_called()

    def test_implicit_tls_when_starttls_disabled(self):
        mailer = SmtpMailer("smtp.example.test", 465, use_tls=False)
        with patch("core.mailer.smtplib.SMTP_SSL") as mock_ssl, patch("core.mailer.smtplib.SMTP") as mock_smtp:
            mailer.send(_MESSAGE)
        mock_smtp.assert_not_called()
        _server(mock_ssl).send_message.assert_called_once()

    def test_smtp_error_raises_delivery_error(self):
        mailer = SmtpMailer("smtp.example.test")
        with patch("core.mailer.smtplib.SMTP") as mock_smtp:
            _server(mock_smtp).send_message.side_effect = smtplib.SMTPRecipientsRefused({})
            with pytest.raises(DeliveryError):
                mailer.send(_MESSAGE)

    def test_connection_error_raises_delivery_error(self):
        mailer = SmtpMailer("smtp.example.test")
        with patch("core.mailer.smtplib.SMTP", side_effect=ConnectionRefusedError("refused")):
            with pytest.raises(DeliveryError, match="refused"):
                mailer.send(_MESSAGE)

    def test_host_is_required(self):
        with pytest.raises(ValueError):
            SmtpMailer("")


def test_log_mailer_logs_message(caplog):
    with caplog.at_level(logging.INFO, logger="authflow.mailer"):
        LogMailer().send(_MESSAGE)
    assert "ada@example.test" in caplog.text
    assert "verify-email/tok" in caplog.text


class TestBuildMailer:
    def test_smtp_host_selects_smtp_mailer(self):
        settings = Settings(
            debug=True,
            secret_key=_SECRET,
            smtp_host="smtp.example.test",
            smtp_port=2525,
            smtp_use_tls=False,
            _env_file=None,
        )
        mailer = build_mailer(settings)
        assert isinstance(mailer, SmtpMailer)
        assert mailer.port == 2525
        assert mailer.use_tls is False

    def test_empty_smtp_host_selects_log_mailer(self):
        settings = Settings(debug=True, secret_key=_SECRET, smtp_host="", _env_file=None)
        assert isinstance(build_mailer(settings), LogMailer)
