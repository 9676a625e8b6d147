"""
Tests for the SMTP email channel.

smtplib.SMTP is patched so no connection is ever opened; the tests check what
the channel asks of the server and how transport failures surface.
"""

import smtplib
from collections.abc import Iterator
from unittest.mock import MagicMock, patch

import pytest

from adapters.notifications.email import SmtpEmailChannel
from core.config import EmailConfig
from core.exceptions import DeliveryError, InvalidDeliveryError, InvalidInputError
from core.services.notifications import ChannelType


@pytest.fixture
def config() -> EmailConfig:
    return EmailConfig(
        username="clinic@example.com",
        password="app-password",
        smtp_host="smtp.example.com",
        smtp_port=587,
    )


@pytest.fixture
def smtp() -> Iterator[MagicMock]:
    with patch("adapters.notifications.email.smtplib.SMTP") as smtp_class:
        yield smtp_class


def server_of(smtp_class: MagicMock) -> MagicMock:
    return smtp_class.return_value.__enter__.return_value


def test_requires_credentials() -> None:
    with pytest.raises(InvalidInputError):
        SmtpEmailChannel(EmailConfig(username="clinic@example.com"))


def test_is_an_email_channel(config: EmailConfig) -> None:
    assert SmtpEmailChannel(config).channel_type is ChannelType.EMAIL


async def test_delivers_with_tls_and_login(config: EmailConfig, smtp: MagicMock) -> None:
    await SmtpEmailChannel(config).deliver("doctor@example.com", "Emergency Alert", "Body")

    smtp.assert_called_once_with("smtp.example.com", 587, timeout=10.0)
    server = server_of(smtp)
    server.starttls.assert_called_once()
    server.login.assert_called_once_with("clinic@example.com", "app-password")

    sender, recipients, raw = server.sendmail.call_args.args
    assert sender == "clinic@example.com"
    assert recipients == ["doctor@example.com"]
    assert "Subject: Emergency Alert" in raw
    assert "To: doctor@example.com" in raw


async def test_skips_starttls_when_disabled(config: EmailConfig, smtp: MagicMock) -> None:
    channel = SmtpEmailChannel(config.model_copy(update={"use_tls": False}))

    await channel.deliver("doctor@example.com", "Subject", "Body")

    server_of(smtp).starttls.assert_not_called()


async def test_blank_fields_never_reach_the_server(config: EmailConfig, smtp: MagicMock) -> None:
    with pytest.raises(InvalidDeliveryError):
        await SmtpEmailChannel(config).deliver("doctor@example.com", "", "Body")

    smtp.assert_not_called()


@pytest.mark.parametrize(
    "failure",
    [
        smtplib.SMTPAuthenticationError(535, b"bad credentials"),
        ConnectionRefusedError("connection refused"),
    ],
)
async def test_transport_failures_become_delivery_errors(
    config: EmailConfig, smtp: MagicMock, failure: Exception
) -> None:
    server_of(smtp).login.side_effect = failure

    with pytest.raises(DeliveryError) as exc_info:
        await SmtpEmailChannel(config).deliver("doctor@example.com", "Subject", "Body")

    assert exc_info.value.__cause__ is failure
    assert exc_info.value.context["address"] == "doctor@example.com"
