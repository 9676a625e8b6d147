"""
SMTP email channel.

smtplib is blocking, so each delivery runs in a worker thread and the event
loop keeps serving listeners while a message is in flight. One connection per
delivery; no pooling, no retry.
"""

import asyncio
import smtplib
import ssl
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

import structlog

from core.config import EmailConfig
from core.exceptions import DeliveryError, InvalidInputError
from core.services.notifications import ChannelType, validate_delivery

logger = structlog.get_logger(__name__)


class SmtpEmailChannel:
    """Delivers over SMTP, authenticating with the configured account."""

    channel_type = ChannelType.EMAIL

    def __init__(self, config: EmailConfig) -> None:
        if not config.is_configured:
            raise InvalidInputError("Email username and password cannot be null or empty")
        self.config = config
        self.logger = logger.bind(
            component="smtp_email_channel", smtp_host=config.smtp_host, smtp_port=config.smtp_port
        )

    async def deliver(self, address: str, subject: str, body: str) -> None:
        validate_delivery(self.channel_type, address, subject, body)
        await asyncio.to_thread(self._send, address, subject, body)
        self.logger.info("email_delivered", address=address)

    def _build_message(self, address: str, subject: str, body: str) -> MIMEMultipart:
        msg = MIMEMultipart()
        msg["From"] = str(self.config.username)
        msg["To"] = address
        msg["Subject"] = subject
        msg.attach(MIMEText(body, "plain"))
        return msg

    def _send(self, address: str, subject: str, body: str) -> None:
        msg = self._build_message(address, subject, body)
        try:
            with smtplib.SMTP(
                self.config.smtp_host, self.config.smtp_port, timeout=self.config.timeout_seconds
            ) as server:
                if self.config.use_tls:
                    server.starttls(context=ssl.create_default_context())
                server.login(str(self.config.username), str(self.config.password))
                server.sendmail(str(self.config.username), [address], msg.as_string())
        except (smtplib.SMTPException, OSError) as e:
            self.logger.error("email_delivery_failed", address=address, error=str(e))
            raise DeliveryError(
                f"Failed to send email to {address}",
                context={"address": address, "smtp_host": self.config.smtp_host},
            ) from e
