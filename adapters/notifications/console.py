"""Console channels for development and for transports not wired up yet."""

import structlog
from rich.console import Console

from core.services.notifications import ChannelType, validate_delivery

logger = structlog.get_logger(__name__)


class ConsoleChannel:
    """
    Prints each delivery instead of sending it.

    Stands in for SMS (no provider is integrated) and for email when no SMTP
    account is configured. Validation is the same as a real channel's, so a
    delivery that would be rejected in production is rejected here too.
    """

    def __init__(
        self,
        channel_type: ChannelType,
        *,
        require_subject: bool | None = None,
        console: Console | None = None,
    ) -> None:
        self.channel_type = channel_type
        # SMS bodies carry no subject line
        self.require_subject = (
            channel_type is not ChannelType.SMS if require_subject is None else require_subject
        )
        self.console = console or Console()
        self.delivered: list[tuple[str, str, str]] = []
        self.logger = logger.bind(component="console_channel", channel=channel_type.value)

    async def deliver(self, address: str, subject: str, body: str) -> None:
        validate_delivery(
            self.channel_type, address, subject, body, require_subject=self.require_subject
        )
        if self.channel_type is ChannelType.SMS:
            self.console.print(f"SMS sent to {address}: {body}", style="cyan", markup=False)
        else:
            self.console.print(f"Email to {address} [{subject}]: {body}", style="cyan", markup=False)
        self.delivered.append((address, subject, body))
        self.logger.debug("console_delivery", address=address)
