"""
Notification channels and the gateway that routes deliveries to them.

Channels are matched structurally against `NotificationChannel`; none inherit from it.
Adding a channel means adding a `ChannelType` member and an adapter that
implements `NotificationChannel`; existing channels are untouched.
"""

from collections.abc import Iterable
from enum import Enum
from typing import Protocol

import structlog

from core.exceptions import InvalidDeliveryError, InvalidInputError, InvalidStateError

logger = structlog.get_logger(__name__)


class ChannelType(str, Enum):
    """Delivery mechanisms the gateway can route to."""

    EMAIL = "email"
    SMS = "sms"


class NotificationChannel(Protocol):
    """
    A single delivery mechanism.

    `deliver` returns once delivery was attempted. It raises
    `InvalidDeliveryError` for empty fields and `DeliveryError` (chained to the
    transport exception) when the transport fails.
    """

    channel_type: ChannelType

    async def deliver(self, address: str, subject: str, body: str) -> None:
        ...


def _blank(value: str | None) -> bool:
    return value is None or not str(value).strip()


def validate_delivery(
    channel_type: ChannelType,
    address: str,
    subject: str,
    body: str,
    *,
    require_subject: bool = True,
) -> None:
    """Reject a delivery with an empty address, body or (when required) subject."""
    missing = [
        name
        for name, value in (("address", address), ("subject", subject), ("body", body))
        if _blank(value) and (name != "subject" or require_subject)
    ]
    if missing:
        raise InvalidDeliveryError(
            f"{channel_type.value} fields cannot be null or empty: {', '.join(missing)}",
            context={"channel": channel_type.value, "missing": missing},
        )


class NotificationGateway:
    """
    Routes deliveries to one channel per variant.

    Every send is a thin, fail-fast delegation: one delivery attempt, no retry,
    no queue. The gateway holds no mutable state, so it can be shared by any
    number of concurrent callers.
    """

    def __init__(self, channels: Iterable[NotificationChannel]) -> None:
        self._channels: dict[ChannelType, NotificationChannel] = {}
        for channel in channels:
            if channel is None:
                raise InvalidInputError("Notifiers cannot be null")
            if channel.channel_type in self._channels:
                raise InvalidInputError(
                    f"Duplicate channel for {channel.channel_type.value}",
                    context={"channel": channel.channel_type.value},
                )
            self._channels[channel.channel_type] = channel
        if not self._channels:
            raise InvalidInputError("At least one notification channel is required")
        self.logger = logger.bind(component="notification_gateway")

    @property
    def channel_types(self) -> frozenset[ChannelType]:
        return frozenset(self._channels)

    async def send(self, channel_type: ChannelType, address: str, subject: str, body: str) -> None:
        channel = self._channels.get(channel_type)
        if channel is None:
            raise InvalidStateError(
                f"No {channel_type.value} channel configured",
                context={"channel": channel_type.value},
            )
        await channel.deliver(address, subject, body)
        self.logger.info("notification_sent", channel=channel_type.value, address=address)

    async def send_email(self, address: str, subject: str, body: str) -> None:
        await self.send(ChannelType.EMAIL, address, subject, body)

    async def send_sms(self, address: str, subject: str, body: str) -> None:
        await self.send(ChannelType.SMS, address, subject, body)
