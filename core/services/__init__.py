"""
Core services for the application.

This package contains the messaging and alert-dispatch services: the shared
conversation store, per-user message listeners, the notification gateway,
the alert engine and reminders.
"""

from .alert_engine import AlertEngine, VitalRange, VitalThresholds
from .chat_session import ChatSession
from .conversation_store import ConversationStore
from .message_listener import ListenerRegistry, MessageListener, MessageObserver
from .notifications import ChannelType, NotificationChannel, NotificationGateway
from .reminders import ReminderService

__all__ = [
    "AlertEngine",
    "VitalRange",
    "VitalThresholds",
    "ChatSession",
    "ConversationStore",
    "ListenerRegistry",
    "MessageListener",
    "MessageObserver",
    "ChannelType",
    "NotificationChannel",
    "NotificationGateway",
    "ReminderService",
]
