"""
Shared in-memory conversation store.

The store is the single shared mutable resource of the messaging subsystem:
foreground sends append to it while one listener per logged-in user drains
unread messages from it. Every operation runs under one store-wide lock, which
makes `unread_for` an atomic read-and-mark with respect to concurrent appends
and concurrent drains from other listeners, whether those run as asyncio tasks
or OS threads.
"""

import itertools
import threading

import structlog

from core.domain.models import ChatMessage, ConversationKey
from core.exceptions import InvalidInputError

logger = structlog.get_logger(__name__)


def _require_user_id(user_id: str, field: str = "user_id") -> None:
    if not isinstance(user_id, str) or not user_id.strip():
        raise InvalidInputError(f"{field} cannot be null or empty", context={"field": field})


class ConversationStore:
    """
    Maps each unordered user pair to its append-only, chronological message list.

    Messages are never reordered or removed; the only in-place change is
    swapping a stored message for its read copy.
    """

    def __init__(self) -> None:
        # Each entry carries its store-wide append sequence number
        self._conversations: dict[ConversationKey, list[tuple[int, ChatMessage]]] = {}
        self._sequence = itertools.count()
        self._lock = threading.Lock()
        self.logger = logger.bind(component="conversation_store")

    def append(self, message: ChatMessage) -> None:
        """Append a message to its conversation. Nothing is stored if validation fails."""
        if not isinstance(message, ChatMessage):
            raise InvalidInputError("Chat message cannot be null")
        if message.read:
            raise InvalidInputError(
                "Chat message must be unread when appended",
                context={"message_id": message.message_id},
            )

        key = ConversationKey.of(message.sender_id, message.receiver_id)
        with self._lock:
            self._conversations.setdefault(key, []).append((next(self._sequence), message))
            position = len(self._conversations[key])

        self.logger.debug(
            "message_appended",
            conversation=str(key),
            message_id=message.message_id,
            position=position,
        )

    def messages_between(self, user_a: str, user_b: str) -> list[ChatMessage]:
        """Return the ordered history of a conversation, or an empty list."""
        _require_user_id(user_a, "user_a")
        _require_user_id(user_b, "user_b")

        key = ConversationKey.of(user_a, user_b)
        with self._lock:
            return [message for _, message in self._conversations.get(key, ())]

    def unread_for(self, user_id: str) -> list[ChatMessage]:
        """
        Collect and mark read every unread message addressed to `user_id`.

        The scan and the mark happen in one critical section, so a message is
        handed to exactly one caller. Results are in chronological order.
        """
        _require_user_id(user_id)

        collected: list[tuple[int, ChatMessage]] = []
        with self._lock:
            for conversation in self._conversations.values():
                for index, (sequence, message) in enumerate(conversation):
                    if message.receiver_id == user_id and not message.read:
                        read_copy = message.as_read()
                        conversation[index] = (sequence, read_copy)
                        collected.append((sequence, read_copy))

        # Conversations are scanned one after another; restore global append order
        collected.sort(key=lambda entry: entry[0])
        messages = [message for _, message in collected]

        if messages:
            self.logger.debug("unread_messages_collected", user_id=user_id, count=len(messages))
        return messages

    def unread_count(self, user_id: str) -> int:
        """Count unread messages for a user without marking them."""
        _require_user_id(user_id)

        with self._lock:
            return sum(
                1
                for conversation in self._conversations.values()
                for _, message in conversation
                if message.receiver_id == user_id and not message.read
            )

    def conversation_count(self) -> int:
        with self._lock:
            return len(self._conversations)
