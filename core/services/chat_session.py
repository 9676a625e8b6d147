"""Sending messages and reading history on behalf of one user."""

from pydantic import ValidationError

from core.domain.models import ChatMessage
from core.exceptions import InvalidInputError
from core.services.conversation_store import ConversationStore


class ChatSession:
    """A user's handle on the shared store for foreground chat actions."""

    def __init__(self, user_id: str, store: ConversationStore) -> None:
        if not user_id or not user_id.strip():
            raise InvalidInputError("User ID cannot be null or empty")
        if store is None:
            raise InvalidInputError("Chat store cannot be null")
        self.user_id = user_id
        self._store = store

    def send(self, receiver_id: str, content: str) -> ChatMessage:
        """Build a message from this user and append it to the store."""
        try:
            message = ChatMessage(sender_id=self.user_id, receiver_id=receiver_id, content=content)
        except ValidationError as e:
            raise InvalidInputError(
                "Receiver ID or message cannot be null or empty",
                context={"receiver_id": receiver_id},
            ) from e
        self._store.append(message)
        return message

    def history_with(self, other_user_id: str) -> list[ChatMessage]:
        return self._store.messages_between(self.user_id, other_user_id)

    def unread(self) -> list[ChatMessage]:
        """Drain this user's unread messages directly, without a listener."""
        return self._store.unread_for(self.user_id)
