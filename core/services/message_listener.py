"""
Per-user background listeners that surface unread chat messages.

Key patterns:
- Explicit lifecycle: construction has no side effects, `start()` spawns the
  polling task and `stop()` ends it
- Cancellable suspension: the wait between polls is an event wait with a
  timeout, so `stop()` wakes the task instead of waiting out the interval
- Error boundary: a failed poll is logged and reported to the observer; only
  `stop()` terminates a listener
"""

import asyncio
import threading
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Protocol

import structlog

from core.domain.models import ChatMessage
from core.exceptions import InvalidInputError, InvalidStateError
from core.services.conversation_store import ConversationStore

logger = structlog.get_logger(__name__)

DEFAULT_POLL_INTERVAL_SECONDS = 3.0


class MessageObserver(Protocol):
    """Where a listener surfaces what it finds (UI, log, push)."""

    def on_message(self, owner_id: str, message: ChatMessage) -> None:
        ...

    def on_error(self, owner_id: str, error: Exception) -> None:
        ...


class MessageListener:
    """
    Polls the conversation store for one user's unread messages.

    At most one listener should be active per user; `ListenerRegistry` enforces
    that for callers that go through it.
    """

    def __init__(
        self,
        owner_id: str,
        store: ConversationStore,
        observer: MessageObserver,
        poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS,
    ) -> None:
        if not owner_id or not owner_id.strip():
            raise InvalidInputError("User ID cannot be null or empty")
        if store is None:
            raise InvalidInputError("Chat store cannot be null")
        if poll_interval_seconds <= 0:
            raise InvalidInputError("Poll interval must be positive")

        self.owner_id = owner_id
        self.poll_interval_seconds = poll_interval_seconds
        self._store = store
        self._observer = observer
        self.logger = logger.bind(component="message_listener", owner_id=owner_id)

        self._state_lock = threading.Lock()
        self._is_running = False
        self._loop: asyncio.AbstractEventLoop | None = None
        self._wakeup: asyncio.Event | None = None
        self._task: asyncio.Task[None] | None = None
        self.poll_count = 0

    @property
    def is_running(self) -> bool:
        return self._is_running

    def start(self) -> None:
        """Spawn the polling task on the running event loop."""
        with self._state_lock:
            if self._task is not None and not self._task.done():
                raise InvalidStateError(
                    f"Listener for {self.owner_id} is already running",
                    context={"owner_id": self.owner_id},
                )
            try:
                self._loop = asyncio.get_running_loop()
            except RuntimeError as e:
                raise InvalidStateError(
                    f"Listener for {self.owner_id} needs a running event loop",
                    context={"owner_id": self.owner_id},
                ) from e
            self._wakeup = asyncio.Event()
            self._is_running = True
            self._task = self._loop.create_task(
                self._run(), name=f"message-listener:{self.owner_id}"
            )

    def stop(self) -> None:
        """
        Ask the listener to exit. Idempotent and safe from any task or thread.

        The polling task wakes immediately and exits without touching the store
        again; a poll already in progress on another thread completes first.
        """
        with self._state_lock:
            if not self._is_running:
                return
            self._is_running = False
            loop, wakeup = self._loop, self._wakeup

        self.logger.info("message_listener_stopping")
        if loop is not None and wakeup is not None and not loop.is_closed():
            loop.call_soon_threadsafe(wakeup.set)

    async def join(self) -> None:
        """Wait until the polling task has exited."""
        if self._task is not None:
            await asyncio.shield(self._task)

    @asynccontextmanager
    async def listening(self) -> AsyncIterator["MessageListener"]:
        """Run the listener for the duration of the block."""
        self.start()
        try:
            yield self
        finally:
            self.stop()
            await self.join()

    def poll_once(self) -> list[ChatMessage]:
        """Drain unread messages for the owner and hand each to the observer."""
        self.poll_count += 1
        try:
            messages = self._store.unread_for(self.owner_id)
        except Exception as e:
            self.logger.exception("message_poll_failed", error=str(e))
            self._report_error(e)
            return []

        for message in messages:
            try:
                self._observer.on_message(self.owner_id, message)
            except Exception as e:
                self.logger.exception(
                    "message_observer_failed", error=str(e), message_id=message.message_id
                )

        if messages:
            self.logger.info("new_messages_delivered", count=len(messages))
        return messages

    def _report_error(self, error: Exception) -> None:
        try:
            self._observer.on_error(self.owner_id, error)
        except Exception as e:
            self.logger.exception("message_observer_failed", error=str(e))

    async def _run(self) -> None:
        if self._wakeup is None:
            raise InvalidStateError(
                f"Listener for {self.owner_id} was not started",
                context={"owner_id": self.owner_id},
            )
        self.logger.info(
            "message_listener_started", interval_seconds=self.poll_interval_seconds
        )

        try:
            while self._is_running:
                self.poll_once()
                try:
                    await asyncio.wait_for(
                        self._wakeup.wait(), timeout=self.poll_interval_seconds
                    )
                except TimeoutError:
                    pass
        except asyncio.CancelledError:
            self.logger.info("message_listener_cancelled")
            raise
        finally:
            self._is_running = False
            self.logger.info("message_listener_stopped", polls=self.poll_count)


class ListenerRegistry:
    """Keeps exactly one active listener per user."""

    def __init__(
        self,
        store: ConversationStore,
        observer: MessageObserver,
        poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS,
    ) -> None:
        self._store = store
        self._observer = observer
        self._poll_interval_seconds = poll_interval_seconds
        self._listeners: dict[str, MessageListener] = {}
        self.logger = logger.bind(component="listener_registry")

    def register(self, user_id: str) -> MessageListener:
        """Start a listener for the user, stopping the one it replaces."""
        listener = MessageListener(
            user_id, self._store, self._observer, self._poll_interval_seconds
        )

        # A failed start leaves the registered listener in place
        listener.start()

        previous = self._listeners.get(user_id)
        self._listeners[user_id] = listener
        if previous is not None:
            previous.stop()
            self.logger.info("listener_replaced", user_id=user_id)

        self.logger.info("listener_registered", user_id=user_id, active=len(self._listeners))
        return listener

    def get(self, user_id: str) -> MessageListener | None:
        return self._listeners.get(user_id)

    async def unregister(self, user_id: str) -> None:
        listener = self._listeners.pop(user_id, None)
        if listener is None:
            return
        listener.stop()
        await listener.join()
        self.logger.info("listener_unregistered", user_id=user_id, active=len(self._listeners))

    async def stop_all(self) -> None:
        listeners = list(self._listeners.values())
        self._listeners.clear()
        for listener in listeners:
            listener.stop()
        await asyncio.gather(*(listener.join() for listener in listeners))
        self.logger.info("all_listeners_stopped", count=len(listeners))

    def __len__(self) -> int:
        return len(self._listeners)
