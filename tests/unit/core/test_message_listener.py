"""
Tests for per-user message listeners and the listener registry.

Listeners run with a short poll interval so the suite stays fast; waits are
bounded so a broken listener fails the test instead of hanging it.
"""

import asyncio
from collections.abc import Callable

import pytest

from core.domain.models import ChatMessage
from core.exceptions import InvalidInputError, InvalidStateError
from core.services.conversation_store import ConversationStore
from core.services.message_listener import ListenerRegistry, MessageListener

FAST_POLL = 0.01


class RecordingObserver:
    def __init__(self) -> None:
        self.messages: list[tuple[str, ChatMessage]] = []
        self.errors: list[tuple[str, Exception]] = []

    def on_message(self, owner_id: str, message: ChatMessage) -> None:
        self.messages.append((owner_id, message))

    def on_error(self, owner_id: str, error: Exception) -> None:
        self.errors.append((owner_id, error))


class CountingStore(ConversationStore):
    def __init__(self) -> None:
        super().__init__()
        self.unread_calls = 0

    def unread_for(self, user_id: str) -> list[ChatMessage]:
        self.unread_calls += 1
        return super().unread_for(user_id)


class FlakyStore(ConversationStore):
    """Fails the first `failures` polls, then behaves normally."""

    def __init__(self, failures: int) -> None:
        super().__init__()
        self.failures = failures

    def unread_for(self, user_id: str) -> list[ChatMessage]:
        if self.failures > 0:
            self.failures -= 1
            raise RuntimeError("store unavailable")
        return super().unread_for(user_id)


class ExplodingObserver(RecordingObserver):
    def on_message(self, owner_id: str, message: ChatMessage) -> None:
        super().on_message(owner_id, message)
        raise RuntimeError("display crashed")


async def wait_until(condition: Callable[[], bool], timeout: float = 2.0) -> None:
    async with asyncio.timeout(timeout):
        while not condition():
            await asyncio.sleep(FAST_POLL)


def msg(sender: str, receiver: str, content: str = "hi") -> ChatMessage:
    return ChatMessage(sender_id=sender, receiver_id=receiver, content=content)


@pytest.fixture
def store() -> CountingStore:
    return CountingStore()


@pytest.fixture
def observer() -> RecordingObserver:
    return RecordingObserver()


class TestConstruction:
    def test_blank_owner_is_rejected(self, store: CountingStore, observer: RecordingObserver) -> None:
        with pytest.raises(InvalidInputError):
            MessageListener(" ", store, observer)

    def test_missing_store_is_rejected(self, observer: RecordingObserver) -> None:
        with pytest.raises(InvalidInputError):
            MessageListener("D001", None, observer)  # type: ignore[arg-type]

    def test_non_positive_interval_is_rejected(
        self, store: CountingStore, observer: RecordingObserver
    ) -> None:
        with pytest.raises(InvalidInputError):
            MessageListener("D001", store, observer, poll_interval_seconds=0)

    def test_construction_has_no_side_effects(
        self, store: CountingStore, observer: RecordingObserver
    ) -> None:
        listener = MessageListener("D001", store, observer)

        assert listener.is_running is False
        assert store.unread_calls == 0


class TestPolling:
    async def test_delivers_unread_messages_in_order(
        self, store: CountingStore, observer: RecordingObserver
    ) -> None:
        listener = MessageListener("D001", store, observer, FAST_POLL)
        async with listener.listening():
            store.append(msg("P001", "D001", "one"))
            store.append(msg("P002", "D001", "two"))
            store.append(msg("D001", "P001", "not mine"))
            await wait_until(lambda: len(observer.messages) == 2)

        assert [(owner, m.content) for owner, m in observer.messages] == [
            ("D001", "one"),
            ("D001", "two"),
        ]
        assert all(m.read for _, m in observer.messages)

    async def test_each_message_is_delivered_once(
        self, store: CountingStore, observer: RecordingObserver
    ) -> None:
        listener = MessageListener("D001", store, observer, FAST_POLL)
        async with listener.listening():
            store.append(msg("P001", "D001"))
            await wait_until(lambda: store.unread_calls > 5)

        assert len(observer.messages) == 1

    def test_poll_once_reports_store_errors(self, observer: RecordingObserver) -> None:
        listener = MessageListener("D001", FlakyStore(failures=1), observer, FAST_POLL)

        assert listener.poll_once() == []
        assert len(observer.errors) == 1
        assert observer.errors[0][0] == "D001"

    async def test_store_errors_do_not_terminate_listener(self, observer: RecordingObserver) -> None:
        store = FlakyStore(failures=3)
        listener = MessageListener("D001", store, observer, FAST_POLL)
        async with listener.listening():
            store.append(msg("P001", "D001", "after outage"))
            await wait_until(lambda: len(observer.messages) == 1)
            assert listener.is_running is True

        assert len(observer.errors) == 3
        assert observer.messages[0][1].content == "after outage"

    async def test_observer_errors_do_not_terminate_listener(self, store: CountingStore) -> None:
        observer = ExplodingObserver()
        listener = MessageListener("D001", store, observer, FAST_POLL)
        async with listener.listening():
            store.append(msg("P001", "D001", "one"))
            await wait_until(lambda: len(observer.messages) == 1)
            store.append(msg("P001", "D001", "two"))
            await wait_until(lambda: len(observer.messages) == 2)
            assert listener.is_running is True


class TestLifecycle:
    def test_start_without_running_loop_is_a_state_error(
        self, store: CountingStore, observer: RecordingObserver
    ) -> None:
        listener = MessageListener("D001", store, observer, FAST_POLL)

        with pytest.raises(InvalidStateError, match="running event loop"):
            listener.start()
        assert listener.is_running is False

    async def test_run_without_start_is_a_state_error(
        self, store: CountingStore, observer: RecordingObserver
    ) -> None:
        listener = MessageListener("D001", store, observer, FAST_POLL)

        with pytest.raises(InvalidStateError, match="not started"):
            await listener._run()
        assert store.unread_calls == 0

    async def test_start_twice_is_rejected(
        self, store: CountingStore, observer: RecordingObserver
    ) -> None:
        listener = MessageListener("D001", store, observer, FAST_POLL)
        listener.start()
        try:
            with pytest.raises(InvalidStateError):
                listener.start()
        finally:
            listener.stop()
            await listener.join()

    async def test_stop_is_idempotent(
        self, store: CountingStore, observer: RecordingObserver
    ) -> None:
        listener = MessageListener("D001", store, observer, FAST_POLL)
        listener.stop()  # before start: no-op

        listener.start()
        listener.stop()
        listener.stop()
        await listener.join()

        assert listener.is_running is False

    async def test_stop_wakes_listener_without_waiting_out_interval(
        self, store: CountingStore, observer: RecordingObserver
    ) -> None:
        listener = MessageListener("D001", store, observer, poll_interval_seconds=60)
        listener.start()
        await wait_until(lambda: store.unread_calls == 1)

        listener.stop()
        async with asyncio.timeout(1.0):
            await listener.join()

    async def test_stop_from_another_thread(
        self, store: CountingStore, observer: RecordingObserver
    ) -> None:
        listener = MessageListener("D001", store, observer, poll_interval_seconds=60)
        listener.start()
        await wait_until(lambda: store.unread_calls == 1)

        await asyncio.to_thread(listener.stop)
        async with asyncio.timeout(1.0):
            await listener.join()

        assert listener.is_running is False

    async def test_no_store_access_after_stop(
        self, store: CountingStore, observer: RecordingObserver
    ) -> None:
        listener = MessageListener("D001", store, observer, FAST_POLL)
        listener.start()
        await wait_until(lambda: store.unread_calls >= 2)

        listener.stop()
        await listener.join()
        calls_at_stop = store.unread_calls
        await asyncio.sleep(FAST_POLL * 10)

        assert store.unread_calls == calls_at_stop

    async def test_restart_after_stop(
        self, store: CountingStore, observer: RecordingObserver
    ) -> None:
        listener = MessageListener("D001", store, observer, FAST_POLL)
        async with listener.listening():
            pass
        async with listener.listening():
            store.append(msg("P001", "D001"))
            await wait_until(lambda: len(observer.messages) == 1)


class TestListenerRegistry:
    async def test_register_replaces_previous_listener(
        self, store: CountingStore, observer: RecordingObserver
    ) -> None:
        registry = ListenerRegistry(store, observer, FAST_POLL)
        first = registry.register("D001")
        second = registry.register("D001")

        await first.join()

        assert first.is_running is False
        assert second.is_running is True
        assert registry.get("D001") is second
        assert len(registry) == 1

        await registry.stop_all()

    async def test_failed_start_keeps_current_listener(
        self,
        store: CountingStore,
        observer: RecordingObserver,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        registry = ListenerRegistry(store, observer, FAST_POLL)
        current = registry.register("D001")

        def failing_start(self: MessageListener) -> None:
            raise InvalidStateError("cannot start")

        monkeypatch.setattr(MessageListener, "start", failing_start)
        with pytest.raises(InvalidStateError):
            registry.register("D001")

        assert registry.get("D001") is current
        assert current.is_running is True
        monkeypatch.undo()
        await registry.stop_all()

    def test_register_without_running_loop_leaves_registry_empty(
        self, store: CountingStore, observer: RecordingObserver
    ) -> None:
        registry = ListenerRegistry(store, observer, FAST_POLL)

        with pytest.raises(InvalidStateError):
            registry.register("D001")
        assert registry.get("D001") is None

    async def test_listeners_for_different_users_run_side_by_side(
        self, store: CountingStore, observer: RecordingObserver
    ) -> None:
        registry = ListenerRegistry(store, observer, FAST_POLL)
        registry.register("D001")
        registry.register("P001")

        store.append(msg("P001", "D001", "to doctor"))
        store.append(msg("D001", "P001", "to patient"))
        await wait_until(lambda: len(observer.messages) == 2)

        assert {(owner, m.content) for owner, m in observer.messages} == {
            ("D001", "to doctor"),
            ("P001", "to patient"),
        }
        await registry.stop_all()

    async def test_unregister_stops_listener(
        self, store: CountingStore, observer: RecordingObserver
    ) -> None:
        registry = ListenerRegistry(store, observer, FAST_POLL)
        listener = registry.register("D001")

        await registry.unregister("D001")
        await registry.unregister("D001")  # unknown user: no-op

        assert listener.is_running is False
        assert registry.get("D001") is None

    async def test_stop_all(self, store: CountingStore, observer: RecordingObserver) -> None:
        registry = ListenerRegistry(store, observer, FAST_POLL)
        listeners = [registry.register(user) for user in ("D001", "P001", "P002")]

        await registry.stop_all()

        assert len(registry) == 0
        assert not any(listener.is_running for listener in listeners)
