"""
Composition root for the messaging and alert-dispatch core.

Wires the conversation store, per-user listeners, notification channels,
alert engine and reminders from one `AppConfig`, and exposes the operations
the UI shell drives: log in and out, chat, submit vitals, press the panic
button.
"""

import asyncio
from collections.abc import Iterable
from datetime import UTC, datetime, timedelta

import structlog
from pydantic import ValidationError

from adapters.console.observers import (
    ConsoleMessageObserver,
    ConsoleResponder,
    print_alert_outcome,
    print_chat_history,
)
from adapters.notifications.console import ConsoleChannel
from adapters.notifications.email import SmtpEmailChannel
from core.config import AppConfig, get_config
from core.domain.models import (
    AlertOutcome,
    AlertRecipientSet,
    AppointmentReminder,
    VitalReading,
)
from core.exceptions import InvalidInputError
from core.logging_config import configure_logging
from core.services.alert_engine import AlertEngine, Responder
from core.services.chat_session import ChatSession
from core.services.conversation_store import ConversationStore
from core.services.message_listener import ListenerRegistry, MessageListener, MessageObserver
from core.services.notifications import ChannelType, NotificationChannel, NotificationGateway
from core.services.reminders import ReminderService

logger = structlog.get_logger(__name__)


def build_channels(config: AppConfig) -> list[NotificationChannel]:
    """SMTP email when an account is configured, console otherwise; SMS is always console."""
    email: NotificationChannel
    if config.email.is_configured:
        email = SmtpEmailChannel(config.email)
    else:
        logger.warning("smtp_not_configured_using_console_email")
        email = ConsoleChannel(ChannelType.EMAIL)
    return [email, ConsoleChannel(ChannelType.SMS)]


def recipients_from_roster(roster: Iterable[str]) -> AlertRecipientSet:
    if roster is None:
        raise InvalidInputError("Recipients cannot be null or empty")
    try:
        return AlertRecipientSet.from_roster(roster)
    except ValidationError as e:
        raise InvalidInputError("Recipients cannot be null or empty") from e


class PatientMonitoringService:
    """
    Long-lived service object owning every messaging and alerting component.

    `login` must be called from inside a running event loop, since it starts
    the user's listener task there.
    """

    def __init__(
        self,
        config: AppConfig | None = None,
        *,
        observer: MessageObserver | None = None,
        channels: Iterable[NotificationChannel] | None = None,
    ) -> None:
        self.config = config or get_config()
        self.logger = logger.bind(component="patient_monitoring")

        self.store = ConversationStore()
        self.listeners = ListenerRegistry(
            self.store,
            observer or ConsoleMessageObserver(),
            self.config.chat.poll_interval_seconds,
        )
        self.gateway = NotificationGateway(
            channels if channels is not None else build_channels(self.config)
        )
        self.alert_engine = AlertEngine(self.gateway, subject=self.config.alerts.subject)
        self.reminders = ReminderService(self.gateway)

        self.logger.info(
            "patient_monitoring_initialized",
            environment=self.config.environment,
            channels=sorted(c.value for c in self.gateway.channel_types),
        )

    def login(self, user_id: str) -> MessageListener:
        """Start the user's message listener, replacing any earlier one."""
        listener = self.listeners.register(user_id)
        self.logger.info("user_logged_in", user_id=user_id)
        return listener

    async def logout(self, user_id: str) -> None:
        await self.listeners.unregister(user_id)
        self.logger.info("user_logged_out", user_id=user_id)

    def chat_session(self, user_id: str) -> ChatSession:
        return ChatSession(user_id, self.store)

    async def submit_vitals(
        self, reading: VitalReading | None, roster: Iterable[str]
    ) -> AlertOutcome:
        """Evaluate a new reading and alert the roster if any vital is out of range."""
        return await self.alert_engine.check_vitals(reading, recipients_from_roster(roster))

    async def press_panic_button(
        self, patient_id: str, roster: Iterable[str], responder: Responder
    ) -> AlertOutcome:
        return await self.alert_engine.press_panic_button(
            patient_id, recipients_from_roster(roster), responder
        )

    async def shutdown(self) -> None:
        """Stop every listener and wait for them to exit."""
        await self.listeners.stop_all()
        self.logger.info("patient_monitoring_stopped")


async def main() -> None:
    """Walk through a doctor/patient session end to end."""

    from rich.console import Console

    config = get_config()
    configure_logging(config.logging)
    console = Console()

    service = PatientMonitoringService(config, observer=ConsoleMessageObserver(console))
    doctor, patient = "D001", "P001"
    roster = ["doctor@example.com", "family@example.com"]

    try:
        service.login(doctor)
        service.login(patient)

        patient_chat = service.chat_session(patient)
        patient_chat.send(doctor, "Good morning doctor, I feel dizzy today.")
        service.chat_session(doctor).send(patient, "Please submit your vitals now.")

        # Give both listeners a poll
        await asyncio.sleep(config.chat.poll_interval_seconds + 0.5)
        print_chat_history(console, patient, doctor, patient_chat.history_with(doctor))

        reading = VitalReading(
            patient_id=patient,
            heart_rate=45,
            blood_pressure=110,
            body_temperature=36.8,
            oxygen_level=98,
        )
        print_alert_outcome(console, await service.submit_vitals(reading, roster))

        responder = ConsoleResponder("Smith", console)
        print_alert_outcome(
            console, await service.press_panic_button(patient, roster, responder)
        )

        service.reminders.add_appointment(
            AppointmentReminder(
                appointment_id="A001",
                patient_contact="patient@example.com",
                doctor_name="Smith",
                appointment_time=datetime.now(UTC) + timedelta(days=1),
                status="Approved",
            )
        )
        sent = await service.reminders.send_appointment_reminders()
        console.print(f"Appointment reminders sent: {sent}")
    finally:
        await service.shutdown()
        console.print("Patient monitoring stopped", style="green")


def cli() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    cli()
