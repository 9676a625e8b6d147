"""Appointment and medication reminders sent over the email channel."""

import structlog

from core.domain.models import AppointmentReminder, MedicationReminder
from core.exceptions import InvalidInputError
from core.services.notifications import NotificationGateway

logger = structlog.get_logger(__name__)

APPOINTMENT_SUBJECT = "Appointment Reminder"
MEDICATION_SUBJECT = "Medication Reminder"


def compose_appointment_reminder(appointment: AppointmentReminder) -> str:
    return (
        f"Reminder: Appointment with Dr. {appointment.doctor_name} "
        f"on {appointment.appointment_time}"
    )


def compose_medication_reminder(prescription: MedicationReminder) -> str:
    return (
        f"Reminder: Take {prescription.medication} ({prescription.dosage}) "
        f"as per schedule: {prescription.schedule}"
    )


class ReminderService:
    """
    Holds the appointments and prescriptions handed over by the scheduling and
    medical-history collaborators and emails reminders for them on demand.

    Sending stops at the first failed delivery, the same way alert fan-out does.
    """

    def __init__(self, gateway: NotificationGateway) -> None:
        if gateway is None:
            raise InvalidInputError("Notification service cannot be null")
        self.gateway = gateway
        self.appointments: list[AppointmentReminder] = []
        self.prescriptions: list[MedicationReminder] = []
        self.logger = logger.bind(component="reminder_service")

    def add_appointment(self, appointment: AppointmentReminder) -> None:
        if not isinstance(appointment, AppointmentReminder):
            raise InvalidInputError("Appointment cannot be null")
        self.appointments.append(appointment)

    def add_prescription(self, prescription: MedicationReminder) -> None:
        if not isinstance(prescription, MedicationReminder):
            raise InvalidInputError("Prescription cannot be null")
        self.prescriptions.append(prescription)

    async def send_appointment_reminders(self) -> int:
        """Email every approved appointment; returns how many were sent."""
        sent = 0
        for appointment in self.appointments:
            if not appointment.is_approved:
                continue
            await self.gateway.send_email(
                appointment.patient_contact,
                APPOINTMENT_SUBJECT,
                compose_appointment_reminder(appointment),
            )
            sent += 1

        self.logger.info(
            "appointment_reminders_sent", sent=sent, skipped=len(self.appointments) - sent
        )
        return sent

    async def send_medication_reminders(self) -> int:
        """Email every prescription; returns how many were sent."""
        sent = 0
        for prescription in self.prescriptions:
            await self.gateway.send_email(
                prescription.patient_contact,
                MEDICATION_SUBJECT,
                compose_medication_reminder(prescription),
            )
            sent += 1

        self.logger.info("medication_reminders_sent", sent=sent)
        return sent
