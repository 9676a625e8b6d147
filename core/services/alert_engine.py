"""
Vital-sign threshold alerts and panic alerts.

Both triggers end in the same fan-out over the notification gateway. They are
plain coroutines sharing `fan_out` rather than subclasses of an alert base;
`AlertEngine` only bundles the gateway, thresholds and subject so callers do
not have to pass them around.

Decisions worth knowing:
- A missing reading counts as within threshold and raises no alert
- Fan-out aborts on the first failing recipient; callers that want
  best-effort delivery must send per recipient themselves
- No memory between evaluations: a repeated breach alerts every time
"""

from collections.abc import Callable

import structlog
from pydantic import BaseModel, Field, model_validator

from core.domain.models import AlertKind, AlertOutcome, AlertRecipientSet, VitalReading, VitalSign
from core.exceptions import InvalidInputError, RpmsError
from core.services.notifications import NotificationGateway

logger = structlog.get_logger(__name__)

DEFAULT_ALERT_SUBJECT = "Emergency Alert"

# Direct, synchronous path to a single responder (e.g. the patient's doctor)
Responder = Callable[[str], None]


class VitalRange(BaseModel):
    """Inclusive normal range; `high=None` means unbounded above."""

    low: float
    high: float | None = None

    @model_validator(mode="after")
    def low_not_above_high(self) -> "VitalRange":
        if self.high is not None and self.low > self.high:
            raise ValueError("low bound must not exceed high bound")
        return self

    def contains(self, value: float) -> bool:
        if value < self.low:
            return False
        return self.high is None or value <= self.high


class VitalThresholds(BaseModel):
    """Normal physiological ranges used for threshold evaluation."""

    heart_rate: VitalRange = Field(default_factory=lambda: VitalRange(low=60, high=100))
    blood_pressure: VitalRange = Field(default_factory=lambda: VitalRange(low=90, high=140))
    body_temperature: VitalRange = Field(default_factory=lambda: VitalRange(low=36.1, high=37.2))
    oxygen_level: VitalRange = Field(default_factory=lambda: VitalRange(low=95))

    def range_for(self, vital: VitalSign) -> VitalRange:
        return getattr(self, vital.value)


DEFAULT_THRESHOLDS = VitalThresholds()


def out_of_range_vitals(
    reading: VitalReading | None, thresholds: VitalThresholds = DEFAULT_THRESHOLDS
) -> list[VitalSign]:
    """Vitals of the reading outside their normal range, in a fixed order."""
    if reading is None:
        return []
    return [
        vital for vital in VitalSign if not thresholds.range_for(vital).contains(reading.value_of(vital))
    ]


def is_within_threshold(
    reading: VitalReading | None, thresholds: VitalThresholds = DEFAULT_THRESHOLDS
) -> bool:
    """True when every vital is in range. A missing reading counts as within threshold."""
    return not out_of_range_vitals(reading, thresholds)


def compose_vital_alert(reading: VitalReading) -> str:
    return (
        f"Alert! Patient {reading.patient_id}'s vital signs are abnormal: "
        f"HR={reading.heart_rate}, BP={reading.blood_pressure}, "
        f"Temp={reading.body_temperature}, O2={reading.oxygen_level}"
    )


def compose_panic_alert(patient_id: str) -> str:
    return f"Emergency! Patient {patient_id} needs immediate attention."


async def fan_out(
    gateway: NotificationGateway,
    recipients: AlertRecipientSet,
    subject: str,
    message: str,
) -> list[str]:
    """Email the message to every recipient in order; the first failure propagates."""
    reached: list[str] = []
    for address in recipients.addresses:
        await gateway.send_email(address, subject, message)
        reached.append(address)
    return reached


async def dispatch_vital_alert(
    gateway: NotificationGateway,
    reading: VitalReading | None,
    recipients: AlertRecipientSet,
    *,
    thresholds: VitalThresholds = DEFAULT_THRESHOLDS,
    subject: str = DEFAULT_ALERT_SUBJECT,
) -> AlertOutcome:
    """Alert every recipient when any vital is out of range."""
    _require_recipients(recipients)

    if reading is None:
        logger.info("vital_reading_missing_treated_as_normal")
        return AlertOutcome(kind=AlertKind.THRESHOLD, patient_id=None, triggered=False)

    log = logger.bind(patient_id=reading.patient_id)
    breached = out_of_range_vitals(reading, thresholds)
    if not breached:
        log.info("vitals_within_threshold")
        return AlertOutcome(kind=AlertKind.THRESHOLD, patient_id=reading.patient_id, triggered=False)

    message = compose_vital_alert(reading)
    log.warning(
        "vitals_out_of_threshold",
        out_of_range=[vital.value for vital in breached],
        recipients=len(recipients),
    )
    reached = await fan_out(gateway, recipients, subject, message)

    return AlertOutcome(
        kind=AlertKind.THRESHOLD,
        patient_id=reading.patient_id,
        triggered=True,
        message=message,
        recipients=tuple(reached),
        out_of_range=tuple(breached),
    )


async def dispatch_panic_alert(
    gateway: NotificationGateway,
    patient_id: str,
    recipients: AlertRecipientSet,
    responder: Responder,
    *,
    subject: str = DEFAULT_ALERT_SUBJECT,
) -> AlertOutcome:
    """
    Alert every recipient, then the direct responder, regardless of vitals.

    The responder is notified even when the fan-out failed; the delivery
    error is re-raised afterwards so it is never swallowed.
    """
    if not patient_id or not patient_id.strip():
        raise InvalidInputError("Patient ID cannot be null or empty")
    if responder is None:
        raise InvalidInputError("Responder cannot be null")
    _require_recipients(recipients)

    log = logger.bind(patient_id=patient_id)
    message = compose_panic_alert(patient_id)
    log.warning("panic_alert_triggered", recipients=len(recipients))

    fan_out_error: RpmsError | None = None
    reached: list[str] = []
    try:
        reached = await fan_out(gateway, recipients, subject, message)
    except RpmsError as e:
        log.error("panic_alert_fan_out_failed", error=str(e))
        fan_out_error = e

    try:
        responder(message)
        log.info("panic_alert_responder_notified")
    except Exception as e:
        if fan_out_error is None:
            raise
        log.exception("panic_alert_responder_failed", error=str(e))
        raise fan_out_error

    if fan_out_error is not None:
        raise fan_out_error

    return AlertOutcome(
        kind=AlertKind.PANIC,
        patient_id=patient_id,
        triggered=True,
        message=message,
        recipients=tuple(reached),
        responder_notified=True,
    )


def _require_recipients(recipients: AlertRecipientSet) -> None:
    if not isinstance(recipients, AlertRecipientSet):
        raise InvalidInputError("Recipients cannot be null or empty")


class AlertEngine:
    """Stateless facade over threshold and panic dispatch; safe to share across tasks."""

    def __init__(
        self,
        gateway: NotificationGateway,
        thresholds: VitalThresholds | None = None,
        subject: str = DEFAULT_ALERT_SUBJECT,
    ) -> None:
        if gateway is None:
            raise InvalidInputError("Notification service cannot be null")
        self.gateway = gateway
        self.thresholds = thresholds or DEFAULT_THRESHOLDS
        self.subject = subject

    def is_within_threshold(self, reading: VitalReading | None) -> bool:
        return is_within_threshold(reading, self.thresholds)

    async def check_vitals(
        self, reading: VitalReading | None, recipients: AlertRecipientSet
    ) -> AlertOutcome:
        return await dispatch_vital_alert(
            self.gateway, reading, recipients, thresholds=self.thresholds, subject=self.subject
        )

    async def press_panic_button(
        self, patient_id: str, recipients: AlertRecipientSet, responder: Responder
    ) -> AlertOutcome:
        return await dispatch_panic_alert(
            self.gateway, patient_id, recipients, responder, subject=self.subject
        )
