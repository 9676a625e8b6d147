"""
Domain models for patient messaging and vital-sign alerting.

These models represent the core business concepts and are framework-agnostic.
They use Pydantic for validation; everything a caller can hold is frozen so a
value used for a decision cannot change after the decision was made.
"""

from collections.abc import Iterable
from datetime import UTC, date, datetime
from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _require_text(value: str) -> str:
    if not value or not value.strip():
        raise ValueError("must not be blank")
    return value


class ChatMessage(BaseModel):
    """A single message in a two-party conversation."""

    model_config = ConfigDict(frozen=True)

    message_id: str = Field(default_factory=lambda: uuid4().hex)
    sender_id: str
    receiver_id: str
    content: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    # Only the conversation store flips this, by swapping in a read copy
    read: bool = False

    @field_validator("sender_id", "receiver_id", "content")
    @classmethod
    def not_blank(cls, v: str) -> str:
        return _require_text(v)

    def as_read(self) -> "ChatMessage":
        """Return a copy of this message with the read flag set."""
        if self.read:
            return self
        return self.model_copy(update={"read": True})


class ConversationKey(BaseModel):
    """Unordered pair of user ids, stored in lexicographic order."""

    model_config = ConfigDict(frozen=True)

    first: str
    second: str

    @classmethod
    def of(cls, user_a: str, user_b: str) -> "ConversationKey":
        low, high = sorted((user_a, user_b))
        return cls(first=low, second=high)

    def involves(self, user_id: str) -> bool:
        return user_id in (self.first, self.second)

    def __str__(self) -> str:
        return f"{self.first}-{self.second}"


class VitalSign(str, Enum):
    """Vitals carried by a reading."""

    HEART_RATE = "heart_rate"
    BLOOD_PRESSURE = "blood_pressure"
    BODY_TEMPERATURE = "body_temperature"
    OXYGEN_LEVEL = "oxygen_level"


class VitalReading(BaseModel):
    """One checkup's vital signs for a patient. Immutable once built."""

    model_config = ConfigDict(frozen=True)

    patient_id: str
    heart_rate: float
    blood_pressure: float
    body_temperature: float
    oxygen_level: float
    reading_date: date = Field(default_factory=date.today)

    @field_validator("patient_id")
    @classmethod
    def patient_not_blank(cls, v: str) -> str:
        return _require_text(v)

    @field_validator("reading_date")
    @classmethod
    def not_in_future(cls, v: date) -> date:
        # Local calendar day, the same one a collaborator passing date.today() uses
        if v > date.today():
            raise ValueError("reading date must be a past or present date")
        return v

    def value_of(self, vital: VitalSign) -> float:
        return float(getattr(self, vital.value))


class AlertRecipientSet(BaseModel):
    """Ordered, non-empty list of delivery addresses for one alert."""

    model_config = ConfigDict(frozen=True)

    addresses: tuple[str, ...] = Field(min_length=1)

    @field_validator("addresses", mode="before")
    @classmethod
    def not_a_single_string(cls, v: object) -> object:
        if isinstance(v, str):
            raise ValueError("addresses must be a collection of addresses, not a single string")
        return v

    @field_validator("addresses")
    @classmethod
    def addresses_not_blank(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        for address in v:
            _require_text(address)
        return v

    @classmethod
    def from_roster(cls, contacts: Iterable[str]) -> "AlertRecipientSet":
        return cls(addresses=contacts if isinstance(contacts, str) else tuple(contacts))

    def __len__(self) -> int:
        return len(self.addresses)


class AlertKind(str, Enum):
    """Which trigger produced an alert."""

    THRESHOLD = "threshold"
    PANIC = "panic"


class AlertOutcome(BaseModel):
    """What an alert evaluation did, reported back to the observation channel."""

    model_config = ConfigDict(frozen=True)

    kind: AlertKind
    patient_id: str | None
    triggered: bool
    message: str | None = None
    recipients: tuple[str, ...] = ()
    out_of_range: tuple[VitalSign, ...] = ()
    responder_notified: bool = False
    evaluated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class AppointmentReminder(BaseModel):
    """Appointment details handed over by the scheduling collaborator."""

    model_config = ConfigDict(frozen=True)

    appointment_id: str
    patient_contact: str
    doctor_name: str
    appointment_time: datetime
    status: str = "Pending"

    @property
    def is_approved(self) -> bool:
        return self.status == "Approved"


class MedicationReminder(BaseModel):
    """Prescription details handed over by the medical-history collaborator."""

    model_config = ConfigDict(frozen=True)

    prescription_id: str
    patient_contact: str
    medication: str
    dosage: str
    schedule: str
