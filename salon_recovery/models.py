"""Canonical data models shared by every booking platform."""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CanonicalModel(BaseModel):
    """Snake_case in Python, camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


class AppointmentStatus(str, Enum):
    """Canonical appointment status."""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no-show"


class PlatformData(CanonicalModel):
    """Platform-native identity; platforms may attach extra keys (siteId, branchId, ...)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    platform: str
    id: Optional[str] = None
    confirmation_code: Optional[str] = None


class Appointment(CanonicalModel):
    id: Optional[str] = None
    customer_id: Optional[str] = None
    service_id: Optional[str] = None
    provider_id: Optional[str] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    # Usually an AppointmentStatus value; unmapped platform statuses pass through lower-cased.
    status: Optional[str] = None
    notes: str = ""
    price: float = 0
    platform_data: Optional[PlatformData] = None


class Customer(CanonicalModel):
    id: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    platform_data: Optional[PlatformData] = None

    @property
    def full_name(self) -> str:
        return " ".join(part for part in (self.first_name, self.last_name) if part)


class Service(CanonicalModel):
    id: Optional[str] = None
    name: Optional[str] = None
    description: Optional[str] = None
    duration: Optional[int] = None
    price: Optional[float] = None
    platform_data: Optional[PlatformData] = None


class Provider(CanonicalModel):
    id: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    title: Optional[str] = None
    bio: Optional[str] = None
    platform_data: Optional[PlatformData] = None

    @property
    def full_name(self) -> str:
        return " ".join(part for part in (self.first_name, self.last_name) if part)


class TimeSlot(CanonicalModel):
    """Open bookable window; produced per availability query and never persisted."""
    start_time: datetime
    end_time: datetime
    provider_id: Optional[str] = None
    service_id: Optional[str] = None
    platform_data: Optional[PlatformData] = None


class ScoredSlot(TimeSlot):
    score: float = 0


class AppointmentDetails(CanonicalModel):
    """Request to book an appointment on a platform."""
    customer_id: str
    service_id: str
    provider_id: Optional[str] = None
    start_time: datetime
    notes: str = ""


class AppointmentPattern(CanonicalModel):
    """Statistical profile of a customer's visit history."""
    services: dict[str, int] = Field(default_factory=dict)
    providers: dict[str, int] = Field(default_factory=dict)
    frequency: dict[str, int] = Field(default_factory=dict)
    preferred_days: dict[str, int] = Field(default_factory=dict)
    preferred_times: dict[str, int] = Field(default_factory=dict)
    intervals: list[int] = Field(default_factory=list)
    average_interval: float = 30
    most_common_service: Optional[str] = None
    most_common_provider: Optional[str] = None
    most_common_day: Optional[str] = None
    most_common_time: Optional[str] = None
    most_common_frequency: Optional[str] = None


class ServiceSummary(CanonicalModel):
    id: Optional[str] = None
    name: Optional[str] = None
    duration: Optional[int] = None
    price: Optional[float] = None


class ProviderSummary(CanonicalModel):
    id: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None


class RebookingSuggestion(CanonicalModel):
    time_slot: ScoredSlot
    service: ServiceSummary
    provider: ProviderSummary
    customer_id: str
    formatted_date_time: str
    score: float


class Salon(CanonicalModel):
    id: Optional[str] = None
    name: str


class MessageType(str, Enum):
    FOLLOW_UP = "followUp"
    REMINDER = "reminder"
    TIP = "tip"
    REACTIVATION = "reactivation"
    PROMOTION = "promotion"


class MessageTemplate(CanonicalModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    subject: str
    body: str


class Message(CanonicalModel):
    type: MessageType
    to: Optional[str] = None  # email
    phone: Optional[str] = None
    subject: str
    body: str
    client_id: Optional[str] = None
    appointment_id: Optional[str] = None


class ScheduledMessageStatus(str, Enum):
    SCHEDULED = "scheduled"
    SENT = "sent"
    CANCELLED = "cancelled"
    FAILED = "failed"


class ScheduledMessage(CanonicalModel):
    id: str
    message: Message
    scheduled_time: datetime
    status: ScheduledMessageStatus = ScheduledMessageStatus.SCHEDULED
    sent_at: Optional[datetime] = None
    error: Optional[str] = None


class MessageEdit(CanonicalModel):
    """Editable fields of a scheduled message."""
    subject: Optional[str] = None
    body: Optional[str] = None
    scheduled_time: Optional[datetime] = None


class NormalizedEvent(CanonicalModel):
    """Platform-neutral webhook event handed to the dispatcher."""
    event_type: str
    platform: str
    raw_event_type: Optional[str] = None
    appointment: Optional[Appointment] = None
    customer: Optional[Customer] = None
    processed_data: dict[str, Any] = Field(default_factory=dict)


class EventResult(CanonicalModel):
    success: bool
    event_type: str
    platform: str
    message: Optional[str] = None
    error: Optional[str] = None
    result: dict[str, Any] = Field(default_factory=dict)


class WebhookResult(CanonicalModel):
    """Outcome of one inbound webhook; ingestion reports failures here instead of raising."""
    success: bool
    platform: str
    event_type: Optional[str] = None
    processed_data: dict[str, Any] = Field(default_factory=dict)
    result: Optional[EventResult] = None
    error: Optional[str] = None


class OutreachRequest(CanonicalModel):
    """Ad-hoc reactivation or promotion message for one customer."""
    platform: str
    customer_id: str
    # Reactivation offer or promotion details; defaults apply when omitted.
    offer: Optional[str] = None
    scheduled_time: Optional[datetime] = None
