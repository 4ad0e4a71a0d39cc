"""
Follow-up messaging: the three-message sequence after a completed visit, plus
the standalone reactivation and promotion messages.
"""

from __future__ import annotations

import random
import uuid
from datetime import datetime, tzinfo
from typing import Any, Callable, Mapping, Optional

from salon_recovery import metrics
from salon_recovery.errors import ValidationError
from salon_recovery.logging_config import get_logger
from salon_recovery.models import (
    Appointment,
    Customer,
    Message,
    MessageType,
    Salon,
    ScheduledMessage,
)
from salon_recovery.templates import TemplateCatalog
from salon_recovery.timeutils import Clock, add_calendar_days, days_between_floored, format_short_date, to_local

logger = get_logger(__name__)

# (days after the appointment, message type)
FOLLOW_UP_SEQUENCE = (
    (1, MessageType.FOLLOW_UP),
    (3, MessageType.TIP),
    (21, MessageType.REMINDER),
)

DEFAULT_REACTIVATION_OFFER = "20% off"
DEFAULT_PROMOTION_DETAILS = "15% off your next visit"
PROMOTION_VALID_DAYS = 30

# Checked in order against the service name; unmatched services get haircut tips.
STYLING_TIPS = {
    "Haircut": [
        "Use a heat protectant spray before using any hot styling tools to prevent damage.",
        "For longer-lasting style, try using dry shampoo at the roots on day two or three after your cut.",
        "Remember to trim your hair every 6-8 weeks to maintain the shape and prevent split ends.",
    ],
    "Color": [
        "Use color-safe shampoo and conditioner to help your color last longer.",
        "Rinse with cool water to seal the hair cuticle and lock in color.",
        "Limit washing your hair to 2-3 times a week to prevent color fading.",
    ],
    "Highlights": [
        "Purple shampoo once a week can help keep your highlights bright and prevent brassiness.",
        "Deep condition weekly to keep your highlighted hair healthy and hydrated.",
        "Wear a hat or use UV protection products when in the sun to prevent highlights from fading.",
    ],
    "Blowout": [
        "Sleep on a silk pillowcase to extend the life of your blowout.",
        "Use dry shampoo at the roots before bed to absorb oil and maintain volume.",
        "If your blowout starts to fall, twist sections into loose buns for a few minutes to revive the style.",
    ],
    "Treatment": [
        "Wait 48 hours after your treatment before washing your hair to allow the product to fully set.",
        "Use the professional products recommended by your stylist to maintain your treatment results.",
        "Schedule regular maintenance appointments to keep your treatment looking fresh.",
    ],
}
DEFAULT_TIP_CATEGORY = "Haircut"


def tip_category(service_name: Optional[str]) -> str:
    name = (service_name or "").lower()
    for category in STYLING_TIPS:
        if category.lower() in name:
            return category
    return DEFAULT_TIP_CATEGORY


def pick_tip(service_name: Optional[str], rng: random.Random) -> str:
    return rng.choice(STYLING_TIPS[tip_category(service_name)])


def client_name(customer: Customer) -> Optional[str]:
    return customer.first_name or customer.full_name or None


def build_message(
    catalog: TemplateCatalog,
    message_type: MessageType,
    customer: Customer,
    data: Mapping[str, Any],
    appointment_id: Optional[str] = None,
) -> Message:
    rendered = catalog.render(message_type, data)
    return Message(
        type=message_type,
        to=customer.email,
        phone=customer.phone,
        subject=rendered.subject,
        body=rendered.body,
        client_id=customer.id,
        appointment_id=appointment_id,
    )


def build_reactivation_message(
    catalog: TemplateCatalog,
    customer: Customer,
    salon: Salon,
    offer: str = DEFAULT_REACTIVATION_OFFER,
) -> Message:
    """Win-back message for a client who has not visited in a while."""
    data = {
        "client_name": client_name(customer),
        "salon_name": salon.name,
        "reactivation_offer": offer,
    }
    return build_message(catalog, MessageType.REACTIVATION, customer, data)


def build_promotion_message(
    catalog: TemplateCatalog,
    customer: Customer,
    salon: Salon,
    clock: Clock,
    tz: tzinfo,
    details: Optional[str] = None,
) -> Message:
    """Promotion valid for 30 days from now."""
    expiry = add_calendar_days(clock.now(), PROMOTION_VALID_DAYS, tz)
    data = {
        "client_name": client_name(customer),
        "salon_name": salon.name,
        "promotion_details": details or DEFAULT_PROMOTION_DETAILS,
        "expiry_date": format_short_date(to_local(expiry, tz)),
    }
    return build_message(catalog, MessageType.PROMOTION, customer, data)


def _new_message_id() -> str:
    return uuid.uuid4().hex


class FollowUpScheduler:
    """Derives the follow-up, tip and reminder messages for one completed appointment."""

    def __init__(
        self,
        catalog: TemplateCatalog,
        clock: Clock,
        tz: tzinfo,
        rng: Optional[random.Random] = None,
        days_since_from_send_time: bool = False,
        id_factory: Callable[[], str] = _new_message_id,
    ):
        self.catalog = catalog
        self.clock = clock
        self.tz = tz
        self.rng = rng or random.Random()
        self.days_since_from_send_time = days_since_from_send_time
        self.id_factory = id_factory

    def schedule_sequence(
        self,
        appointment: Appointment,
        customer: Customer,
        salon: Salon,
        service_name: Optional[str] = None,
        stylist_name: Optional[str] = None,
    ) -> list[ScheduledMessage]:
        """
        Three scheduled messages at +1, +3 and +21 calendar days from the
        appointment start, keeping its wall-clock time.

        Placeholders with no value (e.g. an unknown stylist) stay unrendered.
        """
        if appointment.start_time is None:
            raise ValidationError("Completed appointment has no start time")

        base = {
            "client_name": client_name(customer),
            "salon_name": salon.name,
            "service_name": service_name,
        }

        scheduled = []
        for offset_days, message_type in FOLLOW_UP_SEQUENCE:
            send_at = add_calendar_days(appointment.start_time, offset_days, self.tz)
            data = dict(base)
            if message_type is MessageType.FOLLOW_UP:
                data["stylist_name"] = stylist_name
            elif message_type is MessageType.TIP:
                data["tip_content"] = pick_tip(service_name, self.rng)
            elif message_type is MessageType.REMINDER:
                data["days_since"] = str(self._days_since(appointment.start_time, send_at))

            message = build_message(self.catalog, message_type, customer, data, appointment_id=appointment.id)
            scheduled.append(ScheduledMessage(id=self.id_factory(), message=message, scheduled_time=send_at))
            metrics.followup_messages_scheduled_total.labels(type=message_type.value).inc()

        logger.info(
            "followup_sequence_scheduled",
            appointment_id=appointment.id,
            client_id=customer.id,
            messages=len(scheduled),
        )
        return scheduled

    def _days_since(self, appointment_time: datetime, send_at: datetime) -> int:
        reference = send_at if self.days_since_from_send_time else self.clock.now()
        return days_between_floored(appointment_time, reference, self.tz)
