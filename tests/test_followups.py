"""Tests for the follow-up sequence and standalone outreach messages."""

import random
from datetime import datetime, timezone
from itertools import count
from zoneinfo import ZoneInfo

import pytest

from conftest import make_appointment
from salon_recovery.errors import ValidationError
from salon_recovery.followups import (
    STYLING_TIPS,
    FollowUpScheduler,
    build_promotion_message,
    build_reactivation_message,
    pick_tip,
    tip_category,
)
from salon_recovery.models import Appointment, Customer, MessageType, Salon
from salon_recovery.templates import TemplateCatalog

SALON = Salon(name="Glow Studio")


def make_scheduler(clock, tz=timezone.utc, **kwargs):
    ids = count(1)
    return FollowUpScheduler(
        TemplateCatalog(), clock, tz, rng=random.Random(3), id_factory=lambda: f"msg-{next(ids)}", **kwargs
    )


def test_sequence_is_one_three_and_twenty_one_days_later(clock, customer):
    appointment = make_appointment("a1", datetime(2024, 1, 25, 14, 0, tzinfo=timezone.utc))

    messages = make_scheduler(clock).schedule_sequence(
        appointment, customer, SALON, service_name="Haircut", stylist_name="Alex Rivera"
    )

    assert [m.message.type for m in messages] == [MessageType.FOLLOW_UP, MessageType.TIP, MessageType.REMINDER]
    assert [m.scheduled_time for m in messages] == [
        datetime(2024, 1, 26, 14, 0, tzinfo=timezone.utc),
        datetime(2024, 1, 28, 14, 0, tzinfo=timezone.utc),
        datetime(2024, 2, 15, 14, 0, tzinfo=timezone.utc),
    ]
    assert [m.id for m in messages] == ["msg-1", "msg-2", "msg-3"]
    assert all(m.status == "scheduled" for m in messages)
    assert all(m.message.client_id == "c1" and m.message.appointment_id == "a1" for m in messages)
    assert all(m.message.to == "sarah@example.com" for m in messages)


def test_follow_up_names_client_and_stylist(clock, customer):
    appointment = make_appointment("a1", datetime(2024, 1, 25, 14, 0, tzinfo=timezone.utc))

    follow_up = make_scheduler(clock).schedule_sequence(
        appointment, customer, SALON, service_name="Haircut", stylist_name="Alex Rivera"
    )[0].message

    assert follow_up.subject == "How was your recent appointment?"
    assert follow_up.body.startswith("Hi Sarah,\n\nThank you for visiting Glow Studio!")
    assert "How was your experience with Alex Rivera?" in follow_up.body


def test_unknown_stylist_leaves_placeholder(clock, customer):
    appointment = make_appointment("a1", datetime(2024, 1, 25, 14, 0, tzinfo=timezone.utc))

    follow_up = make_scheduler(clock).schedule_sequence(appointment, customer, SALON)[0].message

    assert "{stylist_name}" in follow_up.body


def test_tip_comes_from_service_category(clock, customer):
    appointment = make_appointment("a1", datetime(2024, 1, 25, 14, 0, tzinfo=timezone.utc))

    tip = make_scheduler(clock).schedule_sequence(appointment, customer, SALON, service_name="Balayage Color")[1].message

    assert "recent Balayage Color from Glow Studio" in tip.body
    assert any(text in tip.body for text in STYLING_TIPS["Color"])


def test_reminder_days_since_counts_from_now(clock, customer):
    appointment = make_appointment("a1", datetime(2024, 1, 25, 14, 0, tzinfo=timezone.utc))

    reminder = make_scheduler(clock).schedule_sequence(appointment, customer, SALON, service_name="Haircut")[2].message

    # clock is 2024-01-31 08:00, 5.75 days after the visit
    assert "It's been about 5 days since your last appointment" in reminder.body
    assert "Your Haircut might be due for a refresh!" in reminder.body


def test_reminder_days_since_from_send_time(clock, customer):
    appointment = make_appointment("a1", datetime(2024, 1, 25, 14, 0, tzinfo=timezone.utc))

    reminder = make_scheduler(clock, days_since_from_send_time=True).schedule_sequence(
        appointment, customer, SALON
    )[2].message

    assert "about 21 days" in reminder.body


def test_sequence_keeps_wall_clock_across_dst(clock, customer):
    tz = ZoneInfo("America/New_York")
    # 14:00 EST on the day before the spring-forward change
    appointment = make_appointment("a1", datetime(2024, 3, 9, 19, 0, tzinfo=timezone.utc))

    messages = make_scheduler(clock, tz=tz).schedule_sequence(appointment, customer, SALON)

    first = messages[0].scheduled_time
    assert (first.month, first.day, first.hour) == (3, 10, 14)
    assert first.astimezone(timezone.utc).hour == 18


def test_appointment_without_start_time_is_rejected(clock, customer):
    with pytest.raises(ValidationError):
        make_scheduler(clock).schedule_sequence(Appointment(id="a1"), customer, SALON)


def test_tip_category_matching():
    assert tip_category("Full Highlights") == "Highlights"
    assert tip_category("Keratin Treatment") == "Treatment"
    assert tip_category("Beard trim") == "Haircut"
    assert tip_category(None) == "Haircut"
    assert pick_tip("Blowout", random.Random(1)) in STYLING_TIPS["Blowout"]


def test_client_name_falls_back_to_full_name(clock):
    customer = Customer(id="c2", last_name="Levi", email="levi@example.com")

    message = build_reactivation_message(TemplateCatalog(), customer, SALON)

    assert message.body.startswith("Hi Levi,")
    assert message.type == MessageType.REACTIVATION
    assert "20% off on your next visit" in message.body


def test_promotion_expires_in_thirty_days(clock, customer):
    message = build_promotion_message(TemplateCatalog(), customer, SALON, clock, timezone.utc)

    assert "special promotion: 15% off your next visit" in message.body
    assert "This offer is valid until 3/1/2024." in message.body


def test_promotion_with_custom_details(clock, customer):
    message = build_promotion_message(
        TemplateCatalog(), customer, SALON, clock, timezone.utc, details="a free deep-conditioning treatment"
    )

    assert "a free deep-conditioning treatment" in message.body
