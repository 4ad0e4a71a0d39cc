"""Tests for routing normalized booking events to their handlers."""

import asyncio
import random
from datetime import datetime, timezone

from conftest import make_appointment, make_slot
from salon_recovery.errors import PlatformAPIError
from salon_recovery.events import BookingEventDispatcher
from salon_recovery.followups import FollowUpScheduler
from salon_recovery.message_store import ScheduledMessageStore
from salon_recovery.models import Customer, NormalizedEvent, Salon
from salon_recovery.rebooking import RebookingEngine
from salon_recovery.templates import TemplateCatalog

UTC = timezone.utc


def make_dispatcher(adapter, clock, platform="fake"):
    engine = RebookingEngine(adapter, clock, UTC)
    scheduler = FollowUpScheduler(TemplateCatalog(), clock, UTC, rng=random.Random(5))
    return BookingEventDispatcher({platform: engine}, scheduler, ScheduledMessageStore(UTC), Salon(name="Glow Studio"))


def appointment_event(event_type, appointment, platform="fake", customer=None):
    return NormalizedEvent(event_type=event_type, platform=platform, appointment=appointment, customer=customer)


def test_unregistered_event_type(fake_adapter, clock):
    dispatcher = make_dispatcher(fake_adapter, clock)

    result = asyncio.run(dispatcher.dispatch(NormalizedEvent(event_type="invoice.paid", platform="fake")))

    assert not result.success
    assert result.message == "No handler registered for event type: invoice.paid"


def test_created_and_client_events_are_acknowledged(fake_adapter, clock, customer):
    dispatcher = make_dispatcher(fake_adapter, clock)
    appointment = make_appointment("a9", datetime(2024, 2, 2, 14, 0, tzinfo=UTC))

    created = asyncio.run(dispatcher.dispatch(appointment_event("appointment.created", appointment)))
    client = asyncio.run(dispatcher.dispatch(NormalizedEvent(event_type="client.updated", platform="fake", customer=customer)))

    assert created.success
    assert created.message == "Processed appointment created event for a9"
    assert client.message == "Processed client updated event for c1"


def test_cancellation_produces_rebooking_suggestions(fake_adapter, clock):
    fake_adapter.slots = [
        make_slot(datetime(2024, 2, 5, 9, 0, tzinfo=UTC), provider_id="p9"),
        make_slot(datetime(2024, 2, 2, 14, 0, tzinfo=UTC)),
    ]
    dispatcher = make_dispatcher(fake_adapter, clock)
    cancelled = make_appointment("a4", datetime(2024, 2, 1, 14, 0, tzinfo=UTC), status="cancelled")

    result = asyncio.run(dispatcher.dispatch(appointment_event("appointment.cancelled", cancelled)))

    assert result.success
    suggestions = result.result["suggestions"]
    assert len(suggestions) == 2
    assert suggestions[0]["customerId"] == "c1"
    assert suggestions[0]["formattedDateTime"] == "Friday, February 2, 2024 at 2:00 PM"
    assert suggestions[0]["score"] >= suggestions[1]["score"]


def test_completion_schedules_follow_ups(fake_adapter, clock):
    dispatcher = make_dispatcher(fake_adapter, clock)
    completed = make_appointment("a3", datetime(2024, 1, 26, 14, 0, tzinfo=UTC))

    result = asyncio.run(dispatcher.dispatch(appointment_event("appointment.completed", completed)))

    assert result.success
    scheduled = result.result["scheduledMessages"]
    assert [m["message"]["type"] for m in scheduled] == ["followUp", "tip", "reminder"]
    assert scheduled[0]["scheduledTime"].startswith("2024-01-27T14:00:00")
    assert "Hi Sarah," in scheduled[0]["message"]["body"]
    assert "How was your experience with Pat?" in scheduled[0]["message"]["body"]
    assert result.result["nextAppointmentDate"].startswith("2024-02-23T14:00:00")
    assert len(asyncio.run(dispatcher.store.list(client_id="c1"))) == 3


def test_completion_for_unknown_customer_still_schedules(clock):
    from conftest import FakeAdapter

    dispatcher = make_dispatcher(FakeAdapter(), clock)
    completed = make_appointment("a1", datetime(2024, 1, 26, 14, 0, tzinfo=UTC), customer_id="ghost")

    result = asyncio.run(dispatcher.dispatch(appointment_event("appointment.completed", completed)))

    assert result.success
    assert "Hi {client_name}," in result.result["scheduledMessages"][0]["message"]["body"]


def test_event_customer_is_used_when_present(fake_adapter, clock):
    dispatcher = make_dispatcher(fake_adapter, clock)
    completed = make_appointment("a3", datetime(2024, 1, 26, 14, 0, tzinfo=UTC))
    customer = Customer(id="c1", first_name="Sally")

    result = asyncio.run(dispatcher.dispatch(appointment_event("appointment.completed", completed, customer=customer)))

    assert "Hi Sally," in result.result["scheduledMessages"][0]["message"]["body"]


def test_handler_errors_are_returned_not_raised(fake_adapter, clock):
    fake_adapter.fail_with = PlatformAPIError("platform down", platform="fake")
    dispatcher = make_dispatcher(fake_adapter, clock)
    cancelled = make_appointment("a4", datetime(2024, 2, 1, 14, 0, tzinfo=UTC), status="cancelled")

    result = asyncio.run(dispatcher.dispatch(appointment_event("appointment.cancelled", cancelled)))

    assert not result.success
    assert result.error == "platform down"


def test_missing_appointment_is_an_event_error(fake_adapter, clock):
    dispatcher = make_dispatcher(fake_adapter, clock)

    result = asyncio.run(dispatcher.dispatch(NormalizedEvent(event_type="appointment.cancelled", platform="fake")))

    assert not result.success
    assert result.error == "Missing appointment data in payload"


def test_event_for_platform_without_engine(fake_adapter, clock):
    dispatcher = make_dispatcher(fake_adapter, clock)
    cancelled = make_appointment("a4", datetime(2024, 2, 1, 14, 0, tzinfo=UTC))

    result = asyncio.run(dispatcher.dispatch(appointment_event("appointment.cancelled", cancelled, platform="square")))

    assert not result.success
    assert result.error == "Unsupported platform: square"


def test_batch_isolates_failures(fake_adapter, clock):
    dispatcher = make_dispatcher(fake_adapter, clock)
    events = [
        NormalizedEvent(event_type="appointment.cancelled", platform="fake"),
        appointment_event("appointment.created", make_appointment("a5", datetime(2024, 2, 2, 14, 0, tzinfo=UTC))),
        NormalizedEvent(event_type="invoice.paid", platform="fake"),
    ]

    results = asyncio.run(dispatcher.process_batch(events))

    assert [r.success for r in results] == [False, True, False]


def test_custom_handler_replaces_default(fake_adapter, clock):
    dispatcher = make_dispatcher(fake_adapter, clock)

    async def quiet(event):
        return {"message": "ignored"}

    dispatcher.register_handler("appointment.cancelled", quiet)
    result = asyncio.run(dispatcher.dispatch(NormalizedEvent(event_type="appointment.cancelled", platform="fake")))

    assert result.success
    assert result.message == "ignored"
    assert fake_adapter.availability_calls == []
