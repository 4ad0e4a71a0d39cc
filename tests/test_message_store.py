"""Tests for the scheduled message store and due-message delivery."""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from salon_recovery.delivery import LoggingMessageSender, deliver_due_messages
from salon_recovery.errors import InvalidMessageTransitionError, MessageNotFoundError
from salon_recovery.message_store import ScheduledMessageStore
from salon_recovery.models import (
    Message,
    MessageEdit,
    MessageType,
    ScheduledMessage,
    ScheduledMessageStatus,
)


def scheduled(message_id, when, client_id="c1", message_type=MessageType.FOLLOW_UP):
    return ScheduledMessage(
        id=message_id,
        message=Message(type=message_type, subject=f"subject {message_id}", body="body", client_id=client_id),
        scheduled_time=when,
    )


def at(day, hour=14):
    return datetime(2024, 2, day, hour, 0, tzinfo=timezone.utc)


class RecordingSender:
    def __init__(self):
        self.sent = []

    async def send(self, message):
        self.sent.append(message)


def test_list_is_ordered_and_filtered():
    async def scenario():
        store = ScheduledMessageStore()
        await store.add_many([
            scheduled("m3", at(15)),
            scheduled("m1", at(1)),
            scheduled("m2", at(3), client_id="c2"),
        ])
        await store.cancel("m3")

        everything = await store.list()
        for_c1 = await store.list(client_id="c1")
        cancelled = await store.list(status=ScheduledMessageStatus.CANCELLED)
        return store, everything, for_c1, cancelled

    store, everything, for_c1, cancelled = asyncio.run(scenario())

    assert len(store) == 3
    assert [m.id for m in everything] == ["m1", "m2", "m3"]
    assert [m.id for m in for_c1] == ["m1", "m3"]
    assert [m.id for m in cancelled] == ["m3"]


def test_unknown_message_id():
    store = ScheduledMessageStore()

    with pytest.raises(MessageNotFoundError) as exc_info:
        asyncio.run(store.get("nope"))
    assert str(exc_info.value) == "Scheduled message nope not found"


def test_cancel_is_idempotent():
    async def scenario():
        store = ScheduledMessageStore()
        await store.add(scheduled("m1", at(1)))
        first = await store.cancel("m1")
        second = await store.cancel("m1")
        return first, second

    first, second = asyncio.run(scenario())

    assert first.status == ScheduledMessageStatus.CANCELLED
    assert second == first


def test_sent_message_cannot_be_cancelled_or_edited():
    async def scenario():
        store = ScheduledMessageStore()
        await store.add(scheduled("m1", at(1)))
        await store.deliver("m1", RecordingSender().send, at(1))
        with pytest.raises(InvalidMessageTransitionError) as cancel_error:
            await store.cancel("m1")
        with pytest.raises(InvalidMessageTransitionError):
            await store.edit("m1", MessageEdit(subject="late"))
        return cancel_error.value

    error = asyncio.run(scenario())

    assert error.current == "sent"
    assert error.requested == "cancelled"


def test_cancelled_message_is_not_sent():
    async def scenario():
        store = ScheduledMessageStore()
        sender = RecordingSender()
        await store.add(scheduled("m1", at(1)))
        await store.cancel("m1")
        return sender, await store.deliver("m1", sender.send, at(1)), await store.get("m1")

    sender, result, final = asyncio.run(scenario())

    assert result is None
    assert sender.sent == []
    assert final.status == ScheduledMessageStatus.CANCELLED


def test_edit_changes_only_given_fields():
    async def scenario():
        store = ScheduledMessageStore()
        await store.add(scheduled("m1", at(1)))
        return await store.edit("m1", MessageEdit(body="New body", scheduled_time=at(2, 10)))

    edited = asyncio.run(scenario())

    assert edited.message.subject == "subject m1"
    assert edited.message.body == "New body"
    assert edited.scheduled_time == at(2, 10)
    assert edited.status == ScheduledMessageStatus.SCHEDULED


def test_concurrent_edit_and_cancel_leave_a_consistent_message():
    async def scenario():
        store = ScheduledMessageStore()
        await store.add(scheduled("m1", at(1)))
        results = await asyncio.gather(
            store.edit("m1", MessageEdit(subject="edited")),
            store.cancel("m1"),
            return_exceptions=True,
        )
        return results, await store.get("m1")

    results, final = asyncio.run(scenario())

    assert final.status == ScheduledMessageStatus.CANCELLED
    assert not any(isinstance(r, Exception) and not isinstance(r, InvalidMessageTransitionError) for r in results)


def test_due_messages_are_sent_once(clock):
    async def scenario():
        store = ScheduledMessageStore()
        now = clock.now()
        await store.add_many([
            scheduled("due", now - timedelta(hours=1)),
            scheduled("exact", now),
            scheduled("later", now + timedelta(days=1)),
            scheduled("cancelled", now - timedelta(days=1)),
        ])
        await store.cancel("cancelled")
        sender = RecordingSender()
        first = await deliver_due_messages(store, sender, clock)
        second = await deliver_due_messages(store, sender, clock)
        return store, sender, first, second

    store, sender, first, second = asyncio.run(scenario())

    assert [m.id for m in first] == ["due", "exact"]
    assert all(m.status == ScheduledMessageStatus.SENT and m.sent_at == clock.now() for m in first)
    assert second == []
    assert [m.subject for m in sender.sent] == ["subject due", "subject exact"]


class FlakySender:
    def __init__(self, failing_subject):
        self.failing_subject = failing_subject
        self.sent = []

    async def send(self, message):
        if message.subject == self.failing_subject:
            raise ConnectionError("smtp down")
        self.sent.append(message)


def test_failed_send_marks_only_that_message(clock):
    async def scenario():
        store = ScheduledMessageStore()
        now = clock.now()
        await store.add_many([scheduled("m1", now - timedelta(hours=2)), scheduled("m2", now - timedelta(hours=1))])
        delivered = await deliver_due_messages(store, FlakySender("subject m1"), clock)
        return delivered

    delivered = asyncio.run(scenario())

    by_id = {m.id: m for m in delivered}
    assert by_id["m1"].status == ScheduledMessageStatus.FAILED
    assert by_id["m1"].error == "smtp down"
    assert by_id["m2"].status == ScheduledMessageStatus.SENT


class SlowSender(RecordingSender):
    def __init__(self):
        super().__init__()
        self.started = asyncio.Event()

    async def send(self, message):
        self.started.set()
        await asyncio.sleep(0.01)
        await super().send(message)


def test_edit_during_delivery_waits_for_the_outcome(clock):
    async def scenario():
        store = ScheduledMessageStore()
        await store.add(scheduled("m1", clock.now() - timedelta(hours=1)))
        sender = SlowSender()
        delivery = asyncio.create_task(deliver_due_messages(store, sender, clock))
        await sender.started.wait()
        edit, cancel = await asyncio.gather(
            store.edit("m1", MessageEdit(body="new body")),
            store.cancel("m1"),
            return_exceptions=True,
        )
        await delivery
        return sender, edit, cancel, await store.get("m1")

    sender, edit, cancel, final = asyncio.run(scenario())

    assert [m.body for m in sender.sent] == ["body"]
    assert isinstance(edit, InvalidMessageTransitionError)
    assert isinstance(cancel, InvalidMessageTransitionError)
    assert final.status == ScheduledMessageStatus.SENT
    assert final.message.body == "body"


def test_locks_are_released_once_a_message_is_final(clock):
    async def scenario():
        store = ScheduledMessageStore()
        now = clock.now()
        await store.add_many([scheduled("sent", now), scheduled("cancelled", now), scheduled("open", now + timedelta(days=1))])
        await store.edit("open", MessageEdit(subject="still scheduled"))
        await store.cancel("cancelled")
        await store.cancel("cancelled")
        await deliver_due_messages(store, LoggingMessageSender(), clock)
        with pytest.raises(MessageNotFoundError):
            await store.cancel("missing")
        return store

    store = asyncio.run(scenario())

    assert set(store._locks) == {"open"}


def test_logging_sender_keeps_no_copies():
    sender = LoggingMessageSender()

    for n in range(3):
        asyncio.run(sender.send(Message(type=MessageType.REMINDER, subject=f"s{n}", body="b", client_id="c1")))

    assert vars(sender) == {}
