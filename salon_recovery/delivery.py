"""
Delivery of due scheduled messages.

The actual email/SMS transport is pluggable through ``MessageSender``; the
default sender only logs.
"""

from __future__ import annotations

from typing import Protocol

from salon_recovery import metrics
from salon_recovery.logging_config import get_logger
from salon_recovery.message_store import ScheduledMessageStore
from salon_recovery.models import Message, ScheduledMessage
from salon_recovery.timeutils import Clock

logger = get_logger(__name__)


class MessageSender(Protocol):
    async def send(self, message: Message) -> None:
        """Deliver one rendered message; raise on failure."""
        ...


class LoggingMessageSender:
    """Writes messages to the log instead of sending them."""

    async def send(self, message: Message) -> None:
        logger.info(
            "message_sent",
            type=message.type.value,
            to=message.to,
            phone=message.phone,
            client_id=message.client_id,
            subject=message.subject,
        )


async def deliver_due_messages(
    store: ScheduledMessageStore,
    sender: MessageSender,
    clock: Clock,
) -> list[ScheduledMessage]:
    """
    Send every scheduled message that is due and record the outcome.

    A failing send marks only that message failed; the rest still go out.
    Messages cancelled while this runs are skipped. Each send holds the
    message's lock, so an edit or cancel waits for the outcome.
    """
    now = clock.now()
    delivered = []

    for due in await store.list_due(now):
        try:
            sent = await store.deliver(due.id, sender.send, now)
        except Exception as e:
            logger.error("message_delivery_failed", message_id=due.id, error=str(e))
            metrics.messages_delivered_total.labels(outcome="failed").inc()
            delivered.append(await store.get(due.id))
            continue

        if sent is None:
            logger.info("message_skipped_not_scheduled", message_id=due.id)
            continue
        metrics.messages_delivered_total.labels(outcome="sent").inc()
        delivered.append(sent)

    logger.info("due_messages_delivered", count=len(delivered))
    return delivered
