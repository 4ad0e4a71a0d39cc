"""
In-memory store of scheduled messages.

Status only moves forward: scheduled -> sent | cancelled | failed. Every
mutation of a message happens under that message's own lock, so a concurrent
edit and cancel on the same id are applied one after the other.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone, tzinfo
from typing import Awaitable, Callable, Iterable, Optional

from salon_recovery.errors import InvalidMessageTransitionError, MessageNotFoundError
from salon_recovery.logging_config import get_logger
from salon_recovery.models import Message, MessageEdit, ScheduledMessage, ScheduledMessageStatus
from salon_recovery.timeutils import as_local_naive

logger = get_logger(__name__)


class ScheduledMessageStore:
    def __init__(self, tz: Optional[tzinfo] = None):
        self.tz = tz or timezone.utc
        self._messages: dict[str, ScheduledMessage] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def _lock(self, message_id: str) -> asyncio.Lock:
        lock = self._locks.get(message_id)
        if lock is None:
            lock = asyncio.Lock()
            current = self._messages.get(message_id)
            # Only scheduled messages can still change; the rest get a throwaway lock.
            if current is not None and current.status == ScheduledMessageStatus.SCHEDULED:
                self._locks[message_id] = lock
        return lock

    def _finish(self, message_id: str) -> None:
        self._locks.pop(message_id, None)

    def _require(self, message_id: str) -> ScheduledMessage:
        try:
            return self._messages[message_id]
        except KeyError:
            raise MessageNotFoundError(message_id) from None

    async def add(self, message: ScheduledMessage) -> ScheduledMessage:
        async with self._lock(message.id):
            self._messages[message.id] = message
        logger.debug("scheduled_message_added", message_id=message.id, scheduled_time=message.scheduled_time.isoformat())
        return message

    async def add_many(self, messages: Iterable[ScheduledMessage]) -> list[ScheduledMessage]:
        return [await self.add(message) for message in messages]

    async def get(self, message_id: str) -> ScheduledMessage:
        return self._require(message_id)

    async def list(
        self,
        client_id: Optional[str] = None,
        status: Optional[ScheduledMessageStatus] = None,
    ) -> list[ScheduledMessage]:
        """Messages ordered by scheduled time, optionally for one client or status."""
        messages = [
            m for m in self._messages.values()
            if (client_id is None or m.message.client_id == client_id)
            and (status is None or m.status == status)
        ]
        return sorted(messages, key=lambda m: as_local_naive(m.scheduled_time, self.tz))

    async def list_due(self, now: datetime) -> list[ScheduledMessage]:
        """Scheduled messages whose time has come."""
        cutoff = as_local_naive(now, self.tz)
        return [
            m for m in await self.list(status=ScheduledMessageStatus.SCHEDULED)
            if as_local_naive(m.scheduled_time, self.tz) <= cutoff
        ]

    async def cancel(self, message_id: str) -> ScheduledMessage:
        """Cancel a scheduled message. Cancelling twice is a no-op."""
        async with self._lock(message_id):
            current = self._require(message_id)
            if current.status == ScheduledMessageStatus.CANCELLED:
                return current
            self._check_scheduled(current, ScheduledMessageStatus.CANCELLED)
            updated = current.model_copy(update={"status": ScheduledMessageStatus.CANCELLED})
            self._messages[message_id] = updated
        self._finish(message_id)
        logger.info("scheduled_message_cancelled", message_id=message_id)
        return updated

    async def edit(self, message_id: str, changes: MessageEdit) -> ScheduledMessage:
        """Change subject, body or send time of a message that has not gone out yet."""
        async with self._lock(message_id):
            current = self._require(message_id)
            self._check_scheduled(current, ScheduledMessageStatus.SCHEDULED)

            message_updates = {}
            if changes.subject is not None:
                message_updates["subject"] = changes.subject
            if changes.body is not None:
                message_updates["body"] = changes.body

            update = {"message": current.message.model_copy(update=message_updates)}
            if changes.scheduled_time is not None:
                update["scheduled_time"] = changes.scheduled_time
            updated = current.model_copy(update=update)
            self._messages[message_id] = updated
        logger.info("scheduled_message_edited", message_id=message_id, fields=sorted(changes.model_dump(exclude_none=True)))
        return updated

    async def deliver(
        self,
        message_id: str,
        send: Callable[[Message], Awaitable[None]],
        sent_at: datetime,
    ) -> Optional[ScheduledMessage]:
        """
        Send a scheduled message and record the outcome under its lock.

        Edits and cancellations wait until the message is marked, so the body
        marked sent is the body that was sent. Returns None if the message is
        no longer scheduled. A failing ``send`` marks the message failed and
        the error propagates.
        """
        async with self._lock(message_id):
            current = self._require(message_id)
            if current.status != ScheduledMessageStatus.SCHEDULED:
                return None
            try:
                await send(current.message)
            except Exception as e:
                self._messages[message_id] = current.model_copy(
                    update={"status": ScheduledMessageStatus.FAILED, "error": str(e)}
                )
                self._finish(message_id)
                raise
            updated = current.model_copy(update={"status": ScheduledMessageStatus.SENT, "sent_at": sent_at})
            self._messages[message_id] = updated
        self._finish(message_id)
        return updated

    def __len__(self) -> int:
        return len(self._messages)

    @staticmethod
    def _check_scheduled(message: ScheduledMessage, requested: ScheduledMessageStatus) -> None:
        if message.status != ScheduledMessageStatus.SCHEDULED:
            raise InvalidMessageTransitionError(message.id, message.status.value, requested.value)
