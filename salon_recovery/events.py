"""
Booking event dispatcher.

Normalized webhook events are routed by their flat event type:
- appointment.cancelled -> rebooking suggestions for the customer
- appointment.completed -> follow-up sequence + recommended next visit
- appointment.created / appointment.updated / client.* -> acknowledged only
"""

from __future__ import annotations

import traceback
from typing import Any, Awaitable, Callable, Iterable, Mapping, Optional

from salon_recovery import metrics
from salon_recovery.adapters.common import BookingPlatformAdapter
from salon_recovery.errors import BookingPlatformError, UnsupportedPlatformError, ValidationError
from salon_recovery.followups import FollowUpScheduler
from salon_recovery.logging_config import get_logger
from salon_recovery.message_store import ScheduledMessageStore
from salon_recovery.models import Appointment, Customer, EventResult, NormalizedEvent, Salon
from salon_recovery.rebooking import DEFAULT_MAX_SUGGESTIONS, RebookingEngine

logger = get_logger(__name__)

EventHandler = Callable[[NormalizedEvent], Awaitable[dict[str, Any]]]

APPOINTMENT_CREATED = "appointment.created"
APPOINTMENT_UPDATED = "appointment.updated"
APPOINTMENT_CANCELLED = "appointment.cancelled"
APPOINTMENT_COMPLETED = "appointment.completed"
CLIENT_CREATED = "client.created"
CLIENT_UPDATED = "client.updated"


class BookingEventDispatcher:
    """Routes events to handlers; a failing event never stops the others."""

    def __init__(
        self,
        engines: Mapping[str, RebookingEngine],
        scheduler: FollowUpScheduler,
        store: ScheduledMessageStore,
        salon: Salon,
        max_suggestions: int = DEFAULT_MAX_SUGGESTIONS,
    ):
        self.engines = dict(engines)
        self.scheduler = scheduler
        self.store = store
        self.salon = salon
        self.max_suggestions = max_suggestions
        self.handlers: dict[str, EventHandler] = {}
        self._register_default_handlers()

    def _register_default_handlers(self) -> None:
        self.register_handler(APPOINTMENT_CREATED, self.handle_appointment_acknowledged)
        self.register_handler(APPOINTMENT_UPDATED, self.handle_appointment_acknowledged)
        self.register_handler(APPOINTMENT_CANCELLED, self.handle_appointment_cancelled)
        self.register_handler(APPOINTMENT_COMPLETED, self.handle_appointment_completed)
        self.register_handler(CLIENT_CREATED, self.handle_client_acknowledged)
        self.register_handler(CLIENT_UPDATED, self.handle_client_acknowledged)

    def register_handler(self, event_type: str, handler: EventHandler) -> None:
        """Register (or replace) the handler for an event type."""
        self.handlers[event_type] = handler

    def engine_for(self, platform: str) -> RebookingEngine:
        engine = self.engines.get(platform)
        if engine is None:
            raise UnsupportedPlatformError(platform)
        return engine

    def adapter_for(self, platform: str) -> BookingPlatformAdapter:
        return self.engine_for(platform).adapter

    async def dispatch(self, event: NormalizedEvent) -> EventResult:
        """Run the handler for one event. Never raises."""
        handler = self.handlers.get(event.event_type)
        if handler is None:
            logger.warning("event_handler_missing", event_type=event.event_type, platform=event.platform)
            metrics.events_dispatched_total.labels(event_type="other", outcome="unhandled").inc()
            return EventResult(
                success=False,
                event_type=event.event_type,
                platform=event.platform,
                message=f"No handler registered for event type: {event.event_type}",
            )

        logger.info("event_processing", event_type=event.event_type, platform=event.platform)
        try:
            result = await handler(event)
        except Exception as e:
            logger.error(
                "event_processing_failed",
                event_type=event.event_type,
                platform=event.platform,
                error=str(e),
                traceback=traceback.format_exc(),
            )
            metrics.events_dispatched_total.labels(event_type=event.event_type, outcome="error").inc()
            return EventResult(success=False, event_type=event.event_type, platform=event.platform, error=str(e))

        metrics.events_dispatched_total.labels(event_type=event.event_type, outcome="success").inc()
        return EventResult(
            success=True,
            event_type=event.event_type,
            platform=event.platform,
            message=result.get("message"),
            result=result,
        )

    async def process_batch(self, events: Iterable[NormalizedEvent]) -> list[EventResult]:
        """Dispatch events one after another; each failure is isolated to its event."""
        results = [await self.dispatch(event) for event in events]
        failed = sum(1 for result in results if not result.success)
        logger.info("event_batch_processed", events=len(results), failed=failed)
        return results

    # Handlers

    async def handle_appointment_acknowledged(self, event: NormalizedEvent) -> dict[str, Any]:
        appointment = _require_appointment(event)
        verb = event.event_type.split(".", 1)[1]
        return {"message": f"Processed appointment {verb} event for {appointment.id}"}

    async def handle_client_acknowledged(self, event: NormalizedEvent) -> dict[str, Any]:
        if event.customer is None:
            raise ValidationError("Missing client data in payload")
        verb = event.event_type.split(".", 1)[1]
        return {"message": f"Processed client {verb} event for {event.customer.id}"}

    async def handle_appointment_cancelled(self, event: NormalizedEvent) -> dict[str, Any]:
        appointment = _require_appointment(event)
        if not appointment.customer_id:
            raise ValidationError("Cancelled appointment has no customer id")

        suggestions = await self.engine_for(event.platform).generate_suggestions(
            appointment.customer_id,
            service_id=appointment.service_id,
            provider_id=appointment.provider_id,
            max_suggestions=self.max_suggestions,
        )
        logger.info(
            "cancellation_rebooking_suggested",
            platform=event.platform,
            appointment_id=appointment.id,
            suggestions=len(suggestions),
        )
        return {
            "message": f"Processed appointment cancelled event for {appointment.id}",
            "suggestions": [suggestion.to_wire() for suggestion in suggestions],
        }

    async def handle_appointment_completed(self, event: NormalizedEvent) -> dict[str, Any]:
        appointment = _require_appointment(event)
        if not appointment.customer_id:
            raise ValidationError("Completed appointment has no customer id")

        engine = self.engine_for(event.platform)
        customer = event.customer or await self._lookup_customer(engine.adapter, appointment.customer_id)
        service_name = await self._lookup_service_name(engine.adapter, appointment)
        stylist_name = await self._lookup_stylist_name(engine.adapter, appointment)

        scheduled = self.scheduler.schedule_sequence(
            appointment,
            customer,
            self.salon,
            service_name=service_name,
            stylist_name=stylist_name,
        )
        await self.store.add_many(scheduled)

        result: dict[str, Any] = {
            "message": f"Processed appointment completed event for {appointment.id}",
            "scheduledMessages": [message.to_wire() for message in scheduled],
        }
        if appointment.service_id:
            next_date = await engine.recommend_next_appointment_date(appointment.customer_id, appointment.service_id)
            result["nextAppointmentDate"] = next_date.isoformat()
        return result

    # Lookups used to personalize follow-ups; a failed lookup leaves the placeholder unrendered.

    async def _lookup_customer(self, adapter: BookingPlatformAdapter, customer_id: str) -> Customer:
        try:
            return await adapter.get_customer(customer_id)
        except BookingPlatformError as e:
            logger.warning("customer_lookup_failed", platform=adapter.platform_id, customer_id=customer_id, error=str(e))
            return Customer(id=customer_id)

    async def _lookup_service_name(self, adapter: BookingPlatformAdapter, appointment: Appointment) -> Optional[str]:
        if not appointment.service_id:
            return None
        try:
            return (await adapter.get_service(appointment.service_id)).name
        except BookingPlatformError as e:
            logger.warning("service_lookup_failed", platform=adapter.platform_id, service_id=appointment.service_id, error=str(e))
            return None

    async def _lookup_stylist_name(self, adapter: BookingPlatformAdapter, appointment: Appointment) -> Optional[str]:
        if not appointment.provider_id:
            return None
        try:
            provider = await adapter.get_provider(appointment.provider_id)
        except BookingPlatformError as e:
            logger.warning("provider_lookup_failed", platform=adapter.platform_id, provider_id=appointment.provider_id, error=str(e))
            return None
        return provider.first_name or provider.full_name or None


def _require_appointment(event: NormalizedEvent) -> Appointment:
    if event.appointment is None:
        raise ValidationError("Missing appointment data in payload")
    return event.appointment
