"""
Rebooking engine: score open slots against a customer's pattern and turn the
best ones into suggestions.
"""

from __future__ import annotations

import math
from datetime import datetime, timedelta, tzinfo
from typing import Iterable, Optional

from salon_recovery import metrics
from salon_recovery.adapters.common import BookingPlatformAdapter
from salon_recovery.errors import BookingPlatformError, ValidationError
from salon_recovery.logging_config import get_logger
from salon_recovery.models import (
    Appointment,
    AppointmentDetails,
    AppointmentPattern,
    ProviderSummary,
    RebookingSuggestion,
    ScoredSlot,
    ServiceSummary,
    TimeSlot,
)
from salon_recovery.patterns import analyze_appointments, sort_chronologically
from salon_recovery.timeutils import (
    Clock,
    add_calendar_days,
    as_local_naive,
    days_between_rounded,
    daypart,
    format_display,
    weekday_name,
)

logger = get_logger(__name__)

WEEKDAY_WEIGHT = 40
DAYPART_WEIGHT = 30
PROVIDER_MATCH_BONUS = 20
SERVICE_MATCH_BONUS = 10

DEFAULT_MAX_SUGGESTIONS = 3
DEFAULT_DAYS_AHEAD = 14
REBOOKING_NOTES = "Booked via automated rebooking system"

# Typical days between visits, matched against the parts of a service id (e.g. "svc-color-long").
DEFAULT_SERVICE_INTERVALS = {
    "haircut": 42,
    "color": 35,
    "highlights": 56,
    "facial": 28,
    "massage": 21,
    "manicure": 14,
    "pedicure": 28,
}
DEFAULT_SERVICE_INTERVAL = 30


def score_slot(slot: TimeSlot, pattern: AppointmentPattern, tz: tzinfo) -> float:
    weekday_total = max(sum(pattern.preferred_days.values()), 1)
    score = pattern.preferred_days.get(weekday_name(slot.start_time, tz), 0) / weekday_total * WEEKDAY_WEIGHT

    part = daypart(slot.start_time, tz)
    if part is not None:
        daypart_total = max(sum(pattern.preferred_times.values()), 1)
        score += pattern.preferred_times.get(part, 0) / daypart_total * DAYPART_WEIGHT

    if pattern.most_common_provider is not None and slot.provider_id == pattern.most_common_provider:
        score += PROVIDER_MATCH_BONUS
    if pattern.most_common_service is not None and slot.service_id == pattern.most_common_service:
        score += SERVICE_MATCH_BONUS
    return score


def rank_slots(slots: Iterable[TimeSlot], pattern: AppointmentPattern, tz: tzinfo) -> list[ScoredSlot]:
    """Score every slot and sort best first. Equal scores keep their input order."""
    scored = [
        ScoredSlot(
            start_time=slot.start_time,
            end_time=slot.end_time,
            provider_id=slot.provider_id,
            service_id=slot.service_id,
            platform_data=slot.platform_data,
            score=score_slot(slot, pattern, tz),
        )
        for slot in slots
    ]
    # list.sort is stable
    scored.sort(key=lambda slot: -slot.score)
    return scored


def default_interval_for_service(service_id: Optional[str]) -> int:
    for part in (service_id or "").lower().split("-"):
        if part in DEFAULT_SERVICE_INTERVALS:
            return DEFAULT_SERVICE_INTERVALS[part]
    return DEFAULT_SERVICE_INTERVAL


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


class RebookingEngine:
    """Produces ranked rebooking suggestions for one platform."""

    def __init__(
        self,
        adapter: BookingPlatformAdapter,
        clock: Clock,
        tz: tzinfo,
        max_suggestions: int = DEFAULT_MAX_SUGGESTIONS,
        days_ahead: int = DEFAULT_DAYS_AHEAD,
        prefer_same_provider: bool = False,
    ):
        self.adapter = adapter
        self.clock = clock
        self.tz = tz
        self.max_suggestions = max_suggestions
        self.days_ahead = days_ahead
        self.prefer_same_provider = prefer_same_provider

    async def analyze_customer(self, customer_id: str) -> AppointmentPattern:
        appointments = await self.adapter.get_customer_appointments(customer_id)
        return analyze_appointments(appointments, self.tz)

    async def generate_suggestions(
        self,
        customer_id: str,
        service_id: Optional[str] = None,
        provider_id: Optional[str] = None,
        max_suggestions: Optional[int] = None,
        days_ahead: Optional[int] = None,
        prefer_same_provider: Optional[bool] = None,
    ) -> list[RebookingSuggestion]:
        """
        Rank upcoming availability for a customer.

        ``service_id`` narrows availability to that service (otherwise the
        customer's most common one). With ``prefer_same_provider`` the search
        is narrowed to ``provider_id`` or the customer's usual provider.
        Customers without history get the same treatment with an empty
        pattern: slots are still fetched and scored on match bonuses only.

        Adapter errors propagate to the caller.
        """
        max_suggestions = self.max_suggestions if max_suggestions is None else max_suggestions
        days_ahead = self.days_ahead if days_ahead is None else days_ahead
        if prefer_same_provider is None:
            prefer_same_provider = self.prefer_same_provider

        pattern = await self.analyze_customer(customer_id)

        filters = {}
        target_service = service_id or pattern.most_common_service
        if target_service:
            filters["service_id"] = target_service
        if prefer_same_provider:
            target_provider = provider_id or pattern.most_common_provider
            if target_provider:
                filters["provider_id"] = target_provider

        now = self.clock.now()
        end = now + timedelta(days=days_ahead)
        slots = await self.adapter.get_availability(now.date(), end.date(), filters)

        # Today's slots that have already started are not bookable.
        current = as_local_naive(now, self.tz)
        slots = [slot for slot in slots if as_local_naive(slot.start_time, self.tz) >= current]

        ranked = rank_slots(slots, pattern, self.tz)[:max(max_suggestions, 0)]
        suggestions = [await self._build_suggestion(customer_id, slot) for slot in ranked]

        metrics.rebooking_suggestions_total.inc(len(suggestions))
        logger.info(
            "rebooking_suggestions_generated",
            platform=self.adapter.platform_id,
            customer_id=customer_id,
            candidates=len(slots),
            count=len(suggestions),
        )
        return suggestions

    async def book_suggestion(self, suggestion: RebookingSuggestion) -> Appointment:
        """Book a suggested slot. Bookings are not idempotent, so this is never retried."""
        if not suggestion.service.id:
            raise ValidationError("Suggestion has no service to book")

        details = AppointmentDetails(
            customer_id=suggestion.customer_id,
            service_id=suggestion.service.id,
            provider_id=suggestion.provider.id,
            start_time=suggestion.time_slot.start_time,
            notes=REBOOKING_NOTES,
        )
        appointment = await self.adapter.book_appointment(details)
        logger.info(
            "rebooking_suggestion_booked",
            platform=self.adapter.platform_id,
            customer_id=suggestion.customer_id,
            appointment_id=appointment.id,
        )
        return appointment

    async def recommend_next_appointment_date(self, customer_id: str, service_id: str) -> datetime:
        """
        Recommend when the customer should next book ``service_id``.

        Uses the average gap between their past visits for that service, added
        to the most recent visit. Without history, a typical interval for the
        service type is added to now.
        """
        appointments = await self.adapter.get_customer_appointments(customer_id)
        history = sort_chronologically((a for a in appointments if a.service_id == service_id), self.tz)

        if not history:
            return add_calendar_days(self.clock.now(), default_interval_for_service(service_id), self.tz)

        intervals = [
            days_between_rounded(previous.start_time, current.start_time, self.tz)
            for previous, current in zip(history, history[1:])
        ]
        if intervals:
            average = sum(intervals) / len(intervals)
        else:
            average = default_interval_for_service(service_id)

        return add_calendar_days(history[-1].start_time, _round_half_up(average), self.tz)

    async def _build_suggestion(self, customer_id: str, slot: ScoredSlot) -> RebookingSuggestion:
        return RebookingSuggestion(
            time_slot=slot,
            service=await self._service_summary(slot.service_id),
            provider=await self._provider_summary(slot.provider_id),
            customer_id=customer_id,
            formatted_date_time=format_display(slot.start_time, self.tz),
            score=slot.score,
        )

    async def _service_summary(self, service_id: Optional[str]) -> ServiceSummary:
        if not service_id:
            return ServiceSummary()
        try:
            service = await self.adapter.get_service(service_id)
        except (BookingPlatformError, ValidationError) as e:
            logger.warning("service_lookup_failed", platform=self.adapter.platform_id, service_id=service_id, error=str(e))
            return ServiceSummary(id=service_id)
        return ServiceSummary(id=service_id, name=service.name, duration=service.duration, price=service.price)

    async def _provider_summary(self, provider_id: Optional[str]) -> ProviderSummary:
        if not provider_id:
            return ProviderSummary()
        try:
            provider = await self.adapter.get_provider(provider_id)
        except (BookingPlatformError, ValidationError) as e:
            logger.warning("provider_lookup_failed", platform=self.adapter.platform_id, provider_id=provider_id, error=str(e))
            return ProviderSummary(id=provider_id)
        return ProviderSummary(id=provider_id, first_name=provider.first_name, last_name=provider.last_name)
