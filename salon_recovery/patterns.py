"""
Pattern analysis: reduce a customer's appointment history to a profile.
"""

from __future__ import annotations

from datetime import tzinfo
from typing import Iterable, Mapping, Optional

from salon_recovery.logging_config import get_logger
from salon_recovery.models import Appointment, AppointmentPattern
from salon_recovery.timeutils import DAYPARTS, WEEKDAYS, as_local_naive, days_between_rounded, daypart, weekday_name

logger = get_logger(__name__)

DEFAULT_AVERAGE_INTERVAL = 30

# (upper bound in days, bucket), checked in order; anything longer is irregular.
FREQUENCY_BUCKETS = (
    (9, "weekly"),
    (18, "biweekly"),
    (35, "monthly"),
    (100, "quarterly"),
)
IRREGULAR = "irregular"


def most_common(counts: Mapping[str, int]) -> Optional[str]:
    """
    Key with the strictly highest count.

    Ties go to the key registered first; an empty or all-zero map gives None.
    """
    best_key = None
    best_count = 0
    for key, count in counts.items():
        if count > best_count:
            best_key, best_count = key, count
    return best_key


def classify_interval(days: int) -> str:
    for limit, bucket in FREQUENCY_BUCKETS:
        if days <= limit:
            return bucket
    return IRREGULAR


def sort_chronologically(appointments: Iterable[Appointment], tz: tzinfo) -> list[Appointment]:
    """Oldest first; appointments without a start time are dropped."""
    dated = [a for a in appointments if a.start_time is not None]
    return sorted(dated, key=lambda a: as_local_naive(a.start_time, tz))


def analyze_appointments(appointments: Iterable[Appointment], tz: tzinfo) -> AppointmentPattern:
    """
    Build the AppointmentPattern for one customer's history (any order).

    Weekday and daypart buckets are all registered up front (Sunday first,
    morning first) so that tie-breaks are stable. With fewer than two
    appointments the average interval falls back to 30 days.
    """
    history = sort_chronologically(appointments, tz)

    services: dict[str, int] = {}
    providers: dict[str, int] = {}
    frequency = {bucket: 0 for _, bucket in FREQUENCY_BUCKETS}
    frequency[IRREGULAR] = 0
    preferred_days = {day: 0 for day in WEEKDAYS}
    preferred_times = {part: 0 for part in DAYPARTS}

    for appointment in history:
        if appointment.service_id:
            services[appointment.service_id] = services.get(appointment.service_id, 0) + 1
        if appointment.provider_id:
            providers[appointment.provider_id] = providers.get(appointment.provider_id, 0) + 1

        preferred_days[weekday_name(appointment.start_time, tz)] += 1

        part = daypart(appointment.start_time, tz)
        if part is not None:
            preferred_times[part] += 1

    intervals = [
        days_between_rounded(previous.start_time, current.start_time, tz)
        for previous, current in zip(history, history[1:])
    ]
    for interval in intervals:
        frequency[classify_interval(interval)] += 1

    average_interval = sum(intervals) / len(intervals) if intervals else DEFAULT_AVERAGE_INTERVAL

    pattern = AppointmentPattern(
        services=services,
        providers=providers,
        frequency=frequency,
        preferred_days=preferred_days,
        preferred_times=preferred_times,
        intervals=intervals,
        average_interval=average_interval,
        most_common_service=most_common(services),
        most_common_provider=most_common(providers),
        most_common_day=most_common(preferred_days),
        most_common_time=most_common(preferred_times),
        most_common_frequency=most_common(frequency),
    )

    logger.debug(
        "appointment_pattern_analyzed",
        appointments=len(history),
        most_common_service=pattern.most_common_service,
        most_common_provider=pattern.most_common_provider,
        average_interval=pattern.average_interval,
    )
    return pattern
