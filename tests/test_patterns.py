"""Tests for appointment pattern analysis."""

from datetime import datetime, timezone

from conftest import make_appointment
from salon_recovery.patterns import analyze_appointments, classify_interval, most_common


def test_pattern_from_unsorted_history(history):
    pattern = analyze_appointments(history, timezone.utc)

    assert pattern.services == {"svc-haircut": 3}
    assert pattern.providers == {"p1": 3}
    assert pattern.preferred_days["friday"] == 3
    assert sum(pattern.preferred_days.values()) == 3
    assert pattern.preferred_times == {"morning": 0, "afternoon": 3, "evening": 0}
    assert pattern.intervals == [28, 28]
    assert pattern.average_interval == 28
    assert pattern.frequency["monthly"] == 2
    assert pattern.most_common_service == "svc-haircut"
    assert pattern.most_common_provider == "p1"
    assert pattern.most_common_day == "friday"
    assert pattern.most_common_time == "afternoon"
    assert pattern.most_common_frequency == "monthly"


def test_empty_history_has_defaults():
    pattern = analyze_appointments([], timezone.utc)

    assert pattern.average_interval == 30
    assert pattern.intervals == []
    assert pattern.services == {}
    assert pattern.most_common_service is None
    assert pattern.most_common_provider is None
    assert pattern.most_common_day is None
    assert pattern.most_common_time is None
    assert pattern.most_common_frequency is None
    assert list(pattern.preferred_days) == [
        "sunday", "monday", "tuesday", "wednesday", "thursday", "friday", "saturday"
    ]


def test_single_appointment_uses_default_interval():
    pattern = analyze_appointments(
        [make_appointment("a1", datetime(2024, 1, 10, 9, 0, tzinfo=timezone.utc))], timezone.utc
    )

    assert pattern.average_interval == 30
    assert pattern.most_common_time == "morning"
    assert pattern.most_common_frequency is None


def test_overnight_hours_have_no_daypart():
    pattern = analyze_appointments(
        [
            make_appointment("a1", datetime(2024, 1, 10, 23, 0, tzinfo=timezone.utc)),
            make_appointment("a2", datetime(2024, 1, 11, 5, 0, tzinfo=timezone.utc)),
        ],
        timezone.utc,
    )

    assert sum(pattern.preferred_times.values()) == 0
    assert pattern.most_common_time is None
    assert sum(pattern.preferred_days.values()) == 2


def test_interval_buckets():
    assert classify_interval(7) == "weekly"
    assert classify_interval(9) == "weekly"
    assert classify_interval(10) == "biweekly"
    assert classify_interval(18) == "biweekly"
    assert classify_interval(35) == "monthly"
    assert classify_interval(100) == "quarterly"
    assert classify_interval(101) == "irregular"


def test_intervals_round_to_nearest_day():
    pattern = analyze_appointments(
        [
            make_appointment("a1", datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc)),
            make_appointment("a2", datetime(2024, 1, 8, 21, 0, tzinfo=timezone.utc)),
        ],
        timezone.utc,
    )

    # 7.5 days rounds half up
    assert pattern.intervals == [8]


def test_most_common_tie_goes_to_first_registered():
    assert most_common({"b": 2, "a": 2, "c": 1}) == "b"
    assert most_common({"a": 0, "b": 0}) is None
    assert most_common({}) is None


def test_weekday_tie_prefers_earlier_bucket():
    pattern = analyze_appointments(
        [
            make_appointment("a1", datetime(2024, 1, 12, 10, 0, tzinfo=timezone.utc)),  # friday
            make_appointment("a2", datetime(2024, 1, 15, 10, 0, tzinfo=timezone.utc)),  # monday
        ],
        timezone.utc,
    )

    assert pattern.most_common_day == "monday"


def test_local_timezone_decides_weekday_and_daypart():
    from zoneinfo import ZoneInfo

    # 02:00 UTC Saturday is 21:00 Friday in New York
    appointment = make_appointment("a1", datetime(2024, 1, 13, 2, 0, tzinfo=timezone.utc))
    pattern = analyze_appointments([appointment], ZoneInfo("America/New_York"))

    assert pattern.most_common_day == "friday"
    assert pattern.most_common_time == "evening"
