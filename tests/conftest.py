import random
from datetime import datetime, timedelta, timezone

import pytest

from salon_recovery.models import Appointment, Customer, PlatformData, Provider, Service, TimeSlot
from salon_recovery.timeutils import FixedClock


@pytest.fixture(autouse=True)
def _safe_test_config(monkeypatch):
    """Force deterministic, offline-safe config for tests.

    The repo loads .env on import; these overrides keep platform credentials
    out of the tests so nothing talks to a real booking platform.
    """
    from salon_recovery.config import config, Config

    overrides = {
        "API_KEY": "",
        "SALON_NAME": "Glow Studio",
        "SALON_TIMEZONE": "UTC",
        "REBOOKING_MAX_SUGGESTIONS": 3,
        "REBOOKING_DAYS_AHEAD": 14,
        "REBOOKING_PREFER_SAME_PROVIDER": False,
        "STRICT_STATUS_MAPPING": False,
        "ENABLE_SANDBOX_PLATFORM": True,
        "MESSAGE_TEMPLATES_PATH": "",
        "REMINDER_DAYS_SINCE_FROM_SEND_TIME": False,
        "VAGARO_CLIENT_ID": "",
        "VAGARO_CLIENT_SECRET": "",
        "MINDBODY_API_KEY": "",
        "MINDBODY_SITE_ID": "",
        "PHOREST_CLIENT_ID": "",
        "PHOREST_CLIENT_SECRET": "",
    }
    for name, value in overrides.items():
        monkeypatch.setattr(Config, name, value, raising=False)
        # Keep the instance in sync for any code that reads instance attributes directly.
        monkeypatch.setattr(config, name, value, raising=False)

    return config


class FakeAdapter:
    """Booking platform double with canned history and availability."""

    platform_id = "fake"

    def __init__(self, appointments=None, slots=None, customers=None, services=None, providers=None):
        self.appointments = list(appointments or [])
        self.slots = list(slots or [])
        self.customers = dict(customers or {})
        self.services = dict(services or {})
        self.providers = dict(providers or {})
        self.is_connected = True
        self.availability_calls = []
        self.booked = []
        self.fail_with = None

    async def authenticate(self):
        return "fake-token"

    async def test_connection(self):
        return True

    async def get_availability(self, start_date, end_date, filters=None):
        if self.fail_with:
            raise self.fail_with
        self.availability_calls.append((start_date, end_date, dict(filters or {})))
        return list(self.slots)

    async def book_appointment(self, details):
        appointment = Appointment(
            id=f"booked-{len(self.booked) + 1}",
            customer_id=details.customer_id,
            service_id=details.service_id,
            provider_id=details.provider_id,
            start_time=details.start_time,
            status="confirmed",
            notes=details.notes,
        )
        self.booked.append(details)
        return appointment

    async def get_customer_appointments(self, customer_id, filters=None):
        if self.fail_with:
            raise self.fail_with
        return [a for a in self.appointments if a.customer_id == customer_id]

    async def get_customer(self, customer_id):
        from salon_recovery.errors import PlatformAPIError

        if customer_id not in self.customers:
            raise PlatformAPIError(f"client {customer_id} not found", platform="fake")
        return self.customers[customer_id]

    async def get_service(self, service_id):
        return self.services.get(service_id, Service(id=service_id, name=f"Service {service_id}"))

    async def get_provider(self, provider_id):
        return self.providers.get(provider_id, Provider(id=provider_id, first_name="Pat", last_name="Doe"))

    def normalize_data(self, data, type):
        from salon_recovery.adapters.sandbox import SandboxAdapter

        return SandboxAdapter().normalize_data(data, type)

    def handle_error(self, error):
        return error

    async def aclose(self):
        return None


def make_appointment(appointment_id, start, customer_id="c1", service_id="svc-haircut", provider_id="p1", status="completed"):
    return Appointment(
        id=appointment_id,
        customer_id=customer_id,
        service_id=service_id,
        provider_id=provider_id,
        start_time=start,
        end_time=start + timedelta(hours=1),
        status=status,
        platform_data=PlatformData(platform="fake", id=appointment_id),
    )


def make_slot(start, provider_id="p1", service_id="svc-haircut"):
    return TimeSlot(
        start_time=start,
        end_time=start + timedelta(hours=1),
        provider_id=provider_id,
        service_id=service_id,
        platform_data=PlatformData(platform="fake"),
    )


@pytest.fixture
def clock():
    # Wednesday
    return FixedClock(datetime(2024, 1, 31, 8, 0, tzinfo=timezone.utc))


@pytest.fixture
def rng():
    return random.Random(42)


@pytest.fixture
def customer():
    return Customer(id="c1", first_name="Sarah", last_name="Cohen", email="sarah@example.com", phone="+15550100")


@pytest.fixture
def history():
    """Three Friday-afternoon haircuts with p1, four weeks apart."""
    return [
        make_appointment("a3", datetime(2024, 1, 26, 14, 0, tzinfo=timezone.utc)),
        make_appointment("a1", datetime(2023, 12, 1, 14, 0, tzinfo=timezone.utc)),
        make_appointment("a2", datetime(2023, 12, 29, 15, 0, tzinfo=timezone.utc)),
    ]


@pytest.fixture
def fake_adapter(history, customer):
    return FakeAdapter(appointments=history, customers={"c1": customer})
