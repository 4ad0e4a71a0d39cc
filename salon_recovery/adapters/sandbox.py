"""
In-memory sandbox platform.

Behaves like a small salon on a real booking platform without any network
access: sparse hourly availability, bookings with SBX confirmation codes and
a generated visit history for customers it has not seen before. All
randomness comes from the injected ``random.Random`` so runs are repeatable.
"""

from __future__ import annotations

import random
from datetime import date, datetime, time, timedelta
from typing import Any, Mapping, Optional

from salon_recovery.adapters.common import (
    SLOT_LENGTH,
    PlatformSettings,
    as_date,
    as_id,
    build_model,
    filter_slots,
    first_present,
    map_status,
)
from salon_recovery.errors import PlatformAPIError
from salon_recovery.logging_config import get_logger
from salon_recovery.models import (
    Appointment,
    AppointmentDetails,
    AppointmentStatus,
    Customer,
    PlatformData,
    Provider,
    Service,
    TimeSlot,
)
from salon_recovery.timeutils import Clock, SystemClock

logger = get_logger(__name__)

PLATFORM_ID = "sandbox"

# Business hours: slots start at 9:00 through 16:00.
OPENING_HOUR = 9
CLOSING_HOUR = 17
# Each hourly slot is independently unavailable with probability 0.3.
SLOT_AVAILABILITY = 0.7

PROVIDER_COUNT = 5
SERVICE_COUNT = 3

STATUS_MAP = {status.value: status.value for status in AppointmentStatus}

SERVICE_CATALOG = {
    "1": ("Haircut", 45, 65.0),
    "2": ("Color", 90, 120.0),
    "3": ("Blowout", 30, 45.0),
}

PROVIDER_NAMES = {
    "1": ("Alex", "Rivera"),
    "2": ("Jordan", "Lee"),
    "3": ("Sam", "Patel"),
    "4": ("Taylor", "Morgan"),
    "5": ("Casey", "Nguyen"),
}


class SandboxAdapter:
    """Simulated booking platform used for demos and local development."""

    platform_id = PLATFORM_ID

    def __init__(
        self,
        settings: Optional[PlatformSettings] = None,
        rng: Optional[random.Random] = None,
        clock: Optional[Clock] = None,
    ):
        self.settings = settings or PlatformSettings(platform_id=PLATFORM_ID)
        self.rng = rng or random.Random()
        self.clock = clock or SystemClock()
        self.auth_token: Optional[str] = None
        self.is_connected = False
        self.appointments: dict[str, list[Appointment]] = {}
        self.customers: dict[str, Customer] = {}
        self._booking_counter = 0

    async def authenticate(self) -> str:
        self.auth_token = f"sandbox-token-{int(self.clock.now().timestamp())}"
        self.is_connected = True
        logger.info("platform_authenticated", platform=PLATFORM_ID)
        return self.auth_token

    async def test_connection(self) -> bool:
        if not self.is_connected:
            await self.authenticate()
        return True

    async def get_availability(
        self, start_date: date, end_date: date, filters: Optional[Mapping[str, Any]] = None
    ) -> list[TimeSlot]:
        filters = filters or {}
        start_date, end_date = as_date(start_date), as_date(end_date)
        tz = self.clock.now().tzinfo

        slots = []
        day = start_date
        while day <= end_date:
            for hour in range(OPENING_HOUR, CLOSING_HOUR):
                if self.rng.random() > SLOT_AVAILABILITY:
                    continue
                start = datetime.combine(day, time(hour), tzinfo=tz)
                provider_id = filters.get("provider_id") or self._random_provider_id()
                service_id = filters.get("service_id") or self._random_service_id()
                slots.append(TimeSlot(
                    start_time=start,
                    end_time=start + SLOT_LENGTH,
                    provider_id=provider_id,
                    service_id=service_id,
                    platform_data=PlatformData(platform=PLATFORM_ID, id=f"slot-{int(start.timestamp())}"),
                ))
            day += timedelta(days=1)

        slots = filter_slots(slots, start_date, end_date, filters, self.settings.zone())
        logger.info("availability_fetched", platform=PLATFORM_ID, slots=len(slots))
        return slots

    async def book_appointment(self, details: AppointmentDetails) -> Appointment:
        self._booking_counter += 1
        appointment_id = f"sandbox-appt-{self._booking_counter}"
        appointment = Appointment(
            id=appointment_id,
            customer_id=details.customer_id,
            service_id=details.service_id,
            provider_id=details.provider_id,
            start_time=details.start_time,
            end_time=details.start_time + SLOT_LENGTH,
            status=AppointmentStatus.CONFIRMED.value,
            notes=details.notes,
            price=self.rng.randint(50, 149),
            platform_data=PlatformData(
                platform=PLATFORM_ID,
                id=appointment_id,
                confirmation_code=f"SBX-{self.rng.randint(0, 9999):04d}",
            ),
        )
        self.appointments.setdefault(details.customer_id, []).append(appointment)
        logger.info("appointment_booked", platform=PLATFORM_ID, appointment_id=appointment_id)
        return appointment

    async def get_customer_appointments(
        self, customer_id: str, filters: Optional[Mapping[str, Any]] = None
    ) -> list[Appointment]:
        filters = filters or {}
        if customer_id not in self.appointments:
            self.appointments[customer_id] = self._generate_history(customer_id)

        appointments = list(self.appointments[customer_id])
        if filters.get("status"):
            appointments = [a for a in appointments if a.status == filters["status"]]
        if filters.get("start_date"):
            start = as_date(filters["start_date"])
            appointments = [a for a in appointments if a.start_time and a.start_time.date() >= start]
        if filters.get("end_date"):
            end = as_date(filters["end_date"])
            appointments = [a for a in appointments if a.start_time and a.start_time.date() <= end]
        return appointments

    async def get_customer(self, customer_id: str) -> Customer:
        customer = self.customers.get(customer_id)
        if customer is None:
            raise PlatformAPIError(f"Sandbox client {customer_id} not found", platform=PLATFORM_ID, code="NotFound")
        return customer

    async def get_service(self, service_id: str) -> Service:
        name, duration, price = SERVICE_CATALOG.get(_catalog_key(service_id), (None, 60, None))
        return Service(
            id=service_id,
            name=name or f"Service {_catalog_key(service_id)}",
            duration=duration,
            price=price,
            platform_data=PlatformData(platform=PLATFORM_ID, id=service_id),
        )

    async def get_provider(self, provider_id: str) -> Provider:
        first_name, last_name = PROVIDER_NAMES.get(_catalog_key(provider_id), (f"Provider {_catalog_key(provider_id)}", "Smith"))
        return Provider(
            id=provider_id,
            first_name=first_name,
            last_name=last_name,
            platform_data=PlatformData(platform=PLATFORM_ID, id=provider_id),
        )

    def add_customer(self, customer: Customer, appointments: Optional[list[Appointment]] = None) -> None:
        """Register a customer (and optionally their history) with the sandbox."""
        self.customers[customer.id] = customer
        if appointments is not None:
            self.appointments[customer.id] = list(appointments)

    def normalize_data(self, data: Mapping[str, Any], type: str) -> Any:
        """Sandbox records already use the canonical camelCase shape."""
        record_id = as_id(first_present(data, "id", "Id"))
        platform_data = PlatformData(platform=PLATFORM_ID, id=record_id)

        if type == "appointment":
            return build_model(Appointment, {
                "id": record_id,
                "customer_id": as_id(first_present(data, "customerId", "clientId", "CustomerId")),
                "service_id": as_id(first_present(data, "serviceId", "ServiceId")),
                "provider_id": as_id(first_present(data, "providerId", "ProviderId")),
                "start_time": first_present(data, "startTime", "StartTime"),
                "end_time": first_present(data, "endTime", "EndTime"),
                "status": map_status(
                    first_present(data, "status", "Status"),
                    STATUS_MAP,
                    PLATFORM_ID,
                    strict=self.settings.strict_status_mapping,
                ),
                "notes": first_present(data, "notes", "Notes", default=""),
                "price": first_present(data, "price", "Price", default=0),
                "platform_data": platform_data,
            })

        if type == "customer":
            return build_model(Customer, {
                "id": record_id,
                "first_name": first_present(data, "firstName", "FirstName"),
                "last_name": first_present(data, "lastName", "LastName"),
                "email": first_present(data, "email", "Email"),
                "phone": first_present(data, "phone", "Phone"),
                "platform_data": platform_data,
            })

        if type == "service":
            return build_model(Service, {
                "id": record_id,
                "name": first_present(data, "name", "Name"),
                "description": first_present(data, "description", "Description"),
                "duration": first_present(data, "duration", "Duration"),
                "price": first_present(data, "price", "Price"),
                "platform_data": platform_data,
            })

        if type == "provider":
            return build_model(Provider, {
                "id": record_id,
                "first_name": first_present(data, "firstName", "FirstName"),
                "last_name": first_present(data, "lastName", "LastName"),
                "title": first_present(data, "title", "Title"),
                "bio": first_present(data, "bio", "Bio"),
                "platform_data": platform_data,
            })

        return dict(data)

    def handle_error(self, error: Exception) -> PlatformAPIError:
        logger.warning("adapter_error", platform=PLATFORM_ID, error=str(error))
        if isinstance(error, PlatformAPIError):
            return error
        return PlatformAPIError(f"Sandbox error: {error}", platform=PLATFORM_ID)

    async def aclose(self) -> None:
        return None

    def _random_provider_id(self) -> str:
        return f"provider-{self.rng.randint(1, PROVIDER_COUNT)}"

    def _random_service_id(self) -> str:
        return f"service-{self.rng.randint(1, SERVICE_COUNT)}"

    def _generate_history(self, customer_id: str) -> list[Appointment]:
        """Five completed visits starting three months back plus two upcoming bookings."""
        now = self.clock.now().replace(minute=0, second=0, microsecond=0)
        past_start = now - timedelta(days=90)
        history = []

        for i in range(5):
            start = past_start + timedelta(days=self.rng.randint(0, 29))
            history.append(self._history_entry(f"appointment-past-{i}", customer_id, start, AppointmentStatus.COMPLETED))
        for i in range(2):
            start = now + timedelta(days=self.rng.randint(1, 14))
            history.append(self._history_entry(f"appointment-future-{i}", customer_id, start, AppointmentStatus.CONFIRMED))

        logger.debug("sandbox_history_generated", customer_id=customer_id, appointments=len(history))
        return history

    def _history_entry(
        self, appointment_id: str, customer_id: str, start: datetime, status: AppointmentStatus
    ) -> Appointment:
        return Appointment(
            id=appointment_id,
            customer_id=customer_id,
            service_id=self._random_service_id(),
            provider_id=self._random_provider_id(),
            start_time=start,
            end_time=start + SLOT_LENGTH,
            status=status.value,
            price=self.rng.randint(50, 149),
            platform_data=PlatformData(platform=PLATFORM_ID, id=appointment_id),
        )


def _catalog_key(identifier: str) -> str:
    """``service-2`` -> ``2``; identifiers without a suffix are used as-is."""
    return identifier.rsplit("-", 1)[-1] if identifier else ""
