"""
Pieces shared by the platform adapters.

Adapters do not inherit from each other. Each one composes a
``PlatformHttpClient`` and uses the lookup/normalization helpers here.
"""

from __future__ import annotations

import time
from datetime import date, datetime, timedelta, tzinfo
from typing import Any, Callable, Iterable, Mapping, Optional, Protocol, runtime_checkable

import httpx
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from salon_recovery import metrics
from salon_recovery.errors import (
    AdapterTimeoutError,
    BookingPlatformError,
    NormalizationError,
    PlatformAPIError,
    ValidationError,
)
from salon_recovery.logging_config import get_logger
from salon_recovery.models import (
    Appointment,
    AppointmentDetails,
    Customer,
    Provider,
    Service,
    TimeSlot,
)
from salon_recovery.timeutils import resolve_timezone, to_local

logger = get_logger(__name__)

# Platform availability is hourly.
SLOT_LENGTH = timedelta(hours=1)


class PlatformSettings(BaseModel):
    """Per-platform configuration object (no mutable state)."""

    model_config = ConfigDict(frozen=True)

    platform_id: str
    base_url: str = ""
    endpoints: dict[str, str] = Field(default_factory=dict)
    credentials: dict[str, str] = Field(default_factory=dict)
    timeout_seconds: float = 10.0
    strict_status_mapping: bool = False
    # IANA name of the salon zone; slot dates are taken in this zone
    timezone: str = "UTC"

    def zone(self) -> tzinfo:
        return resolve_timezone(self.timezone)

    def credential(self, name: str) -> str:
        return self.credentials.get(name, "")

    def url(self, endpoint: str, *parts: str) -> str:
        path = self.endpoints.get(endpoint, endpoint)
        suffix = "".join(f"/{part}" for part in parts)
        return f"{self.base_url.rstrip('/')}{path}{suffix}"


@runtime_checkable
class BookingPlatformAdapter(Protocol):
    """Capability interface every booking platform implements."""

    platform_id: str
    is_connected: bool

    async def authenticate(self) -> str:
        ...

    async def test_connection(self) -> bool:
        ...

    async def get_availability(
        self, start_date: date, end_date: date, filters: Optional[Mapping[str, Any]] = None
    ) -> list[TimeSlot]:
        ...

    async def book_appointment(self, details: AppointmentDetails) -> Appointment:
        ...

    async def get_customer_appointments(
        self, customer_id: str, filters: Optional[Mapping[str, Any]] = None
    ) -> list[Appointment]:
        ...

    async def get_customer(self, customer_id: str) -> Customer:
        ...

    async def get_service(self, service_id: str) -> Service:
        ...

    async def get_provider(self, provider_id: str) -> Provider:
        ...

    def normalize_data(self, data: Mapping[str, Any], type: str) -> Any:
        ...

    def handle_error(self, error: Exception) -> Exception:
        ...


def first_present(data: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    """Value of the first key that is present and not empty."""
    for key in keys:
        value = data.get(key)
        if value is not None and value != "":
            return value
    return default


def as_id(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)


def map_status(
    status: Any,
    status_map: Mapping[str, str],
    platform: str,
    strict: bool = False,
) -> Optional[str]:
    """Map a platform status to the canonical value.

    Unmapped statuses pass through lower-cased unless ``strict`` is set.
    A list or object in the status field is dropped.
    """
    if status is None:
        return None
    if isinstance(status, (list, dict)):
        if strict:
            raise NormalizationError(f"Malformed {platform} appointment status: {status!r}")
        logger.warning("appointment_status_malformed", platform=platform, status=repr(status))
        return None
    status = str(status)
    mapped = status_map.get(status)
    if mapped is not None:
        return mapped
    if strict:
        raise NormalizationError(f"Unmapped {platform} appointment status: {status}")
    logger.warning("appointment_status_unmapped", platform=platform, status=status)
    return str(status).lower()


def build_model(model: type, fields: dict[str, Any]):
    """Instantiate a canonical model, reporting malformed values as ValidationError."""
    try:
        return model(**fields)
    except PydanticValidationError as e:
        raise ValidationError(f"Invalid {model.__name__.lower()} data: {e.errors()[0]['msg']}") from e


def unwrap_list(payload: Any, *keys: str) -> list[dict[str, Any]]:
    """Platforms return either a bare list or a list under an envelope key."""
    if isinstance(payload, list):
        return payload
    if isinstance(payload, Mapping):
        for key in keys:
            value = payload.get(key)
            if isinstance(value, list):
                return value
    return []


def unwrap_item(payload: Any, *keys: str) -> dict[str, Any]:
    if isinstance(payload, Mapping):
        for key in keys:
            value = payload.get(key)
            if isinstance(value, Mapping):
                return dict(value)
            if isinstance(value, list) and value:
                return value[0]
        return dict(payload)
    if isinstance(payload, list) and payload:
        return payload[0]
    return {}


def filter_slots(
    slots: Iterable[TimeSlot],
    start_date: date,
    end_date: date,
    filters: Optional[Mapping[str, Any]] = None,
    tz: Optional[tzinfo] = None,
) -> list[TimeSlot]:
    """Keep slots whose start date is in [start_date, end_date] and that match the filters.

    The start date is read in ``tz`` (the salon zone) when given.
    """
    filters = filters or {}
    service_id = filters.get("service_id")
    provider_id = filters.get("provider_id")
    kept = []
    for slot in slots:
        start = to_local(slot.start_time, tz) if tz is not None else slot.start_time
        if not (start_date <= start.date() <= end_date):
            continue
        if service_id and slot.service_id and slot.service_id != service_id:
            continue
        if provider_id and slot.provider_id and slot.provider_id != provider_id:
            continue
        kept.append(slot)
    return kept


def as_date(value: date | datetime) -> date:
    return value.date() if isinstance(value, datetime) else value


def error_body(error: httpx.HTTPStatusError) -> dict[str, Any]:
    try:
        body = error.response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def translate_transport_error(error: Exception, platform: str) -> Optional[BookingPlatformError]:
    """Errors that look the same on every platform (timeouts, connection failures)."""
    if isinstance(error, BookingPlatformError):
        return error
    if isinstance(error, httpx.TimeoutException):
        return AdapterTimeoutError(f"{platform} request timed out", platform=platform)
    if isinstance(error, httpx.TransportError):
        return PlatformAPIError(f"{platform} is unreachable: {error}", platform=platform)
    return None


class PlatformHttpClient:
    """Authenticated JSON calls against one platform's API."""

    def __init__(
        self,
        settings: PlatformSettings,
        client: Optional[httpx.AsyncClient] = None,
        auth_headers: Optional[Callable[[Optional[str]], dict[str, str]]] = None,
    ):
        self.settings = settings
        self._client = client or httpx.AsyncClient(timeout=settings.timeout_seconds)
        self._auth_headers = auth_headers or (lambda token: {"Authorization": f"Bearer {token}"} if token else {})

    async def request(
        self,
        method: str,
        url: str,
        operation: str,
        token: Optional[str] = None,
        **kwargs: Any,
    ) -> Any:
        headers = {"Accept": "application/json", **self._auth_headers(token), **kwargs.pop("headers", {})}
        platform = self.settings.platform_id
        started = time.perf_counter()
        outcome = "error"
        try:
            response = await self._client.request(method, url, headers=headers, **kwargs)
            response.raise_for_status()
            outcome = "success"
            return response.json() if response.content else {}
        finally:
            elapsed = time.perf_counter() - started
            metrics.adapter_calls_total.labels(platform=platform, operation=operation, outcome=outcome).inc()
            metrics.adapter_call_duration.labels(platform=platform, operation=operation).observe(elapsed)
            logger.debug("adapter_call", platform=platform, operation=operation, outcome=outcome, elapsed=round(elapsed, 3))

    async def aclose(self) -> None:
        await self._client.aclose()


def make_slot(fields: dict[str, Any]) -> TimeSlot:
    """Build a TimeSlot; a missing end time means one hourly slot."""
    if fields.get("end_time") is None and fields.get("start_time") is not None:
        try:
            start = TypeAdapter(datetime).validate_python(fields["start_time"])
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid slot start time: {fields['start_time']}") from e
        fields = {**fields, "start_time": start, "end_time": start + SLOT_LENGTH}
    return build_model(TimeSlot, fields)
