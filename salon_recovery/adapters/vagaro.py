"""Vagaro booking platform adapter (OAuth client credentials, PascalCase payloads)."""

from __future__ import annotations

from datetime import date
from typing import Any, Mapping, Optional

import httpx

from salon_recovery.adapters.common import (
    PlatformHttpClient,
    PlatformSettings,
    as_date,
    as_id,
    build_model,
    error_body,
    filter_slots,
    first_present,
    make_slot,
    map_status,
    translate_transport_error,
    unwrap_item,
    unwrap_list,
)
from salon_recovery.errors import (
    AuthenticationError,
    BookingPlatformError,
    InvalidCredentialsError,
    PlatformAPIError,
    RateLimitExceededError,
    UnauthorizedError,
)
from salon_recovery.logging_config import get_logger
from salon_recovery.models import (
    Appointment,
    AppointmentDetails,
    Customer,
    PlatformData,
    Provider,
    Service,
    TimeSlot,
)

logger = get_logger(__name__)

PLATFORM_ID = "vagaro"

DEFAULT_ENDPOINTS = {
    "token": "/oauth/token",
    "appointments": "/appointments",
    "availability": "/appointments/availability",
    "clients": "/clients",
    "services": "/services",
    "staff": "/staff",
}

STATUS_MAP = {
    "Confirmed": "confirmed",
    "Completed": "completed",
    "Cancelled": "cancelled",
    "No-Show": "no-show",
    "Pending": "pending",
}


class VagaroAdapter:
    """Talks to the Vagaro v1 API and maps its records into the canonical model."""

    platform_id = PLATFORM_ID

    def __init__(self, settings: PlatformSettings, client: Optional[httpx.AsyncClient] = None):
        if not settings.credential("client_id") or not settings.credential("client_secret"):
            raise ValueError("Vagaro adapter requires client_id and client_secret")
        self.settings = settings.model_copy(update={"endpoints": {**DEFAULT_ENDPOINTS, **settings.endpoints}})
        self._http = PlatformHttpClient(self.settings, client)
        self.auth_token: Optional[str] = None
        self.is_connected = False

    async def authenticate(self) -> str:
        """Exchange the client credentials for an access token."""
        try:
            payload = await self._http.request(
                "POST",
                self.settings.url("token"),
                "authenticate",
                data={
                    "grant_type": "client_credentials",
                    "client_id": self.settings.credential("client_id"),
                    "client_secret": self.settings.credential("client_secret"),
                },
            )
        except (httpx.HTTPError, BookingPlatformError) as e:
            self.auth_token = None
            self.is_connected = False
            error = self.handle_error(e)
            if not isinstance(error, AuthenticationError):
                error = AuthenticationError(f"Vagaro authentication failed: {error}", platform=PLATFORM_ID)
            raise error from e

        token = first_present(payload, "access_token", "AccessToken")
        if not token:
            self.is_connected = False
            raise AuthenticationError("Vagaro did not return an access token", platform=PLATFORM_ID)

        self.auth_token = token
        self.is_connected = True
        logger.info("platform_authenticated", platform=PLATFORM_ID)
        return token

    async def test_connection(self) -> bool:
        try:
            await self._call("GET", self.settings.url("services"), "test_connection", params={"pageSize": 1})
        except BookingPlatformError:
            self.is_connected = False
            raise
        return True

    async def get_availability(
        self, start_date: date, end_date: date, filters: Optional[Mapping[str, Any]] = None
    ) -> list[TimeSlot]:
        filters = filters or {}
        start_date, end_date = as_date(start_date), as_date(end_date)
        params = {"startDate": start_date.isoformat(), "endDate": end_date.isoformat()}
        if filters.get("service_id"):
            params["serviceId"] = filters["service_id"]
        if filters.get("provider_id"):
            params["employeeId"] = filters["provider_id"]

        payload = await self._call("GET", self.settings.url("availability"), "get_availability", params=params)
        slots = [self._normalize_slot(raw, filters) for raw in unwrap_list(payload, "Slots", "slots")]
        slots = filter_slots(slots, start_date, end_date, filters, self.settings.zone())
        logger.info("availability_fetched", platform=PLATFORM_ID, slots=len(slots))
        return slots

    async def book_appointment(self, details: AppointmentDetails) -> Appointment:
        """Create a booking on Vagaro. Not idempotent: never retry blindly."""
        body = {
            "ClientId": details.customer_id,
            "ServiceId": details.service_id,
            "EmployeeId": details.provider_id,
            "StartDateTime": details.start_time.isoformat(),
            "Notes": details.notes,
        }
        payload = await self._call("POST", self.settings.url("appointments"), "book_appointment", json=body)
        appointment = self.normalize_data(unwrap_item(payload, "Appointment"), "appointment")
        logger.info("appointment_booked", platform=PLATFORM_ID, appointment_id=appointment.id)
        return appointment

    async def get_customer_appointments(
        self, customer_id: str, filters: Optional[Mapping[str, Any]] = None
    ) -> list[Appointment]:
        filters = filters or {}
        params = {"clientId": customer_id}
        if filters.get("start_date"):
            params["startDate"] = as_date(filters["start_date"]).isoformat()
        if filters.get("end_date"):
            params["endDate"] = as_date(filters["end_date"]).isoformat()
        if filters.get("status"):
            params["status"] = filters["status"]

        payload = await self._call("GET", self.settings.url("appointments"), "get_customer_appointments", params=params)
        return [self.normalize_data(raw, "appointment") for raw in unwrap_list(payload, "Appointments", "appointments")]

    async def get_customer(self, customer_id: str) -> Customer:
        payload = await self._call("GET", self.settings.url("clients", customer_id), "get_customer")
        return self.normalize_data(unwrap_item(payload, "Client"), "customer")

    async def get_service(self, service_id: str) -> Service:
        payload = await self._call("GET", self.settings.url("services", service_id), "get_service")
        return self.normalize_data(unwrap_item(payload, "Service"), "service")

    async def get_provider(self, provider_id: str) -> Provider:
        payload = await self._call("GET", self.settings.url("staff", provider_id), "get_provider")
        return self.normalize_data(unwrap_item(payload, "Employee", "Staff"), "provider")

    def normalize_data(self, data: Mapping[str, Any], type: str) -> Any:
        """Map a Vagaro record (or an already lower-cased one) to the canonical model."""
        record_id = as_id(first_present(data, "Id", "id"))

        if type == "appointment":
            return build_model(Appointment, {
                "id": record_id,
                "customer_id": as_id(first_present(data, "ClientId", "clientId", "customerId")),
                "service_id": as_id(first_present(data, "ServiceId", "serviceId")),
                "provider_id": as_id(first_present(data, "EmployeeId", "employeeId", "providerId")),
                "start_time": first_present(data, "StartDateTime", "startDateTime", "startTime"),
                "end_time": first_present(data, "EndDateTime", "endDateTime", "endTime"),
                "status": map_status(
                    first_present(data, "Status", "status"),
                    STATUS_MAP,
                    PLATFORM_ID,
                    strict=self.settings.strict_status_mapping,
                ),
                "notes": first_present(data, "Notes", "notes", default=""),
                "price": first_present(data, "Price", "price", default=0),
                "platform_data": PlatformData(
                    platform=PLATFORM_ID,
                    id=record_id,
                    confirmation_code=as_id(first_present(data, "ConfirmationCode", "confirmationCode")),
                ),
            })

        if type == "customer":
            return build_model(Customer, {
                "id": record_id,
                "first_name": first_present(data, "FirstName", "firstName"),
                "last_name": first_present(data, "LastName", "lastName"),
                "email": first_present(data, "Email", "email"),
                "phone": first_present(data, "Phone", "phone"),
                "platform_data": PlatformData(
                    platform=PLATFORM_ID,
                    id=record_id,
                    memberSince=first_present(data, "MemberSince", "memberSince"),
                ),
            })

        if type == "service":
            return build_model(Service, {
                "id": record_id,
                "name": first_present(data, "Name", "name"),
                "description": first_present(data, "Description", "description"),
                "duration": first_present(data, "Duration", "duration"),
                "price": first_present(data, "Price", "price"),
                "platform_data": PlatformData(
                    platform=PLATFORM_ID,
                    id=record_id,
                    categoryId=as_id(first_present(data, "CategoryId", "categoryId")),
                ),
            })

        if type == "provider":
            return build_model(Provider, {
                "id": record_id,
                "first_name": first_present(data, "FirstName", "firstName"),
                "last_name": first_present(data, "LastName", "lastName"),
                "title": first_present(data, "Title", "title"),
                "bio": first_present(data, "Bio", "bio"),
                "platform_data": PlatformData(
                    platform=PLATFORM_ID,
                    id=record_id,
                    imageUrl=first_present(data, "ImageUrl", "imageUrl"),
                ),
            })

        return dict(data)

    def handle_error(self, error: Exception) -> BookingPlatformError:
        """Translate Vagaro's ``{ErrorCode, Message}`` payloads into the shared taxonomy."""
        logger.warning("adapter_error", platform=PLATFORM_ID, error=str(error))

        translated = translate_transport_error(error, PLATFORM_ID)
        if translated is not None:
            return translated

        if isinstance(error, httpx.HTTPStatusError):
            body = error_body(error)
            code = body.get("ErrorCode")
            status = error.response.status_code

            if code == "InvalidCredentials":
                return InvalidCredentialsError(
                    "Invalid Vagaro credentials. Please check your client ID and secret.",
                    platform=PLATFORM_ID,
                    code=code,
                )
            if code == "TokenExpired" or (code is None and status == 401):
                self.auth_token = None
                self.is_connected = False
                return UnauthorizedError(
                    "Vagaro authentication token expired. Please re-authenticate.",
                    platform=PLATFORM_ID,
                    code=code,
                )
            if code == "RateLimitExceeded" or (code is None and status == 429):
                return RateLimitExceededError(
                    "Vagaro API rate limit exceeded. Please try again later.",
                    platform=PLATFORM_ID,
                    code=code,
                )
            return PlatformAPIError(
                f"Vagaro API error: {body.get('Message') or code or status}",
                platform=PLATFORM_ID,
                code=code,
            )

        return PlatformAPIError(f"Vagaro API error: {error}", platform=PLATFORM_ID)

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _call(self, method: str, url: str, operation: str, **kwargs: Any) -> Any:
        if not self.auth_token:
            await self.authenticate()
        try:
            return await self._http.request(method, url, operation, token=self.auth_token, **kwargs)
        except httpx.HTTPError as e:
            raise self.handle_error(e) from e

    def _normalize_slot(self, raw: Mapping[str, Any], filters: Mapping[str, Any]) -> TimeSlot:
        return make_slot({
            "start_time": first_present(raw, "StartDateTime", "startDateTime", "startTime"),
            "end_time": first_present(raw, "EndDateTime", "endDateTime", "endTime"),
            "provider_id": as_id(first_present(raw, "EmployeeId", "employeeId", "providerId")),
            "service_id": as_id(first_present(raw, "ServiceId", "serviceId", default=filters.get("service_id"))),
            "platform_data": PlatformData(platform=PLATFORM_ID, id=as_id(first_present(raw, "Id", "id"))),
        })
