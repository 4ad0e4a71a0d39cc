"""Mindbody booking platform adapter (API key + site id, PascalCase payloads)."""

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

PLATFORM_ID = "mindbody"

DEFAULT_ENDPOINTS = {
    "token": "/usertoken/issue",
    "appointments": "/appointment/appointments",
    "availability": "/appointment/availabilities",
    "clients": "/client/clients",
    "services": "/appointment/services",
    "staff": "/staff/staff",
}

STATUS_MAP = {
    "Booked": "confirmed",
    "Completed": "completed",
    "Cancelled": "cancelled",
    "NoShow": "no-show",
    "Requested": "pending",
}


class MindbodyAdapter:
    """Mindbody public API v6. Every request carries the API key and site id headers."""

    platform_id = PLATFORM_ID

    def __init__(self, settings: PlatformSettings, client: Optional[httpx.AsyncClient] = None):
        if not settings.credential("api_key"):
            raise ValueError("Mindbody adapter requires api_key")
        if not settings.credential("site_id"):
            raise ValueError("Mindbody adapter requires site_id")
        self.settings = settings.model_copy(update={"endpoints": {**DEFAULT_ENDPOINTS, **settings.endpoints}})
        self.site_id = settings.credential("site_id")
        self._http = PlatformHttpClient(self.settings, client, auth_headers=self._headers)
        self.auth_token: Optional[str] = None
        self.is_connected = False

    def _headers(self, token: Optional[str]) -> dict[str, str]:
        headers = {"Api-Key": self.settings.credential("api_key"), "SiteId": self.site_id}
        if token:
            headers["Authorization"] = token
        return headers

    async def authenticate(self) -> str:
        """Issue a staff user token for the configured site."""
        try:
            payload = await self._http.request(
                "POST",
                self.settings.url("token"),
                "authenticate",
                json={
                    "Username": self.settings.credential("username"),
                    "Password": self.settings.credential("password"),
                },
            )
        except (httpx.HTTPError, BookingPlatformError) as e:
            self.auth_token = None
            self.is_connected = False
            error = self.handle_error(e)
            if not isinstance(error, AuthenticationError):
                error = AuthenticationError(f"Mindbody authentication failed: {error}", platform=PLATFORM_ID)
            raise error from e

        token = first_present(payload, "AccessToken", "accessToken")
        if not token:
            self.is_connected = False
            raise AuthenticationError("Mindbody did not return an access token", platform=PLATFORM_ID)

        self.auth_token = token
        self.is_connected = True
        logger.info("platform_authenticated", platform=PLATFORM_ID, site_id=self.site_id)
        return token

    async def test_connection(self) -> bool:
        try:
            await self._call("GET", self.settings.url("services"), "test_connection", params={"Limit": 1})
        except BookingPlatformError:
            self.is_connected = False
            raise
        return True

    async def get_availability(
        self, start_date: date, end_date: date, filters: Optional[Mapping[str, Any]] = None
    ) -> list[TimeSlot]:
        filters = filters or {}
        start_date, end_date = as_date(start_date), as_date(end_date)
        params = {"StartDate": start_date.isoformat(), "EndDate": end_date.isoformat()}
        if filters.get("service_id"):
            params["ServiceIds"] = filters["service_id"]
        if filters.get("provider_id"):
            params["StaffIds"] = filters["provider_id"]

        payload = await self._call("GET", self.settings.url("availability"), "get_availability", params=params)
        slots = [self._normalize_slot(raw, filters) for raw in unwrap_list(payload, "Availabilities", "availabilities")]
        slots = filter_slots(slots, start_date, end_date, filters, self.settings.zone())
        logger.info("availability_fetched", platform=PLATFORM_ID, site_id=self.site_id, slots=len(slots))
        return slots

    async def book_appointment(self, details: AppointmentDetails) -> Appointment:
        """Create a booking on Mindbody. Not idempotent: never retry blindly."""
        body = {
            "ClientId": details.customer_id,
            "ServiceId": details.service_id,
            "StaffId": details.provider_id,
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
        params = {"ClientId": customer_id}
        if filters.get("start_date"):
            params["StartDate"] = as_date(filters["start_date"]).isoformat()
        if filters.get("end_date"):
            params["EndDate"] = as_date(filters["end_date"]).isoformat()
        if filters.get("status"):
            params["Status"] = filters["status"]

        payload = await self._call("GET", self.settings.url("appointments"), "get_customer_appointments", params=params)
        return [self.normalize_data(raw, "appointment") for raw in unwrap_list(payload, "Appointments", "appointments")]

    async def get_customer(self, customer_id: str) -> Customer:
        payload = await self._call("GET", self.settings.url("clients"), "get_customer", params={"ClientIds": customer_id})
        return self.normalize_data(unwrap_item(payload, "Clients", "Client"), "customer")

    async def get_service(self, service_id: str) -> Service:
        payload = await self._call("GET", self.settings.url("services"), "get_service", params={"ServiceIds": service_id})
        return self.normalize_data(unwrap_item(payload, "Services", "Service"), "service")

    async def get_provider(self, provider_id: str) -> Provider:
        payload = await self._call("GET", self.settings.url("staff"), "get_provider", params={"StaffIds": provider_id})
        return self.normalize_data(unwrap_item(payload, "StaffMembers", "Staff"), "provider")

    def normalize_data(self, data: Mapping[str, Any], type: str) -> Any:
        """Map a Mindbody record (or an already lower-cased one) to the canonical model."""
        record_id = as_id(first_present(data, "Id", "id"))
        site_id = as_id(first_present(data, "SiteId", "siteId", default=self.site_id))

        if type == "appointment":
            return build_model(Appointment, {
                "id": record_id,
                "customer_id": as_id(first_present(data, "ClientId", "clientId", "customerId")),
                "service_id": as_id(first_present(data, "ServiceId", "serviceId")),
                "provider_id": as_id(first_present(data, "StaffId", "staffId", "providerId")),
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
                    siteId=site_id,
                    confirmation_code=as_id(first_present(
                        data, "ConfirmationCode", "confirmationCode", "Reference", "reference"
                    )),
                ),
            })

        if type == "customer":
            return build_model(Customer, {
                "id": record_id,
                "first_name": first_present(data, "FirstName", "firstName"),
                "last_name": first_present(data, "LastName", "lastName"),
                "email": first_present(data, "Email", "email"),
                "phone": first_present(data, "MobilePhone", "mobilePhone", "phone"),
                "platform_data": PlatformData(
                    platform=PLATFORM_ID,
                    id=record_id,
                    siteId=site_id,
                    memberSince=first_present(data, "CreationDate", "creationDate", "memberSince"),
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
                    siteId=site_id,
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
                    siteId=site_id,
                    imageUrl=first_present(data, "ImageUrl", "imageUrl"),
                ),
            })

        return dict(data)

    def handle_error(self, error: Exception) -> BookingPlatformError:
        """Translate Mindbody's ``{Error: {Code, Message}}`` payloads into the shared taxonomy."""
        logger.warning("adapter_error", platform=PLATFORM_ID, error=str(error))

        translated = translate_transport_error(error, PLATFORM_ID)
        if translated is not None:
            return translated

        if isinstance(error, httpx.HTTPStatusError):
            detail = error_body(error).get("Error") or {}
            code = detail.get("Code") if isinstance(detail, dict) else None
            message = detail.get("Message") if isinstance(detail, dict) else None
            status = error.response.status_code

            if code == "InvalidCredentials":
                return InvalidCredentialsError(
                    "Invalid Mindbody credentials. Please check your API key and site ID.",
                    platform=PLATFORM_ID,
                    code=code,
                )
            if code == "InvalidParameters":
                return PlatformAPIError(f"Invalid parameters: {message}", platform=PLATFORM_ID, code=code)
            if code == "Unauthorized" or (code is None and status == 401):
                self.auth_token = None
                self.is_connected = False
                return UnauthorizedError(
                    "Mindbody authentication failed. Please re-authenticate.",
                    platform=PLATFORM_ID,
                    code=code,
                )
            if code == "TooManyRequests" or (code is None and status == 429):
                return RateLimitExceededError(
                    "Mindbody API rate limit exceeded. Please try again later.",
                    platform=PLATFORM_ID,
                    code=code,
                )
            return PlatformAPIError(
                f"Mindbody API error: {message or code or status}",
                platform=PLATFORM_ID,
                code=code,
            )

        return PlatformAPIError(f"Mindbody API error: {error}", platform=PLATFORM_ID)

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
        staff = raw.get("Staff") if isinstance(raw.get("Staff"), Mapping) else {}
        session_type = raw.get("SessionType") if isinstance(raw.get("SessionType"), Mapping) else {}
        return make_slot({
            "start_time": first_present(raw, "StartDateTime", "startDateTime", "startTime"),
            "end_time": first_present(raw, "EndDateTime", "endDateTime", "endTime"),
            "provider_id": as_id(first_present(raw, "StaffId", "staffId", "providerId", default=staff.get("Id"))),
            "service_id": as_id(first_present(
                raw, "ServiceId", "serviceId",
                default=session_type.get("Id") or filters.get("service_id"),
            )),
            "platform_data": PlatformData(
                platform=PLATFORM_ID,
                id=as_id(first_present(raw, "Id", "id")),
                siteId=self.site_id,
            ),
        })
