"""Phorest booking platform adapter (OAuth, camelCase payloads, per-branch data)."""

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

PLATFORM_ID = "phorest"
DEFAULT_BRANCH_ID = "main-branch"

DEFAULT_ENDPOINTS = {
    "token": "/oauth/token",
    "appointments": "/appointments",
    "availability": "/availability",
    "clients": "/clients",
    "services": "/services",
    "staff": "/staff",
}

STATUS_MAP = {
    "CONFIRMED": "confirmed",
    "COMPLETED": "completed",
    "CANCELLED": "cancelled",
    "NO_SHOW": "no-show",
    "PENDING": "pending",
}


class PhorestAdapter:
    """Phorest third-party API. Records are camelCase; PascalCase is tolerated."""

    platform_id = PLATFORM_ID

    def __init__(self, settings: PlatformSettings, client: Optional[httpx.AsyncClient] = None):
        if not settings.credential("client_id") or not settings.credential("client_secret"):
            raise ValueError("Phorest adapter requires client_id and client_secret")
        self.settings = settings.model_copy(update={"endpoints": {**DEFAULT_ENDPOINTS, **settings.endpoints}})
        self.branch_id = settings.credential("branch_id") or DEFAULT_BRANCH_ID
        self._http = PlatformHttpClient(self.settings, client)
        self.auth_token: Optional[str] = None
        self.is_connected = False

    async def authenticate(self) -> str:
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
                error = AuthenticationError(f"Phorest authentication failed: {error}", platform=PLATFORM_ID)
            raise error from e

        token = first_present(payload, "access_token", "accessToken")
        if not token:
            self.is_connected = False
            raise AuthenticationError("Phorest did not return an access token", platform=PLATFORM_ID)

        self.auth_token = token
        self.is_connected = True
        logger.info("platform_authenticated", platform=PLATFORM_ID, branch_id=self.branch_id)
        return token

    async def test_connection(self) -> bool:
        try:
            await self._call("GET", self.settings.url("services"), "test_connection", params={"size": 1})
        except BookingPlatformError:
            self.is_connected = False
            raise
        return True

    async def get_availability(
        self, start_date: date, end_date: date, filters: Optional[Mapping[str, Any]] = None
    ) -> list[TimeSlot]:
        filters = filters or {}
        start_date, end_date = as_date(start_date), as_date(end_date)
        params = {
            "branchId": self.branch_id,
            "startDate": start_date.isoformat(),
            "endDate": end_date.isoformat(),
        }
        if filters.get("service_id"):
            params["serviceId"] = filters["service_id"]
        if filters.get("provider_id"):
            params["staffId"] = filters["provider_id"]

        payload = await self._call("GET", self.settings.url("availability"), "get_availability", params=params)
        slots = [self._normalize_slot(raw, filters) for raw in unwrap_list(payload, "slots", "Slots")]
        slots = filter_slots(slots, start_date, end_date, filters, self.settings.zone())
        logger.info("availability_fetched", platform=PLATFORM_ID, branch_id=self.branch_id, slots=len(slots))
        return slots

    async def book_appointment(self, details: AppointmentDetails) -> Appointment:
        """Create a booking on Phorest. Not idempotent: never retry blindly."""
        body = {
            "branchId": self.branch_id,
            "clientId": details.customer_id,
            "serviceId": details.service_id,
            "staffId": details.provider_id,
            "startTime": details.start_time.isoformat(),
            "notes": details.notes,
        }
        payload = await self._call("POST", self.settings.url("appointments"), "book_appointment", json=body)
        appointment = self.normalize_data(unwrap_item(payload, "appointment"), "appointment")
        logger.info("appointment_booked", platform=PLATFORM_ID, appointment_id=appointment.id)
        return appointment

    async def get_customer_appointments(
        self, customer_id: str, filters: Optional[Mapping[str, Any]] = None
    ) -> list[Appointment]:
        filters = filters or {}
        params = {"branchId": self.branch_id, "clientId": customer_id}
        if filters.get("start_date"):
            params["startDate"] = as_date(filters["start_date"]).isoformat()
        if filters.get("end_date"):
            params["endDate"] = as_date(filters["end_date"]).isoformat()
        if filters.get("status"):
            params["status"] = filters["status"]

        payload = await self._call("GET", self.settings.url("appointments"), "get_customer_appointments", params=params)
        return [self.normalize_data(raw, "appointment") for raw in unwrap_list(payload, "appointments", "Appointments")]

    async def get_customer(self, customer_id: str) -> Customer:
        payload = await self._call("GET", self.settings.url("clients", customer_id), "get_customer")
        return self.normalize_data(unwrap_item(payload, "client"), "customer")

    async def get_service(self, service_id: str) -> Service:
        payload = await self._call("GET", self.settings.url("services", service_id), "get_service")
        return self.normalize_data(unwrap_item(payload, "service"), "service")

    async def get_provider(self, provider_id: str) -> Provider:
        payload = await self._call("GET", self.settings.url("staff", provider_id), "get_provider")
        return self.normalize_data(unwrap_item(payload, "staff"), "provider")

    def normalize_data(self, data: Mapping[str, Any], type: str) -> Any:
        """Map a Phorest record to the canonical model."""
        record_id = as_id(first_present(data, "id", "Id"))
        branch_id = first_present(data, "branchId", "BranchId", default=self.branch_id)

        if type == "appointment":
            return build_model(Appointment, {
                "id": record_id,
                "customer_id": as_id(first_present(data, "clientId", "ClientId", "customerId")),
                "service_id": as_id(first_present(data, "serviceId", "ServiceId")),
                "provider_id": as_id(first_present(data, "staffId", "StaffId", "providerId")),
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
                "platform_data": PlatformData(
                    platform=PLATFORM_ID,
                    id=record_id,
                    branchId=branch_id,
                    confirmation_code=as_id(first_present(data, "confirmationCode", "ConfirmationCode")),
                ),
            })

        if type == "customer":
            return build_model(Customer, {
                "id": record_id,
                "first_name": first_present(data, "firstName", "FirstName"),
                "last_name": first_present(data, "lastName", "LastName"),
                "email": first_present(data, "email", "Email"),
                "phone": first_present(data, "mobile", "Mobile", "phone", "Phone"),
                "platform_data": PlatformData(
                    platform=PLATFORM_ID,
                    id=record_id,
                    branchId=branch_id,
                    memberSince=first_present(data, "createdAt", "CreatedAt", "memberSince"),
                ),
            })

        if type == "service":
            return build_model(Service, {
                "id": record_id,
                "name": first_present(data, "name", "Name"),
                "description": first_present(data, "description", "Description"),
                "duration": first_present(data, "duration", "Duration"),
                "price": first_present(data, "price", "Price"),
                "platform_data": PlatformData(
                    platform=PLATFORM_ID,
                    id=record_id,
                    branchId=branch_id,
                    categoryId=as_id(first_present(data, "categoryId", "CategoryId")),
                ),
            })

        if type == "provider":
            return build_model(Provider, {
                "id": record_id,
                "first_name": first_present(data, "firstName", "FirstName"),
                "last_name": first_present(data, "lastName", "LastName"),
                "title": first_present(data, "title", "Title"),
                "bio": first_present(data, "bio", "Bio"),
                "platform_data": PlatformData(
                    platform=PLATFORM_ID,
                    id=record_id,
                    branchId=branch_id,
                    imageUrl=first_present(data, "imageUrl", "ImageUrl"),
                ),
            })

        return dict(data)

    def handle_error(self, error: Exception) -> BookingPlatformError:
        """Translate Phorest's OAuth-style ``{error, error_description}`` payloads."""
        logger.warning("adapter_error", platform=PLATFORM_ID, error=str(error))

        translated = translate_transport_error(error, PLATFORM_ID)
        if translated is not None:
            return translated

        if isinstance(error, httpx.HTTPStatusError):
            body = error_body(error)
            code = body.get("error")
            status = error.response.status_code

            if code == "invalid_client":
                return InvalidCredentialsError(
                    "Invalid Phorest credentials. Please check your client ID and secret.",
                    platform=PLATFORM_ID,
                    code=code,
                )
            if code == "invalid_grant":
                return InvalidCredentialsError(
                    "Invalid Phorest authorization grant. Please check your credentials.",
                    platform=PLATFORM_ID,
                    code=code,
                )
            if code == "unauthorized" or (code is None and status == 401):
                self.auth_token = None
                self.is_connected = False
                return UnauthorizedError(
                    "Phorest authentication failed. Please re-authenticate.",
                    platform=PLATFORM_ID,
                    code=code,
                )
            if code == "too_many_requests" or (code is None and status == 429):
                return RateLimitExceededError(
                    "Phorest API rate limit exceeded. Please try again later.",
                    platform=PLATFORM_ID,
                    code=code,
                )
            return PlatformAPIError(
                f"Phorest API error: {body.get('error_description') or code or status}",
                platform=PLATFORM_ID,
                code=code,
            )

        return PlatformAPIError(f"Phorest API error: {error}", platform=PLATFORM_ID)

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
            "start_time": first_present(raw, "startTime", "StartTime"),
            "end_time": first_present(raw, "endTime", "EndTime"),
            "provider_id": as_id(first_present(raw, "staffId", "StaffId", "providerId")),
            "service_id": as_id(first_present(raw, "serviceId", "ServiceId", default=filters.get("service_id"))),
            "platform_data": PlatformData(
                platform=PLATFORM_ID,
                id=as_id(first_present(raw, "id", "Id")),
                branchId=self.branch_id,
            ),
        })
