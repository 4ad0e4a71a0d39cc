"""
Inbound booking webhooks.

Each platform posts its own payload shape. Ingestion finds the event type and
the appointment/client sub-object, normalizes them with the platform's
adapter and hands a ``NormalizedEvent`` to the dispatcher.

Signature verification is not done here; a missing signature header is only
logged.
"""

from __future__ import annotations

import traceback
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from salon_recovery import metrics
from salon_recovery.errors import SalonRecoveryError, UnsupportedPlatformError, ValidationError
from salon_recovery.events import (
    APPOINTMENT_CANCELLED,
    APPOINTMENT_COMPLETED,
    APPOINTMENT_CREATED,
    APPOINTMENT_UPDATED,
    CLIENT_CREATED,
    CLIENT_UPDATED,
    BookingEventDispatcher,
)
from salon_recovery.logging_config import get_logger
from salon_recovery.models import NormalizedEvent, WebhookResult

logger = get_logger(__name__)

APPOINTMENT_EVENTS = (APPOINTMENT_CREATED, APPOINTMENT_UPDATED, APPOINTMENT_CANCELLED, APPOINTMENT_COMPLETED)
CLIENT_EVENTS = (CLIENT_CREATED, CLIENT_UPDATED)
UNHANDLED = {"message": "Event type not handled"}


@dataclass(frozen=True)
class WebhookFormat:
    """Where a platform puts the event type and the record in its webhook body."""

    platform: str
    event_type_keys: tuple[str, ...]
    appointment_keys: tuple[str, ...]
    client_keys: tuple[str, ...]
    signature_header: Optional[str] = None
    # Lower-cased platform event name -> canonical event type
    event_aliases: Mapping[str, str] = field(default_factory=dict)

    def canonical_event_type(self, raw: str) -> str:
        name = raw.strip().lower()
        return self.event_aliases.get(name, name)


WEBHOOK_FORMATS = {
    "vagaro": WebhookFormat(
        platform="vagaro",
        event_type_keys=("eventType", "EventType"),
        appointment_keys=("data", "Data"),
        client_keys=("data", "Data"),
        signature_header="x-vagaro-signature",
    ),
    "mindbody": WebhookFormat(
        platform="mindbody",
        event_type_keys=("EventType", "eventType"),
        appointment_keys=("Appointment", "appointment"),
        client_keys=("Client", "client"),
        signature_header="x-mindbodyonline-signature",
        event_aliases={
            "appointment.added": APPOINTMENT_CREATED,
            "client.added": CLIENT_CREATED,
        },
    ),
    "phorest": WebhookFormat(
        platform="phorest",
        event_type_keys=("eventType", "type"),
        appointment_keys=("data", "appointment"),
        client_keys=("data", "client"),
        signature_header="x-phorest-signature",
        event_aliases={
            "appointment_created": APPOINTMENT_CREATED,
            "appointment_updated": APPOINTMENT_UPDATED,
            "appointment_cancelled": APPOINTMENT_CANCELLED,
            "appointment_completed": APPOINTMENT_COMPLETED,
            "client_created": CLIENT_CREATED,
            "client_updated": CLIENT_UPDATED,
        },
    ),
    "sandbox": WebhookFormat(
        platform="sandbox",
        event_type_keys=("eventType", "type"),
        appointment_keys=("appointment", "data"),
        client_keys=("client", "customer", "data"),
    ),
}


def webhook_format(platform: str) -> WebhookFormat:
    fmt = WEBHOOK_FORMATS.get((platform or "").lower())
    if fmt is None:
        raise UnsupportedPlatformError(platform)
    return fmt


def _sub_object(payload: Mapping[str, Any], keys: tuple[str, ...]) -> Optional[Mapping[str, Any]]:
    for key in keys:
        value = payload.get(key)
        if isinstance(value, Mapping):
            return value
    return None


def normalize_webhook(platform: str, payload: Any, normalizer) -> NormalizedEvent:
    """
    Turn a raw webhook body into a NormalizedEvent.

    ``normalizer`` is anything with the adapter's ``normalize_data(raw, type)``.

    Raises:
        UnsupportedPlatformError: unknown platform
        ValidationError: no event type, or the appointment/client record is missing
    """
    fmt = webhook_format(platform)
    if not isinstance(payload, Mapping):
        raise ValidationError(f"{fmt.platform} webhook payload must be a JSON object")

    raw_event_type = next(
        (payload[key] for key in fmt.event_type_keys if isinstance(payload.get(key), str) and payload[key]),
        None,
    )
    if raw_event_type is None:
        raise ValidationError(f"Missing event type in {fmt.platform} webhook payload")

    event_type = fmt.canonical_event_type(raw_event_type)
    fields: dict[str, Any] = {"event_type": event_type, "platform": fmt.platform, "raw_event_type": raw_event_type}

    if event_type in APPOINTMENT_EVENTS:
        data = _sub_object(payload, fmt.appointment_keys)
        if data is None:
            raise ValidationError("Missing appointment data in payload")
        appointment = normalizer.normalize_data(data, "appointment")
        fields.update(appointment=appointment, processed_data={"success": True, "appointment": appointment.to_wire()})
    elif event_type in CLIENT_EVENTS:
        data = _sub_object(payload, fmt.client_keys)
        if data is None:
            raise ValidationError("Missing client data in payload")
        customer = normalizer.normalize_data(data, "customer")
        fields.update(customer=customer, processed_data={"success": True, "client": customer.to_wire()})
    else:
        logger.info("webhook_event_unhandled", platform=fmt.platform, event_type=raw_event_type)
        fields["processed_data"] = dict(UNHANDLED)

    return NormalizedEvent(**fields)


def check_signature_header(fmt: WebhookFormat, headers: Mapping[str, str]) -> bool:
    if fmt.signature_header is None:
        return True
    present = any(name.lower() == fmt.signature_header for name in headers)
    if not present:
        logger.warning("webhook_signature_missing", platform=fmt.platform, header=fmt.signature_header)
    return present


async def process_webhook(
    platform: str,
    payload: Any,
    headers: Mapping[str, str],
    dispatcher: BookingEventDispatcher,
) -> WebhookResult:
    """
    Normalize and dispatch one webhook. Never raises: failures come back as
    ``success=False`` with the error message.
    """
    platform = (platform or "").lower()
    # Metric labels only take known values; callers choose the raw names.
    platform_label = platform if platform in WEBHOOK_FORMATS else "unknown"
    try:
        fmt = webhook_format(platform)
        check_signature_header(fmt, headers)
        event = normalize_webhook(platform, payload, dispatcher.adapter_for(platform))
    except SalonRecoveryError as e:
        logger.warning("webhook_rejected", platform=platform, error=str(e))
        metrics.webhooks_received_total.labels(platform=platform_label, event_type="unknown", outcome="rejected").inc()
        return WebhookResult(success=False, platform=platform, error=str(e))
    except Exception as e:
        logger.error(
            "webhook_normalization_failed",
            platform=platform,
            error=str(e),
            traceback=traceback.format_exc(),
        )
        metrics.webhooks_received_total.labels(platform=platform_label, event_type="unknown", outcome="rejected").inc()
        return WebhookResult(success=False, platform=platform, error=f"Malformed {platform} webhook payload: {e}")

    if event.processed_data == UNHANDLED:
        metrics.webhooks_received_total.labels(platform=platform, event_type="other", outcome="unhandled").inc()
        return WebhookResult(
            success=True,
            platform=platform,
            event_type=event.raw_event_type,
            processed_data=event.processed_data,
        )

    result = await dispatcher.dispatch(event)
    outcome = "processed" if result.success else "failed"
    metrics.webhooks_received_total.labels(platform=platform, event_type=event.event_type, outcome=outcome).inc()
    logger.info("webhook_processed", platform=platform, event_type=event.event_type, success=result.success)

    return WebhookResult(
        success=result.success,
        platform=platform,
        event_type=event.raw_event_type,
        processed_data=event.processed_data,
        result=result,
        error=result.error,
    )
