"""Prometheus metrics for platform calls, webhooks, rebooking and messaging."""

from prometheus_client import Counter, Histogram

# HTTP surface
api_requests_total = Counter('api_requests_total', 'Total API requests', ['method', 'endpoint', 'status'])
api_request_duration = Histogram('api_request_duration_seconds', 'API request duration')

# Platform adapters
adapter_calls_total = Counter(
    'booking_adapter_calls_total', 'Booking platform API calls', ['platform', 'operation', 'outcome']
)
adapter_call_duration = Histogram(
    'booking_adapter_call_duration_seconds', 'Booking platform API call duration', ['platform', 'operation']
)

# Webhooks / events
webhooks_received_total = Counter(
    'webhooks_received_total', 'Inbound booking webhooks', ['platform', 'event_type', 'outcome']
)
events_dispatched_total = Counter(
    'booking_events_dispatched_total', 'Normalized booking events dispatched', ['event_type', 'outcome']
)

# Rebooking / messaging
rebooking_suggestions_total = Counter('rebooking_suggestions_total', 'Rebooking suggestions produced')
followup_messages_scheduled_total = Counter(
    'followup_messages_scheduled_total', 'Follow-up messages scheduled', ['type']
)
messages_delivered_total = Counter('messages_delivered_total', 'Scheduled message deliveries', ['outcome'])
