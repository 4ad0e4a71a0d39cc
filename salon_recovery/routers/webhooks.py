from typing import Any

from fastapi import APIRouter, Body, Depends, Request

from salon_recovery.container import ServiceContainer
from salon_recovery.logging_config import bind_webhook_context, get_logger
from salon_recovery.routers import get_container
from salon_recovery.webhooks import process_webhook, webhook_format

logger = get_logger(__name__)

router = APIRouter(prefix="/webhooks", tags=["Webhooks"])


# POST /webhooks/{platform}
# Gets: the platform's raw webhook JSON body (+ its signature header)
# Returns: {success, platform, eventType, processedData, result, error}
# Example:
#   curl -X POST http://localhost:8000/webhooks/vagaro \
#     -H "Content-Type: application/json" \
#     -d '{"eventType": "appointment.cancelled", "data": {"Id": "a1", "ClientId": "c1", "ServiceId": "s1"}}'
@router.post("/{platform}")
async def receive_webhook(
    platform: str,
    request: Request,
    payload: Any = Body(...),
    container: ServiceContainer = Depends(get_container),
):
    """
    Ingest one booking platform webhook.

    Unknown platforms are a 404; anything wrong with the payload itself is
    reported in the body with success=false so the platform does not retry.
    """
    platform = platform.lower()
    bind_webhook_context(platform)
    webhook_format(platform)
    container.engine_for(platform)

    logger.info("webhook_received", platform=platform)
    result = await process_webhook(platform, payload, dict(request.headers), container.dispatcher)
    return result.to_wire()
