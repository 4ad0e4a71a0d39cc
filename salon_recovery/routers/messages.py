import uuid
from typing import Optional

from fastapi import APIRouter, Depends

from salon_recovery.container import ServiceContainer
from salon_recovery.delivery import deliver_due_messages
from salon_recovery.followups import DEFAULT_REACTIVATION_OFFER, build_promotion_message, build_reactivation_message
from salon_recovery.logging_config import get_logger
from salon_recovery.models import MessageEdit, OutreachRequest, ScheduledMessage, ScheduledMessageStatus
from salon_recovery.routers import get_container
from salon_recovery.security import verify_api_key

logger = get_logger(__name__)

router = APIRouter(tags=["Messages"], dependencies=[Depends(verify_api_key)])


# GET /messages
# Gets: optional client_id and status query params
# Returns: JSON array of ScheduledMessage objects ordered by scheduled time
# Example:
#   curl "http://localhost:8000/messages?client_id=c1"
@router.get("/messages")
async def list_messages(
    client_id: Optional[str] = None,
    status: Optional[ScheduledMessageStatus] = None,
    container: ServiceContainer = Depends(get_container),
):
    """List scheduled messages."""
    messages = await container.store.list(client_id=client_id, status=status)
    return [message.to_wire() for message in messages]


# POST /messages/deliver-due
# Gets: nothing
# Returns: {delivered, messages} for everything that was due
# Example:
#   curl -X POST http://localhost:8000/messages/deliver-due
@router.post("/messages/deliver-due")
async def deliver_due(container: ServiceContainer = Depends(get_container)):
    """Send every message whose scheduled time has passed."""
    delivered = await deliver_due_messages(container.store, container.sender, container.clock)
    return {"delivered": len(delivered), "messages": [message.to_wire() for message in delivered]}


# POST /messages/reactivation
# Gets: {platform, customerId, offer?, scheduledTime?}
# Returns: the ScheduledMessage
# Example:
#   curl -X POST http://localhost:8000/messages/reactivation \
#     -H "Content-Type: application/json" -d '{"platform": "sandbox", "customerId": "c1"}'
@router.post("/messages/reactivation")
async def schedule_reactivation(request: OutreachRequest, container: ServiceContainer = Depends(get_container)):
    """Schedule a win-back message for a lapsed client (now, unless a time is given)."""
    customer = await container.engine_for(request.platform).adapter.get_customer(request.customer_id)
    message = build_reactivation_message(
        container.catalog, customer, container.salon, offer=request.offer or DEFAULT_REACTIVATION_OFFER
    )
    return (await _schedule(container, message, request)).to_wire()


# POST /messages/promotion
# Gets: {platform, customerId, offer?, scheduledTime?} (offer = promotion details)
# Returns: the ScheduledMessage
# Example:
#   curl -X POST http://localhost:8000/messages/promotion \
#     -H "Content-Type: application/json" -d '{"platform": "sandbox", "customerId": "c1", "offer": "Free blowout"}'
@router.post("/messages/promotion")
async def schedule_promotion(request: OutreachRequest, container: ServiceContainer = Depends(get_container)):
    """Schedule a promotion valid for 30 days."""
    customer = await container.engine_for(request.platform).adapter.get_customer(request.customer_id)
    message = build_promotion_message(
        container.catalog, customer, container.salon, container.clock, container.tz, details=request.offer
    )
    return (await _schedule(container, message, request)).to_wire()


# GET /messages/{message_id}
# Gets: message id
# Returns: the ScheduledMessage
# Example:
#   curl http://localhost:8000/messages/3f2a...
@router.get("/messages/{message_id}")
async def get_message(message_id: str, container: ServiceContainer = Depends(get_container)):
    return (await container.store.get(message_id)).to_wire()


# POST /messages/{message_id}/cancel
# Gets: message id
# Returns: the cancelled ScheduledMessage (cancelling twice is fine; sent messages give 409)
# Example:
#   curl -X POST http://localhost:8000/messages/3f2a.../cancel
@router.post("/messages/{message_id}/cancel")
async def cancel_message(message_id: str, container: ServiceContainer = Depends(get_container)):
    """Cancel a scheduled message."""
    return (await container.store.cancel(message_id)).to_wire()


# PATCH /messages/{message_id}
# Gets: any of {subject, body, scheduledTime}
# Returns: the updated ScheduledMessage (409 unless still scheduled)
# Example:
#   curl -X PATCH http://localhost:8000/messages/3f2a... \
#     -H "Content-Type: application/json" -d '{"subject": "See you soon!"}'
@router.patch("/messages/{message_id}")
async def edit_message(message_id: str, changes: MessageEdit, container: ServiceContainer = Depends(get_container)):
    """Edit a message before it goes out."""
    return (await container.store.edit(message_id, changes)).to_wire()


# GET /templates
# Gets: nothing
# Returns: {type: {subject, body}} for all five message types
# Example:
#   curl http://localhost:8000/templates
@router.get("/templates")
async def list_templates(container: ServiceContainer = Depends(get_container)):
    """Templates in effect (defaults merged with any configured overrides)."""
    return container.catalog.as_dict()


async def _schedule(container: ServiceContainer, message, request: OutreachRequest) -> ScheduledMessage:
    scheduled = ScheduledMessage(
        id=uuid.uuid4().hex,
        message=message,
        scheduled_time=request.scheduled_time or container.clock.now(),
    )
    await container.store.add(scheduled)
    logger.info("outreach_message_scheduled", type=message.type.value, client_id=message.client_id, message_id=scheduled.id)
    return scheduled
