from typing import Optional

from fastapi import APIRouter, Depends, Query

from salon_recovery.container import ServiceContainer
from salon_recovery.models import RebookingSuggestion
from salon_recovery.routers import get_container
from salon_recovery.security import verify_api_key

router = APIRouter(prefix="/customers", tags=["Rebooking"], dependencies=[Depends(verify_api_key)])


# GET /customers/{platform}/{customer_id}/rebooking-suggestions
# Gets: optional service_id, max_suggestions, days_ahead, prefer_same_provider
# Returns: JSON array of ranked RebookingSuggestion objects
# Example:
#   curl "http://localhost:8000/customers/sandbox/c1/rebooking-suggestions?max_suggestions=3"
@router.get("/{platform}/{customer_id}/rebooking-suggestions")
async def rebooking_suggestions(
    platform: str,
    customer_id: str,
    service_id: Optional[str] = None,
    max_suggestions: Optional[int] = Query(None, ge=1, le=20),
    days_ahead: Optional[int] = Query(None, ge=1, le=90),
    prefer_same_provider: Optional[bool] = None,
    container: ServiceContainer = Depends(get_container),
):
    """Rank upcoming open slots for a customer by how well they fit their history."""
    suggestions = await container.engine_for(platform).generate_suggestions(
        customer_id,
        service_id=service_id,
        max_suggestions=max_suggestions,
        days_ahead=days_ahead,
        prefer_same_provider=prefer_same_provider,
    )
    return [suggestion.to_wire() for suggestion in suggestions]


# POST /customers/{platform}/{customer_id}/rebooking-suggestions/book
# Gets: one RebookingSuggestion (as returned by the GET above)
# Returns: the booked Appointment
# Example:
#   curl -X POST http://localhost:8000/customers/sandbox/c1/rebooking-suggestions/book \
#     -H "Content-Type: application/json" -d @suggestion.json
@router.post("/{platform}/{customer_id}/rebooking-suggestions/book")
async def book_rebooking_suggestion(
    platform: str,
    customer_id: str,
    suggestion: RebookingSuggestion,
    container: ServiceContainer = Depends(get_container),
):
    """Book a suggested slot. Not idempotent: a repeated call books twice."""
    suggestion = suggestion.model_copy(update={"customer_id": customer_id})
    appointment = await container.engine_for(platform).book_suggestion(suggestion)
    return appointment.to_wire()


# GET /customers/{platform}/{customer_id}/pattern
# Gets: nothing
# Returns: the customer's AppointmentPattern
# Example:
#   curl http://localhost:8000/customers/sandbox/c1/pattern
@router.get("/{platform}/{customer_id}/pattern")
async def appointment_pattern(
    platform: str,
    customer_id: str,
    container: ServiceContainer = Depends(get_container),
):
    """Visit profile derived from the customer's appointment history."""
    pattern = await container.engine_for(platform).analyze_customer(customer_id)
    return pattern.to_wire()


# GET /customers/{platform}/{customer_id}/next-appointment
# Gets: service_id
# Returns: {customerId, serviceId, recommendedDate}
# Example:
#   curl "http://localhost:8000/customers/sandbox/c1/next-appointment?service_id=service-1"
@router.get("/{platform}/{customer_id}/next-appointment")
async def next_appointment(
    platform: str,
    customer_id: str,
    service_id: str,
    container: ServiceContainer = Depends(get_container),
):
    """Recommended date for the customer's next visit for a service."""
    recommended = await container.engine_for(platform).recommend_next_appointment_date(customer_id, service_id)
    return {"customerId": customer_id, "serviceId": service_id, "recommendedDate": recommended.isoformat()}
