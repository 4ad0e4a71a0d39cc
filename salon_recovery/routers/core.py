from fastapi import APIRouter

from salon_recovery import __version__

router = APIRouter(tags=["Core"])


# GET /
# Gets: nothing
# Returns: basic API metadata and a map of key endpoints
# Example:
#   curl http://localhost:8000/
@router.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "Salon Recovery API - rebooking and follow-ups for salon booking platforms",
        "version": __version__,
        "description": "Normalizes booking platform webhooks, suggests rebooking slots after cancellations and schedules follow-ups after visits",
        "endpoints": {
            "webhooks": "/webhooks/{platform}",
            "rebooking_suggestions": "/customers/{platform}/{customer_id}/rebooking-suggestions",
            "appointment_pattern": "/customers/{platform}/{customer_id}/pattern",
            "next_appointment": "/customers/{platform}/{customer_id}/next-appointment",
            "messages": "/messages",
            "deliver_due": "/messages/deliver-due",
            "templates": "/templates",
            "metrics": "/metrics",
        },
        "features": [
            "Vagaro, Mindbody and Phorest adapters",
            "Appointment pattern analysis",
            "Ranked rebooking suggestions",
            "Follow-up message sequences",
        ],
    }
