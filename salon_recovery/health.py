"""
Health check and monitoring endpoints for production.
"""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from salon_recovery import __version__
from salon_recovery.container import ServiceContainer
from salon_recovery.logging_config import logger
from salon_recovery.routers import get_container

router = APIRouter(tags=["Health & Monitoring"])


# GET /health
# Gets: nothing
# Returns: {status, service, version}
# Example:
#   curl http://localhost:8000/health
@router.get("/health")
async def health_check():
    """
    Basic health check - returns 200 if service is running.
    Use this for basic liveness checks.
    """
    return {
        "status": "healthy",
        "service": "salon-recovery",
        "version": __version__
    }


# GET /health/ready
# Gets: nothing
# Returns: readiness checks; 503 when no booking platform is available
# Example:
#   curl http://localhost:8000/health/ready
@router.get("/health/ready")
async def readiness_check(container: ServiceContainer = Depends(get_container)):
    """
    Readiness check - verifies the service can take webhooks.
    Use this for Kubernetes readiness checks.

    Checks:
    - at least one booking platform adapter is configured
    - message templates are loaded
    """
    platforms = sorted(container.adapters)
    checks = {
        "platforms": platforms,
        "templates": bool(container.catalog.as_dict()),
        "ready": False
    }
    checks["ready"] = bool(platforms) and checks["templates"]

    if not checks["ready"]:
        logger.warning("readiness_check_failed", platforms=platforms)

    return JSONResponse(checks, status_code=200 if checks["ready"] else 503)


# GET /health/info
# Gets: nothing
# Returns: service configuration summary
# Example:
#   curl http://localhost:8000/health/info
@router.get("/health/info")
async def system_info(container: ServiceContainer = Depends(get_container)):
    """
    System information and configuration status.
    """
    config = container.config
    return {
        "service": "salon-recovery",
        "version": __version__,
        "configuration": {
            "platforms": sorted(container.adapters),
            "salon_name": container.salon.name,
            "timezone": str(container.tz),
            "strict_status_mapping": config.STRICT_STATUS_MAPPING,
            "debug_mode": config.DEBUG
        },
        "features": {
            "rebooking_suggestions": bool(container.engines),
            "followup_sequences": True,
            "sandbox_platform": "sandbox" in container.adapters,
            "custom_templates": bool(config.MESSAGE_TEMPLATES_PATH),
            "reminder_days_since_from_send_time": config.REMINDER_DAYS_SINCE_FROM_SEND_TIME,
        }
    }
