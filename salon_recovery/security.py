"""
API key guard for the salon management routes (scheduled messages, templates,
customer rebooking).

Webhook and health routes are not guarded: booking platforms cannot send our
key, and health checks run without one.
"""

import hmac
from typing import Optional

from fastapi import HTTPException, Security
from fastapi.security import APIKeyHeader
from salon_recovery.config import config
from salon_recovery.logging_config import get_logger

logger = get_logger(__name__)

API_KEY_HEADER = "X-API-Key"

management_api_key = APIKeyHeader(
    name=API_KEY_HEADER,
    auto_error=False,
    description="Key for the message, template and rebooking routes",
)


def api_key_matches(provided: Optional[str], expected: str) -> bool:
    if not provided:
        return False
    return hmac.compare_digest(provided.encode(), expected.encode())


async def verify_api_key(api_key: Optional[str] = Security(management_api_key)) -> str:
    """
    Router-level dependency for the management API.

    Usage:
        router = APIRouter(prefix="/customers", dependencies=[Depends(verify_api_key)])

    With ``API_KEY`` unset (local runs against the sandbox platform) every
    caller gets through as "development".
    """
    if not config.API_KEY:
        return "development"

    if not api_key_matches(api_key, config.API_KEY):
        logger.warning("management_api_key_rejected", header_present=bool(api_key))
        raise HTTPException(status_code=403, detail="Invalid or missing API key")

    return api_key
