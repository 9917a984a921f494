"""
SubGate Authentication

API key check for REST endpoints. Authentication is disabled when no
api_key is configured.
"""
import logging
import secrets
from typing import Optional

from fastapi import Header, HTTPException, status

from subgate.config import get_settings

logger = logging.getLogger(__name__)


async def verify_api_key(x_api_key: Optional[str] = Header(default=None)):
    """FastAPI dependency validating the X-API-Key header"""
    expected = get_settings().api_key
    if not expected:
        return

    if x_api_key is None or not secrets.compare_digest(x_api_key, expected):
        logger.warning("Rejected request with invalid API key")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"error": "unauthorized", "message": "Invalid or missing API key"},
        )
