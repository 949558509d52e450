"""API key check for the trigger and dashboard endpoints."""

import hmac

from fastapi import Header, HTTPException, status

from upvotes_api.config.settings import settings


async def verify_api_key(x_api_key: str = Header(..., description="Worker API key")):
    """
    Compare the X-API-Key header with DASHBOARD_API_KEY.

    Raises:
        HTTPException: 503 when no key is configured, 401 when it does not match
    """
    expected_key = settings.dashboard_api_key
    if not expected_key:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Trigger endpoints disabled (DASHBOARD_API_KEY not set)",
        )

    if not hmac.compare_digest(x_api_key.encode(), expected_key.encode()):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid API key",
            headers={"WWW-Authenticate": "ApiKey"},
        )

    return True
