"""Internal service-to-service authentication dependencies."""

from typing import Optional

from fastapi import Depends, Header, HTTPException, status

from intake_core.config import get_settings
from intake_core.utils.logging import get_logger

logger = get_logger("internal_service_auth")
settings = get_settings()


async def require_internal_api_key(
    x_internal_api_key: Optional[str] = Header(default=None, alias="X-Internal-API-Key"),
) -> None:
    """
    Require a valid internal API key on extraction triggers and maintenance jobs.

    With INTERNAL_API_KEY_ENABLED=false every caller is allowed (local
    development); otherwise X-Internal-API-Key must equal INTERNAL_API_KEY.
    """
    if not settings.internal_api_key_enabled:
        return

    if not settings.internal_api_key:
        logger.error("INTERNAL_API_KEY_ENABLED=true but INTERNAL_API_KEY is not set")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal auth misconfigured",
        )

    if not x_internal_api_key or x_internal_api_key != settings.internal_api_key:
        logger.warning("Rejected internal call with missing or invalid X-Internal-API-Key")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid internal API key",
            headers={"WWW-Authenticate": "X-Internal-API-Key"},
        )


InternalAuthDep = Depends(require_internal_api_key)
