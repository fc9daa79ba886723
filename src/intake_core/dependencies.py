"""FastAPI dependencies shared by the v1 routers."""

from typing import Optional

from fastapi import Depends, Request, Response

from intake_core.database.session import get_session
from intake_core.exceptions import RateLimitError
from intake_core.services.rate_limit_service import (
    RateLimitResult,
    get_client_identifier,
    get_rate_limit_service,
)


def rate_limit(policy_name: str):
    """
    Dependency enforcing a rate limit policy on an endpoint.

    Allowed requests get the X-RateLimit-* headers on their response; denied
    requests raise RateLimitError (429) carrying the same headers plus
    Retry-After.
    """

    async def _check(request: Request, response: Response) -> Optional[RateLimitResult]:
        service = get_rate_limit_service()
        if not service.enabled:
            return None

        limiter = service.limiter(policy_name)
        result = await limiter.check(get_client_identifier(request))

        if not result.allowed:
            retry_after = result.retry_after(limiter.now_ms())
            headers = result.headers()
            headers["Retry-After"] = str(retry_after)
            raise RateLimitError(retry_after=retry_after, headers=headers)

        for name, value in result.headers().items():
            response.headers[name] = value
        return result

    return Depends(_check)


__all__ = ["get_session", "rate_limit"]
