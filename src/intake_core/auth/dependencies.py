"""FastAPI dependencies for authentication and authorization."""

import logging
from typing import Optional, Sequence

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from intake_core.auth.jwt import decode_token
from intake_core.database.models import Profile
from intake_core.database.session import get_session_context
from intake_core.exceptions import AuthenticationError, AuthorizationError
from intake_core.repositories.firms_repository import ProfilesRepository

logger = logging.getLogger(__name__)

# HTTP Bearer token security scheme
security = HTTPBearer(auto_error=False)


async def get_current_profile(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Profile:
    """
    Resolve the caller's profile from the bearer token.

    Raises:
        AuthenticationError: 401 if the token is missing or invalid, or its
            subject has no profile
    """
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Not authenticated")

    payload = decode_token(credentials.credentials)
    async with get_session_context() as session:
        profile = await ProfilesRepository(session).get_by_id(payload.user_id)

    if profile is None:
        logger.warning(f"Valid token for unknown profile {payload.user_id}")
        raise AuthenticationError("User profile not found")
    return profile


def require_roles(roles: Sequence[str]):
    """
    Dependency factory restricting an endpoint to the given profile roles.

    Example:
        @router.post("/leads/{lead_id}/claim")
        async def claim(profile: Profile = Depends(require_roles(["legal_admin", "system_admin"]))):
            ...
    """
    allowed = set(roles)

    async def role_checker(profile: Profile = Depends(get_current_profile)) -> Profile:
        if profile.role not in allowed:
            logger.warning(f"Profile {profile.id} with role {profile.role} denied; requires {sorted(allowed)}")
            raise AuthorizationError(f"Requires one of roles: {', '.join(sorted(allowed))}")
        return profile

    return role_checker
