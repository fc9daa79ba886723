"""Authentication utilities."""

from intake_core.auth.dependencies import get_current_profile, require_roles
from intake_core.auth.internal_service import InternalAuthDep, require_internal_api_key
from intake_core.auth.jwt import TokenPayload, decode_token

__all__ = [
    "InternalAuthDep",
    "TokenPayload",
    "decode_token",
    "get_current_profile",
    "require_internal_api_key",
    "require_roles",
]
