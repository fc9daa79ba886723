"""Verification of access tokens issued by the managed auth provider."""

import logging
from typing import Any, Dict, Optional

from jose import ExpiredSignatureError, JWTError, jwt

from intake_core.config import get_settings
from intake_core.exceptions import AuthenticationError

logger = logging.getLogger(__name__)
settings = get_settings()


class TokenPayload:
    """Claims this service relies on."""

    def __init__(self, user_id: str, email: Optional[str] = None, role: Optional[str] = None, **kwargs: Any):
        self.user_id = user_id
        self.email = email
        self.role = role
        self.extra_claims = kwargs

    @classmethod
    def from_dict(cls, claims: Dict[str, Any]) -> "TokenPayload":
        return cls(
            user_id=claims.get("sub", ""),
            email=claims.get("email"),
            role=claims.get("role"),
            **{k: v for k, v in claims.items() if k not in ("sub", "email", "role")},
        )


def decode_token(token: str) -> TokenPayload:
    """
    Decode and verify an access token.

    Raises:
        AuthenticationError: If the token is expired, malformed, signed with
            another key, or has no subject
    """
    config = settings.auth
    options = {"verify_aud": bool(config.jwt_audience)}
    try:
        claims = jwt.decode(
            token,
            config.jwt_secret,
            algorithms=[config.jwt_algorithm],
            audience=config.jwt_audience,
            options=options,
        )
    except ExpiredSignatureError:
        raise AuthenticationError("Token has expired")
    except JWTError as e:
        logger.warning(f"JWT validation failed: {e}")
        raise AuthenticationError("Invalid token")

    payload = TokenPayload.from_dict(claims)
    if not payload.user_id:
        raise AuthenticationError("Token has no subject")
    return payload
