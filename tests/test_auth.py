"""Tests for bearer token verification and role checks."""

import pytest
from fastapi.security import HTTPAuthorizationCredentials
from jose import jwt

from intake_core.auth.dependencies import get_current_profile, require_roles
from intake_core.auth.jwt import decode_token
from intake_core.config import get_settings
from intake_core.exceptions import AuthenticationError, AuthorizationError


def _bearer(token: str) -> HTTPAuthorizationCredentials:
    return HTTPAuthorizationCredentials(scheme="Bearer", credentials=token)


class TestDecodeToken:
    def test_valid_token(self, token):
        payload = decode_token(token("user-1", role="legal_admin", email="a@firm.test"))
        assert payload.user_id == "user-1"
        assert payload.role == "legal_admin"
        assert payload.email == "a@firm.test"
        assert "aud" in payload.extra_claims

    def test_expired(self, token):
        with pytest.raises(AuthenticationError, match="Token has expired"):
            decode_token(token("user-1", expires_in=-30))

    def test_wrong_key(self):
        auth = get_settings().auth
        forged = jwt.encode({"sub": "user-1", "aud": auth.jwt_audience}, "another-secret", algorithm="HS256")
        with pytest.raises(AuthenticationError, match="Invalid token"):
            decode_token(forged)

    def test_wrong_audience(self, token):
        with pytest.raises(AuthenticationError, match="Invalid token"):
            decode_token(token("user-1", aud="someone-else"))

    def test_missing_subject(self, token):
        with pytest.raises(AuthenticationError, match="no subject"):
            decode_token(token(""))

    def test_garbage(self):
        with pytest.raises(AuthenticationError):
            decode_token("not-a-jwt")


class TestCurrentProfile:
    @pytest.mark.asyncio
    async def test_resolves_profile(self, factory, token):
        profile = await factory.profile()
        resolved = await get_current_profile(_bearer(token(profile.id)))
        assert resolved.id == profile.id

    @pytest.mark.asyncio
    async def test_missing_credentials(self, session_factory):
        with pytest.raises(AuthenticationError, match="Not authenticated"):
            await get_current_profile(None)

    @pytest.mark.asyncio
    async def test_unknown_profile(self, session_factory, token):
        with pytest.raises(AuthenticationError, match="User profile not found"):
            await get_current_profile(_bearer(token("ghost")))


class TestRequireRoles:
    @pytest.mark.asyncio
    async def test_allowed_role(self, factory):
        profile = await factory.profile(role="system_admin")
        checker = require_roles(["legal_admin", "system_admin"])
        assert await checker(profile) is profile

    @pytest.mark.asyncio
    async def test_denied_role(self, factory):
        profile = await factory.profile(role="public")
        checker = require_roles(["legal_admin"])
        with pytest.raises(AuthorizationError, match="legal_admin"):
            await checker(profile)
