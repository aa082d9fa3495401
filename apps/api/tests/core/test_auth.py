"""
Tests for bearer token validation.
"""

from unittest.mock import patch
from uuid import uuid4

import pytest
from fastapi import HTTPException

from app.core.auth import _validate_token
from app.core.security import create_access_token, decode_token


class TestValidateToken:
    @pytest.mark.asyncio
    async def test_valid_token(self):
        user_id = uuid4()
        token = create_access_token(str(user_id), email="alice@school.test", name="Alice")

        user = await _validate_token(token)

        assert user.id == user_id
        assert user.email == "alice@school.test"
        assert user.name == "Alice"

    @pytest.mark.asyncio
    async def test_avatar_from_metadata(self):
        token = create_access_token(
            str(uuid4()),
            email="bob@school.test",
            extra_claims={"user_metadata": {"name": "Bob", "avatar_url": "https://img/b.png"}},
        )

        user = await _validate_token(token)

        assert user.name == "Bob"
        assert user.avatar_url == "https://img/b.png"

    @pytest.mark.asyncio
    async def test_expired_token(self):
        token = create_access_token(str(uuid4()), email="a@school.test", expires_minutes=-5)

        assert decode_token(token) is None
        with pytest.raises(HTTPException) as exc_info:
            await _validate_token(token)

        assert exc_info.value.status_code == 401
        assert exc_info.value.detail["error"] == "INVALID_TOKEN"

    @pytest.mark.asyncio
    async def test_wrong_audience(self):
        token = create_access_token(
            str(uuid4()), email="a@school.test", extra_claims={"aud": "someone-else"}
        )

        with pytest.raises(HTTPException) as exc_info:
            await _validate_token(token)

        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_refresh_token_rejected(self):
        token = create_access_token(
            str(uuid4()), email="a@school.test", extra_claims={"type": "refresh"}
        )

        with pytest.raises(HTTPException) as exc_info:
            await _validate_token(token)

        assert exc_info.value.detail["error"] == "INVALID_TOKEN_TYPE"

    @pytest.mark.asyncio
    async def test_missing_email_claim(self):
        token = create_access_token(
            str(uuid4()), email="a@school.test", extra_claims={"email": None}
        )

        with pytest.raises(HTTPException) as exc_info:
            await _validate_token(token)

        assert exc_info.value.detail["error"] == "INVALID_TOKEN_CLAIMS"

    @pytest.mark.asyncio
    async def test_uuid_token_only_in_development(self):
        user_id = uuid4()

        with patch("app.core.auth._DEVELOPMENT_MODE", True):
            user = await _validate_token(str(user_id))
        assert user.id == user_id

        with patch("app.core.auth._DEVELOPMENT_MODE", False):
            with pytest.raises(HTTPException):
                await _validate_token(str(user_id))
