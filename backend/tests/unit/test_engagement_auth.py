from __future__ import annotations

import pytest
from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials

from unishare.infra import jwt as jwt_helper
from unishare.infra.auth import get_current_user, verify_access_jwt
from unishare.settings import settings


def test_session_token_claims_map_to_user():
	token = jwt_helper.encode_access(
		{"sub": "user-1", "user_metadata": {"username": "ada", "university_id": "uni-9"}}
	)

	user = verify_access_jwt(token)

	assert (user.id, user.username, user.university_id) == ("user-1", "ada", "uni-9")


def test_expired_or_foreign_tokens_are_rejected():
	expired = jwt_helper.encode_access({"sub": "user-1"}, ttl_seconds=-60)
	wrong_audience = jwt_helper.encode_access({"sub": "user-1", "aud": "someone-else"})

	for token in (expired, wrong_audience, "not-a-jwt"):
		with pytest.raises(HTTPException) as exc:
			verify_access_jwt(token)
		assert exc.value.status_code == 401


@pytest.mark.asyncio
async def test_identity_headers_only_honoured_in_dev(monkeypatch):
	dev_user = await get_current_user(x_user_id="user-2", x_university_id=None, credentials=None)
	assert dev_user.id == "user-2"

	monkeypatch.setattr(settings, "environment", "production")
	with pytest.raises(HTTPException) as exc:
		await get_current_user(x_user_id="user-2", x_university_id=None, credentials=None)
	assert exc.value.detail == "authentication_required"

	token = jwt_helper.encode_access({"sub": "user-3"})
	bearer = HTTPAuthorizationCredentials(scheme="Bearer", credentials=token)
	assert (await get_current_user(x_user_id=None, x_university_id=None, credentials=bearer)).id == "user-3"
