"""Request identity for FastAPI endpoints.

Production requests carry the auth provider's session JWT as a Bearer token.
In development the X-User-Id / X-University-Id headers stand in for it so
local tools and tests can act as any user.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from unishare.infra import jwt as jwt_helper
from unishare.settings import settings


@dataclass(slots=True)
class AuthenticatedUser:
	id: str
	university_id: Optional[str] = None
	username: Optional[str] = None


_bearer_scheme = HTTPBearer(auto_error=False)


def _claim(payload: Mapping[str, Any], name: str) -> Optional[str]:
	# Profile fields may sit at the top level or under user_metadata
	metadata = payload.get("user_metadata")
	value = payload.get(name)
	if value is None and isinstance(metadata, Mapping):
		value = metadata.get(name)
	return str(value) if value not in (None, "") else None


def verify_access_jwt(token: str) -> AuthenticatedUser:
	try:
		payload = jwt_helper.decode_access(token)
	except Exception:
		raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid_token")
	return AuthenticatedUser(
		id=str(payload["sub"]).strip(),
		university_id=_claim(payload, "university_id"),
		username=_claim(payload, "username"),
	)


async def get_current_user(
	x_user_id: Optional[str] = Header(default=None, alias="X-User-Id"),
	x_university_id: Optional[str] = Header(default=None, alias="X-University-Id"),
	credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
) -> AuthenticatedUser:
	if credentials and credentials.scheme.lower() == "bearer":
		return verify_access_jwt(credentials.credentials)
	if settings.is_dev() and x_user_id:
		return AuthenticatedUser(id=x_user_id, university_id=x_university_id)
	raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="authentication_required")
