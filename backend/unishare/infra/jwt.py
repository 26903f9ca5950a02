"""Session token helpers.

Sessions are HS256 JWTs minted by the hosted auth provider. The issuer check
is only enforced when ``JWT_ISSUER`` is configured.
"""

from __future__ import annotations

import time
from typing import Any, Dict

import jwt
from jwt import InvalidTokenError

from unishare.settings import settings


def _signing_key() -> str:
    return settings.jwt_secret or settings.secret_key


def encode_access(payload: dict[str, object], *, ttl_seconds: int = 3600) -> str:
    """Mint a session token; used by local tooling and tests."""
    now = int(time.time())
    body: Dict[str, Any] = {"aud": settings.jwt_audience, "iat": now, "exp": now + ttl_seconds}
    if settings.jwt_issuer:
        body["iss"] = settings.jwt_issuer
    body.update(payload)
    return jwt.encode(body, _signing_key(), algorithm="HS256")


def decode_access(token: str) -> dict[str, object]:
    """Validate a session token and return its claims.

    Raises jwt.InvalidTokenError subclasses on failure.
    """
    required = ["exp", "sub"]
    kwargs: Dict[str, Any] = {}
    if settings.jwt_issuer:
        required.append("iss")
        kwargs["issuer"] = settings.jwt_issuer
    payload = jwt.decode(
        token,
        _signing_key(),
        algorithms=["HS256"],
        audience=settings.jwt_audience,
        leeway=5,
        options={"require": required},
        **kwargs,
    )
    if not str(payload.get("sub") or "").strip():
        raise InvalidTokenError("missing_claim:sub")
    return payload
