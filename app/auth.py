"""
Bearer-token authentication against the external identity provider.

The provider issues HS256 JWTs; `sub` is the stable subject that users.auth_id
links to.
"""

from dataclasses import dataclass
from typing import Optional

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .settings import get_settings

security = HTTPBearer(auto_error=False)


@dataclass
class AuthUser:
    id: str
    email: Optional[str] = None
    name: Optional[str] = None


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def verify_token(token: str) -> dict:
    settings = get_settings()
    if not settings.auth_jwt_secret:
        raise _unauthorized("Authentication is not configured")

    options = {"require": ["sub", "exp"], "verify_aud": bool(settings.auth_jwt_audience)}
    try:
        return jwt.decode(
            token,
            settings.auth_jwt_secret,
            algorithms=settings.auth_jwt_algorithms,
            audience=settings.auth_jwt_audience,
            options=options,
        )
    except jwt.ExpiredSignatureError:
        raise _unauthorized("Token has expired")
    except jwt.InvalidTokenError as e:
        raise _unauthorized(f"Invalid token: {e}")


def user_from_claims(payload: dict) -> AuthUser:
    name = payload.get("name") or " ".join(
        p for p in (payload.get("given_name"), payload.get("family_name")) if p
    )
    return AuthUser(id=str(payload["sub"]), email=payload.get("email"), name=name or None)


async def require_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> AuthUser:
    if not credentials:
        raise _unauthorized("Unauthorized")
    return user_from_claims(verify_token(credentials.credentials))
