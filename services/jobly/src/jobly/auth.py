from __future__ import annotations

import jwt
from common.utils import now_utc, utc_after
from fastapi import Request
from pydantic import Field, ValidationError

from jobly.errors import UnauthorizedError
from jobly.schemas import ApiModel, User

JWT_ALGORITHM = "HS256"


class TokenClaims(ApiModel):
    username: str
    is_admin: bool = Field(default=False, alias="isAdmin")


def create_token(user: User, *, secret_key: str, ttl_seconds: int) -> str:
    payload = {
        "username": user.username,
        "isAdmin": user.is_admin,
        "iat": now_utc(),
        "exp": utc_after(ttl_seconds),
    }
    return jwt.encode(payload, secret_key, algorithm=JWT_ALGORITHM)


def decode_token(token: str, *, secret_key: str) -> TokenClaims:
    try:
        payload = jwt.decode(token, secret_key, algorithms=[JWT_ALGORITHM])
        return TokenClaims.model_validate(payload)
    except (jwt.InvalidTokenError, ValidationError) as exc:
        raise UnauthorizedError("Invalid token") from exc


def extract_bearer_token(authorization: str) -> str:
    scheme, _, credentials = authorization.strip().partition(" ")
    if scheme.lower() == "bearer":
        return credentials.strip()
    return authorization.strip()


def current_user(request: Request) -> TokenClaims | None:
    return getattr(request.state, "user", None)


def ensure_logged_in(claims: TokenClaims | None) -> TokenClaims:
    if claims is None:
        raise UnauthorizedError()
    return claims


def ensure_admin(claims: TokenClaims | None) -> TokenClaims:
    claims = ensure_logged_in(claims)
    if not claims.is_admin:
        raise UnauthorizedError()
    return claims


def ensure_correct_user_or_admin(claims: TokenClaims | None, username: str) -> TokenClaims:
    claims = ensure_logged_in(claims)
    if not (claims.is_admin or claims.username == username):
        raise UnauthorizedError()
    return claims


# Route dependencies; FastAPI resolves these before validating the body.


async def require_admin(request: Request) -> TokenClaims:
    return ensure_admin(current_user(request))


async def require_correct_user_or_admin(request: Request, username: str) -> TokenClaims:
    return ensure_correct_user_or_admin(current_user(request), username)
