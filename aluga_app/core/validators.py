import uuid

import jwt
from fastapi import HTTPException, Request, WebSocket

from .settings import settings


def decode_access_token(token: str) -> dict:
    if not settings.JWT_SECRET_KEY:
        raise jwt.InvalidTokenError("JWT_SECRET_KEY is not configured")

    options = {"verify_aud": bool(settings.JWT_AUDIENCE)}
    payload = jwt.decode(
        token,
        settings.JWT_SECRET_KEY,
        algorithms=[settings.JWT_ALGORITHM],
        audience=settings.JWT_AUDIENCE or None,
        options=options,
    )

    sub = payload.get("sub")
    if not sub:
        raise jwt.InvalidTokenError("Token missing user ID")
    try:
        payload["sub"] = uuid.UUID(str(sub))
    except ValueError as e:
        raise jwt.InvalidTokenError("Invalid user ID format in token") from e
    return payload


def _bearer_token(authorization: str | None) -> str | None:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


async def jwt_protect(request: Request) -> dict:
    token = _bearer_token(request.headers.get("Authorization")) or request.cookies.get(
        "access_token"
    )
    if not token:
        raise HTTPException(status_code=401, detail="Not authenticated")

    try:
        return decode_access_token(token)
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Invalid token")


def ws_access_token(websocket: WebSocket) -> str | None:
    return (
        websocket.query_params.get("token")
        or _bearer_token(websocket.headers.get("Authorization"))
        or websocket.cookies.get("access_token")
    )
