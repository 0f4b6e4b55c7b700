import jwt
from fastapi import Depends, HTTPException, Request, WebSocket, status
from sqlalchemy.ext.asyncio import AsyncSession

from models.models import UserProfile
from repos.profile_repo import UserProfileRepo

from .get_db import get_db_async
from .validators import decode_access_token, jwt_protect, ws_access_token


async def get_current_user(
    claims: dict = Depends(jwt_protect),
    db: AsyncSession = Depends(get_db_async),
) -> UserProfile:
    metadata = claims.get("user_metadata") or {}
    return await UserProfileRepo(db).get_or_create(
        claims["sub"],
        email=claims.get("email"),
        full_name=metadata.get("full_name"),
    )


async def get_optional_user(
    request: Request,
    db: AsyncSession = Depends(get_db_async),
) -> UserProfile | None:
    try:
        claims = await jwt_protect(request)
    except HTTPException:
        return None
    return await UserProfileRepo(db).get_by_id(claims["sub"])


async def get_current_user_ws(
    websocket: WebSocket, db: AsyncSession
) -> UserProfile | None:
    token = ws_access_token(websocket)
    if not token:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return None

    try:
        claims = decode_access_token(token)
    except jwt.InvalidTokenError:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return None

    user = await UserProfileRepo(db).get_by_id(claims["sub"])
    if not user:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return None
    return user
