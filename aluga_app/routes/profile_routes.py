from fastapi import APIRouter, Depends
from fastapi_utils.cbv import cbv
from sqlalchemy.ext.asyncio import AsyncSession

from core.get_current_user import get_current_user
from core.get_db import get_db_async
from core.safe_handler import safe_handler
from core.throttling import rate_limit
from models.models import UserProfile
from schemas.schema import UserProfileOut, UserProfileUpdate
from services.profile_service import ProfileService

router = APIRouter(tags=["Profile"])


@cbv(router)
class ProfileRoutes:
    @router.get("/profile/me", response_model=UserProfileOut)
    @safe_handler
    async def me(
        self,
        current_user: UserProfile = Depends(get_current_user),
        db: AsyncSession = Depends(get_db_async),
    ):
        return await ProfileService(db).get_me(current_user)

    @router.patch("/profile/me", response_model=UserProfileOut, dependencies=[rate_limit])
    @safe_handler
    async def update_me(
        self,
        data: UserProfileUpdate,
        current_user: UserProfile = Depends(get_current_user),
        db: AsyncSession = Depends(get_db_async),
    ):
        return await ProfileService(db).update_me(current_user, data)

    @router.post(
        "/profile/me/host-verification",
        response_model=UserProfileOut,
        dependencies=[rate_limit],
    )
    @safe_handler
    async def request_host_verification(
        self,
        current_user: UserProfile = Depends(get_current_user),
        db: AsyncSession = Depends(get_db_async),
    ):
        return await ProfileService(db).request_host_verification(current_user)
