import uuid
from typing import List

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from core.date_helper import utcnow
from models.enums import HostVerificationStatus
from models.models import Property, UserProfile


class UserProfileRepo:
    def __init__(self, db):
        self.db = db

    async def get_by_id(self, user_id: uuid.UUID) -> UserProfile | None:
        result = await self.db.execute(
            select(UserProfile).where(UserProfile.id == user_id)
        )
        return result.scalar_one_or_none()

    async def get_or_create(
        self,
        user_id: uuid.UUID,
        email: str | None = None,
        full_name: str | None = None,
    ) -> UserProfile:
        user = await self.get_by_id(user_id)
        if user:
            return user

        user = UserProfile(id=user_id, email=email, full_name=full_name)
        self.db.add(user)
        try:
            await self.db.commit()
            await self.db.refresh(user)
            return user
        except IntegrityError:
            await self.db.rollback()
            return await self.get_by_id(user_id)

    async def update(self, user: UserProfile, **fields) -> UserProfile:
        for key, value in fields.items():
            setattr(user, key, value)
        try:
            await self.db.commit()
            await self.db.refresh(user)
            return user
        except SQLAlchemyError:
            await self.db.rollback()
            raise

    async def set_host_verification(
        self, user: UserProfile, status: HostVerificationStatus
    ) -> UserProfile:
        fields = {"host_verification_status": status}
        if status == HostVerificationStatus.PENDING:
            fields["host_verification_requested_at"] = utcnow()
        return await self.update(user, **fields)

    async def list_hosts(
        self, status: HostVerificationStatus | None = None
    ) -> List[UserProfile]:
        owns_listing = select(Property.id).where(Property.owner_id == UserProfile.id)
        stmt = select(UserProfile).where(
            or_(
                owns_listing.exists(),
                UserProfile.host_verification_status
                != HostVerificationStatus.NOT_STARTED,
            )
        )
        if status is not None:
            stmt = stmt.where(UserProfile.host_verification_status == status)
        result = await self.db.execute(stmt.order_by(UserProfile.created_at.desc()))
        return list(result.scalars().all())
