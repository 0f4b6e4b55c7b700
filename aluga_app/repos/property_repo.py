import uuid
from typing import List

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from models.enums import PropertyStatus, RentType
from models.models import Property


class PropertyRepo:
    def __init__(self, db):
        self.db = db

    async def create(self, owner_id: uuid.UUID, **fields) -> Property:
        prop = Property(
            owner_id=owner_id,
            status=PropertyStatus.PENDING,
            verified=False,
            **fields,
        )
        self.db.add(prop)
        try:
            await self.db.commit()
            await self.db.refresh(prop)
            return prop
        except SQLAlchemyError:
            await self.db.rollback()
            raise

    async def get_by_id(self, property_id: uuid.UUID) -> Property | None:
        result = await self.db.execute(
            select(Property).where(Property.id == property_id)
        )
        return result.scalar_one_or_none()

    async def get_for_update(self, property_id: uuid.UUID) -> Property | None:
        result = await self.db.execute(
            select(Property).where(Property.id == property_id).with_for_update()
        )
        return result.scalar_one_or_none()

    async def list_approved(self, rent_type: RentType | None = None) -> List[Property]:
        stmt = select(Property).where(Property.status == PropertyStatus.APPROVED)
        if rent_type is not None:
            stmt = stmt.where(Property.rent_type == rent_type)
        result = await self.db.execute(stmt.order_by(Property.created_at.desc()))
        return list(result.scalars().all())

    async def list_by_owner(self, owner_id: uuid.UUID) -> List[Property]:
        result = await self.db.execute(
            select(Property)
            .where(Property.owner_id == owner_id)
            .order_by(Property.created_at.desc())
        )
        return list(result.scalars().all())

    async def list_all(self, status: PropertyStatus | None = None) -> List[Property]:
        stmt = select(Property)
        if status is not None:
            stmt = stmt.where(Property.status == status)
        result = await self.db.execute(stmt.order_by(Property.created_at.desc()))
        return list(result.scalars().all())

    async def update(self, prop: Property, **fields) -> Property:
        for key, value in fields.items():
            setattr(prop, key, value)
        try:
            await self.db.commit()
            await self.db.refresh(prop)
            return prop
        except SQLAlchemyError:
            await self.db.rollback()
            raise
