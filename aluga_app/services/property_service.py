import logging
import uuid

from fastapi import HTTPException

from core.check_permission import CheckRolePermission
from core.mapper import ORMMapper
from models.enums import PropertyStatus, RentType, UserRole
from realtime.change_feed import INSERT, UPDATE, change_feed
from repos.property_repo import PropertyRepo
from schemas.schema import PropertyOut

logger = logging.getLogger(__name__)


class PropertyService:
    def __init__(self, db):
        self.repo: PropertyRepo = PropertyRepo(db)
        self.permission: CheckRolePermission = CheckRolePermission()
        self.mapper: ORMMapper = ORMMapper()

    async def create_property(self, current_user, data) -> PropertyOut:
        prop = await self.repo.create(owner_id=current_user.id, **data.model_dump())
        logger.info("Listing %s created by %s", prop.id, current_user.id)
        await change_feed.emit("properties", INSERT, prop)
        return self.mapper.one(prop, PropertyOut)

    async def update_property(
        self, current_user, property_id: uuid.UUID, data
    ) -> PropertyOut:
        prop = await self.repo.get_by_id(property_id)
        if not prop:
            raise HTTPException(status_code=404, detail="Property not found")
        await self.permission.check_owner(current_user, prop.owner_id)

        changes = data.model_dump(exclude_unset=True)
        if not changes:
            raise HTTPException(status_code=400, detail="Nothing to update.")
        prop = await self.repo.update(prop, **changes)
        await change_feed.emit("properties", UPDATE, prop)
        return self.mapper.one(prop, PropertyOut)

    async def list_approved(self, rent_type: RentType | None = None) -> list[PropertyOut]:
        return self.mapper.many(await self.repo.list_approved(rent_type), PropertyOut)

    async def list_mine(self, current_user) -> list[PropertyOut]:
        return self.mapper.many(await self.repo.list_by_owner(current_user.id), PropertyOut)

    async def get_property(self, property_id: uuid.UUID, current_user=None) -> PropertyOut:
        prop = await self.repo.get_by_id(property_id)
        if not prop:
            raise HTTPException(status_code=404, detail="Property not found")
        if prop.status != PropertyStatus.APPROVED:
            allowed = current_user is not None and (
                current_user.id == prop.owner_id or current_user.role == UserRole.ADMIN
            )
            if not allowed:
                raise HTTPException(status_code=404, detail="Property not found")
        return self.mapper.one(prop, PropertyOut)
