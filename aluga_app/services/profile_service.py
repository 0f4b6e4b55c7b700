import logging

import phonenumbers
from fastapi import HTTPException

from core.mapper import ORMMapper
from models.enums import HostVerificationStatus
from repos.profile_repo import UserProfileRepo
from schemas.schema import UserProfileOut

logger = logging.getLogger(__name__)

PHONE_REGION = "BR"


def normalize_phone(raw: str) -> str:
    try:
        number = phonenumbers.parse(raw, PHONE_REGION)
    except phonenumbers.NumberParseException:
        raise HTTPException(status_code=400, detail="Invalid phone number.")
    if not phonenumbers.is_valid_number(number):
        raise HTTPException(status_code=400, detail="Invalid phone number.")
    return phonenumbers.format_number(number, phonenumbers.PhoneNumberFormat.E164)


class ProfileService:
    def __init__(self, db):
        self.repo: UserProfileRepo = UserProfileRepo(db)
        self.mapper: ORMMapper = ORMMapper()

    async def get_me(self, current_user) -> UserProfileOut:
        return self.mapper.one(current_user, UserProfileOut)

    async def update_me(self, current_user, data) -> UserProfileOut:
        changes = data.model_dump(exclude_unset=True)
        if not changes:
            raise HTTPException(status_code=400, detail="Nothing to update.")
        if changes.get("phone"):
            changes["phone"] = normalize_phone(changes["phone"])

        user = await self.repo.update(current_user, **changes)
        return self.mapper.one(user, UserProfileOut)

    async def request_host_verification(self, current_user) -> UserProfileOut:
        status = current_user.host_verification_status
        if status not in {
            HostVerificationStatus.NOT_STARTED,
            HostVerificationStatus.REJECTED,
        }:
            raise HTTPException(
                status_code=409,
                detail=f"Host verification is already {status.value}.",
            )
        if not (current_user.full_name and current_user.phone and current_user.cpf):
            raise HTTPException(
                status_code=400,
                detail="Fill in name, phone and CPF before requesting verification.",
            )

        user = await self.repo.set_host_verification(
            current_user, HostVerificationStatus.PENDING
        )
        logger.info("Host verification requested by %s", user.id)
        return self.mapper.one(user, UserProfileOut)
