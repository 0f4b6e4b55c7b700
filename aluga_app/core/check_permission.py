from fastapi import HTTPException

from models.enums import UserRole


class CheckRolePermission:
    async def check_admin(self, current_user):
        if current_user.role != UserRole.ADMIN:
            raise HTTPException(status_code=403, detail="Access Denied.")

    async def check_renter(self, current_user, booking):
        if current_user.id != booking.renter_id:
            raise HTTPException(
                status_code=403, detail="Only the renter of this booking can do this."
            )

    async def check_owner(self, current_user, owner_id):
        if current_user.id != owner_id:
            raise HTTPException(
                status_code=403, detail="Only the owner of this listing can do this."
            )

    async def check_booking_party(self, current_user, booking):
        if current_user.role == UserRole.ADMIN:
            return
        if current_user.id not in {booking.renter_id, booking.owner_id}:
            raise HTTPException(status_code=403, detail="Access Denied.")
