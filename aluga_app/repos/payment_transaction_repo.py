import uuid
from typing import List

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError

from core.date_helper import utcnow
from models.models import PaymentTransaction

INSERTS = {"postgresql": pg_insert, "sqlite": sqlite_insert}


class PaymentTransactionRepo:
    def __init__(self, db):
        self.db = db

    async def get_by_provider_payment_id(
        self, provider_payment_id: str
    ) -> PaymentTransaction | None:
        result = await self.db.execute(
            select(PaymentTransaction)
            .where(PaymentTransaction.provider_payment_id == provider_payment_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def latest_for_booking(
        self, booking_id: uuid.UUID
    ) -> PaymentTransaction | None:
        result = await self.db.execute(
            select(PaymentTransaction)
            .where(PaymentTransaction.booking_id == booking_id)
            .order_by(
                PaymentTransaction.created_at.desc(),
                PaymentTransaction.updated_at.desc(),
            )
            .limit(1)
        )
        return result.scalars().first()

    async def list_for_booking(self, booking_id: uuid.UUID) -> List[PaymentTransaction]:
        result = await self.db.execute(
            select(PaymentTransaction)
            .where(PaymentTransaction.booking_id == booking_id)
            .order_by(PaymentTransaction.created_at.desc())
        )
        return list(result.scalars().all())

    async def upsert(self, **values) -> PaymentTransaction:
        """Insert or refresh the row keyed by ``provider_payment_id``."""
        conn = await self.db.connection()
        try:
            insert = INSERTS[conn.dialect.name]
        except KeyError:
            raise NotImplementedError(
                f"payment upsert is not supported on {conn.dialect.name}"
            )

        now = utcnow()
        values["updated_at"] = now
        stmt = insert(PaymentTransaction).values(
            id=uuid.uuid4(), created_at=now, **values
        )
        changes = {
            key: stmt.excluded[key]
            for key in values
            if key not in ("provider_payment_id", "paid_at")
        }
        changes["paid_at"] = func.coalesce(
            PaymentTransaction.paid_at, stmt.excluded.paid_at
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[PaymentTransaction.provider_payment_id],
            set_=changes,
        )

        try:
            await self.db.execute(stmt)
            await self.db.commit()
        except SQLAlchemyError:
            await self.db.rollback()
            raise

        return await self.get_by_provider_payment_id(values["provider_payment_id"])
