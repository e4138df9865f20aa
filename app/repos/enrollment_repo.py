from typing import List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import delete
from sqlmodel import select

from app.exceptions import DuplicateIdentity, InvalidRequest, PayloadRejected, StorageUnavailable
from app.logger import get_logger
from app.models.enrollment import IMAGE_SLOTS, TEMPLATE_SLOTS, FingerprintImages, Identity
from app.schemas.enrollment import EnrollmentPayload
from app.services.payload_validator import missing_slots

logger = get_logger(__name__)

ID_NUMBER_CONSTRAINT = "uq_users_and_templates_id_number"


def _is_id_number_conflict(error: IntegrityError) -> bool:
    # SQLite names the column, PostgreSQL names the constraint
    message = str(error.orig).lower()
    return ID_NUMBER_CONSTRAINT in message or "users_and_templates.id_number" in message


class EnrollmentRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def save_enrollment(self, name: str, id_number: str, payload: EnrollmentPayload) -> Identity:
        """
        Persist an identity, its templates and its images in one transaction.

        Nothing is written unless every step succeeds; a duplicate id number
        or any storage failure rolls back the identity row as well.
        """
        if not name or not id_number:
            raise InvalidRequest("Name and ID number are required")

        missing = missing_slots(payload)
        if missing:
            raise PayloadRejected(missing)

        if self.db.in_transaction():
            # a read earlier in this session autobegan; start from a clean transaction
            await self.db.rollback()

        try:
            async with self.db.begin():
                identity = await self._insert_identity(name, id_number)
                await self._write_templates(identity, payload)
                await self._insert_images(identity, payload)
        except DuplicateIdentity:
            logger.warning(f"Enrollment rejected, ID number already registered: {id_number}")
            raise
        except SQLAlchemyError as e:
            logger.error(f"Enrollment transaction rolled back for {id_number}: {e}")
            raise StorageUnavailable("save_enrollment") from e

        logger.info(f"Enrollment committed: identity {identity.id} ({id_number})")
        return identity

    async def _insert_identity(self, name: str, id_number: str) -> Identity:
        identity = Identity(name=name, id_number=id_number)
        self.db.add(identity)
        try:
            await self.db.flush()
        except IntegrityError as e:
            if _is_id_number_conflict(e):
                raise DuplicateIdentity(id_number) from e
            raise
        return identity

    async def _write_templates(self, identity: Identity, payload: EnrollmentPayload) -> None:
        for slot in TEMPLATE_SLOTS:
            setattr(identity, slot.value, payload.template(slot))
        await self.db.flush()

    async def _insert_images(self, identity: Identity, payload: EnrollmentPayload) -> FingerprintImages:
        images = FingerprintImages(user_id=identity.id)
        self.db.add(images)
        await self.db.flush()

        for slot in IMAGE_SLOTS:
            setattr(images, slot.value, payload.image(slot))
        await self.db.flush()
        return images

    async def list_identities(self) -> List[Identity]:
        statement = select(Identity).order_by(Identity.id)
        try:
            result = await self.db.execute(statement)
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error(f"Failed to read identities: {e}")
            raise StorageUnavailable("list_identities") from e

    async def get_images(self, identity_id: int) -> Optional[FingerprintImages]:
        statement = select(FingerprintImages).where(FingerprintImages.user_id == identity_id)
        try:
            result = await self.db.execute(statement)
            return result.scalars().first()
        except SQLAlchemyError as e:
            raise StorageUnavailable("get_images") from e

    async def delete_identity(self, identity_id: int) -> bool:
        """Delete one identity; its image row goes with it through the FK cascade."""
        statement = delete(Identity).where(Identity.id == identity_id)
        try:
            result = await self.db.execute(statement)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Failed to delete identity {identity_id}: {e}")
            raise StorageUnavailable("delete_identity") from e
        return result.rowcount > 0
