from typing import List

from sqlalchemy.ext.asyncio import AsyncSession

from app.logger import get_logger
from app.models.enrollment import TEMPLATE_SLOTS, Identity
from app.repos.enrollment_repo import EnrollmentRepository
from app.schemas.enrollment import CombinedTemplate

logger = get_logger(__name__)


def combine_templates(identity: Identity) -> bytes:
    """Concatenate the stored templates right thumb -> right little, then left thumb -> left little."""
    parts = [getattr(identity, slot.value) for slot in TEMPLATE_SLOTS]
    return b"".join(bytes(part) for part in parts if part is not None)


class TemplateAggregator:
    def __init__(self, db: AsyncSession):
        self.repo = EnrollmentRepository(db)

    async def list_combined_templates(self) -> List[CombinedTemplate]:
        """
        One combined matching template per stored identity, ordered by id.

        Identities without any stored template still appear, with an empty
        combined template.
        """
        identities = await self.repo.list_identities()
        logger.info(f"Combining templates for {len(identities)} identities")

        return [
            CombinedTemplate(
                identity_id=identity.id,
                id_number=identity.id_number,
                name=identity.name,
                combined_template=combine_templates(identity),
            )
            for identity in identities
        ]
