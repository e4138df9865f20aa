from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import IdentityNotFound, InvalidRequest
from app.logger import get_logger
from app.models.enrollment import Identity
from app.repos.enrollment_repo import EnrollmentRepository
from app.schemas.enrollment import AgentResponse, CombinedTemplate
from app.services.agent_gateway import AgentGateway
from app.services.payload_validator import validate_payload
from app.services.template_aggregator import TemplateAggregator

logger = get_logger(__name__)


class EnrollmentService:
    def __init__(self, db: AsyncSession, gateway: AgentGateway):
        self.repo = EnrollmentRepository(db)
        self.aggregator = TemplateAggregator(db)
        self.gateway = gateway

    async def start_enrollment(self) -> AgentResponse:
        return await self.gateway.start_enrollment()

    async def save_enrollment(self, name: Optional[str], id_number: Optional[str]) -> Identity:
        """
        Finalize an enrollment: fetch the captured data from the agent,
        check it is complete, then store it in a single transaction.
        """
        name = (name or "").strip()
        id_number = (id_number or "").strip()
        if not name or not id_number:
            raise InvalidRequest("Name and ID number are required")

        logger.info(f"Saving enrollment for ID {id_number} ({name}): fetching data from capture agent")
        payload = await self.gateway.fetch_enrollment_data()

        validate_payload(payload)

        return await self.repo.save_enrollment(name, id_number, payload)

    async def list_combined_templates(self) -> List[CombinedTemplate]:
        return await self.aggregator.list_combined_templates()

    async def delete_identity(self, identity_id: int) -> None:
        deleted = await self.repo.delete_identity(identity_id)
        if not deleted:
            raise IdentityNotFound(identity_id)
        logger.info(f"Deleted identity {identity_id}")
