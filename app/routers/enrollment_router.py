import base64

from fastapi import APIRouter, Depends, status

from app.routers.dependencies import get_enrollment_service
from app.schemas.enrollment import (
    AgentResponse,
    CombinedTemplateListResponse,
    CombinedTemplateRead,
    MessageResponse,
    SaveEnrollmentRequest,
    SaveEnrollmentResponse,
)
from app.services.enrollment_service import EnrollmentService

router = APIRouter(responses={404: {"description": "Not found"}})


@router.post("/start_enrollment", status_code=status.HTTP_200_OK)
async def start_enrollment(service: EnrollmentService = Depends(get_enrollment_service)) -> AgentResponse:
    return await service.start_enrollment()


@router.post("/save_enrollment", status_code=status.HTTP_200_OK)
async def save_enrollment(
    body: SaveEnrollmentRequest,
    service: EnrollmentService = Depends(get_enrollment_service)
) -> SaveEnrollmentResponse:
    identity = await service.save_enrollment(body.name, body.id_number)

    return SaveEnrollmentResponse(
        id=identity.id,
        message=f"Data for {identity.name} saved with ID: {identity.id}"
    )


@router.get("/get-all-templates", status_code=status.HTTP_200_OK)
async def get_all_templates(service: EnrollmentService = Depends(get_enrollment_service)) -> CombinedTemplateListResponse:
    """Combined matching template of every enrolled identity, base64 encoded."""
    combined = await service.list_combined_templates()

    return CombinedTemplateListResponse(data=[
        CombinedTemplateRead(
            user_id=item.identity_id,
            id_number=item.id_number,
            name=item.name,
            combined_template_base64=base64.b64encode(item.combined_template).decode()
        )
        for item in combined
    ])


@router.delete("/identities/{identity_id}", status_code=status.HTTP_200_OK)
async def delete_identity(
    identity_id: int,
    service: EnrollmentService = Depends(get_enrollment_service)
) -> MessageResponse:
    """Remove an identity together with its stored images"""
    await service.delete_identity(identity_id)
    return MessageResponse(message=f"Identity {identity_id} deleted")
