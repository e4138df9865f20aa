from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from app.models.enrollment import ImageSlot, TemplateSlot


class EnrollmentPayload(BaseModel):
    """Decoded capture data of one in-progress enrollment, keyed by slot name."""
    templates: Dict[str, Optional[bytes]] = Field(default_factory=dict)
    images: Dict[str, Optional[bytes]] = Field(default_factory=dict)

    def template(self, slot: TemplateSlot) -> Optional[bytes]:
        return self.templates.get(slot.value)

    def image(self, slot: ImageSlot) -> Optional[bytes]:
        return self.images.get(slot.value)


class CombinedTemplate(BaseModel):
    identity_id: int
    id_number: str
    name: str
    combined_template: bytes


# ----------------------
# Request bodies
# ----------------------
class SaveEnrollmentRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = None
    id_number: Optional[str] = Field(default=None, alias="idNumber")


class CreateTemplateRequest(BaseModel):
    model_config = ConfigDict(extra="allow")

    template_no: Optional[Union[int, str]] = None
    capture_type: Optional[str] = None


# ----------------------
# Response bodies
# ----------------------
class SaveEnrollmentResponse(BaseModel):
    success: bool = True
    id: int
    message: str


class CombinedTemplateRead(BaseModel):
    user_id: int
    id_number: str
    name: str
    combined_template_base64: str


class CombinedTemplateListResponse(BaseModel):
    success: bool = True
    data: List[CombinedTemplateRead]


class MessageResponse(BaseModel):
    success: bool = True
    message: str


AgentResponse = Dict[str, Any]
