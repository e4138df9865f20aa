from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, status

from app.routers.dependencies import get_gateway
from app.schemas.enrollment import AgentResponse, CreateTemplateRequest
from app.services.agent_gateway import AgentGateway

router = APIRouter()


@router.post("/init-device", status_code=status.HTTP_200_OK)
async def init_device(gateway: AgentGateway = Depends(get_gateway)) -> AgentResponse:
    return await gateway.init_device()


@router.post("/create_template", status_code=status.HTTP_200_OK)
async def create_template(
    body: Optional[CreateTemplateRequest] = None,
    gateway: AgentGateway = Depends(get_gateway)
) -> AgentResponse:
    """Ask the agent to (re)capture a single template slot"""
    body = body or CreateTemplateRequest()
    return await gateway.create_template(body.template_no, body.capture_type)


@router.post("/match_templates", status_code=status.HTTP_200_OK)
async def match_templates(gateway: AgentGateway = Depends(get_gateway)) -> AgentResponse:
    return await gateway.match_templates()


@router.get("/device-status", status_code=status.HTTP_200_OK)
async def device_status(gateway: AgentGateway = Depends(get_gateway)) -> AgentResponse:
    return await gateway.get_status()


@router.post("/config", status_code=status.HTTP_200_OK)
async def set_config(
    options: Any = Body(default=None),
    gateway: AgentGateway = Depends(get_gateway)
) -> AgentResponse:
    return await gateway.set_config(options)


@router.post("/identify", status_code=status.HTTP_200_OK)
async def identify(gateway: AgentGateway = Depends(get_gateway)) -> AgentResponse:
    return await gateway.identify()
