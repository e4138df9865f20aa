"""
Dependencies for the API routers.
Process-wide resources are created in main.py's lifespan and kept on app.state.
"""

from fastapi import Depends, Request
from fastapi.requests import HTTPConnection
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.services.agent_gateway import AgentGateway
from app.services.enrollment_service import EnrollmentService
from app.services.event_relay import EventRelay


def get_gateway(request: Request) -> AgentGateway:
    return request.app.state.agent_gateway


def get_event_relay(connection: HTTPConnection) -> EventRelay:
    return connection.app.state.event_relay


def get_enrollment_service(
    db: AsyncSession = Depends(get_db),
    gateway: AgentGateway = Depends(get_gateway)
) -> EnrollmentService:
    return EnrollmentService(db, gateway)
