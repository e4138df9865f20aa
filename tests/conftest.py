import base64
import json

import httpx
import pytest

from app.database import Database
from app.models.enrollment import IMAGE_SLOTS, TEMPLATE_SLOTS
from app.schemas.enrollment import EnrollmentPayload
from app.services.agent_gateway import AgentGateway


def template_bytes(index: int) -> bytes:
    # distinct content and length per slot so concatenation order is observable
    return bytes([index + 1]) * (index + 1)


def image_bytes(index: int) -> bytes:
    return b"IMG" + bytes([index]) * 8


def make_payload(skip_templates=(), skip_images=()) -> EnrollmentPayload:
    return EnrollmentPayload(
        templates={
            slot.value: template_bytes(i)
            for i, slot in enumerate(TEMPLATE_SLOTS) if slot.value not in skip_templates
        },
        images={
            slot.value: image_bytes(i)
            for i, slot in enumerate(IMAGE_SLOTS) if slot.value not in skip_images
        },
    )


def agent_enrollment_body(payload: EnrollmentPayload) -> dict:
    """Encode a payload the way the capture agent sends it."""
    return {
        "templates_base64": {k: base64.b64encode(v).decode() for k, v in payload.templates.items()},
        "images_base64": {k: base64.b64encode(v).decode() for k, v in payload.images.items()},
    }


class FakeAgent:
    """Stand-in capture agent behind httpx.MockTransport."""

    def __init__(self):
        self.requests = []
        self.responses = {
            ("POST", "/api/start_enrollment"): (200, {"success": True, "message": "Enrollment started"}),
            ("GET", "/api/get_enrollment_data"): (200, agent_enrollment_body(make_payload())),
            ("POST", "/api/create_template"): (200, {"success": True, "message": "Template captured"}),
            ("POST", "/api/match_templates"): (200, {"success": True, "score": 87}),
            ("POST", "/api/identify"): (200, {"success": True, "message": "Identification started"}),
            ("GET", "/api/status"): (200, {"success": True, "device_connected": True}),
            ("POST", "/api/config"): (200, {"success": True, "message": "Configuration updated"}),
            ("POST", "/api/init"): (200, {"success": True, "message": "Device initialized"}),
        }
        self.error = None

    def respond(self, method: str, path: str, status: int, body) -> None:
        self.responses[(method, path)] = (status, body)

    def handler(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content) if request.content else None
        self.requests.append((request.method, request.url.path, body))
        if self.error is not None:
            raise self.error
        status, content = self.responses.get((request.method, request.url.path), (404, {"message": "no route"}))
        return httpx.Response(status, json=content)

    def gateway(self, timeout: float = 30.0) -> AgentGateway:
        client = httpx.AsyncClient(transport=httpx.MockTransport(self.handler), base_url="http://agent")
        return AgentGateway(client, timeout=timeout)


@pytest.fixture
def fake_agent():
    return FakeAgent()


@pytest.fixture
def database_url(tmp_path):
    return f"sqlite+aiosqlite:///{tmp_path / 'enrollment.sqlite'}"


@pytest.fixture
async def database(database_url):
    db = Database(database_url)
    await db.create_all()
    yield db
    await db.dispose()


@pytest.fixture
async def session(database):
    async with database.session_factory() as session:
        yield session
