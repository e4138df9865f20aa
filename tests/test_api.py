import base64

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import Settings
from app.models.enrollment import TemplateSlot
from app.routers.dependencies import get_gateway
from conftest import agent_enrollment_body, make_payload, template_bytes
from main import create_app, create_asgi_app


@pytest.fixture
def client(database_url, fake_agent):
    settings = Settings(database_url=database_url, event_relay_enabled=False)
    app = create_app(settings)
    gateway = fake_agent.gateway()
    app.dependency_overrides[get_gateway] = lambda: gateway

    with TestClient(app) as client:
        yield client


def enroll(client, name="Alice", id_number="ID-001"):
    return client.post("/api/save_enrollment", json={"name": name, "idNumber": id_number})


def test_enroll_then_list_combined_templates(client):
    response = enroll(client)

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["id"] == 1
    assert "Alice" in body["message"]

    response = client.get("/api/get-all-templates")

    assert response.status_code == 200
    data = response.json()["data"]
    assert len(data) == 1
    assert data[0]["user_id"] == 1
    assert data[0]["id_number"] == "ID-001"
    assert data[0]["name"] == "Alice"
    combined = base64.b64decode(data[0]["combined_template_base64"])
    assert combined == b"".join(template_bytes(i) for i in range(10))


def test_duplicate_id_number_is_conflict(client):
    assert enroll(client).status_code == 200

    response = enroll(client, name="Mallory")

    assert response.status_code == 409
    assert response.json()["success"] is False
    assert response.json()["code"] == "DUPLICATE_IDENTITY"
    assert len(client.get("/api/get-all-templates").json()["data"]) == 1


def test_incomplete_agent_data_is_rejected_without_writes(client, fake_agent):
    payload = make_payload(skip_templates={TemplateSlot.left_little.value})
    fake_agent.respond("GET", "/api/get_enrollment_data", 200, agent_enrollment_body(payload))

    response = enroll(client)

    assert response.status_code == 400
    assert response.json()["code"] == "INCOMPLETE_PAYLOAD"
    assert response.json()["details"]["missing"] == ["fmr_left_little"]
    assert client.get("/api/get-all-templates").json() == {"success": True, "data": []}


@pytest.mark.parametrize("body", [
    {"name": "Alice"},
    {"idNumber": "ID-001"},
    {"name": "  ", "idNumber": "ID-001"},
])
def test_save_enrollment_requires_name_and_id_number(client, fake_agent, body):
    response = client.post("/api/save_enrollment", json=body)

    assert response.status_code == 400
    assert response.json()["success"] is False
    assert fake_agent.requests == []


def test_agent_down_is_service_unavailable(client, fake_agent):
    fake_agent.error = httpx.ConnectError("Connection refused")

    response = client.post("/api/start_enrollment")

    assert response.status_code == 503
    assert response.json()["success"] is False
    assert response.json()["code"] == "AGENT_UNREACHABLE"


def test_agent_error_during_save_is_server_error(client, fake_agent):
    fake_agent.respond("GET", "/api/get_enrollment_data", 500, {"message": "No enrollment in progress"})

    response = enroll(client)

    assert response.status_code == 500
    assert response.json()["message"] == "No enrollment in progress"


def test_start_enrollment_passes_agent_body_through(client):
    response = client.post("/api/start_enrollment")

    assert response.status_code == 200
    assert response.json() == {"success": True, "message": "Enrollment started"}


def test_create_template_validation(client, fake_agent):
    assert client.post("/api/create_template", json={"capture_type": "single"}).status_code == 400
    assert client.post("/api/create_template").status_code == 400
    assert fake_agent.requests == []

    response = client.post("/api/create_template", json={"template_no": 2, "capture_type": "single"})

    assert response.status_code == 200
    assert fake_agent.requests[-1][2] == {"template_no": 2, "capture_type": "single"}


def test_device_pass_through_endpoints(client):
    assert client.get("/api/device-status").json() == {"success": True, "device_connected": True}
    assert client.post("/api/init-device").json()["message"] == "Device initialized"
    assert client.post("/api/match_templates").json()["score"] == 87
    assert client.post("/api/identify").json()["success"] is True


def test_config_requires_json_object(client, fake_agent):
    assert client.post("/api/config", json=["a"]).status_code == 400

    response = client.post("/api/config", json={"quality_threshold": 50})

    assert response.status_code == 200
    assert fake_agent.requests[-1] == ("POST", "/api/config", {"quality_threshold": 50})


def test_delete_identity(client):
    identity_id = enroll(client).json()["id"]

    response = client.delete(f"/api/identities/{identity_id}")

    assert response.status_code == 200
    assert response.json()["success"] is True
    assert client.get("/api/get-all-templates").json()["data"] == []
    assert client.delete(f"/api/identities/{identity_id}").status_code == 404


def test_unknown_endpoint(client):
    response = client.get("/api/does-not-exist")

    assert response.status_code == 404
    assert response.json() == {"success": False, "message": "Endpoint not found"}


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_websocket_observer_receives_relayed_events(client):
    relay = client.app.state.event_relay
    # the Socket.IO broadcaster holds one subscription of its own
    baseline = relay.observer_count

    with client.websocket_connect("/ws/events") as websocket:
        assert relay.observer_count == baseline + 1
        client.portal.call(relay.publish, "enrollment_step", {"step": 1, "finger": "right_thumb"})
        client.portal.call(relay.publish, "capture_result", {"success": True})

        assert websocket.receive_json() == {
            "event": "enrollment_step",
            "data": {"step": 1, "finger": "right_thumb"},
        }
        assert websocket.receive_json() == {"event": "capture_result", "data": {"success": True}}


def test_storage_failure_is_server_error(client, monkeypatch):
    async def failing_execute(*args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("disk I/O error"))

    monkeypatch.setattr(AsyncSession, "execute", failing_execute)

    response = client.get("/api/get-all-templates")

    assert response.status_code == 500
    assert response.json()["success"] is False
    assert response.json()["code"] == "STORAGE_UNAVAILABLE"


def test_socketio_observers_share_the_asgi_app(database_url, fake_agent):
    app = create_app(Settings(database_url=database_url, event_relay_enabled=False))
    app.dependency_overrides[get_gateway] = lambda: fake_agent.gateway()

    with TestClient(create_asgi_app(app)) as client:
        handshake = client.get("/socket.io/", params={"EIO": "4", "transport": "polling"})
        assert handshake.status_code == 200
        assert handshake.text.startswith("0")
        assert "sid" in handshake.text

        assert client.get("/health").json()["status"] == "healthy"
        assert app.state.event_relay.observer_count == 1
