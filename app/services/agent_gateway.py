"""
HTTP bridge to the fingerprint capture agent.

The agent owns the scanner SDK, capture and matching. This module only
forwards requests to it and turns every transport failure into one of the
agent errors of app.exceptions, so raw httpx exceptions never reach callers.
"""

import asyncio
import base64
import binascii
from typing import Any, Dict, Optional

import httpx

from app.config import Settings
from app.exceptions import AgentError, AgentTimeout, AgentUnreachable, InvalidRequest
from app.logger import get_logger
from app.models.enrollment import TEMPLATE_SLOTS
from app.schemas.enrollment import AgentResponse, EnrollmentPayload

logger = get_logger(__name__)

TEMPLATE_KEYS = ("templates_base64", "templates")
IMAGE_KEYS = ("images_base64", "images")


def build_agent_client(settings: Settings) -> httpx.AsyncClient:
    timeout = httpx.Timeout(settings.agent_timeout, connect=settings.agent_connect_timeout)
    return httpx.AsyncClient(base_url=settings.agent_url, timeout=timeout)


def resolve_template_slot(template_no: Any) -> Optional[str]:
    """Map a slot label or its 1-based canonical position to the slot label."""
    if template_no is None or isinstance(template_no, bool):
        return None

    labels = [slot.value for slot in TEMPLATE_SLOTS]
    text = str(template_no).strip()
    if text in labels:
        return text
    if text.isdigit() and 1 <= int(text) <= len(labels):
        return labels[int(text) - 1]
    return None


def _decode_slots(raw: Any, kind: str) -> Dict[str, Optional[bytes]]:
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise AgentError(f"Capture agent sent malformed {kind} data")

    decoded = {}
    for slot, value in raw.items():
        if value is None:
            decoded[slot] = None
            continue
        try:
            decoded[slot] = base64.b64decode(value, validate=True)
        except (binascii.Error, TypeError, ValueError):
            raise AgentError(f"Capture agent sent invalid base64 for {kind} slot '{slot}'")
    return decoded


def _first_present(body: Dict[str, Any], keys) -> Any:
    for key in keys:
        if body.get(key) is not None:
            return body[key]
    return None


class AgentGateway:
    def __init__(self, client: httpx.AsyncClient, timeout: float = 30.0):
        self.client = client
        self.timeout = timeout

    async def _request(self, method: str, path: str, json: Any = None) -> AgentResponse:
        try:
            # httpx limits each phase separately; this bounds the whole exchange
            response = await asyncio.wait_for(self.client.request(method, path, json=json), self.timeout)
        except asyncio.TimeoutError:
            logger.error(f"Capture agent exceeded {self.timeout:g}s on {method} {path}")
            raise AgentTimeout(self.timeout)
        except (httpx.ConnectError, httpx.ConnectTimeout) as e:
            logger.error(f"Capture agent unreachable on {method} {path}: {e}")
            raise AgentUnreachable()
        except httpx.TimeoutException as e:
            logger.error(f"Capture agent timed out on {method} {path}: {e}")
            raise AgentTimeout(self.timeout)
        except httpx.HTTPError as e:
            logger.error(f"Capture agent transport error on {method} {path}: {e}")
            raise AgentError()

        try:
            body = response.json()
        except ValueError:
            body = None

        if response.is_error:
            message = body.get("message") if isinstance(body, dict) else None
            logger.error(f"Capture agent returned {response.status_code} on {method} {path}: {message}")
            raise AgentError(message or AgentError().message, status=response.status_code)

        if not isinstance(body, dict):
            raise AgentError("Capture agent returned a malformed response", status=response.status_code)
        return body

    # ----------------------
    # Enrollment
    # ----------------------
    async def start_enrollment(self) -> AgentResponse:
        logger.info("Forwarding start_enrollment to capture agent")
        return await self._request("POST", "/api/start_enrollment")

    async def fetch_enrollment_data(self) -> EnrollmentPayload:
        body = await self._request("GET", "/api/get_enrollment_data")
        payload = EnrollmentPayload(
            templates=_decode_slots(_first_present(body, TEMPLATE_KEYS), "template"),
            images=_decode_slots(_first_present(body, IMAGE_KEYS), "image"),
        )
        logger.info(
            f"Received enrollment data: {len(payload.templates)} templates, {len(payload.images)} images"
        )
        return payload

    async def create_template(self, template_no: Any, capture_type: Optional[str]) -> AgentResponse:
        if resolve_template_slot(template_no) is None:
            raise InvalidRequest("Unknown or missing template slot", field="template_no")
        if not capture_type:
            raise InvalidRequest("Capture type is required", field="capture_type")

        return await self._request(
            "POST",
            "/api/create_template",
            json={"template_no": template_no, "capture_type": capture_type},
        )

    # ----------------------
    # Pass-through
    # ----------------------
    async def match_templates(self) -> AgentResponse:
        return await self._request("POST", "/api/match_templates", json={})

    async def identify(self) -> AgentResponse:
        return await self._request("POST", "/api/identify")

    async def get_status(self) -> AgentResponse:
        return await self._request("GET", "/api/status")

    async def set_config(self, options: Any) -> AgentResponse:
        # semantic validation of the options belongs to the agent
        if not isinstance(options, dict):
            raise InvalidRequest("Configuration must be a JSON object", field="options")
        return await self._request("POST", "/api/config", json=options)

    async def init_device(self) -> AgentResponse:
        return await self._request("POST", "/api/init", json={})

    async def close(self) -> None:
        await self.client.aclose()
