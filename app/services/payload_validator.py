from typing import List

from app.exceptions import IncompletePayload
from app.models.enrollment import IMAGE_SLOTS, TEMPLATE_SLOTS
from app.schemas.enrollment import EnrollmentPayload


def missing_slots(payload: EnrollmentPayload) -> List[str]:
    """Required template and image slots that are absent or empty in the payload."""
    missing = [slot.value for slot in TEMPLATE_SLOTS if not payload.template(slot)]
    missing += [slot.value for slot in IMAGE_SLOTS if not payload.image(slot)]
    return missing


def validate_payload(payload: EnrollmentPayload) -> None:
    """
    Completeness gate run before any storage work.

    Capture can silently skip a finger (injury, sensor miss), so all ten
    templates and all thirteen images must be present and non-empty.
    Extra keys sent by the agent are ignored.

    Raises:
        IncompletePayload: one or more required slots are missing
    """
    if payload is None:
        raise IncompletePayload([slot.value for slot in TEMPLATE_SLOTS + IMAGE_SLOTS])

    missing = missing_slots(payload)
    if missing:
        raise IncompletePayload(missing)
