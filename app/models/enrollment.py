from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from sqlalchemy import Column, DateTime, ForeignKey, Integer, UniqueConstraint
from sqlmodel import Field, SQLModel


class TemplateSlot(str, Enum):
    """Fingerprint template columns, in canonical aggregation order."""
    right_thumb = "fmr_right_thumb"
    right_index = "fmr_right_index"
    right_middle = "fmr_right_middle"
    right_ring = "fmr_right_ring"
    right_little = "fmr_right_little"
    left_thumb = "fmr_left_thumb"
    left_index = "fmr_left_index"
    left_middle = "fmr_left_middle"
    left_ring = "fmr_left_ring"
    left_little = "fmr_left_little"

    def __str__(self):
        return self.value


class ImageSlot(str, Enum):
    slap_right_four = "img_slap_right_four"
    slap_left_four = "img_slap_left_four"
    slap_two_thumbs = "img_slap_two_thumbs"
    right_thumb = "img_right_thumb"
    right_index = "img_right_index"
    right_middle = "img_right_middle"
    right_ring = "img_right_ring"
    right_little = "img_right_little"
    left_thumb = "img_left_thumb"
    left_index = "img_left_index"
    left_middle = "img_left_middle"
    left_ring = "img_left_ring"
    left_little = "img_left_little"

    def __str__(self):
        return self.value


TEMPLATE_SLOTS = tuple(TemplateSlot)
IMAGE_SLOTS = tuple(ImageSlot)


class Identity(SQLModel, table=True):
    """One enrolled person together with their ten fingerprint templates."""
    __tablename__ = "users_and_templates"
    __table_args__ = (
        UniqueConstraint("id_number", name="uq_users_and_templates_id_number"),
        {"sqlite_autoincrement": True},
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    id_number: str = Field(nullable=False)
    name: str = Field(nullable=False)
    enrollment_date: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )

    fmr_right_thumb: Optional[bytes] = None
    fmr_right_index: Optional[bytes] = None
    fmr_right_middle: Optional[bytes] = None
    fmr_right_ring: Optional[bytes] = None
    fmr_right_little: Optional[bytes] = None
    fmr_left_thumb: Optional[bytes] = None
    fmr_left_index: Optional[bytes] = None
    fmr_left_middle: Optional[bytes] = None
    fmr_left_ring: Optional[bytes] = None
    fmr_left_little: Optional[bytes] = None


class FingerprintImages(SQLModel, table=True):
    """Raw captures of one identity: ten single fingers plus three slaps."""
    __tablename__ = "fingerprint_images"
    __table_args__ = {"sqlite_autoincrement": True}

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(
        sa_column=Column(
            Integer,
            ForeignKey("users_and_templates.id", ondelete="CASCADE"),
            nullable=False,
            unique=True,
        )
    )

    img_slap_right_four: Optional[bytes] = None
    img_slap_left_four: Optional[bytes] = None
    img_slap_two_thumbs: Optional[bytes] = None
    img_right_thumb: Optional[bytes] = None
    img_right_index: Optional[bytes] = None
    img_right_middle: Optional[bytes] = None
    img_right_ring: Optional[bytes] = None
    img_right_little: Optional[bytes] = None
    img_left_thumb: Optional[bytes] = None
    img_left_index: Optional[bytes] = None
    img_left_middle: Optional[bytes] = None
    img_left_ring: Optional[bytes] = None
    img_left_little: Optional[bytes] = None
