# catalog/schemas/banner.py
import uuid
from datetime import datetime
from urllib.parse import urlparse

from pydantic import ConfigDict, field_validator
from sqlmodel import SQLModel

TRUTHY_FORM_VALUES = {"on", "true", "1", "yes"}


class BannerFields(SQLModel):
    """
    Scalar fields of a banner form.

    - link_url: http(s) URL or empty (stored as null)
    - is_active: checkbox value ("on"/"true"); None means "not submitted"
    """

    model_config = ConfigDict(extra="forbid")

    title: str | None = None
    link_url: str | None = None
    display_order: int | None = None
    is_active: bool | None = None

    @field_validator("title", "link_url", "display_order", mode="before")
    @classmethod
    def empty_as_missing(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("is_active", mode="before")
    @classmethod
    def parse_checkbox(cls, v):
        if v is None or isinstance(v, bool):
            return v
        return str(v).strip().lower() in TRUTHY_FORM_VALUES

    @field_validator("link_url")
    @classmethod
    def validate_link(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip()
        parsed = urlparse(v)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError("Enter a valid URL")
        return v


class BannerCreate(BannerFields):
    """Payload for creating a banner (images travel separately)."""


class BannerUpdate(BannerFields):
    """Payload for updating a banner; omitted fields keep their value."""


class BannerMutationResult(SQLModel):
    id: int


class BannerRead(SQLModel):
    id: int
    title: str
    image_url_mobile: str
    image_url_desktop: str
    link_url: str | None = None
    display_order: int
    is_active: bool
    owner_id: uuid.UUID
    created_at: datetime
    updated_at: datetime
