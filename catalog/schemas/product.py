# catalog/schemas/product.py
import re
import uuid
from datetime import datetime

from pydantic import ConfigDict, field_validator
from sqlmodel import SQLModel, Field

SLUG_PATTERN = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")


def _blank_to_none(v):
    # Empty form inputs arrive as "" rather than being omitted.
    if isinstance(v, str) and not v.strip():
        return None
    return v


class ProductFields(SQLModel):
    """
    Scalar fields of a product form (create and update).

    - slug is optional: if omitted, generated from `title`.
    - numeric fields arrive as form strings and are coerced here.
    """

    model_config = ConfigDict(extra="forbid")

    title: str
    price: float = Field(gt=0)
    difficulty: int | None = Field(default=None, ge=1, le=5)
    working_time: int = Field(gt=0)
    width: float | None = Field(default=None, ge=0)
    height: float | None = Field(default=None, ge=0)
    depth: float | None = Field(default=None, ge=0)
    slug: str | None = None

    @field_validator("difficulty", "width", "height", "depth", "slug", mode="before")
    @classmethod
    def empty_as_missing(cls, v):
        return _blank_to_none(v)

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("title cannot be empty")
        return v

    @field_validator("slug")
    @classmethod
    def normalize_slug(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip()
        if v and not SLUG_PATTERN.match(v):
            raise ValueError("slug may only contain a-z, 0-9 and single hyphens")
        return v or None


class ProductCreate(ProductFields):
    """Payload for creating a product."""


class ProductUpdate(ProductFields):
    """
    Payload for updating a product.

    Scalar fields are replaced as a whole, like the create form.
    """


class ProductMutationResult(SQLModel):
    id: int
    slug: str


class SoldOutResult(SQLModel):
    sold_out: bool


class ProductImageRead(SQLModel):
    """
    Read model for gallery images.
    """

    id: int
    item_id: int
    image_url: str
    order: int


class ProductDetailRead(SQLModel):
    id: int
    item_id: int
    title: str
    description: str
    image_url: str | None = None
    order: int


class ProductRead(SQLModel):
    """
    Product representation for clients.
    """

    id: int
    title: str
    price: float
    difficulty: int | None = None
    working_time: int
    width: float | None = None
    height: float | None = None
    depth: float | None = None
    slug: str
    sold_out: bool
    owner_id: uuid.UUID
    created_at: datetime
    updated_at: datetime


class ProductWithImagesRead(ProductRead):
    """Public list shape: product + ordered gallery."""

    images: list[ProductImageRead] = []


class ProductFullRead(ProductWithImagesRead):
    """Detail/edit shape: product + ordered gallery + ordered details."""

    details: list[ProductDetailRead] = []


class ProductSummaryRead(ProductRead):
    """Admin list shape: product + its first image."""

    first_image_url: str | None = None
