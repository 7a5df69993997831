# catalog/models/product.py
import uuid
from datetime import datetime, timezone

from sqlmodel import SQLModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CatalogItem(SQLModel, table=True):
    """
    Product catalog entry.

    - slug is globally unique
    - owner_id is set on creation and never changes
    - images/details live in child tables and are deleted by cascade
    """

    __tablename__ = "catalog_item"
    # ids are never handed out again, also on SQLite
    __table_args__ = {"sqlite_autoincrement": True}

    id: int | None = Field(
        default=None,
        primary_key=True,
    )

    title: str = Field(
        description="Display title of the product",
    )

    price: float = Field(
        ge=0,
        description="Unit price",
    )

    difficulty: int | None = Field(
        default=None,
        ge=1,
        le=5,
        description="Difficulty level 1-5",
    )

    working_time: int = Field(
        gt=0,
        description="Working time in minutes",
    )

    # Dimensions in mm
    width: float | None = Field(default=None, ge=0)
    height: float | None = Field(default=None, ge=0)
    depth: float | None = Field(default=None, ge=0)

    slug: str = Field(
        max_length=255,
        unique=True,
        index=True,
        description="URL-friendly identifier (unique)",
    )

    sold_out: bool = Field(
        default=False,
        description="Whether the product is currently sold out",
    )

    owner_id: uuid.UUID = Field(
        index=True,
        description="Supabase auth user id of the creator",
    )

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class CatalogItemImage(SQLModel, table=True):
    """
    Gallery image of a catalog item.

    For one item, ``order`` values are always 0..n-1.
    """

    __tablename__ = "catalog_item_image"
    __table_args__ = {"sqlite_autoincrement": True}

    id: int | None = Field(
        default=None,
        primary_key=True,
    )

    item_id: int = Field(
        foreign_key="catalog_item.id",
        ondelete="CASCADE",
        index=True,
    )

    image_url: str = Field(
        description="Public URL in Supabase Storage",
    )

    order: int = Field(
        default=0,
        ge=0,
    )

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class CatalogItemDetail(SQLModel, table=True):
    """
    Detail section of a catalog item (title, description, optional image).
    """

    __tablename__ = "catalog_item_detail"
    __table_args__ = {"sqlite_autoincrement": True}

    id: int | None = Field(
        default=None,
        primary_key=True,
    )

    item_id: int = Field(
        foreign_key="catalog_item.id",
        ondelete="CASCADE",
        index=True,
    )

    title: str
    description: str

    image_url: str | None = Field(
        default=None,
        description="Optional public URL in Supabase Storage",
    )

    order: int = Field(
        default=0,
        ge=0,
    )

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
