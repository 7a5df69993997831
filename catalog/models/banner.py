# catalog/models/banner.py
import uuid
from datetime import datetime

from sqlmodel import SQLModel, Field

from catalog.models.product import utcnow


class Banner(SQLModel, table=True):
    """
    Home page banner with one mobile and one desktop image.

    Public reads only see active banners; operators see all of them.
    """

    __tablename__ = "banner"
    __table_args__ = {"sqlite_autoincrement": True}

    id: int | None = Field(
        default=None,
        primary_key=True,
    )

    title: str = Field(
        default="Banner",
        description="Label shown in the admin list",
    )

    image_url_mobile: str
    image_url_desktop: str

    link_url: str | None = Field(
        default=None,
        description="Where a click on the banner navigates to",
    )

    display_order: int = Field(
        index=True,
        description="Ascending sort key on the home page",
    )

    is_active: bool = Field(
        default=True,
        index=True,
    )

    owner_id: uuid.UUID = Field(index=True)

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
