# catalog/routers/forms.py
"""
Multipart form parsing for the admin product/banner forms.

Files are read into memory here so services only ever see ImageUpload.
"""
import re
from dataclasses import dataclass, field
from typing import Any

from fastapi import Depends, Request
from starlette.datastructures import FormData, UploadFile

from catalog.core.auth import Principal, require_operator
from catalog.core.errors import ValidationError
from catalog.schemas.uploads import DetailPayload, ImageUpload

PRODUCT_FIELDS = (
    "title",
    "price",
    "difficulty",
    "working_time",
    "width",
    "height",
    "depth",
    "slug",
)
BANNER_FIELDS = ("title", "link_url", "display_order", "is_active")

_DETAIL_KEY = re.compile(r"^details\[(\d+)\]\.(title|description|image|detail_id)$")


@dataclass
class ProductForm:
    fields: dict[str, Any]
    images: list[ImageUpload] = field(default_factory=list)
    existing_image_ids: list[int] = field(default_factory=list)
    details: list[DetailPayload] = field(default_factory=list)
    existing_detail_ids: list[int] = field(default_factory=list)


@dataclass
class BannerForm:
    fields: dict[str, Any]
    image_mobile: ImageUpload | None = None
    image_desktop: ImageUpload | None = None


async def read_upload(value: Any) -> ImageUpload | None:
    """
    Read one file part. Empty parts (no file chosen) count as absent.
    """
    if not isinstance(value, UploadFile) or not value.filename:
        return None
    data = await value.read()
    if not data:
        return None
    return ImageUpload(
        filename=value.filename,
        content_type=value.content_type or "",
        data=data,
    )


def scalar_fields(form: FormData, names: tuple[str, ...]) -> dict[str, Any]:
    """Plain text values for ``names``; fields not submitted are left out."""
    fields: dict[str, Any] = {}
    for name in names:
        value = form.get(name)
        if value is not None and not isinstance(value, UploadFile):
            fields[name] = value
    return fields


def int_list(form: FormData, name: str) -> list[int]:
    """Repeatable integer field, e.g. existing_image_ids=3&existing_image_ids=1."""
    values: list[int] = []
    for raw in form.getlist(name):
        if isinstance(raw, UploadFile) or not raw.strip():
            continue
        try:
            values.append(int(raw))
        except ValueError:
            raise ValidationError(field_errors={name: [f"Invalid id: {raw}"]})
    return values


async def detail_payloads(form: FormData) -> list[DetailPayload]:
    """
    Collect ``details[i].*`` parts into payloads, ordered by index.

    A section without a title or description is treated as not filled in
    and skipped.
    """
    grouped: dict[int, dict[str, Any]] = {}
    for key, value in form.multi_items():
        match = _DETAIL_KEY.match(key)
        if match is None:
            continue
        grouped.setdefault(int(match.group(1)), {})[match.group(2)] = value

    payloads: list[DetailPayload] = []
    for idx in sorted(grouped):
        raw = grouped[idx]
        title = raw.get("title")
        description = raw.get("description")
        if not isinstance(title, str) or not isinstance(description, str):
            continue
        if not title.strip() or not description.strip():
            continue

        replaces_id = None
        detail_id = raw.get("detail_id")
        if isinstance(detail_id, str) and detail_id.strip():
            try:
                replaces_id = int(detail_id)
            except ValueError:
                raise ValidationError(
                    field_errors={f"details[{idx}].detail_id": [f"Invalid id: {detail_id}"]}
                )

        payloads.append(
            DetailPayload(
                title=title.strip(),
                description=description.strip(),
                image=await read_upload(raw.get("image")),
                replaces_id=replaces_id,
            )
        )
    return payloads


# -------- FastAPI dependencies --------


async def product_form(
    request: Request,
    _operator: Principal = Depends(require_operator),
) -> ProductForm:
    """
    Parse the product form. The caller must already be an operator, so
    anonymous uploads are rejected before the body is read.
    """
    form = await request.form()
    images = []
    for part in form.getlist("images"):
        upload = await read_upload(part)
        if upload is not None:
            images.append(upload)

    return ProductForm(
        fields=scalar_fields(form, PRODUCT_FIELDS),
        images=images,
        existing_image_ids=int_list(form, "existing_image_ids"),
        details=await detail_payloads(form),
        existing_detail_ids=int_list(form, "existing_detail_ids"),
    )


async def banner_form(
    request: Request,
    _operator: Principal = Depends(require_operator),
) -> BannerForm:
    form = await request.form()
    return BannerForm(
        fields=scalar_fields(form, BANNER_FIELDS),
        image_mobile=await read_upload(form.get("image_mobile")),
        image_desktop=await read_upload(form.get("image_desktop")),
    )
