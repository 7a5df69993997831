# catalog/schemas/uploads.py
from dataclasses import dataclass

from catalog.core.errors import ValidationError


@dataclass(frozen=True)
class ImageUpload:
    """
    An uploaded file, already read into memory by the router.
    """

    filename: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class DetailPayload:
    """
    One detail section submitted with a product form.

    replaces_id points at an existing detail whose image this section
    takes over: a new ``image`` replaces it, no image inherits it.
    """

    title: str
    description: str
    image: ImageUpload | None = None
    replaces_id: int | None = None


def validate_image(upload: ImageUpload, field: str, max_bytes: int) -> None:
    """
    File constraints checked before any store call:
      - at most ``max_bytes``
      - MIME type starting with "image/"
    """
    if upload.size > max_bytes:
        limit_mb = max_bytes / (1024 * 1024)
        raise ValidationError(
            field_errors={
                field: [f"Image exceeds {limit_mb:g}MB: {upload.filename}"]
            }
        )
    if not (upload.content_type or "").startswith("image/"):
        raise ValidationError(
            field_errors={field: [f"Only image files can be uploaded: {upload.filename}"]}
        )


def validate_details(details: list[DetailPayload], max_bytes: int) -> None:
    for idx, detail in enumerate(details):
        errors: dict[str, list[str]] = {}
        if not detail.title.strip():
            errors[f"details[{idx}].title"] = ["Detail title is required"]
        if not detail.description.strip():
            errors[f"details[{idx}].description"] = ["Detail description is required"]
        if errors:
            raise ValidationError(field_errors=errors)
        if detail.image is not None:
            validate_image(detail.image, f"details[{idx}].image", max_bytes)
