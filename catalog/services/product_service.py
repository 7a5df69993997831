# catalog/services/product_service.py
import hashlib
import logging
import re
import unicodedata
from typing import Any, Sequence

from pydantic import ValidationError as PydanticValidationError
from sqlmodel import Session

from catalog.core.auth import AuthorizationGuard, Principal
from catalog.core.config import get_settings
from catalog.core.errors import (
    CatalogError,
    ConflictError,
    NotFoundError,
    StoreFailure,
    ValidationError,
    store_errors,
)
from catalog.core.storage_utils import AssetStore, remove_prefix, remove_quietly
from catalog.models.product import CatalogItem
from catalog.repositories.product_repo import ProductRepository
from catalog.schemas.product import (
    ProductCreate,
    ProductDetailRead,
    ProductFields,
    ProductFullRead,
    ProductImageRead,
    ProductMutationResult,
    ProductSummaryRead,
    ProductUpdate,
    ProductWithImagesRead,
    SoldOutResult,
)
from catalog.schemas.uploads import (
    DetailPayload,
    ImageUpload,
    validate_details,
    validate_image,
)
from catalog.services.reconciliation import ReconciliationEngine

logger = logging.getLogger(__name__)


def slugify(raw: str) -> str:
    """
    URL-safe slug:
      - lowercase
      - diacritics stripped (NFD, combining marks dropped)
      - non-alphanumeric runs -> single '-'
      - strip leading/trailing '-'

    Titles with no Latin letters or digits at all (e.g. Hangul) would come
    out empty; they get "product-<hash of the title>" so the same title
    always maps to the same slug.
    """
    value = unicodedata.normalize("NFD", raw.strip().lower())
    value = "".join(ch for ch in value if not unicodedata.combining(ch))
    value = re.sub(r"[^a-z0-9]+", "-", value)
    value = value.strip("-")
    if value:
        return value
    digest = hashlib.sha1(raw.strip().encode("utf-8")).hexdigest()[:10]
    return f"product-{digest}"


class ProductService:
    """
    Catalog mutation coordinator for products.

    Every write is a short saga over two stores that cannot commit together:
      - the database (CatalogItem + image/detail rows)
      - Supabase Storage (image objects)

    Forward steps run in a fixed order and each failure triggers a narrow,
    best-effort compensation. Cleanup failures are logged, never raised.
    """

    def __init__(
        self,
        repo: ProductRepository,
        assets: AssetStore,
        guard: AuthorizationGuard,
        engine: ReconciliationEngine | None = None,
        max_image_bytes: int | None = None,
    ):
        self.repo = repo
        self.assets = assets
        self.guard = guard
        self.engine = engine or ReconciliationEngine(repo, assets)
        self.max_image_bytes = max_image_bytes or get_settings().MAX_IMAGE_BYTES

    # ----- Helpers -----

    @staticmethod
    def _parse_fields(schema: type[ProductFields], fields: dict[str, Any]) -> ProductFields:
        try:
            return schema.model_validate(fields)
        except PydanticValidationError as exc:
            raise ValidationError.from_pydantic(exc)

    def _validate_uploads(
        self,
        images: Sequence[ImageUpload],
        details: Sequence[DetailPayload],
    ) -> None:
        for image in images:
            validate_image(image, "images", self.max_image_bytes)
        validate_details(list(details), self.max_image_bytes)

    def _ensure_slug_available(
        self,
        session: Session,
        slug: str,
        item_id: int | None = None,
    ) -> None:
        existing = self.repo.get_by_slug(session, slug)
        if existing is not None and existing.id != item_id:
            raise ConflictError(f"Slug '{slug}' is already in use")

    def _get_owned(self, session: Session, principal: Principal, item_id: int) -> CatalogItem:
        item = self.repo.get_by_id(session, item_id)
        return self.guard.assert_owner(item, principal, entity="Product")

    def _full_read(self, session: Session, item: CatalogItem) -> ProductFullRead:
        images = self.repo.list_images(session, item.id)
        details = self.repo.list_details(session, item.id)
        return ProductFullRead(
            **item.model_dump(),
            images=[ProductImageRead.model_validate(img.model_dump()) for img in images],
            details=[ProductDetailRead.model_validate(d.model_dump()) for d in details],
        )

    # ----- Reads -----

    def get_public_product(self, session: Session, slug: str) -> ProductFullRead:
        item = self.repo.get_by_slug(session, slug)
        if item is None:
            raise NotFoundError("Product not found")
        return self._full_read(session, item)

    def list_public_products(self, session: Session) -> list[ProductWithImagesRead]:
        items = self.repo.list_public(session)
        images = self.repo.list_images_for_items(session, [item.id for item in items])
        return [
            ProductWithImagesRead(
                **item.model_dump(),
                images=[
                    ProductImageRead.model_validate(img.model_dump())
                    for img in images.get(item.id, [])
                ],
            )
            for item in items
        ]

    def list_owner_products(
        self,
        session: Session,
        principal: Principal,
    ) -> list[ProductSummaryRead]:
        """
        Admin list: the operator's own products, newest first, each with the
        URL of its first image.
        """
        principal = self.guard.require_operator(principal)
        items = self.repo.list_for_owner(session, principal.id)
        images = self.repo.list_images_for_items(session, [item.id for item in items])
        summaries: list[ProductSummaryRead] = []
        for item in items:
            gallery = images.get(item.id, [])
            summaries.append(
                ProductSummaryRead(
                    **item.model_dump(),
                    first_image_url=gallery[0].image_url if gallery else None,
                )
            )
        return summaries

    def get_product_for_edit(
        self,
        session: Session,
        principal: Principal,
        item_id: int,
    ) -> ProductFullRead:
        principal = self.guard.require_operator(principal)
        item = self._get_owned(session, principal, item_id)
        return self._full_read(session, item)

    # ----- Create -----

    def create_product(
        self,
        session: Session,
        principal: Principal | None,
        fields: dict[str, Any],
        images: Sequence[ImageUpload],
        details: Sequence[DetailPayload] = (),
    ) -> ProductMutationResult:
        """
        Create a product with its gallery and detail sections.

        Order:
          1. operator check, validation, slug uniqueness (no store calls yet)
          2. insert the product row
          3. reconcile images, then details (create mode: nothing kept)
          4. on failure: drop uploaded objects + the new row, re-raise
        """
        principal = self.guard.require_operator(principal)
        payload = self._parse_fields(ProductCreate, fields)

        if not images:
            raise ValidationError(field_errors={"images": ["At least one image is required"]})
        self._validate_uploads(images, details)

        slug = payload.slug or slugify(payload.title)
        self._ensure_slug_available(session, slug)

        item = CatalogItem(
            **payload.model_dump(exclude={"slug"}),
            slug=slug,
            owner_id=principal.id,
        )
        with store_errors(session, "Creating product"):
            item = self.repo.create(session, item)
        item_id = item.id

        try:
            self.engine.reconcile_images(session, item_id, [], images)
            self.engine.reconcile_details(session, item_id, [], details)
        except Exception as exc:
            self._rollback_create(session, item_id, exc)
            if isinstance(exc, CatalogError):
                raise
            raise StoreFailure(str(exc), caller_correctable=False) from exc

        logger.info("Created product %s (slug=%s) for %s", item_id, slug, principal.id)
        return ProductMutationResult(id=item_id, slug=slug)

    def _rollback_create(self, session: Session, item_id: int, exc: Exception) -> None:
        """
        Undo a half-created product: objects under its folder, then its row.
        """
        logger.warning("Creating product %s failed (%s); rolling back", item_id, exc)
        remove_prefix(self.assets, str(item_id), f"rollback of product {item_id}")
        try:
            session.rollback()
            self.repo.delete_by_id(session, item_id)
        except Exception:
            logger.error(
                "Failed to delete product row %s during rollback",
                item_id,
                exc_info=True,
            )

    # ----- Update -----

    def update_product(
        self,
        session: Session,
        principal: Principal | None,
        item_id: int,
        fields: dict[str, Any],
        images: Sequence[ImageUpload] = (),
        existing_image_ids: Sequence[int] = (),
        details: Sequence[DetailPayload] = (),
        existing_detail_ids: Sequence[int] = (),
    ) -> ProductMutationResult:
        """
        Update a product, its gallery and its detail sections.

        - the gallery must not end up empty (checked before any write)
        - slug uniqueness is only re-checked when the slug changes
        - scalar fields are written last, so a failed reconciliation leaves
          them untouched
        """
        principal = self.guard.require_operator(principal)
        item = self._get_owned(session, principal, item_id)
        payload = self._parse_fields(ProductUpdate, fields)
        self._validate_uploads(images, details)

        current_ids = {img.id for img in self.repo.list_images(session, item_id)}
        kept = [image_id for image_id in dict.fromkeys(existing_image_ids) if image_id in current_ids]
        if not kept and not images:
            raise ValidationError(field_errors={"images": ["At least one image is required"]})

        slug = payload.slug or slugify(payload.title)
        if slug != item.slug:
            self._ensure_slug_available(session, slug, item_id=item_id)

        self.engine.reconcile_images(session, item_id, existing_image_ids, images)
        self.engine.reconcile_details(session, item_id, existing_detail_ids, details)

        item = self.repo.get_by_id(session, item_id)
        if item is None:
            raise NotFoundError("Product not found")
        for key, value in payload.model_dump(exclude={"slug"}).items():
            setattr(item, key, value)
        item.slug = slug
        with store_errors(session, "Updating product"):
            self.repo.update(session, item)

        logger.info("Updated product %s (slug=%s)", item_id, slug)
        return ProductMutationResult(id=item_id, slug=slug)

    # ----- Delete -----

    def delete_product(
        self,
        session: Session,
        principal: Principal | None,
        item_id: int,
    ) -> None:
        """
        Delete a product, its rows (by cascade) and its Storage objects.

        Storage cleanup is best-effort: known image URLs first, then
        everything listed under the product folder, then the folder itself.
        """
        principal = self.guard.require_operator(principal)
        item = self._get_owned(session, principal, item_id)

        known = [img.image_url for img in self.repo.list_images(session, item_id)]
        known += [d.image_url for d in self.repo.list_details(session, item_id) if d.image_url]
        reason = f"delete of product {item_id}"
        remove_quietly(self.assets, [self.assets.path_from_public_url(url) for url in known], reason)
        remove_prefix(self.assets, str(item_id), reason)

        with store_errors(session, "Deleting product", caller_correctable=False):
            self.repo.delete_all_details(session, item_id)
            self.repo.delete_all_images(session, item_id)
            self.repo.delete(session, item)
        logger.info("Deleted product %s", item_id)

    # ----- Sold out -----

    def toggle_sold_out(
        self,
        session: Session,
        principal: Principal | None,
        item_id: int,
    ) -> SoldOutResult:
        principal = self.guard.require_operator(principal)
        self._get_owned(session, principal, item_id)
        with store_errors(session, "Updating sold-out status"):
            sold_out = self.repo.toggle_sold_out(session, item_id)
        return SoldOutResult(sold_out=sold_out)
