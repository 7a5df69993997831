# catalog/services/banner_service.py
import logging
import time
from pathlib import PurePath
from typing import Any, Callable

from pydantic import ValidationError as PydanticValidationError
from sqlmodel import Session

from catalog.core.auth import AuthorizationGuard, Principal
from catalog.core.config import get_settings
from catalog.core.errors import CatalogError, StoreFailure, ValidationError, store_errors
from catalog.core.storage_utils import (
    AssetStore,
    build_object_name,
    remove_quietly,
    remove_url_quietly,
)
from catalog.models.banner import Banner
from catalog.repositories.banner_repo import BannerRepository
from catalog.schemas.banner import (
    BannerCreate,
    BannerFields,
    BannerMutationResult,
    BannerRead,
    BannerUpdate,
)
from catalog.schemas.uploads import ImageUpload, validate_image

logger = logging.getLogger(__name__)

SLOTS = ("mobile", "desktop")


def _epoch_millis() -> int:
    return int(time.time() * 1000)


class BannerService:
    """
    Banner mutations: one row, two image slots (mobile, desktop).

    Uploads happen before the row is written; on any failure the objects
    uploaded by the current request are removed again. Old objects are only
    removed once the row no longer points at them.
    """

    def __init__(
        self,
        repo: BannerRepository,
        assets: AssetStore,
        guard: AuthorizationGuard,
        max_image_bytes: int | None = None,
        clock: Callable[[], int] | None = None,
    ):
        self.repo = repo
        self.assets = assets
        self.guard = guard
        self.max_image_bytes = max_image_bytes or get_settings().MAX_IMAGE_BYTES
        self.clock = clock or _epoch_millis
        self._last_stamp = 0

    # ----- Helpers -----

    @staticmethod
    def _parse_fields(schema: type[BannerFields], fields: dict[str, Any]) -> BannerFields:
        try:
            return schema.model_validate(fields)
        except PydanticValidationError as exc:
            raise ValidationError.from_pydantic(exc)

    def _upload_slot(self, slot: str, upload: ImageUpload, uploaded: list[str]) -> str:
        self._last_stamp = max(self.clock(), self._last_stamp + 1)
        name = build_object_name(upload.filename, self._last_stamp)
        # "<ts>-<slot>-<name>"
        ts, _, rest = name.partition("-")
        path = f"{ts}-{slot}-{rest}"
        self.assets.upload(path, upload.data, upload.content_type)
        uploaded.append(path)
        return self.assets.get_public_url(path)

    def _fail(self, uploaded: list[str], reason: str, exc: Exception) -> CatalogError:
        logger.warning("%s failed (%s); removing %d new object(s)", reason, exc, len(uploaded))
        remove_quietly(self.assets, uploaded, f"{reason} rollback")
        if isinstance(exc, CatalogError):
            return exc
        return StoreFailure(str(exc), caller_correctable=False)

    def _get_owned(self, session: Session, principal: Principal, banner_id: int) -> Banner:
        banner = self.repo.get_by_id(session, banner_id)
        return self.guard.assert_owner(banner, principal, entity="Banner")

    @staticmethod
    def _default_title(image_mobile: ImageUpload) -> str:
        stem = PurePath(image_mobile.filename or "").stem.strip()
        return stem or "Banner"

    # ----- Reads -----

    def list_active_banners(self, session: Session) -> list[BannerRead]:
        return [BannerRead.model_validate(b.model_dump()) for b in self.repo.list_active(session)]

    def list_banners(self, session: Session, principal: Principal | None) -> list[BannerRead]:
        self.guard.require_operator(principal)
        return [BannerRead.model_validate(b.model_dump()) for b in self.repo.list_all(session)]

    def get_banner(
        self,
        session: Session,
        principal: Principal | None,
        banner_id: int,
    ) -> BannerRead:
        principal = self.guard.require_operator(principal)
        banner = self._get_owned(session, principal, banner_id)
        return BannerRead.model_validate(banner.model_dump())

    # ----- Create -----

    def create_banner(
        self,
        session: Session,
        principal: Principal | None,
        fields: dict[str, Any],
        image_mobile: ImageUpload | None,
        image_desktop: ImageUpload | None,
    ) -> BannerMutationResult:
        principal = self.guard.require_operator(principal)
        payload = self._parse_fields(BannerCreate, fields)

        missing = {}
        if image_mobile is None:
            missing["image_mobile"] = ["Mobile image is required"]
        if image_desktop is None:
            missing["image_desktop"] = ["Desktop image is required"]
        if missing:
            raise ValidationError(field_errors=missing)
        validate_image(image_mobile, "image_mobile", self.max_image_bytes)
        validate_image(image_desktop, "image_desktop", self.max_image_bytes)

        display_order = payload.display_order
        if display_order is None:
            display_order = self.repo.max_display_order(session) + 1

        uploaded: list[str] = []
        try:
            mobile_url = self._upload_slot("mobile", image_mobile, uploaded)
            desktop_url = self._upload_slot("desktop", image_desktop, uploaded)
            banner = Banner(
                title=payload.title or self._default_title(image_mobile),
                image_url_mobile=mobile_url,
                image_url_desktop=desktop_url,
                link_url=payload.link_url,
                display_order=display_order,
                is_active=True if payload.is_active is None else payload.is_active,
                owner_id=principal.id,
            )
            with store_errors(session, "Creating banner"):
                banner = self.repo.create(session, banner)
        except Exception as exc:
            raise self._fail(uploaded, "banner create", exc) from exc

        logger.info("Created banner %s for %s", banner.id, principal.id)
        return BannerMutationResult(id=banner.id)

    # ----- Update -----

    def update_banner(
        self,
        session: Session,
        principal: Principal | None,
        banner_id: int,
        fields: dict[str, Any],
        image_mobile: ImageUpload | None = None,
        image_desktop: ImageUpload | None = None,
    ) -> BannerMutationResult:
        """
        Per slot: a new file is uploaded and replaces the old one, no file
        keeps the current image. Replaced objects are removed only after
        the row update has been committed.
        """
        principal = self.guard.require_operator(principal)
        banner = self._get_owned(session, principal, banner_id)
        payload = self._parse_fields(BannerUpdate, fields)

        replacements = {"mobile": image_mobile, "desktop": image_desktop}
        for slot, upload in replacements.items():
            if upload is not None:
                validate_image(upload, f"image_{slot}", self.max_image_bytes)

        previous = {
            "mobile": banner.image_url_mobile,
            "desktop": banner.image_url_desktop,
        }
        replaced: list[str] = []
        uploaded: list[str] = []
        try:
            for slot in SLOTS:
                upload = replacements[slot]
                if upload is None:
                    continue
                url = self._upload_slot(slot, upload, uploaded)
                setattr(banner, f"image_url_{slot}", url)
                replaced.append(previous[slot])

            if payload.title is not None:
                banner.title = payload.title
            if "link_url" in payload.model_fields_set:
                banner.link_url = payload.link_url
            if payload.display_order is not None:
                banner.display_order = payload.display_order
            if payload.is_active is not None:
                banner.is_active = payload.is_active

            with store_errors(session, "Updating banner"):
                self.repo.update(session, banner)
        except Exception as exc:
            session.rollback()
            raise self._fail(uploaded, f"banner {banner_id} update", exc) from exc

        for url in replaced:
            remove_url_quietly(self.assets, url, f"banner {banner_id} update")

        logger.info("Updated banner %s", banner_id)
        return BannerMutationResult(id=banner_id)

    # ----- Delete -----

    def delete_banner(
        self,
        session: Session,
        principal: Principal | None,
        banner_id: int,
    ) -> None:
        principal = self.guard.require_operator(principal)
        banner = self._get_owned(session, principal, banner_id)

        reason = f"delete of banner {banner_id}"
        remove_url_quietly(self.assets, banner.image_url_mobile, reason)
        remove_url_quietly(self.assets, banner.image_url_desktop, reason)

        with store_errors(session, "Deleting banner", caller_correctable=False):
            self.repo.delete(session, banner)
        logger.info("Deleted banner %s", banner_id)
