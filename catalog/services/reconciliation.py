# catalog/services/reconciliation.py
"""
Reconciliation of a product's ordered child collections (images, details).

The caller describes the target state as:
  - kept_ids: existing child ids to retain, in their final order
  - new payloads: files (and detail text) appended after the kept children

The engine diffs that against what is stored and issues the minimal store
operations to converge:

  1. load current children by order
  2. split into to_keep (ordered by the caller) and to_delete
  3. remove to_delete assets (best-effort), then their rows
  4. renumber kept rows in place (no re-insert, no re-upload)
  5. upload + insert each new payload after the kept rows
  6. if step 5 fails, remove every object uploaded by *this call* (and the
     rows inserted with them) and raise

Steps 3 and 4 are not undone when step 5 fails: once the database has
confirmed them they stand, and resubmitting the same kept ids is a no-op.
"""
import logging
import time
from typing import Callable, Sequence, TypeVar

from sqlmodel import Session

from catalog.core.errors import CatalogError, StoreFailure, store_errors
from catalog.core.storage_utils import (
    AssetStore,
    build_object_name,
    remove_quietly,
)
from catalog.models.product import CatalogItemDetail, CatalogItemImage
from catalog.repositories.product_repo import ProductRepository
from catalog.schemas.uploads import DetailPayload, ImageUpload

logger = logging.getLogger(__name__)

ChildT = TypeVar("ChildT", CatalogItemImage, CatalogItemDetail)


def _epoch_millis() -> int:
    return int(time.time() * 1000)


def partition_children(
    current: Sequence[ChildT],
    kept_ids: Sequence[int],
) -> tuple[list[ChildT], list[ChildT]]:
    """
    Split current children into (to_keep, to_delete).

    to_keep follows the order of ``kept_ids``; ids that do not belong to the
    parent and repeated ids are ignored. to_delete keeps the stored order.
    """
    by_id = {child.id: child for child in current}
    to_keep: list[ChildT] = []
    seen: set[int] = set()
    for child_id in kept_ids:
        if child_id in by_id and child_id not in seen:
            seen.add(child_id)
            to_keep.append(by_id[child_id])
    to_delete = [child for child in current if child.id not in seen]
    return to_keep, to_delete


class ReconciliationEngine:
    """
    Brings a parent's image/detail collection to a caller-specified state.

    Each public call is independent: its compensation only ever touches the
    objects that call uploaded.
    """

    def __init__(
        self,
        repo: ProductRepository,
        assets: AssetStore,
        clock: Callable[[], int] | None = None,
    ):
        self.repo = repo
        self.assets = assets
        self.clock = clock or _epoch_millis
        self._last_stamp = 0

    # ----- Helpers -----

    def _stamp(self) -> int:
        # Strictly increasing, so same-named files in one request get distinct paths.
        self._last_stamp = max(self.clock(), self._last_stamp + 1)
        return self._last_stamp

    def _asset_path(self, url: str | None) -> str | None:
        if not url:
            return None
        return self.assets.path_from_public_url(url)

    def _upload(self, path: str, upload: ImageUpload, uploaded: list[str]) -> str:
        """Upload one file, remember its path, return its public URL."""
        self.assets.upload(path, upload.data, upload.content_type)
        uploaded.append(path)
        return self.assets.get_public_url(path)

    def _compensate(
        self,
        session: Session,
        uploaded: list[str],
        inserted: list[int],
        delete_rows: Callable[[Session, list[int]], None],
        reason: str,
        exc: Exception,
    ) -> None:
        """
        Undo step 5 of a failed call: its objects, and the rows that would
        otherwise point at them. Kept rows and their order are left as is.
        """
        logger.warning(
            "%s failed (%s); removing %d object(s) and %d row(s) added in this step",
            reason,
            exc,
            len(uploaded),
            len(inserted),
        )
        remove_quietly(self.assets, uploaded, f"{reason} rollback")
        if not inserted:
            return
        try:
            session.rollback()
            delete_rows(session, inserted)
        except Exception:
            logger.error("Failed to delete rows %s during %s rollback", inserted, reason, exc_info=True)

    @staticmethod
    def _as_store_failure(exc: Exception) -> CatalogError:
        if isinstance(exc, CatalogError):
            return exc
        return StoreFailure(str(exc), caller_correctable=False)

    def _renumber(
        self,
        session: Session,
        to_keep: Sequence[ChildT],
        set_order: Callable[[Session, int, int], None],
        action: str,
    ) -> None:
        for position, child in enumerate(to_keep):
            if child.order == position:
                continue
            with store_errors(session, action):
                set_order(session, child.id, position)

    # ----- Images -----

    def reconcile_images(
        self,
        session: Session,
        item_id: int,
        kept_ids: Sequence[int],
        uploads: Sequence[ImageUpload],
    ) -> list[CatalogItemImage]:
        """
        Converge the gallery of ``item_id`` to kept_ids + uploads.

        Returns the final images ordered 0..n-1.
        """
        current = self.repo.list_images(session, item_id)
        to_keep, to_delete = partition_children(current, kept_ids)

        # 3. delete
        remove_quietly(
            self.assets,
            [self._asset_path(img.image_url) for img in to_delete],
            f"image cleanup for product {item_id}",
        )
        if to_delete:
            with store_errors(session, "Deleting images"):
                if not to_keep and uploads:
                    # Nothing kept: clear the whole gallery in one call.
                    self.repo.delete_all_images(session, item_id)
                else:
                    self.repo.delete_images(session, [img.id for img in to_delete])

        # 4. reorder
        self._renumber(session, to_keep, self.repo.set_image_order, "Reordering images")

        # 5. upload + insert
        uploaded: list[str] = []
        inserted: list[int] = []
        try:
            for offset, upload in enumerate(uploads):
                order = len(to_keep) + offset
                path = f"{item_id}/{build_object_name(upload.filename, self._stamp())}"
                url = self._upload(path, upload, uploaded)
                with store_errors(session, "Saving image"):
                    image = self.repo.create_image(
                        session,
                        CatalogItemImage(item_id=item_id, image_url=url, order=order),
                    )
                inserted.append(image.id)
        except Exception as exc:
            # 6. compensate
            self._compensate(
                session,
                uploaded,
                inserted,
                self.repo.delete_images,
                f"image upload for product {item_id}",
                exc,
            )
            raise self._as_store_failure(exc) from exc

        return self.repo.list_images(session, item_id)

    # ----- Details -----

    def reconcile_details(
        self,
        session: Session,
        item_id: int,
        kept_ids: Sequence[int],
        payloads: Sequence[DetailPayload],
    ) -> list[CatalogItemDetail]:
        """
        Converge the detail sections of ``item_id`` to kept_ids + payloads.

        A payload with ``replaces_id`` takes over that detail's image: a new
        file replaces the old object, no file inherits the old URL (and the
        old object is then not deleted with its row).

        Detail objects go under ``details/{i}/`` where ``i`` is the payload's
        index among ``payloads``, not its final order.
        """
        current = self.repo.list_details(session, item_id)
        by_id = {detail.id: detail for detail in current}
        to_keep, to_delete = partition_children(current, kept_ids)
        kept = {detail.id for detail in to_keep}

        # Which existing detail (if any) each payload takes its image from.
        # A kept detail still owns its image, and each image is claimed once.
        # URLs are read now: the target rows are gone after step 3.
        inherited_urls: list[str | None] = []
        inherited: set[int] = set()
        claimed: set[int] = set()
        for payload in payloads:
            target = by_id.get(payload.replaces_id) if payload.replaces_id else None
            if target is None or target.id in kept or target.id in claimed:
                inherited_urls.append(None)
                continue
            claimed.add(target.id)
            if payload.image is None:
                inherited.add(target.id)
                inherited_urls.append(target.image_url)
            else:
                inherited_urls.append(None)

        # 3. delete
        remove_quietly(
            self.assets,
            [
                self._asset_path(detail.image_url)
                for detail in to_delete
                if detail.id not in inherited
            ],
            f"detail cleanup for product {item_id}",
        )
        if to_delete:
            with store_errors(session, "Deleting details"):
                self.repo.delete_details(session, [d.id for d in to_delete])

        # 4. reorder
        self._renumber(session, to_keep, self.repo.set_detail_order, "Reordering details")

        # 5. upload + insert
        uploaded: list[str] = []
        inserted: list[int] = []
        try:
            for offset, (payload, image_url) in enumerate(zip(payloads, inherited_urls)):
                order = len(to_keep) + offset
                if payload.image is not None:
                    name = build_object_name(payload.image.filename, self._stamp())
                    path = f"{item_id}/details/{offset}/{name}"
                    image_url = self._upload(path, payload.image, uploaded)

                with store_errors(session, "Saving detail"):
                    detail = self.repo.create_detail(
                        session,
                        CatalogItemDetail(
                            item_id=item_id,
                            title=payload.title,
                            description=payload.description,
                            image_url=image_url,
                            order=order,
                        ),
                    )
                inserted.append(detail.id)
        except Exception as exc:
            self._compensate(
                session,
                uploaded,
                inserted,
                self.repo.delete_details,
                f"detail upload for product {item_id}",
                exc,
            )
            raise self._as_store_failure(exc) from exc

        return self.repo.list_details(session, item_id)
