# catalog/core/storage_utils.py
import logging
import re
import time
from typing import Any, Iterable, Protocol

from supabase import Client

from catalog.core.config import get_settings
from catalog.core.errors import StoreFailure
from catalog.core.supabase_client import supabase_admin

settings = get_settings()

logger = logging.getLogger(__name__)

LIST_PAGE_SIZE = 1000

_UNSAFE_NAME_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


class AssetStore(Protocol):
    """
    Binary object store holding uploaded images, scoped to one bucket.

    No ordering or transactional guarantees: every call stands alone.
    """

    bucket: str

    def upload(self, path: str, data: bytes, content_type: str) -> None:
        ...

    def get_public_url(self, path: str) -> str:
        ...

    def remove(self, paths: list[str]) -> None:
        ...

    def list(self, prefix: str) -> list[dict[str, Any]]:
        ...

    def path_from_public_url(self, url: str) -> str | None:
        ...


def extract_path_from_public_url(url: str, bucket: str) -> str | None:
    """
    Given a public URL, extract the object path relative to the bucket.

    Example:
        https://<proj>.supabase.co/storage/v1/object/public/products/12/a.png
        -> '12/a.png'
    """
    marker = f"/storage/v1/object/public/{bucket}/"
    idx = url.find(marker)
    if idx == -1:
        return None
    path = url[idx + len(marker) :].split("?", 1)[0]
    return path or None


def build_object_name(original_name: str | None, now_ms: int | None = None) -> str:
    """
    Object name for an uploaded file: "<epoch millis>-<original name>".

    Storage keys must be ASCII, so anything outside [A-Za-z0-9._-] is
    replaced with '-'.
    """
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    safe = _UNSAFE_NAME_CHARS.sub("-", original_name or "").strip("-.")
    return f"{now_ms}-{safe or 'image'}"


class SupabaseAssetStore:
    """
    Supabase Storage adapter for one bucket.

    Every failure of the underlying client is re-raised as StoreFailure with
    the storage message kept verbatim.
    """

    def __init__(self, client: Client, bucket: str):
        self.client = client
        self.bucket = bucket

    def _bucket(self):
        return self.client.storage.from_(self.bucket)

    def upload(self, path: str, data: bytes, content_type: str) -> None:
        try:
            self._bucket().upload(
                path,
                data,
                {"content-type": content_type, "upsert": "false"},
            )
        except Exception as exc:
            raise StoreFailure(f"Image upload failed: {exc}") from exc

    def get_public_url(self, path: str) -> str:
        return self._bucket().get_public_url(path)

    def remove(self, paths: list[str]) -> None:
        if not paths:
            return
        try:
            self._bucket().remove(paths)
        except Exception as exc:
            raise StoreFailure(f"Image delete failed: {exc}") from exc

    def list(self, prefix: str) -> list[dict[str, Any]]:
        try:
            return self._bucket().list(
                prefix,
                {
                    "limit": LIST_PAGE_SIZE,
                    "offset": 0,
                    "sortBy": {"column": "name", "order": "asc"},
                },
            )
        except Exception as exc:
            raise StoreFailure(f"Image listing failed: {exc}") from exc

    def path_from_public_url(self, url: str) -> str | None:
        return extract_path_from_public_url(url, self.bucket)


def remove_quietly(store: AssetStore, paths: Iterable[str], reason: str) -> None:
    """
    Best-effort removal: failures are logged, never raised.

    A missing blob must never block a mutation.
    """
    paths = [p for p in paths if p]
    if not paths:
        return
    try:
        store.remove(paths)
    except Exception:
        logger.warning(
            "Failed to remove %d object(s) from bucket %r during %s: %s",
            len(paths),
            store.bucket,
            reason,
            paths,
            exc_info=True,
        )


def remove_url_quietly(store: AssetStore, url: str | None, reason: str) -> None:
    """Best-effort removal of the object behind a public URL."""
    if not url:
        return
    path = store.path_from_public_url(url)
    if path:
        remove_quietly(store, [path], reason)


def collect_prefix_paths(store: AssetStore, prefix: str) -> list[str]:
    """
    List every object path under ``prefix``.

    Storage listings are one level deep; entries without an id are folders
    and are walked recursively.
    """
    paths: list[str] = []
    pending = [prefix.strip("/")]
    while pending:
        folder = pending.pop()
        for entry in store.list(folder):
            name = entry.get("name")
            if not name:
                continue
            child = f"{folder}/{name}" if folder else name
            if entry.get("id"):
                paths.append(child)
            else:
                pending.append(child)
    return paths


def remove_prefix(store: AssetStore, prefix: str, reason: str) -> None:
    """
    Best-effort removal of everything under ``prefix``.

    Removes the listed objects first, then asks the store to remove the
    prefix itself as a second attempt, since recursive listing is not
    guaranteed.
    """
    try:
        paths = collect_prefix_paths(store, prefix)
    except Exception:
        logger.warning(
            "Failed to list %r in bucket %r during %s",
            prefix,
            store.bucket,
            reason,
            exc_info=True,
        )
        paths = []

    remove_quietly(store, paths, reason)
    remove_quietly(store, [prefix.strip("/")], reason)


def product_assets() -> AssetStore:
    """FastAPI dependency: asset store for product images."""
    return SupabaseAssetStore(supabase_admin(), settings.PRODUCTS_BUCKET)


def banner_assets() -> AssetStore:
    """FastAPI dependency: asset store for banner images."""
    return SupabaseAssetStore(supabase_admin(), settings.BANNERS_BUCKET)
