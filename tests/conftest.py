import os
import uuid
from typing import Any

# Settings are read at import time; give them test values first.
os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")
os.environ.setdefault("SUPABASE_KEY", "test-anon-key")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SUPABASE_JWT_SECRET", "test-jwt-secret")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "test-service-key")
os.environ.setdefault("OPERATOR_EMAILS", '["owner@example.com", "rival@example.com"]')

import pytest
from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from catalog.core.auth import AuthorizationGuard, Principal, get_guard
from catalog.core.errors import StoreFailure
from catalog.core.storage_utils import (
    banner_assets,
    extract_path_from_public_url,
    product_assets,
)
from catalog.database import enable_sqlite_foreign_keys, get_session
from catalog.main import app
from catalog.models import banner as _banner_models  # noqa: F401
from catalog.models import product as _product_models  # noqa: F401
from catalog.repositories.banner_repo import BannerRepository
from catalog.repositories.product_repo import ProductRepository
from catalog.schemas.uploads import ImageUpload
from catalog.services.banner_service import BannerService
from catalog.services.product_service import ProductService
from catalog.services.reconciliation import ReconciliationEngine

OWNER_ID = uuid.UUID("11111111-1111-1111-1111-111111111111")
RIVAL_ID = uuid.UUID("22222222-2222-2222-2222-222222222222")
VISITOR_ID = uuid.UUID("33333333-3333-3333-3333-333333333333")

OPERATOR_EMAILS = ["owner@example.com", "rival@example.com"]


class FakeAssetStore:
    """
    In-memory stand-in for one Supabase Storage bucket.

    - fail_upload_at: 1-based number of the upload call that fails
    - fail_remove / fail_list: make every remove/list call fail
    """

    def __init__(self, bucket: str = "products"):
        self.bucket = bucket
        self.objects: dict[str, bytes] = {}
        self.upload_calls = 0
        self.fail_upload_at: int | None = None
        self.fail_remove = False
        self.fail_list = False
        self.removed: list[str] = []

    def upload(self, path: str, data: bytes, content_type: str) -> None:
        self.upload_calls += 1
        if self.fail_upload_at is not None and self.upload_calls == self.fail_upload_at:
            raise StoreFailure("Image upload failed: injected failure")
        if path in self.objects:
            raise StoreFailure("Image upload failed: The resource already exists")
        self.objects[path] = data

    def get_public_url(self, path: str) -> str:
        return f"https://test.supabase.co/storage/v1/object/public/{self.bucket}/{path}"

    def remove(self, paths: list[str]) -> None:
        if self.fail_remove:
            raise StoreFailure("Image delete failed: injected failure")
        for path in paths:
            self.removed.append(path)
            self.objects.pop(path, None)

    def list(self, prefix: str) -> list[dict[str, Any]]:
        if self.fail_list:
            raise StoreFailure("Image listing failed: injected failure")
        prefix = prefix.strip("/")
        entries: dict[str, dict[str, Any]] = {}
        for path in self.objects:
            if not path.startswith(prefix + "/"):
                continue
            rest = path[len(prefix) + 1 :]
            name, _, tail = rest.partition("/")
            entries[name] = {"name": name, "id": None if tail else f"obj-{name}"}
        return list(entries.values())

    def path_from_public_url(self, url: str) -> str | None:
        return extract_path_from_public_url(url, self.bucket)


def make_image(name: str = "photo.jpg", size: int = 16, content_type: str = "image/jpeg") -> ImageUpload:
    return ImageUpload(filename=name, content_type=content_type, data=b"x" * size)


def product_fields(**overrides: Any) -> dict[str, Any]:
    fields: dict[str, Any] = {
        "title": "Wooden Box",
        "price": "25000",
        "difficulty": "3",
        "working_time": "120",
        "width": "10",
        "height": "5",
        "depth": "",
        "slug": "",
    }
    fields.update(overrides)
    return fields


class Clock:
    """Deterministic epoch-millis clock for object names."""

    def __init__(self, start: int = 1_700_000_000_000):
        self.now = start

    def __call__(self) -> int:
        self.now += 1
        return self.now


# -------- Database --------


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(engine)
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


# -------- Principals / guard --------


@pytest.fixture
def guard() -> AuthorizationGuard:
    return AuthorizationGuard(operator_emails=OPERATOR_EMAILS)


@pytest.fixture
def owner() -> Principal:
    return Principal(id=OWNER_ID, email="owner@example.com")


@pytest.fixture
def rival() -> Principal:
    return Principal(id=RIVAL_ID, email="rival@example.com")


@pytest.fixture
def visitor() -> Principal:
    return Principal(id=VISITOR_ID, email="visitor@example.com")


# -------- Assets / services --------


@pytest.fixture
def assets() -> FakeAssetStore:
    return FakeAssetStore("products")


@pytest.fixture
def banner_store() -> FakeAssetStore:
    return FakeAssetStore("banners")


@pytest.fixture
def product_repo() -> ProductRepository:
    return ProductRepository()


@pytest.fixture
def reconciler(product_repo, assets) -> ReconciliationEngine:
    return ReconciliationEngine(product_repo, assets, clock=Clock())


@pytest.fixture
def product_service(product_repo, assets, guard, reconciler) -> ProductService:
    return ProductService(product_repo, assets, guard, engine=reconciler)


@pytest.fixture
def banner_service(banner_store, guard) -> BannerService:
    return BannerService(BannerRepository(), banner_store, guard, clock=Clock())


# -------- HTTP --------


def make_token(user_id: uuid.UUID, email: str | None = None, **claims: Any) -> str:
    payload: dict[str, Any] = {"sub": str(user_id), "aud": "authenticated", **claims}
    if email is not None:
        payload["email"] = email
    return jwt.encode(payload, os.environ["SUPABASE_JWT_SECRET"], algorithm="HS256")


def auth_header(user_id: uuid.UUID, email: str | None = None) -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token(user_id, email)}"}


@pytest.fixture
def client(engine, assets, banner_store, guard):
    def _session():
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_session] = _session
    app.dependency_overrides[product_assets] = lambda: assets
    app.dependency_overrides[banner_assets] = lambda: banner_store
    app.dependency_overrides[get_guard] = lambda: guard
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def owner_headers() -> dict[str, str]:
    return auth_header(OWNER_ID, "owner@example.com")


@pytest.fixture
def rival_headers() -> dict[str, str]:
    return auth_header(RIVAL_ID, "rival@example.com")


@pytest.fixture
def visitor_headers() -> dict[str, str]:
    return auth_header(VISITOR_ID, "visitor@example.com")
