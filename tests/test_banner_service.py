import pytest

from catalog.core.config import get_settings
from catalog.core.errors import (
    AuthenticationError,
    AuthorizationError,
    NotFoundError,
    StoreFailure,
    ValidationError,
)
from catalog.repositories.banner_repo import BannerRepository
from catalog.services.banner_service import BannerService

from conftest import make_image


def _create(service, session, principal, **fields):
    return service.create_banner(
        session,
        principal,
        fields,
        make_image("summer-mobile.jpg"),
        make_image("summer-desktop.jpg"),
    )


def test_create_banner_defaults(session, banner_service, banner_store, owner):
    result = _create(banner_service, session, owner)

    banner = BannerRepository().get_by_id(session, result.id)
    assert banner.title == "summer-mobile"
    assert banner.display_order == 1
    assert banner.is_active is True
    assert banner.link_url is None
    assert banner.owner_id == owner.id

    paths = sorted(banner_store.objects)
    assert len(paths) == 2
    assert any("-mobile-summer-mobile.jpg" in p for p in paths)
    assert any("-desktop-summer-desktop.jpg" in p for p in paths)
    assert banner_store.path_from_public_url(banner.image_url_mobile) in banner_store.objects


def test_display_order_continues_after_the_highest(session, banner_service, owner):
    _create(banner_service, session, owner, display_order="7")

    result = _create(banner_service, session, owner)

    assert BannerRepository().get_by_id(session, result.id).display_order == 8


@pytest.mark.parametrize(
    ("value", "expected"),
    [("on", True), ("true", True), ("1", True), ("off", False), ("false", False)],
)
def test_is_active_checkbox_values(session, banner_service, owner, value, expected):
    result = _create(banner_service, session, owner, is_active=value)

    assert BannerRepository().get_by_id(session, result.id).is_active is expected


def test_create_requires_both_images(session, banner_service, banner_store, owner):
    with pytest.raises(ValidationError) as exc_info:
        banner_service.create_banner(session, owner, {}, make_image("m.jpg"), None)

    assert "image_desktop" in exc_info.value.field_errors
    assert banner_store.upload_calls == 0


def test_create_rejects_invalid_link(session, banner_service, banner_store, owner):
    with pytest.raises(ValidationError) as exc_info:
        _create(banner_service, session, owner, link_url="javascript:alert(1)")

    assert "link_url" in exc_info.value.field_errors
    assert banner_store.upload_calls == 0


def test_create_requires_operator(session, banner_service, visitor):
    with pytest.raises(AuthenticationError):
        _create(banner_service, session, None)
    with pytest.raises(AuthorizationError):
        _create(banner_service, session, visitor)


def test_failed_desktop_upload_removes_mobile_object(session, banner_service, banner_store, owner):
    banner_store.fail_upload_at = 2

    with pytest.raises(StoreFailure):
        _create(banner_service, session, owner)

    assert banner_store.objects == {}
    assert BannerRepository().list_all(session) == []


def test_update_replaces_one_slot_and_keeps_the_other(session, banner_service, banner_store, owner):
    created = _create(banner_service, session, owner, link_url="https://example.com/a")
    repo = BannerRepository()
    before = repo.get_by_id(session, created.id)
    old_mobile, old_desktop = before.image_url_mobile, before.image_url_desktop

    banner_service.update_banner(
        session,
        owner,
        created.id,
        {"link_url": "https://example.com/b", "is_active": "false"},
        image_mobile=make_image("autumn.jpg"),
    )

    banner = repo.get_by_id(session, created.id)
    assert banner.image_url_mobile != old_mobile
    assert banner.image_url_mobile.endswith("-mobile-autumn.jpg")
    assert banner.image_url_desktop == old_desktop
    assert banner.link_url == "https://example.com/b"
    assert banner.is_active is False
    assert banner_store.path_from_public_url(old_mobile) not in banner_store.objects
    assert banner_store.path_from_public_url(old_desktop) in banner_store.objects


def test_update_without_is_active_keeps_it(session, banner_service, owner):
    created = _create(banner_service, session, owner, is_active="off")

    banner_service.update_banner(session, owner, created.id, {"title": "Renamed"})

    banner = BannerRepository().get_by_id(session, created.id)
    assert banner.title == "Renamed"
    assert banner.is_active is False


def test_failed_update_keeps_old_images(session, banner_service, banner_store, owner):
    created = _create(banner_service, session, owner)
    before = BannerRepository().get_by_id(session, created.id)
    old_mobile, old_desktop = before.image_url_mobile, before.image_url_desktop
    banner_store.fail_upload_at = banner_store.upload_calls + 2

    with pytest.raises(StoreFailure):
        banner_service.update_banner(
            session,
            owner,
            created.id,
            {},
            image_mobile=make_image("new-m.jpg"),
            image_desktop=make_image("new-d.jpg"),
        )

    banner = BannerRepository().get_by_id(session, created.id)
    assert banner.image_url_mobile == old_mobile
    assert banner.image_url_desktop == old_desktop
    assert len(banner_store.objects) == 2


def test_update_of_foreign_banner_is_forbidden(session, banner_service, owner, rival):
    created = _create(banner_service, session, owner)

    with pytest.raises(AuthorizationError):
        banner_service.update_banner(session, rival, created.id, {"title": "Mine now"})
    with pytest.raises(NotFoundError):
        banner_service.update_banner(session, owner, 9999, {})


def test_delete_banner(session, banner_service, banner_store, owner):
    created = _create(banner_service, session, owner)

    banner_service.delete_banner(session, owner, created.id)

    assert BannerRepository().get_by_id(session, created.id) is None
    assert banner_store.objects == {}


def test_delete_banner_survives_storage_failure(session, banner_service, banner_store, owner):
    created = _create(banner_service, session, owner)
    banner_store.fail_remove = True

    banner_service.delete_banner(session, owner, created.id)

    assert BannerRepository().get_by_id(session, created.id) is None


def test_reads(session, banner_service, owner, visitor):
    shown = _create(banner_service, session, owner, display_order="2")
    hidden = _create(banner_service, session, owner, display_order="1", is_active="off")

    assert [b.id for b in banner_service.list_active_banners(session)] == [shown.id]
    assert [b.id for b in banner_service.list_banners(session, owner)] == [hidden.id, shown.id]
    assert banner_service.get_banner(session, owner, hidden.id).is_active is False

    with pytest.raises(AuthorizationError):
        banner_service.list_banners(session, visitor)


def test_image_limit_defaults_to_settings(session, banner_store, guard, owner, monkeypatch):
    monkeypatch.setattr(get_settings(), "MAX_IMAGE_BYTES", 8)
    service = BannerService(BannerRepository(), banner_store, guard)

    with pytest.raises(ValidationError) as exc_info:
        service.create_banner(
            session,
            owner,
            {"title": "Big"},
            make_image("m.jpg", size=9),
            make_image("d.jpg", size=4),
        )

    assert "image_mobile" in exc_info.value.field_errors
    assert banner_store.upload_calls == 0
