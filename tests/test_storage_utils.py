from catalog.core.storage_utils import (
    build_object_name,
    collect_prefix_paths,
    extract_path_from_public_url,
    remove_prefix,
    remove_quietly,
)

from conftest import FakeAssetStore


def test_extract_path_from_public_url():
    url = "https://x.supabase.co/storage/v1/object/public/products/12/a.png?t=1"

    assert extract_path_from_public_url(url, "products") == "12/a.png"
    assert extract_path_from_public_url(url, "banners") is None


def test_build_object_name():
    assert build_object_name("My Photo (1).JPG", 42) == "42-My-Photo-1-.JPG"
    assert build_object_name("사진.png", 42) == "42-png"
    assert build_object_name(None, 42) == "42-image"


def test_collect_prefix_paths_walks_folders():
    store = FakeAssetStore()
    for path in ("7/a.jpg", "7/details/0/b.jpg", "7/details/1/c.jpg", "8/other.jpg"):
        store.objects[path] = b""

    assert sorted(collect_prefix_paths(store, "7")) == [
        "7/a.jpg",
        "7/details/0/b.jpg",
        "7/details/1/c.jpg",
    ]


def test_remove_prefix_keeps_other_folders():
    store = FakeAssetStore()
    store.objects.update({"7/a.jpg": b"", "7/details/0/b.jpg": b"", "8/other.jpg": b""})

    remove_prefix(store, "7", "test")

    assert list(store.objects) == ["8/other.jpg"]


def test_remove_quietly_swallows_store_errors(caplog):
    store = FakeAssetStore()
    store.fail_remove = True

    remove_quietly(store, ["7/a.jpg", None], "test")

    assert "Failed to remove 1 object(s)" in caplog.text
