import pytest

API = "/api/v1/banners"


def _slot(slot: str, name: str):
    return (f"image_{slot}", (name, b"\xff\xd8jpeg-bytes", "image/jpeg"))


@pytest.fixture
def created(client, owner_headers):
    response = client.post(
        API,
        data={"title": "Summer", "link_url": "https://example.com/summer", "is_active": "on"},
        files=[_slot("mobile", "m.jpg"), _slot("desktop", "d.jpg")],
        headers=owner_headers,
    )
    assert response.status_code == 201, response.text
    return response.json()


def test_create_banner(client, created, banner_store):
    assert isinstance(created["id"], int)
    assert len(banner_store.objects) == 2


def test_create_requires_both_slots(client, owner_headers, banner_store):
    response = client.post(
        API,
        data={"title": "Half"},
        files=[_slot("mobile", "m.jpg")],
        headers=owner_headers,
    )

    assert response.status_code == 400
    assert "image_desktop" in response.json()["detail"]["field_errors"]
    assert banner_store.upload_calls == 0


def test_create_requires_operator(client, visitor_headers):
    response = client.post(
        API,
        files=[_slot("mobile", "m.jpg"), _slot("desktop", "d.jpg")],
        headers=visitor_headers,
    )

    assert response.status_code == 403


def test_public_list_hides_inactive(client, created, owner_headers):
    client.post(
        API,
        data={"title": "Hidden", "is_active": "off"},
        files=[_slot("mobile", "hm.jpg"), _slot("desktop", "hd.jpg")],
        headers=owner_headers,
    )

    public = client.get(API)
    assert public.status_code == 200
    assert [b["id"] for b in public.json()] == [created["id"]]

    managed = client.get(f"{API}/manage", headers=owner_headers)
    assert len(managed.json()) == 2
    assert client.get(f"{API}/manage").status_code == 401


def test_update_banner_slot(client, created, owner_headers, banner_store):
    before = client.get(f"{API}/{created['id']}", headers=owner_headers).json()

    response = client.post(
        f"{API}/{created['id']}",
        data={"title": "Autumn", "link_url": ""},
        files=[_slot("desktop", "autumn.jpg")],
        headers=owner_headers,
    )

    assert response.status_code == 200, response.text
    assert response.json() == {"id": created["id"]}
    after = client.get(f"{API}/{created['id']}", headers=owner_headers).json()
    assert after["title"] == "Autumn"
    assert after["link_url"] is None
    assert after["image_url_mobile"] == before["image_url_mobile"]
    assert after["image_url_desktop"].endswith("-desktop-autumn.jpg")
    assert len(banner_store.objects) == 2


def test_foreign_banner(client, created, rival_headers):
    assert client.get(f"{API}/{created['id']}", headers=rival_headers).status_code == 403
    assert client.delete(f"{API}/{created['id']}", headers=rival_headers).status_code == 403


def test_delete_banner(client, created, owner_headers, banner_store):
    response = client.delete(f"{API}/{created['id']}", headers=owner_headers)

    assert response.status_code == 204
    assert banner_store.objects == {}
    assert client.get(f"{API}/{created['id']}", headers=owner_headers).status_code == 404


def test_create_without_token_is_unauthorized(client, banner_store):
    response = client.post(
        API,
        data={"title": "Sneaky", "is_active": "on"},
        files=[_slot("mobile", "m.jpg"), _slot("desktop", "d.jpg")],
    )

    assert response.status_code == 401
    assert banner_store.upload_calls == 0
