# tests/test_pictures.py
"""
Picture upload/download lifecycle.

Upload order is store-new, link, drop-old; these tests check each failure
point leaves the restaurant pointing at a live picture.
"""
import pytest
from bson import ObjectId
from httpx import ASGITransport, AsyncClient

from restaurant_service.config import config
from restaurant_service.main import app

PNG = b"\x89PNG\r\n\x1a\nfake-png-bytes"


def _client() -> AsyncClient:
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


def _png(name: str = "front.png", data: bytes = PNG) -> dict:
    return {"picture": (name, data, "image/png")}


# =============================================================================
# UPLOAD VALIDATION
# =============================================================================

@pytest.mark.asyncio
async def test_upload_non_image_rejected_before_store(store):
    oid = store.add_restaurant(name="X", ownerId="o1")

    async with _client() as client:
        resp = await client.post(
            f"/restaurants/{oid}/picture",
            files={"picture": ("menu.pdf", b"%PDF-1.4", "application/pdf")},
        )

    assert resp.status_code == 400
    assert resp.json()["error"] == "Only image files are allowed"
    assert store.calls == []
    assert store.pictures == {}


@pytest.mark.asyncio
async def test_upload_without_file(store):
    oid = store.add_restaurant(name="X", ownerId="o1")

    async with _client() as client:
        resp = await client.post(f"/restaurants/{oid}/picture", files={"photo": ("a.png", PNG, "image/png")})

    assert resp.status_code == 400
    assert resp.json()["error"] == "No image file provided"
    assert store.calls == []


@pytest.mark.asyncio
async def test_upload_too_large(store, monkeypatch):
    monkeypatch.setattr(config, "MAX_PICTURE_BYTES", 8)
    oid = store.add_restaurant(name="X", ownerId="o1")

    async with _client() as client:
        resp = await client.post(f"/restaurants/{oid}/picture", files=_png(data=b"123456789"))

    assert resp.status_code == 400
    assert "File size exceeds" in resp.json()["error"]
    assert store.calls == []


@pytest.mark.asyncio
async def test_upload_bad_id(store):
    async with _client() as client:
        resp = await client.post("/restaurants/xyz/picture", files=_png())

    assert resp.status_code == 400
    assert resp.json()["error"] == "Invalid restaurant ID format"


@pytest.mark.asyncio
async def test_upload_unknown_restaurant(store):
    async with _client() as client:
        resp = await client.post(f"/restaurants/{ObjectId()}/picture", files=_png())

    assert resp.status_code == 404
    assert store.pictures == {}


# =============================================================================
# UPLOAD LIFECYCLE
# =============================================================================

@pytest.mark.asyncio
async def test_upload_links_picture(store):
    oid = store.add_restaurant(name="X", ownerId="o1")

    async with _client() as client:
        resp = await client.post(f"/restaurants/{oid}/picture", files=_png())

    assert resp.status_code == 200
    body = resp.json()
    assert body["filename"] == "front.png"
    file_id = ObjectId(body["fileId"])
    assert store.restaurants[oid]["pictureId"] == file_id
    assert store.pictures[file_id]["metadata"] == {"contentType": "image/png", "restaurantId": str(oid)}


@pytest.mark.asyncio
async def test_second_upload_replaces_first(store):
    oid = store.add_restaurant(name="X", ownerId="o1")

    async with _client() as client:
        await client.post(f"/restaurants/{oid}/picture", files=_png("one.png"))
        resp = await client.post(f"/restaurants/{oid}/picture", files=_png("two.png", b"second"))

    assert resp.status_code == 200
    new_id = ObjectId(resp.json()["fileId"])
    assert list(store.pictures) == [new_id]
    assert store.restaurants[oid]["pictureId"] == new_id


@pytest.mark.asyncio
async def test_old_picture_delete_failure_does_not_fail_upload(store):
    old_id = await store.upload_picture("old.png", b"old", "image/png", "r")
    oid = store.add_restaurant(name="X", ownerId="o1", pictureId=old_id)
    store.failures["delete_picture"] = RuntimeError("chunk collection unavailable")

    async with _client() as client:
        resp = await client.post(f"/restaurants/{oid}/picture", files=_png())

    assert resp.status_code == 200
    new_id = ObjectId(resp.json()["fileId"])
    assert store.restaurants[oid]["pictureId"] == new_id
    assert new_id in store.pictures


@pytest.mark.asyncio
async def test_old_picture_already_gone(store):
    oid = store.add_restaurant(name="X", ownerId="o1", pictureId=ObjectId())

    async with _client() as client:
        resp = await client.post(f"/restaurants/{oid}/picture", files=_png())

    assert resp.status_code == 200
    assert len(store.pictures) == 1


@pytest.mark.asyncio
async def test_upload_stream_failure_is_500(store):
    old_id = await store.upload_picture("old.png", b"old", "image/png", "r")
    oid = store.add_restaurant(name="X", ownerId="o1", pictureId=old_id)
    store.failures["upload_picture"] = RuntimeError("disk full")

    async with _client() as client:
        resp = await client.post(f"/restaurants/{oid}/picture", files=_png())

    assert resp.status_code == 500
    assert resp.json() == {"error": "Failed to upload picture", "details": "disk full"}
    assert store.restaurants[oid]["pictureId"] == old_id
    assert old_id in store.pictures


@pytest.mark.asyncio
async def test_link_failure_keeps_old_picture(store):
    old_id = await store.upload_picture("old.png", b"old", "image/png", "r")
    oid = store.add_restaurant(name="X", ownerId="o1", pictureId=old_id)
    store.failures["update_restaurant"] = RuntimeError("write concern timeout")

    async with _client() as client:
        resp = await client.post(f"/restaurants/{oid}/picture", files=_png())

    assert resp.status_code == 500
    assert store.restaurants[oid]["pictureId"] == old_id
    # new blob was cleaned up, old one untouched
    assert list(store.pictures) == [old_id]


@pytest.mark.asyncio
async def test_restaurant_deleted_during_upload(store, monkeypatch):
    oid = store.add_restaurant(name="X", ownerId="o1")

    async def vanished(restaurant_id, fields):
        return 0, 0

    monkeypatch.setattr(store, "update_restaurant", vanished)
    store.install(monkeypatch)

    async with _client() as client:
        resp = await client.post(f"/restaurants/{oid}/picture", files=_png())

    assert resp.status_code == 404
    assert store.pictures == {}


# =============================================================================
# DOWNLOAD
# =============================================================================

@pytest.mark.asyncio
async def test_download_streams_bytes(store):
    oid = store.add_restaurant(name="X", ownerId="o1")

    async with _client() as client:
        await client.post(f"/restaurants/{oid}/picture", files=_png())
        resp = await client.get(f"/restaurants/{oid}/picture")

    assert resp.status_code == 200
    assert resp.headers["content-type"] == "image/png"
    assert resp.content == PNG


@pytest.mark.asyncio
async def test_download_default_content_type(store):
    file_id = await store.upload_picture("raw", b"raw", None, "r")
    oid = store.add_restaurant(name="X", ownerId="o1", pictureId=file_id)

    async with _client() as client:
        resp = await client.get(f"/restaurants/{oid}/picture")

    assert resp.status_code == 200
    assert resp.headers["content-type"] == "image/jpeg"


@pytest.mark.asyncio
async def test_download_without_picture_is_404(store):
    oid = store.add_restaurant(name="X", ownerId="o1")

    async with _client() as client:
        resp = await client.get(f"/restaurants/{oid}/picture")

    assert resp.status_code == 404
    assert resp.json()["error"] == "Restaurant has no picture"


@pytest.mark.asyncio
async def test_download_dangling_picture_is_404(store):
    oid = store.add_restaurant(name="X", ownerId="o1", pictureId=ObjectId())

    async with _client() as client:
        resp = await client.get(f"/restaurants/{oid}/picture")

    assert resp.status_code == 404
    assert resp.json()["error"] == "Picture not found"


@pytest.mark.asyncio
async def test_download_unknown_restaurant(store):
    async with _client() as client:
        missing = await client.get(f"/restaurants/{ObjectId()}/picture")
        bad = await client.get("/restaurants/nope/picture")

    assert missing.status_code == 404
    assert bad.status_code == 400
