"""Tests for /api/images/upload and the static image mount."""
import os

import pytest
from httpx import AsyncClient

from app.config import settings

# 1x1 transparent PNG
PNG_BYTES = (
    b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR\x00\x00\x00\x01\x00\x00\x00\x01\x08\x06"
    b"\x00\x00\x00\x1f\x15\xc4\x89\x00\x00\x00\rIDATx\x9cc\xf8\xff\xff?\x00\x05\xfe"
    b"\x02\xfe\xa7\x35\x81\x84\x00\x00\x00\x00IEND\xaeB`\x82"
)


@pytest.mark.asyncio
async def test_upload_image(client: AsyncClient):
    resp = await client.post(
        "/api/images/upload",
        files={"image": ("photo.png", PNG_BYTES, "image/png")},
    )
    assert resp.status_code == 200, resp.text
    data = resp.json()
    assert data["success"] is True
    assert data["filename"].endswith(".png")
    assert data["image_url"] == f"http://test/images/{data['filename']}"
    assert os.path.exists(os.path.join(settings.UPLOAD_DIR, data["filename"]))


@pytest.mark.asyncio
async def test_uploaded_image_is_served(client: AsyncClient):
    upload = await client.post(
        "/api/images/upload",
        files={"image": ("photo.png", PNG_BYTES, "image/png")},
    )
    filename = upload.json()["filename"]

    resp = await client.get(f"/images/{filename}")
    assert resp.status_code == 200
    assert resp.content == PNG_BYTES
    assert "max-age" in resp.headers["cache-control"]


@pytest.mark.asyncio
async def test_upload_names_are_unique(client: AsyncClient):
    names = set()
    for _ in range(3):
        resp = await client.post(
            "/api/images/upload",
            files={"image": ("same.png", PNG_BYTES, "image/png")},
        )
        names.add(resp.json()["filename"])
    assert len(names) == 3


@pytest.mark.asyncio
async def test_upload_rejects_non_images(client: AsyncClient):
    before = set(os.listdir(settings.UPLOAD_DIR))
    resp = await client.post(
        "/api/images/upload",
        files={"image": ("notes.txt", b"hello", "text/plain")},
    )
    assert resp.status_code == 400
    assert "Only image files" in resp.json()["detail"]
    assert set(os.listdir(settings.UPLOAD_DIR)) == before


@pytest.mark.asyncio
async def test_upload_rejects_oversized(client: AsyncClient, monkeypatch):
    monkeypatch.setattr(settings, "MAX_IMAGE_SIZE", 16)
    before = set(os.listdir(settings.UPLOAD_DIR))
    resp = await client.post(
        "/api/images/upload",
        files={"image": ("big.png", PNG_BYTES, "image/png")},
    )
    assert resp.status_code == 413
    assert set(os.listdir(settings.UPLOAD_DIR)) == before


@pytest.mark.asyncio
async def test_upload_requires_file(client: AsyncClient):
    resp = await client.post("/api/images/upload")
    assert resp.status_code == 422
