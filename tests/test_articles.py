"""Tests for /api/articles endpoints."""
import io
import re

import pytest
from docx import Document
from httpx import AsyncClient

DOCX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"

ARTICLE = {
    "title": "My First Post",
    "content": '<p style="text-align:center"><b>Bold</b> plain</p><p style="color:red">A <span style="color:blue">B</span></p>',
    "styles": {"fontFamily": "Georgia", "fontSize": 12, "color": "#333333", "lineHeight": 1.6},
    "meta_description": "An introduction",
    "keywords": ["intro", " ", "welcome"],
}


async def _publish(client: AsyncClient, **overrides):
    body = {**ARTICLE, **overrides}
    resp = await client.post("/api/articles", json=body)
    assert resp.status_code == 201, resp.text
    return resp


@pytest.mark.asyncio
async def test_publish_returns_docx(client: AsyncClient):
    resp = await _publish(client)
    assert resp.headers["content-type"] == DOCX_MEDIA_TYPE
    assert resp.headers["content-disposition"] == 'attachment; filename="my-first-post.docx"'
    assert resp.headers["x-article-slug"] == "my-first-post"

    doc = Document(io.BytesIO(resp.content))
    texts = [p.text for p in doc.paragraphs]
    assert texts == ["My First Post", "Bold plain", "A B"]
    run = doc.paragraphs[1].runs[0]
    assert run.bold is True
    assert run.font.name == "Georgia"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "body",
    [
        {"content": "<p>x</p>"},
        {"title": "T"},
        {"title": "   ", "content": "<p>x</p>"},
        {"title": "T", "content": ""},
    ],
)
async def test_publish_requires_title_and_content(client: AsyncClient, body):
    resp = await client.post("/api/articles", json=body)
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Title and content are required"


@pytest.mark.asyncio
async def test_duplicate_titles_get_distinct_slugs(client: AsyncClient):
    first = await _publish(client)
    second = await _publish(client)
    assert first.headers["x-article-slug"] == "my-first-post"
    assert re.match(r"^my-first-post-[0-9a-z]{6}$", second.headers["x-article-slug"])


@pytest.mark.asyncio
async def test_unknown_layout_is_404(client: AsyncClient):
    resp = await client.post("/api/articles", json={**ARTICLE, "layout_id": 4242})
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_publish_with_layout(client: AsyncClient):
    layout = await client.post("/api/layouts", json={"elements": []})
    layout_id = layout.json()["id"]
    resp = await _publish(client, layout_id=layout_id)
    slug = resp.headers["x-article-slug"]

    detail = (await client.get(f"/api/articles/{slug}")).json()
    assert detail["layout_id"] == layout_id


@pytest.mark.asyncio
async def test_get_article_by_slug(client: AsyncClient):
    await _publish(client, content='<p>Hi<script>alert(1)</script></p>', title="<b>Clean</b> Title")
    resp = await client.get("/api/articles/clean-title")
    assert resp.status_code == 200
    data = resp.json()
    assert data["title"] == "Clean Title"
    assert data["slug"] == "clean-title"
    assert "<script" not in data["content"]
    assert data["keywords"] == ["intro", "welcome"]
    assert data["is_published"] is True


@pytest.mark.asyncio
async def test_get_article_404(client: AsyncClient):
    resp = await client.get("/api/articles/missing")
    assert resp.status_code == 404
    assert resp.json()["detail"] == "Article not found"


@pytest.mark.asyncio
async def test_list_articles_is_refreshed_after_publish(client: AsyncClient):
    assert (await client.get("/api/articles")).json() == []

    await _publish(client, title="One")
    listed = (await client.get("/api/articles")).json()
    assert [a["slug"] for a in listed] == ["one"]

    await _publish(client, title="Two")
    listed = (await client.get("/api/articles")).json()
    assert [a["slug"] for a in listed] == ["two", "one"]
    assert listed[0]["meta_description"] == "An introduction"


@pytest.mark.asyncio
async def test_download_article(client: AsyncClient):
    await _publish(client)
    resp = await client.get("/api/articles/my-first-post/download")
    assert resp.status_code == 200
    assert resp.headers["content-type"] == DOCX_MEDIA_TYPE
    doc = Document(io.BytesIO(resp.content))
    assert doc.paragraphs[0].text == "My First Post"
    assert doc.paragraphs[1].text == "Bold plain"


@pytest.mark.asyncio
async def test_download_missing_article(client: AsyncClient):
    resp = await client.get("/api/articles/missing/download")
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_malformed_content_still_produces_document(client: AsyncClient):
    resp = await _publish(client, title="Broken", content="<p><b><i>unclosed <<<")
    doc = Document(io.BytesIO(resp.content))
    assert doc.paragraphs[0].text == "Broken"
    assert len(doc.paragraphs) >= 2


@pytest.mark.asyncio
async def test_overlong_title_is_rejected(client: AsyncClient):
    resp = await client.post("/api/articles", json={**ARTICLE, "title": "x" * 300})
    assert resp.status_code == 422
    assert (await client.get("/api/articles")).json() == []
