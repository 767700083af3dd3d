"""
Article endpoints.

POST /                  — publish an article and download it as .docx.
GET  /                  — list published articles (cached).
GET  /{slug}            — one article by slug (cached).
GET  /{slug}/download   — regenerate the .docx for a stored article.
"""
from __future__ import annotations

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import get_db
from app.models.database_models import Article, Layout
from app.models.schemas import ArticleCreateRequest, ArticleResponse, ArticleSummary
from app.services.cache import response_cache
from app.services.docx_renderer import DOCX_MEDIA_TYPE, render_document
from app.services.rich_text import RichTextCompiler
from app.services.sanitizer import sanitize_html, sanitize_text
from app.services.slug import assign_unique_slug_async
from app.services.style_normalizer import StyleDefaults

logger = logging.getLogger(__name__)

router = APIRouter()

ARTICLE_LIST_CACHE_KEY = "articles:published"


def _article_cache_key(slug: str) -> str:
    return f"articles:slug:{slug}"


def _docx_response(payload: bytes, slug: str, status_code: int = status.HTTP_200_OK) -> Response:
    return Response(
        content=payload,
        status_code=status_code,
        media_type=DOCX_MEDIA_TYPE,
        headers={
            "Content-Disposition": f'attachment; filename="{slug}.docx"',
            "X-Article-Slug": slug,
        },
    )


def _render_docx(title: str, html: str, styles) -> bytes:
    """Compile article HTML and encode it; encoder failures become a 500."""
    defaults = StyleDefaults.from_settings()
    model = RichTextCompiler(defaults).build_document(title, html, styles)
    try:
        return render_document(model, defaults)
    except Exception as exc:
        logger.exception(f"Document encoding failed for {title!r}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create document" if settings.is_production else f"Failed to create document: {exc}",
        )


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------

@router.post("", status_code=status.HTTP_201_CREATED)
async def create_article(
    payload: ArticleCreateRequest,
    db: AsyncSession = Depends(get_db),
) -> Response:
    """
    Publish an article and return it as a Word document.

    - ``title`` and ``content`` are required (400 otherwise)
    - ``layout_id``, when given, must reference a stored layout (404 otherwise)
    - the slug is derived from the title and returned in ``X-Article-Slug``
    """
    title = sanitize_text(payload.title or "")
    if not title or not (payload.content or "").strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Title and content are required",
        )

    if payload.layout_id is not None and await db.get(Layout, payload.layout_id) is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Layout {payload.layout_id} not found.",
        )

    async def _slug_taken(candidate: str) -> bool:
        result = await db.execute(select(Article.id).where(Article.slug == candidate))
        return result.scalar_one_or_none() is not None

    slug = await assign_unique_slug_async(title, _slug_taken)

    # Encode before persisting so a failed document leaves no article behind
    document = _render_docx(title, payload.content, payload.styles)

    article = Article(
        title=title,
        content=sanitize_html(payload.content),
        raw_content=payload.content,
        slug=slug,
        is_published=True,
        styles=payload.styles,
        layout_id=payload.layout_id,
        meta_title=sanitize_text(payload.meta_title),
        meta_description=sanitize_text(payload.meta_description),
        keywords=[k.strip() for k in payload.keywords if k and k.strip()],
        og_image=payload.og_image,
    )
    try:
        db.add(article)
        await db.commit()
    except IntegrityError:
        await db.rollback()
        logger.warning(f"Slug {slug!r} was taken concurrently")
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"An article with slug '{slug}' already exists.",
        )

    await response_cache.delete(ARTICLE_LIST_CACHE_KEY)
    logger.info(f"Article {title!r} published as {slug!r} ({len(document):,} bytes)")
    return _docx_response(document, slug, status_code=status.HTTP_201_CREATED)


# ---------------------------------------------------------------------------
# Read
# ---------------------------------------------------------------------------

@router.get("", response_model=List[ArticleSummary])
async def list_articles(db: AsyncSession = Depends(get_db)):
    """Published articles, newest first."""
    cached = await response_cache.get(ARTICLE_LIST_CACHE_KEY)
    if cached is not None:
        return cached

    result = await db.execute(
        select(Article)
        .where(Article.is_published.is_(True))
        .order_by(Article.published_at.desc(), Article.id.desc())
    )
    articles = [
        ArticleSummary.model_validate(a).model_dump(mode="json")
        for a in result.scalars().all()
    ]
    await response_cache.set(ARTICLE_LIST_CACHE_KEY, articles)
    return articles


async def _get_article_or_404(slug: str, db: AsyncSession) -> Article:
    result = await db.execute(
        select(Article).where(Article.slug == slug, Article.is_published.is_(True))
    )
    article = result.scalar_one_or_none()
    if article is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Article not found",
        )
    return article


@router.get("/{slug}", response_model=ArticleResponse)
async def get_article(slug: str, db: AsyncSession = Depends(get_db)):
    """One published article."""
    key = _article_cache_key(slug)
    cached = await response_cache.get(key)
    if cached is not None:
        return cached

    article = await _get_article_or_404(slug, db)
    data = ArticleResponse.model_validate(article).model_dump(mode="json")
    await response_cache.set(key, data)
    return data


@router.get("/{slug}/download")
async def download_article(slug: str, db: AsyncSession = Depends(get_db)) -> Response:
    """Rebuild the .docx for a stored article from its submitted HTML and styles."""
    article = await _get_article_or_404(slug, db)
    document = _render_docx(
        article.title,
        article.raw_content or article.content,
        article.styles or {},
    )
    return _docx_response(document, article.slug)
