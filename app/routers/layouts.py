"""
Layout export endpoints.

POST /                 — compile elements, persist, return {html, css}.
POST /export           — compile elements, persist, download a .zip.
GET  /{id}             — stored layout (raw elements + generated markup).
GET  /{id}/download    — re-package a stored layout as .zip or .html.
"""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import get_db
from app.models.database_models import Layout
from app.models.schemas import (
    DownloadFormat,
    LayoutCreateRequest,
    LayoutDetailResponse,
    LayoutResponse,
)
from app.services.layout_compiler import (
    LayoutCompiler,
    LayoutInputError,
    build_zip,
    inline_stylesheet,
    join_stylesheet,
    render_page,
)
from app.utils.helpers import safe_filename, truncate_text

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _layout_name(request: LayoutCreateRequest) -> str:
    name = (request.name or "").strip()
    return name or settings.DEFAULT_LAYOUT_NAME


async def _compile_and_store(
    payload: LayoutCreateRequest,
    http_request: Request,
    db: AsyncSession,
) -> Layout:
    """Validate, compile and insert one layout."""
    if not isinstance(payload.elements, list):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Elements array is required",
        )

    name = _layout_name(payload)
    base_url = payload.base_url or settings.PUBLIC_BASE_URL or str(http_request.base_url)

    try:
        compiled = LayoutCompiler().compile(payload.elements, base_url=base_url)
    except LayoutInputError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))

    css = join_stylesheet(compiled.css, payload.custom_css)
    page_html = render_page(compiled.html, title=name)

    layout = Layout(
        name=name,
        layout_json=payload.elements,
        custom_css=payload.custom_css or "",
        generated_html=page_html,
        generated_css=css,
    )
    try:
        db.add(layout)
        await db.commit()
        await db.refresh(layout)
    except Exception as exc:
        logger.exception(f"Failed to store layout {truncate_text(name, 60)!r}")
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to generate layout: {exc}" if not settings.is_production else "Failed to generate layout",
        )

    logger.info(
        f"Layout {truncate_text(name, 60)!r} stored as id={layout.id} "
        f"({len(payload.elements)} elements, {compiled.rule_count} rules)"
    )
    return layout


def _zip_response(name: str, html: str, css: str) -> Response:
    archive = build_zip([("index.html", html), ("styles.css", css)])
    return Response(
        content=archive,
        media_type="application/zip",
        headers={"Content-Disposition": f'attachment; filename="{safe_filename(name)}.zip"'},
    )


async def _get_layout_or_404(layout_id: int, db: AsyncSession) -> Layout:
    layout = await db.get(Layout, layout_id)
    if layout is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Layout not found",
        )
    return layout


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------

@router.post("", response_model=LayoutResponse, status_code=status.HTTP_201_CREATED)
async def create_layout(
    payload: LayoutCreateRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> LayoutResponse:
    """
    Compile a layout and return the standalone page plus its stylesheet.

    - ``elements`` must be an array (400 otherwise)
    - relative ``imageUrl`` values are resolved against ``base_url``
    """
    layout = await _compile_and_store(payload, request, db)
    return LayoutResponse(
        id=layout.id,
        name=layout.name,
        html=layout.generated_html,
        css=layout.generated_css,
        created_at=layout.created_at,
    )


@router.post("/export", status_code=status.HTTP_200_OK)
async def export_layout(
    payload: LayoutCreateRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> Response:
    """Compile and persist a layout, then download ``index.html`` + ``styles.css`` as a zip."""
    layout = await _compile_and_store(payload, request, db)
    return _zip_response(layout.name, layout.generated_html, layout.generated_css)


# ---------------------------------------------------------------------------
# Read
# ---------------------------------------------------------------------------

@router.get("/{layout_id}", response_model=LayoutDetailResponse)
async def get_layout(layout_id: int, db: AsyncSession = Depends(get_db)):
    """Return a stored layout."""
    return await _get_layout_or_404(layout_id, db)


@router.get("/{layout_id}/download")
async def download_layout(
    layout_id: int,
    format: DownloadFormat = Query(DownloadFormat.ZIP),
    db: AsyncSession = Depends(get_db),
) -> Response:
    """Download a stored layout as a zip or as one self-contained HTML file."""
    layout = await _get_layout_or_404(layout_id, db)

    if format == DownloadFormat.HTML:
        page = inline_stylesheet(layout.generated_html, layout.generated_css)
        return Response(
            content=page,
            media_type="text/html; charset=utf-8",
            headers={"Content-Disposition": f'attachment; filename="{safe_filename(layout.name)}.html"'},
        )
    return _zip_response(layout.name, layout.generated_html, layout.generated_css)
