"""Database and schema models for Pagewright."""
from app.models.database_models import (
    Layout,
    Article,
)
from app.models.schemas import (
    DownloadFormat,
    LayoutCreateRequest,
    LayoutResponse,
    LayoutDetailResponse,
    ArticleCreateRequest,
    ArticleResponse,
    ArticleSummary,
    ImageUploadResponse,
    HealthCheckResponse,
)

__all__ = [
    # Database models
    "Layout",
    "Article",
    # Pydantic schemas
    "DownloadFormat",
    "LayoutCreateRequest",
    "LayoutResponse",
    "LayoutDetailResponse",
    "ArticleCreateRequest",
    "ArticleResponse",
    "ArticleSummary",
    "ImageUploadResponse",
    "HealthCheckResponse",
]
