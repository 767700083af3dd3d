"""
Pydantic schemas for request/response validation.
"""
from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, List, Dict, Any
from datetime import datetime
from enum import Enum


class DownloadFormat(str, Enum):
    """Packaging formats for a stored layout."""

    ZIP = "zip"
    HTML = "html"


# Layout Schemas
class LayoutCreateRequest(BaseModel):
    """
    Schema for submitting a layout.

    ``elements`` is typed loosely on purpose: a missing or non-array value
    is reported as a 400 by the router, not as a schema error.
    """

    elements: Any = None
    name: Optional[str] = Field(None, max_length=255)
    base_url: Optional[str] = None
    custom_css: str = ""


class LayoutResponse(BaseModel):
    """Schema for a compiled layout."""

    id: int
    name: str
    html: str
    css: str
    created_at: datetime


class LayoutDetailResponse(BaseModel):
    """Schema for a stored layout including its raw elements."""

    id: int
    name: str
    layout_json: Any
    custom_css: str = ""
    generated_html: str
    generated_css: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


# Article Schemas
class ArticleCreateRequest(BaseModel):
    """Schema for publishing an article. Title and content are checked by the router."""

    title: Optional[str] = Field(None, max_length=255)
    content: Optional[str] = None
    styles: Dict[str, Any] = Field(default_factory=dict)
    layout_id: Optional[int] = None
    meta_title: Optional[str] = Field(None, max_length=255)
    meta_description: Optional[str] = None
    keywords: List[str] = Field(default_factory=list)
    og_image: Optional[str] = None


class ArticleResponse(BaseModel):
    """Schema for article details."""

    id: int
    title: str
    slug: str
    content: str
    is_published: bool
    published_at: datetime
    styles: Optional[Dict[str, Any]] = None
    layout_id: Optional[int] = None
    meta_title: Optional[str] = None
    meta_description: Optional[str] = None
    keywords: Optional[List[str]] = None
    og_image: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class ArticleSummary(BaseModel):
    """Schema for article list entries."""

    id: int
    title: str
    slug: str
    published_at: datetime
    meta_description: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


# Image Schemas
class ImageUploadResponse(BaseModel):
    """Schema for image upload response."""

    success: bool = True
    image_url: str
    filename: str


# Health Check Schema
class HealthCheckResponse(BaseModel):
    """Schema for health check endpoint."""

    status: str
    database: str
    timestamp: datetime
    version: str = "0.1.0"
