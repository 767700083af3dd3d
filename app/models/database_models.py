"""
SQLAlchemy ORM models for the Pagewright database.
Layouts and articles are stored as opaque payloads; the only reference
between them is the optional article -> layout foreign key.
"""
from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    DateTime,
    ForeignKey,
    Boolean,
    JSON,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.database import Base


class Layout(Base):
    """Exported page layout: raw elements plus the generated markup."""

    __tablename__ = "layouts"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    layout_json = Column(JSON, nullable=False)  # Raw element array as submitted
    custom_css = Column(Text, nullable=False, default="")
    generated_html = Column(Text, nullable=False)
    generated_css = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    # Relationships
    articles = relationship("Article", back_populates="layout")


class Article(Base):
    """Published rich-text article, addressable by its unique slug."""

    __tablename__ = "articles"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    content = Column(Text, nullable=False)  # Sanitized HTML
    raw_content = Column(Text, nullable=True)  # HTML exactly as submitted
    slug = Column(String(255), nullable=False, unique=True, index=True)
    is_published = Column(Boolean, default=True, nullable=False, index=True)
    published_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    styles = Column(JSON, nullable=True)  # Base styles used for the document

    layout_id = Column(Integer, ForeignKey("layouts.id", ondelete="SET NULL"), nullable=True, index=True)

    # SEO metadata
    meta_title = Column(String(255), nullable=True)
    meta_description = Column(Text, nullable=True)
    keywords = Column(JSON, nullable=True)  # List[str]
    og_image = Column(String(1024), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    # Relationships
    layout = relationship("Layout", back_populates="articles")
