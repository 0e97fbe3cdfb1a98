"""
SQLAlchemy ORM models for the feed ingestion service.
"""

from datetime import date, datetime, timezone
from typing import Any
from uuid import uuid4

from sqlalchemy import (
    JSON,
    TIMESTAMP,
    Boolean,
    Date,
    Float,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite for local runs and tests)
JSONList = JSON().with_variant(JSONB(), "postgresql")


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


def _new_id() -> str:
    return str(uuid4())


class Base(DeclarativeBase):
    pass


class Feed(Base):
    __tablename__ = "feeds"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    url: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    category: Mapped[str] = mapped_column(String(50), nullable=False, default="general")
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    last_fetched: Mapped[datetime | None] = mapped_column(TIMESTAMP(timezone=True))
    fetch_error: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), default=_utcnow
    )

    __table_args__ = (
        Index("idx_feeds_is_active", "is_active"),
        Index("idx_feeds_category", "category"),
    )


class Article(Base):
    __tablename__ = "articles"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    content: Mapped[str | None] = mapped_column(Text)
    original_text: Mapped[str | None] = mapped_column(Text)
    # Authoritative duplicate guard; the read-before-write check is only an optimization.
    link: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    author: Mapped[str | None] = mapped_column(String(200))
    published_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=_utcnow
    )
    feed_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("feeds.id", ondelete="CASCADE"), nullable=False
    )
    markets: Mapped[list[str]] = mapped_column(JSONList, default=list)
    instruments: Mapped[list[str]] = mapped_column(JSONList, default=list)
    is_processed: Mapped[bool] = mapped_column(Boolean, default=False)
    sentiment_label: Mapped[str | None] = mapped_column(String(20))
    sentiment_score: Mapped[float | None] = mapped_column(Float)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), default=_utcnow
    )

    __table_args__ = (
        UniqueConstraint("title", "feed_id", name="uq_articles_title_feed"),
        Index("idx_articles_published_at", "published_at"),
        Index("idx_articles_feed_id", "feed_id"),
        Index("idx_articles_is_processed", "is_processed"),
    )

    def to_dict(self) -> dict[str, Any]:
        """Plain-dict view used by report and API callers."""
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "content": self.content,
            "link": self.link,
            "author": self.author,
            "published_at": self.published_at.isoformat() if self.published_at else None,
            "feed_id": self.feed_id,
            "markets": list(self.markets or []),
            "instruments": list(self.instruments or []),
            "is_processed": self.is_processed,
            "sentiment_label": self.sentiment_label,
            "sentiment_score": self.sentiment_score,
        }


class AssetReport(Base):
    __tablename__ = "asset_reports"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    report_date: Mapped[date] = mapped_column(Date, nullable=False)
    content: Mapped[dict[str, Any]] = mapped_column(JSONList, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), default=_utcnow
    )

    __table_args__ = (
        Index("idx_asset_reports_report_date", "report_date"),
    )
