"""
Persistence adapter for feeds, articles and reports.

Every method opens its own short-lived session so concurrent feed tasks
never share one. The ``link`` unique constraint on ``articles`` is the
authoritative duplicate guard; a violation surfaces as
``DuplicateArticleError`` rather than a generic database error.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

from sqlalchemy import String, cast, delete, func, or_, select, update
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.sql import ColumnElement
from sqlalchemy.sql.expression import type_coerce

from marketfeed.db.connection import get_session
from marketfeed.db.models import Article, AssetReport, Feed
from marketfeed.utils.logger import get_logger

logger = get_logger(__name__)

_DEFAULT_QUERY_LIMIT = 50


class DuplicateArticleError(Exception):
    """An article insert hit a uniqueness constraint.

    Attributes:
        link: Link of the rejected article.
    """

    def __init__(self, link: str) -> None:
        super().__init__(f"Article already stored: {link}")
        self.link = link


@dataclass
class ArticleQuery:
    """Paging and date-range options for article lookups.

    Attributes:
        limit: Maximum rows to return.
        offset: Rows to skip (for paging).
        date_from: Inclusive lower bound on ``published_at``.
        date_to: Inclusive upper bound on ``published_at``.
    """

    limit: int = _DEFAULT_QUERY_LIMIT
    offset: int = 0
    date_from: datetime | None = None
    date_to: datetime | None = None


def _is_unique_violation(exc: IntegrityError) -> bool:
    # asyncpg: "duplicate key value violates unique constraint"
    # sqlite:  "UNIQUE constraint failed: articles.link"
    return "unique" in str(exc.orig).lower()


class ArticleStore:
    """Async store for ``Feed``, ``Article`` and ``AssetReport`` rows."""

    def __init__(
        self, session_factory: async_sessionmaker[AsyncSession] | None = None
    ) -> None:
        self._session_factory = session_factory

    def _session(self):
        return get_session(self._session_factory)

    # ------------------------------------------------------------------
    # Articles
    # ------------------------------------------------------------------

    async def find_existing_article(
        self, link: str, title: str, feed_id: str
    ) -> Article | None:
        """Return an article with the same link, or the same title in the same feed."""
        async with self._session() as session:
            stmt = (
                select(Article)
                .where(
                    or_(
                        Article.link == link,
                        (Article.title == title) & (Article.feed_id == feed_id),
                    )
                )
                .limit(1)
            )
            result = await session.execute(stmt)
            return result.scalar_one_or_none()

    async def create_article(self, data: dict[str, Any]) -> Article:
        """Insert a new article.

        Raises:
            DuplicateArticleError: ``link`` (or ``title`` + ``feed_id``) already stored.
        """
        try:
            async with self._session() as session:
                article = Article(**data)
                session.add(article)
                await session.flush()
        except IntegrityError as exc:
            if _is_unique_violation(exc):
                logger.debug("Unique violation on insert: %s", data.get("link"))
                raise DuplicateArticleError(data.get("link", "")) from exc
            raise
        return article

    async def delete_articles_older_than(self, cutoff: datetime) -> int:
        """Delete articles published before ``cutoff``. Returns the deleted count."""
        async with self._session() as session:
            result = await session.execute(
                delete(Article).where(Article.published_at < cutoff)
            )
            return result.rowcount or 0

    async def find_articles_since(self, since: datetime) -> list[Article]:
        """Return articles with ``published_at >= since``, oldest first."""
        async with self._session() as session:
            stmt = (
                select(Article)
                .where(Article.published_at >= since)
                .order_by(Article.published_at.asc(), Article.id.asc())
            )
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def find_articles_by_asset(
        self, instrument: str, query: ArticleQuery | None = None
    ) -> list[Article]:
        """Return articles tagged with ``instrument``, newest first."""
        return await self._find_articles_tagged(Article.instruments, instrument, query)

    async def find_articles_by_category(
        self, category: str, query: ArticleQuery | None = None
    ) -> list[Article]:
        """Return articles whose markets include ``category``, newest first."""
        return await self._find_articles_tagged(Article.markets, category, query)

    async def _find_articles_tagged(
        self, column: Any, tag: str, query: ArticleQuery | None
    ) -> list[Article]:
        query = query or ArticleQuery()
        async with self._session() as session:
            dialect = session.get_bind().dialect.name
            stmt = select(Article).where(_json_list_contains(column, tag, dialect))
            if query.date_from is not None:
                stmt = stmt.where(Article.published_at >= query.date_from)
            if query.date_to is not None:
                stmt = stmt.where(Article.published_at <= query.date_to)
            stmt = (
                stmt.order_by(Article.published_at.desc())
                .limit(query.limit)
                .offset(query.offset)
            )
            result = await session.execute(stmt)
            return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Feeds
    # ------------------------------------------------------------------

    async def find_active_feeds(self) -> list[Feed]:
        """Return active feeds ordered by name."""
        async with self._session() as session:
            stmt = select(Feed).where(Feed.is_active.is_(True)).order_by(Feed.name.asc())
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def find_feed_by_url(self, url: str) -> Feed | None:
        async with self._session() as session:
            result = await session.execute(select(Feed).where(Feed.url == url))
            return result.scalar_one_or_none()

    async def get_or_create_feed(
        self, url: str, category: str, name: str | None = None
    ) -> Feed:
        """Return the feed for ``url``, creating it when missing."""
        feed = await self.find_feed_by_url(url)
        if feed is not None:
            return feed
        try:
            return await self.add_feed(name or f"{category} feed", url, category)
        except IntegrityError:
            # Another task created it between the lookup and the insert
            feed = await self.find_feed_by_url(url)
            if feed is None:
                raise
            return feed

    async def upsert_feed(self, name: str, url: str, category: str) -> Feed:
        """Create the feed or refresh its name/category and re-activate it."""
        async with self._session() as session:
            result = await session.execute(select(Feed).where(Feed.url == url))
            feed = result.scalar_one_or_none()
            if feed is None:
                feed = Feed(name=name, url=url, category=category, is_active=True)
                session.add(feed)
            else:
                feed.name = name
                feed.category = category
                feed.is_active = True
            await session.flush()
            return feed

    async def add_feed(self, name: str, url: str, category: str) -> Feed:
        async with self._session() as session:
            feed = Feed(name=name, url=url, category=category, is_active=True)
            session.add(feed)
            await session.flush()
            return feed

    async def update_feed_status(
        self,
        feed_id: str,
        last_fetched: datetime,
        fetch_error: str | None,
    ) -> None:
        """Record the outcome of a fetch attempt on the feed."""
        async with self._session() as session:
            await session.execute(
                update(Feed)
                .where(Feed.id == feed_id)
                .values(last_fetched=last_fetched, fetch_error=fetch_error)
            )

    async def set_feed_active(self, feed_id: str, is_active: bool) -> Feed | None:
        async with self._session() as session:
            feed = await session.get(Feed, feed_id)
            if feed is None:
                return None
            feed.is_active = is_active
            await session.flush()
            return feed

    async def delete_feed(self, feed_id: str) -> bool:
        """Delete a feed and its articles. Returns False when it does not exist."""
        async with self._session() as session:
            await session.execute(delete(Article).where(Article.feed_id == feed_id))
            result = await session.execute(delete(Feed).where(Feed.id == feed_id))
            return bool(result.rowcount)

    async def list_feeds(self) -> list[dict[str, Any]]:
        """Return active feeds with their article counts, ordered by name."""
        async with self._session() as session:
            stmt = (
                select(Feed, func.count(Article.id))
                .outerjoin(Article, Article.feed_id == Feed.id)
                .where(Feed.is_active.is_(True))
                .group_by(Feed.id)
                .order_by(Feed.name.asc())
            )
            result = await session.execute(stmt)
            return [
                {
                    "id": feed.id,
                    "name": feed.name,
                    "url": feed.url,
                    "category": feed.category,
                    "last_fetched": feed.last_fetched,
                    "fetch_error": feed.fetch_error,
                    "article_count": count,
                }
                for feed, count in result.all()
            ]

    # ------------------------------------------------------------------
    # Reports
    # ------------------------------------------------------------------

    async def save_report(self, report_date: date, content: dict[str, Any]) -> AssetReport:
        async with self._session() as session:
            report = AssetReport(report_date=report_date, content=content)
            session.add(report)
            await session.flush()
            return report


def _json_list_contains(column: Any, value: str, dialect: str) -> ColumnElement[bool]:
    """Membership test on a JSON list column."""
    if dialect == "postgresql":
        return type_coerce(column, JSONB).contains([value])
    # JSON text form is ["A", "B"]; quoting the value avoids prefix matches.
    escaped = value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return cast(column, String).like(f'%"{escaped}"%', escape="\\")
