"""
Store-backed deduplication checker.

An item is a duplicate when the store already holds an article with the
same link, or with the same title in the same feed. The check runs before
the insert and is not atomic with it; the ``link`` unique constraint in the
store catches any race this check misses.
"""

from __future__ import annotations

from marketfeed.crawler.base_crawler import RawItem
from marketfeed.db.store import ArticleStore
from marketfeed.utils.logger import get_logger

logger = get_logger(__name__)


class Deduplicator:
    """Read-before-write duplicate check against the article store."""

    def __init__(self, store: ArticleStore) -> None:
        self._store = store

    async def exists(self, item: RawItem, feed_id: str) -> bool:
        """Return True if ``item`` is already stored for ``feed_id`` (or anywhere by link)."""
        existing = await self._store.find_existing_article(item.link, item.title, feed_id)
        if existing is not None:
            logger.debug(
                "Duplicate: '%.60s' (link=%s, existing id=%s)",
                item.title, item.link, existing.id,
            )
            return True
        return False
