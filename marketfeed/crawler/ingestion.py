"""
Feed ingestion pipeline.

Fetches each feed, drops items already stored, tags the rest with the
instruments they mention and persists them. Feeds are processed in small
concurrent groups with a pause between groups; items within one feed are
handled sequentially and in feed order.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable, Protocol, Sequence

from marketfeed.analysis.asset_classifier import GENERAL_CATEGORY, AssetClassifier
from marketfeed.crawler.base_crawler import BaseFetcher, RawItem
from marketfeed.crawler.dedup import Deduplicator
from marketfeed.crawler.feed_config import FeedConfigSource
from marketfeed.db.store import ArticleStore, DuplicateArticleError
from marketfeed.utils.config import Settings, get_settings
from marketfeed.utils.logger import get_logger

logger = get_logger(__name__)


class FeedSource(Protocol):
    """Anything with a feed URL and category (``Feed`` rows, ``FeedConfig`` entries)."""

    url: str
    category: str


@dataclass
class FeedResult:
    """Outcome of processing one feed.

    ``skipped`` counts every item that was not stored, including the
    ``duplicates`` and ``failed`` items, which are also counted on their own.
    """

    feed_url: str
    feed_id: str | None = None
    processed: int = 0
    skipped: int = 0
    duplicates: int = 0
    failed: int = 0
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class BatchResult:
    """Outcome of one pass over a list of feeds."""

    results: list[FeedResult] = field(default_factory=list)
    errors: int = 0

    @property
    def feeds_ok(self) -> int:
        return sum(1 for r in self.results if r.ok)

    @property
    def articles_processed(self) -> int:
        return sum(r.processed for r in self.results)

    def to_dict(self) -> dict[str, Any]:
        return {
            "processed": self.feeds_ok,
            "errors": self.errors,
            "articles_processed": self.articles_processed,
        }


def _chunks(items: Sequence[Any], size: int) -> Iterable[Sequence[Any]]:
    for start in range(0, len(items), size):
        yield items[start:start + size]


class IngestionPipeline:
    """Fetch → dedup → classify → persist, per feed and per batch."""

    def __init__(
        self,
        store: ArticleStore,
        fetcher: BaseFetcher,
        classifier: AssetClassifier | None = None,
        deduplicator: Deduplicator | None = None,
        settings: Settings | None = None,
    ) -> None:
        self._store = store
        self._fetcher = fetcher
        self._classifier = classifier or AssetClassifier()
        self._dedup = deduplicator or Deduplicator(store)
        self._settings = settings or get_settings()

    async def process_feed(self, feed_url: str, category: str) -> FeedResult:
        """Fetch one feed and store its new items.

        A fetch failure is recorded on the feed row and returned in
        ``FeedResult.error``; it is never raised. Per-item lookup and storage
        failures are logged and counted, and the remaining items still run.
        """
        result = FeedResult(feed_url=feed_url)
        feed = await self._store.get_or_create_feed(feed_url, category)
        result.feed_id = feed.id

        try:
            items = await self._fetcher.fetch(feed_url)
        except Exception as e:
            logger.warning("Feed fetch failed for %s: %s", feed_url, e)
            result.error = str(e) or type(e).__name__
            await self._store.update_feed_status(
                feed.id, datetime.now(tz=timezone.utc), result.error
            )
            return result

        try:
            for item in items:
                await self._process_item(item, feed.id, category, result)
        finally:
            await self._store.update_feed_status(feed.id, datetime.now(tz=timezone.utc), None)

        logger.info(
            "Feed %s: %d new, %d skipped (%d duplicates, %d failed)",
            feed_url, result.processed, result.skipped, result.duplicates, result.failed,
        )
        return result

    async def _process_item(
        self, item: RawItem, feed_id: str, category: str, result: FeedResult
    ) -> None:
        if not item.title or not item.link:
            result.skipped += 1
            return

        try:
            if await self._dedup.exists(item, feed_id):
                result.duplicates += 1
                result.skipped += 1
                return
            await self._store.create_article(self._build_article(item, feed_id, category))
        except DuplicateArticleError:
            logger.debug("Lost insert race for %s, counting as duplicate", item.link)
            result.duplicates += 1
            result.skipped += 1
            return
        except Exception as e:
            logger.error("Failed to process article %s: %s", item.link, e, exc_info=True)
            result.failed += 1
            result.skipped += 1
            return

        result.processed += 1

    def _build_article(self, item: RawItem, feed_id: str, category: str) -> dict[str, Any]:
        analysis = self._classifier.categorize_by_asset(item.title, item.content)

        markets = [category]
        if analysis.primary_category not in (category, GENERAL_CATEGORY):
            markets.append(analysis.primary_category)

        return {
            "title": item.title,
            "description": item.description,
            "content": item.content,
            "original_text": item.content,
            "link": item.link,
            "author": item.author,
            "published_at": item.published_at or datetime.now(tz=timezone.utc),
            "feed_id": feed_id,
            "markets": markets,
            "instruments": analysis.instruments(),
        }

    async def process_feeds(self, feeds: Sequence[FeedSource]) -> BatchResult:
        """Process ``feeds`` in groups of ``batch_size``.

        Feeds in a group run concurrently. Groups run one after another
        with ``batch_delay_seconds`` between them. An exception escaping a
        feed task is logged and counted in ``BatchResult.errors``.
        """
        batch = BatchResult()
        groups = list(_chunks(list(feeds), self._settings.batch_size))

        for index, group in enumerate(groups):
            outcomes = await asyncio.gather(
                *(self.process_feed(feed.url, feed.category) for feed in group),
                return_exceptions=True,
            )
            for feed, outcome in zip(group, outcomes):
                if isinstance(outcome, BaseException):
                    logger.error("Feed task for %s raised: %s", feed.url, outcome)
                    batch.errors += 1
                    batch.results.append(
                        FeedResult(feed_url=feed.url, error=str(outcome) or type(outcome).__name__)
                    )
                    continue
                if not outcome.ok:
                    batch.errors += 1
                batch.results.append(outcome)

            if index < len(groups) - 1:
                await asyncio.sleep(self._settings.batch_delay_seconds)

        logger.info(
            "Processed %d feeds: %d ok, %d errors, %d new articles",
            len(batch.results), batch.feeds_ok, batch.errors, batch.articles_processed,
        )
        return batch

    async def process_active_feeds(self) -> BatchResult:
        """Run ``process_feeds`` over every active feed in the store."""
        feeds = await self._store.find_active_feeds()
        logger.info("Processing %d active feeds", len(feeds))
        return await self.process_feeds(feeds)

    async def initialize_feeds(self, config_source: FeedConfigSource) -> int:
        """Load the configured feed list and upsert it into the store.

        Raises:
            FeedConfigError: The feed list could not be loaded.
        """
        configs = config_source.load_feed_list()
        for config in configs:
            await self._store.upsert_feed(config.name, config.url, config.category)
        logger.info("Initialized %d feeds from configuration", len(configs))
        return len(configs)
