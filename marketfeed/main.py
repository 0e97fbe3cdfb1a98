"""
MarketFeed - Main Entry Point

Central orchestrator that wires the store, fetcher, classifier, pipeline,
statistics and scheduler together and exposes the query operations used
by the outer service layer.

Startup:
- create tables
- load the configured feed list into the store
- start the ingestion / statistics / maintenance jobs
- run until SIGINT or SIGTERM, then shut down gracefully
"""

from __future__ import annotations

import asyncio
import signal
import sys
from datetime import datetime, timedelta, timezone
from typing import Any

from dotenv import load_dotenv
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from marketfeed.analysis.asset_classifier import AssetClassifier
from marketfeed.analysis.statistics import (
    StatisticsAggregator,
    StatisticsResult,
    TrendingAsset,
)
from marketfeed.analysis.taxonomy import Taxonomy, get_taxonomy
from marketfeed.crawler.base_crawler import BaseFetcher
from marketfeed.crawler.dedup import Deduplicator
from marketfeed.crawler.feed_config import FeedConfigSource
from marketfeed.crawler.ingestion import IngestionPipeline
from marketfeed.crawler.rss_crawler import RSSFetcher
from marketfeed.db.connection import close_db, init_db
from marketfeed.db.store import ArticleQuery, ArticleStore
from marketfeed.orchestration.maintenance import Maintenance
from marketfeed.orchestration.scheduler import FeedScheduler
from marketfeed.utils.config import Settings, get_settings
from marketfeed.utils.logger import get_logger, setup_logging

logger = get_logger(__name__)

_RECENT_NEWS_DAYS = 7
_RECENT_NEWS_LIMIT = 50
_SHUTDOWN_TIMEOUT = 30.0


class MarketFeedSystem:
    """Owns every component and exposes the operations of the feed service."""

    def __init__(
        self,
        settings: Settings | None = None,
        engine: AsyncEngine | None = None,
        fetcher: BaseFetcher | None = None,
        taxonomy: Taxonomy | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self._engine = engine

        session_factory: async_sessionmaker[AsyncSession] | None = None
        if engine is not None:
            session_factory = async_sessionmaker(
                bind=engine, class_=AsyncSession, expire_on_commit=False
            )

        self.taxonomy = taxonomy or get_taxonomy()
        self.store = ArticleStore(session_factory)
        self.fetcher = fetcher or RSSFetcher()
        self.classifier = AssetClassifier(self.taxonomy)
        self.pipeline = IngestionPipeline(
            store=self.store,
            fetcher=self.fetcher,
            classifier=self.classifier,
            deduplicator=Deduplicator(self.store),
            settings=self.settings,
        )
        self.statistics = StatisticsAggregator(self.store)
        self.maintenance = Maintenance(self.store, self.statistics, self.settings)
        self.scheduler = FeedScheduler(
            self.pipeline, self.statistics, self.maintenance, self.settings
        )

    async def initialize(self, config_source: FeedConfigSource | None = None) -> None:
        """Create tables and load the configured feeds.

        Raises:
            FeedConfigError: The feed list could not be loaded.
        """
        logger.info("Initializing MarketFeed...")
        await init_db(self._engine)
        source = config_source or FeedConfigSource(self.settings.feeds_config_path)
        await self.pipeline.initialize_feeds(source)
        logger.info("MarketFeed initialized")

    async def shutdown(self) -> None:
        """Stop jobs and release HTTP and database resources."""
        logger.info("========== MarketFeed Shutting Down ==========")
        await self.scheduler.stop()
        await self.fetcher.close_session()
        if self._engine is None:
            await close_db()
        logger.info("MarketFeed shutdown complete")

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    async def trigger_manual_processing(self) -> dict[str, int]:
        """Run one ingestion pass now.

        Raises:
            AlreadyRunningError: An ingestion pass is already in flight.
        """
        return await self.scheduler.trigger_manual_processing()

    async def start_scheduling(self) -> None:
        await self.scheduler.start()

    async def stop_scheduling(self) -> None:
        await self.scheduler.stop()

    def get_scheduler_status(self) -> dict[str, Any]:
        return self.scheduler.get_status()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_asset_statistics(self, timeframe: str = "24h") -> StatisticsResult:
        """Mention and sentiment rollup for ``timeframe`` (``24h``, ``7d`` or ``30d``)."""
        return await self.statistics.get_statistics(timeframe)

    async def get_trending_assets(
        self, timeframe: str = "24h", limit: int = 10
    ) -> list[TrendingAsset]:
        return await self.statistics.get_trending_assets(timeframe, limit)

    async def get_articles_by_asset(
        self, code: str, query: ArticleQuery | None = None
    ) -> list[dict[str, Any]]:
        """Articles tagged with instrument ``code``, newest first."""
        articles = await self.store.find_articles_by_asset(code.upper(), query)
        return [article.to_dict() for article in articles]

    async def get_articles_by_category(
        self, category: str, query: ArticleQuery | None = None
    ) -> list[dict[str, Any]]:
        articles = await self.store.find_articles_by_category(category.lower(), query)
        return [article.to_dict() for article in articles]

    async def get_recent_asset_news(self, code: str) -> list[dict[str, Any]]:
        """Up to 50 articles for ``code`` from the last 7 days."""
        query = ArticleQuery(
            limit=_RECENT_NEWS_LIMIT,
            date_from=datetime.now(tz=timezone.utc) - timedelta(days=_RECENT_NEWS_DAYS),
        )
        articles = await self.get_articles_by_asset(code, query)
        logger.info("Found %d recent articles for asset %s", len(articles), code)
        return articles

    def get_asset_catalog(self) -> dict[str, Any]:
        return self.taxonomy.catalog()

    async def list_feeds(self) -> list[dict[str, Any]]:
        return await self.store.list_feeds()


async def main() -> None:
    """Start the service and run until a termination signal arrives."""
    load_dotenv()
    setup_logging()

    system = MarketFeedSystem()
    shutdown_event = asyncio.Event()

    def signal_handler(sig: signal.Signals) -> None:
        logger.info("Received signal %s, initiating graceful shutdown...", sig)
        shutdown_event.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, lambda s=sig: signal_handler(s))

    exit_code = 0
    try:
        await system.initialize()
        await system.start_scheduling()
        logger.info("MarketFeed running. Press Ctrl+C to stop.")
        await shutdown_event.wait()
    except Exception as e:
        logger.exception("Fatal error in main: %s", e)
        exit_code = 1
    finally:
        logger.info("Running shutdown sequence (timeout=%.0fs)...", _SHUTDOWN_TIMEOUT)
        try:
            await asyncio.wait_for(system.shutdown(), timeout=_SHUTDOWN_TIMEOUT)
        except asyncio.TimeoutError:
            logger.warning(
                "Shutdown timed out after %.0f seconds, forcing exit.", _SHUTDOWN_TIMEOUT
            )
        except Exception as exc:
            logger.error("Error during shutdown: %s", exc)
    sys.exit(exit_code)


def run() -> None:
    """Console script entry point."""
    asyncio.run(main())


if __name__ == "__main__":
    run()
