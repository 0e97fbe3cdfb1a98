"""
Daily maintenance: retention cleanup and the daily asset report.

The report is stored in the asset_reports table for historical access.
"""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from typing import Any

from marketfeed.analysis.statistics import StatisticsAggregator
from marketfeed.db.store import ArticleStore
from marketfeed.utils.config import Settings, get_settings
from marketfeed.utils.logger import get_logger

logger = get_logger(__name__)

_REPORT_TOP_ASSETS = 10
_REPORT_TOP_CATEGORIES = 5


class Maintenance:
    """Retention cleanup and daily reporting against the article store."""

    def __init__(
        self,
        store: ArticleStore,
        statistics: StatisticsAggregator,
        settings: Settings | None = None,
    ) -> None:
        self._store = store
        self._statistics = statistics
        self._settings = settings or get_settings()

    async def cleanup_old_articles(self) -> int:
        """Delete articles published more than ``retention_days`` ago.

        Returns:
            Number of deleted articles.
        """
        cutoff = datetime.now(tz=timezone.utc) - timedelta(days=self._settings.retention_days)
        deleted = await self._store.delete_articles_older_than(cutoff)
        logger.info(
            "Cleaned up %d articles older than %d days (cutoff=%s)",
            deleted, self._settings.retention_days, cutoff.isoformat(),
        )
        return deleted

    async def generate_daily_report(self) -> dict[str, Any]:
        """Build the daily asset report from 24h and 7d statistics.

        The report is logged and saved to ``asset_reports``. A failure to
        save is logged and does not affect the returned report.

        Returns:
            ``{"date": "YYYY-MM-DD", "summary": {...}}``
        """
        logger.info("Generating daily asset report")
        stats_24h = await self._statistics.get_statistics("24h")
        stats_7d = await self._statistics.get_statistics("7d")

        report_date = datetime.now(tz=timezone.utc).date()
        report: dict[str, Any] = {
            "date": report_date.isoformat(),
            "summary": {
                "articles_24h": stats_24h.total_articles,
                "articles_7d": stats_7d.total_articles,
                "top_assets_24h": [
                    a.model_dump() for a in stats_24h.top_assets[:_REPORT_TOP_ASSETS]
                ],
                "top_categories_24h": [
                    c.model_dump() for c in stats_24h.top_categories[:_REPORT_TOP_CATEGORIES]
                ],
            },
        }

        logger.info("Daily asset report: %s", json.dumps(report, indent=2))

        try:
            await self._store.save_report(report_date, report)
        except Exception as e:
            logger.error("Failed to save daily asset report: %s", e, exc_info=True)

        return report

    async def run_daily(self) -> dict[str, Any]:
        """Cleanup followed by the daily report."""
        logger.info("Starting daily maintenance")
        deleted = await self.cleanup_old_articles()
        report = await self.generate_daily_report()
        logger.info("Daily maintenance completed")
        return {"deleted": deleted, "report": report}
