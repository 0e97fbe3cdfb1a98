"""
RSS/Atom feed fetcher.

Downloads the raw feed with aiohttp and parses it with feedparser.
Supports both RSS 2.0 and Atom feed formats.
"""

from __future__ import annotations

import asyncio
import re
from calendar import timegm
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any

import feedparser

from marketfeed.crawler.base_crawler import BaseFetcher, FeedFetchError, RawItem
from marketfeed.utils.config import get_settings
from marketfeed.utils.logger import get_logger

logger = get_logger(__name__)

_DESCRIPTION_MAX_CHARS = 500
_CONTENT_MAX_CHARS = 50000


class RSSFetcher(BaseFetcher):
    """Generic RSS/Atom fetcher using aiohttp + feedparser.

    The request is bounded twice: by the session's ``ClientTimeout`` and by
    an outer ``asyncio.wait_for`` so that a server trickling bytes cannot
    hold a feed task forever.
    """

    def __init__(self, timeout_seconds: float | None = None) -> None:
        self.timeout_seconds = timeout_seconds or get_settings().fetch_timeout_seconds

    async def fetch(self, url: str) -> list[RawItem]:
        """Fetch and parse ``url``; see ``BaseFetcher.fetch``."""
        try:
            raw = await asyncio.wait_for(self._download(url), timeout=self.timeout_seconds)
        except asyncio.TimeoutError as e:
            raise FeedFetchError(url, f"Timed out after {self.timeout_seconds:.0f}s") from e
        except FeedFetchError:
            raise
        except Exception as e:
            raise FeedFetchError(url, f"Failed to fetch feed: {e}") from e

        return self.parse(url, raw)

    async def _download(self, url: str) -> str:
        session = await self.get_session()
        async with session.get(url) as response:
            if response.status != 200:
                raise FeedFetchError(url, f"HTTP {response.status} from {url}")
            return await response.text()

    def parse(self, url: str, raw: str) -> list[RawItem]:
        """Parse a downloaded feed body into items, preserving feed order."""
        feed = feedparser.parse(raw)

        if feed.bozo and not feed.entries:
            raise FeedFetchError(url, f"Feed parse error: {feed.bozo_exception}")

        items = [self._parse_entry(entry) for entry in feed.entries]
        logger.debug("Parsed %d entries from %s", len(items), url)
        return items

    def _parse_entry(self, entry: Any) -> RawItem:
        """Map a feedparser entry to a ``RawItem``.

        Entries missing a title or link are still returned (with empty
        strings) so the pipeline can count them as skipped.
        """
        title = (entry.get("title") or "").strip()
        link = (entry.get("link") or "").strip()

        # Prefer full content, fall back to summary/description
        content = ""
        if entry.get("content"):
            content = entry["content"][0].get("value", "") or ""
        summary = entry.get("summary") or entry.get("description") or ""
        if not content:
            content = summary

        content = self._strip_html(content)[:_CONTENT_MAX_CHARS]
        summary = self._strip_html(summary)
        description = summary or content[:_DESCRIPTION_MAX_CHARS]

        author = entry.get("author") or entry.get("creator") or None

        return RawItem(
            title=title,
            link=link,
            content=content,
            description=description,
            author=author,
            published_at=self._parse_date(entry),
        )

    @staticmethod
    def _parse_date(entry: Any) -> datetime | None:
        """Extract the publication date as UTC; ``None`` when absent or unparseable."""
        for date_field in ("published_parsed", "updated_parsed"):
            parsed = entry.get(date_field)
            if parsed:
                try:
                    return datetime.fromtimestamp(timegm(parsed), tz=timezone.utc)
                except (ValueError, OverflowError):
                    pass

        for raw_field in ("published", "updated", "created"):
            raw = entry.get(raw_field)
            if raw:
                try:
                    parsed_dt = parsedate_to_datetime(raw)
                except (ValueError, TypeError):
                    continue
                if parsed_dt.tzinfo is None:
                    parsed_dt = parsed_dt.replace(tzinfo=timezone.utc)
                return parsed_dt.astimezone(timezone.utc)

        return None

    @staticmethod
    def _strip_html(text: str) -> str:
        """Remove HTML tags and collapse whitespace."""
        clean = re.sub(r"<[^>]+>", " ", text)
        return re.sub(r"\s+", " ", clean).strip()
