"""
Keyword-based asset classifier.

Tags article text with the instruments and market categories it mentions,
using plain substring matching over the lower-cased text. Matching is not
tokenized: a keyword that happens to sit inside an unrelated word still
counts.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from marketfeed.analysis.taxonomy import Taxonomy, get_taxonomy
from marketfeed.utils.logger import get_logger

logger = get_logger(__name__)

GENERAL_CATEGORY = "general"


@dataclass
class AssetAnalysis:
    """Result of classifying one article.

    Attributes:
        primary_category: Category with the most distinct instruments,
            or ``"general"`` when nothing matched.
        primary_assets: Instruments of the primary category, in taxonomy order.
        all_assets: Every matched category mapped to its instruments.
    """

    primary_category: str = GENERAL_CATEGORY
    primary_assets: list[str] = field(default_factory=list)
    all_assets: dict[str, list[str]] = field(default_factory=dict)

    def instruments(self) -> list[str]:
        """Union of instruments across all matched categories, without duplicates."""
        seen: dict[str, None] = {}
        for codes in self.all_assets.values():
            for code in codes:
                seen.setdefault(code, None)
        return list(seen)


class AssetClassifier:
    """Substring classifier over a ``Taxonomy``."""

    def __init__(self, taxonomy: Taxonomy | None = None) -> None:
        self.taxonomy = taxonomy or get_taxonomy()
        logger.debug(
            "AssetClassifier initialized: %d categories %s",
            len(self.taxonomy), self.taxonomy.categories(),
        )

    def _match(self, text: str) -> dict[str, list[str]]:
        normalized = text.lower()
        found: dict[str, list[str]] = {}
        for category, code, keywords in self.taxonomy.triples():
            if any(keyword in normalized for keyword in keywords):
                found.setdefault(category, []).append(code)
        return found

    def extract_assets(self, text: str) -> dict[str, set[str]]:
        """Return the instruments mentioned in ``text``, grouped by category.

        A category appears only when at least one of its instruments matched.
        An instrument is reported once no matter how many keywords hit.
        """
        return {category: set(codes) for category, codes in self._match(text).items()}

    def categorize_by_asset(self, title: str, content: str) -> AssetAnalysis:
        """Classify an article and pick its primary category.

        The primary category is the one with the largest instrument set.
        Ties go to the category that sorts first by name.
        """
        all_assets = self._match(f"{title} {content}")

        analysis = AssetAnalysis(all_assets=all_assets)
        max_mentions = 0
        for category, codes in all_assets.items():
            if len(codes) > max_mentions:
                max_mentions = len(codes)
                analysis.primary_category = category
                analysis.primary_assets = list(codes)
        return analysis
