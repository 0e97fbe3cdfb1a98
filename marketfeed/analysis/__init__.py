"""
Analysis package: instrument taxonomy, asset classifier and statistics rollups.
"""
from marketfeed.analysis.asset_classifier import AssetAnalysis, AssetClassifier
from marketfeed.analysis.statistics import StatisticsAggregator, StatisticsResult
from marketfeed.analysis.taxonomy import DEFAULT_TAXONOMY, Taxonomy, get_taxonomy

__all__ = [
    "AssetAnalysis",
    "AssetClassifier",
    "DEFAULT_TAXONOMY",
    "StatisticsAggregator",
    "StatisticsResult",
    "Taxonomy",
    "get_taxonomy",
]
