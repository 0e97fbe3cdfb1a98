"""Tests for the instrument taxonomy."""

import json

import pytest

from marketfeed.analysis.taxonomy import DEFAULT_TAXONOMY, Taxonomy


class TestTaxonomy:
    def test_categories_are_sorted_by_name(self) -> None:
        taxonomy = Taxonomy({"stocks": {"AAPL": ["apple"]}, "crypto": {"BTCUSD": ["btc"]}})

        assert taxonomy.categories() == ["crypto", "stocks"]

    def test_instruments_keep_declared_order(self) -> None:
        taxonomy = Taxonomy({"forex": {"USDJPY": ["usdjpy"], "EURUSD": ["eurusd"]}})

        assert taxonomy.instruments("forex") == ["USDJPY", "EURUSD"]

    def test_keywords_are_lower_cased(self) -> None:
        taxonomy = Taxonomy({"forex": {"EURUSD": ["EUR/USD", "Euro Dollar"]}})

        assert taxonomy.keywords("forex", "EURUSD") == ("eur/usd", "euro dollar")

    def test_unknown_category_is_empty(self) -> None:
        taxonomy = Taxonomy(DEFAULT_TAXONOMY)

        assert taxonomy.instruments("bonds") == []
        assert taxonomy.keywords("bonds", "UST10Y") == ()
        assert "bonds" not in taxonomy

    def test_table_is_read_only(self) -> None:
        taxonomy = Taxonomy({"forex": {"EURUSD": ["eurusd"]}})

        with pytest.raises(TypeError):
            taxonomy._table["forex"]["GBPUSD"] = ("gbpusd",)

    def test_source_mapping_changes_do_not_leak(self) -> None:
        source = {"forex": {"EURUSD": ["eurusd"]}}
        taxonomy = Taxonomy(source)

        source["forex"]["EURUSD"].append("fiber")
        source["crypto"] = {"BTCUSD": ["btc"]}

        assert taxonomy.keywords("forex", "EURUSD") == ("eurusd",)
        assert "crypto" not in taxonomy

    def test_default_table_covers_four_markets(self) -> None:
        taxonomy = Taxonomy(DEFAULT_TAXONOMY)

        assert taxonomy.categories() == ["commodities", "crypto", "forex", "stocks"]
        assert "EURUSD" in taxonomy.instruments("forex")
        assert "GOLD" in taxonomy.instruments("commodities")

    def test_catalog_lists_assets_and_total(self) -> None:
        taxonomy = Taxonomy({"forex": {"EURUSD": ["eurusd"], "GBPUSD": ["cable"]}, "crypto": {"BTCUSD": ["btc"]}})

        catalog = taxonomy.catalog()

        assert catalog["categories"] == [
            {"category": "crypto", "assets": ["BTCUSD"]},
            {"category": "forex", "assets": ["EURUSD", "GBPUSD"]},
        ]
        assert catalog["total_assets"] == 3

    def test_from_json(self, tmp_path) -> None:
        path = tmp_path / "taxonomy.json"
        path.write_text(json.dumps({"metals": {"SILVER": ["Silver", "xagusd"]}}), encoding="utf-8")

        taxonomy = Taxonomy.from_json(path)

        assert taxonomy.categories() == ["metals"]
        assert taxonomy.keywords("metals", "SILVER") == ("silver", "xagusd")

    def test_from_json_rejects_non_object(self, tmp_path) -> None:
        path = tmp_path / "taxonomy.json"
        path.write_text("[1, 2, 3]", encoding="utf-8")

        with pytest.raises(ValueError):
            Taxonomy.from_json(path)
