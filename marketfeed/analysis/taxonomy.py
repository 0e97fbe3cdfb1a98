"""
Financial-instrument taxonomy.

Maps each market category to its instrument codes and the lower-case
keywords that identify them in free text. The table is frozen once built;
categories are always iterated in lexicographic order so that any logic
depending on category order is deterministic.
"""

from __future__ import annotations

import json
from collections.abc import Iterator, Mapping
from pathlib import Path
from types import MappingProxyType
from typing import Any

from marketfeed.utils.config import get_settings
from marketfeed.utils.logger import get_logger

logger = get_logger(__name__)

# category -> instrument code -> keywords
DEFAULT_TAXONOMY: dict[str, dict[str, list[str]]] = {
    "forex": {
        "EURUSD": ["eurusd", "eur/usd", "euro dollar", "euro usd", "eur usd"],
        "GBPUSD": ["gbpusd", "gbp/usd", "pound dollar", "cable", "gbp usd", "pound usd"],
        "USDJPY": ["usdjpy", "usd/jpy", "dollar yen", "usd jpy", "dollar jpy"],
        "AUDUSD": ["audusd", "aud/usd", "aussie dollar", "aud usd", "aussie usd"],
        "USDCAD": ["usdcad", "usd/cad", "dollar cad", "usd cad", "loonie"],
        "USDCHF": ["usdchf", "usd/chf", "dollar swiss", "usd chf", "swissy"],
        "NZDUSD": ["nzdusd", "nzd/usd", "kiwi dollar", "nzd usd", "kiwi usd"],
        "EURGBP": ["eurgbp", "eur/gbp", "euro pound", "eur gbp"],
        "EURJPY": ["eurjpy", "eur/jpy", "euro yen", "eur jpy"],
        "GBPJPY": ["gbpjpy", "gbp/jpy", "pound yen", "gbp jpy"],
        "CHFJPY": ["chfjpy", "chf/jpy", "swiss yen", "chf jpy"],
        "CADJPY": ["cadjpy", "cad/jpy", "cad yen", "cad jpy"],
        "AUDJPY": ["audjpy", "aud/jpy", "aussie yen", "aud jpy"],
        "AUDCAD": ["audcad", "aud/cad", "aussie cad", "aud cad"],
        "AUDCHF": ["audchf", "aud/chf", "aussie swiss", "aud chf"],
        "CADCHF": ["cadchf", "cad/chf", "cad swiss", "cad chf"],
        "EURCHF": ["eurchf", "eur/chf", "euro swiss", "eur chf"],
        "EURNZD": ["eurnzd", "eur/nzd", "euro kiwi", "eur nzd"],
        "EURAUD": ["euraud", "eur/aud", "euro aussie", "eur aud"],
        "EURCAD": ["eurcad", "eur/cad", "euro cad", "eur cad"],
        "GBPAUD": ["gbpaud", "gbp/aud", "pound aussie", "gbp aud"],
        "GBPCAD": ["gbpcad", "gbp/cad", "pound cad", "gbp cad"],
        "GBPCHF": ["gbpchf", "gbp/chf", "pound swiss", "gbp chf"],
        "GBPNZD": ["gbpnzd", "gbp/nzd", "pound kiwi", "gbp nzd"],
        "NZDCAD": ["nzdcad", "nzd/cad", "kiwi cad", "nzd cad"],
        "NZDCHF": ["nzdchf", "nzd/chf", "kiwi swiss", "nzd chf"],
        "NZDJPY": ["nzdjpy", "nzd/jpy", "kiwi yen", "nzd jpy"],
    },
    "crypto": {
        "BTCUSD": ["bitcoin", "btc", "btcusd", "btc/usd", "btc usd"],
        "ETHUSD": ["ethereum", "eth", "ethusd", "eth/usd", "eth usd"],
        "ADAUSD": ["cardano", "ada", "adausd", "ada/usd", "ada usd"],
        "DOTUSD": ["polkadot", "dot", "dotusd", "dot/usd", "dot usd"],
        "LINKUSD": ["chainlink", "link", "linkusd", "link/usd", "link usd"],
        "XRPUSD": ["ripple", "xrp", "xrpusd", "xrp/usd", "xrp usd"],
        "LTCUSD": ["litecoin", "ltc", "ltcusd", "ltc/usd", "ltc usd"],
        "BCHUSD": ["bitcoin cash", "bch", "bchusd", "bch/usd", "bch usd"],
        "BNBUSD": ["binance coin", "bnb", "bnbusd", "bnb/usd", "bnb usd"],
        "SOLUSD": ["solana", "sol", "solusd", "sol/usd", "sol usd"],
        "AVAXUSD": ["avalanche", "avax", "avaxusd", "avax/usd", "avax usd"],
        "MATICUSD": ["polygon", "matic", "maticusd", "matic/usd", "matic usd"],
        "ATOMUSD": ["cosmos", "atom", "atomusd", "atom/usd", "atom usd"],
        "ALGOUSD": ["algorand", "algo", "algousd", "algo/usd", "algo usd"],
        "DOGEUSD": ["dogecoin", "doge", "dogeusd", "doge/usd", "doge usd"],
        "SHIBUSD": ["shiba inu", "shib", "shibusd", "shib/usd", "shib usd"],
    },
    "commodities": {
        "GOLD": ["gold", "xauusd", "xau/usd", "xau usd", "gold futures"],
        "SILVER": ["silver", "xagusd", "xag/usd", "xag usd", "silver futures"],
        "OIL": ["crude oil", "oil", "wti", "brent", "crude", "petroleum"],
        "NATGAS": ["natural gas", "natgas", "henry hub", "gas futures"],
        "COPPER": ["copper", "copper futures"],
        "PLATINUM": ["platinum", "platinum futures"],
        "PALLADIUM": ["palladium", "palladium futures"],
        "WHEAT": ["wheat", "wheat futures"],
        "CORN": ["corn", "corn futures"],
        "SOYBEANS": ["soybeans", "soybean futures"],
        "COFFEE": ["coffee", "coffee futures"],
        "SUGAR": ["sugar", "sugar futures"],
        "COTTON": ["cotton", "cotton futures"],
        "LUMBER": ["lumber", "lumber futures"],
    },
    "stocks": {
        "SPX": ["s&p 500", "spx", "sp500", "s&p500", "spy"],
        "NDX": ["nasdaq", "ndx", "nasdaq 100", "qqq"],
        "DJI": ["dow jones", "dji", "dow", "dia"],
        "RUSSELL": ["russell 2000", "rut", "iwm"],
        "VIX": ["vix", "volatility index", "fear index", "volatility"],
        "TESLA": ["tesla", "tsla", "tesla stock"],
        "APPLE": ["apple", "aapl", "apple stock"],
        "MICROSOFT": ["microsoft", "msft", "microsoft stock"],
        "AMAZON": ["amazon", "amzn", "amazon stock"],
        "GOOGLE": ["google", "googl", "alphabet", "goog"],
        "META": ["meta", "facebook", "fb", "meta stock"],
        "NVIDIA": ["nvidia", "nvda", "nvidia stock"],
    },
}


class Taxonomy:
    """Immutable category -> instrument -> keywords lookup table.

    Categories iterate in lexicographic order; instruments keep the order
    in which they were declared. Keywords are stored lower-cased.
    """

    def __init__(self, mapping: Mapping[str, Mapping[str, list[str] | tuple[str, ...]]]) -> None:
        frozen: dict[str, Mapping[str, tuple[str, ...]]] = {}
        for category in sorted(mapping):
            instruments = {
                code: tuple(keyword.lower() for keyword in keywords)
                for code, keywords in mapping[category].items()
            }
            frozen[category] = MappingProxyType(instruments)
        self._table: Mapping[str, Mapping[str, tuple[str, ...]]] = MappingProxyType(frozen)

    @classmethod
    def from_json(cls, path: str | Path) -> Taxonomy:
        """Load a taxonomy from a JSON file shaped like ``DEFAULT_TAXONOMY``."""
        with open(path, encoding="utf-8") as f:
            data: dict[str, Any] = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"Taxonomy file must hold a JSON object: {path}")
        logger.info("Taxonomy loaded from %s (%d categories)", path, len(data))
        return cls(data)

    def categories(self) -> list[str]:
        return list(self._table)

    def instruments(self, category: str) -> list[str]:
        return list(self._table.get(category, {}))

    def keywords(self, category: str, instrument: str) -> tuple[str, ...]:
        return self._table.get(category, {}).get(instrument, ())

    def triples(self) -> Iterator[tuple[str, str, tuple[str, ...]]]:
        """Yield ``(category, instrument, keywords)`` in table order."""
        for category, instruments in self._table.items():
            for code, keywords in instruments.items():
                yield category, code, keywords

    def catalog(self) -> dict[str, Any]:
        """Asset listing: categories with their instrument codes and a total count."""
        categories = [
            {"category": category, "assets": self.instruments(category)}
            for category in self._table
        ]
        return {
            "categories": categories,
            "total_assets": sum(len(c["assets"]) for c in categories),
        }

    def __contains__(self, category: object) -> bool:
        return category in self._table

    def __len__(self) -> int:
        return len(self._table)


_taxonomy: Taxonomy | None = None


def get_taxonomy() -> Taxonomy:
    """Return the process-wide taxonomy, loaded once.

    Uses ``Settings.taxonomy_path`` when it is set, otherwise the built-in table.
    """
    global _taxonomy
    if _taxonomy is None:
        path = get_settings().taxonomy_path
        _taxonomy = Taxonomy.from_json(path) if path else Taxonomy(DEFAULT_TAXONOMY)
    return _taxonomy
