"""Market Data Service for DrawQuote.

Turns commodity price trends into a multiplicative price adjustment.

Architecture:
- MarketDataProvider: anything that can look up a CommodityPrice by name
- MockMarketDataProvider: fixed commodity table used for development
  (real commodity feeds such as LME or CRB are out of scope)
- MarketAdjustmentEngine: trend -> factor + human-readable reason

If material prices are up, the quotation goes up; if down, it goes down.
Missing market data is a normal branch and yields a neutral factor.
"""

from datetime import datetime, timedelta, timezone
from typing import Dict, List, Mapping, Optional, Protocol

import structlog

from models.drawing import normalize_name
from models.quote import CommodityPrice, MarketAdjustment

logger = structlog.get_logger()


# =============================================================================
# MOCK COMMODITY DATA
# =============================================================================

# price in USD/kg, trend in percent change from baseline
MOCK_COMMODITY_PRICES: Dict[str, Dict[str, float]] = {
    "aluminum": {"price": 3.5, "trend": 5.0},
    "steel": {"price": 1.2, "trend": -2.0},
    "copper": {"price": 8.5, "trend": 3.0},
    "titanium": {"price": 15.0, "trend": 0.0},
    "plastic": {"price": 0.8, "trend": 1.0},
}

MOCK_DATA_SOURCE = "MOCK_DATA"
PRICE_UNIT = "USD/kg"
DEFAULT_TREND_PRICE = 5.0

NO_DATA_REASON = "no market data available"
NO_DATA_SOURCE = "NONE"
ERROR_REASON = "error fetching market data"
ERROR_SOURCE = "ERROR"


def _format_percent(value: float) -> str:
    """Render a percentage without a trailing .0 (5.0 -> "5", 2.5 -> "2.5")."""
    return f"{value:g}"


class MarketDataProvider(Protocol):
    """Source of commodity prices keyed by material name."""

    def get_commodity_price(self, commodity: str) -> Optional[CommodityPrice]:
        ...


class MockMarketDataProvider:
    """In-memory commodity prices for development and tests."""

    def __init__(self, prices: Optional[Mapping[str, Mapping[str, float]]] = None):
        source = MOCK_COMMODITY_PRICES if prices is None else prices
        self._prices: Dict[str, Dict[str, float]] = {
            normalize_name(name): dict(entry) for name, entry in source.items()
        }

    def _to_price(self, commodity: str, entry: Mapping[str, float], when: datetime) -> CommodityPrice:
        return CommodityPrice(
            commodity=commodity,
            price=entry["price"],
            unit=PRICE_UNIT,
            price_date=when,
            source=MOCK_DATA_SOURCE,
            trend=entry.get("trend", 0.0),
        )

    def get_market_prices(self) -> List[CommodityPrice]:
        """Current price of every known commodity."""
        now = datetime.now(timezone.utc)
        return [self._to_price(name, entry, now) for name, entry in self._prices.items()]

    def get_commodity_price(self, commodity: str) -> Optional[CommodityPrice]:
        """Current price of one commodity, or None if unknown."""
        normalized = normalize_name(commodity)
        entry = self._prices.get(normalized)
        if entry is None:
            return None
        return self._to_price(normalized, entry, datetime.now(timezone.utc))

    def get_price_trend(self, commodity: str, days: int = 30) -> List[CommodityPrice]:
        """Daily price history, oldest first, ending today.

        Mock history repeats the current price; unknown commodities use a
        flat default price with zero trend.
        """
        normalized = normalize_name(commodity)
        entry = self._prices.get(normalized, {"price": DEFAULT_TREND_PRICE, "trend": 0.0})
        now = datetime.now(timezone.utc)
        return [
            self._to_price(normalized, entry, now - timedelta(days=offset))
            for offset in range(days, -1, -1)
        ]

    def update_price(self, commodity: str, price: float, trend: float) -> None:
        """Replace the mock price and trend for a commodity."""
        self._prices[normalize_name(commodity)] = {"price": price, "trend": trend}
        logger.info("mock_market_price_updated", commodity=commodity, price=price, trend=trend)


class MarketAdjustmentEngine:
    """Derives a MarketAdjustment from commodity trend data."""

    def __init__(self, provider: Optional[MarketDataProvider] = None):
        self.provider = provider or MockMarketDataProvider()

    def compute_adjustment(self, material: str) -> MarketAdjustment:
        """Calculate the market adjustment for a material. Never raises.

        Args:
            material: Material name from the validated specs.

        Returns:
            MarketAdjustment with factor = 1 + trend / 100.
        """
        try:
            market_price = self.provider.get_commodity_price(material)
        except Exception as e:
            logger.error("market_data_lookup_failed", material=material, error=str(e))
            return MarketAdjustment(factor=1.0, reason=ERROR_REASON, data_source=ERROR_SOURCE)

        if market_price is None:
            logger.info("market_data_missing", material=material)
            return MarketAdjustment(factor=1.0, reason=NO_DATA_REASON, data_source=NO_DATA_SOURCE)

        trend = market_price.trend or 0.0
        factor = 1 + trend / 100

        if trend > 0:
            reason = f"{market_price.commodity} prices up {_format_percent(trend)}% from baseline"
        elif trend < 0:
            reason = f"{market_price.commodity} prices down {_format_percent(abs(trend))}% from baseline"
        else:
            reason = f"{market_price.commodity} prices stable"

        return MarketAdjustment(factor=factor, reason=reason, data_source=market_price.source)
