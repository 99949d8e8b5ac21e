"""Mock regional data tools: Bursa Malaysia announcements/prices, social sentiment,
local economic figures. No live integration exists for these; results are synthetic
but use the same ToolOutcome shape as the live tools.
"""
import calendar
import logging
import zlib
from datetime import date, timedelta

import numpy as np

from ..registry import register_tool, ToolContext, ToolOutcome, ToolParam

logger = logging.getLogger(__name__)

BURSA_SOURCE = "Bursa Malaysia Mock Data"
MOCK_POINTS = 30

ECONOMIC_FIGURES = {
    "inflation_rate": {"date": "May 2025", "value": "2.8%", "source": "Department of Statistics Malaysia Mock"},
    "gdp_growth": {"date": "Q1 2025", "value": "4.5%", "source": "Bank Negara Malaysia Mock"},
    "interest_rate": {"date": "June 2025", "value": "3.00%", "source": "Bank Negara Malaysia Mock"},
}


@register_tool(
    "get_bursa_announcements",
    description=(
        "Fetches recent official announcements and disclosures from Bursa Malaysia for a given "
        "stock symbol. Returns mock data for demonstration."
    ),
    params=[
        ToolParam("symbol", description="The Bursa Malaysia stock symbol (e.g., TNB, PETRONAS)."),
    ],
)
async def get_bursa_announcements(symbol: str, ctx: ToolContext, **kwargs) -> ToolOutcome:
    logger.info(f"[Mock API] Fetching Bursa announcements for: {symbol}")
    company = "TENAGA NASIONAL BHD"
    announcements = [
        {
            "date": "2025-06-14",
            "stock_code": symbol,
            "company_name": company,
            "category": "General Announcement",
            "title": f"Proposed Solar Farm Expansion by {symbol}",
            "details": (f"{symbol} has announced plans to invest in a new 50MW solar farm in Kedah, "
                        f"aiming to boost renewable energy capacity."),
            "source": BURSA_SOURCE,
        },
        {
            "date": "2025-06-12",
            "stock_code": symbol,
            "company_name": company,
            "category": "Financial Results",
            "title": f"Q1 2025 Earnings Report for {symbol}",
            "details": (f"{symbol} reported a 10% increase in net profit for Q1 2025, driven by strong "
                        f"electricity demand from industrial sectors. Revenue stood at RM 12.5 billion."),
            "source": BURSA_SOURCE,
        },
        {
            "date": "2025-06-11",
            "stock_code": symbol,
            "company_name": company,
            "category": "Corporate Action",
            "title": f"Dividend Declaration by {symbol}",
            "details": (f"{symbol} has declared a first interim dividend of 18 sen per share for the "
                        f"financial year ending December 31, 2025."),
            "source": BURSA_SOURCE,
        },
    ]
    return ToolOutcome.ok({"announcements": announcements})


@register_tool(
    "analyze_social_sentiment",
    description=(
        "Analyzes mock social media sentiment (e.g., Twitter, Reddit) for a given keyword or "
        "stock ticker. Returns mock data for demonstration."
    ),
    params=[
        ToolParam("keyword", description="The keyword or stock ticker to analyze sentiment for."),
    ],
)
async def analyze_social_sentiment(keyword: str, ctx: ToolContext, **kwargs) -> ToolOutcome:
    logger.info(f"[Mock API] Analyzing social sentiment for: {keyword}")
    return ToolOutcome.ok({
        "sentiment_data": {
            "keyword": keyword,
            "positive_mentions": 75,
            "negative_mentions": 15,
            "neutral_mentions": 10,
            "overall_sentiment": "mostly positive",
            "top_themes": ["expansion plans", "market confidence", "regulatory outlook"],
            "source": "Mock Social Media Analytics",
        }
    })


@register_tool(
    "get_economic_data",
    description=(
        "Retrieves mock economic indicators from sources like the Department of Statistics "
        "Malaysia or Bank Negara Malaysia."
    ),
    params=[
        ToolParam("indicator", description="The economic indicator to fetch.",
                  enum=tuple(ECONOMIC_FIGURES)),
    ],
)
async def get_economic_data(indicator: str, ctx: ToolContext, **kwargs) -> ToolOutcome:
    figure = ECONOMIC_FIGURES.get(indicator)
    if figure is None:
        logger.warning(f"[Mock API] No mock economic data for indicator: {indicator}")
        return ToolOutcome.fail(
            f"No mock economic data found for {indicator}.",
            detail=f"supported: {sorted(ECONOMIC_FIGURES)}",
        )
    return ToolOutcome.ok({"economic_data": dict(figure, indicator=indicator)})


def _months_back(day: date, months: int) -> date:
    total = day.year * 12 + (day.month - 1) - months
    year, month = divmod(total, 12)
    month += 1
    return date(year, month, min(day.day, calendar.monthrange(year, month)[1]))


def _step_back(today: date, period: str, i: int) -> date:
    if period == "weekly":
        return today - timedelta(weeks=i)
    if period == "monthly":
        return _months_back(today, i)
    return today - timedelta(days=i)


def mock_price_series(symbol: str, period: str, today: date, points: int = MOCK_POINTS) -> list:
    """Synthetic OHLCV series, reproducible for a given (symbol, period, today)."""
    rng = np.random.default_rng(zlib.crc32(f"{symbol.upper()}:{period}".encode()))
    idx = np.arange(points)
    base = 5.0 + np.sin(idx / 5) * 0.5 + np.cos(idx / 10) * 0.3
    opens = np.round(base + (rng.random(points) - 0.5) * 0.1, 2)
    closes = np.round(base + (rng.random(points) - 0.5) * 0.1, 2)
    highs = np.maximum(np.maximum(opens, closes), np.round(base + rng.random(points) * 0.2, 2))
    lows = np.minimum(np.minimum(opens, closes), np.round(base - rng.random(points) * 0.2, 2))
    volumes = (1_000_000 + rng.random(points) * 500_000).astype(int)

    series = []
    for i in range(points):
        series.append({
            "date": _step_back(today, period, i).isoformat(),
            "open": float(opens[i]),
            "high": float(highs[i]),
            "low": float(lows[i]),
            "close": float(closes[i]),
            "adjustedClose": float(closes[i]),
            "volume": int(volumes[i]),
        })
    series.reverse()  # oldest first
    return series


@register_tool(
    "get_bursa_historical_data",
    description=(
        "Fetches mock historical daily, weekly, or monthly stock price data (Open, High, Low, "
        "Close, Volume) for a given Bursa Malaysia stock symbol. Useful for charting trends. "
        "Returns mock data for demonstration."
    ),
    params=[
        ToolParam("symbol", description="The Bursa Malaysia stock symbol (e.g., TNB, PETRONAS)."),
        ToolParam("period", description="The time period for historical data. Defaults to 'daily'.",
                  required=False, enum=("daily", "weekly", "monthly"), default="daily"),
    ],
    chart_field="historical_data",
)
async def get_bursa_historical_data(symbol: str, ctx: ToolContext, period: str = "daily",
                                    **kwargs) -> ToolOutcome:
    period = (period or "daily").lower()
    if period not in ("daily", "weekly", "monthly"):
        return ToolOutcome.fail(
            "Invalid period specified for historical stock data. Choose 'daily', 'weekly', or 'monthly'.",
            detail=f"period={period!r}",
        )
    logger.info(f"[Mock API] Fetching Bursa historical data for: {symbol}, period: {period}")
    points = mock_price_series(symbol, period, ctx.clock())
    return ToolOutcome.ok(
        {"ticker": symbol, "historical_data": points, "source": BURSA_SOURCE},
        chart_series=points,
    )
