"""Historical price tool: OHLCV series via Alpha Vantage adjusted time series."""
import logging

import httpx

from ..registry import register_tool, ToolContext, ToolOutcome, ToolParam
from .quote import ALPHA_VANTAGE_URL

logger = logging.getLogger(__name__)

# Index names have no tradable symbol on Alpha Vantage; query a tracking ETF instead.
INDEX_PROXIES = {
    "NASDAQ": "QQQ",
    "^IXIC": "QQQ",
    "NASDAQ 100": "QQQ",
    "COMPQ": "QQQ",
    "S&P 500": "SPY",
    "SP500": "SPY",
    "^GSPC": "SPY",
    "DOW JONES": "DIA",
    "DOW": "DIA",
    "^DJI": "DIA",
}

# period -> (Alpha Vantage function, response key)
PERIODS = {
    "daily": ("TIME_SERIES_DAILY_ADJUSTED", "Time Series (Daily)"),
    "weekly": ("TIME_SERIES_WEEKLY_ADJUSTED", "Weekly Adjusted Time Series"),
    "monthly": ("TIME_SERIES_MONTHLY_ADJUSTED", "Monthly Adjusted Time Series"),
}


def resolve_ticker(ticker: str) -> str:
    """Map an index alias to its proxy ETF; otherwise just upper-case."""
    symbol = " ".join(ticker.split()).upper()
    return INDEX_PROXIES.get(symbol, symbol)


def parse_series(series: dict) -> list:
    """Convert an Alpha Vantage time-series mapping into date-ascending points."""
    points = []
    for day, values in series.items():
        close = float(values["4. close"])
        points.append({
            "date": day,
            "open": float(values["1. open"]),
            "high": float(values["2. high"]),
            "low": float(values["3. low"]),
            "close": close,
            "adjustedClose": float(values.get("5. adjusted close", close)),
            "volume": int(values.get("6. volume", values.get("5. volume", 0))),
        })
    points.sort(key=lambda p: p["date"])
    return points


@register_tool(
    "get_historical_stock_data",
    description=(
        "Fetches historical daily, weekly, or monthly stock price data (Open, High, Low, Close, "
        "Volume, Adjusted Close) for a given US stock or ETF ticker symbol. Use this when the user "
        "asks for a 'chart', 'graph', 'historical data', 'performance' or 'trend' for a US stock, "
        "ETF, or a major index like NASDAQ (QQQ), S&P 500 (SPY) or Dow Jones (DIA). "
        "Defaults to 'daily' if no period is given."
    ),
    params=[
        ToolParam("ticker", description=(
            "The US stock, ETF, or index-tracking ETF ticker symbol (e.g., AAPL, MSFT, QQQ, SPY, DIA)."
        )),
        ToolParam("period", description="The time period for historical data. Defaults to 'daily'.",
                  required=False, enum=("daily", "weekly", "monthly"), default="daily"),
    ],
    chart_field="historical_data",
)
async def get_historical_stock_data(ticker: str, ctx: ToolContext, period: str = "daily",
                                    **kwargs) -> ToolOutcome:
    period = (period or "daily").lower()
    if period not in PERIODS:
        return ToolOutcome.fail(
            "Invalid period specified for historical stock data. Choose 'daily', 'weekly', or 'monthly'.",
            detail=f"period={period!r}",
        )

    api_key = ctx.settings.alpha_vantage_api_key
    if not api_key:
        logger.error("[Alpha Vantage] API key not set.")
        return ToolOutcome.fail("Alpha Vantage API key not found.", detail="ALPHA_VANTAGE_API_KEY is empty")

    symbol = resolve_ticker(ticker)
    function_name, series_key = PERIODS[period]
    logger.info(f"[Stock API] Fetching {period} historical data for: {symbol}")

    try:
        resp = await ctx.http.get(
            ALPHA_VANTAGE_URL,
            params={
                "function": function_name,
                "symbol": symbol,
                "apikey": api_key,
                "outputsize": "full",
            },
        )
        resp.raise_for_status()
        payload = resp.json()
    except (httpx.HTTPError, ValueError) as e:
        logger.error(f"[Stock API] Error fetching {period} historical data for {symbol}: {e}")
        return ToolOutcome.fail(f"Failed to fetch {period} historical data for {symbol}.", detail=str(e))

    if not isinstance(payload, dict):
        return ToolOutcome.fail(f"No historical {period} data found for {symbol}.", detail=str(payload)[:200])

    series = payload.get(series_key)
    if not series or not isinstance(series, dict):
        logger.warning(f"[Stock API] No historical {period} data found for ticker: {symbol}")
        if payload.get("Error Message"):
            return ToolOutcome.fail(
                f"Alpha Vantage Error for {symbol}: {payload['Error Message']}",
                detail=payload["Error Message"],
            )
        return ToolOutcome.fail(
            f"No historical {period} data found for {symbol}. It might be an invalid ticker, "
            f"a rate limit issue, or the data is not available.",
            detail=str(payload.get("Note") or payload.get("Information") or payload)[:200],
        )

    try:
        points = parse_series(series)
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        logger.warning(f"[Stock API] Malformed {period} series for {symbol}: {e}")
        return ToolOutcome.fail(f"Received malformed historical data for {symbol}.", detail=str(e))

    logger.info(f"[Stock API] Fetched {len(points)} historical data points for {symbol}.")
    return ToolOutcome.ok(
        {"ticker": symbol, "historical_data": points, "source": "Alpha Vantage"},
        chart_series=points,
    )
