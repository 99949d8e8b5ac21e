"""Stock quote tool: current price via Alpha Vantage GLOBAL_QUOTE."""
import logging

import httpx

from ..registry import register_tool, ToolContext, ToolOutcome, ToolParam

logger = logging.getLogger(__name__)

ALPHA_VANTAGE_URL = "https://www.alphavantage.co/query"


def _parse_quote(data: dict) -> dict:
    return {
        "ticker": data["01. symbol"],
        "price": float(data["05. price"]),
        "open": float(data["02. open"]),
        "high": float(data["03. high"]),
        "low": float(data["04. low"]),
        "volume": int(data["06. volume"]),
        "latest_trading_day": data["07. latest trading day"],
        "previous_close": float(data["08. previous close"]),
        "change": float(data["09. change"]),
        "change_percent": float(str(data["10. change percent"]).rstrip("%")),
    }


@register_tool(
    "get_stock_data",
    description=(
        "Retrieves the current stock quote for a given US stock or ETF ticker symbol "
        "(e.g., AAPL for Apple, SPY for S&P 500 ETF)."
    ),
    params=[
        ToolParam("ticker", description="The stock or ETF ticker symbol (e.g., MSFT, QQQ)."),
    ],
)
async def get_stock_data(ticker: str, ctx: ToolContext, **kwargs) -> ToolOutcome:
    api_key = ctx.settings.alpha_vantage_api_key
    if not api_key:
        logger.error("[Alpha Vantage] API key not set.")
        return ToolOutcome.fail("Alpha Vantage API key not found.", detail="ALPHA_VANTAGE_API_KEY is empty")

    logger.info(f"[Stock API] Fetching stock data for: {ticker}")
    try:
        resp = await ctx.http.get(
            ALPHA_VANTAGE_URL,
            params={"function": "GLOBAL_QUOTE", "symbol": ticker, "apikey": api_key},
        )
        resp.raise_for_status()
        payload = resp.json()
    except (httpx.HTTPError, ValueError) as e:
        logger.error(f"[Stock API] Error fetching stock data: {e}")
        return ToolOutcome.fail("Failed to fetch stock data.", detail=str(e))

    data = payload.get("Global Quote") if isinstance(payload, dict) else None
    if not data:
        logger.warning(f"[Stock API] No data found for ticker: {ticker}. Response: {payload}")
        return ToolOutcome.fail(
            f"No stock data found for {ticker}. It might be an invalid ticker or a rate limit issue.",
            detail=str(payload)[:200],
        )

    try:
        stock_info = _parse_quote(data)
    except (KeyError, TypeError, ValueError) as e:
        logger.warning(f"[Stock API] Malformed quote for {ticker}: {e}")
        return ToolOutcome.fail(f"Received malformed stock data for {ticker}.", detail=str(e))

    logger.info(f"[Stock API] Fetched data for {stock_info['ticker']}: Price {stock_info['price']}")
    return ToolOutcome.ok({"stock_data": stock_info})
