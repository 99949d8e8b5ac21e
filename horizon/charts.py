"""Chart data routes: price series with summary metadata, comparisons, market summary,
watchlist insights and per-symbol analysis.
"""
import asyncio
import json
import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

import httpx
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from .deps import get_model, get_tool_context
from .llm import ModelClient
from .protocol import CompareRequest, PersonalizedInsightsRequest
from .tools.builtin.quote import ALPHA_VANTAGE_URL
from .tools.registry import ToolContext

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/charts")

MAX_CHART_POINTS = 100
DEFAULT_MARKET_SYMBOLS = ["AAPL", "GOOGL", "MSFT", "AMZN", "TSLA", "META", "NVDA", "NFLX"]

# timespan -> (function, response key)
TIMESPANS = {
    "minute": ("TIME_SERIES_INTRADAY", "Time Series (5min)"),
    "day": ("TIME_SERIES_DAILY", "Time Series (Daily)"),
    "week": ("TIME_SERIES_WEEKLY", "Weekly Time Series"),
    "month": ("TIME_SERIES_MONTHLY", "Monthly Time Series"),
}

PRESETS = {
    "timeRanges": [
        {"label": "1 Day", "value": "1D", "timespan": "minute", "days": 1},
        {"label": "1 Week", "value": "1W", "timespan": "hour", "days": 7},
        {"label": "1 Month", "value": "1M", "timespan": "day", "days": 30},
        {"label": "3 Months", "value": "3M", "timespan": "day", "days": 90},
        {"label": "1 Year", "value": "1Y", "timespan": "week", "days": 365},
        {"label": "5 Years", "value": "5Y", "timespan": "month", "days": 1825},
    ],
    "chartTypes": [
        {"label": "Line Chart", "value": "line", "icon": "TrendingUp"},
        {"label": "Candlestick", "value": "candlestick", "icon": "BarChart3"},
        {"label": "Area Chart", "value": "area", "icon": "Area"},
        {"label": "Volume Chart", "value": "volume", "icon": "BarChart"},
    ],
    "indicators": [
        {"label": "Moving Average (20)", "value": "ma20", "type": "overlay"},
        {"label": "Moving Average (50)", "value": "ma50", "type": "overlay"},
        {"label": "Bollinger Bands", "value": "bb", "type": "overlay"},
        {"label": "RSI", "value": "rsi", "type": "oscillator"},
        {"label": "MACD", "value": "macd", "type": "oscillator"},
    ],
    "colorSchemes": [
        {"name": "Default", "primary": "#3B82F6", "secondary": "#10B981", "background": "#F8FAFC"},
        {"name": "Dark", "primary": "#60A5FA", "secondary": "#34D399", "background": "#1F2937"},
        {"name": "Sunset", "primary": "#F59E0B", "secondary": "#EF4444", "background": "#FEF3C7"},
        {"name": "Ocean", "primary": "#0EA5E9", "secondary": "#06B6D4", "background": "#E0F7FA"},
    ],
}


class ChartDataError(Exception):
    pass


def calculate_metadata(points: List[dict]) -> dict:
    if not points:
        return {}
    prices = [p["close"] for p in points]
    volumes = [p["volume"] for p in points]
    first, last = prices[0], prices[-1]
    change = last - first
    change_percent = (change / first) * 100 if first else 0.0
    return {
        "totalDataPoints": len(points),
        "priceRange": {
            "min": min(prices),
            "max": max(prices),
            "current": last,
            "change": round(change, 2),
            "changePercent": round(change_percent, 2),
        },
        "volumeRange": {
            "min": min(volumes),
            "max": max(volumes),
            "average": sum(volumes) / len(volumes),
        },
        "timeRange": {"start": points[0]["date"], "end": points[-1]["date"]},
    }


def format_chart_data(raw: dict, symbol: str, timespan: str, since: Optional[str] = None) -> dict:
    """Normalize an Alpha Vantage series; ``since`` (YYYY-MM-DD) drops older points."""
    _, series_key = TIMESPANS[timespan]
    series = raw.get(series_key) if isinstance(raw, dict) else None
    if not series:
        return {"symbol": symbol, "data": [], "metadata": {}}

    points = []
    for day, values in series.items():
        if since and day[:10] < since:
            continue
        close = float(values["4. close"])
        points.append({
            "date": day,
            "open": float(values["1. open"]),
            "high": float(values["2. high"]),
            "low": float(values["3. low"]),
            "close": close,
            "volume": int(values.get("5. volume", 0)),
            "price": close,
        })
    points.sort(key=lambda p: p["date"])
    points = points[-MAX_CHART_POINTS:]
    return {"symbol": symbol, "data": points, "metadata": calculate_metadata(points)}


async def get_stock_chart(ctx: ToolContext, symbol: str, timespan: str = "day",
                          days: Optional[int] = None) -> dict:
    if timespan not in TIMESPANS:
        # Unknown timespans (e.g. the "hour" preset) fall back to the daily series
        logger.info(f"Timespan {timespan!r} has no series of its own, using daily")
        timespan = "day"
    api_key = ctx.settings.alpha_vantage_api_key
    if not api_key:
        raise ChartDataError("Alpha Vantage API key not found.")

    function_name, _ = TIMESPANS[timespan]
    params = {"function": function_name, "symbol": symbol, "apikey": api_key, "outputsize": "full"}
    if timespan == "minute":
        params["interval"] = "5min"
    since = (ctx.clock() - timedelta(days=days)).isoformat() if days else None

    try:
        resp = await ctx.http.get(ALPHA_VANTAGE_URL, params=params)
        resp.raise_for_status()
        raw = resp.json()
        return format_chart_data(raw, symbol, timespan, since=since)
    except (httpx.HTTPError, ValueError, KeyError, TypeError, AttributeError) as e:
        logger.error(f"Error fetching chart data for {symbol}: {e}")
        raise ChartDataError("Failed to fetch stock data") from e


async def get_multiple_charts(ctx: ToolContext, symbols: List[str], timespan: str = "day",
                              days: Optional[int] = None) -> List[dict]:
    """Fetch several symbols concurrently; failed symbols are dropped."""
    results = await asyncio.gather(
        *(get_stock_chart(ctx, s, timespan, days=days) for s in symbols),
        return_exceptions=True,
    )
    charts = []
    for symbol, r in zip(symbols, results):
        if isinstance(r, Exception):
            logger.warning(f"Chart for {symbol} skipped: {r}")
            continue
        charts.append(r)
    return charts

def _change_percent(chart: dict) -> float:
    return chart.get("metadata", {}).get("priceRange", {}).get("changePercent", 0.0)


def _volume_trend(points: List[dict]) -> str:
    if len(points) < 2:
        return "neutral"
    recent = points[-5:]
    earlier = points[:5]
    recent_avg = sum(p["volume"] for p in recent) / len(recent)
    earlier_avg = sum(p["volume"] for p in earlier) / len(earlier)
    if not earlier_avg:
        return "neutral"
    change = (recent_avg - earlier_avg) / earlier_avg * 100
    if change > 20:
        return "increasing"
    if change < -20:
        return "decreasing"
    return "stable"


def analyze_market_trends(charts: List[dict]) -> dict:
    trends = [
        {
            "symbol": c["symbol"],
            "trend": "bullish" if _change_percent(c) > 0 else "bearish",
            "strength": abs(_change_percent(c)),
            "volume_trend": _volume_trend(c["data"]),
        }
        for c in charts
    ]
    bullish = sum(1 for t in trends if t["trend"] == "bullish")
    bearish = len(trends) - bullish
    if bullish > bearish * 1.5:
        overall = "bullish"
    elif bearish > bullish * 1.5:
        overall = "bearish"
    else:
        overall = "neutral"
    return {"overall_sentiment": overall, "individual_trends": trends}


def top_performers(charts: List[dict], limit: int = 5) -> dict:
    gainers = sorted((c for c in charts if _change_percent(c) > 0), key=_change_percent, reverse=True)
    losers = sorted((c for c in charts if _change_percent(c) < 0), key=_change_percent)
    return {"gainers": gainers[:limit], "losers": losers[:limit]}


def movement_insights(charts: List[dict]) -> List[dict]:
    insights = []
    for c in charts:
        pct = _change_percent(c)
        if abs(pct) > 5:
            insights.append({
                "type": "significant_movement",
                "symbol": c["symbol"],
                "message": (f"{c['symbol']} has moved {'up' if pct > 0 else 'down'} by "
                            f"{abs(pct):.2f}% in the recent period."),
                "severity": "high" if abs(pct) > 10 else "medium",
            })
    return insights


async def ai_market_insight(model: ModelClient, trends: dict, performers: dict) -> Optional[str]:
    """Short narrative from the model; None if the model call fails."""
    summary = {
        "trends": trends,
        "gainers": [{"symbol": c["symbol"], "changePercent": _change_percent(c)} for c in performers["gainers"]],
        "losers": [{"symbol": c["symbol"], "changePercent": _change_percent(c)} for c in performers["losers"]],
    }
    prompt = (
        "As a financial market analyst, give a concise overview of current market conditions "
        "from this data: overall sentiment with a one-line justification, key drivers, and a "
        "short-term outlook.\n\n" + json.dumps(summary, indent=2)
    )
    try:
        return await model.complete(prompt) or None
    except Exception as e:
        logger.warning(f"AI market insight failed: {e}")
        return None


ANALYSIS_DAYS = 30

# "1. **Heading**: text" lines from a numbered model answer
_SECTION_RE = re.compile(r"^\s*\d+\.\s+\*\*(?P<heading>[^*]+)\*\*:?\s*(?P<rest>.*)$")
_PRICE_RE = re.compile(r"\$(\d+(?:\.\d{2})?)")

INSIGHT_SECTIONS = {
    "Portfolio Performance Summary": "portfolioSummary",
    "Key Risks and Opportunities": "risksAndOpportunities",
    "Personalized Recommendations": "recommendations",
    "Market Outlook Impact": "marketOutlook",
}

ANALYSIS_SECTIONS = {
    "Current Performance Assessment": "currentPerformance",
    "Technical Analysis Summary": "technicalAnalysis",
    "Fundamental Factors": "fundamentalFactors",
    "News Impact Analysis": "newsImpact",
    "Risk-Reward Assessment": "riskReward",
    "Short-term Price Target (Optional)": "priceTarget",
}


def parse_sections(content: str, headings: Dict[str, str]) -> Dict[str, str]:
    """Split a numbered, bold-headed answer into named sections.

    Text before the first known heading is ignored; unknown headings continue
    the current section. Every key in ``headings`` is present in the result.
    """
    sections = {key: "" for key in headings.values()}
    current = None
    for line in content.splitlines():
        match = _SECTION_RE.match(line)
        key = headings.get(match.group("heading").strip().rstrip(":")) if match else None
        if key:
            current = key
            sections[key] = match.group("rest").strip()
        elif current:
            sections[current] += "\n" + line.strip()
    return {k: v.strip() for k, v in sections.items()}


def extract_price_target(content: str) -> Optional[float]:
    match = _PRICE_RE.search(content)
    return float(match.group(1)) if match else None


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def parse_stock_analysis(content: str) -> dict:
    analysis: Dict[str, object] = dict(parse_sections(content, ANALYSIS_SECTIONS))
    if not analysis["priceTarget"]:
        analysis["priceTarget"] = extract_price_target(content)
    analysis["fullResponse"] = content
    analysis["timestamp"] = _timestamp()
    return analysis


def parse_personalized_insights(content: str) -> dict:
    insights: Dict[str, object] = dict(parse_sections(content, INSIGHT_SECTIONS))
    insights["fullResponse"] = content
    insights["timestamp"] = _timestamp()
    return insights


def watchlist_context(charts: List[dict]) -> str:
    lines = []
    for c in charts:
        price_range = c.get("metadata", {}).get("priceRange")
        if not price_range:
            continue
        lines.append(f"{c['symbol']}: {price_range['changePercent']:.2f}% change, "
                     f"Current: ${price_range['current']:.2f}")
    return ", ".join(lines) or "No detailed market data available."


async def personalized_insights(model: ModelClient, watchlist: List[str], charts: List[dict]) -> dict:
    prompt = (
        "As an experienced financial analyst, give concise, actionable, personalized insights "
        "for a user's stock watchlist based on its recent performance.\n\n"
        f"User's Watchlist: {', '.join(watchlist)}\n\n"
        f"Recent Market Performance (last {ANALYSIS_DAYS} days):\n{watchlist_context(charts)}\n\n"
        "Structure the answer into these sections:\n"
        "1. **Portfolio Performance Summary**: 2-3 sentences on how the watchlist performed, "
        "noting significant movers.\n"
        "2. **Key Risks and Opportunities**: 3-4 bullet points.\n"
        "3. **Personalized Recommendations**: 2-3 specific, actionable recommendations.\n"
        "4. **Market Outlook Impact**: 2-3 sentences on how the market outlook may affect these stocks.\n\n"
        "Keep it professional, data-driven and easy for a non-expert to follow."
    )
    return parse_personalized_insights(await model.complete(prompt))


async def stock_analysis(model: ModelClient, symbol: str, chart_data: dict) -> dict:
    prompt = (
        f"Act as a senior stock analyst and give a detailed analysis of {symbol} based on its "
        "recent performance.\n\n"
        f"Stock Performance Data (Metadata):\n{json.dumps(chart_data.get('metadata', {}), indent=2)}\n\n"
        "Provide:\n"
        f"1. **Current Performance Assessment**: recent price and volume movements of {symbol}.\n"
        "2. **Technical Analysis Summary**: a brief technical outlook from change % and trends.\n"
        "3. **Fundamental Factors**: industry position, growth prospects.\n"
        f"4. **News Impact Analysis**: how recent news might affect {symbol}.\n"
        f"5. **Risk-Reward Assessment**: the risks and rewards of investing in {symbol} now.\n"
        "6. **Short-term Price Target (Optional)**: a realistic short-term target, or why one "
        "cannot be given.\n\n"
        "Be specific with numbers, percentages and timeframes where possible."
    )
    return parse_stock_analysis(await model.complete(prompt))


def _failure(message: str, status_code: int = 500) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


@router.get("/stock/{symbol}")
async def stock_chart(symbol: str, timespan: str = "day", ctx: ToolContext = Depends(get_tool_context)):
    try:
        data = await get_stock_chart(ctx, symbol, timespan)
    except ChartDataError as e:
        return _failure(str(e))
    return {"success": True, "data": data}


@router.post("/compare")
async def compare(req: CompareRequest, ctx: ToolContext = Depends(get_tool_context)):
    if not req.symbols:
        return _failure("Symbols array is required", status_code=400)
    charts = await get_multiple_charts(ctx, req.symbols, req.timespan)
    if not charts:
        return _failure("Failed to fetch stock data")
    return {
        "success": True,
        "data": charts,
        "comparison": {
            "bestPerformer": max(charts, key=_change_percent),
            "worstPerformer": min(charts, key=_change_percent),
        },
    }


@router.get("/market-summary")
async def market_summary(symbols: Optional[str] = None,
                         ctx: ToolContext = Depends(get_tool_context),
                         model: ModelClient = Depends(get_model)):
    stock_symbols = [s.strip() for s in symbols.split(",") if s.strip()] if symbols else DEFAULT_MARKET_SYMBOLS
    charts = await get_multiple_charts(ctx, stock_symbols)
    if not charts:
        return _failure("Failed to generate market summary")

    trends = analyze_market_trends(charts)
    performers = top_performers(charts)
    data: Dict[str, object] = {
        "summary": charts,
        "marketTrends": trends,
        "topPerformers": performers,
        "insights": movement_insights(charts),
        "aiInsights": await ai_market_insight(model, trends, performers),
    }
    return {"success": True, "data": data}


@router.post("/personalized-insights")
async def watchlist_insights(req: PersonalizedInsightsRequest,
                             ctx: ToolContext = Depends(get_tool_context),
                             model: ModelClient = Depends(get_model)):
    if not isinstance(req.watchlist, list):
        return _failure("Watchlist array is required", status_code=400)
    watchlist = [str(s).strip() for s in req.watchlist if str(s).strip()]

    charts = await get_multiple_charts(ctx, watchlist, days=ANALYSIS_DAYS)
    try:
        insights = await personalized_insights(model, watchlist, charts)
    except Exception as e:
        logger.error(f"Personalized insights failed: {e}", exc_info=True)
        return _failure(f"Failed to generate personalized insights: {e}")
    return {
        "success": True,
        "data": {"watchlist": watchlist, "marketData": charts, "insights": insights, "userId": req.user_id},
    }


@router.get("/analysis/{symbol}")
async def analysis(symbol: str,
                   ctx: ToolContext = Depends(get_tool_context),
                   model: ModelClient = Depends(get_model)):
    try:
        chart_data = await get_stock_chart(ctx, symbol, "day", days=ANALYSIS_DAYS)
    except ChartDataError as e:
        return _failure(str(e))
    try:
        result = await stock_analysis(model, symbol, chart_data)
    except Exception as e:
        logger.error(f"Stock analysis for {symbol} failed: {e}", exc_info=True)
        return _failure(f"Failed to generate stock analysis: {e}")
    return {"success": True, "data": {"symbol": symbol, "stockData": chart_data, "analysis": result}}


@router.get("/presets")
async def presets():
    return {"success": True, "data": PRESETS}
