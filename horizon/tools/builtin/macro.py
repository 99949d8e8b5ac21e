"""Macro-indicator tool: historical series via Trading Economics, with a TTL cache."""
import logging
from datetime import datetime
from typing import Optional
from urllib.parse import quote

import httpx

from ..registry import register_tool, ToolContext, ToolOutcome, ToolParam

logger = logging.getLogger(__name__)

TRADING_ECONOMICS_URL = "https://api.tradingeconomics.com/historical/country"
DEFAULT_COUNTRY = "united states"

# code -> (Trading Economics indicator, forced country or None)
INDICATORS = {
    "cpi": ("consumer price index", None),
    "ppi": ("producer price index", None),
    "interest_rate": ("interest rate", None),
    "fomc": ("interest rate", DEFAULT_COUNTRY),
    "gdp": ("gdp growth rate", None),
}

SUPPORTED_CODES = "'CPI', 'PPI', 'FOMC', 'interest_rate', or 'GDP'"


def _valid_date(value: Optional[str]) -> bool:
    if not value:
        return True
    try:
        datetime.strptime(value, "%Y-%m-%d")
    except (TypeError, ValueError):
        return False
    return True


def _parse_points(rows: list) -> list:
    points = []
    for row in rows:
        if not isinstance(row, dict):
            continue
        raw_date = row.get("DateTime") or row.get("Date")
        value = row.get("Value")
        if not raw_date or value is None:
            continue
        try:
            value = float(value)
        except (TypeError, ValueError):
            logger.warning(f"[Economic API] Skipping row with non-numeric value: {row}")
            continue
        points.append({
            "date": str(raw_date).split("T")[0],
            "value": value,
            "category": row.get("Category"),
            "unit": row.get("Unit"),
            "country": row.get("Country"),
            "title": row.get("Indicator") or row.get("Category"),
        })
    points.sort(key=lambda p: p["date"])
    return points


async def fetch_indicator_series(ctx: ToolContext, indicator_code: str,
                                 country_code: Optional[str] = None,
                                 start_date: Optional[str] = None,
                                 end_date: Optional[str] = None) -> ToolOutcome:
    """Shared by the model-facing tool and the direct /economic-data endpoint."""
    code = (indicator_code or "").strip().lower()
    if code not in INDICATORS:
        return ToolOutcome.fail(
            f"Unsupported economic indicator: {indicator_code}. Please specify {SUPPORTED_CODES}.",
            detail=f"supported codes: {sorted(INDICATORS)}",
        )
    indicator, forced_country = INDICATORS[code]
    country = (forced_country or country_code or DEFAULT_COUNTRY).strip().lower()

    if not _valid_date(start_date) or not _valid_date(end_date):
        return ToolOutcome.fail(
            "Dates must use the YYYY-MM-DD format.",
            detail=f"startDate={start_date!r}, endDate={end_date!r}",
        )

    cache_key = (code, country, start_date or "", end_date or "")
    cached = ctx.macro_cache.get(cache_key)
    if cached is not None:
        logger.info(f"[Economic API] Cache hit for {cache_key}")
        # Echo this caller's spelling of the code, not the one that filled the cache
        return ToolOutcome.ok(dict(cached.success, indicator=indicator_code),
                              chart_series=cached.chart_series)

    api_key = ctx.settings.trading_economics_api_key
    if not api_key:
        logger.error("[Trading Economics API] API key not set.")
        return ToolOutcome.fail("Trading Economics API key not found.",
                                detail="TRADING_ECONOMICS_API_KEY is empty")

    url = f"{TRADING_ECONOMICS_URL}/{quote(country)}/indicator/{quote(indicator)}"
    if start_date:
        url += f"/{start_date}"
        if end_date:
            url += f"/{end_date}"

    logger.info(f"[Economic API] Fetching economic data for {indicator_code} ({country})")
    try:
        resp = await ctx.http.get(url, params={"c": api_key, "f": "json"})
        resp.raise_for_status()
        rows = resp.json()
    except (httpx.HTTPError, ValueError) as e:
        logger.error(f"[Economic API] Error fetching economic data for {indicator_code}: {e}")
        return ToolOutcome.fail(f"Failed to fetch economic data for {indicator_code}.", detail=str(e))

    points = _parse_points(rows) if isinstance(rows, list) else []

    if not points:
        logger.warning(f"[Economic API] No historical data found for {indicator_code} ({country}).")
        return ToolOutcome.fail(
            f"No historical economic data found for {indicator_code} in {country}. "
            f"It might be an invalid indicator/country or a rate limit issue.",
            detail=str(rows)[:200],
        )

    logger.info(f"[Economic API] Fetched {len(points)} data points for {indicator_code}.")
    outcome = ToolOutcome.ok(
        {
            "indicator": indicator_code,
            "country": country,
            "historical_economic_data": points,
            "source": "Trading Economics",
        },
        chart_series=points,
    )
    ctx.macro_cache.set(cache_key, outcome)
    return outcome


@register_tool(
    "get_economic_indicator_data",
    description=(
        "Retrieves historical data for key economic indicators like CPI (Consumer Price Index), "
        "PPI (Producer Price Index), interest rates (often influenced by FOMC) or GDP growth. "
        "Useful for charting macroeconomic trends. Specify the indicator code and optionally "
        "the country (defaults to 'united states') and a date range."
    ),
    params=[
        ToolParam("indicatorCode", description=(
            "The code for the economic indicator: 'CPI', 'PPI', 'FOMC', 'interest_rate' or 'GDP'."
        )),
        ToolParam("countryCode", description=(
            "The country for which to fetch the data (e.g., 'united states', 'malaysia')."
        ), required=False, default=DEFAULT_COUNTRY),
        ToolParam("startDate", description="Start date, YYYY-MM-DD.", required=False),
        ToolParam("endDate", description="End date, YYYY-MM-DD.", required=False),
    ],
    chart_field="historical_economic_data",
)
async def get_economic_indicator_data(indicatorCode: str, ctx: ToolContext,
                                      countryCode: Optional[str] = None,
                                      startDate: Optional[str] = None,
                                      endDate: Optional[str] = None,
                                      **kwargs) -> ToolOutcome:
    return await fetch_indicator_series(ctx, indicatorCode, countryCode, startDate, endDate)
