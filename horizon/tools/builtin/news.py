"""News tool: keyword search via GNews."""
import logging

import httpx

from ..registry import register_tool, ToolContext, ToolOutcome, ToolParam

logger = logging.getLogger(__name__)

GNEWS_URL = "https://gnews.io/api/v4/search"


@register_tool(
    "fetch_news",
    description="Fetches current news articles related to a given company or topic.",
    params=[
        ToolParam("keyword", description="The keyword, company name, or topic to search for news about."),
    ],
)
async def fetch_news(keyword: str, ctx: ToolContext, **kwargs) -> ToolOutcome:
    api_key = ctx.settings.gnews_api_key
    if not api_key:
        logger.error("[News API] API key not set.")
        return ToolOutcome.fail("GNews API key not found.", detail="GNEWS_API_KEY is empty")

    logger.info(f"[News API] Fetching news for: {keyword}")
    try:
        resp = await ctx.http.get(
            GNEWS_URL,
            params={
                "q": keyword,
                "lang": "en",
                "country": "us",
                "max": ctx.settings.news_max_results,
                "token": api_key,
            },
        )
        resp.raise_for_status()
        data = resp.json()
    except (httpx.HTTPError, ValueError) as e:
        logger.error(f"[News API] Error fetching news: {e}")
        return ToolOutcome.fail("Failed to fetch news data.", detail=str(e))

    raw_articles = data.get("articles") if isinstance(data, dict) else None
    articles = [
        {
            "title": a.get("title", ""),
            "description": a.get("description", ""),
            "url": a.get("url", ""),
        }
        for a in (raw_articles or [])[:ctx.settings.news_max_results]
        if isinstance(a, dict)
    ]
    if not articles:
        logger.warning(f"[News API] No articles for: {keyword}")
        return ToolOutcome.fail(f"No news articles found for {keyword}.", detail=str(data)[:200])

    logger.info(f"[News API] Fetched {len(articles)} articles.")
    return ToolOutcome.ok({"articles": articles})
