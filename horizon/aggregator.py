"""Assemble the response envelope from the summary and any side artifacts."""
import logging
from typing import Any, Dict, Optional

from .protocol import ResponseEnvelope
from .tools.registry import ToolInvocation, ToolOutcome, get_spec

logger = logging.getLogger(__name__)

IMAGE_TOOL = "generate_image_tool"
NEWS_TOOL = "fetch_news"


def aggregate(summary: str,
              invocation: Optional[ToolInvocation] = None,
              outcome: Optional[ToolOutcome] = None,
              audio_url: Optional[str] = None) -> ResponseEnvelope:
    fields: Dict[str, Any] = {"summary": summary, "audio_url": audio_url or None}
    if invocation is None or outcome is None or not outcome.is_success:
        return ResponseEnvelope(**fields)

    tool_name = invocation.name
    spec = get_spec(tool_name)
    chart_field = spec.chart_field if spec else None

    # Only one tool runs per query, so at most one series is set
    if outcome.chart_series:
        if chart_field == "historical_economic_data":
            fields["historical_economic_data"] = outcome.chart_series
        else:
            fields["historical_stock_data"] = outcome.chart_series

    if tool_name == IMAGE_TOOL:
        fields["image_url"] = outcome.success.get("imageUrl") or None

    if tool_name == NEWS_TOOL and outcome.success.get("articles"):
        fields["articles"] = outcome.success["articles"]

    envelope = ResponseEnvelope(**fields)
    logger.info(
        f"Envelope for {tool_name}: chart={'yes' if outcome.chart_series else 'no'}, "
        f"image={'yes' if envelope.image_url else 'no'}, audio={'yes' if audio_url else 'no'}"
    )
    return envelope
